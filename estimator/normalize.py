"""
Ingestion: raw project JSON -> canonical models.

This is the only place that knows about legacy field shapes, measurement
type spellings and numeric strings. Everything downstream works on the
typed models from ``estimator.models``. Invalid values never stop
ingestion: they are replaced by zero and reported.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .errors import (
    EngineError,
    ErrorCategory,
    Outcome,
    Severity,
    migration_notice,
    validation_error,
)
from .limits import DEFAULT_LIMITS, EngineLimits
from .models import (
    AreaMeasure,
    Category,
    CompanyExpense,
    CountMeasure,
    CustomerInfo,
    LinearMeasure,
    MeasurementType,
    MiscFee,
    Payment,
    Project,
    Settings,
    Surface,
    WasteEntry,
    WorkItem,
)
from .rules import parse_date, parse_number
from .validation import build_schemas, validate_by_schema

logger = logging.getLogger(__name__)

_TYPE_ALIASES: dict[str, MeasurementType] = {
    "square-foot": MeasurementType.SQUARE_FOOT,
    "sqft": MeasurementType.SQUARE_FOOT,
    "sq ft": MeasurementType.SQUARE_FOOT,
    "square foot": MeasurementType.SQUARE_FOOT,
    "square foot (sqft)": MeasurementType.SQUARE_FOOT,
    "single-surface": MeasurementType.SQUARE_FOOT,
    "linear-foot": MeasurementType.LINEAR_FOOT,
    "linear ft": MeasurementType.LINEAR_FOOT,
    "linearft": MeasurementType.LINEAR_FOOT,
    "linear foot": MeasurementType.LINEAR_FOOT,
    "by-unit": MeasurementType.BY_UNIT,
    "by unit": MeasurementType.BY_UNIT,
    "unit": MeasurementType.BY_UNIT,
    "units": MeasurementType.BY_UNIT,
}

_LEGACY_ITEM_FIELDS = ("sqft", "width", "height", "linearFt", "units")

_PAID_WORDS = {"true", "yes", "1", "paid"}


def _blank(value: Any) -> bool:
    return value is None or value == ""


def _text(value: Any) -> str | None:
    if _blank(value):
        return None
    return value if isinstance(value, str) else str(value)


def _number(value: Any, *, floor: float | None = None) -> float:
    # errors for these values were already reported by the schema check
    number = parse_number(value)
    if number is None:
        return 0.0
    if floor is not None and number < floor:
        return floor
    return number


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _PAID_WORDS
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _date(value: Any, field: str, context: str, errors: list[EngineError]):
    if _blank(value):
        return None
    parsed = parse_date(value)
    if parsed is None:
        errors.append(
            validation_error(
                f"{context}: {field} is not a valid date",
                "INVALID_DATE",
                {"field": field, "value": repr(value), "context": context},
            )
        )
    return parsed


def resolve_measurement_type(raw: Any, context: str = "") -> Outcome[MeasurementType]:
    """Canonical measurement type; unknown spellings fall back to square-foot."""
    if _blank(raw):
        return Outcome(MeasurementType.SQUARE_FOOT)

    key = str(raw).strip().lower()
    resolved = _TYPE_ALIASES.get(key)
    if resolved is not None:
        return Outcome(resolved)

    logger.warning("Unknown measurement type %r (%s), using square-foot", raw, context)
    return Outcome(
        MeasurementType.SQUARE_FOOT,
        [
            validation_error(
                f"{context}: unknown measurement type '{raw}', treated as square-foot",
                "UNKNOWN_MEASUREMENT_TYPE",
                {"measurementType": str(raw), "context": context},
            )
        ],
    )


def _infer_legacy_type(raw: Mapping[str, Any]) -> MeasurementType:
    if parse_number(raw.get("sqft")) or (
        parse_number(raw.get("width")) and parse_number(raw.get("height"))
    ):
        return MeasurementType.SQUARE_FOOT
    if parse_number(raw.get("linearFt")):
        return MeasurementType.LINEAR_FOOT
    if parse_number(raw.get("units")):
        return MeasurementType.BY_UNIT
    return MeasurementType.SQUARE_FOOT


def _build_measure(raw: Mapping[str, Any], mtype: MeasurementType):
    # negative quantities never reduce a total
    if mtype is MeasurementType.LINEAR_FOOT:
        return LinearMeasure(linear_ft=_number(raw.get("linearFt"), floor=0.0))
    if mtype is MeasurementType.BY_UNIT:
        return CountMeasure(units=_number(raw.get("units"), floor=0.0))
    return AreaMeasure(
        sqft=_number(raw.get("sqft"), floor=0.0),
        width=_number(raw.get("width"), floor=0.0),
        height=_number(raw.get("height"), floor=0.0),
    )


class _Ingestor:
    def __init__(self, limits: EngineLimits):
        self.limits = limits
        self.schemas = build_schemas(limits)
        self.errors: list[EngineError] = []

    def check(self, data: Any, schema_key: str, context: str) -> list[EngineError]:
        found = validate_by_schema(data, schema_key, context, self.schemas).errors
        self.errors.extend(found)
        return found

    # -- work --------------------------------------------------------------

    def surface(self, raw: Any, item_type: MeasurementType, context: str) -> Surface:
        if not isinstance(raw, Mapping):
            self.errors.append(
                validation_error(
                    f"{context}: invalid surface structure",
                    "INVALID_SURFACE",
                    {"context": context, "actualType": type(raw).__name__},
                )
            )
            return Surface()

        self.check(raw, "surface", context)
        mtype = item_type
        if not _blank(raw.get("measurementType")):
            resolved = resolve_measurement_type(raw.get("measurementType"), context)
            self.errors.extend(resolved.errors)
            mtype = resolved.value

        return Surface(
            name=_text(raw.get("name")),
            subtype=_text(raw.get("subtype")),
            measure=_build_measure(raw, mtype),
        )

    def work_item(self, raw: Any, context: str) -> WorkItem:
        if not isinstance(raw, Mapping):
            self.errors.append(
                validation_error(
                    f"{context}: invalid work item structure",
                    "INVALID_ITEM",
                    {"context": context, "actualType": type(raw).__name__},
                )
            )
            return WorkItem(has_errors=True)

        start = len(self.errors)
        self.check(raw, "workItem", context)

        raw_type = raw.get("measurementType")
        resolved = resolve_measurement_type(raw_type, context)
        self.errors.extend(resolved.errors)
        item_type = resolved.value

        raw_surfaces = raw.get("surfaces")
        surfaces: list[Surface] = []
        if isinstance(raw_surfaces, (list, tuple)) and raw_surfaces:
            kept = raw_surfaces[: self.limits.max_surfaces_per_item]
            for index, raw_surface in enumerate(kept):
                surfaces.append(
                    self.surface(raw_surface, item_type, f"{context} / Surface {index + 1}")
                )
        elif any(not _blank(raw.get(name)) for name in _LEGACY_ITEM_FIELDS):
            legacy = {name: raw.get(name) for name in _LEGACY_ITEM_FIELDS}
            if _blank(raw_type):
                item_type = _infer_legacy_type(legacy)
            surfaces.append(self.surface(legacy, item_type, f"{context} / legacy measurements"))
            self.errors.append(
                migration_notice(
                    f"{context}: measurements read from legacy item-level fields",
                    "LEGACY_ITEM_MEASUREMENTS",
                    {"context": context, "fields": [n for n in _LEGACY_ITEM_FIELDS if not _blank(raw.get(n))]},
                )
            )

        item_errors = [e for e in self.errors[start:] if e.category is ErrorCategory.VALIDATION]
        return WorkItem(
            name=_text(raw.get("name")) or "",
            type=_text(raw.get("type")) or _text(raw.get("customWorkName")),
            measurement_type=item_type,
            material_cost=_number(raw.get("materialCost")),
            labor_cost=_number(raw.get("laborCost")),
            surfaces=surfaces,
            has_errors=bool(item_errors),
        )

    def category(self, raw: Any, context: str) -> Category | None:
        if not isinstance(raw, Mapping):
            self.errors.append(
                validation_error(
                    f"{context}: invalid category structure",
                    "INVALID_CATEGORY",
                    {"context": context, "actualType": type(raw).__name__},
                    severity=Severity.MEDIUM,
                )
            )
            return None

        self.check(raw, "category", context)
        raw_items = raw.get("workItems")
        if raw_items is None:
            raw_items = raw.get("items")
        if not isinstance(raw_items, (list, tuple)):
            raw_items = []

        items = [
            self.work_item(raw_item, f"{context} / Item {index + 1}")
            for index, raw_item in enumerate(raw_items[: self.limits.max_items_per_category])
        ]
        return Category(
            key=_text(raw.get("key")) or "",
            name=_text(raw.get("name")) or "",
            work_items=items,
        )

    def categories(self, raw: Any) -> list[Category]:
        if not isinstance(raw, (list, tuple)):
            self.errors.append(
                validation_error(
                    "Project has no usable categories",
                    "INVALID_CATEGORIES",
                    {"actualType": type(raw).__name__},
                    severity=Severity.MEDIUM,
                )
            )
            return []

        if len(raw) > self.limits.max_categories:
            self.errors.append(
                validation_error(
                    f"Too many categories: {len(raw)} exceeds limit of {self.limits.max_categories}",
                    "TOO_MANY_CATEGORIES",
                    {"count": len(raw), "limit": self.limits.max_categories},
                    severity=Severity.MEDIUM,
                )
            )
            raw = raw[: self.limits.max_categories]

        parsed = (self.category(c, f"Category {i + 1}") for i, c in enumerate(raw))
        return [c for c in parsed if c is not None]

    # -- money -------------------------------------------------------------

    def payment(self, raw: Any, context: str) -> Payment | None:
        if not isinstance(raw, Mapping):
            self.errors.append(
                validation_error(
                    f"{context}: invalid payment",
                    "INVALID_PAYMENT",
                    {"context": context, "actualType": type(raw).__name__},
                )
            )
            return None

        self.check(raw, "payment", context)
        is_paid = raw.get("isPaid")
        if is_paid is None:
            is_paid = raw.get("status")
        return Payment(
            amount=_number(raw.get("amount"), floor=0.0),
            date=_date(raw.get("date"), "date", context, self.errors),
            method=_text(raw.get("method")),
            type=_text(raw.get("type")),
            note=_text(raw.get("note")) or _text(raw.get("description")),
            is_paid=_flag(is_paid),
        )

    def settings(self, raw: Any) -> Settings:
        if not isinstance(raw, Mapping):
            self.errors.append(
                validation_error(
                    "Invalid settings configuration, using defaults",
                    "INVALID_SETTINGS",
                    {"actualType": type(raw).__name__},
                    severity=Severity.MEDIUM,
                )
            )
            return Settings()

        self.check(raw, "settings", "Settings")

        waste_entries = []
        for index, entry in enumerate(_as_list(raw.get("wasteEntries"))):
            self.check(entry, "wasteEntry", f"Waste entry {index + 1}")
            if not isinstance(entry, Mapping):
                continue
            waste_entries.append(
                WasteEntry(
                    surface_name=_text(entry.get("surfaceName")),
                    surface_cost=_number(entry.get("surfaceCost")),
                    waste_factor=_number(entry.get("wasteFactor")),
                )
            )

        misc_fees = []
        for index, fee in enumerate(_as_list(raw.get("miscFees"))):
            self.check(fee, "miscFee", f"Misc fee {index + 1}")
            if not isinstance(fee, Mapping):
                continue
            misc_fees.append(
                MiscFee(name=_text(fee.get("name")) or "", amount=_number(fee.get("amount")))
            )

        payments = [
            self.payment(p, f"Payment {i + 1}") for i, p in enumerate(_as_list(raw.get("payments")))
        ]

        return Settings(
            tax_rate=_number(raw.get("taxRate")),
            markup=_number(raw.get("markup")),
            waste_factor=_number(raw.get("wasteFactor")),
            waste_entries=waste_entries,
            transportation_fee=_number(raw.get("transportationFee")),
            misc_fees=misc_fees,
            labor_discount=_number(raw.get("laborDiscount")),
            deposit=_number(raw.get("deposit"), floor=0.0),
            payments=[p for p in payments if p is not None],
            currency=_text(raw.get("currency")),
        )

    def customer_info(self, raw: Any) -> CustomerInfo:
        if not isinstance(raw, Mapping):
            return CustomerInfo()
        return CustomerInfo(
            first_name=_text(raw.get("firstName")),
            last_name=_text(raw.get("lastName")),
            project_name=_text(raw.get("projectName")),
            start_date=_date(raw.get("startDate"), "startDate", "Customer info", self.errors),
            finish_date=_date(raw.get("finishDate"), "finishDate", "Customer info", self.errors),
        )


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _snapshot(value: Any) -> dict[str, Any] | None:
    return dict(value) if isinstance(value, Mapping) else None


def normalize_project(raw: Any, limits: EngineLimits = DEFAULT_LIMITS) -> Outcome[Project]:
    """Single normalization step run once per entry-point call."""
    if isinstance(raw, Project):
        return Outcome(raw)

    if not isinstance(raw, Mapping):
        return Outcome(
            Project(),
            [
                validation_error(
                    "Project must be an object",
                    "INVALID_PROJECT",
                    {"actualType": type(raw).__name__},
                    severity=Severity.MEDIUM,
                )
            ],
        )

    ingest = _Ingestor(limits)
    project_id = raw.get("_id", raw.get("id"))
    project = Project(
        project_id=_text(project_id),
        customer_info=ingest.customer_info(raw.get("customerInfo")),
        categories=ingest.categories(raw.get("categories")),
        settings=ingest.settings(raw.get("settings")),
        totals=_snapshot(raw.get("totals")),
        payment_details=_snapshot(raw.get("paymentDetails")),
    )
    if ingest.errors:
        logger.debug("Ingested project %s with %d issue(s)", project.project_id, len(ingest.errors))
    return Outcome(project, ingest.errors)


def normalize_projects(
    raw: Any, limits: EngineLimits = DEFAULT_LIMITS
) -> Outcome[list[Outcome[Project]]]:
    """One project or any iterable of them; anything else is reported."""
    if isinstance(raw, (Project, Mapping)):
        return Outcome([normalize_project(raw, limits)])
    if isinstance(raw, Iterable) and not isinstance(raw, (str, bytes)):
        return Outcome([normalize_project(p, limits) for p in raw])
    return Outcome(
        [],
        [
            validation_error(
                "Projects must be a project or a list of projects",
                "INVALID_PROJECTS",
                {"actualType": type(raw).__name__},
                severity=Severity.MEDIUM,
            )
        ],
    )


def normalize_expenses(raw: Any) -> Outcome[list[CompanyExpense]]:
    """Company (overhead) expenses; entries that are not objects are skipped."""
    errors: list[EngineError] = []
    expenses: list[CompanyExpense] = []
    for index, entry in enumerate(_as_list(raw)):
        context = f"Expense {index + 1}"
        if isinstance(entry, CompanyExpense):
            expenses.append(entry)
            continue
        if not isinstance(entry, Mapping):
            errors.append(
                validation_error(
                    f"{context}: invalid expense",
                    "INVALID_EXPENSE",
                    {"context": context, "actualType": type(entry).__name__},
                )
            )
            continue
        amount = parse_number(entry.get("amount"))
        if amount is None and not _blank(entry.get("amount")):
            errors.append(
                validation_error(
                    f"{context}: amount must be a valid number",
                    "INVALID_NUMBER",
                    {"field": "amount", "value": repr(entry.get("amount")), "context": context},
                )
            )
        expenses.append(
            CompanyExpense(
                date=_date(entry.get("date"), "date", context, errors),
                amount=amount or 0.0,
                category=_text(entry.get("category")) or "other",
                description=_text(entry.get("description")),
            )
        )
    return Outcome(expenses, errors)
