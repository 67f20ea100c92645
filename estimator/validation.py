"""
Schema-driven field checks.

Each schema field is a pydantic constrained type (``Field(ge=..., le=...)``,
``min_length``/``max_length``) run through a ``TypeAdapter``. Failures are
mapped onto engine error codes; nothing here raises. Numeric fields accept
numeric strings such as ``"1,250.50"`` or ``"$12"`` and all go through the
same bounded-range check, so min/max/precision semantics are the same for
surfaces, costs, rates, payments and fees.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Annotated, Any, Literal, Mapping

from pydantic import Field, Strict, TypeAdapter, ValidationError

from .errors import EngineError, validation_error
from .limits import DEFAULT_LIMITS, EngineLimits
from .rules import parse_number

FieldType = Literal["string", "number", "boolean", "array", "object"]

# pydantic error type -> engine error code; anything else is a type mismatch
_ERROR_CODES = {
    "greater_than_equal": "MIN_VALUE_VIOLATION",
    "less_than_equal": "MAX_VALUE_VIOLATION",
    "int_from_float": "DECIMAL_NOT_ALLOWED",
    "string_too_short": "MIN_LENGTH_VIOLATION",
    "string_too_long": "MAX_LENGTH_VIOLATION",
    "too_short": "MIN_LENGTH_VIOLATION",
    "too_long": "MAX_LENGTH_VIOLATION",
}


@dataclass(frozen=True)
class FieldRule:
    type: FieldType
    adapter: TypeAdapter
    required: bool = False


@dataclass(frozen=True)
class NumberCheck:
    value: float | None
    error: EngineError | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None


@dataclass
class ValidationResult:
    errors: list[EngineError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _constraints(**bounds: Any) -> dict[str, Any]:
    return {name: bound for name, bound in bounds.items() if bound is not None}


@lru_cache(maxsize=None)
def number_adapter(
    minimum: float | None = None,
    maximum: float | None = None,
    whole: bool = False,
) -> TypeAdapter:
    target = int if whole else float
    return TypeAdapter(Annotated[target, Field(**_constraints(ge=minimum, le=maximum))])


def _number(minimum: float, maximum: float, *, whole: bool = False, required: bool = False) -> FieldRule:
    return FieldRule("number", number_adapter(minimum, maximum, whole), required)


def _string(min_length: int | None = None, max_length: int | None = None, *, required: bool = False) -> FieldRule:
    lengths = Field(**_constraints(min_length=min_length, max_length=max_length))
    return FieldRule("string", TypeAdapter(Annotated[str, Strict(), lengths]), required)


def _array(max_length: int | None = None) -> FieldRule:
    lengths = Field(**_constraints(max_length=max_length))
    return FieldRule("array", TypeAdapter(Annotated[list[Any], lengths]))


def _boolean() -> FieldRule:
    return FieldRule("boolean", TypeAdapter(Annotated[bool, Strict()]))


# adapters are built once per limits value
@lru_cache(maxsize=16)
def build_schemas(limits: EngineLimits = DEFAULT_LIMITS) -> dict[str, dict[str, FieldRule]]:
    return {
        "workItem": {
            "name": _string(1, 100, required=True),
            "type": _string(1, 50),
            "measurementType": _string(1, 50),
            "materialCost": _number(0, limits.max_cost),
            "laborCost": _number(0, limits.max_cost),
            "surfaces": _array(limits.max_surfaces_per_item),
        },
        "surface": {
            "sqft": _number(0, limits.max_units),
            "width": _number(0, limits.max_dimension),
            "height": _number(0, limits.max_dimension),
            "linearFt": _number(0, limits.max_units),
            "units": _number(0, limits.max_units, whole=True),
            "subtype": _string(1, 50),
            "measurementType": _string(1, 50),
        },
        "settings": {
            "currency": _string(3, 3),
            "taxRate": _number(0, limits.max_tax_rate),
            "markup": _number(0, limits.max_markup_rate),
            "wasteFactor": _number(0, limits.max_waste_factor),
            "laborDiscount": _number(0, 1),
            "transportationFee": _number(0, limits.max_cost),
            "deposit": _number(0, limits.max_payment),
            "wasteEntries": _array(),
            "miscFees": _array(),
            "payments": _array(),
        },
        "category": {
            "key": _string(1, 50, required=True),
            "name": _string(1, 100, required=True),
            "workItems": _array(limits.max_items_per_category),
        },
        "payment": {
            "amount": _number(0, limits.max_payment, required=True),
            "method": _string(max_length=50),
            "type": _string(max_length=50),
            "isPaid": _boolean(),
        },
        "wasteEntry": {
            "surfaceName": _string(max_length=100),
            "surfaceCost": _number(0, limits.max_cost),
            "wasteFactor": _number(0, limits.max_waste_factor),
        },
        "miscFee": {
            "name": _string(max_length=100),
            "amount": _number(0, limits.max_cost, required=True),
        },
    }


VALIDATION_SCHEMAS = build_schemas()


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _first_error(
    adapter: TypeAdapter,
    value: Any,
    label: str,
    details: dict[str, Any],
) -> EngineError | None:
    """Run the adapter; its first failure becomes an engine error."""
    try:
        adapter.validate_python(value)
    except ValidationError as exc:
        problem = exc.errors()[0]
        code = _ERROR_CODES.get(problem["type"], "INVALID_TYPE")
        return validation_error(
            f"{label}: {problem['msg']}",
            code,
            {**details, **problem.get("ctx", {}), "errorType": problem["type"]},
        )
    return None


def _check_number(
    value: Any,
    adapter: TypeAdapter,
    label: str,
    details: dict[str, Any],
    required: bool,
) -> NumberCheck:
    if _is_blank(value):
        if not required:
            return NumberCheck(None)
        return NumberCheck(None, validation_error(f"{label} is required", "REQUIRED_FIELD", details))

    number = parse_number(value)
    if number is None:
        return NumberCheck(
            None,
            validation_error(
                f"{label} must be a valid number",
                "INVALID_NUMBER",
                {**details, "value": repr(value)},
            ),
        )
    # out-of-range values are kept and flagged
    return NumberCheck(number, _first_error(adapter, number, label, {**details, "value": number}))


def check_number(
    value: Any,
    *,
    field: str = "Value",
    minimum: float | None = None,
    maximum: float | None = None,
    decimals: bool = True,
    required: bool = True,
    details: Mapping[str, Any] | None = None,
) -> NumberCheck:
    """The bounded-range routine behind every numeric field."""
    context = dict(details or {})
    context.setdefault("field", field)
    adapter = number_adapter(minimum, maximum, not decimals)
    return _check_number(value, adapter, field, context, required)


def validate_by_schema(
    data: Any,
    schema_key: str,
    context: str = "",
    schemas: Mapping[str, Mapping[str, FieldRule]] | None = None,
) -> ValidationResult:
    schemas = schemas if schemas is not None else VALIDATION_SCHEMAS
    result = ValidationResult()
    prefix = f"{context}: " if context else ""

    schema = schemas.get(schema_key)
    if schema is None:
        result.errors.append(
            validation_error(
                f"No validation schema found for {schema_key}",
                "MISSING_SCHEMA",
                {"schemaKey": schema_key, "context": context},
            )
        )
        return result

    if not isinstance(data, Mapping):
        result.errors.append(
            validation_error(
                f"{prefix}expected an object",
                "INVALID_TYPE",
                {"schemaKey": schema_key, "context": context, "actualType": type(data).__name__},
            )
        )
        return result

    for name, rule in schema.items():
        value = data.get(name)
        details = {"field": name, "context": context}

        if rule.type == "number":
            error = _check_number(value, rule.adapter, prefix + name, details, rule.required).error
        elif _is_blank(value):
            error = None
            if rule.required:
                error = validation_error(f"{prefix}{name} is required", "REQUIRED_FIELD", details)
        else:
            error = _first_error(rule.adapter, value, prefix + name, details)

        if error is not None:
            result.errors.append(error)

    return result
