from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    # camelCase on the wire, snake_case in Python; records are snapshots
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class MeasurementType(str, Enum):
    SQUARE_FOOT = "square-foot"
    LINEAR_FOOT = "linear-foot"
    BY_UNIT = "by-unit"


UNIT_LABELS: dict[MeasurementType, str] = {
    MeasurementType.SQUARE_FOOT: "sqft",
    MeasurementType.LINEAR_FOOT: "linear ft",
    MeasurementType.BY_UNIT: "units",
}


class AreaMeasure(_Record):
    kind: Literal["square-foot"] = "square-foot"
    sqft: float = 0.0
    width: float = 0.0
    height: float = 0.0


class LinearMeasure(_Record):
    kind: Literal["linear-foot"] = "linear-foot"
    linear_ft: float = 0.0


class CountMeasure(_Record):
    kind: Literal["by-unit"] = "by-unit"
    units: float = 0.0


Measure = Annotated[
    Union[AreaMeasure, LinearMeasure, CountMeasure],
    Field(discriminator="kind"),
]


class Surface(_Record):
    name: str | None = None
    subtype: str | None = None
    measure: Measure = Field(default_factory=AreaMeasure)

    @property
    def measurement_type(self) -> MeasurementType:
        return MeasurementType(self.measure.kind)


class WorkItem(_Record):
    name: str = ""
    type: str | None = None
    measurement_type: MeasurementType = MeasurementType.SQUARE_FOOT

    material_cost: float = 0.0
    labor_cost: float = 0.0

    surfaces: list[Surface] = Field(default_factory=list)

    # set during ingestion when any field of the item was rejected
    has_errors: bool = False

    @property
    def work_type(self) -> str:
        return self.type or self.name or "Unknown"


class Category(_Record):
    key: str = ""
    name: str = ""
    work_items: list[WorkItem] = Field(default_factory=list)


class WasteEntry(_Record):
    surface_name: str | None = None
    surface_cost: float = 0.0
    waste_factor: float = 0.0


class MiscFee(_Record):
    name: str = ""
    amount: float = 0.0


class Payment(_Record):
    amount: float = 0.0
    date: datetime | None = None
    method: str | None = None
    type: str | None = None
    note: str | None = None
    is_paid: bool = False

    @property
    def is_deposit(self) -> bool:
        return (self.type or "").strip().lower() == "deposit" or (
            self.method or ""
        ).strip().lower() == "deposit"


class Settings(_Record):
    tax_rate: float = 0.0
    markup: float = 0.0
    waste_factor: float = 0.0
    waste_entries: list[WasteEntry] = Field(default_factory=list)
    transportation_fee: float = 0.0
    misc_fees: list[MiscFee] = Field(default_factory=list)
    labor_discount: float = 0.0
    # legacy flat deposit, superseded by a deposit-tagged payment entry
    deposit: float = 0.0
    payments: list[Payment] = Field(default_factory=list)
    currency: str | None = None


class CustomerInfo(_Record):
    first_name: str | None = None
    last_name: str | None = None
    project_name: str | None = None
    start_date: datetime | None = None
    finish_date: datetime | None = None

    @property
    def display_name(self) -> str:
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return self.project_name or full or "Unnamed project"


class Project(_Record):
    project_id: str | None = Field(default=None, alias="id")
    customer_info: CustomerInfo = Field(default_factory=CustomerInfo)
    categories: list[Category] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings)

    # cached prior results as stored by the persistence layer
    totals: dict[str, Any] | None = None
    payment_details: dict[str, Any] | None = None


class CompanyExpense(_Record):
    date: datetime | None = None
    amount: float = 0.0
    category: str = "other"
    description: str | None = None
