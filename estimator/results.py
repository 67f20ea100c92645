from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from .errors import EngineError
from .models import Payment
from .rules import money


class _Result(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def _rounded(self, names: tuple[str, ...], places: int, **extra):
        update = {name: money(getattr(self, name), places) for name in names}
        update.update(extra)
        return self.model_copy(update=update, deep=True)


class BreakdownLine(_Result):
    category: str
    work_type: str
    item_name: str
    units: float
    unit_label: str
    cost_per_unit: float
    total: float

    def rounded(self, places: int = 2) -> "BreakdownLine":
        return self._rounded(("units", "total"), places)


class CategoryBreakdown(_Result):
    key: str
    name: str
    material_cost: float = 0.0
    labor_cost: float = 0.0
    subtotal: float = 0.0
    total_units: float = 0.0
    item_count: int = 0
    valid_item_count: int = 0

    @computed_field
    @property
    def has_errors(self) -> bool:
        return self.valid_item_count < self.item_count

    def rounded(self, places: int = 2) -> "CategoryBreakdown":
        return self._rounded(
            ("material_cost", "labor_cost", "subtotal", "total_units"), places
        )


class CostSummary(_Result):
    material_cost: float = 0.0
    labor_cost: float = 0.0
    labor_cost_before_discount: float = 0.0
    labor_discount_amount: float = 0.0
    waste: float = 0.0
    tax: float = 0.0
    markup: float = 0.0
    transportation: float = 0.0
    misc_fees_total: float = 0.0
    subtotal: float = 0.0
    total_project_value: float = 0.0
    total_units: float = 0.0

    material_breakdown: list[BreakdownLine] = Field(default_factory=list)
    labor_breakdown: list[BreakdownLine] = Field(default_factory=list)
    category_breakdowns: list[CategoryBreakdown] = Field(default_factory=list)

    errors: list[EngineError] = Field(default_factory=list)

    def rounded(self, places: int = 2) -> "CostSummary":
        return self._rounded(
            (
                "material_cost",
                "labor_cost",
                "labor_cost_before_discount",
                "labor_discount_amount",
                "waste",
                "tax",
                "markup",
                "transportation",
                "misc_fees_total",
                "subtotal",
                "total_project_value",
                "total_units",
            ),
            places,
            material_breakdown=[line.rounded(places) for line in self.material_breakdown],
            labor_breakdown=[line.rounded(places) for line in self.labor_breakdown],
            category_breakdowns=[c.rounded(places) for c in self.category_breakdowns],
        )


class PaymentSummary(_Result):
    # paid deposit only; an unpaid deposit entry is listed in pending_payments
    deposit: float = 0.0
    total_paid: float = 0.0
    total_project_value: float = 0.0
    remaining_balance: float = 0.0
    is_fully_paid: bool = False

    paid_payments: list[Payment] = Field(default_factory=list)
    pending_payments: list[Payment] = Field(default_factory=list)
    overdue_payments: list[Payment] = Field(default_factory=list)
    overdue_total: float = 0.0

    errors: list[EngineError] = Field(default_factory=list)

    @computed_field
    @property
    def credit_balance(self) -> float:
        return max(0.0, self.total_paid - self.total_project_value)

    def rounded(self, places: int = 2) -> "PaymentSummary":
        return self._rounded(
            (
                "deposit",
                "total_paid",
                "total_project_value",
                "remaining_balance",
                "overdue_total",
            ),
            places,
        )


class RevenueFilter(_Result):
    type: Literal["all", "year", "range"] = "all"
    year: int | None = None
    start_date: date | None = None
    end_date: date | None = None

    @property
    def is_active(self) -> bool:
        return self.type != "all"


class AdditionalRevenue(_Result):
    markup: float = 0.0
    transportation: float = 0.0
    total: float = 0.0
    project_count: int = 0

    errors: list[EngineError] = Field(default_factory=list)

    def rounded(self, places: int = 2) -> "AdditionalRevenue":
        return self._rounded(("markup", "transportation", "total"), places)


class RevenueBucket(_Result):
    count: int = 0
    markup: float = 0.0
    transportation: float = 0.0
    total: float = 0.0


class RevenueBreakdown(_Result):
    fully_paid: RevenueBucket = Field(default_factory=RevenueBucket)
    outstanding: RevenueBucket = Field(default_factory=RevenueBucket)
    by_year: dict[int, RevenueBucket] = Field(default_factory=dict)


class BalanceView(_Result):
    grand_total: float = 0.0
    total_paid: float = 0.0
    amount_remaining: float = 0.0
    source: Literal["snapshot", "computed"] = "computed"

    errors: list[EngineError] = Field(default_factory=list)

    def rounded(self, places: int = 2) -> "BalanceView":
        return self._rounded(("grand_total", "total_paid", "amount_remaining"), places)


class ProjectProfit(_Result):
    revenue: float = 0.0
    cogs: float = 0.0
    gross_profit: float = 0.0
    net_profit: float = 0.0
    gross_margin_pct: float = 0.0
    net_margin_pct: float = 0.0


class ExpenseSummary(_Result):
    category_totals: dict[str, float] = Field(default_factory=dict)
    total: float = 0.0

    def rounded(self, places: int = 2) -> "ExpenseSummary":
        return self._rounded(
            ("total",),
            places,
            category_totals={k: money(v, places) for k, v in self.category_totals.items()},
        )


class MonthBucket(_Result):
    label: str
    collections: float = 0.0
    material_cost: float = 0.0
    labor_cost: float = 0.0
    project_expenses: float = 0.0
    company_expenses: float = 0.0
    profit: float = 0.0
    project_count: int = 0

    def rounded(self, places: int = 2) -> "MonthBucket":
        return self._rounded(
            (
                "collections",
                "material_cost",
                "labor_cost",
                "project_expenses",
                "company_expenses",
                "profit",
            ),
            places,
        )


class FinancialsSummary(_Result):
    total_collections: float = 0.0
    total_deposits: float = 0.0
    total_grand_value: float = 0.0

    total_material_cost: float = 0.0
    total_labor_cost: float = 0.0
    total_waste: float = 0.0
    total_tax: float = 0.0
    total_cogs: float = 0.0

    total_markup: float = 0.0
    total_transportation: float = 0.0
    total_misc_fees: float = 0.0

    additional_revenue: AdditionalRevenue = Field(default_factory=AdditionalRevenue)

    total_gross_profit: float = 0.0
    total_net_profit: float = 0.0

    total_projects: int = 0
    fully_paid_projects: int = 0
    projects_with_balance: int = 0

    payment_methods: dict[str, float] = Field(default_factory=dict)
    material_breakdown: dict[str, float] = Field(default_factory=dict)
    labor_breakdown: dict[str, float] = Field(default_factory=dict)

    total_outstanding: float = 0.0
    total_overdue: float = 0.0

    errors: list[EngineError] = Field(default_factory=list)

    def rounded(self, places: int = 2) -> "FinancialsSummary":
        def _map(values: dict[str, float]) -> dict[str, float]:
            return {k: money(v, places) for k, v in values.items()}

        return self._rounded(
            (
                "total_collections",
                "total_deposits",
                "total_grand_value",
                "total_material_cost",
                "total_labor_cost",
                "total_waste",
                "total_tax",
                "total_cogs",
                "total_markup",
                "total_transportation",
                "total_misc_fees",
                "total_gross_profit",
                "total_net_profit",
                "total_outstanding",
                "total_overdue",
            ),
            places,
            additional_revenue=self.additional_revenue.rounded(places),
            payment_methods=_map(self.payment_methods),
            material_breakdown=_map(self.material_breakdown),
            labor_breakdown=_map(self.labor_breakdown),
        )
