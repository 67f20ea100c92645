"""
Order-sensitive adjustment pipeline.

    1. labor discount
    2. waste (material only; waste entries replace the flat factor)
    3. subtotal = material + waste + discounted labor
    4. tax and markup on the subtotal
    5. transportation fee
    6. misc fees
    7. total project value

Stages carry full float precision; nothing is rounded here.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .errors import EngineError, Outcome, calculation_error
from .limits import DEFAULT_LIMITS, EngineLimits
from .models import Settings
from .rules import clamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Adjustments:
    labor_cost_before_discount: float = 0.0
    labor_discount_amount: float = 0.0
    adjusted_labor: float = 0.0
    waste: float = 0.0
    subtotal: float = 0.0
    tax: float = 0.0
    markup: float = 0.0
    transportation: float = 0.0
    misc_fees_total: float = 0.0
    total_project_value: float = 0.0


def _guard(stage: str, value: float, errors: list[EngineError]) -> float:
    if math.isfinite(value):
        return value
    logger.error("Non-finite value at stage %s: %r", stage, value)
    errors.append(
        calculation_error(
            f"Calculation produced an invalid value at {stage}; using 0",
            "NON_FINITE_VALUE",
            {"stage": stage, "value": repr(value)},
        )
    )
    return 0.0


def _rate(value: float, high: float) -> float:
    # NaN fails every comparison, so treat it as 0 before clamping
    return clamp(value, 0.0, high) if math.isfinite(value) else 0.0


def compute_waste(material_cost: float, settings: Settings, limits: EngineLimits = DEFAULT_LIMITS) -> float:
    if settings.waste_entries:
        return sum(
            max(0.0, entry.surface_cost) * _rate(entry.waste_factor, limits.max_waste_factor)
            for entry in settings.waste_entries
        )
    return material_cost * _rate(settings.waste_factor, limits.max_waste_factor)


def apply_adjustments(
    material_cost: float,
    labor_cost: float,
    settings: Settings,
    limits: EngineLimits = DEFAULT_LIMITS,
) -> Outcome[Adjustments]:
    errors: list[EngineError] = []
    material_cost = _guard("material cost", material_cost, errors)
    labor_cost = _guard("labor cost", labor_cost, errors)

    discount = labor_cost * _rate(settings.labor_discount, 1.0)
    discount = _guard("labor discount", discount, errors)
    adjusted_labor = labor_cost - discount

    waste = _guard("waste", compute_waste(material_cost, settings, limits), errors)

    subtotal = _guard("subtotal", material_cost + waste + adjusted_labor, errors)

    tax = _guard("tax", subtotal * _rate(settings.tax_rate, limits.max_tax_rate), errors)
    markup = _guard("markup", subtotal * _rate(settings.markup, limits.max_markup_rate), errors)

    transportation = _guard("transportation", max(0.0, settings.transportation_fee), errors)

    misc_fees_total = _guard(
        "misc fees",
        sum(max(0.0, fee.amount) for fee in settings.misc_fees),
        errors,
    )

    total = _guard(
        "total project value",
        subtotal + markup + tax + transportation + misc_fees_total,
        errors,
    )

    return Outcome(
        Adjustments(
            labor_cost_before_discount=labor_cost,
            labor_discount_amount=discount,
            adjusted_labor=adjusted_labor,
            waste=waste,
            subtotal=subtotal,
            tax=tax,
            markup=markup,
            transportation=transportation,
            misc_fees_total=misc_fees_total,
            total_project_value=total,
        ),
        errors,
    )
