"""
Material and labor aggregation across every category and work item.

Totals include every item whatever its sign; the display breakdowns only
list lines with a strictly positive total.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

from .errors import EngineError, Outcome
from .limits import DEFAULT_LIMITS, EngineLimits
from .models import Category, WorkItem
from .results import BreakdownLine, CategoryBreakdown
from .units import item_units, unit_label


@dataclass
class CostTotals:
    material_cost: float = 0.0
    labor_cost: float = 0.0
    total_units: float = 0.0
    material_breakdown: list[BreakdownLine] = field(default_factory=list)
    labor_breakdown: list[BreakdownLine] = field(default_factory=list)
    category_breakdowns: list[CategoryBreakdown] = field(default_factory=list)


def _line(category: Category, item: WorkItem, units: float, rate: float) -> BreakdownLine:
    return BreakdownLine(
        category=category.name,
        work_type=item.work_type,
        item_name=item.name,
        units=units,
        unit_label=unit_label(item.measurement_type),
        cost_per_unit=rate,
        total=rate * units,
    )


def aggregate_costs(
    categories: Sequence[Category],
    limits: EngineLimits = DEFAULT_LIMITS,
) -> Outcome[CostTotals]:
    totals = CostTotals()
    errors: list[EngineError] = []

    for category in categories:
        cat_material = 0.0
        cat_labor = 0.0
        cat_units = 0.0
        valid_items = 0

        for item in category.work_items:
            resolved = item_units(item, limits)
            errors.extend(resolved.errors)
            units = resolved.value

            item_material = item.material_cost * units
            item_labor = item.labor_cost * units

            cat_material += item_material
            cat_labor += item_labor
            cat_units += units
            if not item.has_errors and resolved.ok:
                valid_items += 1

            # non-finite lines are left out, matching the zeroed totals
            if item_material > 0 and math.isfinite(item_material):
                totals.material_breakdown.append(_line(category, item, units, item.material_cost))
            if item_labor > 0 and math.isfinite(item_labor):
                totals.labor_breakdown.append(_line(category, item, units, item.labor_cost))

        totals.material_cost += cat_material
        totals.labor_cost += cat_labor
        totals.total_units += cat_units
        totals.category_breakdowns.append(
            CategoryBreakdown(
                key=category.key,
                name=category.name,
                material_cost=cat_material,
                labor_cost=cat_labor,
                subtotal=cat_material + cat_labor,
                total_units=cat_units,
                item_count=len(category.work_items),
                valid_item_count=valid_items,
            )
        )

    return Outcome(totals, errors)
