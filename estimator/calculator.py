from __future__ import annotations

import hashlib
import logging
from typing import Any, Sequence

from .adjustments import apply_adjustments
from .cache import TotalsCache, fingerprint
from .costs import aggregate_costs
from .errors import EngineError
from .limits import DEFAULT_LIMITS, EngineLimits
from .models import Project
from .normalize import normalize_project
from .results import CostSummary

logger = logging.getLogger(__name__)


def cache_key(project: Project, limits: EngineLimits) -> str:
    limits_digest = hashlib.sha256(limits.model_dump_json().encode("utf-8")).hexdigest()[:16]
    return f"{fingerprint(project)}|{limits_digest}"


def _calculate(project: Project, limits: EngineLimits) -> CostSummary:
    aggregated = aggregate_costs(project.categories, limits)
    totals = aggregated.value
    adjusted = apply_adjustments(totals.material_cost, totals.labor_cost, project.settings, limits)
    adj = adjusted.value

    return CostSummary(
        material_cost=totals.material_cost,
        labor_cost=adj.adjusted_labor,
        labor_cost_before_discount=adj.labor_cost_before_discount,
        labor_discount_amount=adj.labor_discount_amount,
        waste=adj.waste,
        tax=adj.tax,
        markup=adj.markup,
        transportation=adj.transportation,
        misc_fees_total=adj.misc_fees_total,
        subtotal=adj.subtotal,
        total_project_value=adj.total_project_value,
        total_units=totals.total_units,
        material_breakdown=totals.material_breakdown,
        labor_breakdown=totals.labor_breakdown,
        category_breakdowns=totals.category_breakdowns,
        errors=[*aggregated.errors, *adjusted.errors],
    )


def costs_for(
    project: Project,
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    ingest_errors: Sequence[EngineError] = (),
) -> CostSummary:
    """Costs for an already-normalized project."""
    if cache is None:
        summary = _calculate(project, limits)
    else:
        key = cache_key(project, limits)
        summary = cache.get("costs", key)
        if summary is None:
            summary = _calculate(project, limits)
            cache.put("costs", key, summary)

    if ingest_errors:
        summary = summary.model_copy(update={"errors": [*ingest_errors, *summary.errors]})
    return summary


def compute_costs(
    project: Project | Any,
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
) -> CostSummary:
    """Cost totals, adjustments and breakdowns for one project."""
    prepared = normalize_project(project, limits)
    return costs_for(prepared.value, limits=limits, cache=cache, ingest_errors=prepared.errors)
