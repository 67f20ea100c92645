"""
Additional revenue: markup plus transportation, recognized only once a
project is fully paid. Unpaid and partially paid projects contribute zero.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

from .cache import TotalsCache
from .calculator import costs_for
from .errors import EngineError
from .limits import DEFAULT_LIMITS, EngineLimits
from .models import Project
from .normalize import normalize_projects
from .payments import payments_for
from .results import AdditionalRevenue, RevenueBreakdown, RevenueBucket, RevenueFilter
from .rules import reference_time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectRevenue:
    markup: float = 0.0
    transportation: float = 0.0
    is_fully_paid: bool = False

    @property
    def total(self) -> float:
        return self.markup + self.transportation


def project_revenue(
    project: Project,
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    as_of: datetime | None = None,
) -> tuple[ProjectRevenue, list[EngineError]]:
    """Gated markup/transportation for one normalized project."""
    costs = costs_for(project, limits=limits, cache=cache)
    ledger = payments_for(project, costs=costs, limits=limits, as_of=as_of)
    errors = [*costs.errors, *ledger.errors]
    if not ledger.is_fully_paid:
        return ProjectRevenue(), errors
    return ProjectRevenue(costs.markup, costs.transportation, True), errors


def coerce_filter(value: RevenueFilter | Mapping[str, Any] | None) -> RevenueFilter:
    if value is None:
        return RevenueFilter()
    if isinstance(value, RevenueFilter):
        return value
    return RevenueFilter.model_validate(value)


def date_in_filter(moment: datetime, revenue_filter: RevenueFilter, now: datetime | None = None) -> bool:
    if revenue_filter.type == "year":
        year = revenue_filter.year or reference_time(now).year
        return moment.year == year

    if revenue_filter.type == "range":
        # inclusive by calendar date, open on a missing bound
        day = moment.date()
        if revenue_filter.start_date and day < revenue_filter.start_date:
            return False
        if revenue_filter.end_date and day > revenue_filter.end_date:
            return False
    return True


def matches_filter(project: Project, revenue_filter: RevenueFilter, now: datetime | None = None) -> bool:
    if not revenue_filter.is_active:
        return True
    started = project.customer_info.start_date
    if started is None:
        return False
    return date_in_filter(started, revenue_filter, now)


def compute_additional_revenue(
    projects: Project | Mapping[str, Any] | Iterable[Any],
    revenue_filter: RevenueFilter | Mapping[str, Any] | None = None,
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    as_of: datetime | None = None,
) -> AdditionalRevenue:
    """Sum of gated additional revenue over one project or a list of them.

    ``project_count`` is the number of fully paid projects that matched
    the filter.
    """
    active = coerce_filter(revenue_filter)
    now = reference_time(as_of)

    markup = 0.0
    transportation = 0.0
    count = 0
    batch = normalize_projects(projects, limits)
    errors: list[EngineError] = list(batch.errors)

    for prepared in batch.value:
        project = prepared.value
        if not matches_filter(project, active, now):
            continue
        errors.extend(prepared.errors)
        revenue, found = project_revenue(project, limits=limits, cache=cache, as_of=now)
        errors.extend(found)
        if not revenue.is_fully_paid:
            continue
        markup += revenue.markup
        transportation += revenue.transportation
        count += 1

    logger.debug("Additional revenue over %d fully paid project(s)", count)
    return AdditionalRevenue(
        markup=markup,
        transportation=transportation,
        total=markup + transportation,
        project_count=count,
        errors=errors,
    )


def additional_revenue_breakdown(
    projects: Iterable[Any],
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    as_of: datetime | None = None,
) -> RevenueBreakdown:
    """Counts and recognized amounts by payment status and by start year."""
    breakdown = RevenueBreakdown()
    for prepared in normalize_projects(projects, limits).value:
        project = prepared.value
        revenue, _ = project_revenue(project, limits=limits, cache=cache, as_of=as_of)

        bucket = breakdown.fully_paid if revenue.is_fully_paid else breakdown.outstanding
        _add(bucket, revenue)

        started = project.customer_info.start_date
        if started is not None:
            _add(breakdown.by_year.setdefault(started.year, RevenueBucket()), revenue)

    return breakdown


def _add(bucket: RevenueBucket, revenue: ProjectRevenue) -> None:
    bucket.count += 1
    bucket.markup += revenue.markup
    bucket.transportation += revenue.transportation
    bucket.total += revenue.total
