# estimator/dashboard.py
# Finance dashboard figures, built only on the cost/payment/revenue entry points.

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping

from .cache import TotalsCache
from .calculator import costs_for
from .errors import EngineError
from .limits import DEFAULT_LIMITS, EngineLimits
from .models import Project
from .normalize import normalize_expenses, normalize_project, normalize_projects
from .payments import has_deposit_entry, payments_for
from .results import (
    CostSummary,
    ExpenseSummary,
    FinancialsSummary,
    MonthBucket,
    PaymentSummary,
    ProjectProfit,
    RevenueFilter,
)
from .revenue import coerce_filter, compute_additional_revenue, date_in_filter, matches_filter
from .rules import reference_time

logger = logging.getLogger(__name__)

DEPOSIT_METHOD = "Deposit"
DEFAULT_METHOD = "Cash"


def cogs(costs: CostSummary) -> float:
    return costs.material_cost + costs.waste + costs.tax


def _profit(costs: CostSummary, ledger: PaymentSummary) -> ProjectProfit:
    revenue = ledger.total_paid
    project_cogs = cogs(costs)
    gross = revenue - project_cogs
    # negative until the project is fully paid
    net = revenue - costs.total_project_value
    return ProjectProfit(
        revenue=revenue,
        cogs=project_cogs,
        gross_profit=gross,
        net_profit=net,
        gross_margin_pct=gross / revenue * 100 if revenue > 0 else 0.0,
        net_margin_pct=net / revenue * 100 if revenue > 0 else 0.0,
    )


def compute_project_profit(
    project: Project | Any,
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    as_of: datetime | None = None,
) -> ProjectProfit:
    current = normalize_project(project, limits).value
    costs = costs_for(current, limits=limits, cache=cache)
    return _profit(costs, payments_for(current, costs=costs, limits=limits, as_of=as_of))


def _breakdown_key(category: str, work_type: str) -> str:
    return f"{category} / {work_type}"


def aggregate_financials(
    projects: Iterable[Any],
    revenue_filter: RevenueFilter | Mapping[str, Any] | None = None,
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    as_of: datetime | None = None,
) -> FinancialsSummary:
    """Totals across every project matching the filter.

    Costs and fees are summed over all matching projects whatever their
    payment status; additional revenue only counts fully paid ones.
    """
    active = coerce_filter(revenue_filter)
    now = reference_time(as_of)
    result = FinancialsSummary()
    batch = normalize_projects(projects, limits)
    errors: list[EngineError] = list(batch.errors)
    included: list[Project] = []

    for prepared in batch.value:
        project = prepared.value
        if not matches_filter(project, active, now):
            continue
        errors.extend(prepared.errors)
        included.append(project)

        costs = costs_for(project, limits=limits, cache=cache)
        ledger = payments_for(project, costs=costs, limits=limits, as_of=now)
        errors.extend(costs.errors)
        errors.extend(ledger.errors)
        profit = _profit(costs, ledger)

        result.total_projects += 1
        result.total_grand_value += costs.total_project_value
        result.total_collections += ledger.total_paid
        result.total_deposits += ledger.deposit

        result.total_material_cost += costs.material_cost
        result.total_labor_cost += costs.labor_cost
        result.total_waste += costs.waste
        result.total_tax += costs.tax
        result.total_cogs += profit.cogs

        result.total_markup += costs.markup
        result.total_transportation += costs.transportation
        result.total_misc_fees += costs.misc_fees_total

        result.total_gross_profit += profit.gross_profit
        result.total_net_profit += profit.net_profit

        if ledger.is_fully_paid:
            result.fully_paid_projects += 1
        else:
            result.projects_with_balance += 1
            result.total_outstanding += ledger.remaining_balance
            result.total_overdue += ledger.overdue_total

        methods = result.payment_methods
        if ledger.deposit > 0:
            methods[DEPOSIT_METHOD] = methods.get(DEPOSIT_METHOD, 0.0) + ledger.deposit
        for payment in ledger.paid_payments:
            if payment.is_deposit:
                continue
            method = payment.method or DEFAULT_METHOD
            methods[method] = methods.get(method, 0.0) + payment.amount

        for line in costs.material_breakdown:
            key = _breakdown_key(line.category, line.work_type)
            result.material_breakdown[key] = result.material_breakdown.get(key, 0.0) + line.total
        for line in costs.labor_breakdown:
            key = _breakdown_key(line.category, line.work_type)
            result.labor_breakdown[key] = result.labor_breakdown.get(key, 0.0) + line.total

    # already filtered above
    additional = compute_additional_revenue(included, limits=limits, cache=cache, as_of=now)
    result.additional_revenue = additional.model_copy(update={"errors": []})
    result.errors = errors
    logger.debug("Aggregated financials over %d project(s)", result.total_projects)
    return result


def aggregate_company_expenses(
    expenses: Iterable[Any],
    revenue_filter: RevenueFilter | Mapping[str, Any] | None = None,
    *,
    as_of: datetime | None = None,
) -> ExpenseSummary:
    """Company expense totals per category. Undated expenses always count."""
    active = coerce_filter(revenue_filter)
    summary = ExpenseSummary()
    for expense in normalize_expenses(expenses).value:
        if active.is_active and expense.date and not date_in_filter(expense.date, active, as_of):
            continue
        totals = summary.category_totals
        totals[expense.category] = totals.get(expense.category, 0.0) + expense.amount
        summary.total += expense.amount
    return summary


def month_key(moment: datetime) -> str:
    return f"{moment.year}-{moment.month:02d}"


def _month_range(first: datetime, last: datetime) -> list[str]:
    keys = []
    year, month = first.year, first.month
    while (year, month) <= (last.year, last.month):
        keys.append(f"{year}-{month:02d}")
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return keys


def monthly_series(
    projects: Iterable[Any],
    expenses: Iterable[Any] = (),
    revenue_filter: RevenueFilter | Mapping[str, Any] | None = None,
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    as_of: datetime | None = None,
) -> dict[str, MonthBucket]:
    """
    Per-month buckets ("YYYY-MM") covering every month from the earliest to
    the latest relevant date.

    Paid payments land in the month of their own date; a legacy deposit
    with no entry lands in the project's start month. Costs are allocated
    to the start month.
    """
    active = coerce_filter(revenue_filter)
    now = reference_time(as_of)
    prepared = [p.value for p in normalize_projects(projects, limits).value]
    overhead = normalize_expenses(expenses).value

    dates: list[datetime] = []
    for project in prepared:
        if project.customer_info.start_date:
            dates.append(project.customer_info.start_date)
        dates.extend(p.date for p in project.settings.payments if p.date and p.is_paid)
    dates.extend(e.date for e in overhead if e.date)
    if not dates:
        return {}

    months = {
        key: MonthBucket(label=key) for key in _month_range(min(dates), max(dates))
    }

    for project in prepared:
        if not matches_filter(project, active, now):
            continue
        costs = costs_for(project, limits=limits, cache=cache)
        ledger = payments_for(project, costs=costs, limits=limits, as_of=now)
        started = project.customer_info.start_date

        for payment in ledger.paid_payments:
            if payment.date and month_key(payment.date) in months:
                months[month_key(payment.date)].collections += payment.amount
        if started and ledger.deposit > 0 and not has_deposit_entry(project.settings.payments):
            months[month_key(started)].collections += ledger.deposit

        if started:
            bucket = months[month_key(started)]
            bucket.material_cost += costs.material_cost
            bucket.labor_cost += costs.labor_cost
            bucket.project_expenses += cogs(costs)
            bucket.project_count += 1

    for expense in overhead:
        if expense.date and month_key(expense.date) in months:
            months[month_key(expense.date)].company_expenses += expense.amount

    for bucket in months.values():
        bucket.profit = bucket.collections - bucket.project_expenses - bucket.company_expenses
    return months
