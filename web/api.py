from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError

from estimator.cache import TotalsCache
from estimator.calculator import compute_costs
from estimator.dashboard import aggregate_company_expenses, aggregate_financials, monthly_series
from estimator.limits import EngineLimits, load_limits
from estimator.payments import compute_payments
from estimator.results import (
    AdditionalRevenue,
    BalanceView,
    CostSummary,
    ExpenseSummary,
    FinancialsSummary,
    MonthBucket,
    PaymentSummary,
    RevenueFilter,
)
from estimator.revenue import compute_additional_revenue
from estimator.snapshot import project_balance

logger = logging.getLogger(__name__)

app = FastAPI(title="Estimate Engine API", version="1.0.0")

# one cache per app, shared by every request
app.state.cache = TotalsCache()
app.state.limits = load_limits()

# UI may live on another port/domain
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_cache(request: Request) -> TotalsCache:
    return request.app.state.cache


def get_limits(request: Request) -> EngineLimits:
    return request.app.state.limits


def require_object(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return payload


class RevenueRequest(BaseModel):
    projects: list[Any] = Field(default_factory=list)
    filter: RevenueFilter | None = None


class FinancialsRequest(BaseModel):
    projects: list[Any] = Field(default_factory=list)
    expenses: list[Any] = Field(default_factory=list)
    filter: RevenueFilter | None = None


class FinancialsResponse(BaseModel):
    financials: FinancialsSummary
    expenses: ExpenseSummary
    months: dict[str, MonthBucket]


def parse_request(model: type[BaseModel], payload: Any) -> Any:
    try:
        return model.model_validate(require_object(payload))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid payload: {e}")


@app.get("/health")
def health(cache: TotalsCache = Depends(get_cache)) -> dict[str, Any]:
    return {"status": "ok", "cache": cache.stats()}


@app.post("/costs", response_model=CostSummary)
def costs(
    payload: Any = Body(...),
    rounded: bool = True,
    cache: TotalsCache = Depends(get_cache),
    limits: EngineLimits = Depends(get_limits),
) -> CostSummary:
    """Cost totals and breakdowns for one raw project."""
    summary = compute_costs(require_object(payload), limits=limits, cache=cache)
    logger.info("POST /costs total=%.2f errors=%d", summary.total_project_value, len(summary.errors))
    return summary.rounded(limits.currency_precision) if rounded else summary


@app.post("/payments", response_model=PaymentSummary)
def payments(
    payload: Any = Body(...),
    rounded: bool = True,
    as_of: datetime | None = None,
    cache: TotalsCache = Depends(get_cache),
    limits: EngineLimits = Depends(get_limits),
) -> PaymentSummary:
    summary = compute_payments(require_object(payload), limits=limits, cache=cache, as_of=as_of)
    logger.info("POST /payments paid=%.2f fully_paid=%s", summary.total_paid, summary.is_fully_paid)
    return summary.rounded(limits.currency_precision) if rounded else summary


@app.post("/balance", response_model=BalanceView)
def balance(
    payload: Any = Body(...),
    rounded: bool = True,
    trust_snapshot: bool = True,
    cache: TotalsCache = Depends(get_cache),
    limits: EngineLimits = Depends(get_limits),
) -> BalanceView:
    """Stored totals when they can be trusted, otherwise a full computation."""
    view = project_balance(
        require_object(payload), limits=limits, cache=cache, trust_snapshot=trust_snapshot
    )
    logger.info("POST /balance source=%s", view.source)
    return view.rounded(limits.currency_precision) if rounded else view


@app.post("/additional-revenue", response_model=AdditionalRevenue)
def additional_revenue(
    payload: Any = Body(...),
    rounded: bool = True,
    as_of: datetime | None = None,
    cache: TotalsCache = Depends(get_cache),
    limits: EngineLimits = Depends(get_limits),
) -> AdditionalRevenue:
    req = parse_request(RevenueRequest, payload)
    result = compute_additional_revenue(
        req.projects, req.filter, limits=limits, cache=cache, as_of=as_of
    )
    logger.info("POST /additional-revenue projects=%d counted=%d", len(req.projects), result.project_count)
    return result.rounded(limits.currency_precision) if rounded else result


@app.post("/financials", response_model=FinancialsResponse)
def financials(
    payload: Any = Body(...),
    rounded: bool = True,
    as_of: datetime | None = None,
    cache: TotalsCache = Depends(get_cache),
    limits: EngineLimits = Depends(get_limits),
) -> FinancialsResponse:
    """Dashboard totals, company expenses and the monthly series in one call."""
    req = parse_request(FinancialsRequest, payload)
    summary = aggregate_financials(req.projects, req.filter, limits=limits, cache=cache, as_of=as_of)
    expenses = aggregate_company_expenses(req.expenses, req.filter, as_of=as_of)
    months = monthly_series(
        req.projects, req.expenses, req.filter, limits=limits, cache=cache, as_of=as_of
    )
    logger.info("POST /financials projects=%d months=%d", summary.total_projects, len(months))

    if rounded:
        places = limits.currency_precision
        summary = summary.rounded(places)
        expenses = expenses.rounded(places)
        months = {key: bucket.rounded(places) for key, bucket in months.items()}
    return FinancialsResponse(financials=summary, expenses=expenses, months=months)
