"""
Stored-result fast path.

A persistence layer may keep the last computed figures next to a project
(``totals`` and ``paymentDetails``). Balance lookups read those when they
can be trusted and fall back to a full computation otherwise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .cache import TotalsCache, fingerprint
from .calculator import costs_for
from .errors import EngineError, Outcome, migration_notice
from .limits import DEFAULT_LIMITS, EngineLimits
from .models import Project
from .normalize import normalize_project
from .payments import payments_for
from .results import BalanceView
from .rules import money, parse_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    grand_total: float
    total_paid: float
    fingerprint: str | None = None


def _first_amount(data: dict[str, Any], *keys: str) -> float | None:
    found = [parse_number(data.get(k)) for k in keys]
    found = [v for v in found if v is not None]
    nonzero = [v for v in found if v != 0]
    if nonzero:
        return nonzero[0]
    return found[0] if found else None


def _untrusted(project: Project, reason: str) -> Outcome[Snapshot | None]:
    logger.warning("Ignoring stored totals for project %s: %s", project.project_id, reason)
    return Outcome(
        None,
        [
            migration_notice(
                f"Stored totals ignored ({reason}); recomputed",
                "UNTRUSTED_SNAPSHOT",
                {"projectId": project.project_id, "reason": reason},
            )
        ],
    )


def read_snapshot(project: Project) -> Outcome[Snapshot | None]:
    """Stored grand total and paid amount, or None when absent/untrustworthy."""
    totals = project.totals
    details = project.payment_details
    if not totals and not details:
        return Outcome(None)

    grand_total = _first_amount(totals or {}, "total", "grandTotal")
    total_paid = parse_number((details or {}).get("totalPaid"))
    if grand_total is None:
        return _untrusted(project, "missing or invalid grand total")
    if total_paid is None:
        return _untrusted(project, "missing or invalid paid amount")
    if grand_total < 0 or total_paid < 0:
        return _untrusted(project, "negative amount")

    stored_print = (totals or {}).get("fingerprint") or (details or {}).get("fingerprint")
    if stored_print and stored_print != fingerprint(project):
        return _untrusted(project, "project changed since totals were stored")

    return Outcome(Snapshot(grand_total, total_paid, stored_print or None))


def project_balance(
    project: Project | Any,
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    trust_snapshot: bool = True,
    as_of: datetime | None = None,
) -> BalanceView:
    prepared = normalize_project(project, limits)
    current = prepared.value
    errors: list[EngineError] = list(prepared.errors)

    if trust_snapshot:
        stored = read_snapshot(current)
        errors.extend(stored.errors)
        if stored.value is not None:
            logger.debug("Balance for project %s served from stored totals", current.project_id)
            snap = stored.value
            return BalanceView(
                grand_total=snap.grand_total,
                total_paid=snap.total_paid,
                amount_remaining=max(0.0, snap.grand_total - snap.total_paid),
                source="snapshot",
                errors=errors,
            )

    costs = costs_for(current, limits=limits, cache=cache)
    ledger = payments_for(current, costs=costs, limits=limits, as_of=as_of)
    return BalanceView(
        grand_total=costs.total_project_value,
        total_paid=ledger.total_paid,
        amount_remaining=ledger.remaining_balance,
        source="computed",
        errors=[*errors, *costs.errors, *ledger.errors],
    )


def build_snapshot(
    project: Project | Any,
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    as_of: datetime | None = None,
) -> dict[str, Any]:
    """The ``totals``/``paymentDetails`` pair a persistence layer should store."""
    current = normalize_project(project, limits).value
    places = limits.currency_precision
    exact = costs_for(current, limits=limits, cache=cache)
    ledger = payments_for(current, costs=exact, limits=limits, as_of=as_of)
    costs = exact.rounded(places)
    stamp = fingerprint(current)

    return {
        "totals": {
            "materialCost": costs.material_cost,
            "laborCost": costs.labor_cost,
            "waste": costs.waste,
            "subtotal": costs.subtotal,
            "tax": costs.tax,
            "markup": costs.markup,
            "transportation": costs.transportation,
            "miscFeesTotal": costs.misc_fees_total,
            "total": costs.total_project_value,
            "grandTotal": costs.total_project_value,
            "fingerprint": stamp,
        },
        "paymentDetails": {
            "depositAmount": money(ledger.deposit, places),
            "totalPaid": money(ledger.total_paid, places),
            "amountRemaining": money(ledger.remaining_balance, places),
            "isFullyPaid": ledger.is_fully_paid,
            "fingerprint": stamp,
        },
    }
