"""
Payment ledger: deposit reconciliation, collected totals and balance.

During the schema migration a project may hold its deposit twice: in the
legacy flat ``settings.deposit`` field and as a deposit-tagged entry in
``settings.payments``. Any deposit-tagged entry makes the entries
authoritative and the flat field is ignored.

The reported ``deposit`` is what was actually collected as deposit, so a
scheduled but unpaid deposit entry reports 0 and sits in the pending list.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from .cache import TotalsCache
from .calculator import costs_for
from .errors import EngineError, Outcome, migration_notice
from .limits import DEFAULT_LIMITS, EngineLimits
from .models import Payment, Project
from .normalize import normalize_project
from .results import CostSummary, PaymentSummary
from .rules import parse_number, reference_time, within_tolerance

logger = logging.getLogger(__name__)

MIGRATED_DEPOSIT_NOTE = "Initial deposit (migrated)"


def has_deposit_entry(payments: list[Payment]) -> bool:
    return any(p.is_deposit for p in payments)


def legacy_deposit_amount(project: Project) -> float:
    """Flat deposit, or the depositAmount older snapshots stored."""
    if project.settings.deposit > 0:
        return project.settings.deposit
    stored = parse_number((project.payment_details or {}).get("depositAmount"))
    return max(0.0, stored or 0.0)


def reconcile_payments(
    project: Project,
    total_project_value: float,
    *,
    limits: EngineLimits = DEFAULT_LIMITS,
    as_of: datetime | None = None,
) -> Outcome[PaymentSummary]:
    settings = project.settings
    payments = settings.payments
    now = reference_time(as_of)
    errors: list[EngineError] = []

    if has_deposit_entry(payments):
        deposit = sum(p.amount for p in payments if p.is_deposit and p.is_paid)
        if settings.deposit > 0:
            errors.append(
                migration_notice(
                    "Legacy deposit field ignored; a deposit payment entry exists",
                    "LEGACY_DEPOSIT_IGNORED",
                    {"legacyDeposit": settings.deposit, "entryDeposit": deposit},
                )
            )
    else:
        deposit = settings.deposit
        if deposit > 0:
            errors.append(
                migration_notice(
                    "Deposit read from the legacy deposit field",
                    "LEGACY_DEPOSIT_FIELD",
                    {"legacyDeposit": deposit},
                )
            )

    paid = [p for p in payments if p.is_paid]
    pending = [p for p in payments if not p.is_paid]
    overdue = [p for p in pending if p.date is not None and p.date < now]

    total_paid = deposit + sum(p.amount for p in paid if not p.is_deposit)
    remaining = max(0.0, total_project_value - total_paid)

    summary = PaymentSummary(
        deposit=deposit,
        total_paid=total_paid,
        total_project_value=total_project_value,
        remaining_balance=remaining,
        is_fully_paid=within_tolerance(remaining, limits.fully_paid_tolerance),
        paid_payments=paid,
        pending_payments=pending,
        overdue_payments=overdue,
        overdue_total=sum(p.amount for p in overdue),
    )
    return Outcome(summary, errors)


def payments_for(
    project: Project,
    *,
    costs: CostSummary | None = None,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    as_of: datetime | None = None,
    ingest_errors: list[EngineError] | None = None,
) -> PaymentSummary:
    if costs is None:
        costs = costs_for(project, limits=limits, cache=cache)
    ledger = reconcile_payments(project, costs.total_project_value, limits=limits, as_of=as_of)
    errors = [*(ingest_errors or []), *ledger.errors]
    return ledger.value.model_copy(update={"errors": errors})


def compute_payments(
    project: Project | Any,
    *,
    costs: CostSummary | None = None,
    limits: EngineLimits = DEFAULT_LIMITS,
    cache: TotalsCache | None = None,
    as_of: datetime | None = None,
) -> PaymentSummary:
    """Deposit, collected total, balance and payment buckets for one project.

    ``costs`` lets a caller that already computed the totals skip the
    second pass; otherwise they are computed (through ``cache`` if given).
    """
    prepared = normalize_project(project, limits)
    return payments_for(
        prepared.value,
        costs=costs,
        limits=limits,
        cache=cache,
        as_of=as_of,
        ingest_errors=prepared.errors,
    )


def migrate_legacy_deposit(project: Project | Any, limits: EngineLimits = DEFAULT_LIMITS) -> Outcome[Project]:
    """Move a legacy flat deposit into a payment entry. Returns a new project."""
    prepared = normalize_project(project, limits)
    current = prepared.value
    settings = current.settings
    start_date = current.customer_info.start_date
    errors = list(prepared.errors)

    if has_deposit_entry(settings.payments):
        payments = []
        filled = False
        for payment in settings.payments:
            if payment.is_deposit and payment.date is None and start_date is not None:
                payment = payment.model_copy(update={"date": start_date})
                filled = True
            payments.append(payment)
        if filled:
            errors.append(
                migration_notice(
                    "Deposit payment date set to the project start date",
                    "DEPOSIT_DATE_FILLED",
                    {"projectId": current.project_id},
                )
            )
        new_settings = settings.model_copy(update={"payments": payments, "deposit": 0.0})
        return Outcome(current.model_copy(update={"settings": new_settings}), errors)

    amount = legacy_deposit_amount(current)
    if amount <= 0:
        return Outcome(current, errors)

    entry = Payment(
        amount=amount,
        date=start_date,
        method="Deposit",
        note=MIGRATED_DEPOSIT_NOTE,
        is_paid=True,
    )
    new_settings = settings.model_copy(
        update={"payments": [entry, *settings.payments], "deposit": 0.0}
    )
    logger.info("Migrated legacy deposit of %.2f for project %s", amount, current.project_id)
    errors.append(
        migration_notice(
            "Legacy deposit moved into a payment entry",
            "LEGACY_DEPOSIT_MIGRATED",
            {"projectId": current.project_id, "amount": amount},
        )
    )
    return Outcome(current.model_copy(update={"settings": new_settings}), errors)
