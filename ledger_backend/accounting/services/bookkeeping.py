# accounting/services/bookkeeping.py

"""
BOOKKEEPING OPERATIONS (CALLER-FACING)

The operations callers use. Thin dispatch over the services; no business
rules live here.

All rejections are AccountingServiceError subclasses carrying a
RejectionCode (see services.exceptions).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from accounting.models.journal import JournalEntry
from accounting.models.period import FiscalYear, MonthlyPeriod
from accounting.services import adjustment_service, journal_entry_service, period_lifecycle, period_service
from accounting.services.balance_service import compute_account_balances as _compute_balances
from accounting.services.chart_service import get_account
from accounting.services.ledger_service import AccountLedger
from accounting.services.ledger_service import get_account_ledger as _get_ledger
from accounting.services.period_close_service import (
    ClosingSummary,
    close_fiscal_year,
    reclose_fiscal_year,
)
from accounting.services.period_service import FISCAL_YEAR, MONTH, ClosingReadiness

__all__ = [
    "FISCAL_YEAR",
    "MONTH",
    "validate_and_create_entry",
    "update_pending_entry",
    "delete_pending_entry",
    "approve_entry",
    "void_entry",
    "create_adjustment_entry",
    "generate_depreciation_adjustments",
    "compute_account_balances",
    "get_account_ledger",
    "check_period_ready_to_close",
    "close_period",
    "reclose_period",
    "reopen_period",
]


# ============================================================
# JOURNAL ENTRIES
# ============================================================


def validate_and_create_entry(
    *,
    entry_date: date,
    period_id: int,
    lines: list,
    actor: str,
    description: str,
    reference: str | None = None,
    notes: str = "",
    today: date | None = None,
) -> JournalEntry:
    return journal_entry_service.create_journal_entry(
        entry_date=entry_date,
        monthly_period_id=period_id,
        lines=lines,
        actor=actor,
        description=description,
        reference=reference,
        notes=notes,
        today=today,
    )


def update_pending_entry(*, entry_id: int, actor: str, **changes) -> JournalEntry:
    return journal_entry_service.update_pending_entry(entry_id=entry_id, actor=actor, **changes)


def delete_pending_entry(*, entry_id: int, actor: str) -> None:
    journal_entry_service.delete_pending_entry(entry_id=entry_id, actor=actor)


def approve_entry(*, entry_id: int, actor: str) -> JournalEntry:
    return journal_entry_service.approve_entry(entry_id=entry_id, actor=actor)


def void_entry(*, entry_id: int, actor: str, reason: str) -> JournalEntry:
    return journal_entry_service.void_entry(entry_id=entry_id, actor=actor, reason=reason)


# ============================================================
# ADJUSTING ENTRIES
# ============================================================


def create_adjustment_entry(
    *,
    entry_date: date,
    period_id: int,
    amount,
    actor: str,
    description: str,
    **options,
) -> JournalEntry:
    return adjustment_service.create_adjustment_entry(
        entry_date=entry_date,
        monthly_period_id=period_id,
        amount=amount,
        actor=actor,
        description=description,
        **options,
    )


def generate_depreciation_adjustments(
    *,
    period_id: int,
    entry_date: date,
    actor: str,
    template,
    today: date | None = None,
) -> list[JournalEntry]:
    return adjustment_service.generate_depreciation_adjustments(
        monthly_period_id=period_id,
        entry_date=entry_date,
        actor=actor,
        template=template,
        today=today,
    )


# ============================================================
# BALANCES / LEDGER
# ============================================================


def compute_account_balances(*, period_id: int, period_type: str = FISCAL_YEAR) -> dict[int, Decimal]:
    period = period_service.get_period(period_id, period_type)
    return _compute_balances(start_date=period.start_date, end_date=period.end_date)


def get_account_ledger(*, account_id: int, start_date: date, end_date: date) -> AccountLedger:
    return _get_ledger(account=get_account(account_id), start_date=start_date, end_date=end_date)


# ============================================================
# PERIOD LIFECYCLE
# ============================================================


def check_period_ready_to_close(
    *, period_id: int, period_type: str, today: date | None = None
) -> ClosingReadiness:
    period = period_service.get_period(period_id, period_type)
    return period_service.check_period_ready_to_close(period, today=today)


def close_period(
    *,
    period_id: int,
    period_type: str,
    actor: str,
    create_next_period: bool = True,
    today: date | None = None,
) -> ClosingSummary:
    """Close a period; a REOPENED period is reclosed."""
    if period_type == FISCAL_YEAR:
        return close_fiscal_year(
            period_id=period_id,
            actor=actor,
            create_next_period=create_next_period,
            today=today,
        )

    month = period_service.get_period(period_id, MONTH)
    action = period_lifecycle.close_action_for(month)
    month = period_service.close_monthly_period(period_id=period_id, actor=actor, today=today)
    return ClosingSummary(period=month, action=action)


def reclose_period(
    *,
    period_id: int,
    period_type: str,
    actor: str,
    create_next_period: bool = True,
    today: date | None = None,
) -> ClosingSummary:
    if period_type == FISCAL_YEAR:
        return reclose_fiscal_year(
            period_id=period_id,
            actor=actor,
            create_next_period=create_next_period,
            today=today,
        )

    month = period_service.reclose_monthly_period(period_id=period_id, actor=actor, today=today)
    return ClosingSummary(period=month, action=period_lifecycle.RECLOSE)


def reopen_period(
    *, period_id: int, period_type: str, actor: str, reason: str
) -> FiscalYear | MonthlyPeriod:
    period_service.get_period(period_id, period_type)
    if period_type == FISCAL_YEAR:
        return period_service.reopen_fiscal_year(period_id=period_id, actor=actor, reason=reason)
    return period_service.reopen_monthly_period(period_id=period_id, actor=actor, reason=reason)
