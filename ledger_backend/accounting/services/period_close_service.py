# accounting/services/period_close_service.py

"""
======================================================
PATH: accounting/services/period_close_service.py
======================================================
FISCAL YEAR CLOSE SERVICE (CLOSING / OPENING PROTOCOL)

Closes a fiscal year by zeroing out:
- Revenue accounts
- Expense accounts
- Cost accounts

…into the period-result (Equity) account, by creating ONE closing entry,
then carries every permanent balance (asset / liability / equity) into the
next fiscal year with ONE opening entry.

Guarantees:
- Atomic: closing entry + opening entry + period flags + month cascade +
  ClosingHistory are written together or not at all (builder -> single commit)
- The fiscal-year row is locked for the whole unit, so posting cannot interleave
- Both generated entries are created APPROVED
- Reclose is idempotent: the previous opening entry sourced from this year is
  voided and regenerated from fresh balances
- Nothing to close (all temporaries at zero) -> no closing entry, year still closes
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from accounting.models.account import Account
from accounting.models.closing_history import ClosingHistory
from accounting.models.journal import JournalEntry
from accounting.models.period import FiscalYear, MonthlyPeriod
from accounting.money import ZERO, q2
from accounting.services import period_lifecycle
from accounting.services.balance_service import approved_lines, movement_totals
from accounting.services.chart_service import resolve_period_result_account
from accounting.services.exceptions import (
    AccountingServiceError,
    ConsistencyError,
    RejectionCode,
    StructuralError,
    TransitionError,
)
from accounting.services.journal_entry_service import post_system_entry, void_system_entry
from accounting.services.period_service import (
    FISCAL_YEAR,
    assert_ready_to_close,
    create_fiscal_year,
    generate_monthly_periods,
    get_period,
    history_action,
    mark_closed,
    month_ranges,
    record_history,
)
from accounting.services.unit_of_work import atomic_unit

logger = logging.getLogger(__name__)


@dataclass
class ClosingPlan:
    fiscal_year: FiscalYear
    action: str
    result_account: Account
    closing_date: date
    closing_month: MonthlyPeriod
    closing_lines: list[dict] = field(default_factory=list)
    total_revenue: Decimal = ZERO
    total_expense: Decimal = ZERO
    total_cost: Decimal = ZERO
    net_result: Decimal = ZERO
    opening_lines: list[dict] = field(default_factory=list)
    next_start: date | None = None
    next_end: date | None = None


@dataclass
class ClosingSummary:
    period: FiscalYear | MonthlyPeriod
    action: str
    closing_entry: JournalEntry | None = None
    opening_entry: JournalEntry | None = None
    next_fiscal_year: FiscalYear | None = None
    total_revenue: Decimal = ZERO
    total_expense: Decimal = ZERO
    total_cost: Decimal = ZERO
    net_result: Decimal = ZERO
    closed_months: list[str] = field(default_factory=list)


def _side(raw: Decimal) -> tuple[Decimal, Decimal]:
    """raw = debit - credit; returns the (debit, credit) line that carries it."""
    if raw > 0:
        return raw, ZERO
    return ZERO, -raw


def _month_containing(fiscal_year: FiscalYear, d: date) -> MonthlyPeriod | None:
    return (
        MonthlyPeriod.objects.select_for_update()
        .filter(fiscal_year=fiscal_year, start_date__lte=d, end_date__gte=d)
        .first()
    )


def next_fiscal_year_range(fiscal_year: FiscalYear) -> tuple[date, date]:
    """Starts the day after, spans the same number of calendar months."""
    start = fiscal_year.end_date + timedelta(days=1)
    months = len(month_ranges(fiscal_year.start_date, fiscal_year.end_date))

    end = start
    for _ in range(months):
        end = (end.replace(day=28) + timedelta(days=4)).replace(day=1)
    return start, end - timedelta(days=1)


# ============================================================
# BUILDER (reads only)
# ============================================================


def _closing_lines(plan: ClosingPlan) -> None:
    fy = plan.fiscal_year
    totals = movement_totals(
        approved_lines(start_date=fy.start_date, end_date=fy.end_date).filter(
            account__account_type__in=Account.TEMPORARY_TYPES
        )
    )
    accounts = Account.objects.in_bulk(list(totals))

    by_type = {Account.REVENUE: ZERO, Account.EXPENSE: ZERO, Account.COST: ZERO}
    net = ZERO

    for account in sorted(accounts.values(), key=lambda a: a.code):
        debit, credit = totals[account.id]
        raw = q2(debit - credit)
        if raw == ZERO:
            continue

        # Reverse the balance: a credit balance is zeroed with a debit and vice versa.
        line_debit, line_credit = _side(-raw)
        plan.closing_lines.append(
            {
                "account": account,
                "debit": line_debit,
                "credit": line_credit,
                "description": f"Close {account.code} {account.name}",
            }
        )

        net = q2(net - raw)
        if account.account_type == Account.REVENUE:
            by_type[Account.REVENUE] = q2(by_type[Account.REVENUE] - raw)
        else:
            by_type[account.account_type] = q2(by_type[account.account_type] + raw)

    plan.total_revenue = by_type[Account.REVENUE]
    plan.total_expense = by_type[Account.EXPENSE]
    plan.total_cost = by_type[Account.COST]
    plan.net_result = net

    if not plan.closing_lines:
        return

    # Profit credits equity, loss debits it.
    result_debit, result_credit = _side(-net)
    if net != ZERO:
        plan.closing_lines.append(
            {
                "account": plan.result_account,
                "debit": result_debit,
                "credit": result_credit,
                "description": "Period result",
            }
        )


def _opening_lines(plan: ClosingPlan) -> None:
    fy = plan.fiscal_year
    totals = movement_totals(
        approved_lines(start_date=fy.start_date, end_date=fy.end_date).filter(
            account__account_type__in=Account.PERMANENT_TYPES
        )
    )

    raw_by_account = {account_id: q2(d - c) for account_id, (d, c) in totals.items()}

    # The closing entry is not written yet; fold its result line in here.
    result_id = plan.result_account.id
    raw_by_account[result_id] = q2(raw_by_account.get(result_id, ZERO) - plan.net_result)

    if q2(sum(raw_by_account.values(), ZERO)) != ZERO:
        raise ConsistencyError(
            f"Permanent balances of {fy.name} do not net to zero; the ledger is inconsistent",
            fiscal_year_id=fy.id,
        )

    accounts = Account.objects.in_bulk([k for k, v in raw_by_account.items() if v != ZERO])
    for account in sorted(accounts.values(), key=lambda a: a.code):
        debit, credit = _side(raw_by_account[account.id])
        plan.opening_lines.append(
            {
                "account": account,
                "debit": debit,
                "credit": credit,
                "description": f"Opening balance {account.code} {account.name}",
            }
        )


def build_closing_plan(fiscal_year: FiscalYear, *, action: str, create_next_period: bool = True) -> ClosingPlan:
    closing_month = _month_containing(fiscal_year, fiscal_year.end_date)
    if closing_month is None:
        raise TransitionError(
            f"Fiscal year {fiscal_year.name} has no monthly period containing {fiscal_year.end_date}",
            code=RejectionCode.PERIOD_NOT_FOUND,
            fiscal_year_id=fiscal_year.id,
        )

    plan = ClosingPlan(
        fiscal_year=fiscal_year,
        action=action,
        result_account=resolve_period_result_account(),
        closing_date=fiscal_year.end_date,
        closing_month=closing_month,
    )
    _closing_lines(plan)

    if create_next_period:
        plan.next_start, plan.next_end = next_fiscal_year_range(fiscal_year)
        _opening_lines(plan)

    return plan


# ============================================================
# COMMIT
# ============================================================


def _resolve_next_fiscal_year(plan: ClosingPlan, *, actor: str) -> tuple[FiscalYear, MonthlyPeriod]:
    next_fy = FiscalYear.objects.select_for_update().filter(start_date=plan.next_start).first()
    if next_fy is None:
        next_fy = create_fiscal_year(
            name=str(plan.next_start.year) if plan.next_start.month == 1 else f"{plan.next_start:%Y-%m}",
            start_date=plan.next_start,
            end_date=plan.next_end,
            actor=actor,
        )
    elif not next_fy.monthly_periods.exists():
        generate_monthly_periods(next_fy, actor=actor)

    if next_fy.is_closed:
        raise TransitionError(
            f"Next fiscal year {next_fy.name} is closed; reopen it before carrying balances forward",
            code=RejectionCode.FISCAL_YEAR_CLOSED,
            fiscal_year_id=next_fy.id,
        )

    target_month = _month_containing(next_fy, next_fy.start_date)
    if target_month is None or target_month.is_closed:
        raise TransitionError(
            f"Opening month of {next_fy.name} is closed or missing",
            code=RejectionCode.PERIOD_CLOSED,
            fiscal_year_id=next_fy.id,
        )

    return next_fy, target_month


def _commit(plan: ClosingPlan, *, actor: str) -> ClosingSummary:
    fy = plan.fiscal_year
    summary = ClosingSummary(
        period=fy,
        action=plan.action,
        total_revenue=plan.total_revenue,
        total_expense=plan.total_expense,
        total_cost=plan.total_cost,
        net_result=plan.net_result,
    )

    if plan.closing_lines:
        summary.closing_entry = post_system_entry(
            entry_date=plan.closing_date,
            monthly_period=plan.closing_month,
            lines=plan.closing_lines,
            actor=actor,
            description=f"Closing entry {fy.name}",
            entry_type=JournalEntry.PERIOD_CLOSE,
            reference=f"{JournalEntry.PERIOD_CLOSE}:{fy.id}",
        )

    if plan.next_start is not None:
        next_fy, target_month = _resolve_next_fiscal_year(plan, actor=actor)
        summary.next_fiscal_year = next_fy

        previous = JournalEntry.objects.select_for_update().filter(
            is_opening_entry=True,
            source_fiscal_year=fy,
        ).exclude(status=JournalEntry.VOIDED)
        for entry in previous:
            void_system_entry(entry, actor=actor, reason=f"Regenerated by {plan.action} of {fy.name}")

        if plan.opening_lines:
            summary.opening_entry = post_system_entry(
                entry_date=next_fy.start_date,
                monthly_period=target_month,
                lines=plan.opening_lines,
                actor=actor,
                description=f"Opening balances carried from {fy.name}",
                entry_type=JournalEntry.OPENING_BALANCE,
                source_fiscal_year=fy,
                reference=f"{JournalEntry.OPENING_BALANCE}:{fy.id}",
            )

    for month in MonthlyPeriod.objects.select_for_update().filter(fiscal_year=fy, is_closed=False):
        month_action = period_lifecycle.close_action_for(month)
        mark_closed(month, action=month_action, actor=actor)
        record_history(month, action=history_action(month_action), actor=actor)
        summary.closed_months.append(month.name)

    mark_closed(fy, action=plan.action, actor=actor)
    record_history(
        fy,
        action=history_action(plan.action),
        actor=actor,
        closing_entry=summary.closing_entry,
    )
    return summary


def close_fiscal_year(
    *,
    period_id: int,
    actor: str,
    create_next_period: bool = True,
    today: date | None = None,
) -> ClosingSummary:
    """
    Close (or reclose, when REOPENED) a fiscal year.

    Order inside one atomic unit:
    lock year -> transition + readiness -> build plan -> commit.
    Rejections before the commit keep their own type; anything failing
    during the commit surfaces as ConsistencyError.
    """
    actor = (actor or "").strip()
    if not actor:
        raise StructuralError("actor is required", code=RejectionCode.MISSING_ACTOR)

    with atomic_unit("close_fiscal_year", period_id=period_id):
        fiscal_year = get_period(period_id, FISCAL_YEAR, for_update=True)
        action = period_lifecycle.close_action_for(fiscal_year)
        period_lifecycle.validate_transition(period=fiscal_year, action=action)
        assert_ready_to_close(fiscal_year, today=today)

        plan = build_closing_plan(
            fiscal_year,
            action=action,
            create_next_period=create_next_period,
        )

        try:
            summary = _commit(plan, actor=actor)
        except (ConsistencyError, TransitionError):
            raise
        except AccountingServiceError as exc:
            raise ConsistencyError(
                f"Closing {fiscal_year.name} failed and was rolled back: {exc.detail}",
                fiscal_year_id=fiscal_year.id,
                cause=exc.code.value,
            ) from exc

    logger.info(
        "Fiscal year closed",
        extra={
            "fiscal_year": fiscal_year.name,
            "action": action,
            "net_result": str(summary.net_result),
            "closing_entry": getattr(summary.closing_entry, "entry_number", None),
            "opening_entry": getattr(summary.opening_entry, "entry_number", None),
            "actor": actor,
        },
    )
    return summary


def reclose_fiscal_year(
    *,
    period_id: int,
    actor: str,
    create_next_period: bool = True,
    today: date | None = None,
) -> ClosingSummary:
    fiscal_year = get_period(period_id, FISCAL_YEAR)
    period_lifecycle.validate_transition(period=fiscal_year, action=period_lifecycle.RECLOSE)
    return close_fiscal_year(
        period_id=period_id,
        actor=actor,
        create_next_period=create_next_period,
        today=today,
    )


def closing_history_for(fiscal_year: FiscalYear):
    return ClosingHistory.objects.filter(period_type=FISCAL_YEAR, period_id=fiscal_year.id)
