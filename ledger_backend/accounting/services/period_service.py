# accounting/services/period_service.py

"""
======================================================
PATH: accounting/services/period_service.py
======================================================
ACCOUNTING PERIOD SERVICE

Fiscal years, monthly periods and their lifecycle (except the fiscal-year
closing protocol, which lives in period_close_service).

Guarantees:
- Fiscal years are created with generated monthly children clamped to the
  year's range; open fiscal years never overlap
- Closing a month is a lock: closed + inactive, nothing is posted
- Reopening requires a reason and writes ClosingHistory
- Reopening a fiscal year cascades to its months and voids its closing entries
- Deactivation is refused while pending entries exist
- Every transition writes one ClosingHistory row
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from django.db.models import Q, Sum
from django.utils import timezone

from accounting.models.closing_history import ClosingHistory
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine
from accounting.models.period import FiscalYear, MonthlyPeriod, PeriodBase
from accounting.services import period_lifecycle
from accounting.services.chart_service import resolve_period_result_account
from accounting.services.exceptions import (
    AccountResolutionError,
    NotFoundError,
    PeriodStateError,
    RejectionCode,
    StructuralError,
    TransitionError,
)
from accounting.services.journal_entry_service import void_system_entry
from accounting.services.unit_of_work import atomic_unit

logger = logging.getLogger(__name__)

FISCAL_YEAR = ClosingHistory.FISCAL_YEAR
MONTH = ClosingHistory.MONTH

PERIOD_MODELS = {
    FISCAL_YEAR: FiscalYear,
    MONTH: MonthlyPeriod,
}


# ============================================================
# LOOKUP / LOCKING
# ============================================================


def _period_model(period_type: str):
    try:
        return PERIOD_MODELS[period_type]
    except KeyError as exc:
        raise StructuralError(
            f"Unknown period_type {period_type!r}; expected {FISCAL_YEAR} or {MONTH}",
            code=RejectionCode.INVALID_PERIOD_TYPE,
        ) from exc


def period_type_of(period: PeriodBase) -> str:
    return MONTH if isinstance(period, MonthlyPeriod) else FISCAL_YEAR


def get_period(period_id: int, period_type: str, *, for_update: bool = False):
    model = _period_model(period_type)
    qs = model.objects.select_for_update() if for_update else model.objects.all()
    try:
        return qs.get(pk=period_id)
    except model.DoesNotExist as exc:
        raise NotFoundError(
            f"{model._meta.verbose_name} id={period_id} not found",
            code=RejectionCode.PERIOD_NOT_FOUND,
            period_id=period_id,
            period_type=period_type,
        ) from exc


def _require_actor(actor: str) -> str:
    actor = (actor or "").strip()
    if not actor:
        raise StructuralError("actor is required", code=RejectionCode.MISSING_ACTOR)
    return actor


# ============================================================
# CREATION
# ============================================================


def _month_end(d: date) -> date:
    first_of_next = (d.replace(day=28) + timedelta(days=4)).replace(day=1)
    return first_of_next - timedelta(days=1)


def month_ranges(start_date: date, end_date: date) -> list[tuple[date, date]]:
    """Calendar months covering [start_date, end_date], clamped at both ends."""
    ranges = []
    cursor = start_date
    while cursor <= end_date:
        ranges.append((cursor, min(_month_end(cursor), end_date)))
        cursor = _month_end(cursor) + timedelta(days=1)
    return ranges


def generate_monthly_periods(fiscal_year: FiscalYear, *, actor: str = "") -> list[MonthlyPeriod]:
    existing = set(fiscal_year.monthly_periods.values_list("year", "month"))
    created = []
    for start, end in month_ranges(fiscal_year.start_date, fiscal_year.end_date):
        if (start.year, start.month) in existing:
            continue
        created.append(
            MonthlyPeriod.objects.create(
                fiscal_year=fiscal_year,
                name=f"{start.year}-{start.month:02d}",
                year=start.year,
                month=start.month,
                start_date=start,
                end_date=end,
                created_by=actor or "",
            )
        )
    return created


def create_fiscal_year(
    *,
    name: str,
    start_date: date,
    end_date: date,
    actor: str = "",
    generate_months: bool = True,
) -> FiscalYear:
    if not start_date or not end_date or end_date < start_date:
        raise StructuralError(
            f"Invalid fiscal year range {start_date} → {end_date}",
            code=RejectionCode.INVALID_DATE_RANGE,
        )

    with atomic_unit("create_fiscal_year", name=name):
        overlapping = FiscalYear.objects.filter(
            is_closed=False,
            start_date__lte=end_date,
            end_date__gte=start_date,
        ).first()
        if overlapping is not None:
            raise PeriodStateError(
                f"Fiscal year {start_date} → {end_date} overlaps open fiscal year {overlapping.name}",
                code=RejectionCode.PERIOD_OVERLAP,
                overlapping_id=overlapping.id,
            )

        fiscal_year = FiscalYear.objects.create(
            name=name,
            start_date=start_date,
            end_date=end_date,
            created_by=actor or "",
        )
        if generate_months:
            generate_monthly_periods(fiscal_year, actor=actor)

    logger.info(
        "Fiscal year created",
        extra={"fiscal_year": fiscal_year.name, "start": str(start_date), "end": str(end_date)},
    )
    return fiscal_year


# ============================================================
# READINESS
# ============================================================


@dataclass
class ReadinessIssue:
    code: RejectionCode
    detail: str


@dataclass
class ClosingReadiness:
    ready: bool
    reasons: list[ReadinessIssue] = field(default_factory=list)

    @property
    def codes(self) -> list[RejectionCode]:
        return [r.code for r in self.reasons]


def _entries_scope(period: PeriodBase):
    if isinstance(period, MonthlyPeriod):
        return JournalEntry.objects.filter(monthly_period=period)
    return JournalEntry.objects.filter(fiscal_year=period)


def unbalanced_entry_numbers(period: PeriodBase) -> list[int]:
    """Non-voided entries whose stored lines do not balance (recomputed, not cached)."""
    entry_ids = _entries_scope(period).exclude(status=JournalEntry.VOIDED).values("id")
    rows = (
        JournalEntryLine.objects.filter(journal_entry_id__in=entry_ids)
        .values("journal_entry_id", "journal_entry__entry_number")
        .annotate(debit_total=Sum("debit"), credit_total=Sum("credit"))
    )
    return sorted(
        r["journal_entry__entry_number"]
        for r in rows
        if r["debit_total"] != r["credit_total"]
    )


def check_period_ready_to_close(period: PeriodBase, *, today: date | None = None) -> ClosingReadiness:
    today = today or timezone.localdate()
    reasons: list[ReadinessIssue] = []

    if period.is_closed:
        reasons.append(ReadinessIssue(RejectionCode.PERIOD_CLOSED, f"{period.name} is already closed"))

    if period.end_date > today:
        reasons.append(
            ReadinessIssue(
                RejectionCode.FUTURE_DATE,
                f"{period.name} ends {period.end_date}, after today ({today})",
            )
        )

    pending = _entries_scope(period).filter(status=JournalEntry.PENDING).count()
    if pending:
        reasons.append(
            ReadinessIssue(RejectionCode.PENDING_ENTRIES, f"{pending} pending journal entries")
        )

    unbalanced = unbalanced_entry_numbers(period)
    if unbalanced:
        reasons.append(
            ReadinessIssue(
                RejectionCode.UNBALANCED,
                f"Unbalanced journal entries: {', '.join(str(n) for n in unbalanced)}",
            )
        )

    if isinstance(period, MonthlyPeriod):
        if period.fiscal_year.is_closed:
            reasons.append(
                ReadinessIssue(
                    RejectionCode.FISCAL_YEAR_CLOSED,
                    f"Fiscal year {period.fiscal_year.name} is closed",
                )
            )
    else:
        try:
            resolve_period_result_account()
        except AccountResolutionError as exc:
            reasons.append(ReadinessIssue(RejectionCode.ACCOUNT_RESOLUTION, exc.detail))

    return ClosingReadiness(ready=not reasons, reasons=reasons)


def assert_ready_to_close(period: PeriodBase, *, today: date | None = None) -> None:
    readiness = check_period_ready_to_close(period, today=today)
    if not readiness.ready:
        raise TransitionError(
            f"{period.name} is not ready to close: "
            + "; ".join(r.detail for r in readiness.reasons),
            code=RejectionCode.NOT_READY_TO_CLOSE,
            period_id=period.pk,
            reasons=[r.code.value for r in readiness.reasons],
        )


# ============================================================
# HISTORY + FLAG HELPERS (shared with period_close_service)
# ============================================================


def record_history(
    period: PeriodBase,
    *,
    action: str,
    actor: str,
    reason: str = "",
    closing_entry: JournalEntry | None = None,
) -> ClosingHistory:
    return ClosingHistory.objects.create(
        period_type=period_type_of(period),
        period_id=period.pk,
        period_name=period.name,
        action=action,
        actor=actor,
        reason=reason or "",
        closing_entry=closing_entry,
    )


def mark_closed(period: PeriodBase, *, action: str, actor: str) -> PeriodBase:
    period_lifecycle.validate_transition(period=period, action=action)

    now = timezone.now()
    period.is_closed = True
    period.is_active = False
    if action == period_lifecycle.RECLOSE:
        period.reclosed_at = now
        period.reclosed_by = actor
    else:
        period.closed_at = now
        period.closed_by = actor
    period.save()
    return period


def mark_reopened(period: PeriodBase, *, actor: str, reason: str) -> PeriodBase:
    period_lifecycle.validate_transition(period=period, action=period_lifecycle.REOPEN, reason=reason)

    period.is_closed = False
    period.is_active = True
    period.is_reopened = True
    period.reopened_at = timezone.now()
    period.reopened_by = actor
    period.reopen_reason = reason.strip()
    period.closed_at = None
    period.closed_by = ""
    period.save()
    return period


def history_action(action: str) -> str:
    return {
        period_lifecycle.CLOSE: ClosingHistory.CLOSE,
        period_lifecycle.REOPEN: ClosingHistory.REOPEN,
        period_lifecycle.RECLOSE: ClosingHistory.RECLOSE,
    }[action]


# ============================================================
# MONTHLY LIFECYCLE
# ============================================================


def close_monthly_period(*, period_id: int, actor: str, today: date | None = None) -> MonthlyPeriod:
    """Close (or reclose, when REOPENED) one month. A lock only: nothing is posted."""
    actor = _require_actor(actor)

    with atomic_unit("close_monthly_period", period_id=period_id):
        month = get_period(period_id, MONTH, for_update=True)
        action = period_lifecycle.close_action_for(month)
        period_lifecycle.validate_transition(period=month, action=action)
        assert_ready_to_close(month, today=today)

        mark_closed(month, action=action, actor=actor)
        record_history(month, action=history_action(action), actor=actor)

    logger.info(
        "Monthly period closed",
        extra={"period": month.name, "action": action, "actor": actor},
    )
    return month


def reclose_monthly_period(*, period_id: int, actor: str, today: date | None = None) -> MonthlyPeriod:
    month = get_period(period_id, MONTH)
    period_lifecycle.validate_transition(period=month, action=period_lifecycle.RECLOSE)
    return close_monthly_period(period_id=period_id, actor=actor, today=today)


def reopen_monthly_period(*, period_id: int, actor: str, reason: str) -> MonthlyPeriod:
    actor = _require_actor(actor)

    with atomic_unit("reopen_monthly_period", period_id=period_id):
        month = get_period(period_id, MONTH, for_update=True)
        period_lifecycle.validate_transition(period=month, action=period_lifecycle.REOPEN, reason=reason)

        fiscal_year = FiscalYear.objects.select_for_update().get(pk=month.fiscal_year_id)
        if fiscal_year.is_closed:
            raise TransitionError(
                f"Cannot reopen {month.name}: fiscal year {fiscal_year.name} is closed",
                code=RejectionCode.FISCAL_YEAR_CLOSED,
                period_id=month.id,
            )

        mark_reopened(month, actor=actor, reason=reason)
        record_history(month, action=ClosingHistory.REOPEN, actor=actor, reason=reason)

    logger.info(
        "Monthly period reopened",
        extra={"period": month.name, "actor": actor, "reason": reason},
    )
    return month


# ============================================================
# FISCAL YEAR REOPEN
# ============================================================


def reopen_fiscal_year(*, period_id: int, actor: str, reason: str) -> FiscalYear:
    """
    Reopen a closed fiscal year:
    - no other open + active fiscal year may overlap it
    - its closing entries are voided (temporaries become live again)
    - every closed month is reopened with the same reason

    The opening entry already carried into the next year is left in place;
    reclosing this year regenerates it.
    """
    actor = _require_actor(actor)

    with atomic_unit("reopen_fiscal_year", period_id=period_id):
        fiscal_year = get_period(period_id, FISCAL_YEAR, for_update=True)
        period_lifecycle.validate_transition(
            period=fiscal_year, action=period_lifecycle.REOPEN, reason=reason
        )

        overlapping = (
            FiscalYear.objects.filter(
                is_closed=False,
                is_active=True,
                start_date__lte=fiscal_year.end_date,
                end_date__gte=fiscal_year.start_date,
            )
            .exclude(pk=fiscal_year.pk)
            .first()
        )
        if overlapping is not None:
            raise TransitionError(
                f"Cannot reopen {fiscal_year.name}: open fiscal year {overlapping.name} overlaps it",
                code=RejectionCode.OVERLAPPING_ACTIVE_PERIOD,
                period_id=fiscal_year.id,
                overlapping_id=overlapping.id,
            )

        mark_reopened(fiscal_year, actor=actor, reason=reason)

        closing_entries = JournalEntry.objects.select_for_update().filter(
            fiscal_year=fiscal_year,
            is_closing_entry=True,
        ).exclude(status=JournalEntry.VOIDED)
        for entry in closing_entries:
            void_system_entry(entry, actor=actor, reason=f"Fiscal year reopened: {reason.strip()}")

        months = MonthlyPeriod.objects.select_for_update().filter(
            fiscal_year=fiscal_year, is_closed=True
        )
        for month in months:
            mark_reopened(month, actor=actor, reason=reason)
            record_history(month, action=ClosingHistory.REOPEN, actor=actor, reason=reason)

        record_history(fiscal_year, action=ClosingHistory.REOPEN, actor=actor, reason=reason)

    logger.info(
        "Fiscal year reopened",
        extra={"fiscal_year": fiscal_year.name, "actor": actor, "reason": reason},
    )
    return fiscal_year


# ============================================================
# ACTIVATION
# ============================================================


def set_period_active(*, period_id: int, period_type: str, is_active: bool, actor: str):
    actor = _require_actor(actor)

    with atomic_unit("set_period_active", period_id=period_id, period_type=period_type):
        period = get_period(period_id, period_type, for_update=True)

        if is_active:
            if period.is_closed:
                raise TransitionError(
                    f"{period.name} is closed; reopen it instead of activating it",
                    period_id=period.id,
                )
            if isinstance(period, MonthlyPeriod):
                fiscal_year = period.fiscal_year
                if fiscal_year.is_closed or not fiscal_year.is_active:
                    raise TransitionError(
                        f"Cannot activate {period.name}: fiscal year {fiscal_year.name} is closed or inactive",
                        code=RejectionCode.FISCAL_YEAR_INACTIVE,
                        period_id=period.id,
                    )
        else:
            pending = _entries_scope(period).filter(status=JournalEntry.PENDING).count()
            if pending:
                raise TransitionError(
                    f"Cannot deactivate {period.name}: {pending} pending journal entries",
                    code=RejectionCode.PENDING_ENTRIES,
                    period_id=period.id,
                )

        period.is_active = is_active
        period.append_note(f"{'Activated' if is_active else 'Deactivated'} by {actor}")
        period.save()

        if not is_active and isinstance(period, FiscalYear):
            for month in MonthlyPeriod.objects.filter(
                Q(fiscal_year=period) & Q(is_closed=False) & Q(is_active=True)
            ):
                month.is_active = False
                month.save()

    logger.info(
        "Period activation changed",
        extra={"period": period.name, "is_active": is_active, "actor": actor},
    )
    return period
