# accounting/services/period_lock.py

"""
======================================================
PATH: accounting/services/period_lock.py
======================================================
PERIOD LOCK GUARD

Purpose:
- Enforce accounting period locks globally.
- Prevent creating, editing or approving a journal entry inside a
  closed or inactive monthly period / fiscal year.
- Gate the entry date against the period bounds and the clock.

Design:
- Thin, reusable guard
- Called by entry_validator and journal_entry_service (engine choke-point)
- The out-of-range policy comes from settings (reject | warn)
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from accounting.models.period import FiscalYear, MonthlyPeriod
from accounting.services.exceptions import NotFoundError, PeriodStateError, RejectionCode

logger = logging.getLogger(__name__)

POLICY_REJECT = "reject"
POLICY_WARN = "warn"


def _to_date(value: datetime | date | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if timezone.is_naive(value):
            value = timezone.make_aware(value, timezone.get_current_timezone())
        return timezone.localtime(value).date()
    return value


def out_of_range_policy(override: str | None = None) -> str:
    policy = (override or getattr(settings, "ACCOUNTING_OUT_OF_RANGE_DATE_POLICY", "") or POLICY_REJECT)
    policy = policy.strip().lower()
    return policy if policy in (POLICY_REJECT, POLICY_WARN) else POLICY_REJECT


def lock_monthly_period(period_id: int) -> MonthlyPeriod:
    """Row-lock a monthly period for the rest of the current transaction."""
    try:
        return (
            MonthlyPeriod.objects.select_for_update()
            .select_related("fiscal_year")
            .get(pk=period_id)
        )
    except MonthlyPeriod.DoesNotExist as exc:
        raise NotFoundError(
            f"Monthly period id={period_id} not found",
            code=RejectionCode.PERIOD_NOT_FOUND,
            period_id=period_id,
        ) from exc


def _assert_date_postable(entry_date: date, monthly_period: MonthlyPeriod) -> None:
    fiscal_year = monthly_period.fiscal_year

    closed_year = (
        FiscalYear.objects.filter(
            is_closed=True,
            start_date__lte=entry_date,
            end_date__gte=entry_date,
        )
        .order_by("start_date")
        .first()
    )
    if closed_year is not None:
        raise PeriodStateError(
            f"Entry date {entry_date} falls in closed fiscal year {closed_year.name}",
            code=RejectionCode.FISCAL_YEAR_CLOSED,
            entry_date=entry_date.isoformat(),
            fiscal_year_id=closed_year.id,
        )

    if not fiscal_year.contains(entry_date):
        raise PeriodStateError(
            f"Entry date {entry_date} is outside fiscal year {fiscal_year.name} "
            f"({fiscal_year.start_date} → {fiscal_year.end_date})",
            code=RejectionCode.DATE_OUT_OF_RANGE,
            entry_date=entry_date.isoformat(),
            fiscal_year_id=fiscal_year.id,
        )

    closed_month = (
        fiscal_year.monthly_periods.filter(start_date__lte=entry_date, end_date__gte=entry_date)
        .filter(Q(is_closed=True) | Q(is_active=False))
        .first()
    )
    if closed_month is not None:
        raise PeriodStateError(
            f"Entry date {entry_date} falls in closed monthly period {closed_month.name}",
            code=RejectionCode.PERIOD_CLOSED,
            entry_date=entry_date.isoformat(),
            period_id=closed_month.id,
        )


def assert_period_open(monthly_period: MonthlyPeriod) -> None:
    """
    Raise PeriodStateError unless the month AND its fiscal year are
    open and active.
    """
    fiscal_year = monthly_period.fiscal_year

    if fiscal_year.is_closed:
        raise PeriodStateError(
            f"Fiscal year {fiscal_year.name} is closed",
            code=RejectionCode.FISCAL_YEAR_CLOSED,
            fiscal_year_id=fiscal_year.id,
        )
    if not fiscal_year.is_active:
        raise PeriodStateError(
            f"Fiscal year {fiscal_year.name} is inactive",
            code=RejectionCode.FISCAL_YEAR_INACTIVE,
            fiscal_year_id=fiscal_year.id,
        )
    if monthly_period.is_closed:
        raise PeriodStateError(
            f"Monthly period {monthly_period.name} is closed",
            code=RejectionCode.PERIOD_CLOSED,
            period_id=monthly_period.id,
        )
    if not monthly_period.is_active:
        raise PeriodStateError(
            f"Monthly period {monthly_period.name} is inactive",
            code=RejectionCode.PERIOD_INACTIVE,
            period_id=monthly_period.id,
        )


def check_entry_date(
    *,
    entry_date: datetime | date,
    monthly_period: MonthlyPeriod,
    today: date | None = None,
    policy: str | None = None,
) -> list[str]:
    """
    Gate an entry date against the clock and the period bounds.

    Returns warnings (non-empty only under the "warn" policy).
    Even under "warn" the date must stay inside the owning fiscal year
    and must not land in a closed fiscal year or a closed month.
    """
    entry_date = _to_date(entry_date)
    today = today or timezone.localdate()

    if entry_date > today:
        raise PeriodStateError(
            f"Entry date {entry_date} is in the future (today={today})",
            code=RejectionCode.FUTURE_DATE,
            entry_date=entry_date.isoformat(),
        )

    if monthly_period.contains(entry_date):
        return []

    message = (
        f"Entry date {entry_date} is outside monthly period {monthly_period.name} "
        f"({monthly_period.start_date} → {monthly_period.end_date})"
    )

    if out_of_range_policy(policy) == POLICY_WARN:
        _assert_date_postable(entry_date, monthly_period)
        logger.warning(
            "Entry date outside period accepted",
            extra={
                "entry_date": entry_date.isoformat(),
                "period_id": monthly_period.id,
            },
        )
        return [message]

    raise PeriodStateError(
        message,
        code=RejectionCode.DATE_OUT_OF_RANGE,
        entry_date=entry_date.isoformat(),
        period_start=monthly_period.start_date.isoformat(),
        period_end=monthly_period.end_date.isoformat(),
    )
