# accounting/models/period.py

"""
======================================================
PATH: accounting/models/period.py
======================================================
ACCOUNTING PERIOD MODELS

FiscalYear and MonthlyPeriod share one shape (PeriodBase):
- date range [start_date, end_date]
- is_closed / is_active flags
- close / reopen / reclose audit metadata (who, when, why)

Lifecycle state is derived from the flags:
- OPEN      not closed, never reopened
- CLOSED    closed
- REOPENED  not closed, reopened at least once

Transitions are enforced by services.period_lifecycle; models only
guarantee date sanity and nesting.
"""

from __future__ import annotations

from datetime import date

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q


class PeriodBase(models.Model):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    REOPENED = "REOPENED"

    name = models.CharField(max_length=100)

    start_date = models.DateField()
    end_date = models.DateField()

    is_closed = models.BooleanField(default=False, db_index=True)
    is_active = models.BooleanField(default=True, db_index=True)
    is_reopened = models.BooleanField(default=False)

    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by = models.CharField(max_length=150, blank=True, default="")

    reopened_at = models.DateTimeField(null=True, blank=True)
    reopened_by = models.CharField(max_length=150, blank=True, default="")
    reopen_reason = models.TextField(blank=True, default="")

    reclosed_at = models.DateTimeField(null=True, blank=True)
    reclosed_by = models.CharField(max_length=150, blank=True, default="")

    notes = models.TextField(blank=True, default="")

    created_by = models.CharField(max_length=150, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    @property
    def state(self) -> str:
        if self.is_closed:
            return self.CLOSED
        if self.is_reopened:
            return self.REOPENED
        return self.OPEN

    @property
    def is_open(self) -> bool:
        return not self.is_closed and self.is_active

    def contains(self, d: date) -> bool:
        return self.start_date <= d <= self.end_date

    def overlaps(self, start_date: date, end_date: date) -> bool:
        return self.start_date <= end_date and self.end_date >= start_date

    def append_note(self, note: str) -> None:
        note = (note or "").strip()
        if not note:
            return
        self.notes = f"{self.notes} | {note}" if self.notes else note

    def clean(self):
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValidationError({"name": "Period name is required"})

        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({"end_date": "end_date must be >= start_date"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class FiscalYear(PeriodBase):
    class Meta:
        ordering = ["start_date"]
        verbose_name = "Fiscal Year"
        verbose_name_plural = "Fiscal Years"
        indexes = [
            models.Index(fields=["start_date", "end_date"], name="acct_fy_range_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(end_date__gte=F("start_date")),
                name="chk_fiscal_year_end_gte_start",
            ),
        ]

    def __str__(self):
        return f"FiscalYear {self.name} ({self.start_date} → {self.end_date})"


class MonthlyPeriod(PeriodBase):
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name="monthly_periods",
    )

    year = models.PositiveIntegerField()
    month = models.PositiveSmallIntegerField()

    class Meta:
        ordering = ["start_date"]
        verbose_name = "Monthly Period"
        verbose_name_plural = "Monthly Periods"
        indexes = [
            models.Index(fields=["fiscal_year", "start_date"], name="acct_month_fy_start_idx"),
            models.Index(fields=["start_date", "end_date"], name="acct_month_range_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["fiscal_year", "year", "month"],
                name="uniq_monthly_period_fiscal_year_month",
            ),
            models.CheckConstraint(
                condition=Q(end_date__gte=F("start_date")),
                name="chk_monthly_period_end_gte_start",
            ),
            models.CheckConstraint(
                condition=Q(month__gte=1) & Q(month__lte=12),
                name="chk_monthly_period_month_range",
            ),
        ]

    def __str__(self):
        return f"MonthlyPeriod {self.name} ({self.start_date} → {self.end_date})"

    def clean(self):
        super().clean()

        if self.fiscal_year_id and self.start_date and self.end_date:
            fy = self.fiscal_year
            if self.start_date < fy.start_date or self.end_date > fy.end_date:
                raise ValidationError(
                    f"Monthly period {self.start_date} → {self.end_date} must lie within "
                    f"fiscal year {fy.name} ({fy.start_date} → {fy.end_date})"
                )
