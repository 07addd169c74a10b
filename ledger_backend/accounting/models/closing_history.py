# accounting/models/closing_history.py

"""
======================================================
PATH: accounting/models/closing_history.py
======================================================
CLOSING HISTORY MODEL

One audit row per period lifecycle transition (close / reopen / reclose).

Audit guarantees:
- Immutable once created
- Non-deletable
- Records the closing entry generated by a fiscal-year close, when there is one
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models

from accounting.models.journal import JournalEntry


class ClosingHistory(models.Model):
    FISCAL_YEAR = "FISCAL_YEAR"
    MONTH = "MONTH"

    PERIOD_TYPES = [
        (FISCAL_YEAR, "Fiscal year"),
        (MONTH, "Monthly period"),
    ]

    CLOSE = "CLOSE"
    REOPEN = "REOPEN"
    RECLOSE = "RECLOSE"

    ACTIONS = [
        (CLOSE, "Close"),
        (REOPEN, "Reopen"),
        (RECLOSE, "Reclose"),
    ]

    period_type = models.CharField(max_length=12, choices=PERIOD_TYPES)
    period_id = models.PositiveBigIntegerField()
    period_name = models.CharField(max_length=100)

    action = models.CharField(max_length=10, choices=ACTIONS)
    actor = models.CharField(max_length=150)
    reason = models.TextField(blank=True, default="")

    closing_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="closing_history",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["period_type", "period_id"], name="acct_hist_period_idx"),
            models.Index(fields=["created_at"], name="acct_hist_created_idx"),
        ]
        verbose_name = "Closing History"
        verbose_name_plural = "Closing History"

    def __str__(self):
        return f"{self.action} {self.period_type} {self.period_name} by {self.actor}"

    def clean(self):
        self.actor = (self.actor or "").strip()
        if not self.actor:
            raise ValidationError({"actor": "actor is required"})

        if self.action == self.REOPEN and not (self.reason or "").strip():
            raise ValidationError({"reason": "Reopening requires a reason"})

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("ClosingHistory records are immutable once created")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("ClosingHistory records are immutable and cannot be deleted")
