# accounting/models/journal_line.py

"""
======================================================
PATH: accounting/models/journal_line.py
======================================================
JOURNAL ENTRY LINE MODEL

One debit or credit posting to a single account.

Guarantees:
- Exactly one of debit / credit is positive, the other is zero (DB check constraint)
- Lines belong to exactly one journal entry
- Lines of a non-pending entry are immutable and cannot be deleted
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from accounting.models.account import Account
from accounting.models.journal import JournalEntry


class JournalEntryLine(models.Model):
    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )

    line_no = models.PositiveIntegerField(default=1)

    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="journal_lines",
    )

    description = models.CharField(max_length=255, blank=True, default="")

    debit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Journal Entry Line"
        verbose_name_plural = "Journal Entry Lines"
        ordering = ["journal_entry_id", "line_no"]
        indexes = [
            models.Index(fields=["account"], name="acct_line_account_idx"),
            models.Index(fields=["journal_entry", "line_no"], name="acct_line_entry_no_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(Q(debit__gt=0) & Q(credit=0)) | (Q(credit__gt=0) & Q(debit=0)),
                name="chk_line_one_sided_positive",
            ),
        ]

    def __str__(self):
        side = f"D {self.debit}" if self.debit else f"C {self.credit}"
        return f"{side} → {self.account}"

    def clean(self):
        debit = self.debit or Decimal("0.00")
        credit = self.credit or Decimal("0.00")

        if debit < 0 or credit < 0:
            raise ValidationError("Debit or credit cannot be negative")
        if debit > 0 and credit > 0:
            raise ValidationError("A line cannot have both debit and credit")
        if debit == 0 and credit == 0:
            raise ValidationError("A line must have either debit or credit")

    def save(self, *args, **kwargs):
        if self.journal_entry_id and not self.journal_entry.is_pending:
            raise ValidationError("Lines of a non-pending journal entry are immutable")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if not self.journal_entry.is_pending:
            raise ValidationError("Lines of a non-pending journal entry cannot be deleted")
        return super().delete(*args, **kwargs)
