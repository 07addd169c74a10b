# accounting/models/journal.py

"""
======================================================
PATH: accounting/models/journal.py
======================================================
JOURNAL ENTRY MODEL

Represents a single accounting transaction (journal header).

Guarantees:
- Created PENDING; mutable (lines, date, description) only while PENDING
- APPROVED entries are immutable, except for the APPROVED -> VOIDED transition
- VOIDED is terminal
- total_debit == total_credit for every non-voided entry (DB check constraint)
- Idempotency via reference uniqueness among non-voided entries
- entry_date is the accounting effective date (used for periods and reports)
- Adjusting entries (is_adjustment) are ordinary manual entries, never system entries
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from accounting.models.adjustment import AdjustmentTemplate
from accounting.models.period import FiscalYear, MonthlyPeriod


class JournalEntry(models.Model):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    VOIDED = "VOIDED"

    STATUSES = [
        (PENDING, "Pending"),
        (APPROVED, "Approved"),
        (VOIDED, "Voided"),
    ]

    PERIOD_CLOSE = "PERIOD_CLOSE"
    OPENING_BALANCE = "OPENING_BALANCE"

    SYSTEM_ENTRY_TYPES = [
        (PERIOD_CLOSE, "Period close"),
        (OPENING_BALANCE, "Opening balance"),
    ]

    entry_number = models.PositiveBigIntegerField(
        unique=True,
        help_text="Human-readable, monotonically increasing number",
    )

    entry_date = models.DateField(help_text="Accounting effective date")

    description = models.TextField(help_text="Narrative description of the journal entry")

    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name="journal_entries",
    )
    monthly_period = models.ForeignKey(
        MonthlyPeriod,
        on_delete=models.PROTECT,
        related_name="journal_entries",
    )

    status = models.CharField(max_length=10, choices=STATUSES, default=PENDING)

    is_closing_entry = models.BooleanField(default=False)
    is_opening_entry = models.BooleanField(default=False)
    closing_entry_type = models.CharField(
        max_length=20,
        choices=SYSTEM_ENTRY_TYPES,
        blank=True,
        default="",
    )
    source_fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="carried_forward_entries",
        help_text="For opening entries: the fiscal year whose balances were carried forward.",
    )

    is_adjustment = models.BooleanField(default=False)
    adjustment_type = models.CharField(
        max_length=20,
        choices=AdjustmentTemplate.ADJUSTMENT_TYPES,
        blank=True,
        default="",
    )
    adjustment_template = models.ForeignKey(
        AdjustmentTemplate,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="journal_entries",
    )

    reference = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        help_text="External reference (idempotency key)",
    )

    total_debit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    total_credit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    notes = models.TextField(blank=True, default="")

    created_by = models.CharField(max_length=150)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    approved_by = models.CharField(max_length=150, blank=True, default="")
    approved_at = models.DateTimeField(null=True, blank=True)

    voided_by = models.CharField(max_length=150, blank=True, default="")
    voided_at = models.DateTimeField(null=True, blank=True)
    void_reason = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["entry_date", "entry_number"]
        indexes = [
            models.Index(fields=["entry_date"], name="acct_je_date_idx"),
            models.Index(fields=["status", "entry_date"], name="acct_je_status_date_idx"),
            models.Index(fields=["monthly_period", "status"], name="acct_je_month_status_idx"),
            models.Index(fields=["fiscal_year", "status"], name="acct_je_fy_status_idx"),
            models.Index(fields=["is_closing_entry"], name="acct_je_closing_idx"),
            models.Index(fields=["is_opening_entry"], name="acct_je_opening_idx"),
            models.Index(fields=["reference"], name="acct_je_reference_idx"),
            models.Index(fields=["is_adjustment"], name="acct_je_adjustment_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["reference"],
                condition=Q(reference__isnull=False) & ~Q(reference="") & ~Q(status="VOIDED"),
                name="uniq_journal_reference_not_voided",
            ),
            models.CheckConstraint(
                condition=Q(status="VOIDED") | Q(total_debit=F("total_credit")),
                name="chk_journal_balanced_unless_voided",
            ),
        ]
        verbose_name = "Journal Entry"
        verbose_name_plural = "Journal Entries"

    def __str__(self):
        return f"JournalEntry #{self.entry_number} – {self.entry_date}"

    @property
    def is_pending(self) -> bool:
        return self.status == self.PENDING

    @property
    def is_system_entry(self) -> bool:
        return self.is_closing_entry or self.is_opening_entry

    def clean(self):
        if self.reference is not None:
            ref = str(self.reference).strip()
            self.reference = ref or None

        self.description = (self.description or "").strip()
        if not self.description:
            raise ValidationError("Journal entry description is required")

        if self.status == self.VOIDED and not (self.void_reason or "").strip():
            raise ValidationError({"void_reason": "A voided entry requires a reason"})

        if not self.is_adjustment and (self.adjustment_type or self.adjustment_template_id):
            raise ValidationError("adjustment_type / adjustment_template require is_adjustment")
        if self.is_adjustment and self.is_system_entry:
            raise ValidationError("A closing or opening entry cannot be an adjustment")

        if self.monthly_period_id and self.fiscal_year_id:
            if self.monthly_period.fiscal_year_id != self.fiscal_year_id:
                raise ValidationError("monthly_period does not belong to fiscal_year")

    def save(self, *args, **kwargs):
        if self.pk:
            persisted = (
                type(self).objects.filter(pk=self.pk).values_list("status", flat=True).first()
            )
            if persisted == self.VOIDED:
                raise ValidationError("Voided journal entries are terminal")
            if persisted == self.APPROVED and self.status != self.VOIDED:
                raise ValidationError("Approved journal entries are immutable")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.status != self.PENDING:
            raise ValidationError("Only pending journal entries can be deleted")
        return super().delete(*args, **kwargs)
