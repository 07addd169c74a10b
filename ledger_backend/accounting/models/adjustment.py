# accounting/models/adjustment.py

"""
======================================================
PATH: accounting/models/adjustment.py
======================================================
ADJUSTING ENTRY MODELS

AdjustmentTemplate
- Reusable debit/credit account pair for recurring period-end adjustments
  (depreciation, amortization, provisions, inventory)
- System templates cannot be deleted
- Remembers the last amount posted through it

DepreciationSchedule
- Acquisition data for one depreciable asset account
- Tracks the last date depreciation was generated for it
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from accounting.models.account import Account


class AdjustmentTemplate(models.Model):
    DEPRECIATION = "DEPRECIATION"
    AMORTIZATION = "AMORTIZATION"
    PROVISION = "PROVISION"
    INVENTORY = "INVENTORY"
    OTHER = "OTHER"

    ADJUSTMENT_TYPES = [
        (DEPRECIATION, "Depreciation"),
        (AMORTIZATION, "Amortization"),
        (PROVISION, "Provision"),
        (INVENTORY, "Inventory"),
        (OTHER, "Other"),
    ]

    name = models.CharField(max_length=150)
    adjustment_type = models.CharField(max_length=20, choices=ADJUSTMENT_TYPES)
    description = models.TextField(blank=True, default="")

    debit_account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="debit_adjustment_templates",
    )
    credit_account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="credit_adjustment_templates",
    )

    is_system = models.BooleanField(default=False)
    last_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    created_by = models.CharField(max_length=150, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "Adjustment Template"
        verbose_name_plural = "Adjustment Templates"
        indexes = [
            models.Index(fields=["adjustment_type"], name="acct_adjtpl_type_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(debit_account=F("credit_account")),
                name="chk_adjustment_template_distinct_accounts",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.adjustment_type})"

    def clean(self):
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValidationError({"name": "Template name is required"})

        if self.debit_account_id and self.debit_account_id == self.credit_account_id:
            raise ValidationError("Debit and credit accounts must differ")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.is_system:
            raise ValidationError("System adjustment templates cannot be deleted")
        return super().delete(*args, **kwargs)


class DepreciationSchedule(models.Model):
    LINEAR = "LINEAR"
    ACCELERATED = "ACCELERATED"

    METHODS = [
        (LINEAR, "Straight line"),
        (ACCELERATED, "Accelerated (double rate)"),
    ]

    asset_account = models.OneToOneField(
        Account,
        on_delete=models.PROTECT,
        related_name="depreciation_schedule",
    )

    acquisition_date = models.DateField()
    acquisition_value = models.DecimalField(max_digits=18, decimal_places=2)
    residual_value = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    useful_life_years = models.PositiveSmallIntegerField(default=5)
    method = models.CharField(max_length=12, choices=METHODS, default=LINEAR)

    last_depreciation_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["asset_account__code"]
        verbose_name = "Depreciation Schedule"
        verbose_name_plural = "Depreciation Schedules"
        constraints = [
            models.CheckConstraint(
                condition=Q(residual_value__gte=0) & Q(residual_value__lte=F("acquisition_value")),
                name="chk_depreciation_residual_range",
            ),
            models.CheckConstraint(
                condition=Q(useful_life_years__gte=1),
                name="chk_depreciation_useful_life_positive",
            ),
        ]

    def __str__(self):
        return f"Depreciation of {self.asset_account}"

    def clean(self):
        if self.asset_account_id and self.asset_account.account_type != Account.ASSET:
            raise ValidationError({"asset_account": "Only ASSET accounts can be depreciated"})

        if self.acquisition_value is not None and self.acquisition_value <= 0:
            raise ValidationError({"acquisition_value": "acquisition_value must be positive"})

        residual = self.residual_value or Decimal("0.00")
        if residual < 0 or (self.acquisition_value is not None and residual > self.acquisition_value):
            raise ValidationError(
                {"residual_value": "residual_value must be between 0 and acquisition_value"}
            )

        if not self.useful_life_years:
            raise ValidationError({"useful_life_years": "useful_life_years must be at least 1"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
