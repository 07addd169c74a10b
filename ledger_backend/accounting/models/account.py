# accounting/models/account.py

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Account(models.Model):
    """
    Represents a single account within the Chart of Accounts.

    Guarantees:
    - Account codes are unique
    - Code + name are normalized (trimmed)
    - Parent links never form a cycle
    - A child has the same account type as its parent
    - Parent (summary) accounts are flagged with is_parent and never receive postings
    """

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"
    COST = "COST"

    ACCOUNT_TYPES = [
        (ASSET, "Asset"),
        (LIABILITY, "Liability"),
        (EQUITY, "Equity"),
        (REVENUE, "Revenue"),
        (EXPENSE, "Expense"),
        (COST, "Cost"),
    ]

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"

    NATURES = [
        (DEBIT, "Debit-increasing"),
        (CREDIT, "Credit-increasing"),
    ]

    DEBIT_NATURE_TYPES = (ASSET, EXPENSE, COST)
    PERMANENT_TYPES = (ASSET, LIABILITY, EQUITY)
    TEMPORARY_TYPES = (REVENUE, EXPENSE, COST)

    code = models.CharField(max_length=32)
    name = models.CharField(max_length=150)

    account_type = models.CharField(
        max_length=20,
        choices=ACCOUNT_TYPES,
    )

    nature = models.CharField(
        max_length=6,
        choices=NATURES,
        blank=True,
        default="",
        help_text="Leave blank to derive from account_type.",
    )

    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="children",
    )

    is_parent = models.BooleanField(
        default=False,
        help_text="Summary account: aggregates children, never receives postings.",
    )
    is_active = models.BooleanField(default=True)

    description = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        verbose_name = "Account"
        verbose_name_plural = "Accounts"
        indexes = [
            models.Index(fields=["account_type"], name="acct_account_type_idx"),
            models.Index(fields=["parent"], name="acct_account_parent_idx"),
            models.Index(fields=["is_active"], name="acct_account_active_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["code"],
                name="uniq_account_code",
            ),
            models.CheckConstraint(
                condition=~Q(code=""),
                name="chk_account_code_not_blank",
            ),
            models.CheckConstraint(
                condition=~Q(name=""),
                name="chk_account_name_not_blank",
            ),
        ]

    def __str__(self):
        return f"{self.code} – {self.name}"

    # -------------------------------------------------
    # Nature
    # -------------------------------------------------

    @property
    def effective_nature(self) -> str:
        if self.nature:
            return self.nature
        if self.account_type in self.DEBIT_NATURE_TYPES:
            return self.DEBIT
        return self.CREDIT

    @property
    def is_debit_nature(self) -> bool:
        return self.effective_nature == self.DEBIT

    @property
    def is_temporary(self) -> bool:
        return self.account_type in self.TEMPORARY_TYPES

    @property
    def is_permanent(self) -> bool:
        return self.account_type in self.PERMANENT_TYPES

    # -------------------------------------------------
    # Validation
    # -------------------------------------------------

    def clean(self):
        self.code = (self.code or "").strip()
        self.name = (self.name or "").strip()

        if not self.code:
            raise ValidationError("Account code is required")
        if not self.name:
            raise ValidationError("Account name is required")

        if self.nature and self.nature not in (self.DEBIT, self.CREDIT):
            raise ValidationError({"nature": "nature must be DEBIT, CREDIT or blank"})

        if self.parent_id is None:
            return

        if self.pk and self.parent_id == self.pk:
            raise ValidationError({"parent": "An account cannot be its own parent"})

        if self.parent.account_type != self.account_type:
            raise ValidationError(
                {"parent": "A child account must have the same type as its parent"}
            )

        # Walk up the parent chain; meeting ourselves means a cycle.
        seen = set()
        ancestor = self.parent
        while ancestor is not None:
            if self.pk and ancestor.pk == self.pk:
                raise ValidationError({"parent": "Parent links would form a cycle"})
            if ancestor.pk in seen:
                raise ValidationError({"parent": "Existing parent links form a cycle"})
            seen.add(ancestor.pk)
            ancestor = ancestor.parent

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
