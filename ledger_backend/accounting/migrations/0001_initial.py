"""
======================================================
PATH: accounting/migrations/0001_initial.py
======================================================
MIGRATION: INITIAL ACCOUNTING SCHEMA

Creates:
- Account (chart of accounts)
- FiscalYear / MonthlyPeriod
- EntrySequence (journal entry numbering)
- AdjustmentTemplate / DepreciationSchedule
- JournalEntry / JournalEntryLine
- ClosingHistory
"""

from __future__ import annotations

from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion


def _period_fields():
    return [
        ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
        ("name", models.CharField(max_length=100)),
        ("start_date", models.DateField()),
        ("end_date", models.DateField()),
        ("is_closed", models.BooleanField(db_index=True, default=False)),
        ("is_active", models.BooleanField(db_index=True, default=True)),
        ("is_reopened", models.BooleanField(default=False)),
        ("closed_at", models.DateTimeField(blank=True, null=True)),
        ("closed_by", models.CharField(blank=True, default="", max_length=150)),
        ("reopened_at", models.DateTimeField(blank=True, null=True)),
        ("reopened_by", models.CharField(blank=True, default="", max_length=150)),
        ("reopen_reason", models.TextField(blank=True, default="")),
        ("reclosed_at", models.DateTimeField(blank=True, null=True)),
        ("reclosed_by", models.CharField(blank=True, default="", max_length=150)),
        ("notes", models.TextField(blank=True, default="")),
        ("created_by", models.CharField(blank=True, default="", max_length=150)),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


ADJUSTMENT_TYPES = [
    ("DEPRECIATION", "Depreciation"),
    ("AMORTIZATION", "Amortization"),
    ("PROVISION", "Provision"),
    ("INVENTORY", "Inventory"),
    ("OTHER", "Other"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        # -------------------------------------------------
        # Chart of accounts
        # -------------------------------------------------
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32)),
                ("name", models.CharField(max_length=150)),
                (
                    "account_type",
                    models.CharField(
                        choices=[
                            ("ASSET", "Asset"),
                            ("LIABILITY", "Liability"),
                            ("EQUITY", "Equity"),
                            ("REVENUE", "Revenue"),
                            ("EXPENSE", "Expense"),
                            ("COST", "Cost"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "nature",
                    models.CharField(
                        blank=True,
                        choices=[("DEBIT", "Debit-increasing"), ("CREDIT", "Credit-increasing")],
                        default="",
                        help_text="Leave blank to derive from account_type.",
                        max_length=6,
                    ),
                ),
                (
                    "is_parent",
                    models.BooleanField(
                        default=False,
                        help_text="Summary account: aggregates children, never receives postings.",
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("description", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="children",
                        to="accounting.account",
                    ),
                ),
            ],
            options={
                "verbose_name": "Account",
                "verbose_name_plural": "Accounts",
                "ordering": ["code"],
            },
        ),
        migrations.AddIndex(
            model_name="account",
            index=models.Index(fields=["account_type"], name="acct_account_type_idx"),
        ),
        migrations.AddIndex(
            model_name="account",
            index=models.Index(fields=["parent"], name="acct_account_parent_idx"),
        ),
        migrations.AddIndex(
            model_name="account",
            index=models.Index(fields=["is_active"], name="acct_account_active_idx"),
        ),
        migrations.AddConstraint(
            model_name="account",
            constraint=models.UniqueConstraint(fields=("code",), name="uniq_account_code"),
        ),
        migrations.AddConstraint(
            model_name="account",
            constraint=models.CheckConstraint(
                condition=models.Q(("code", ""), _negated=True),
                name="chk_account_code_not_blank",
            ),
        ),
        migrations.AddConstraint(
            model_name="account",
            constraint=models.CheckConstraint(
                condition=models.Q(("name", ""), _negated=True),
                name="chk_account_name_not_blank",
            ),
        ),
        # -------------------------------------------------
        # Periods
        # -------------------------------------------------
        migrations.CreateModel(
            name="FiscalYear",
            fields=_period_fields(),
            options={
                "verbose_name": "Fiscal Year",
                "verbose_name_plural": "Fiscal Years",
                "ordering": ["start_date"],
            },
        ),
        migrations.AddIndex(
            model_name="fiscalyear",
            index=models.Index(fields=["start_date", "end_date"], name="acct_fy_range_idx"),
        ),
        migrations.AddConstraint(
            model_name="fiscalyear",
            constraint=models.CheckConstraint(
                condition=models.Q(("end_date__gte", models.F("start_date"))),
                name="chk_fiscal_year_end_gte_start",
            ),
        ),
        migrations.CreateModel(
            name="MonthlyPeriod",
            fields=_period_fields()
            + [
                ("year", models.PositiveIntegerField()),
                ("month", models.PositiveSmallIntegerField()),
                (
                    "fiscal_year",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="monthly_periods",
                        to="accounting.fiscalyear",
                    ),
                ),
            ],
            options={
                "verbose_name": "Monthly Period",
                "verbose_name_plural": "Monthly Periods",
                "ordering": ["start_date"],
            },
        ),
        migrations.AddIndex(
            model_name="monthlyperiod",
            index=models.Index(fields=["fiscal_year", "start_date"], name="acct_month_fy_start_idx"),
        ),
        migrations.AddIndex(
            model_name="monthlyperiod",
            index=models.Index(fields=["start_date", "end_date"], name="acct_month_range_idx"),
        ),
        migrations.AddConstraint(
            model_name="monthlyperiod",
            constraint=models.UniqueConstraint(
                fields=("fiscal_year", "year", "month"),
                name="uniq_monthly_period_fiscal_year_month",
            ),
        ),
        migrations.AddConstraint(
            model_name="monthlyperiod",
            constraint=models.CheckConstraint(
                condition=models.Q(("end_date__gte", models.F("start_date"))),
                name="chk_monthly_period_end_gte_start",
            ),
        ),
        migrations.AddConstraint(
            model_name="monthlyperiod",
            constraint=models.CheckConstraint(
                condition=models.Q(("month__gte", 1), ("month__lte", 12)),
                name="chk_monthly_period_month_range",
            ),
        ),
        # -------------------------------------------------
        # Entry numbering
        # -------------------------------------------------
        migrations.CreateModel(
            name="EntrySequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50, unique=True)),
                ("last_value", models.PositiveBigIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Entry Sequence",
                "verbose_name_plural": "Entry Sequences",
            },
        ),
        # -------------------------------------------------
        # Adjustments
        # -------------------------------------------------
        migrations.CreateModel(
            name="AdjustmentTemplate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=150)),
                ("adjustment_type", models.CharField(choices=ADJUSTMENT_TYPES, max_length=20)),
                ("description", models.TextField(blank=True, default="")),
                ("is_system", models.BooleanField(default=False)),
                ("last_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("created_by", models.CharField(blank=True, default="", max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "debit_account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="debit_adjustment_templates",
                        to="accounting.account",
                    ),
                ),
                (
                    "credit_account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="credit_adjustment_templates",
                        to="accounting.account",
                    ),
                ),
            ],
            options={
                "verbose_name": "Adjustment Template",
                "verbose_name_plural": "Adjustment Templates",
                "ordering": ["name"],
            },
        ),
        migrations.AddIndex(
            model_name="adjustmenttemplate",
            index=models.Index(fields=["adjustment_type"], name="acct_adjtpl_type_idx"),
        ),
        migrations.AddConstraint(
            model_name="adjustmenttemplate",
            constraint=models.CheckConstraint(
                condition=models.Q(("debit_account", models.F("credit_account")), _negated=True),
                name="chk_adjustment_template_distinct_accounts",
            ),
        ),
        migrations.CreateModel(
            name="DepreciationSchedule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("acquisition_date", models.DateField()),
                ("acquisition_value", models.DecimalField(decimal_places=2, max_digits=18)),
                ("residual_value", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("useful_life_years", models.PositiveSmallIntegerField(default=5)),
                (
                    "method",
                    models.CharField(
                        choices=[("LINEAR", "Straight line"), ("ACCELERATED", "Accelerated (double rate)")],
                        default="LINEAR",
                        max_length=12,
                    ),
                ),
                ("last_depreciation_date", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "asset_account",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="depreciation_schedule",
                        to="accounting.account",
                    ),
                ),
            ],
            options={
                "verbose_name": "Depreciation Schedule",
                "verbose_name_plural": "Depreciation Schedules",
                "ordering": ["asset_account__code"],
            },
        ),
        migrations.AddConstraint(
            model_name="depreciationschedule",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    ("residual_value__gte", 0),
                    ("residual_value__lte", models.F("acquisition_value")),
                ),
                name="chk_depreciation_residual_range",
            ),
        ),
        migrations.AddConstraint(
            model_name="depreciationschedule",
            constraint=models.CheckConstraint(
                condition=models.Q(("useful_life_years__gte", 1)),
                name="chk_depreciation_useful_life_positive",
            ),
        ),
        # -------------------------------------------------
        # Journal
        # -------------------------------------------------
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "entry_number",
                    models.PositiveBigIntegerField(
                        help_text="Human-readable, monotonically increasing number",
                        unique=True,
                    ),
                ),
                ("entry_date", models.DateField(help_text="Accounting effective date")),
                ("description", models.TextField(help_text="Narrative description of the journal entry")),
                (
                    "status",
                    models.CharField(
                        choices=[("PENDING", "Pending"), ("APPROVED", "Approved"), ("VOIDED", "Voided")],
                        default="PENDING",
                        max_length=10,
                    ),
                ),
                ("is_closing_entry", models.BooleanField(default=False)),
                ("is_opening_entry", models.BooleanField(default=False)),
                (
                    "closing_entry_type",
                    models.CharField(
                        blank=True,
                        choices=[("PERIOD_CLOSE", "Period close"), ("OPENING_BALANCE", "Opening balance")],
                        default="",
                        max_length=20,
                    ),
                ),
                ("is_adjustment", models.BooleanField(default=False)),
                (
                    "adjustment_type",
                    models.CharField(blank=True, choices=ADJUSTMENT_TYPES, default="", max_length=20),
                ),
                (
                    "reference",
                    models.CharField(
                        blank=True,
                        help_text="External reference (idempotency key)",
                        max_length=100,
                        null=True,
                    ),
                ),
                ("total_debit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_credit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_by", models.CharField(max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("approved_by", models.CharField(blank=True, default="", max_length=150)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("voided_by", models.CharField(blank=True, default="", max_length=150)),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                ("void_reason", models.TextField(blank=True, default="")),
                (
                    "fiscal_year",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="journal_entries",
                        to="accounting.fiscalyear",
                    ),
                ),
                (
                    "monthly_period",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="journal_entries",
                        to="accounting.monthlyperiod",
                    ),
                ),
                (
                    "source_fiscal_year",
                    models.ForeignKey(
                        blank=True,
                        help_text="For opening entries: the fiscal year whose balances were carried forward.",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="carried_forward_entries",
                        to="accounting.fiscalyear",
                    ),
                ),
                (
                    "adjustment_template",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="journal_entries",
                        to="accounting.adjustmenttemplate",
                    ),
                ),
            ],
            options={
                "verbose_name": "Journal Entry",
                "verbose_name_plural": "Journal Entries",
                "ordering": ["entry_date", "entry_number"],
            },
        ),
        migrations.AddIndex(
            model_name="journalentry",
            index=models.Index(fields=["entry_date"], name="acct_je_date_idx"),
        ),
        migrations.AddIndex(
            model_name="journalentry",
            index=models.Index(fields=["status", "entry_date"], name="acct_je_status_date_idx"),
        ),
        migrations.AddIndex(
            model_name="journalentry",
            index=models.Index(fields=["monthly_period", "status"], name="acct_je_month_status_idx"),
        ),
        migrations.AddIndex(
            model_name="journalentry",
            index=models.Index(fields=["fiscal_year", "status"], name="acct_je_fy_status_idx"),
        ),
        migrations.AddIndex(
            model_name="journalentry",
            index=models.Index(fields=["is_closing_entry"], name="acct_je_closing_idx"),
        ),
        migrations.AddIndex(
            model_name="journalentry",
            index=models.Index(fields=["is_opening_entry"], name="acct_je_opening_idx"),
        ),
        migrations.AddIndex(
            model_name="journalentry",
            index=models.Index(fields=["reference"], name="acct_je_reference_idx"),
        ),
        migrations.AddIndex(
            model_name="journalentry",
            index=models.Index(fields=["is_adjustment"], name="acct_je_adjustment_idx"),
        ),
        migrations.AddConstraint(
            model_name="journalentry",
            constraint=models.UniqueConstraint(
                condition=models.Q(
                    ("reference__isnull", False),
                    models.Q(("reference", ""), _negated=True),
                    models.Q(("status", "VOIDED"), _negated=True),
                ),
                fields=("reference",),
                name="uniq_journal_reference_not_voided",
            ),
        ),
        migrations.AddConstraint(
            model_name="journalentry",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    ("status", "VOIDED"),
                    ("total_debit", models.F("total_credit")),
                    _connector="OR",
                ),
                name="chk_journal_balanced_unless_voided",
            ),
        ),
        migrations.CreateModel(
            name="JournalEntryLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_no", models.PositiveIntegerField(default=1)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("debit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("credit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="journal_lines",
                        to="accounting.account",
                    ),
                ),
                (
                    "journal_entry",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="accounting.journalentry",
                    ),
                ),
            ],
            options={
                "verbose_name": "Journal Entry Line",
                "verbose_name_plural": "Journal Entry Lines",
                "ordering": ["journal_entry_id", "line_no"],
            },
        ),
        migrations.AddIndex(
            model_name="journalentryline",
            index=models.Index(fields=["account"], name="acct_line_account_idx"),
        ),
        migrations.AddIndex(
            model_name="journalentryline",
            index=models.Index(fields=["journal_entry", "line_no"], name="acct_line_entry_no_idx"),
        ),
        migrations.AddConstraint(
            model_name="journalentryline",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    models.Q(("debit__gt", 0), ("credit", 0)),
                    models.Q(("credit__gt", 0), ("debit", 0)),
                    _connector="OR",
                ),
                name="chk_line_one_sided_positive",
            ),
        ),
        # -------------------------------------------------
        # Closing audit trail
        # -------------------------------------------------
        migrations.CreateModel(
            name="ClosingHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "period_type",
                    models.CharField(
                        choices=[("FISCAL_YEAR", "Fiscal year"), ("MONTH", "Monthly period")],
                        max_length=12,
                    ),
                ),
                ("period_id", models.PositiveBigIntegerField()),
                ("period_name", models.CharField(max_length=100)),
                (
                    "action",
                    models.CharField(
                        choices=[("CLOSE", "Close"), ("REOPEN", "Reopen"), ("RECLOSE", "Reclose")],
                        max_length=10,
                    ),
                ),
                ("actor", models.CharField(max_length=150)),
                ("reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "closing_entry",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="closing_history",
                        to="accounting.journalentry",
                    ),
                ),
            ],
            options={
                "verbose_name": "Closing History",
                "verbose_name_plural": "Closing History",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.AddIndex(
            model_name="closinghistory",
            index=models.Index(fields=["period_type", "period_id"], name="acct_hist_period_idx"),
        ),
        migrations.AddIndex(
            model_name="closinghistory",
            index=models.Index(fields=["created_at"], name="acct_hist_created_idx"),
        ),
    ]
