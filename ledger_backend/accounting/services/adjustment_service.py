# accounting/services/adjustment_service.py

"""
======================================================
PATH: accounting/services/adjustment_service.py
======================================================
ADJUSTING ENTRIES SERVICE

Period-end adjustments (depreciation, amortization, provisions, inventory)
recorded as ordinary PENDING journal entries flagged is_adjustment.

Rules:
- Every adjusting entry is built through journal_entry_service.create_journal_entry,
  so structural, balance, eligibility and period checks all apply
- An adjusting entry has exactly two lines: one debit, one credit, same amount
- Posting through a template records the amount as the template's last_amount
- System templates are never deleted
- Depreciation is generated at most once per asset per month, and stops
  once the asset's useful life has elapsed
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError

from accounting.models.account import Account
from accounting.models.adjustment import AdjustmentTemplate, DepreciationSchedule
from accounting.models.journal import JournalEntry
from accounting.money import ZERO, InvalidAmountError, money, q2
from accounting.services.exceptions import (
    AdjustmentError,
    NotFoundError,
    RejectionCode,
    StructuralError,
)
from accounting.services.journal_entry_service import create_journal_entry
from accounting.services.period_lock import lock_monthly_period
from accounting.services.unit_of_work import atomic_unit

logger = logging.getLogger(__name__)


# -------------------------------------------------
# Templates
# -------------------------------------------------


def create_adjustment_template(
    *,
    name: str,
    adjustment_type: str,
    debit_account: Account,
    credit_account: Account,
    actor: str,
    description: str = "",
    is_system: bool = False,
) -> AdjustmentTemplate:
    if adjustment_type not in dict(AdjustmentTemplate.ADJUSTMENT_TYPES):
        raise AdjustmentError(f"Unknown adjustment_type {adjustment_type!r}")
    if debit_account is None or credit_account is None:
        raise StructuralError(
            "A template needs both a debit and a credit account",
            code=RejectionCode.MISSING_ACCOUNT,
        )
    if debit_account.pk == credit_account.pk:
        raise AdjustmentError(
            "Debit and credit accounts of a template must differ",
            account_code=debit_account.code,
        )

    try:
        template = AdjustmentTemplate.objects.create(
            name=name,
            adjustment_type=adjustment_type,
            description=description or "",
            debit_account=debit_account,
            credit_account=credit_account,
            is_system=is_system,
            created_by=(actor or "").strip(),
        )
    except (IntegrityError, ValidationError) as exc:
        raise AdjustmentError(f"Invalid adjustment template {name!r}: {exc}") from exc

    logger.info(
        "Adjustment template created",
        extra={"template_id": template.id, "adjustment_type": adjustment_type},
    )
    return template


def list_adjustment_templates(*, adjustment_type: str | None = None):
    qs = AdjustmentTemplate.objects.select_related("debit_account", "credit_account")
    if adjustment_type:
        qs = qs.filter(adjustment_type=adjustment_type)
    return qs.order_by("name")


def delete_adjustment_template(*, template_id: int, actor: str) -> None:
    try:
        template = AdjustmentTemplate.objects.get(pk=template_id)
    except AdjustmentTemplate.DoesNotExist as exc:
        raise NotFoundError(
            f"Adjustment template id={template_id} not found", template_id=template_id
        ) from exc

    if template.is_system:
        raise AdjustmentError(
            f"Adjustment template {template.name} is a system template and cannot be deleted",
            code=RejectionCode.SYSTEM_TEMPLATE,
            template_id=template.id,
        )

    template.delete()
    logger.info(
        "Adjustment template deleted",
        extra={"template_id": template_id, "actor": actor},
    )


# -------------------------------------------------
# Adjusting entries
# -------------------------------------------------


def _positive_amount(amount) -> Decimal:
    try:
        value = money(amount)
    except InvalidAmountError as exc:
        raise StructuralError(
            f"Invalid adjustment amount {amount!r}", code=RejectionCode.INVALID_AMOUNT
        ) from exc

    if value < 0:
        raise StructuralError(
            "Adjustment amount cannot be negative", code=RejectionCode.NEGATIVE_AMOUNT
        )
    if value == 0:
        raise StructuralError(
            "Adjustment amount must be positive", code=RejectionCode.MISSING_AMOUNT
        )
    return value


def create_adjustment_entry(
    *,
    entry_date: date,
    monthly_period_id: int,
    amount,
    actor: str,
    description: str,
    template: AdjustmentTemplate | None = None,
    debit_account: Account | None = None,
    credit_account: Account | None = None,
    adjustment_type: str = "",
    notes: str = "",
    reference: str | None = None,
    today: date | None = None,
) -> JournalEntry:
    """
    Build a two-line PENDING adjusting entry.

    Accounts come from the template unless given explicitly.
    """
    if template is not None:
        debit_account = debit_account or template.debit_account
        credit_account = credit_account or template.credit_account
        adjustment_type = adjustment_type or template.adjustment_type

    if debit_account is None or credit_account is None:
        raise StructuralError(
            "An adjusting entry needs a debit and a credit account (or a template)",
            code=RejectionCode.MISSING_ACCOUNT,
        )

    value = _positive_amount(amount)
    label = (description or "").strip()

    lines = [
        {"account": debit_account, "debit": value, "description": f"Debit: {label}"},
        {"account": credit_account, "credit": value, "description": f"Credit: {label}"},
    ]

    with atomic_unit("create_adjustment_entry", period_id=monthly_period_id):
        entry = create_journal_entry(
            entry_date=entry_date,
            monthly_period_id=monthly_period_id,
            lines=lines,
            actor=actor,
            description=description,
            reference=reference,
            notes=notes,
            today=today,
            is_adjustment=True,
            adjustment_type=adjustment_type or AdjustmentTemplate.OTHER,
            adjustment_template=template,
        )

        if template is not None:
            AdjustmentTemplate.objects.filter(pk=template.pk).update(last_amount=value)
            template.last_amount = value

    logger.info(
        "Adjusting entry created",
        extra={
            "entry_number": entry.entry_number,
            "adjustment_type": entry.adjustment_type,
            "amount": str(value),
        },
    )
    return entry


def pending_adjustments():
    return (
        JournalEntry.objects.filter(is_adjustment=True, status=JournalEntry.PENDING)
        .select_related("adjustment_template", "monthly_period")
        .order_by("-entry_date", "-entry_number")
    )


# -------------------------------------------------
# Depreciation
# -------------------------------------------------


def calculate_depreciation(
    *,
    acquisition_value,
    residual_value,
    useful_life_years: int,
    method: str = DepreciationSchedule.LINEAR,
    period_months: int = 1,
) -> Decimal:
    """
    Depreciation charge for `period_months` months.

    LINEAR:      (acquisition - residual) / years / 12 * months
    ACCELERATED: twice the linear rate

    Rounded once, at the end, to 2dp (ROUND_HALF_UP).
    """
    try:
        cost = money(acquisition_value)
        residual = money(residual_value)
    except InvalidAmountError as exc:
        raise AdjustmentError(f"Invalid depreciation amounts: {exc}") from exc

    if not useful_life_years or useful_life_years < 1:
        raise AdjustmentError("useful_life_years must be at least 1")
    if period_months < 1:
        raise AdjustmentError("period_months must be at least 1")
    if residual < 0 or residual > cost:
        raise AdjustmentError("residual_value must be between 0 and acquisition_value")

    if method == DepreciationSchedule.LINEAR:
        factor = 1
    elif method == DepreciationSchedule.ACCELERATED:
        factor = 2
    else:
        raise AdjustmentError(f"Unknown depreciation method {method!r}")

    depreciable = cost - residual
    return q2(depreciable * factor * period_months / (Decimal(useful_life_years) * 12))


def _months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def _life_months(schedule: DepreciationSchedule) -> int:
    months = schedule.useful_life_years * 12
    if schedule.method == DepreciationSchedule.ACCELERATED:
        return months // 2
    return months


def generate_depreciation_adjustments(
    *,
    monthly_period_id: int,
    entry_date: date,
    actor: str,
    template: AdjustmentTemplate,
    today: date | None = None,
) -> list[JournalEntry]:
    """
    One PENDING depreciation entry per active schedule not yet depreciated
    in this month. All entries are created together or not at all.
    """
    if template.adjustment_type != AdjustmentTemplate.DEPRECIATION:
        raise AdjustmentError(
            f"Template {template.name} is {template.adjustment_type}, not DEPRECIATION",
            template_id=template.id,
        )

    created: list[JournalEntry] = []

    with atomic_unit("generate_depreciation_adjustments", period_id=monthly_period_id):
        monthly_period = lock_monthly_period(monthly_period_id)

        schedules = (
            DepreciationSchedule.objects.select_for_update()
            .select_related("asset_account")
            .filter(
                is_active=True,
                asset_account__is_active=True,
                acquisition_date__lte=entry_date,
            )
            .order_by("asset_account__code")
        )

        for schedule in schedules:
            if schedule.last_depreciation_date and schedule.last_depreciation_date >= monthly_period.start_date:
                continue
            if _months_between(schedule.acquisition_date, entry_date) >= _life_months(schedule):
                continue

            amount = calculate_depreciation(
                acquisition_value=schedule.acquisition_value,
                residual_value=schedule.residual_value,
                useful_life_years=schedule.useful_life_years,
                method=schedule.method,
            )
            if amount <= ZERO:
                continue

            asset = schedule.asset_account
            entry = create_adjustment_entry(
                entry_date=entry_date,
                monthly_period_id=monthly_period.id,
                amount=amount,
                actor=actor,
                description=f"Depreciation of {asset.name}",
                template=template,
                notes=f"Generated depreciation for {asset.name} ({asset.code})",
                today=today,
            )
            created.append(entry)

            schedule.last_depreciation_date = entry_date
            schedule.save(update_fields=["last_depreciation_date", "updated_at"])

    logger.info(
        "Depreciation adjustments generated",
        extra={"period_id": monthly_period_id, "count": len(created), "actor": actor},
    )
    return created
