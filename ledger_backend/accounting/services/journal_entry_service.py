# accounting/services/journal_entry_service.py

"""
======================================================
PATH: accounting/services/journal_entry_service.py
======================================================
JOURNAL ENTRY SERVICE (ACCOUNTING ENGINE)

This module is the ONLY place allowed to:
- Create JournalEntry / JournalEntryLine
- Move an entry through PENDING -> APPROVED -> VOIDED
- Guarantee atomicity (entry + lines are written together or not at all)
- Enforce idempotency via reference (prevents double-posting)
- Enforce period locks (no posting into closed periods)

Everything else (closing protocol, opening balances, callers) must pass through here.

Locking:
- The monthly period row is locked (select_for_update) while an entry is
  created or approved, so a concurrent close cannot interleave.
"""

from __future__ import annotations

import logging
from datetime import date

from django.db import IntegrityError, transaction
from django.utils import timezone

from accounting.models.adjustment import AdjustmentTemplate
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine
from accounting.models.period import MonthlyPeriod
from accounting.money import ZERO, q2
from accounting.services.entry_validator import ValidatedEntry, validate_entry
from accounting.services.exceptions import (
    BalanceError,
    EntryStateError,
    IdempotencyError,
    NotFoundError,
    PeriodStateError,
    RejectionCode,
    StructuralError,
)
from accounting.services.period_lock import assert_period_open, lock_monthly_period
from accounting.services.sequence_service import next_entry_number
from accounting.services.unit_of_work import atomic_unit

logger = logging.getLogger(__name__)

# Closing / opening entries are keyed "<TYPE>:<fiscal_year_id>"; callers may not use these.
RESERVED_REFERENCE_PREFIXES = (
    f"{JournalEntry.PERIOD_CLOSE}:",
    f"{JournalEntry.OPENING_BALANCE}:",
)


def _require_actor(actor: str) -> str:
    actor = (actor or "").strip()
    if not actor:
        raise StructuralError("actor is required", code=RejectionCode.MISSING_ACTOR)
    return actor


def _require_description(description: str) -> str:
    description = (description or "").strip()
    if not description:
        raise StructuralError(
            "Journal entry description is required",
            code=RejectionCode.MISSING_DESCRIPTION,
        )
    return description


def _normalize_reference(reference: str | None) -> str | None:
    if reference is None:
        return None
    ref = str(reference).strip()
    return ref or None


def _ensure_reference_not_reserved(reference: str | None) -> None:
    if not reference:
        return
    upper = reference.upper()
    for prefix in RESERVED_REFERENCE_PREFIXES:
        if upper.startswith(prefix):
            raise StructuralError(
                f"Reference {reference!r} uses the reserved prefix {prefix!r}",
                code=RejectionCode.RESERVED_REFERENCE,
                reference=reference,
            )


def _ensure_reference_free(reference: str | None) -> None:
    if not reference:
        return
    if JournalEntry.objects.filter(reference=reference).exclude(status=JournalEntry.VOIDED).exists():
        raise IdempotencyError(
            f"Journal entry already exists for reference {reference}",
            reference=reference,
        )


def _lock_entry(entry_id: int) -> JournalEntry:
    try:
        return JournalEntry.objects.select_for_update().get(pk=entry_id)
    except JournalEntry.DoesNotExist as exc:
        raise NotFoundError(
            f"Journal entry id={entry_id} not found", entry_id=entry_id
        ) from exc


def _write_lines(entry: JournalEntry, validated: ValidatedEntry) -> None:
    JournalEntryLine.objects.bulk_create(
        [
            JournalEntryLine(
                journal_entry=entry,
                line_no=line.line_no,
                account=line.account,
                description=line.description,
                debit=line.debit,
                credit=line.credit,
            )
            for line in validated.lines
        ]
    )


def _create_entry_row(
    *,
    validated: ValidatedEntry,
    entry_date: date,
    monthly_period: MonthlyPeriod,
    description: str,
    actor: str,
    reference: str | None,
    notes: str = "",
    **extra_fields,
) -> JournalEntry:
    _ensure_reference_free(reference)
    entry_number = next_entry_number()

    try:
        with transaction.atomic():
            entry = JournalEntry.objects.create(
                entry_number=entry_number,
                entry_date=entry_date,
                description=description,
                fiscal_year=monthly_period.fiscal_year,
                monthly_period=monthly_period,
                reference=reference,
                total_debit=validated.total_debit,
                total_credit=validated.total_credit,
                notes=notes or "",
                created_by=actor,
                **extra_fields,
            )
    except IntegrityError as exc:
        if reference and JournalEntry.objects.filter(reference=reference).exclude(
            status=JournalEntry.VOIDED
        ).exists():
            raise IdempotencyError(
                f"Journal entry already exists for reference {reference}",
                reference=reference,
            ) from exc
        raise

    _write_lines(entry, validated)
    entry.warnings = list(validated.warnings)
    return entry


def create_journal_entry(
    *,
    entry_date: date,
    monthly_period_id: int,
    lines: list,
    actor: str,
    description: str,
    reference: str | None = None,
    notes: str = "",
    today: date | None = None,
    date_policy: str | None = None,
    is_adjustment: bool = False,
    adjustment_type: str = "",
    adjustment_template=None,
) -> JournalEntry:
    """
    Validate and persist a PENDING journal entry with its lines.

    Adjusting entries (depreciation, provisions, ...) pass is_adjustment=True
    and optionally the template they were built from.

    The returned entry carries `.warnings` (non-empty only when the
    out-of-range date policy is "warn" and the date fell outside the month).
    """
    actor = _require_actor(actor)
    description = _require_description(description)
    reference = _normalize_reference(reference)
    _ensure_reference_not_reserved(reference)

    if adjustment_template is not None and not adjustment_type:
        adjustment_type = adjustment_template.adjustment_type
    if (adjustment_type or adjustment_template is not None) and not is_adjustment:
        raise StructuralError(
            "adjustment_type / adjustment_template require is_adjustment=True",
            code=RejectionCode.INVALID_ADJUSTMENT,
        )
    if adjustment_type and adjustment_type not in dict(AdjustmentTemplate.ADJUSTMENT_TYPES):
        raise StructuralError(
            f"Unknown adjustment_type {adjustment_type!r}",
            code=RejectionCode.INVALID_ADJUSTMENT,
        )

    with atomic_unit("create_journal_entry", period_id=monthly_period_id):
        monthly_period = lock_monthly_period(monthly_period_id)

        validated = validate_entry(
            entry_date=entry_date,
            monthly_period=monthly_period,
            lines=lines,
            today=today,
            date_policy=date_policy,
        )

        entry = _create_entry_row(
            validated=validated,
            entry_date=entry_date,
            monthly_period=monthly_period,
            description=description,
            actor=actor,
            reference=reference,
            notes=notes,
            is_adjustment=is_adjustment,
            adjustment_type=adjustment_type or "",
            adjustment_template=adjustment_template,
        )

    logger.info(
        "Journal entry created",
        extra={
            "entry_number": entry.entry_number,
            "period_id": monthly_period_id,
            "total": str(entry.total_debit),
            "actor": actor,
        },
    )
    return entry


def update_pending_entry(
    *,
    entry_id: int,
    actor: str,
    lines: list | None = None,
    entry_date: date | None = None,
    description: str | None = None,
    notes: str | None = None,
    today: date | None = None,
    date_policy: str | None = None,
) -> JournalEntry:
    """
    Edit a PENDING entry. When lines are given they replace the old ones
    wholesale; the entry is re-validated either way.
    """
    actor = _require_actor(actor)

    with atomic_unit("update_pending_entry", entry_id=entry_id):
        entry = _lock_entry(entry_id)
        if entry.status != JournalEntry.PENDING:
            raise EntryStateError(
                f"Journal entry #{entry.entry_number} is {entry.status}; only pending entries can be edited",
                entry_id=entry.id,
                status=entry.status,
            )

        monthly_period = lock_monthly_period(entry.monthly_period_id)

        if lines is None:
            lines = [
                {
                    "account_id": line.account_id,
                    "debit": line.debit,
                    "credit": line.credit,
                    "description": line.description,
                }
                for line in entry.lines.order_by("line_no")
            ]

        new_date = entry_date or entry.entry_date
        validated = validate_entry(
            entry_date=new_date,
            monthly_period=monthly_period,
            lines=lines,
            today=today,
            date_policy=date_policy,
        )

        entry.lines.all().delete()
        _write_lines(entry, validated)

        entry.entry_date = new_date
        if description is not None:
            entry.description = _require_description(description)
        if notes is not None:
            entry.notes = notes
        entry.total_debit = validated.total_debit
        entry.total_credit = validated.total_credit
        entry.save()
        entry.warnings = list(validated.warnings)

    logger.info(
        "Journal entry updated",
        extra={"entry_number": entry.entry_number, "actor": actor},
    )
    return entry


def delete_pending_entry(*, entry_id: int, actor: str) -> None:
    actor = _require_actor(actor)

    with atomic_unit("delete_pending_entry", entry_id=entry_id):
        entry = _lock_entry(entry_id)
        if entry.status != JournalEntry.PENDING:
            raise EntryStateError(
                f"Journal entry #{entry.entry_number} is {entry.status}; only pending entries can be deleted",
                entry_id=entry.id,
                status=entry.status,
            )

        monthly_period = lock_monthly_period(entry.monthly_period_id)
        assert_period_open(monthly_period)

        entry_number = entry.entry_number
        entry.delete()

    logger.info(
        "Journal entry deleted",
        extra={"entry_number": entry_number, "actor": actor},
    )


def approve_entry(*, entry_id: int, actor: str) -> JournalEntry:
    actor = _require_actor(actor)

    with atomic_unit("approve_entry", entry_id=entry_id):
        entry = _lock_entry(entry_id)

        if entry.status == JournalEntry.VOIDED:
            raise EntryStateError(
                f"Journal entry #{entry.entry_number} is voided",
                code=RejectionCode.ENTRY_VOIDED,
                entry_id=entry.id,
            )
        if entry.status == JournalEntry.APPROVED:
            raise EntryStateError(
                f"Journal entry #{entry.entry_number} is already approved",
                code=RejectionCode.ENTRY_ALREADY_APPROVED,
                entry_id=entry.id,
            )

        monthly_period = lock_monthly_period(entry.monthly_period_id)
        assert_period_open(monthly_period)

        # Re-verify from the stored lines, not the cached totals.
        totals = [(line.debit, line.credit) for line in entry.lines.all()]
        total_debit = q2(sum((d for d, _ in totals), ZERO))
        total_credit = q2(sum((c for _, c in totals), ZERO))
        if total_debit != total_credit:
            raise BalanceError(total_debit=total_debit, total_credit=total_credit)

        entry.status = JournalEntry.APPROVED
        entry.approved_by = actor
        entry.approved_at = timezone.now()
        entry.save()

    logger.info(
        "Journal entry approved",
        extra={"entry_number": entry.entry_number, "actor": actor},
    )
    return entry


def _mark_voided(entry: JournalEntry, *, actor: str, reason: str) -> JournalEntry:
    entry.status = JournalEntry.VOIDED
    entry.voided_by = actor
    entry.voided_at = timezone.now()
    entry.void_reason = reason
    entry.save()
    return entry


def void_entry(*, entry_id: int, actor: str, reason: str) -> JournalEntry:
    actor = _require_actor(actor)
    reason = (reason or "").strip()
    if not reason:
        raise StructuralError("A void reason is required", code=RejectionCode.MISSING_REASON)

    with atomic_unit("void_entry", entry_id=entry_id):
        entry = _lock_entry(entry_id)

        if entry.status == JournalEntry.VOIDED:
            raise EntryStateError(
                f"Journal entry #{entry.entry_number} is already voided",
                code=RejectionCode.ENTRY_VOIDED,
                entry_id=entry.id,
            )
        if entry.is_system_entry:
            raise EntryStateError(
                f"Journal entry #{entry.entry_number} is a generated {entry.closing_entry_type} entry; "
                "reopen the fiscal year instead of voiding it",
                code=RejectionCode.SYSTEM_ENTRY,
                entry_id=entry.id,
            )

        monthly_period = lock_monthly_period(entry.monthly_period_id)
        if monthly_period.is_closed or monthly_period.fiscal_year.is_closed:
            raise PeriodStateError(
                f"Journal entry #{entry.entry_number} belongs to a closed period and cannot be voided",
                code=RejectionCode.PERIOD_CLOSED,
                entry_id=entry.id,
                period_id=monthly_period.id,
            )

        _mark_voided(entry, actor=actor, reason=reason)

    logger.info(
        "Journal entry voided",
        extra={"entry_number": entry.entry_number, "actor": actor, "reason": reason},
    )
    return entry


# -------------------------------------------------
# System entries (closing / opening protocol)
# -------------------------------------------------


def post_system_entry(
    *,
    entry_date: date,
    monthly_period: MonthlyPeriod,
    lines: list,
    actor: str,
    description: str,
    entry_type: str,
    source_fiscal_year=None,
    reference: str | None = None,
) -> JournalEntry:
    """
    Create an APPROVED closing / opening entry.

    Structural and balance checks still apply; the open-period gate and the
    leaf/active eligibility check do not. Callers own the transaction.
    """
    actor = _require_actor(actor)
    validated = validate_entry(
        entry_date=entry_date,
        monthly_period=monthly_period,
        lines=lines,
        system=True,
    )

    now = timezone.now()
    return _create_entry_row(
        validated=validated,
        entry_date=entry_date,
        monthly_period=monthly_period,
        description=_require_description(description),
        actor=actor,
        reference=_normalize_reference(reference),
        status=JournalEntry.APPROVED,
        approved_by=actor,
        approved_at=now,
        is_closing_entry=entry_type == JournalEntry.PERIOD_CLOSE,
        is_opening_entry=entry_type == JournalEntry.OPENING_BALANCE,
        closing_entry_type=entry_type,
        source_fiscal_year=source_fiscal_year,
    )


def void_system_entry(entry: JournalEntry, *, actor: str, reason: str) -> JournalEntry:
    """Void a generated entry during reopen / reclose. Callers own the transaction."""
    if entry.status == JournalEntry.VOIDED:
        return entry
    return _mark_voided(entry, actor=actor, reason=reason)
