# accounting/services/sequence_service.py

"""
ENTRY NUMBER SEQUENCE

Journal entry numbers come from one counter row (EntrySequence).

Guarantees:
- Atomic increment: UPDATE ... SET last_value = last_value + 1
- Read happens inside the same transaction, so two writers never see
  the same number
- First use creates the row; a concurrent creator losing the race retries
  the increment instead of failing
"""

from __future__ import annotations

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from accounting.models.sequence import EntrySequence

DEFAULT_SEQUENCE_NAME = "journal_entry_number"


def _sequence_name(name: str | None) -> str:
    return (
        name
        or getattr(settings, "ACCOUNTING_ENTRY_SEQUENCE_NAME", "")
        or DEFAULT_SEQUENCE_NAME
    )


def next_entry_number(name: str | None = None) -> int:
    seq_name = _sequence_name(name)

    with transaction.atomic():
        updated = EntrySequence.objects.filter(name=seq_name).update(
            last_value=F("last_value") + 1,
            updated_at=timezone.now(),
        )

        if updated == 0:
            try:
                with transaction.atomic():
                    EntrySequence.objects.create(name=seq_name, last_value=1)
                return 1
            except IntegrityError:
                EntrySequence.objects.filter(name=seq_name).update(
                    last_value=F("last_value") + 1,
                    updated_at=timezone.now(),
                )

        return EntrySequence.objects.values_list("last_value", flat=True).get(name=seq_name)


def peek_entry_number(name: str | None = None) -> int:
    """Last number handed out (0 when the sequence was never used)."""
    return (
        EntrySequence.objects.filter(name=_sequence_name(name))
        .values_list("last_value", flat=True)
        .first()
        or 0
    )
