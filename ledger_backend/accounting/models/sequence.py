# accounting/models/sequence.py

"""
======================================================
PATH: accounting/models/sequence.py
======================================================
ENTRY SEQUENCE MODEL

Explicit counter row backing journal entry numbers.

Rules:
- One row per sequence name
- last_value only ever moves forward, and only through
  services.sequence_service (atomic UPDATE ... SET last_value = last_value + 1)
"""

from __future__ import annotations

from django.db import models


class EntrySequence(models.Model):
    name = models.CharField(max_length=50, unique=True)
    last_value = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Entry Sequence"
        verbose_name_plural = "Entry Sequences"

    def __str__(self):
        return f"{self.name}: {self.last_value}"
