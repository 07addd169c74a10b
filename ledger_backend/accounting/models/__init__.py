# accounting/models/__init__.py

"""
ACCOUNTING MODELS PACKAGE EXPORTS

Note:
- Keep this file *imports-only* (no business logic).
- Do NOT import services from models anywhere (models must stay pure).
"""

from accounting.models.account import Account
from accounting.models.adjustment import AdjustmentTemplate, DepreciationSchedule
from accounting.models.closing_history import ClosingHistory
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine
from accounting.models.period import FiscalYear, MonthlyPeriod
from accounting.models.sequence import EntrySequence

__all__ = [
    "Account",
    "AdjustmentTemplate",
    "DepreciationSchedule",
    "FiscalYear",
    "MonthlyPeriod",
    "JournalEntry",
    "JournalEntryLine",
    "EntrySequence",
    "ClosingHistory",
]
