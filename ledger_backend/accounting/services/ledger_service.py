# accounting/services/ledger_service.py

"""
LEDGER SERVICE (ACCOUNT LEDGER / RUNNING BALANCES)

Per-account ledger for a date window:

    opening balance
    + ordered movements (entry_date, entry_number, line_no), each with a running balance
    = closing balance

RULES:
- READ-ONLY
- Only APPROVED entries
- Opening balance covers the enclosing fiscal year only: earlier years reach
  it through that year's opening entry. Without an enclosing fiscal year, all
  earlier movements count.
- A parent account's ledger merges the movements of all its descendants
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from django.db.models import Sum

from accounting.models.account import Account
from accounting.models.period import FiscalYear
from accounting.money import ZERO, q2, signed_balance
from accounting.services.account_tree import AccountTree
from accounting.services.balance_service import validate_window, approved_lines


@dataclass
class LedgerMovement:
    entry_id: int
    entry_number: int
    entry_date: date
    line_no: int
    account_id: int
    account_code: str
    description: str
    debit: Decimal
    credit: Decimal
    running_balance: Decimal = ZERO


@dataclass
class AccountLedger:
    account: Account
    start_date: date
    end_date: date
    opening_balance: Decimal
    movements: list[LedgerMovement] = field(default_factory=list)
    total_debit: Decimal = ZERO
    total_credit: Decimal = ZERO
    closing_balance: Decimal = ZERO


def process_movements(
    movements: Iterable[LedgerMovement],
    *,
    opening_balance: Decimal,
    debit_nature: bool,
) -> tuple[list[LedgerMovement], Decimal]:
    """
    Stamp each movement with the running balance. Pure: no database access.

    Returns (movements, closing_balance).
    """
    balance = q2(opening_balance)
    processed = []
    for movement in movements:
        balance = q2(
            balance
            + signed_balance(
                debit=movement.debit, credit=movement.credit, debit_nature=debit_nature
            )
        )
        movement.running_balance = balance
        processed.append(movement)
    return processed, balance


def _opening_window_start(start_date: date) -> date | None:
    fiscal_year = (
        FiscalYear.objects.filter(start_date__lte=start_date, end_date__gte=start_date)
        .order_by("-start_date")
        .first()
    )
    return fiscal_year.start_date if fiscal_year else None


def get_account_ledger(*, account: Account, start_date: date, end_date: date) -> AccountLedger:
    validate_window(start_date, end_date)

    tree = AccountTree.load()
    account_ids = tree.descendant_ids(account.id)

    opening_qs = approved_lines(
        start_date=_opening_window_start(start_date), before=start_date
    ).filter(account_id__in=account_ids)
    agg = opening_qs.aggregate(debit_total=Sum("debit"), credit_total=Sum("credit"))
    opening_balance = signed_balance(
        debit=agg["debit_total"],
        credit=agg["credit_total"],
        debit_nature=account.is_debit_nature,
    )

    lines = (
        approved_lines(start_date=start_date, end_date=end_date)
        .filter(account_id__in=account_ids)
        .select_related("journal_entry", "account")
        .order_by("journal_entry__entry_date", "journal_entry__entry_number", "line_no")
    )

    movements = [
        LedgerMovement(
            entry_id=line.journal_entry_id,
            entry_number=line.journal_entry.entry_number,
            entry_date=line.journal_entry.entry_date,
            line_no=line.line_no,
            account_id=line.account_id,
            account_code=line.account.code,
            description=line.description or line.journal_entry.description,
            debit=q2(line.debit),
            credit=q2(line.credit),
        )
        for line in lines
    ]

    movements, closing_balance = process_movements(
        movements,
        opening_balance=opening_balance,
        debit_nature=account.is_debit_nature,
    )

    return AccountLedger(
        account=account,
        start_date=start_date,
        end_date=end_date,
        opening_balance=opening_balance,
        movements=movements,
        total_debit=q2(sum((m.debit for m in movements), ZERO)),
        total_credit=q2(sum((m.credit for m in movements), ZERO)),
        closing_balance=closing_balance,
    )
