# accounting/services/balance_service.py

"""
BALANCE & REPORTING SERVICE (AUTHORITATIVE)

Read-only aggregation over journal lines.

RULES:
- READ-ONLY: no writes, ever
- JournalEntryLine is the single source of truth
- Accounting timeline uses JournalEntry.entry_date
- Only APPROVED journals count (voided and pending are excluded)
- Pure recomputation: no cached balances anywhere
- Hierarchy: parent balance = own postings + sum of children (post-order)
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.db.models import Sum

from accounting.models.account import Account
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine
from accounting.money import ZERO, q2, signed_balance
from accounting.services.account_tree import AccountTree
from accounting.services.exceptions import StructuralError, RejectionCode


def validate_window(start_date: date | None, end_date: date | None) -> None:
    if start_date and end_date and start_date > end_date:
        raise StructuralError(
            f"start_date {start_date} cannot be after end_date {end_date}",
            code=RejectionCode.INVALID_DATE_RANGE,
        )


def approved_lines(
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    before: date | None = None,
):
    qs = JournalEntryLine.objects.filter(journal_entry__status=JournalEntry.APPROVED)
    if start_date is not None:
        qs = qs.filter(journal_entry__entry_date__gte=start_date)
    if end_date is not None:
        qs = qs.filter(journal_entry__entry_date__lte=end_date)
    if before is not None:
        qs = qs.filter(journal_entry__entry_date__lt=before)
    return qs


def movement_totals(qs) -> dict[int, tuple[Decimal, Decimal]]:
    """Bulk per-account (debit, credit) totals for a line queryset (no N+1)."""
    rows = qs.values("account_id").annotate(debit_total=Sum("debit"), credit_total=Sum("credit"))
    return {r["account_id"]: (q2(r["debit_total"]), q2(r["credit_total"])) for r in rows}


def _direct_balances(tree: AccountTree, totals: dict[int, tuple[Decimal, Decimal]]) -> dict[int, Decimal]:
    direct: dict[int, Decimal] = {}
    for account_id, (debit, credit) in totals.items():
        if account_id not in tree:
            continue
        account = tree.get(account_id).account
        direct[account_id] = signed_balance(
            debit=debit, credit=credit, debit_nature=account.is_debit_nature
        )
    return direct


def compute_account_balances(
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    tree: AccountTree | None = None,
) -> dict[int, Decimal]:
    """
    Balance of EVERY account (account_id -> Decimal) for approved entries dated
    in [start_date, end_date]. Accounts without movement report 0.00.

    Balance rule:
    - Debit-increasing accounts  -> debits - credits
    - Credit-increasing accounts -> credits - debits
    """
    validate_window(start_date, end_date)
    tree = tree or AccountTree.load()

    totals = movement_totals(approved_lines(start_date=start_date, end_date=end_date))
    return tree.rollup(_direct_balances(tree, totals))


def get_trial_balance(
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    include_zero: bool = True,
) -> dict:
    """
    Trial balance in chart order, with hierarchy depth and rolled-up totals.

    Grand totals only count leaf-level postings once (a parent's rollup is not
    added on top of its children).
    """
    validate_window(start_date, end_date)
    tree = AccountTree.load()
    totals = movement_totals(approved_lines(start_date=start_date, end_date=end_date))

    rolled_debit: dict[int, Decimal] = {}
    rolled_credit: dict[int, Decimal] = {}
    for account_id in tree.post_order_ids():
        node = tree.get(account_id)
        debit, credit = totals.get(account_id, (ZERO, ZERO))
        for child_id in node.children:
            debit += rolled_debit[child_id]
            credit += rolled_credit[child_id]
        rolled_debit[account_id] = q2(debit)
        rolled_credit[account_id] = q2(credit)

    balances = tree.rollup(_direct_balances(tree, totals))

    rows = []
    for account_id in tree.pre_order_ids():
        node = tree.get(account_id)
        acc = node.account
        debit = rolled_debit[account_id]
        credit = rolled_credit[account_id]
        if not include_zero and debit == ZERO and credit == ZERO:
            continue
        rows.append(
            {
                "account_id": acc.id,
                "code": acc.code,
                "name": acc.name,
                "account_type": acc.account_type,
                "depth": node.depth,
                "is_parent": not node.is_leaf or acc.is_parent,
                "debit_total": debit,
                "credit_total": credit,
                "balance": balances[account_id],
            }
        )

    total_debit = q2(sum((d for d, _ in totals.values()), ZERO))
    total_credit = q2(sum((c for _, c in totals.values()), ZERO))

    return {
        "start_date": start_date,
        "end_date": end_date,
        "rows": rows,
        "total_debit": total_debit,
        "total_credit": total_credit,
        "is_balanced": total_debit == total_credit,
    }


def get_totals_by_account_type(
    *,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict[str, Decimal]:
    validate_window(start_date, end_date)
    tree = AccountTree.load()
    direct = _direct_balances(
        tree, movement_totals(approved_lines(start_date=start_date, end_date=end_date))
    )

    result = {account_type: ZERO for account_type, _ in Account.ACCOUNT_TYPES}
    for account_id, balance in direct.items():
        account_type = tree.get(account_id).account.account_type
        result[account_type] = q2(result[account_type] + balance)
    return result


def get_net_result(*, start_date: date | None = None, end_date: date | None = None) -> Decimal:
    """
    Net result = revenue - expense - cost.

    Computed as sum(credit - debit) over temporary accounts, so a nature
    override on a single account cannot flip its sign.
    """
    validate_window(start_date, end_date)
    qs = approved_lines(start_date=start_date, end_date=end_date).filter(
        account__account_type__in=Account.TEMPORARY_TYPES
    )
    agg = qs.aggregate(debit_total=Sum("debit"), credit_total=Sum("credit"))
    return q2(q2(agg["credit_total"]) - q2(agg["debit_total"]))
