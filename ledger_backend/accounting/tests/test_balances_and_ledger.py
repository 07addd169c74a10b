# accounting/tests/test_balances_and_ledger.py

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.test import TestCase

from accounting.models.account import Account
from accounting.models.journal import JournalEntry
from accounting.services import bookkeeping
from accounting.services.balance_service import (
    compute_account_balances,
    get_net_result,
    get_totals_by_account_type,
    get_trial_balance,
)
from accounting.services.exceptions import RejectionCode, StructuralError
from accounting.services.journal_entry_service import void_entry
from accounting.services.ledger_service import LedgerMovement, get_account_ledger, process_movements
from accounting.tests.factories import (
    ACTOR,
    build_fiscal_year,
    build_standard_chart,
    line,
    month_of,
    post_entry,
)


class BalanceAggregationTests(TestCase):
    def setUp(self):
        self.a = build_standard_chart()
        self.fy = build_fiscal_year(2024)

        post_entry(self.fy, date(2024, 1, 2), [line(self.a["1.1"], debit="1000"), line(self.a["3.1"], credit="1000")])
        post_entry(self.fy, date(2024, 2, 10), [line(self.a["1.2"], debit="300"), line(self.a["4.1"], credit="300")])
        post_entry(self.fy, date(2024, 3, 1), [line(self.a["5.1"], debit="120"), line(self.a["1.1"], credit="120")])
        post_entry(self.fy, date(2024, 3, 15), [line(self.a["6.1"], debit="80"), line(self.a["2.1"], credit="80")])

        # pending and voided entries never count
        post_entry(
            self.fy, date(2024, 3, 20),
            [line(self.a["1.1"], debit="999"), line(self.a["4.1"], credit="999")],
            approve=False,
        )
        voided = post_entry(self.fy, date(2024, 3, 21), [line(self.a["1.1"], debit="7"), line(self.a["4.1"], credit="7")])
        void_entry(entry_id=voided.id, actor=ACTOR, reason="Duplicate")

    def test_leaf_balances_follow_nature(self):
        balances = compute_account_balances(start_date=self.fy.start_date, end_date=self.fy.end_date)

        self.assertEqual(balances[self.a["1.1"].id], Decimal("880.00"))
        self.assertEqual(balances[self.a["1.2"].id], Decimal("300.00"))
        self.assertEqual(balances[self.a["2.1"].id], Decimal("80.00"))
        self.assertEqual(balances[self.a["3.1"].id], Decimal("1000.00"))
        self.assertEqual(balances[self.a["4.1"].id], Decimal("300.00"))
        self.assertEqual(balances[self.a["5.1"].id], Decimal("120.00"))
        self.assertEqual(balances[self.a["3.2"].id], Decimal("0.00"))

    def test_parent_is_sum_of_children(self):
        balances = compute_account_balances(start_date=self.fy.start_date, end_date=self.fy.end_date)

        self.assertEqual(balances[self.a["1"].id], Decimal("1180.00"))
        self.assertEqual(
            balances[self.a["1"].id],
            balances[self.a["1.1"].id] + balances[self.a["1.2"].id],
        )
        self.assertEqual(balances[self.a["3"].id], Decimal("1000.00"))

    def test_every_account_is_reported(self):
        balances = compute_account_balances(start_date=self.fy.start_date, end_date=self.fy.end_date)
        self.assertEqual(set(balances), set(Account.objects.values_list("id", flat=True)))

    def test_window_filters_by_entry_date(self):
        balances = compute_account_balances(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        self.assertEqual(balances[self.a["1.1"].id], Decimal("1000.00"))
        self.assertEqual(balances[self.a["4.1"].id], Decimal("0.00"))

    def test_inverted_window_rejected(self):
        with self.assertRaises(StructuralError) as ctx:
            compute_account_balances(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))
        self.assertEqual(ctx.exception.code, RejectionCode.INVALID_DATE_RANGE)

    def test_recomputation_sees_voids(self):
        entry = JournalEntry.objects.get(entry_date=date(2024, 3, 1))
        before = compute_account_balances(start_date=self.fy.start_date, end_date=self.fy.end_date)

        void_entry(entry_id=entry.id, actor=ACTOR, reason="Reversed")
        after = compute_account_balances(start_date=self.fy.start_date, end_date=self.fy.end_date)

        self.assertEqual(after[self.a["5.1"].id], before[self.a["5.1"].id] - Decimal("120.00"))
        self.assertEqual(after[self.a["1.1"].id], Decimal("1000.00"))

    def test_facade_uses_period_window(self):
        march = month_of(self.fy, 3)
        balances = bookkeeping.compute_account_balances(period_id=march.id, period_type=bookkeeping.MONTH)
        self.assertEqual(balances[self.a["5.1"].id], Decimal("120.00"))
        self.assertEqual(balances[self.a["3.1"].id], Decimal("0.00"))

    def test_trial_balance_is_balanced(self):
        tb = get_trial_balance(start_date=self.fy.start_date, end_date=self.fy.end_date)

        self.assertTrue(tb["is_balanced"])
        self.assertEqual(tb["total_debit"], Decimal("1500.00"))

        rows = {row["code"]: row for row in tb["rows"]}
        self.assertTrue(rows["1"]["is_parent"])
        self.assertEqual(rows["1"]["depth"], 0)
        self.assertEqual(rows["1.1"]["depth"], 1)
        self.assertEqual(rows["1"]["debit_total"], Decimal("1300.00"))
        self.assertEqual(rows["1"]["credit_total"], Decimal("120.00"))

    def test_totals_by_type_and_net_result(self):
        totals = get_totals_by_account_type(start_date=self.fy.start_date, end_date=self.fy.end_date)

        self.assertEqual(totals[Account.ASSET], Decimal("1180.00"))
        self.assertEqual(totals[Account.REVENUE], Decimal("300.00"))
        self.assertEqual(totals[Account.EXPENSE], Decimal("120.00"))
        self.assertEqual(totals[Account.COST], Decimal("80.00"))

        net = get_net_result(start_date=self.fy.start_date, end_date=self.fy.end_date)
        self.assertEqual(net, Decimal("100.00"))


class AccountLedgerTests(TestCase):
    def setUp(self):
        self.a = build_standard_chart()
        self.fy = build_fiscal_year(2024)

        post_entry(self.fy, date(2024, 1, 5), [line(self.a["1.1"], debit="500"), line(self.a["3.1"], credit="500")])
        post_entry(self.fy, date(2024, 2, 3), [line(self.a["1.1"], debit="200"), line(self.a["4.1"], credit="200")])
        post_entry(self.fy, date(2024, 2, 3), [line(self.a["5.1"], debit="50"), line(self.a["1.1"], credit="50")])
        post_entry(self.fy, date(2024, 2, 20), [line(self.a["1.2"], debit="75"), line(self.a["4.1"], credit="75")])

    def test_opening_balance_and_running_balance(self):
        ledger = get_account_ledger(
            account=self.a["1.1"], start_date=date(2024, 2, 1), end_date=date(2024, 2, 29)
        )

        self.assertEqual(ledger.opening_balance, Decimal("500.00"))
        self.assertEqual([m.running_balance for m in ledger.movements], [Decimal("700.00"), Decimal("650.00")])
        self.assertEqual(ledger.total_debit, Decimal("200.00"))
        self.assertEqual(ledger.total_credit, Decimal("50.00"))
        self.assertEqual(ledger.closing_balance, Decimal("650.00"))

    def test_movements_are_ordered_by_date_number_line(self):
        ledger = get_account_ledger(
            account=self.a["1.1"], start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)
        )
        keys = [(m.entry_date, m.entry_number, m.line_no) for m in ledger.movements]
        self.assertEqual(keys, sorted(keys))

    def test_credit_nature_account_runs_positive_on_credits(self):
        ledger = get_account_ledger(
            account=self.a["4.1"], start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)
        )
        self.assertEqual(ledger.closing_balance, Decimal("275.00"))

    def test_parent_ledger_merges_descendants(self):
        ledger = get_account_ledger(
            account=self.a["1"], start_date=date(2024, 2, 1), end_date=date(2024, 2, 29)
        )

        self.assertEqual({m.account_code for m in ledger.movements}, {"1.1", "1.2"})
        self.assertEqual(ledger.opening_balance, Decimal("500.00"))
        self.assertEqual(ledger.closing_balance, Decimal("725.00"))

    def test_facade_get_account_ledger(self):
        ledger = bookkeeping.get_account_ledger(
            account_id=self.a["1.2"].id, start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)
        )
        self.assertEqual(ledger.closing_balance, Decimal("75.00"))

    def test_process_movements_is_pure(self):
        movements = [
            LedgerMovement(
                entry_id=1, entry_number=1, entry_date=date(2024, 1, 1), line_no=1,
                account_id=1, account_code="x", description="",
                debit=Decimal("10.00"), credit=Decimal("0.00"),
            ),
            LedgerMovement(
                entry_id=2, entry_number=2, entry_date=date(2024, 1, 2), line_no=1,
                account_id=1, account_code="x", description="",
                debit=Decimal("0.00"), credit=Decimal("4.00"),
            ),
        ]

        processed, closing = process_movements(movements, opening_balance=Decimal("1.00"), debit_nature=True)
        self.assertEqual([m.running_balance for m in processed], [Decimal("11.00"), Decimal("7.00")])
        self.assertEqual(closing, Decimal("7.00"))
