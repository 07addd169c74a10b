# accounting/tests/test_closing_protocol.py

from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase, override_settings

from accounting.models.closing_history import ClosingHistory
from accounting.models.journal import JournalEntry
from accounting.models.period import FiscalYear, MonthlyPeriod, PeriodBase
from accounting.services import bookkeeping, period_lifecycle
from accounting.services.balance_service import compute_account_balances
from accounting.services.exceptions import (
    ConsistencyError,
    EntryStateError,
    PeriodStateError,
    RejectionCode,
    StructuralError,
    TransitionError,
)
from accounting.services.journal_entry_service import approve_entry, create_journal_entry, void_entry
from accounting.services.period_close_service import closing_history_for, next_fiscal_year_range
from accounting.services.period_service import create_fiscal_year
from accounting.tests.factories import (
    ACTOR,
    TODAY,
    build_fiscal_year,
    build_standard_chart,
    line,
    month_of,
    post_entry,
)


class ClosingProtocolTestBase(TestCase):
    def setUp(self):
        self.a = build_standard_chart()
        self.fy = build_fiscal_year(2024)

    def _close(self, **kwargs):
        params = {
            "period_id": self.fy.id,
            "period_type": bookkeeping.FISCAL_YEAR,
            "actor": ACTOR,
            "today": TODAY,
        }
        params.update(kwargs)
        return bookkeeping.close_period(**params)

    def _reopen(self, reason="Audit adjustment"):
        return bookkeeping.reopen_period(
            period_id=self.fy.id, period_type=bookkeeping.FISCAL_YEAR, actor="controller", reason=reason
        )

    def _post_profitable_year(self):
        post_entry(self.fy, date(2024, 1, 2), [line(self.a["1.1"], debit="100"), line(self.a["3.1"], credit="100")])
        post_entry(self.fy, date(2024, 4, 10), [line(self.a["1.1"], debit="600"), line(self.a["4.1"], credit="600")])
        post_entry(self.fy, date(2024, 6, 1), [line(self.a["5.1"], debit="200"), line(self.a["2.1"], credit="200")])
        post_entry(self.fy, date(2024, 9, 30), [line(self.a["6.1"], debit="200"), line(self.a["1.1"], credit="200")])

    def _balances(self, fiscal_year):
        return compute_account_balances(start_date=fiscal_year.start_date, end_date=fiscal_year.end_date)


class FiscalYearCloseTests(ClosingProtocolTestBase):
    def test_profit_is_closed_into_period_result(self):
        self._post_profitable_year()

        summary = self._close()

        self.assertEqual(summary.action, period_lifecycle.CLOSE)
        self.assertEqual(summary.total_revenue, Decimal("600.00"))
        self.assertEqual(summary.total_expense, Decimal("200.00"))
        self.assertEqual(summary.total_cost, Decimal("200.00"))
        self.assertEqual(summary.net_result, Decimal("200.00"))

        closing = summary.closing_entry
        self.assertEqual(closing.status, JournalEntry.APPROVED)
        self.assertTrue(closing.is_closing_entry)
        self.assertTrue(closing.is_system_entry)
        self.assertEqual(closing.entry_date, date(2024, 12, 31))
        self.assertEqual(closing.reference, f"PERIOD_CLOSE:{self.fy.id}")

        lines = {
            l.account.code: (l.debit, l.credit)
            for l in closing.lines.select_related("account")
        }
        self.assertEqual(
            lines,
            {
                "4.1": (Decimal("600.00"), Decimal("0.00")),
                "5.1": (Decimal("0.00"), Decimal("200.00")),
                "6.1": (Decimal("0.00"), Decimal("200.00")),
                "3.2": (Decimal("0.00"), Decimal("200.00")),
            },
        )

    def test_temporary_accounts_are_zero_after_close(self):
        self._post_profitable_year()
        self._close()

        balances = self._balances(self.fy)
        for code in ("4", "4.1", "5", "5.1", "6", "6.1"):
            self.assertEqual(balances[self.a[code].id], Decimal("0.00"), code)
        self.assertEqual(balances[self.a["3.2"].id], Decimal("200.00"))

    def test_loss_debits_period_result(self):
        post_entry(self.fy, date(2024, 2, 1), [line(self.a["1.1"], debit="100"), line(self.a["4.1"], credit="100")])
        post_entry(self.fy, date(2024, 2, 2), [line(self.a["5.1"], debit="300"), line(self.a["1.1"], credit="300")])

        summary = self._close()

        self.assertEqual(summary.net_result, Decimal("-200.00"))
        result_line = summary.closing_entry.lines.get(account=self.a["3.2"])
        self.assertEqual(result_line.debit, Decimal("200.00"))
        self.assertEqual(result_line.credit, Decimal("0.00"))

    def test_opening_entry_carries_permanent_balances(self):
        self._post_profitable_year()

        summary = self._close()

        next_fy = summary.next_fiscal_year
        self.assertEqual((next_fy.start_date, next_fy.end_date), (date(2025, 1, 1), date(2025, 12, 31)))
        self.assertEqual(next_fy.monthly_periods.count(), 12)

        opening = summary.opening_entry
        self.assertEqual(opening.status, JournalEntry.APPROVED)
        self.assertTrue(opening.is_opening_entry)
        self.assertEqual(opening.entry_date, date(2025, 1, 1))
        self.assertEqual(opening.source_fiscal_year_id, self.fy.id)
        self.assertEqual(opening.monthly_period, month_of(next_fy, 1))

        balances = self._balances(next_fy)
        self.assertEqual(balances[self.a["1.1"].id], Decimal("500.00"))
        self.assertEqual(balances[self.a["2.1"].id], Decimal("200.00"))
        self.assertEqual(balances[self.a["3.1"].id], Decimal("100.00"))
        self.assertEqual(balances[self.a["3.2"].id], Decimal("200.00"))
        self.assertEqual(balances[self.a["4.1"].id], Decimal("0.00"))

    def test_year_and_months_are_closed_with_history(self):
        self._post_profitable_year()

        summary = self._close()

        self.fy.refresh_from_db()
        self.assertEqual(self.fy.state, PeriodBase.CLOSED)
        self.assertFalse(self.fy.is_active)
        self.assertEqual(len(summary.closed_months), 12)
        self.assertFalse(MonthlyPeriod.objects.filter(fiscal_year=self.fy, is_closed=False).exists())

        history = closing_history_for(self.fy).get()
        self.assertEqual(history.action, ClosingHistory.CLOSE)
        self.assertEqual(history.closing_entry, summary.closing_entry)
        self.assertEqual(history.actor, ACTOR)

    def test_nothing_to_close_still_closes_the_year(self):
        summary = self._close()

        self.assertIsNone(summary.closing_entry)
        self.assertIsNone(summary.opening_entry)
        self.assertEqual(summary.net_result, Decimal("0.00"))

        self.fy.refresh_from_db()
        self.assertTrue(self.fy.is_closed)
        self.assertFalse(JournalEntry.objects.filter(is_closing_entry=True).exists())

    def test_close_without_next_period(self):
        self._post_profitable_year()

        summary = self._close(create_next_period=False)

        self.assertIsNone(summary.next_fiscal_year)
        self.assertIsNone(summary.opening_entry)
        self.assertEqual(FiscalYear.objects.count(), 1)

    def test_pending_entries_block_close(self):
        post_entry(
            self.fy, date(2024, 5, 5),
            [line(self.a["1.1"], debit="10"), line(self.a["4.1"], credit="10")],
            approve=False,
        )

        with self.assertRaises(TransitionError) as ctx:
            self._close()
        self.assertEqual(ctx.exception.code, RejectionCode.NOT_READY_TO_CLOSE)

        self.fy.refresh_from_db()
        self.assertFalse(self.fy.is_closed)

    def test_next_fiscal_year_range_keeps_length(self):
        fy = create_fiscal_year(name="FY26/27", start_date=date(2026, 7, 1), end_date=date(2027, 6, 30))
        self.assertEqual(next_fiscal_year_range(fy), (date(2027, 7, 1), date(2028, 6, 30)))


class ReopenAndRecloseTests(ClosingProtocolTestBase):
    def test_reopen_requires_reason(self):
        self._close()

        with self.assertRaises(StructuralError) as ctx:
            self._reopen(reason="   ")
        self.assertEqual(ctx.exception.code, RejectionCode.MISSING_REASON)

    def test_reopen_voids_closing_entry_and_reopens_months(self):
        self._post_profitable_year()
        summary = self._close()

        fy = self._reopen()

        self.assertEqual(fy.state, PeriodBase.REOPENED)
        self.assertTrue(fy.is_active)

        summary.closing_entry.refresh_from_db()
        self.assertEqual(summary.closing_entry.status, JournalEntry.VOIDED)
        self.assertIn("Audit adjustment", summary.closing_entry.void_reason)

        states = {m.state for m in MonthlyPeriod.objects.filter(fiscal_year=self.fy)}
        self.assertEqual(states, {PeriodBase.REOPENED})

        # temporaries are live again
        self.assertEqual(self._balances(self.fy)[self.a["4.1"].id], Decimal("600.00"))

    def test_reclose_is_idempotent(self):
        self._post_profitable_year()
        first = self._close()
        before = self._balances(first.next_fiscal_year)

        self._reopen()
        second = self._close()

        self.assertEqual(second.action, period_lifecycle.RECLOSE)
        self.assertEqual(second.next_fiscal_year, first.next_fiscal_year)
        self.assertEqual(FiscalYear.objects.count(), 2)

        live_openings = JournalEntry.objects.filter(
            is_opening_entry=True, source_fiscal_year=self.fy
        ).exclude(status=JournalEntry.VOIDED)
        self.assertEqual(live_openings.count(), 1)

        live_closings = JournalEntry.objects.filter(
            is_closing_entry=True, fiscal_year=self.fy
        ).exclude(status=JournalEntry.VOIDED)
        self.assertEqual(live_closings.count(), 1)

        self.assertEqual(self._balances(second.next_fiscal_year), before)

        actions = list(closing_history_for(self.fy).order_by("id").values_list("action", flat=True))
        self.assertEqual(actions, [ClosingHistory.CLOSE, ClosingHistory.REOPEN, ClosingHistory.RECLOSE])

    def test_reclose_picks_up_late_entries(self):
        self._post_profitable_year()
        self._close()
        self._reopen()

        post_entry(self.fy, date(2024, 6, 10), [line(self.a["1.1"], debit="50"), line(self.a["4.1"], credit="50")])
        summary = bookkeeping.reclose_period(
            period_id=self.fy.id, period_type=bookkeeping.FISCAL_YEAR, actor=ACTOR, today=TODAY
        )

        self.assertEqual(summary.net_result, Decimal("250.00"))

        balances = self._balances(summary.next_fiscal_year)
        self.assertEqual(balances[self.a["1.1"].id], Decimal("550.00"))
        self.assertEqual(balances[self.a["3.2"].id], Decimal("250.00"))

    def test_reclose_requires_reopened_year(self):
        with self.assertRaises(TransitionError) as ctx:
            bookkeeping.reclose_period(
                period_id=self.fy.id, period_type=bookkeeping.FISCAL_YEAR, actor=ACTOR, today=TODAY
            )
        self.assertEqual(ctx.exception.code, RejectionCode.NOT_REOPENED)

    def test_reopen_blocked_by_overlapping_open_year(self):
        self._close(create_next_period=False)
        create_fiscal_year(name="FY24/25", start_date=date(2024, 7, 1), end_date=date(2025, 6, 30))

        with self.assertRaises(TransitionError) as ctx:
            self._reopen()
        self.assertEqual(ctx.exception.code, RejectionCode.OVERLAPPING_ACTIVE_PERIOD)

        self.fy.refresh_from_db()
        self.assertTrue(self.fy.is_closed)


class ClosingAtomicityTests(ClosingProtocolTestBase):
    def test_failure_during_commit_rolls_everything_back(self):
        self._post_profitable_year()

        with mock.patch(
            "accounting.services.period_close_service.record_history",
            side_effect=DatabaseError("disk full"),
        ):
            with self.assertLogs("accounting.services.unit_of_work", level="ERROR"):
                with self.assertRaises(ConsistencyError):
                    self._close()

        self.fy.refresh_from_db()
        self.assertFalse(self.fy.is_closed)
        self.assertEqual(FiscalYear.objects.count(), 1)
        self.assertFalse(JournalEntry.objects.filter(is_closing_entry=True).exists())
        self.assertFalse(JournalEntry.objects.filter(is_opening_entry=True).exists())
        self.assertFalse(MonthlyPeriod.objects.filter(is_closed=True).exists())
        self.assertFalse(ClosingHistory.objects.exists())

    def test_closed_year_rejects_new_entries(self):
        self._close(create_next_period=False)

        with self.assertRaises(PeriodStateError) as ctx:
            post_entry(self.fy, date(2024, 3, 3), [line(self.a["1.1"], debit="1"), line(self.a["4.1"], credit="1")])
        self.assertEqual(ctx.exception.code, RejectionCode.FISCAL_YEAR_CLOSED)

    def test_approval_rechecks_period_state(self):
        entry = post_entry(
            self.fy, date(2024, 3, 3),
            [line(self.a["1.1"], debit="1"), line(self.a["4.1"], credit="1")],
            approve=False,
        )
        MonthlyPeriod.objects.filter(pk=month_of(self.fy, 3).pk).update(is_closed=True)

        with self.assertRaises(PeriodStateError) as ctx:
            approve_entry(entry_id=entry.id, actor=ACTOR)
        self.assertEqual(ctx.exception.code, RejectionCode.PERIOD_CLOSED)


class SystemEntryProtectionTests(ClosingProtocolTestBase):
    def test_generated_opening_entry_cannot_be_voided_directly(self):
        self._post_profitable_year()
        summary = self._close()
        opening = summary.opening_entry

        with self.assertRaises(EntryStateError) as ctx:
            void_entry(entry_id=opening.id, actor=ACTOR, reason="Looks wrong")
        self.assertEqual(ctx.exception.code, RejectionCode.SYSTEM_ENTRY)

        opening.refresh_from_db()
        self.assertEqual(opening.status, JournalEntry.APPROVED)
        self.assertEqual(self._balances(summary.next_fiscal_year)[self.a["1.1"].id], Decimal("500.00"))

    def test_caller_cannot_take_the_closing_reference(self):
        self._post_profitable_year()

        with self.assertRaises(StructuralError) as ctx:
            post_entry(
                self.fy, date(2024, 11, 5),
                [line(self.a["1.1"], debit="5"), line(self.a["4.1"], credit="5")],
                reference=f"PERIOD_CLOSE:{self.fy.id}",
            )
        self.assertEqual(ctx.exception.code, RejectionCode.RESERVED_REFERENCE)

        summary = self._close()
        self.assertEqual(summary.closing_entry.reference, f"PERIOD_CLOSE:{self.fy.id}")

    @override_settings(ACCOUNTING_OUT_OF_RANGE_DATE_POLICY="warn")
    def test_warn_policy_cannot_backdate_into_closed_year(self):
        self._post_profitable_year()
        summary = self._close()
        january = month_of(summary.next_fiscal_year, 1)

        with self.assertRaises(PeriodStateError) as ctx:
            create_journal_entry(
                entry_date=date(2024, 12, 20),
                monthly_period_id=january.id,
                lines=[line(self.a["1.1"], debit="50"), line(self.a["4.1"], credit="50")],
                actor=ACTOR,
                description="Backdated sale",
                today=TODAY,
            )
        self.assertEqual(ctx.exception.code, RejectionCode.FISCAL_YEAR_CLOSED)
        self.assertEqual(self._balances(self.fy)[self.a["4.1"].id], Decimal("0.00"))
