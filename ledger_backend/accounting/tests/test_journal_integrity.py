# accounting/tests/test_journal_integrity.py

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalEntryLine
from accounting.services import bookkeeping
from accounting.services.exceptions import (
    BalanceError,
    EntryStateError,
    IdempotencyError,
    PeriodStateError,
    RejectionCode,
    StructuralError,
)
from accounting.services.journal_entry_service import (
    approve_entry,
    create_journal_entry,
    delete_pending_entry,
    update_pending_entry,
    void_entry,
)
from accounting.services.period_service import close_monthly_period
from accounting.services.sequence_service import next_entry_number, peek_entry_number
from accounting.tests.factories import (
    ACTOR,
    TODAY,
    build_fiscal_year,
    build_standard_chart,
    line,
    month_of,
    post_entry,
)


class JournalEntryServiceTests(TestCase):
    def setUp(self):
        self.accounts = build_standard_chart()
        self.cash = self.accounts["1.1"]
        self.sales = self.accounts["4.1"]
        self.fy = build_fiscal_year(2024)
        self.march = month_of(self.fy, 3)

    def _create(self, lines, **kwargs):
        params = {
            "entry_date": date(2024, 3, 10),
            "monthly_period_id": self.march.id,
            "lines": lines,
            "actor": ACTOR,
            "description": "Test sale",
            "today": TODAY,
        }
        params.update(kwargs)
        return create_journal_entry(**params)

    # =====================================================
    # CREATION
    # =====================================================

    def test_create_journal_entry_balanced_creates_lines(self):
        je = self._create(
            [
                line(self.cash, debit="100.00"),
                line(self.sales, credit="100.00"),
            ],
            reference="TEST:A1",
        )

        self.assertIsInstance(je, JournalEntry)
        self.assertEqual(je.status, JournalEntry.PENDING)
        self.assertEqual(je.fiscal_year_id, self.fy.id)
        self.assertEqual(je.total_debit, Decimal("100.00"))
        self.assertEqual(je.total_credit, Decimal("100.00"))

        lines = JournalEntryLine.objects.filter(journal_entry=je).order_by("line_no")
        self.assertEqual(lines.count(), 2)
        self.assertEqual([l.line_no for l in lines], [1, 2])

        debit_sum = sum((l.debit for l in lines), Decimal("0.00"))
        credit_sum = sum((l.credit for l in lines), Decimal("0.00"))
        self.assertEqual(debit_sum, Decimal("100.00"))
        self.assertEqual(credit_sum, Decimal("100.00"))

    def test_unbalanced_raises_and_writes_nothing(self):
        with self.assertRaises(BalanceError) as ctx:
            self._create(
                [
                    line(self.cash, debit="100.00"),
                    line(self.sales, credit="90.00"),
                ]
            )

        self.assertEqual(ctx.exception.code, RejectionCode.UNBALANCED)
        self.assertEqual(ctx.exception.difference, Decimal("10.00"))
        self.assertEqual(JournalEntry.objects.count(), 0)
        self.assertEqual(JournalEntryLine.objects.count(), 0)

    def test_entry_numbers_are_monotonic(self):
        first = self._create([line(self.cash, debit="1"), line(self.sales, credit="1")])
        second = self._create([line(self.cash, debit="2"), line(self.sales, credit="2")])
        third = self._create([line(self.cash, debit="3"), line(self.sales, credit="3")])

        self.assertLess(first.entry_number, second.entry_number)
        self.assertLess(second.entry_number, third.entry_number)

    def test_duplicate_reference_raises_idempotency_error(self):
        lines = [line(self.cash, debit="50"), line(self.sales, credit="50")]
        self._create(lines, reference="INV-1")

        with self.assertRaises(IdempotencyError):
            self._create(lines, reference="INV-1")

        self.assertEqual(JournalEntry.objects.count(), 1)

    def test_reference_is_reusable_after_void(self):
        lines = [line(self.cash, debit="50"), line(self.sales, credit="50")]
        je = self._create(lines, reference="INV-2")
        void_entry(entry_id=je.id, actor=ACTOR, reason="Typo")

        again = self._create(lines, reference="INV-2")
        self.assertEqual(again.reference, "INV-2")

    def test_reserved_references_are_refused(self):
        lines = [line(self.cash, debit="50"), line(self.sales, credit="50")]

        for reference in (f"PERIOD_CLOSE:{self.fy.id}", " opening_balance:7 "):
            with self.subTest(reference=reference):
                with self.assertRaises(StructuralError) as ctx:
                    self._create(lines, reference=reference)
                self.assertEqual(ctx.exception.code, RejectionCode.RESERVED_REFERENCE)

        self.assertEqual(JournalEntry.objects.count(), 0)
        self.assertEqual(self._create(lines, reference="PERIOD-CLOSE-NOTES").reference, "PERIOD-CLOSE-NOTES")

    def test_adjustment_fields_require_the_adjustment_flag(self):
        with self.assertRaises(StructuralError) as ctx:
            self._create(
                [line(self.cash, debit="5"), line(self.sales, credit="5")],
                adjustment_type="DEPRECIATION",
            )
        self.assertEqual(ctx.exception.code, RejectionCode.INVALID_ADJUSTMENT)
        self.assertEqual(JournalEntry.objects.count(), 0)

    def test_facade_creates_pending_entry(self):
        je = bookkeeping.validate_and_create_entry(
            entry_date=date(2024, 3, 12),
            period_id=self.march.id,
            lines=[line(self.cash, debit="25"), line(self.sales, credit="25")],
            actor=ACTOR,
            description="Counter sale",
            today=TODAY,
        )

        self.assertEqual(je.status, JournalEntry.PENDING)
        self.assertEqual(je.monthly_period_id, self.march.id)
        self.assertEqual(je.created_by, ACTOR)

    def test_missing_description_and_actor(self):
        lines = [line(self.cash, debit="5"), line(self.sales, credit="5")]

        with self.assertRaises(StructuralError) as ctx:
            self._create(lines, description="   ")
        self.assertEqual(ctx.exception.code, RejectionCode.MISSING_DESCRIPTION)

        with self.assertRaises(StructuralError) as ctx:
            self._create(lines, actor="")
        self.assertEqual(ctx.exception.code, RejectionCode.MISSING_ACTOR)

    # =====================================================
    # LIFECYCLE
    # =====================================================

    def test_approve_then_void(self):
        je = self._create([line(self.cash, debit="10"), line(self.sales, credit="10")])

        je = approve_entry(entry_id=je.id, actor="approver")
        self.assertEqual(je.status, JournalEntry.APPROVED)
        self.assertEqual(je.approved_by, "approver")
        self.assertIsNotNone(je.approved_at)

        je = void_entry(entry_id=je.id, actor="auditor", reason="Duplicate")
        self.assertEqual(je.status, JournalEntry.VOIDED)
        self.assertEqual(je.void_reason, "Duplicate")

    def test_approve_twice_rejected(self):
        je = post_entry(self.fy, date(2024, 3, 5), [line(self.cash, debit="10"), line(self.sales, credit="10")])

        with self.assertRaises(EntryStateError) as ctx:
            approve_entry(entry_id=je.id, actor=ACTOR)
        self.assertEqual(ctx.exception.code, RejectionCode.ENTRY_ALREADY_APPROVED)

    def test_voided_entry_cannot_be_approved_or_voided_again(self):
        je = self._create([line(self.cash, debit="10"), line(self.sales, credit="10")])
        void_entry(entry_id=je.id, actor=ACTOR, reason="Mistake")

        with self.assertRaises(EntryStateError) as ctx:
            approve_entry(entry_id=je.id, actor=ACTOR)
        self.assertEqual(ctx.exception.code, RejectionCode.ENTRY_VOIDED)

        with self.assertRaises(EntryStateError):
            void_entry(entry_id=je.id, actor=ACTOR, reason="Again")

    def test_void_requires_reason(self):
        je = self._create([line(self.cash, debit="10"), line(self.sales, credit="10")])

        with self.assertRaises(StructuralError) as ctx:
            void_entry(entry_id=je.id, actor=ACTOR, reason="  ")
        self.assertEqual(ctx.exception.code, RejectionCode.MISSING_REASON)

    def test_void_rejected_once_period_closed(self):
        je = post_entry(self.fy, date(2024, 3, 5), [line(self.cash, debit="10"), line(self.sales, credit="10")])
        close_monthly_period(period_id=self.march.id, actor=ACTOR, today=TODAY)

        with self.assertRaises(PeriodStateError):
            void_entry(entry_id=je.id, actor=ACTOR, reason="Too late")

    def test_update_pending_entry_replaces_lines(self):
        je = self._create([line(self.cash, debit="10"), line(self.sales, credit="10")])

        je = update_pending_entry(
            entry_id=je.id,
            actor=ACTOR,
            lines=[
                line(self.cash, debit="30"),
                line(self.accounts["1.2"], debit="20"),
                line(self.sales, credit="50"),
            ],
            description="Corrected sale",
            today=TODAY,
        )

        self.assertEqual(je.description, "Corrected sale")
        self.assertEqual(je.total_debit, Decimal("50.00"))
        self.assertEqual(je.lines.count(), 3)

    def test_update_and_delete_rejected_after_approval(self):
        je = post_entry(self.fy, date(2024, 3, 5), [line(self.cash, debit="10"), line(self.sales, credit="10")])

        with self.assertRaises(EntryStateError):
            update_pending_entry(entry_id=je.id, actor=ACTOR, description="changed", today=TODAY)
        with self.assertRaises(EntryStateError):
            delete_pending_entry(entry_id=je.id, actor=ACTOR)

    def test_delete_pending_entry_removes_lines(self):
        je = self._create([line(self.cash, debit="10"), line(self.sales, credit="10")])
        delete_pending_entry(entry_id=je.id, actor=ACTOR)

        self.assertFalse(JournalEntry.objects.filter(pk=je.pk).exists())
        self.assertEqual(JournalEntryLine.objects.count(), 0)

    # =====================================================
    # MODEL GUARDS
    # =====================================================

    def test_approved_entry_is_immutable_at_model_level(self):
        je = post_entry(self.fy, date(2024, 3, 5), [line(self.cash, debit="10"), line(self.sales, credit="10")])

        je.description = "Edited behind the service"
        with self.assertRaises(ValidationError):
            je.save()

        existing = je.lines.first()
        existing.description = "edited"
        with self.assertRaises(ValidationError):
            existing.save()

        with self.assertRaises(ValidationError):
            je.delete()

    def test_line_model_rejects_two_sided_amounts(self):
        je = self._create([line(self.cash, debit="10"), line(self.sales, credit="10")])

        bad = JournalEntryLine(
            journal_entry=je,
            line_no=3,
            account=self.cash,
            debit=Decimal("5.00"),
            credit=Decimal("5.00"),
        )
        with self.assertRaises(ValidationError):
            bad.save()


class EntrySequenceTests(TestCase):
    def test_numbers_increment_per_sequence(self):
        self.assertEqual(peek_entry_number("audit"), 0)
        self.assertEqual(next_entry_number("audit"), 1)
        self.assertEqual(next_entry_number("audit"), 2)
        self.assertEqual(peek_entry_number("audit"), 2)

        self.assertEqual(next_entry_number("other"), 1)
