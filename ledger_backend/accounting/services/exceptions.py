# accounting/services/exceptions.py

"""
ACCOUNTING SERVICE ERRORS

Centralized domain errors for accounting services.

Every rejection carries:
- code:    an enumerable RejectionCode (stable, machine-readable)
- detail:  a human-readable message
- context: optional structured data (totals, offending accounts, period bounds)

Nothing here retries. Financial writes are not safe to retry blindly.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


class RejectionCode(str, Enum):
    # structural
    EMPTY_LINES = "EMPTY_LINES"
    INVALID_LINE = "INVALID_LINE"
    MISSING_ACCOUNT = "MISSING_ACCOUNT"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    NEGATIVE_AMOUNT = "NEGATIVE_AMOUNT"
    MISSING_AMOUNT = "MISSING_AMOUNT"
    BOTH_DEBIT_AND_CREDIT = "BOTH_DEBIT_AND_CREDIT"
    MISSING_DEBIT_LINE = "MISSING_DEBIT_LINE"
    MISSING_CREDIT_LINE = "MISSING_CREDIT_LINE"
    MISSING_DESCRIPTION = "MISSING_DESCRIPTION"
    MISSING_ACTOR = "MISSING_ACTOR"
    MISSING_REASON = "MISSING_REASON"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_PERIOD_TYPE = "INVALID_PERIOD_TYPE"
    RESERVED_REFERENCE = "RESERVED_REFERENCE"

    # balance
    UNBALANCED = "UNBALANCED"

    # account eligibility
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    ACCOUNT_IS_PARENT = "ACCOUNT_IS_PARENT"
    ACCOUNT_INELIGIBLE = "ACCOUNT_INELIGIBLE"

    # period state
    PERIOD_NOT_FOUND = "PERIOD_NOT_FOUND"
    PERIOD_CLOSED = "PERIOD_CLOSED"
    PERIOD_INACTIVE = "PERIOD_INACTIVE"
    FISCAL_YEAR_CLOSED = "FISCAL_YEAR_CLOSED"
    FISCAL_YEAR_INACTIVE = "FISCAL_YEAR_INACTIVE"
    DATE_OUT_OF_RANGE = "DATE_OUT_OF_RANGE"
    FUTURE_DATE = "FUTURE_DATE"
    PERIOD_OVERLAP = "PERIOD_OVERLAP"

    # transitions
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
    NOT_READY_TO_CLOSE = "NOT_READY_TO_CLOSE"
    OVERLAPPING_ACTIVE_PERIOD = "OVERLAPPING_ACTIVE_PERIOD"
    NOT_REOPENED = "NOT_REOPENED"
    PENDING_ENTRIES = "PENDING_ENTRIES"
    ENTRY_NOT_PENDING = "ENTRY_NOT_PENDING"
    ENTRY_ALREADY_APPROVED = "ENTRY_ALREADY_APPROVED"
    ENTRY_VOIDED = "ENTRY_VOIDED"
    SYSTEM_ENTRY = "SYSTEM_ENTRY"

    # chart of accounts
    INVALID_ACCOUNT = "INVALID_ACCOUNT"
    DUPLICATE_ACCOUNT_CODE = "DUPLICATE_ACCOUNT_CODE"
    ACCOUNT_CYCLE = "ACCOUNT_CYCLE"
    PARENT_TYPE_MISMATCH = "PARENT_TYPE_MISMATCH"
    ACCOUNT_HAS_POSTINGS = "ACCOUNT_HAS_POSTINGS"
    ACCOUNT_HAS_CHILDREN = "ACCOUNT_HAS_CHILDREN"
    ACCOUNT_IN_USE = "ACCOUNT_IN_USE"
    ACCOUNT_RESOLUTION = "ACCOUNT_RESOLUTION"

    # adjustments
    INVALID_ADJUSTMENT = "INVALID_ADJUSTMENT"
    SYSTEM_TEMPLATE = "SYSTEM_TEMPLATE"

    # misc
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE_REFERENCE = "DUPLICATE_REFERENCE"
    CONSISTENCY = "CONSISTENCY"


class AccountingServiceError(Exception):
    """Base exception for all accounting service failures."""

    default_code = RejectionCode.INVALID_LINE

    def __init__(self, detail: str, *, code: RejectionCode | None = None, **context):
        super().__init__(detail)
        self.detail = detail
        self.code = code or self.default_code
        self.context = context

    def __str__(self):
        return self.detail

    def as_dict(self) -> dict:
        return {"code": self.code.value, "detail": self.detail, **self.context}


class StructuralError(AccountingServiceError):
    """Missing account, missing amount, empty line list. Always caller-fixable."""


class BalanceError(AccountingServiceError):
    """Debits and credits do not match."""

    default_code = RejectionCode.UNBALANCED

    def __init__(self, *, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.difference = abs(total_debit - total_credit)
        super().__init__(
            f"Journal entry not balanced: debits={total_debit} "
            f"credits={total_credit} difference={self.difference}",
            total_debit=total_debit,
            total_credit=total_credit,
            difference=self.difference,
        )


class AccountEligibilityError(AccountingServiceError):
    """Inactive or parent/summary account referenced by a line."""

    default_code = RejectionCode.ACCOUNT_INELIGIBLE

    def __init__(self, offending: list[dict]):
        self.offending = offending
        codes = {row["code"] for row in offending}
        code = codes.pop() if len(codes) == 1 else RejectionCode.ACCOUNT_INELIGIBLE

        listed = ", ".join(f"{row['account_code']} ({row['code'].value})" for row in offending)
        super().__init__(
            f"Accounts not eligible for posting: {listed}",
            code=code,
            offending=offending,
        )


class PeriodStateError(AccountingServiceError):
    """Period or fiscal year closed/inactive, or entry date outside the period."""

    default_code = RejectionCode.PERIOD_CLOSED


class TransitionError(AccountingServiceError):
    """A lifecycle transition whose precondition does not hold."""

    default_code = RejectionCode.ILLEGAL_TRANSITION


class EntryStateError(TransitionError):
    """Journal entry status does not allow the requested action."""

    default_code = RejectionCode.ENTRY_NOT_PENDING


class ConsistencyError(AccountingServiceError):
    """A multi-step write failed partway and was rolled back as a whole."""

    default_code = RejectionCode.CONSISTENCY


class NotFoundError(AccountingServiceError):
    """A referenced entry, account or period does not exist."""

    default_code = RejectionCode.NOT_FOUND


class ChartOfAccountsError(AccountingServiceError):
    """Chart-of-accounts administration rule violated."""

    default_code = RejectionCode.ACCOUNT_RESOLUTION


class AccountResolutionError(ChartOfAccountsError):
    """Raised when an expected account cannot be resolved."""

    default_code = RejectionCode.ACCOUNT_RESOLUTION


class IdempotencyError(AccountingServiceError):
    """Raised on duplicate or retried accounting events."""

    default_code = RejectionCode.DUPLICATE_REFERENCE


class AdjustmentError(AccountingServiceError):
    """Adjustment template or depreciation input rejected."""

    default_code = RejectionCode.INVALID_ADJUSTMENT
