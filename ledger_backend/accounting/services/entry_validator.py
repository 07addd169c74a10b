# accounting/services/entry_validator.py

"""
======================================================
PATH: accounting/services/entry_validator.py
======================================================
JOURNAL ENTRY VALIDATOR

Every journal entry (manual or system-generated) passes through here
before anything is written.

Check order (first failing category is reported):
1. Structural   lines present, account referenced, amounts parse,
                no negatives, exactly one side per line, >= 1 debit and >= 1 credit
2. Balance      sum(debit) == sum(credit) after 2dp rounding (exact)
3. Eligibility  every account exists, is active and is a leaf
                (ALL offending accounts are reported at once)
4. Period/date  month + fiscal year open and active, date not in the future,
                date inside the month (reject | warn policy)

System entries (closing / opening) skip 3 and 4.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from accounting.models.account import Account
from accounting.models.period import MonthlyPeriod
from accounting.money import MAX_DIGITS, ZERO, InvalidAmountError, money, q2
from accounting.services.exceptions import (
    AccountEligibilityError,
    BalanceError,
    RejectionCode,
    StructuralError,
)
from accounting.services.period_lock import assert_period_open, check_entry_date


@dataclass
class ValidatedLine:
    line_no: int
    account: Account
    debit: Decimal
    credit: Decimal
    description: str = ""


@dataclass
class ValidatedEntry:
    lines: list[ValidatedLine]
    total_debit: Decimal
    total_credit: Decimal
    warnings: list[str] = field(default_factory=list)


def _parse_amount(raw, *, line_no: int, side: str) -> Decimal:
    try:
        return money(raw)
    except InvalidAmountError as exc:
        raise StructuralError(
            f"Line {line_no}: invalid {side} amount {raw!r}",
            code=RejectionCode.INVALID_AMOUNT,
            line_no=line_no,
        ) from exc


def _account_ref(line: Mapping, line_no: int) -> int:
    account = line.get("account")
    if account is not None:
        account_id = getattr(account, "pk", None)
        if account_id is None:
            raise StructuralError(
                f"Line {line_no}: account must be a saved Account",
                code=RejectionCode.MISSING_ACCOUNT,
                line_no=line_no,
            )
        return account_id

    account_id = line.get("account_id")
    if account_id in (None, ""):
        raise StructuralError(
            f"Line {line_no}: account is required",
            code=RejectionCode.MISSING_ACCOUNT,
            line_no=line_no,
        )
    try:
        return int(account_id)
    except (TypeError, ValueError) as exc:
        raise StructuralError(
            f"Line {line_no}: invalid account id {account_id!r}",
            code=RejectionCode.INVALID_LINE,
            line_no=line_no,
        ) from exc


def _check_structure(lines) -> list[dict]:
    if not lines:
        raise StructuralError(
            "Journal entry must contain at least one line",
            code=RejectionCode.EMPTY_LINES,
        )

    parsed: list[dict] = []
    for line_no, line in enumerate(lines, start=1):
        if not isinstance(line, Mapping):
            raise StructuralError(
                f"Line {line_no}: each line must be a mapping",
                code=RejectionCode.INVALID_LINE,
                line_no=line_no,
            )

        account_id = _account_ref(line, line_no)
        debit = _parse_amount(line.get("debit"), line_no=line_no, side="debit")
        credit = _parse_amount(line.get("credit"), line_no=line_no, side="credit")

        if debit < 0 or credit < 0:
            raise StructuralError(
                f"Line {line_no}: debit or credit cannot be negative",
                code=RejectionCode.NEGATIVE_AMOUNT,
                line_no=line_no,
            )
        if debit > 0 and credit > 0:
            raise StructuralError(
                f"Line {line_no}: a line cannot have both debit and credit",
                code=RejectionCode.BOTH_DEBIT_AND_CREDIT,
                line_no=line_no,
            )
        if debit == 0 and credit == 0:
            raise StructuralError(
                f"Line {line_no}: a line must have either debit or credit",
                code=RejectionCode.MISSING_AMOUNT,
                line_no=line_no,
            )

        parsed.append(
            {
                "line_no": line_no,
                "account_id": account_id,
                "debit": debit,
                "credit": credit,
                "description": str(line.get("description") or "").strip(),
            }
        )

    if not any(row["debit"] > 0 for row in parsed):
        raise StructuralError(
            "Journal entry needs at least one debit line",
            code=RejectionCode.MISSING_DEBIT_LINE,
        )
    if not any(row["credit"] > 0 for row in parsed):
        raise StructuralError(
            "Journal entry needs at least one credit line",
            code=RejectionCode.MISSING_CREDIT_LINE,
        )

    return parsed


def _check_balance(parsed: list[dict]) -> tuple[Decimal, Decimal]:
    total_debit = q2(sum((row["debit"] for row in parsed), ZERO))
    total_credit = q2(sum((row["credit"] for row in parsed), ZERO))

    for side, total in (("debit", total_debit), ("credit", total_credit)):
        if len(total.as_tuple().digits) > MAX_DIGITS:
            raise StructuralError(
                f"Total {side} {total} exceeds {MAX_DIGITS} digits",
                code=RejectionCode.INVALID_AMOUNT,
            )

    if total_debit != total_credit:
        raise BalanceError(total_debit=total_debit, total_credit=total_credit)

    return total_debit, total_credit


def _load_accounts(parsed: list[dict]) -> dict[int, Account]:
    wanted = {row["account_id"] for row in parsed}
    accounts = Account.objects.in_bulk(list(wanted))

    missing = sorted(str(a) for a in wanted if a not in accounts)
    if missing:
        raise StructuralError(
            f"Accounts not found: {', '.join(missing)}",
            code=RejectionCode.ACCOUNT_NOT_FOUND,
            account_ids=missing,
        )
    return accounts


def _check_eligibility(accounts: dict[int, Account]) -> None:
    offending: list[dict] = []
    for account in sorted(accounts.values(), key=lambda a: a.code):
        if not account.is_active:
            offending.append(
                {"account_id": account.id, "account_code": account.code, "code": RejectionCode.ACCOUNT_INACTIVE}
            )
        elif account.is_parent or account.children.exists():
            offending.append(
                {"account_id": account.id, "account_code": account.code, "code": RejectionCode.ACCOUNT_IS_PARENT}
            )

    if offending:
        raise AccountEligibilityError(offending)


def validate_entry(
    *,
    entry_date: date,
    monthly_period: MonthlyPeriod,
    lines,
    today: date | None = None,
    date_policy: str | None = None,
    system: bool = False,
) -> ValidatedEntry:
    parsed = _check_structure(lines)
    total_debit, total_credit = _check_balance(parsed)
    accounts = _load_accounts(parsed)

    warnings: list[str] = []
    if not system:
        _check_eligibility(accounts)
        assert_period_open(monthly_period)
        warnings = check_entry_date(
            entry_date=entry_date,
            monthly_period=monthly_period,
            today=today,
            policy=date_policy,
        )

    validated = [
        ValidatedLine(
            line_no=row["line_no"],
            account=accounts[row["account_id"]],
            debit=row["debit"],
            credit=row["credit"],
            description=row["description"],
        )
        for row in parsed
    ]

    return ValidatedEntry(
        lines=validated,
        total_debit=total_debit,
        total_credit=total_credit,
        warnings=warnings,
    )
