# accounting/money.py

"""
PATH: accounting/money.py

MONEY (DECIMAL AMOUNT TYPE)

Every monetary value in the accounting core is a Decimal quantized to
two places with ROUND_HALF_UP. Floats never reach arithmetic: they are
converted through str() first, so 0.1 stays 0.10 and not 0.1000000000000000055.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

# Matches DecimalField(max_digits=18, decimal_places=2) on every amount column.
MAX_DIGITS = 18


class InvalidAmountError(ValueError):
    """Raised when a value cannot be interpreted as money."""


def q2(value) -> Decimal:
    """Quantize an already-numeric value (None counts as zero)."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def money(value) -> Decimal:
    """
    Parse caller input into a 2dp Decimal.

    Blank / None -> 0.00. Booleans, non-finite values and amounts wider than
    MAX_DIGITS (after quantizing) are rejected.
    """
    if value is None or value == "":
        return ZERO

    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid money value: {value!r}")

    if isinstance(value, Decimal):
        amt = value
    else:
        try:
            amt = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise InvalidAmountError(f"Invalid money value: {value!r}") from exc

    if not amt.is_finite():
        raise InvalidAmountError(f"Invalid money value: {value!r}")

    try:
        amt = amt.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise InvalidAmountError(f"Money value out of range: {value!r}") from exc

    if len(amt.as_tuple().digits) > MAX_DIGITS:
        raise InvalidAmountError(
            f"Money value out of range: {value!r} exceeds {MAX_DIGITS} digits"
        )

    return amt


def signed_balance(*, debit, credit, debit_nature: bool) -> Decimal:
    """
    Balance rule:
    - Debit-increasing accounts  -> debits - credits
    - Credit-increasing accounts -> credits - debits
    """
    if debit_nature:
        return q2(q2(debit) - q2(credit))
    return q2(q2(credit) - q2(debit))
