"""
Exact currency amounts.

Amounts are stored as integer minor units (cents) and exchanged as decimal
strings. 300.50 = 30050 cents. Floats are rejected everywhere: a float that
looks like 0.1 is not 0.1, and a ledger must compare amounts exactly.
"""

from decimal import Decimal, InvalidOperation
from typing import Annotated

from pydantic import BeforeValidator, PlainSerializer

CURRENCY_EXPONENT = 2
_QUANTUM = Decimal(1).scaleb(-CURRENCY_EXPONENT)
_FACTOR = 10 ** CURRENCY_EXPONENT


def _to_decimal(value) -> Decimal:
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError("Amounts must be decimal strings, not floating point numbers")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Invalid amount '{value}'")
    else:
        raise ValueError(f"Unsupported amount type: {type(value).__name__}")

    if not amount.is_finite():
        raise ValueError(f"Invalid amount '{value}'")

    if amount != amount.quantize(_QUANTUM):
        raise ValueError(
            f"Amount '{value}' has more than {CURRENCY_EXPONENT} decimal places"
        )

    return amount


def to_cents(value: Decimal | str | int) -> int:
    """
    Convert a decimal amount to integer cents, exactly.

    Raises:
        ValueError: If the value is a float, not a number, or finer than a cent
    """
    return int(_to_decimal(value) * _FACTOR)


def from_cents(cents: int) -> Decimal:
    """Integer cents to a Decimal with two places."""
    return (Decimal(cents) / _FACTOR).quantize(_QUANTUM)


def format_cents(cents: int) -> str:
    """Integer cents to the wire format, e.g. 30050 -> "300.50"."""
    return str(from_cents(cents))


# Decimal amount accepted from API payloads and serialized back as a string.
MoneyAmount = Annotated[
    Decimal,
    BeforeValidator(_to_decimal),
    PlainSerializer(lambda d: str(d.quantize(_QUANTUM)), return_type=str),
]
