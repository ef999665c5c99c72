"""Tests for exact currency amounts."""

from decimal import Decimal

import pytest
from pydantic import BaseModel

from core.money import MoneyAmount, to_cents, from_cents, format_cents


class TestToCents:

    @pytest.mark.parametrize("value,expected", [
        ("300.50", 30050),
        ("300.5", 30050),
        ("0.01", 1),
        ("1000", 100000),
        (Decimal("12.34"), 1234),
        (25, 2500),
        ("0", 0),
        ("-5.25", -525),
    ])
    def test_exact_conversion(self, value, expected):
        assert to_cents(value) == expected

    def test_rejects_float(self):
        with pytest.raises(ValueError, match="floating point"):
            to_cents(0.1)

    def test_rejects_bool(self):
        with pytest.raises(ValueError):
            to_cents(True)

    def test_rejects_sub_cent_precision(self):
        with pytest.raises(ValueError, match="decimal places"):
            to_cents("10.005")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", ""])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            to_cents(value)

    def test_tenths_add_up_exactly(self):
        """0.1 + 0.2 is exactly 0.3 in cents."""
        assert to_cents("0.1") + to_cents("0.2") == to_cents("0.3")


class TestFromCents:

    def test_two_places(self):
        assert from_cents(30050) == Decimal("300.50")
        assert str(from_cents(100)) == "1.00"

    def test_format(self):
        assert format_cents(30050) == "300.50"
        assert format_cents(0) == "0.00"
        assert format_cents(-30000) == "-300.00"


class TestMoneyAmountField:

    class _Payload(BaseModel):
        amount: MoneyAmount

    def test_accepts_decimal_string(self):
        assert self._Payload(amount="99.90").amount == Decimal("99.90")

    def test_rejects_float_in_payload(self):
        with pytest.raises(ValueError):
            self._Payload(amount=99.9)

    def test_serializes_as_two_decimal_string(self):
        assert self._Payload(amount="5").model_dump(mode="json") == {"amount": "5.00"}
