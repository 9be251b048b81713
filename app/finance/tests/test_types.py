"""
Tests for money conversion and result serialization.
"""

import uuid
from decimal import Decimal

import pytest

from finance.types import PaymentResult, to_money


class TestToMoney:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("10", Decimal("10.00")),
            (0.1, Decimal("0.10")),
            ("0.005", Decimal("0.01")),
            (Decimal("-2.345"), Decimal("-2.35")),
        ],
    )
    def test_rounds_half_up_to_cents(self, value, expected):
        assert to_money(value) == expected

    @pytest.mark.parametrize("value", ["abc", None, "NaN", "Infinity", "1e30"])
    def test_invalid_values_raise_value_error(self, value):
        """Should raise ValueError, including for values too large to quantize."""
        with pytest.raises(ValueError):
            to_money(value)


class TestToDict:
    def test_money_and_ids_as_strings(self):
        payment_id = uuid.uuid4()

        data = PaymentResult(
            payment_id=payment_id, amount=Decimal("100.00"), new_balance=Decimal("-5.00")
        ).to_dict()

        assert data == {
            "payment_id": str(payment_id),
            "amount": "100.00",
            "new_balance": "-5.00",
            "replayed": False,
            "refund_of_id": None,
        }
