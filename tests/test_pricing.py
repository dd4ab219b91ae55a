"""
Pricing Tests - profit split and commission
"""
from decimal import Decimal

import pytest

from src.core.exceptions import ValidationError
from src.modules.marketplace.pricing import commission_for, quote


def test_quote_splits_profit_and_computes_commission():
    priced = quote(Decimal("1500"), Decimal("2500"), Decimal("10"))

    assert priced.seller_profit == Decimal("1000.00")
    assert priced.commission_amount == Decimal("150.00")
    assert priced.customer_total - priced.buyer_profit == priced.seller_profit


def test_quote_rejects_buyer_profit_above_total():
    with pytest.raises(ValidationError) as exc_info:
        quote(Decimal("2500"), Decimal("2000"), Decimal("10"))

    assert exc_info.value.code == "VALIDATION_ERROR"
    assert exc_info.value.details["buyer_profit"] == "2500.00"


def test_quote_rejects_buyer_profit_equal_to_total():
    with pytest.raises(ValidationError):
        quote(Decimal("2000"), Decimal("2000"), Decimal("10"))


def test_quote_rejects_non_positive_buyer_profit():
    with pytest.raises(ValidationError):
        quote(Decimal("0"), Decimal("2000"), Decimal("10"))


@pytest.mark.parametrize(
    ("buyer_profit", "percentage", "expected"),
    [
        ("1500", "10", "150.00"),
        ("333.33", "10", "33.33"),
        ("0.05", "10", "0.01"),     # 0.005 rounds half-up
        ("1234.56", "7.5", "92.59"),
        ("1500", "0", "0.00"),
        ("1500", "100", "1500.00"),
    ],
)
def test_commission_rounds_half_up_to_two_places(buyer_profit, percentage, expected):
    assert commission_for(Decimal(buyer_profit), Decimal(percentage)) == Decimal(expected)
