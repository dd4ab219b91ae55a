"""
Marketplace Module - Pricing

Profit split and commission for a listing:

    seller_profit     = customer_total - buyer_profit
    commission_amount = round_half_up(buyer_profit * commission_percentage / 100, 2)
"""
from dataclasses import dataclass
from decimal import Decimal

from src.core.exceptions import ValidationError
from src.core.models import to_money

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Quote:
    customer_total: Decimal
    buyer_profit: Decimal
    seller_profit: Decimal
    commission_percentage: Decimal
    commission_amount: Decimal


def commission_for(buyer_profit: Decimal, commission_percentage: Decimal) -> Decimal:
    """Commission charged to the buyer, in kuruş precision."""
    return to_money(Decimal(buyer_profit) * Decimal(commission_percentage) / HUNDRED)


def quote(
    buyer_profit: Decimal,
    customer_total: Decimal,
    commission_percentage: Decimal,
) -> Quote:
    """
    Price a listing under the given commission rate.

    Raises:
        ValidationError: buyer_profit is not positive or not below customer_total
    """
    buyer_profit = to_money(buyer_profit)
    customer_total = to_money(customer_total)

    if buyer_profit <= 0:
        raise ValidationError(
            "Buyer profit must be greater than zero",
            details={"buyer_profit": str(buyer_profit)},
        )
    if buyer_profit >= customer_total:
        raise ValidationError(
            "Buyer profit must be less than the customer total",
            details={
                "buyer_profit": str(buyer_profit),
                "customer_total": str(customer_total),
            },
        )

    return Quote(
        customer_total=customer_total,
        buyer_profit=buyer_profit,
        seller_profit=customer_total - buyer_profit,
        commission_percentage=Decimal(commission_percentage),
        commission_amount=commission_for(buyer_profit, commission_percentage),
    )
