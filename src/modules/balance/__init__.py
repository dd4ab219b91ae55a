"""
Balance Module - Prepaid balances and the commission ledger.
"""
from src.modules.balance.models import (
    BalanceTransaction,
    TransactionStatus,
    TransactionType,
    UserBalance,
)

__all__ = [
    "BalanceTransaction",
    "TransactionStatus",
    "TransactionType",
    "UserBalance",
]
