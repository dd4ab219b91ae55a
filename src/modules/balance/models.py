"""
Balance Module - Database Models
Per-user prepaid balance and its append-only transaction ledger.
"""
import uuid
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.core.models import Base, Money


class TransactionType(str, Enum):
    """Ledger entry type enumeration."""
    DEPOSIT = "deposit"             # Top-up
    WITHDRAWAL = "withdrawal"       # Payout to the user
    COMMISSION = "commission"       # Marketplace commission (buyer)
    REFUND = "refund"               # Reversal of an earlier debit


class TransactionStatus(str, Enum):
    """Ledger entry status enumeration."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class UserBalance(Base):
    """
    User balance.
    One row per user; the balance can never go below zero.
    """
    __tablename__ = "user_balances"

    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_non_negative"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        unique=True,
        index=True,
    )

    balance: Mapped[Decimal] = mapped_column(
        Money,
        default=Decimal("0.00"),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        default="TRY",
        nullable=False,
    )


class BalanceTransaction(Base):
    """
    Balance transaction.
    Immutable audit row; amount is signed (debits negative).
    """
    __tablename__ = "balance_transactions"

    __table_args__ = (
        Index("ix_balance_transactions_user_created", "user_id", "created_at"),
        Index("ix_balance_transactions_type", "type"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
    )

    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    job_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("jobs.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=TransactionStatus.COMPLETED.value,
        nullable=False,
    )

    # Balance after transaction
    balance_after: Mapped[Decimal | None] = mapped_column(
        Money,
        nullable=True,
    )

    reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="External reference (e.g., bank transfer receipt)",
    )


@event.listens_for(BalanceTransaction, "before_update")
def _ledger_rows_are_immutable(mapper, connection, target: BalanceTransaction) -> None:
    raise RuntimeError(
        f"balance_transactions row {target.id} is append-only and cannot be updated"
    )
