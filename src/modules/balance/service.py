"""
Balance Module - Business Logic Service

Low-level ledger operations (debit, credit, record) only flush; the caller
owns the transaction so a job transition and its ledger writes commit
together. Public operations (get_balance, top_up) commit themselves.
"""
import uuid
from decimal import Decimal
from typing import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import InsufficientBalanceError, ValidationError
from src.core.logging import get_logger
from src.core.metrics import record_top_up
from src.core.models import to_money
from src.core.retry import transient_retry
from src.modules.balance.models import (
    BalanceTransaction,
    TransactionStatus,
    TransactionType,
    UserBalance,
)
from src.modules.balance.schemas import ReconciliationResponse, TopUpRequest

logger = get_logger(__name__)

ZERO = Decimal("0.00")


class BalanceService:
    """Per-user balance and append-only ledger."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============== Reads ==============

    async def get_balance_row(self, user_id: uuid.UUID) -> UserBalance | None:
        """Get balance row for a user."""
        stmt = (
            select(UserBalance)
            .where(UserBalance.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_available(self, user_id: uuid.UUID) -> Decimal:
        """Current balance; a user without a row has zero."""
        result = await self.db.execute(
            select(UserBalance.balance).where(UserBalance.user_id == user_id)
        )
        value = result.scalar_one_or_none()
        return to_money(value) if value is not None else ZERO

    async def get_or_create(self, user_id: uuid.UUID) -> UserBalance:
        """Get balance row, creating a zero balance on first access."""
        row = await self.get_balance_row(user_id)
        if row is None:
            row = UserBalance(user_id=user_id, balance=ZERO, currency="TRY")
            self.db.add(row)
            await self.db.flush()
            logger.info("Balance created", user_id=str(user_id))
        return row

    @transient_retry
    async def get_balance(self, user_id: uuid.UUID) -> UserBalance:
        """Balance for the dashboard panel."""
        row = await self.get_or_create(user_id)
        await self.db.commit()
        await self.db.refresh(row)
        return row

    @transient_retry
    async def list_transactions(
        self,
        user_id: uuid.UUID,
        transaction_type: TransactionType | None = None,
        limit: int = 10,
    ) -> Sequence[BalanceTransaction]:
        """List a user's ledger rows, newest first."""
        stmt = select(BalanceTransaction).where(BalanceTransaction.user_id == user_id)
        if transaction_type:
            stmt = stmt.where(BalanceTransaction.type == transaction_type.value)
        stmt = stmt.order_by(BalanceTransaction.created_at.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return result.scalars().all()

    # ============== Ledger primitives (no commit) ==============

    async def debit(self, user_id: uuid.UUID, amount: Decimal) -> Decimal:
        """
        Atomically decrement a balance.

        Single conditional UPDATE: the floor check and the decrement happen
        in one statement, so two concurrent debits can never take the
        balance below zero. Returns the new balance.

        Raises:
            ValidationError: amount is not positive
            InsufficientBalanceError: balance < amount (nothing changes)
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError("Debit amount must be positive", details={"amount": str(amount)})

        stmt = (
            update(UserBalance)
            .where(
                UserBalance.user_id == user_id,
                UserBalance.balance >= amount,
            )
            .values(balance=UserBalance.balance - amount)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            available = await self.get_available(user_id)
            raise InsufficientBalanceError(required=amount, available=available, user_id=user_id)

        new_balance = await self.get_available(user_id)
        logger.info(
            "Balance debited",
            user_id=str(user_id),
            amount=str(amount),
            new_balance=str(new_balance),
        )
        return new_balance

    async def credit(self, user_id: uuid.UUID, amount: Decimal) -> Decimal:
        """Atomically increment a balance. Returns the new balance."""
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError("Credit amount must be positive", details={"amount": str(amount)})

        await self.get_or_create(user_id)
        stmt = (
            update(UserBalance)
            .where(UserBalance.user_id == user_id)
            .values(balance=UserBalance.balance + amount)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

        new_balance = await self.get_available(user_id)
        logger.info(
            "Balance credited",
            user_id=str(user_id),
            amount=str(amount),
            new_balance=str(new_balance),
        )
        return new_balance

    async def record(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        transaction_type: TransactionType,
        description: str | None = None,
        job_id: uuid.UUID | None = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        balance_after: Decimal | None = None,
        reference: str | None = None,
    ) -> BalanceTransaction:
        """Append one ledger row (amount is signed)."""
        transaction = BalanceTransaction(
            user_id=user_id,
            amount=to_money(amount),
            type=transaction_type.value,
            description=description,
            job_id=job_id,
            status=status.value,
            balance_after=balance_after,
            reference=reference,
        )
        self.db.add(transaction)
        await self.db.flush()
        return transaction

    # ============== Public operations ==============

    async def top_up(self, request: TopUpRequest) -> BalanceTransaction:
        """Credit a balance from an external payment (admin)."""
        new_balance = await self.credit(request.user_id, request.amount)
        transaction = await self.record(
            user_id=request.user_id,
            amount=request.amount,
            transaction_type=TransactionType.DEPOSIT,
            description=request.description or "Balance top-up",
            balance_after=new_balance,
            reference=request.reference,
        )
        await self.db.commit()
        await self.db.refresh(transaction)

        record_top_up(request.amount)
        logger.info(
            "Balance topped up",
            user_id=str(request.user_id),
            amount=str(request.amount),
            new_balance=str(new_balance),
        )
        return transaction

    @transient_retry
    async def reconcile(self, user_id: uuid.UUID) -> ReconciliationResponse:
        """Compare the stored balance with the sum of completed ledger rows."""
        balance = await self.get_available(user_id)

        result = await self.db.execute(
            select(func.coalesce(func.sum(BalanceTransaction.amount), 0)).where(
                BalanceTransaction.user_id == user_id,
                BalanceTransaction.status == TransactionStatus.COMPLETED.value,
            )
        )
        ledger_total = to_money(result.scalar_one())
        difference = balance - ledger_total

        if difference != ZERO:
            logger.warning(
                "Balance does not reconcile with ledger",
                user_id=str(user_id),
                balance=str(balance),
                ledger_total=str(ledger_total),
            )

        return ReconciliationResponse(
            user_id=user_id,
            balance=balance,
            ledger_total=ledger_total,
            difference=difference,
            consistent=difference == ZERO,
        )
