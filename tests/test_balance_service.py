"""
Balance Service Tests - atomic debit, ledger, reconciliation
"""
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from src.core.exceptions import InsufficientBalanceError, ValidationError
from src.modules.balance.models import BalanceTransaction, TransactionType, UserBalance
from src.modules.balance.schemas import TopUpRequest


@pytest.mark.asyncio
async def test_get_balance_creates_zero_row(balance_service):
    user_id = uuid.uuid4()

    balance = await balance_service.get_balance(user_id)

    assert balance.user_id == user_id
    assert balance.balance == Decimal("0")
    assert balance.currency == "TRY"


@pytest.mark.asyncio
async def test_missing_balance_reads_as_zero(balance_service):
    assert await balance_service.get_available(uuid.uuid4()) == Decimal("0")


@pytest.mark.asyncio
async def test_top_up_credits_and_records_deposit(balance_service):
    user_id = uuid.uuid4()

    transaction = await balance_service.top_up(
        TopUpRequest(user_id=user_id, amount=Decimal("250"), reference="EFT-001")
    )

    assert transaction.type == TransactionType.DEPOSIT.value
    assert transaction.amount == Decimal("250")
    assert transaction.balance_after == Decimal("250")
    assert transaction.reference == "EFT-001"
    assert await balance_service.get_available(user_id) == Decimal("250")


@pytest.mark.asyncio
async def test_debit_decrements_balance(balance_service, fund):
    user_id = uuid.uuid4()
    await fund(user_id, 100)

    new_balance = await balance_service.debit(user_id, Decimal("60"))
    await balance_service.db.commit()

    assert new_balance == Decimal("40")
    assert await balance_service.get_available(user_id) == Decimal("40")


@pytest.mark.asyncio
async def test_debit_never_goes_negative(balance_service, fund):
    user_id = uuid.uuid4()
    await fund(user_id, 100)
    await balance_service.debit(user_id, Decimal("60"))
    await balance_service.db.commit()

    with pytest.raises(InsufficientBalanceError) as exc_info:
        await balance_service.debit(user_id, Decimal("60"))

    assert exc_info.value.status_code == 402
    assert exc_info.value.details["available"] == "40.00"
    assert await balance_service.get_available(user_id) == Decimal("40")


@pytest.mark.asyncio
async def test_debit_without_balance_row_is_insufficient(balance_service):
    with pytest.raises(InsufficientBalanceError):
        await balance_service.debit(uuid.uuid4(), Decimal("1"))


@pytest.mark.asyncio
async def test_debit_rejects_non_positive_amount(balance_service):
    with pytest.raises(ValidationError):
        await balance_service.debit(uuid.uuid4(), Decimal("0"))


@pytest.mark.asyncio
async def test_database_refuses_negative_balance(db_session, fund):
    user_id = uuid.uuid4()
    await fund(user_id, 10)

    with pytest.raises(IntegrityError):
        await db_session.execute(
            update(UserBalance)
            .where(UserBalance.user_id == user_id)
            .values(balance=Decimal("-1"))
        )
    await db_session.rollback()


@pytest.mark.asyncio
async def test_ledger_rows_are_append_only(balance_service, fund):
    user_id = uuid.uuid4()
    await fund(user_id, 50)

    result = await balance_service.db.execute(
        select(BalanceTransaction).where(BalanceTransaction.user_id == user_id)
    )
    row = result.scalar_one()
    row.description = "edited"

    with pytest.raises(RuntimeError, match="append-only"):
        await balance_service.db.flush()
    await balance_service.db.rollback()


@pytest.mark.asyncio
async def test_list_transactions_newest_first_and_limited(balance_service, fund):
    user_id = uuid.uuid4()
    for amount in (10, 20, 30):
        await fund(user_id, amount)

    transactions = await balance_service.list_transactions(user_id, limit=2)

    assert [t.amount for t in transactions] == [Decimal("30"), Decimal("20")]


@pytest.mark.asyncio
async def test_list_transactions_filters_by_type(balance_service, fund):
    user_id = uuid.uuid4()
    await fund(user_id, 100)
    await balance_service.debit(user_id, Decimal("15"))
    await balance_service.record(user_id, Decimal("-15"), TransactionType.COMMISSION)
    await balance_service.db.commit()

    commissions = await balance_service.list_transactions(
        user_id, transaction_type=TransactionType.COMMISSION
    )

    assert len(commissions) == 1
    assert commissions[0].amount == Decimal("-15")


@pytest.mark.asyncio
async def test_reconcile_matches_ledger(balance_service, fund):
    user_id = uuid.uuid4()
    await fund(user_id, 500)
    for _ in range(3):
        new_balance = await balance_service.debit(user_id, Decimal("150"))
        await balance_service.record(
            user_id,
            Decimal("-150"),
            TransactionType.COMMISSION,
            balance_after=new_balance,
        )
    await balance_service.db.commit()

    report = await balance_service.reconcile(user_id)

    assert report.balance == Decimal("50")
    assert report.ledger_total == Decimal("50")
    assert report.consistent is True


@pytest.mark.asyncio
async def test_reconcile_flags_untracked_change(balance_service, db_session, fund):
    user_id = uuid.uuid4()
    await fund(user_id, 100)
    await db_session.execute(
        update(UserBalance)
        .where(UserBalance.user_id == user_id)
        .values(balance=Decimal("90"))
    )
    await db_session.commit()

    report = await balance_service.reconcile(user_id)

    assert report.consistent is False
    assert report.difference == Decimal("-10")
