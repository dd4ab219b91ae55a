"""
Balance Module - API Router
"""
import uuid

from fastapi import APIRouter, Query, status

from src.modules.auth.dependencies import CurrentAdminDep, CurrentUserDep
from src.modules.balance.dependencies import BalanceServiceDep
from src.modules.balance.models import TransactionType
from src.modules.balance.schemas import (
    BalanceResponse,
    ReconciliationResponse,
    TopUpRequest,
    TransactionResponse,
)

router = APIRouter(prefix="/balance", tags=["Balance"])


@router.get("", response_model=BalanceResponse)
async def get_my_balance(
    current_user: CurrentUserDep,
    service: BalanceServiceDep,
) -> BalanceResponse:
    """Get the caller's balance (created at zero on first access)."""
    balance = await service.get_balance(current_user.id)
    return BalanceResponse.model_validate(balance)


@router.get("/transactions", response_model=list[TransactionResponse])
async def list_my_transactions(
    current_user: CurrentUserDep,
    service: BalanceServiceDep,
    transaction_type: TransactionType | None = None,
    limit: int = Query(10, ge=1, le=100),
) -> list[TransactionResponse]:
    """List the caller's ledger rows, newest first."""
    transactions = await service.list_transactions(
        current_user.id,
        transaction_type=transaction_type,
        limit=limit,
    )
    return [TransactionResponse.model_validate(t) for t in transactions]


@router.post(
    "/top-up",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def top_up_balance(
    request: TopUpRequest,
    admin: CurrentAdminDep,
    service: BalanceServiceDep,
) -> TransactionResponse:
    """Credit a user's balance after an approved payment (admin)."""
    transaction = await service.top_up(request)
    return TransactionResponse.model_validate(transaction)


@router.get("/{user_id}/reconcile", response_model=ReconciliationResponse)
async def reconcile_balance(
    user_id: uuid.UUID,
    admin: CurrentAdminDep,
    service: BalanceServiceDep,
) -> ReconciliationResponse:
    """Check a user's balance against the sum of their ledger (admin)."""
    return await service.reconcile(user_id)
