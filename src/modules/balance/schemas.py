"""
Balance Module - Pydantic Schemas (DTOs)
"""
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.modules.balance.models import TransactionType


class BalanceResponse(BaseModel):
    """Balance response schema."""
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    balance: Decimal
    currency: str
    updated_at: datetime


class TransactionResponse(BaseModel):
    """Ledger row response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    amount: Decimal
    type: TransactionType
    description: str | None = None
    job_id: uuid.UUID | None = None
    status: str
    balance_after: Decimal | None = None
    reference: str | None = None
    created_at: datetime


class TopUpRequest(BaseModel):
    """Schema for crediting a user's balance (admin)."""
    user_id: uuid.UUID
    amount: Decimal = Field(..., gt=0, max_digits=16, decimal_places=2)
    description: str | None = Field(None, max_length=500)
    reference: str | None = Field(None, max_length=100)


class ReconciliationResponse(BaseModel):
    """Balance vs. ledger comparison."""
    user_id: uuid.UUID
    balance: Decimal
    ledger_total: Decimal
    difference: Decimal
    consistent: bool
