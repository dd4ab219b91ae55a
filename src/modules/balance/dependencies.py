"""
Balance Module - FastAPI Dependencies
"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.modules.balance.service import BalanceService


async def get_balance_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> BalanceService:
    """Get BalanceService instance with injected database session."""
    return BalanceService(db)


# Type alias
BalanceServiceDep = Annotated[BalanceService, Depends(get_balance_service)]
