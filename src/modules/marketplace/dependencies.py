"""
Marketplace Module - FastAPI Dependencies
"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.modules.marketplace.service import JobService, MarketplaceSettingsService


async def get_job_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> JobService:
    """Get JobService instance with injected database session."""
    return JobService(db)


async def get_settings_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MarketplaceSettingsService:
    """Get MarketplaceSettingsService instance with injected database session."""
    return MarketplaceSettingsService(db)


# Type aliases
JobServiceDep = Annotated[JobService, Depends(get_job_service)]
SettingsServiceDep = Annotated[MarketplaceSettingsService, Depends(get_settings_service)]
