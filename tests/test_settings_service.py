"""
Marketplace Settings Tests
"""
from decimal import Decimal

import pytest
from sqlalchemy import delete

from src.core.exceptions import MarketplaceDisabledError, NotFoundError
from src.modules.marketplace.models import MarketplaceSettings
from src.modules.marketplace.schemas import MarketplaceConfigUpdate
from src.modules.marketplace.service import MarketplaceSettingsService


@pytest.mark.asyncio
async def test_seeded_defaults(db_session):
    config = await MarketplaceSettingsService(db_session).get()

    assert config.enabled is True
    assert config.commission_percentage == Decimal("10")
    assert config.minimum_balance == Decimal("100")
    assert config.cancellation_hours == 3


@pytest.mark.asyncio
async def test_seed_is_idempotent(db_session):
    service = MarketplaceSettingsService(db_session)
    await service.update(MarketplaceConfigUpdate(commission_percentage=Decimal("12.5")))

    config = await service.seed_defaults()

    assert config.commission_percentage == Decimal("12.5")


@pytest.mark.asyncio
async def test_partial_update_keeps_other_fields(db_session):
    service = MarketplaceSettingsService(db_session)

    updated = await service.update(MarketplaceConfigUpdate(cancellation_hours=6))

    assert updated.cancellation_hours == 6
    assert updated.commission_percentage == Decimal("10")
    assert (await service.get()).cancellation_hours == 6


@pytest.mark.asyncio
async def test_missing_settings_row_is_not_found(db_session):
    await db_session.execute(delete(MarketplaceSettings))
    await db_session.commit()

    with pytest.raises(NotFoundError) as exc_info:
        await MarketplaceSettingsService(db_session).get()

    assert exc_info.value.details["identifier"] == "marketplace_config"


@pytest.mark.asyncio
async def test_update_recreates_missing_row(db_session):
    await db_session.execute(delete(MarketplaceSettings))
    await db_session.commit()

    service = MarketplaceSettingsService(db_session)
    await service.update(MarketplaceConfigUpdate(enabled=False))

    config = await service.get()
    assert config.enabled is False
    assert config.commission_percentage == Decimal("10")


@pytest.mark.asyncio
async def test_disabled_marketplace_blocks_writes_and_reads(
    db_session, job_service, job_data, fund, seller_id, buyer_id
):
    await fund(seller_id, 500)
    await fund(buyer_id, 500)
    job = await job_service.create(seller_id, job_data())
    job_id = job.id

    await MarketplaceSettingsService(db_session).update(MarketplaceConfigUpdate(enabled=False))

    with pytest.raises(MarketplaceDisabledError):
        await job_service.create(seller_id, job_data())
    with pytest.raises(MarketplaceDisabledError):
        await job_service.purchase(job_id, buyer_id)
    with pytest.raises(MarketplaceDisabledError):
        await job_service.list_jobs(buyer_id)
    with pytest.raises(MarketplaceDisabledError):
        await job_service.get(job_id)


@pytest.mark.asyncio
async def test_commission_snapshot_taken_at_creation(
    db_session, job_service, job_data, fund, seller_id
):
    await fund(seller_id, 500)
    service = MarketplaceSettingsService(db_session)

    await service.update(MarketplaceConfigUpdate(commission_percentage=Decimal("20")))
    job = await job_service.create(seller_id, job_data())
    await service.update(MarketplaceConfigUpdate(commission_percentage=Decimal("5")))

    stored = await job_service.get(job.id)
    assert stored.commission_percentage == Decimal("20")
    assert stored.commission_amount == Decimal("300")
