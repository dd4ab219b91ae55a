"""
Marketplace Module - API Router
"""
import uuid
from decimal import Decimal

from fastapi import APIRouter, Query, status

from src.modules.auth.dependencies import CurrentAdminDep, CurrentUserDep
from src.modules.marketplace.dependencies import JobServiceDep, SettingsServiceDep
from src.modules.marketplace.models import JobStatus
from src.modules.marketplace.schemas import (
    CompleteRequest,
    JobCreate,
    JobListResponse,
    JobResponse,
    MarketplaceConfig,
    MarketplaceConfigUpdate,
    QuoteResponse,
    ShareIBANRequest,
)

router = APIRouter(prefix="/marketplace", tags=["Marketplace"])


# ============== Settings ==============

@router.get("/settings", response_model=MarketplaceConfig)
async def get_marketplace_settings(
    current_user: CurrentUserDep,
    service: SettingsServiceDep,
) -> MarketplaceConfig:
    """Get marketplace settings."""
    return await service.get()


@router.put("/settings", response_model=MarketplaceConfig)
async def update_marketplace_settings(
    data: MarketplaceConfigUpdate,
    admin: CurrentAdminDep,
    service: SettingsServiceDep,
) -> MarketplaceConfig:
    """Update marketplace settings (admin)."""
    return await service.update(data)


# ============== Jobs ==============

@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(
    current_user: CurrentUserDep,
    service: JobServiceDep,
    job_status: JobStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=100),
    mine: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> JobListResponse:
    """
    List marketplace jobs, newest first.

    - `status`: only jobs in this state
    - `search`: matches pick-up or drop-off location
    - `mine`: only jobs where the caller is seller or buyer
    """
    jobs, total = await service.list_jobs(
        viewer_id=current_user.id,
        status=job_status,
        search=search,
        mine=mine,
        page=page,
        page_size=page_size,
    )
    return JobListResponse(
        jobs=[JobResponse.for_viewer(job, current_user.id) for job in jobs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/jobs/quote", response_model=QuoteResponse)
async def quote_job(
    current_user: CurrentUserDep,
    service: JobServiceDep,
    buyer_profit: Decimal = Query(..., gt=0),
    customer_total: Decimal = Query(..., gt=0),
) -> QuoteResponse:
    """Preview seller profit and commission under current settings."""
    priced = await service.quote(buyer_profit, customer_total)
    return QuoteResponse(
        customer_total=priced.customer_total,
        buyer_profit=priced.buyer_profit,
        seller_profit=priced.seller_profit,
        commission_percentage=priced.commission_percentage,
        commission_amount=priced.commission_amount,
    )


@router.post(
    "/jobs",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_job(
    data: JobCreate,
    current_user: CurrentUserDep,
    service: JobServiceDep,
) -> JobResponse:
    """List a new job for other drivers."""
    job = await service.create(current_user.id, data)
    return JobResponse.for_viewer(job, current_user.id)


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: uuid.UUID,
    current_user: CurrentUserDep,
    service: JobServiceDep,
) -> JobResponse:
    """Get a job."""
    job = await service.get(job_id)
    return JobResponse.for_viewer(job, current_user.id)


@router.post("/jobs/{job_id}/purchase", response_model=JobResponse)
async def purchase_job(
    job_id: uuid.UUID,
    current_user: CurrentUserDep,
    service: JobServiceDep,
) -> JobResponse:
    """Take over a job; waits for the seller's approval."""
    job = await service.purchase(job_id, current_user.id)
    return JobResponse.for_viewer(job, current_user.id)


@router.post("/jobs/{job_id}/approve", response_model=JobResponse)
async def approve_job(
    job_id: uuid.UUID,
    current_user: CurrentUserDep,
    service: JobServiceDep,
) -> JobResponse:
    """Approve the buyer; charges the commission to the buyer's balance."""
    job = await service.approve(job_id, current_user.id)
    return JobResponse.for_viewer(job, current_user.id)


@router.post("/jobs/{job_id}/reject", response_model=JobResponse)
async def reject_job(
    job_id: uuid.UUID,
    current_user: CurrentUserDep,
    service: JobServiceDep,
) -> JobResponse:
    """Reject the buyer; the job is listed again."""
    job = await service.reject(job_id, current_user.id)
    return JobResponse.for_viewer(job, current_user.id)


@router.post("/jobs/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(
    job_id: uuid.UUID,
    current_user: CurrentUserDep,
    service: JobServiceDep,
) -> JobResponse:
    """Cancel a pending purchase (buyer)."""
    job = await service.cancel(job_id, current_user.id)
    return JobResponse.for_viewer(job, current_user.id)


@router.post("/jobs/{job_id}/withdraw", response_model=JobResponse)
async def withdraw_job(
    job_id: uuid.UUID,
    current_user: CurrentUserDep,
    service: JobServiceDep,
) -> JobResponse:
    """Take an unsold job off the market (seller)."""
    job = await service.withdraw(job_id, current_user.id)
    return JobResponse.for_viewer(job, current_user.id)


@router.post("/jobs/{job_id}/iban", response_model=JobResponse)
async def share_iban(
    job_id: uuid.UUID,
    data: ShareIBANRequest,
    current_user: CurrentUserDep,
    service: JobServiceDep,
) -> JobResponse:
    """Share the IBAN that receives the payment."""
    job = await service.share_iban(job_id, current_user.id, data)
    return JobResponse.for_viewer(job, current_user.id)


@router.post("/jobs/{job_id}/complete", response_model=JobResponse)
async def complete_job(
    job_id: uuid.UUID,
    data: CompleteRequest,
    current_user: CurrentUserDep,
    service: JobServiceDep,
) -> JobResponse:
    """Confirm the payment and close the job."""
    job = await service.complete(job_id, current_user.id, data)
    return JobResponse.for_viewer(job, current_user.id)
