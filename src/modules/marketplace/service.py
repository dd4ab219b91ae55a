"""
Marketplace Module - Business Logic Service

Every state transition is a conditional UPDATE guarded by the expected
source status; a transition that matches no row lost a race (or was
never valid) and is reported as InvalidStateTransitionError.
"""
import uuid
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings as app_settings
from src.core.exceptions import (
    AuthorizationError,
    CagriException,
    InsufficientBalanceError,
    InvalidStateTransitionError,
    MarketplaceDisabledError,
    NotFoundError,
    ValidationError,
)
from src.core.logging import get_logger
from src.core.metrics import record_commission, record_transition
from src.core.models import utc_now
from src.core.retry import transient_retry
from src.modules.balance.models import TransactionType
from src.modules.balance.service import BalanceService
from src.modules.marketplace.events import JobEvent, JobEventBroadcaster, broadcaster
from src.modules.marketplace.models import (
    SETTINGS_KEY,
    Job,
    JobStatus,
    MarketplaceSettings,
    PaymentType,
)
from src.modules.marketplace.pricing import Quote, quote
from src.modules.marketplace.schemas import (
    CompleteRequest,
    JobCreate,
    MarketplaceConfig,
    MarketplaceConfigUpdate,
    ShareIBANRequest,
)

logger = get_logger(__name__)


def default_config() -> MarketplaceConfig:
    """Initial marketplace settings from application configuration."""
    return MarketplaceConfig(
        enabled=app_settings.marketplace_enabled,
        commission_percentage=app_settings.marketplace_commission_percentage,
        minimum_balance=app_settings.marketplace_minimum_balance,
        cancellation_hours=app_settings.marketplace_cancellation_hours,
    )


class MarketplaceSettingsService:
    """Singleton marketplace configuration row."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_row(self) -> MarketplaceSettings | None:
        result = await self.db.execute(
            select(MarketplaceSettings)
            .where(MarketplaceSettings.key == SETTINGS_KEY)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self) -> MarketplaceConfig:
        """Current settings snapshot."""
        row = await self._get_row()
        if row is None:
            raise NotFoundError("MarketplaceSettings", SETTINGS_KEY)
        return MarketplaceConfig.model_validate(row.value)

    async def seed_defaults(self) -> MarketplaceConfig:
        """Insert default settings if the row does not exist yet."""
        row = await self._get_row()
        if row is not None:
            return MarketplaceConfig.model_validate(row.value)

        config = default_config()
        self.db.add(
            MarketplaceSettings(
                key=SETTINGS_KEY,
                value=config.model_dump(mode="json"),
                description="Job marketplace configuration",
            )
        )
        await self.db.commit()
        logger.info("Marketplace settings seeded", **config.model_dump(mode="json"))
        return config

    @transient_retry
    async def update(self, changes: MarketplaceConfigUpdate) -> MarketplaceConfig:
        """Apply a partial update (admin). Missing row is created."""
        row = await self._get_row()
        current = (
            MarketplaceConfig.model_validate(row.value) if row else default_config()
        )
        merged = MarketplaceConfig.model_validate(
            {
                **current.model_dump(),
                **changes.model_dump(exclude_unset=True, exclude_none=True),
            }
        )

        if row is None:
            row = MarketplaceSettings(key=SETTINGS_KEY, value={})
            self.db.add(row)
        # New dict so the JSON column is flagged dirty
        row.value = merged.model_dump(mode="json")

        await self.db.commit()
        logger.info("Marketplace settings updated", **merged.model_dump(mode="json"))
        return merged


class JobService:
    """Job lifecycle state machine."""

    def __init__(
        self,
        db: AsyncSession,
        events: JobEventBroadcaster = broadcaster,
    ):
        self.db = db
        self.events = events
        self.balances = BalanceService(db)
        self.settings = MarketplaceSettingsService(db)

    # ============== Helpers ==============

    async def _get_job(self, job_id: uuid.UUID) -> Job:
        result = await self.db.execute(
            select(Job)
            .where(Job.id == job_id)
            .execution_options(populate_existing=True)
        )
        job = result.scalar_one_or_none()
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    async def _require_enabled(self) -> MarketplaceConfig:
        config = await self.settings.get()
        if not config.enabled:
            raise MarketplaceDisabledError()
        return config

    async def _transition(
        self,
        job: Job,
        operation: str,
        expected: JobStatus,
        values: dict[str, Any],
        *extra_conditions: Any,
    ) -> Job:
        """
        Move a job out of ``expected`` in a single conditional UPDATE.

        Does not commit. When no row matched, the transaction is rolled
        back and InvalidStateTransitionError reports the stored status.
        """
        job_id = job.id
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status == expected.value, *extra_conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            current_status = (await self._get_job(job_id)).status
            await self.db.rollback()
            raise InvalidStateTransitionError(operation, current_status, expected.value)
        return await self._get_job(job_id)

    async def _commit(self, job: Job, event: str) -> Job:
        await self.db.commit()
        await self.db.refresh(job)
        record_transition(event, job.status)
        self.events.publish(
            JobEvent(
                job_id=job.id,
                event=event,
                status=job.status,
                seller_id=job.seller_id,
                buyer_id=job.buyer_id,
            )
        )
        return job

    # ============== Reads ==============

    @transient_retry
    async def get(self, job_id: uuid.UUID) -> Job:
        """Get job by ID; gated like the listing."""
        await self._require_enabled()
        return await self._get_job(job_id)

    @transient_retry
    async def list_jobs(
        self,
        viewer_id: uuid.UUID,
        status: JobStatus | None = None,
        search: str | None = None,
        mine: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[Sequence[Job], int]:
        """List jobs newest first, with optional filters."""
        await self._require_enabled()

        conditions = []
        if status:
            conditions.append(Job.status == status.value)
        if mine:
            conditions.append(or_(Job.seller_id == viewer_id, Job.buyer_id == viewer_id))
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(Job.from_location.ilike(pattern), Job.to_location.ilike(pattern))
            )

        count_query = select(func.count(Job.id)).where(*conditions)
        total = (await self.db.execute(count_query)).scalar() or 0

        query = (
            select(Job)
            .where(*conditions)
            .order_by(Job.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.db.execute(query)
        return result.scalars().all(), total

    async def quote(self, buyer_profit: Decimal, customer_total: Decimal) -> Quote:
        """Price preview under current settings."""
        config = await self.settings.get()
        return quote(buyer_profit, customer_total, config.commission_percentage)

    # ============== Transitions ==============

    async def create(self, seller_id: uuid.UUID, data: JobCreate) -> Job:
        """
        List a new job in ``available``.

        Profit split and commission are frozen from the current settings.
        The seller's balance must cover the commission, but nothing is
        debited at this point.
        """
        config = await self._require_enabled()
        priced = quote(data.buyer_profit, data.customer_total, config.commission_percentage)

        available = await self.balances.get_available(seller_id)
        if available < priced.commission_amount:
            raise InsufficientBalanceError(
                required=priced.commission_amount,
                available=available,
                user_id=seller_id,
            )

        job = Job(
            seller_id=seller_id,
            from_location=data.from_location,
            to_location=data.to_location,
            vehicle_type=data.vehicle_type.value,
            job_datetime=data.job_datetime,
            description=data.description,
            customer_total=priced.customer_total,
            buyer_profit=priced.buyer_profit,
            seller_profit=priced.seller_profit,
            commission_percentage=priced.commission_percentage,
            commission_amount=priced.commission_amount,
            payment_type=data.payment_type.value,
            status=JobStatus.AVAILABLE.value,
            buyer_phone=data.buyer_phone,
            buyer_phone_revealed=False,
            iban_revealed=False,
        )
        self.db.add(job)
        await self.db.flush()

        logger.info(
            "Job created",
            job_id=str(job.id),
            seller_id=str(seller_id),
            buyer_profit=str(priced.buyer_profit),
            commission_amount=str(priced.commission_amount),
        )
        return await self._commit(job, "created")

    async def purchase(self, job_id: uuid.UUID, buyer_id: uuid.UUID) -> Job:
        """
        Take over an available job; it waits for the seller's approval.

        Only one of any number of concurrent buyers wins: the status
        predicate on the UPDATE lets exactly one statement match.
        """
        job = await self._get_job(job_id)
        await self._require_enabled()

        if job.seller_id == buyer_id:
            raise AuthorizationError(
                "Sellers cannot purchase their own job",
                details={"job_id": str(job_id)},
            )

        available = await self.balances.get_available(buyer_id)
        if available < job.commission_amount:
            raise InsufficientBalanceError(
                required=job.commission_amount,
                available=available,
                user_id=buyer_id,
            )

        job = await self._transition(
            job,
            "purchase",
            JobStatus.AVAILABLE,
            {
                "status": JobStatus.PENDING_APPROVAL.value,
                "buyer_id": buyer_id,
                "purchased_at": utc_now(),
            },
        )
        logger.info("Job purchased", job_id=str(job_id), buyer_id=str(buyer_id))
        return await self._commit(job, "purchased")

    async def approve(self, job_id: uuid.UUID, seller_id: uuid.UUID) -> Job:
        """
        Seller accepts the buyer.

        Status change, commission debit and ledger row share one
        transaction: if the debit fails nothing is persisted.
        """
        job = await self._get_job(job_id)
        if job.seller_id != seller_id:
            raise AuthorizationError(
                "Only the seller can approve this job",
                details={"job_id": str(job_id)},
            )

        try:
            job = await self._transition(
                job,
                "approve",
                JobStatus.PENDING_APPROVAL,
                {
                    "status": JobStatus.APPROVED.value,
                    "buyer_phone_revealed": True,
                    "approved_at": utc_now(),
                },
            )

            commission = job.commission_amount
            if commission > 0:
                new_balance = await self.balances.debit(job.buyer_id, commission)
                await self.balances.record(
                    user_id=job.buyer_id,
                    amount=-commission,
                    transaction_type=TransactionType.COMMISSION,
                    description=f"Commission: {job.from_location} → {job.to_location}",
                    job_id=job.id,
                    balance_after=new_balance,
                )
        except CagriException:
            await self.db.rollback()
            raise

        logger.info(
            "Job approved",
            job_id=str(job_id),
            buyer_id=str(job.buyer_id),
            commission_amount=str(commission),
        )
        job = await self._commit(job, "approved")
        if commission > 0:
            record_commission(commission)
        return job

    async def reject(self, job_id: uuid.UUID, seller_id: uuid.UUID) -> Job:
        """Seller turns the buyer down; the job is listed again."""
        job = await self._get_job(job_id)
        if job.seller_id != seller_id:
            raise AuthorizationError(
                "Only the seller can reject this job",
                details={"job_id": str(job_id)},
            )

        job = await self._transition(
            job,
            "reject",
            JobStatus.PENDING_APPROVAL,
            {
                "status": JobStatus.AVAILABLE.value,
                "buyer_id": None,
                "purchased_at": None,
            },
        )
        logger.info("Job rejected", job_id=str(job_id), seller_id=str(seller_id))
        return await self._commit(job, "rejected")

    async def cancel(self, job_id: uuid.UUID, buyer_id: uuid.UUID) -> Job:
        """Buyer withdraws a pending purchase; the job is listed again."""
        job = await self._get_job(job_id)
        if job.status != JobStatus.PENDING_APPROVAL.value:
            raise InvalidStateTransitionError(
                "cancel", job.status, JobStatus.PENDING_APPROVAL.value
            )
        if job.buyer_id != buyer_id:
            raise AuthorizationError(
                "Only the buyer can cancel this purchase",
                details={"job_id": str(job_id)},
            )

        job = await self._transition(
            job,
            "cancel",
            JobStatus.PENDING_APPROVAL,
            {
                "status": JobStatus.AVAILABLE.value,
                "buyer_id": None,
                "purchased_at": None,
            },
            Job.buyer_id == buyer_id,
        )
        logger.info("Purchase cancelled", job_id=str(job_id), buyer_id=str(buyer_id))
        return await self._commit(job, "cancelled_by_buyer")

    async def withdraw(self, job_id: uuid.UUID, seller_id: uuid.UUID) -> Job:
        """Seller takes an unsold listing off the market (terminal)."""
        job = await self._get_job(job_id)
        if job.seller_id != seller_id:
            raise AuthorizationError(
                "Only the seller can withdraw this job",
                details={"job_id": str(job_id)},
            )

        job = await self._transition(
            job,
            "withdraw",
            JobStatus.AVAILABLE,
            {
                "status": JobStatus.CANCELLED.value,
                "cancelled_at": utc_now(),
            },
        )
        logger.info("Job withdrawn", job_id=str(job_id), seller_id=str(seller_id))
        return await self._commit(job, "withdrawn")

    async def share_iban(
        self,
        job_id: uuid.UUID,
        user_id: uuid.UUID,
        data: ShareIBANRequest,
    ) -> Job:
        """
        Disclose the receiving party's IBAN.

        Cash jobs: the buyer collects the fare, so the seller shares.
        Prepaid jobs: the seller already holds the fare, so the buyer shares.
        The first share reveals the IBAN to both parties.
        """
        job = await self._get_job(job_id)
        if job.status != JobStatus.APPROVED.value:
            raise InvalidStateTransitionError(
                "share IBAN for", job.status, JobStatus.APPROVED.value
            )

        if job.payment_type == PaymentType.CASH.value:
            sharer_id, prefix = job.seller_id, "seller"
        else:
            sharer_id, prefix = job.buyer_id, "buyer"

        if user_id != sharer_id:
            raise AuthorizationError(
                f"Only the {prefix} shares the IBAN for {job.payment_type} jobs",
                details={"job_id": str(job_id), "payment_type": job.payment_type},
            )
        if job.iban_revealed:
            raise InvalidStateTransitionError(
                "share IBAN for", "approved (IBAN already shared)", JobStatus.APPROVED.value
            )

        job = await self._transition(
            job,
            "share IBAN for",
            JobStatus.APPROVED,
            {
                f"{prefix}_iban": data.iban,
                f"{prefix}_account_name": data.account_name,
                "iban_revealed": True,
            },
            Job.iban_revealed.is_(False),
        )
        logger.info("IBAN shared", job_id=str(job_id), party=prefix)
        return await self._commit(job, "iban_shared")

    async def complete(
        self,
        job_id: uuid.UUID,
        user_id: uuid.UUID,
        data: CompleteRequest,
    ) -> Job:
        """Either party confirms the off-platform payment happened (terminal)."""
        job = await self._get_job(job_id)
        if not job.is_party(user_id):
            raise AuthorizationError(
                "Only the seller or the buyer can complete this job",
                details={"job_id": str(job_id)},
            )
        if not data.payment_confirmed:
            raise ValidationError(
                "Payment must be confirmed to complete the job",
                details={"payment_confirmed": False},
            )
        if job.status == JobStatus.APPROVED.value and not job.iban_revealed:
            raise InvalidStateTransitionError(
                "complete", "approved (IBAN not shared)", JobStatus.APPROVED.value
            )

        job = await self._transition(
            job,
            "complete",
            JobStatus.APPROVED,
            {
                "status": JobStatus.COMPLETED.value,
                "completed_at": utc_now(),
            },
            Job.iban_revealed.is_(True),
        )
        logger.info("Job completed", job_id=str(job_id), confirmed_by=str(user_id))
        return await self._commit(job, "completed")
