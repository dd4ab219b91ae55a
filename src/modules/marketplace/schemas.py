"""
Marketplace Module - Pydantic Schemas (DTOs)
"""
import re
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.modules.marketplace.models import Job, JobStatus, PaymentType, VehicleType

IBAN_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]{11,30}$")
PHONE_PATTERN = re.compile(r"^\+?[0-9 ()-]{10,20}$")


def normalize_iban(value: str) -> str:
    """
    Strip spaces, upper-case and verify the ISO 13616 mod-97 checksum.

    Raises:
        ValueError: malformed IBAN or bad check digits
    """
    iban = value.replace(" ", "").upper()
    if not IBAN_PATTERN.match(iban):
        raise ValueError("IBAN format is invalid")

    rearranged = iban[4:] + iban[:4]
    digits = "".join(str(int(ch, 36)) for ch in rearranged)
    if int(digits) % 97 != 1:
        raise ValueError("IBAN checksum is invalid")
    return iban


def mask_phone(phone: str) -> str:
    """Hide all but the operator prefix digit: ``+90 5** *** ** **``."""
    if not phone:
        return ""
    cleaned = re.sub(r"\D", "", phone)
    if len(cleaned) < 10:
        return phone
    return f"+90 {cleaned[2:3]}** *** ** **"


# ============== Settings ==============

class MarketplaceConfig(BaseModel):
    """Marketplace settings snapshot."""
    enabled: bool = True
    commission_percentage: Decimal = Field(Decimal("10"), ge=0, le=100, decimal_places=2)
    minimum_balance: Decimal = Field(Decimal("100"), ge=0)
    cancellation_hours: int = Field(3, ge=0, le=48)


class MarketplaceConfigUpdate(BaseModel):
    """Partial settings update (admin)."""
    enabled: bool | None = None
    commission_percentage: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    minimum_balance: Decimal | None = Field(None, ge=0)
    cancellation_hours: int | None = Field(None, ge=0, le=48)


# ============== Jobs ==============

class JobCreate(BaseModel):
    """Schema for listing a job."""
    from_location: str = Field(..., min_length=1, max_length=255)
    to_location: str = Field(..., min_length=1, max_length=255)
    vehicle_type: VehicleType = VehicleType.SEDAN
    job_datetime: datetime
    customer_total: Decimal = Field(..., gt=0, max_digits=16, decimal_places=2)
    buyer_profit: Decimal = Field(..., gt=0, max_digits=16, decimal_places=2)
    payment_type: PaymentType = PaymentType.CASH
    buyer_phone: str = Field(..., description="Customer phone, revealed after approval")
    description: str | None = Field(None, max_length=2000)

    @field_validator("from_location", "to_location")
    @classmethod
    def strip_location(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Location must not be blank")
        return v

    @field_validator("buyer_phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        v = v.strip()
        if not PHONE_PATTERN.match(v):
            raise ValueError("Phone number is invalid")
        return v


class ShareIBANRequest(BaseModel):
    """IBAN disclosure by the party who receives the money."""
    iban: str
    account_name: str = Field(..., min_length=2, max_length=255)

    @field_validator("iban")
    @classmethod
    def validate_iban(cls, v: str) -> str:
        return normalize_iban(v)

    @field_validator("account_name")
    @classmethod
    def strip_account_name(cls, v: str) -> str:
        return v.strip()


class CompleteRequest(BaseModel):
    """Manual payment confirmation."""
    payment_confirmed: bool = False


class QuoteResponse(BaseModel):
    """Pricing preview under current settings."""
    customer_total: Decimal
    buyer_profit: Decimal
    seller_profit: Decimal
    commission_percentage: Decimal
    commission_amount: Decimal


class JobResponse(BaseModel):
    """
    Job as seen by a particular viewer.

    The customer phone is masked unless the viewer is the seller, or the
    buyer after approval. IBAN fields are shown only to the two parties
    once revealed.
    """
    id: uuid.UUID
    seller_id: uuid.UUID
    buyer_id: uuid.UUID | None = None
    from_location: str
    to_location: str
    vehicle_type: VehicleType
    job_datetime: datetime
    description: str | None = None
    customer_total: Decimal
    buyer_profit: Decimal
    seller_profit: Decimal
    commission_percentage: Decimal
    commission_amount: Decimal
    payment_type: PaymentType
    status: JobStatus
    buyer_phone: str
    buyer_phone_revealed: bool
    seller_iban: str | None = None
    seller_account_name: str | None = None
    buyer_iban: str | None = None
    buyer_account_name: str | None = None
    iban_revealed: bool
    purchased_at: datetime | None = None
    approved_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def for_viewer(cls, job: Job, viewer_id: uuid.UUID) -> "JobResponse":
        is_seller = viewer_id == job.seller_id
        is_buyer = job.buyer_id is not None and viewer_id == job.buyer_id

        phone_visible = is_seller or (is_buyer and job.buyer_phone_revealed)
        iban_visible = (is_seller or is_buyer) and job.iban_revealed

        return cls(
            id=job.id,
            seller_id=job.seller_id,
            buyer_id=job.buyer_id,
            from_location=job.from_location,
            to_location=job.to_location,
            vehicle_type=job.vehicle_type,
            job_datetime=job.job_datetime,
            description=job.description,
            customer_total=job.customer_total,
            buyer_profit=job.buyer_profit,
            seller_profit=job.seller_profit,
            commission_percentage=job.commission_percentage,
            commission_amount=job.commission_amount,
            payment_type=job.payment_type,
            status=job.status,
            buyer_phone=job.buyer_phone if phone_visible else mask_phone(job.buyer_phone),
            buyer_phone_revealed=job.buyer_phone_revealed,
            seller_iban=job.seller_iban if iban_visible else None,
            seller_account_name=job.seller_account_name if iban_visible else None,
            buyer_iban=job.buyer_iban if iban_visible else None,
            buyer_account_name=job.buyer_account_name if iban_visible else None,
            iban_revealed=job.iban_revealed,
            purchased_at=job.purchased_at,
            approved_at=job.approved_at,
            completed_at=job.completed_at,
            cancelled_at=job.cancelled_at,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


class JobListResponse(BaseModel):
    """Paginated job list."""
    jobs: list[JobResponse]
    total: int
    page: int
    page_size: int

