"""
Marketplace Module - Database Models
Transfer jobs handed over between drivers, and the global marketplace config.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.core.models import Base, JSONType, Money

SETTINGS_KEY = "marketplace_config"


class JobStatus(str, Enum):
    """Job lifecycle status enumeration."""
    AVAILABLE = "available"                 # Listed, open for purchase
    PENDING_APPROVAL = "pending_approval"   # A buyer took it, seller must decide
    APPROVED = "approved"                   # Commission paid, phone revealed
    COMPLETED = "completed"                 # Payment settled (terminal)
    CANCELLED = "cancelled"                 # Withdrawn by the seller (terminal)


class PaymentType(str, Enum):
    """Who collects the fare from the customer."""
    CASH = "cash"           # Buyer collects cash, pays the seller's share to seller IBAN
    PREPAID = "prepaid"     # Seller already collected, pays buyer profit to buyer IBAN


class VehicleType(str, Enum):
    """Vehicle type enumeration."""
    SEDAN = "sedan"
    COMMERCIAL = "commercial"
    VITO = "vito"
    MINIBUS = "minibus"
    OTHER = "other"


class Job(Base):
    """
    Marketplace job.
    A transfer listed by a seller driver for another driver (buyer) to take over.
    """
    __tablename__ = "jobs"

    __table_args__ = (
        CheckConstraint("buyer_profit > 0", name="buyer_profit_positive"),
        CheckConstraint("buyer_profit < customer_total", name="buyer_profit_below_total"),
        Index("ix_jobs_status_created", "status", "created_at"),
    )

    # Parties
    seller_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
    )

    buyer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
    )

    # Route
    from_location: Mapped[str] = mapped_column(String(255), nullable=False)
    to_location: Mapped[str] = mapped_column(String(255), nullable=False)
    vehicle_type: Mapped[str] = mapped_column(
        String(20),
        default=VehicleType.SEDAN.value,
        nullable=False,
    )
    job_datetime: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Pricing (snapshot of settings at creation)
    customer_total: Mapped[Decimal] = mapped_column(Money, nullable=False)
    buyer_profit: Mapped[Decimal] = mapped_column(Money, nullable=False)
    seller_profit: Mapped[Decimal] = mapped_column(Money, nullable=False)
    commission_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    payment_type: Mapped[str] = mapped_column(
        String(20),
        default=PaymentType.CASH.value,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=JobStatus.AVAILABLE.value,
        nullable=False,
        index=True,
    )

    # Customer contact, revealed to the buyer after approval
    buyer_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    buyer_phone_revealed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # IBAN exchange
    seller_iban: Mapped[str | None] = mapped_column(String(34), nullable=True)
    seller_account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    buyer_iban: Mapped[str | None] = mapped_column(String(34), nullable=True)
    buyer_account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    iban_revealed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Lifecycle timestamps
    purchased_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def is_party(self, user_id: uuid.UUID) -> bool:
        """True if the user is the seller or the current buyer."""
        return user_id == self.seller_id or (
            self.buyer_id is not None and user_id == self.buyer_id
        )


class MarketplaceSettings(Base):
    """
    Key/value settings row.
    The marketplace configuration lives under ``marketplace_config``.
    """
    __tablename__ = "marketplace_settings"

    key: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
    )

    value: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
