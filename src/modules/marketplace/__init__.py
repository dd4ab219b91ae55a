"""
Marketplace Module - Driver-to-driver job handover.
"""
from src.modules.marketplace.models import (
    Job,
    JobStatus,
    MarketplaceSettings,
    PaymentType,
    VehicleType,
)

__all__ = [
    "Job",
    "JobStatus",
    "MarketplaceSettings",
    "PaymentType",
    "VehicleType",
]
