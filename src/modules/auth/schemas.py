"""
Auth Module - Pydantic Schemas (DTOs)
Caller identity derived from identity-provider token claims.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class RoleType(str, Enum):
    """
    Roles carried in the token.

    The identity provider marks ordinary sessions as ``authenticated``;
    staff accounts carry ``admin`` or ``super_admin``.
    """
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    USER = "authenticated"


ADMIN_ROLES = frozenset({RoleType.ADMIN.value, RoleType.SUPER_ADMIN.value})


class TokenPayload(BaseModel):
    """JWT token payload (only the claims we read)."""
    model_config = ConfigDict(extra="ignore")

    sub: uuid.UUID
    exp: datetime | None = None
    iat: datetime | None = None
    email: str | None = None
    role: str | None = None
    app_metadata: dict[str, Any] | None = None

    @property
    def effective_role(self) -> str:
        """app_metadata.role wins over the top-level role claim."""
        if self.app_metadata and self.app_metadata.get("role"):
            return str(self.app_metadata["role"])
        return self.role or RoleType.USER.value


class CurrentUser(BaseModel):
    """Authenticated caller."""
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    email: str | None = None
    role: str = RoleType.USER.value

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES
