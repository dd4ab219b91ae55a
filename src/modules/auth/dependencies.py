"""
Auth Module - FastAPI Dependencies

Identity provider JWT doğrulaması ile kullanıcı kimlik doğrulama.
Kullanıcılar bu serviste saklanmaz; kimlik token'daki claim'lerden okunur.
"""
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError as PydanticValidationError

from src.core.exceptions import ForbiddenError, UnauthorizedError
from src.core.logging import bind_context, get_logger
from src.core.security import verify_token
from src.core.sentry import set_user
from src.modules.auth.schemas import CurrentUser, TokenPayload

logger = get_logger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> CurrentUser:
    """
    Get current authenticated user from the bearer token.

    Flow:
    1. Token imzasını ve süresini doğrula
    2. sub (UUID) ve rol claim'lerini oku
    3. Geçersizse UnauthorizedError fırlat

    Raises:
        UnauthorizedError: Token yok, geçersiz veya süresi dolmuş
    """
    if not credentials:
        raise UnauthorizedError("Authentication required")

    payload = verify_token(credentials.credentials)
    if payload is None:
        logger.warning("Token verification failed")
        raise UnauthorizedError("Invalid or expired token")

    try:
        claims = TokenPayload.model_validate(payload)
    except PydanticValidationError:
        logger.warning("Token claims malformed", sub=payload.get("sub"))
        raise UnauthorizedError("Invalid token subject")

    user = CurrentUser(id=claims.sub, email=claims.email, role=claims.effective_role)

    bind_context(user_id=str(user.id))
    set_user(str(user.id))
    return user


async def get_current_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Get current user and require an admin role."""
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user


# Type aliases for dependency injection
CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
CurrentAdminDep = Annotated[CurrentUser, Depends(get_current_admin)]
