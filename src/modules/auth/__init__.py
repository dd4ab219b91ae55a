from src.modules.auth.schemas import ADMIN_ROLES, CurrentUser, RoleType, TokenPayload

__all__ = [
    "ADMIN_ROLES",
    "CurrentUser",
    "RoleType",
    "TokenPayload",
]
