"""
Authentication Middleware and Dependencies

Provides:
- get_current_user_required: Resolve the user behind a bearer token
- RoleChecker: Dependency for role validation
- require_location_access: Gate every member route on the path's location
"""

from typing import List
import logging

from fastapi import Depends, HTTPException, Path, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from logging_config import set_request_context
from sentry_integration import set_tag
from services.auth import (
    decode_token,
    AuthUser,
    AuthService,
    UserRole
)

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


# ==================== DEPENDENCIES ====================

async def get_current_user_required(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> AuthUser:
    """
    Extract current user from JWT token.
    Raises 401 if no token, an invalid token, or an unknown user.
    """
    if not credentials:
        raise _unauthorized("Not authenticated")

    token_data = decode_token(credentials.credentials)

    if not token_data:
        raise _unauthorized("Invalid or expired token")

    if token_data.token_type != "access":
        raise _unauthorized("Invalid token type")

    # Role and locations are read fresh so revoked access applies immediately
    user = await AuthService(db).get_auth_user(token_data.username)
    if not user:
        raise _unauthorized("User no longer exists")

    set_request_context(username=user.username)
    return user


class RoleChecker:
    """
    Dependency class for role-based access control.

    Usage:
        @router.get("/admin-only")
        async def admin_endpoint(user: AuthUser = Depends(RoleChecker(["admin"]))):
            ...
    """

    def __init__(self, allowed_roles: List[str]):
        self.allowed_roles = allowed_roles

    async def __call__(self, user: AuthUser = Depends(get_current_user_required)) -> AuthUser:
        if user.role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {self.allowed_roles}"
            )
        return user


require_any_authenticated = RoleChecker([UserRole.admin.value, UserRole.location.value])


async def require_location_access(
    location: str = Path(..., description="Location name"),
    user: AuthUser = Depends(require_any_authenticated)
) -> AuthUser:
    """
    Reject requests for a location outside the user's permitted set.

    The same 403 is returned whether or not the location exists.
    """
    if not user.can_access(location):
        logger.warning(f"Location access denied: {user.username} -> {location!r}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this location"
        )
    set_tag("location", location)
    return user
