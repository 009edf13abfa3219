from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from database import get_db
from services.auth import (
    AuthService,
    LoginRequest,
    Token,
    AuthUser,
)
from middleware.auth import require_any_authenticated
from sentry_integration import set_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=Token)
async def login(
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Authenticate a user and return a JWT access token.

    The response lists the locations the user may open, in sidebar order.

    Example:
    ```json
    {
      "username": "laguna",
      "password": "..."
    }
    ```
    """
    auth_service = AuthService(db)
    token = await auth_service.login(login_data.username, login_data.password)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"}
        )

    set_user(token.username, token.role)
    return token


@router.get("/me", response_model=AuthUser)
async def get_me(current_user: AuthUser = Depends(require_any_authenticated)):
    """Get the authenticated user's role and locations."""
    return current_user
