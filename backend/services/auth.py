"""
Authentication & Authorization Service for Suspended Members

Implements:
- Username/password login with bcrypt hashes
- JWT access tokens
- Location-scoped access control

Roles:
- admin: every configured location
- location: only the locations listed on the account
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict
import logging
from enum import Enum

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from config import get_settings
from database.member_models import UserDB

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Seeded accounts: username -> locations
DEFAULT_LOCATION_USERS: Dict[str, List[str]] = {
    "laguna": ["Laguna Beach"],
    "costa": ["Costa Mesa"],
    "huntington": ["Huntington Beach"],
    "almeada": ["Alameda"],
    "brentwood": ["Brentwood"],
    "pleasanton": ["Pleasanton"],
}
DEFAULT_ADMIN_USERNAME = "admin"


# ==================== ENUMS ====================

class UserRole(str, Enum):
    admin = "admin"
    location = "location"


# ==================== MODELS ====================

class Token(BaseModel):
    """JWT Token response"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    username: str
    role: str
    allowed_locations: List[str]


class TokenData(BaseModel):
    """Data extracted from JWT token"""
    username: str
    exp: Optional[datetime] = None
    token_type: str = "access"


class LoginRequest(BaseModel):
    """Login request body"""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthUser(BaseModel):
    """Authenticated user context, resolved per request"""
    username: str
    role: str
    allowed_locations: List[str] = Field(default_factory=list)

    def is_admin(self) -> bool:
        return self.role == UserRole.admin.value

    def can_access(self, location: str) -> bool:
        return location in self.allowed_locations


# ==================== PASSWORD UTILITIES ====================

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password"""
    return pwd_context.hash(password)


# ==================== JWT UTILITIES ====================

def create_access_token(username: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": username,
        "type": "access",
        "exp": now + expires_delta,
        "iat": now,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[TokenData]:
    """Decode and validate a JWT token"""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        return None

    username = payload.get("sub")
    if not username:
        return None

    exp = payload.get("exp")
    return TokenData(
        username=username,
        token_type=payload.get("type", "access"),
        exp=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
    )


def resolve_locations(role: str, stored_locations: Optional[List[str]]) -> List[str]:
    """
    Locations a user may access, in configured display order.

    Admins get every configured location. Location users keep their stored
    list, restricted to configured locations.
    """
    configured = get_settings().locations_list
    if role == UserRole.admin.value:
        return list(configured)
    stored = set(stored_locations or [])
    return [loc for loc in configured if loc in stored]


def to_auth_user(user: UserDB) -> AuthUser:
    return AuthUser(
        username=user.username,
        role=user.role,
        allowed_locations=resolve_locations(user.role, user.allowed_locations),
    )


# ==================== AUTH SERVICE ====================

class AuthService:
    """
    Authentication service backed by the users table.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, username: str) -> Optional[UserDB]:
        result = await self.db.execute(select(UserDB).where(UserDB.username == username))
        return result.scalar_one_or_none()

    async def authenticate_user(self, username: str, password: str) -> Optional[AuthUser]:
        """Authenticate a user with username and password"""
        user = await self.get_user(username)

        if not user:
            logger.warning(f"Login failed: user not found - {username}")
            return None

        if not verify_password(password, user.password_hash):
            logger.warning(f"Login failed: invalid password - {username}")
            return None

        logger.info(f"Login successful: {username} (role: {user.role})")
        return to_auth_user(user)

    async def login(self, username: str, password: str) -> Optional[Token]:
        """Login and return a JWT access token"""
        user = await self.authenticate_user(username, password)
        if not user:
            return None

        settings = get_settings()
        return Token(
            access_token=create_access_token(user.username),
            expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            username=user.username,
            role=user.role,
            allowed_locations=user.allowed_locations,
        )

    async def get_auth_user(self, username: str) -> Optional[AuthUser]:
        """Resolve the current role and locations for a token subject"""
        user = await self.get_user(username)
        if not user:
            return None
        return to_auth_user(user)


async def seed_default_users(db: AsyncSession, password: Optional[str] = None) -> int:
    """
    Create the default location users and admin when the users table is empty.

    Returns the number of users created.
    """
    count = await db.scalar(select(func.count()).select_from(UserDB))
    if count:
        return 0

    settings = get_settings()
    password_hash = get_password_hash(password or settings.DEFAULT_USER_PASSWORD)

    for username, locations in DEFAULT_LOCATION_USERS.items():
        db.add(UserDB(
            username=username,
            password_hash=password_hash,
            role=UserRole.location.value,
            allowed_locations=locations,
        ))

    db.add(UserDB(
        username=DEFAULT_ADMIN_USERNAME,
        password_hash=password_hash,
        role=UserRole.admin.value,
        allowed_locations=settings.locations_list,
    ))

    await db.commit()
    return len(DEFAULT_LOCATION_USERS) + 1
