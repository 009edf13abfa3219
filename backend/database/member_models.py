"""
Suspended Members - SQLAlchemy Database Models

- UserDB: login accounts with a role and the locations they may see
- MemberDB: one stored member record per (location, member_key)
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, DateTime, JSON, Index, UniqueConstraint
)

from database.connection import Base


MEMBER_KEY_MAX_LENGTH = 255


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UserDB(Base):
    """
    A login account.

    `allowed_locations` is a JSON list of location names. Admin accounts are
    granted every configured location when the session is resolved.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)
    allowed_locations = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utc_now)


class MemberDB(Base):
    """
    A stored member record.

    `data` holds the record's fields exactly as kept after hidden-field
    stripping, including annotation fields. `member_key` is the record's
    identity key (hashed when longer than MEMBER_KEY_MAX_LENGTH), or a
    generated key for records without one.
    """
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    location = Column(String(100), nullable=False)
    member_key = Column(String(MEMBER_KEY_MAX_LENGTH), nullable=False)
    data = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("location", "member_key", name="uq_members_location_key"),
        Index("idx_members_location", "location"),
    )
