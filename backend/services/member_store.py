"""
Member Record Store

Persists each location's member list. Every write for a location runs
under that location's lock and inside one transaction, so readers see
either the previous list or the new one, never a mix. On a database
error the transaction is rolled back and MemberStoreError raised.
"""

import asyncio
import hashlib
import logging
import uuid
from typing import Any, Dict, List, Sequence, Tuple

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database.member_models import MEMBER_KEY_MAX_LENGTH, MemberDB
from reconciliation.matching_rules.member_rules import (
    ANNOTATION_FIELDS,
    MemberRecord,
    MemberSchema,
    build_member_key,
    is_annotation_field,
    strip_hidden_fields,
)
from reconciliation.services.reconciliation_service import (
    ReconciliationResult,
    ReconciliationService,
)
from sentry_integration import capture_exception

logger = logging.getLogger(__name__)


class MemberStoreError(Exception):
    """A write could not be applied; the stored list is unchanged."""


class MemberNotFoundError(LookupError):
    """No member with the given key at the location."""


class InvalidAnnotationFieldError(ValueError):
    """The field is not one of the editable annotation fields."""


# ==================== PER-LOCATION LOCKS ====================

_location_locks: Dict[str, asyncio.Lock] = {}


def location_lock(location: str) -> asyncio.Lock:
    """The write lock for `location`. Locations never share a lock."""
    lock = _location_locks.get(location)
    if lock is None:
        lock = _location_locks.setdefault(location, asyncio.Lock())
    return lock


def generate_member_key() -> str:
    """Storage key for a record with no identity key."""
    return f"member_{uuid.uuid4().hex}"


def storage_key(identity_key: str) -> str:
    """The identity key, or its SHA-256 digest when too long for the column."""
    if len(identity_key) <= MEMBER_KEY_MAX_LENGTH:
        return identity_key
    return f"sha256:{hashlib.sha256(identity_key.encode('utf-8')).hexdigest()}"


def keyed_records(records: Sequence[MemberRecord]) -> List[Tuple[str, MemberRecord]]:
    """
    Pair each record (hidden fields stripped) with its storage key.

    Records sharing an identity key collapse to the last one.
    """
    cleaned = [strip_hidden_fields(record) for record in records]
    schema = MemberSchema.from_records(cleaned)

    by_key: Dict[str, MemberRecord] = {}
    for record in cleaned:
        identity_key = build_member_key(record, schema)
        key = storage_key(identity_key) if identity_key else generate_member_key()
        by_key[key] = record
    return list(by_key.items())


class MemberStore:
    """
    Location-scoped member storage on an async SQLAlchemy session.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== READS ====================

    async def load_entries(self, location: str) -> List[Tuple[str, MemberRecord]]:
        """Stored `(member_key, record)` pairs in insertion order."""
        result = await self.db.execute(
            select(MemberDB)
            .where(MemberDB.location == location)
            .order_by(MemberDB.id)
        )
        return [(row.member_key, dict(row.data or {})) for row in result.scalars().all()]

    async def load_existing(self, location: str) -> List[MemberRecord]:
        """The stored members of a location; empty when none are stored."""
        return [record for _, record in await self.load_entries(location)]

    # ==================== WRITES ====================

    async def replace_all(self, location: str, records: Sequence[MemberRecord]) -> int:
        """Atomically replace every stored member of `location`. Returns the stored count."""
        async with location_lock(location):
            return await self._replace_all(location, records)

    async def upload(self, location: str, rows: Sequence[MemberRecord]) -> ReconciliationResult:
        """
        Reconcile uploaded rows against the stored list and store the result.

        Load, merge and replace happen under one hold of the location lock.
        """
        async with location_lock(location):
            existing = await self.load_existing(location)
            result = ReconciliationService(location).run(existing, rows)
            await self._replace_all(location, result.members)
            return result

    async def update_annotation(
        self,
        location: str,
        member_key: str,
        field: str,
        value: Any,
    ) -> MemberRecord:
        """Set one annotation field on a stored member and return the record."""
        if not is_annotation_field(field):
            raise InvalidAnnotationFieldError(
                f"{field!r} is not editable; expected one of {', '.join(ANNOTATION_FIELDS)}"
            )

        async with location_lock(location):
            row = await self._get_row(location, member_key)
            data = dict(row.data or {})
            data[field] = value
            # Reassign so the JSON column is flagged dirty
            row.data = data
            await self._commit(location, "update annotation")
            return data

    async def delete_member(self, location: str, member_key: str) -> None:
        async with location_lock(location):
            row = await self._get_row(location, member_key)
            await self.db.delete(row)
            await self._commit(location, "delete member")

    async def clear_location(self, location: str) -> int:
        """Remove every member of `location`. Returns the number removed."""
        async with location_lock(location):
            removed = len(await self.load_entries(location))
            await self._replace_all(location, [])
            return removed

    # ==================== INTERNALS ====================

    async def _get_row(self, location: str, member_key: str) -> MemberDB:
        result = await self.db.execute(
            select(MemberDB).where(
                MemberDB.location == location,
                MemberDB.member_key == member_key,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise MemberNotFoundError(f"Member not found: {member_key}")
        return row

    async def _replace_all(self, location: str, records: Sequence[MemberRecord]) -> int:
        entries = keyed_records(records)
        try:
            await self.db.execute(delete(MemberDB).where(MemberDB.location == location))
            self.db.add_all([
                MemberDB(location=location, member_key=key, data=record)
                for key, record in entries
            ])
        except SQLAlchemyError as e:
            await self._fail(location, "replace members", e)
        await self._commit(location, "replace members")
        logger.info(f"Stored {len(entries)} members for {location}")
        return len(entries)

    async def _commit(self, location: str, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._fail(location, action, e)

    async def _fail(self, location: str, action: str, error: SQLAlchemyError) -> None:
        await self.db.rollback()
        logger.error(f"Failed to {action} for {location}: {error}")
        capture_exception(error, location=location, action=action)
        raise MemberStoreError(f"Failed to {action} for {location}") from error
