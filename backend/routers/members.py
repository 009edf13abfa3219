"""
Suspended Members Router

Endpoints for viewing and maintaining a location's suspended members:
- GET    /members/{location}                  List (sorted, searchable)
- POST   /members/{location}                  Replace the whole list
- POST   /members/{location}/upload           Upload a CSV export and reconcile
- PATCH  /members/{location}/notes            Edit a member's notes
- PATCH  /members/{location}/contacts         Edit a contact attempt
- DELETE /members/{location}/member           Delete one member
- DELETE /members/{location}                  Clear the location

Every endpoint checks location access before touching member data.
"""

from typing import Any, Dict, List, Literal, Optional
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from database import get_db
from ingestion.csv_reader import MalformedCSVError, parse_member_csv
from middleware.auth import require_any_authenticated, require_location_access
from reconciliation.display import (
    filter_members,
    format_phone_number,
    is_phone_column,
    sort_by_suspend_date,
    visible_columns,
)
from reconciliation.matching_rules.member_rules import CONTACT_FIELD_LABELS, NOTES_FIELD
from services.auth import AuthUser
from services.member_store import (
    InvalidAnnotationFieldError,
    MemberNotFoundError,
    MemberStore,
    MemberStoreError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/members", tags=["Members"])
locations_router = APIRouter(prefix="/locations", tags=["Locations"])

ContactField = Literal["firstContact", "secondContact", "thirdContact", "finalContact"]


# ==================== REQUEST/RESPONSE MODELS ====================

class MemberOut(BaseModel):
    member_key: str
    fields: Dict[str, Any]
    formatted: Dict[str, Any] = Field(default_factory=dict, description="Phone columns formatted for display")


class ColumnOut(BaseModel):
    key: str
    label: str
    is_phone: bool


class MemberListResponse(BaseModel):
    location: str
    total: int = Field(..., description="Stored members before search filtering")
    count: int
    columns: List[ColumnOut]
    contact_fields: Dict[str, str] = Field(default_factory=lambda: dict(CONTACT_FIELD_LABELS))
    members: List[MemberOut]


class ReplaceMembersRequest(BaseModel):
    members: List[Dict[str, Any]]


class ReplaceMembersResponse(BaseModel):
    success: bool = True
    location: str
    stored: int


class UploadResponse(BaseModel):
    success: bool = True
    location: str
    file_name: Optional[str]
    rows: int
    total: int
    still_suspended: int
    renewed: int
    added: int
    unmatched: int


class NoteUpdate(BaseModel):
    member_key: str
    notes: str = ""


class ContactUpdate(BaseModel):
    member_key: str
    field: ContactField
    value: str = ""


class MemberUpdateResponse(BaseModel):
    success: bool = True
    member: MemberOut


# ==================== HELPERS ====================

def _member_out(member_key: str, record: Dict[str, Any]) -> MemberOut:
    formatted = {
        name: format_phone_number(value)
        for name, value in record.items()
        if value and is_phone_column(name)
    }
    return MemberOut(member_key=member_key, fields=record, formatted=formatted)


def _storage_failure(error: MemberStoreError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Failed to save members; the previous list is unchanged"
    )


# ==================== LOCATIONS ====================

@locations_router.get("", response_model=List[str])
async def list_locations(current_user: AuthUser = Depends(require_any_authenticated)):
    """Locations the current user may open, in sidebar order."""
    return current_user.allowed_locations


# ==================== MEMBERS ====================

@router.get("/{location}", response_model=MemberListResponse)
async def list_members(
    location: str,
    search: Optional[str] = Query(None, description="Guest name, or digits of a phone number"),
    current_user: AuthUser = Depends(require_location_access),
    db: AsyncSession = Depends(get_db)
):
    """
    List a location's suspended members, oldest suspension first.

    A search containing a digit matches phone numbers by digits;
    any other search matches guest names.
    """
    entries = await MemberStore(db).load_entries(location)
    keys_by_id = {id(record): key for key, record in entries}

    records = sort_by_suspend_date([record for _, record in entries])
    matches = filter_members(records, search)

    return MemberListResponse(
        location=location,
        total=len(records),
        count=len(matches),
        columns=[ColumnOut(**column) for column in visible_columns(records)],
        members=[_member_out(keys_by_id[id(record)], record) for record in matches],
    )


@router.post("/{location}", response_model=ReplaceMembersResponse)
async def replace_members(
    location: str,
    request: ReplaceMembersRequest,
    current_user: AuthUser = Depends(require_location_access),
    db: AsyncSession = Depends(get_db)
):
    """Replace every stored member of the location. Hidden columns are dropped."""
    try:
        stored = await MemberStore(db).replace_all(location, request.members)
    except MemberStoreError as e:
        raise _storage_failure(e)

    logger.info(f"{current_user.username} replaced members for {location}: {stored} stored")
    return ReplaceMembersResponse(location=location, stored=stored)


@router.post("/{location}/upload", response_model=UploadResponse)
async def upload_members(
    location: str,
    file: UploadFile = File(..., description="Suspended members CSV export"),
    current_user: AuthUser = Depends(require_location_access),
    db: AsyncSession = Depends(get_db)
):
    """
    Upload a suspended-members CSV and reconcile it with the stored list.

    - Members in both lists stay, keeping their notes and contact attempts
    - Members only in the stored list have renewed and are removed
    - Members only in the upload are added
    """
    settings = get_settings()

    file_ext = file.filename.rsplit('.', 1)[-1].lower() if file.filename and '.' in file.filename else ""
    if file_ext != "csv":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type: {file_ext or 'none'}. Supported: csv"
        )

    content = await file.read()
    if len(content) > settings.upload_max_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large (max {settings.UPLOAD_MAX_SIZE_MB}MB)"
        )

    try:
        rows = parse_member_csv(content)
    except MalformedCSVError as e:
        logger.warning(f"Rejected CSV upload for {location}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Malformed CSV: {e}"
        )

    try:
        result = await MemberStore(db).upload(location, rows)
    except MemberStoreError as e:
        raise _storage_failure(e)

    return UploadResponse(
        location=location,
        file_name=file.filename,
        rows=len(rows),
        **result.to_dict(),
    )


async def _update_annotation(
    db: AsyncSession,
    location: str,
    member_key: str,
    field: str,
    value: str,
) -> MemberUpdateResponse:
    try:
        record = await MemberStore(db).update_annotation(location, member_key, field, value)
    except MemberNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidAnnotationFieldError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except MemberStoreError as e:
        raise _storage_failure(e)
    return MemberUpdateResponse(member=_member_out(member_key, record))


@router.patch("/{location}/notes", response_model=MemberUpdateResponse)
async def update_notes(
    location: str,
    request: NoteUpdate,
    current_user: AuthUser = Depends(require_location_access),
    db: AsyncSession = Depends(get_db)
):
    """Set a member's free-text notes."""
    return await _update_annotation(db, location, request.member_key, NOTES_FIELD, request.notes)


@router.patch("/{location}/contacts", response_model=MemberUpdateResponse)
async def update_contact(
    location: str,
    request: ContactUpdate,
    current_user: AuthUser = Depends(require_location_access),
    db: AsyncSession = Depends(get_db)
):
    """Record a contact attempt (first, second, third or final)."""
    return await _update_annotation(db, location, request.member_key, request.field, request.value)


@router.delete("/{location}/member")
async def delete_member(
    location: str,
    member_key: str = Query(..., description="Key of the member to delete"),
    current_user: AuthUser = Depends(require_location_access),
    db: AsyncSession = Depends(get_db)
):
    """Delete one member from the location."""
    try:
        await MemberStore(db).delete_member(location, member_key)
    except MemberNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except MemberStoreError as e:
        raise _storage_failure(e)
    return {"success": True, "member_key": member_key}


@router.delete("/{location}")
async def clear_members(
    location: str,
    current_user: AuthUser = Depends(require_location_access),
    db: AsyncSession = Depends(get_db)
):
    """Remove every member of the location."""
    try:
        removed = await MemberStore(db).clear_location(location)
    except MemberStoreError as e:
        raise _storage_failure(e)

    logger.info(f"{current_user.username} cleared {removed} members for {location}")
    return {"success": True, "location": location, "removed": removed}
