"""
Display ordering and search for member lists.

- sort_by_suspend_date: oldest suspension first
- filter_members: search by guest name, or by phone digits when the term has a digit
- visible_columns / format_phone_number: table presentation
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from dateutil import parser as date_parser

from reconciliation.matching_rules.member_rules import (
    FieldKind,
    MemberRecord,
    MemberSchema,
    normalize_field_name,
)

EPOCH = datetime(1970, 1, 1)
_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)

SUSPEND_DATE_FIELDS = ("suspend date", "suspended date")
GUEST_FIELDS = ("guest",)
PHONE_FIELDS = ("mobile phone", "mobilephone", "phone")

_MMDDYYYY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_YYYYMMDD = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_NON_DIGITS = re.compile(r"\D")
_DIGIT = re.compile(r"\d")


# ==================== DATES ====================

def find_suspend_date_field(record: Mapping[str, Any]) -> Optional[str]:
    for name in record:
        if normalize_field_name(name) in SUSPEND_DATE_FIELDS:
            return name
    return None


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _parse_complete_date(text: str) -> Optional[datetime]:
    """
    Parse `text` only when it names a full year, month and day.

    dateutil fills missing parts from its default, so a value parsed
    against two different defaults is partial when the results differ.
    """
    try:
        first = date_parser.parse(text, default=_DEFAULT_A)
        second = date_parser.parse(text, default=_DEFAULT_B)
    except (ValueError, OverflowError):
        return None
    if first != second:
        return None
    return _naive_utc(first)


def parse_member_date(value: Any) -> datetime:
    """
    Parse an export date; anything unparseable is the epoch.

    Tries a general parse of a complete date first, then MM/DD/YYYY,
    then YYYY-MM-DD.
    """
    if not isinstance(value, str):
        return EPOCH
    text = value.strip()
    if not text:
        return EPOCH

    parsed = _parse_complete_date(text)
    if parsed is not None:
        return parsed

    match = _MMDDYYYY.match(text)
    if match:
        month, day, year = (int(g) for g in match.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            pass

    match = _YYYYMMDD.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            pass

    return EPOCH


def sort_by_suspend_date(records: Sequence[MemberRecord]) -> List[MemberRecord]:
    """
    Oldest suspension first. The first record's fields decide the date
    column; without one the input order is kept.
    """
    if not records:
        return list(records)

    date_field = find_suspend_date_field(records[0])
    if not date_field:
        return list(records)

    # sorted() is stable, so equal dates keep their input order
    return sorted(records, key=lambda record: parse_member_date(record.get(date_field)))


# ==================== SEARCH ====================

def digits_only(value: Any) -> str:
    if value is None:
        return ""
    return _NON_DIGITS.sub("", str(value))


def resolve_search_fields(schema: MemberSchema) -> Dict[str, Optional[str]]:
    """The guest and phone columns a search compares against."""
    guest = schema.find_field(*GUEST_FIELDS) or schema.first_field(FieldKind.NAME)
    phone = schema.find_field(*PHONE_FIELDS) or schema.first_field(FieldKind.PHONE)
    return {"guest": guest, "phone": phone}


def filter_members(records: Sequence[MemberRecord], search_term: Optional[str]) -> List[MemberRecord]:
    """
    Records matching `search_term`.

    A term containing a digit is compared as digits against the phone
    column; any other term is a case-insensitive substring of the guest
    column. Records without the compared field are excluded.
    """
    if not search_term or not search_term.strip():
        return list(records)
    if not records:
        return []

    columns = resolve_search_fields(MemberSchema.from_records(records))

    if _DIGIT.search(search_term):
        phone_field = columns["phone"]
        if not phone_field:
            return []
        needle = digits_only(search_term)
        return [
            record for record in records
            if record.get(phone_field) and needle in digits_only(record[phone_field])
        ]

    guest_field = columns["guest"]
    if not guest_field:
        return []
    needle = search_term.strip().lower()
    return [
        record for record in records
        if record.get(guest_field) and needle in str(record[guest_field]).lower()
    ]


# ==================== PRESENTATION ====================

def format_column_name(column: str) -> str:
    """`mobile_phone` -> `Mobile phone`, `MobilePhone` -> `Mobile Phone`."""
    label = column.replace("_", " ")
    label = re.sub(r"([A-Z])", r" \1", label)
    label = label.strip()
    if label:
        label = label[0].upper() + label[1:]
    return label


def is_phone_column(column: str) -> bool:
    normalized = normalize_field_name(column)
    return "phone" in normalized or "mobile" in normalized


def format_phone_number(value: Any) -> Any:
    """(XXX) XXX-XXXX for 10 digits, +1 (XXX) XXX-XXXX for 11 starting with 1."""
    if not value:
        return value
    digits = digits_only(value)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if len(digits) == 11 and digits[0] == "1":
        return f"+1 ({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    return value


def visible_columns(records: Sequence[MemberRecord]) -> List[Dict[str, Any]]:
    schema = MemberSchema.from_records(records)
    return [
        {"key": name, "label": format_column_name(name), "is_phone": is_phone_column(name)}
        for name in schema.data_columns
    ]
