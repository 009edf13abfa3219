"""
Member Matching Rules

Field classification and identity keys for suspended-member records.

Field classes:
- Identifying: normalized name contains "name" (but not "member"),
  "phone", "email" or "id". Used to build the identity key.
- Hidden: a fixed denylist of export columns, stripped on ingest.
- Annotation: notes and the four contact-attempt fields, written only
  by staff and carried across uploads.

Field names are compared after normalization, so `MobilePhone`,
`mobile_phone` and `Mobile Phone` are the same field.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

MemberRecord = Dict[str, Any]


class FieldKind(str, Enum):
    NAME = "name"
    PHONE = "phone"
    EMAIL = "email"
    ID = "id"
    OTHER = "other"


# Priority order for identity tokens
IDENTIFYING_KINDS = (FieldKind.NAME, FieldKind.PHONE, FieldKind.EMAIL, FieldKind.ID)

HIDDEN_FIELDS = frozenset([
    "membership code",
    "start date",
    "end date",
    "credit balance",
    "payments",
    "due date",
    "membership status",
    "is recurring",
    "suspended by",
    "setup fee",
    "membership type",
    "recurrence status",
    "auto renewal",
])

CONTACT_FIELDS = ("firstContact", "secondContact", "thirdContact", "finalContact")
NOTES_FIELD = "notes"
ANNOTATION_FIELDS = (NOTES_FIELD,) + CONTACT_FIELDS

CONTACT_FIELD_LABELS = {
    "firstContact": "First Contact",
    "secondContact": "Second Contact",
    "thirdContact": "Third Contact",
    "finalContact": "Final Contact",
}

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")


# ==================== FIELD CLASSIFIER ====================

def normalize_field_name(name: str) -> str:
    """camelCase and snake_case to lower-case words: `MobilePhone` -> `mobile phone`."""
    spaced = _CAMEL_BOUNDARY.sub(r"\1 \2", name)
    return spaced.replace("_", " ").lower().strip()


def is_hidden_field(name: str) -> bool:
    return normalize_field_name(name) in HIDDEN_FIELDS


def is_annotation_field(name: str) -> bool:
    return name in ANNOTATION_FIELDS


def field_kind(name: str) -> FieldKind:
    """Classify a field name; the first matching kind in priority order wins."""
    normalized = normalize_field_name(name)
    if "name" in normalized and "member" not in normalized:
        return FieldKind.NAME
    if "phone" in normalized:
        return FieldKind.PHONE
    if "email" in normalized:
        return FieldKind.EMAIL
    if "id" in normalized:
        return FieldKind.ID
    return FieldKind.OTHER


def strip_hidden_fields(record: Mapping[str, Any]) -> MemberRecord:
    return {key: value for key, value in record.items() if not is_hidden_field(key)}


def strip_annotation_fields(record: Mapping[str, Any]) -> MemberRecord:
    return {key: value for key, value in record.items() if not is_annotation_field(key)}


def _token_value(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


# ==================== COLLECTION SCHEMA ====================

@dataclass
class MemberSchema:
    """
    Field classification for a whole collection, computed once.

    `fields` is the union of field names in first-seen order.
    """
    fields: List[str] = field(default_factory=list)
    identifying: Dict[FieldKind, List[str]] = field(default_factory=dict)
    hidden: List[str] = field(default_factory=list)
    annotation: List[str] = field(default_factory=list)
    data_columns: List[str] = field(default_factory=list)

    @classmethod
    def from_fields(cls, names: Iterable[str]) -> "MemberSchema":
        schema = cls(identifying={kind: [] for kind in IDENTIFYING_KINDS})
        for name in names:
            if name in schema.fields:
                continue
            schema.fields.append(name)
            if is_hidden_field(name):
                schema.hidden.append(name)
                continue
            if is_annotation_field(name):
                schema.annotation.append(name)
                continue
            schema.data_columns.append(name)
            kind = field_kind(name)
            if kind is not FieldKind.OTHER:
                schema.identifying[kind].append(name)
        return schema

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "MemberSchema":
        return cls.from_fields(name for record in records for name in record)

    def first_field(self, kind: FieldKind) -> Optional[str]:
        names = self.identifying.get(kind) or []
        return names[0] if names else None

    def find_field(self, *normalized_names: str) -> Optional[str]:
        """First data column whose normalized name is one of `normalized_names`."""
        for name in self.data_columns:
            if normalize_field_name(name) in normalized_names:
                return name
        return None


# ==================== IDENTITY KEY BUILDER ====================

def build_member_key(record: Mapping[str, Any], schema: Optional[MemberSchema] = None) -> str:
    """
    Build the identity key used to match a member across uploads.

    One `kind:value` token per identifying kind (first non-empty field of
    that kind); with no identifying data, one `field:value` token per
    non-empty non-annotation string field. Tokens are sorted and joined
    with `|`. Returns "" when the record has no usable data.
    """
    cleaned = strip_hidden_fields(record)
    if schema is None:
        schema = MemberSchema.from_fields(cleaned)

    tokens: List[str] = []
    for kind in IDENTIFYING_KINDS:
        for name in schema.identifying.get(kind, []):
            value = _token_value(cleaned.get(name))
            if value:
                tokens.append(f"{kind.value}:{value}")
                break

    if not tokens:
        for name, value in cleaned.items():
            if is_annotation_field(name) or not isinstance(value, str):
                continue
            if value.strip():
                tokens.append(f"{name}:{value.strip().lower()}")

    return "|".join(sorted(tokens))
