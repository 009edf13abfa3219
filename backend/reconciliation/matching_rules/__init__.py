"""
Matching rules for member reconciliation.
"""

from reconciliation.matching_rules.member_rules import (
    MemberRecord,
    FieldKind,
    MemberSchema,
    HIDDEN_FIELDS,
    ANNOTATION_FIELDS,
    CONTACT_FIELDS,
    CONTACT_FIELD_LABELS,
    NOTES_FIELD,
    normalize_field_name,
    is_hidden_field,
    is_annotation_field,
    field_kind,
    strip_hidden_fields,
    strip_annotation_fields,
    build_member_key,
)
