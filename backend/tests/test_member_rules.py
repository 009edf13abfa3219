"""
Unit Tests for Member Matching Rules

Tests field classification and identity keys:
- Field name normalization (camelCase, snake_case, spacing)
- Hidden and annotation fields
- Identifying field kinds
- Identity key construction, fallback and stability

Run with: pytest backend/tests/test_member_rules.py -v
"""

import pytest

from reconciliation.matching_rules.member_rules import (
    FieldKind,
    MemberSchema,
    build_member_key,
    field_kind,
    is_annotation_field,
    is_hidden_field,
    normalize_field_name,
    strip_hidden_fields,
)


class TestFieldClassifier:
    """Test normalization and field classification."""

    @pytest.mark.parametrize("raw, expected", [
        ("MobilePhone", "mobile phone"),
        ("mobile_phone", "mobile phone"),
        ("Mobile Phone", "mobile phone"),
        ("  Suspend Date ", "suspend date"),
        ("suspendDate", "suspend date"),
        ("GUEST", "guest"),
        ("", ""),
    ])
    def test_normalize_field_name(self, raw, expected):
        assert normalize_field_name(raw) == expected

    @pytest.mark.parametrize("name", [
        "Membership Code", "StartDate", "end_date", "Credit Balance", "Payments",
        "DueDate", "membership_status", "IsRecurring", "Suspended By", "SetupFee",
        "MembershipType", "recurrence_status", "AutoRenewal",
    ])
    def test_hidden_fields(self, name):
        assert is_hidden_field(name) is True

    @pytest.mark.parametrize("name", ["Guest", "MobilePhone", "Suspend Date", "notes", ""])
    def test_visible_fields(self, name):
        assert is_hidden_field(name) is False

    @pytest.mark.parametrize("name, kind", [
        ("Guest Name", FieldKind.NAME),
        ("FirstName", FieldKind.NAME),
        ("Member Name", FieldKind.OTHER),
        ("MobilePhone", FieldKind.PHONE),
        ("Email Address", FieldKind.EMAIL),
        ("Member ID", FieldKind.ID),
        ("guest_id", FieldKind.ID),
        ("Suspend Date", FieldKind.OTHER),
        ("", FieldKind.OTHER),
    ])
    def test_field_kind(self, name, kind):
        assert field_kind(name) == kind

    def test_name_takes_priority_over_other_kinds(self):
        assert field_kind("Phone Name") == FieldKind.NAME

    def test_annotation_fields_are_exact_names(self):
        assert is_annotation_field("notes")
        assert is_annotation_field("finalContact")
        assert not is_annotation_field("Notes")
        assert not is_annotation_field("first_contact")

    def test_strip_hidden_fields(self):
        record = {"Guest": "Jane", "MembershipCode": "X1", "Payments": "3"}
        assert strip_hidden_fields(record) == {"Guest": "Jane"}


class TestMemberSchema:
    """Test collection-level field classification."""

    def test_schema_classifies_union_of_fields(self):
        schema = MemberSchema.from_records([
            {"Guest": "Jane", "MobilePhone": "555", "notes": "hi"},
            {"Guest": "John", "Email": "j@x.com", "Payments": "1"},
        ])

        assert schema.fields == ["Guest", "MobilePhone", "notes", "Email", "Payments"]
        assert schema.data_columns == ["Guest", "MobilePhone", "Email"]
        assert schema.hidden == ["Payments"]
        assert schema.annotation == ["notes"]
        assert schema.first_field(FieldKind.PHONE) == "MobilePhone"
        assert schema.first_field(FieldKind.EMAIL) == "Email"
        assert schema.first_field(FieldKind.NAME) is None

    def test_find_field_by_normalized_name(self):
        schema = MemberSchema.from_fields(["guest", "Mobile_Phone"])
        assert schema.find_field("mobile phone") == "Mobile_Phone"
        assert schema.find_field("suspend date") is None


class TestIdentityKey:
    """Test identity key construction."""

    def test_key_uses_identifying_fields_sorted(self):
        record = {"Name": "Jane Doe", "Phone": "5551234567", "Email": "JANE@X.COM", "Suspend Date": "1/1/2024"}
        assert build_member_key(record) == "email:jane@x.com|name:jane doe|phone:5551234567"

    def test_key_is_stable_across_field_name_styles(self):
        a = build_member_key({"MobilePhone": "5551234567", "GuestName": "Jane"})
        b = build_member_key({"mobile_phone": "5551234567", "guest_name": "Jane"})
        c = build_member_key({"Mobile Phone": "5551234567", "Guest Name": "Jane"})
        assert a == b == c == "name:jane|phone:5551234567"

    def test_key_ignores_value_whitespace_and_case(self):
        a = build_member_key({"Name": "  Jane DOE ", "Email": "Jane@Example.com"})
        b = build_member_key({"Name": "jane doe", "Email": "jane@example.com  "})
        assert a == b

    def test_first_non_empty_field_of_a_kind_is_used(self):
        record = {"Home Phone": "", "Mobile Phone": "555 0000"}
        assert build_member_key(record) == "phone:555 0000"

    def test_annotations_do_not_change_key(self):
        plain = {"Name": "Jane", "Phone": "555"}
        annotated = {**plain, "notes": "called twice", "firstContact": "left voicemail"}
        assert build_member_key(plain) == build_member_key(annotated)

    def test_hidden_fields_do_not_contribute(self):
        assert build_member_key({"Guest": "Jane", "MembershipCode": "ABC"}) == "Guest:jane"

    def test_fallback_uses_non_annotation_string_fields(self):
        record = {"Guest": " Jane ", "Location": "Laguna", "notes": "x", "Visits": 4, "Blank": " "}
        assert build_member_key(record) == "Guest:jane|Location:laguna"

    def test_annotation_only_record_has_empty_key(self):
        assert build_member_key({"notes": "hello", "firstContact": "called"}) == ""

    def test_empty_record_has_empty_key(self):
        assert build_member_key({}) == ""
