"""
Member Reconciliation Service

Merges a freshly uploaded suspended-member list into the stored list of
one location:

- still suspended (key in both): upload data, stored annotations kept
- renewed (key only in stored): dropped
- new (key only in upload, or no usable key): added without annotations

The merge is pure and deterministic. Output order is the matched members
in stored order followed by new members in upload order.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from reconciliation.matching_rules.member_rules import (
    ANNOTATION_FIELDS,
    MemberRecord,
    MemberSchema,
    build_member_key,
    strip_annotation_fields,
    strip_hidden_fields,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """
    Outcome of one reconciliation pass.
    """
    members: List[MemberRecord] = field(default_factory=list)
    still_suspended: int = 0
    renewed: int = 0
    added: int = 0
    unmatched: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": len(self.members),
            "still_suspended": self.still_suspended,
            "renewed": self.renewed,
            "added": self.added,
            "unmatched": self.unmatched,
        }


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def merge_annotations(incoming: MemberRecord, existing: MemberRecord) -> MemberRecord:
    """Incoming fields, with each non-empty annotation copied from `existing`."""
    merged = dict(incoming)
    for name in ANNOTATION_FIELDS:
        if _has_value(existing.get(name)):
            merged[name] = existing[name]
    return merged


def reconcile_members(
    existing: Sequence[MemberRecord],
    incoming: Sequence[MemberRecord],
) -> ReconciliationResult:
    """
    Reconcile stored members against an uploaded list.

    Duplicate keys on either side resolve last-write-wins while keeping
    the first occurrence's position. Stored records with an empty key
    cannot be matched and are dropped; uploaded records with an empty key
    are always new.
    """
    cleaned_existing = [strip_hidden_fields(r) for r in existing]
    cleaned_incoming = [strip_annotation_fields(strip_hidden_fields(r)) for r in incoming]

    existing_schema = MemberSchema.from_records(cleaned_existing)
    incoming_schema = MemberSchema.from_records(cleaned_incoming)

    existing_by_key: Dict[str, MemberRecord] = {}
    unkeyed_existing = 0
    for record in cleaned_existing:
        key = build_member_key(record, existing_schema)
        if key:
            existing_by_key[key] = record
        else:
            unkeyed_existing += 1

    # Insertion order of `incoming_slots` is upload row order
    incoming_by_key: Dict[str, MemberRecord] = {}
    incoming_slots: List[Any] = []
    unkeyed_incoming = 0
    for record in cleaned_incoming:
        key = build_member_key(record, incoming_schema)
        if not key:
            incoming_slots.append(record)
            unkeyed_incoming += 1
            continue
        if key not in incoming_by_key:
            incoming_slots.append(key)
        incoming_by_key[key] = record

    matched = existing_by_key.keys() & incoming_by_key.keys()

    result = ReconciliationResult(unmatched=unkeyed_incoming)

    for key, stored in existing_by_key.items():
        if key in matched:
            result.members.append(merge_annotations(incoming_by_key[key], stored))
            result.still_suspended += 1
        else:
            result.renewed += 1
    result.renewed += unkeyed_existing

    for slot in incoming_slots:
        if isinstance(slot, str):
            if slot in matched:
                continue
            result.members.append(dict(incoming_by_key[slot]))
        else:
            result.members.append(dict(slot))
        result.added += 1

    return result


def reconcile(existing: Sequence[MemberRecord], incoming: Sequence[MemberRecord]) -> List[MemberRecord]:
    """The merged member list for `existing` refreshed by `incoming`."""
    return reconcile_members(existing, incoming).members


class ReconciliationService:
    """
    Runs reconciliation for a location and logs the outcome.
    """

    def __init__(self, location: str):
        self.location = location

    def run(
        self,
        existing: Sequence[MemberRecord],
        incoming: Sequence[MemberRecord],
    ) -> ReconciliationResult:
        result = reconcile_members(existing, incoming)
        logger.info(
            f"Reconciled {self.location}: {result.still_suspended} still suspended, "
            f"{result.renewed} renewed, {result.added} new",
            extra={"location": self.location, **result.to_dict()},
        )
        return result
