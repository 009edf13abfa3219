"""
Member Reconciliation Module

Merges uploaded suspended-member lists into the stored list of a location:
- Field classification (identifying / hidden / annotation)
- Identity keys for matching members across uploads
- Still-suspended / renewed / new reconciliation
- Display ordering and search
"""

from reconciliation.matching_rules.member_rules import (
    FieldKind,
    MemberSchema,
    build_member_key,
    normalize_field_name,
    is_hidden_field,
    field_kind,
)
from reconciliation.services.reconciliation_service import (
    ReconciliationResult,
    ReconciliationService,
    reconcile,
    reconcile_members,
)
from reconciliation.display import (
    filter_members,
    sort_by_suspend_date,
    visible_columns,
)

__all__ = [
    # Matching rules
    'FieldKind',
    'MemberSchema',
    'build_member_key',
    'normalize_field_name',
    'is_hidden_field',
    'field_kind',
    # Service
    'ReconciliationResult',
    'ReconciliationService',
    'reconcile',
    'reconcile_members',
    # Display
    'filter_members',
    'sort_by_suspend_date',
    'visible_columns',
]
