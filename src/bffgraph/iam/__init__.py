"""
IAM (Identity and Access Management) module - per-field access control.
"""

from __future__ import annotations

from .guard import filter_visible_fields
from .policy import (
    UNPOLICED_FIELDS_VISIBLE,
    AnyRoleMatcher,
    ComputedRoleMatcher,
    RoleMatcher,
    get_role_matcher,
)
from .resolver import FieldAccessResolver

__all__ = [
    "UNPOLICED_FIELDS_VISIBLE",
    "RoleMatcher",
    "AnyRoleMatcher",
    "ComputedRoleMatcher",
    "get_role_matcher",
    "FieldAccessResolver",
    "filter_visible_fields",
]
