"""
Role matching strategies for field access policies.

A field policy declares, per portal, the roles that unlock the field. How
caller roles are compared against that set is pluggable:

- AnyRoleMatcher: any declared role held by the caller is sufficient.
- ComputedRoleMatcher: the caller must hold one specific role name
  computed from the BFF name and resource name, and that role must be
  declared for the portal.
"""

from __future__ import annotations

from typing import Optional, Protocol


# Fields declared without any FieldPolicy are denied unless overridden.
UNPOLICED_FIELDS_VISIBLE = False


class RoleMatcher(Protocol):
    """Decides whether caller roles satisfy a portal's required roles."""

    def matches(
        self,
        required_roles: frozenset[str],
        caller_roles: frozenset[str],
        resource: str,
    ) -> bool:
        ...


class AnyRoleMatcher:
    """Visible iff the caller holds at least one of the required roles."""

    name = "any"

    def matches(
        self,
        required_roles: frozenset[str],
        caller_roles: frozenset[str],
        resource: str,
    ) -> bool:
        return bool(required_roles & caller_roles)


class ComputedRoleMatcher:
    """
    Strict matching on a computed role name.

    The expected role is ROLE_<BFF>-<RESOURCE>_ACCESS, upper-cased. It must
    be listed for the portal and held by the caller.

    Example:
        ComputedRoleMatcher("hotel-bff") with resource "GuestReservation"
        expects "ROLE_HOTEL-BFF-GUESTRESERVATION_ACCESS".
    """

    name = "computed"

    def __init__(self, bff_name: str):
        if not bff_name:
            raise ValueError("ComputedRoleMatcher requires a BFF name")
        self.bff_name = bff_name

    def expected_role(self, resource: str) -> str:
        return f"ROLE_{self.bff_name.upper()}-{resource.upper()}_ACCESS"

    def matches(
        self,
        required_roles: frozenset[str],
        caller_roles: frozenset[str],
        resource: str,
    ) -> bool:
        expected = self.expected_role(resource)
        return expected in required_roles and expected in caller_roles


def get_role_matcher(name: str = "any", bff_name: Optional[str] = None) -> RoleMatcher:
    """
    Build a role matcher by configuration name.

    Args:
        name: "any" or "computed"
        bff_name: Required for "computed"
    """
    if name == AnyRoleMatcher.name:
        return AnyRoleMatcher()
    if name == ComputedRoleMatcher.name:
        return ComputedRoleMatcher(bff_name or "")
    raise ValueError(f"Unknown role matching strategy: {name!r}")
