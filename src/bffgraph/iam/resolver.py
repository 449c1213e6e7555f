"""
Field access resolver - decides which output fields a caller may read.

For each field of a resource schema:
- no policy: visible only if UNPOLICED_FIELDS_VISIBLE (deny by default)
- portal absent from the policy, or no roles declared for it: denied
- otherwise visible iff the role matcher accepts the caller's roles
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from ..core.defs import FieldDef, ResourceSchema
from .policy import UNPOLICED_FIELDS_VISIBLE, AnyRoleMatcher, RoleMatcher

if TYPE_CHECKING:
    from ..runtime.context import AuthContext

logger = logging.getLogger(__name__)


class FieldAccessResolver:
    """
    Computes the ordered set of visible fields for a caller.

    Pure given its inputs: same schema and auth context always give the
    same answer.

    Usage:
        resolver = FieldAccessResolver()
        visible = resolver.visible_fields(schema, AuthContext.create("admin", ["ACCESS"]))
    """

    def __init__(
        self,
        role_matcher: Optional[RoleMatcher] = None,
        unpoliced_visible: bool = UNPOLICED_FIELDS_VISIBLE,
    ):
        self.role_matcher = role_matcher or AnyRoleMatcher()
        self.unpoliced_visible = unpoliced_visible

    def visible_fields(self, schema: ResourceSchema, auth: AuthContext) -> tuple[str, ...]:
        """Visible field names in schema order."""
        visible = tuple(
            f.name for f in schema.fields
            if self.is_visible(f, auth, schema.name)
        )
        logger.debug(
            f"Visible fields for {schema.name} (portal={auth.portal}, "
            f"roles={sorted(auth.roles)}): {list(visible)}"
        )
        return visible

    def is_visible(self, field_def: FieldDef, auth: AuthContext, resource: str) -> bool:
        policy = field_def.policy
        if policy is None:
            return self.unpoliced_visible

        if not policy.has_portal(auth.portal):
            return False

        required = policy.roles_for(auth.portal)
        if not required:
            return False

        return self.role_matcher.matches(required, auth.roles, resource)
