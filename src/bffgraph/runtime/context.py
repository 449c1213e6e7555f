"""
Per-request context values.

Created for one request, passed explicitly through every step and
discarded once the response is produced. Nothing here is shared between
requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..core.defs import ResourceSchema
from ..core.errors import AuthenticationError
from ..core.query_types import Operation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """
    The already-validated caller: the portal it came through and its roles.

    Supplied by the collaborator that terminates token validation.
    """
    portal: str
    roles: frozenset[str]

    @classmethod
    def create(cls, portal: Optional[str], roles: Optional[Iterable[str]]) -> "AuthContext":
        """
        Validate and build an auth context.

        Raises:
            AuthenticationError: If the portal is missing/empty or the role
                set is missing
        """
        if not isinstance(portal, str) or not portal.strip():
            raise AuthenticationError("Missing portal information in authentication data")
        if roles is None or isinstance(roles, str):
            raise AuthenticationError("Missing roles in authentication data")

        role_set = frozenset(r.strip() for r in roles if r and r.strip())
        if not role_set:
            logger.warning(f"Caller has no roles assigned (portal={portal})")
        return cls(portal=portal.strip(), roles=role_set)


@dataclass(frozen=True)
class ExecutionContext:
    """
    Context passed through the aggregation pipeline.

    Contains:
    - auth: The caller
    - operation: The requested read
    - schema: Schema of the requested resource
    - visible_fields: Output fields the caller may read, in schema order
    """
    auth: AuthContext
    operation: Operation
    schema: ResourceSchema
    visible_fields: tuple[str, ...]

    @property
    def is_item(self) -> bool:
        return self.operation.is_item
