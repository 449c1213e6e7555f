"""
Custom exceptions for the bffgraph engine.
"""

from __future__ import annotations

from typing import Optional


class BffGraphError(Exception):
    """Base exception for all bffgraph errors."""
    pass


class AuthenticationError(BffGraphError):
    """Raised when the caller's portal or role set is missing or invalid."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class UnknownResourceError(BffGraphError):
    """Raised when a requested composite resource type is not registered."""

    def __init__(self, resource_type: str):
        self.resource_type = resource_type
        super().__init__(f"Resource '{resource_type}' not found")


class ConfigurationError(BffGraphError):
    """Raised when the resource schema or source catalog is misconfigured."""
    pass


class RelationshipConfigurationError(ConfigurationError):
    """Raised when required entities have no declared join path."""
    pass


class ServiceError(BffGraphError):
    """Raised when a backend service call fails."""

    def __init__(self, service: str, status_code: int, message: str):
        self.service = service
        self.status_code = status_code
        super().__init__(f"Service '{service}' returned {status_code}: {message}")


class FetchError(BffGraphError):
    """Raised when fetching an entity for a composite resource fails."""

    def __init__(self, service: str, entity: str, cause: Optional[BaseException] = None):
        self.service = service
        self.entity = entity
        self.cause = cause
        reason = str(cause) if cause is not None and str(cause) else type(cause).__name__
        super().__init__(f"Fetching {service}:{entity} failed: {reason}")


class PrimaryFetchError(FetchError):
    """Primary entity fetch failed or timed out. Fatal for the request."""
    pass


class SecondaryFetchError(FetchError):
    """
    Non-primary entity fetch failed or timed out.

    Never raised out of the aggregator: recorded on the result and logged,
    the entity simply contributes no fields.
    """
    pass


class GraphIterationLimitExceeded(BffGraphError):
    """
    Relationship traversal exceeded its iteration bound.

    Logged as a warning and recorded on the aggregation result; the
    partial merge is still returned.
    """

    def __init__(self, limit: int, pending: list[str]):
        self.limit = limit
        self.pending = pending
        super().__init__(f"Relationship traversal stopped after {limit} iterations, pending: {pending}")
