"""
Core module - definitions, catalog, registry and errors.
"""

from __future__ import annotations

from .catalog import EntitySource, SourceCatalog, parse_availability
from .defs import (
    FIELD_TYPES,
    DetailTier,
    FieldDef,
    FieldPolicy,
    RelationshipBinding,
    ResourceSchema,
    SourceFieldBinding,
    entity_key,
)
from .errors import (
    AuthenticationError,
    BffGraphError,
    ConfigurationError,
    FetchError,
    GraphIterationLimitExceeded,
    PrimaryFetchError,
    RelationshipConfigurationError,
    SecondaryFetchError,
    ServiceError,
    UnknownResourceError,
)
from .query_types import EntityFilter, Operation
from .registry import ResourceRegistry
from .utils import camel_case_fields, to_camel_case

__all__ = [
    # Definitions
    "FIELD_TYPES",
    "DetailTier",
    "FieldPolicy",
    "SourceFieldBinding",
    "RelationshipBinding",
    "FieldDef",
    "ResourceSchema",
    "entity_key",
    # Catalog
    "EntitySource",
    "SourceCatalog",
    "parse_availability",
    # Operations
    "EntityFilter",
    "Operation",
    # Registry
    "ResourceRegistry",
    # Errors
    "BffGraphError",
    "AuthenticationError",
    "UnknownResourceError",
    "ConfigurationError",
    "RelationshipConfigurationError",
    "ServiceError",
    "FetchError",
    "PrimaryFetchError",
    "SecondaryFetchError",
    "GraphIterationLimitExceeded",
    # Utils
    "to_camel_case",
    "camel_case_fields",
]
