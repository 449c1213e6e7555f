"""
bffgraph - composite resources for backend-for-frontend gateways.

Declares resources whose fields come from entities of several backend
services, decides per caller (portal + roles) which fields are visible,
fetches only what is needed at the cheapest detail tier and joins the
results into typed records.

Usage:
    from bffgraph import Gateway, load_settings

    gateway = Gateway(load_settings("bffgraph.yaml"))
    app = gateway.app
"""

from __future__ import annotations

from .api import create_router, router
from .config import Settings, configure_logging, load_settings
from .core import (
    AuthenticationError,
    BffGraphError,
    ConfigurationError,
    DetailTier,
    EntityFilter,
    FieldDef,
    FieldPolicy,
    FetchError,
    GraphIterationLimitExceeded,
    Operation,
    PrimaryFetchError,
    RelationshipBinding,
    RelationshipConfigurationError,
    ResourceRegistry,
    ResourceSchema,
    SecondaryFetchError,
    ServiceError,
    SourceCatalog,
    SourceFieldBinding,
    UnknownResourceError,
)
from .gateway import Gateway
from .iam import AnyRoleMatcher, ComputedRoleMatcher, FieldAccessResolver, get_role_matcher
from .runtime import (
    AggregationEngine,
    AggregationResult,
    Aggregator,
    AuthContext,
    EntityClient,
    ItemResult,
    MappingBuilder,
    MappingPlan,
    RecordAssembler,
    StaticEntityClient,
)

__version__ = "0.1.0"

__all__ = [
    # API
    "router",
    "create_router",
    "Gateway",
    # Configuration
    "Settings",
    "load_settings",
    "configure_logging",
    # Definitions
    "DetailTier",
    "FieldPolicy",
    "SourceFieldBinding",
    "RelationshipBinding",
    "FieldDef",
    "ResourceSchema",
    "SourceCatalog",
    "ResourceRegistry",
    "EntityFilter",
    "Operation",
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
    # IAM
    "FieldAccessResolver",
    "AnyRoleMatcher",
    "ComputedRoleMatcher",
    "get_role_matcher",
    # Runtime
    "AuthContext",
    "MappingBuilder",
    "MappingPlan",
    "Aggregator",
    "AggregationResult",
    "RecordAssembler",
    "AggregationEngine",
    "ItemResult",
    "EntityClient",
    "StaticEntityClient",
]
