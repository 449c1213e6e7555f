"""
Runtime module - request pipeline.
"""

from __future__ import annotations

from .aggregator import AggregationResult, Aggregator, JoinStep, extract_values
from .assembler import OutputRecord, RecordAssembler, build_output_model, to_dict
from .context import AuthContext, ExecutionContext
from .engine import AggregationEngine, ItemResult
from .graph import RelationshipGraph
from .mapping import EntityMapping, MappingBuilder, MappingPlan
from .service_client import EntityClient, EntityFetcher
from .static_client import StaticEntityClient

__all__ = [
    "AuthContext",
    "ExecutionContext",
    "EntityMapping",
    "MappingPlan",
    "MappingBuilder",
    "RelationshipGraph",
    "EntityFetcher",
    "EntityClient",
    "StaticEntityClient",
    "JoinStep",
    "AggregationResult",
    "Aggregator",
    "extract_values",
    "OutputRecord",
    "RecordAssembler",
    "build_output_model",
    "to_dict",
    "AggregationEngine",
    "ItemResult",
]
