"""
Mapping builder - decides which remote entities to fetch for a request.

Given the caller's visible fields, groups their source bindings by
(service, entity), picks the cheapest sufficient detail tier per entity and
drops entities that would only be fetched for a join key already known from
another entity.

The builder plays the role of a query planner: its output (MappingPlan) is
consumed by the Aggregator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..core.catalog import DEFAULT_KEY_FIELD, SourceCatalog
from ..core.defs import (
    DetailTier,
    RelationshipBinding,
    ResourceSchema,
    SourceFieldBinding,
    entity_key,
)
from ..core.errors import ConfigurationError, RelationshipConfigurationError
from .graph import RelationshipGraph

logger = logging.getLogger(__name__)


@dataclass
class EntityMapping:
    """
    One remote entity to fetch for a request.

    Built fresh per request, never shared.
    """
    service: str
    entity: str
    endpoint: str = ""
    required_fields: set[str] = field(default_factory=set)
    field_map: dict[str, str] = field(default_factory=dict)  # output field -> entity field
    tier: DetailTier = DetailTier.FULL
    is_primary: bool = False
    key_field: str = DEFAULT_KEY_FIELD

    @property
    def key(self) -> str:
        return entity_key(self.service, self.entity)

    def qualify(self, entity_field: str) -> str:
        """Name of an entity field inside a merged raw record."""
        return f"{self.key}.{entity_field}"


@dataclass
class MappingPlan:
    """Entity mappings (primary first) and the relationships joining them."""
    mappings: list[EntityMapping]
    relationships: list[RelationshipBinding] = field(default_factory=list)

    @property
    def primary(self) -> EntityMapping:
        return self.mappings[0]

    def get(self, key: str) -> Optional[EntityMapping]:
        return next((m for m in self.mappings if m.key == key), None)

    def graph(self) -> RelationshipGraph:
        return RelationshipGraph(self.relationships)


class MappingBuilder:
    """
    Builds a MappingPlan from visible fields.

    Usage:
        builder = MappingBuilder(catalog)
        plan = builder.build(schema, visible_fields)
    """

    def __init__(self, catalog: SourceCatalog):
        self.catalog = catalog

    def build(self, schema: ResourceSchema, visible_fields: Iterable[str]) -> MappingPlan:
        """
        Build the plan.

        Raises:
            ConfigurationError: If a required entity has no endpoint
            RelationshipConfigurationError: If required entities cannot be joined
        """
        primary = schema.primary_entity
        if primary is None:
            raise ConfigurationError(f"Resource '{schema.name}' has no bound fields")

        groups: dict[str, EntityMapping] = {}

        # Primary entity is always fetched, at least for its key
        primary_mapping = self._group(groups, *primary)
        primary_mapping.is_primary = True
        primary_mapping.required_fields.add(primary_mapping.key_field)

        # 1. Collect bindings of visible fields
        for name in visible_fields:
            field_def = schema.field(name)
            if field_def is None:
                continue
            for binding in field_def.bindings:
                if not self.catalog.is_registered(binding.service, binding.entity, binding.field):
                    logger.warning(
                        f"{schema.name}.{name}: {binding} is not registered at any tier, skipping"
                    )
                    continue
                mapping = self._group(groups, binding.service, binding.entity)
                mapping.required_fields.add(binding.field)
                mapping.field_map.setdefault(name, binding.field)

        # Relationships between entities that are both required
        relationships = [
            rel for rel in schema.relationships
            if all(key in groups for key in rel.entity_keys)
        ]
        for rel in relationships:
            groups[rel.source.entity_key].required_fields.add(rel.source.field)
            groups[rel.target.entity_key].required_fields.add(rel.target.field)

        # 2. Resolve endpoints
        for mapping in groups.values():
            mapping.endpoint = self._resolve_endpoint(schema, mapping)

        mappings = list(groups.values())

        # 3. Minimal tier per entity
        for mapping in mappings:
            self._select_tier(schema, mapping)

        # 4. Drop entities only needed for an already-known join key
        mappings, relationships = self._optimize(mappings, relationships)

        # 5. Consistency check
        plan = MappingPlan(mappings=mappings, relationships=relationships)
        self._check_connected(schema, plan)

        logger.debug(
            f"Mapping plan for {schema.name}: "
            + ", ".join(f"{m.key}@{m.tier.value}{sorted(m.required_fields)}" for m in plan.mappings)
        )
        return plan

    def _group(self, groups: dict[str, EntityMapping], service: str, entity: str) -> EntityMapping:
        key = entity_key(service, entity)
        mapping = groups.get(key)
        if mapping is None:
            mapping = EntityMapping(
                service=service,
                entity=entity,
                key_field=self.catalog.key_field(service, entity),
            )
            groups[key] = mapping
        return mapping

    def _resolve_endpoint(self, schema: ResourceSchema, mapping: EntityMapping) -> str:
        endpoint = self.catalog.endpoint(mapping.service, mapping.entity)
        if endpoint is None:
            raise ConfigurationError(
                f"Resource '{schema.name}': no endpoint registered for {mapping.key}"
            )
        if self.catalog.base_url(mapping.service) is None:
            raise ConfigurationError(
                f"Resource '{schema.name}': no base URL registered for service '{mapping.service}'"
            )
        return endpoint

    def _select_tier(self, schema: ResourceSchema, mapping: EntityMapping):
        tier, satisfied = self.catalog.select_tier(
            mapping.service, mapping.entity, mapping.required_fields
        )
        if not satisfied:
            logger.warning(
                f"Resource '{schema.name}': no tier of {mapping.key} covers "
                f"{sorted(mapping.required_fields)}, falling back to '{tier.value}'"
            )
        mapping.tier = tier

    def _optimize(
        self,
        mappings: list[EntityMapping],
        relationships: list[RelationshipBinding],
    ) -> tuple[list[EntityMapping], list[RelationshipBinding]]:
        """
        Drop non-primary mappings whose only required field is a join key.

        If entity E is only needed for E.f, and a relationship E.f <-> M.g
        links it to an entity M already in the set, M.g carries the same
        value: output fields read from E.f are re-pointed at M.g and both E
        and the relationship are removed.
        """
        changed = True
        while changed and len(mappings) > 1:
            changed = False
            for mapping in mappings:
                if mapping.is_primary:
                    continue

                edges = [rel for rel in relationships if rel.touches(mapping.key)]
                if len(edges) != 1:
                    continue

                rel = edges[0]
                own_side = rel.side(mapping.key)
                if mapping.required_fields != {own_side.field}:
                    continue

                other_side = rel.other_side(mapping.key)
                other = next((m for m in mappings if m.key == other_side.entity_key), None)
                if other is None:
                    continue

                self._repoint(mapping, own_side, other, other_side)
                logger.debug(
                    f"Dropping {mapping.key}: '{own_side.field}' is already known "
                    f"from {other_side}"
                )
                mappings = [m for m in mappings if m is not mapping]
                relationships = [r for r in relationships if r is not rel]
                changed = True
                break

        return mappings, relationships

    def _repoint(
        self,
        dropped: EntityMapping,
        dropped_side: SourceFieldBinding,
        other: EntityMapping,
        other_side: SourceFieldBinding,
    ):
        # other_side.field is already required: join keys were added above
        for output_field, entity_field in dropped.field_map.items():
            if entity_field == dropped_side.field:
                other.field_map.setdefault(output_field, other_side.field)

    def _check_connected(self, schema: ResourceSchema, plan: MappingPlan):
        if len(plan.mappings) <= 1:
            return

        if not plan.relationships:
            raise RelationshipConfigurationError(
                f"Resource '{schema.name}' needs "
                f"{', '.join(m.key for m in plan.mappings)} but declares no relationship between them"
            )

        reachable = plan.graph().reachable(plan.primary.key)
        unreachable = [m.key for m in plan.mappings if m.key not in reachable]
        if unreachable:
            raise RelationshipConfigurationError(
                f"Resource '{schema.name}': no relationship path from {plan.primary.key} "
                f"to {', '.join(unreachable)}"
            )
