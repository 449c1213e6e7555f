"""
Resource registry - static map of composite resource types to schemas.

Built once at startup from Python declarations or the ``resources`` section
of bffgraph.yaml and consumed read-only per request.

Usage:
    from bffgraph.core.registry import ResourceRegistry

    registry = ResourceRegistry()
    registry.register(guest_reservation_schema)
    problems = registry.validate(catalog)
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .catalog import SourceCatalog
from .defs import ResourceSchema
from .errors import ConfigurationError, UnknownResourceError


class ResourceRegistry:
    """
    Collects resource schemas by resource type name.

    Example:
        registry = ResourceRegistry([guest_reservation_schema])
        schema = registry.get("GuestReservation")
    """

    def __init__(self, schemas: Iterable[ResourceSchema] = ()):
        self._schemas: dict[str, ResourceSchema] = {}
        for schema in schemas:
            self.register(schema)

    def register(self, schema: ResourceSchema):
        """Register a schema. Names must be unique."""
        if schema.name in self._schemas:
            raise ConfigurationError(f"Resource '{schema.name}' is already registered")
        self._schemas[schema.name] = schema

    def get(self, resource_type: str) -> ResourceSchema:
        schema = self._schemas.get(resource_type)
        if schema is None:
            raise UnknownResourceError(resource_type)
        return schema

    def names(self) -> list[str]:
        return list(self._schemas)

    def __contains__(self, resource_type: str) -> bool:
        return resource_type in self._schemas

    def __iter__(self):
        return iter(self._schemas.values())

    def __len__(self) -> int:
        return len(self._schemas)

    def validate(self, catalog: SourceCatalog) -> list[str]:
        """
        Check every schema against the catalog.

        Returns a list of human readable problems; an empty list means the
        registry is consistent with the catalog.
        """
        problems: list[str] = []

        for schema in self._schemas.values():
            primary = schema.primary_entity
            if primary is None:
                problems.append(f"{schema.name}: no bound fields, primary entity unknown")
            elif catalog.endpoint(*primary) is None:
                problems.append(f"{schema.name}: primary entity {primary[0]}:{primary[1]} has no route")

            for f in schema.fields:
                if f.policy is None:
                    problems.append(f"{schema.name}.{f.name}: no access policy")
                for binding in f.bindings:
                    if catalog.base_url(binding.service) is None:
                        problems.append(f"{schema.name}.{f.name}: unknown service '{binding.service}'")
                    elif catalog.endpoint(binding.service, binding.entity) is None:
                        problems.append(f"{schema.name}.{f.name}: no route for {binding.entity_key}")
                    elif not catalog.is_registered(binding.service, binding.entity, binding.field):
                        problems.append(f"{schema.name}.{f.name}: {binding} is not available at any tier")

        return problems

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceRegistry":
        """Build a registry from the ``resources`` section of the config."""
        return cls(
            ResourceSchema.from_dict(name, resource_data or {})
            for name, resource_data in (data or {}).items()
        )
