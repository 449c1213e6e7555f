"""
Source catalog - static registry of backend services and their entities.

Holds:
- Service base URLs
- Entity routes per service
- Per-field detail tier availability
- Entity key fields (default "id")

Usage:
    catalog = SourceCatalog.from_dict({
        "services": {"guest-service": "https://guest-service.domain"},
        "entities": {
            "guest-service": {
                "Guest": {
                    "route": "/api/guests",
                    "fields": {"id": "ids", "fullName": "mini", "address": "full"},
                },
            },
        },
    })
    tier, satisfied = catalog.select_tier("guest-service", "Guest", {"id", "fullName"})
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from .defs import DetailTier, entity_key
from .errors import ConfigurationError


DEFAULT_KEY_FIELD = "id"


@dataclass(frozen=True)
class EntitySource:
    """One remote entity as registered in the catalog."""
    service: str
    name: str
    route: Optional[str] = None
    key_field: str = DEFAULT_KEY_FIELD
    fields: dict[str, frozenset[DetailTier]] = field(default_factory=dict, hash=False)


@dataclass
class SourceCatalog:
    """
    Static catalog of services, entity routes and tier availability.

    Loaded once at startup and only read afterwards.
    """
    services: dict[str, str] = field(default_factory=dict)
    entities: dict[str, EntitySource] = field(default_factory=dict)
    default_tier: DetailTier = DetailTier.NORMAL

    def register_service(self, name: str, url: str):
        """Register a service with its base URL."""
        self.services[name] = url

    def register_entity(
        self,
        service: str,
        entity: str,
        route: Optional[str] = None,
        fields: Optional[Mapping[str, Any]] = None,
        key_field: str = DEFAULT_KEY_FIELD,
    ):
        """
        Register an entity with its route and field availability.

        Args:
            service: Service name
            entity: Entity name
            route: Path of the entity collection on the service (e.g. "/api/guests")
            fields: Field name -> lowest tier ("mini") or explicit tier list
            key_field: Field identifying a single record
        """
        availability = {
            name: parse_availability(tiers)
            for name, tiers in (fields or {}).items()
        }
        self.entities[entity_key(service, entity)] = EntitySource(
            service=service,
            name=entity,
            route=route,
            key_field=key_field,
            fields=availability,
        )

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def base_url(self, service: str) -> Optional[str]:
        return self.services.get(service)

    def entity(self, service: str, entity: str) -> Optional[EntitySource]:
        return self.entities.get(entity_key(service, entity))

    def endpoint(self, service: str, entity: str) -> Optional[str]:
        """Registered route of an entity, or None."""
        source = self.entity(service, entity)
        return source.route if source else None

    def entity_for_route(self, service: str, route: str) -> Optional[EntitySource]:
        """Entity served at a route of a service."""
        wanted = route.strip("/")
        return next(
            (
                source for source in self.entities.values()
                if source.service == service and source.route is not None
                and source.route.strip("/") == wanted
            ),
            None,
        )

    def full_url(self, service: str, entity: str) -> Optional[str]:
        """Base URL of the service joined with the entity route."""
        base_url = self.base_url(service)
        route = self.endpoint(service, entity)
        if base_url is None or route is None:
            return None
        return f"{base_url.rstrip('/')}/{route.lstrip('/')}"

    def key_field(self, service: str, entity: str) -> str:
        source = self.entity(service, entity)
        return source.key_field if source else DEFAULT_KEY_FIELD

    def tiers_for(self, service: str, entity: str, field_name: str) -> frozenset[DetailTier]:
        source = self.entity(service, entity)
        if source is None:
            return frozenset()
        return source.fields.get(field_name, frozenset())

    def is_registered(self, service: str, entity: str, field_name: str) -> bool:
        """True if the field is available at any tier."""
        return bool(self.tiers_for(service, entity, field_name))

    def is_available(self, service: str, entity: str, field_name: str, tier: DetailTier) -> bool:
        return tier in self.tiers_for(service, entity, field_name)

    def lowest_tier(self, service: str, entity: str, field_name: str) -> Optional[DetailTier]:
        tiers = self.tiers_for(service, entity, field_name)
        return min(tiers) if tiers else None

    def highest_tier(self, service: str, entity: str, field_name: str) -> Optional[DetailTier]:
        tiers = self.tiers_for(service, entity, field_name)
        return max(tiers) if tiers else None

    def fields_at(self, service: str, entity: str, tier: DetailTier) -> set[str]:
        """Names of all fields returned by an entity at a tier."""
        source = self.entity(service, entity)
        if source is None:
            return set()
        return {name for name, tiers in source.fields.items() if tier in tiers}

    def select_tier(
        self,
        service: str,
        entity: str,
        fields: Iterable[str],
    ) -> tuple[DetailTier, bool]:
        """
        Find the lowest tier at which every field is available.

        Returns:
            Tuple of (tier, satisfied). When no tier covers all fields,
            returns (DetailTier.FULL, False). An empty field set returns the
            catalog's default tier.
        """
        required = [f for f in fields if f]
        if not required:
            return self.default_tier, True

        for tier in DetailTier.ordered():
            if all(self.is_available(service, entity, f, tier) for f in required):
                return tier, True

        return DetailTier.FULL, False

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SourceCatalog":
        """
        Build a catalog from its YAML form.

        Example:
            services:
              guest-service: https://guest-service.domain
            entities:
              guest-service:
                Guest:
                  route: /api/guests
                  key: id
                  fields:
                    id: ids
                    countryCode: [mini, full]
        """
        catalog = cls()
        if data.get("default_tier"):
            catalog.default_tier = DetailTier.parse(data["default_tier"])

        for name, svc in (data.get("services") or {}).items():
            url = svc.get("url") if isinstance(svc, Mapping) else svc
            if not url:
                raise ConfigurationError(f"Service '{name}' has no url")
            catalog.register_service(name, url)

        for service, entities in (data.get("entities") or {}).items():
            for entity, entity_data in (entities or {}).items():
                entity_data = entity_data or {}
                catalog.register_entity(
                    service=service,
                    entity=entity,
                    route=entity_data.get("route"),
                    fields=entity_data.get("fields"),
                    key_field=entity_data.get("key", DEFAULT_KEY_FIELD),
                )

        return catalog


def parse_availability(availability: Any) -> frozenset[DetailTier]:
    """
    Parse a field's tier availability.

    "mini" means mini and every tier above it; a list names the exact tiers.
    """
    if isinstance(availability, (str, DetailTier)):
        return DetailTier.parse(availability).at_or_above()
    if isinstance(availability, Iterable):
        tiers = frozenset(DetailTier.parse(t) for t in availability)
        if not tiers:
            raise ConfigurationError("Field availability must name at least one tier")
        return tiers
    raise ConfigurationError(f"Invalid field availability: {availability!r}")
