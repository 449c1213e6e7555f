"""
Core dataclass definitions for bffgraph.

These define the static, process-wide shape of composite resources:
per-field access policies, source bindings onto remote entities and the
relationships used to join entities together. Everything here is built once
at startup and is read-only afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from .errors import ConfigurationError


# Output value types understood by the record assembler
FIELD_TYPES = {"string", "int", "float", "bool", "date", "datetime", "json"}


class DetailTier(str, Enum):
    """
    Graduated level of field exposure for a remote entity.

    Ordered ids < mini < normal < full. Remote services receive the tier as
    ``context=context_<tier>``.
    """
    IDS = "ids"
    MINI = "mini"
    NORMAL = "normal"
    FULL = "full"

    @classmethod
    def ordered(cls) -> list["DetailTier"]:
        """All tiers from lowest to highest."""
        return [cls.IDS, cls.MINI, cls.NORMAL, cls.FULL]

    @classmethod
    def parse(cls, value: "DetailTier | str") -> "DetailTier":
        """
        Parse a tier name.

        Accepts "full", "FULL" and the wire form "context_full".
        """
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower()
        if name.startswith("context_"):
            name = name[len("context_"):]
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown detail tier: {value!r}") from None

    @property
    def rank(self) -> int:
        return DetailTier.ordered().index(self)

    @property
    def query_value(self) -> str:
        """Value sent to remote services in the ``context`` parameter."""
        return f"context_{self.value}"

    def at_or_above(self) -> frozenset["DetailTier"]:
        """This tier and every tier above it."""
        return frozenset(t for t in DetailTier.ordered() if t.rank >= self.rank)

    def __lt__(self, other):
        if not isinstance(other, DetailTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, DetailTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, DetailTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, DetailTier):
            return NotImplemented
        return self.rank >= other.rank


@dataclass(frozen=True)
class FieldPolicy:
    """
    Per-portal required roles for one field.

    A portal missing from ``portal_roles`` means no access through that
    portal. Empty role names are dropped, so ``{"distributor": [""]}``
    grants nothing.
    """
    field_name: str
    portal_roles: Mapping[str, frozenset[str]] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        normalized = {
            portal: frozenset(role for role in roles if role)
            for portal, roles in dict(self.portal_roles).items()
        }
        object.__setattr__(self, "portal_roles", MappingProxyType(normalized))

    @classmethod
    def of(cls, field_name: str, portal_roles: Mapping[str, Iterable[str]]) -> "FieldPolicy":
        """Build a policy from a plain ``{portal: [roles]}`` mapping."""
        return cls(field_name=field_name, portal_roles={p: frozenset(r) for p, r in portal_roles.items()})

    @property
    def portals(self) -> list[str]:
        return list(self.portal_roles)

    def has_portal(self, portal: str) -> bool:
        return portal in self.portal_roles

    def roles_for(self, portal: str) -> frozenset[str]:
        return self.portal_roles.get(portal, frozenset())


@dataclass(frozen=True)
class SourceFieldBinding:
    """Maps one output field onto one field of one remote entity."""
    service: str
    entity: str
    field: str

    @property
    def entity_key(self) -> str:
        return entity_key(self.service, self.entity)

    @classmethod
    def parse(cls, value: "SourceFieldBinding | Mapping[str, Any] | str") -> "SourceFieldBinding":
        """
        Parse a binding declaration.

        Accepts a dict with service/entity/field keys or the compact string
        form "guest-service:Guest.fullName".
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            service, sep, rest = value.partition(":")
            entity, dot, field_name = rest.partition(".")
            if not sep or not dot or not service or not entity or not field_name:
                raise ConfigurationError(f"Invalid source binding: {value!r}")
            return cls(service=service, entity=entity, field=field_name)
        try:
            return cls(service=value["service"], entity=value["entity"], field=value["field"])
        except (KeyError, TypeError):
            raise ConfigurationError(f"Invalid source binding: {value!r}") from None

    def __str__(self) -> str:
        return f"{self.service}:{self.entity}.{self.field}"


@dataclass(frozen=True)
class RelationshipBinding:
    """
    Declares that ``source`` values are foreign keys into ``target``.

    Example: Guest.reservationId -> Reservation.id, owned by the
    ``reservation_id`` field of a composite resource.
    """
    source: SourceFieldBinding
    target: SourceFieldBinding
    owner_field: str = ""

    def __post_init__(self):
        if self.source.entity_key == self.target.entity_key:
            raise ConfigurationError(
                f"Relationship on '{self.owner_field}' links {self.source.entity_key} to itself"
            )

    @property
    def entity_keys(self) -> tuple[str, str]:
        return self.source.entity_key, self.target.entity_key

    def touches(self, key: str) -> bool:
        return key in self.entity_keys

    def side(self, key: str) -> SourceFieldBinding:
        """Binding on the given entity's side of the relationship."""
        if key == self.source.entity_key:
            return self.source
        if key == self.target.entity_key:
            return self.target
        raise KeyError(key)

    def other_side(self, key: str) -> SourceFieldBinding:
        """Binding on the opposite side from the given entity."""
        if key == self.source.entity_key:
            return self.target
        if key == self.target.entity_key:
            return self.source
        raise KeyError(key)

    def __str__(self) -> str:
        return f"{self.source} -> {self.target}"


@dataclass(frozen=True)
class FieldDef:
    """One field of a composite resource."""
    name: str
    type: str = "string"
    policy: Optional[FieldPolicy] = None
    sources: tuple[SourceFieldBinding, ...] = ()
    relationship: Optional[RelationshipBinding] = None

    def __post_init__(self):
        if self.type not in FIELD_TYPES:
            raise ConfigurationError(f"Field '{self.name}': unknown type '{self.type}'")
        object.__setattr__(self, "sources", tuple(self.sources))
        if self.relationship is not None and self.sources:
            raise ConfigurationError(
                f"Field '{self.name}': declare either sources or a relationship, not both"
            )

    @property
    def bindings(self) -> tuple[SourceFieldBinding, ...]:
        """Entity fields backing this output field."""
        if self.relationship is not None:
            return self.relationship.source, self.relationship.target
        return self.sources

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "FieldDef":
        """
        Build a field from its YAML declaration.

        Example:
            reservation_id:
              type: string
              access: {admin: [ACCESS]}
              relationship:
                source: guest-service:Guest.reservationId
                target: reservation-service:Reservation.id
        """
        data = data or {}
        access = data.get("access")
        policy = FieldPolicy.of(name, access) if access is not None else None

        raw_sources = data.get("source", data.get("sources", []))
        if isinstance(raw_sources, (str, Mapping)):
            raw_sources = [raw_sources]
        sources = tuple(SourceFieldBinding.parse(s) for s in raw_sources)

        relationship = None
        rel = data.get("relationship")
        if rel:
            relationship = RelationshipBinding(
                source=SourceFieldBinding.parse(rel["source"]),
                target=SourceFieldBinding.parse(rel["target"]),
                owner_field=name,
            )

        return cls(
            name=name,
            type=data.get("type", "string"),
            policy=policy,
            sources=sources,
            relationship=relationship,
        )


@dataclass(frozen=True)
class ResourceSchema:
    """
    Ordered field schema of a composite resource.

    ``primary`` names the (service, entity) that drives collection results;
    when omitted, the entity of the first bound field is used.
    """
    name: str
    fields: tuple[FieldDef, ...]
    primary: Optional[tuple[str, str]] = None

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))
        seen: set[str] = set()
        for f in self.fields:
            if f.name in seen:
                raise ConfigurationError(f"Resource '{self.name}': duplicate field '{f.name}'")
            seen.add(f.name)
        if self.primary is not None:
            object.__setattr__(self, "primary", tuple(self.primary))

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def relationships(self) -> list[RelationshipBinding]:
        return [f.relationship for f in self.fields if f.relationship is not None]

    @property
    def primary_entity(self) -> Optional[tuple[str, str]]:
        if self.primary is not None:
            return self.primary
        for f in self.fields:
            for binding in f.bindings:
                return binding.service, binding.entity
        return None

    def field(self, name: str) -> Optional[FieldDef]:
        return next((f for f in self.fields if f.name == name), None)

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "ResourceSchema":
        """Build a resource schema from its YAML declaration."""
        primary = data.get("primary")
        if isinstance(primary, Mapping):
            primary = (primary["service"], primary["entity"])
        elif isinstance(primary, str):
            service, _, entity = primary.partition(":")
            primary = (service, entity)

        fields = tuple(
            FieldDef.from_dict(field_name, field_data)
            for field_name, field_data in (data.get("fields") or {}).items()
        )
        return cls(name=name, fields=fields, primary=primary)


def entity_key(service: str, entity: str) -> str:
    """Identifier of a remote entity across services."""
    return f"{service}:{entity}"
