"""
In-memory entity client.

Serves records from a static ``{service: {entity: [records]}}`` mapping with
the same contract as EntityClient: records are narrowed to the fields the
catalog exposes at the requested tier, and eq / in / id filters apply.
Used by the demo gateway (``static_data`` in bffgraph.yaml) and by tests.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..core.catalog import SourceCatalog
from ..core.defs import DetailTier
from ..core.errors import ConfigurationError
from ..core.query_types import EntityFilter

logger = logging.getLogger(__name__)


class StaticEntityClient:
    """
    Usage:
        client = StaticEntityClient(catalog, {
            "guest-service": {"Guest": [{"id": "G001", "fullName": "John Doe"}]},
        })
    """

    def __init__(
        self,
        catalog: SourceCatalog,
        data: Mapping[str, Mapping[str, list[dict[str, Any]]]],
    ):
        self.catalog = catalog
        self.data = data

    async def fetch(
        self,
        service: str,
        endpoint: str,
        tier: DetailTier,
        filters: Optional[list[EntityFilter]] = None,
        id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        source = self.catalog.entity_for_route(service, endpoint)
        if source is None:
            raise ConfigurationError(f"No entity registered at {service}{endpoint}")

        records = self.data.get(service, {}).get(source.name, [])
        logger.info(
            f"Serving static {service}:{source.name} tier={tier.value} "
            f"filters={[f.model_dump() for f in filters or []]} id={id}"
        )

        if id is not None:
            records = [r for r in records if _same(r.get(source.key_field), id)]
        for f in filters or []:
            records = [r for r in records if _matches(r, f)]

        exposed = self.catalog.fields_at(service, source.name, tier)
        return [
            {name: value for name, value in record.items() if name in exposed}
            for record in records
        ]

    async def close(self):
        pass


def _same(a: Any, b: Any) -> bool:
    return a is not None and str(a) == str(b)


def _matches(record: dict[str, Any], f: EntityFilter) -> bool:
    value = record.get(f.field)
    if f.op == "in":
        candidates = f.value if isinstance(f.value, (list, tuple, set)) else [f.value]
        return any(_same(value, c) for c in candidates)
    return _same(value, f.value)
