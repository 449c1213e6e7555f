"""
Aggregator - fetches entities of a mapping plan and joins them.

Handles:
- Fetching the primary entity (by id or with pass-through filters)
- Walking the relationship graph outward from the primary entity
- Extracting join keys from already-fetched data
- Fetching sibling entities concurrently, bounded per request
- Merging related records into the primary records

Merged raw records are flat dicts keyed by qualified names
("service:Entity.field") so same-named fields of different entities never
collide.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Optional

from ..core.defs import RelationshipBinding
from ..core.errors import (
    ConfigurationError,
    GraphIterationLimitExceeded,
    PrimaryFetchError,
    SecondaryFetchError,
)
from ..core.query_types import EntityFilter, Operation
from .mapping import EntityMapping, MappingPlan
from .service_client import EntityFetcher

logger = logging.getLogger(__name__)


@dataclass
class JoinStep:
    """A processed relationship: ``mapping`` was fetched via its link to ``anchor``."""
    mapping: EntityMapping
    anchor: EntityMapping
    relationship: RelationshipBinding

    @property
    def own_field(self) -> str:
        return self.relationship.side(self.mapping.key).field

    @property
    def anchor_field(self) -> str:
        return self.relationship.side(self.anchor.key).field


@dataclass
class AggregationResult:
    """
    Output of an aggregation.

    ``records`` is always a list; item operations yield 0 or 1 records.
    ``failures`` lists secondary entities that contributed nothing.
    """
    records: list[dict[str, Any]] = field(default_factory=list)
    failures: list[SecondaryFetchError] = field(default_factory=list)
    truncated: Optional[GraphIterationLimitExceeded] = None
    joins: list[JoinStep] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures) or self.truncated is not None


class Aggregator:
    """
    Executes a MappingPlan against remote services.

    Usage:
        aggregator = Aggregator(client, fetch_timeout=5.0, max_fanout=4)
        result = await aggregator.aggregate(plan, operation)
    """

    def __init__(
        self,
        client: EntityFetcher,
        fetch_timeout: float = 10.0,
        max_fanout: int = 4,
        max_iterations: Optional[int] = None,
    ):
        """
        Initialize aggregator.

        Args:
            client: Remote entity fetcher
            fetch_timeout: Timeout in seconds for each outbound fetch
            max_fanout: Max concurrent fetches per request
            max_iterations: Traversal bound; defaults to 2 x number of mappings
        """
        self.client = client
        self.fetch_timeout = fetch_timeout
        self.max_fanout = max(1, max_fanout)
        self.max_iterations = max_iterations

    async def aggregate(self, plan: MappingPlan, operation: Operation) -> AggregationResult:
        """
        Fetch and merge all entities of the plan.

        Raises:
            PrimaryFetchError: If the primary entity cannot be fetched
            ConfigurationError: If a client rejects an entity route or service
        """
        result = AggregationResult()
        primary = plan.primary

        primary_records = await self._fetch_primary(primary, operation)
        if not primary_records:
            return result

        datasets: dict[str, list[dict[str, Any]]] = {primary.key: primary_records}
        graph = plan.graph()
        semaphore = asyncio.Semaphore(self.max_fanout)

        merged: set[str] = {primary.key}
        pending: deque[str] = deque(graph.neighbors(primary.key))
        queued: set[str] = set(pending)
        limit = self.max_iterations if self.max_iterations is not None else 2 * len(plan.mappings)
        iterations = 0

        while pending:
            # Everything pending links to an already merged entity, so the
            # whole wave can be fetched concurrently.
            wave: list[JoinStep] = []
            while pending and iterations < limit:
                key = pending.popleft()
                iterations += 1
                step = self._join_step(plan, graph, key, merged)
                if step is not None:
                    wave.append(step)

            if wave:
                fetched = await asyncio.gather(*(
                    self._fetch_related(step, datasets, operation, semaphore, result)
                    for step in wave
                ))
                for step, records in zip(wave, fetched):
                    datasets[step.mapping.key] = records
                    merged.add(step.mapping.key)
                    result.joins.append(step)
                    for neighbor in graph.neighbors(step.mapping.key):
                        if neighbor not in merged and neighbor not in queued:
                            pending.append(neighbor)
                            queued.add(neighbor)

            if pending and iterations >= limit:
                result.truncated = GraphIterationLimitExceeded(limit, list(pending))
                logger.warning(str(result.truncated))
                break

        result.records = self._merge(primary, primary_records, result.joins, datasets)
        return result

    def _join_step(self, plan: MappingPlan, graph, key: str, merged: set[str]) -> Optional[JoinStep]:
        if key in merged:
            return None
        mapping = plan.get(key)
        if mapping is None:
            logger.warning(f"Relationship graph references {key}, which is not in the plan")
            return None

        anchor_key = next((n for n in graph.neighbors(key) if n in merged), None)
        if anchor_key is None:
            return None
        return JoinStep(
            mapping=mapping,
            anchor=plan.get(anchor_key),
            relationship=graph.edge_between(key, anchor_key),
        )

    async def _call(
        self,
        mapping: EntityMapping,
        filters: Optional[list[EntityFilter]] = None,
        id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        return await asyncio.wait_for(
            self.client.fetch(
                service=mapping.service,
                endpoint=mapping.endpoint,
                tier=mapping.tier,
                filters=filters,
                id=id,
            ),
            timeout=self.fetch_timeout,
        )

    async def _fetch_primary(self, primary: EntityMapping, operation: Operation) -> list[dict[str, Any]]:
        try:
            if operation.is_item:
                records = await self._call(primary, id=operation.item_id)
                return records[:1]
            return await self._call(primary, filters=operation.filters())
        except ConfigurationError:
            raise
        except Exception as e:
            raise PrimaryFetchError(primary.service, primary.entity, e) from e

    async def _fetch_related(
        self,
        step: JoinStep,
        datasets: dict[str, list[dict[str, Any]]],
        operation: Operation,
        semaphore: asyncio.Semaphore,
        result: AggregationResult,
    ) -> list[dict[str, Any]]:
        """
        Fetch one related entity using join keys from its anchor's records.

        Fetch failures and timeouts are recorded, never raised;
        ConfigurationError propagates.
        """
        mapping = step.mapping
        values = extract_values(datasets.get(step.anchor.key, []), step.anchor_field)
        if not values:
            logger.debug(f"No join keys for {mapping.key} from {step.anchor.key}.{step.anchor_field}")
            return []

        try:
            async with semaphore:
                if operation.is_item and len(values) == 1:
                    if step.own_field == mapping.key_field:
                        return await self._call(mapping, id=str(values[0]))
                    return await self._call(
                        mapping,
                        filters=[EntityFilter(field=step.own_field, op="eq", value=values[0])],
                    )
                return await self._call(
                    mapping,
                    filters=[EntityFilter(field=step.own_field, op="in", value=values)],
                )
        except ConfigurationError:
            raise
        except Exception as e:
            error = SecondaryFetchError(mapping.service, mapping.entity, e)
            logger.warning(f"{error}; continuing without {mapping.key}")
            result.failures.append(error)
            return []

    def _merge(
        self,
        primary: EntityMapping,
        primary_records: list[dict[str, Any]],
        joins: list[JoinStep],
        datasets: dict[str, list[dict[str, Any]]],
    ) -> list[dict[str, Any]]:
        """
        Join related datasets into the primary records.

        Fields already present are never overwritten.
        """
        records = [
            {primary.qualify(name): value for name, value in record.items()}
            for record in primary_records
        ]

        for step in joins:
            related = datasets.get(step.mapping.key) or []
            if not related:
                continue

            lookup: dict[str, dict[str, Any]] = {}
            for record in related:
                key = record.get(step.own_field)
                if key is not None:
                    lookup.setdefault(str(key), record)

            anchor_name = step.anchor.qualify(step.anchor_field)
            for record in records:
                key = record.get(anchor_name)
                match = lookup.get(str(key)) if key is not None else None
                if match is None:
                    continue
                for name, value in match.items():
                    record.setdefault(step.mapping.qualify(name), value)

        return records


def extract_values(records: list[dict[str, Any]], field_name: str) -> list[Any]:
    """Distinct non-null values of a field, in first-seen order."""
    values = []
    seen = set()
    for record in records:
        value = record.get(field_name)
        if value is None:
            continue
        marker = str(value)
        if marker not in seen:
            values.append(value)
            seen.add(marker)
    return values
