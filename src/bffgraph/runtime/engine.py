"""
Aggregation engine - request pipeline for composite resources.

Pipeline:
1. Validate the caller (portal + roles)
2. Resolve visible fields
3. Build entity mappings
4. Fetch and merge
5. Assemble and filter

Usage:
    engine = AggregationEngine(registry, catalog, client)
    auth = AuthContext.create("admin", ["ACCESS"])
    records = await engine.collection("GuestReservation", auth)
    item = await engine.item("GuestReservation", "G001", auth)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from ..core.catalog import SourceCatalog
from ..core.errors import AuthenticationError
from ..core.query_types import Operation
from ..core.registry import ResourceRegistry
from ..iam.resolver import FieldAccessResolver
from .aggregator import Aggregator
from .assembler import OutputRecord, RecordAssembler
from .context import AuthContext, ExecutionContext
from .mapping import MappingBuilder, MappingPlan
from .service_client import EntityFetcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemResult:
    """
    Result of an item operation.

    found=False: no such record.
    found=True, record=None: the record exists (or may exist) but the caller
    may see none of its fields.
    """
    record: Optional[OutputRecord]
    found: bool

    @property
    def no_access(self) -> bool:
        return self.found and self.record is None


class AggregationEngine:
    """Runs read operations on composite resources."""

    def __init__(
        self,
        registry: ResourceRegistry,
        catalog: SourceCatalog,
        client: EntityFetcher,
        resolver: Optional[FieldAccessResolver] = None,
        fetch_timeout: float = 10.0,
        max_fanout: int = 4,
    ):
        self.registry = registry
        self.catalog = catalog
        self.client = client
        self.resolver = resolver or FieldAccessResolver()
        self.builder = MappingBuilder(catalog)
        self.aggregator = Aggregator(client, fetch_timeout=fetch_timeout, max_fanout=max_fanout)
        self.assembler = RecordAssembler()

    async def execute(
        self,
        operation: Operation,
        auth: Optional[AuthContext],
    ) -> Union[list[OutputRecord], ItemResult]:
        """
        Execute an operation.

        Returns:
            List of records for collections, ItemResult for items

        Raises:
            AuthenticationError: Missing caller, before any fetch
            UnknownResourceError: Resource type not registered
            ConfigurationError: Schema/catalog misconfiguration, before any fetch
            PrimaryFetchError: Primary entity could not be fetched
        """
        if auth is None:
            raise AuthenticationError("Missing authentication data")
        # Revalidate contexts built without AuthContext.create
        auth = AuthContext.create(auth.portal, auth.roles)

        schema = self.registry.get(operation.resource_type)
        logger.info(
            f"Processing {operation.kind} {schema.name}"
            f"{f' id={operation.item_id}' if operation.item_id else ''} "
            f"portal={auth.portal} roles={sorted(auth.roles)}"
        )

        visible = self.resolver.visible_fields(schema, auth)
        context = ExecutionContext(
            auth=auth,
            operation=operation,
            schema=schema,
            visible_fields=visible,
        )

        if not visible:
            logger.warning(f"Caller has no visible fields on {schema.name} (portal={auth.portal})")
            if context.is_item:
                return ItemResult(record=None, found=True)
            return []

        plan = self.plan(context)
        result = await self.aggregator.aggregate(plan, operation)
        if result.degraded:
            logger.warning(
                f"{schema.name}: degraded result, failed sources: "
                f"{[f'{e.service}:{e.entity}' for e in result.failures]}"
                f"{', traversal truncated' if result.truncated else ''}"
            )

        records = self.assembler.assemble(schema, plan, result.records, visible)

        if context.is_item:
            if not result.records:
                return ItemResult(record=None, found=False)
            return ItemResult(record=records[0] if records else None, found=True)
        return records

    def plan(self, context: ExecutionContext) -> MappingPlan:
        """Entity mappings for a request, without fetching anything."""
        return self.builder.build(context.schema, context.visible_fields)

    async def collection(
        self,
        resource_type: str,
        auth: Optional[AuthContext],
        query_filters: Optional[dict[str, str]] = None,
    ) -> list[OutputRecord]:
        operation = Operation(
            kind="collection",
            resource_type=resource_type,
            query_filters=query_filters or {},
        )
        return await self.execute(operation, auth)

    async def item(
        self,
        resource_type: str,
        item_id: str,
        auth: Optional[AuthContext],
    ) -> ItemResult:
        operation = Operation(kind="item", resource_type=resource_type, item_id=item_id)
        return await self.execute(operation, auth)
