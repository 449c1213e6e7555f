"""
HTTP client for fetching entities from backend services.

Makes GET {base_url}/{endpoint}[/{id}] calls with the detail tier in the
``context`` query parameter:

    GET https://reservation-service.domain/api/reservations?context=context_mini&id[]=R1&id[]=R2
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx

from ..core.catalog import SourceCatalog
from ..core.defs import DetailTier
from ..core.errors import ConfigurationError, ServiceError
from ..core.query_types import EntityFilter

logger = logging.getLogger(__name__)


# Keys under which collection envelopes carry their records
COLLECTION_KEYS = ("hydra:member", "member", "items")


class EntityFetcher(Protocol):
    """Contract for anything that can fetch remote entity records."""

    async def fetch(
        self,
        service: str,
        endpoint: str,
        tier: DetailTier,
        filters: Optional[list[EntityFilter]] = None,
        id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        ...


class EntityClient:
    """
    HTTP client for remote entity fetches.

    Usage:
        client = EntityClient(catalog)
        records = await client.fetch(
            service="reservation-service",
            endpoint="/api/reservations",
            tier=DetailTier.MINI,
            filters=[EntityFilter(field="id", op="in", value=["R1", "R2"])],
        )
    """

    def __init__(
        self,
        catalog: SourceCatalog,
        timeout: float = 30.0,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize entity client.

        Args:
            catalog: Source catalog with service base URLs
            timeout: HTTP request timeout in seconds
            headers: Extra headers sent with every request
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.catalog = catalog
        self.timeout = timeout
        self.headers = {"Accept": "application/json", **(headers or {})}
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                transport=self.transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def build_url(self, service: str, endpoint: str, id: Optional[str] = None) -> str:
        base_url = self.catalog.base_url(service)
        if base_url is None:
            raise ConfigurationError(f"No base URL configured for service '{service}'")

        url = f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        if id is not None:
            url = f"{url.rstrip('/')}/{quote(str(id), safe='')}"
        return url

    @staticmethod
    def build_params(tier: DetailTier, filters: Optional[list[EntityFilter]]) -> list[tuple[str, str]]:
        """Query parameters: tier first, then eq filters as field=value, in filters as field[]=value."""
        params = [("context", tier.query_value)]
        for f in filters or []:
            if f.op == "in":
                values = f.value if isinstance(f.value, (list, tuple, set)) else [f.value]
                params.extend((f"{f.field}[]", str(v)) for v in values)
            else:
                params.append((f.field, str(f.value)))
        return params

    async def fetch(
        self,
        service: str,
        endpoint: str,
        tier: DetailTier,
        filters: Optional[list[EntityFilter]] = None,
        id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch entity records from a service.

        Args:
            service: Service name registered in the catalog
            endpoint: Entity route on the service (e.g. "/api/guests")
            tier: Detail tier narrowing the returned fields
            filters: eq / in filters
            id: Fetch a single record by identifier

        Returns:
            List of records; an item fetch yields 0 or 1 records

        Raises:
            ServiceError: If the service returns an error or is unreachable
        """
        client = await self._get_client()
        url = self.build_url(service, endpoint, id)
        params = self.build_params(tier, filters)

        request_id = f"req_{uuid.uuid4().hex[:12]}"
        logger.info(
            f"[{request_id}] GET {url} service={service} tier={tier.value} "
            f"params={params[1:]} item={id is not None}"
        )

        start = time.perf_counter()
        try:
            response = await client.get(url, params=params)
        except httpx.RequestError as e:
            duration = (time.perf_counter() - start) * 1000
            logger.error(f"[{request_id}] {service} unreachable after {duration:.2f}ms: {e!r}")
            raise ServiceError(service=service, status_code=0, message=str(e) or type(e).__name__)

        duration = (time.perf_counter() - start) * 1000

        if id is not None and response.status_code == 404:
            logger.info(f"[{request_id}] {service} has no record {id} ({duration:.2f}ms)")
            return []

        if not response.is_success:
            logger.error(
                f"[{request_id}] {service} returned {response.status_code} "
                f"in {duration:.2f}ms: {response.text[:200]}"
            )
            raise ServiceError(
                service=service,
                status_code=response.status_code,
                message=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ServiceError(service=service, status_code=response.status_code, message=f"Invalid JSON: {e}")

        records = self._normalize(data, item=id is not None)
        logger.info(
            f"[{request_id}] {service} returned {len(records)} record(s) in {duration:.2f}ms"
        )
        return records

    @staticmethod
    def _normalize(data: Any, item: bool = False) -> list[dict[str, Any]]:
        """
        Turn a response body into a list of records.

        An item response is one record even when it has a list field named
        like a collection envelope key.
        """
        if isinstance(data, dict):
            if item:
                return [data]
            for key in COLLECTION_KEYS:
                if isinstance(data.get(key), list):
                    data = data[key]
                    break
            else:
                return [data]
        if not isinstance(data, list):
            return []
        return [record for record in data if isinstance(record, dict)]
