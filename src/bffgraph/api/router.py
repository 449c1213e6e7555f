"""
FastAPI router for composite resources.

Endpoints:
- GET /resources                          - Registered resource types and their fields
- GET /resources/{resource_type}          - Collection
- GET /resources/{resource_type}/{item_id} - Item

The caller is identified by headers set by the upstream gateway that
validated the token:

    X-Portal: admin
    X-Roles: ACCESS,ROLE_HOTEL-BFF-GUESTRESERVATION_ACCESS

With ``allow_query_auth`` enabled (test setups), ``?portal=...&roles=a,b``
is accepted as well.

Query parameters other than the auth parameters pass through to the
primary entity service as filters:

    GET /resources/GuestReservation?countryCode=US
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from ..config import Settings
from ..core.errors import (
    AuthenticationError,
    ConfigurationError,
    PrimaryFetchError,
    UnknownResourceError,
)
from ..runtime.assembler import to_dict
from ..runtime.context import AuthContext
from ..runtime.engine import AggregationEngine

logger = logging.getLogger(__name__)


# Query parameters reserved for authentication in allow_query_auth mode
AUTH_QUERY_PARAMS = ("portal", "roles")


# Create router
router = APIRouter()

# Global instances (set by the Gateway or create_router)
_engine: AggregationEngine | None = None
_settings: Settings | None = None


def set_engine(engine: AggregationEngine, settings: Optional[Settings] = None):
    """Set the engine (and settings) used by the API."""
    global _engine, _settings
    _engine = engine
    _settings = settings or Settings(catalog=engine.catalog, registry=engine.registry)


def get_engine() -> AggregationEngine:
    """Get the aggregation engine."""
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call set_engine() first.")
    return _engine


def get_settings() -> Settings:
    """Get the gateway settings."""
    if _settings is None:
        raise RuntimeError("Settings not initialized. Call set_engine() first.")
    return _settings


async def get_auth_context(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> AuthContext:
    """
    Build the caller's auth context from forwarded headers.

    Raises:
        HTTPException 401: Portal or roles missing
    """
    portal = request.headers.get("X-Portal")
    roles = request.headers.get("X-Roles")

    if settings.allow_query_auth:
        portal = portal or request.query_params.get("portal")
        if roles is None:
            roles = request.query_params.get("roles")

    try:
        return AuthContext.create(portal, roles.split(",") if roles is not None else None)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail={"error": str(e)})


@router.get("/resources")
async def list_resources(engine: AggregationEngine = Depends(get_engine)) -> dict[str, Any]:
    """Registered composite resources and their declared fields."""
    return {
        "resources": [
            {
                "name": schema.name,
                "fields": {f.name: f.type for f in schema.fields},
            }
            for schema in engine.registry
        ]
    }


@router.get("/resources/{resource_type}")
async def get_collection(
    resource_type: str,
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    engine: AggregationEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Collection of a composite resource.

    Example response:
    {
        "resource": "GuestReservation",
        "items": [{"id": "G001", "fullName": "John Doe", "checkInDate": "2025-04-05"}],
        "count": 1
    }
    """
    filters = {
        key: value for key, value in request.query_params.items()
        if not (settings.allow_query_auth and key in AUTH_QUERY_PARAMS)
    }

    try:
        records = await engine.collection(resource_type, auth, filters)
    except Exception as e:
        raise _to_http_error(e)

    items = [to_dict(record, camel_case=settings.camel_case) for record in records]
    return {"resource": resource_type, "items": items, "count": len(items)}


@router.get("/resources/{resource_type}/{item_id}")
async def get_item(
    resource_type: str,
    item_id: str,
    auth: AuthContext = Depends(get_auth_context),
    engine: AggregationEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Single composite record by the primary entity's identifier."""
    try:
        result = await engine.item(resource_type, item_id, auth)
    except Exception as e:
        raise _to_http_error(e)

    if not result.found:
        raise HTTPException(
            status_code=404,
            detail={"error": f"{resource_type} '{item_id}' not found"},
        )
    if result.record is None:
        raise HTTPException(
            status_code=403,
            detail={"error": f"No access to any field of {resource_type}"},
        )
    return to_dict(result.record, camel_case=settings.camel_case)


def _to_http_error(e: Exception) -> Exception:
    """Map engine errors to HTTP errors; anything else is re-raised as is."""
    if isinstance(e, AuthenticationError):
        return HTTPException(status_code=401, detail={"error": str(e)})
    if isinstance(e, UnknownResourceError):
        return HTTPException(status_code=404, detail={"error": str(e)})
    if isinstance(e, ConfigurationError):
        logger.error(f"Configuration error: {e}")
        return HTTPException(
            status_code=500,
            detail={"error": "Configuration error", "message": str(e)},
        )
    if isinstance(e, PrimaryFetchError):
        return HTTPException(
            status_code=502,
            detail={"error": f"Service error: {e.service}", "message": str(e)},
        )
    return e


def create_router(engine: AggregationEngine, settings: Optional[Settings] = None) -> APIRouter:
    """
    Create a configured bffgraph API router.

    Usage:
        app = FastAPI()
        app.include_router(create_router(settings.build_engine(), settings))
    """
    set_engine(engine, settings)
    return router
