"""
API module - FastAPI endpoints.
"""

from __future__ import annotations

from .router import (
    create_router,
    get_auth_context,
    get_engine,
    get_settings,
    router,
    set_engine,
)

__all__ = [
    "router",
    "set_engine",
    "get_engine",
    "get_settings",
    "get_auth_context",
    "create_router",
]
