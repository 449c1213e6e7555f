"""
bffgraph Gateway - main entry point for creating a gateway application.

Usage:
    from bffgraph import Gateway, load_settings

    gateway = Gateway(load_settings("bffgraph.yaml"))
    app = gateway.app
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import create_router
from .config import Settings
from .runtime.service_client import EntityFetcher

logger = logging.getLogger(__name__)


class Gateway:
    """
    BFF gateway serving composite resources.

    Features:
    - Validates resource schemas against the source catalog at startup
    - Builds the aggregation engine from settings
    - Provides a FastAPI app with resource and health endpoints
    - Closes the outbound HTTP client on shutdown
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[EntityFetcher] = None,
        title: str = "bffgraph Gateway",
    ):
        """
        Initialize gateway.

        Args:
            settings: Loaded gateway settings
            client: Entity fetcher to use instead of the one built from settings
            title: FastAPI app title
        """
        self.settings = settings
        self.title = title

        self._report_problems()

        self.client = client or settings.build_client()
        self.engine = settings.build_engine(self.client)

        # Create FastAPI app
        self.app = self._create_app()
        self.app.state.gateway = self

    def _report_problems(self):
        problems = self.settings.registry.validate(self.settings.catalog)
        for problem in problems:
            logger.warning(f"Schema problem: {problem}")
        logger.info(
            f"Serving {len(self.settings.registry)} resource(s): "
            f"{', '.join(self.settings.registry.names()) or '-'}"
        )

    async def close(self):
        """Close the outbound client."""
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            yield
            await self.close()

        app = FastAPI(
            title=self.title,
            description="bffgraph - composite resources over backend services",
            version="1.0.0",
            lifespan=lifespan,
        )

        # CORS
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET"],
            allow_headers=["*"],
        )

        app.include_router(create_router(self.engine, self.settings))

        # Health check
        @app.get("/health")
        async def health():
            return {"status": "ok", "resources": len(self.settings.registry)}

        return app
