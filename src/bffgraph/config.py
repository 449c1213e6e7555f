"""
Configuration loading for bffgraph gateways.

One YAML file holds the source catalog, the resource schemas and the
runtime settings. Scalar settings can be overridden from the environment.

Example bffgraph.yaml:

    bff_name: hotel-bff
    fetch_timeout: 5
    role_matching: any

    catalog:
      services:
        guest-service: https://guest-service.domain
      entities:
        guest-service:
          Guest:
            route: /api/guests
            fields: {id: ids, fullName: mini}

    resources:
      GuestReservation:
        primary: guest-service:Guest
        fields:
          fullName:
            access: {admin: [ACCESS]}
            source: guest-service:Guest.fullName

Environment overrides:
    BFFGRAPH_CONFIG            Path of the YAML file
    BFFGRAPH_FETCH_TIMEOUT     Seconds per outbound fetch
    BFFGRAPH_MAX_FANOUT        Concurrent fetches per request
    BFFGRAPH_LOG_LEVEL         DEBUG, INFO, WARNING, ...
    BFFGRAPH_ALLOW_QUERY_AUTH  Accept portal/roles as query parameters
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .core.catalog import SourceCatalog
from .core.errors import ConfigurationError
from .core.registry import ResourceRegistry
from .iam.policy import UNPOLICED_FIELDS_VISIBLE, get_role_matcher
from .iam.resolver import FieldAccessResolver
from .runtime.engine import AggregationEngine
from .runtime.service_client import EntityClient, EntityFetcher
from .runtime.static_client import StaticEntityClient

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "bffgraph.yaml"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Gateway settings, loaded once at startup."""
    catalog: SourceCatalog = field(default_factory=SourceCatalog)
    registry: ResourceRegistry = field(default_factory=ResourceRegistry)
    fetch_timeout: float = 10.0
    max_fanout: int = 4
    role_matching: str = "any"
    bff_name: Optional[str] = None
    unpoliced_visible: bool = UNPOLICED_FIELDS_VISIBLE
    allow_query_auth: bool = False
    camel_case: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    static_data: Optional[dict[str, dict[str, list[dict[str, Any]]]]] = None
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Settings":
        """Create settings from the parsed YAML document."""
        data = data or {}
        defaults = cls()
        return cls(
            catalog=SourceCatalog.from_dict(data.get("catalog") or {}),
            registry=ResourceRegistry.from_dict(data.get("resources") or {}),
            fetch_timeout=float(data.get("fetch_timeout", defaults.fetch_timeout)),
            max_fanout=int(data.get("max_fanout", defaults.max_fanout)),
            role_matching=data.get("role_matching", defaults.role_matching),
            bff_name=data.get("bff_name"),
            unpoliced_visible=bool(data.get("unpoliced_visible", defaults.unpoliced_visible)),
            allow_query_auth=bool(data.get("allow_query_auth", defaults.allow_query_auth)),
            camel_case=bool(data.get("camel_case", defaults.camel_case)),
            cors_origins=list(data.get("cors_origins") or defaults.cors_origins),
            static_data=data.get("static_data"),
            log_level=str(data.get("log_level", defaults.log_level)).upper(),
        )

    def apply_env(self, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Override scalar settings from BFFGRAPH_* environment variables."""
        env = os.environ if environ is None else environ

        try:
            if env.get("BFFGRAPH_FETCH_TIMEOUT"):
                self.fetch_timeout = float(env["BFFGRAPH_FETCH_TIMEOUT"])
            if env.get("BFFGRAPH_MAX_FANOUT"):
                self.max_fanout = int(env["BFFGRAPH_MAX_FANOUT"])
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment override: {e}") from e

        if env.get("BFFGRAPH_LOG_LEVEL"):
            self.log_level = env["BFFGRAPH_LOG_LEVEL"].upper()
        if env.get("BFFGRAPH_ALLOW_QUERY_AUTH"):
            self.allow_query_auth = env["BFFGRAPH_ALLOW_QUERY_AUTH"].strip().lower() in _TRUE_VALUES
        return self

    def build_resolver(self) -> FieldAccessResolver:
        try:
            matcher = get_role_matcher(self.role_matching, self.bff_name)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        return FieldAccessResolver(role_matcher=matcher, unpoliced_visible=self.unpoliced_visible)

    def build_client(self) -> EntityFetcher:
        """In-memory client when static_data is configured, HTTP client otherwise."""
        if self.static_data is not None:
            logger.info("Using static entity data, no backend services will be called")
            return StaticEntityClient(self.catalog, self.static_data)
        return EntityClient(self.catalog, timeout=self.fetch_timeout)

    def build_engine(self, client: Optional[EntityFetcher] = None) -> AggregationEngine:
        return AggregationEngine(
            registry=self.registry,
            catalog=self.catalog,
            client=client or self.build_client(),
            resolver=self.build_resolver(),
            fetch_timeout=self.fetch_timeout,
            max_fanout=self.max_fanout,
        )


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Explicit path, then BFFGRAPH_CONFIG, then ./bffgraph.yaml."""
    return Path(path or os.environ.get("BFFGRAPH_CONFIG") or DEFAULT_CONFIG_PATH)


def load_settings(path: Path | str | None = None) -> Settings:
    """
    Load settings from YAML and apply environment overrides.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = resolve_config_path(path)
    if not path.exists():
        raise ConfigurationError(f"{path} not found")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is not None and not isinstance(data, Mapping):
        raise ConfigurationError(f"{path}: top level must be a mapping")

    settings = Settings.from_dict(data or {}).apply_env()
    logger.info(
        f"Loaded {path}: {len(settings.registry)} resource(s), "
        f"{len(settings.catalog.services)} service(s)"
    )
    return settings


def configure_logging(level: str = "INFO"):
    """Configure root logging for the CLI and the demo gateway."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
