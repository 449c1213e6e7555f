"""
bffgraph CLI - Command line tools for bffgraph gateways.
"""

from __future__ import annotations

from .main import main, app

__all__ = ["main", "app"]
