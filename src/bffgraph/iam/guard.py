"""
Guard - final re-filter of assembled values by the visible field set.

Applied at the boundary after assembly so that a field which reached a raw
record through a mapping bug is still stripped before it leaves the engine.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

logger = logging.getLogger(__name__)


def filter_visible_fields(values: dict[str, Any], visible_fields: Iterable[str]) -> dict[str, Any]:
    """
    Keep only visible fields.

    Args:
        values: Output field name -> value
        visible_fields: Fields the caller may read

    Returns:
        New dict containing only visible fields
    """
    visible = set(visible_fields)
    stripped = [name for name in values if name not in visible]
    if stripped:
        logger.warning(f"Stripped fields outside the visible set: {stripped}")
    return {name: value for name, value in values.items() if name in visible}
