"""
Utility functions for bffgraph.

Output records are declared with snake_case field names; the HTTP layer can
serialise them in camelCase for frontends that expect it.
"""

from __future__ import annotations

import re
from typing import Any, Mapping


_SNAKE_SEGMENT = re.compile(r"_+([a-z0-9])")


def to_camel_case(name: str) -> str:
    """
    check_in_date -> checkInDate, reservationId and id are unchanged.
    """
    head, sep, _ = name.partition("_")
    if not sep or not head:
        return name
    return _SNAKE_SEGMENT.sub(lambda match: match.group(1).upper(), name)


def camel_case_fields(record: Mapping[str, Any]) -> dict[str, Any]:
    """
    Rename the fields of a serialised record to camelCase.

    Only the record's own field names change; ``json`` field values are
    passed through untouched.
    """
    return {to_camel_case(name): value for name, value in record.items()}
