"""
Pydantic models for engine operations and remote entity filters.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, model_validator


class EntityFilter(BaseModel):
    """
    Filter sent to a remote entity service.

    eq: EntityFilter(field="status", op="eq", value="confirmed")
    in: EntityFilter(field="id", op="in", value=["R1", "R2"])
    """
    field: str
    op: Literal["eq", "in"] = "eq"
    value: Any


class Operation(BaseModel):
    """
    A read operation on a composite resource.

    Example:
        Operation(kind="item", resource_type="GuestReservation", item_id="G001")
        Operation(kind="collection", resource_type="GuestReservation",
                  query_filters={"countryCode": "US"})
    """
    kind: Literal["collection", "item"]
    resource_type: str
    item_id: Optional[str] = None
    query_filters: dict[str, str] = Field(default_factory=dict)  # opaque pass-through

    @model_validator(mode="after")
    def _check_item_id(self) -> "Operation":
        if self.kind == "item" and not self.item_id:
            raise ValueError("item operations require item_id")
        return self

    @property
    def is_item(self) -> bool:
        return self.kind == "item"

    def filters(self) -> list[EntityFilter]:
        """Pass-through query filters as eq filters."""
        return [EntityFilter(field=k, op="eq", value=v) for k, v in self.query_filters.items()]
