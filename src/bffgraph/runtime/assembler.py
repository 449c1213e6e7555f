"""
Record assembler - turns merged raw records into typed output values.

Handles:
- Generating one pydantic output model per resource schema
- Picking each output field's value from the first mapping that provides it
- The ``id`` passthrough from the primary record
- Re-applying the visible field set before anything leaves the engine
"""

from __future__ import annotations

import datetime
import logging
from functools import lru_cache
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, create_model

from ..core.defs import ResourceSchema
from ..core.utils import camel_case_fields
from ..iam.guard import filter_visible_fields
from .mapping import MappingPlan

logger = logging.getLogger(__name__)


PYTHON_TYPES: dict[str, Any] = {
    "string": str,
    "int": int,
    "float": float,
    "bool": bool,
    "date": datetime.date,
    "datetime": datetime.datetime,
    "json": Any,
}


class OutputRecord(BaseModel):
    """Base of generated output models. Only declared fields are accepted."""
    model_config = ConfigDict(extra="forbid")


@lru_cache(maxsize=None)
def build_output_model(schema: ResourceSchema) -> type[OutputRecord]:
    """
    Output model for a resource schema.

    Every declared field is optional; fields that were never set are left
    out of the serialized record.
    """
    definitions = {
        f.name: (Optional[PYTHON_TYPES[f.type]], None)
        for f in schema.fields
    }
    return create_model(schema.name, __base__=OutputRecord, **definitions)


class RecordAssembler:
    """
    Assembles output values from merged raw records.

    Usage:
        assembler = RecordAssembler()
        records = assembler.assemble(schema, plan, raw_records, visible_fields)
    """

    def assemble(
        self,
        schema: ResourceSchema,
        plan: MappingPlan,
        raw_records: list[dict[str, Any]],
        visible_fields: tuple[str, ...],
    ) -> list[OutputRecord]:
        """Assemble every raw record; records without visible fields are omitted."""
        records = []
        for raw in raw_records:
            record = self.assemble_one(schema, plan, raw, visible_fields)
            if record is not None:
                records.append(record)
        return records

    def assemble_one(
        self,
        schema: ResourceSchema,
        plan: MappingPlan,
        raw: dict[str, Any],
        visible_fields: tuple[str, ...],
    ) -> Optional[OutputRecord]:
        """
        Assemble one record.

        Returns:
            The typed record, or None when the caller may see no field at all
        """
        if not visible_fields:
            logger.warning(f"No visible fields for {schema.name}, returning no value")
            return None

        values: dict[str, Any] = {}
        for mapping in plan.mappings:
            for output_field, entity_field in mapping.field_map.items():
                if output_field in values:
                    continue
                qualified = mapping.qualify(entity_field)
                if qualified in raw:
                    values[output_field] = raw[qualified]

        primary = plan.primary
        if "id" not in values and schema.field("id") is not None:
            qualified_id = primary.qualify(primary.key_field)
            if qualified_id in raw:
                values["id"] = raw[qualified_id]

        values = filter_visible_fields(values, visible_fields)
        return self._build(schema, values)

    def _build(self, schema: ResourceSchema, values: dict[str, Any]) -> OutputRecord:
        """Construct the output model, dropping values that fail type conversion."""
        model = build_output_model(schema)
        try:
            return model(**values)
        except ValidationError as e:
            invalid = {err["loc"][0] for err in e.errors() if err.get("loc")}
            logger.warning(f"{schema.name}: dropping fields with invalid values: {sorted(invalid)}")
            return model(**{k: v for k, v in values.items() if k not in invalid})


def to_dict(record: OutputRecord, camel_case: bool = False) -> dict[str, Any]:
    """
    Serialize an output record, leaving out fields that were never set.

    Args:
        record: Assembled output record
        camel_case: Convert keys to camelCase
    """
    data = record.model_dump(mode="json", exclude_unset=True)
    if camel_case:
        data = camel_case_fields(data)
    return data
