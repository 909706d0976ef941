"""Domain models and API schemas."""

from pydantic import BaseModel, ConfigDict

from schemakit.models.column_types import COLUMN_TYPES, ColumnType, ColumnTypeInfo
from schemakit.models.entities import (
    ColumnEntity,
    ForeignKeyEntity,
    IndexEntity,
    PolicyEntity,
    TableColumns,
    TableSnapshot,
    TriggerEntity,
)


def to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(part[:1].upper() + part[1:] for part in parts[1:])


class CamelCaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


__all__ = [
    "COLUMN_TYPES",
    "CamelCaseModel",
    "ColumnEntity",
    "ColumnType",
    "ColumnTypeInfo",
    "ForeignKeyEntity",
    "IndexEntity",
    "PolicyEntity",
    "TableColumns",
    "TableSnapshot",
    "TriggerEntity",
    "to_camel",
]
