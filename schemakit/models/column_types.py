from dataclasses import dataclass
from enum import StrEnum


class ColumnType(StrEnum):
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    UUID = "uuid"
    DATETIME = "datetime"
    DATE = "date"
    JSON = "json"


@dataclass(frozen=True, slots=True)
class ColumnTypeInfo:
    sql_type: str
    default_value: str | None = None


COLUMN_TYPES: dict[ColumnType, ColumnTypeInfo] = {
    ColumnType.STRING: ColumnTypeInfo(sql_type="TEXT"),
    ColumnType.INTEGER: ColumnTypeInfo(sql_type="INTEGER"),
    ColumnType.FLOAT: ColumnTypeInfo(sql_type="DOUBLE PRECISION"),
    ColumnType.BOOLEAN: ColumnTypeInfo(sql_type="BOOLEAN", default_value="false"),
    ColumnType.UUID: ColumnTypeInfo(sql_type="UUID", default_value="gen_random_uuid()"),
    ColumnType.DATETIME: ColumnTypeInfo(sql_type="TIMESTAMPTZ", default_value="now()"),
    ColumnType.DATE: ColumnTypeInfo(sql_type="DATE", default_value="current_date"),
    ColumnType.JSON: ColumnTypeInfo(sql_type="JSONB"),
}

_INTEGER_TYPES = {"integer", "int", "int2", "int4", "int8", "smallint", "bigint", "serial", "bigserial"}
_FLOAT_TYPES = {"double precision", "float4", "float8", "real", "numeric", "decimal"}
_TEXT_TYPES = {"text", "character varying", "varchar", "character", "char", "bpchar", "citext"}


def type_of(column_type: ColumnType) -> ColumnTypeInfo:
    return COLUMN_TYPES[ColumnType(column_type)]


def column_type_from_sql(data_type: str) -> ColumnType:
    """Map an information_schema data type back onto the column type model."""
    normalized = data_type.strip().lower()
    if normalized == "uuid":
        return ColumnType.UUID
    if normalized in {"timestamptz", "timestamp with time zone", "timestamp without time zone", "timestamp"}:
        return ColumnType.DATETIME
    if normalized == "date":
        return ColumnType.DATE
    if normalized in _INTEGER_TYPES:
        return ColumnType.INTEGER
    if normalized in _FLOAT_TYPES:
        return ColumnType.FLOAT
    if normalized in {"boolean", "bool"}:
        return ColumnType.BOOLEAN
    if normalized in {"json", "jsonb", "array"} or normalized.endswith("[]"):
        return ColumnType.JSON
    if normalized in _TEXT_TYPES:
        return ColumnType.STRING
    return ColumnType.STRING
