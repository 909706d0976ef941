"""Pydantic schema definitions."""

from schemakit.models.schemas.database import (
    BulkUpsertResponse,
    DatabaseMetadataResponse,
    ExportRequest,
    ExportResponse,
    FieldInfo,
    ImportResponse,
    RawSqlRequest,
    RawSqlResponse,
    TableRecordCount,
)
from schemakit.models.schemas.health import DatabaseHealth, HealthResponse, PoolHealth
from schemakit.models.schemas.table import (
    AddForeignKeyOperation,
    ColumnInfo,
    ColumnSchema,
    CreatedColumn,
    CreateTableRequest,
    CreateTableResponse,
    DeleteTableResponse,
    ForeignKeyInfo,
    ForeignKeySchema,
    RenameTableOperation,
    TableListResponse,
    TableSchemaListResponse,
    TableSchemaResponse,
    UpdateColumnOperation,
    UpdateTableSchemaRequest,
    UpdateTableSchemaResponse,
)

__all__ = [
    "AddForeignKeyOperation",
    "BulkUpsertResponse",
    "ColumnInfo",
    "ColumnSchema",
    "CreateTableRequest",
    "CreateTableResponse",
    "CreatedColumn",
    "DatabaseHealth",
    "DatabaseMetadataResponse",
    "DeleteTableResponse",
    "ExportRequest",
    "ExportResponse",
    "FieldInfo",
    "ForeignKeyInfo",
    "ForeignKeySchema",
    "HealthResponse",
    "ImportResponse",
    "PoolHealth",
    "RawSqlRequest",
    "RawSqlResponse",
    "RenameTableOperation",
    "TableListResponse",
    "TableRecordCount",
    "TableSchemaListResponse",
    "TableSchemaResponse",
    "UpdateColumnOperation",
    "UpdateTableSchemaRequest",
    "UpdateTableSchemaResponse",
]
