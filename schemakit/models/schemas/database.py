from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import Field

from schemakit.models import CamelCaseModel

ExportFormat = Literal["sql", "json"]


class RawSqlRequest(CamelCaseModel):
    query: str = Field(min_length=1)
    params: list[Any] = Field(default_factory=list)


class FieldInfo(CamelCaseModel):
    name: str
    data_type_id: int | None = Field(default=None, alias="dataTypeID")


class RawSqlResponse(CamelCaseModel):
    rows: list[dict[str, Any]]
    row_count: int
    fields: list[FieldInfo]


class ExportRequest(CamelCaseModel):
    tables: list[str] | None = None
    format: ExportFormat = "sql"
    include_data: bool = True
    include_functions: bool = False
    include_sequences: bool = False
    include_views: bool = False
    row_limit: int | None = Field(default=None, gt=0)


class ExportResponse(CamelCaseModel):
    format: ExportFormat
    data: str | dict[str, Any]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    truncated_tables: list[str] | None = None
    row_limit: int | None = None


class ImportResponse(CamelCaseModel):
    success: bool
    message: str
    filename: str
    tables: list[str]
    rows_imported: int
    file_size: int


class BulkUpsertResponse(CamelCaseModel):
    success: bool
    message: str
    table: str
    rows_affected: int
    total_records: int
    filename: str


class TableRecordCount(CamelCaseModel):
    table_name: str
    record_count: int


class DatabaseMetadataResponse(CamelCaseModel):
    tables: list[TableRecordCount]
    database_size_gb: float
