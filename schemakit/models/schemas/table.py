from typing import Literal

from pydantic import Field

from schemakit.models import CamelCaseModel
from schemakit.models.column_types import ColumnType
from schemakit.sql.ddl import ReferentialAction

UpdateAction = Literal["CASCADE", "RESTRICT", "NO ACTION"]


class ForeignKeySchema(CamelCaseModel):
    reference_table: str = Field(min_length=1, max_length=64)
    reference_column: str = Field(min_length=1, max_length=64)
    on_delete: ReferentialAction = ReferentialAction.RESTRICT
    on_update: UpdateAction = "RESTRICT"


class ColumnSchema(CamelCaseModel):
    column_name: str = Field(min_length=1, max_length=64)
    type: ColumnType
    is_nullable: bool = True
    is_unique: bool = False
    default_value: str | None = None
    foreign_key: ForeignKeySchema | None = None


class CreateTableRequest(CamelCaseModel):
    table_name: str = Field(min_length=1, max_length=64)
    columns: list[ColumnSchema] = Field(min_length=1)
    rls_enabled: bool = True


class CreatedColumn(ColumnSchema):
    sql_type: str


class CreateTableResponse(CamelCaseModel):
    message: str
    table_name: str
    columns: list[CreatedColumn]
    auto_fields: list[str]
    next_actions: str


class ForeignKeyInfo(CamelCaseModel):
    reference_table: str
    reference_column: str
    on_delete: str
    on_update: str


class ColumnInfo(CamelCaseModel):
    column_name: str
    type: ColumnType
    is_nullable: bool
    is_unique: bool
    is_primary_key: bool
    default_value: str | None = None
    foreign_key: ForeignKeyInfo | None = None


class TableSchemaResponse(CamelCaseModel):
    table_name: str
    columns: list[ColumnInfo]
    record_count: int


class TableListResponse(CamelCaseModel):
    data: list[str]


class TableSchemaListResponse(CamelCaseModel):
    data: list[TableSchemaResponse]


class UpdateColumnOperation(CamelCaseModel):
    column_name: str = Field(min_length=1, max_length=64)
    default_value: str | None = None
    new_column_name: str | None = Field(default=None, min_length=1, max_length=64)


class AddForeignKeyOperation(CamelCaseModel):
    column_name: str = Field(min_length=1, max_length=64)
    foreign_key: ForeignKeySchema


class RenameTableOperation(CamelCaseModel):
    new_table_name: str = Field(min_length=1, max_length=64)


class UpdateTableSchemaRequest(CamelCaseModel):
    add_columns: list[ColumnSchema] = Field(default_factory=list)
    drop_columns: list[str] = Field(default_factory=list)
    update_columns: list[UpdateColumnOperation] = Field(default_factory=list)
    add_foreign_keys: list[AddForeignKeyOperation] = Field(default_factory=list)
    drop_foreign_keys: list[str] = Field(default_factory=list)
    rename_table: RenameTableOperation | None = None


class UpdateTableSchemaResponse(CamelCaseModel):
    message: str
    table_name: str
    operations: list[str]


class DeleteTableResponse(CamelCaseModel):
    message: str
    table_name: str
    next_actions: str
