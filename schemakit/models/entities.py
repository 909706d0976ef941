from dataclasses import dataclass
from typing import Any

from schemakit.models.column_types import ColumnType, column_type_from_sql


@dataclass(slots=True)
class ForeignKeyEntity:
    constraint_name: str
    column_name: str
    reference_table: str
    reference_column: str
    on_delete: str
    on_update: str


@dataclass(slots=True)
class ColumnEntity:
    column_name: str
    data_type: str
    udt_name: str
    is_nullable: bool
    column_default: str | None
    character_maximum_length: int | None = None

    @property
    def column_type(self) -> ColumnType:
        return column_type_from_sql(self.data_type)


@dataclass(slots=True)
class TableColumns:
    table_name: str
    columns: list[ColumnEntity]
    primary_keys: set[str]
    unique_columns: set[str]
    foreign_keys: dict[str, ForeignKeyEntity]


@dataclass(slots=True)
class IndexEntity:
    index_name: str
    definition: str
    is_unique: bool
    is_primary: bool
    constraint_definition: str | None = None


@dataclass(slots=True)
class PolicyEntity:
    policy_name: str
    permissive: str
    command: str
    roles: list[str]
    using_expression: str | None
    check_expression: str | None


@dataclass(slots=True)
class TriggerEntity:
    trigger_name: str
    definition: str


@dataclass(slots=True)
class TableSnapshot:
    table_name: str
    columns: list[ColumnEntity]
    primary_keys: list[str]
    indexes: list[IndexEntity]
    foreign_keys: list[ForeignKeyEntity]
    rls_enabled: bool
    policies: list[PolicyEntity]
    triggers: list[TriggerEntity]
    rows: list[dict[str, Any]]
    total_row_count: int
