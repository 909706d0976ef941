from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from schemakit.core.errors import ForbiddenError, InvalidInputError
from schemakit.models.column_types import ColumnType
from schemakit.sql.identifiers import validate_identifier

RESERVED_COLUMNS: Mapping[str, ColumnType] = {
    "id": ColumnType.UUID,
    "created_at": ColumnType.DATETIME,
    "updated_at": ColumnType.DATETIME,
}

FROZEN_COLUMNS: Mapping[str, frozenset[str]] = {
    "users": frozenset({"nickname", "avatar_url"}),
}

PROTECTED_TABLES = frozenset({"users"})


@dataclass(frozen=True)
class SystemSchemaPolicy:
    """Rules for which tables and columns user operations may touch."""

    system_prefix: str = "_"
    reserved_columns: Mapping[str, ColumnType] = field(default_factory=lambda: dict(RESERVED_COLUMNS))
    frozen_columns: Mapping[str, frozenset[str]] = field(default_factory=lambda: dict(FROZEN_COLUMNS))
    protected_tables: frozenset[str] = PROTECTED_TABLES

    def is_system_table(self, table_name: str) -> bool:
        return bool(self.system_prefix) and table_name.startswith(self.system_prefix)

    def is_reserved(self, column_name: str) -> bool:
        return column_name in self.reserved_columns

    def is_frozen(self, table_name: str, column_name: str) -> bool:
        return column_name in self.frozen_columns.get(table_name, frozenset())

    def is_protected_table(self, table_name: str) -> bool:
        return table_name in self.protected_tables

    def ensure_not_system_table(self, table_name: str, action: str) -> None:
        if self.is_system_table(table_name):
            raise ForbiddenError(
                f"Cannot {action} system tables (names starting with '{self.system_prefix}').",
                details={"table_name": table_name},
            )

    def ensure_user_table_name(self, table_name: str, action: str) -> str:
        self.ensure_not_system_table(table_name, action)
        return validate_identifier(table_name, "table")

    def ensure_column_mutable(self, table_name: str, column_name: str, action: str) -> None:
        if self.is_reserved(column_name):
            raise ForbiddenError(
                f"Cannot {action} system column '{column_name}'.",
                details={"table_name": table_name, "column_name": column_name},
            )
        if self.is_frozen(table_name, column_name):
            raise ForbiddenError(
                f"Cannot {action} column '{column_name}' on the '{table_name}' table.",
                details={"table_name": table_name, "column_name": column_name},
            )

    def reconcile_reserved(self, columns: Iterable[tuple[str, ColumnType]]) -> list[int]:
        """Return the positions of columns that are not reserved.

        A reserved column with the matching type is skipped; a reserved name
        with a different type is rejected.
        """
        kept: list[int] = []
        for index, (column_name, column_type) in enumerate(columns):
            reserved_type = self.reserved_columns.get(column_name)
            if reserved_type is None:
                kept.append(index)
                continue
            if ColumnType(column_type) != reserved_type:
                raise InvalidInputError(
                    f"Column '{column_name}' is a system column and must be of type "
                    f"'{reserved_type.value}', got '{ColumnType(column_type).value}'.",
                    details={"column_name": column_name, "expected_type": reserved_type.value},
                    next_actions="Remove the column; system columns are added automatically.",
                )
        return kept
