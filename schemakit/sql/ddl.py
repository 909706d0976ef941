"""Typed DDL statements and the PostgreSQL renderer that turns them into SQL.

Services build these small statement objects and hand them to
:class:`DdlRenderer`; identifier quoting and default encoding happen only
here.
"""

from dataclasses import dataclass, field
from enum import StrEnum

from schemakit.models.column_types import ColumnType, type_of
from schemakit.sql.defaults import encode_default
from schemakit.sql.identifiers import quote_identifier

UPDATE_TIMESTAMP_FUNCTION = "update_updated_at_column"


class ReferentialAction(StrEnum):
    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


@dataclass(frozen=True, slots=True)
class ForeignKeyDef:
    column_name: str
    reference_table: str
    reference_column: str
    on_delete: ReferentialAction = ReferentialAction.RESTRICT
    on_update: ReferentialAction = ReferentialAction.RESTRICT
    name: str | None = None

    @property
    def constraint_name(self) -> str:
        if self.name:
            return self.name
        return f"fk_{self.column_name}_{self.reference_table}_{self.reference_column}"


@dataclass(frozen=True, slots=True)
class ColumnDef:
    column_name: str
    column_type: ColumnType
    is_nullable: bool = True
    is_unique: bool = False
    default_value: str | None = None


@dataclass(frozen=True, slots=True)
class CreateTable:
    table_name: str
    columns: tuple[ColumnDef, ...]
    foreign_keys: tuple[ForeignKeyDef, ...] = ()


@dataclass(frozen=True, slots=True)
class EnableRowLevelSecurity:
    table_name: str


@dataclass(frozen=True, slots=True)
class CreateUpdateTimestampTrigger:
    table_name: str

    @property
    def trigger_name(self) -> str:
        return f"{self.table_name}_update_timestamp"


@dataclass(frozen=True, slots=True)
class AddColumn:
    table_name: str
    column: ColumnDef


@dataclass(frozen=True, slots=True)
class DropColumn:
    table_name: str
    column_name: str


@dataclass(frozen=True, slots=True)
class SetColumnDefault:
    table_name: str
    column_name: str
    column_type: ColumnType
    default_value: str | None
    is_nullable: bool = True


@dataclass(frozen=True, slots=True)
class RenameColumn:
    table_name: str
    column_name: str
    new_column_name: str


@dataclass(frozen=True, slots=True)
class AddForeignKey:
    table_name: str
    foreign_key: ForeignKeyDef


@dataclass(frozen=True, slots=True)
class DropConstraint:
    table_name: str
    constraint_name: str
    if_exists: bool = False


@dataclass(frozen=True, slots=True)
class RenameTable:
    table_name: str
    new_table_name: str


@dataclass(frozen=True, slots=True)
class DropTable:
    table_name: str
    cascade: bool = True


@dataclass(frozen=True, slots=True)
class TruncateTable:
    table_name: str
    cascade: bool = True


@dataclass(slots=True)
class DdlRenderer:
    schema: str | None = None
    _handlers: dict[type, object] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._handlers = {
            CreateTable: self._create_table,
            EnableRowLevelSecurity: self._enable_rls,
            CreateUpdateTimestampTrigger: self._create_trigger,
            AddColumn: self._add_column,
            DropColumn: self._drop_column,
            SetColumnDefault: self._set_default,
            RenameColumn: self._rename_column,
            AddForeignKey: self._add_foreign_key,
            DropConstraint: self._drop_constraint,
            RenameTable: self._rename_table,
            DropTable: self._drop_table,
            TruncateTable: self._truncate_table,
        }

    def render(self, statement: object) -> str:
        handler = self._handlers.get(type(statement))
        if handler is None:
            raise TypeError(f"Unsupported DDL statement: {type(statement).__name__}")
        return handler(statement)  # type: ignore[operator]

    def table(self, table_name: str) -> str:
        if self.schema:
            return f"{quote_identifier(self.schema)}.{quote_identifier(table_name)}"
        return quote_identifier(table_name)

    def column_definition(self, column: ColumnDef) -> str:
        parts = [quote_identifier(column.column_name), type_of(column.column_type).sql_type]
        if not column.is_nullable:
            parts.append("NOT NULL")
        if column.is_unique:
            parts.append("UNIQUE")
        default = encode_default(column.default_value, column.column_type, column.is_nullable)
        if default is not None:
            parts.append(f"DEFAULT {default}")
        return " ".join(parts)

    def foreign_key_clause(self, foreign_key: ForeignKeyDef) -> str:
        return (
            f"CONSTRAINT {quote_identifier(foreign_key.constraint_name)} "
            f"FOREIGN KEY ({quote_identifier(foreign_key.column_name)}) "
            f"REFERENCES {self.table(foreign_key.reference_table)} "
            f"({quote_identifier(foreign_key.reference_column)}) "
            f"ON DELETE {ReferentialAction(foreign_key.on_delete).value} "
            f"ON UPDATE {ReferentialAction(foreign_key.on_update).value}"
        )

    def _create_table(self, statement: CreateTable) -> str:
        lines = ['"id" UUID PRIMARY KEY DEFAULT gen_random_uuid()']
        lines.extend(self.column_definition(column) for column in statement.columns)
        lines.append('"created_at" TIMESTAMPTZ DEFAULT now()')
        lines.append('"updated_at" TIMESTAMPTZ DEFAULT now()')
        lines.extend(self.foreign_key_clause(foreign_key) for foreign_key in statement.foreign_keys)
        body = ",\n  ".join(lines)
        return f"CREATE TABLE {self.table(statement.table_name)} (\n  {body}\n)"

    def _enable_rls(self, statement: EnableRowLevelSecurity) -> str:
        return f"ALTER TABLE {self.table(statement.table_name)} ENABLE ROW LEVEL SECURITY"

    def _create_trigger(self, statement: CreateUpdateTimestampTrigger) -> str:
        return (
            f"CREATE TRIGGER {quote_identifier(statement.trigger_name)} "
            f"BEFORE UPDATE ON {self.table(statement.table_name)} "
            f"FOR EACH ROW EXECUTE FUNCTION {UPDATE_TIMESTAMP_FUNCTION}()"
        )

    def _add_column(self, statement: AddColumn) -> str:
        return (
            f"ALTER TABLE {self.table(statement.table_name)} "
            f"ADD COLUMN {self.column_definition(statement.column)}"
        )

    def _drop_column(self, statement: DropColumn) -> str:
        return (
            f"ALTER TABLE {self.table(statement.table_name)} "
            f"DROP COLUMN {quote_identifier(statement.column_name)}"
        )

    def _set_default(self, statement: SetColumnDefault) -> str:
        prefix = (
            f"ALTER TABLE {self.table(statement.table_name)} "
            f"ALTER COLUMN {quote_identifier(statement.column_name)}"
        )
        encoded = encode_default(statement.default_value, statement.column_type, statement.is_nullable)
        if encoded is None:
            return f"{prefix} DROP DEFAULT"
        return f"{prefix} SET DEFAULT {encoded}"

    def _rename_column(self, statement: RenameColumn) -> str:
        return (
            f"ALTER TABLE {self.table(statement.table_name)} "
            f"RENAME COLUMN {quote_identifier(statement.column_name)} "
            f"TO {quote_identifier(statement.new_column_name)}"
        )

    def _add_foreign_key(self, statement: AddForeignKey) -> str:
        return (
            f"ALTER TABLE {self.table(statement.table_name)} "
            f"ADD {self.foreign_key_clause(statement.foreign_key)}"
        )

    def _drop_constraint(self, statement: DropConstraint) -> str:
        if_exists = "IF EXISTS " if statement.if_exists else ""
        return (
            f"ALTER TABLE {self.table(statement.table_name)} "
            f"DROP CONSTRAINT {if_exists}{quote_identifier(statement.constraint_name)}"
        )

    def _rename_table(self, statement: RenameTable) -> str:
        return (
            f"ALTER TABLE {self.table(statement.table_name)} "
            f"RENAME TO {quote_identifier(statement.new_table_name)}"
        )

    def _drop_table(self, statement: DropTable) -> str:
        cascade = " CASCADE" if statement.cascade else ""
        return f"DROP TABLE IF EXISTS {self.table(statement.table_name)}{cascade}"

    def _truncate_table(self, statement: TruncateTable) -> str:
        cascade = " CASCADE" if statement.cascade else ""
        return f"TRUNCATE TABLE {self.table(statement.table_name)}{cascade}"
