import logging

from psycopg import Connection
from psycopg import Error as PsycopgError
from psycopg_pool import ConnectionPool

from schemakit.core.database import get_connection
from schemakit.core.errors import (
    DuplicateTableError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    SqlExecutionError,
)
from schemakit.models.column_types import type_of
from schemakit.models.entities import ColumnEntity, ForeignKeyEntity, TableColumns
from schemakit.models.schemas.table import (
    ColumnInfo,
    ColumnSchema,
    CreatedColumn,
    CreateTableRequest,
    CreateTableResponse,
    DeleteTableResponse,
    ForeignKeyInfo,
    ForeignKeySchema,
    TableSchemaResponse,
    UpdateTableSchemaRequest,
    UpdateTableSchemaResponse,
)
from schemakit.repositories.catalog_repository import CatalogRepository
from schemakit.services.schema_notifier import SchemaChangeNotifier
from schemakit.sql.ddl import (
    AddColumn,
    AddForeignKey,
    ColumnDef,
    CreateTable,
    CreateUpdateTimestampTrigger,
    DdlRenderer,
    DropColumn,
    DropConstraint,
    DropTable,
    EnableRowLevelSecurity,
    ForeignKeyDef,
    ReferentialAction,
    RenameColumn,
    RenameTable,
    SetColumnDefault,
)
from schemakit.sql.defaults import parse_default
from schemakit.sql.identifiers import validate_identifier
from schemakit.sql.policy import SystemSchemaPolicy

logger = logging.getLogger(__name__)

AUTO_FIELDS = ["id", "created_at", "updated_at"]

PlannedStep = tuple[object, str]


class TableService:
    def __init__(
        self,
        catalog_repository: CatalogRepository,
        notifier: SchemaChangeNotifier,
        pool: ConnectionPool | None = None,
        policy: SystemSchemaPolicy | None = None,
        renderer: DdlRenderer | None = None,
    ) -> None:
        self.catalog_repository = catalog_repository
        self.notifier = notifier
        self.pool = pool
        self.policy = policy or SystemSchemaPolicy()
        self.renderer = renderer or DdlRenderer()

    def list_tables(self) -> list[str]:
        tables = self.catalog_repository.list_tables()
        return [table for table in tables if not self.policy.is_system_table(table)]

    def get_all_table_schemas(self) -> list[TableSchemaResponse]:
        with get_connection(self.pool) as connection:
            tables = self.catalog_repository.list_tables(connection=connection)
            return [
                self._load_schema(table, connection)
                for table in tables
                if not self.policy.is_system_table(table)
            ]

    def get_table_schema(self, table_name: str) -> TableSchemaResponse:
        self.policy.ensure_user_table_name(table_name, "read")
        with get_connection(self.pool) as connection:
            return self._load_schema(table_name, connection)

    def create_table(self, payload: CreateTableRequest) -> CreateTableResponse:
        table_name = self.policy.ensure_user_table_name(payload.table_name, "create")

        kept = self.policy.reconcile_reserved(
            (column.column_name, column.type) for column in payload.columns
        )
        user_columns = [payload.columns[index] for index in kept]
        if not user_columns:
            raise InvalidInputError(
                "Table must have at least one user-defined column.",
                details={"table_name": table_name},
                next_actions="Add a column besides id, created_at and updated_at.",
            )

        seen: set[str] = set()
        for index, column in enumerate(user_columns):
            try:
                validate_identifier(column.column_name, "column")
            except InvalidInputError as exc:
                raise InvalidInputError(
                    f"Invalid column name at index {index}: {exc.message}",
                    details={"index": index, "column_name": column.column_name},
                ) from exc
            if column.column_name in seen:
                raise InvalidInputError(
                    f"Duplicate column name '{column.column_name}'.",
                    details={"column_name": column.column_name},
                )
            seen.add(column.column_name)
            if column.foreign_key is not None:
                self._validate_reference(column.foreign_key)

        statements: list[object] = [
            CreateTable(
                table_name=table_name,
                columns=tuple(self._to_column_def(column) for column in user_columns),
                foreign_keys=tuple(
                    self._to_foreign_key_def(column.column_name, column.foreign_key)
                    for column in user_columns
                    if column.foreign_key is not None
                ),
            )
        ]
        if payload.rls_enabled:
            statements.append(EnableRowLevelSecurity(table_name=table_name))
        statements.append(CreateUpdateTimestampTrigger(table_name=table_name))

        with get_connection(self.pool) as connection:
            if self.catalog_repository.table_exists(table_name, connection=connection):
                raise DuplicateTableError(table_name)
            self._apply(statements, connection, action="create table")
            self.notifier.schema_changed(connection, table_name)

        logger.info("Created table %s with %d user columns", table_name, len(user_columns))
        return CreateTableResponse(
            message="Table created successfully",
            table_name=table_name,
            columns=[
                CreatedColumn(**column.model_dump(), sql_type=type_of(column.type).sql_type)
                for column in user_columns
            ],
            auto_fields=list(AUTO_FIELDS),
            next_actions=(
                "Insert records through the REST data API, or add policies "
                "if row level security is enabled."
            ),
        )

    def update_table_schema(
        self,
        table_name: str,
        payload: UpdateTableSchemaRequest,
    ) -> UpdateTableSchemaResponse:
        self.policy.ensure_user_table_name(table_name, "modify")

        with get_connection(self.pool) as connection:
            current = self.catalog_repository.get_table_columns(table_name, connection=connection)
            if not current.columns:
                self._raise_table_not_found(table_name)

            steps = self._plan_updates(current, payload)
            final_name = table_name
            if payload.rename_table is not None:
                final_name = payload.rename_table.new_table_name
                if self.catalog_repository.table_exists(final_name, connection=connection):
                    raise DuplicateTableError(final_name)

            try:
                with connection.transaction():
                    for statement, _ in steps:
                        self.catalog_repository.execute(
                            self.renderer.render(statement),
                            connection=connection,
                        )
                    self.notifier.schema_changed(connection, final_name)
            except PsycopgError as exc:
                raise SqlExecutionError(
                    f"Failed to update table schema: {exc}",
                    details={"table_name": table_name},
                ) from exc

        operations = [description for _, description in steps]
        logger.info("Updated table %s: %s", table_name, operations)
        return UpdateTableSchemaResponse(
            message="Table schema updated successfully",
            table_name=final_name,
            operations=operations,
        )

    def delete_table(self, table_name: str) -> DeleteTableResponse:
        self.policy.ensure_not_system_table(table_name, "delete")
        if self.policy.is_protected_table(table_name):
            raise ForbiddenError(
                f"Cannot delete the built-in '{table_name}' table.",
                details={"table_name": table_name},
            )
        validate_identifier(table_name, "table")

        with get_connection(self.pool) as connection:
            self._apply([DropTable(table_name=table_name)], connection, action="delete table")
            self.notifier.schema_changed(connection, table_name)

        logger.info("Deleted table %s", table_name)
        return DeleteTableResponse(
            message="Table deleted successfully",
            table_name=table_name,
            next_actions="Foreign keys and views that referenced this table were dropped as well.",
        )

    def _load_schema(self, table_name: str, connection: Connection) -> TableSchemaResponse:
        table = self.catalog_repository.get_table_columns(table_name, connection=connection)
        if not table.columns:
            self._raise_table_not_found(table_name)
        record_count = self.catalog_repository.count_rows(table_name, connection=connection)
        return TableSchemaResponse(
            table_name=table_name,
            columns=[self._to_column_info(column, table) for column in table.columns],
            record_count=record_count,
        )

    def _to_column_info(self, column: ColumnEntity, table: TableColumns) -> ColumnInfo:
        is_primary_key = column.column_name in table.primary_keys
        foreign_key = table.foreign_keys.get(column.column_name)
        return ColumnInfo(
            column_name=column.column_name,
            type=column.column_type,
            is_nullable=column.is_nullable,
            is_unique=is_primary_key or column.column_name in table.unique_columns,
            is_primary_key=is_primary_key,
            default_value=parse_default(column.column_default),
            foreign_key=self._to_foreign_key_info(foreign_key),
        )

    def _to_foreign_key_info(self, foreign_key: ForeignKeyEntity | None) -> ForeignKeyInfo | None:
        if foreign_key is None or self.policy.is_system_table(foreign_key.reference_table):
            return None
        return ForeignKeyInfo(
            reference_table=foreign_key.reference_table,
            reference_column=foreign_key.reference_column,
            on_delete=foreign_key.on_delete,
            on_update=foreign_key.on_update,
        )

    def _plan_updates(
        self,
        current: TableColumns,
        payload: UpdateTableSchemaRequest,
    ) -> list[PlannedStep]:
        table_name = current.table_name
        # keyed by the name each column will have at this point of the plan
        column_types = {column.column_name: column.column_type for column in current.columns}
        names = list(column_types)

        drop_fk_steps: list[PlannedStep] = []
        for column_name in payload.drop_foreign_keys:
            foreign_key = current.foreign_keys.get(column_name)
            if foreign_key is None:
                raise NotFoundError(
                    f"No foreign key constraint found on column '{column_name}'.",
                    details={"table_name": table_name, "column_name": column_name},
                )
            drop_fk_steps.append(
                (
                    DropConstraint(table_name=table_name, constraint_name=foreign_key.constraint_name),
                    f"Dropped foreign key constraint on column '{column_name}'",
                )
            )

        drop_steps: list[PlannedStep] = []
        for column_name in payload.drop_columns:
            self.policy.ensure_column_mutable(table_name, column_name, "drop")
            if column_name not in names:
                self._raise_column_not_found(table_name, column_name)
            names.remove(column_name)
            drop_steps.append(
                (
                    DropColumn(table_name=table_name, column_name=column_name),
                    f"Dropped column '{column_name}'",
                )
            )

        update_steps: list[PlannedStep] = []
        for operation in payload.update_columns:
            column_name = operation.column_name
            self.policy.ensure_column_mutable(table_name, column_name, "update")
            if column_name not in names:
                self._raise_column_not_found(table_name, column_name)

            if operation.default_value is not None:
                update_steps.append(
                    (
                        SetColumnDefault(
                            table_name=table_name,
                            column_name=column_name,
                            column_type=column_types[column_name],
                            default_value=operation.default_value,
                        ),
                        (
                            f"Set default value for column '{column_name}'"
                            if operation.default_value.strip()
                            else f"Dropped default value for column '{column_name}'"
                        ),
                    )
                )

            new_name = operation.new_column_name
            if new_name and new_name != column_name:
                validate_identifier(new_name, "column")
                if self.policy.is_reserved(new_name):
                    raise ForbiddenError(
                        f"Cannot rename a column to system column name '{new_name}'.",
                        details={"table_name": table_name, "column_name": new_name},
                    )
                if new_name in names:
                    self._raise_column_exists(table_name, new_name)
                names[names.index(column_name)] = new_name
                column_types[new_name] = column_types.pop(column_name)
                update_steps.append(
                    (
                        RenameColumn(
                            table_name=table_name,
                            column_name=column_name,
                            new_column_name=new_name,
                        ),
                        f"Renamed column '{column_name}' to '{new_name}'",
                    )
                )

        add_steps: list[PlannedStep] = []
        add_fk_steps: list[PlannedStep] = []
        kept = self.policy.reconcile_reserved(
            (column.column_name, column.type) for column in payload.add_columns
        )
        for index in kept:
            column = payload.add_columns[index]
            validate_identifier(column.column_name, "column")
            if column.column_name in names:
                self._raise_column_exists(table_name, column.column_name)
            names.append(column.column_name)
            add_steps.append(
                (
                    AddColumn(table_name=table_name, column=self._to_column_def(column)),
                    f"Added column '{column.column_name}'",
                )
            )
            if column.foreign_key is not None:
                add_fk_steps.append(
                    self._plan_foreign_key(table_name, column.column_name, column.foreign_key)
                )

        user_column_count = sum(1 for name in names if not self.policy.is_reserved(name))
        if user_column_count <= 0:
            raise InvalidInputError(
                "Table must have at least one user-defined column after the update.",
                details={"table_name": table_name},
                next_actions="Keep at least one column besides id, created_at and updated_at.",
            )

        for operation in payload.add_foreign_keys:
            if self.policy.is_reserved(operation.column_name):
                raise ForbiddenError(
                    f"Cannot add a foreign key to system column '{operation.column_name}'.",
                    details={"table_name": table_name, "column_name": operation.column_name},
                )
            if operation.column_name not in names:
                self._raise_column_not_found(table_name, operation.column_name)
            add_fk_steps.append(
                self._plan_foreign_key(table_name, operation.column_name, operation.foreign_key)
            )

        rename_steps: list[PlannedStep] = []
        if payload.rename_table is not None:
            if self.policy.is_protected_table(table_name):
                raise ForbiddenError(
                    f"Cannot rename the built-in '{table_name}' table.",
                    details={"table_name": table_name},
                )
            new_table_name = self.policy.ensure_user_table_name(
                payload.rename_table.new_table_name, "rename a table to"
            )
            rename_steps.append(
                (
                    RenameTable(table_name=table_name, new_table_name=new_table_name),
                    f"Renamed table '{table_name}' to '{new_table_name}'",
                )
            )

        return drop_fk_steps + drop_steps + update_steps + add_steps + add_fk_steps + rename_steps

    def _plan_foreign_key(
        self,
        table_name: str,
        column_name: str,
        foreign_key: ForeignKeySchema,
    ) -> PlannedStep:
        self._validate_reference(foreign_key)
        definition = self._to_foreign_key_def(column_name, foreign_key)
        return (
            AddForeignKey(table_name=table_name, foreign_key=definition),
            (
                f"Added foreign key on column '{column_name}' referencing "
                f"{foreign_key.reference_table}({foreign_key.reference_column})"
            ),
        )

    def _validate_reference(self, foreign_key: ForeignKeySchema) -> None:
        self.policy.ensure_not_system_table(foreign_key.reference_table, "reference")
        validate_identifier(foreign_key.reference_table, "table")
        validate_identifier(foreign_key.reference_column, "column")

    def _to_column_def(self, column: ColumnSchema) -> ColumnDef:
        return ColumnDef(
            column_name=column.column_name,
            column_type=column.type,
            is_nullable=column.is_nullable,
            is_unique=column.is_unique,
            default_value=column.default_value,
        )

    def _to_foreign_key_def(self, column_name: str, foreign_key: ForeignKeySchema) -> ForeignKeyDef:
        return ForeignKeyDef(
            column_name=column_name,
            reference_table=foreign_key.reference_table,
            reference_column=foreign_key.reference_column,
            on_delete=ReferentialAction(foreign_key.on_delete),
            on_update=ReferentialAction(foreign_key.on_update),
        )

    def _apply(self, statements: list[object], connection: Connection, *, action: str) -> None:
        try:
            for statement in statements:
                self.catalog_repository.execute(self.renderer.render(statement), connection=connection)
        except PsycopgError as exc:
            raise SqlExecutionError(f"Failed to {action}: {exc}") from exc

    def _raise_table_not_found(self, table_name: str) -> None:
        raise NotFoundError(
            f"Table '{table_name}' not found.",
            details={"table_name": table_name},
        )

    def _raise_column_not_found(self, table_name: str, column_name: str) -> None:
        raise NotFoundError(
            f"Column '{column_name}' not found on table '{table_name}'.",
            details={"table_name": table_name, "column_name": column_name},
        )

    def _raise_column_exists(self, table_name: str, column_name: str) -> None:
        raise InvalidInputError(
            f"Column '{column_name}' already exists on table '{table_name}'.",
            details={"table_name": table_name, "column_name": column_name},
        )
