"""Database snapshots in SQL or JSON form.

The SQL output is ordered so it can be replayed into an empty schema:
sequences and functions first, then table definitions, then data, then
foreign keys, and views last.
"""

import logging
import re
from datetime import UTC, datetime
from typing import Any

from psycopg import Connection
from psycopg_pool import ConnectionPool

from schemakit.core.database import get_connection
from schemakit.core.errors import NotFoundError
from schemakit.models.entities import (
    ColumnEntity,
    ForeignKeyEntity,
    IndexEntity,
    PolicyEntity,
    TableSnapshot,
)
from schemakit.models.schemas.database import ExportRequest, ExportResponse
from schemakit.repositories.snapshot_repository import SnapshotRepository
from schemakit.sql.ddl import (
    AddForeignKey,
    DdlRenderer,
    DropConstraint,
    EnableRowLevelSecurity,
    ForeignKeyDef,
    ReferentialAction,
)
from schemakit.sql.identifiers import quote_identifier
from schemakit.sql.literals import format_sql_literal
from schemakit.sql.policy import SystemSchemaPolicy

logger = logging.getLogger(__name__)

_CREATE_INDEX = re.compile(r"^CREATE (UNIQUE )?INDEX (?!IF NOT EXISTS)", re.IGNORECASE)


class ExportService:
    def __init__(
        self,
        snapshot_repository: SnapshotRepository,
        pool: ConnectionPool | None = None,
        policy: SystemSchemaPolicy | None = None,
        renderer: DdlRenderer | None = None,
    ) -> None:
        self.snapshot_repository = snapshot_repository
        self.pool = pool
        self.policy = policy or SystemSchemaPolicy()
        self.renderer = renderer or DdlRenderer()

    def export_database(self, request: ExportRequest) -> ExportResponse:
        timestamp = datetime.now(UTC)
        with get_connection(self.pool) as connection:
            tables = self._resolve_tables(request.tables, connection)
            snapshots = [self._snapshot(table, request, connection) for table in tables]
            functions = (
                self.snapshot_repository.list_functions(connection=connection)
                if request.include_functions
                else []
            )
            sequences = (
                self.snapshot_repository.list_sequences(connection=connection)
                if request.include_sequences
                else []
            )
            views = (
                self.snapshot_repository.list_views(connection=connection)
                if request.include_views
                else []
            )

        truncated_tables = [
            snapshot.table_name for snapshot in snapshots if self._is_truncated(snapshot, request)
        ]

        data: str | dict[str, Any]
        if request.format == "json":
            data = self._render_json(snapshots, request, functions, sequences, views)
        else:
            data = self._render_sql(snapshots, request, functions, sequences, views, timestamp)

        logger.info(
            "Exported %d tables as %s (truncated: %s)",
            len(snapshots),
            request.format,
            truncated_tables or "none",
        )
        return ExportResponse(
            format=request.format,
            data=data,
            timestamp=timestamp,
            truncated_tables=truncated_tables or None,
            row_limit=request.row_limit if truncated_tables else None,
        )

    def _resolve_tables(self, requested: list[str] | None, connection: Connection) -> list[str]:
        if not requested:
            tables = self.snapshot_repository.list_tables(connection=connection)
            return [table for table in tables if not self.policy.is_system_table(table)]

        resolved: list[str] = []
        for table_name in requested:
            self.policy.ensure_user_table_name(table_name, "export")
            if not self.snapshot_repository.table_exists(table_name, connection=connection):
                raise NotFoundError(
                    f"Table '{table_name}' not found.",
                    details={"table_name": table_name},
                )
            if table_name not in resolved:
                resolved.append(table_name)
        return resolved

    def _snapshot(self, table_name: str, request: ExportRequest, connection: Connection) -> TableSnapshot:
        repository = self.snapshot_repository
        rows: list[dict[str, Any]] = []
        total_row_count = 0
        if request.include_data:
            rows = repository.fetch_rows(table_name, limit=request.row_limit, connection=connection)
            total_row_count = len(rows)
            if request.row_limit is not None and len(rows) >= request.row_limit:
                total_row_count = repository.count_rows(table_name, connection=connection)

        return TableSnapshot(
            table_name=table_name,
            columns=repository.get_columns(table_name, connection=connection),
            primary_keys=repository.get_constraint_columns(
                table_name, "PRIMARY KEY", connection=connection
            ),
            indexes=repository.list_indexes(table_name, connection=connection),
            foreign_keys=repository.get_foreign_keys(table_name, connection=connection),
            rls_enabled=repository.rls_enabled(table_name, connection=connection),
            policies=repository.list_policies(table_name, connection=connection),
            triggers=repository.list_triggers(table_name, connection=connection),
            rows=rows,
            total_row_count=total_row_count,
        )

    def _is_truncated(self, snapshot: TableSnapshot, request: ExportRequest) -> bool:
        return (
            request.include_data
            and request.row_limit is not None
            and snapshot.total_row_count > len(snapshot.rows)
        )

    def _render_sql(
        self,
        snapshots: list[TableSnapshot],
        request: ExportRequest,
        functions: list[dict[str, Any]],
        sequences: list[dict[str, Any]],
        views: list[dict[str, Any]],
        timestamp: datetime,
    ) -> str:
        row_limit = f"{request.row_limit} rows per table" if request.row_limit else "none"
        lines = [
            "-- Database Export",
            f"-- Generated on: {timestamp.isoformat()}",
            "-- Format: SQL",
            f"-- Include Data: {'true' if request.include_data else 'false'}",
            f"-- Row Limit: {row_limit}",
            "",
        ]

        if sequences:
            lines.append("-- Sequences")
            lines.extend(self._sequence_sql(sequence) for sequence in sequences)
            lines.append("")

        if functions:
            lines.append("-- Functions")
            for function in functions:
                lines.append(f"{function['definition'].rstrip().rstrip(';')};")
                lines.append("")

        for snapshot in snapshots:
            lines.append(f"-- Table: {snapshot.table_name}")
            lines.append(self._create_table_sql(snapshot))
            for index in snapshot.indexes:
                if index.is_primary:
                    continue
                if index.constraint_definition:
                    lines.extend(self._unique_constraint_sql(snapshot.table_name, index))
                    continue
                lines.append(f"{_idempotent_index(index.definition)};")
            if snapshot.rls_enabled:
                lines.append(
                    f"{self.renderer.render(EnableRowLevelSecurity(table_name=snapshot.table_name))};"
                )
            for policy in snapshot.policies:
                lines.extend(self._policy_sql(snapshot.table_name, policy))
            for trigger in snapshot.triggers:
                definition = trigger.definition
                if definition.upper().startswith("CREATE TRIGGER"):
                    definition = "CREATE OR REPLACE TRIGGER" + definition[len("CREATE TRIGGER") :]
                lines.append(f"{definition};")
            lines.append("")

        if request.include_data:
            for snapshot in snapshots:
                lines.extend(self._data_sql(snapshot, request))

        foreign_keys = [
            (snapshot.table_name, foreign_key)
            for snapshot in snapshots
            for foreign_key in snapshot.foreign_keys
        ]
        if foreign_keys:
            lines.append("-- Foreign key constraints")
            for table_name, foreign_key in foreign_keys:
                lines.extend(self._foreign_key_sql(table_name, foreign_key))
            lines.append("")

        if views:
            lines.append("-- Views")
            for view in views:
                definition = (view["definition"] or "").strip().rstrip(";")
                lines.append(
                    f"CREATE OR REPLACE VIEW {quote_identifier(view['view_name'])} AS\n{definition};"
                )
            lines.append("")

        return "\n".join(lines).rstrip() + "\n"

    def _create_table_sql(self, snapshot: TableSnapshot) -> str:
        definitions = [self._column_sql(column) for column in snapshot.columns]
        if snapshot.primary_keys:
            keys = ", ".join(quote_identifier(key) for key in snapshot.primary_keys)
            definitions.append(f"PRIMARY KEY ({keys})")
        body = ",\n  ".join(definitions)
        return f"CREATE TABLE IF NOT EXISTS {quote_identifier(snapshot.table_name)} (\n  {body}\n);"

    def _column_sql(self, column: ColumnEntity) -> str:
        parts = [quote_identifier(column.column_name), _sql_type(column)]
        if not column.is_nullable:
            parts.append("NOT NULL")
        if column.column_default is not None:
            parts.append(f"DEFAULT {column.column_default}")
        return " ".join(parts)

    def _policy_sql(self, table_name: str, policy: PolicyEntity) -> list[str]:
        roles = ", ".join(
            role if role.lower() == "public" else quote_identifier(role) for role in policy.roles
        ) or "public"
        statement = (
            f"CREATE POLICY {quote_identifier(policy.policy_name)} ON {quote_identifier(table_name)}"
            f" AS {policy.permissive} FOR {policy.command} TO {roles}"
        )
        if policy.using_expression:
            statement += f" USING ({policy.using_expression})"
        if policy.check_expression:
            statement += f" WITH CHECK ({policy.check_expression})"
        return [
            f"DROP POLICY IF EXISTS {quote_identifier(policy.policy_name)} ON {quote_identifier(table_name)};",
            f"{statement};",
        ]

    def _data_sql(self, snapshot: TableSnapshot, request: ExportRequest) -> list[str]:
        if not snapshot.rows:
            return []
        lines = [f"-- Data for table: {snapshot.table_name}"]
        if self._is_truncated(snapshot, request):
            lines.append(
                f"-- WARNING: Table contains {snapshot.total_row_count} rows, but only "
                f"{len(snapshot.rows)} rows exported due to row limit"
            )
        data_types = {column.column_name: column.data_type for column in snapshot.columns}
        table = quote_identifier(snapshot.table_name)
        for row in snapshot.rows:
            columns = ", ".join(quote_identifier(name) for name in row)
            values = ", ".join(
                format_sql_literal(value, data_types.get(name)) for name, value in row.items()
            )
            lines.append(f"INSERT INTO {table} ({columns}) VALUES ({values});")
        lines.append("")
        return lines

    def _unique_constraint_sql(self, table_name: str, index: IndexEntity) -> list[str]:
        # a constraint, not a bare unique index, so introspection still reports isUnique
        drop = DropConstraint(table_name=table_name, constraint_name=index.index_name, if_exists=True)
        return [
            f"{self.renderer.render(drop)};",
            f"ALTER TABLE {self.renderer.table(table_name)} ADD CONSTRAINT "
            f"{quote_identifier(index.index_name)} {index.constraint_definition};",
        ]

    def _foreign_key_sql(self, table_name: str, foreign_key: ForeignKeyEntity) -> list[str]:
        definition = ForeignKeyDef(
            column_name=foreign_key.column_name,
            reference_table=foreign_key.reference_table,
            reference_column=foreign_key.reference_column,
            on_delete=ReferentialAction(foreign_key.on_delete),
            on_update=ReferentialAction(foreign_key.on_update),
            name=foreign_key.constraint_name,
        )
        drop = DropConstraint(
            table_name=table_name,
            constraint_name=foreign_key.constraint_name,
            if_exists=True,
        )
        return [
            f"{self.renderer.render(drop)};",
            f"{self.renderer.render(AddForeignKey(table_name=table_name, foreign_key=definition))};",
        ]

    def _sequence_sql(self, sequence: dict[str, Any]) -> str:
        cycle = "CYCLE" if sequence["cycle_option"] == "YES" else "NO CYCLE"
        return (
            f"CREATE SEQUENCE IF NOT EXISTS {quote_identifier(sequence['sequence_name'])}"
            f" AS {sequence['data_type']}"
            f" INCREMENT BY {sequence['increment']}"
            f" MINVALUE {sequence['minimum_value']}"
            f" MAXVALUE {sequence['maximum_value']}"
            f" START WITH {sequence['start_value']}"
            f" {cycle};"
        )

    def _render_json(
        self,
        snapshots: list[TableSnapshot],
        request: ExportRequest,
        functions: list[dict[str, Any]],
        sequences: list[dict[str, Any]],
        views: list[dict[str, Any]],
    ) -> dict[str, Any]:
        tables: dict[str, Any] = {}
        for snapshot in snapshots:
            entry: dict[str, Any] = {
                "schema": [
                    {
                        "columnName": column.column_name,
                        "dataType": column.data_type,
                        "characterMaximumLength": column.character_maximum_length,
                        "isNullable": column.is_nullable,
                        "columnDefault": column.column_default,
                    }
                    for column in snapshot.columns
                ],
                "indexes": [
                    {
                        "indexName": index.index_name,
                        "definition": index.definition,
                        "isUnique": index.is_unique,
                        "isPrimary": index.is_primary,
                        "constraintDefinition": index.constraint_definition,
                    }
                    for index in snapshot.indexes
                ],
                "foreignKeys": [
                    {
                        "constraintName": foreign_key.constraint_name,
                        "columnName": foreign_key.column_name,
                        "referenceTable": foreign_key.reference_table,
                        "referenceColumn": foreign_key.reference_column,
                        "onDelete": foreign_key.on_delete,
                        "onUpdate": foreign_key.on_update,
                    }
                    for foreign_key in snapshot.foreign_keys
                ],
                "rlsEnabled": snapshot.rls_enabled,
                "policies": [
                    {
                        "policyName": policy.policy_name,
                        "permissive": policy.permissive,
                        "command": policy.command,
                        "roles": policy.roles,
                        "using": policy.using_expression,
                        "withCheck": policy.check_expression,
                    }
                    for policy in snapshot.policies
                ],
                "triggers": [
                    {"triggerName": trigger.trigger_name, "definition": trigger.definition}
                    for trigger in snapshot.triggers
                ],
                "rows": snapshot.rows,
            }
            if self._is_truncated(snapshot, request):
                entry["truncated"] = True
                entry["exportedRowCount"] = len(snapshot.rows)
                entry["totalRowCount"] = snapshot.total_row_count
            tables[snapshot.table_name] = entry

        data: dict[str, Any] = {"tables": tables}
        if request.include_functions:
            data["functions"] = [
                {"functionName": function["function_name"], "definition": function["definition"]}
                for function in functions
            ]
        if request.include_sequences:
            data["sequences"] = [
                {
                    "sequenceName": sequence["sequence_name"],
                    "dataType": sequence["data_type"],
                    "startValue": sequence["start_value"],
                    "minimumValue": sequence["minimum_value"],
                    "maximumValue": sequence["maximum_value"],
                    "increment": sequence["increment"],
                    "cycleOption": sequence["cycle_option"],
                }
                for sequence in sequences
            ]
        if request.include_views:
            data["views"] = [
                {"viewName": view["view_name"], "definition": view["definition"]} for view in views
            ]
        return data


def _idempotent_index(definition: str) -> str:
    return _CREATE_INDEX.sub(r"CREATE \1INDEX IF NOT EXISTS ", definition)


def _sql_type(column: ColumnEntity) -> str:
    data_type = column.data_type
    length = column.character_maximum_length
    if data_type == "character varying":
        return f"varchar({length})" if length else "varchar"
    if data_type == "character":
        return f"char({length})" if length else "char"
    if data_type == "timestamp with time zone":
        return "timestamptz"
    if data_type == "timestamp without time zone":
        return "timestamp"
    if data_type == "ARRAY":
        return f"{column.udt_name.lstrip('_')}[]"
    if data_type == "USER-DEFINED":
        return column.udt_name
    return data_type
