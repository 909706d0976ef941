from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from psycopg import Connection, sql
from psycopg_pool import ConnectionPool

from schemakit.core.database import get_connection
from schemakit.models.entities import ColumnEntity, ForeignKeyEntity, TableColumns

SCHEMA_FILTER = "COALESCE(%(schema)s::text, current_schema())"


def _to_column_entity(row: dict[str, Any]) -> ColumnEntity:
    return ColumnEntity(
        column_name=row["column_name"],
        data_type=row["data_type"],
        udt_name=row["udt_name"],
        is_nullable=row["is_nullable"] == "YES",
        column_default=row["column_default"],
        character_maximum_length=row["character_maximum_length"],
    )


def _to_foreign_key_entity(row: dict[str, Any]) -> ForeignKeyEntity:
    return ForeignKeyEntity(
        constraint_name=row["constraint_name"],
        column_name=row["column_name"],
        reference_table=row["reference_table"],
        reference_column=row["reference_column"],
        on_delete=row["on_delete"],
        on_update=row["on_update"],
    )


class CatalogRepository:
    """Reads table structure from information_schema and runs rendered DDL."""

    def __init__(self, pool: ConnectionPool | None = None, schema: str | None = None) -> None:
        self.pool = pool
        self.schema = schema

    @contextmanager
    def _use_connection(self, connection: Connection | None) -> Iterator[Connection]:
        if connection is not None:
            yield connection
            return
        if self.pool is None:
            raise RuntimeError("CatalogRepository needs a pool or an explicit connection.")
        with get_connection(self.pool) as managed:
            yield managed

    def _params(self, **values: Any) -> dict[str, Any]:
        return {"schema": self.schema, **values}

    def qualified(self, table_name: str) -> sql.Composable:
        if self.schema:
            return sql.Identifier(self.schema, table_name)
        return sql.Identifier(table_name)

    def list_tables(self, connection: Connection | None = None) -> list[str]:
        query = f"""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = {SCHEMA_FILTER}
              AND table_type = 'BASE TABLE'
            ORDER BY table_name ASC
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, self._params())
                rows = cursor.fetchall()
        return [row["table_name"] for row in rows]

    def table_exists(self, table_name: str, connection: Connection | None = None) -> bool:
        query = f"""
            SELECT EXISTS (
                SELECT 1
                FROM information_schema.tables
                WHERE table_schema = {SCHEMA_FILTER}
                  AND table_name = %(table)s
            ) AS found
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, self._params(table=table_name))
                row = cursor.fetchone()
        return bool(row and row["found"])

    def get_columns(self, table_name: str, connection: Connection | None = None) -> list[ColumnEntity]:
        query = f"""
            SELECT column_name, data_type, udt_name, is_nullable, column_default,
                   character_maximum_length
            FROM information_schema.columns
            WHERE table_schema = {SCHEMA_FILTER}
              AND table_name = %(table)s
            ORDER BY ordinal_position ASC
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, self._params(table=table_name))
                rows = cursor.fetchall()
        return [_to_column_entity(row) for row in rows]

    def get_constraint_columns(
        self,
        table_name: str,
        constraint_type: str,
        connection: Connection | None = None,
    ) -> list[str]:
        query = f"""
            SELECT kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
              ON tc.constraint_name = kcu.constraint_name
             AND tc.table_schema = kcu.table_schema
            WHERE tc.table_schema = {SCHEMA_FILTER}
              AND tc.table_name = %(table)s
              AND tc.constraint_type = %(constraint_type)s
            ORDER BY kcu.ordinal_position ASC
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(
                    query,
                    self._params(table=table_name, constraint_type=constraint_type),
                )
                rows = cursor.fetchall()
        return [row["column_name"] for row in rows]

    def get_foreign_keys(
        self,
        table_name: str,
        connection: Connection | None = None,
    ) -> list[ForeignKeyEntity]:
        query = f"""
            SELECT tc.constraint_name,
                   kcu.column_name,
                   ccu.table_name AS reference_table,
                   ccu.column_name AS reference_column,
                   rc.delete_rule AS on_delete,
                   rc.update_rule AS on_update
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
              ON tc.constraint_name = kcu.constraint_name
             AND tc.table_schema = kcu.table_schema
            JOIN information_schema.constraint_column_usage ccu
              ON ccu.constraint_name = tc.constraint_name
             AND ccu.constraint_schema = tc.table_schema
            JOIN information_schema.referential_constraints rc
              ON rc.constraint_name = tc.constraint_name
             AND rc.constraint_schema = tc.table_schema
            WHERE tc.constraint_type = 'FOREIGN KEY'
              AND tc.table_schema = {SCHEMA_FILTER}
              AND tc.table_name = %(table)s
            ORDER BY tc.constraint_name ASC
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, self._params(table=table_name))
                rows = cursor.fetchall()
        return [_to_foreign_key_entity(row) for row in rows]

    def get_table_columns(
        self,
        table_name: str,
        connection: Connection | None = None,
    ) -> TableColumns:
        with self._use_connection(connection) as active_connection:
            columns = self.get_columns(table_name, connection=active_connection)
            primary_keys = self.get_constraint_columns(
                table_name, "PRIMARY KEY", connection=active_connection
            )
            unique_columns = self.get_constraint_columns(
                table_name, "UNIQUE", connection=active_connection
            )
            foreign_keys = self.get_foreign_keys(table_name, connection=active_connection)
        return TableColumns(
            table_name=table_name,
            columns=columns,
            primary_keys=set(primary_keys),
            unique_columns=set(unique_columns),
            foreign_keys={foreign_key.column_name: foreign_key for foreign_key in foreign_keys},
        )

    def count_rows(self, table_name: str, connection: Connection | None = None) -> int:
        query = sql.SQL("SELECT COUNT(*) AS count FROM {}").format(self.qualified(table_name))
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query)
                row = cursor.fetchone()
        return int(row["count"]) if row else 0

    def database_size_bytes(self, connection: Connection | None = None) -> int:
        query = "SELECT pg_database_size(current_database()) AS size"
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query)
                row = cursor.fetchone()
        return int(row["size"]) if row else 0

    def execute(
        self,
        statement: str | sql.Composable,
        params: Sequence[Any] | None = None,
        connection: Connection | None = None,
    ) -> int:
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(statement, params)
                return cursor.rowcount
