from typing import Any

from psycopg import Connection, sql

from schemakit.models.entities import IndexEntity, PolicyEntity, TriggerEntity
from schemakit.repositories.catalog_repository import SCHEMA_FILTER, CatalogRepository


class SnapshotRepository(CatalogRepository):
    """Catalog reads needed to rebuild tables and global objects for export."""

    def list_indexes(self, table_name: str, connection: Connection | None = None) -> list[IndexEntity]:
        query = f"""
            SELECT i.indexname AS index_name,
                   i.indexdef AS definition,
                   ix.indisunique AS is_unique,
                   ix.indisprimary AS is_primary,
                   pg_get_constraintdef(con.oid) AS constraint_definition
            FROM pg_indexes i
            JOIN pg_namespace n ON n.nspname = i.schemaname
            JOIN pg_class c ON c.relname = i.indexname AND c.relnamespace = n.oid
            JOIN pg_index ix ON ix.indexrelid = c.oid
            LEFT JOIN pg_constraint con ON con.conindid = ix.indexrelid AND con.contype = 'u'
            WHERE i.schemaname = {SCHEMA_FILTER}
              AND i.tablename = %(table)s
            ORDER BY i.indexname ASC
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, self._params(table=table_name))
                rows = cursor.fetchall()
        return [
            IndexEntity(
                index_name=row["index_name"],
                definition=row["definition"],
                is_unique=row["is_unique"],
                is_primary=row["is_primary"],
                constraint_definition=row["constraint_definition"],
            )
            for row in rows
        ]

    def rls_enabled(self, table_name: str, connection: Connection | None = None) -> bool:
        query = f"""
            SELECT c.relrowsecurity AS enabled
            FROM pg_class c
            JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE n.nspname = {SCHEMA_FILTER}
              AND c.relname = %(table)s
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, self._params(table=table_name))
                row = cursor.fetchone()
        return bool(row and row["enabled"])

    def list_policies(self, table_name: str, connection: Connection | None = None) -> list[PolicyEntity]:
        query = f"""
            SELECT policyname, permissive, cmd, roles, qual, with_check
            FROM pg_policies
            WHERE schemaname = {SCHEMA_FILTER}
              AND tablename = %(table)s
            ORDER BY policyname ASC
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, self._params(table=table_name))
                rows = cursor.fetchall()
        return [
            PolicyEntity(
                policy_name=row["policyname"],
                permissive=row["permissive"],
                command=row["cmd"],
                roles=list(row["roles"] or []),
                using_expression=row["qual"],
                check_expression=row["with_check"],
            )
            for row in rows
        ]

    def list_triggers(self, table_name: str, connection: Connection | None = None) -> list[TriggerEntity]:
        query = f"""
            SELECT t.tgname AS trigger_name,
                   pg_get_triggerdef(t.oid) AS definition
            FROM pg_trigger t
            JOIN pg_class c ON c.oid = t.tgrelid
            JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE NOT t.tgisinternal
              AND n.nspname = {SCHEMA_FILTER}
              AND c.relname = %(table)s
            ORDER BY t.tgname ASC
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, self._params(table=table_name))
                rows = cursor.fetchall()
        return [
            TriggerEntity(trigger_name=row["trigger_name"], definition=row["definition"])
            for row in rows
        ]

    def fetch_rows(
        self,
        table_name: str,
        limit: int | None = None,
        connection: Connection | None = None,
    ) -> list[dict[str, Any]]:
        query = sql.SQL("SELECT * FROM {}").format(self.qualified(table_name))
        params: tuple[Any, ...] = ()
        if limit is not None:
            query = sql.SQL("{} LIMIT %s").format(query)
            params = (limit,)
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, params or None)
                return cursor.fetchall()

    def list_functions(self, connection: Connection | None = None) -> list[dict[str, Any]]:
        query = f"""
            SELECT p.proname AS function_name,
                   pg_get_functiondef(p.oid) AS definition
            FROM pg_proc p
            JOIN pg_namespace n ON n.oid = p.pronamespace
            WHERE n.nspname = {SCHEMA_FILTER}
              AND p.prokind IN ('f', 'p')
              AND NOT EXISTS (
                  SELECT 1
                  FROM pg_depend d
                  WHERE d.objid = p.oid
                    AND d.deptype = 'e'
              )
            ORDER BY p.proname ASC
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, self._params())
                return cursor.fetchall()

    def list_sequences(self, connection: Connection | None = None) -> list[dict[str, Any]]:
        query = f"""
            SELECT sequence_name, data_type, start_value, minimum_value, maximum_value,
                   increment, cycle_option
            FROM information_schema.sequences
            WHERE sequence_schema = {SCHEMA_FILTER}
            ORDER BY sequence_name ASC
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, self._params())
                return cursor.fetchall()

    def list_views(self, connection: Connection | None = None) -> list[dict[str, Any]]:
        query = f"""
            SELECT viewname AS view_name, definition
            FROM pg_views
            WHERE schemaname = {SCHEMA_FILTER}
            ORDER BY viewname ASC
        """
        with self._use_connection(connection) as active_connection:
            with active_connection.cursor() as cursor:
                cursor.execute(query, self._params())
                return cursor.fetchall()
