import logging
from typing import Any

from psycopg import Error as PsycopgError
from psycopg import sql
from psycopg_pool import ConnectionPool

from schemakit.core.database import get_connection
from schemakit.core.errors import InvalidInputError, NotFoundError, SqlExecutionError
from schemakit.models.schemas.database import BulkUpsertResponse
from schemakit.repositories.catalog_repository import CatalogRepository
from schemakit.services.record_parser import parse_records
from schemakit.services.schema_notifier import SchemaChangeNotifier
from schemakit.sql.identifiers import validate_identifier
from schemakit.sql.policy import SystemSchemaPolicy

logger = logging.getLogger(__name__)

# PostgreSQL caps a single statement at 65535 bind parameters.
MAX_PARAMETERS = 65535


class BulkUpsertService:
    def __init__(
        self,
        catalog_repository: CatalogRepository,
        notifier: SchemaChangeNotifier,
        pool: ConnectionPool | None = None,
        policy: SystemSchemaPolicy | None = None,
    ) -> None:
        self.catalog_repository = catalog_repository
        self.notifier = notifier
        self.pool = pool
        self.policy = policy or SystemSchemaPolicy()

    def bulk_upsert(
        self,
        table: str,
        content: bytes,
        filename: str,
        upsert_key: str | None = None,
    ) -> BulkUpsertResponse:
        self.policy.ensure_user_table_name(table, "bulk upsert into")
        records = parse_records(content, filename)

        columns = [validate_identifier(name, "column") for name in records[0]]
        if upsert_key is not None:
            upsert_key = upsert_key.strip() or None
        if upsert_key is not None and upsert_key not in columns:
            raise InvalidInputError(
                f"Upsert key '{upsert_key}' is not a column in the uploaded records.",
                details={"upsert_key": upsert_key, "columns": columns},
            )

        rows = [tuple(record.get(column) for column in columns) for record in records]
        if upsert_key is not None:
            rows = _last_per_key(rows, columns.index(upsert_key))

        batch_size = max(1, (MAX_PARAMETERS - 1) // len(columns))
        rows_affected = 0
        with get_connection(self.pool) as connection:
            if not self.catalog_repository.table_exists(table, connection=connection):
                raise NotFoundError(f"Table '{table}' not found.", details={"table_name": table})
            try:
                with connection.transaction():
                    for start in range(0, len(rows), batch_size):
                        batch = rows[start : start + batch_size]
                        statement = self.build_statement(table, columns, len(batch), upsert_key)
                        params = [value for row in batch for value in row]
                        affected = self.catalog_repository.execute(
                            statement, params, connection=connection
                        )
                        rows_affected += max(affected, 0)
                    self.notifier.schema_changed(connection, table)
            except PsycopgError as exc:
                raise SqlExecutionError(
                    f"Bulk upsert failed: {str(exc).strip()}",
                    details={"table_name": table, "sqlstate": exc.sqlstate},
                ) from exc

        logger.info(
            "Bulk upserted %d of %d records into %s", rows_affected, len(records), table
        )
        return BulkUpsertResponse(
            success=True,
            message=f"Successfully processed {len(records)} records",
            table=table,
            rows_affected=rows_affected,
            total_records=len(records),
            filename=filename,
        )

    def build_statement(
        self,
        table: str,
        columns: list[str],
        row_count: int,
        upsert_key: str | None = None,
    ) -> sql.Composed:
        row_placeholder = sql.SQL("({})").format(
            sql.SQL(", ").join(sql.Placeholder() * len(columns))
        )
        statement = sql.SQL("INSERT INTO {table} ({columns}) VALUES {values}").format(
            table=self.catalog_repository.qualified(table),
            columns=sql.SQL(", ").join(sql.Identifier(column) for column in columns),
            values=sql.SQL(", ").join([row_placeholder] * row_count),
        )
        if upsert_key is None:
            return statement

        updates = [column for column in columns if column != upsert_key]
        if not updates:
            return statement + sql.SQL(" ON CONFLICT ({key}) DO NOTHING").format(
                key=sql.Identifier(upsert_key)
            )
        return statement + sql.SQL(" ON CONFLICT ({key}) DO UPDATE SET {assignments}").format(
            key=sql.Identifier(upsert_key),
            assignments=sql.SQL(", ").join(
                sql.SQL("{column} = EXCLUDED.{column}").format(column=sql.Identifier(column))
                for column in updates
            ),
        )


def _last_per_key(rows: list[tuple[Any, ...]], key_index: int) -> list[tuple[Any, ...]]:
    # ON CONFLICT DO UPDATE cannot touch the same row twice in one statement
    latest: dict[Any, tuple[Any, ...]] = {}
    for row in rows:
        key = row[key_index]
        latest.pop(key, None)
        latest[key] = row
    return list(latest.values())
