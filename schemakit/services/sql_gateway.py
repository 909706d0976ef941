import logging
from typing import Any

from psycopg import Error as PsycopgError
from psycopg.errors import QueryCanceled
from psycopg_pool import ConnectionPool

from schemakit.core.database import get_connection
from schemakit.core.errors import SqlExecutionError
from schemakit.models.schemas.database import FieldInfo, RawSqlResponse
from schemakit.services.schema_notifier import SchemaChangeNotifier
from schemakit.sql.sanitizer import contains_ddl, sanitize_query

logger = logging.getLogger(__name__)


class SqlGateway:
    """Runs administrator SQL after screening it, under a statement timeout."""

    def __init__(
        self,
        notifier: SchemaChangeNotifier,
        pool: ConnectionPool | None = None,
        timeout_seconds: int = 30,
        system_prefix: str = "_",
    ) -> None:
        self.notifier = notifier
        self.pool = pool
        self.timeout_seconds = timeout_seconds
        self.system_prefix = system_prefix

    def execute_raw_sql(self, query: str, params: list[Any] | None = None) -> RawSqlResponse:
        sanitize_query(query, self.system_prefix)

        with get_connection(self.pool) as connection:
            try:
                with connection.transaction():
                    with connection.cursor() as cursor:
                        cursor.execute(
                            "SELECT set_config('statement_timeout', %s, true)",
                            (str(self.timeout_seconds * 1000),),
                        )
                        # Without parameters the script goes out as-is, so several
                        # statements can run in one call; report the last result.
                        cursor.execute(query, params or None)
                        while cursor.nextset():
                            pass
                        description = cursor.description or []
                        rows = cursor.fetchall() if cursor.description else []
                        row_count = cursor.rowcount
                    if contains_ddl(query):
                        self.notifier.schema_changed(connection)
            except QueryCanceled as exc:
                raise SqlExecutionError(
                    f"Query exceeded the {self.timeout_seconds} second time limit.",
                    details={"timeout_seconds": self.timeout_seconds},
                    timed_out=True,
                ) from exc
            except PsycopgError as exc:
                raise SqlExecutionError(
                    str(exc).strip() or "SQL execution failed.",
                    details={"sqlstate": exc.sqlstate},
                ) from exc

        logger.info("Executed raw SQL (%d rows)", len(rows))
        return RawSqlResponse(
            rows=[dict(row) for row in rows],
            row_count=row_count if row_count >= 0 else len(rows),
            fields=[
                FieldInfo(name=column.name, data_type_id=column.type_code)
                for column in description
            ],
        )
