import logging
import re
from pathlib import PurePath

from psycopg import Connection
from psycopg import Error as PsycopgError
from psycopg_pool import ConnectionPool

from schemakit.core.database import get_connection
from schemakit.core.errors import InvalidInputError, SqlImportError
from schemakit.models.schemas.database import ImportResponse
from schemakit.repositories.catalog_repository import CatalogRepository
from schemakit.services.schema_notifier import SchemaChangeNotifier
from schemakit.sql.ddl import DdlRenderer, TruncateTable
from schemakit.sql.policy import SystemSchemaPolicy
from schemakit.sql.sanitizer import sanitize_query
from schemakit.sql.splitter import split_statements

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({".sql", ".txt"})

_TABLE_NAME = r"(?:\"?\w+\"?\.)?\"?([A-Za-z_][A-Za-z0-9_]*)\"?"
_INSERT_TARGET = re.compile(r"^\s*INSERT\s+INTO\s+" + _TABLE_NAME, re.IGNORECASE)
_CREATE_TARGET = re.compile(
    r"^\s*CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?" + _TABLE_NAME,
    re.IGNORECASE,
)
_TRANSACTION_CONTROL = re.compile(
    r"^\s*(?:BEGIN|COMMIT|END|ROLLBACK|START\s+TRANSACTION)(?:\s+(?:WORK|TRANSACTION))?\s*$",
    re.IGNORECASE,
)


class ImportService:
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

    def import_database(
        self,
        content: bytes,
        filename: str,
        file_size: int | None = None,
        truncate: bool = False,
    ) -> ImportResponse:
        extension = PurePath(filename).suffix.lower()
        if extension not in ALLOWED_EXTENSIONS:
            raise InvalidInputError(
                "Only .sql and .txt files are supported for import.",
                details={"filename": filename},
            )
        try:
            sql_text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise InvalidInputError(
                "Import file must be UTF-8 encoded text.",
                details={"filename": filename},
            ) from exc
        if not sql_text.strip():
            raise InvalidInputError("Import file is empty.", details={"filename": filename})

        sanitize_query(sql_text, self.policy.system_prefix)
        statements = split_statements(sql_text)

        tables: list[str] = []
        rows_imported = 0
        with get_connection(self.pool) as connection:
            with connection.transaction():
                if truncate:
                    self._truncate_tables(connection)

                for index, statement in enumerate(statements):
                    if _TRANSACTION_CONTROL.match(statement):
                        # the whole file already runs in one transaction
                        continue
                    sanitize_query(statement, self.policy.system_prefix)
                    try:
                        affected = self.catalog_repository.execute(statement, connection=connection)
                    except PsycopgError as exc:
                        raise SqlImportError(
                            f"Import failed: {str(exc).strip()}",
                            details={
                                "statement_index": index,
                                "statement": statement[:200],
                                "sqlstate": exc.sqlstate,
                            },
                        ) from exc

                    insert_target = _INSERT_TARGET.match(statement)
                    if insert_target:
                        rows_imported += max(affected, 0)
                        _remember(tables, insert_target.group(1))
                        continue
                    create_target = _CREATE_TARGET.match(statement)
                    if create_target:
                        _remember(tables, create_target.group(1))

                self.notifier.schema_changed(connection)

        size = file_size if file_size is not None else len(content)
        logger.info(
            "Imported %s: %d statements, %d rows, tables=%s",
            filename,
            len(statements),
            rows_imported,
            tables,
        )
        return ImportResponse(
            success=True,
            message="SQL file imported successfully",
            filename=filename,
            tables=tables,
            rows_imported=rows_imported,
            file_size=size,
        )

    def _truncate_tables(self, connection: Connection) -> None:
        for table_name in self.catalog_repository.list_tables(connection=connection):
            if self.policy.is_system_table(table_name):
                continue
            statement = self.renderer.render(TruncateTable(table_name=table_name))
            try:
                # a savepoint keeps one failed truncate from aborting the import
                with connection.transaction():
                    self.catalog_repository.execute(statement, connection=connection)
            except PsycopgError as exc:
                logger.warning("Failed to truncate table %s: %s", table_name, exc)


def _remember(tables: list[str], table_name: str) -> None:
    if table_name not in tables:
        tables.append(table_name)
