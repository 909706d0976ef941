from psycopg_pool import ConnectionPool

from schemakit.core.database import get_connection
from schemakit.models.schemas.database import DatabaseMetadataResponse, TableRecordCount
from schemakit.repositories.catalog_repository import CatalogRepository
from schemakit.sql.policy import SystemSchemaPolicy

BYTES_PER_GB = 1024**3


class MetadataService:
    def __init__(
        self,
        catalog_repository: CatalogRepository,
        pool: ConnectionPool | None = None,
        policy: SystemSchemaPolicy | None = None,
    ) -> None:
        self.catalog_repository = catalog_repository
        self.pool = pool
        self.policy = policy or SystemSchemaPolicy()

    def get_database_metadata(self) -> DatabaseMetadataResponse:
        with get_connection(self.pool) as connection:
            tables = [
                TableRecordCount(
                    table_name=table_name,
                    record_count=self.catalog_repository.count_rows(table_name, connection=connection),
                )
                for table_name in self.catalog_repository.list_tables(connection=connection)
                if not self.policy.is_system_table(table_name)
            ]
            size_bytes = self.catalog_repository.database_size_bytes(connection=connection)
        return DatabaseMetadataResponse(
            tables=tables,
            database_size_gb=round(size_bytes / BYTES_PER_GB, 4),
        )
