"""Business services."""

from schemakit.services.bulk_upsert_service import BulkUpsertService
from schemakit.services.export_service import ExportService
from schemakit.services.health_service import HealthService
from schemakit.services.import_service import ImportService
from schemakit.services.metadata_service import MetadataService
from schemakit.services.schema_notifier import PgNotifySchemaNotifier, SchemaChangeNotifier
from schemakit.services.sql_gateway import SqlGateway
from schemakit.services.table_service import TableService

__all__ = [
    "BulkUpsertService",
    "ExportService",
    "HealthService",
    "ImportService",
    "MetadataService",
    "PgNotifySchemaNotifier",
    "SchemaChangeNotifier",
    "SqlGateway",
    "TableService",
]
