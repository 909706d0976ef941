from fastapi import status
from fastapi.testclient import TestClient
from schemakit.api.routes.database import (
    get_bulk_upsert_service,
    get_export_service,
    get_import_service,
    get_metadata_service,
    get_sql_gateway,
)
from schemakit.core.config import Settings, get_settings
from schemakit.core.errors import ForbiddenError, InvalidInputError, SqlExecutionError, SqlImportError
from schemakit.main import app
from schemakit.models.schemas.database import (
    BulkUpsertResponse,
    DatabaseMetadataResponse,
    ExportRequest,
    ExportResponse,
    FieldInfo,
    ImportResponse,
    RawSqlResponse,
    TableRecordCount,
)


class _FakeGateway:
    def __init__(self) -> None:
        self.calls: list[tuple[str, list[object]]] = []

    def execute_raw_sql(self, query: str, params: list[object] | None = None) -> RawSqlResponse:
        self.calls.append((query, list(params or [])))
        if "_accounts" in query:
            raise ForbiddenError("Query contains restricted operations.")
        if "pg_sleep" in query:
            raise SqlExecutionError("Query exceeded the 30 second time limit.", timed_out=True)
        if "boom" in query:
            raise RuntimeError("driver exploded")
        return RawSqlResponse(
            rows=[{"id": 1}],
            row_count=1,
            fields=[FieldInfo(name="id", data_type_id=23)],
        )


class _FakeExportService:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.requests: list[ExportRequest] = []

    def export_database(self, request: ExportRequest) -> ExportResponse:
        self.requests.append(request)
        if self.fail:
            raise RuntimeError("catalog unavailable")
        return ExportResponse(
            format=request.format,
            data="-- Database Export\n",
            truncated_tables=["customers"],
            row_limit=request.row_limit,
        )


class _FakeImportService:
    def __init__(self) -> None:
        self.calls: list[tuple[bytes, str, bool]] = []

    def import_database(
        self,
        content: bytes,
        filename: str,
        file_size: int | None = None,
        truncate: bool = False,
    ) -> ImportResponse:
        self.calls.append((content, filename, truncate))
        if filename.endswith(".csv"):
            raise InvalidInputError("Only .sql and .txt files are supported for import.")
        if b"broken" in content:
            raise SqlImportError("Import failed: syntax error")
        return ImportResponse(
            success=True,
            message="SQL file imported successfully",
            filename=filename,
            tables=["customers"],
            rows_imported=2,
            file_size=file_size or len(content),
        )


class _FakeBulkUpsertService:
    def __init__(self) -> None:
        self.calls: list[tuple[str, bytes, str, str | None]] = []

    def bulk_upsert(
        self,
        table: str,
        content: bytes,
        filename: str,
        upsert_key: str | None = None,
    ) -> BulkUpsertResponse:
        self.calls.append((table, content, filename, upsert_key))
        if upsert_key == "missing":
            raise InvalidInputError("Upsert key 'missing' is not a column in the uploaded records.")
        return BulkUpsertResponse(
            success=True,
            message="Successfully processed 2 records",
            table=table,
            rows_affected=2,
            total_records=2,
            filename=filename,
        )


class _FakeMetadataService:
    def get_database_metadata(self) -> DatabaseMetadataResponse:
        return DatabaseMetadataResponse(
            tables=[TableRecordCount(table_name="customers", record_count=25)],
            database_size_gb=0.0123,
        )


def test_raw_sql_success(client: TestClient) -> None:
    gateway = _FakeGateway()
    app.dependency_overrides[get_sql_gateway] = lambda: gateway

    response = client.post(
        "/api/database/rawsql",
        json={"query": "SELECT id FROM products WHERE id = %s", "params": [1]},
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "rows": [{"id": 1}],
        "rowCount": 1,
        "fields": [{"name": "id", "dataTypeID": 23}],
    }
    assert gateway.calls == [("SELECT id FROM products WHERE id = %s", [1])]


def test_raw_sql_failures_use_route_error_shape(client: TestClient) -> None:
    app.dependency_overrides[get_sql_gateway] = _FakeGateway

    forbidden = client.post("/api/database/rawsql", json={"query": "DROP TABLE _accounts"})
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN
    assert forbidden.json()["error"] == "SQL_EXECUTION_ERROR"
    assert forbidden.json()["statusCode"] == 403
    assert forbidden.json()["message"] == "Query contains restricted operations."

    timeout = client.post("/api/database/rawsql", json={"query": "SELECT pg_sleep(60)"})
    assert timeout.status_code == status.HTTP_408_REQUEST_TIMEOUT
    assert timeout.json()["error"] == "SQL_EXECUTION_ERROR"

    unexpected = client.post("/api/database/rawsql", json={"query": "SELECT boom"})
    assert unexpected.status_code == status.HTTP_400_BAD_REQUEST
    assert unexpected.json()["message"] == "driver exploded"


def test_raw_sql_requires_query(client: TestClient) -> None:
    app.dependency_overrides[get_sql_gateway] = _FakeGateway

    response = client.post("/api/database/rawsql", json={"query": ""})

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT


def test_export_parses_options(client: TestClient) -> None:
    service = _FakeExportService()
    app.dependency_overrides[get_export_service] = lambda: service

    response = client.post(
        "/api/database/export",
        json={"tables": ["customers"], "format": "sql", "includeData": True, "rowLimit": 10},
    )

    assert response.status_code == status.HTTP_200_OK
    payload = response.json()
    assert payload["format"] == "sql"
    assert payload["truncatedTables"] == ["customers"]
    assert payload["rowLimit"] == 10
    assert "timestamp" in payload
    assert service.requests[0].row_limit == 10
    assert service.requests[0].include_views is False


def test_export_rejects_bad_row_limit(client: TestClient) -> None:
    app.dependency_overrides[get_export_service] = lambda: _FakeExportService()

    response = client.post("/api/database/export", json={"rowLimit": 0})

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT


def test_export_unexpected_failure_is_server_error(client: TestClient) -> None:
    app.dependency_overrides[get_export_service] = lambda: _FakeExportService(fail=True)

    response = client.post("/api/database/export", json={})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "EXPORT_ERROR"


def test_import_upload(client: TestClient) -> None:
    service = _FakeImportService()
    app.dependency_overrides[get_import_service] = lambda: service

    response = client.post(
        "/api/database/import",
        files={"file": ("backup.sql", b"INSERT INTO customers VALUES (1);", "application/sql")},
        data={"truncate": "true"},
    )

    assert response.status_code == status.HTTP_200_OK
    payload = response.json()
    assert payload["rowsImported"] == 2
    assert payload["fileSize"] == len(b"INSERT INTO customers VALUES (1);")
    assert service.calls == [(b"INSERT INTO customers VALUES (1);", "backup.sql", True)]


def test_import_failures(client: TestClient) -> None:
    app.dependency_overrides[get_import_service] = _FakeImportService

    wrong_type = client.post(
        "/api/database/import",
        files={"file": ("rows.csv", b"a,b\n", "text/csv")},
    )
    assert wrong_type.status_code == status.HTTP_400_BAD_REQUEST
    assert wrong_type.json()["error"] == "IMPORT_ERROR"

    broken = client.post(
        "/api/database/import",
        files={"file": ("backup.sql", b"broken;", "application/sql")},
    )
    assert broken.status_code == status.HTTP_400_BAD_REQUEST
    assert broken.json()["message"] == "Import failed: syntax error"


def test_import_rejects_oversized_upload(client: TestClient) -> None:
    service = _FakeImportService()
    app.dependency_overrides[get_import_service] = lambda: service
    app.dependency_overrides[get_settings] = lambda: Settings(max_upload_size_mb=0)

    response = client.post(
        "/api/database/import",
        files={"file": ("backup.sql", b"SELECT 1;", "application/sql")},
    )

    assert response.status_code == status.HTTP_413_CONTENT_TOO_LARGE
    assert response.json()["error"] == "IMPORT_ERROR"
    assert service.calls == []


def test_bulk_upsert_upload(client: TestClient) -> None:
    service = _FakeBulkUpsertService()
    app.dependency_overrides[get_bulk_upsert_service] = lambda: service

    response = client.post(
        "/api/database/bulk-upsert",
        files={"file": ("products.csv", b"sku,title\nA-1,Desk\n", "text/csv")},
        data={"table": "products", "upsertKey": "sku"},
    )

    assert response.status_code == status.HTTP_200_OK
    payload = response.json()
    assert payload["rowsAffected"] == 2
    assert payload["totalRecords"] == 2
    assert service.calls == [("products", b"sku,title\nA-1,Desk\n", "products.csv", "sku")]


def test_bulk_upsert_failure_shape(client: TestClient) -> None:
    app.dependency_overrides[get_bulk_upsert_service] = _FakeBulkUpsertService

    response = client.post(
        "/api/database/bulk-upsert",
        files={"file": ("products.csv", b"sku\nA-1\n", "text/csv")},
        data={"table": "products", "upsertKey": "missing"},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "BULK_UPSERT_ERROR"


def test_bulk_upsert_requires_table(client: TestClient) -> None:
    app.dependency_overrides[get_bulk_upsert_service] = _FakeBulkUpsertService

    response = client.post(
        "/api/database/bulk-upsert",
        files={"file": ("products.csv", b"sku\nA-1\n", "text/csv")},
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT


def test_database_metadata(client: TestClient) -> None:
    app.dependency_overrides[get_metadata_service] = _FakeMetadataService

    response = client.get("/api/database/metadata")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "tables": [{"tableName": "customers", "recordCount": 25}],
        "databaseSizeGb": 0.0123,
    }
