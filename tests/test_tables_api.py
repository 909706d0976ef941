from fastapi import status
from fastapi.testclient import TestClient
from schemakit.api.routes.tables import get_table_service
from schemakit.core.errors import DuplicateTableError, ForbiddenError, NotFoundError
from schemakit.main import app
from schemakit.models.column_types import ColumnType
from schemakit.models.schemas.table import (
    ColumnInfo,
    CreatedColumn,
    CreateTableRequest,
    CreateTableResponse,
    DeleteTableResponse,
    TableSchemaResponse,
    UpdateTableSchemaRequest,
    UpdateTableSchemaResponse,
)


class _FakeTableService:
    def __init__(self) -> None:
        self.created: list[CreateTableRequest] = []
        self.updates: list[tuple[str, UpdateTableSchemaRequest]] = []

    def list_tables(self) -> list[str]:
        return ["products", "users"]

    def get_all_table_schemas(self) -> list[TableSchemaResponse]:
        return [self.get_table_schema("products")]

    def get_table_schema(self, table_name: str) -> TableSchemaResponse:
        if table_name == "ghosts":
            raise NotFoundError("Table 'ghosts' not found.")
        return TableSchemaResponse(
            table_name=table_name,
            columns=[
                ColumnInfo(
                    column_name="id",
                    type=ColumnType.UUID,
                    is_nullable=False,
                    is_unique=True,
                    is_primary_key=True,
                    default_value="gen_random_uuid()",
                )
            ],
            record_count=3,
        )

    def create_table(self, payload: CreateTableRequest) -> CreateTableResponse:
        if payload.table_name == "products":
            raise DuplicateTableError("products")
        if payload.table_name.startswith("_"):
            raise ForbiddenError("Cannot create system tables.")
        self.created.append(payload)
        return CreateTableResponse(
            message="Table created successfully",
            table_name=payload.table_name,
            columns=[
                CreatedColumn(**column.model_dump(), sql_type="TEXT") for column in payload.columns
            ],
            auto_fields=["id", "created_at", "updated_at"],
            next_actions="Insert records.",
        )

    def update_table_schema(
        self,
        table_name: str,
        payload: UpdateTableSchemaRequest,
    ) -> UpdateTableSchemaResponse:
        self.updates.append((table_name, payload))
        return UpdateTableSchemaResponse(
            message="Table schema updated successfully",
            table_name=table_name,
            operations=[f"Dropped column '{name}'" for name in payload.drop_columns],
        )

    def delete_table(self, table_name: str) -> DeleteTableResponse:
        return DeleteTableResponse(
            message="Table deleted successfully",
            table_name=table_name,
            next_actions="Done.",
        )


def _override() -> _FakeTableService:
    service = _FakeTableService()
    app.dependency_overrides[get_table_service] = lambda: service
    return service


def test_list_tables(client: TestClient) -> None:
    _override()
    response = client.get("/api/tables")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"data": ["products", "users"]}


def test_list_table_schemas(client: TestClient) -> None:
    _override()
    response = client.get("/api/tables/schemas")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"][0]["tableName"] == "products"


def test_create_table_accepts_camel_case_payload(client: TestClient) -> None:
    service = _override()
    response = client.post(
        "/api/tables",
        json={
            "tableName": "orders",
            "rlsEnabled": False,
            "columns": [
                {
                    "columnName": "customer_id",
                    "type": "uuid",
                    "isNullable": False,
                    "foreignKey": {
                        "referenceTable": "customers",
                        "referenceColumn": "id",
                        "onDelete": "CASCADE",
                    },
                }
            ],
        },
    )

    assert response.status_code == status.HTTP_201_CREATED
    payload = response.json()
    assert payload["tableName"] == "orders"
    assert payload["autoFields"] == ["id", "created_at", "updated_at"]
    assert payload["columns"][0]["foreignKey"]["onDelete"] == "CASCADE"
    created = service.created[0]
    assert created.rls_enabled is False
    assert created.columns[0].is_nullable is False


def test_create_table_rejects_unknown_type(client: TestClient) -> None:
    _override()
    response = client.post(
        "/api/tables",
        json={"tableName": "orders", "columns": [{"columnName": "x", "type": "money"}]},
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_create_table_requires_columns(client: TestClient) -> None:
    _override()
    response = client.post("/api/tables", json={"tableName": "orders", "columns": []})

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT


def test_create_duplicate_table_returns_conflict(client: TestClient) -> None:
    _override()
    response = client.post(
        "/api/tables",
        json={"tableName": "products", "columns": [{"columnName": "x", "type": "string"}]},
    )

    assert response.status_code == status.HTTP_409_CONFLICT
    error = response.json()["error"]
    assert error["code"] == "DATABASE_DUPLICATE"
    assert error["nextActions"]


def test_create_system_table_is_forbidden(client: TestClient) -> None:
    _override()
    response = client.post(
        "/api/tables",
        json={"tableName": "_internal", "columns": [{"columnName": "x", "type": "string"}]},
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"]["code"] == "FORBIDDEN"


def test_get_table_schema(client: TestClient) -> None:
    _override()
    response = client.get("/api/tables/products/schema")

    assert response.status_code == status.HTTP_200_OK
    payload = response.json()
    assert payload["recordCount"] == 3
    assert payload["columns"][0]["isPrimaryKey"] is True

    missing = client.get("/api/tables/ghosts/schema")
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["error"]["code"] == "NOT_FOUND"


def test_update_table_schema(client: TestClient) -> None:
    service = _override()
    response = client.patch(
        "/api/tables/products",
        json={
            "dropColumns": ["price"],
            "updateColumns": [{"columnName": "title", "newColumnName": "name"}],
            "renameTable": {"newTableName": "items"},
        },
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["operations"] == ["Dropped column 'price'"]
    table_name, payload = service.updates[0]
    assert table_name == "products"
    assert payload.update_columns[0].new_column_name == "name"
    assert payload.rename_table is not None
    assert payload.rename_table.new_table_name == "items"


def test_delete_table(client: TestClient) -> None:
    _override()
    response = client.delete("/api/tables/products")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["tableName"] == "products"
