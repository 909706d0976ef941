import os
from collections.abc import Iterator

import pytest
from psycopg import connect
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from schemakit.core.errors import DuplicateTableError, SqlExecutionError
from schemakit.models.column_types import ColumnType
from schemakit.models.schemas.database import ExportRequest
from schemakit.models.schemas.table import (
    ColumnSchema,
    CreateTableRequest,
    ForeignKeySchema,
    UpdateColumnOperation,
    UpdateTableSchemaRequest,
)
from schemakit.repositories.catalog_repository import CatalogRepository
from schemakit.repositories.snapshot_repository import SnapshotRepository
from schemakit.services.bulk_upsert_service import BulkUpsertService
from schemakit.services.export_service import ExportService
from schemakit.services.import_service import ImportService
from schemakit.services.schema_notifier import PgNotifySchemaNotifier
from schemakit.services.sql_gateway import SqlGateway
from schemakit.services.table_service import TableService
from tests.helpers.db_env import isolated_database, reset_user_tables


@pytest.fixture(scope="module")
def engine_database_url() -> Iterator[str]:
    base_url = os.getenv("TEST_DATABASE_URL")
    if not base_url:
        pytest.skip("Set TEST_DATABASE_URL to run database-backed engine tests.")

    with isolated_database(base_url, schema_prefix="schemakit_engine_test") as scoped_url:
        yield scoped_url


@pytest.fixture(scope="module")
def pool(engine_database_url: str) -> Iterator[ConnectionPool]:
    with ConnectionPool(
        conninfo=engine_database_url,
        min_size=1,
        max_size=2,
        kwargs={"row_factory": dict_row},
    ) as connection_pool:
        yield connection_pool


@pytest.fixture(autouse=True)
def clean_database(engine_database_url: str) -> None:
    reset_user_tables(engine_database_url)


@pytest.fixture
def table_service(pool: ConnectionPool) -> TableService:
    return TableService(
        catalog_repository=CatalogRepository(pool),
        notifier=PgNotifySchemaNotifier(),
        pool=pool,
    )


def _create_customers_and_orders(table_service: TableService) -> None:
    table_service.create_table(
        CreateTableRequest(
            table_name="customers",
            columns=[
                ColumnSchema(column_name="email", type=ColumnType.STRING, is_unique=True, is_nullable=False),
                ColumnSchema(column_name="name", type=ColumnType.STRING, default_value="O'Brien"),
                ColumnSchema(column_name="note", type=ColumnType.STRING, default_value="it's $val$ 5"),
                ColumnSchema(column_name="price_tag", type=ColumnType.STRING, default_value="price in $val"),
                ColumnSchema(column_name="active", type=ColumnType.BOOLEAN, is_nullable=False),
            ],
        )
    )
    table_service.create_table(
        CreateTableRequest(
            table_name="orders",
            columns=[
                ColumnSchema(column_name="total", type=ColumnType.FLOAT),
                ColumnSchema(column_name="placed_on", type=ColumnType.DATE, default_value="current_date"),
                ColumnSchema(column_name="meta", type=ColumnType.JSON),
                ColumnSchema(
                    column_name="customer_id",
                    type=ColumnType.UUID,
                    foreign_key=ForeignKeySchema(
                        reference_table="customers",
                        reference_column="id",
                        on_delete="CASCADE",
                    ),
                ),
            ],
            rls_enabled=False,
        )
    )


def test_create_then_read_schema_round_trip(table_service: TableService) -> None:
    _create_customers_and_orders(table_service)

    schema = table_service.get_table_schema("orders")
    columns = {column.column_name: column for column in schema.columns}

    assert set(columns) == {"id", "total", "placed_on", "meta", "customer_id", "created_at", "updated_at"}
    assert columns["id"].is_primary_key is True
    assert columns["total"].type is ColumnType.FLOAT
    assert columns["placed_on"].type is ColumnType.DATE
    assert columns["placed_on"].default_value == "CURRENT_DATE"
    assert columns["meta"].type is ColumnType.JSON
    assert columns["customer_id"].foreign_key is not None
    assert columns["customer_id"].foreign_key.reference_table == "customers"
    assert columns["customer_id"].foreign_key.on_delete == "CASCADE"

    customers = {column.column_name: column for column in table_service.get_table_schema("customers").columns}
    assert customers["name"].default_value == "O'Brien"
    assert customers["note"].default_value == "it's $val$ 5"
    assert customers["price_tag"].default_value == "price in $val"
    assert customers["email"].is_unique is True
    assert customers["email"].is_nullable is False

    with pytest.raises(DuplicateTableError):
        _create_customers_and_orders(table_service)


def test_update_is_atomic(table_service: TableService, pool: ConnectionPool) -> None:
    _create_customers_and_orders(table_service)

    with pytest.raises(SqlExecutionError):
        table_service.update_table_schema(
            "orders",
            UpdateTableSchemaRequest(
                update_columns=[UpdateColumnOperation(column_name="total", default_value="not a number")],
                drop_columns=["meta"],
            ),
        )

    names = [column.column_name for column in table_service.get_table_schema("orders").columns]
    assert "meta" in names


def test_export_import_round_trip(table_service: TableService, pool: ConnectionPool) -> None:
    _create_customers_and_orders(table_service)
    gateway = SqlGateway(notifier=PgNotifySchemaNotifier(), pool=pool)
    gateway.execute_raw_sql(
        "INSERT INTO customers (email, name, active) VALUES (%s, %s, %s)",
        ["a@example.com", "Ann; with semicolon", True],
    )
    gateway.execute_raw_sql(
        "INSERT INTO orders (total, meta, customer_id) "
        "SELECT 12.5, '{\"gift\": true}'::jsonb, id FROM customers"
    )
    gateway.execute_raw_sql(
        "INSERT INTO orders (total, meta, customer_id) SELECT 3, %s::jsonb, id FROM customers",
        ['"hello"'],
    )

    exported = ExportService(snapshot_repository=SnapshotRepository(pool), pool=pool).export_database(
        ExportRequest(tables=["customers", "orders"])
    )
    assert isinstance(exported.data, str)

    with connect(pool.conninfo, autocommit=True) as connection:
        with connection.cursor() as cursor:
            cursor.execute("DROP TABLE orders, customers CASCADE")

    result = ImportService(
        catalog_repository=CatalogRepository(pool),
        notifier=PgNotifySchemaNotifier(),
        pool=pool,
    ).import_database(exported.data.encode(), "export.sql")

    assert result.tables == ["customers", "orders"]
    assert result.rows_imported == 3
    rows = gateway.execute_raw_sql(
        "SELECT c.name, c.note, o.total, o.meta FROM orders o "
        "JOIN customers c ON c.id = o.customer_id ORDER BY o.total"
    ).rows
    assert rows == [
        {"name": "Ann; with semicolon", "note": "it's $val$ 5", "total": 3.0, "meta": "hello"},
        {"name": "Ann; with semicolon", "note": "it's $val$ 5", "total": 12.5, "meta": {"gift": True}},
    ]
    customers = {column.column_name: column for column in table_service.get_table_schema("customers").columns}
    assert customers["email"].is_unique is True
    assert customers["note"].default_value == "it's $val$ 5"


def test_bulk_upsert_updates_existing_rows(table_service: TableService, pool: ConnectionPool) -> None:
    _create_customers_and_orders(table_service)
    service = BulkUpsertService(
        catalog_repository=CatalogRepository(pool),
        notifier=PgNotifySchemaNotifier(),
        pool=pool,
    )

    service.bulk_upsert(
        "customers",
        b"email,name,active\na@example.com,Ann,true\nb@example.com,Bob,false\n",
        "customers.csv",
    )
    result = service.bulk_upsert(
        "customers",
        b'[{"email": "a@example.com", "name": "Ann B", "active": false}]',
        "customers.json",
        upsert_key="email",
    )

    assert result.rows_affected == 1
    rows = SqlGateway(notifier=PgNotifySchemaNotifier(), pool=pool).execute_raw_sql(
        "SELECT email, name, active FROM customers ORDER BY email"
    ).rows
    assert rows == [
        {"email": "a@example.com", "name": "Ann B", "active": False},
        {"email": "b@example.com", "name": "Bob", "active": False},
    ]
