from typing import Annotated

from fastapi import APIRouter, Depends, status

from schemakit.api.dependencies import NotifierDep, PolicyDep, PoolDep, RendererDep, SettingsDep
from schemakit.core.logging import audit
from schemakit.models.schemas.table import (
    CreateTableRequest,
    CreateTableResponse,
    DeleteTableResponse,
    TableListResponse,
    TableSchemaListResponse,
    TableSchemaResponse,
    UpdateTableSchemaRequest,
    UpdateTableSchemaResponse,
)
from schemakit.repositories.catalog_repository import CatalogRepository
from schemakit.services.table_service import TableService

router = APIRouter(prefix="/tables")


def get_table_service(
    pool: PoolDep,
    settings: SettingsDep,
    notifier: NotifierDep,
    policy: PolicyDep,
    renderer: RendererDep,
) -> TableService:
    return TableService(
        catalog_repository=CatalogRepository(pool, schema=settings.db_schema),
        notifier=notifier,
        pool=pool,
        policy=policy,
        renderer=renderer,
    )


TableServiceDep = Annotated[TableService, Depends(get_table_service)]


@router.get("", response_model=TableListResponse)
def list_tables(table_service: TableServiceDep) -> TableListResponse:
    return TableListResponse(data=table_service.list_tables())


@router.get("/schemas", response_model=TableSchemaListResponse)
def list_table_schemas(table_service: TableServiceDep) -> TableSchemaListResponse:
    return TableSchemaListResponse(data=table_service.get_all_table_schemas())


@router.post("", response_model=CreateTableResponse, status_code=status.HTTP_201_CREATED)
def create_table(
    payload: CreateTableRequest,
    table_service: TableServiceDep,
) -> CreateTableResponse:
    result = table_service.create_table(payload)
    audit(
        "CREATE_TABLE",
        table_name=result.table_name,
        columns=[column.column_name for column in result.columns],
        rls_enabled=payload.rls_enabled,
    )
    return result


@router.get("/{table_name}/schema", response_model=TableSchemaResponse)
def get_table_schema(table_name: str, table_service: TableServiceDep) -> TableSchemaResponse:
    return table_service.get_table_schema(table_name)


@router.patch("/{table_name}", response_model=UpdateTableSchemaResponse)
def update_table_schema(
    table_name: str,
    payload: UpdateTableSchemaRequest,
    table_service: TableServiceDep,
) -> UpdateTableSchemaResponse:
    result = table_service.update_table_schema(table_name, payload)
    audit("UPDATE_TABLE", table_name=table_name, operations=result.operations)
    return result


@router.delete("/{table_name}", response_model=DeleteTableResponse)
def delete_table(table_name: str, table_service: TableServiceDep) -> DeleteTableResponse:
    result = table_service.delete_table(table_name)
    audit("DELETE_TABLE", table_name=table_name)
    return result
