import logging
from collections.abc import Callable
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import JSONResponse

from schemakit.api.dependencies import NotifierDep, PolicyDep, PoolDep, RendererDep, SettingsDep
from schemakit.core.errors import AppError, route_error_response
from schemakit.core.logging import audit
from schemakit.models.schemas.database import (
    BulkUpsertResponse,
    DatabaseMetadataResponse,
    ExportRequest,
    ExportResponse,
    ImportResponse,
    RawSqlRequest,
    RawSqlResponse,
)
from schemakit.repositories.catalog_repository import CatalogRepository
from schemakit.repositories.snapshot_repository import SnapshotRepository
from schemakit.services.bulk_upsert_service import BulkUpsertService
from schemakit.services.export_service import ExportService
from schemakit.services.import_service import ImportService
from schemakit.services.metadata_service import MetadataService
from schemakit.services.sql_gateway import SqlGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/database")

T = TypeVar("T")


def get_sql_gateway(pool: PoolDep, settings: SettingsDep, notifier: NotifierDep) -> SqlGateway:
    return SqlGateway(
        notifier=notifier,
        pool=pool,
        timeout_seconds=settings.statement_timeout_seconds,
        system_prefix=settings.system_table_prefix,
    )


def get_export_service(
    pool: PoolDep,
    settings: SettingsDep,
    policy: PolicyDep,
    renderer: RendererDep,
) -> ExportService:
    return ExportService(
        snapshot_repository=SnapshotRepository(pool, schema=settings.db_schema),
        pool=pool,
        policy=policy,
        renderer=renderer,
    )


def get_import_service(
    pool: PoolDep,
    settings: SettingsDep,
    notifier: NotifierDep,
    policy: PolicyDep,
    renderer: RendererDep,
) -> ImportService:
    return ImportService(
        catalog_repository=CatalogRepository(pool, schema=settings.db_schema),
        notifier=notifier,
        pool=pool,
        policy=policy,
        renderer=renderer,
    )


def get_bulk_upsert_service(
    pool: PoolDep,
    settings: SettingsDep,
    notifier: NotifierDep,
    policy: PolicyDep,
) -> BulkUpsertService:
    return BulkUpsertService(
        catalog_repository=CatalogRepository(pool, schema=settings.db_schema),
        notifier=notifier,
        pool=pool,
        policy=policy,
    )


def get_metadata_service(pool: PoolDep, settings: SettingsDep, policy: PolicyDep) -> MetadataService:
    return MetadataService(
        catalog_repository=CatalogRepository(pool, schema=settings.db_schema),
        pool=pool,
        policy=policy,
    )


def _run(
    error_code: str,
    operation: Callable[[], T],
    unexpected_status: int = status.HTTP_400_BAD_REQUEST,
) -> T | JSONResponse:
    try:
        return operation()
    except AppError as exc:
        logger.warning("%s: %s", error_code, exc.message)
        return route_error_response(error_code, exc)
    except Exception as exc:
        logger.exception("%s: unexpected failure", error_code)
        return route_error_response(
            error_code,
            AppError(status_code=unexpected_status, code=error_code, message=str(exc)),
        )


def _read_upload(file: UploadFile, settings: SettingsDep) -> bytes:
    content = file.file.read(settings.max_upload_size_bytes + 1)
    if len(content) > settings.max_upload_size_bytes:
        raise AppError(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            code="PAYLOAD_TOO_LARGE",
            message=f"File exceeds the {settings.max_upload_size_mb} MB upload limit.",
            next_actions="Split the file into smaller uploads.",
        )
    return content


@router.post("/rawsql", response_model=RawSqlResponse)
def execute_raw_sql(
    payload: RawSqlRequest,
    gateway: Annotated[SqlGateway, Depends(get_sql_gateway)],
) -> RawSqlResponse | JSONResponse:
    audit("RAW_SQL", query=payload.query[:300], param_count=len(payload.params))
    return _run("SQL_EXECUTION_ERROR", lambda: gateway.execute_raw_sql(payload.query, payload.params))


@router.post("/export", response_model=ExportResponse)
def export_database(
    payload: ExportRequest,
    export_service: Annotated[ExportService, Depends(get_export_service)],
) -> ExportResponse | JSONResponse:
    result = _run(
        "EXPORT_ERROR",
        lambda: export_service.export_database(payload),
        unexpected_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if isinstance(result, ExportResponse):
        audit(
            "EXPORT_DATABASE",
            format=payload.format,
            tables=payload.tables,
            row_limit=payload.row_limit,
            truncated_tables=result.truncated_tables,
        )
    return result


@router.post("/import", response_model=ImportResponse)
def import_database(
    file: Annotated[UploadFile, File()],
    settings: SettingsDep,
    import_service: Annotated[ImportService, Depends(get_import_service)],
    truncate: Annotated[bool, Form()] = False,
) -> ImportResponse | JSONResponse:
    def operation() -> ImportResponse:
        content = _read_upload(file, settings)
        return import_service.import_database(
            content,
            filename=file.filename or "import.sql",
            file_size=len(content),
            truncate=truncate,
        )

    result = _run("IMPORT_ERROR", operation)
    if isinstance(result, ImportResponse):
        audit(
            "IMPORT_DATABASE",
            filename=result.filename,
            file_size=result.file_size,
            truncate=truncate,
            tables=result.tables,
            rows_imported=result.rows_imported,
        )
    return result


@router.post("/bulk-upsert", response_model=BulkUpsertResponse)
def bulk_upsert(
    file: Annotated[UploadFile, File()],
    table: Annotated[str, Form()],
    settings: SettingsDep,
    bulk_upsert_service: Annotated[BulkUpsertService, Depends(get_bulk_upsert_service)],
    upsert_key: Annotated[str | None, Form(alias="upsertKey")] = None,
) -> BulkUpsertResponse | JSONResponse:
    def operation() -> BulkUpsertResponse:
        content = _read_upload(file, settings)
        return bulk_upsert_service.bulk_upsert(
            table,
            content,
            filename=file.filename or "upload",
            upsert_key=upsert_key,
        )

    result = _run("BULK_UPSERT_ERROR", operation)
    if isinstance(result, BulkUpsertResponse):
        audit(
            "BULK_UPSERT",
            table=table,
            filename=result.filename,
            upsert_key=upsert_key,
            rows_affected=result.rows_affected,
            total_records=result.total_records,
        )
    return result


@router.get("/metadata", response_model=DatabaseMetadataResponse)
def get_database_metadata(
    metadata_service: Annotated[MetadataService, Depends(get_metadata_service)],
) -> DatabaseMetadataResponse:
    return metadata_service.get_database_metadata()
