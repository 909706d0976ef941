from typing import Annotated

from fastapi import Depends, Request
from psycopg_pool import ConnectionPool

from schemakit.core.config import Settings, get_settings
from schemakit.services.schema_notifier import PgNotifySchemaNotifier, SchemaChangeNotifier
from schemakit.sql.ddl import DdlRenderer
from schemakit.sql.policy import SystemSchemaPolicy


def get_pool(request: Request) -> ConnectionPool:
    return request.app.state.pool


def get_policy(settings: Annotated[Settings, Depends(get_settings)]) -> SystemSchemaPolicy:
    return SystemSchemaPolicy(system_prefix=settings.system_table_prefix)


def get_renderer(settings: Annotated[Settings, Depends(get_settings)]) -> DdlRenderer:
    return DdlRenderer(schema=settings.db_schema)


def get_notifier(settings: Annotated[Settings, Depends(get_settings)]) -> SchemaChangeNotifier:
    return PgNotifySchemaNotifier(channel=settings.schema_reload_channel)


PoolDep = Annotated[ConnectionPool, Depends(get_pool)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
PolicyDep = Annotated[SystemSchemaPolicy, Depends(get_policy)]
RendererDep = Annotated[DdlRenderer, Depends(get_renderer)]
NotifierDep = Annotated[SchemaChangeNotifier, Depends(get_notifier)]
