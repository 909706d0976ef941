from fastapi import APIRouter

from schemakit.api.routes.database import router as database_router
from schemakit.api.routes.health import router as health_router
from schemakit.api.routes.tables import router as table_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(table_router, tags=["tables"])
api_router.include_router(database_router, tags=["database"])
