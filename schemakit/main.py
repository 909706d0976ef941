import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schemakit.api.router import api_router
from schemakit.core.config import get_settings
from schemakit.core.database import create_pool
from schemakit.core.errors import register_exception_handlers
from schemakit.core.logging import configure_logging

settings = get_settings()
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    pool = create_pool(settings)
    pool.open()
    app.state.pool = pool
    logger.info("Connection pool opened (max_size=%d)", settings.db_pool_max_size)
    try:
        yield
    finally:
        pool.close()
        logger.info("Connection pool closed")


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    debug=settings.app_debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/")
def root() -> dict[str, str]:
    return {"message": "SchemaKit backend is running"}
