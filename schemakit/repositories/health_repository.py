import logging

from psycopg import Error as PsycopgError
from psycopg_pool import ConnectionPool

from schemakit.core.db import ping_database
from schemakit.models.schemas.health import DatabaseHealth, PoolHealth

logger = logging.getLogger(__name__)


class HealthRepository:
    def __init__(self, pool: ConnectionPool, timeout_seconds: float = 3.0) -> None:
        self.pool = pool
        self.timeout_seconds = timeout_seconds

    def pool_health(self) -> PoolHealth:
        stats = self.pool.get_stats()
        return PoolHealth(
            size=stats.get("pool_size", 0),
            available=stats.get("pool_available", 0),
            waiting=stats.get("requests_waiting", 0),
        )

    def check_database(self) -> DatabaseHealth:
        pool = self.pool_health()
        try:
            ping = ping_database(self.pool, self.timeout_seconds)
        except PsycopgError as exc:
            logger.warning("Database ping failed: %s", exc)
            return DatabaseHealth(connected=False, pool=pool, message=str(exc))
        return DatabaseHealth(connected=True, pool=pool, **ping)
