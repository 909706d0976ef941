import time
from typing import Any

from psycopg_pool import ConnectionPool

PING_QUERY = """
    SELECT current_schema() AS schema_name,
           current_setting('server_version') AS server_version
"""


def ping_database(pool: ConnectionPool, timeout_seconds: float = 3.0) -> dict[str, Any]:
    """Run a round trip through the pool and report what the engine talks to.

    Raises the driver error (a PoolTimeout when no connection frees up in time)
    so callers decide how to present an outage.
    """
    started = time.perf_counter()
    with pool.connection(timeout=timeout_seconds) as connection:
        row = connection.execute(PING_QUERY).fetchone()
    result = dict(row or {})
    result["latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
    return result
