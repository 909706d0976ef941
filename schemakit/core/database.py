from collections.abc import Iterator
from contextlib import contextmanager

from psycopg import Connection
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from schemakit.core.config import Settings


def create_pool(settings: Settings) -> ConnectionPool:
    return ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        kwargs={"row_factory": dict_row},
        open=False,
        name="schemakit",
    )


@contextmanager
def get_connection(pool: ConnectionPool) -> Iterator[Connection]:
    """Borrow a connection for one unit of work.

    The pool commits on a clean exit, rolls back when the block raises and
    returns the connection in both cases.
    """
    with pool.connection() as connection:
        yield connection
