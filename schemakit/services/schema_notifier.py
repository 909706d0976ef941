import logging
from typing import Protocol

from psycopg import Connection

logger = logging.getLogger(__name__)

RELOAD_PAYLOAD = "reload schema"


class SchemaChangeNotifier(Protocol):
    def schema_changed(self, connection: Connection, table: str | None = None) -> None: ...


class PgNotifySchemaNotifier:
    """Ask the row-serving layer to reload its schema cache.

    The notification is issued on the caller's connection, so PostgreSQL
    only delivers it once the surrounding transaction commits.
    """

    def __init__(self, channel: str = "pgrst") -> None:
        self.channel = channel

    def schema_changed(self, connection: Connection, table: str | None = None) -> None:
        with connection.cursor() as cursor:
            cursor.execute("SELECT pg_notify(%s, %s)", (self.channel, RELOAD_PAYLOAD))
        logger.debug("Schema reload requested on channel %s (table=%s)", self.channel, table)
