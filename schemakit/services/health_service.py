from typing import Protocol

from schemakit.core.config import Settings
from schemakit.models.schemas.health import DatabaseHealth, HealthResponse


class DatabaseHealthSource(Protocol):
    def check_database(self) -> DatabaseHealth: ...


class HealthService:
    def __init__(self, repository: DatabaseHealthSource, settings: Settings) -> None:
        self.repository = repository
        self.settings = settings

    def get_health(self) -> HealthResponse:
        database = self.repository.check_database()
        return HealthResponse(
            status="ok" if database.connected else "degraded",
            environment=self.settings.app_env,
            statement_timeout_seconds=self.settings.statement_timeout_seconds,
            database=database,
        )
