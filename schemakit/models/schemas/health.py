from datetime import UTC, datetime
from typing import Literal

from pydantic import Field

from schemakit.models import CamelCaseModel


class PoolHealth(CamelCaseModel):
    size: int
    available: int
    waiting: int


class DatabaseHealth(CamelCaseModel):
    connected: bool
    schema_name: str | None = None
    server_version: str | None = None
    latency_ms: float | None = None
    pool: PoolHealth | None = None
    message: str | None = None


class HealthResponse(CamelCaseModel):
    status: Literal["ok", "degraded"]
    service: str = "schemakit-backend"
    environment: str
    statement_timeout_seconds: int
    database: DatabaseHealth
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
