from typing import Annotated

from fastapi import APIRouter, Depends

from schemakit.api.dependencies import PoolDep, SettingsDep
from schemakit.models.schemas.health import HealthResponse
from schemakit.repositories.health_repository import HealthRepository
from schemakit.services.health_service import HealthService

router = APIRouter()


def get_health_service(pool: PoolDep, settings: SettingsDep) -> HealthService:
    return HealthService(
        repository=HealthRepository(pool),
        settings=settings,
    )


@router.get("/health", response_model=HealthResponse)
def health(
    health_service: Annotated[HealthService, Depends(get_health_service)],
) -> HealthResponse:
    return health_service.get_health()
