"""Database repositories."""

from schemakit.repositories.catalog_repository import CatalogRepository
from schemakit.repositories.health_repository import HealthRepository
from schemakit.repositories.snapshot_repository import SnapshotRepository

__all__ = [
    "CatalogRepository",
    "HealthRepository",
    "SnapshotRepository",
]
