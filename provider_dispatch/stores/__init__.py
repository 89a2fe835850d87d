"""Shared job store adapters."""

from .base import JobStore, evaluate_claim
from .memory_store import InMemoryJobStore
from ..models.enums import StoreBackend


def build_store(config) -> JobStore:
    """Create the store selected by ``config.store_backend``."""
    backend = StoreBackend(config.store_backend)
    if backend == StoreBackend.POSTGRES:
        from .postgres_store import PostgresJobStore
        return PostgresJobStore(config.database_url)
    if backend == StoreBackend.FIRESTORE:
        from .firestore_store import FirestoreJobStore
        return FirestoreJobStore(
            project=config.firestore_project,
            jobs_collection=config.jobs_collection,
            users_collection=config.users_collection,
        )
    return InMemoryJobStore()


__all__ = ["JobStore", "InMemoryJobStore", "evaluate_claim", "build_store"]
