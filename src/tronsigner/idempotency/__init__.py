"""Idempotency store: at-most-once bookkeeping for signed transfers."""

from typing import Optional

from tronsigner.config import Settings
from tronsigner.idempotency.database import Database, normalize_database_url
from tronsigner.idempotency.models import Base, IdempotencyRecord, OperationKind
from tronsigner.idempotency.store import (
    CommitResult,
    IdempotencyStore,
    InMemoryIdempotencyStore,
    SQLIdempotencyStore,
    StoredTransfer,
)


def get_idempotency_store(settings: Settings, database: Optional[Database] = None) -> IdempotencyStore:
    """Select the store backend from configuration."""
    if database is not None:
        return SQLIdempotencyStore(database)
    if settings.uses_persistent_store:
        return SQLIdempotencyStore(
            Database(settings.database_url, echo=settings.debug and not settings.is_production)
        )
    return InMemoryIdempotencyStore()


__all__ = [
    "Base",
    "IdempotencyRecord",
    "OperationKind",
    "Database",
    "normalize_database_url",
    "CommitResult",
    "IdempotencyStore",
    "InMemoryIdempotencyStore",
    "SQLIdempotencyStore",
    "StoredTransfer",
    "get_idempotency_store",
]
