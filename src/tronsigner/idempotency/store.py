"""Idempotency stores.

Maps (operation kind, idempotency key) to the transaction produced for it.
Two backends share one interface:

- InMemoryIdempotencyStore: lock-protected dict. Single instance only, lost
  on restart.
- SQLIdempotencyStore: table with a unique constraint on the pair. Required
  for multi-instance deployments and crash recovery.

Concurrent commits for the same pair: exactly one returns COMMITTED, the
others return ALREADY_EXISTS and must read back the stored tx id.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tronsigner.idempotency.database import Database
from tronsigner.idempotency.models import IdempotencyRecord, OperationKind

logger = logging.getLogger(__name__)


class CommitResult(str, Enum):
    """Outcome of an idempotency commit."""

    COMMITTED = "committed"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class StoredTransfer:
    """Immutable view of a committed idempotency record."""

    operation_kind: OperationKind
    idempotency_key: str
    tx_id: str
    from_address: Optional[str] = None
    request_fingerprint: Optional[str] = None
    created_at: Optional[datetime] = None


class IdempotencyStore(ABC):
    """Abstract idempotency store."""

    backend: str = "abstract"

    @abstractmethod
    async def get(self, kind: OperationKind, key: str) -> Optional[StoredTransfer]:
        """Return the committed record for the pair, if any."""
        pass

    @abstractmethod
    async def commit(
        self,
        kind: OperationKind,
        key: str,
        tx_id: str,
        from_address: Optional[str] = None,
        request_fingerprint: Optional[str] = None,
    ) -> CommitResult:
        """Insert the record unless the pair already exists."""
        pass

    @abstractmethod
    async def list_records(
        self, since: Optional[datetime] = None, limit: int = 1000
    ) -> list[StoredTransfer]:
        """List committed records, oldest first (for reconciliation)."""
        pass

    async def init(self) -> None:
        """Prepare backing storage."""
        pass

    async def close(self) -> None:
        """Release backing storage."""
        pass


class InMemoryIdempotencyStore(IdempotencyStore):
    """Process-local store. Not shared between instances, not durable."""

    backend = "memory"

    def __init__(self):
        self._records: dict[tuple[str, str], StoredTransfer] = {}
        self._lock = threading.Lock()

    async def get(self, kind: OperationKind, key: str) -> Optional[StoredTransfer]:
        with self._lock:
            return self._records.get((kind.value, key))

    async def commit(
        self,
        kind: OperationKind,
        key: str,
        tx_id: str,
        from_address: Optional[str] = None,
        request_fingerprint: Optional[str] = None,
    ) -> CommitResult:
        record = StoredTransfer(
            operation_kind=kind,
            idempotency_key=key,
            tx_id=tx_id,
            from_address=from_address,
            request_fingerprint=request_fingerprint,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            if (kind.value, key) in self._records:
                return CommitResult.ALREADY_EXISTS
            self._records[(kind.value, key)] = record
        return CommitResult.COMMITTED

    async def list_records(
        self, since: Optional[datetime] = None, limit: int = 1000
    ) -> list[StoredTransfer]:
        with self._lock:
            records = list(self._records.values())
        if since is not None:
            records = [r for r in records if r.created_at >= since]
        return records[:limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def _to_stored(row: IdempotencyRecord) -> StoredTransfer:
    return StoredTransfer(
        operation_kind=row.operation_kind,
        idempotency_key=row.idempotency_key,
        tx_id=row.tx_id,
        from_address=row.from_address,
        request_fingerprint=row.request_fingerprint,
        created_at=row.created_at,
    )


class SQLIdempotencyStore(IdempotencyStore):
    """Store backed by the ``signer_idempotency`` table."""

    backend = "sql"

    def __init__(self, database: Database):
        self.database = database

    async def init(self) -> None:
        await self.database.init()
        logger.info(f"Idempotency store ready ({self.database.dialect})")

    async def close(self) -> None:
        await self.database.close()

    async def get(self, kind: OperationKind, key: str) -> Optional[StoredTransfer]:
        async with self.database.session() as session:
            stmt = (
                select(IdempotencyRecord)
                .where(
                    IdempotencyRecord.endpoint == kind.value,
                    IdempotencyRecord.idempotency_key == key,
                )
                .limit(1)
            )
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            return _to_stored(row) if row else None

    async def commit(
        self,
        kind: OperationKind,
        key: str,
        tx_id: str,
        from_address: Optional[str] = None,
        request_fingerprint: Optional[str] = None,
    ) -> CommitResult:
        try:
            async with self.database.session() as session:
                session.add(
                    IdempotencyRecord(
                        endpoint=kind.value,
                        idempotency_key=key,
                        tx_id=tx_id,
                        from_address=from_address,
                        request_fingerprint=request_fingerprint,
                    )
                )
                await session.flush()
        except IntegrityError:
            logger.info(f"Idempotency record already exists for {kind.value}:{key}")
            return CommitResult.ALREADY_EXISTS
        return CommitResult.COMMITTED

    async def list_records(
        self, since: Optional[datetime] = None, limit: int = 1000
    ) -> list[StoredTransfer]:
        async with self.database.session() as session:
            stmt = select(IdempotencyRecord).order_by(IdempotencyRecord.id).limit(limit)
            if since is not None:
                stmt = stmt.where(IdempotencyRecord.created_at >= since)
            result = await session.execute(stmt)
            return [_to_stored(row) for row in result.scalars().all()]
