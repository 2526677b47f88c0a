"""SQLAlchemy models for the idempotency store."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class OperationKind(str, Enum):
    """Signing endpoint an idempotency key is scoped to."""

    HOT = "single.transfer"
    HD = "hd.transfer"


class IdempotencyRecord(Base):
    """Transaction produced for a (operation kind, idempotency key) pair.

    Written exactly once per successful broadcast and never updated or deleted.
    """

    __tablename__ = "signer_idempotency"
    __table_args__ = (
        UniqueConstraint("endpoint", "idempotency_key", name="uq_signer_idempotency_endpoint_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    endpoint: Mapped[str] = mapped_column(String(32), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)
    tx_id: Mapped[str] = mapped_column(String(128), nullable=False)
    from_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    request_fingerprint: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    @property
    def operation_kind(self) -> OperationKind:
        return OperationKind(self.endpoint)
