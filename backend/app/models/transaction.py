"""Persisted raw transactions, one row per client record."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, DecimalString


class ClientTransaction(Base):
    __tablename__ = "client_transaction"
    __table_args__ = (
        UniqueConstraint("client_id", "external_id", name="uq_client_transaction_external_id"),
        Index("ix_client_transaction_client_timestamp", "client_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    client_id: Mapped[str] = mapped_column(String(64), index=True)
    external_id: Mapped[str] = mapped_column(String(128))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    kind: Mapped[str] = mapped_column(String(16))
    asset: Mapped[str] = mapped_column(String(32))
    quantity: Mapped[Decimal] = mapped_column(DecimalString())
    unit_price: Mapped[Decimal | None] = mapped_column(DecimalString(), nullable=True)
    fee: Mapped[Decimal | None] = mapped_column(DecimalString(), nullable=True)
    source: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def as_record(self) -> dict:
        """Raw record in the shape the normalizer accepts."""

        return {
            "id": self.external_id,
            "timestamp": self.timestamp,
            "kind": self.kind,
            "asset": self.asset,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "fee": self.fee,
            "source": self.source,
        }
