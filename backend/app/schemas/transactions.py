"""Pydantic schemas for stored client transactions."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import Field

from app.models.transaction import ClientTransaction

from .gains import CamelModel, MalformedPolicyName, RejectedRecordSchema


class TransactionImportRequest(CamelModel):
    transactions: list[dict[str, Any]] = Field(..., min_length=1)
    malformed_policy: Optional[MalformedPolicyName] = None


class StoredTransactionSchema(CamelModel):
    id: str
    timestamp: datetime
    kind: str
    asset: str
    quantity: Decimal
    unit_price: Optional[Decimal] = None
    fee: Optional[Decimal] = None
    source: Optional[str] = None

    @classmethod
    def from_row(cls, row: ClientTransaction) -> "StoredTransactionSchema":
        return cls(
            id=row.external_id,
            timestamp=row.timestamp,
            kind=row.kind,
            asset=row.asset,
            quantity=row.quantity,
            unit_price=row.unit_price,
            fee=row.fee,
            source=row.source,
        )


class TransactionImportResponse(CamelModel):
    client_id: str
    imported: int
    rejected: list[RejectedRecordSchema] = Field(default_factory=list)


__all__ = [
    "StoredTransactionSchema",
    "TransactionImportRequest",
    "TransactionImportResponse",
]
