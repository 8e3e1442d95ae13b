"""Pydantic schema exports."""

from .gains import (
    AssetBreakdownSchema,
    DisposalSchema,
    GainsLossesResponse,
    GainsRequest,
    HoldingSchema,
    LotSchema,
    RejectedRecordSchema,
    SnapshotRequest,
    SnapshotResponse,
    SummarySchema,
)
from .transactions import StoredTransactionSchema, TransactionImportRequest, TransactionImportResponse

__all__ = [
    "AssetBreakdownSchema",
    "DisposalSchema",
    "GainsLossesResponse",
    "GainsRequest",
    "HoldingSchema",
    "LotSchema",
    "RejectedRecordSchema",
    "SnapshotRequest",
    "SnapshotResponse",
    "StoredTransactionSchema",
    "SummarySchema",
    "TransactionImportRequest",
    "TransactionImportResponse",
]
