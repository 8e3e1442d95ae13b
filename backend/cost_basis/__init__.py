"""Cost-basis accounting engine: lots, disposal matching and portfolio replay."""

from .errors import CostBasisError, DivisionByZeroError, InsufficientLots, MalformedTransaction
from .ledger import LotLedger
from .matcher import match_disposal
from .models import (
    AssetHolding,
    Classification,
    CostBasisMethod,
    DisposalRecord,
    GainsLossesResult,
    MalformedPolicy,
    OversellPolicy,
    PortfolioSnapshot,
    TransactionEvent,
    TransactionKind,
)
from .normalizer import build_classification, normalize_batch, normalize_transaction
from .replay import acquisition_history, compute_gains_losses, snapshot_at

__all__ = [
    "AssetHolding",
    "Classification",
    "CostBasisError",
    "CostBasisMethod",
    "DisposalRecord",
    "DivisionByZeroError",
    "GainsLossesResult",
    "InsufficientLots",
    "LotLedger",
    "MalformedPolicy",
    "MalformedTransaction",
    "OversellPolicy",
    "PortfolioSnapshot",
    "TransactionEvent",
    "TransactionKind",
    "acquisition_history",
    "build_classification",
    "compute_gains_losses",
    "match_disposal",
    "normalize_batch",
    "normalize_transaction",
    "snapshot_at",
]
