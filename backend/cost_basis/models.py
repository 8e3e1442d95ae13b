"""Domain models used by the cost-basis engine."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .decimal_math import ZERO, divide


class TransactionKind(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    REWARD = "REWARD"
    TRANSFER = "TRANSFER"
    SWAP = "SWAP"
    STAKE = "STAKE"
    UNSTAKE = "UNSTAKE"
    FEE = "FEE"
    OTHER = "OTHER"


class Classification(str, Enum):
    ACQUISITION = "ACQUISITION"
    DISPOSAL = "DISPOSAL"
    IGNORED = "IGNORED"


class CostBasisMethod(str, Enum):
    FIFO = "FIFO"
    LIFO = "LIFO"
    AVERAGE_COST = "AVERAGE_COST"

    @classmethod
    def parse(cls, value: "CostBasisMethod | str") -> "CostBasisMethod":
        """Resolve an exact (case-sensitive) method name."""

        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown cost basis method {value!r}; expected one of {allowed}") from None

    @property
    def label(self) -> str:
        return COST_BASIS_METHOD_LABELS[self]


COST_BASIS_METHOD_LABELS = {
    CostBasisMethod.FIFO: "First In, First Out",
    CostBasisMethod.LIFO: "Last In, First Out",
    CostBasisMethod.AVERAGE_COST: "Average Cost",
}


class OversellPolicy(str, Enum):
    """What to do when a disposal exceeds the recorded holdings."""

    RAISE = "RAISE"
    ZERO_COST_BASIS = "ZERO_COST_BASIS"


class MalformedPolicy(str, Enum):
    """Whether one bad raw record skips that record or rejects the whole batch."""

    SKIP = "SKIP"
    REJECT = "REJECT"


class HoldingTerm(str, Enum):
    SHORT = "SHORT"
    LONG = "LONG"


@dataclass(frozen=True)
class TransactionEvent:
    """A normalized, immutable transaction ready to be replayed."""

    id: str
    timestamp: datetime
    asset: str
    kind: TransactionKind
    quantity: Decimal
    classification: Classification
    unit_price: Optional[Decimal] = None
    fee: Optional[Decimal] = None
    source: Optional[str] = None

    @property
    def price_or_zero(self) -> Decimal:
        return self.unit_price if self.unit_price is not None else ZERO

    @property
    def fee_or_zero(self) -> Decimal:
        return self.fee if self.fee is not None else ZERO

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.timestamp, self.id)


@dataclass
class Lot:
    """An open tax lot. Only its ledger mutates the remaining quantity and cost.

    ``remaining_cost`` is carried exactly rather than derived from the rounded
    ``unit_cost``, so a lot that is fully disposed releases its whole cost.
    """

    lot_id: int
    transaction_id: str
    acquisition_date: datetime
    original_quantity: Decimal
    remaining_quantity: Decimal
    unit_cost: Decimal
    remaining_cost: Decimal
    source: Optional[str] = None

    def snapshot(self) -> "LotSnapshot":
        return LotSnapshot(
            lot_id=self.lot_id,
            transaction_id=self.transaction_id,
            acquisition_date=self.acquisition_date,
            original_quantity=self.original_quantity,
            remaining_quantity=self.remaining_quantity,
            unit_cost=self.unit_cost,
            remaining_cost=self.remaining_cost,
            source=self.source,
        )


@dataclass(frozen=True)
class LotSnapshot:
    lot_id: int
    transaction_id: str
    acquisition_date: datetime
    original_quantity: Decimal
    remaining_quantity: Decimal
    unit_cost: Decimal
    remaining_cost: Decimal
    source: Optional[str] = None


@dataclass
class AverageCostBucket:
    """Single weighted-average pool used instead of discrete lots."""

    total_quantity: Decimal = ZERO
    total_cost: Decimal = ZERO
    earliest_acquisition: Optional[datetime] = None
    latest_acquisition: Optional[datetime] = None
    source: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.total_quantity == 0

    @property
    def unit_cost(self) -> Decimal:
        return divide(self.total_cost, self.total_quantity)


@dataclass(frozen=True)
class LotConsumption:
    """How much of one lot a disposal used, and the gain attributable to it."""

    lot_id: Optional[int]
    transaction_id: Optional[str]
    quantity_taken: Decimal
    acquisition_date: Optional[datetime]
    cost_basis: Decimal
    proceeds: Decimal
    holding_period_days: int
    term: HoldingTerm

    @property
    def gain_loss(self) -> Decimal:
        return self.proceeds - self.cost_basis


@dataclass(frozen=True)
class DisposalRecord:
    transaction_id: str
    disposal_date: datetime
    asset: str
    kind: TransactionKind
    quantity_disposed: Decimal
    proceeds: Decimal
    cost_basis_consumed: Decimal
    realized_gain_loss: Decimal
    method: CostBasisMethod
    lots_consumed: tuple[LotConsumption, ...] = ()
    source: Optional[str] = None
    unmatched_quantity: Decimal = ZERO

    @property
    def short_term_gain_loss(self) -> Decimal:
        return sum((c.gain_loss for c in self.lots_consumed if c.term is HoldingTerm.SHORT), ZERO)

    @property
    def long_term_gain_loss(self) -> Decimal:
        return sum((c.gain_loss for c in self.lots_consumed if c.term is HoldingTerm.LONG), ZERO)

    @property
    def holding_period_days(self) -> int:
        return max((c.holding_period_days for c in self.lots_consumed), default=0)

    @property
    def is_long_term(self) -> bool:
        return bool(self.lots_consumed) and all(c.term is HoldingTerm.LONG for c in self.lots_consumed)


@dataclass(frozen=True)
class AssetHolding:
    asset: str
    total_amount: Decimal
    total_cost_basis: Decimal
    average_cost: Decimal
    earliest_acquisition: Optional[datetime]
    latest_acquisition: Optional[datetime]
    lots: tuple[LotSnapshot, ...] = ()


@dataclass(frozen=True)
class AssetBreakdown:
    asset: str
    total_realized_gain: Decimal = ZERO
    total_realized_loss: Decimal = ZERO
    net_realized_gain_loss: Decimal = ZERO
    short_term_gain: Decimal = ZERO
    short_term_loss: Decimal = ZERO
    long_term_gain: Decimal = ZERO
    long_term_loss: Decimal = ZERO
    total_proceeds: Decimal = ZERO
    total_cost_basis: Decimal = ZERO
    disposal_count: int = 0

    def add(self, record: DisposalRecord) -> "AssetBreakdown":
        """Return a new breakdown including ``record``."""

        updates = {
            "total_proceeds": self.total_proceeds + record.proceeds,
            "total_cost_basis": self.total_cost_basis + record.cost_basis_consumed,
            "disposal_count": self.disposal_count + 1,
        }
        for consumption in record.lots_consumed:
            gain = consumption.gain_loss
            prefix = "short_term" if consumption.term is HoldingTerm.SHORT else "long_term"
            if gain >= 0:
                key = f"{prefix}_gain"
                updates[key] = updates.get(key, getattr(self, key)) + gain
            else:
                key = f"{prefix}_loss"
                updates[key] = updates.get(key, getattr(self, key)) - gain
        gain = record.realized_gain_loss
        if gain >= 0:
            updates["total_realized_gain"] = self.total_realized_gain + gain
        else:
            updates["total_realized_loss"] = self.total_realized_loss - gain
        merged = replace(self, **updates)
        return replace(
            merged,
            net_realized_gain_loss=merged.total_realized_gain - merged.total_realized_loss,
        )


@dataclass(frozen=True)
class GainsSummary:
    total_realized_gains: Decimal = ZERO
    total_realized_losses: Decimal = ZERO
    net_realized_pnl: Decimal = ZERO
    short_term_gain_loss: Decimal = ZERO
    long_term_gain_loss: Decimal = ZERO
    total_proceeds: Decimal = ZERO
    total_cost_basis: Decimal = ZERO
    disposal_count: int = 0


@dataclass(frozen=True)
class ReportPeriod:
    start: Optional[datetime]
    end: Optional[datetime]


@dataclass(frozen=True)
class GainsLossesResult:
    method: CostBasisMethod
    period: ReportPeriod
    disposal_events: tuple[DisposalRecord, ...] = ()
    current_holdings: tuple[AssetHolding, ...] = ()
    summary: GainsSummary = field(default_factory=GainsSummary)
    asset_breakdown: tuple[AssetBreakdown, ...] = ()

    @property
    def total_realized_gains(self) -> Decimal:
        return self.summary.total_realized_gains

    @property
    def total_realized_losses(self) -> Decimal:
        return self.summary.total_realized_losses

    @property
    def net_realized_pnl(self) -> Decimal:
        return self.summary.net_realized_pnl


@dataclass(frozen=True)
class PortfolioSnapshot:
    as_of: datetime
    method: CostBasisMethod
    holdings: tuple[AssetHolding, ...] = ()
    total_cost_basis: Decimal = ZERO


@dataclass(frozen=True)
class RejectedRecord:
    index: int
    record_id: Optional[str]
    reason: str


@dataclass(frozen=True)
class NormalizationResult:
    events: tuple[TransactionEvent, ...] = ()
    rejected: tuple[RejectedRecord, ...] = ()


__all__ = [
    "AssetBreakdown",
    "AssetHolding",
    "AverageCostBucket",
    "COST_BASIS_METHOD_LABELS",
    "Classification",
    "CostBasisMethod",
    "DisposalRecord",
    "GainsLossesResult",
    "GainsSummary",
    "HoldingTerm",
    "Lot",
    "LotConsumption",
    "LotSnapshot",
    "MalformedPolicy",
    "NormalizationResult",
    "OversellPolicy",
    "PortfolioSnapshot",
    "RejectedRecord",
    "ReportPeriod",
    "TransactionEvent",
    "TransactionKind",
]
