"""Per-asset lot ledger.

A ledger holds either an ordered queue of discrete lots (FIFO / LIFO) or a
single weighted-average bucket (Average-Cost), never both. The method is fixed
when the ledger is created and lasts for one replay.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime
from decimal import Decimal
from typing import Deque, List, Optional, Tuple

from .decimal_math import ZERO, divide, is_zero
from .errors import DivisionByZeroError
from .models import AssetHolding, AverageCostBucket, CostBasisMethod, Lot, LotSnapshot

AVERAGE_COST_LOT_ID = 0
AVERAGE_COST_TRANSACTION_ID = "average-cost"


class LotLedger:
    """Open lots (or the average-cost bucket) for one asset."""

    def __init__(self, asset: str, method: CostBasisMethod | str):
        self.asset = asset
        self.method = CostBasisMethod.parse(method)
        self._lots: Deque[Lot] = deque()
        self._bucket: Optional[AverageCostBucket] = (
            AverageCostBucket() if self.method is CostBasisMethod.AVERAGE_COST else None
        )
        self._next_lot_id = 1

    @property
    def uses_bucket(self) -> bool:
        return self._bucket is not None

    @property
    def bucket(self) -> AverageCostBucket:
        if self._bucket is None:
            raise AttributeError(f"{self.method.value} ledger has no average-cost bucket")
        return self._bucket

    def record_acquisition(
        self,
        quantity: Decimal,
        unit_price: Decimal,
        fee: Decimal,
        date: datetime,
        source: str | None = None,
        transaction_id: str | None = None,
    ) -> LotSnapshot:
        """Add ``quantity`` units acquired at ``unit_price`` with ``fee`` capitalized."""

        if quantity <= 0:
            raise ValueError(f"acquisition quantity must be positive, got {quantity}")
        if self._bucket is not None:
            bucket = self._bucket
            bucket.total_cost += quantity * unit_price + fee
            bucket.total_quantity += quantity
            if bucket.earliest_acquisition is None:
                bucket.earliest_acquisition = date
            bucket.latest_acquisition = date
            if bucket.source is None:
                bucket.source = source
            return self._bucket_snapshot()

        lot = Lot(
            lot_id=self._next_lot_id,
            transaction_id=transaction_id or f"lot-{self._next_lot_id}",
            acquisition_date=date,
            original_quantity=quantity,
            remaining_quantity=quantity,
            unit_cost=unit_price + divide(fee, quantity),
            remaining_cost=quantity * unit_price + fee,
            source=source,
        )
        self._next_lot_id += 1
        self._lots.append(lot)
        return lot.snapshot()

    def available_quantity(self) -> Decimal:
        if self._bucket is not None:
            return self._bucket.total_quantity
        return sum((lot.remaining_quantity for lot in self._lots), ZERO)

    def total_cost(self) -> Decimal:
        if self._bucket is not None:
            return self._bucket.total_cost
        return sum((lot.remaining_cost for lot in self._lots), ZERO)

    def is_empty(self) -> bool:
        return is_zero(self.available_quantity())

    def consume(self, quantity: Decimal) -> List[Tuple[LotSnapshot, Decimal, Decimal]]:
        """Take up to ``quantity`` units from the lot queue in method order.

        Returns ``(lot before consumption, quantity taken, cost taken)`` triples.
        Emptying a lot takes its exact remaining cost. Fully consumed lots are
        removed; a partially consumed lot keeps its place in the queue.
        Consumption stops when the queue is empty, so callers check
        ``available_quantity`` first when a shortfall is an error.
        """

        if self._bucket is not None:
            raise TypeError("Average-Cost ledgers are reduced with reduce_bucket()")
        taken: List[Tuple[LotSnapshot, Decimal, Decimal]] = []
        remaining = quantity
        take_from_front = self.method is CostBasisMethod.FIFO
        while remaining > 0 and self._lots:
            lot = self._lots[0] if take_from_front else self._lots[-1]
            take_qty = min(lot.remaining_quantity, remaining)
            if take_qty == lot.remaining_quantity:
                take_cost = lot.remaining_cost
            else:
                take_cost = take_qty * lot.unit_cost
            taken.append((lot.snapshot(), take_qty, take_cost))
            lot.remaining_quantity -= take_qty
            lot.remaining_cost -= take_cost
            remaining -= take_qty
            if lot.remaining_quantity == 0:
                if take_from_front:
                    self._lots.popleft()
                else:
                    self._lots.pop()
        return taken

    def reduce_bucket(self, quantity: Decimal) -> Decimal:
        """Remove ``quantity`` at the current average cost; returns the cost removed."""

        bucket = self.bucket
        if bucket.is_empty:
            raise DivisionByZeroError(f"average cost of empty {self.asset} bucket is undefined")
        if quantity >= bucket.total_quantity:
            cost_removed = bucket.total_cost
            self._bucket = AverageCostBucket()
            return cost_removed
        cost_removed = quantity * bucket.unit_cost
        bucket.total_cost -= cost_removed
        bucket.total_quantity -= quantity
        return cost_removed

    def open_lots(self) -> tuple[LotSnapshot, ...]:
        if self._bucket is not None:
            if self._bucket.is_empty:
                return ()
            return (self._bucket_snapshot(),)
        return tuple(lot.snapshot() for lot in self._lots)

    def holding(self) -> Optional[AssetHolding]:
        """Point-in-time aggregate of this ledger, or None when nothing is held."""

        amount = self.available_quantity()
        if amount <= 0:
            return None
        lots = self.open_lots()
        cost = self.total_cost()
        dates = [lot.acquisition_date for lot in lots]
        earliest = min(dates)
        latest = max(dates)
        if self._bucket is not None:
            earliest = self._bucket.earliest_acquisition or earliest
            latest = self._bucket.latest_acquisition or latest
        return AssetHolding(
            asset=self.asset,
            total_amount=amount,
            total_cost_basis=cost,
            average_cost=divide(cost, amount),
            earliest_acquisition=earliest,
            latest_acquisition=latest,
            lots=lots,
        )

    def _bucket_snapshot(self) -> LotSnapshot:
        bucket = self.bucket
        return LotSnapshot(
            lot_id=AVERAGE_COST_LOT_ID,
            transaction_id=AVERAGE_COST_TRANSACTION_ID,
            acquisition_date=bucket.earliest_acquisition,  # type: ignore[arg-type]
            original_quantity=bucket.total_quantity,
            remaining_quantity=bucket.total_quantity,
            unit_cost=bucket.unit_cost,
            remaining_cost=bucket.total_cost,
            source=bucket.source,
        )

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return (
            f"LotLedger(asset={self.asset!r}, method={self.method.value}, "
            f"available={self.available_quantity()})"
        )


__all__ = ["AVERAGE_COST_LOT_ID", "AVERAGE_COST_TRANSACTION_ID", "LotLedger"]
