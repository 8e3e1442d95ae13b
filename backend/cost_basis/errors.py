"""Error taxonomy raised by the cost-basis engine."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal


class CostBasisError(Exception):
    """Base class for every engine failure."""


class MalformedTransaction(CostBasisError, ValueError):
    """A raw record could not be turned into a transaction event."""

    def __init__(self, reason: str, *, record_id: str | None = None, index: int | None = None):
        self.reason = reason
        self.record_id = record_id
        self.index = index
        super().__init__(self._message())

    def _message(self) -> str:
        parts = []
        if self.index is not None:
            parts.append(f"record #{self.index}")
        if self.record_id:
            parts.append(f"id={self.record_id}")
        prefix = f"{' '.join(parts)}: " if parts else ""
        return f"{prefix}{self.reason}"

    def at_index(self, index: int) -> "MalformedTransaction":
        """Return a copy annotated with the record's position in its batch."""

        return MalformedTransaction(self.reason, record_id=self.record_id, index=index)


class InsufficientLots(CostBasisError):
    """A disposal asked for more units than the ledger holds."""

    def __init__(
        self,
        *,
        asset: str,
        date: datetime,
        requested: Decimal,
        available: Decimal,
        transaction_id: str | None = None,
    ):
        self.asset = asset
        self.date = date
        self.requested = requested
        self.available = available
        self.transaction_id = transaction_id
        super().__init__(
            f"Insufficient {asset} lots for disposal {transaction_id or '?'} on {date.isoformat()}: "
            f"requested {requested}, available {available}"
        )

    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.available


class DivisionByZeroError(CostBasisError, ZeroDivisionError):
    """A true zero-quantity divide was attempted, e.g. unit cost of an empty bucket."""


__all__ = [
    "CostBasisError",
    "DivisionByZeroError",
    "InsufficientLots",
    "MalformedTransaction",
]
