"""Match a disposal against a ledger and compute its realized gain or loss."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .decimal_math import ZERO, divide, is_positive
from .errors import InsufficientLots
from .ledger import AVERAGE_COST_LOT_ID, AVERAGE_COST_TRANSACTION_ID, LotLedger
from .models import (
    DisposalRecord,
    HoldingTerm,
    LotConsumption,
    OversellPolicy,
    TransactionEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_LONG_TERM_THRESHOLD_DAYS = 365


def holding_period_days(acquired: Optional[datetime], disposed: datetime) -> int:
    if acquired is None:
        return 0
    return max((disposed - acquired).days, 0)


def holding_term(days: int, threshold_days: int = DEFAULT_LONG_TERM_THRESHOLD_DAYS) -> HoldingTerm:
    return HoldingTerm.LONG if days > threshold_days else HoldingTerm.SHORT


def _allocate_proceeds(proceeds: Decimal, quantity: Decimal, portions: List[Decimal]) -> List[Decimal]:
    """Split ``proceeds`` pro rata over ``portions``; the last share takes the remainder."""

    shares: List[Decimal] = []
    allocated = ZERO
    for index, portion in enumerate(portions):
        if index == len(portions) - 1:
            share = proceeds - allocated
        else:
            share = divide(proceeds * portion, quantity)
        shares.append(share)
        allocated += share
    return shares


def match_disposal(
    ledger: LotLedger,
    event: TransactionEvent,
    *,
    oversell_policy: OversellPolicy = OversellPolicy.RAISE,
    long_term_threshold_days: int = DEFAULT_LONG_TERM_THRESHOLD_DAYS,
) -> DisposalRecord:
    """Consume lots for ``event`` according to the ledger's method.

    Fees reduce proceeds and are never capitalized on the disposal side. When
    the ledger holds less than ``event.quantity`` the default policy raises
    ``InsufficientLots`` before any lot is touched; ``ZERO_COST_BASIS`` consumes
    what is available and books the remainder at zero cost.
    """

    quantity = event.quantity
    date = event.timestamp
    available = ledger.available_quantity()
    unmatched = ZERO
    if available < quantity:
        if OversellPolicy(oversell_policy) is OversellPolicy.RAISE:
            raise InsufficientLots(
                asset=ledger.asset,
                date=date,
                requested=quantity,
                available=available,
                transaction_id=event.id,
            )
        unmatched = quantity - available
        logger.warning(
            "Disposal %s of %s %s exceeds holdings by %s; booking remainder at zero cost basis",
            event.id,
            quantity,
            ledger.asset,
            unmatched,
        )

    proceeds = quantity * event.price_or_zero - event.fee_or_zero
    matched = quantity - unmatched

    # (lot_id, transaction_id, taken, acquisition_date, cost)
    pieces: list[tuple[Optional[int], Optional[str], Decimal, Optional[datetime], Decimal]] = []
    if ledger.uses_bucket:
        if is_positive(matched):
            earliest = ledger.bucket.earliest_acquisition
            cost = ledger.reduce_bucket(matched)
            pieces.append((AVERAGE_COST_LOT_ID, AVERAGE_COST_TRANSACTION_ID, matched, earliest, cost))
    else:
        for lot, taken, cost in ledger.consume(matched):
            pieces.append((lot.lot_id, lot.transaction_id, taken, lot.acquisition_date, cost))
    if is_positive(unmatched):
        pieces.append((None, None, unmatched, None, ZERO))

    shares = _allocate_proceeds(proceeds, quantity, [piece[2] for piece in pieces])
    consumptions = []
    for (lot_id, transaction_id, taken, acquired, cost), share in zip(pieces, shares):
        days = holding_period_days(acquired, date)
        consumptions.append(
            LotConsumption(
                lot_id=lot_id,
                transaction_id=transaction_id,
                quantity_taken=taken,
                acquisition_date=acquired,
                cost_basis=cost,
                proceeds=share,
                holding_period_days=days,
                term=holding_term(days, long_term_threshold_days),
            )
        )

    cost_basis_consumed = sum((c.cost_basis for c in consumptions), ZERO)
    return DisposalRecord(
        transaction_id=event.id,
        disposal_date=date,
        asset=ledger.asset,
        kind=event.kind,
        quantity_disposed=quantity,
        proceeds=proceeds,
        cost_basis_consumed=cost_basis_consumed,
        realized_gain_loss=proceeds - cost_basis_consumed,
        method=ledger.method,
        lots_consumed=tuple(consumptions),
        source=event.source,
        unmatched_quantity=unmatched,
    )


__all__ = [
    "DEFAULT_LONG_TERM_THRESHOLD_DAYS",
    "holding_period_days",
    "holding_term",
    "match_disposal",
]
