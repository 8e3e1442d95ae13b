"""Replay transaction histories into gains/losses reports and holdings snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

from .decimal_math import ZERO, engine_context
from .ledger import LotLedger
from .matcher import DEFAULT_LONG_TERM_THRESHOLD_DAYS, match_disposal
from .models import (
    AssetBreakdown,
    AssetHolding,
    Classification,
    CostBasisMethod,
    DisposalRecord,
    GainsLossesResult,
    GainsSummary,
    LotSnapshot,
    OversellPolicy,
    PortfolioSnapshot,
    ReportPeriod,
    TransactionEvent,
)
from .normalizer import order_events, parse_timestamp

logger = logging.getLogger(__name__)


@dataclass
class _ReplayState:
    method: CostBasisMethod
    ledgers: Dict[str, LotLedger] = field(default_factory=dict)
    processed: int = 0

    def ledger_for(self, asset: str) -> LotLedger:
        ledger = self.ledgers.get(asset)
        if ledger is None:
            ledger = LotLedger(asset, self.method)
            self.ledgers[asset] = ledger
        return ledger

    def holdings(self) -> tuple[AssetHolding, ...]:
        result = []
        for asset in sorted(self.ledgers):
            holding = self.ledgers[asset].holding()
            if holding is not None:
                result.append(holding)
        return tuple(result)


def _replay(
    events: List[TransactionEvent],
    method: CostBasisMethod,
    cutoff: Optional[datetime],
    *,
    oversell_policy: OversellPolicy,
    long_term_threshold_days: int,
    on_disposal: Callable[[DisposalRecord], None] | None = None,
) -> _ReplayState:
    """Drive ordered ``events`` through per-asset ledgers up to ``cutoff`` inclusive."""

    state = _ReplayState(method=method)
    for event in events:
        if cutoff is not None and event.timestamp > cutoff:
            break
        classification = event.classification
        if classification is Classification.IGNORED:
            logger.debug("Ignoring %s transaction %s", event.kind.value, event.id)
            continue
        ledger = state.ledger_for(event.asset)
        if classification is Classification.ACQUISITION:
            ledger.record_acquisition(
                event.quantity,
                event.price_or_zero,
                event.fee_or_zero,
                event.timestamp,
                source=event.source,
                transaction_id=event.id,
            )
        elif classification is Classification.DISPOSAL:
            record = match_disposal(
                ledger,
                event,
                oversell_policy=oversell_policy,
                long_term_threshold_days=long_term_threshold_days,
            )
            if on_disposal is not None:
                on_disposal(record)
        else:  # pragma: no cover - Classification is exhaustive above
            raise ValueError(f"Unhandled classification {classification!r}")
        state.processed += 1
    logger.debug("Replayed %d events over %d assets using %s", state.processed, len(state.ledgers), method.value)
    return state


def _summarize(breakdown: Iterable[AssetBreakdown]) -> GainsSummary:
    totals = {
        "total_realized_gains": ZERO,
        "total_realized_losses": ZERO,
        "short_term_gain_loss": ZERO,
        "long_term_gain_loss": ZERO,
        "total_proceeds": ZERO,
        "total_cost_basis": ZERO,
    }
    count = 0
    for item in breakdown:
        totals["total_realized_gains"] += item.total_realized_gain
        totals["total_realized_losses"] += item.total_realized_loss
        totals["short_term_gain_loss"] += item.short_term_gain - item.short_term_loss
        totals["long_term_gain_loss"] += item.long_term_gain - item.long_term_loss
        totals["total_proceeds"] += item.total_proceeds
        totals["total_cost_basis"] += item.total_cost_basis
        count += item.disposal_count
    return GainsSummary(
        **totals,
        net_realized_pnl=totals["total_realized_gains"] - totals["total_realized_losses"],
        disposal_count=count,
    )


def compute_gains_losses(
    events: Iterable[TransactionEvent],
    method: CostBasisMethod | str = CostBasisMethod.FIFO,
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None,
    *,
    oversell_policy: OversellPolicy = OversellPolicy.RAISE,
    long_term_threshold_days: int = DEFAULT_LONG_TERM_THRESHOLD_DAYS,
) -> GainsLossesResult:
    """Replay every event up to ``window_end`` and report disposals inside the window.

    Cost basis is always built from the earliest event: disposals before
    ``window_start`` are left out of ``disposal_events`` but still consume lots.
    ``current_holdings`` reflect ledger state as of ``window_end`` (default: the
    latest event, or ``window_start`` when that is later).
    """

    method = CostBasisMethod.parse(method)
    ordered = order_events(events)
    window_start = parse_timestamp(window_start) if window_start is not None else None
    window_end = parse_timestamp(window_end) if window_end is not None else None
    if window_start is not None and window_end is not None and window_start > window_end:
        raise ValueError("window_start cannot be after window_end")
    start = window_start if window_start is not None else (ordered[0].timestamp if ordered else None)
    end = window_end if window_end is not None else (ordered[-1].timestamp if ordered else None)
    if start is not None and end is not None and end < start:
        # One bound given and it lies outside the history: collapse the period onto it.
        if window_end is None:
            end = start
        else:
            start = end

    reported: List[DisposalRecord] = []

    def _collect(record: DisposalRecord) -> None:
        if start is not None and record.disposal_date < start:
            return
        reported.append(record)

    with engine_context():
        state = _replay(
            ordered,
            method,
            end,
            oversell_policy=oversell_policy,
            long_term_threshold_days=long_term_threshold_days,
            on_disposal=_collect,
        )
        breakdown: Dict[str, AssetBreakdown] = {}
        for record in reported:
            breakdown[record.asset] = breakdown.get(record.asset, AssetBreakdown(asset=record.asset)).add(record)
        asset_breakdown = tuple(breakdown[asset] for asset in sorted(breakdown))
        holdings = state.holdings()
        summary = _summarize(asset_breakdown)

    logger.debug(
        "Computed %s gains/losses: %d reported disposals, %d holdings",
        method.value,
        len(reported),
        len(holdings),
    )
    return GainsLossesResult(
        method=method,
        period=ReportPeriod(start=start, end=end),
        disposal_events=tuple(reported),
        current_holdings=holdings,
        summary=summary,
        asset_breakdown=asset_breakdown,
    )


def snapshot_at(
    events: Iterable[TransactionEvent],
    as_of: datetime,
    method: CostBasisMethod | str = CostBasisMethod.FIFO,
    *,
    oversell_policy: OversellPolicy = OversellPolicy.RAISE,
) -> PortfolioSnapshot:
    """Holdings as of ``as_of`` (inclusive), without disposal detail."""

    method = CostBasisMethod.parse(method)
    as_of = parse_timestamp(as_of)
    with engine_context():
        state = _replay(
            order_events(events),
            method,
            as_of,
            oversell_policy=oversell_policy,
            long_term_threshold_days=DEFAULT_LONG_TERM_THRESHOLD_DAYS,
        )
        holdings = state.holdings()
        total_cost = sum((h.total_cost_basis for h in holdings), ZERO)
    return PortfolioSnapshot(as_of=as_of, method=method, holdings=holdings, total_cost_basis=total_cost)


def acquisition_history(
    events: Iterable[TransactionEvent],
    asset: str,
    method: CostBasisMethod | str = CostBasisMethod.FIFO,
) -> tuple[LotSnapshot, ...]:
    """Open lots for ``asset`` after replaying the full history."""

    result = compute_gains_losses(events, method)
    wanted = asset.strip().upper()
    for holding in result.current_holdings:
        if holding.asset == wanted:
            return holding.lots
    return ()


def total_remaining_quantity(holdings: Iterable[AssetHolding]) -> Dict[str, Decimal]:
    """Map asset to held quantity; convenient for conservation checks."""

    return {holding.asset: holding.total_amount for holding in holdings}


__all__ = [
    "acquisition_history",
    "compute_gains_losses",
    "snapshot_at",
    "total_remaining_quantity",
]
