"""Gains/losses and snapshot computation on top of the cost-basis engine.

Replays are CPU-bound and synchronous, so they run in a worker thread; each one
is wrapped in a tracing span recording the method and event counts.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Mapping, Optional, Sequence

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import AppSettings, get_settings
from app.core.telemetry import record_replay
from app.models.transaction import ClientTransaction
from cost_basis import (
    CostBasisMethod,
    GainsLossesResult,
    MalformedPolicy,
    OversellPolicy,
    PortfolioSnapshot,
    acquisition_history,
    build_classification,
    compute_gains_losses,
    normalize_batch,
    snapshot_at,
)
from cost_basis.models import LotSnapshot, NormalizationResult, RejectedRecord, TransactionEvent
from cost_basis.normalizer import ClassificationTable, parse_timestamp

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class GainsComputation:
    result: GainsLossesResult
    rejected: tuple[RejectedRecord, ...] = ()


@dataclass(frozen=True)
class SnapshotComputation:
    snapshot: PortfolioSnapshot
    rejected: tuple[RejectedRecord, ...] = ()


def classification_table(settings: AppSettings) -> ClassificationTable:
    return build_classification(settings.kind_classification_overrides)


def parse_window_bound(value: Optional[str], *, end: bool = False) -> Optional[datetime]:
    """Parse a report window bound.

    A bare date covers the whole UTC day: 00:00:00 as a start bound and
    23:59:59.999999 as an end bound.
    """

    if value is None or not value.strip():
        return None
    text = value.strip()
    if len(text) == 10:
        try:
            day = date.fromisoformat(text)
        except ValueError:
            day = None
        if day is not None:
            return datetime.combine(day, time.max if end else time.min, tzinfo=timezone.utc)
    return parse_timestamp(text)


def normalize_records(
    records: Sequence[Mapping[str, Any] | Any],
    settings: AppSettings,
    policy: Optional[str] = None,
) -> NormalizationResult:
    return normalize_batch(
        records,
        policy=MalformedPolicy(policy or settings.malformed_policy),
        classification=classification_table(settings),
    )


def _run_gains(
    events: Sequence[TransactionEvent],
    method: CostBasisMethod,
    start: Optional[datetime],
    end: Optional[datetime],
    settings: AppSettings,
) -> GainsLossesResult:
    return compute_gains_losses(
        events,
        method,
        start,
        end,
        oversell_policy=OversellPolicy(settings.oversell_policy),
        long_term_threshold_days=settings.long_term_threshold_days,
    )


async def compute_gains(
    records: Sequence[Mapping[str, Any] | Any],
    *,
    method: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    policy: Optional[str] = None,
    settings: AppSettings | None = None,
) -> GainsComputation:
    """Normalize ``records`` and compute the gains/losses report off the event loop."""

    settings = settings or get_settings()
    resolved = CostBasisMethod.parse(method or settings.default_cost_basis_method)
    normalized = normalize_records(records, settings, policy)

    with tracer.start_as_current_span("cost_basis.compute_gains") as span:
        span.set_attribute("cost_basis.method", resolved.value)
        span.set_attribute("cost_basis.event_count", len(normalized.events))
        span.set_attribute("cost_basis.rejected_count", len(normalized.rejected))
        result = await asyncio.to_thread(_run_gains, normalized.events, resolved, start, end, settings)
        span.set_attribute("cost_basis.disposal_count", len(result.disposal_events))
    record_replay(
        "gains",
        resolved.value,
        disposals=len(result.disposal_events),
        rejected=len(normalized.rejected),
    )

    logger.info(
        "Computed %s gains for %d events: %d disposals, net %s",
        resolved.value,
        len(normalized.events),
        len(result.disposal_events),
        result.net_realized_pnl,
    )
    return GainsComputation(result=result, rejected=normalized.rejected)


async def compute_snapshot(
    records: Sequence[Mapping[str, Any] | Any],
    as_of: datetime | str,
    *,
    method: Optional[str] = None,
    policy: Optional[str] = None,
    settings: AppSettings | None = None,
) -> SnapshotComputation:
    """Holdings as of ``as_of``; the method defaults to the snapshot setting."""

    settings = settings or get_settings()
    resolved = CostBasisMethod.parse(method or settings.snapshot_cost_basis_method)
    normalized = normalize_records(records, settings, policy)

    with tracer.start_as_current_span("cost_basis.snapshot") as span:
        span.set_attribute("cost_basis.method", resolved.value)
        span.set_attribute("cost_basis.event_count", len(normalized.events))
        snapshot = await asyncio.to_thread(
            snapshot_at,
            normalized.events,
            as_of,
            resolved,
            oversell_policy=OversellPolicy(settings.oversell_policy),
        )
        span.set_attribute("cost_basis.holding_count", len(snapshot.holdings))
    record_replay("snapshot", resolved.value, rejected=len(normalized.rejected))

    return SnapshotComputation(snapshot=snapshot, rejected=normalized.rejected)


async def compute_lots(
    records: Sequence[Mapping[str, Any] | Any],
    asset: str,
    *,
    method: Optional[str] = None,
    settings: AppSettings | None = None,
) -> tuple[LotSnapshot, ...]:
    settings = settings or get_settings()
    resolved = CostBasisMethod.parse(method or settings.default_cost_basis_method)
    normalized = normalize_records(records, settings)
    return await asyncio.to_thread(acquisition_history, normalized.events, asset, resolved)


async def compute_for_clients(
    records_by_client: Mapping[str, Sequence[Mapping[str, Any] | Any]],
    *,
    method: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    settings: AppSettings | None = None,
) -> dict[str, GainsComputation]:
    """Compute reports for independent clients concurrently."""

    settings = settings or get_settings()
    client_ids = sorted(records_by_client)
    results = await asyncio.gather(
        *(
            compute_gains(records_by_client[client_id], method=method, start=start, end=end, settings=settings)
            for client_id in client_ids
        )
    )
    return dict(zip(client_ids, results))


async def load_client_records(session: AsyncSession, client_id: str) -> list[dict[str, Any]]:
    """Stored transactions for ``client_id`` as raw normalizer records."""

    rows = await session.execute(
        select(ClientTransaction)
        .where(ClientTransaction.client_id == client_id)
        .order_by(ClientTransaction.timestamp, ClientTransaction.external_id)
    )
    return [row.as_record() for row in rows.scalars()]


__all__ = [
    "GainsComputation",
    "SnapshotComputation",
    "classification_table",
    "compute_for_clients",
    "compute_gains",
    "compute_lots",
    "compute_snapshot",
    "load_client_records",
    "normalize_records",
    "parse_window_bound",
]
