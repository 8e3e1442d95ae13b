"""Pydantic schemas for gains/losses reports and holdings snapshots.

Decimal fields serialize as strings in JSON so no precision is lost on the
wire; field names are camelCase on the wire and snake_case in Python.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.config.settings import CostBasisMethodName
from cost_basis.models import (
    AssetBreakdown,
    AssetHolding,
    DisposalRecord,
    GainsLossesResult,
    GainsSummary,
    LotConsumption,
    LotSnapshot,
    PortfolioSnapshot,
    RejectedRecord,
)

MalformedPolicyName = Literal["SKIP", "REJECT"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GainsRequest(CamelModel):
    transactions: list[dict[str, Any]] = Field(default_factory=list)
    method: Optional[CostBasisMethodName] = None
    start_date: Optional[str] = Field(default=None, description="ISO date or datetime; dates cover the whole day")
    end_date: Optional[str] = Field(default=None, description="ISO date or datetime; dates cover the whole day")
    malformed_policy: Optional[MalformedPolicyName] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "transactions": [
                    {"id": "1", "timestamp": "2024-01-01T00:00:00Z", "kind": "BUY", "asset": "BTC",
                     "quantity": "10", "unitPrice": "10"},
                    {"id": "2", "timestamp": "2024-03-01T00:00:00Z", "kind": "SELL", "asset": "BTC",
                     "quantity": "12", "unitPrice": "20"},
                ],
                "method": "FIFO",
            }
        },
    )


class SnapshotRequest(CamelModel):
    transactions: list[dict[str, Any]] = Field(default_factory=list)
    as_of: str
    method: Optional[CostBasisMethodName] = None
    malformed_policy: Optional[MalformedPolicyName] = None


class LotSchema(CamelModel):
    lot_id: int
    transaction_id: str
    acquisition_date: datetime
    original_quantity: Decimal
    remaining_quantity: Decimal
    unit_cost: Decimal
    remaining_cost: Decimal
    source: Optional[str] = None

    @classmethod
    def from_domain(cls, lot: LotSnapshot) -> "LotSchema":
        return cls(
            lot_id=lot.lot_id,
            transaction_id=lot.transaction_id,
            acquisition_date=lot.acquisition_date,
            original_quantity=lot.original_quantity,
            remaining_quantity=lot.remaining_quantity,
            unit_cost=lot.unit_cost,
            remaining_cost=lot.remaining_cost,
            source=lot.source,
        )


class LotConsumptionSchema(CamelModel):
    lot_id: Optional[int] = None
    transaction_id: Optional[str] = None
    quantity_taken: Decimal
    acquisition_date: Optional[datetime] = None
    cost_basis: Decimal
    proceeds: Decimal
    gain_loss: Decimal
    holding_period_days: int
    term: Literal["SHORT", "LONG"]

    @classmethod
    def from_domain(cls, consumption: LotConsumption) -> "LotConsumptionSchema":
        return cls(
            lot_id=consumption.lot_id,
            transaction_id=consumption.transaction_id,
            quantity_taken=consumption.quantity_taken,
            acquisition_date=consumption.acquisition_date,
            cost_basis=consumption.cost_basis,
            proceeds=consumption.proceeds,
            gain_loss=consumption.gain_loss,
            holding_period_days=consumption.holding_period_days,
            term=consumption.term.value,
        )


class DisposalSchema(CamelModel):
    transaction_id: str
    date: datetime
    asset: str
    kind: str
    quantity_disposed: Decimal
    proceeds: Decimal
    cost_basis_consumed: Decimal
    realized_gain_loss: Decimal
    short_term_gain_loss: Decimal
    long_term_gain_loss: Decimal
    holding_period_days: int
    unmatched_quantity: Decimal
    source: Optional[str] = None
    lots_consumed: list[LotConsumptionSchema] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, record: DisposalRecord) -> "DisposalSchema":
        return cls(
            transaction_id=record.transaction_id,
            date=record.disposal_date,
            asset=record.asset,
            kind=record.kind.value,
            quantity_disposed=record.quantity_disposed,
            proceeds=record.proceeds,
            cost_basis_consumed=record.cost_basis_consumed,
            realized_gain_loss=record.realized_gain_loss,
            short_term_gain_loss=record.short_term_gain_loss,
            long_term_gain_loss=record.long_term_gain_loss,
            holding_period_days=record.holding_period_days,
            unmatched_quantity=record.unmatched_quantity,
            source=record.source,
            lots_consumed=[LotConsumptionSchema.from_domain(c) for c in record.lots_consumed],
        )


class HoldingSchema(CamelModel):
    asset: str
    total_amount: Decimal
    total_cost_basis: Decimal
    average_cost: Decimal
    earliest_acquisition: Optional[datetime] = None
    latest_acquisition: Optional[datetime] = None
    lots: list[LotSchema] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, holding: AssetHolding) -> "HoldingSchema":
        return cls(
            asset=holding.asset,
            total_amount=holding.total_amount,
            total_cost_basis=holding.total_cost_basis,
            average_cost=holding.average_cost,
            earliest_acquisition=holding.earliest_acquisition,
            latest_acquisition=holding.latest_acquisition,
            lots=[LotSchema.from_domain(lot) for lot in holding.lots],
        )


class AssetBreakdownSchema(CamelModel):
    asset: str
    total_realized_gain: Decimal
    total_realized_loss: Decimal
    net_realized_gain_loss: Decimal
    short_term_gain: Decimal
    short_term_loss: Decimal
    long_term_gain: Decimal
    long_term_loss: Decimal
    total_proceeds: Decimal
    total_cost_basis: Decimal
    disposal_count: int

    @classmethod
    def from_domain(cls, item: AssetBreakdown) -> "AssetBreakdownSchema":
        return cls(
            asset=item.asset,
            total_realized_gain=item.total_realized_gain,
            total_realized_loss=item.total_realized_loss,
            net_realized_gain_loss=item.net_realized_gain_loss,
            short_term_gain=item.short_term_gain,
            short_term_loss=item.short_term_loss,
            long_term_gain=item.long_term_gain,
            long_term_loss=item.long_term_loss,
            total_proceeds=item.total_proceeds,
            total_cost_basis=item.total_cost_basis,
            disposal_count=item.disposal_count,
        )


class SummarySchema(CamelModel):
    total_realized_gains: Decimal
    total_realized_losses: Decimal
    net_realized_pnl: Decimal
    short_term_gain_loss: Decimal
    long_term_gain_loss: Decimal
    total_proceeds: Decimal
    total_cost_basis: Decimal
    disposal_count: int

    @classmethod
    def from_domain(cls, summary: GainsSummary) -> "SummarySchema":
        return cls(
            total_realized_gains=summary.total_realized_gains,
            total_realized_losses=summary.total_realized_losses,
            net_realized_pnl=summary.net_realized_pnl,
            short_term_gain_loss=summary.short_term_gain_loss,
            long_term_gain_loss=summary.long_term_gain_loss,
            total_proceeds=summary.total_proceeds,
            total_cost_basis=summary.total_cost_basis,
            disposal_count=summary.disposal_count,
        )


class RejectedRecordSchema(CamelModel):
    index: int
    record_id: Optional[str] = None
    reason: str

    @classmethod
    def from_domain(cls, record: RejectedRecord) -> "RejectedRecordSchema":
        return cls(index=record.index, record_id=record.record_id, reason=record.reason)


class ReportPeriodSchema(CamelModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class GainsLossesResponse(CamelModel):
    method: CostBasisMethodName
    method_label: str
    period: ReportPeriodSchema
    disposal_events: list[DisposalSchema]
    current_holdings: list[HoldingSchema]
    total_realized_gains: Decimal
    total_realized_losses: Decimal
    net_realized_pnl: Decimal
    summary: SummarySchema
    asset_breakdown: list[AssetBreakdownSchema]
    rejected: list[RejectedRecordSchema] = Field(default_factory=list)

    @classmethod
    def from_domain(
        cls,
        result: GainsLossesResult,
        rejected: tuple[RejectedRecord, ...] = (),
    ) -> "GainsLossesResponse":
        return cls(
            method=result.method.value,
            method_label=result.method.label,
            period=ReportPeriodSchema(start=result.period.start, end=result.period.end),
            disposal_events=[DisposalSchema.from_domain(record) for record in result.disposal_events],
            current_holdings=[HoldingSchema.from_domain(holding) for holding in result.current_holdings],
            total_realized_gains=result.total_realized_gains,
            total_realized_losses=result.total_realized_losses,
            net_realized_pnl=result.net_realized_pnl,
            summary=SummarySchema.from_domain(result.summary),
            asset_breakdown=[AssetBreakdownSchema.from_domain(item) for item in result.asset_breakdown],
            rejected=[RejectedRecordSchema.from_domain(item) for item in rejected],
        )


class SnapshotResponse(CamelModel):
    as_of: datetime
    method: CostBasisMethodName
    holdings: list[HoldingSchema]
    total_cost_basis: Decimal
    rejected: list[RejectedRecordSchema] = Field(default_factory=list)

    @classmethod
    def from_domain(
        cls,
        snapshot: PortfolioSnapshot,
        rejected: tuple[RejectedRecord, ...] = (),
    ) -> "SnapshotResponse":
        return cls(
            as_of=snapshot.as_of,
            method=snapshot.method.value,
            holdings=[HoldingSchema.from_domain(holding) for holding in snapshot.holdings],
            total_cost_basis=snapshot.total_cost_basis,
            rejected=[RejectedRecordSchema.from_domain(item) for item in rejected],
        )


__all__ = [
    "AssetBreakdownSchema",
    "CostBasisMethodName",
    "DisposalSchema",
    "GainsLossesResponse",
    "GainsRequest",
    "HoldingSchema",
    "LotConsumptionSchema",
    "LotSchema",
    "MalformedPolicyName",
    "RejectedRecordSchema",
    "ReportPeriodSchema",
    "SnapshotRequest",
    "SnapshotResponse",
    "SummarySchema",
]
