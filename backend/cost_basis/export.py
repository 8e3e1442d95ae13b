"""CSV export of gains/losses results.

Produces the downloadable tabular report: one row per disposal and one row per
current holding, plus per-asset and report-level summaries. Pure formatting; an
empty result yields header-only output.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from .decimal_math import format_decimal
from .models import GainsLossesResult, HoldingTerm

DISPOSAL_HEADERS = (
    "date",
    "asset",
    "quantityDisposed",
    "proceeds",
    "costBasisConsumed",
    "realizedGainLoss",
    "term",
    "holdingPeriodDays",
    "source",
    "transactionId",
)

HOLDING_HEADERS = (
    "asset",
    "amount",
    "costBasis",
    "averageCost",
    "earliestAcquisition",
    "latestAcquisition",
    "lotCount",
)

ASSET_SUMMARY_HEADERS = (
    "asset",
    "totalProceeds",
    "totalCostBasis",
    "netGainLoss",
    "shortTermGain",
    "shortTermLoss",
    "longTermGain",
    "longTermLoss",
    "disposalCount",
)


@dataclass(frozen=True)
class TaxReport:
    disposals: str
    asset_summary: str
    holdings: str
    summary: str


def _format_date(value: Optional[datetime]) -> str:
    return value.isoformat() if value is not None else ""


def _write(headers: Sequence[str] | None, rows: Iterable[Sequence[str]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    if headers:
        writer.writerow(headers)
    for row in rows:
        writer.writerow(row)
    return output.getvalue()


def _term_label(record_terms: set[HoldingTerm]) -> str:
    if not record_terms:
        return ""
    if record_terms == {HoldingTerm.LONG}:
        return "Long-term"
    if record_terms == {HoldingTerm.SHORT}:
        return "Short-term"
    return "Mixed"


def export_disposals_csv(result: GainsLossesResult, *, include_headers: bool = True) -> str:
    rows = []
    for record in result.disposal_events:
        rows.append(
            [
                _format_date(record.disposal_date),
                record.asset,
                format_decimal(record.quantity_disposed),
                format_decimal(record.proceeds),
                format_decimal(record.cost_basis_consumed),
                format_decimal(record.realized_gain_loss),
                _term_label({c.term for c in record.lots_consumed}),
                str(record.holding_period_days),
                record.source or "",
                record.transaction_id,
            ]
        )
    return _write(DISPOSAL_HEADERS if include_headers else None, rows)


def export_holdings_csv(result: GainsLossesResult, *, include_headers: bool = True) -> str:
    rows = []
    for holding in result.current_holdings:
        rows.append(
            [
                holding.asset,
                format_decimal(holding.total_amount),
                format_decimal(holding.total_cost_basis),
                format_decimal(holding.average_cost),
                _format_date(holding.earliest_acquisition),
                _format_date(holding.latest_acquisition),
                str(len(holding.lots)),
            ]
        )
    return _write(HOLDING_HEADERS if include_headers else None, rows)


def export_asset_summary_csv(result: GainsLossesResult, *, include_headers: bool = True) -> str:
    rows = []
    for item in result.asset_breakdown:
        rows.append(
            [
                item.asset,
                format_decimal(item.total_proceeds),
                format_decimal(item.total_cost_basis),
                format_decimal(item.net_realized_gain_loss),
                format_decimal(item.short_term_gain),
                format_decimal(item.short_term_loss),
                format_decimal(item.long_term_gain),
                format_decimal(item.long_term_loss),
                str(item.disposal_count),
            ]
        )
    if rows:
        summary = result.summary
        rows.append(
            [
                "TOTAL",
                format_decimal(summary.total_proceeds),
                format_decimal(summary.total_cost_basis),
                format_decimal(summary.net_realized_pnl),
                format_decimal(summary.short_term_gain_loss),
                "",
                format_decimal(summary.long_term_gain_loss),
                "",
                str(summary.disposal_count),
            ]
        )
    return _write(ASSET_SUMMARY_HEADERS if include_headers else None, rows)


def export_summary_csv(result: GainsLossesResult) -> str:
    summary = result.summary
    period = f"{_format_date(result.period.start)} - {_format_date(result.period.end)}"
    rows = [
        ["Period", period],
        ["Cost Basis Method", result.method.label],
        ["Total Proceeds", format_decimal(summary.total_proceeds)],
        ["Total Cost Basis", format_decimal(summary.total_cost_basis)],
        ["Total Realized Gains", format_decimal(summary.total_realized_gains)],
        ["Total Realized Losses", format_decimal(summary.total_realized_losses)],
        ["Net Realized Gain/Loss", format_decimal(summary.net_realized_pnl)],
        ["Short-Term Gain/Loss", format_decimal(summary.short_term_gain_loss)],
        ["Long-Term Gain/Loss", format_decimal(summary.long_term_gain_loss)],
        ["Total Disposals", str(len(result.disposal_events))],
        ["Assets Traded", str(len(result.asset_breakdown))],
    ]
    return _write(("metric", "value"), rows)


def export_gains_losses(result: GainsLossesResult) -> str:
    """Download format: the disposals section, a blank line, then the holdings section."""

    return export_disposals_csv(result) + "\n" + export_holdings_csv(result)


def export_tax_report(result: GainsLossesResult) -> TaxReport:
    return TaxReport(
        disposals=export_disposals_csv(result),
        asset_summary=export_asset_summary_csv(result),
        holdings=export_holdings_csv(result),
        summary=export_summary_csv(result),
    )


__all__ = [
    "ASSET_SUMMARY_HEADERS",
    "DISPOSAL_HEADERS",
    "HOLDING_HEADERS",
    "TaxReport",
    "export_asset_summary_csv",
    "export_disposals_csv",
    "export_gains_losses",
    "export_holdings_csv",
    "export_summary_csv",
    "export_tax_report",
]
