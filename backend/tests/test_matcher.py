from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cost_basis.errors import InsufficientLots
from cost_basis.ledger import LotLedger
from cost_basis.matcher import holding_period_days, holding_term, match_disposal
from cost_basis.models import (
    Classification,
    CostBasisMethod,
    HoldingTerm,
    OversellPolicy,
    TransactionEvent,
    TransactionKind,
)


def utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def sell(quantity: str, price: str, when: datetime, fee: str | None = None, event_id: str = "d1") -> TransactionEvent:
    return TransactionEvent(
        id=event_id,
        timestamp=when,
        asset="BTC",
        kind=TransactionKind.SELL,
        quantity=Decimal(quantity),
        classification=Classification.DISPOSAL,
        unit_price=Decimal(price),
        fee=Decimal(fee) if fee is not None else None,
    )


def build_ledger(method: CostBasisMethod, first: datetime = utc(2024, 1, 1), second: datetime = utc(2024, 1, 2)):
    ledger = LotLedger("BTC", method)
    ledger.record_acquisition(Decimal("5"), Decimal("10"), Decimal("0"), first, transaction_id="a1")
    ledger.record_acquisition(Decimal("5"), Decimal("12"), Decimal("0"), second, transaction_id="a2")
    return ledger


@pytest.mark.parametrize(
    ("method", "expected_cost"),
    [
        (CostBasisMethod.FIFO, Decimal("74")),
        (CostBasisMethod.LIFO, Decimal("80")),
        (CostBasisMethod.AVERAGE_COST, Decimal("77")),
    ],
)
def test_cost_basis_consumed_per_method(method, expected_cost):
    record = match_disposal(build_ledger(method), sell("7", "20", utc(2024, 1, 3)))
    assert record.cost_basis_consumed == expected_cost
    assert record.proceeds == Decimal("140")
    assert record.realized_gain_loss == Decimal("140") - expected_cost
    assert record.method is method


def test_fifo_proceeds_are_split_pro_rata_over_lots():
    record = match_disposal(build_ledger(CostBasisMethod.FIFO), sell("7", "20", utc(2024, 1, 3)))
    assert [c.transaction_id for c in record.lots_consumed] == ["a1", "a2"]
    assert [c.proceeds for c in record.lots_consumed] == [Decimal("100"), Decimal("40")]
    assert [c.gain_loss for c in record.lots_consumed] == [Decimal("50"), Decimal("16")]
    assert sum(c.proceeds for c in record.lots_consumed) == record.proceeds


def test_disposal_fee_reduces_proceeds():
    record = match_disposal(build_ledger(CostBasisMethod.FIFO), sell("7", "20", utc(2024, 1, 3), fee="4"))
    assert record.proceeds == Decimal("136")
    assert record.cost_basis_consumed == Decimal("74")
    assert record.realized_gain_loss == Decimal("62")


def test_oversell_raises_before_touching_the_ledger():
    ledger = build_ledger(CostBasisMethod.FIFO)
    with pytest.raises(InsufficientLots) as exc_info:
        match_disposal(ledger, sell("11", "20", utc(2024, 1, 3), event_id="too-many"))
    error = exc_info.value
    assert error.asset == "BTC"
    assert error.requested == Decimal("11")
    assert error.available == Decimal("10")
    assert error.shortfall == Decimal("1")
    assert error.transaction_id == "too-many"
    assert ledger.available_quantity() == Decimal("10")


def test_disposing_exactly_the_holding_empties_the_ledger():
    ledger = build_ledger(CostBasisMethod.LIFO)
    record = match_disposal(ledger, sell("10", "20", utc(2024, 1, 3)))
    assert record.cost_basis_consumed == Decimal("110")
    assert ledger.is_empty()


def test_zero_cost_basis_policy_books_unmatched_remainder():
    ledger = build_ledger(CostBasisMethod.FIFO)
    record = match_disposal(
        ledger,
        sell("12", "20", utc(2024, 1, 3)),
        oversell_policy=OversellPolicy.ZERO_COST_BASIS,
    )
    assert record.unmatched_quantity == Decimal("2")
    assert record.cost_basis_consumed == Decimal("110")
    assert record.proceeds == Decimal("240")
    assert record.realized_gain_loss == Decimal("130")
    assert record.lots_consumed[-1].lot_id is None
    assert record.lots_consumed[-1].cost_basis == Decimal("0")
    assert ledger.is_empty()


def test_holding_term_threshold_is_exclusive():
    assert holding_period_days(utc(2023, 1, 1), utc(2024, 1, 1)) == 365
    assert holding_term(365) is HoldingTerm.SHORT
    assert holding_term(366) is HoldingTerm.LONG
    assert holding_period_days(None, utc(2024, 1, 1)) == 0


def test_disposal_spanning_long_and_short_lots():
    ledger = build_ledger(CostBasisMethod.FIFO, first=utc(2022, 1, 1), second=utc(2024, 1, 1))
    record = match_disposal(ledger, sell("10", "20", utc(2024, 3, 1)))
    assert [c.term for c in record.lots_consumed] == [HoldingTerm.LONG, HoldingTerm.SHORT]
    assert record.long_term_gain_loss == Decimal("50")
    assert record.short_term_gain_loss == Decimal("40")
    assert not record.is_long_term
    assert record.holding_period_days > 365


def test_long_term_threshold_is_configurable():
    ledger = build_ledger(CostBasisMethod.FIFO)
    record = match_disposal(ledger, sell("5", "20", utc(2024, 2, 1)), long_term_threshold_days=30)
    assert record.is_long_term
    assert record.long_term_gain_loss == Decimal("50")
