from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cost_basis.errors import DivisionByZeroError
from cost_basis.ledger import AVERAGE_COST_LOT_ID, LotLedger
from cost_basis.models import CostBasisMethod

DAY_1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
DAY_2 = datetime(2024, 1, 2, tzinfo=timezone.utc)


def ledger_with_two_lots(method: CostBasisMethod) -> LotLedger:
    ledger = LotLedger("BTC", method)
    ledger.record_acquisition(Decimal("5"), Decimal("10"), Decimal("0"), DAY_1, transaction_id="a1")
    ledger.record_acquisition(Decimal("5"), Decimal("12"), Decimal("0"), DAY_2, transaction_id="a2")
    return ledger


def test_lot_ids_increase_per_ledger():
    ledger = ledger_with_two_lots(CostBasisMethod.FIFO)
    assert [lot.lot_id for lot in ledger.open_lots()] == [1, 2]
    assert ledger.available_quantity() == Decimal("10")
    assert ledger.total_cost() == Decimal("110")


def test_fifo_consumes_oldest_first():
    ledger = ledger_with_two_lots(CostBasisMethod.FIFO)
    taken = ledger.consume(Decimal("7"))
    assert [(lot.transaction_id, qty, cost) for lot, qty, cost in taken] == [
        ("a1", Decimal("5"), Decimal("50")),
        ("a2", Decimal("2"), Decimal("24")),
    ]
    remaining = ledger.open_lots()
    assert len(remaining) == 1
    assert remaining[0].transaction_id == "a2"
    assert remaining[0].remaining_quantity == Decimal("3")


def test_lifo_consumes_newest_first():
    ledger = ledger_with_two_lots(CostBasisMethod.LIFO)
    taken = ledger.consume(Decimal("7"))
    assert [(lot.transaction_id, qty, cost) for lot, qty, cost in taken] == [
        ("a2", Decimal("5"), Decimal("60")),
        ("a1", Decimal("2"), Decimal("20")),
    ]
    remaining = ledger.open_lots()
    assert [lot.transaction_id for lot in remaining] == ["a1"]
    assert remaining[0].remaining_quantity == Decimal("3")


def test_acquisition_fee_is_capitalized_into_unit_cost():
    ledger = LotLedger("ETH", CostBasisMethod.FIFO)
    lot = ledger.record_acquisition(Decimal("4"), Decimal("10"), Decimal("2"), DAY_1)
    assert lot.unit_cost == Decimal("10.5")
    assert ledger.total_cost() == Decimal("42")


def test_acquisition_requires_positive_quantity():
    ledger = LotLedger("ETH", CostBasisMethod.FIFO)
    with pytest.raises(ValueError):
        ledger.record_acquisition(Decimal("0"), Decimal("10"), Decimal("0"), DAY_1)


def test_average_cost_bucket_pools_acquisitions():
    ledger = ledger_with_two_lots(CostBasisMethod.AVERAGE_COST)
    assert ledger.uses_bucket
    assert ledger.bucket.unit_cost == Decimal("11")
    assert ledger.reduce_bucket(Decimal("7")) == Decimal("77")
    assert ledger.available_quantity() == Decimal("3")
    assert ledger.total_cost() == Decimal("33")
    (lot,) = ledger.open_lots()
    assert lot.lot_id == AVERAGE_COST_LOT_ID
    assert lot.acquisition_date == DAY_1


def test_average_cost_full_disposal_leaves_no_residue():
    ledger = LotLedger("SOL", CostBasisMethod.AVERAGE_COST)
    ledger.record_acquisition(Decimal("3"), Decimal("0"), Decimal("10"), DAY_1)
    first = ledger.reduce_bucket(Decimal("1"))
    assert first == Decimal("3.333333333333333333")
    second = ledger.reduce_bucket(Decimal("2"))
    assert first + second == Decimal("10")
    assert ledger.is_empty()
    assert ledger.total_cost() == Decimal("0")


@pytest.mark.parametrize("method", [CostBasisMethod.FIFO, CostBasisMethod.LIFO])
def test_emptying_a_lot_releases_its_exact_cost(method):
    ledger = LotLedger("SOL", method)
    ledger.record_acquisition(Decimal("3"), Decimal("0"), Decimal("10"), DAY_1)
    ((_, _, first),) = ledger.consume(Decimal("1"))
    assert first == Decimal("3.333333333333333333")
    assert ledger.total_cost() == Decimal("6.666666666666666667")
    ((_, _, second),) = ledger.consume(Decimal("2"))
    assert first + second == Decimal("10")
    assert ledger.is_empty()


def test_average_cost_ledger_rejects_lot_consumption():
    ledger = ledger_with_two_lots(CostBasisMethod.AVERAGE_COST)
    with pytest.raises(TypeError):
        ledger.consume(Decimal("1"))


def test_empty_bucket_reduction_is_division_by_zero():
    ledger = LotLedger("SOL", CostBasisMethod.AVERAGE_COST)
    with pytest.raises(DivisionByZeroError):
        ledger.reduce_bucket(Decimal("1"))


def test_holding_aggregates_open_lots():
    ledger = ledger_with_two_lots(CostBasisMethod.FIFO)
    holding = ledger.holding()
    assert holding is not None
    assert holding.total_amount == Decimal("10")
    assert holding.total_cost_basis == Decimal("110")
    assert holding.average_cost == Decimal("11")
    assert holding.earliest_acquisition == DAY_1
    assert holding.latest_acquisition == DAY_2

    ledger.consume(Decimal("10"))
    assert ledger.holding() is None
