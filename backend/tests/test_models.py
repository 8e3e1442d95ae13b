from datetime import timezone
from decimal import Decimal

from app.models.transaction import ClientTransaction


def test_created_at_default_is_timezone_aware():
    default = ClientTransaction.__table__.c.created_at.default
    assert default.is_callable
    assert default.arg(None).tzinfo == timezone.utc


def test_as_record_round_trips_through_the_normalizer_shape():
    row = ClientTransaction(
        client_id="alpha",
        external_id="a1",
        kind="BUY",
        asset="BTC",
        quantity=Decimal("1.5"),
        unit_price=Decimal("10"),
    )
    record = row.as_record()
    assert record["id"] == "a1"
    assert record["unitPrice"] == Decimal("10")
    assert record["fee"] is None
