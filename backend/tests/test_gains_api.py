import asyncio
from contextlib import asynccontextmanager
from decimal import Decimal
from pathlib import Path

from httpx import ASGITransport, AsyncClient

from app.config import AppSettings
from app.db.database import Database
from app.main import create_app

TRANSACTIONS = [
    {"id": "a1", "timestamp": "2024-01-01T00:00:00Z", "kind": "BUY", "asset": "BTC", "quantity": "5", "unitPrice": "10"},
    {"id": "a2", "timestamp": "2024-01-02T00:00:00Z", "kind": "BUY", "asset": "BTC", "quantity": "5", "unitPrice": "12"},
    {"id": "d1", "timestamp": "2024-01-03T00:00:00Z", "kind": "SELL", "asset": "BTC", "quantity": "7", "unitPrice": "20"},
]


def _database(tmp_path: Path) -> Database:
    db_path = tmp_path / "test_gains.db"
    return Database(url=f"sqlite+aiosqlite:///{db_path}")


def _client(database: Database):
    settings = AppSettings(_env_file=None, database_url=database.url)
    app = create_app(database, settings)

    @asynccontextmanager
    async def _manager():
        async with app.router.lifespan_context(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                yield client

    return _manager


def test_health(tmp_path: Path):
    client_manager = _client(_database(tmp_path))

    async def _scenario():
        async with client_manager() as api_client:
            response = await api_client.get("/health")
            assert response.status_code == 200
            assert response.json()["status"] == "ok"

    asyncio.run(_scenario())


def test_gains_per_method(tmp_path: Path):
    client_manager = _client(_database(tmp_path))

    async def _scenario():
        async with client_manager() as api_client:
            for method, expected in (("FIFO", "74"), ("LIFO", "80"), ("AVERAGE_COST", "77")):
                response = await api_client.post("/gains", json={"transactions": TRANSACTIONS, "method": method})
                assert response.status_code == 200
                payload = response.json()
                assert payload["method"] == method
                (disposal,) = payload["disposalEvents"]
                assert Decimal(disposal["costBasisConsumed"]) == Decimal(expected)
                assert Decimal(payload["netRealizedPnl"]) == Decimal("140") - Decimal(expected)
                assert Decimal(payload["currentHoldings"][0]["totalAmount"]) == Decimal("3")
                assert payload["rejected"] == []

    asyncio.run(_scenario())


def test_gains_json_carries_decimals_as_strings(tmp_path: Path):
    client_manager = _client(_database(tmp_path))

    async def _scenario():
        async with client_manager() as api_client:
            records = TRANSACTIONS + [dict(TRANSACTIONS[0], id="far-future", timestamp=1e300)]
            response = await api_client.post("/gains", json={"transactions": records, "method": "FIFO"})
            assert response.status_code == 200
            payload = response.json()
            assert isinstance(payload["netRealizedPnl"], str)
            assert Decimal(payload["netRealizedPnl"]) == Decimal("66")
            assert isinstance(payload["totalRealizedGains"], str)
            assert isinstance(payload["summary"]["totalCostBasis"], str)
            (disposal,) = payload["disposalEvents"]
            assert isinstance(disposal["costBasisConsumed"], str)
            assert Decimal(disposal["costBasisConsumed"]) == Decimal("74")
            assert isinstance(disposal["proceeds"], str)
            assert all(isinstance(item["costBasis"], str) for item in disposal["lotsConsumed"])
            (holding,) = payload["currentHoldings"]
            assert isinstance(holding["totalAmount"], str)
            assert Decimal(holding["totalAmount"]) == Decimal("3")
            (lot,) = holding["lots"]
            for field in ("originalQuantity", "remainingQuantity", "unitCost", "remainingCost"):
                assert isinstance(lot[field], str)
            assert payload["period"]["start"].startswith("2024-01-01T00:00:00")
            assert payload["period"]["end"].startswith("2024-01-03T00:00:00")
            assert [item["recordId"] for item in payload["rejected"]] == ["far-future"]

    asyncio.run(_scenario())


def test_gains_validation_and_error_mapping(tmp_path: Path):
    client_manager = _client(_database(tmp_path))

    async def _scenario():
        async with client_manager() as api_client:
            bad_method = await api_client.post("/gains", json={"transactions": TRANSACTIONS, "method": "fifo"})
            assert bad_method.status_code == 422

            bad_window = await api_client.post(
                "/gains",
                json={"transactions": TRANSACTIONS, "startDate": "2024-02-01", "endDate": "2024-01-01"},
            )
            assert bad_window.status_code == 422

            oversell = TRANSACTIONS[:2] + [dict(TRANSACTIONS[2], quantity="11")]
            insufficient = await api_client.post("/gains", json={"transactions": oversell})
            assert insufficient.status_code == 422
            body = insufficient.json()
            assert body["error"] == "InsufficientLots"
            assert body["asset"] == "BTC"
            assert body["requested"] == "11"
            assert body["available"] == "10"
            assert body["transactionId"] == "d1"

            malformed = TRANSACTIONS[:1] + [dict(TRANSACTIONS[1], quantity="-5")] + TRANSACTIONS[2:]
            rejected = await api_client.post(
                "/gains",
                json={"transactions": malformed, "malformedPolicy": "REJECT"},
            )
            assert rejected.status_code == 400
            assert rejected.json()["index"] == 1

            skipped = await api_client.post(
                "/gains",
                json={"transactions": [TRANSACTIONS[0], dict(TRANSACTIONS[1], kind="LEND")]},
            )
            assert skipped.status_code == 200
            assert skipped.json()["rejected"][0]["recordId"] == "a2"

    asyncio.run(_scenario())


def test_gains_export_and_snapshot(tmp_path: Path):
    client_manager = _client(_database(tmp_path))

    async def _scenario():
        async with client_manager() as api_client:
            export = await api_client.post("/gains/export", json={"transactions": TRANSACTIONS, "method": "LIFO"})
            assert export.status_code == 200
            assert export.headers["content-type"].startswith("text/csv")
            lines = export.text.splitlines()
            assert lines[0].startswith("date,asset,quantityDisposed")
            assert ",80," in lines[1]

            snapshot = await api_client.post(
                "/snapshots",
                json={"transactions": TRANSACTIONS, "asOf": "2024-01-02"},
            )
            assert snapshot.status_code == 200
            payload = snapshot.json()
            assert payload["method"] == "FIFO"
            (holding,) = payload["holdings"]
            assert Decimal(holding["totalAmount"]) == Decimal("10")
            assert Decimal(payload["totalCostBasis"]) == Decimal("110")

    asyncio.run(_scenario())


def test_client_transactions_flow(tmp_path: Path):
    client_manager = _client(_database(tmp_path))

    async def _scenario():
        async with client_manager() as api_client:
            imported = await api_client.post("/clients/acme/transactions", json={"transactions": TRANSACTIONS})
            assert imported.status_code == 201
            assert imported.json()["imported"] == 3

            duplicate = await api_client.post("/clients/acme/transactions", json={"transactions": TRANSACTIONS[:1]})
            assert duplicate.status_code == 409

            listed = await api_client.get("/clients/acme/transactions")
            assert listed.status_code == 200
            assert [item["id"] for item in listed.json()] == ["a1", "a2", "d1"]
            assert Decimal(listed.json()[0]["quantity"]) == Decimal("5")

            gains = await api_client.get("/clients/acme/gains", params={"method": "LIFO"})
            assert gains.status_code == 200
            assert Decimal(gains.json()["disposalEvents"][0]["costBasisConsumed"]) == Decimal("80")

            windowed = await api_client.get(
                "/clients/acme/gains",
                params={"startDate": "2024-01-04", "endDate": "2024-12-31"},
            )
            assert windowed.status_code == 200
            assert windowed.json()["disposalEvents"] == []
            assert Decimal(windowed.json()["currentHoldings"][0]["totalAmount"]) == Decimal("3")

            csv_report = await api_client.get("/clients/acme/gains", params={"format": "csv"})
            assert csv_report.status_code == 200
            assert csv_report.text.startswith("date,asset")

            snapshot = await api_client.get("/clients/acme/snapshot", params={"asOf": "2024-01-01"})
            assert snapshot.status_code == 200
            assert Decimal(snapshot.json()["holdings"][0]["totalAmount"]) == Decimal("5")

            lots = await api_client.get("/clients/acme/assets/btc/lots")
            assert lots.status_code == 200
            assert [lot["transactionId"] for lot in lots.json()] == ["a2"]

            missing = await api_client.get("/clients/nobody/gains")
            assert missing.status_code == 404

    asyncio.run(_scenario())
