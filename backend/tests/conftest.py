import asyncio
import inspect
import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used in the suite."""

    config.addinivalue_line("markers", "asyncio: mark test as running in an asyncio event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            funcargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
            loop.run_until_complete(test_function(**funcargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


@pytest.fixture
def reference_records() -> list[dict]:
    """Two buys of 5 units (at 10 and 12) followed by a sale of 7 units at 20."""

    return [
        {"id": "a1", "timestamp": "2024-01-01T00:00:00Z", "kind": "BUY", "asset": "BTC", "quantity": "5",
         "unitPrice": "10"},
        {"id": "a2", "timestamp": "2024-01-02T00:00:00Z", "kind": "BUY", "asset": "BTC", "quantity": "5",
         "unitPrice": "12"},
        {"id": "d1", "timestamp": "2024-01-03T00:00:00Z", "kind": "SELL", "asset": "BTC", "quantity": "7",
         "unitPrice": "20"},
    ]


@pytest.fixture
def engine_settings():
    from app.config import AppSettings

    return AppSettings(_env_file=None, database_url="sqlite+aiosqlite:///:memory:")
