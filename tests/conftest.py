import os
import sys
import pytest

# ensure workspace root is on sys.path so our application packages can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from store.client import _fallback, _fallback_lists


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture(autouse=True)
def clear_fallback(monkeypatch):
    """Wipe the in-memory redis fallback before and after each test and force
    the store onto it so tests never attempt network.
    """
    _fallback.clear()
    _fallback_lists.clear()

    import store.client as client

    async def no_redis():
        return None

    monkeypatch.setattr(client, "get_redis", no_redis)

    yield

    _fallback.clear()
    _fallback_lists.clear()


@pytest.fixture(autouse=True)
def fresh_guard():
    """Give every test its own process-wide guard service."""
    from services import guard_service

    guard_service.reset_guard()
    yield
    guard_service.reset_guard()


@pytest.fixture
def clock():
    return FakeClock()
