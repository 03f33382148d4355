# tests/conftest.py
import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# ensure project root is importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from artcart import config as app_config  # noqa: E402
from artcart.config import Settings  # noqa: E402
from artcart.db.kv_store import MemoryKeyValueStore  # noqa: E402
from artcart.services.cart_manager import create_cart_manager  # noqa: E402
from artcart.services.panel import HtmlCartPanel  # noqa: E402


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualDefer:
    """Collects deferred callbacks instead of scheduling them on a loop."""

    def __init__(self):
        self.calls = []

    def __call__(self, delay, callback):
        self.calls.append((delay, callback))

    def run_all(self):
        calls, self.calls = self.calls, []
        for _, cb in calls:
            cb()
        return len(calls)


class FlakyStore(MemoryKeyValueStore):
    """In-memory store whose writes can be switched off, like a full quota."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail_writes = False
        self.writes = 0

    def set_item(self, key, value):
        if self.fail_writes:
            raise OSError("quota exceeded")
        self.writes += 1
        super().set_item(key, value)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def defer():
    return ManualDefer()


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(DATA_DIR=tmp_path, DEFAULT_CURRENCY="₪")


@pytest.fixture
def make_manager(test_settings, store, clock, defer):
    """
    Build an initialized manager over the shared in-memory store.
    Usage: m = make_manager(); m2 = make_manager()  # two contexts, same store
    """
    def _fn(init=True, **kwargs):
        kwargs.setdefault("store", store)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("defer", defer)
        kwargs.setdefault("panel", HtmlCartPanel())
        manager = create_cart_manager(test_settings, **kwargs)
        if init:
            manager.init()
        return manager
    return _fn


@pytest.fixture
def manager(make_manager):
    return make_manager()


@pytest.fixture
def client(tmp_path, monkeypatch):
    """
    TestClient with the lifespan running against an isolated DATA_DIR.
    """
    monkeypatch.setattr(app_config.settings, "DATA_DIR", Path(tmp_path))
    from artcart.main import app

    with TestClient(app) as c:
        yield c
