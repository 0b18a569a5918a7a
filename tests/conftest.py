"""Shared test fixtures for the sign-in test suite."""

from functools import partial

import pytest

from auth.adopter import SessionAdopter
from auth.config import QRLoginConfig
from auth.poller import Poller
from auth.security_logger import SecurityLogger
from auth.session import SessionStore
from clients.memory_store import MemoryStore


USER_CENTER_URL = "https://uc.test.local"


class FakeClock:
    """Monotonic clock that only moves when a poller waits or a test advances it."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.waits: list[float] = []

    def __call__(self) -> float:
        return self.now

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        self.now += seconds
        return False

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# CONFIG / CLOCK
# =============================================================================


@pytest.fixture
def config() -> QRLoginConfig:
    """Config pointed at the mocked user center."""
    return QRLoginConfig(user_center_url=USER_CENTER_URL)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_poller_factory(clock):
    """Poller factory running on the fake clock."""
    return partial(Poller, clock=clock, wait=clock.wait)


# =============================================================================
# STORAGE / SESSION
# =============================================================================


@pytest.fixture
def storage() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def security_logger() -> SecurityLogger:
    return SecurityLogger()


@pytest.fixture
def store(storage) -> SessionStore:
    """Fresh, empty SessionStore per test."""
    return SessionStore(storage)


@pytest.fixture
def adopter(store, security_logger) -> SessionAdopter:
    return SessionAdopter(store, security_logger)
