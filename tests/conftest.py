"""Shared fixtures for medauth tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from medauth.core.engine import InMemoryPendingLog, ReconciliationEngine
from medauth.core.ledger import InMemoryLedger
from medauth.core.store import InMemoryMetadataStore

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class StepClock:
    """Deterministic clock that advances by ``step`` on every call."""

    def __init__(self, start: datetime = EPOCH, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def owner() -> str:
    return "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


@pytest.fixture
def admin() -> str:
    return "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


@pytest.fixture
def stranger() -> str:
    return "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"


@pytest.fixture
def make_clock() -> Callable[..., StepClock]:
    """Factory for step clocks with a custom start and step."""
    return StepClock


@pytest.fixture
def clock() -> StepClock:
    """A clock starting at 2024-01-01T00:00:00Z, one second per call."""
    return StepClock()


@pytest.fixture
def ledger(owner: str, clock: StepClock) -> InMemoryLedger:
    """An in-memory ledger owned by ``owner``."""
    return InMemoryLedger(owner, clock=clock)


@pytest.fixture
def store() -> InMemoryMetadataStore:
    return InMemoryMetadataStore()


@pytest.fixture
def pending() -> InMemoryPendingLog:
    return InMemoryPendingLog()


@pytest.fixture
def engine(
    owner: str,
    ledger: InMemoryLedger,
    store: InMemoryMetadataStore,
    pending: InMemoryPendingLog,
    clock: StepClock,
) -> ReconciliationEngine:
    """An engine acting as the ledger owner over in-memory boundaries."""
    return ReconciliationEngine(ledger, store, owner, pending=pending, clock=clock)
