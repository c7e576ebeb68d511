"""
Shared fixtures: deterministic collaborators wired around a peg controller.
"""

from __future__ import annotations

from typing import Callable, Optional

import pytest

from peg_engine.config import TargetingConfig, get_default_targeting_config
from peg_engine.execution.collaborators import (
    ROLE_ADMIN,
    ROLE_OPERATOR,
    InMemoryAuthGate,
    InMemoryOracleFeed,
    InMemorySupplyLedger,
)
from peg_engine.execution.controller import PegController
from peg_engine.fixed_point import WAD
from peg_engine.monitoring.events import PegEventLogger

# Midnight UTC, so daily-cap tests start at the beginning of a day bucket.
GENESIS_TS = 1_700_006_400
ENGINE_ACCOUNT = "peg-engine"
ADMIN = "admin-user"
OPERATOR = "operator-user"


@pytest.fixture(autouse=True)
def _fresh_default_config():
    get_default_targeting_config.cache_clear()
    yield
    get_default_targeting_config.cache_clear()


class FakeClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(GENESIS_TS)


@pytest.fixture
def oracle(clock: FakeClock) -> InMemoryOracleFeed:
    return InMemoryOracleFeed(clock=clock)


@pytest.fixture
def ledger() -> InMemorySupplyLedger:
    return InMemorySupplyLedger(balances={ENGINE_ACCOUNT: 1_000_000 * WAD})


@pytest.fixture
def auth() -> InMemoryAuthGate:
    return InMemoryAuthGate({ROLE_ADMIN: {ADMIN}, ROLE_OPERATOR: {OPERATOR}})


@pytest.fixture
def events() -> PegEventLogger:
    return PegEventLogger()


@pytest.fixture
def submit_price(oracle: InMemoryOracleFeed, clock: FakeClock) -> Callable[..., None]:
    """Submit a fresh price stamped with the fake clock's current time."""

    def _submit(value: int, feed: str = "FAIT_USD", confidence: int = 95) -> None:
        oracle.submit(feed, value, timestamp=clock.now, confidence=confidence)

    return _submit


@pytest.fixture
def make_controller(
    clock: FakeClock,
    oracle: InMemoryOracleFeed,
    ledger: InMemorySupplyLedger,
    auth: InMemoryAuthGate,
    events: PegEventLogger,
) -> Callable[..., PegController]:
    def _make(config: Optional[TargetingConfig] = None, **kwargs) -> PegController:
        return PegController(
            initial_target_price=WAD,
            now=clock.now,
            oracle=oracle,
            supply=ledger,
            auth=auth,
            config=config,
            account=ENGINE_ACCOUNT,
            event_logger=events,
            **kwargs,
        )

    return _make


@pytest.fixture
def controller(make_controller: Callable[..., PegController]) -> PegController:
    return make_controller()
