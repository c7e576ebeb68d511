from __future__ import annotations

import pytest

from peg_engine.errors import InsufficientBalance, MintCapExceeded
from peg_engine.execution.collaborators import (
    ROLE_ADMIN,
    InMemoryAuthGate,
    InMemoryOracleFeed,
    InMemorySupplyLedger,
)
from peg_engine.fixed_point import WAD


class _Clock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now


def test_oracle_missing_feed_is_invalid() -> None:
    reading = InMemoryOracleFeed(clock=_Clock(1_000)).get_latest("FAIT_USD")

    assert reading.is_valid is False
    assert reading.value == 0


def test_oracle_staleness_window() -> None:
    clock = _Clock(10_000)
    oracle = InMemoryOracleFeed(clock=clock)
    oracle.submit("FAIT_USD", WAD)

    assert oracle.get_latest("FAIT_USD").is_valid is True
    clock.now += 3_600
    assert oracle.get_latest("FAIT_USD").is_valid is True
    clock.now += 1
    reading = oracle.get_latest("FAIT_USD")
    assert reading.is_valid is False
    assert reading.value == WAD
    assert reading.timestamp == 10_000


def test_oracle_confidence_threshold() -> None:
    oracle = InMemoryOracleFeed(clock=_Clock(0))
    oracle.submit("FAIT_USD", WAD, timestamp=0, confidence=69)
    assert oracle.get_latest("FAIT_USD").is_valid is False

    oracle.submit("FAIT_USD", WAD, timestamp=0, confidence=70)
    assert oracle.get_latest("FAIT_USD").is_valid is True


def test_oracle_non_positive_value_is_invalid() -> None:
    oracle = InMemoryOracleFeed(clock=_Clock(0))
    oracle.submit("FAIT_USD", 0, timestamp=0)
    assert oracle.get_latest("FAIT_USD").is_valid is False


def test_oracle_rejects_confidence_outside_percent_range() -> None:
    oracle = InMemoryOracleFeed(clock=_Clock(0))
    with pytest.raises(ValueError):
        oracle.submit("FAIT_USD", WAD, confidence=101)


def test_ledger_mint_and_burn() -> None:
    ledger = InMemorySupplyLedger(balances={"engine": 10 * WAD})

    ledger.mint("engine", 5 * WAD)
    ledger.burn("engine", 3 * WAD)

    assert ledger.balance_of("engine") == 12 * WAD
    assert ledger.total_supply == 12 * WAD
    assert ledger.mint_calls == [("engine", 5 * WAD)]
    assert ledger.burn_calls == [("engine", 3 * WAD)]
    assert ledger.balance_of("nobody") == 0


def test_ledger_enforces_max_supply() -> None:
    ledger = InMemorySupplyLedger(max_supply=100 * WAD, balances={"engine": 90 * WAD})

    with pytest.raises(MintCapExceeded):
        ledger.mint("engine", 11 * WAD)
    assert ledger.balance_of("engine") == 90 * WAD

    ledger.mint("engine", 10 * WAD)
    assert ledger.total_supply == 100 * WAD


def test_ledger_rejects_over_burn_and_non_positive_amounts() -> None:
    ledger = InMemorySupplyLedger(balances={"engine": WAD})

    with pytest.raises(InsufficientBalance) as excinfo:
        ledger.burn("engine", 2 * WAD)
    assert excinfo.value.available == WAD

    with pytest.raises(ValueError):
        ledger.mint("engine", 0)
    with pytest.raises(ValueError):
        ledger.burn("engine", 0)


def test_auth_gate_roles_and_pause() -> None:
    gate = InMemoryAuthGate()
    assert gate.check("alice", ROLE_ADMIN) is False

    gate.grant_role(ROLE_ADMIN, "alice")
    assert gate.check("alice", ROLE_ADMIN) is True

    gate.revoke_role(ROLE_ADMIN, "alice")
    assert gate.check("alice", ROLE_ADMIN) is False

    gate.pause()
    assert gate.is_paused() is True
    gate.unpause()
    assert gate.is_paused() is False
