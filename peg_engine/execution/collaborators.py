"""Collaborator interfaces consumed by the peg controller.

The controller never talks to a ledger, oracle network or permission system
directly; it depends only on the three Protocols below. The in-memory classes
are deterministic implementations used by tests, replays and demos.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from peg_engine.contracts import OracleReading
from peg_engine.errors import InsufficientBalance, MintCapExceeded
from peg_engine.fixed_point import WAD

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_OPERATOR = "operator"

DEFAULT_ORACLE_MAX_AGE_SECONDS = 3_600
DEFAULT_ORACLE_MIN_CONFIDENCE = 70
DEFAULT_MAX_SUPPLY = 100_000_000 * WAD


class OracleFeed(Protocol):
    """Aggregated price source. Must flag stale or low-confidence data invalid."""

    def get_latest(self, feed_name: str) -> OracleReading:
        ...


class SupplyController(Protocol):
    """Token supply boundary. Failures are raised, never partially applied."""

    def mint(self, to: str, amount: int) -> None:
        ...

    def burn(self, holder: str, amount: int) -> None:
        ...

    def balance_of(self, holder: str) -> int:
        ...


class AuthGate(Protocol):
    """Permission and circuit-breaker checks consulted before every mutation."""

    def check(self, caller: str, role: str) -> bool:
        ...

    def is_paused(self) -> bool:
        ...


class InMemoryOracleFeed:
    """Single-value-per-feed oracle with staleness and confidence filtering."""

    def __init__(
        self,
        *,
        max_age_seconds: int = DEFAULT_ORACLE_MAX_AGE_SECONDS,
        min_confidence: int = DEFAULT_ORACLE_MIN_CONFIDENCE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_age_seconds = max_age_seconds
        self.min_confidence = min_confidence
        self._clock = clock
        self._latest: dict[str, tuple[int, int, int]] = {}

    def submit(
        self,
        feed_name: str,
        value: int,
        *,
        timestamp: int | None = None,
        confidence: int = 95,
    ) -> None:
        if not 0 <= confidence <= 100:
            raise ValueError("confidence must be within [0, 100]")
        ts = int(self._clock()) if timestamp is None else int(timestamp)
        self._latest[feed_name] = (int(value), ts, int(confidence))

    def get_latest(self, feed_name: str) -> OracleReading:
        entry = self._latest.get(feed_name)
        if entry is None:
            return OracleReading(value=0, timestamp=0, confidence=0, is_valid=False)

        value, ts, confidence = entry
        age = int(self._clock()) - ts
        is_valid = (
            value > 0
            and age <= self.max_age_seconds
            and confidence >= self.min_confidence
        )
        return OracleReading(value=value, timestamp=ts, confidence=confidence, is_valid=is_valid)


class InMemorySupplyLedger:
    """Balance ledger with a hard max-supply cap."""

    def __init__(
        self,
        *,
        max_supply: int = DEFAULT_MAX_SUPPLY,
        balances: dict[str, int] | None = None,
    ) -> None:
        self.max_supply = max_supply
        self._balances: dict[str, int] = dict(balances or {})
        self.mint_calls: list[tuple[str, int]] = []
        self.burn_calls: list[tuple[str, int]] = []

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    def mint(self, to: str, amount: int) -> None:
        if amount <= 0:
            raise ValueError("mint amount must be positive")
        supply = self.total_supply
        if supply + amount > self.max_supply:
            raise MintCapExceeded(amount, self.max_supply, supply)
        self._balances[to] = self._balances.get(to, 0) + amount
        self.mint_calls.append((to, amount))

    def burn(self, holder: str, amount: int) -> None:
        if amount <= 0:
            raise ValueError("burn amount must be positive")
        available = self._balances.get(holder, 0)
        if amount > available:
            raise InsufficientBalance(holder, amount, available)
        self._balances[holder] = available - amount
        self.burn_calls.append((holder, amount))

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)


class InMemoryAuthGate:
    """Role table plus a pause switch."""

    def __init__(self, roles: dict[str, set[str]] | None = None) -> None:
        self._roles: dict[str, set[str]] = {
            role: set(members) for role, members in (roles or {}).items()
        }
        self._paused = False

    def grant_role(self, role: str, account: str) -> None:
        self._roles.setdefault(role, set()).add(account)

    def revoke_role(self, role: str, account: str) -> None:
        self._roles.get(role, set()).discard(account)

    def check(self, caller: str, role: str) -> bool:
        return caller in self._roles.get(role, set())

    def pause(self) -> None:
        self._paused = True
        logger.warning("Auth gate paused")

    def unpause(self) -> None:
        self._paused = False
        logger.info("Auth gate unpaused")

    def is_paused(self) -> bool:
        return self._paused
