"""Error taxonomy for peg-engine entry points."""

from __future__ import annotations


class PegError(Exception):
    """Base class for every failure surfaced by the peg controller."""


class Unauthorized(PegError):
    def __init__(self, caller: str, role: str):
        super().__init__(f"Caller {caller!r} lacks role {role!r}")
        self.caller = caller
        self.role = role


class SystemPaused(PegError):
    def __init__(self) -> None:
        super().__init__("System is paused")


class OperationsDisabled(PegError):
    def __init__(self) -> None:
        super().__init__("Automatic peg operations are disabled")


class RateLimited(PegError):
    """Cooldown or daily cap not yet satisfied. Retry on the next tick."""

    def __init__(self, reason: str, retry_at: int | None = None):
        super().__init__(f"Rate limited: {reason}")
        self.reason = reason
        self.retry_at = retry_at


class InvalidPriceData(PegError):
    def __init__(self, feed_name: str, detail: str = "oracle reported invalid data"):
        super().__init__(f"Invalid price data for {feed_name}: {detail}")
        self.feed_name = feed_name


class InvalidParameter(PegError):
    """An administrative update or query argument violated its bound."""

    def __init__(self, field: str, message: str):
        super().__init__(f"Invalid {field}: {message}")
        self.field = field
        self.message = message


class InsufficientBalance(PegError):
    def __init__(self, holder: str, requested: int, available: int):
        super().__init__(
            f"Insufficient balance for {holder}: requested {requested}, available {available}"
        )
        self.holder = holder
        self.requested = requested
        self.available = available


class MintCapExceeded(PegError):
    def __init__(self, requested: int, max_supply: int, total_supply: int):
        super().__init__(
            f"Minting {requested} would exceed max supply {max_supply} (current {total_supply})"
        )
        self.requested = requested
        self.max_supply = max_supply
        self.total_supply = total_supply


__all__ = [
    "InsufficientBalance",
    "InvalidParameter",
    "InvalidPriceData",
    "MintCapExceeded",
    "OperationsDisabled",
    "PegError",
    "RateLimited",
    "SystemPaused",
    "Unauthorized",
]
