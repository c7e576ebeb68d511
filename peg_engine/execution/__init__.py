"""Peg controller, operation sizing, rate limiting and collaborator boundaries."""

from peg_engine.execution.collaborators import (
    ROLE_ADMIN,
    ROLE_OPERATOR,
    AuthGate,
    InMemoryAuthGate,
    InMemoryOracleFeed,
    InMemorySupplyLedger,
    OracleFeed,
    SupplyController,
)
from peg_engine.execution.controller import PegController
from peg_engine.execution.rate_limiter import RateLimitDecision, RateLimiter
from peg_engine.execution.sizer import OperationSizer

__all__ = [
    "AuthGate",
    "InMemoryAuthGate",
    "InMemoryOracleFeed",
    "InMemorySupplyLedger",
    "OperationSizer",
    "OracleFeed",
    "PegController",
    "ROLE_ADMIN",
    "ROLE_OPERATOR",
    "RateLimitDecision",
    "RateLimiter",
    "SupplyController",
]
