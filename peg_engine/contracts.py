"""Typed contracts exchanged between peg-engine components and callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from peg_engine.config import TargetingMode


class SupplyAction(str, Enum):
    """Supply adjustment taken by a maintenance call."""

    NONE = "none"
    MINT = "mint"
    BURN = "burn"


@dataclass(frozen=True)
class PathPoint:
    """Snapshot of target vs actual value at one path period boundary."""

    period_timestamp: int
    target_value: int
    actual_value: int
    cumulative_gap: int

    def __post_init__(self) -> None:
        if self.target_value <= 0:
            raise ValueError("target_value must be positive")
        if self.actual_value <= 0:
            raise ValueError("actual_value must be positive")


@dataclass(frozen=True)
class OracleReading:
    """Latest aggregated value for a feed as reported by the oracle."""

    value: int
    timestamp: int
    confidence: int
    is_valid: bool


@dataclass
class OperationRecord:
    """Aggregate supply-operation counters owned by the controller."""

    total_minted: int = 0
    total_burned: int = 0
    operation_count: int = 0
    last_operation_timestamp: int = 0
    operations_by_day: dict[int, int] = field(default_factory=dict)

    def operations_on(self, day: int) -> int:
        return self.operations_by_day.get(day, 0)


@dataclass(frozen=True)
class PegStatus:
    current_price: int
    base_target: int
    adjusted_target: int
    deviation_bps: int
    peg_maintained: bool
    can_operate: bool
    cumulative_gap: int
    gap_closed: bool
    gap_ratio: int


@dataclass(frozen=True)
class PathStats:
    total_periods: int
    current_period: int
    cumulative_gap: int
    gap_closed: bool
    targeting_mode: TargetingMode


@dataclass(frozen=True)
class OperationStats:
    total_operations: int
    total_minted: int
    total_burned: int
    last_operation_timestamp: int
    operations_today: int


@dataclass(frozen=True)
class OperationOutcome:
    """Result of a successful ``maintain_peg`` call."""

    action: SupplyAction
    amount: int
    current_price: int
    base_target: int
    adjusted_target: int
    deviation_bps: int
    gap_ratio: int
    cumulative_gap: int
    periods_advanced: int = 0
    requested_amount: int = 0

    @property
    def performed(self) -> bool:
        return self.action is not SupplyAction.NONE


__all__ = [
    "OperationOutcome",
    "OperationRecord",
    "OperationStats",
    "OracleReading",
    "PathPoint",
    "PathStats",
    "PegStatus",
    "SupplyAction",
]
