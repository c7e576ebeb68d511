"""Maps a peg deviation to a bounded mint/burn amount."""

from __future__ import annotations

from dataclasses import dataclass

from peg_engine.config import TargetingConfig

# Deviation (bps past tolerance) over which the amount ramps from min to max.
SIZING_RAMP_BPS = 1_000


@dataclass(frozen=True)
class OperationSizer:
    """Linear interpolation between min and max operation amounts."""

    peg_tolerance: int
    min_operation_amount: int
    max_operation_amount: int

    @classmethod
    def from_config(cls, config: TargetingConfig) -> "OperationSizer":
        return cls(
            peg_tolerance=config.peg_tolerance,
            min_operation_amount=config.min_operation_amount,
            max_operation_amount=config.max_operation_amount,
        )

    def size(self, deviation_bps: int) -> int:
        if deviation_bps < 0:
            raise ValueError("deviation_bps must be non-negative")

        scale_factor = max(0, deviation_bps - self.peg_tolerance)
        span = self.max_operation_amount - self.min_operation_amount
        amount = self.min_operation_amount + scale_factor * span // SIZING_RAMP_BPS
        return min(amount, self.max_operation_amount)
