"""Target-path arithmetic: growth model, gap ratio and catch-up adjustment."""

from __future__ import annotations

from peg_engine.config import GrowthAccrual, TargetingConfig
from peg_engine.contracts import PathPoint
from peg_engine.fixed_point import BPS_SCALE, RATIO_SCALE, SECONDS_PER_YEAR


def power_approx(base: int, exponent: int, scale: int = RATIO_SCALE) -> int:
    """
    First-order approximation of ``base ** (exponent / scale)`` around ``scale``.

    Linear in the distance from ``scale``; not a real power function once the
    ratio drifts far from 1.0. The result is floored at 1 so it can be used as
    a multiplicative factor.

    With ``exponent > scale`` and ``base`` far enough below ``scale`` (for
    example alpha 2000 and a ratio under 500) the linear term would go to zero
    or below. An unsigned implementation reverts at that point; here the
    factor is clamped to 1, so a heavy overshoot drives the adjusted target
    down to ``base_target / scale`` and the controller mints at its maximum
    size instead of failing.
    """

    if base >= scale:
        result = scale + (base - scale) * exponent // scale
    else:
        result = scale - (scale - base) * exponent // scale
    return max(result, 1)


class TargetCalculator:
    """Stateless calculator bound to a config snapshot and the genesis target."""

    def __init__(self, config: TargetingConfig, genesis_target: int):
        if genesis_target <= 0:
            raise ValueError("genesis_target must be positive")
        self.config = config
        self.genesis_target = genesis_target

    @property
    def path_update_interval(self) -> int:
        return self.config.path_update_interval

    @property
    def periods_per_year(self) -> int:
        return SECONDS_PER_YEAR // self.config.path_update_interval

    @property
    def period_rate_bps(self) -> int:
        """Per-period growth in whole basis points (truncated)."""
        periods = self.periods_per_year
        if periods == 0:
            return self.config.target_growth_rate
        return self.config.target_growth_rate // periods

    def target_value_for_period(self, period: int) -> int:
        """Target value at ``period`` under the linear growth approximation."""

        if period < 0:
            raise ValueError("period must be >= 0")

        if self.config.growth_accrual is GrowthAccrual.FRACTIONAL:
            periods = max(self.periods_per_year, 1)
            denominator = BPS_SCALE * periods
            numerator = denominator + self.config.target_growth_rate * period
            return self.genesis_target * numerator // denominator

        return self.genesis_target * (BPS_SCALE + self.period_rate_bps * period) // BPS_SCALE

    @staticmethod
    def gap_ratio(point: PathPoint) -> int:
        """Target/actual at ``point`` scaled by 1000; above 1000 means undershoot."""

        return point.target_value * RATIO_SCALE // point.actual_value

    def is_gap_closed(self, cumulative_gap: int) -> bool:
        return abs(cumulative_gap) <= self.config.gap_tolerance

    def adjusted_target(self, base_target: int, latest: PathPoint) -> int:
        """Base target pushed in the catch-up direction while the gap stays open."""

        if latest.cumulative_gap == 0 or self.is_gap_closed(latest.cumulative_gap):
            return base_target

        factor = power_approx(
            self.gap_ratio(latest),
            self.config.catchup_aggressiveness,
            RATIO_SCALE,
        )
        return base_target * factor // RATIO_SCALE
