"""Append-only ledger of target vs actual snapshots with cumulative gap tracking."""

from __future__ import annotations

import logging
from typing import Optional

import pandas as pd

from peg_engine.contracts import PathPoint
from peg_engine.fixed_point import from_wad, signed_gap_bps
from peg_engine.targeting.calculator import TargetCalculator

logger = logging.getLogger(__name__)

PATH_FRAME_COLUMNS = (
    "period",
    "period_timestamp",
    "target_value",
    "actual_value",
    "cumulative_gap",
)


class PricePath:
    """
    Ordered history of ``PathPoint`` snapshots starting at a genesis point.

    Period boundaries are spaced exactly ``path_update_interval`` apart from
    genesis; partial intervals are carried over to the next call.
    """

    def __init__(self, genesis_timestamp: int, initial_target_price: int, gap_tolerance: int = 0):
        genesis = PathPoint(
            period_timestamp=genesis_timestamp,
            target_value=initial_target_price,
            actual_value=initial_target_price,
            cumulative_gap=0,
        )
        self._points: list[PathPoint] = [genesis]
        self._gap_closed = abs(genesis.cumulative_gap) <= gap_tolerance

    @property
    def genesis(self) -> PathPoint:
        return self._points[0]

    @property
    def latest(self) -> PathPoint:
        return self._points[-1]

    @property
    def current_period(self) -> int:
        return len(self._points) - 1

    @property
    def total_periods(self) -> int:
        return len(self._points)

    @property
    def cumulative_gap(self) -> int:
        return self.latest.cumulative_gap

    @property
    def is_gap_closed(self) -> bool:
        return self._gap_closed

    def point(self, period: int) -> PathPoint:
        if period < 0 or period >= len(self._points):
            raise IndexError(f"period {period} out of range [0, {len(self._points) - 1}]")
        return self._points[period]

    def points(self) -> tuple[PathPoint, ...]:
        return tuple(self._points)

    def preview_advance(
        self,
        now: int,
        calculator: TargetCalculator,
        observed_value: Optional[int] = None,
    ) -> tuple[PathPoint, ...]:
        """
        Points that ``advance_if_due`` would append at ``now``, without mutating.

        ``observed_value`` is reused for every synthesized period; ``None``
        carries the previous actual value forward.
        """

        interval = calculator.path_update_interval
        latest = self.latest
        elapsed = now - latest.period_timestamp
        if elapsed < interval:
            return ()

        periods_to_add = elapsed // interval
        pending: list[PathPoint] = []
        previous = latest
        period = self.current_period

        for _ in range(periods_to_add):
            period += 1
            target = calculator.target_value_for_period(period)
            actual = observed_value if observed_value is not None else previous.actual_value
            gap = previous.cumulative_gap + signed_gap_bps(actual, target)
            previous = PathPoint(
                period_timestamp=previous.period_timestamp + interval,
                target_value=target,
                actual_value=actual,
                cumulative_gap=gap,
            )
            pending.append(previous)

        return tuple(pending)

    def extend(self, points: tuple[PathPoint, ...], gap_tolerance: int) -> bool:
        """
        Commit previewed points. Returns True when the gap-closed flag flipped.
        """

        if not points:
            return False

        expected = self.latest.period_timestamp
        for point in points:
            if point.period_timestamp <= expected:
                raise ValueError("path points must have strictly increasing timestamps")
            expected = point.period_timestamp

        self._points.extend(points)
        logger.info(
            "Path advanced %d period(s) to period %d, cumulative gap %d bps",
            len(points),
            self.current_period,
            self.cumulative_gap,
        )
        return self.refresh_gap_status(gap_tolerance)

    def advance_if_due(
        self,
        now: int,
        calculator: TargetCalculator,
        observed_value: Optional[int] = None,
    ) -> tuple[PathPoint, ...]:
        points = self.preview_advance(now, calculator, observed_value)
        self.extend(points, calculator.config.gap_tolerance)
        return points

    def refresh_gap_status(self, gap_tolerance: int) -> bool:
        closed = abs(self.cumulative_gap) <= gap_tolerance
        changed = closed != self._gap_closed
        self._gap_closed = closed
        return changed

    def to_frame(self) -> pd.DataFrame:
        """Path history as a DataFrame with values converted to floats."""

        records = [
            {
                "period": idx,
                "period_timestamp": pd.Timestamp(point.period_timestamp, unit="s", tz="UTC"),
                "target_value": float(from_wad(point.target_value)),
                "actual_value": float(from_wad(point.actual_value)),
                "cumulative_gap": point.cumulative_gap,
            }
            for idx, point in enumerate(self._points)
        ]
        return pd.DataFrame.from_records(records, columns=list(PATH_FRAME_COLUMNS))
