"""Cooldown and daily-cap gate for automatic supply operations."""

from __future__ import annotations

from dataclasses import dataclass

from peg_engine.fixed_point import SECONDS_PER_DAY, day_index


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    reason: str
    retry_at: int | None = None


class RateLimiter:
    """Pure function of timestamps and counters; holds no state of its own."""

    @staticmethod
    def evaluate(
        now: int,
        last_operation_ts: int,
        today_count: int,
        cooldown: int,
        daily_cap: int,
    ) -> RateLimitDecision:
        cooldown_ends = last_operation_ts + cooldown
        if now < cooldown_ends:
            return RateLimitDecision(
                allowed=False,
                reason=f"cooldown active for {cooldown_ends - now}s",
                retry_at=cooldown_ends,
            )

        if today_count >= daily_cap:
            next_day = (day_index(now) + 1) * SECONDS_PER_DAY
            return RateLimitDecision(
                allowed=False,
                reason=f"daily operation cap ({daily_cap}) reached",
                retry_at=next_day,
            )

        return RateLimitDecision(allowed=True, reason="within limits")

    @classmethod
    def can_operate(
        cls,
        now: int,
        last_operation_ts: int,
        today_count: int,
        cooldown: int,
        daily_cap: int,
    ) -> bool:
        return cls.evaluate(now, last_operation_ts, today_count, cooldown, daily_cap).allowed

