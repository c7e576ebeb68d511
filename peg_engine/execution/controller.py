"""Level-targeting peg controller.

Each entry point runs under a single re-entrant lock and validates everything
before touching state: path advancement is staged first and committed only
once the oracle reading and any supply call have succeeded, so a failed call
leaves path, counters and config exactly as they were.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

import pandas as pd
from pydantic import ValidationError

from peg_engine.config import (
    GrowthAccrual,
    TargetingConfig,
    TargetingMode,
    get_default_targeting_config,
)
from peg_engine.contracts import (
    OperationOutcome,
    OperationRecord,
    OperationStats,
    OracleReading,
    PathPoint,
    PathStats,
    PegStatus,
    SupplyAction,
)
from peg_engine.errors import (
    InsufficientBalance,
    InvalidParameter,
    InvalidPriceData,
    OperationsDisabled,
    RateLimited,
    SystemPaused,
    Unauthorized,
)
from peg_engine.execution.collaborators import (
    ROLE_ADMIN,
    ROLE_OPERATOR,
    AuthGate,
    OracleFeed,
    SupplyController,
)
from peg_engine.execution.rate_limiter import RateLimiter
from peg_engine.execution.sizer import OperationSizer
from peg_engine.fixed_point import day_index, deviation_bps
from peg_engine.monitoring.events import (
    AUTO_OPERATIONS_TOGGLED,
    GAP_STATUS_CHANGED,
    MANUAL_INTERVENTION,
    PARAMETER_CHANGED,
    PATH_UPDATED,
    PEG_OPERATION,
    STATE_MIGRATED,
    PegEventLogger,
)
from peg_engine.targeting.calculator import TargetCalculator
from peg_engine.targeting.price_path import PricePath

logger = logging.getLogger(__name__)


class PegController:
    """
    Keeps a tracked price near a moving target by minting or burning supply.

    The target follows a growth path; while the cumulative gap between the
    actual and target trajectories stays open, the effective target is pushed
    in the catch-up direction.
    """

    def __init__(
        self,
        *,
        initial_target_price: int,
        now: int,
        oracle: OracleFeed,
        supply: SupplyController,
        auth: AuthGate,
        config: Optional[TargetingConfig] = None,
        account: str = "peg-engine",
        event_logger: Optional[PegEventLogger] = None,
        auto_operations_enabled: bool = True,
    ):
        if initial_target_price <= 0:
            raise InvalidParameter("initial_target_price", "must be positive")

        self._config = config or get_default_targeting_config()
        self._oracle = oracle
        self._supply = supply
        self._auth = auth
        self._account = account
        self._events = event_logger or PegEventLogger()
        self._auto_operations_enabled = auto_operations_enabled
        self._path = PricePath(now, initial_target_price, self._config.gap_tolerance)
        self._record = OperationRecord()
        self._lock = threading.RLock()

        logger.info(
            "Peg controller initialised: mode=%s target=%s growth=%sbps interval=%ss",
            self._config.targeting_mode.name,
            initial_target_price,
            self._config.target_growth_rate,
            self._config.path_update_interval,
        )

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> TargetingConfig:
        return self._config

    @property
    def account(self) -> str:
        return self._account

    @property
    def events(self) -> PegEventLogger:
        return self._events

    @property
    def auto_operations_enabled(self) -> bool:
        return self._auto_operations_enabled

    # ------------------------------------------------------------------ #
    # Peg maintenance
    # ------------------------------------------------------------------ #

    def maintain_peg(self, now: int, *, caller: str) -> OperationOutcome:
        """Advance the path if due and mint/burn toward the adjusted target."""

        with self._lock:
            self._authorize(caller, ROLE_OPERATOR)
            if not self._auto_operations_enabled:
                raise OperationsDisabled()

            config = self._config
            decision = RateLimiter.evaluate(
                now,
                self._record.last_operation_timestamp,
                self._record.operations_on(day_index(now)),
                config.operation_cooldown,
                config.max_daily_operations,
            )
            if not decision.allowed:
                logger.warning("maintain_peg rejected at %s: %s", now, decision.reason)
                raise RateLimited(decision.reason, decision.retry_at)

            reading = self._oracle.get_latest(config.feed_name)
            if not self._is_usable(reading):
                logger.warning(
                    "maintain_peg aborted: invalid %s reading (value=%s ts=%s confidence=%s)",
                    config.feed_name,
                    reading.value,
                    reading.timestamp,
                    reading.confidence,
                )
                raise InvalidPriceData(config.feed_name)

            calculator = self._calculator()
            pending = self._path.preview_advance(now, calculator, reading.value)
            latest = pending[-1] if pending else self._path.latest

            price = reading.value
            base_target = latest.target_value
            adjusted_target = calculator.adjusted_target(base_target, latest)
            gap_ratio = calculator.gap_ratio(latest)
            deviation = deviation_bps(price, adjusted_target)

            if deviation <= config.peg_tolerance:
                flipped = self._commit_path(pending)
                self._emit_path_events(pending, flipped, now)
                logger.debug(
                    "Peg within tolerance: price=%s adjusted_target=%s deviation=%dbps",
                    price,
                    adjusted_target,
                    deviation,
                )
                return OperationOutcome(
                    action=SupplyAction.NONE,
                    amount=0,
                    current_price=price,
                    base_target=base_target,
                    adjusted_target=adjusted_target,
                    deviation_bps=deviation,
                    gap_ratio=gap_ratio,
                    cumulative_gap=latest.cumulative_gap,
                    periods_advanced=len(pending),
                )

            requested = OperationSizer.from_config(config).size(deviation)
            if price > adjusted_target:
                action = SupplyAction.MINT
                self._supply.mint(self._account, requested)
                executed = requested
            else:
                action = SupplyAction.BURN
                available = self._supply.balance_of(self._account)
                executed = min(requested, available)
                if executed < requested:
                    logger.warning(
                        "Burn clamped to available balance: requested=%s available=%s",
                        requested,
                        available,
                    )
                if executed > 0:
                    self._supply.burn(self._account, executed)

            # All state lands before any event is emitted; a failing sink must
            # not leave the ledger ahead of the counters.
            flipped = self._commit_path(pending)
            self._record_operation(action, executed, now)
            self._emit_path_events(pending, flipped, now)

            payload = {
                "action": action.value,
                "amount": executed,
                "requested_amount": requested,
                "current_price": price,
                "base_target": base_target,
                "adjusted_target": adjusted_target,
                "deviation_bps": deviation,
                "gap_ratio": gap_ratio,
                "cumulative_gap": latest.cumulative_gap,
            }
            self._events.log(PEG_OPERATION, payload, now)
            logger.info(
                "Peg operation %s amount=%s deviation=%dbps gap_ratio=%d",
                action.value,
                executed,
                deviation,
                gap_ratio,
            )

            return OperationOutcome(
                action=action,
                amount=executed,
                current_price=price,
                base_target=base_target,
                adjusted_target=adjusted_target,
                deviation_bps=deviation,
                gap_ratio=gap_ratio,
                cumulative_gap=latest.cumulative_gap,
                periods_advanced=len(pending),
                requested_amount=requested,
            )

    def update_path(self, now: int, *, caller: str) -> tuple[PathPoint, ...]:
        """Append any due path periods; an invalid oracle carries the last actual forward."""

        with self._lock:
            self._authorize(caller, ROLE_OPERATOR)
            config = self._config
            reading = self._oracle.get_latest(config.feed_name)
            observed: Optional[int] = reading.value
            if not self._is_usable(reading):
                logger.warning(
                    "Oracle %s invalid during path update; reusing previous actual value",
                    config.feed_name,
                )
                observed = None

            pending = self._path.preview_advance(now, self._calculator(), observed)
            flipped = self._commit_path(pending)
            self._emit_path_events(pending, flipped, now)
            return pending

    def manual_intervention(
        self,
        action: SupplyAction | str,
        amount: int,
        reason: str,
        *,
        now: int,
        caller: str,
    ) -> None:
        """Privileged mint/burn that bypasses deviation and rate-limit checks."""

        with self._lock:
            self._authorize(caller, ROLE_ADMIN)
            try:
                action = SupplyAction(action)
            except ValueError as exc:
                raise InvalidParameter("action", f"unknown action {action!r}") from exc
            if action is SupplyAction.NONE:
                raise InvalidParameter("action", "must be mint or burn")
            if not reason or not reason.strip():
                raise InvalidParameter("reason", "a justification is required")
            if amount <= 0:
                raise InvalidParameter("amount", "must be positive")

            if action is SupplyAction.MINT:
                self._supply.mint(self._account, amount)
            else:
                available = self._supply.balance_of(self._account)
                if amount > available:
                    raise InsufficientBalance(self._account, amount, available)
                self._supply.burn(self._account, amount)

            self._record_operation(action, amount, now)
            self._events.log(
                MANUAL_INTERVENTION,
                {"action": action.value, "amount": amount, "reason": reason, "caller": caller},
                now,
            )
            logger.warning("Manual %s of %s by %s: %s", action.value, amount, caller, reason)

    def migrate_state(
        self,
        total_minted: int,
        total_burned: int,
        operation_count: int,
        last_operation_timestamp: int,
        *,
        caller: str,
        now: Optional[int] = None,
    ) -> None:
        """Overwrite operation counters with values carried over from a previous controller."""

        with self._lock:
            self._authorize(caller, ROLE_ADMIN)
            record = self._record
            record.total_minted = total_minted
            record.total_burned = total_burned
            record.operation_count = operation_count
            record.last_operation_timestamp = last_operation_timestamp
            self._events.log(
                STATE_MIGRATED,
                {
                    "total_minted": total_minted,
                    "total_burned": total_burned,
                    "operation_count": operation_count,
                    "last_operation_timestamp": last_operation_timestamp,
                },
                now,
            )
            logger.info("Operation counters migrated: count=%s", operation_count)

    # ------------------------------------------------------------------ #
    # Administration
    # ------------------------------------------------------------------ #

    def set_targeting_mode(
        self, mode: TargetingMode | int, *, caller: str, now: Optional[int] = None
    ) -> TargetingConfig:
        return self._update_config(caller, now, targeting_mode=mode)

    def set_target_growth_rate(
        self, rate_bps: int, *, caller: str, now: Optional[int] = None
    ) -> TargetingConfig:
        return self._update_config(caller, now, target_growth_rate=rate_bps)

    def set_path_update_interval(
        self, seconds: int, *, caller: str, now: Optional[int] = None
    ) -> TargetingConfig:
        return self._update_config(caller, now, path_update_interval=seconds)

    def set_catchup_aggressiveness(
        self, alpha: int, *, caller: str, now: Optional[int] = None
    ) -> TargetingConfig:
        return self._update_config(caller, now, catchup_aggressiveness=alpha)

    def set_gap_tolerance(
        self, tolerance_bps: int, *, caller: str, now: Optional[int] = None
    ) -> TargetingConfig:
        return self._update_config(caller, now, gap_tolerance=tolerance_bps)

    def set_peg_tolerance(
        self, tolerance_bps: int, *, caller: str, now: Optional[int] = None
    ) -> TargetingConfig:
        return self._update_config(caller, now, peg_tolerance=tolerance_bps)

    def set_operation_amounts(
        self, min_amount: int, max_amount: int, *, caller: str, now: Optional[int] = None
    ) -> TargetingConfig:
        return self._update_config(
            caller,
            now,
            min_operation_amount=min_amount,
            max_operation_amount=max_amount,
        )

    def set_operation_cooldown(
        self, seconds: int, *, caller: str, now: Optional[int] = None
    ) -> TargetingConfig:
        return self._update_config(caller, now, operation_cooldown=seconds)

    def set_max_daily_operations(
        self, cap: int, *, caller: str, now: Optional[int] = None
    ) -> TargetingConfig:
        return self._update_config(caller, now, max_daily_operations=cap)

    def set_growth_accrual(
        self, accrual: GrowthAccrual | str, *, caller: str, now: Optional[int] = None
    ) -> TargetingConfig:
        return self._update_config(caller, now, growth_accrual=accrual)

    def update_path_parameters(
        self,
        growth_rate: int,
        update_interval: int,
        gap_tolerance: int,
        aggressiveness: int,
        *,
        caller: str,
        now: Optional[int] = None,
    ) -> TargetingConfig:
        return self._update_config(
            caller,
            now,
            target_growth_rate=growth_rate,
            path_update_interval=update_interval,
            gap_tolerance=gap_tolerance,
            catchup_aggressiveness=aggressiveness,
        )

    def update_operation_parameters(
        self,
        peg_tolerance: int,
        min_amount: int,
        max_amount: int,
        cooldown: int,
        *,
        caller: str,
        now: Optional[int] = None,
    ) -> TargetingConfig:
        return self._update_config(
            caller,
            now,
            peg_tolerance=peg_tolerance,
            min_operation_amount=min_amount,
            max_operation_amount=max_amount,
            operation_cooldown=cooldown,
        )

    def set_auto_operations(
        self, enabled: bool, *, caller: str, now: Optional[int] = None
    ) -> None:
        with self._lock:
            self._authorize(caller, ROLE_ADMIN)
            if enabled == self._auto_operations_enabled:
                return
            self._auto_operations_enabled = enabled
            self._events.log(AUTO_OPERATIONS_TOGGLED, {"enabled": enabled, "caller": caller}, now)
            logger.info("Automatic peg operations %s by %s", "enabled" if enabled else "disabled", caller)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def get_peg_status(self, now: int) -> PegStatus:
        with self._lock:
            config = self._config
            reading = self._oracle.get_latest(config.feed_name)
            if not self._is_usable(reading):
                raise InvalidPriceData(config.feed_name)

            calculator = self._calculator()
            latest = self._path.latest
            base_target = latest.target_value
            adjusted_target = calculator.adjusted_target(base_target, latest)
            deviation = deviation_bps(reading.value, adjusted_target)
            can_operate = (
                self._auto_operations_enabled
                and not self._auth.is_paused()
                and RateLimiter.can_operate(
                    now,
                    self._record.last_operation_timestamp,
                    self._record.operations_on(day_index(now)),
                    config.operation_cooldown,
                    config.max_daily_operations,
                )
            )
            return PegStatus(
                current_price=reading.value,
                base_target=base_target,
                adjusted_target=adjusted_target,
                deviation_bps=deviation,
                peg_maintained=deviation <= config.peg_tolerance,
                can_operate=can_operate,
                cumulative_gap=self._path.cumulative_gap,
                gap_closed=self._path.is_gap_closed,
                gap_ratio=calculator.gap_ratio(latest),
            )

    def get_path_point(self, period: int) -> PathPoint:
        with self._lock:
            try:
                return self._path.point(period)
            except IndexError as exc:
                raise InvalidParameter("period", str(exc)) from exc

    def get_path_stats(self) -> PathStats:
        with self._lock:
            return PathStats(
                total_periods=self._path.total_periods,
                current_period=self._path.current_period,
                cumulative_gap=self._path.cumulative_gap,
                gap_closed=self._path.is_gap_closed,
                targeting_mode=self._config.targeting_mode,
            )

    def get_operation_stats(self, now: int) -> OperationStats:
        with self._lock:
            record = self._record
            return OperationStats(
                total_operations=record.operation_count,
                total_minted=record.total_minted,
                total_burned=record.total_burned,
                last_operation_timestamp=record.last_operation_timestamp,
                operations_today=record.operations_on(day_index(now)),
            )

    def path_history(self) -> tuple[PathPoint, ...]:
        with self._lock:
            return self._path.points()

    def path_frame(self) -> pd.DataFrame:
        with self._lock:
            return self._path.to_frame()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _authorize(self, caller: str, role: str) -> None:
        if not self._auth.check(caller, role):
            logger.warning("Rejected call from %s: missing role %s", caller, role)
            raise Unauthorized(caller, role)
        if self._auth.is_paused():
            raise SystemPaused()

    def _calculator(self) -> TargetCalculator:
        return TargetCalculator(self._config, self._path.genesis.target_value)

    @staticmethod
    def _is_usable(reading: OracleReading) -> bool:
        return reading.is_valid and reading.value > 0

    def _commit_path(self, pending: tuple[PathPoint, ...]) -> bool:
        """Append staged points; returns True when the gap-closed flag flipped."""
        return self._path.extend(pending, self._config.gap_tolerance)

    def _emit_path_events(self, pending: tuple[PathPoint, ...], flipped: bool, now: int) -> None:
        if not pending:
            return
        latest = self._path.latest
        self._events.log(
            PATH_UPDATED,
            {
                "periods_added": len(pending),
                "current_period": self._path.current_period,
                "target_value": latest.target_value,
                "actual_value": latest.actual_value,
                "cumulative_gap": latest.cumulative_gap,
            },
            now,
        )
        if flipped:
            self._emit_gap_status(now)

    def _emit_gap_status(self, now: Optional[int]) -> None:
        closed = self._path.is_gap_closed
        self._events.log(
            GAP_STATUS_CHANGED,
            {"gap_closed": closed, "cumulative_gap": self._path.cumulative_gap},
            now,
        )
        logger.info(
            "Cumulative gap %s at %d bps",
            "closed" if closed else "opened",
            self._path.cumulative_gap,
        )

    def _record_operation(self, action: SupplyAction, amount: int, now: int) -> None:
        record = self._record
        if action is SupplyAction.MINT:
            record.total_minted += amount
        elif action is SupplyAction.BURN:
            record.total_burned += amount
        record.operation_count += 1
        record.last_operation_timestamp = now
        day = day_index(now)
        record.operations_by_day[day] = record.operations_by_day.get(day, 0) + 1

    def _update_config(self, caller: str, now: Optional[int], **changes: Any) -> TargetingConfig:
        with self._lock:
            self._authorize(caller, ROLE_ADMIN)
            previous = self._config
            candidate = {**previous.model_dump(), **changes}
            try:
                updated = TargetingConfig.model_validate(candidate)
            except ValidationError as exc:
                raise self._invalid_parameter(exc, changes) from exc

            self._config = updated
            flipped = self._path.refresh_gap_status(updated.gap_tolerance)
            for name in changes:
                old_value = getattr(previous, name)
                new_value = getattr(updated, name)
                if old_value == new_value:
                    continue
                self._events.log(
                    PARAMETER_CHANGED,
                    {"parameter": name, "old": _jsonable(old_value), "new": _jsonable(new_value)},
                    now,
                )
                logger.info("Parameter %s changed: %s -> %s", name, old_value, new_value)

            if flipped:
                self._emit_gap_status(now)
            return updated

    @staticmethod
    def _invalid_parameter(exc: ValidationError, changes: dict[str, Any]) -> InvalidParameter:
        first = exc.errors()[0]
        loc = first.get("loc") or ()
        if loc:
            field = str(loc[0])
        elif "max_operation_amount" in changes:
            field = "max_operation_amount"
        else:
            field = next(iter(changes), "config")
        return InvalidParameter(field, first.get("msg", str(exc)))


def _jsonable(value: Any) -> Any:
    if isinstance(value, TargetingMode):
        return value.name
    if isinstance(value, GrowthAccrual):
        return value.value
    return value
