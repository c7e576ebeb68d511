"""Replay a historical price series through a peg controller."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

import numpy as np
import pandas as pd

from peg_engine.config import TargetingConfig
from peg_engine.contracts import OperationStats, SupplyAction
from peg_engine.errors import RateLimited
from peg_engine.execution.collaborators import (
    ROLE_OPERATOR,
    InMemoryAuthGate,
    InMemoryOracleFeed,
    InMemorySupplyLedger,
)
from peg_engine.execution.controller import PegController
from peg_engine.fixed_point import WAD, from_wad, to_wad

logger = logging.getLogger(__name__)

REPLAY_CALLER = "replay"
SKIPPED = "skipped"

TICK_COLUMNS = (
    "timestamp",
    "price",
    "base_target",
    "adjusted_target",
    "deviation_bps",
    "action",
    "amount",
    "cumulative_gap",
    "gap_closed",
    "gap_ratio",
)


@dataclass(frozen=True)
class ReplayResult:
    ticks: pd.DataFrame
    path: pd.DataFrame
    operation_stats: OperationStats


def _epoch_seconds(index_value: Any) -> int:
    if isinstance(index_value, pd.Timestamp):
        if index_value.tzinfo is None:
            index_value = index_value.tz_localize("UTC")
        return int(index_value.timestamp())
    return int(index_value)


def _as_float(value: int) -> float:
    return float(from_wad(value))


def replay_price_series(
    prices: pd.Series,
    *,
    initial_target_price: int = WAD,
    config: Optional[TargetingConfig] = None,
    initial_balance: int = 1_000_000 * WAD,
) -> ReplayResult:
    """
    Feed ``prices`` tick by tick into a controller wired to in-memory collaborators.

    ``prices`` is indexed by a ``DatetimeIndex`` or by unix seconds. Ticks
    rejected by the rate limiter still advance the path and are recorded with
    action ``"skipped"``.
    """

    if prices.empty:
        raise ValueError("prices must not be empty")

    series = prices.sort_index()
    timestamps = [_epoch_seconds(ts) for ts in series.index]
    clock = {"now": timestamps[0]}

    oracle = InMemoryOracleFeed(clock=lambda: clock["now"])
    auth = InMemoryAuthGate({ROLE_OPERATOR: {REPLAY_CALLER}})
    controller_account = "peg-engine"
    ledger = InMemorySupplyLedger(balances={controller_account: initial_balance})
    controller = PegController(
        initial_target_price=initial_target_price,
        now=timestamps[0],
        oracle=oracle,
        supply=ledger,
        auth=auth,
        config=config,
        account=controller_account,
    )
    feed_name = controller.config.feed_name

    rows: list[dict[str, Any]] = []
    for ts, raw_price in zip(timestamps, series.to_numpy()):
        clock["now"] = ts
        price = to_wad(Decimal(str(raw_price)))
        oracle.submit(feed_name, price, timestamp=ts)

        try:
            outcome = controller.maintain_peg(ts, caller=REPLAY_CALLER)
        except RateLimited as exc:
            logger.debug("Tick %s skipped: %s", ts, exc.reason)
            controller.update_path(ts, caller=REPLAY_CALLER)
            status = controller.get_peg_status(ts)
            rows.append(
                {
                    "timestamp": ts,
                    "price": _as_float(status.current_price),
                    "base_target": _as_float(status.base_target),
                    "adjusted_target": _as_float(status.adjusted_target),
                    "deviation_bps": status.deviation_bps,
                    "action": SKIPPED,
                    "amount": 0.0,
                    "cumulative_gap": status.cumulative_gap,
                    "gap_closed": status.gap_closed,
                    "gap_ratio": status.gap_ratio,
                }
            )
            continue

        path_stats = controller.get_path_stats()
        rows.append(
            {
                "timestamp": ts,
                "price": _as_float(outcome.current_price),
                "base_target": _as_float(outcome.base_target),
                "adjusted_target": _as_float(outcome.adjusted_target),
                "deviation_bps": outcome.deviation_bps,
                "action": outcome.action.value,
                "amount": _as_float(outcome.amount),
                "cumulative_gap": outcome.cumulative_gap,
                "gap_closed": path_stats.gap_closed,
                "gap_ratio": outcome.gap_ratio,
            }
        )

    ticks = pd.DataFrame.from_records(rows, columns=list(TICK_COLUMNS))
    ticks["timestamp"] = pd.to_datetime(ticks["timestamp"], unit="s", utc=True)

    logger.info(
        "Replayed %d ticks: %d operations",
        len(ticks),
        int(ticks["action"].isin([SupplyAction.MINT.value, SupplyAction.BURN.value]).sum()),
    )
    return ReplayResult(
        ticks=ticks,
        path=controller.path_frame(),
        operation_stats=controller.get_operation_stats(timestamps[-1]),
    )


def summarize_replay(ticks: pd.DataFrame, *, peg_tolerance_bps: int) -> dict[str, float]:
    """Aggregate tick-level replay output into headline numbers."""

    if ticks.empty:
        return {
            "n_ticks": 0,
            "mean_deviation_bps": 0.0,
            "max_deviation_bps": 0.0,
            "within_tolerance_share": 0.0,
            "total_minted": 0.0,
            "total_burned": 0.0,
            "operations": 0,
            "skipped_ticks": 0,
        }

    deviations = ticks["deviation_bps"].to_numpy(dtype=float)
    actions = ticks["action"].to_numpy()
    amounts = ticks["amount"].to_numpy(dtype=float)
    is_mint = actions == SupplyAction.MINT.value
    is_burn = actions == SupplyAction.BURN.value

    return {
        "n_ticks": int(len(ticks)),
        "mean_deviation_bps": float(np.mean(deviations)),
        "max_deviation_bps": float(np.max(deviations)),
        "within_tolerance_share": float(np.mean(deviations <= peg_tolerance_bps)),
        "total_minted": float(np.sum(amounts[is_mint])),
        "total_burned": float(np.sum(amounts[is_burn])),
        "operations": int(np.count_nonzero(is_mint | is_burn)),
        "skipped_ticks": int(np.count_nonzero(actions == SKIPPED)),
    }
