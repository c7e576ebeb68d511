"""Walk through the 1:2 -> 2:1 recovery pattern of level targeting."""

from __future__ import annotations

import argparse
import logging
from decimal import Decimal

from peg_engine.config import TargetingConfig, TargetingMode, get_default_targeting_config
from peg_engine.execution import (
    ROLE_ADMIN,
    ROLE_OPERATOR,
    InMemoryAuthGate,
    InMemoryOracleFeed,
    InMemorySupplyLedger,
    PegController,
)
from peg_engine.fixed_point import SECONDS_PER_DAY, WAD, from_wad, to_wad

OPERATOR = "operator"
START_TS = 1_700_000_000


def _print_status(controller: PegController, now: int, label: str) -> None:
    status = controller.get_peg_status(now)
    stats = controller.get_path_stats()
    print(f"{label}:")
    print(f"  Current price:   ${from_wad(status.current_price):.4f}")
    print(f"  Base target:     ${from_wad(status.base_target):.4f}")
    print(f"  Adjusted target: ${from_wad(status.adjusted_target):.4f}")
    print(f"  Cumulative gap:  {stats.cumulative_gap} bps (closed={stats.gap_closed})")
    print(f"  Gap ratio:       {Decimal(status.gap_ratio) / 1000}")
    print("")


def run_demo(*, undershoot: str, days: int, growth_rate: int, aggressiveness: int) -> None:
    clock = {"now": START_TS}
    oracle = InMemoryOracleFeed(clock=lambda: clock["now"])
    auth = InMemoryAuthGate({ROLE_ADMIN: {OPERATOR}, ROLE_OPERATOR: {OPERATOR}})
    ledger = InMemorySupplyLedger(balances={"peg-engine": 1_000_000 * WAD})
    # PEG_* environment settings apply; the CLI flags override them.
    config = TargetingConfig.model_validate(
        {
            **get_default_targeting_config().model_dump(),
            "targeting_mode": TargetingMode.PRICE_LEVEL_TARGETING,
            "target_growth_rate": growth_rate,
            "catchup_aggressiveness": aggressiveness,
        }
    )
    controller = PegController(
        initial_target_price=WAD,
        now=START_TS,
        oracle=oracle,
        supply=ledger,
        auth=auth,
        config=config,
    )
    feed = config.feed_name

    def submit(price: str) -> None:
        oracle.submit(feed, to_wad(price), timestamp=clock["now"])

    submit("1.00")
    _print_status(controller, clock["now"], "Day 0: initial state")

    for _ in range(days):
        clock["now"] += SECONDS_PER_DAY
        submit(undershoot)
        controller.update_path(clock["now"], caller=OPERATOR)
    _print_status(controller, clock["now"], f"Day {days}: sustained undershoot at ${undershoot}")

    for price in ("1.00", "1.50", "2.00"):
        submit(price)
        _print_status(controller, clock["now"], f"Recovery: price at ${price}")

    print("Level targeting keeps pushing the adjusted target above the base target")
    print("until the cumulative gap is back within tolerance.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Demonstrate level-targeting gap recovery")
    parser.add_argument("--undershoot", type=str, default="0.50", help="Price during the undershoot phase")
    parser.add_argument("--days", type=int, default=10, help="Number of daily undershoot periods")
    parser.add_argument("--growth-rate", type=int, default=200, help="Annual target growth in bps")
    parser.add_argument("--aggressiveness", type=int, default=1000, help="Catch-up alpha scaled by 1000")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    run_demo(
        undershoot=args.undershoot,
        days=args.days,
        growth_rate=args.growth_rate,
        aggressiveness=args.aggressiveness,
    )


if __name__ == "__main__":
    main()
