"""Targeting configuration for the level-targeting peg controller.

``TargetingConfig`` captures every admin-mutable parameter. Each field carries
its own bound so a candidate config either validates as a whole or is rejected
before the controller swaps it in.
"""

from __future__ import annotations

import os
from enum import Enum, IntEnum
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from peg_engine.fixed_point import WAD, to_wad

MIN_PATH_UPDATE_INTERVAL = 3_600
MIN_OPERATION_COOLDOWN = 60
MAX_GROWTH_RATE_BPS = 1_000
MAX_CATCHUP_AGGRESSIVENESS = 2_000
MAX_TOLERANCE_BPS = 1_000


class TargetingMode(IntEnum):
    """Monetary targeting regime. Values match the on-chain enum ordering."""

    FAIT = 0
    PRICE_LEVEL_TARGETING = 1
    NOMINAL_GDP_LEVEL_TARGETING = 2

    @property
    def feed_name(self) -> str:
        if self is TargetingMode.NOMINAL_GDP_LEVEL_TARGETING:
            return "NGDP_USD"
        return "FAIT_USD"


class GrowthAccrual(str, Enum):
    """How sub-basis-point per-period growth is handled."""

    TRUNCATE = "truncate"
    FRACTIONAL = "fractional"


class TargetingConfig(BaseModel):
    """
    Immutable peg-controller parameters.

    Amounts are 18-decimal fixed-point ints; tolerances and rates are basis
    points; ``catchup_aggressiveness`` is scaled by 1000.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    targeting_mode: TargetingMode = TargetingMode.PRICE_LEVEL_TARGETING
    target_growth_rate: int = Field(
        default=200,
        ge=0,
        le=MAX_GROWTH_RATE_BPS,
        description="Annual target growth in basis points.",
    )
    path_update_interval: int = Field(
        default=86_400,
        ge=MIN_PATH_UPDATE_INTERVAL,
        description="Seconds between path snapshots.",
    )
    catchup_aggressiveness: int = Field(
        default=1_000,
        ge=0,
        le=MAX_CATCHUP_AGGRESSIVENESS,
        description="Catch-up exponent alpha scaled by 1000 (1000 == 1.0).",
    )
    gap_tolerance: int = Field(
        default=100,
        ge=0,
        le=MAX_TOLERANCE_BPS,
        description="Cumulative gap (bps) at or below which the gap counts as closed.",
    )
    peg_tolerance: int = Field(
        default=100,
        ge=0,
        le=MAX_TOLERANCE_BPS,
        description="Deviation (bps) at or below which no operation fires.",
    )
    min_operation_amount: int = Field(default=1_000 * WAD, gt=0)
    max_operation_amount: int = Field(default=100_000 * WAD, gt=0)
    operation_cooldown: int = Field(default=300, ge=MIN_OPERATION_COOLDOWN)
    max_daily_operations: int = Field(default=24, gt=0)
    growth_accrual: GrowthAccrual = GrowthAccrual.TRUNCATE

    @model_validator(mode="after")
    def _check_operation_bounds(self) -> "TargetingConfig":
        if self.max_operation_amount < self.min_operation_amount:
            raise ValueError("max_operation_amount must be >= min_operation_amount")
        return self

    @property
    def feed_name(self) -> str:
        return self.targeting_mode.feed_name

    def serialize(self) -> Dict[str, object]:
        """JSON-friendly representation for audit logs."""
        data = self.model_dump(mode="json")
        data["feed_name"] = self.feed_name
        return data


_ENV_INT_FIELDS = {
    "PEG_TARGET_GROWTH_RATE": "target_growth_rate",
    "PEG_PATH_UPDATE_INTERVAL": "path_update_interval",
    "PEG_CATCHUP_AGGRESSIVENESS": "catchup_aggressiveness",
    "PEG_GAP_TOLERANCE": "gap_tolerance",
    "PEG_PEG_TOLERANCE": "peg_tolerance",
    "PEG_OPERATION_COOLDOWN": "operation_cooldown",
    "PEG_MAX_DAILY_OPERATIONS": "max_daily_operations",
}

# Amount variables are expressed in whole tokens, e.g. PEG_MIN_OPERATION_AMOUNT=1000.
_ENV_AMOUNT_FIELDS = {
    "PEG_MIN_OPERATION_AMOUNT": "min_operation_amount",
    "PEG_MAX_OPERATION_AMOUNT": "max_operation_amount",
}


def _parse_mode(raw: str) -> TargetingMode:
    raw = raw.strip()
    if raw.isdigit():
        return TargetingMode(int(raw))
    aliases = {
        "FAIT": TargetingMode.FAIT,
        "PLT": TargetingMode.PRICE_LEVEL_TARGETING,
        "NGDPLT": TargetingMode.NOMINAL_GDP_LEVEL_TARGETING,
    }
    key = raw.upper()
    if key in aliases:
        return aliases[key]
    return TargetingMode[key]


def targeting_config_from_env(environ: Optional[Mapping[str, str]] = None) -> TargetingConfig:
    """Build a config from ``PEG_*`` environment variables; unset keys keep defaults."""

    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}

    mode = env.get("PEG_TARGETING_MODE")
    if mode:
        values["targeting_mode"] = _parse_mode(mode)

    for key, field_name in _ENV_INT_FIELDS.items():
        raw = env.get(key)
        if raw:
            values[field_name] = int(raw)

    for key, field_name in _ENV_AMOUNT_FIELDS.items():
        raw = env.get(key)
        if raw:
            values[field_name] = to_wad(raw)

    accrual = env.get("PEG_GROWTH_ACCRUAL")
    if accrual:
        values["growth_accrual"] = GrowthAccrual(accrual.strip().lower())

    return TargetingConfig(**values)


@lru_cache(maxsize=1)
def get_default_targeting_config() -> TargetingConfig:
    """Return the process-wide default config resolved from the environment."""

    return targeting_config_from_env()


__all__ = [
    "GrowthAccrual",
    "MAX_CATCHUP_AGGRESSIVENESS",
    "MAX_GROWTH_RATE_BPS",
    "MAX_TOLERANCE_BPS",
    "MIN_OPERATION_COOLDOWN",
    "MIN_PATH_UPDATE_INTERVAL",
    "TargetingConfig",
    "TargetingMode",
    "get_default_targeting_config",
    "targeting_config_from_env",
]
