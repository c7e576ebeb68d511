"""Level-targeting peg maintenance engine."""

from peg_engine.config import (
    GrowthAccrual,
    TargetingConfig,
    TargetingMode,
    get_default_targeting_config,
    targeting_config_from_env,
)
from peg_engine.contracts import (
    OperationOutcome,
    OperationStats,
    OracleReading,
    PathPoint,
    PathStats,
    PegStatus,
    SupplyAction,
)
from peg_engine.errors import PegError
from peg_engine.execution import (
    InMemoryAuthGate,
    InMemoryOracleFeed,
    InMemorySupplyLedger,
    PegController,
)
from peg_engine.fixed_point import WAD, from_wad, to_wad

__all__ = [
    "GrowthAccrual",
    "InMemoryAuthGate",
    "InMemoryOracleFeed",
    "InMemorySupplyLedger",
    "OperationOutcome",
    "OperationStats",
    "OracleReading",
    "PathPoint",
    "PathStats",
    "PegController",
    "PegError",
    "PegStatus",
    "SupplyAction",
    "TargetingConfig",
    "TargetingMode",
    "WAD",
    "from_wad",
    "get_default_targeting_config",
    "targeting_config_from_env",
    "to_wad",
]
