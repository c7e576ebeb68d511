"""Target path tracking and level-targeting arithmetic."""

from peg_engine.targeting.calculator import TargetCalculator, power_approx
from peg_engine.targeting.price_path import PricePath

__all__ = [
    "PricePath",
    "TargetCalculator",
    "power_approx",
]
