"""Fixed-point helpers shared by the peg engine.

Prices and token amounts are plain ints carrying 18 fractional digits.
Conversions go through ``Decimal`` so string inputs such as ``"0.9"`` map to
exact integer values.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from typing import Union

WAD = 10**18
BPS_SCALE = 10_000
RATIO_SCALE = 1_000
SECONDS_PER_DAY = 86_400
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

_WAD_DECIMAL = Decimal(WAD)

Number = Union[int, str, Decimal]


def to_wad(value: Number) -> int:
    """Convert a human-readable amount (``"1.25"``) to an 18-decimal int."""

    if isinstance(value, float):
        raise TypeError("Use str or Decimal for fixed-point inputs, not float")
    scaled = (Decimal(value) * _WAD_DECIMAL).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


def from_wad(value: int) -> Decimal:
    """Convert an 18-decimal int back to a ``Decimal``."""

    return Decimal(value) / _WAD_DECIMAL


def trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero for signed operands."""

    if denominator == 0:
        raise ZeroDivisionError("fixed-point division by zero")
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def signed_gap_bps(actual: int, target: int) -> int:
    """Signed deviation of ``actual`` from ``target`` in basis points."""

    return trunc_div((actual - target) * BPS_SCALE, target)


def deviation_bps(price: int, reference: int) -> int:
    """Absolute deviation of ``price`` from ``reference`` in basis points."""

    return abs(price - reference) * BPS_SCALE // reference


def day_index(timestamp: int) -> int:
    """UTC day bucket for a unix timestamp."""

    return timestamp // SECONDS_PER_DAY
