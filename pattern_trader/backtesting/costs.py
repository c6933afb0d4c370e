"""
Transaction costs for the day-trading simulator: flat commission per round
trip plus slippage scaled by recent market volatility.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Sequence

BASE_VOLATILITY_PCT = 1.5
MAX_MULTIPLIER = 10.0
# (average daily range %, minimum multiplier)
VOLATILITY_TIERS = ((8.0, 10.0), (6.0, 6.0), (4.5, 4.0), (3.0, 2.0))


def volatility_multiplier(avg_range_pct: float) -> float:
    """
    Slippage multiplier from the trailing average daily range (percent).
    Proportional to the base 1.5% (never below 1x), bumped up to discrete
    tiers in volatile regimes, capped at 10x.
    """
    if avg_range_pct is None or math.isnan(avg_range_pct) or avg_range_pct <= 0:
        return 1.0
    mult = max(1.0, avg_range_pct / BASE_VOLATILITY_PCT)
    for threshold, tier in VOLATILITY_TIERS:
        if avg_range_pct >= threshold:
            mult = max(mult, tier)
            break
    return min(mult, MAX_MULTIPLIER)


def average_range_pct(daily_ranges: Sequence[float]) -> float:
    """Mean of daily (high - low) / close values in percent; NaN when empty."""
    values = [r for r in daily_ranges if not math.isnan(r)]
    if not values:
        return float("nan")
    return sum(values) / len(values)


@dataclass(frozen=True)
class CostModel:
    commission: float = 1.0
    slippage_pct: float = 0.05

    def slippage(self, notional: float, multiplier: float = 1.0) -> float:
        """Slippage for one leg."""
        return abs(notional) * self.slippage_pct / 100.0 * multiplier

    def round_trip(self, entry_notional: float, exit_notional: float, multiplier: float = 1.0) -> float:
        """Commission plus slippage on both legs."""
        return (
            self.commission
            + self.slippage(entry_notional, multiplier)
            + self.slippage(exit_notional, multiplier)
        )
