"""
Market regime classification: ADX decides trending vs ranging, +DI/-DI and a
fast/slow SMA pair decide the trend direction.

A position remembers the regime it was opened in. When the regime later flips
to the opposite trend (uptrend -> downtrend for a long, the mirror for a
short) the exit evaluator closes it with regime_change.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from pattern_trader.core.types import Bar, Direction, MarketRegime, Position
from pattern_trader.execution.base import ExecutionClient
from pattern_trader.indicators.cache import IndicatorCache
from pattern_trader.indicators.library import ADX_RANGING, adx_from_bars, sma

logger = logging.getLogger("pattern_trader.risk.regime")


@dataclass(frozen=True)
class RegimeConfig:
    sma_fast: int = 20
    sma_slow: int = 50
    adx_period: int = 14
    adx_trend_threshold: float = 25.0
    lookback: int = 60

    @property
    def min_bars(self) -> int:
        return max(self.lookback, self.sma_slow, 2 * self.adx_period)


DEFAULT_REGIME_CONFIG = RegimeConfig()


@dataclass(frozen=True)
class RegimeAnalysis:
    regime: MarketRegime
    confidence: float
    adx: float
    plus_di: float = 0.0
    minus_di: float = 0.0
    sma_fast: float = float("nan")
    sma_slow: float = float("nan")
    description: str = ""


def detect_regime(bars: Sequence[Bar], config: RegimeConfig = DEFAULT_REGIME_CONFIG) -> RegimeAnalysis:
    """
    Classify the regime at the last bar. Only the trailing `min_bars` bars are
    used. Short history reads as sideways with low confidence.
    """
    if len(bars) < config.min_bars:
        return RegimeAnalysis(
            MarketRegime.SIDEWAYS, 30.0, ADX_RANGING,
            description="Insufficient data for regime detection",
        )
    window = list(bars[-config.min_bars:])
    price = window[-1].close
    fast = float(sma(window, config.sma_fast)[-1])
    slow = float(sma(window, config.sma_slow)[-1])
    trend = adx_from_bars(window, config.adx_period)
    if math.isnan(price) or math.isnan(fast) or math.isnan(slow) or math.isnan(trend.adx):
        return RegimeAnalysis(MarketRegime.SIDEWAYS, 30.0, ADX_RANGING, description="Non-finite inputs")

    value, plus_di, minus_di = trend.adx, trend.plus_di, trend.minus_di
    if value < config.adx_trend_threshold:
        return RegimeAnalysis(
            MarketRegime.SIDEWAYS,
            min(90.0, 50 + (config.adx_trend_threshold - value) * 2),
            value, plus_di, minus_di, fast, slow,
            f"Sideways: ADX {value:.1f} below {config.adx_trend_threshold:g}",
        )
    if plus_di > minus_di and fast > slow and price > fast:
        return RegimeAnalysis(
            MarketRegime.UPTREND, min(95.0, 60 + value), value, plus_di, minus_di, fast, slow,
            f"Uptrend: ADX {value:.1f}, price above both SMAs, +DI > -DI",
        )
    if minus_di > plus_di and fast < slow and price < fast:
        return RegimeAnalysis(
            MarketRegime.DOWNTREND, min(95.0, 60 + value), value, plus_di, minus_di, fast, slow,
            f"Downtrend: ADX {value:.1f}, price below both SMAs, -DI > +DI",
        )
    # mixed SMA picture: lean on the DI spread with capped confidence
    regime = MarketRegime.UPTREND if plus_di > minus_di else MarketRegime.DOWNTREND
    return RegimeAnalysis(
        regime, min(70.0, 40 + value * 0.5), value, plus_di, minus_di, fast, slow,
        f"Weak {regime.value}: ADX {value:.1f}, mixed SMA signals",
    )


def regime_flipped(position: Position, current: Optional[MarketRegime]) -> bool:
    """True when the regime turned against the trend the position was opened in."""
    if current is None or position.entry_regime is None:
        return False
    if position.direction == Direction.LONG:
        return position.entry_regime == MarketRegime.UPTREND and current == MarketRegime.DOWNTREND
    return position.entry_regime == MarketRegime.DOWNTREND and current == MarketRegime.UPTREND


class RegimeTracker:
    """Live regime per symbol from recent klines, cached for the cache's TTL."""

    def __init__(
        self,
        market_data: ExecutionClient,
        cache: IndicatorCache,
        interval: str = "1d",
        config: RegimeConfig = DEFAULT_REGIME_CONFIG,
    ):
        self.market_data = market_data
        self.cache = cache
        self.interval = interval
        self.config = config

    def analyze(self, symbol: str) -> RegimeAnalysis:
        bars = self.market_data.get_klines(symbol, self.interval, self.config.min_bars)
        return detect_regime(bars, self.config)

    def current(self, symbol: str) -> MarketRegime:
        """Raises whatever the market-data client raises (DataGapError on missing data)."""
        def compute() -> MarketRegime:
            analysis = self.analyze(symbol)
            logger.debug("%s regime %s (%.0f%%): %s", symbol, analysis.regime.value,
                         analysis.confidence, analysis.description)
            return analysis.regime
        return self.cache.get_or_compute("regime", symbol, compute, params=(self.interval, self.config))
