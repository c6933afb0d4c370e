"""Indicators: pure series functions and the scanner's TTL cache."""

from pattern_trader.indicators.library import (
    AdxResult,
    BollingerResult,
    MacdResult,
    adx,
    adx_from_bars,
    bollinger_bands,
    closes,
    ema,
    macd,
    rsi,
    sma,
    volume_ratio,
)
from pattern_trader.indicators.cache import IndicatorCache

__all__ = [
    "AdxResult",
    "BollingerResult",
    "MacdResult",
    "adx",
    "adx_from_bars",
    "bollinger_bands",
    "closes",
    "ema",
    "macd",
    "rsi",
    "sma",
    "volume_ratio",
    "IndicatorCache",
]
