"""Patterns: candlestick and breakout detection."""

from pattern_trader.patterns.detector import (
    CONFIDENCE,
    DEFAULT_THRESHOLDS,
    PATTERN_INFO,
    PatternThresholds,
    detect_patterns,
)

__all__ = [
    "CONFIDENCE",
    "DEFAULT_THRESHOLDS",
    "PATTERN_INFO",
    "PatternThresholds",
    "detect_patterns",
]
