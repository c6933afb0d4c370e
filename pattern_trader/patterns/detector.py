"""
Candlestick and breakout pattern detection on the last bar of a trailing window.
Stateless: the same window always yields the same matches, in a fixed order.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from pattern_trader.core.types import Bar, PatternKind, PatternMatch, Signal


@dataclass(frozen=True)
class PatternThresholds:
    """Geometry thresholds. Empirically tuned; override per instance rather than editing."""
    # hammer / inverted hammer
    hammer_shadow_to_body: float = 2.0
    hammer_opposite_shadow_to_body: float = 0.3
    hammer_body_to_range: float = 0.35
    # gravestone doji
    doji_body_to_range: float = 0.1
    doji_upper_to_range: float = 0.6
    doji_lower_to_range: float = 0.1
    # engulfing
    engulfing_body_ratio: float = 1.1
    # evening star
    star_outer_to_middle_body: float = 2.0
    star_middle_body_to_range: float = 0.3
    # breakout
    breakout_lookback: int = 5
    breakout_margin: float = 0.001
    breakout_min_move: float = 0.003


DEFAULT_THRESHOLDS = PatternThresholds()

CONFIDENCE: Dict[PatternKind, int] = {
    PatternKind.HAMMER: 70,
    PatternKind.INVERTED_HAMMER: 65,
    PatternKind.SHOOTING_STAR: 70,
    PatternKind.GRAVESTONE_DOJI: 75,
    PatternKind.BULLISH_ENGULFING: 80,
    PatternKind.BEARISH_ENGULFING: 80,
    PatternKind.EVENING_STAR: 85,
    PatternKind.BULLISH_BREAKOUT: 75,
    PatternKind.BEARISH_BREAKOUT: 75,
}

PATTERN_INFO: Dict[PatternKind, dict] = {
    PatternKind.HAMMER: {
        "name": "Hammer", "signal": Signal.BUY,
        "description": "Bullish reversal: small body, long lower shadow",
    },
    PatternKind.INVERTED_HAMMER: {
        "name": "Inverted Hammer", "signal": Signal.BUY,
        "description": "Bullish reversal: small body, long upper shadow",
    },
    PatternKind.SHOOTING_STAR: {
        "name": "Shooting Star", "signal": Signal.SELL,
        "description": "Bearish reversal: small body, long upper shadow after a rise",
    },
    PatternKind.GRAVESTONE_DOJI: {
        "name": "Gravestone Doji", "signal": Signal.SELL,
        "description": "Bearish doji with a long upper shadow",
    },
    PatternKind.BULLISH_ENGULFING: {
        "name": "Bullish Engulfing", "signal": Signal.BUY,
        "description": "Bullish candle engulfing the prior bearish body",
    },
    PatternKind.BEARISH_ENGULFING: {
        "name": "Bearish Engulfing", "signal": Signal.SELL,
        "description": "Bearish candle engulfing the prior bullish body",
    },
    PatternKind.EVENING_STAR: {
        "name": "Evening Star", "signal": Signal.SELL,
        "description": "Three-candle bearish reversal",
    },
    PatternKind.BULLISH_BREAKOUT: {
        "name": "Bullish Breakout", "signal": Signal.BUY,
        "description": "Close above the recent highs with momentum",
    },
    PatternKind.BEARISH_BREAKOUT: {
        "name": "Bearish Breakout", "signal": Signal.SELL,
        "description": "Close below the recent lows with momentum",
    },
}


def is_hammer(bar: Bar, t: PatternThresholds = DEFAULT_THRESHOLDS) -> bool:
    body, rng = bar.body, bar.range
    if not rng > 0:
        return False
    return (
        bar.lower_shadow >= body * t.hammer_shadow_to_body
        and bar.upper_shadow <= body * t.hammer_opposite_shadow_to_body
        and body <= rng * t.hammer_body_to_range
        and body > 0
    )


def is_inverted_hammer(bar: Bar, t: PatternThresholds = DEFAULT_THRESHOLDS) -> bool:
    body, rng = bar.body, bar.range
    if not rng > 0:
        return False
    return (
        bar.upper_shadow >= body * t.hammer_shadow_to_body
        and bar.lower_shadow <= body * t.hammer_opposite_shadow_to_body
        and body <= rng * t.hammer_body_to_range
        and body > 0
    )


def is_shooting_star(bar: Bar, prev: Bar, t: PatternThresholds = DEFAULT_THRESHOLDS) -> bool:
    """Inverted-hammer shape after a rise (prior bar bullish or opening above its close)."""
    if not is_inverted_hammer(bar, t):
        return False
    return prev.is_bullish or bar.open > prev.close


def is_gravestone_doji(bar: Bar, t: PatternThresholds = DEFAULT_THRESHOLDS) -> bool:
    rng = bar.range
    if not rng > 0:
        return False
    return (
        bar.body <= rng * t.doji_body_to_range
        and bar.upper_shadow >= rng * t.doji_upper_to_range
        and bar.lower_shadow <= rng * t.doji_lower_to_range
    )


def is_bullish_engulfing(bar: Bar, prev: Bar, t: PatternThresholds = DEFAULT_THRESHOLDS) -> bool:
    return (
        prev.is_bearish
        and bar.is_bullish
        and bar.open <= prev.close
        and bar.close >= prev.open
        and bar.body >= prev.body * t.engulfing_body_ratio
        and prev.body > 0
    )


def is_bearish_engulfing(bar: Bar, prev: Bar, t: PatternThresholds = DEFAULT_THRESHOLDS) -> bool:
    return (
        prev.is_bullish
        and bar.is_bearish
        and bar.open >= prev.close
        and bar.close <= prev.open
        and bar.body >= prev.body * t.engulfing_body_ratio
        and prev.body > 0
    )


def is_evening_star(bar: Bar, middle: Bar, first: Bar, t: PatternThresholds = DEFAULT_THRESHOLDS) -> bool:
    ratio = t.star_outer_to_middle_body
    return (
        first.is_bullish
        and first.body > middle.body * ratio
        and middle.body < middle.range * t.star_middle_body_to_range
        and middle.low > first.close
        and bar.is_bearish
        and bar.body > middle.body * ratio
        and bar.close < (first.open + first.close) / 2
    )


def is_bullish_breakout(window: Sequence[Bar], t: PatternThresholds = DEFAULT_THRESHOLDS) -> bool:
    lookback = t.breakout_lookback
    if len(window) < lookback + 1:
        return False
    bar = window[-1]
    highest = max(b.high for b in window[-lookback - 1:-1])
    return (
        bar.close > highest
        and bar.is_bullish
        and (bar.close - bar.open) / bar.open > t.breakout_min_move
        and bar.close > highest * (1 + t.breakout_margin)
    )


def is_bearish_breakout(window: Sequence[Bar], t: PatternThresholds = DEFAULT_THRESHOLDS) -> bool:
    lookback = t.breakout_lookback
    if len(window) < lookback + 1:
        return False
    bar = window[-1]
    lowest = min(b.low for b in window[-lookback - 1:-1])
    return (
        bar.close < lowest
        and bar.is_bearish
        and (bar.open - bar.close) / bar.open > t.breakout_min_move
        and bar.close < lowest * (1 - t.breakout_margin)
    )


def _match(kind: PatternKind, index: int) -> PatternMatch:
    info = PATTERN_INFO[kind]
    return PatternMatch(
        kind=kind,
        signal=info["signal"],
        confidence=CONFIDENCE[kind],
        index=index,
        description=f"{info['name']} detected - {info['description']}",
    )


def detect_patterns(
    window: Sequence[Bar],
    thresholds: PatternThresholds = DEFAULT_THRESHOLDS,
    index: Optional[int] = None,
) -> List[PatternMatch]:
    """
    All patterns completed by the last bar of `window` (non-exclusive).
    Order: single-candle, two-candle, three-candle, breakouts.
    `index` labels the matches; defaults to the last position in the window.
    """
    if not window:
        return []
    t = thresholds
    at = len(window) - 1 if index is None else index
    bar = window[-1]
    prev = window[-2] if len(window) > 1 else None
    first = window[-3] if len(window) > 2 else None
    found: List[PatternMatch] = []

    if is_hammer(bar, t):
        found.append(_match(PatternKind.HAMMER, at))
    if is_inverted_hammer(bar, t) and (prev is None or not prev.is_bullish):
        found.append(_match(PatternKind.INVERTED_HAMMER, at))
    if prev is not None and is_shooting_star(bar, prev, t):
        found.append(_match(PatternKind.SHOOTING_STAR, at))
    if is_gravestone_doji(bar, t):
        found.append(_match(PatternKind.GRAVESTONE_DOJI, at))

    if prev is not None:
        if is_bullish_engulfing(bar, prev, t):
            found.append(_match(PatternKind.BULLISH_ENGULFING, at))
        if is_bearish_engulfing(bar, prev, t):
            found.append(_match(PatternKind.BEARISH_ENGULFING, at))

    if prev is not None and first is not None and is_evening_star(bar, prev, first, t):
        found.append(_match(PatternKind.EVENING_STAR, at))

    if is_bullish_breakout(window, t):
        found.append(_match(PatternKind.BULLISH_BREAKOUT, at))
    if is_bearish_breakout(window, t):
        found.append(_match(PatternKind.BEARISH_BREAKOUT, at))

    return found
