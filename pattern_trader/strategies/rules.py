"""
Rule semantics shared by the backtest and the live scanner: what a directive
does to a position, and the entry filters (confidence, RSI, volume, cooldown).
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from pattern_trader.core.types import (
    Direction,
    Directive,
    OrderSide,
    PatternKind,
    PatternMatch,
    Rule,
    Signal,
)


class RuleAction(str, Enum):
    OPEN_LONG = "open_long"
    CLOSE_LONG = "close_long"
    OPEN_SHORT = "open_short"
    CLOSE_SHORT = "close_short"

    @property
    def opens(self) -> bool:
        return self in (RuleAction.OPEN_LONG, RuleAction.OPEN_SHORT)

    @property
    def direction(self) -> Direction:
        if self in (RuleAction.OPEN_LONG, RuleAction.CLOSE_LONG):
            return Direction.LONG
        return Direction.SHORT


def action_for(directive: Directive) -> RuleAction:
    """Map every directive to exactly one position action."""
    if directive == Directive.BUY:
        return RuleAction.OPEN_LONG
    if directive == Directive.SELL:
        return RuleAction.CLOSE_LONG
    if directive == Directive.SHORT:
        return RuleAction.OPEN_SHORT
    if directive == Directive.COVER:
        return RuleAction.CLOSE_SHORT
    raise ValueError(f"unhandled directive: {directive!r}")


def order_side_for(action: RuleAction) -> OrderSide:
    if action == RuleAction.OPEN_LONG:
        return OrderSide.BUY
    if action == RuleAction.CLOSE_LONG:
        return OrderSide.SELL
    if action == RuleAction.OPEN_SHORT:
        return OrderSide.SHORT
    if action == RuleAction.CLOSE_SHORT:
        return OrderSide.COVER
    raise ValueError(f"unhandled action: {action!r}")


def closing_side(direction: Direction) -> OrderSide:
    return OrderSide.SELL if direction == Direction.LONG else OrderSide.COVER


def alert_signal(match: PatternMatch, rule: Optional[Rule]) -> Signal:
    """The rule's directive decides the alert signal; without a rule the pattern does."""
    if rule is None:
        return match.signal
    action = action_for(rule.directive)
    if action == RuleAction.OPEN_LONG:
        return Signal.BUY
    if action == RuleAction.OPEN_SHORT:
        return Signal.SHORT
    return Signal.SELL


def find_rule(rules: Iterable[Rule], symbol: str, kind: PatternKind) -> Optional[Rule]:
    """First enabled rule for this symbol and pattern kind."""
    symbol = symbol.upper()
    for rule in rules:
        if rule.enabled and rule.symbol == symbol and rule.pattern == kind:
            return rule
    return None


@dataclass(frozen=True)
class FilterResult:
    passed: bool
    reason: str = ""


PASSED = FilterResult(True)


def check_confidence(rule: Rule, confidence: int) -> FilterResult:
    minimum = rule.filters.min_confidence
    if minimum is not None and confidence < minimum:
        return FilterResult(False, f"confidence {confidence} < min {minimum}")
    return PASSED


def check_rsi(rule: Rule, rsi_value: Optional[float]) -> FilterResult:
    f = rule.filters.rsi_filter
    if not f.enabled:
        return PASSED
    if rsi_value is None or math.isnan(rsi_value):
        return FilterResult(False, "not enough data to calculate RSI")
    if f.min_rsi is not None and rsi_value < f.min_rsi:
        return FilterResult(False, f"RSI {rsi_value:.1f} < min {f.min_rsi}")
    if f.max_rsi is not None and rsi_value > f.max_rsi:
        return FilterResult(False, f"RSI {rsi_value:.1f} > max {f.max_rsi}")
    return PASSED


def check_volume(rule: Rule, ratio: Optional[float]) -> FilterResult:
    f = rule.filters.volume_filter
    if not f.enabled:
        return PASSED
    if ratio is None or math.isnan(ratio):
        return FilterResult(False, "not enough data to calculate volume average")
    if ratio < f.min_multiplier:
        return FilterResult(False, f"volume {ratio:.2f}x < min {f.min_multiplier}x avg")
    return PASSED


def check_cooldown(rule: Rule, now: datetime) -> FilterResult:
    if rule.last_executed_at is None:
        return PASSED
    remaining = rule.last_executed_at + rule.cooldown - now
    if remaining.total_seconds() > 0:
        return FilterResult(False, f"cooldown active ({math.ceil(remaining.total_seconds() / 60)} min remaining)")
    return PASSED


def check_entry_filters(
    rule: Rule,
    match: PatternMatch,
    rsi_value: Optional[float] = None,
    vol_ratio: Optional[float] = None,
    indicator_filters: bool = True,
) -> FilterResult:
    """Confidence always; RSI and volume only when `indicator_filters` is set."""
    result = check_confidence(rule, match.confidence)
    if not result.passed or not indicator_filters:
        return result
    result = check_volume(rule, vol_ratio)
    if not result.passed:
        return result
    return check_rsi(rule, rsi_value)
