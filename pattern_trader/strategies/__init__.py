"""Strategies: rule directives and entry filters."""

from pattern_trader.strategies.rules import (
    FilterResult,
    RuleAction,
    action_for,
    alert_signal,
    check_entry_filters,
    find_rule,
)

__all__ = [
    "FilterResult",
    "RuleAction",
    "action_for",
    "alert_signal",
    "check_entry_filters",
    "find_rule",
]
