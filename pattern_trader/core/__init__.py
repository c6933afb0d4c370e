"""Core: config, types, errors, logging."""

from pattern_trader.core.config import load_config, load_rules, Config
from pattern_trader.core.errors import (
    PatternTraderError,
    ConfigurationError,
    DataGapError,
    ExecutionError,
)
from pattern_trader.core.types import (
    Bar,
    Direction,
    Directive,
    ExecutionStatus,
    ExitReason,
    ExitTargets,
    MarketRegime,
    PatternKind,
    PatternMatch,
    Position,
    Rule,
    Signal,
    Trade,
    EquityPoint,
)
from pattern_trader.core.logger import setup_logging

__all__ = [
    "load_config",
    "load_rules",
    "Config",
    "PatternTraderError",
    "ConfigurationError",
    "DataGapError",
    "ExecutionError",
    "Bar",
    "Direction",
    "Directive",
    "ExecutionStatus",
    "ExitReason",
    "ExitTargets",
    "MarketRegime",
    "PatternKind",
    "PatternMatch",
    "Position",
    "Rule",
    "Signal",
    "Trade",
    "EquityPoint",
    "setup_logging",
]
