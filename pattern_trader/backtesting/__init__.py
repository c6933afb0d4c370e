"""Backtesting: rule-based pattern backtest and the ORB day-trading simulator."""

from pattern_trader.backtesting.engine import BacktestConfig, BacktestEngine, BacktestResult
from pattern_trader.backtesting.costs import CostModel, volatility_multiplier
from pattern_trader.backtesting.day_trading import (
    DayTradingConfig,
    DayTradingResult,
    DayTradingSimulator,
)

__all__ = [
    "BacktestConfig",
    "BacktestEngine",
    "BacktestResult",
    "CostModel",
    "volatility_multiplier",
    "DayTradingConfig",
    "DayTradingResult",
    "DayTradingSimulator",
]
