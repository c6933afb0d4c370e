"""Analytics: metrics from trades and equity curves."""

from pattern_trader.analytics.metrics import (
    Metrics,
    compute_metrics,
    sharpe_ratio,
    max_drawdown,
    win_rate,
    profit_factor,
    expectancy,
)

__all__ = [
    "Metrics",
    "compute_metrics",
    "sharpe_ratio",
    "max_drawdown",
    "win_rate",
    "profit_factor",
    "expectancy",
]
