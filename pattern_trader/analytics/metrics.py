"""
Performance metrics derived only from completed trades and the equity curve:
win rate, profit factor, drawdown, average win/loss, holding period, Sharpe.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from pattern_trader.core.types import EquityPoint, Trade


@dataclass
class Metrics:
    """Aggregate performance metrics."""
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    total_return: float
    total_return_pct: float
    max_drawdown: float
    max_drawdown_pct: float
    profit_factor: float
    avg_win: float
    avg_loss: float
    largest_win: float
    largest_loss: float
    avg_holding_days: float
    expectancy: float
    sharpe_ratio: float
    final_capital: float


def sharpe_ratio(returns: List[float], risk_free_rate: float = 0.0, periods_per_year: float = 252.0) -> float:
    """Annualized Sharpe. returns = list of period returns."""
    if not returns:
        return 0.0
    arr = np.array(returns)
    excess = arr - risk_free_rate / periods_per_year
    if excess.std() <= 1e-12:
        return 0.0
    return float(np.sqrt(periods_per_year) * excess.mean() / excess.std())


def max_drawdown(equity: Sequence[float], initial_capital: float) -> tuple[float, float]:
    """
    Largest peak-to-trough decline as (amount, percent of the peak).
    The running peak starts at the initial capital.
    """
    peak = initial_capital
    worst = 0.0
    worst_pct = 0.0
    for value in equity:
        if value > peak:
            peak = value
        dd = peak - value
        if dd > worst:
            worst = dd
            worst_pct = dd / peak * 100 if peak > 0 else 0.0
    return worst, worst_pct


def win_rate(pnls: List[float]) -> float:
    """Fraction of trades with positive PnL."""
    if not pnls:
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls)


def profit_factor(pnls: List[float]) -> float:
    """Gross profit / gross loss. inf with wins and no losses, 0 with neither."""
    wins = sum(p for p in pnls if p > 0)
    losses = sum(-p for p in pnls if p < 0)
    if losses <= 0:
        return float("inf") if wins > 0 else 0.0
    return wins / losses


def expectancy(pnls: List[float]) -> float:
    """Average PnL per trade."""
    if not pnls:
        return 0.0
    return sum(pnls) / len(pnls)


def equity_returns(equity: Sequence[float]) -> List[float]:
    arr = np.asarray(equity, dtype=float)
    if len(arr) < 2:
        return []
    prev = arr[:-1]
    rets = np.divide(np.diff(arr), prev, out=np.zeros(len(prev)), where=prev != 0)
    return rets.tolist()


def compute_metrics(
    trades: Sequence[Trade],
    equity_curve: Sequence[EquityPoint],
    initial_capital: float,
    final_capital: float,
    periods_per_year: float = 252.0,
) -> Metrics:
    """Compute full metrics from closed trades and the equity curve."""
    pnls = [t.pnl for t in trades]
    wins = [p for p in pnls if p > 0]
    losses = [-p for p in pnls if p < 0]
    equity = [pt.equity for pt in equity_curve]
    dd, dd_pct = max_drawdown(equity, initial_capital)
    total_return = final_capital - initial_capital
    return Metrics(
        total_trades=len(pnls),
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=win_rate(pnls),
        total_return=total_return,
        total_return_pct=total_return / initial_capital * 100 if initial_capital else 0.0,
        max_drawdown=dd,
        max_drawdown_pct=dd_pct,
        profit_factor=profit_factor(pnls),
        avg_win=sum(wins) / len(wins) if wins else 0.0,
        avg_loss=sum(losses) / len(losses) if losses else 0.0,
        largest_win=max(wins) if wins else 0.0,
        largest_loss=max(losses) if losses else 0.0,
        avg_holding_days=sum(t.holding_days for t in trades) / len(trades) if trades else 0.0,
        expectancy=expectancy(pnls),
        sharpe_ratio=sharpe_ratio(equity_returns(equity), periods_per_year=periods_per_year),
        final_capital=final_capital,
    )
