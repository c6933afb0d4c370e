"""
Opening-range-breakout day-trading simulator over a universe of daily bars.
Each day: rank symbols that broke above the prior-day high, take the top N,
exit at target / stop / close the same day. Tapered sizing, goal stop and a
yearly drawdown breaker come from RiskManager; costs from CostModel.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from pattern_trader.analytics.metrics import Metrics, compute_metrics
from pattern_trader.backtesting.costs import CostModel, average_range_pct, volatility_multiplier
from pattern_trader.core.errors import ConfigurationError
from pattern_trader.core.types import (
    Bar,
    Direction,
    EquityPoint,
    ExitReason,
    Position,
    Trade,
    bars_from_frame,
    close_position,
)
from pattern_trader.risk.manager import RiskManager

logger = logging.getLogger("pattern_trader.daytrade")

Universe = Mapping[str, Union[Sequence[Bar], pd.DataFrame]]


@dataclass
class DayTradingConfig:
    initial_capital: float = 5000.0
    position_pct: float = 20.0
    taper_floor_pct: float = 5.0
    taper_ceiling: float = 25000.0
    goal_capital: float = 100000.0
    profit_target_pct: float = 2.0
    stop_pct: float = 1.0
    max_setups_per_day: int = 5
    max_gap_pct: float = 5.0
    min_range_pct: float = 0.5
    commission: float = 1.0
    slippage_pct: float = 0.05
    max_yearly_drawdown_pct: float = 20.0
    volatility_lookback: int = 20

    @classmethod
    def from_config(cls, cfg) -> "DayTradingConfig":
        """Build from the loaded application Config."""
        return cls(
            initial_capital=cfg.daytrade_initial_capital,
            position_pct=cfg.daytrade_position_pct,
            taper_floor_pct=cfg.daytrade_taper_floor_pct,
            taper_ceiling=cfg.daytrade_taper_ceiling,
            goal_capital=cfg.daytrade_goal_capital,
            profit_target_pct=cfg.daytrade_profit_target_pct,
            stop_pct=cfg.daytrade_stop_pct,
            max_setups_per_day=cfg.daytrade_max_setups,
            commission=cfg.daytrade_commission,
            slippage_pct=cfg.daytrade_slippage_pct,
            max_yearly_drawdown_pct=cfg.daytrade_yearly_drawdown_pct,
        )


@dataclass
class Setup:
    """A breakout candidate for one symbol on one day."""
    symbol: str
    bar: Bar
    prior: Bar
    entry_price: float
    strength_pct: float
    range_pct: float

    @property
    def score(self) -> float:
        return self.strength_pct * self.range_pct


@dataclass
class DayTradingResult:
    trades: List[Trade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    metrics: Optional[Metrics] = None
    initial_capital: float = 0.0
    final_capital: float = 0.0
    total_transaction_costs: float = 0.0
    goal_reached: bool = False
    goal_reached_on: Optional[date] = None
    breaker_years: List[int] = field(default_factory=list)


def _day(bar: Bar) -> date:
    t = bar.time
    return t.date() if isinstance(t, datetime) else t


def find_setups(
    universe: Mapping[str, Dict[date, Bar]],
    day: date,
    prior_day: Dict[str, Bar],
    max_gap_pct: float,
    min_range_pct: float,
) -> List[Setup]:
    """All qualifying breakouts for `day`, best score first."""
    setups = []
    for symbol, by_day in universe.items():
        bar = by_day.get(day)
        prior = prior_day.get(symbol)
        if bar is None or prior is None or bar.open <= 0 or prior.close <= 0:
            continue
        if not bar.high > prior.high:
            continue
        gap_pct = abs(bar.open / prior.close - 1) * 100
        if gap_pct >= max_gap_pct:
            continue
        range_pct = (bar.high - bar.low) / bar.open * 100
        if range_pct < min_range_pct:
            continue
        # breakout fills at the prior-day high, gap-ups included
        setups.append(Setup(
            symbol=symbol,
            bar=bar,
            prior=prior,
            entry_price=prior.high,
            strength_pct=(bar.high - prior.high) / prior.high * 100,
            range_pct=range_pct,
        ))
    setups.sort(key=lambda s: s.score, reverse=True)
    return setups


def resolve_exit(bar: Bar, target: float, stop: float) -> Tuple[float, ExitReason]:
    """
    Daily bars hide the intraday path. Both levels touched: assume target first
    unless the bar closed below its open. Neither touched: out at the close.
    """
    hit_target = bar.high >= target
    hit_stop = bar.low <= stop
    if hit_target and hit_stop:
        if bar.close < bar.open:
            return stop, ExitReason.STOP_LOSS
        return target, ExitReason.TAKE_PROFIT
    if hit_target:
        return target, ExitReason.TAKE_PROFIT
    if hit_stop:
        return stop, ExitReason.STOP_LOSS
    return bar.close, ExitReason.TIME_STOP


class DayTradingSimulator:
    def __init__(self, config: Optional[DayTradingConfig] = None):
        self.config = config or DayTradingConfig()
        self.costs = CostModel(self.config.commission, self.config.slippage_pct)

    def _risk_manager(self) -> RiskManager:
        cfg = self.config
        return RiskManager(
            position_pct=cfg.position_pct,
            taper_floor_pct=cfg.taper_floor_pct,
            taper_ceiling=cfg.taper_ceiling,
            goal_capital=cfg.goal_capital,
            max_yearly_drawdown_pct=cfg.max_yearly_drawdown_pct,
        )

    def run(self, universe: Universe) -> DayTradingResult:
        cfg = self.config
        if not universe:
            raise ConfigurationError("Day-trading universe is empty")

        by_symbol: Dict[str, Dict[date, Bar]] = {}
        for symbol, bars in universe.items():
            if isinstance(bars, pd.DataFrame):
                bars = bars_from_frame(bars)
            by_symbol[symbol.upper()] = {_day(b): b for b in bars}
        days = sorted({d for by_day in by_symbol.values() for d in by_day})
        if len(days) < 2:
            raise ConfigurationError(f"Need at least 2 trading days, got {len(days)}")

        risk = self._risk_manager()
        capital = cfg.initial_capital
        trades: List[Trade] = []
        equity_curve: List[EquityPoint] = []
        total_costs = 0.0
        last_bar: Dict[str, Bar] = {}
        daily_ranges: List[List[float]] = []

        for day in days:
            risk.start_day(day, capital)
            todays = {s: by_day[day] for s, by_day in by_symbol.items() if day in by_day}
            day_time = next(iter(todays.values())).time

            if not risk.goal_reached and not risk.breaker.tripped and last_bar:
                recent = [r for ranges in daily_ranges[-cfg.volatility_lookback:] for r in ranges]
                multiplier = volatility_multiplier(average_range_pct(recent))
                setups = find_setups(by_symbol, day, last_bar, cfg.max_gap_pct, cfg.min_range_pct)
                available = capital
                day_pnl = 0.0
                for setup in setups[: cfg.max_setups_per_day]:
                    check = risk.validate_entry(setup.entry_price, capital, available)
                    if not check.allowed:
                        logger.debug("%s %s skipped: %s", day, setup.symbol, check.reason)
                        continue
                    shares = check.quantity
                    available -= shares * setup.entry_price
                    target = setup.entry_price * (1 + cfg.profit_target_pct / 100)
                    stop = setup.entry_price * (1 - cfg.stop_pct / 100)
                    exit_price, reason = resolve_exit(setup.bar, target, stop)
                    fees = self.costs.round_trip(
                        shares * setup.entry_price, shares * exit_price, multiplier,
                    )
                    position = Position(
                        symbol=setup.symbol,
                        direction=Direction.LONG,
                        shares=shares,
                        entry_price=setup.entry_price,
                        entry_time=setup.bar.time,
                    )
                    trade = close_position(position, exit_price, setup.bar.time, reason, fees=fees)
                    trades.append(trade)
                    total_costs += fees
                    day_pnl += trade.pnl
                capital += day_pnl
                risk.record_capital(capital, day)

            equity_curve.append(EquityPoint(day_time, capital))
            daily_ranges.append([
                (b.high - b.low) / b.close * 100 for b in todays.values() if b.close > 0
            ])
            last_bar.update(todays)

        metrics = compute_metrics(trades, equity_curve, cfg.initial_capital, capital)
        logger.info(
            "Day trading: %d trades over %d days, final capital %.2f, costs %.2f%s",
            len(trades), len(days), capital, total_costs,
            f", goal reached {risk.goal_reached_on}" if risk.goal_reached else "",
        )
        return DayTradingResult(
            trades=trades,
            equity_curve=equity_curve,
            metrics=metrics,
            initial_capital=cfg.initial_capital,
            final_capital=capital,
            total_transaction_costs=total_costs,
            goal_reached=risk.goal_reached,
            goal_reached_on=risk.goal_reached_on,
            breaker_years=list(risk.breaker.tripped_years),
        )
