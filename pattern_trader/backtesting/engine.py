"""
Rule-based backtest: walks one symbol's bars, opens positions when a rule's
pattern fires, closes them through the shared exit evaluator at each bar close.
No lookahead: patterns come from the window ending at the previous bar, fills
happen at the current close.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from pattern_trader.analytics.metrics import Metrics, compute_metrics
from pattern_trader.core.errors import ConfigurationError
from pattern_trader.core.types import (
    Bar,
    EquityPoint,
    ExitReason,
    MarketRegime,
    Position,
    Rule,
    Trade,
    bars_from_frame,
    close_position,
)
from pattern_trader.indicators.library import rsi, volume_ratio
from pattern_trader.patterns.detector import DEFAULT_THRESHOLDS, PatternThresholds, detect_patterns
from pattern_trader.risk.exits import ExitEvaluator
from pattern_trader.risk.regime import DEFAULT_REGIME_CONFIG, RegimeConfig, detect_regime
from pattern_trader.strategies.rules import action_for, check_confidence, check_entry_filters, find_rule

logger = logging.getLogger("pattern_trader.backtest")

MIN_HISTORY_BARS = 10

DateLike = Union[date, datetime, str, None]


@dataclass
class BacktestConfig:
    """One symbol, one date range, the rules scoped to that symbol."""
    symbol: str
    rules: List[Rule] = field(default_factory=list)
    start: DateLike = None
    end: DateLike = None
    initial_capital: float = 10000.0
    position_size_pct: float = 10.0
    # Live scanning applies RSI/volume filters; historically the backtest did not.
    apply_filters_in_backtest: bool = False
    window: int = MIN_HISTORY_BARS
    volume_lookback: int = 20
    # Classifies the regime for rules with risk.regime_exit; None disables it.
    regime: Optional[RegimeConfig] = DEFAULT_REGIME_CONFIG


@dataclass
class BacktestResult:
    """Backtest output: trades, equity curve and metrics."""
    symbol: str
    trades: List[Trade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    metrics: Optional[Metrics] = None
    initial_capital: float = 0.0
    final_capital: float = 0.0


def _bound(value: DateLike, end: bool) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    if isinstance(value, str):
        value = pd.Timestamp(value).to_pydatetime()
        if value.time() == time(0) and end:
            return pd.Timestamp(value + timedelta(days=1)) - pd.Timedelta(microseconds=1)
        return pd.Timestamp(value)
    if isinstance(value, datetime):
        return pd.Timestamp(value)
    # plain date: whole day inclusive
    ts = pd.Timestamp(datetime.combine(value, time(0)))
    if end:
        return ts + pd.Timedelta(days=1) - pd.Timedelta(microseconds=1)
    return ts


def filter_range(bars: Sequence[Bar], start: DateLike, end: DateLike) -> List[Bar]:
    """Bars inside [start, end], sorted ascending. A date bound covers its whole day."""
    lo, hi = _bound(start, end=False), _bound(end, end=True)
    tz = pd.Timestamp(bars[0].time).tzinfo if bars else None
    if tz is not None:
        # naive bounds are read in the bars' timezone
        lo = lo.tz_localize(tz) if lo is not None and lo.tzinfo is None else lo
        hi = hi.tz_localize(tz) if hi is not None and hi.tzinfo is None else hi
    out = [
        b for b in bars
        if (lo is None or pd.Timestamp(b.time) >= lo) and (hi is None or pd.Timestamp(b.time) <= hi)
    ]
    return sorted(out, key=lambda b: b.time)


class BacktestEngine:
    """
    Runs pattern rules over historical bars. One open position per rule id;
    exits via ExitEvaluator on each close; remaining positions are closed at
    the final close as end_of_period.
    """

    def __init__(
        self,
        evaluator: Optional[ExitEvaluator] = None,
        thresholds: PatternThresholds = DEFAULT_THRESHOLDS,
    ):
        self.evaluator = evaluator or ExitEvaluator()
        self.thresholds = thresholds

    def run(self, bars: Union[Sequence[Bar], pd.DataFrame], config: BacktestConfig) -> BacktestResult:
        if isinstance(bars, pd.DataFrame):
            bars = bars_from_frame(bars)
        symbol = config.symbol.upper()
        window = max(config.window, 1)
        if len(bars) < MIN_HISTORY_BARS:
            raise ConfigurationError(
                f"Insufficient historical data for {symbol}. Only {len(bars)} bars available."
            )
        data = filter_range(bars, config.start, config.end)
        if not data:
            raise ConfigurationError(f"No bars for {symbol} between {config.start} and {config.end}")
        if len(data) < max(MIN_HISTORY_BARS, window + 1):
            raise ConfigurationError(
                f"Insufficient data in the selected date range for {symbol}. Only {len(data)} bars."
            )

        rules = [r for r in config.rules if r.enabled and r.symbol == symbol]
        capital = config.initial_capital
        trades: List[Trade] = []
        equity_curve: List[EquityPoint] = []
        open_positions: List[Position] = []
        rsi_by_period: Dict[int, np.ndarray] = {}

        def rsi_at(period: int, i: int) -> float:
            if period not in rsi_by_period:
                rsi_by_period[period] = rsi(data, period)
            return float(rsi_by_period[period][i])

        def regime_at(i: int) -> Optional[MarketRegime]:
            """Regime through bar i (inclusive)."""
            if config.regime is None:
                return None
            lo = max(0, i + 1 - config.regime.min_bars)
            return detect_regime(data[lo:i + 1], config.regime).regime

        def settle(pos: Position, price: float, when: datetime, reason: ExitReason) -> None:
            nonlocal capital
            capital += pos.market_value(price)
            trades.append(close_position(pos, price, when, reason))
            open_positions.remove(pos)

        for i in range(window, len(data)):
            bar = data[i]
            price = bar.close
            matches = detect_patterns(data[i - window:i], self.thresholds, index=i - 1)

            for match in matches:
                rule = find_rule(rules, symbol, match.kind)
                if rule is None:
                    continue
                action = action_for(rule.directive)

                if not action.opens:
                    if not check_confidence(rule, match.confidence).passed:
                        continue
                    for pos in [p for p in open_positions if p.direction == action.direction]:
                        settle(pos, price, bar.time, ExitReason.SIGNAL)
                    continue

                if any(p.rule_id == rule.id for p in open_positions):
                    continue
                rsi_value = vol = None
                if config.apply_filters_in_backtest:
                    rsi_value = rsi_at(rule.filters.rsi_filter.period, i - 1)
                    vol = volume_ratio(data[max(0, i - config.volume_lookback - 1):i], config.volume_lookback)
                check = check_entry_filters(rule, match, rsi_value, vol, config.apply_filters_in_backtest)
                if not check.passed:
                    logger.debug("%s %s skipped on %s: %s", symbol, rule.id, bar.time, check.reason)
                    continue

                pct = rule.sizing.percent_of_capital or config.position_size_pct
                shares = math.floor(capital * pct / 100 / price) if price > 0 else 0
                cost = shares * price
                if shares <= 0 or cost > capital:
                    continue
                capital -= cost
                open_positions.append(Position(
                    symbol=symbol,
                    direction=action.direction,
                    shares=shares,
                    entry_price=price,
                    entry_time=bar.time,
                    targets=rule.risk,
                    rule_id=rule.id,
                    pattern=match.kind,
                    entry_regime=regime_at(i - 1) if rule.risk.regime_exit else None,
                ))
                logger.debug(
                    "%s open %s %d @ %.4f (%s, rule %s)",
                    symbol, action.direction.value, shares, price, match.kind.value, rule.id,
                )

            regime = None
            if any(p.targets.regime_exit and p.entry_regime is not None for p in open_positions):
                regime = regime_at(i)
            for pos in list(open_positions):
                decision = self.evaluator.observe(pos, price, bar.time, regime)
                if decision.closed:
                    settle(pos, price, bar.time, decision.reason)

            equity = capital + sum(p.market_value(price) for p in open_positions)
            equity_curve.append(EquityPoint(bar.time, equity))

        last = data[-1]
        for pos in list(open_positions):
            settle(pos, last.close, last.time, ExitReason.END_OF_PERIOD)

        metrics = compute_metrics(trades, equity_curve, config.initial_capital, capital)
        logger.info(
            "Backtest %s: %d trades, final capital %.2f (%.2f%%)",
            symbol, metrics.total_trades, capital, metrics.total_return_pct,
        )
        return BacktestResult(
            symbol=symbol,
            trades=trades,
            equity_curve=equity_curve,
            metrics=metrics,
            initial_capital=config.initial_capital,
            final_capital=capital,
        )
