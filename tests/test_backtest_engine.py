"""Unit tests for backtesting.engine (rule-based pattern backtest)."""

from datetime import date, datetime, timedelta

import numpy as np
import pytest

from pattern_trader.backtesting.engine import BacktestConfig, BacktestEngine, filter_range
from pattern_trader.core.errors import ConfigurationError
from pattern_trader.core.types import (
    Bar,
    Directive,
    ExitReason,
    ExitTargets,
    PatternKind,
    Rule,
    RuleFilters,
    VolumeFilter,
    bars_to_frame,
)

T0 = datetime(2024, 1, 1)
HAMMER = (99.0, 100.1, 89.0, 100.0)
BREAKOUT = (105.5, 106.5, 105.0, 106.0)


def _series(n=30, overrides=None):
    """Flat doji bars at 100 (no patterns) with selected bars replaced."""
    overrides = overrides or {}
    bars = []
    for i in range(n):
        o, h, l, c = overrides.get(i, (100.0, 100.5, 99.5, 100.0))
        bars.append(Bar(T0 + timedelta(days=i), o, h, l, c, 1000.0))
    return bars


def _rule(rule_id, pattern, directive, **kwargs):
    return Rule(id=rule_id, symbol="TEST", pattern=pattern, directive=directive, **kwargs)


def _config(rules, **kwargs):
    params = dict(symbol="TEST", rules=rules, initial_capital=10000.0, position_size_pct=10.0)
    params.update(kwargs)
    return BacktestConfig(**params)


def test_empty_rules_flat_equity():
    bars = _series(overrides={12: HAMMER})
    result = BacktestEngine().run(bars, _config([]))
    assert result.trades == []
    assert result.final_capital == 10000.0
    assert len(result.equity_curve) == 30 - 10
    assert all(p.equity == 10000.0 for p in result.equity_curve)


def test_hammer_buy_take_profit():
    bars = _series(overrides={12: HAMMER, 16: BREAKOUT})
    rule = _rule("r1", PatternKind.HAMMER, Directive.BUY, risk=ExitTargets(take_profit_pct=5))
    result = BacktestEngine().run(bars, _config([rule]))
    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.entry_time == bars[13].time
    assert trade.entry_price == 100.0
    assert trade.shares == 10
    assert trade.exit_reason == ExitReason.TAKE_PROFIT
    assert trade.exit_price == 106.0
    assert trade.pnl == pytest.approx(60.0)
    assert trade.rule_id == "r1" and trade.pattern == PatternKind.HAMMER
    assert result.final_capital == pytest.approx(10060.0)
    assert result.metrics.total_trades == 1


def test_one_position_per_rule():
    bars = _series(overrides={12: HAMMER, 14: HAMMER, 18: HAMMER})
    rule = _rule("r1", PatternKind.HAMMER, Directive.BUY)
    result = BacktestEngine().run(bars, _config([rule]))
    assert len(result.trades) == 1
    assert result.trades[0].exit_reason == ExitReason.END_OF_PERIOD
    assert result.trades[0].exit_time == bars[-1].time


def test_short_closed_by_cover_signal():
    bars = _series(overrides={12: HAMMER, 16: BREAKOUT, 17: (106.0, 106.5, 105.5, 106.0)})
    rules = [
        _rule("short", PatternKind.HAMMER, Directive.SHORT),
        _rule("cover", PatternKind.BULLISH_BREAKOUT, Directive.COVER),
    ]
    result = BacktestEngine().run(bars, _config(rules))
    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.exit_reason == ExitReason.SIGNAL
    assert trade.exit_price == 106.0
    assert trade.pnl == pytest.approx(-60.0)
    assert result.final_capital == pytest.approx(9940.0)


def test_min_confidence_always_applied():
    bars = _series(overrides={12: HAMMER})
    rule = _rule("r1", PatternKind.HAMMER, Directive.BUY, filters=RuleFilters(min_confidence=75))
    assert BacktestEngine().run(bars, _config([rule])).trades == []


def test_indicator_filters_only_when_enabled():
    bars = _series(overrides={12: HAMMER})
    rule = _rule(
        "r1", PatternKind.HAMMER, Directive.BUY,
        filters=RuleFilters(volume_filter=VolumeFilter(enabled=True, min_multiplier=5.0)),
    )
    engine = BacktestEngine()
    assert len(engine.run(bars, _config([rule])).trades) == 1
    assert engine.run(bars, _config([rule], apply_filters_in_backtest=True)).trades == []


def test_rules_for_other_symbols_ignored():
    bars = _series(overrides={12: HAMMER})
    rule = Rule(id="x", symbol="OTHER", pattern=PatternKind.HAMMER, directive=Directive.BUY)
    assert BacktestEngine().run(bars, _config([rule])).trades == []


def test_accepts_dataframe():
    bars = _series(overrides={12: HAMMER})
    rule = _rule("r1", PatternKind.HAMMER, Directive.BUY)
    result = BacktestEngine().run(bars_to_frame(bars), _config([rule]))
    assert len(result.trades) == 1


def test_insufficient_history():
    with pytest.raises(ConfigurationError):
        BacktestEngine().run(_series(n=9), _config([]))


def test_empty_date_range():
    with pytest.raises(ConfigurationError):
        BacktestEngine().run(_series(), _config([], start=date(2030, 1, 1)))


def test_date_range_too_short():
    with pytest.raises(ConfigurationError):
        BacktestEngine().run(_series(), _config([], start=date(2024, 1, 1), end=date(2024, 1, 8)))


def test_filter_range_end_date_inclusive():
    bars = _series()
    selected = filter_range(bars, date(2024, 1, 5), date(2024, 1, 10))
    assert selected[0].time == datetime(2024, 1, 5)
    assert selected[-1].time == datetime(2024, 1, 10)


def test_capital_conservation_random_walk():
    rng = np.random.default_rng(11)
    closes = 100 * np.exp(np.cumsum(rng.normal(0, 0.02, 400)))
    bars = []
    prev = closes[0]
    for i, c in enumerate(closes):
        o = prev
        h = max(o, c) * (1 + abs(rng.normal(0, 0.01)))
        l = min(o, c) * (1 - abs(rng.normal(0, 0.01)))
        bars.append(Bar(T0 + timedelta(days=i), float(o), float(h), float(l), float(c), 1000.0))
        prev = c
    risk = ExitTargets(take_profit_pct=4, stop_loss_pct=2, trailing_stop_pct=3, max_holding=timedelta(days=10))
    rules = [
        _rule("long-" + k.value, k, Directive.BUY, risk=risk)
        for k in (PatternKind.HAMMER, PatternKind.BULLISH_ENGULFING, PatternKind.BULLISH_BREAKOUT)
    ] + [
        _rule("short-" + k.value, k, Directive.SHORT, risk=risk)
        for k in (PatternKind.SHOOTING_STAR, PatternKind.BEARISH_ENGULFING, PatternKind.BEARISH_BREAKOUT)
    ]
    result = BacktestEngine().run(bars, _config(rules))
    assert result.trades
    assert result.final_capital == pytest.approx(10000.0 + sum(t.pnl for t in result.trades))
    open_by_rule = {}
    for t in result.trades:
        spans = open_by_rule.setdefault(t.rule_id, [])
        for start, end in spans:
            assert t.entry_time >= end or t.exit_time <= start
        spans.append((t.entry_time, t.exit_time))


def _rise_then_fall():
    """70 rising bars, a hammer at the top, then 65 falling bars."""
    bars = []
    for i in range(70):
        c = 100.0 + i
        bars.append(Bar(T0 + timedelta(days=i), c - 0.2, c + 0.5, c - 0.5, c, 1000.0))
    bars.append(Bar(T0 + timedelta(days=70), 169.5, 170.6, 160.0, 170.5, 1000.0))
    for k in range(1, 66):
        c = 170.5 - k
        bars.append(Bar(T0 + timedelta(days=70 + k), c + 0.2, c + 0.5, c - 0.5, c, 1000.0))
    return bars


def test_regime_change_exit():
    bars = _rise_then_fall()
    rule = _rule("r1", PatternKind.HAMMER, Directive.BUY, risk=ExitTargets(regime_exit=True))
    result = BacktestEngine().run(bars, _config([rule]))
    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.entry_time == bars[71].time
    assert trade.entry_price == 169.5
    assert trade.exit_reason == ExitReason.REGIME_CHANGE
    assert trade.exit_time < bars[-1].time


def test_regime_exit_disabled_in_config():
    bars = _rise_then_fall()
    rule = _rule("r1", PatternKind.HAMMER, Directive.BUY, risk=ExitTargets(regime_exit=True))
    result = BacktestEngine().run(bars, _config([rule], regime=None))
    assert result.trades[0].exit_reason == ExitReason.END_OF_PERIOD
