"""Unit tests for risk.exits (exit-condition state machine)."""

from datetime import datetime, timedelta

import pytest

from pattern_trader.core.types import Direction, ExitReason, ExitTargets, MarketRegime, Position
from pattern_trader.risk.exits import (
    ExitEvaluator,
    PositionState,
    stop_loss_price,
    take_profit_price,
    trailing_stop_price,
)

T0 = datetime(2024, 5, 1)


def _position(direction=Direction.LONG, **targets):
    return Position(
        symbol="AAPL",
        direction=direction,
        shares=10,
        entry_price=100.0,
        entry_time=T0,
        targets=ExitTargets(**targets),
    )


def test_stays_open_inside_band():
    ev = ExitEvaluator()
    pos = _position(take_profit_pct=5, stop_loss_pct=2)
    decision = ev.observe(pos, 101.0, T0)
    assert decision.state == PositionState.OPEN
    assert decision.reason is None


def test_take_profit_threshold_inclusive():
    pos = _position(take_profit_pct=5)
    assert take_profit_price(pos) == pytest.approx(105.0)
    decision = ExitEvaluator().observe(pos, 105.0, T0)
    assert decision.closed and decision.reason == ExitReason.TAKE_PROFIT


def test_take_profit_wins_over_stop_loss():
    # degenerate targets where one price satisfies both
    pos = _position(take_profit_pct=-3, stop_loss_pct=2)
    decision = ExitEvaluator().observe(pos, 97.5, T0)
    assert decision.reason == ExitReason.TAKE_PROFIT


def test_stop_loss_long_and_short():
    ev = ExitEvaluator()
    long_pos = _position(stop_loss_pct=2)
    assert ev.observe(long_pos, 98.0, T0).reason == ExitReason.STOP_LOSS
    short_pos = _position(Direction.SHORT, stop_loss_pct=2)
    assert stop_loss_price(short_pos) == pytest.approx(102.0)
    assert ev.observe(short_pos, 102.5, T0).reason == ExitReason.STOP_LOSS


def test_trailing_stop_long():
    ev = ExitEvaluator()
    pos = _position(trailing_stop_pct=3)
    assert trailing_stop_price(pos) is None
    assert not ev.observe(pos, 110.0, T0).closed
    assert pos.highest_price == 110.0
    assert trailing_stop_price(pos) == pytest.approx(106.7)
    decision = ev.observe(pos, 106.5, T0)
    assert decision.reason == ExitReason.TRAILING_STOP


def test_trailing_stop_short_tracks_lowest():
    ev = ExitEvaluator()
    pos = _position(Direction.SHORT, trailing_stop_pct=5)
    ev.observe(pos, 90.0, T0)
    assert pos.lowest_price == 90.0
    assert ev.observe(pos, 94.0, T0).state == PositionState.OPEN
    assert ev.observe(pos, 94.5, T0).reason == ExitReason.TRAILING_STOP


def test_trailing_checked_before_stop_loss():
    ev = ExitEvaluator()
    pos = _position(trailing_stop_pct=10, stop_loss_pct=1)
    ev.observe(pos, 102.0, T0)
    assert ev.observe(pos, 91.0, T0).reason == ExitReason.TRAILING_STOP


def test_time_stop():
    ev = ExitEvaluator()
    pos = _position(max_holding=timedelta(days=5))
    assert not ev.observe(pos, 100.0, T0 + timedelta(days=4)).closed
    decision = ev.observe(pos, 100.0, T0 + timedelta(days=5))
    assert decision.reason == ExitReason.TIME_STOP


def test_decide_idempotent():
    ev = ExitEvaluator()
    pos = _position(take_profit_pct=5, stop_loss_pct=2, trailing_stop_pct=3)
    ev.track(pos, 104.0)
    first = ev.decide(pos, 101.5, T0)
    second = ev.decide(pos, 101.5, T0)
    assert first == second
    assert ev.observe(pos, 104.0, T0) == ev.observe(pos, 104.0, T0)


def test_no_targets_never_closes():
    ev = ExitEvaluator()
    pos = _position()
    for price in (1.0, 1000.0, 100.0):
        assert not ev.observe(pos, price, T0 + timedelta(days=365)).closed


def test_regime_change_closes_long():
    ev = ExitEvaluator()
    pos = _position(regime_exit=True)
    pos.entry_regime = MarketRegime.UPTREND
    assert not ev.observe(pos, 100.0, T0, MarketRegime.SIDEWAYS).closed
    assert not ev.observe(pos, 100.0, T0, None).closed
    decision = ev.observe(pos, 99.0, T0, MarketRegime.DOWNTREND)
    assert decision.closed
    assert decision.reason == ExitReason.REGIME_CHANGE
    assert decision.trigger_price == 99.0


def test_regime_change_needs_flag():
    pos = _position(take_profit_pct=50)
    pos.entry_regime = MarketRegime.UPTREND
    assert not ExitEvaluator().observe(pos, 100.0, T0, MarketRegime.DOWNTREND).closed


def test_price_targets_win_over_regime_change():
    pos = _position(Direction.SHORT, stop_loss_pct=2, regime_exit=True)
    pos.entry_regime = MarketRegime.DOWNTREND
    decision = ExitEvaluator().observe(pos, 103.0, T0, MarketRegime.UPTREND)
    assert decision.reason == ExitReason.STOP_LOSS
