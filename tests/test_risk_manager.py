"""Unit tests for risk.manager."""

from datetime import date

import pytest

from pattern_trader.risk.manager import RiskManager, YearlyDrawdownBreaker


def _rm(**overrides):
    params = dict(
        position_pct=20.0,
        taper_floor_pct=5.0,
        taper_ceiling=25000.0,
        goal_capital=100000.0,
        max_yearly_drawdown_pct=20.0,
    )
    params.update(overrides)
    return RiskManager(**params)


def test_validate_entry_whole_shares():
    rm = _rm()
    r = rm.validate_entry(33.0, 5000.0, 5000.0)
    assert r.allowed is True
    # 20% of 5000 = 1000 -> floor(1000 / 33)
    assert r.quantity == 30


def test_validate_entry_limited_by_cash():
    rm = _rm()
    r = rm.validate_entry(10.0, 5000.0, 250.0)
    assert r.quantity == 25


def test_validate_entry_rounds_to_zero():
    r = _rm().validate_entry(2000.0, 5000.0, 5000.0)
    assert r.allowed is False
    assert "0" in r.reason


def test_size_pct_taper():
    rm = _rm()
    assert rm.size_pct(10000.0) == pytest.approx(20.0)
    assert rm.size_pct(25000.0) == pytest.approx(20.0)
    assert rm.size_pct(62500.0) == pytest.approx(12.5)
    assert rm.size_pct(100000.0) == pytest.approx(5.0)
    assert rm.size_pct(150000.0) == pytest.approx(5.0)


def test_goal_latches():
    rm = _rm(goal_capital=6000.0)
    rm.record_capital(6100.0, date(2024, 3, 1))
    assert rm.goal_reached and rm.goal_reached_on == date(2024, 3, 1)
    rm.record_capital(5500.0, date(2024, 3, 2))
    assert rm.goal_reached
    assert rm.validate_entry(10.0, 5500.0, 5500.0).allowed is False


def test_breaker_blocks_until_next_year():
    rm = _rm(max_yearly_drawdown_pct=10.0)
    rm.start_day(date(2023, 1, 2), 5000.0)
    rm.record_capital(4400.0, date(2023, 6, 1))
    assert rm.breaker.tripped
    assert rm.validate_entry(10.0, 4400.0, 4400.0).reason == "yearly drawdown breaker"
    rm.start_day(date(2023, 12, 29), 4400.0)
    assert rm.breaker.tripped
    rm.start_day(date(2024, 1, 2), 4400.0)
    assert not rm.breaker.tripped
    assert rm.breaker.year_start_capital == 4400.0
    assert rm.validate_entry(10.0, 4400.0, 4400.0).allowed
    assert rm.breaker.tripped_years == [2023]


def test_breaker_at_limit_not_tripped():
    b = YearlyDrawdownBreaker(20.0)
    b.on_day(date(2024, 1, 2), 1000.0)
    assert b.update(800.0) is False
    assert b.update(799.0) is True
