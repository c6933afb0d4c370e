"""Unit tests for core.config (YAML + env loading, rule parsing) and core.logger."""

import logging
from datetime import date, timedelta

import pytest

from pattern_trader.core.config import load_config, load_rules
from pattern_trader.core.errors import ConfigurationError
from pattern_trader.core.logger import setup_logging
from pattern_trader.core.types import Directive, PatternKind

CONFIG_YAML = """
backtest:
  symbol: ethusdt
  start_date: 2024-01-01
  position_size_pct: 15
day_trading:
  goal_capital: 50000
monitor:
  interval_seconds: 10
  trading_hours_only: true
  regime_interval: 4h
rules:
  - id: eth-hammer
    symbol: ethusdt
    pattern: hammer
    directive: buy
    min_confidence: 70
    cooldown_minutes: 15
    rsi_filter: {enabled: true, max_rsi: 35}
    risk: {take_profit_pct: 5, stop_loss_pct: 2, time_stop_days: 3, regime_exit: true}
"""


def test_load_rules_full():
    rules = load_rules([{
        "id": "r1",
        "symbol": "aapl",
        "pattern": "bullish_engulfing",
        "directive": "short",
        "auto_trade": True,
        "sizing": {"percent_of_capital": 12.5},
        "volume_filter": {"enabled": True, "min_multiplier": 1.5},
        "risk": {"trailing_stop_pct": 4},
    }])
    rule = rules[0]
    assert rule.symbol == "AAPL"
    assert rule.pattern == PatternKind.BULLISH_ENGULFING
    assert rule.directive == Directive.SHORT
    assert rule.auto_trade is True
    assert rule.sizing.percent_of_capital == 12.5
    assert rule.filters.volume_filter.min_multiplier == 1.5
    assert rule.risk.trailing_stop_pct == 4.0
    assert rule.risk.take_profit_pct is None
    assert rule.risk.regime_exit is False
    assert rule.cooldown == timedelta(minutes=5)
    assert rule.name


def test_load_rules_unknown_pattern():
    with pytest.raises(ConfigurationError):
        load_rules([{"symbol": "X", "pattern": "morning_star", "directive": "buy"}])


def test_load_rules_unknown_directive():
    with pytest.raises(ConfigurationError):
        load_rules([{"symbol": "X", "pattern": "hammer", "directive": "hold"}])


def test_load_rules_missing_symbol():
    with pytest.raises(ConfigurationError):
        load_rules([{"pattern": "hammer", "directive": "buy"}])


def test_load_config_yaml_and_env(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    for key in ("BINANCE_API_KEY", "BINANCE_TESTNET_API_KEY", "SYMBOL", "MONITOR_INTERVAL", "USE_TESTNET", "TRADING_HOURS_ONLY"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("BINANCE_API_KEY", "k")
    monkeypatch.setenv("POSITION_SIZE_PCT", "25")

    cfg = load_config(path, tmp_path)
    assert cfg.symbol == "ETHUSDT"
    assert cfg.backtest_start == date(2024, 1, 1)
    assert cfg.position_size_pct == 25.0
    assert cfg.daytrade_goal_capital == 50000.0
    assert cfg.daytrade_initial_capital == 5000.0
    assert cfg.monitor_interval == 10.0
    assert cfg.trading_hours_only is True
    assert cfg.regime_interval == "4h"
    assert cfg.binance_api_key == "k"
    assert cfg.use_testnet is True
    rule = cfg.rules[0]
    assert rule.id == "eth-hammer"
    assert rule.filters.rsi_filter.enabled and rule.filters.rsi_filter.max_rsi == 35.0
    assert rule.risk.max_holding == timedelta(days=3)
    assert rule.risk.regime_exit is True
    assert rule.cooldown == timedelta(minutes=15)


def test_load_config_missing_file_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("SYMBOL", raising=False)
    monkeypatch.delenv("POSITION_SIZE_PCT", raising=False)
    monkeypatch.delenv("TRADING_HOURS_ONLY", raising=False)
    cfg = load_config(tmp_path / "nope.yaml", tmp_path)
    assert cfg.symbol == "BTCUSDT"
    assert cfg.rules == []
    assert cfg.monitor_symbol_delay == 0.3
    assert cfg.trading_hours_only is False
    assert cfg.regime_interval == "1d"


def test_setup_logging_file(tmp_path):
    logger = setup_logging("DEBUG", tmp_path, "test.log")
    try:
        logging.getLogger("pattern_trader.backtest").info("hello")
        for h in logger.handlers:
            h.flush()
        text = (tmp_path / "test.log").read_text(encoding="utf-8")
        assert "| INFO     | pattern_trader.backtest | hello" in text
        assert logging.getLogger("urllib3").level == logging.WARNING
    finally:
        for h in list(logger.handlers):
            h.close()
            logger.removeHandler(h)
        logger.propagate = True
