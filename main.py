#!/usr/bin/env python3
"""
Pattern Trader CLI: backtest | daytrade | monitor
Usage:
  python main.py backtest [--config config.yaml] [--csv bars.csv] [--symbol BTCUSDT] [--start 2024-01-01] [--end 2024-06-30]
  python main.py daytrade --data-dir data/daily [--config config.yaml]
  python main.py monitor [--config config.yaml] [--paper]
"""

from __future__ import annotations
import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Dict, List

import pandas as pd

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pattern_trader.analytics.metrics import Metrics
from pattern_trader.backtesting.day_trading import DayTradingConfig, DayTradingSimulator
from pattern_trader.backtesting.engine import BacktestConfig, BacktestEngine
from pattern_trader.core.config import Config, load_config
from pattern_trader.core.errors import PatternTraderError
from pattern_trader.core.logger import setup_logging
from pattern_trader.core.types import Bar, bars_from_frame
from pattern_trader.execution.binance_spot import BinanceSpotClient
from pattern_trader.execution.paper import PaperBroker
from pattern_trader.indicators.cache import IndicatorCache
from pattern_trader.monitoring.monitor import ExitMonitor
from pattern_trader.monitoring.scanner import AutoTradeConfig, PatternScanner
from pattern_trader.risk.regime import RegimeTracker
from pattern_trader.utils.telegram import send_telegram, telegram_notifier

logger = logging.getLogger("pattern_trader")

TIME_COLUMNS = ("time", "date", "timestamp", "datetime")
REGIME_TTL_SECONDS = 300.0


def load_csv(path: Path) -> List[Bar]:
    """Read OHLCV bars from CSV. Accepts time/date/timestamp/datetime for the time column."""
    df = pd.read_csv(path)
    df.columns = [c.strip().lower() for c in df.columns]
    for col in TIME_COLUMNS:
        if col in df.columns:
            df = df.rename(columns={col: "time"})
            break
    df["time"] = pd.to_datetime(df["time"])
    return bars_from_frame(df)


def binance_client(config: Config) -> BinanceSpotClient:
    return BinanceSpotClient(
        config.binance_api_key,
        config.binance_api_secret,
        testnet=config.use_testnet,
        timeout=config.request_timeout,
    )


def print_metrics(title: str, m: Metrics) -> None:
    print(f"\n--- {title} ---")
    print(f"Total trades: {m.total_trades} (wins: {m.winning_trades}, losses: {m.losing_trades})")
    print(f"Final capital: {m.final_capital:.2f}")
    print(f"Total return: {m.total_return_pct:.2f}%")
    print(f"Sharpe ratio: {m.sharpe_ratio:.2f}")
    print(f"Max drawdown: {m.max_drawdown_pct:.2f}%")
    print(f"Win rate: {m.win_rate*100:.1f}%")
    print(f"Profit factor: {m.profit_factor:.2f}")
    print(f"Avg holding: {m.avg_holding_days:.1f} days")
    print(f"Expectancy: {m.expectancy:.2f}/trade")


def run_backtest(args: argparse.Namespace) -> int:
    """Run the rule-based pattern backtest on CSV or Binance klines."""
    config = load_config(args.config, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file)
    symbol = (args.symbol or config.symbol).upper()
    if args.csv:
        bars = load_csv(args.csv)
    else:
        if not config.binance_api_key or not config.binance_api_secret:
            logger.error("Backtest needs --csv or API keys. Set BINANCE_API_KEY and BINANCE_API_SECRET in .env")
            return 1
        bars = binance_client(config).get_klines(symbol, config.timeframe, limit=1000)
    bt_config = BacktestConfig(
        symbol=symbol,
        rules=config.rules,
        start=args.start or config.backtest_start,
        end=args.end or config.backtest_end,
        initial_capital=config.backtest_initial_capital,
        position_size_pct=config.position_size_pct,
        apply_filters_in_backtest=config.apply_filters_in_backtest,
        window=config.pattern_window,
    )
    result = BacktestEngine().run(bars, bt_config)
    print_metrics(f"Backtest {symbol}", result.metrics)
    return 0


def run_daytrade(args: argparse.Namespace) -> int:
    """Run the ORB day-trading simulation over a directory of daily CSVs (one per symbol)."""
    config = load_config(args.config, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file)
    universe: Dict[str, List[Bar]] = {}
    for path in sorted(Path(args.data_dir).glob("*.csv")):
        universe[path.stem.upper()] = load_csv(path)
    logger.info("Loaded %d symbols from %s", len(universe), args.data_dir)
    result = DayTradingSimulator(DayTradingConfig.from_config(config)).run(universe)
    print_metrics("Day trading", result.metrics)
    print(f"Transaction costs: {result.total_transaction_costs:.2f}")
    if result.goal_reached:
        print(f"Goal reached on {result.goal_reached_on}")
    if result.breaker_years:
        print(f"Drawdown breaker tripped in: {', '.join(str(y) for y in result.breaker_years)}")
    return 0


def run_monitor(args: argparse.Namespace) -> int:
    """Scan rule symbols for patterns and monitor open positions until interrupted."""
    config = load_config(args.config, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file)
    if not config.binance_api_key or not config.binance_api_secret:
        logger.error("Missing BINANCE_API_KEY or BINANCE_API_SECRET in .env")
        return 1
    if not config.rules:
        logger.error("No rules configured; add a rules: list to config.yaml")
        return 1
    market = binance_client(config)
    executor = PaperBroker(market) if args.paper else market
    notify = telegram_notifier(config.telegram_bot_token, config.telegram_chat_id)
    monitor = ExitMonitor(
        market,
        executor,
        interval=config.monitor_interval,
        symbol_delay=config.monitor_symbol_delay,
        notifier=notify,
        regime=RegimeTracker(market, IndicatorCache(ttl=REGIME_TTL_SECONDS), interval=config.regime_interval),
    )
    scanner = PatternScanner(
        market,
        config.rules,
        IndicatorCache(),
        executor=executor,
        monitor=monitor,
        notifier=notify,
        auto_trade=AutoTradeConfig(
            enabled=any(r.auto_trade for r in config.rules),
            trading_hours_only=config.trading_hours_only,
        ),
        interval=config.timeframe,
    )
    send_telegram(
        f"Pattern trader starting | {', '.join(scanner.symbols())} | testnet={config.use_testnet} | paper={args.paper}",
        config.telegram_bot_token,
        config.telegram_chat_id,
    )
    monitor.start()
    try:
        while True:
            scanner.scan()
            time.sleep(config.monitor_interval)
    except KeyboardInterrupt:
        logger.info("Shutdown by user")
        send_telegram("Pattern trader stopped (user request).", config.telegram_bot_token, config.telegram_chat_id)
    finally:
        monitor.stop()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Pattern Trader CLI")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    sub = parser.add_subparsers(dest="mode", required=True)

    bt = sub.add_parser("backtest", help="Rule-based pattern backtest")
    bt.add_argument("--csv", type=Path, default=None, help="OHLCV CSV instead of Binance klines")
    bt.add_argument("--symbol", default=None)
    bt.add_argument("--start", default=None, help="YYYY-MM-DD")
    bt.add_argument("--end", default=None, help="YYYY-MM-DD")

    dt = sub.add_parser("daytrade", help="Opening-range-breakout day-trading simulation")
    dt.add_argument("--data-dir", type=Path, required=True, help="Directory of daily CSVs, one per symbol")

    mon = sub.add_parser("monitor", help="Live pattern scanner and exit monitor")
    mon.add_argument("--paper", action="store_true", help="Fill orders on the paper broker")

    args = parser.parse_args()
    try:
        if args.mode == "backtest":
            return run_backtest(args)
        if args.mode == "daytrade":
            return run_daytrade(args)
        return run_monitor(args)
    except PatternTraderError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    exit(main())
