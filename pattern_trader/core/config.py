"""
Load configuration from config.yaml and .env. API keys only from env.
"""

from __future__ import annotations
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, List, Optional

import yaml
from dotenv import load_dotenv

from pattern_trader.core.errors import ConfigurationError
from pattern_trader.core.types import (
    Directive,
    ExitTargets,
    PatternKind,
    RsiFilter,
    Rule,
    RuleFilters,
    RuleSizing,
    VolumeFilter,
)


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> "Config":
    """Load config.yaml and overlay with env. Returns Config."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    # Env overrides (for secrets and overrides)
    def env(key: str, default: str = "") -> str:
        return os.getenv(key, default).strip()

    def env_bool(key: str, default: bool = False) -> bool:
        return os.getenv(key, str(default)).lower() in ("true", "1", "yes")

    def env_int(key: str, default: int = 0) -> int:
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def env_float(key: str, default: float = 0.0) -> float:
        try:
            return float(os.getenv(key, str(default)))
        except ValueError:
            return default

    api = data.get("api", {})
    backtest = data.get("backtest", {})
    daytrade = data.get("day_trading", {})
    monitor = data.get("monitor", {})
    telegram = data.get("telegram", {})
    logging_cfg = data.get("logging", {})

    use_testnet = env_bool("USE_TESTNET", api.get("use_testnet", True))
    if use_testnet:
        binance_api_key = env("BINANCE_TESTNET_API_KEY") or env("BINANCE_API_KEY", api.get("binance_api_key", ""))
        binance_api_secret = env("BINANCE_TESTNET_API_SECRET") or env("BINANCE_API_SECRET", api.get("binance_api_secret", ""))
    else:
        binance_api_key = env("BINANCE_MAINNET_API_KEY") or env("BINANCE_API_KEY", api.get("binance_api_key", ""))
        binance_api_secret = env("BINANCE_MAINNET_API_SECRET") or env("BINANCE_API_SECRET", api.get("binance_api_secret", ""))

    return Config(
        # API (env only; never put keys in config.yaml)
        binance_api_key=binance_api_key,
        binance_api_secret=binance_api_secret,
        use_testnet=use_testnet,
        request_timeout=env_float("REQUEST_TIMEOUT", api.get("request_timeout", 10.0)),
        # Rule-based backtest
        symbol=env("SYMBOL", backtest.get("symbol", "BTCUSDT")).upper(),
        timeframe=env("TIMEFRAME", backtest.get("timeframe", "1d")),
        backtest_start=backtest.get("start_date"),
        backtest_end=backtest.get("end_date"),
        backtest_initial_capital=float(backtest.get("initial_capital", 10000.0)),
        position_size_pct=env_float("POSITION_SIZE_PCT", backtest.get("position_size_pct", 10.0)),
        apply_filters_in_backtest=env_bool(
            "APPLY_FILTERS_IN_BACKTEST", backtest.get("apply_filters_in_backtest", False)
        ),
        pattern_window=int(backtest.get("pattern_window", 10)),
        # Day trading
        daytrade_initial_capital=float(daytrade.get("initial_capital", 5000.0)),
        daytrade_goal_capital=float(daytrade.get("goal_capital", 100000.0)),
        daytrade_position_pct=float(daytrade.get("position_pct", 20.0)),
        daytrade_taper_floor_pct=float(daytrade.get("taper_floor_pct", 5.0)),
        daytrade_taper_ceiling=float(daytrade.get("taper_ceiling", 25000.0)),
        daytrade_profit_target_pct=float(daytrade.get("profit_target_pct", 2.0)),
        daytrade_stop_pct=float(daytrade.get("stop_pct", 1.0)),
        daytrade_max_setups=int(daytrade.get("max_setups_per_day", 5)),
        daytrade_commission=float(daytrade.get("commission", 1.0)),
        daytrade_slippage_pct=float(daytrade.get("slippage_pct", 0.05)),
        daytrade_yearly_drawdown_pct=float(daytrade.get("yearly_drawdown_pct", 20.0)),
        # Monitor
        monitor_interval=env_float("MONITOR_INTERVAL", monitor.get("interval_seconds", 30.0)),
        monitor_symbol_delay=float(monitor.get("symbol_delay_seconds", 0.3)),
        trading_hours_only=env_bool("TRADING_HOURS_ONLY", monitor.get("trading_hours_only", False)),
        regime_interval=monitor.get("regime_interval", "1d"),
        # Telegram
        telegram_bot_token=env("TELEGRAM_BOT_TOKEN", telegram.get("bot_token", "")),
        telegram_chat_id=env("TELEGRAM_CHAT_ID", telegram.get("chat_id", "")),
        # Logging
        log_level=logging_cfg.get("level", "INFO"),
        log_dir=Path(logging_cfg.get("log_dir", "logs")),
        log_file=logging_cfg.get("log_file", "pattern_trader.log"),
        # Rules
        rules=load_rules(data.get("rules", [])),
    )


def _opt_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def load_rules(raw: List[dict]) -> List[Rule]:
    """Build Rule objects from the YAML `rules:` list. Unknown pattern/directive is a ConfigurationError."""
    rules: List[Rule] = []
    for i, item in enumerate(raw or []):
        try:
            pattern = PatternKind(item["pattern"])
            directive = Directive(item.get("directive", item.get("type", "buy")))
        except KeyError as e:
            raise ConfigurationError(f"rule #{i}: missing field {e}") from e
        except ValueError as e:
            raise ConfigurationError(f"rule #{i}: {e}") from e
        if "symbol" not in item:
            raise ConfigurationError(f"rule #{i}: missing field 'symbol'")

        rsi = item.get("rsi_filter") or {}
        vol = item.get("volume_filter") or {}
        risk = item.get("risk") or {}
        sizing = item.get("sizing") or {}
        time_stop_days = risk.get("time_stop_days")
        rules.append(Rule(
            id=str(item.get("id", f"rule-{i}")),
            name=item.get("name", ""),
            symbol=str(item["symbol"]),
            pattern=pattern,
            directive=directive,
            enabled=bool(item.get("enabled", True)),
            auto_trade=bool(item.get("auto_trade", False)),
            cooldown=timedelta(minutes=float(item.get("cooldown_minutes", 5))),
            sizing=RuleSizing(
                shares=sizing.get("shares"),
                percent_of_capital=_opt_float(sizing.get("percent_of_capital")),
            ),
            filters=RuleFilters(
                min_confidence=item.get("min_confidence"),
                rsi_filter=RsiFilter(
                    enabled=bool(rsi.get("enabled", False)),
                    period=int(rsi.get("period", 14)),
                    min_rsi=_opt_float(rsi.get("min_rsi")),
                    max_rsi=_opt_float(rsi.get("max_rsi")),
                ),
                volume_filter=VolumeFilter(
                    enabled=bool(vol.get("enabled", False)),
                    min_multiplier=float(vol.get("min_multiplier", 1.0)),
                ),
            ),
            risk=ExitTargets(
                take_profit_pct=_opt_float(risk.get("take_profit_pct")),
                stop_loss_pct=_opt_float(risk.get("stop_loss_pct")),
                trailing_stop_pct=_opt_float(risk.get("trailing_stop_pct")),
                max_holding=timedelta(days=float(time_stop_days)) if time_stop_days is not None else None,
                regime_exit=bool(risk.get("regime_exit", False)),
            ),
        ))
    return rules


class Config:
    """Unified configuration. Immutable after load."""

    __slots__ = (
        "binance_api_key", "binance_api_secret", "use_testnet", "request_timeout",
        "symbol", "timeframe", "backtest_start", "backtest_end", "backtest_initial_capital",
        "position_size_pct", "apply_filters_in_backtest", "pattern_window",
        "daytrade_initial_capital", "daytrade_goal_capital", "daytrade_position_pct",
        "daytrade_taper_floor_pct", "daytrade_taper_ceiling", "daytrade_profit_target_pct",
        "daytrade_stop_pct", "daytrade_max_setups", "daytrade_commission", "daytrade_slippage_pct",
        "daytrade_yearly_drawdown_pct",
        "monitor_interval", "monitor_symbol_delay", "trading_hours_only", "regime_interval",
        "telegram_bot_token", "telegram_chat_id",
        "log_level", "log_dir", "log_file",
        "rules",
    )

    def __init__(
        self,
        binance_api_key: str = "",
        binance_api_secret: str = "",
        use_testnet: bool = True,
        request_timeout: float = 10.0,
        symbol: str = "BTCUSDT",
        timeframe: str = "1d",
        backtest_start: Optional[str] = None,
        backtest_end: Optional[str] = None,
        backtest_initial_capital: float = 10000.0,
        position_size_pct: float = 10.0,
        apply_filters_in_backtest: bool = False,
        pattern_window: int = 10,
        daytrade_initial_capital: float = 5000.0,
        daytrade_goal_capital: float = 100000.0,
        daytrade_position_pct: float = 20.0,
        daytrade_taper_floor_pct: float = 5.0,
        daytrade_taper_ceiling: float = 25000.0,
        daytrade_profit_target_pct: float = 2.0,
        daytrade_stop_pct: float = 1.0,
        daytrade_max_setups: int = 5,
        daytrade_commission: float = 1.0,
        daytrade_slippage_pct: float = 0.05,
        daytrade_yearly_drawdown_pct: float = 20.0,
        monitor_interval: float = 30.0,
        monitor_symbol_delay: float = 0.3,
        trading_hours_only: bool = False,
        regime_interval: str = "1d",
        telegram_bot_token: str = "",
        telegram_chat_id: str = "",
        log_level: str = "INFO",
        log_dir: Path = None,
        log_file: str = "pattern_trader.log",
        rules: Optional[List[Rule]] = None,
    ):
        self.binance_api_key = binance_api_key
        self.binance_api_secret = binance_api_secret
        self.use_testnet = use_testnet
        self.request_timeout = request_timeout
        self.symbol = symbol
        self.timeframe = timeframe
        self.backtest_start = backtest_start
        self.backtest_end = backtest_end
        self.backtest_initial_capital = backtest_initial_capital
        self.position_size_pct = position_size_pct
        self.apply_filters_in_backtest = apply_filters_in_backtest
        self.pattern_window = pattern_window
        self.daytrade_initial_capital = daytrade_initial_capital
        self.daytrade_goal_capital = daytrade_goal_capital
        self.daytrade_position_pct = daytrade_position_pct
        self.daytrade_taper_floor_pct = daytrade_taper_floor_pct
        self.daytrade_taper_ceiling = daytrade_taper_ceiling
        self.daytrade_profit_target_pct = daytrade_profit_target_pct
        self.daytrade_stop_pct = daytrade_stop_pct
        self.daytrade_max_setups = daytrade_max_setups
        self.daytrade_commission = daytrade_commission
        self.daytrade_slippage_pct = daytrade_slippage_pct
        self.daytrade_yearly_drawdown_pct = daytrade_yearly_drawdown_pct
        self.monitor_interval = monitor_interval
        self.monitor_symbol_delay = monitor_symbol_delay
        self.trading_hours_only = trading_hours_only
        self.regime_interval = regime_interval
        self.telegram_bot_token = telegram_bot_token
        self.telegram_chat_id = telegram_chat_id
        self.log_level = log_level
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.log_file = log_file
        self.rules = list(rules or [])
