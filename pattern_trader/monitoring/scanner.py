"""
Live pattern scanner: fetches recent bars per symbol, detects patterns on the
latest window, raises alerts and optionally auto-trades matching rules.
Entries that carry exit targets are handed to the exit monitor.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time as dtime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from pattern_trader.core.errors import DataGapError, ExecutionError
from pattern_trader.core.types import (
    Alert,
    Bar,
    ExecutionRecord,
    ExecutionRequest,
    ExecutionStatus,
    PatternKind,
    PatternMatch,
    Position,
    Rule,
)
from pattern_trader.execution.base import ExecutionClient
from pattern_trader.indicators.cache import IndicatorCache
from pattern_trader.indicators.library import rsi, volume_ratio
from pattern_trader.monitoring.monitor import ExitMonitor, utc_now
from pattern_trader.patterns.detector import DEFAULT_THRESHOLDS, PatternThresholds, detect_patterns
from pattern_trader.strategies.rules import (
    FilterResult,
    action_for,
    alert_signal,
    check_cooldown,
    check_entry_filters,
    find_rule,
    order_side_for,
)
from pattern_trader.utils.telegram import format_alert

logger = logging.getLogger("pattern_trader.scanner")

KLINE_LIMIT = 100
PATTERN_WINDOW = 10


@dataclass
class AutoTradeConfig:
    enabled: bool = False
    max_trades_per_day: int = 10
    # Account value used for percent-of-capital sizing.
    capital: float = 10000.0
    default_shares: int = 1
    # Only trade inside the exchange session (inclusive, exchange local time).
    trading_hours_only: bool = False
    market_timezone: str = "America/New_York"
    market_open: dtime = dtime(9, 30)
    market_close: dtime = dtime(16, 0)


def within_trading_hours(now: datetime, config: AutoTradeConfig) -> bool:
    """Naive timestamps are read as UTC."""
    ts = pd.Timestamp(now)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    local = ts.tz_convert(config.market_timezone)
    minute = dtime(local.hour, local.minute)
    return config.market_open <= minute <= config.market_close


class PatternScanner:
    def __init__(
        self,
        market_data: ExecutionClient,
        rules: List[Rule],
        cache: IndicatorCache,
        executor: Optional[ExecutionClient] = None,
        monitor: Optional[ExitMonitor] = None,
        notifier: Optional[Callable[[str], Any]] = None,
        auto_trade: Optional[AutoTradeConfig] = None,
        interval: str = "1h",
        thresholds: PatternThresholds = DEFAULT_THRESHOLDS,
        volume_lookback: int = 20,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.market_data = market_data
        self.rules = rules
        self.cache = cache
        self.executor = executor
        self.monitor = monitor
        self.notifier = notifier
        self.auto_trade = auto_trade or AutoTradeConfig()
        self.interval = interval
        self.thresholds = thresholds
        self.volume_lookback = volume_lookback
        self._clock = clock
        self.alerts: List[Alert] = []
        self.executions: List[ExecutionRecord] = []
        # (symbol, pattern) -> bar time of the last alert
        self._last_alert: Dict[Tuple[str, PatternKind], datetime] = {}
        self._trade_day: Optional[date] = None
        self._trades_today = 0

    def symbols(self) -> List[str]:
        return sorted({r.symbol for r in self.rules if r.enabled})

    def _rsi(self, symbol: str, bars: List[Bar], period: int) -> float:
        def compute() -> Optional[float]:
            values = rsi(bars, period)
            last = float(values[-1]) if len(values) else float("nan")
            return None if math.isnan(last) else last
        value = self.cache.get_or_compute("rsi", symbol, compute, params=(self.interval, period))
        return float("nan") if value is None else value

    def scan(self, symbols: Optional[Iterable[str]] = None) -> List[Alert]:
        """Scan every symbol; failures are logged per symbol and the scan continues."""
        alerts: List[Alert] = []
        for symbol in symbols or self.symbols():
            try:
                alerts.extend(self.scan_symbol(symbol))
            except DataGapError as e:
                logger.warning("Skipping %s: %s", symbol, e)
            except Exception as e:
                logger.exception("Scan failed for %s: %s", symbol, e)
        return alerts

    def scan_symbol(self, symbol: str) -> List[Alert]:
        symbol = symbol.upper()
        bars = self.market_data.get_klines(symbol, self.interval, KLINE_LIMIT)
        if len(bars) < PATTERN_WINDOW:
            logger.debug("%s: only %d bars, need %d", symbol, len(bars), PATTERN_WINDOW)
            return []
        last = bars[-1]
        matches = detect_patterns(bars[-PATTERN_WINDOW:], self.thresholds, index=len(bars) - 1)
        vol = volume_ratio(bars, self.volume_lookback)

        alerts = []
        for match in matches:
            key = (symbol, match.kind)
            if self._last_alert.get(key) == last.time:
                continue
            self._last_alert[key] = last.time
            rule = find_rule(self.rules, symbol, match.kind)
            alert = Alert(
                symbol=symbol,
                pattern=match.kind,
                signal=alert_signal(match, rule),
                confidence=match.confidence,
                time=last.time,
                rule_id=rule.id if rule else None,
                message=match.description,
            )
            alerts.append(alert)
            self.alerts.append(alert)
            logger.info("%s %s (%d%%) on %s", symbol, match.kind.value, match.confidence, last.time)
            if self.notifier is not None:
                try:
                    self.notifier(format_alert(alert))
                except Exception as e:
                    logger.exception("Alert notification for %s failed: %s", symbol, e)
            if rule is not None and rule.auto_trade and self.auto_trade.enabled:
                rsi_value = self._rsi(symbol, bars, rule.filters.rsi_filter.period)
                self.try_auto_trade(rule, match, last.close, rsi_value, vol)
        return alerts

    def _shares(self, rule: Rule, price: float) -> int:
        if rule.sizing.shares:
            return int(rule.sizing.shares)
        if rule.sizing.percent_of_capital and price > 0:
            return math.floor(self.auto_trade.capital * rule.sizing.percent_of_capital / 100 / price)
        return self.auto_trade.default_shares

    def try_auto_trade(
        self,
        rule: Rule,
        match: PatternMatch,
        price: float,
        rsi_value: Optional[float],
        vol_ratio: Optional[float],
    ) -> FilterResult:
        """Apply live filters and place the rule's order. Returns why it was skipped, if it was."""
        now = self._clock()
        if self._trade_day != now.date():
            self._trade_day = now.date()
            self._trades_today = 0
        if self.executor is None:
            return FilterResult(False, "no executor")
        if self.auto_trade.trading_hours_only and not within_trading_hours(now, self.auto_trade):
            return self._skip(rule, FilterResult(False, "outside trading hours"))
        if self._trades_today >= self.auto_trade.max_trades_per_day:
            return self._skip(rule, FilterResult(False, f"daily limit reached ({self.auto_trade.max_trades_per_day})"))
        check = check_cooldown(rule, now)
        if check.passed:
            check = check_entry_filters(rule, match, rsi_value, vol_ratio, indicator_filters=True)
        if not check.passed:
            return self._skip(rule, check)
        shares = self._shares(rule, price)
        if shares <= 0:
            return self._skip(rule, FilterResult(False, "position size rounded to 0"))

        action = action_for(rule.directive)
        request = ExecutionRequest(rule.symbol, order_side_for(action), shares)
        try:
            result = self.executor.execute(request)
            if not result.success:
                raise ExecutionError(rule.symbol, result.message or "order rejected")
        except ExecutionError as e:
            logger.error("Auto-trade %s failed: %s", rule.name, e.reason)
            self.executions.append(ExecutionRecord(request, ExecutionStatus.FAILED, now, rule_id=rule.id, error=e.reason))
            return FilterResult(False, e.reason)
        except Exception as e:
            logger.exception("Auto-trade %s raised: %s", rule.name, e)
            self.executions.append(ExecutionRecord(request, ExecutionStatus.FAILED, now, rule_id=rule.id, error=str(e)))
            return FilterResult(False, str(e))

        fill = result.avg_price or price
        rule.last_executed_at = now
        self._trades_today += 1
        self.executions.append(ExecutionRecord(request, ExecutionStatus.EXECUTED, now, price=fill, rule_id=rule.id))
        logger.info("Auto-trade %s: %s %d %s @ %.4f", rule.name, request.side.value, shares, rule.symbol, fill)

        if self.monitor is not None:
            if action.opens and not rule.risk.is_empty:
                position = Position(
                    symbol=rule.symbol,
                    direction=action.direction,
                    shares=shares,
                    entry_price=fill,
                    entry_time=now,
                    rule_id=rule.id,
                    pattern=match.kind,
                )
                self.monitor.register_from_rule(position, rule)
            elif not action.opens:
                for position in list(self.monitor.positions.values()):
                    if position.symbol == rule.symbol and position.direction == action.direction:
                        self.monitor.deregister(position.id)
        return FilterResult(True)

    def _skip(self, rule: Rule, check: FilterResult) -> FilterResult:
        logger.info("Auto-trade %s skipped: %s", rule.name, check.reason)
        return check
