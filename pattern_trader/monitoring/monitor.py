"""
Live exit monitor: polls prices for registered positions and closes them
through the executor when the exit evaluator says so.

One daemon worker thread. Registration goes through a queue and is applied at
the start of the next poll, so the registry is only touched by the poller.
A poll that would overlap a running one is skipped.
"""

from __future__ import annotations
import logging
import queue
import threading
import time
from collections import defaultdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pattern_trader.core.errors import DataGapError, ExecutionError
from pattern_trader.core.types import (
    ExecutionRecord,
    ExecutionRequest,
    ExecutionStatus,
    MarketRegime,
    Position,
    Rule,
    Trade,
    close_position,
)
from pattern_trader.execution.base import ExecutionClient
from pattern_trader.risk.exits import ExitDecision, ExitEvaluator
from pattern_trader.risk.regime import RegimeTracker
from pattern_trader.strategies.rules import closing_side
from pattern_trader.utils.telegram import format_trade

logger = logging.getLogger("pattern_trader.monitor")

DEFAULT_INTERVAL_SECONDS = 30.0
DEFAULT_SYMBOL_DELAY_SECONDS = 0.3


class MonitorState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    STOPPED = "stopped"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExitMonitor:
    def __init__(
        self,
        price_source: ExecutionClient,
        executor: ExecutionClient,
        evaluator: Optional[ExitEvaluator] = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        symbol_delay: float = DEFAULT_SYMBOL_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now,
        notifier: Optional[Callable[[str], Any]] = None,
        regime: Optional[RegimeTracker] = None,
    ):
        self.price_source = price_source
        self.executor = executor
        self.evaluator = evaluator or ExitEvaluator()
        self.interval = interval
        self.symbol_delay = symbol_delay
        self.notifier = notifier
        self.regime = regime
        self._sleep = sleep
        self._clock = clock
        self.state = MonitorState.IDLE
        self.positions: Dict[str, Position] = {}
        self.trades: List[Trade] = []
        self.executions: List[ExecutionRecord] = []
        self._requests: "queue.Queue[tuple]" = queue.Queue()
        self._poll_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # Registry

    def register(self, position: Position) -> bool:
        """Queue a position for monitoring. Positions without exit targets are ignored."""
        if position.targets.is_empty:
            logger.debug("%s %s has no exit targets, not monitored", position.symbol, position.id)
            return False
        self._requests.put(("register", position))
        return True

    def register_from_rule(self, position: Position, rule: Rule) -> bool:
        position.targets = rule.risk
        if position.rule_id is None:
            position.rule_id = rule.id
        if rule.risk.regime_exit and position.entry_regime is None:
            position.entry_regime = self._current_regime(position.symbol)
        return self.register(position)

    def _current_regime(self, symbol: str) -> Optional[MarketRegime]:
        if self.regime is None:
            return None
        try:
            return self.regime.current(symbol)
        except DataGapError as e:
            logger.warning("No regime for %s: %s", symbol, e)
        except Exception as e:
            logger.exception("Regime lookup failed for %s: %s", symbol, e)
        return None

    def deregister(self, position_id: str) -> None:
        self._requests.put(("deregister", position_id))

    def _apply_requests(self) -> None:
        while True:
            try:
                op, item = self._requests.get_nowait()
            except queue.Empty:
                return
            if op == "register":
                self.positions[item.id] = item
                logger.info(
                    "Monitoring %s %s %g @ %.4f", item.symbol, item.direction.value, item.shares, item.entry_price,
                )
            elif self.positions.pop(item, None) is not None:
                logger.info("Stopped monitoring position %s", item)

    # Polling

    def poll_once(self) -> List[Trade]:
        """One pass over all registered positions. Returns trades closed in this pass."""
        if not self._poll_lock.acquire(blocking=False):
            logger.debug("Poll already running, skipping")
            return []
        try:
            with self._state_lock:
                if self.state != MonitorState.STOPPED:
                    self.state = MonitorState.POLLING
            self._apply_requests()
            by_symbol: Dict[str, List[Position]] = defaultdict(list)
            for position in self.positions.values():
                by_symbol[position.symbol].append(position)

            closed: List[Trade] = []
            for n, (symbol, positions) in enumerate(by_symbol.items()):
                if n:
                    self._sleep(self.symbol_delay)
                try:
                    price = self.price_source.get_price(symbol)
                except DataGapError as e:
                    logger.warning("No price for %s, skipping this poll: %s", symbol, e)
                    continue
                except Exception as e:
                    logger.exception("Price fetch failed for %s: %s", symbol, e)
                    continue
                now = self._clock()
                regime = None
                if any(p.targets.regime_exit and p.entry_regime is not None for p in positions):
                    regime = self._current_regime(symbol)
                for position in positions:
                    decision = self.evaluator.observe(position, price, now, regime)
                    if decision.closed:
                        trade = self._close(position, price, decision, now)
                        if trade is not None:
                            closed.append(trade)
            return closed
        finally:
            with self._state_lock:
                if self.state == MonitorState.POLLING:
                    self.state = MonitorState.IDLE
            self._poll_lock.release()

    def _close(self, position: Position, price: float, decision: ExitDecision, now: datetime) -> Optional[Trade]:
        request = ExecutionRequest(position.symbol, closing_side(position.direction), position.shares)
        try:
            result = self.executor.execute(request)
            if not result.success:
                raise ExecutionError(position.symbol, result.message or "order rejected")
        except ExecutionError as e:
            logger.error("Exit %s for %s failed, will retry: %s", decision.reason.value, position.symbol, e.reason)
            self.executions.append(ExecutionRecord(
                request, ExecutionStatus.FAILED, now, rule_id=position.rule_id, error=e.reason,
            ))
            return None
        except Exception as e:
            logger.exception("Exit order for %s raised: %s", position.symbol, e)
            self.executions.append(ExecutionRecord(
                request, ExecutionStatus.FAILED, now, rule_id=position.rule_id, error=str(e),
            ))
            return None

        fill = result.avg_price or price
        trade = close_position(position, fill, now, decision.reason)
        self.executions.append(ExecutionRecord(request, ExecutionStatus.EXECUTED, now, price=fill, rule_id=position.rule_id))
        self.trades.append(trade)
        self.positions.pop(position.id, None)
        logger.info(
            "Closed %s %s (%s) @ %.4f, PnL %.2f",
            position.symbol, position.direction.value, decision.reason.value, fill, trade.pnl,
        )
        if self.notifier is not None:
            try:
                self.notifier(format_trade(trade))
            except Exception as e:
                logger.exception("Close notification for %s failed: %s", position.symbol, e)
        return trade

    # Lifecycle

    def start(self) -> None:
        """No-op while running. After stop(), waits for the old worker's in-flight poll, then restarts."""
        if self._thread is not None and self._thread.is_alive():
            if not self._stop_event.is_set():
                return
            self._thread.join()
        self._stop_event.clear()
        with self._state_lock:
            self.state = MonitorState.IDLE
        self._thread = threading.Thread(target=self._run, name="exit-monitor", daemon=True)
        self._thread.start()
        logger.info("Exit monitor started (interval %.1fs)", self.interval)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception as e:
                logger.exception("Monitor poll error: %s", e)
            self._stop_event.wait(self.interval)

    def stop(self) -> None:
        """Idempotent. Wakes the timer; an in-flight poll finishes on its own."""
        with self._state_lock:
            if self.state == MonitorState.STOPPED:
                return
            self.state = MonitorState.STOPPED
        self._stop_event.set()
        logger.info("Exit monitor stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() is called or the timeout passes."""
        return self._stop_event.wait(timeout)
