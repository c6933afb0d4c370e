"""
Exit-condition state machine: OPEN -> CLOSED(reason).

One evaluator serves both the backtest (fed the bar close) and the live
monitor (fed the polled quote), so both paths close positions identically.
Priority on each observation: take profit, trailing stop, stop loss, time stop,
then regime change when the caller supplies the current regime.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pattern_trader.core.types import Direction, ExitReason, MarketRegime, Position
from pattern_trader.risk.regime import regime_flipped

logger = logging.getLogger("pattern_trader.risk.exits")


class PositionState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class ExitDecision:
    state: PositionState
    reason: Optional[ExitReason] = None
    trigger_price: Optional[float] = None

    @property
    def closed(self) -> bool:
        return self.state == PositionState.CLOSED


STAY_OPEN = ExitDecision(PositionState.OPEN)


def take_profit_price(position: Position) -> Optional[float]:
    pct = position.targets.take_profit_pct
    if pct is None:
        return None
    if position.direction == Direction.LONG:
        return position.entry_price * (1 + pct / 100)
    return position.entry_price * (1 - pct / 100)


def stop_loss_price(position: Position) -> Optional[float]:
    pct = position.targets.stop_loss_pct
    if pct is None:
        return None
    if position.direction == Direction.LONG:
        return position.entry_price * (1 - pct / 100)
    return position.entry_price * (1 + pct / 100)


def trailing_stop_price(position: Position) -> Optional[float]:
    """Current trailing level, or None until the best-seen price has moved past entry."""
    pct = position.targets.trailing_stop_pct
    if not pct:
        return None
    if position.direction == Direction.LONG:
        if position.highest_price <= position.entry_price:
            return None
        return position.highest_price * (1 - pct / 100)
    if position.lowest_price >= position.entry_price:
        return None
    return position.lowest_price * (1 + pct / 100)


class ExitEvaluator:
    """Per-position exit decisions. Holds no state of its own."""

    def track(self, position: Position, price: float) -> None:
        """Update best/worst seen prices. Runs on every observation, win or lose."""
        if price > position.highest_price:
            position.highest_price = price
        if price < position.lowest_price:
            position.lowest_price = price

    def decide(
        self,
        position: Position,
        price: float,
        at: Optional[datetime] = None,
        regime: Optional[MarketRegime] = None,
    ) -> ExitDecision:
        """Pure exit test against the position's current tracking state."""
        long = position.direction == Direction.LONG

        tp = take_profit_price(position)
        if tp is not None and (price >= tp if long else price <= tp):
            return ExitDecision(PositionState.CLOSED, ExitReason.TAKE_PROFIT, tp)

        trail = trailing_stop_price(position)
        if trail is not None and (price <= trail if long else price >= trail):
            return ExitDecision(PositionState.CLOSED, ExitReason.TRAILING_STOP, trail)

        sl = stop_loss_price(position)
        if sl is not None and (price <= sl if long else price >= sl):
            return ExitDecision(PositionState.CLOSED, ExitReason.STOP_LOSS, sl)

        max_holding = position.targets.max_holding
        if max_holding is not None and at is not None and at - position.entry_time >= max_holding:
            return ExitDecision(PositionState.CLOSED, ExitReason.TIME_STOP, price)

        if position.targets.regime_exit and regime_flipped(position, regime):
            return ExitDecision(PositionState.CLOSED, ExitReason.REGIME_CHANGE, price)

        return STAY_OPEN

    def observe(
        self,
        position: Position,
        price: float,
        at: Optional[datetime] = None,
        regime: Optional[MarketRegime] = None,
    ) -> ExitDecision:
        """Track the observation, then decide. `regime` is the current market regime, if known."""
        self.track(position, price)
        decision = self.decide(position, price, at, regime)
        if decision.closed:
            logger.debug(
                "%s %s %s: price %.4f, trigger %.4f",
                position.symbol, position.direction.value, decision.reason.value,
                price, decision.trigger_price,
            )
        return decision
