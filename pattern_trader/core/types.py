"""
Core data types for bars, pattern matches, rules, positions, trades and alerts.
"""

from __future__ import annotations
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Sequence

import pandas as pd


class Signal(str, Enum):
    BUY = "buy"
    SELL = "sell"
    SHORT = "short"


class Direction(str, Enum):
    LONG = "long"
    SHORT = "short"


class PatternKind(str, Enum):
    HAMMER = "hammer"
    INVERTED_HAMMER = "inverted_hammer"
    BULLISH_ENGULFING = "bullish_engulfing"
    BEARISH_ENGULFING = "bearish_engulfing"
    SHOOTING_STAR = "shooting_star"
    EVENING_STAR = "evening_star"
    GRAVESTONE_DOJI = "gravestone_doji"
    BULLISH_BREAKOUT = "bullish_breakout"
    BEARISH_BREAKOUT = "bearish_breakout"


class Directive(str, Enum):
    """What a rule does when its pattern fires. short opens a short, cover closes one."""
    BUY = "buy"
    SELL = "sell"
    SHORT = "short"
    COVER = "cover"


class ExitReason(str, Enum):
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    TRAILING_STOP = "trailing_stop"
    TIME_STOP = "time_stop"
    END_OF_PERIOD = "end_of_period"
    REGIME_CHANGE = "regime_change"
    SIGNAL = "signal"


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    SHORT = "SHORT"
    COVER = "COVER"


class OrderKind(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class ExecutionStatus(str, Enum):
    EXECUTED = "executed"
    FAILED = "failed"


class MarketRegime(str, Enum):
    UPTREND = "uptrend"
    DOWNTREND = "downtrend"
    SIDEWAYS = "sideways"


@dataclass
class Bar:
    """OHLCV candle."""
    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def upper_shadow(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_shadow(self) -> float:
        return min(self.open, self.close) - self.low

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open


def bars_from_frame(df: pd.DataFrame) -> List[Bar]:
    """Convert an OHLCV DataFrame (columns: time, open, high, low, close, volume) to sorted Bars."""
    if "time" not in df.columns:
        raise KeyError("OHLCV frame needs a 'time' column")
    frame = df.sort_values("time")
    bars = []
    for row in frame.itertuples(index=False):
        t = row.time
        if isinstance(t, pd.Timestamp):
            t = t.to_pydatetime()
        volume = float(getattr(row, "volume", 0.0) or 0.0)
        bars.append(Bar(
            time=t,
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=volume,
        ))
    return bars


def bars_to_frame(bars: Sequence[Bar]) -> pd.DataFrame:
    return pd.DataFrame(
        [(b.time, b.open, b.high, b.low, b.close, b.volume) for b in bars],
        columns=["time", "open", "high", "low", "close", "volume"],
    )


@dataclass(frozen=True)
class PatternMatch:
    """A candlestick or breakout pattern found on the bar at `index`."""
    kind: PatternKind
    signal: Signal
    confidence: int
    index: int
    description: str = ""


@dataclass(frozen=True)
class ExitTargets:
    """Risk targets in percent of entry. None disables a leg."""
    take_profit_pct: Optional[float] = None
    stop_loss_pct: Optional[float] = None
    trailing_stop_pct: Optional[float] = None
    max_holding: Optional[timedelta] = None
    # close when the market regime flips against the entry regime
    regime_exit: bool = False

    @property
    def is_empty(self) -> bool:
        return (
            self.take_profit_pct is None
            and self.stop_loss_pct is None
            and self.trailing_stop_pct is None
            and self.max_holding is None
            and not self.regime_exit
        )


@dataclass(frozen=True)
class RsiFilter:
    enabled: bool = False
    period: int = 14
    min_rsi: Optional[float] = None
    max_rsi: Optional[float] = None


@dataclass(frozen=True)
class VolumeFilter:
    enabled: bool = False
    min_multiplier: float = 1.0


@dataclass(frozen=True)
class RuleFilters:
    min_confidence: Optional[int] = None
    rsi_filter: RsiFilter = field(default_factory=RsiFilter)
    volume_filter: VolumeFilter = field(default_factory=VolumeFilter)


@dataclass(frozen=True)
class RuleSizing:
    """Fixed share count or percent of capital. Percent wins in simulations when set."""
    shares: Optional[int] = None
    percent_of_capital: Optional[float] = None


@dataclass
class Rule:
    """Pattern-triggered trading rule. Read-only per run except last_executed_at."""
    id: str
    symbol: str
    pattern: PatternKind
    directive: Directive
    sizing: RuleSizing = field(default_factory=RuleSizing)
    filters: RuleFilters = field(default_factory=RuleFilters)
    risk: ExitTargets = field(default_factory=ExitTargets)
    cooldown: timedelta = timedelta(minutes=5)
    auto_trade: bool = False
    enabled: bool = True
    name: str = ""
    last_executed_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.symbol = self.symbol.upper()
        if not self.name:
            self.name = f"{self.pattern.value} {self.directive.value}"


@dataclass
class Position:
    """Open position. highest/lowest are tracked on every observation."""
    symbol: str
    direction: Direction
    shares: float
    entry_price: float
    entry_time: datetime
    targets: ExitTargets = field(default_factory=ExitTargets)
    highest_price: float = float("nan")
    lowest_price: float = float("nan")
    rule_id: Optional[str] = None
    pattern: Optional[PatternKind] = None
    # regime at entry; None disables the regime_change exit
    entry_regime: Optional[MarketRegime] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        if math.isnan(self.highest_price):
            self.highest_price = self.entry_price
        if math.isnan(self.lowest_price):
            self.lowest_price = self.entry_price

    def unrealized_pnl(self, price: float) -> float:
        if self.direction == Direction.LONG:
            return (price - self.entry_price) * self.shares
        return (self.entry_price - price) * self.shares

    def market_value(self, price: float) -> float:
        """Cash the position would return if closed at price (shorts return reserved collateral +/- P&L)."""
        if self.direction == Direction.LONG:
            return self.shares * price
        return self.shares * self.entry_price + self.unrealized_pnl(price)


@dataclass(frozen=True)
class Trade:
    """Closed trade for analytics."""
    symbol: str
    direction: Direction
    shares: float
    entry_price: float
    exit_price: float
    pnl: float
    pnl_pct: float
    entry_time: datetime
    exit_time: datetime
    exit_reason: ExitReason
    rule_id: Optional[str] = None
    pattern: Optional[PatternKind] = None
    fees: float = 0.0

    @property
    def holding_period(self) -> timedelta:
        return self.exit_time - self.entry_time

    @property
    def holding_days(self) -> int:
        return self.holding_period.days


def close_position(
    position: Position,
    exit_price: float,
    exit_time: datetime,
    reason: ExitReason,
    fees: float = 0.0,
) -> Trade:
    """Turn an open position into its immutable Trade record."""
    pnl = position.unrealized_pnl(exit_price) - fees
    cost = position.shares * position.entry_price
    pnl_pct = (pnl / cost) * 100 if cost else 0.0
    return Trade(
        symbol=position.symbol,
        direction=position.direction,
        shares=position.shares,
        entry_price=position.entry_price,
        exit_price=exit_price,
        pnl=pnl,
        pnl_pct=pnl_pct,
        entry_time=position.entry_time,
        exit_time=exit_time,
        exit_reason=reason,
        rule_id=position.rule_id,
        pattern=position.pattern,
        fees=fees,
    )


@dataclass(frozen=True)
class EquityPoint:
    time: datetime
    equity: float


@dataclass(frozen=True)
class Alert:
    """Pattern alert handed to the notification collaborator."""
    symbol: str
    pattern: PatternKind
    signal: Signal
    confidence: int
    time: datetime
    rule_id: Optional[str] = None
    message: str = ""


@dataclass(frozen=True)
class ExecutionRequest:
    symbol: str
    side: OrderSide
    shares: float
    order_kind: OrderKind = OrderKind.MARKET
    limit_price: Optional[float] = None


@dataclass
class ExecutionRecord:
    """Outcome of an execution request, kept for both fills and failures."""
    request: ExecutionRequest
    status: ExecutionStatus
    time: datetime
    price: Optional[float] = None
    rule_id: Optional[str] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ExecutionStatus.EXECUTED
