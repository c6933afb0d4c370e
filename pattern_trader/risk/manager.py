"""
Day-trading risk manager: yearly drawdown breaker, goal stop, tapered sizing.
Size = floor(capital * size_pct / entry), where size_pct tapers linearly from
the base percent at the taper ceiling down to the floor percent at the goal.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

logger = logging.getLogger("pattern_trader.risk")


@dataclass
class RiskResult:
    """Result of risk check: allowed or rejected + reason."""
    allowed: bool
    quantity: float = 0.0
    reason: str = ""


@dataclass
class YearlyDrawdownBreaker:
    """
    Tracks capital against its value at the first trading day of each
    calendar year. Once drawdown exceeds the limit, entries stay blocked
    until the next year starts.
    """
    max_drawdown_pct: float
    year: Optional[int] = None
    year_start_capital: float = 0.0
    tripped: bool = False
    tripped_years: List[int] = field(default_factory=list)

    def on_day(self, day: date, capital: float) -> None:
        """Call at the start of every trading day, before entries."""
        if self.year != day.year:
            if self.year is not None:
                logger.info("New year %d: breaker reset at capital %.2f", day.year, capital)
            self.year = day.year
            self.year_start_capital = capital
            self.tripped = False

    def drawdown_pct(self, capital: float) -> float:
        if self.year_start_capital <= 0:
            return 0.0
        return (self.year_start_capital - capital) / self.year_start_capital * 100

    def update(self, capital: float) -> bool:
        """Record capital after fills. Returns True while the breaker is tripped."""
        if not self.tripped and self.drawdown_pct(capital) > self.max_drawdown_pct:
            self.tripped = True
            if self.year is not None:
                self.tripped_years.append(self.year)
            logger.warning(
                "Yearly drawdown breaker tripped for %s: %.2f%% > %.2f%%",
                self.year, self.drawdown_pct(capital), self.max_drawdown_pct,
            )
        return self.tripped


class RiskManager:
    """
    Enforces: goal capital stop, yearly drawdown breaker, tapered position size.
    """

    def __init__(
        self,
        position_pct: float,
        taper_floor_pct: float,
        taper_ceiling: float,
        goal_capital: float,
        max_yearly_drawdown_pct: float,
    ):
        self.position_pct = position_pct
        self.taper_floor_pct = taper_floor_pct
        self.taper_ceiling = taper_ceiling
        self.goal_capital = goal_capital
        self.breaker = YearlyDrawdownBreaker(max_yearly_drawdown_pct)
        self.goal_reached: bool = False
        self.goal_reached_on: Optional[date] = None

    def start_day(self, day: date, capital: float) -> None:
        self.breaker.on_day(day, capital)
        self.check_goal(capital, day)

    def check_goal(self, capital: float, day: Optional[date] = None) -> bool:
        """Latch the goal flag once capital reaches the goal; it never unlatches."""
        if not self.goal_reached and capital >= self.goal_capital:
            self.goal_reached = True
            self.goal_reached_on = day
            logger.info("Goal capital %.2f reached (%.2f); trading stops", self.goal_capital, capital)
        return self.goal_reached

    def size_pct(self, capital: float) -> float:
        """Percent of capital per position, tapered above the ceiling."""
        if capital <= self.taper_ceiling or self.goal_capital <= self.taper_ceiling:
            return self.position_pct
        progress = (capital - self.taper_ceiling) / (self.goal_capital - self.taper_ceiling)
        pct = self.position_pct - (self.position_pct - self.taper_floor_pct) * min(progress, 1.0)
        return max(self.taper_floor_pct, pct)

    def validate_entry(self, entry_price: float, capital: float, available_cash: float) -> RiskResult:
        """Gate one entry and compute whole-share quantity."""
        if self.goal_reached:
            return RiskResult(allowed=False, reason="goal reached")
        if self.breaker.tripped:
            return RiskResult(allowed=False, reason="yearly drawdown breaker")
        if not entry_price > 0:
            return RiskResult(allowed=False, reason="invalid entry price")
        value = min(capital * self.size_pct(capital) / 100.0, available_cash)
        qty = math.floor(value / entry_price)
        if qty <= 0:
            return RiskResult(allowed=False, reason="qty rounded to 0")
        return RiskResult(allowed=True, quantity=float(qty))

    def record_capital(self, capital: float, day: Optional[date] = None) -> None:
        self.breaker.update(capital)
        self.check_goal(capital, day)
