"""
Paper broker: fills every market order at the quoted price. Quotes and bars
come from another ExecutionClient or are set by hand (tests, dry runs).
"""

from __future__ import annotations
import itertools
import logging
from typing import Dict, List, Optional

from pattern_trader.core.errors import DataGapError
from pattern_trader.core.types import Bar, ExecutionRequest, OrderKind, OrderSide
from pattern_trader.execution.base import ExecutionClient, OrderResult

logger = logging.getLogger("pattern_trader.execution.paper")


class PaperBroker(ExecutionClient):
    def __init__(self, market_data: Optional[ExecutionClient] = None):
        self.market_data = market_data
        self.prices: Dict[str, float] = {}
        self.bars: Dict[str, List[Bar]] = {}
        self.orders: List[ExecutionRequest] = []
        self._ids = itertools.count(1)

    def set_price(self, symbol: str, price: float) -> None:
        self.prices[symbol.upper()] = price

    def set_bars(self, symbol: str, bars: List[Bar]) -> None:
        self.bars[symbol.upper()] = list(bars)
        if bars:
            self.prices.setdefault(symbol.upper(), bars[-1].close)

    def get_klines(self, symbol: str, interval: str, limit: int = 100) -> List[Bar]:
        if self.market_data is not None:
            return self.market_data.get_klines(symbol, interval, limit)
        bars = self.bars.get(symbol.upper())
        if not bars:
            raise DataGapError(symbol, "no bars loaded")
        return bars[-limit:]

    def get_price(self, symbol: str) -> float:
        if self.market_data is not None:
            return self.market_data.get_price(symbol)
        price = self.prices.get(symbol.upper())
        if price is None:
            raise DataGapError(symbol, "no quote")
        return price

    def execute(self, request: ExecutionRequest) -> OrderResult:
        if request.shares <= 0:
            return OrderResult(success=False, message="quantity must be positive")
        if request.order_kind == OrderKind.LIMIT:
            price = request.limit_price
        else:
            try:
                price = self.get_price(request.symbol)
            except DataGapError as e:
                return OrderResult(success=False, message=str(e))
        self.orders.append(request)
        order_id = f"paper-{next(self._ids)}"
        verb = "bought" if request.side in (OrderSide.BUY, OrderSide.COVER) else "sold"
        logger.info("[PAPER] %s %s %s @ %.4f (%s)", verb, request.shares, request.symbol, price, request.side.value)
        return OrderResult(success=True, order_id=order_id, avg_price=price, quantity=request.shares)
