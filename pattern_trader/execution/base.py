"""Abstract execution interface: market data, quotes and order placement."""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from pattern_trader.core.types import Bar, ExecutionRequest


@dataclass
class OrderResult:
    """Result of placing an order."""
    success: bool
    order_id: Optional[str] = None
    avg_price: Optional[float] = None
    quantity: Optional[float] = None
    message: str = ""


class ExecutionClient(ABC):
    """Abstract client used by the scanner and the exit monitor."""

    @abstractmethod
    def get_klines(self, symbol: str, interval: str, limit: int = 100) -> List[Bar]:
        """Recent closed bars, oldest first."""
        pass

    @abstractmethod
    def get_price(self, symbol: str) -> float:
        """Latest traded price. Raises DataGapError when no quote is available."""
        pass

    @abstractmethod
    def execute(self, request: ExecutionRequest) -> OrderResult:
        """Place the order. Rejections come back as OrderResult(success=False)."""
        pass
