"""Execution: exchange abstraction, Binance spot client and paper broker."""

from pattern_trader.execution.base import ExecutionClient, OrderResult
from pattern_trader.execution.binance_spot import BinanceSpotClient
from pattern_trader.execution.paper import PaperBroker

__all__ = ["ExecutionClient", "OrderResult", "BinanceSpotClient", "PaperBroker"]
