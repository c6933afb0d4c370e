"""
Engine exceptions. Configuration problems surface to the caller; data gaps and
execution failures stay scoped to the symbol or poll that produced them.
"""

from __future__ import annotations


class PatternTraderError(Exception):
    """Base class for engine errors."""


class ConfigurationError(PatternTraderError):
    """Bad input to a run: insufficient data, empty date range, unknown symbol or rule field."""


class DataGapError(PatternTraderError):
    """A price observation was missing during live polling."""

    def __init__(self, symbol: str, message: str = ""):
        self.symbol = symbol
        super().__init__(message or f"no price available for {symbol}")


class ExecutionError(PatternTraderError):
    """The broker/ledger rejected or failed an order."""

    def __init__(self, symbol: str, reason: str):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"{symbol}: {reason}")
