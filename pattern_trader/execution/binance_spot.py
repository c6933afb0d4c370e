"""
Binance spot execution with retry and rate-limit handling.
Shorts go through cross-margin orders (borrow on SHORT, auto-repay on COVER).
"""

from __future__ import annotations
import logging
import time
from typing import List, Optional

import pandas as pd

from binance.client import Client
from binance.exceptions import BinanceAPIException, BinanceRequestException

from pattern_trader.core.errors import DataGapError
from pattern_trader.core.types import Bar, ExecutionRequest, OrderKind, OrderSide, bars_from_frame
from pattern_trader.execution.base import ExecutionClient, OrderResult

logger = logging.getLogger("pattern_trader.execution.binance")

KLINE_COLUMNS = [
    "open_time", "open", "high", "low", "close", "volume",
    "close_time", "quote_av", "num_trades", "tb_base_av", "tb_quote_av", "ignore",
]


def retry_on_rate_limit(max_retries: int = 3, base_delay: float = 1.0):
    """Decorator: retry on 429 or 418 (rate limit)."""
    def decorator(f):
        def wrapped(*args, **kwargs):
            last_exc = None
            for attempt in range(max_retries):
                try:
                    return f(*args, **kwargs)
                except BinanceAPIException as e:
                    last_exc = e
                    if e.status_code in (429, 418) and attempt < max_retries - 1:
                        delay = base_delay * (2 ** attempt)
                        logger.warning("Rate limited, retry in %.1fs (attempt %d)", delay, attempt + 1)
                        time.sleep(delay)
                    else:
                        raise
            raise last_exc
        return wrapped
    return decorator


def klines_to_frame(raw: List[list]) -> pd.DataFrame:
    df = pd.DataFrame(raw, columns=KLINE_COLUMNS)
    cols = ["open", "high", "low", "close", "volume"]
    df[cols] = df[cols].astype(float)
    df["time"] = pd.to_datetime(df["open_time"], unit="ms", utc=True)
    return df[["time"] + cols]


def average_fill_price(res: dict) -> Optional[float]:
    """Quantity-weighted fill price from an order response."""
    fills = res.get("fills") or []
    qty = sum(float(f["qty"]) for f in fills)
    if qty > 0:
        return sum(float(f["price"]) * float(f["qty"]) for f in fills) / qty
    executed = float(res.get("executedQty") or 0)
    quote = float(res.get("cummulativeQuoteQty") or 0)
    if executed > 0 and quote > 0:
        return quote / executed
    price = float(res.get("price") or 0)
    return price or None


class BinanceSpotClient(ExecutionClient):
    """Binance spot/margin client (testnet and live)."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        testnet: bool = True,
        timeout: float = 10.0,
    ):
        self._client = Client(api_key, api_secret, testnet=testnet, requests_params={"timeout": timeout})
        logger.info("Binance spot: using %s", "TESTNET" if testnet else "LIVE")

    @retry_on_rate_limit(max_retries=3, base_delay=1.0)
    def get_klines(self, symbol: str, interval: str, limit: int = 100) -> List[Bar]:
        raw = self._client.get_klines(symbol=symbol, interval=interval, limit=limit)
        if not raw:
            raise DataGapError(symbol, "no klines returned")
        return bars_from_frame(klines_to_frame(raw))

    @retry_on_rate_limit(max_retries=2)
    def get_price(self, symbol: str) -> float:
        try:
            ticker = self._client.get_symbol_ticker(symbol=symbol)
        except BinanceRequestException as e:
            raise DataGapError(symbol, str(e)) from e
        price = float((ticker or {}).get("price") or 0)
        if price <= 0:
            raise DataGapError(symbol, "no price in ticker response")
        return price

    def _order_params(self, request: ExecutionRequest) -> dict:
        side = "BUY" if request.side in (OrderSide.BUY, OrderSide.COVER) else "SELL"
        params = {"symbol": request.symbol, "side": side, "quantity": str(request.shares)}
        if request.order_kind == OrderKind.LIMIT:
            params.update(type="LIMIT", timeInForce="GTC", price=str(request.limit_price))
        else:
            params["type"] = "MARKET"
        return params

    @retry_on_rate_limit(max_retries=2)
    def _submit(self, request: ExecutionRequest) -> dict:
        params = self._order_params(request)
        if request.side == OrderSide.SHORT:
            return self._client.create_margin_order(sideEffectType="MARGIN_BUY", **params)
        if request.side == OrderSide.COVER:
            return self._client.create_margin_order(sideEffectType="AUTO_REPAY", **params)
        return self._client.create_order(**params)

    def execute(self, request: ExecutionRequest) -> OrderResult:
        try:
            res = self._submit(request)
        except BinanceAPIException as e:
            logger.exception("Binance order error %s %s: %s", request.side.value, request.symbol, e)
            return OrderResult(success=False, message=str(e))
        avg = average_fill_price(res)
        logger.info(
            "Order %s %s %s filled @ %s", request.side.value, request.shares, request.symbol, avg,
        )
        return OrderResult(
            success=True,
            order_id=str(res.get("orderId")),
            avg_price=avg,
            quantity=float(res.get("executedQty") or request.shares),
        )
