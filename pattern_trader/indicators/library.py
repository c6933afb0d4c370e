"""
Indicator library: RSI, SMA, EMA, MACD, Bollinger Bands, ADX.

Every series function returns a fresh float array aligned 1:1 with the input
bars. Entries inside the warm-up period are NaN ("unavailable"), never zero.
Non-finite inputs propagate as NaN instead of raising. Charts, the live
scanner and both simulators call these same functions, so identical inputs
always give identical outputs.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np
import pandas as pd

from pattern_trader.core.types import Bar

BarsLike = Union[pd.DataFrame, Sequence[Bar], Sequence[float], np.ndarray]

ADX_RANGING = 20.0


def _column(bars: BarsLike, name: str) -> np.ndarray:
    if isinstance(bars, pd.DataFrame):
        return bars[name].to_numpy(dtype=float, copy=True)
    if isinstance(bars, np.ndarray):
        return bars.astype(float, copy=True)
    values = list(bars)
    if values and isinstance(values[0], Bar):
        return np.array([getattr(b, name) for b in values], dtype=float)
    return np.array(values, dtype=float)


def closes(bars: BarsLike) -> np.ndarray:
    """Close prices as a float array (accepts Bars, an OHLCV frame or raw prices)."""
    return _column(bars, "close")


def _unavailable(n: int) -> np.ndarray:
    return np.full(n, np.nan)


def sma(bars: BarsLike, period: int) -> np.ndarray:
    """Trailing mean of `period` closes; NaN for i < period - 1."""
    if period <= 0:
        raise ValueError("period must be positive")
    c = closes(bars)
    if len(c) < period:
        return _unavailable(len(c))
    return pd.Series(c).rolling(window=period, min_periods=period).mean().to_numpy()


def ema(bars: BarsLike, period: int) -> np.ndarray:
    """EMA seeded with the SMA of the first `period` closes, multiplier 2/(period+1)."""
    if period <= 0:
        raise ValueError("period must be positive")
    c = closes(bars)
    out = _unavailable(len(c))
    if len(c) < period:
        return out
    multiplier = 2.0 / (period + 1)
    value = float(np.mean(c[:period]))
    out[period - 1] = value
    for i in range(period, len(c)):
        value = (c[i] - value) * multiplier + value
        out[i] = value
    return out


def rsi(bars: BarsLike, period: int = 14) -> np.ndarray:
    """
    Wilder RSI. The first `period` entries are NaN; avg gain/loss are seeded
    with simple means of the first `period` deltas, then smoothed with weight
    (period-1)/period. RSI is 100 when avg loss is 0.
    """
    if period <= 0:
        raise ValueError("period must be positive")
    c = closes(bars)
    out = _unavailable(len(c))
    if len(c) < period + 1:
        return out
    deltas = np.diff(c)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)
    # NaN deltas must stay NaN so they poison the averages
    gains[np.isnan(deltas)] = np.nan
    losses[np.isnan(deltas)] = np.nan

    avg_gain = float(np.mean(gains[:period]))
    avg_loss = float(np.mean(losses[:period]))
    out[period] = _rsi_value(avg_gain, avg_loss)
    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        out[i + 1] = _rsi_value(avg_gain, avg_loss)
    return out


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if np.isnan(avg_gain) or np.isnan(avg_loss):
        return np.nan
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


@dataclass(frozen=True)
class MacdResult:
    macd: np.ndarray
    signal: np.ndarray
    histogram: np.ndarray


def macd(bars: BarsLike, fast: int = 12, slow: int = 26, signal: int = 9) -> MacdResult:
    """
    macd = EMA(fast) - EMA(slow). The signal line is an EMA over the defined
    macd values only, re-aligned onto the original indices.
    """
    c = closes(bars)
    line = ema(c, fast) - ema(c, slow)
    defined = np.flatnonzero(~np.isnan(line))
    signal_line = _unavailable(len(c))
    if len(defined):
        signal_line[defined] = ema(line[defined], signal)
    return MacdResult(macd=line, signal=signal_line, histogram=line - signal_line)


@dataclass(frozen=True)
class BollingerResult:
    upper: np.ndarray
    middle: np.ndarray
    lower: np.ndarray


def bollinger_bands(bars: BarsLike, period: int = 20, k: float = 2.0) -> BollingerResult:
    """middle = SMA; upper/lower = middle +/- k * population std-dev of the window."""
    c = closes(bars)
    if len(c) < period:
        return BollingerResult(_unavailable(len(c)), _unavailable(len(c)), _unavailable(len(c)))
    s = pd.Series(c)
    middle = s.rolling(window=period, min_periods=period).mean().to_numpy()
    std = s.rolling(window=period, min_periods=period).std(ddof=0).to_numpy()
    return BollingerResult(upper=middle + k * std, middle=middle, lower=middle - k * std)


@dataclass(frozen=True)
class AdxResult:
    adx: float
    plus_di: float
    minus_di: float


def adx(
    highs: Sequence[float],
    lows: Sequence[float],
    closes_: Sequence[float],
    period: int = 14,
) -> AdxResult:
    """
    Wilder ADX with +DI/-DI. Returns ADX_RANGING (20) when history is shorter
    than 2 * period or the DX history is too short to smooth.
    """
    h = np.asarray(highs, dtype=float)
    lo = np.asarray(lows, dtype=float)
    c = np.asarray(closes_, dtype=float)
    if len(h) < period * 2:
        return AdxResult(ADX_RANGING, 0.0, 0.0)

    prev_close = c[:-1]
    tr = np.maximum.reduce([
        h[1:] - lo[1:],
        np.abs(h[1:] - prev_close),
        np.abs(lo[1:] - prev_close),
    ])
    up_move = h[1:] - h[:-1]
    down_move = lo[:-1] - lo[1:]
    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)

    atr = float(np.mean(tr[:period]))
    sm_plus = float(np.mean(plus_dm[:period]))
    sm_minus = float(np.mean(minus_dm[:period]))
    dx = []
    plus_di = minus_di = 0.0
    for i in range(period, len(tr)):
        atr = (atr * (period - 1) + tr[i]) / period
        sm_plus = (sm_plus * (period - 1) + plus_dm[i]) / period
        sm_minus = (sm_minus * (period - 1) + minus_dm[i]) / period
        plus_di = (sm_plus / atr) * 100 if atr > 0 else 0.0
        minus_di = (sm_minus / atr) * 100 if atr > 0 else 0.0
        di_sum = plus_di + minus_di
        dx.append(abs(plus_di - minus_di) / di_sum * 100 if di_sum > 0 else 0.0)

    if len(dx) < period:
        return AdxResult(ADX_RANGING, plus_di, minus_di)
    value = float(np.mean(dx[:period]))
    for i in range(period, len(dx)):
        value = (value * (period - 1) + dx[i]) / period
    return AdxResult(value, plus_di, minus_di)


def adx_from_bars(bars: BarsLike, period: int = 14) -> AdxResult:
    return adx(_column(bars, "high"), _column(bars, "low"), _column(bars, "close"), period)


def volume_ratio(bars: Sequence[Bar], lookback: int = 20) -> float:
    """Last bar's volume over the mean of up to `lookback` prior volumes. NaN without history."""
    if len(bars) < 2:
        return float("nan")
    prior = [b.volume for b in bars[-lookback - 1:-1]]
    average = sum(prior) / len(prior)
    if average <= 0:
        return float("nan")
    return bars[-1].volume / average
