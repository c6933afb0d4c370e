"""Unit tests for indicators.library and indicators.cache."""

import math
from datetime import datetime, timedelta

import numpy as np
import pandas as pd
import pytest

from pattern_trader.core.types import Bar
from pattern_trader.indicators.cache import IndicatorCache
from pattern_trader.indicators.library import (
    ADX_RANGING,
    adx,
    adx_from_bars,
    bollinger_bands,
    ema,
    macd,
    rsi,
    sma,
    volume_ratio,
)


def _bars(closes, volumes=None):
    t0 = datetime(2024, 1, 1)
    volumes = volumes or [1000.0] * len(closes)
    return [
        Bar(t0 + timedelta(days=i), c, c + 1, c - 1, c, v)
        for i, (c, v) in enumerate(zip(closes, volumes))
    ]


def test_sma_warm_up_and_mean():
    closes = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
    out = sma(closes, 3)
    assert np.isnan(out[0]) and np.isnan(out[1])
    for i in range(2, len(closes)):
        assert out[i] == pytest.approx(sum(closes[i - 2:i + 1]) / 3)


def test_sma_short_history_all_unavailable():
    assert np.isnan(sma([1.0, 2.0], 5)).all()


def test_sma_accepts_bars_and_frame():
    bars = _bars([10.0, 11.0, 12.0])
    frame = pd.DataFrame({"close": [10.0, 11.0, 12.0]})
    assert sma(bars, 3)[-1] == pytest.approx(11.0)
    assert sma(frame, 3)[-1] == pytest.approx(11.0)


def test_ema_seeded_with_sma():
    out = ema([2.0, 4.0, 6.0, 8.0], 3)
    assert np.isnan(out[1])
    assert out[2] == pytest.approx(4.0)
    assert out[3] == pytest.approx((8.0 - 4.0) * 0.5 + 4.0)


def test_rsi_bounded():
    rng = np.random.default_rng(7)
    closes = list(100 + np.cumsum(rng.normal(0, 2, 300)))
    values = rsi(closes, 14)
    defined = values[~np.isnan(values)]
    assert len(defined) == 300 - 14
    assert (defined >= 0).all() and (defined <= 100).all()


def test_rsi_warm_up_and_extremes():
    rising = [float(i) for i in range(1, 30)]
    values = rsi(rising, 14)
    assert np.isnan(values[:14]).all()
    assert values[14] == pytest.approx(100.0)
    falling = list(reversed(rising))
    assert rsi(falling, 14)[-1] == pytest.approx(0.0)


def test_rsi_nan_input_propagates():
    closes = [float(i) for i in range(1, 20)]
    closes[3] = float("nan")
    values = rsi(closes, 5)
    assert np.isnan(values[-1])


def test_macd_signal_aligned_to_defined_values():
    closes = [100 + math.sin(i / 3) * 5 for i in range(60)]
    result = macd(closes, 12, 26, 9)
    assert np.isnan(result.macd[24])
    assert not np.isnan(result.macd[25])
    # signal needs 9 defined macd values: indices 25..33
    assert np.isnan(result.signal[32])
    assert not np.isnan(result.signal[33])
    assert result.histogram[40] == pytest.approx(result.macd[40] - result.signal[40])


def test_bollinger_population_std():
    closes = [1.0, 2.0, 3.0, 4.0]
    bands = bollinger_bands(closes, 4, 2.0)
    std = np.std(closes)
    assert bands.middle[-1] == pytest.approx(2.5)
    assert bands.upper[-1] == pytest.approx(2.5 + 2 * std)
    assert bands.lower[-1] == pytest.approx(2.5 - 2 * std)


def test_adx_short_history_is_ranging():
    result = adx([1.0] * 10, [0.5] * 10, [0.8] * 10, 14)
    assert result.adx == ADX_RANGING


def test_adx_strong_trend():
    bars = _bars([100.0 + i * 2 for i in range(80)])
    result = adx_from_bars(bars, 14)
    assert result.adx > 25
    assert result.plus_di > result.minus_di


def test_volume_ratio():
    bars = _bars([10.0] * 4, volumes=[100.0, 100.0, 100.0, 300.0])
    assert volume_ratio(bars, 20) == pytest.approx(3.0)
    assert math.isnan(volume_ratio(bars[:1], 20))


def test_cache_ttl_expiry():
    now = [0.0]
    cache = IndicatorCache(ttl=60.0, clock=lambda: now[0])
    calls = []

    def compute():
        calls.append(1)
        return 42.0

    assert cache.get_or_compute("rsi", "BTCUSDT", compute) == 42.0
    now[0] = 30.0
    assert cache.get_or_compute("rsi", "BTCUSDT", compute) == 42.0
    assert len(calls) == 1
    now[0] = 61.0
    cache.get_or_compute("rsi", "BTCUSDT", compute)
    assert len(calls) == 2


def test_cache_invalidate_symbol():
    cache = IndicatorCache()
    cache.put("rsi", "AAA", 1.0)
    cache.put("rsi", "BBB", 2.0)
    cache.invalidate("AAA")
    assert cache.get("rsi", "AAA") is None
    assert cache.get("rsi", "BBB") == 2.0
    assert len(cache) == 1
