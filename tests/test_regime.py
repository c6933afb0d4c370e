"""Unit tests for risk.regime (market regime classification and regime exit)."""

from datetime import datetime, timedelta

from pattern_trader.core.types import Bar, Direction, ExitTargets, MarketRegime, Position
from pattern_trader.execution.paper import PaperBroker
from pattern_trader.indicators.cache import IndicatorCache
from pattern_trader.risk.regime import RegimeConfig, RegimeTracker, detect_regime, regime_flipped

T0 = datetime(2024, 1, 1)


def trend(n=60, start=100.0, step=1.0):
    """Steady trend: every bar moves `step`, range 1 around the close."""
    bars = []
    for i in range(n):
        c = start + i * step
        bars.append(Bar(T0 + timedelta(days=i), c - 0.2 * step, c + 0.5, c - 0.5, c, 1000.0))
    return bars


def choppy(n=60):
    bars = []
    for i in range(n):
        c = 100.0 if i % 2 == 0 else 101.0
        bars.append(Bar(T0 + timedelta(days=i), c, c + 0.5, c - 0.5, c, 1000.0))
    return bars


def test_uptrend():
    analysis = detect_regime(trend())
    assert analysis.regime == MarketRegime.UPTREND
    assert analysis.adx >= 25
    assert analysis.plus_di > analysis.minus_di
    assert analysis.sma_fast > analysis.sma_slow
    assert analysis.confidence == 95


def test_downtrend():
    analysis = detect_regime(trend(start=200.0, step=-1.0))
    assert analysis.regime == MarketRegime.DOWNTREND
    assert analysis.minus_di > analysis.plus_di


def test_sideways_when_adx_low():
    analysis = detect_regime(choppy())
    assert analysis.regime == MarketRegime.SIDEWAYS
    assert analysis.adx < 25


def test_short_history_reads_sideways():
    analysis = detect_regime(trend(n=30))
    assert analysis.regime == MarketRegime.SIDEWAYS
    assert analysis.confidence == 30
    assert RegimeConfig().min_bars == 60


def test_regime_flipped():
    long = Position("BTCUSDT", Direction.LONG, 1, 100.0, T0, entry_regime=MarketRegime.UPTREND)
    short = Position("BTCUSDT", Direction.SHORT, 1, 100.0, T0, entry_regime=MarketRegime.DOWNTREND)
    untagged = Position("BTCUSDT", Direction.LONG, 1, 100.0, T0)
    assert regime_flipped(long, MarketRegime.DOWNTREND)
    assert not regime_flipped(long, MarketRegime.SIDEWAYS)
    assert not regime_flipped(long, None)
    assert regime_flipped(short, MarketRegime.UPTREND)
    assert not regime_flipped(short, MarketRegime.DOWNTREND)
    assert not regime_flipped(untagged, MarketRegime.DOWNTREND)


def test_tracker_caches_per_symbol():
    class CountingBroker(PaperBroker):
        fetches = 0

        def get_klines(self, symbol, interval, limit=100):
            CountingBroker.fetches += 1
            return super().get_klines(symbol, interval, limit)

    broker = CountingBroker()
    broker.set_bars("BTCUSDT", trend(n=80))
    tracker = RegimeTracker(broker, IndicatorCache(ttl=60.0))
    assert tracker.current("BTCUSDT") == MarketRegime.UPTREND
    assert tracker.current("BTCUSDT") == MarketRegime.UPTREND
    assert CountingBroker.fetches == 1


def test_regime_exit_counts_as_target():
    assert not ExitTargets(regime_exit=True).is_empty
    assert ExitTargets().is_empty
