import numpy as np
import pytest

from conftest import make_bars, make_snapshot
from models import BandPosition, BandPolicy, Crossover, Trend, VolumeSignal, VolumeTrend
from trend import TrendClassifier


@pytest.fixture
def classifier():
    return TrendClassifier(band_policy="volume_confirmed")


def test_no_indicators_is_neutral_baseline(classifier):
    result = classifier.classify("1d", make_bars([100.0] * 5), snapshot=make_snapshot())
    assert result.trend == Trend.NEUTRAL
    assert result.strength == 50.0
    assert result.signals_used == 0


def test_aligned_bullish_signals(classifier):
    snap = make_snapshot(rsi=25, crossover=Crossover.BULLISH, histogram=0.4,
                         ema20=105, ema50=100, band=BandPosition.WITHIN)
    result = classifier.classify("1d", make_bars([100.0] * 30), snapshot=snap)
    # oversold 15 + crossover 15 + EMA order 15, bands neutral
    assert result.bias == 45
    assert result.strength == 95.0
    assert result.trend == Trend.BULLISH
    assert result.signals_used == 4


def test_strength_is_clamped(classifier):
    snap = make_snapshot(rsi=80, crossover=Crossover.BEARISH, histogram=-1,
                         ema20=95, ema50=100, band=BandPosition.ABOVE_UPPER,
                         volume_trend=VolumeTrend.STABLE)
    result = classifier.classify("1d", None, snapshot=snap)
    assert result.bias == -55
    assert result.strength == 0.0
    assert result.trend == Trend.BEARISH


def test_small_bias_stays_inside_deadband(classifier):
    snap = make_snapshot(rsi=55, crossover=Crossover.NONE, histogram=0.2)
    result = classifier.classify("1h", None, snapshot=snap)
    assert result.bias == 10
    assert result.strength == 60.0
    assert result.trend == Trend.NEUTRAL


@pytest.mark.parametrize("policy, band, volume, expected", [
    ("volume_confirmed", BandPosition.ABOVE_UPPER, VolumeTrend.INCREASING, 10),
    ("volume_confirmed", BandPosition.ABOVE_UPPER, VolumeTrend.STABLE, -10),
    ("volume_confirmed", BandPosition.ABOVE_UPPER, None, -10),
    ("volume_confirmed", BandPosition.BELOW_LOWER, VolumeTrend.INCREASING, -10),
    ("volume_confirmed", BandPosition.BELOW_LOWER, VolumeTrend.DECREASING, 10),
    ("mean_reversion", BandPosition.ABOVE_UPPER, VolumeTrend.INCREASING, -10),
    ("mean_reversion", BandPosition.BELOW_LOWER, VolumeTrend.INCREASING, 10),
    ("breakout", BandPosition.ABOVE_UPPER, VolumeTrend.DECREASING, 10),
    ("breakout", BandPosition.BELOW_LOWER, VolumeTrend.STABLE, -10),
    ("breakout", BandPosition.WITHIN, VolumeTrend.INCREASING, 0),
])
def test_band_policy(policy, band, volume, expected):
    classifier = TrendClassifier(band_policy=policy)
    assert classifier.band_policy == BandPolicy(policy)
    bias, used = classifier.score(make_snapshot(band=band, volume_trend=volume))
    assert bias == expected
    assert used == 1


def test_key_levels_from_lookback_window(classifier):
    closes = list(np.linspace(50, 80, 10)) + list(np.linspace(100, 120, 20))
    bars = make_bars(closes, spread=1.0)
    result = classifier.classify("1d", bars, snapshot=make_snapshot(last_close=120))
    window = bars.iloc[-20:]
    assert result.key_levels.support == window["Low"].min()
    assert result.key_levels.resistance == window["High"].max()


def test_key_levels_fall_back_to_bands_on_short_history(classifier):
    snap = make_snapshot(band=BandPosition.WITHIN, bands=(95.0, 100.0, 105.0))
    result = classifier.classify("1w", make_bars([100.0] * 10), snapshot=snap)
    assert result.key_levels.support == 95.0
    assert result.key_levels.resistance == 105.0


def test_key_levels_from_available_bars_without_bands(classifier):
    bars = make_bars([100.0, 104.0, 98.0], spread=0.5)
    result = classifier.classify("1w", bars, snapshot=make_snapshot(last_close=98.0))
    assert result.key_levels.support == bars["Low"].min()
    assert result.key_levels.resistance == bars["High"].max()


def test_summary_fields(classifier):
    snap = make_snapshot(last_close=110, rsi=62, crossover=Crossover.NONE, histogram=0.1,
                         ema20=105, ema50=100, volume_trend=VolumeTrend.INCREASING,
                         volume_ratio=2.0)
    result = classifier.classify("4h", None, snapshot=snap)
    assert result.indicators.rsi == 62
    assert result.indicators.ema_alignment == Trend.BULLISH
    assert result.indicators.macd_crossover == Crossover.NONE
    assert result.indicators.volume_signal == VolumeSignal.HIGH
    assert result.last_close == 110


def test_classify_computes_snapshot_from_bars(classifier, random_walk):
    result = classifier.classify("1d", random_walk)
    assert 0.0 <= result.strength <= 100.0
    assert result.signals_used == 4
    assert result.atr is not None and result.atr > 0
    assert result.key_levels.support <= result.key_levels.resistance
