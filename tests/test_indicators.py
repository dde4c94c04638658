import logging
import math

import numpy as np
import pytest

from conftest import make_bars
from errors import InsufficientDataError, InvalidParameterError
import indicators as ind
from models import BandPosition, Crossover, Interpretation, VolumeSignal, VolumeTrend


# ── SMA / EMA ───────────────────────────────────────────────────────────

def test_sma_single_window():
    assert ind.sma([1, 2, 3, 4, 5], 5).values == (3.0,)


def test_sma_sliding_windows_align_to_last_element():
    result = ind.sma([10, 11, 12, 13, 14, 15], 3)
    assert result.values == (11.0, 12.0, 13.0, 14.0)
    assert result.current == 14.0


def test_ema_seeded_with_sma():
    assert ind.ema([10, 11, 12, 13, 14], 3).values == (11.0, 12.0, 13.0)


@pytest.mark.parametrize("fn", [ind.sma, ind.ema])
def test_period_one_returns_input_unchanged(fn):
    data = [3.7, 1.1, 9.25, 0.3, 5.0]
    assert fn(data, 1).values == tuple(data)


@pytest.mark.parametrize("fn", [ind.sma, ind.ema])
def test_moving_average_too_short(fn):
    with pytest.raises(InsufficientDataError) as exc:
        fn([1, 2, 3], 5)
    assert exc.value.required == 5
    assert exc.value.available == 3


@pytest.mark.parametrize("fn", [ind.sma, ind.ema, ind.rsi, ind.bollinger_bands, ind.analyze_volume])
def test_non_positive_period_is_invalid(fn):
    with pytest.raises(InvalidParameterError):
        fn([1, 2, 3, 4, 5], 0)


@pytest.mark.parametrize("fn", [ind.sma, ind.ema, ind.rsi, ind.macd, ind.bollinger_bands])
def test_empty_series_is_invalid(fn):
    with pytest.raises(InvalidParameterError):
        fn([])


def test_non_finite_values_are_dropped():
    assert ind.sma([1, float("nan"), 2, None, 3, float("inf")], 3).values == (2.0,)


def test_dropped_points_are_logged(caplog):
    with caplog.at_level(logging.DEBUG, logger="indicators"):
        ind.sma([1, float("nan"), 2, 3], 2)
    assert "SMA: dropped 1 non-finite of 4 points" in caplog.text

    caplog.clear()
    with caplog.at_level(logging.DEBUG, logger="indicators"):
        ind.sma([1, 2, 3], 2)
    assert "dropped" not in caplog.text


def test_sequence_length_invariant():
    data = list(range(1, 41))
    assert len(ind.sma(data, 10).values) == 40 - 9
    assert len(ind.ema(data, 10).values) == 40 - 9
    assert len(ind.rsi(data, 14).values) == 40 - 14


def test_moving_average_interpretation():
    assert ind.sma([100] * 19 + [110], 20).interpretation == Interpretation.BULLISH
    assert ind.sma([100] * 19 + [90], 20).interpretation == Interpretation.BEARISH
    assert ind.sma([100] * 20, 20).interpretation == Interpretation.NEUTRAL


# ── RSI ─────────────────────────────────────────────────────────────────

def test_rsi_monotonic_rise_is_100():
    prices = list(range(100, 140, 2))
    result = ind.rsi(prices, 14)
    assert result.current == 100.0
    assert result.interpretation == Interpretation.OVERBOUGHT


def test_rsi_monotonic_fall_is_0():
    result = ind.rsi(list(range(200, 160, -2)), 14)
    assert result.current == 0.0
    assert result.interpretation == Interpretation.OVERSOLD


def test_rsi_always_bounded(random_walk):
    values = ind.rsi(random_walk["Close"], 14).values
    assert all(0.0 <= v <= 100.0 for v in values)


def test_rsi_needs_period_plus_one():
    with pytest.raises(InsufficientDataError):
        ind.rsi(list(range(14)), 14)
    assert len(ind.rsi(list(range(15)), 14).values) == 1


def test_rsi_wilder_smoothing():
    # 2 up moves of +1, then 1 down move of -1 with period 2
    # seed gain 1, loss 0 -> 100; next: gain (1*1+0)/2 = .5, loss (0+1)/2 = .5 -> 50
    assert ind.rsi([1, 2, 3, 2], 2).values == (100.0, 50.0)


# ── MACD ────────────────────────────────────────────────────────────────

def test_macd_alignment_and_minimum():
    data = list(np.linspace(100, 150, 60))
    result = ind.macd(data, 12, 26, 9)
    assert len(result.macd_line) == 60 - 25
    assert len(result.histogram_values) == 60 - (26 + 9 - 2)
    assert result.histogram == pytest.approx(result.macd - result.signal)

    with pytest.raises(InsufficientDataError):
        ind.macd(data[:33], 12, 26, 9)


def test_macd_fast_must_be_shorter():
    with pytest.raises(InvalidParameterError):
        ind.macd(list(range(100)), 26, 12, 9)


@pytest.mark.parametrize("seed", range(8))
def test_macd_crossover_follows_histogram_sign(seed):
    rng = np.random.default_rng(seed)
    prices = 100 + np.cumsum(rng.normal(0, 1, 120))
    result = ind.macd(prices)
    prev, curr = result.histogram_values[-2:]
    if prev <= 0 < curr:
        expected = Crossover.BULLISH
    elif prev >= 0 > curr:
        expected = Crossover.BEARISH
    else:
        expected = Crossover.NONE
    assert result.crossover == expected


def test_macd_bullish_crossover_after_reversal():
    prices = list(np.linspace(200, 100, 60)) + list(np.linspace(101, 160, 40))
    found = None
    for end in range(60, len(prices) + 1):
        result = ind.macd(prices[:end])
        if result.crossover == Crossover.BULLISH:
            found = result
            break
    assert found is not None
    assert found.histogram_values[-2] <= 0 < found.histogram_values[-1]


# ── Bollinger Bands ─────────────────────────────────────────────────────

def test_bollinger_band_ordering(random_walk):
    result = ind.bollinger_bands(random_walk["Close"], 20, 2)
    for up, mid, low in zip(result.upper_band, result.middle_band, result.lower_band):
        assert up >= mid >= low
    assert result.bandwidth >= 0


def test_bollinger_flat_series_collapses():
    result = ind.bollinger_bands([50.0] * 25, 20, 2)
    assert result.upper == result.middle == result.lower == 50.0
    assert result.bandwidth == 0.0
    assert result.percent_b == 0.5
    assert result.position == BandPosition.WITHIN


def test_bollinger_population_std_and_position():
    result = ind.bollinger_bands([100.0] * 19 + [200.0], 20, 2)
    assert result.middle == pytest.approx(105.0)
    assert result.upper == pytest.approx(105.0 + 2 * math.sqrt(475.0))
    assert result.position == BandPosition.ABOVE_UPPER
    assert result.percent_b > 1.0

    low = ind.bollinger_bands([100.0] * 19 + [10.0], 20, 2)
    assert low.position == BandPosition.BELOW_LOWER


def test_bollinger_zero_middle_has_zero_bandwidth():
    result = ind.bollinger_bands([-1.0, 1.0] * 10, 20, 2)
    assert result.middle == 0.0
    assert result.bandwidth == 0.0


# ── ATR ─────────────────────────────────────────────────────────────────

def test_atr_constant_range():
    closes = [100.0] * 30
    highs = [101.0] * 30
    lows = [99.0] * 30
    result = ind.atr(highs, lows, closes, 14)
    assert len(result.values) == 30 - 14
    assert all(v == pytest.approx(2.0) for v in result.values)


def test_atr_uses_gap_from_previous_close():
    # gap up: high - prev close dominates high - low
    highs = [10, 10, 20] + [10] * 3
    lows = [9, 9, 19] + [9] * 3
    closes = [9.5, 9.5, 19.5] + [9.5] * 3
    result = ind.atr(highs, lows, closes, 2)
    # TRs: 1, 10.5, 10.5, 1, 1 -> seed (1 + 10.5) / 2
    assert result.values[0] == pytest.approx(5.75)


def test_atr_input_validation():
    with pytest.raises(InvalidParameterError):
        ind.atr([1, 2, 3], [1, 2], [1, 2, 3], 2)
    with pytest.raises(InsufficientDataError):
        ind.atr([2] * 14, [1] * 14, [1.5] * 14, 14)


# ── Stochastic / ADX ────────────────────────────────────────────────────

def test_stochastic_steady_rise():
    bars = make_bars(1000 + np.arange(30.0))
    result = ind.stochastic(bars["High"], bars["Low"], bars["Close"], 14, 3)
    # window high = close + 1, window low = close - 15
    assert result.k == pytest.approx(93.75)
    assert result.d == pytest.approx(93.75)
    assert result.signal == Crossover.NONE
    assert len(result.k_values) == 30 - 13
    assert len(result.d_values) == 30 - 13 - 2


def test_stochastic_flat_range_is_midpoint():
    result = ind.stochastic([5.0] * 20, [5.0] * 20, [5.0] * 20, 14, 3)
    assert result.k == 50.0
    assert result.d == 50.0


def test_stochastic_bullish_cross_on_reversal():
    closes = np.array(list(range(30, 10, -1)) + [40], dtype=float)
    result = ind.stochastic(closes + 0.5, closes - 0.5, closes, 14, 3)
    assert result.signal == Crossover.BULLISH
    assert result.k > result.d


def test_stochastic_bearish_cross_on_reversal():
    closes = np.array(list(range(10, 30)) + [0], dtype=float)
    result = ind.stochastic(closes + 0.5, closes - 0.5, closes, 14, 3)
    assert result.signal == Crossover.BEARISH
    assert 0.0 <= result.k < result.d


def test_stochastic_input_validation():
    with pytest.raises(InsufficientDataError):
        ind.stochastic([2] * 15, [1] * 15, [1.5] * 15, 14, 3)
    with pytest.raises(InvalidParameterError):
        ind.stochastic([2] * 20, [1] * 19, [1.5] * 20, 14, 3)


def test_adx_steady_uptrend():
    bars = make_bars(1000 + np.arange(40.0))
    result = ind.adx(bars["High"], bars["Low"], bars["Close"], 14)
    assert result.adx == pytest.approx(100.0)
    assert result.plus_di > 0
    assert result.minus_di == 0.0
    assert len(result.values) == 40 - 2 * 14 + 1


def test_adx_steady_downtrend():
    bars = make_bars(1000 - np.arange(40.0))
    result = ind.adx(bars["High"], bars["Low"], bars["Close"], 14)
    assert result.adx == pytest.approx(100.0)
    assert result.minus_di > result.plus_di


def test_adx_bounded_on_random_walk(random_walk):
    bars = random_walk
    result = ind.adx(bars["High"], bars["Low"], bars["Close"], 14)
    assert all(0.0 <= v <= 100.0 for v in result.values)


def test_adx_needs_two_periods():
    with pytest.raises(InsufficientDataError):
        ind.adx([2] * 27, [1] * 27, [1.5] * 27, 14)


# ── Volume ──────────────────────────────────────────────────────────────

def test_volume_spike_and_rising_trend():
    result = ind.analyze_volume([100.0] * 24 + [400.0], 20, 1.5)
    assert result.average == pytest.approx(115.0)
    assert result.ratio == pytest.approx(400 / 115)
    assert result.is_spike
    assert result.signal == VolumeSignal.HIGH
    assert result.trend == VolumeTrend.INCREASING


def test_volume_drying_up():
    result = ind.analyze_volume([100.0] * 24 + [10.0], 20)
    assert not result.is_spike
    assert result.signal == VolumeSignal.LOW
    assert result.trend == VolumeTrend.DECREASING


def test_volume_zero_average_is_neutral_ratio():
    result = ind.analyze_volume([0.0] * 25, 20)
    assert result.ratio == 1.0
    assert result.signal == VolumeSignal.NORMAL
    assert result.trend == VolumeTrend.STABLE


# ── Purity / snapshot ───────────────────────────────────────────────────

def test_indicators_are_deterministic(random_walk):
    close = random_walk["Close"]
    assert ind.rsi(close) == ind.rsi(close)
    assert ind.macd(close) == ind.macd(close)
    assert ind.bollinger_bands(close) == ind.bollinger_bands(close)
    h, l = random_walk["High"], random_walk["Low"]
    assert ind.atr(h, l, close) == ind.atr(h, l, close)


def test_snapshot_full_history(random_walk):
    snap = ind.compute_snapshot(random_walk)
    assert snap.unavailable == {}
    for name in ("rsi", "macd", "bollinger", "sma20", "ema20", "ema50", "atr", "volume"):
        assert getattr(snap, name) is not None
    assert snap.last_close == random_walk["Close"].iloc[-1]


def test_snapshot_short_history_degrades_per_indicator(short_bars):
    snap = ind.compute_snapshot(short_bars)
    assert snap.rsi is not None
    assert snap.bollinger is not None
    assert snap.ema50 is None
    assert snap.macd is None
    assert "ema50" in snap.unavailable
    assert "insufficient data" in snap.unavailable["macd"]


def test_snapshot_without_volume():
    bars = make_bars(np.linspace(100, 120, 60)).drop(columns=["Volume"])
    snap = ind.compute_snapshot(bars)
    assert snap.volume is None
    assert snap.unavailable["volume"] == "no volume data"


def test_snapshot_requires_close():
    with pytest.raises(InvalidParameterError):
        ind.compute_snapshot(make_bars([1, 2, 3]).drop(columns=["Close"]))


def test_clean_ohlcv_drops_incomplete_rows():
    bars = make_bars([10.0, 11.0, 12.0, 13.0])
    bars.iloc[1, bars.columns.get_loc("Volume")] = np.nan
    bars.iloc[2, bars.columns.get_loc("High")] = np.inf
    cleaned = ind.clean_ohlcv(bars)
    assert list(cleaned["Close"]) == [10.0, 13.0]
    with pytest.raises(InvalidParameterError):
        ind.clean_ohlcv(bars.drop(columns=["Volume"]))
