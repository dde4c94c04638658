"""
Technical Indicator Library

Pure functions over numeric sequences (lists, numpy arrays or pandas
Series, oldest first):

    sma, ema          - moving averages with price-distance interpretation
    rsi               - Wilder-smoothed Relative Strength Index
    macd              - MACD line / signal line / histogram + crossover
    bollinger_bands   - population-std bands, bandwidth, %B, position
    atr               - Wilder-smoothed Average True Range
    stochastic        - %K / %D oscillator with %K-over-%D crossover
    adx               - Wilder Average Directional Index with +DI / -DI
    analyze_volume    - volume ratio, spike detection, ratio trend

compute_snapshot(bars) runs the whole suite over one OHLCV DataFrame and
records why any indicator is unavailable instead of aborting.
clean_ohlcv(bars) keeps only the complete rows of such a frame.

Rules shared by every function:
  • Non-finite values (NaN / inf / None) are dropped before computing
    (logged at DEBUG), so outputs align to the cleaned series.
  • Empty input or a non-positive period raises InvalidParameterError.
  • Input shorter than the minimum lookback raises InsufficientDataError;
    nothing ever silently returns zero.
  • Output sequences are aligned to the last input element:
        len(values) == len(input) - (lookback - 1)
"""

import logging
from typing import Sequence

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view

from config import INDICATORS, RSI_ZONES
from errors import InsufficientDataError, InvalidParameterError
from models import (
    ADXResult, ATRResult, BandPosition, BollingerBandsResult, Crossover,
    IndicatorResult, IndicatorSnapshot, Interpretation, MACDResult,
    StochasticResult, VolumeAnalysisResult, VolumeSignal, VolumeTrend,
)

logger = logging.getLogger(__name__)

# Standard deviations smaller than this fraction of the mean are float noise
_STD_EPSILON = 1e-12


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def _clean(values: Sequence[float], name: str) -> np.ndarray:
    """Coerce to a float array and drop non-finite points."""
    if values is None:
        raise InvalidParameterError(f"{name}: no input series")
    arr = pd.to_numeric(pd.Series(values, dtype="object"), errors="coerce").to_numpy(dtype=float)
    if arr.size == 0:
        raise InvalidParameterError(f"{name}: empty input series")
    finite = np.isfinite(arr)
    dropped = int(arr.size - finite.sum())
    if dropped:
        # output aligns to the cleaned series, not the caller's index
        logger.debug(f"{name}: dropped {dropped} non-finite of {arr.size} points")
    return arr[finite]


def _check_period(period: int, name: str) -> None:
    if not isinstance(period, (int, np.integer)) or period <= 0:
        raise InvalidParameterError(f"{name}: period must be a positive integer, got {period!r}")


def _require(data: np.ndarray, required: int, name: str) -> None:
    if len(data) < required:
        raise InsufficientDataError(name, required, len(data))


def _rolling_mean(data: np.ndarray, period: int) -> np.ndarray:
    return sliding_window_view(data, period).mean(axis=1)


def _ema_series(data: np.ndarray, period: int) -> np.ndarray:
    """SMA-seeded EMA; one value per point from index period-1 onward."""
    alpha = 2.0 / (period + 1)
    out = np.empty(len(data) - period + 1)
    out[0] = data[:period].mean()
    for i in range(1, len(out)):
        # same recurrence as (x - prev) * alpha + prev, exact when alpha == 1
        out[i] = alpha * data[period - 1 + i] + (1 - alpha) * out[i - 1]
    return out


def _wilder(seed: float, rest: np.ndarray, period: int) -> np.ndarray:
    """Wilder smoothing: avg = (prev * (period - 1) + x) / period."""
    out = np.empty(len(rest) + 1)
    out[0] = seed
    for i, x in enumerate(rest, start=1):
        out[i] = (out[i - 1] * (period - 1) + x) / period
    return out


def _distance_signal(price: float, average: float, threshold_pct: float) -> Interpretation:
    if average == 0:
        return Interpretation.NEUTRAL
    pct = (price - average) / abs(average) * 100
    if pct > threshold_pct:
        return Interpretation.BULLISH
    if pct < -threshold_pct:
        return Interpretation.BEARISH
    return Interpretation.NEUTRAL


# ═══════════════════════════════════════════════════════════════════════════
# Moving Averages
# ═══════════════════════════════════════════════════════════════════════════

def sma(values: Sequence[float], period: int = INDICATORS["sma_period"]) -> IndicatorResult:
    """
    Simple Moving Average over every window of `period` points.

    Interpretation: last price more than 1% above the average is BULLISH,
    more than 1% below is BEARISH.
    """
    _check_period(period, "SMA")
    data = _clean(values, "SMA")
    _require(data, period, "SMA")

    out = _rolling_mean(data, period)
    current = float(out[-1])
    return IndicatorResult(
        current=current,
        values=tuple(out.tolist()),
        interpretation=_distance_signal(float(data[-1]), current, INDICATORS["sma_signal_pct"]),
    )


def ema(values: Sequence[float], period: int = INDICATORS["ema_fast"]) -> IndicatorResult:
    """
    Exponential Moving Average seeded with the SMA of the first `period`
    values, smoothing factor 2 / (period + 1).
    """
    _check_period(period, "EMA")
    data = _clean(values, "EMA")
    _require(data, period, "EMA")

    out = _ema_series(data, period)
    current = float(out[-1])
    return IndicatorResult(
        current=current,
        values=tuple(out.tolist()),
        interpretation=_distance_signal(float(data[-1]), current, INDICATORS["ema_signal_pct"]),
    )


# ═══════════════════════════════════════════════════════════════════════════
# Momentum
# ═══════════════════════════════════════════════════════════════════════════

def rsi(values: Sequence[float], period: int = INDICATORS["rsi_period"]) -> IndicatorResult:
    """
    Wilder-smoothed RSI.

    The first `period` price changes seed the average gain / loss; every
    later change is folded in with weight 1/period. RSI is 100 whenever the
    average loss is zero, so the output is always within [0, 100].
    """
    _check_period(period, "RSI")
    data = _clean(values, "RSI")
    _require(data, period + 1, "RSI")

    delta = np.diff(data)
    gains = np.where(delta > 0, delta, 0.0)
    losses = np.where(delta < 0, -delta, 0.0)

    avg_gain = _wilder(gains[:period].mean(), gains[period:], period)
    avg_loss = _wilder(losses[:period].mean(), losses[period:], period)

    out = np.full(len(avg_gain), 100.0)
    has_loss = avg_loss > 0
    rs = avg_gain[has_loss] / avg_loss[has_loss]
    out[has_loss] = 100.0 - 100.0 / (1.0 + rs)
    out = np.clip(out, 0.0, 100.0)

    current = float(out[-1])
    if current <= RSI_ZONES["oversold"]:
        interp = Interpretation.OVERSOLD
    elif current >= RSI_ZONES["overbought"]:
        interp = Interpretation.OVERBOUGHT
    else:
        interp = Interpretation.NEUTRAL

    return IndicatorResult(current=current, values=tuple(out.tolist()), interpretation=interp)


def macd(values: Sequence[float],
         fast: int = INDICATORS["macd"]["fast"],
         slow: int = INDICATORS["macd"]["slow"],
         signal: int = INDICATORS["macd"]["signal"]) -> MACDResult:
    """
    MACD line = EMA(fast) - EMA(slow), aligned to the slow EMA.
    Signal line = EMA(MACD line, signal). Histogram = MACD - signal.

    Crossover looks at the last two histogram points: BULLISH when the sign
    flips from <= 0 to > 0, BEARISH from >= 0 to < 0, otherwise NONE.
    """
    for p in (fast, slow, signal):
        _check_period(p, "MACD")
    if fast >= slow:
        raise InvalidParameterError(f"MACD: fast period ({fast}) must be shorter than slow ({slow})")
    data = _clean(values, "MACD")
    _require(data, slow + signal - 1, "MACD")

    fast_line = _ema_series(data, fast)[slow - fast:]
    slow_line = _ema_series(data, slow)
    macd_line = fast_line - slow_line
    signal_line = _ema_series(macd_line, signal)
    histogram = macd_line[signal - 1:] - signal_line

    crossover = Crossover.NONE
    if len(histogram) >= 2:
        prev, curr = histogram[-2], histogram[-1]
        if prev <= 0 < curr:
            crossover = Crossover.BULLISH
        elif prev >= 0 > curr:
            crossover = Crossover.BEARISH

    return MACDResult(
        macd=float(macd_line[-1]),
        signal=float(signal_line[-1]),
        histogram=float(histogram[-1]),
        crossover=crossover,
        macd_line=tuple(macd_line.tolist()),
        signal_line=tuple(signal_line.tolist()),
        histogram_values=tuple(histogram.tolist()),
    )


# ═══════════════════════════════════════════════════════════════════════════
# Volatility
# ═══════════════════════════════════════════════════════════════════════════

def bollinger_bands(values: Sequence[float],
                    period: int = INDICATORS["bb_period"],
                    k: float = INDICATORS["bb_std"]) -> BollingerBandsResult:
    """
    Bands at middle ± k population standard deviations of the trailing window.

    bandwidth = (upper - lower) / |middle| (0 when middle is 0).
    percent_b = position of the last close inside the bands, 0.5 when the
    bands have collapsed onto the middle.
    """
    _check_period(period, "Bollinger")
    if k < 0:
        raise InvalidParameterError(f"Bollinger: std multiplier must be non-negative, got {k}")
    data = _clean(values, "Bollinger")
    _require(data, period, "Bollinger")

    windows = sliding_window_view(data, period)
    middle = windows.mean(axis=1)
    std = windows.std(axis=1, ddof=0)
    std = np.where(std <= _STD_EPSILON * np.abs(middle), 0.0, std)
    upper = middle + k * std
    lower = middle - k * std

    up, mid, low = float(upper[-1]), float(middle[-1]), float(lower[-1])
    close = float(data[-1])
    width = up - low
    bandwidth = width / abs(mid) if mid != 0 else 0.0

    if width > 0:
        percent_b = (close - low) / width
    else:
        percent_b = 0.5

    if close > up and not np.isclose(close, up, rtol=1e-9, atol=0.0):
        position = BandPosition.ABOVE_UPPER
    elif close < low and not np.isclose(close, low, rtol=1e-9, atol=0.0):
        position = BandPosition.BELOW_LOWER
    else:
        position = BandPosition.WITHIN

    return BollingerBandsResult(
        upper=up, middle=mid, lower=low,
        bandwidth=bandwidth,
        position=position,
        percent_b=float(percent_b),
        upper_band=tuple(upper.tolist()),
        middle_band=tuple(middle.tolist()),
        lower_band=tuple(lower.tolist()),
    )


def _hlc(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float],
         name: str):
    """Aligned high / low / close arrays keeping only bars where all three are finite."""
    if highs is None or lows is None or closes is None:
        raise InvalidParameterError(f"{name}: highs, lows and closes are all required")
    h = np.asarray(highs, dtype=float)
    l = np.asarray(lows, dtype=float)
    c = np.asarray(closes, dtype=float)
    if h.size == 0:
        raise InvalidParameterError(f"{name}: empty input series")
    if not (len(h) == len(l) == len(c)):
        raise InvalidParameterError(
            f"{name}: input lengths differ (highs={len(h)}, lows={len(l)}, closes={len(c)})"
        )
    mask = np.isfinite(h) & np.isfinite(l) & np.isfinite(c)
    if not mask.all():
        logger.debug(f"{name}: dropped {int((~mask).sum())} incomplete bars of {len(mask)}")
    return h[mask], l[mask], c[mask]


def _true_range(h: np.ndarray, l: np.ndarray, c: np.ndarray) -> np.ndarray:
    prev_close = c[:-1]
    return np.maximum.reduce([
        h[1:] - l[1:],
        np.abs(h[1:] - prev_close),
        np.abs(l[1:] - prev_close),
    ])


def atr(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float],
        period: int = INDICATORS["atr_period"]) -> ATRResult:
    """
    Average True Range.

    TR[i] = max(high - low, |high - prev close|, |low - prev close|);
    the first ATR is the mean of the first `period` TRs, then Wilder smoothing.
    """
    _check_period(period, "ATR")
    h, l, c = _hlc(highs, lows, closes, "ATR")
    _require(h, period + 1, "ATR")

    tr = _true_range(h, l, c)
    out = _wilder(tr[:period].mean(), tr[period:], period)
    return ATRResult(current=float(out[-1]), values=tuple(out.tolist()))


def stochastic(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float],
               k_period: int = INDICATORS["stoch_k"],
               d_period: int = INDICATORS["stoch_d"]) -> StochasticResult:
    """
    %K = 100 × (close - lowest low) / (highest high - lowest low) over
    `k_period` bars, 50 when that range is flat. %D = SMA(%K, d_period).

    signal is BULLISH when %K crosses above %D on the last bar, BEARISH when
    it crosses below, otherwise NONE.
    """
    _check_period(k_period, "Stochastic")
    _check_period(d_period, "Stochastic")
    h, l, c = _hlc(highs, lows, closes, "Stochastic")
    _require(h, k_period + d_period - 1, "Stochastic")

    highest = sliding_window_view(h, k_period).max(axis=1)
    lowest = sliding_window_view(l, k_period).min(axis=1)
    span = highest - lowest
    k = np.full(len(span), 50.0)
    moving = span > 0
    k[moving] = 100.0 * (c[k_period - 1:][moving] - lowest[moving]) / span[moving]
    k = np.clip(k, 0.0, 100.0)
    d = _rolling_mean(k, d_period)

    signal = Crossover.NONE
    if len(d) >= 2:
        prev = k[-2] - d[-2]
        curr = k[-1] - d[-1]
        if prev <= 0 < curr:
            signal = Crossover.BULLISH
        elif prev >= 0 > curr:
            signal = Crossover.BEARISH

    return StochasticResult(
        k=float(k[-1]), d=float(d[-1]), signal=signal,
        k_values=tuple(k.tolist()), d_values=tuple(d.tolist()),
    )


def adx(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float],
        period: int = INDICATORS["adx_period"]) -> ADXResult:
    """
    Average Directional Index (Wilder).

    +DM / -DM and TR are Wilder-smoothed into +DI / -DI; DX = 100 × |+DI - -DI|
    / (+DI + -DI); ADX is the Wilder average of DX. Needs 2 × period bars.
    """
    _check_period(period, "ADX")
    h, l, c = _hlc(highs, lows, closes, "ADX")
    _require(h, 2 * period, "ADX")

    up = h[1:] - h[:-1]
    down = l[:-1] - l[1:]
    plus_dm = np.where((up > down) & (up > 0), up, 0.0)
    minus_dm = np.where((down > up) & (down > 0), down, 0.0)
    tr = _true_range(h, l, c)

    tr_s = _wilder(tr[:period].mean(), tr[period:], period)
    plus_s = _wilder(plus_dm[:period].mean(), plus_dm[period:], period)
    minus_s = _wilder(minus_dm[:period].mean(), minus_dm[period:], period)

    plus_di = np.zeros(len(tr_s))
    minus_di = np.zeros(len(tr_s))
    has_range = tr_s > 0
    plus_di[has_range] = 100.0 * plus_s[has_range] / tr_s[has_range]
    minus_di[has_range] = 100.0 * minus_s[has_range] / tr_s[has_range]

    di_sum = plus_di + minus_di
    dx = np.zeros(len(di_sum))
    directional = di_sum > 0
    dx[directional] = 100.0 * np.abs(plus_di - minus_di)[directional] / di_sum[directional]

    out = _wilder(dx[:period].mean(), dx[period:], period)
    return ADXResult(
        adx=float(out[-1]),
        plus_di=float(plus_di[-1]),
        minus_di=float(minus_di[-1]),
        values=tuple(out.tolist()),
    )


# ═══════════════════════════════════════════════════════════════════════════
# Volume
# ═══════════════════════════════════════════════════════════════════════════

def analyze_volume(volumes: Sequence[float],
                   period: int = INDICATORS["volume_period"],
                   spike_threshold: float = INDICATORS["volume_spike"]) -> VolumeAnalysisResult:
    """
    Current volume relative to its `period`-bar average (current bar included).

    The ratio trend compares the last few ratios: a rise beyond the tolerance
    is INCREASING, a fall beyond it DECREASING, anything else STABLE.
    """
    _check_period(period, "Volume")
    data = _clean(volumes, "Volume")
    _require(data, period, "Volume")

    averages = _rolling_mean(data, period)
    current_vols = data[period - 1:]
    ratios = np.ones(len(averages))
    nonzero = averages > 0
    ratios[nonzero] = current_vols[nonzero] / averages[nonzero]

    ratio = float(ratios[-1])
    is_spike = ratio > spike_threshold

    bars = INDICATORS["volume_trend_bars"]
    tolerance = INDICATORS["volume_trend_tolerance"]
    trend = VolumeTrend.STABLE
    window = ratios[-bars:]
    if len(window) >= 2:
        slope = window[-1] - window[0]
        if slope > tolerance:
            trend = VolumeTrend.INCREASING
        elif slope < -tolerance:
            trend = VolumeTrend.DECREASING

    if is_spike:
        signal = VolumeSignal.HIGH
    elif ratio < INDICATORS["volume_low"]:
        signal = VolumeSignal.LOW
    else:
        signal = VolumeSignal.NORMAL

    return VolumeAnalysisResult(
        current=float(data[-1]),
        average=float(averages[-1]),
        ratio=ratio,
        is_spike=is_spike,
        trend=trend,
        signal=signal,
        ratios=tuple(ratios.tolist()),
    )


# ═══════════════════════════════════════════════════════════════════════════
# Snapshot
# ═══════════════════════════════════════════════════════════════════════════

def compute_snapshot(bars: pd.DataFrame) -> IndicatorSnapshot:
    """
    Run every indicator over one OHLCV frame (columns Open/High/Low/Close/Volume).

    An indicator that lacks history is recorded in `unavailable` with the
    reason; its siblings are still computed.
    """
    if bars is None or bars.empty or "Close" not in bars:
        raise InvalidParameterError("compute_snapshot: frame with a Close column required")

    close = bars["Close"]
    finite_close = close[np.isfinite(pd.to_numeric(close, errors="coerce"))]
    if finite_close.empty:
        raise InvalidParameterError("compute_snapshot: no finite closing prices")

    cfg = INDICATORS
    results = {}
    unavailable = {}

    def attempt(name, fn, *args, **kwargs):
        try:
            results[name] = fn(*args, **kwargs)
        except InsufficientDataError as e:
            logger.debug(f"{name} unavailable: {e}")
            unavailable[name] = str(e)

    attempt("rsi", rsi, close, cfg["rsi_period"])
    attempt("macd", macd, close, cfg["macd"]["fast"], cfg["macd"]["slow"], cfg["macd"]["signal"])
    attempt("bollinger", bollinger_bands, close, cfg["bb_period"], cfg["bb_std"])
    attempt("sma20", sma, close, cfg["sma_period"])
    attempt("ema20", ema, close, cfg["ema_fast"])
    attempt("ema50", ema, close, cfg["ema_slow"])

    if "High" in bars and "Low" in bars:
        attempt("atr", atr, bars["High"], bars["Low"], close, cfg["atr_period"])
    else:
        unavailable["atr"] = "no high/low data"

    if "Volume" in bars and not bars["Volume"].dropna().empty:
        attempt("volume", analyze_volume, bars["Volume"], cfg["volume_period"], cfg["volume_spike"])
    else:
        unavailable["volume"] = "no volume data"

    return IndicatorSnapshot(last_close=float(finite_close.iloc[-1]), unavailable=unavailable, **results)


def clean_ohlcv(bars: pd.DataFrame) -> pd.DataFrame:
    """OHLCV columns as floats, keeping only bars where all five are finite."""
    columns = ["Open", "High", "Low", "Close", "Volume"]
    if bars is None or bars.empty or any(col not in bars for col in columns):
        raise InvalidParameterError(f"clean_ohlcv: frame with columns {columns} required")
    frame = bars[columns].apply(pd.to_numeric, errors="coerce")
    frame = frame[np.isfinite(frame).all(axis=1)]
    if len(frame) < len(bars):
        logger.debug(f"clean_ohlcv: dropped {len(bars) - len(frame)} incomplete bars of {len(bars)}")
    return frame
