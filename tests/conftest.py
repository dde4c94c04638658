import numpy as np
import pandas as pd
import pytest

from models import (
    BollingerBandsResult, IndicatorResult, IndicatorSnapshot, Interpretation,
    MACDResult, VolumeAnalysisResult, VolumeSignal,
)


def make_bars(closes, volumes=None, spread=1.0, start="2025-01-02", freq="D"):
    """OHLCV frame around the given closes; high/low sit `spread` away."""
    closes = np.asarray(closes, dtype=float)
    if volumes is None:
        volumes = np.full(len(closes), 1_000_000.0)
    opens = np.concatenate([[closes[0]], closes[:-1]])
    return pd.DataFrame(
        {
            "Open": opens,
            "High": np.maximum(opens, closes) + spread,
            "Low": np.minimum(opens, closes) - spread,
            "Close": closes,
            "Volume": np.asarray(volumes, dtype=float),
        },
        index=pd.date_range(start, periods=len(closes), freq=freq),
    )


def make_snapshot(last_close=100.0, rsi=None, crossover=None, histogram=0.0,
                  ema20=None, ema50=None, band=None, volume_trend=None,
                  bands=(90.0, 100.0, 110.0), volume_ratio=1.0):
    """Hand-built snapshot so classifier / scoring tests control every input."""
    rsi_res = None
    if rsi is not None:
        if rsi <= 30:
            interp = Interpretation.OVERSOLD
        elif rsi >= 70:
            interp = Interpretation.OVERBOUGHT
        else:
            interp = Interpretation.NEUTRAL
        rsi_res = IndicatorResult(current=rsi, values=(rsi,), interpretation=interp)

    macd_res = None
    if crossover is not None:
        macd_res = MACDResult(macd=histogram, signal=0.0, histogram=histogram, crossover=crossover)

    bb = None
    if band is not None:
        lower, middle, upper = bands
        width = upper - lower
        bb = BollingerBandsResult(
            upper=upper, middle=middle, lower=lower,
            bandwidth=width / middle, position=band,
            percent_b=(last_close - lower) / width if width else 0.5,
        )

    vol = None
    if volume_trend is not None:
        vol = VolumeAnalysisResult(
            current=volume_ratio * 1000, average=1000.0, ratio=volume_ratio,
            is_spike=volume_ratio > 1.5, trend=volume_trend,
            signal=VolumeSignal.HIGH if volume_ratio > 1.5 else VolumeSignal.NORMAL,
        )

    def avg(v):
        return IndicatorResult(current=v, values=(v,)) if v is not None else None

    return IndicatorSnapshot(
        last_close=last_close, rsi=rsi_res, macd=macd_res, bollinger=bb,
        ema20=avg(ema20), ema50=avg(ema50), volume=vol,
    )


@pytest.fixture
def rising_bars():
    closes = 100 + np.arange(80) * 1.0
    volumes = 1_000_000 + np.arange(80) * 10_000.0
    return make_bars(closes, volumes)


@pytest.fixture
def random_walk():
    rng = np.random.default_rng(7)
    closes = 1000 + np.cumsum(rng.normal(0, 10, 200))
    volumes = rng.integers(500_000, 2_000_000, 200).astype(float)
    return make_bars(closes, volumes, spread=5.0)


@pytest.fixture
def short_bars():
    return make_bars(100 + np.arange(30) * 0.5)
