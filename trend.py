"""
Trend Classifier: one timeframe's indicators → trend label, strength, key levels.

Strength starts at the neutral baseline (50). Each available indicator adds
its weight when it leans bullish and subtracts it when it leans bearish:

    RSI zone           oversold → bullish reversal, overbought → bearish
    RSI momentum       above / below 50 while inside the neutral zone
    MACD crossover     fresh crossover direction
    MACD histogram     histogram sign when there is no fresh crossover
    EMA order          EMA20 above / below EMA50
    Bollinger          close beyond a band, mapped by the band policy

The trend label needs the net bias to clear the deadband. Missing
indicators simply do not vote, so any subset still yields a result.
"""

import logging
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from config import TREND
from indicators import compute_snapshot
from models import (
    BandPolicy, BandPosition, Crossover, IndicatorSnapshot, Interpretation,
    KeyLevels, TimeframeAnalysis, TimeframeIndicators, Trend, VolumeSignal,
    VolumeTrend,
)

logger = logging.getLogger(__name__)


class TrendClassifier:
    """
    Classifies a single timeframe.

    Simple interface:
        classify(interval, bars) -> TimeframeAnalysis
    """

    def __init__(self, weights: Optional[Dict[str, float]] = None,
                 deadband: Optional[float] = None,
                 lookback: Optional[int] = None,
                 band_policy=None):
        self.weights = dict(TREND["weights"], **(weights or {}))
        self.baseline = TREND["baseline"]
        self.deadband = TREND["deadband"] if deadband is None else deadband
        self.lookback = TREND["lookback"] if lookback is None else lookback
        self.band_policy = BandPolicy(band_policy or TREND["band_policy"])

    # ── Public Interface ────────────────────────────────────────────────

    def classify(self, interval: str, bars: pd.DataFrame,
                 snapshot: Optional[IndicatorSnapshot] = None) -> TimeframeAnalysis:
        if snapshot is None:
            snapshot = compute_snapshot(bars)

        bias, used = self.score(snapshot)
        strength = float(min(100.0, max(0.0, self.baseline + bias)))

        if bias > self.deadband:
            trend = Trend.BULLISH
        elif bias < -self.deadband:
            trend = Trend.BEARISH
        else:
            trend = Trend.NEUTRAL

        logger.debug(f"[{interval}] bias={bias:+.0f} from {used} indicators → {trend.value}")

        return TimeframeAnalysis(
            interval=interval,
            trend=trend,
            strength=strength,
            key_levels=self.key_levels(bars, snapshot),
            indicators=self._summarize(snapshot),
            bias=float(bias),
            atr=snapshot.atr.current if snapshot.atr else None,
            last_close=snapshot.last_close,
            signals_used=used,
        )

    def score(self, snapshot: IndicatorSnapshot) -> Tuple[float, int]:
        """Net weighted bias and the number of indicators that voted."""
        w = self.weights
        bias = 0.0
        used = 0

        if snapshot.rsi:
            used += 1
            r = snapshot.rsi
            if r.interpretation == Interpretation.OVERSOLD:
                bias += w["rsi_zone"]
            elif r.interpretation == Interpretation.OVERBOUGHT:
                bias -= w["rsi_zone"]
            elif r.current > 50:
                bias += w["rsi_momentum"]
            elif r.current < 50:
                bias -= w["rsi_momentum"]

        if snapshot.macd:
            used += 1
            m = snapshot.macd
            if m.crossover == Crossover.BULLISH:
                bias += w["macd_crossover"]
            elif m.crossover == Crossover.BEARISH:
                bias -= w["macd_crossover"]
            elif m.histogram > 0:
                bias += w["macd_histogram"]
            elif m.histogram < 0:
                bias -= w["macd_histogram"]

        if snapshot.ema20 and snapshot.ema50:
            used += 1
            if snapshot.ema20.current > snapshot.ema50.current:
                bias += w["ema_order"]
            elif snapshot.ema20.current < snapshot.ema50.current:
                bias -= w["ema_order"]

        if snapshot.bollinger:
            used += 1
            bias += self._band_vote(snapshot) * w["bollinger"]

        return bias, used

    def key_levels(self, bars: Optional[pd.DataFrame],
                   snapshot: IndicatorSnapshot) -> KeyLevels:
        """
        Lowest low / highest high of the trailing lookback window. With a
        shorter history the Bollinger bands stand in, then whatever bars exist.
        """
        n = 0 if bars is None else len(bars)
        if n >= self.lookback:
            window = bars.iloc[-self.lookback:]
            return self._range_of(window, snapshot.last_close)
        if snapshot.bollinger:
            return KeyLevels(support=snapshot.bollinger.lower,
                             resistance=snapshot.bollinger.upper)
        if n:
            return self._range_of(bars, snapshot.last_close)
        return KeyLevels(support=snapshot.last_close, resistance=snapshot.last_close)

    # ── Internals ───────────────────────────────────────────────────────

    def _band_vote(self, snapshot: IndicatorSnapshot) -> int:
        """+1 bullish, -1 bearish, 0 inside the bands."""
        position = snapshot.bollinger.position
        if position == BandPosition.WITHIN:
            return 0
        direction = 1 if position == BandPosition.ABOVE_UPPER else -1

        if self.band_policy == BandPolicy.BREAKOUT:
            return direction
        if self.band_policy == BandPolicy.MEAN_REVERSION:
            return -direction

        # Volume-confirmed: a band break on rising volume continues,
        # anything else is expected to revert
        rising = snapshot.volume is not None and snapshot.volume.trend == VolumeTrend.INCREASING
        return direction if rising else -direction

    @staticmethod
    def _range_of(bars: pd.DataFrame, fallback: float) -> KeyLevels:
        lows = bars["Low"] if "Low" in bars else bars["Close"]
        highs = bars["High"] if "High" in bars else bars["Close"]
        lows = pd.to_numeric(lows, errors="coerce")
        highs = pd.to_numeric(highs, errors="coerce")
        support = lows[np.isfinite(lows)].min() if np.isfinite(lows).any() else fallback
        resistance = highs[np.isfinite(highs)].max() if np.isfinite(highs).any() else fallback
        return KeyLevels(support=float(support), resistance=float(resistance))

    @staticmethod
    def _summarize(snapshot: IndicatorSnapshot) -> TimeframeIndicators:
        price = snapshot.last_close
        alignment = Trend.NEUTRAL
        if snapshot.ema20 and snapshot.ema50:
            e20, e50 = snapshot.ema20.current, snapshot.ema50.current
            if price > e20 > e50:
                alignment = Trend.BULLISH
            elif price < e20 < e50:
                alignment = Trend.BEARISH

        return TimeframeIndicators(
            rsi=snapshot.rsi.current if snapshot.rsi else None,
            macd_crossover=snapshot.macd.crossover if snapshot.macd else Crossover.NONE,
            ema_alignment=alignment,
            volume_signal=snapshot.volume.signal if snapshot.volume else VolumeSignal.NORMAL,
        )
