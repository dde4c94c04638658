"""
Swing Technical Scorer (multi-day holds on daily bars)

Seven factors, each scored in raw points against its own maximum:

    Trend               35   price vs EMA20 / EMA50, EMA20 vs EMA50, fresh cross
    Momentum            25   RSI zone and direction, RSI vs price divergence
    MACD                20   crossover age, histogram, zero line
    Volume              15   spike ratio vs 20-bar average, accumulation
    Support/resistance  10   distance to the 20-bar low, 20-bar breakout
    Patterns             5   hammer / marubozu on the last candle
    Multi-timeframe      5   price, RSI and MACD pointing the same way

Raw points total at most 115. Each factor is rescaled to its configured
cap (SWING_WEIGHTS) and the sum normalized to 0-100, so the default caps
reproduce base / 115 × 100.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from config import INDICATORS, SWING, SWING_WEIGHTS
from errors import InsufficientDataError
from indicators import clean_ohlcv, ema, macd, rsi
from models import MACDResult, SwingFactor, SwingScore
from scoring import rank_scores, validate_weights

logger = logging.getLogger(__name__)

# Raw-point ceiling of each factor's band tables
FACTOR_MAX = {
    SwingFactor.TREND: 35,
    SwingFactor.MOMENTUM: 25,
    SwingFactor.MACD: 20,
    SwingFactor.VOLUME: 15,
    SwingFactor.SUPPORT_RESISTANCE: 10,
    SwingFactor.PATTERNS: 5,
    SwingFactor.MULTI_TIMEFRAME: 5,
}


# ═══════════════════════════════════════════════════════════════════════════
# Factor tables (raw points)
# ═══════════════════════════════════════════════════════════════════════════

def trend_points(price: float, ema20: np.ndarray, ema50: np.ndarray) -> int:
    e20, e50 = ema20[-1], ema50[-1]
    dist20 = (price - e20) / e20 * 100
    dist50 = (price - e50) / e50 * 100
    spread = (e20 - e50) / e50 * 100

    if price > e20 * 1.02:
        points = 10
    elif price > e20:
        points = 8
    elif abs(dist20) < 1:
        points = 5
    else:
        points = 2

    if price > e50 * 1.05:
        points += 10
    elif price > e50:
        points += 7
    elif abs(dist50) < 2:
        points += 4

    if e20 > e50 * 1.03:
        points += 10
    elif e20 > e50:
        points += 7
    elif abs(spread) < 1:
        points += 3

    # fresh EMA20-over-EMA50 cross within the last 5 bars
    span = min(len(ema20), len(ema50))
    fast, slow = ema20[-span:], ema50[-span:]
    for i in range(1, min(5, span - 1) + 1):
        if fast[-i - 1] <= slow[-i - 1] and fast[-i] > slow[-i]:
            if e20 > e50:
                points += 5
            break
    return points


def momentum_points(closes: np.ndarray, rsi_values: np.ndarray) -> int:
    last = rsi_values[-1]
    rsi3 = rsi_values[-3] if len(rsi_values) >= 3 else 50.0
    rsi5 = rsi_values[-5] if len(rsi_values) >= 5 else 50.0
    rising, falling = last > rsi3, last < rsi3

    if 20 <= last < 40:
        points = 10 if rising else 5
    elif 40 <= last < 60:
        points = 8 if rising else (3 if falling else 5)
    elif 60 <= last < 70:
        points = 5 if rising else 3
    else:
        points = 0

    if last > rsi3 and rsi3 > rsi5:
        points += 5
    elif last > rsi3 or rsi3 > rsi5:
        points += 3
    elif abs(last - rsi3) < 5:
        points += 1

    # lower price than 10 bars ago on a clearly higher RSI
    if len(closes) >= 10 and len(rsi_values) >= 10:
        if closes[-1] < closes[-10] * 0.98 and last > rsi_values[-10] + 5:
            points += 7
    return points


def macd_points(m: MACDResult) -> int:
    hist = np.asarray(m.histogram_values)
    line = np.asarray(m.macd_line)

    age = None
    for i in range(1, min(5, len(hist) - 1) + 1):
        if hist[-i - 1] <= 0 < hist[-i]:
            age = i
            break

    if age is not None:
        points = 10 if age <= 2 else 7
    elif m.macd > m.signal:
        dist = (m.macd - m.signal) / abs(m.signal) * 100 if m.signal else float("inf")
        points = 6 if dist > 20 else 4
    elif abs(m.macd - m.signal) < 0.5:
        points = 2
    else:
        points = 0

    prev = hist[-2] if len(hist) >= 2 else 0.0
    last = hist[-1]
    if prev < 0 < last:
        points += 5
    elif last > 0 and last > prev:
        points += 4
    elif last > 0:
        points += 2

    if m.macd > 1:
        points += 5
    elif m.macd > 0:
        points += 4
    elif m.macd > -0.5:
        points += 2
    elif len(line) >= 2 and line[-1] > line[-2]:
        points += 1
    return points


def volume_points(volumes: np.ndarray) -> int:
    ratio = volume_ratio(volumes)
    if ratio >= 3:
        points = 10
    elif ratio >= 2:
        points = 9
    elif ratio >= 1.5:
        points = 7
    elif ratio >= 1.2:
        points = 4
    elif ratio >= 1.0:
        points = 2
    elif ratio >= 0.8:
        points = 1
    else:
        points = 0

    recent = volumes[-6:]
    up_bars = int((np.diff(recent) > 0).sum())
    if up_bars >= 4:
        points += 5
    elif up_bars == 3:
        points += 3
    elif up_bars == 2:
        points += 1
    return points


def volume_ratio(volumes: np.ndarray) -> float:
    """Last volume over the mean of the last 20 (the last included)."""
    average = volumes[-20:].mean()
    return float(volumes[-1] / average) if average > 0 else 0.0


def support_resistance_points(price: float, highs: np.ndarray, lows: np.ndarray,
                              vol_ratio: float) -> int:
    support = lows[-20:].min()
    to_support = (price - support) / price * 100
    if to_support <= 1:
        points = 5
    elif to_support <= 3:
        points = 4
    elif to_support <= 5:
        points = 2
    else:
        points = 0

    new_high = price >= highs[-20:-1].max()
    if new_high and vol_ratio > 1.5:
        points += 5
    elif new_high:
        points += 3
    elif (highs[-20:].max() - price) / price < 0.02:
        points += 2
    return points


def pattern_points(open_: float, high: float, low: float, close: float) -> int:
    body = abs(close - open_)
    span = high - low
    upper_wick = high - max(open_, close)
    lower_wick = min(open_, close) - low

    if lower_wick > body * 2 and upper_wick < body * 0.5:
        return 5            # hammer
    if body > span * 0.8 and span > close * 0.02:
        return 3            # marubozu
    return 0


def alignment_points(price: float, ema20: float, rsi_value: float, macd_line: np.ndarray) -> int:
    conditions = 0
    if price > ema20:
        conditions += 1
    if rsi_value > 45:
        conditions += 1
    if macd_line[-1] > 0 or (len(macd_line) >= 6 and macd_line[-1] > macd_line[-6]):
        conditions += 1
    return {3: 5, 2: 3, 1: 1}.get(conditions, 0)


def assessment(normalized: float) -> str:
    if normalized > 75:
        return "STRONG BULLISH SETUP"
    if normalized > 60:
        return "BULLISH SETUP"
    if normalized > 40:
        return "WEAK/NEUTRAL"
    return "BEARISH"


def confidence(normalized: float) -> str:
    if normalized > 70:
        return "HIGH"
    if normalized > 50:
        return "MEDIUM"
    return "LOW"


# ═══════════════════════════════════════════════════════════════════════════
# Scorer
# ═══════════════════════════════════════════════════════════════════════════

class SwingScorer:
    """
    Simple interface:
        score(symbol, bars)                      -> SwingScore
        rank(scores, min_score, max_results)     -> ranked List[SwingScore]
    """

    def __init__(self, weights: Optional[Mapping] = None, min_bars: int = SWING["min_bars"]):
        self.weights: Dict[SwingFactor, int] = validate_weights(
            weights or SWING_WEIGHTS, SwingFactor, total=None)
        self.min_bars = min_bars

    def score(self, symbol: str, bars: pd.DataFrame, name: str = "", sector: str = "") -> SwingScore:
        """Score daily OHLCV bars; raises InsufficientDataError below min_bars."""
        frame = clean_ohlcv(bars)
        if len(frame) < self.min_bars:
            raise InsufficientDataError("swing score", self.min_bars, len(frame))

        opens = frame["Open"].to_numpy()
        highs = frame["High"].to_numpy()
        lows = frame["Low"].to_numpy()
        closes = frame["Close"].to_numpy()
        volumes = frame["Volume"].to_numpy()
        price = float(closes[-1])

        ema20 = np.asarray(ema(closes, INDICATORS["ema_fast"]).values)
        ema50 = np.asarray(ema(closes, INDICATORS["ema_slow"]).values)
        rsi_values = np.asarray(rsi(closes, INDICATORS["rsi_period"]).values)
        m = macd(closes)
        ratio = volume_ratio(volumes)

        raw = {
            SwingFactor.TREND: trend_points(price, ema20, ema50),
            SwingFactor.MOMENTUM: momentum_points(closes, rsi_values),
            SwingFactor.MACD: macd_points(m),
            SwingFactor.VOLUME: volume_points(volumes),
            SwingFactor.SUPPORT_RESISTANCE: support_resistance_points(price, highs, lows, ratio),
            SwingFactor.PATTERNS: pattern_points(opens[-1], highs[-1], lows[-1], price),
            SwingFactor.MULTI_TIMEFRAME: alignment_points(
                price, ema20[-1], rsi_values[-1], np.asarray(m.macd_line)),
        }

        breakdown = {
            f: min(self.weights[f], int(round(min(pts, FACTOR_MAX[f]) / FACTOR_MAX[f] * self.weights[f])))
            for f, pts in raw.items()
        }
        normalized = min(100.0, sum(breakdown.values()) / sum(self.weights.values()) * 100)
        logger.debug(f"{symbol}: swing raw {sum(raw.values())}/115, normalized {normalized:.1f}")

        return SwingScore(
            symbol=symbol,
            total_score=int(round(normalized)),
            base_score=sum(raw.values()),
            breakdown=breakdown,
            assessment=assessment(normalized),
            confidence=confidence(normalized),
            name=name,
            sector=sector,
            price=price,
            volume_ratio=ratio,
        )

    def rank(self, scores: Iterable[SwingScore],
             min_score: float = SWING["min_score"],
             max_results: Optional[int] = None) -> List[SwingScore]:
        return rank_scores(scores, min_score, max_results)
