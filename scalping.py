"""
Scalping Screener (intraday, 5-minute bars)

Additive points, unbounded and possibly negative:

    Volume ratio     > 2.0 +25 · > 1.3 +15 · < 0.8 -10
    ADX              > 25 +10 · > 40 another +10 · < 20 -15 (choppy)
    Stochastic       %K over %D with %K < 50 +25 · any %K over %D +15
                     otherwise %K > 85 -5 · %K under %D -20
    EMA50 trend      price above +15, plus +20 on an RSI 40-55 pullback
                     (flags BUY); price below -20
    Volatility       ATR above 0.5% of price +5, otherwise -50

Final call: BUY at score >= 70 with live volatility and ADX > 20,
SELL at score <= 30, otherwise HOLD (or the pullback BUY).
"""

import logging
from typing import Iterable, List, Optional

import pandas as pd

from config import INDICATORS, SCALPING
from errors import InsufficientDataError
from indicators import adx, analyze_volume, atr, clean_ohlcv, ema, rsi, stochastic
from models import Crossover, ScalpingScore, ScalpSignal
from scoring import rank_scores

logger = logging.getLogger(__name__)


class ScalpingScorer:
    """
    Simple interface:
        score(symbol, bars)                      -> ScalpingScore
        rank(scores, min_score, max_results)     -> ranked List[ScalpingScore]
    """

    def __init__(self, settings: Optional[dict] = None):
        self.settings = {**SCALPING, **(settings or {})}

    def score(self, symbol: str, bars: pd.DataFrame, name: str = "", sector: str = "") -> ScalpingScore:
        """Score 5m OHLCV bars; raises InsufficientDataError below min_bars."""
        cfg = self.settings
        frame = clean_ohlcv(bars)
        if len(frame) < cfg["min_bars"]:
            raise InsufficientDataError("scalping score", cfg["min_bars"], len(frame))

        highs, lows = frame["High"], frame["Low"]
        closes, volumes = frame["Close"], frame["Volume"]
        price = float(closes.iloc[-1])
        prev = float(closes.iloc[-2])
        change_pct = (price - prev) / prev * 100 if prev else 0.0

        vol_ratio = analyze_volume(volumes, INDICATORS["volume_period"], INDICATORS["volume_spike"]).ratio
        trend_strength = adx(highs, lows, closes, INDICATORS["adx_period"]).adx
        stoch = stochastic(highs, lows, closes, INDICATORS["stoch_k"], INDICATORS["stoch_d"])
        ema50 = ema(closes, INDICATORS["ema_slow"]).current
        rsi_now = rsi(closes, INDICATORS["rsi_period"]).current
        volatility = atr(highs, lows, closes, INDICATORS["atr_period"]).current / price * 100

        points = 0
        signal = ScalpSignal.HOLD
        reasons = []

        if vol_ratio > 2.0:
            points += 25
            reasons.append(f"Massive volume ({vol_ratio:.1f}x)")
        elif vol_ratio > 1.3:
            points += 15
            reasons.append(f"High volume ({vol_ratio:.1f}x)")
        elif vol_ratio < 0.8:
            points -= 10

        if trend_strength > 25:
            points += 10
        if trend_strength > 40:
            points += 10
            reasons.append(f"Strong trend (ADX {trend_strength:.0f})")
        elif trend_strength < 20:
            points -= 15
            reasons.append("Weak trend")

        if stoch.signal == Crossover.BULLISH and stoch.k < 50:
            points += 25
            reasons.append("Stochastic bullish cross")
        elif stoch.signal == Crossover.BULLISH:
            points += 15
        elif stoch.k > 85:
            points -= 5
        elif stoch.signal == Crossover.BEARISH:
            points -= 20

        if price > ema50:
            points += 15
            if 40 <= rsi_now <= 55:
                points += 20
                reasons.append("Pullback in uptrend")
                signal = ScalpSignal.BUY
        else:
            points -= 20

        live = volatility > cfg["min_volatility_pct"]
        if live:
            points += 5
        else:
            points -= 50
            reasons.append(f"Dead stock (ATR {volatility:.2f}%)")

        if points >= cfg["buy_score"] and live and trend_strength > cfg["min_adx"]:
            signal = ScalpSignal.BUY
        elif points <= cfg["sell_score"]:
            signal = ScalpSignal.SELL

        logger.debug(f"{symbol}: scalping {points} {signal.value} ({', '.join(reasons) or 'no flags'})")
        return ScalpingScore(
            symbol=symbol,
            total_score=points,
            signal=signal,
            reasons=tuple(reasons),
            name=name,
            sector=sector,
            price=price,
            change_percent=change_pct,
            rsi=rsi_now,
            volume_ratio=vol_ratio,
            stochastic_k=stoch.k,
            stochastic_d=stoch.d,
            volatility_pct=volatility,
            adx=trend_strength,
        )

    def rank(self, scores: Iterable[ScalpingScore],
             min_score: float = SCALPING["min_score"],
             max_results: Optional[int] = None) -> List[ScalpingScore]:
        return rank_scores(scores, min_score, max_results)
