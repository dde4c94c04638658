"""
Confluence Aggregator: per-timeframe trends → one verdict + trade plan.

Timeframes arrive shortest horizon first. Weights are positional (the
default [1, 1, 2, 3] lets the longer horizons dominate), so the caller is
responsible for the ordering.

Verdict:
    direction   label with the largest weighted vote; a tie is NEUTRAL
    strength    100 × winning weight / total weight (0 when NEUTRAL)
    agreement   "k/n timeframes aligned"

Plan:
    BUY / SELL once strength reaches the action threshold, else WAIT.
    Entry zone ±0.3% around price, ATR stop scaled by the mode multiplier,
    take-profit ladder at 1R / 2R / 3R. Without ATR the stop sits just
    beyond the nearest key level.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

from config import CONFLUENCE, MODES, TIMEFRAME_WEIGHTS
from errors import InvalidParameterError
from models import (
    Action, Confluence, ConfluenceResult, EntryZone, TimeframeAnalysis,
    TradeRecommendation, Trend,
)

logger = logging.getLogger(__name__)


def default_weights(n: int) -> List[float]:
    """Positional weights for n timeframes; extra short horizons weigh like the first."""
    if n <= len(TIMEFRAME_WEIGHTS):
        return list(TIMEFRAME_WEIGHTS[len(TIMEFRAME_WEIGHTS) - n:])
    return [TIMEFRAME_WEIGHTS[0]] * (n - len(TIMEFRAME_WEIGHTS)) + list(TIMEFRAME_WEIGHTS)


class ConfluenceAggregator:
    """
    Simple interface:
        aggregate(timeframes, current_price, atr=None, mode="swing") -> ConfluenceResult
    """

    def __init__(self, action_threshold: Optional[float] = None,
                 entry_buffer: Optional[float] = None,
                 risk_multiples: Optional[Sequence[float]] = None):
        self.action_threshold = CONFLUENCE["action_threshold"] if action_threshold is None else action_threshold
        self.entry_buffer = CONFLUENCE["entry_buffer"] if entry_buffer is None else entry_buffer
        self.risk_multiples = list(risk_multiples or CONFLUENCE["risk_multiples"])

    # ── Public Interface ────────────────────────────────────────────────

    def aggregate(self, timeframes: Sequence[TimeframeAnalysis], current_price: float,
                  atr: Optional[float] = None, mode: str = "swing",
                  weights: Optional[Sequence[float]] = None,
                  symbol: str = "") -> ConfluenceResult:
        if mode not in MODES:
            raise InvalidParameterError(f"Unknown mode '{mode}' (expected one of {sorted(MODES)})")
        if current_price is None or not math.isfinite(current_price) or current_price <= 0:
            raise InvalidParameterError(f"current_price must be a positive number, got {current_price!r}")

        timeframes = tuple(timeframes)
        confluence = self.vote(timeframes, weights)

        if atr is None:
            atr = self._mode_atr(timeframes, mode)

        recommendation = self.recommend(confluence, timeframes, current_price, atr, mode)
        logger.info(
            f"{symbol or '?'} [{mode}] {confluence.direction.value} "
            f"{confluence.strength:.0f}% ({confluence.agreement}) → {recommendation.action.value}"
        )
        return ConfluenceResult(
            timeframes=timeframes,
            confluence=confluence,
            recommendation=recommendation,
            symbol=symbol,
            mode=mode,
        )

    def vote(self, timeframes: Sequence[TimeframeAnalysis],
             weights: Optional[Sequence[float]] = None) -> Confluence:
        n = len(timeframes)
        if n == 0:
            return Confluence(direction=Trend.NEUTRAL, strength=0.0, agreement="0/0 timeframes aligned")

        weights = list(weights) if weights is not None else default_weights(n)
        if len(weights) != n:
            raise InvalidParameterError(f"{len(weights)} weights supplied for {n} timeframes")
        if any(w < 0 for w in weights):
            raise InvalidParameterError("timeframe weights must be non-negative")

        votes: Dict[Trend, float] = {t: 0.0 for t in Trend}
        for tf, w in zip(timeframes, weights):
            votes[tf.trend] += w
        total = sum(weights)

        best = max(votes.values())
        leaders = [t for t, v in votes.items() if v == best]
        direction = leaders[0] if len(leaders) == 1 else Trend.NEUTRAL

        if direction == Trend.NEUTRAL or total <= 0:
            strength = 0.0
        else:
            strength = round(100.0 * votes[direction] / total, 2)

        aligned = sum(1 for tf in timeframes if tf.trend == direction)
        return Confluence(
            direction=direction,
            strength=strength,
            agreement=f"{aligned}/{n} timeframes aligned",
        )

    def recommend(self, confluence: Confluence, timeframes: Sequence[TimeframeAnalysis],
                  price: float, atr: Optional[float], mode: str) -> TradeRecommendation:
        direction = confluence.direction
        if direction == Trend.BULLISH and confluence.strength >= self.action_threshold:
            action = Action.BUY
        elif direction == Trend.BEARISH and confluence.strength >= self.action_threshold:
            action = Action.SELL
        else:
            action = Action.WAIT

        # WAIT plans are still laid out, short only when the lean is bearish
        long_side = direction != Trend.BEARISH
        sign = 1 if long_side else -1

        if atr is not None and math.isfinite(atr) and atr > 0:
            stop = price - sign * atr * MODES[mode]["atr_multiplier"]
        else:
            stop = self._level_stop(timeframes, price, long_side)

        risk = abs(price - stop)
        take_profit = tuple(price + sign * risk * m for m in self.risk_multiples)

        return TradeRecommendation(
            action=action,
            confidence=confluence.strength,
            entry_zone=EntryZone(low=price * (1 - self.entry_buffer),
                                 high=price * (1 + self.entry_buffer)),
            stop_loss=stop,
            take_profit=take_profit,
            reference_price=price,
        )

    # ── Internals ───────────────────────────────────────────────────────

    @staticmethod
    def _mode_atr(timeframes: Sequence[TimeframeAnalysis], mode: str) -> Optional[float]:
        """ATR of the mode's designated interval, else of the longest timeframe that has one."""
        wanted = MODES[mode]["atr_interval"]
        for tf in timeframes:
            if tf.interval == wanted and tf.atr:
                return tf.atr
        for tf in reversed(timeframes):
            if tf.atr:
                return tf.atr
        return None

    @staticmethod
    def _level_stop(timeframes: Sequence[TimeframeAnalysis], price: float, long_side: bool) -> float:
        buffer = CONFLUENCE["level_buffer"]
        if long_side:
            supports = [tf.key_levels.support for tf in timeframes if tf.key_levels.support < price]
            if supports:
                return max(supports) * (1 - buffer)
            return price * (1 - CONFLUENCE["fallback_stop_pct"])

        resistances = [tf.key_levels.resistance for tf in timeframes if tf.key_levels.resistance > price]
        if resistances:
            return min(resistances) * (1 + buffer)
        return price * (1 + CONFLUENCE["fallback_stop_pct"])
