"""
BPJS Scoring Engine (Beli Pagi Jual Sore: buy morning, sell afternoon)

Composite 0-100 score, the sum of independently capped category sub-scores:

    Gap performance     20   gap up 1-3% is optimal, gap down scores nothing
    Volume surge        20   2-3× average volume is the sweet spot
    RSI position        15   50-65 = momentum without overheating
    MACD signal         15   fresh bullish crossover best, bearish worst
    Bollinger position  10   lower half / middle preferred over the upper band
    EMA trend           10   price > EMA20 > EMA50
    News sentiment       5   headline keyword score 0-5
    Sector momentum      5   sector index change on the day

Band tables give each category a share of its cap, so a re-weighted
configuration keeps the same shape. A category whose input is missing
falls back to its neutral sub-score and is listed in `degraded`.

Scoring is per symbol with no shared state; screen() fans a universe out
over a thread pool and rank() filters, sorts and truncates.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Mapping, Optional

from config import NEUTRAL_SCORES, SCORE_WEIGHTS, SCREENER
from errors import InvalidParameterError, MissingInputError
from models import BPJSScore, Crossover, IndicatorSnapshot, ScoreCategory, ScreeningCandidate

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Band tables (share of the category cap, 0..1)
# ═══════════════════════════════════════════════════════════════════════════

def gap_share(gap_pct: float) -> float:
    if gap_pct < 0:
        return 0.0          # gap down: not a BPJS setup
    if gap_pct < 1:
        return 0.5
    if gap_pct < 3:
        return 1.0
    if gap_pct < 5:
        return 0.75
    if gap_pct < 7:
        return 0.5
    return 0.25             # likely profit-taking


def volume_share(ratio: float) -> float:
    if ratio < 0.8:
        return 0.0
    if ratio < 1.2:
        return 0.25
    if ratio < 1.5:
        return 0.5
    if ratio < 2.0:
        return 0.75
    if ratio < 3.0:
        return 1.0
    return 0.75             # extreme, possible panic buying


def rsi_share(value: float) -> float:
    if value < 30:
        return 1 / 3
    if value < 40:
        return 2 / 3
    if value < 50:
        return 0.8
    if value <= 65:
        return 1.0
    if value <= 70:
        return 2 / 3
    return 1 / 3


def macd_share(crossover: Crossover, histogram: float) -> float:
    if crossover == Crossover.BULLISH:
        return 1.0
    if crossover == Crossover.BEARISH:
        return 0.0
    if histogram > 0:
        return 2 / 3
    if histogram < 0:
        return 0.2
    return 1 / 3


def bollinger_share(percent_b: float) -> float:
    if percent_b < 0.2:
        return 1.0          # bounce potential
    if percent_b < 0.4:
        return 0.8
    if percent_b < 0.6:
        return 1.0
    if percent_b < 0.8:
        return 0.6
    return 0.3


def ema_trend_share(price: float, ema20: float, ema50: float) -> float:
    points = 5 if price > ema20 else 2
    points += 3 if price > ema50 else 1
    if ema20 > ema50:
        points += 2
    return min(points, 10) / 10


def sector_share(change_pct: float) -> float:
    if change_pct > 1:
        return 1.0
    if change_pct > 0:
        return 0.8
    if change_pct > -1:
        return 0.4
    return 0.0


# ═══════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════

def validate_weights(weights: Mapping, categories=ScoreCategory,
                     total: Optional[int] = 100) -> Dict:
    """Parse a {category: cap} mapping keyed by enum or value; every category is required."""
    try:
        parsed = {categories(k) if not isinstance(k, categories) else k: v
                  for k, v in weights.items()}
    except ValueError as e:
        raise InvalidParameterError(f"Unknown score category: {e}") from e

    missing = set(categories) - set(parsed)
    if missing:
        raise InvalidParameterError(f"Missing weights for: {sorted(c.value for c in missing)}")
    if any(v < 0 for v in parsed.values()):
        raise InvalidParameterError("Category weights must be non-negative")
    actual = sum(parsed.values())
    if total is not None and actual != total:
        raise InvalidParameterError(f"Category weights must sum to {total}, got {actual}")
    if actual <= 0:
        raise InvalidParameterError("Category weights must not all be zero")
    return parsed


def rank_scores(scores: Iterable, min_score: float, max_results: Optional[int]) -> List:
    """Drop scores below min_score, sort best first, keep max_results.

    Ties break on volume ratio (higher first), then symbol.
    """
    if max_results is not None and max_results < 0:
        raise InvalidParameterError(f"max_results must be non-negative, got {max_results}")
    kept = [s for s in scores if s.total_score >= min_score]
    kept.sort(key=lambda s: (-s.total_score, -(s.volume_ratio or 0.0), s.symbol))
    return kept if max_results is None else kept[:max_results]


class ScoringEngine:
    """
    Simple interface:
        score(candidate)                          -> BPJSScore
        screen(candidates, min_score, max_results) -> ranked List[BPJSScore]
    """

    def __init__(self, weights: Optional[Mapping] = None,
                 neutral_scores: Optional[Mapping] = None):
        self.weights = validate_weights(weights or SCORE_WEIGHTS)
        neutral = neutral_scores or NEUTRAL_SCORES
        self.neutral = {
            cat: min(self.weights[cat], int(neutral.get(cat.value, neutral.get(cat, 0))))
            for cat in ScoreCategory
        }

    # ── Public Interface ────────────────────────────────────────────────

    def score(self, candidate: ScreeningCandidate) -> BPJSScore:
        breakdown: Dict[ScoreCategory, int] = {}
        degraded: List[ScoreCategory] = []

        for cat in ScoreCategory:
            cap = self.weights[cat]
            try:
                share = self._share(cat, candidate)
                breakdown[cat] = min(cap, max(0, int(round(share * cap))))
            except MissingInputError as e:
                logger.debug(f"{candidate.symbol}: {cat.value} degraded to neutral ({e})")
                breakdown[cat] = self.neutral[cat]
                degraded.append(cat)

        snapshot = candidate.snapshot
        return BPJSScore(
            symbol=candidate.symbol,
            total_score=sum(breakdown.values()),
            breakdown=breakdown,
            degraded=tuple(degraded),
            name=candidate.name,
            sector=candidate.sector,
            price=candidate.quote.price,
            gap_percent=self._gap_pct(candidate),
            volume_ratio=snapshot.volume.ratio if snapshot and snapshot.volume else None,
            fundamentals=candidate.fundamentals,
        )

    def rank(self, scores: Iterable[BPJSScore],
             min_score: float = SCREENER["min_score"],
             max_results: Optional[int] = SCREENER["max_results"]) -> List[BPJSScore]:
        return rank_scores(scores, min_score, max_results)

    def screen(self, candidates: Iterable[ScreeningCandidate],
               min_score: float = SCREENER["min_score"],
               max_results: Optional[int] = SCREENER["max_results"],
               workers: int = SCREENER["workers"]) -> List[BPJSScore]:
        candidates = list(candidates)
        with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
            scores = list(pool.map(self.score, candidates))
        ranked = self.rank(scores, min_score, max_results)
        logger.info(f"Scored {len(scores)} candidates, {len(ranked)} passed min score {min_score}")
        return ranked

    # ── Internals ───────────────────────────────────────────────────────

    def _share(self, cat: ScoreCategory, c: ScreeningCandidate) -> float:
        snap = c.snapshot
        if cat == ScoreCategory.GAP:
            gap = self._gap_pct(c)
            if gap is None:
                raise MissingInputError("previous_close")
            return gap_share(gap)

        if cat == ScoreCategory.VOLUME:
            return volume_share(self._need(snap, "volume").ratio)

        if cat == ScoreCategory.RSI:
            return rsi_share(self._need(snap, "rsi").current)

        if cat == ScoreCategory.MACD:
            m = self._need(snap, "macd")
            return macd_share(m.crossover, m.histogram)

        if cat == ScoreCategory.BOLLINGER:
            bb = self._need(snap, "bollinger")
            width = bb.upper - bb.lower
            if width <= 0:
                return 0.5
            return bollinger_share((c.quote.price - bb.lower) / width)

        if cat == ScoreCategory.EMA_TREND:
            e20 = self._need(snap, "ema20").current
            e50 = self._need(snap, "ema50").current
            return ema_trend_share(c.quote.price, e20, e50)

        if cat == ScoreCategory.SENTIMENT:
            if c.sentiment is None or not math.isfinite(c.sentiment):
                raise MissingInputError("sentiment")
            return round(min(5.0, max(0.0, c.sentiment))) / 5

        if cat == ScoreCategory.SECTOR:
            if c.sector_change_pct is None or not math.isfinite(c.sector_change_pct):
                raise MissingInputError("sector_change_pct")
            return sector_share(c.sector_change_pct)

        raise InvalidParameterError(f"Unhandled category {cat}")

    @staticmethod
    def _need(snapshot: Optional[IndicatorSnapshot], name: str):
        if snapshot is None:
            raise MissingInputError(name, "no indicator snapshot")
        value = getattr(snapshot, name)
        if value is None:
            raise MissingInputError(name, snapshot.unavailable.get(name))
        return value

    @staticmethod
    def _gap_pct(c: ScreeningCandidate) -> Optional[float]:
        prev = c.quote.previous_close
        if not prev or not math.isfinite(prev) or prev <= 0:
            return None
        return (c.quote.price - prev) / prev * 100
