"""Headline keyword sentiment (English + Bahasa Indonesia), scored 0-5 with 3 neutral."""

import logging
import math
import re
from typing import Iterable, Union

from models import Headline

logger = logging.getLogger(__name__)

NEUTRAL_SENTIMENT = 3

POSITIVE_KEYWORDS = [
    "naik", "untung", "laba", "growth", "profit", "dividen", "dividend", "buyback",
    "ekspansi", "resmi", "kerjasama", "surge", "record", "high", "jump", "rally",
    "positif", "optimis", "bullish", "strong", "tertinggi", "meroket", "upgrade",
]

NEGATIVE_KEYWORDS = [
    "turun", "rugi", "loss", "cut", "debt", "utang", "beban", "gagal", "batal",
    "suspensi", "drop", "low", "weak", "bearish", "negatif", "pesimis", "terendah",
    "anjlok", "bangkrut", "downgrade", "default", "plunge",
]


def _pattern(words):
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b", re.IGNORECASE)


_POSITIVE = _pattern(POSITIVE_KEYWORDS)
_NEGATIVE = _pattern(NEGATIVE_KEYWORDS)


def score_headline(title: str) -> int:
    """3 ± 1 for a positive / negative keyword, clamped to 1..5."""
    score = NEUTRAL_SENTIMENT
    if _POSITIVE.search(title or ""):
        score += 1
    if _NEGATIVE.search(title or ""):
        score -= 1
    return max(1, min(5, score))


def score_headlines(headlines: Iterable[Union[Headline, str]]) -> int:
    """Rounded mean of the per-headline scores; no headlines is neutral."""
    titles = [h.title if isinstance(h, Headline) else str(h) for h in headlines]
    if not titles:
        return NEUTRAL_SENTIMENT
    mean = sum(score_headline(t) for t in titles) / len(titles)
    # half-up, so 3.5 reads as 4
    return int(math.floor(mean + 0.5))
