import pytest

from models import Headline
from sentiment import NEUTRAL_SENTIMENT, score_headline, score_headlines


@pytest.mark.parametrize("title, expected", [
    ("BBRI laba bersih naik 12%", 4),
    ("Saham GOTO anjlok, rugi melebar", 2),
    ("Record profit despite rising debt", 3),
    ("Company schedules annual meeting", 3),
    ("Analysts follow the stock closely", 3),   # "follow" is not "low"
    ("STRONG QUARTER FOR TLKM", 4),
])
def test_single_headline(title, expected):
    assert score_headline(title) == expected


def test_no_headlines_is_neutral():
    assert score_headlines([]) == NEUTRAL_SENTIMENT


def test_mean_rounds_half_up():
    headlines = [Headline(title="dividen besar"), Headline(title="biasa saja")]
    assert score_headlines(headlines) == 4


def test_accepts_plain_strings():
    assert score_headlines(["harga turun", "harga turun lagi", "rapat umum"]) == 2
