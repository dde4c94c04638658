from confluence import ConfluenceAggregator
from display import Display
from models import (
    BPJSScore, Fundamentals, KeyLevels, ScalpingScore, ScalpSignal, ScoreCategory,
    SwingFactor, SwingScore, TimeframeAnalysis, Trend,
)


def test_confluence_card(capsys):
    tfs = [TimeframeAnalysis(interval=iv, trend=Trend.BULLISH, strength=75.0,
                             key_levels=KeyLevels(support=9800.0, resistance=10250.0))
           for iv in ("1h", "4h", "1d", "1w")]
    result = ConfluenceAggregator().aggregate(tfs, 10000.0, atr=100.0, symbol="BBCA")

    Display(width=80).show_confluence(result, "word " * 40)
    out = capsys.readouterr().out
    assert "BBCA" in out
    assert "BUY" in out
    assert "Rp9,800" in out
    assert "TP3: Rp10,600" in out
    assert "ANALYSIS:" in out
    for line in out.splitlines():
        if "word" in line:
            assert len(line) == 80


def test_ranking_table(capsys):
    breakdown = {cat: 5 for cat in ScoreCategory}
    scores = [BPJSScore(symbol="TLKM", total_score=40, breakdown=breakdown,
                        degraded=(ScoreCategory.SECTOR,), price=3000.0, gap_percent=1.5,
                        fundamentals=Fundamentals(pe=14.2, pb=2.35, market_cap=3.1e14))]
    Display().show_ranking(scores, 30)
    out = capsys.readouterr().out
    assert "TLKM" in out
    assert "+1.5%" in out
    assert "neutral score used" in out
    assert "P/E" in out
    assert " 14.2  2.35  Rp310.0T" in out


def test_ranking_table_missing_fundamentals_read_na(capsys):
    breakdown = {cat: 5 for cat in ScoreCategory}
    scores = [
        BPJSScore(symbol="GOTO", total_score=60, breakdown=breakdown,
                  fundamentals=Fundamentals(pb=1.5, market_cap=float("nan"))),
        BPJSScore(symbol="BUKA", total_score=55, breakdown=breakdown),
    ]
    Display().show_ranking(scores, 50)
    rows = {line.split("│")[2].strip(): line for line in capsys.readouterr().out.splitlines()
            if "GOTO" in line or "BUKA" in line}
    assert rows["GOTO"].rstrip().endswith("n/a  1.50       n/a")
    assert rows["BUKA"].rstrip().endswith("n/a   n/a       n/a")


def test_empty_ranking(capsys):
    Display().show_ranking([], 50)
    assert "No candidates passed" in capsys.readouterr().out


def test_swing_ranking_table(capsys):
    breakdown = {f: 3 for f in SwingFactor}
    scores = [SwingScore(symbol="ASII", total_score=72, base_score=83, breakdown=breakdown,
                         assessment="BULLISH SETUP", confidence="HIGH", price=5200.0)]
    Display().show_swing_ranking(scores, 50)
    out = capsys.readouterr().out
    assert "SWING SETUPS" in out
    assert "ASII" in out
    assert "Rp5,200" in out
    assert "BULLISH SETUP (HIGH)" in out


def test_scalping_ranking_table(capsys):
    scores = [ScalpingScore(symbol="ANTM", total_score=85, signal=ScalpSignal.BUY,
                            reasons=("Massive volume (2.4x)", "Pullback in uptrend"),
                            price=1500.0, change_percent=0.7, rsi=48.2, volume_ratio=2.4,
                            stochastic_k=32.0, stochastic_d=28.5, volatility_pct=0.84, adx=31.0)]
    Display().show_scalping_ranking(scores, 0)
    out = capsys.readouterr().out
    assert "ANTM" in out
    assert "BUY" in out
    assert " 32.0/ 28.5" in out
    assert "Massive volume (2.4x), Pullback in uptrend" in out
    assert "0.84" in out


def test_empty_scalping_ranking(capsys):
    Display().show_scalping_ranking([], 0)
    assert "No candidates passed" in capsys.readouterr().out
