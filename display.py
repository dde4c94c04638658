"""
Terminal Display Module

Renders analysis results for the CLI:
- Multi-timeframe card: per-timeframe trend table, confluence verdict, trade plan
- BPJS ranking table with category breakdown and valuation columns
- Swing and scalping ranking tables
- Commentary wrapped inside the card

Reads only the structured result types; formatting stays here.
"""

import logging
from datetime import datetime
from typing import List, Optional

from models import (
    Action, BPJSScore, ConfluenceResult, Fundamentals, ScalpingScore, ScalpSignal,
    ScoreCategory, SwingFactor, SwingScore, Trend, format_market_cap,
)

logger = logging.getLogger(__name__)

GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
GRAY = "\033[90m"
RESET = "\033[0m"

_ACTION_COLORS = {Action.BUY: GREEN, Action.SELL: RED, Action.WAIT: YELLOW}
_TREND_COLORS = {Trend.BULLISH: GREEN, Trend.BEARISH: RED, Trend.NEUTRAL: YELLOW}
_TREND_ICONS = {Trend.BULLISH: "▲", Trend.BEARISH: "▼", Trend.NEUTRAL: "●"}
_SIGNAL_COLORS = {ScalpSignal.BUY: GREEN, ScalpSignal.SELL: RED, ScalpSignal.HOLD: YELLOW}

# Short column labels for the ranking table
_CATEGORY_LABELS = {
    ScoreCategory.GAP: "Gap",
    ScoreCategory.VOLUME: "Vol",
    ScoreCategory.RSI: "RSI",
    ScoreCategory.MACD: "MACD",
    ScoreCategory.BOLLINGER: "BB",
    ScoreCategory.EMA_TREND: "EMA",
    ScoreCategory.SENTIMENT: "News",
    ScoreCategory.SECTOR: "Sect",
}

_FACTOR_LABELS = {
    SwingFactor.TREND: "Trnd",
    SwingFactor.MOMENTUM: "Mom",
    SwingFactor.MACD: "MACD",
    SwingFactor.VOLUME: "Vol",
    SwingFactor.SUPPORT_RESISTANCE: "S/R",
    SwingFactor.PATTERNS: "Pat",
    SwingFactor.MULTI_TIMEFRAME: "MTF",
}


class Display:
    def __init__(self, width: int = 100, currency: str = "IDR"):
        self.width = width
        self.currency = currency

    def _fc(self, amount: Optional[float]) -> str:
        """Format currency. IDX prices are whole rupiah."""
        if amount is None:
            return "n/a"
        if self.currency == "IDR":
            return f"Rp{amount:,.0f}"
        return f"{amount:,.2f}"

    def show_header(self, title: str):
        w = self.width
        print("=" * w)
        print(f"{title:^{w}}")
        print(f"  {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print("=" * w)
        print()

    # ── Multi-timeframe ─────────────────────────────────────────────────

    def show_confluence(self, result: ConfluenceResult, commentary: str = ""):
        w = self.width
        conf = result.confluence
        rec = result.recommendation
        color = _ACTION_COLORS.get(rec.action, RESET)

        print(f"┌{'─' * (w - 2)}┐")
        print(
            f"│ {result.symbol:6s} │ Mode: {result.mode:8s} │ "
            f"Action: {color}{rec.action.value:4s}{RESET} │ "
            f"Confidence: {self._confidence_bar(rec.confidence)} {rec.confidence:.0f}%"
        )
        print(f"├{'─' * (w - 2)}┤")
        print(f"│ {'TF':4s} │ {'Trend':9s} │ {'Str':>4s} │ {'RSI':>5s} │ "
              f"{'MACD':8s} │ {'EMA':8s} │ {'Support':>12s} │ {'Resistance':>12s}")
        print(f"├{'─' * (w - 2)}┤")

        for tf in result.timeframes:
            tcolor = _TREND_COLORS[tf.trend]
            ind = tf.indicators
            rsi = f"{ind.rsi:5.1f}" if ind and ind.rsi is not None else "  n/a"
            macd = ind.macd_crossover.value if ind else "n/a"
            ema = ind.ema_alignment.value if ind else "n/a"
            print(
                f"│ {tf.interval:4s} │ {tcolor}{_TREND_ICONS[tf.trend]} {tf.trend.value:7s}{RESET} │ "
                f"{tf.strength:>4.0f} │ {rsi} │ {macd:8s} │ {ema:8s} │ "
                f"{self._fc(tf.key_levels.support):>12s} │ {self._fc(tf.key_levels.resistance):>12s}"
            )

        print(f"├{'─' * (w - 2)}┤")
        dcolor = _TREND_COLORS[conf.direction]
        print(f"│  Confluence: {dcolor}{conf.direction.value}{RESET} "
              f"{conf.strength:.0f}%  ({conf.agreement})")
        print(f"│  Entry: {self._fc(rec.entry_zone.low)} – {self._fc(rec.entry_zone.high)}"
              f"  │  Stop: {self._fc(rec.stop_loss)}")
        targets = "  ".join(
            f"TP{i}: {self._fc(tp)}" for i, tp in enumerate(rec.take_profit, start=1)
        )
        print(f"│  {targets}")
        if rec.action == Action.WAIT:
            print(f"│  {GRAY}Plan shown for reference only; signals are not aligned.{RESET}")

        if commentary:
            print(f"├{'─' * (w - 2)}┤")
            self._print_wrapped(f"ANALYSIS: {commentary}", w)
        print(f"└{'─' * (w - 2)}┘")

    # ── BPJS ranking ────────────────────────────────────────────────────

    def show_ranking(self, scores: List[BPJSScore], min_score: float):
        w = self.width
        print(f"┌{'─' * (w - 2)}┐")
        print(f"│{'BPJS CANDIDATES (score ≥ ' + format(min_score, 'g') + ')':^{w - 2}}│")
        print(f"├{'─' * (w - 2)}┤")

        if not scores:
            print("│  No candidates passed the minimum score.")
            print(f"└{'─' * (w - 2)}┘")
            return

        cats = " ".join(f"{_CATEGORY_LABELS[c]:>4s}" for c in ScoreCategory)
        print(f"│ {'#':>2s} │ {'Symbol':6s} │ {'Score':>5s} │ {'Price':>10s} │ {'Gap':>6s} │ {'VolX':>5s} │ "
              f"{cats} │ {'P/E':>5s} {'P/B':>5s} {'MCap':>9s}")
        print(f"├{'─' * (w - 2)}┤")

        for rank, s in enumerate(scores, start=1):
            color = GREEN if s.total_score >= 70 else YELLOW if s.total_score >= 50 else RED
            gap = f"{s.gap_percent:+5.1f}%" if s.gap_percent is not None else "   n/a"
            vol = f"{s.volume_ratio:4.1f}x" if s.volume_ratio is not None else "  n/a"
            parts = []
            for c in ScoreCategory:
                pts = f"{s.breakdown.get(c, 0):>4d}"
                parts.append(f"{GRAY}{pts}{RESET}" if c in s.degraded else pts)
            print(
                f"│ {rank:>2d} │ {s.symbol:6s} │ {color}{s.total_score:>5d}{RESET} │ "
                f"{self._fc(s.price):>10s} │ {gap} │ {vol} │ {' '.join(parts)} │ "
                f"{self._valuation(s.fundamentals)}"
            )

        print(f"└{'─' * (w - 2)}┘")
        print(f"  {GRAY}Gray sub-scores: input unavailable, neutral score used.{RESET}")
        print()

    # ── Swing / scalping rankings ───────────────────────────────────────

    def show_swing_ranking(self, scores: List[SwingScore], min_score: float):
        w = self.width
        print(f"┌{'─' * (w - 2)}┐")
        print(f"│{'SWING SETUPS (score ≥ ' + format(min_score, 'g') + ')':^{w - 2}}│")
        print(f"├{'─' * (w - 2)}┤")

        if not scores:
            print("│  No candidates passed the minimum score.")
            print(f"└{'─' * (w - 2)}┘")
            return

        factors = " ".join(f"{_FACTOR_LABELS[f]:>4s}" for f in SwingFactor)
        print(f"│ {'#':>2s} │ {'Symbol':6s} │ {'Score':>5s} │ {'Price':>10s} │ {factors} │ Assessment")
        print(f"├{'─' * (w - 2)}┤")

        for rank, s in enumerate(scores, start=1):
            color = GREEN if s.total_score > 60 else YELLOW if s.total_score > 40 else RED
            parts = " ".join(f"{s.breakdown.get(f, 0):>4d}" for f in SwingFactor)
            print(
                f"│ {rank:>2d} │ {s.symbol:6s} │ {color}{s.total_score:>5d}{RESET} │ "
                f"{self._fc(s.price):>10s} │ {parts} │ {s.assessment} ({s.confidence})"
            )
        print(f"└{'─' * (w - 2)}┘")
        print()

    def show_scalping_ranking(self, scores: List[ScalpingScore], min_score: float):
        w = self.width
        print(f"┌{'─' * (w - 2)}┐")
        print(f"│{'SCALPING SETUPS, 5m (score ≥ ' + format(min_score, 'g') + ')':^{w - 2}}│")
        print(f"├{'─' * (w - 2)}┤")

        if not scores:
            print("│  No candidates passed the minimum score.")
            print(f"└{'─' * (w - 2)}┘")
            return

        print(f"│ {'#':>2s} │ {'Symbol':6s} │ {'Score':>5s} │ {'Signal':6s} │ {'Price':>10s} │ "
              f"{'Chg':>6s} │ {'RSI':>5s} │ {'VolX':>5s} │ {'%K/%D':>11s} │ {'ADX':>4s} │ {'ATR%':>5s}")
        print(f"├{'─' * (w - 2)}┤")

        for rank, s in enumerate(scores, start=1):
            color = _SIGNAL_COLORS[s.signal]
            rsi = f"{s.rsi:5.1f}" if s.rsi is not None else "  n/a"
            vol = f"{s.volume_ratio:4.1f}x" if s.volume_ratio is not None else "  n/a"
            stoch = (f"{s.stochastic_k:5.1f}/{s.stochastic_d:5.1f}"
                     if s.stochastic_k is not None and s.stochastic_d is not None else "        n/a")
            adx = f"{s.adx:4.0f}" if s.adx is not None else " n/a"
            atr = f"{s.volatility_pct:5.2f}" if s.volatility_pct is not None else "  n/a"
            print(
                f"│ {rank:>2d} │ {s.symbol:6s} │ {s.total_score:>5d} │ {color}{s.signal.value:6s}{RESET} │ "
                f"{self._fc(s.price):>10s} │ {s.change_percent:+5.1f}% │ {rsi} │ {vol} │ "
                f"{stoch} │ {adx} │ {atr}"
            )
            if s.reasons:
                print(f"│      {GRAY}{', '.join(s.reasons)}{RESET}")
        print(f"└{'─' * (w - 2)}┘")
        print()

    # ── Helpers ─────────────────────────────────────────────────────────

    def _print_wrapped(self, text: str, width: int):
        line = "│ "
        for word in text.split():
            if len(line) + len(word) + 1 > width - 2 and line.strip("│ "):
                print(f"{line:<{width - 1}}│")
                line = "│ "
            line += " " + word
        if line.strip("│ "):
            print(f"{line:<{width - 1}}│")

    @staticmethod
    def _valuation(fundamentals: Optional[Fundamentals]) -> str:
        f = fundamentals or Fundamentals()
        pe = f"{f.pe:5.1f}" if f.pe is not None and f.pe == f.pe else "  n/a"
        pb = f"{f.pb:5.2f}" if f.pb is not None and f.pb == f.pb else "  n/a"
        return f"{pe} {pb} {format_market_cap(f.market_cap):>9s}"

    @staticmethod
    def _confidence_bar(confidence: float) -> str:
        filled = max(0, min(10, int(confidence / 10)))
        return f"[{'█' * filled}{'░' * (10 - filled)}]"


def print_startup_banner():
    banner = """
╔═══════════════════════════════════════════════════════════════════╗
║                    IDX TRADING ASSISTANT                          ║
║                                                                   ║
║    • RSI, MACD, Bollinger, EMA, ATR, volume on every timeframe    ║
║    • Multi-timeframe confluence with ATR-based trade plans        ║
║    • BPJS (buy morning, sell afternoon) screening and ranking     ║
║    • Swing factor scoring and 5-minute scalping screens           ║
║                                                                   ║
║    Analysis only. Not financial advice.                           ║
╚═══════════════════════════════════════════════════════════════════╝
"""
    print(banner)
