"""
IDX Trading Assistant: orchestration layer + CLI

Wires the collaborators around the pure analysis engine:

    analyze(symbol, mode)
        fetch each mode interval → TrendClassifier per timeframe
        → ConfluenceAggregator with the live quote price
        cached under (symbol, mode)

    analyze keeps each surviving interval's positional weight, so a skipped
    timeframe drops its own weight rather than shifting the others.

    scan(symbols, strategy)
        bpjs:     quote / daily bars / headlines / fundamentals per symbol
                  → sector momentum from peer gaps → ScoringEngine
        swing:    daily bars → SwingScorer
        scalping: 5m bars → ScalpingScorer
        ranked best first, cached under (universe key, strategy)

Usage:
    python -m assistant analyze BBCA --mode swing
    python -m assistant scan --min-score 50 --max-results 10
    python -m assistant scan --strategy scalping
"""

import argparse
import hashlib
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Union

from cache import Cache, NullCache, TTLCache
from config import (
    LOG_FORMAT, LOG_LEVEL, LOGS_DIR, MIN_TIMEFRAME_BARS, MODES, SCALPING,
    SCREENER, SWING, UNIVERSE,
)
from confluence import ConfluenceAggregator
from data_collector import DataCollector
from display import Display, print_startup_banner
from errors import EngineError, InvalidParameterError
from indicators import compute_snapshot
from llm_analyzer import CommentaryAnalyst, OllamaCommentary, RetryingCommentary
from models import (
    BPJSScore, ConfluenceResult, ScalpingScore, ScreeningCandidate, Strategy,
    SwingScore, TimeframeAnalysis,
)
from scalping import ScalpingScorer
from scoring import ScoringEngine
from sentiment import score_headlines
from swing import SwingScorer
from trend import TrendClassifier

logger = logging.getLogger(__name__)

StrategyScore = Union[BPJSScore, SwingScore, ScalpingScore]

DEFAULT_MIN_SCORES = {
    Strategy.BPJS: SCREENER["min_score"],
    Strategy.SWING: SWING["min_score"],
    Strategy.SCALPING: SCALPING["min_score"],
}


class TradingAssistant:
    """
    Main orchestrator.

    Every collaborator is injected so tests can swap in fakes; defaults
    are the Yahoo provider and an in-memory TTL cache.
    """

    def __init__(self, provider=None, cache: Optional[Cache] = None,
                 classifier: Optional[TrendClassifier] = None,
                 aggregator: Optional[ConfluenceAggregator] = None,
                 scorer: Optional[ScoringEngine] = None,
                 swing_scorer: Optional[SwingScorer] = None,
                 scalping_scorer: Optional[ScalpingScorer] = None,
                 workers: int = SCREENER["workers"]):
        self.provider = provider or DataCollector()
        self.cache = cache if cache is not None else TTLCache()
        self.classifier = classifier or TrendClassifier()
        self.aggregator = aggregator or ConfluenceAggregator()
        self.scorer = scorer or ScoringEngine()
        self.swing_scorer = swing_scorer or SwingScorer()
        self.scalping_scorer = scalping_scorer or ScalpingScorer()
        self.workers = max(1, workers)

    # ── Multi-timeframe ─────────────────────────────────────────────────

    def analyze(self, symbol: str, mode: str = "swing") -> Optional[ConfluenceResult]:
        if mode not in MODES:
            raise InvalidParameterError(f"Unknown mode '{mode}' (expected one of {sorted(MODES)})")
        symbol = symbol.strip().upper()
        key = (symbol, mode)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"{symbol} [{mode}] served from cache")
            return cached

        intervals = MODES[mode]["intervals"]
        logger.info(f"Analyzing {symbol} [{mode}] on {', '.join(intervals)}")

        with ThreadPoolExecutor(max_workers=min(self.workers, len(intervals))) as pool:
            analyses = list(pool.map(lambda iv: self._analyze_timeframe(symbol, iv), intervals))
        kept = [(a, w) for a, w in zip(analyses, MODES[mode]["weights"]) if a is not None]
        timeframes = [a for a, _ in kept]

        if not timeframes:
            logger.error(f"No usable timeframe data for {symbol}")
            return None

        quote = self.provider.fetch_quote(symbol)
        price = quote.price if quote and quote.price else timeframes[0].last_close

        result = self.aggregator.aggregate(timeframes, price, mode=mode,
                                           weights=[w for _, w in kept], symbol=symbol)
        self.cache.set(key, result)
        return result

    def _analyze_timeframe(self, symbol: str, interval: str) -> Optional[TimeframeAnalysis]:
        bars = self.provider.fetch_bars(symbol, interval)
        if bars is None or len(bars) < MIN_TIMEFRAME_BARS:
            n = 0 if bars is None else len(bars)
            logger.warning(f"{symbol} {interval}: {n} bars (< {MIN_TIMEFRAME_BARS}), skipping")
            return None
        try:
            return self.classifier.classify(interval, bars)
        except EngineError as e:
            logger.warning(f"{symbol} {interval}: analysis failed: {e}")
            return None

    # ── Screening ───────────────────────────────────────────────────────

    def scan(self, symbols: Optional[Iterable[str]] = None,
             min_score: Optional[float] = None,
             max_results: Optional[int] = SCREENER["max_results"],
             strategy: Union[Strategy, str] = Strategy.BPJS) -> List[StrategyScore]:
        try:
            strategy = Strategy(strategy)
        except ValueError as e:
            raise InvalidParameterError(
                f"Unknown strategy '{strategy}' (expected one of {[s.value for s in Strategy]})"
            ) from e
        if min_score is None:
            min_score = DEFAULT_MIN_SCORES[strategy]
        symbols = sorted({s.strip().upper() for s in (symbols or UNIVERSE)})
        key = (self._universe_key(symbols), strategy.value)

        scores = self.cache.get(key)
        if scores is None:
            if strategy == Strategy.BPJS:
                scores = self._score_universe(symbols)
            elif strategy == Strategy.SWING:
                scores = self._score_bars(symbols, self.swing_scorer, "1d", SWING["history_days"])
            else:
                scores = self._score_bars(symbols, self.scalping_scorer, SCALPING["interval"])
            self.cache.set(key, scores)
        else:
            logger.info(f"{strategy.value} scan of {len(symbols)} symbols served from cache")

        if strategy == Strategy.BPJS:
            return self.scorer.rank(scores, min_score, max_results)
        if strategy == Strategy.SWING:
            return self.swing_scorer.rank(scores, min_score, max_results)
        return self.scalping_scorer.rank(scores, min_score, max_results)

    def _score_bars(self, symbols: List[str], scorer, interval: str,
                    days: Optional[int] = None) -> List[StrategyScore]:
        """Fetch `interval` bars per symbol and score them; symbols without enough bars drop out."""
        def score_one(symbol):
            bars = self.provider.fetch_bars(symbol, interval, days)
            if bars is None:
                return None
            name, sector = UNIVERSE.get(symbol, (symbol, "Others"))
            try:
                return scorer.score(symbol, bars, name=name, sector=sector)
            except EngineError as e:
                logger.warning(f"{symbol} {interval}: not scored: {e}")
                return None

        logger.info(f"{type(scorer).__name__}: {len(symbols)} symbols on {interval}, {self.workers} workers")
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            scores = [s for s in pool.map(score_one, symbols) if s is not None]
        logger.info(f"{len(scores)}/{len(symbols)} symbols scored")
        return scores

    def _score_universe(self, symbols: List[str]) -> List[BPJSScore]:
        logger.info(f"BPJS scan: {len(symbols)} symbols, {self.workers} workers")
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            built = list(pool.map(self._build_candidate, symbols))
        candidates = self._with_sector_momentum([c for c in built if c is not None])
        logger.info(f"{len(candidates)}/{len(symbols)} symbols had quote data")
        return self.scorer.screen(candidates, min_score=float("-inf"),
                                  max_results=None, workers=self.workers)

    def _build_candidate(self, symbol: str) -> Optional[ScreeningCandidate]:
        quote = self.provider.fetch_quote(symbol)
        if quote is None:
            return None

        snapshot = None
        bars = self.provider.fetch_bars(symbol, "1d", SCREENER["history_days"])
        if bars is not None:
            try:
                snapshot = compute_snapshot(bars)
            except EngineError as e:
                logger.warning(f"{symbol}: indicators unavailable: {e}")

        headlines = self.provider.fetch_headlines(symbol, SCREENER["headline_count"])
        name, sector = UNIVERSE.get(symbol, (symbol, "Others"))
        return ScreeningCandidate(
            symbol=symbol,
            quote=quote,
            snapshot=snapshot,
            fundamentals=self.provider.fetch_fundamentals(symbol),
            sentiment=score_headlines(headlines),
            name=name,
            sector=sector,
        )

    @staticmethod
    def _with_sector_momentum(candidates: List[ScreeningCandidate]) -> List[ScreeningCandidate]:
        """Sector change = mean day change of the sector's scanned members."""
        changes: Dict[str, List[float]] = {}
        for c in candidates:
            prev = c.quote.previous_close
            if prev:
                changes.setdefault(c.sector, []).append((c.quote.price - prev) / prev * 100)

        out = []
        for c in candidates:
            peers = changes.get(c.sector)
            sector_change = sum(peers) / len(peers) if peers else None
            out.append(replace(c, sector_change_pct=sector_change))
        return out

    @staticmethod
    def _universe_key(symbols: List[str]) -> str:
        return hashlib.sha1(",".join(symbols).encode()).hexdigest()[:12]


# ═══════════════════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = LOG_LEVEL):
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(LOGS_DIR / f"assistant_{datetime.now().strftime('%Y%m%d')}.log"),
            logging.StreamHandler(),
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="assistant", description="IDX trading assistant")
    parser.add_argument("--no-llm", action="store_true", help="skip commentary (quant-only)")
    parser.add_argument("--json", action="store_true", help="print raw JSON instead of tables")
    parser.add_argument("--log-level", default=LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    p_analyze = sub.add_parser("analyze", help="multi-timeframe confluence for one symbol")
    p_analyze.add_argument("symbol")
    p_analyze.add_argument("--mode", choices=sorted(MODES), default="swing")

    p_scan = sub.add_parser("scan", help="rank the universe with a screening strategy")
    p_scan.add_argument("symbols", nargs="*", help="defaults to the configured universe")
    p_scan.add_argument("--strategy", choices=[s.value for s in Strategy], default=Strategy.BPJS.value)
    p_scan.add_argument("--min-score", type=float, default=None,
                        help="defaults per strategy (bpjs 50, swing 50, scalping 0)")
    p_scan.add_argument("--max-results", type=int, default=SCREENER["max_results"])
    return parser


def _commentary(no_llm: bool) -> CommentaryAnalyst:
    if no_llm:
        return CommentaryAnalyst(None)
    ollama = OllamaCommentary()
    if not ollama.check_connection():
        return CommentaryAnalyst(None)
    return CommentaryAnalyst(RetryingCommentary(ollama))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    assistant = TradingAssistant(cache=NullCache())
    analyst = _commentary(args.no_llm)
    display = Display()

    try:
        if args.command == "analyze":
            result = assistant.analyze(args.symbol, args.mode)
            if result is None:
                print(f"No data available for {args.symbol}")
                return 1
            if args.json:
                print(json.dumps(result.to_dict(), indent=2))
            else:
                print_startup_banner()
                display.show_confluence(result, analyst.explain_confluence(result))
            return 0

        strategy = Strategy(args.strategy)
        min_score = DEFAULT_MIN_SCORES[strategy] if args.min_score is None else args.min_score
        scores = assistant.scan(args.symbols or None, min_score, args.max_results, strategy)
        if args.json:
            print(json.dumps([s.to_dict() for s in scores], indent=2))
            return 0

        print_startup_banner()
        display.show_header(f"{strategy.value.upper()} SCREENER")
        if strategy == Strategy.BPJS:
            display.show_ranking(scores, min_score)
            if scores:
                print(f"  Top pick: {analyst.explain_bpjs(scores[0])}")
        elif strategy == Strategy.SWING:
            display.show_swing_ranking(scores, min_score)
        else:
            display.show_scalping_ranking(scores, min_score)
        return 0
    except EngineError as e:
        logger.error(f"Analysis failed: {e}")
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
