"""
Market Data Collector (Yahoo Finance)

Price bars, quotes, fundamentals and headlines for IDX symbols. This is the
only module that talks to the network for market data; everything returned
is plain pandas / model objects the analysis engine consumes.

Notes:
  • IDX symbols get the ".JK" suffix on Yahoo.
  • Yahoo has no 4h interval: 4h bars are built from consecutive groups of
    four 1h bars (incomplete trailing group dropped).
  • Failures are logged and reported as None / empty, never raised, so the
    orchestrator can skip a symbol or timeframe and carry on.

Deep module, simple interface:
    fetch_bars(symbol, interval) -> DataFrame[Open, High, Low, Close, Volume]
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

import numpy as np
import pandas as pd
import yfinance as yf

from config import HISTORY_DAYS, MARKET_SUFFIX, SCREENER
from models import Fundamentals, Headline, Quote

logger = logging.getLogger(__name__)

OHLCV = ["Open", "High", "Low", "Close", "Volume"]

# Our interval name -> (Yahoo interval, bars merged per output bar)
YAHOO_INTERVALS = {
    "1m": ("1m", 1),
    "5m": ("5m", 1),
    "15m": ("15m", 1),
    "1h": ("60m", 1),
    "4h": ("60m", 4),
    "1d": ("1d", 1),
    "1w": ("1wk", 1),
}


def ticker_symbol(symbol: str) -> str:
    symbol = symbol.strip().upper()
    return symbol if symbol.endswith(MARKET_SUFFIX) else f"{symbol}{MARKET_SUFFIX}"


def aggregate_bars(bars: pd.DataFrame, group: int) -> pd.DataFrame:
    """Merge each run of `group` consecutive bars into one; drop the partial tail."""
    if group <= 1 or bars.empty:
        return bars
    complete = len(bars) - len(bars) % group
    bars = bars.iloc[:complete]
    if bars.empty:
        return bars
    keys = np.arange(len(bars)) // group
    merged = bars.groupby(keys).agg({
        "Open": "first",
        "High": "max",
        "Low": "min",
        "Close": "last",
        "Volume": "sum",
    })
    merged.index = bars.index[::group]
    return merged


class DataCollector:
    """
    Simple interface:
        fetch_bars(symbol, interval, days=None) -> Optional[DataFrame]
        fetch_quote(symbol)                     -> Optional[Quote]
        fetch_fundamentals(symbol)              -> Optional[Fundamentals]
        fetch_headlines(symbol, count)          -> List[Headline]
    """

    # ── Public Interface ────────────────────────────────────────────────

    def fetch_bars(self, symbol: str, interval: str,
                   days: Optional[int] = None) -> Optional[pd.DataFrame]:
        if interval not in YAHOO_INTERVALS:
            logger.error(f"Unsupported interval '{interval}' for {symbol}")
            return None
        yahoo_interval, group = YAHOO_INTERVALS[interval]
        days = days or HISTORY_DAYS.get(interval, 180)

        try:
            start = datetime.now() - timedelta(days=days)
            hist = yf.Ticker(ticker_symbol(symbol)).history(start=start, interval=yahoo_interval)
        except Exception as e:
            logger.error(f"Failed to fetch {interval} bars for {symbol}: {e}", exc_info=True)
            return None

        if hist is None or hist.empty:
            logger.warning(f"No {interval} data for {symbol}")
            return None

        bars = hist[[c for c in OHLCV if c in hist.columns]].dropna(subset=["Close"])
        bars = aggregate_bars(bars, group)
        logger.debug(f"{symbol} {interval}: {len(bars)} bars")
        return bars if not bars.empty else None

    def fetch_quote(self, symbol: str) -> Optional[Quote]:
        """Latest price with previous close and today's open / volume."""
        try:
            daily = yf.Ticker(ticker_symbol(symbol)).history(period="5d", interval="1d")
        except Exception as e:
            logger.error(f"Failed to fetch quote for {symbol}: {e}", exc_info=True)
            return None

        if daily is None or daily.empty:
            logger.warning(f"No quote data for {symbol}")
            return None

        daily = daily.dropna(subset=["Close"])
        if daily.empty:
            return None
        last = daily.iloc[-1]
        prev_close = float(daily["Close"].iloc[-2]) if len(daily) > 1 else None
        return Quote(
            symbol=symbol,
            price=float(last["Close"]),
            previous_close=prev_close,
            open=float(last["Open"]) if "Open" in daily else None,
            volume=float(last["Volume"]) if "Volume" in daily else None,
        )

    def fetch_fundamentals(self, symbol: str) -> Optional[Fundamentals]:
        try:
            info = yf.Ticker(ticker_symbol(symbol)).info or {}
        except Exception as e:
            logger.warning(f"Fundamentals unavailable for {symbol}: {e}")
            return None
        return Fundamentals(
            pe=info.get("trailingPE"),
            pb=info.get("priceToBook"),
            market_cap=info.get("marketCap"),
        )

    def fetch_headlines(self, symbol: str,
                        count: int = SCREENER["headline_count"]) -> List[Headline]:
        try:
            items = yf.Ticker(ticker_symbol(symbol)).news or []
        except Exception as e:
            logger.warning(f"News unavailable for {symbol}: {e}")
            return []

        headlines = []
        for item in items[:count]:
            headline = self._parse_news_item(item)
            if headline:
                headlines.append(headline)
        return headlines

    # ── Helpers ─────────────────────────────────────────────────────────

    @staticmethod
    def _parse_news_item(item: dict) -> Optional[Headline]:
        # Newer yfinance nests the article under "content"
        content = item.get("content") if isinstance(item.get("content"), dict) else item
        title = content.get("title")
        if not title:
            return None
        provider = content.get("provider")
        publisher = provider.get("displayName", "") if isinstance(provider, dict) else content.get("publisher", "")
        url = content.get("canonicalUrl")
        link = url.get("url", "") if isinstance(url, dict) else content.get("link", "")
        return Headline(title=title, publisher=publisher or "", link=link or "")
