"""
Configuration for the IDX Trading Assistant
Centralized configuration, easy to modify.

Key settings:
- Indicator periods and interpretation thresholds
- Trend classification weights and the Bollinger band policy
- Multi-timeframe mode profiles (scalping / swing) and positional weights
- BPJS screening category weights (must sum to 100)
- Swing factor caps and scalping screen thresholds
"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── Base directories ────────────────────────────────────────────────────────
BASE_DIR = Path(__file__).parent
LOGS_DIR = BASE_DIR / "logs"

# ── Market ──────────────────────────────────────────────────────────────────
# Indonesia Stock Exchange symbols are suffixed ".JK" on Yahoo Finance
MARKET_SUFFIX = ".JK"

# Symbol -> (company name, sector)
UNIVERSE = {
    "BBRI": ("Bank Rakyat Indonesia", "Banking"),
    "BBCA": ("Bank Central Asia", "Banking"),
    "BMRI": ("Bank Mandiri", "Banking"),
    "BBNI": ("Bank Negara Indonesia", "Banking"),
    "BRIS": ("Bank Syariah Indonesia", "Banking"),
    "TLKM": ("Telkom Indonesia", "Telco"),
    "EXCL": ("XL Axiata", "Telco"),
    "ISAT": ("Indosat Ooredoo", "Telco"),
    "UNVR": ("Unilever Indonesia", "Consumer"),
    "ICBP": ("Indofood CBP", "Consumer"),
    "INDF": ("Indofood Sukses Makmur", "Consumer"),
    "KLBF": ("Kalbe Farma", "Consumer"),
    "GOTO": ("GoTo Gojek Tokopedia", "Tech"),
    "BUKA": ("Bukalapak", "Tech"),
    "ANTM": ("Aneka Tambang", "Mining"),
    "ADRO": ("Adaro Energy", "Mining"),
    "PTBA": ("Bukit Asam", "Mining"),
    "MDKA": ("Merdeka Copper Gold", "Mining"),
    "ASII": ("Astra International", "Automotive"),
    "BSDE": ("Bumi Serpong Damai", "Property"),
    "CTRA": ("Ciputra Development", "Property"),
    "PGAS": ("Perusahaan Gas Negara", "Energy"),
    "MEDC": ("Medco Energi International", "Energy"),
    "ACES": ("Ace Hardware Indonesia", "Retail"),
    "MAPI": ("Mitra Adiperkasa", "Retail"),
    "SMGR": ("Semen Indonesia", "Cement"),
    "CPIN": ("Charoen Pokphand Indonesia", "Agriculture"),
}

# ── Technical Indicators ────────────────────────────────────────────────────
INDICATORS = {
    # Trend
    "sma_period": 20,
    "ema_fast": 20,
    "ema_slow": 50,
    "macd": {"fast": 12, "slow": 26, "signal": 9},

    # Momentum
    "rsi_period": 14,

    # Volatility
    "bb_period": 20,
    "bb_std": 2,
    "atr_period": 14,

    # Oscillators (scalping screen)
    "stoch_k": 14,
    "stoch_d": 3,
    "adx_period": 14,

    # Volume
    "volume_period": 20,
    "volume_spike": 1.5,        # ratio above this = spike
    "volume_low": 0.5,          # ratio below this = LOW volume signal
    "volume_trend_bars": 3,     # last N ratios decide INCREASING / DECREASING
    "volume_trend_tolerance": 0.05,

    # Moving-average interpretation: % distance of price from the average
    "sma_signal_pct": 1.0,
    "ema_signal_pct": 0.5,
}

RSI_ZONES = {
    "oversold": 30,
    "overbought": 70,
}

# ── Trend Classification ────────────────────────────────────────────────────
# Strength starts at the neutral baseline; each signal adds (bullish) or
# subtracts (bearish) its weight. The net bias must clear the deadband
# to produce a directional label.
TREND = {
    "baseline": 50,
    "deadband": 10,
    "lookback": 20,              # bars for support / resistance
    "weights": {
        "rsi_zone":       15,    # oversold / overbought reversal bias
        "rsi_momentum":    5,    # RSI above / below 50 inside the neutral zone
        "macd_crossover": 15,
        "macd_histogram":  5,    # histogram sign when no fresh crossover
        "ema_order":      15,    # EMA20 vs EMA50
        "bollinger":      10,
    },
    # "volume_confirmed": beyond a band with rising volume = continuation,
    #                     otherwise mean reversion
    # "mean_reversion":   always fade the band extreme
    # "breakout":         always follow the band extreme
    "band_policy": "volume_confirmed",
}

# ── Multi-Timeframe Confluence ──────────────────────────────────────────────
# Positional: the first weight belongs to the shortest timeframe. A mode's
# weights line up with its intervals; a skipped interval takes its weight along.
TIMEFRAME_WEIGHTS = [1, 1, 2, 3]

MODES = {
    "scalping": {
        "intervals": ["1m", "5m", "15m", "1h"],
        "weights": TIMEFRAME_WEIGHTS,
        "atr_multiplier": 1.0,
        "atr_interval": "15m",
    },
    "swing": {
        "intervals": ["1h", "4h", "1d", "1w"],
        "weights": TIMEFRAME_WEIGHTS,
        "atr_multiplier": 2.0,
        "atr_interval": "1d",
    },
}

# Days of history requested per interval
HISTORY_DAYS = {
    "1m": 5,
    "5m": 5,
    "15m": 15,
    "1h": 30,
    "4h": 90,
    "1d": 180,
    "1w": 730,
}

MIN_TIMEFRAME_BARS = 26

CONFLUENCE = {
    "action_threshold": 60,      # strength needed for BUY / SELL
    "entry_buffer": 0.003,       # ±0.3% entry zone
    "risk_multiples": [1.0, 2.0, 3.0],
    "level_buffer": 0.01,        # stop 1% beyond nearest key level (no ATR)
    "fallback_stop_pct": 0.03,   # stop when neither ATR nor levels exist
}

# ── BPJS Screening ──────────────────────────────────────────────────────────
# Category caps; validated to sum to 100 by the scoring engine.
SCORE_WEIGHTS = {
    "gap":        20,
    "volume":     20,
    "rsi":        15,
    "macd":       15,
    "bollinger":  10,
    "ema_trend":  10,
    "sentiment":   5,
    "sector":      5,
}

# Sub-score used when a category's input is missing
NEUTRAL_SCORES = {
    "gap":        10,
    "volume":      5,
    "rsi":        10,
    "macd":        5,
    "bollinger":   5,
    "ema_trend":   3,
    "sentiment":   3,
    "sector":      3,
}

SCREENER = {
    "min_score": 50,
    "max_results": 10,
    "workers": 8,
    "history_days": 120,
    "headline_count": 5,
}

# ── Swing Screening ─────────────────────────────────────────────────────────
# Factor caps; the raw points of each factor are rescaled to its cap and the
# total normalized to 0-100.
SWING_WEIGHTS = {
    "trend":              35,
    "momentum":           25,
    "macd":               20,
    "volume":             15,
    "support_resistance": 10,
    "patterns":            5,
    "multi_timeframe":     5,
}

SWING = {
    "min_score": 50,
    "min_bars": 60,
    "history_days": 200,
}

# ── Scalping Screening ──────────────────────────────────────────────────────
SCALPING = {
    "interval": "5m",
    "min_bars": 50,
    "min_score": 0,
    "buy_score": 70,
    "sell_score": 30,
    "min_volatility_pct": 0.5,   # ATR % of price; below this the stock is dead
    "min_adx": 20,
}

# ── Cache ───────────────────────────────────────────────────────────────────
CACHE_TTL = int(os.getenv("CACHE_TTL", "300"))   # 5 min
CACHE_MAX_ENTRIES = 100

# ── Ollama (commentary) ─────────────────────────────────────────────────────
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "gemma3:4b")
OLLAMA_TIMEOUT = 120  # seconds

LLM_RETRY = {
    "attempts": 3,
    "backoff": 2.0,      # seconds, doubled after each failure
}

# ── Logging ─────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
