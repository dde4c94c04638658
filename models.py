"""Core data models: single source of truth for every result type.

All entities are values produced on demand from an input price series.
Result dataclasses are frozen; sequences are stored as tuples so a result
can be compared, hashed into a cache, or shared across threads safely.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class Interpretation(Enum):
    OVERSOLD = "OVERSOLD"
    OVERBOUGHT = "OVERBOUGHT"
    NEUTRAL = "NEUTRAL"
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"


class Crossover(Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NONE = "NONE"


class BandPosition(Enum):
    ABOVE_UPPER = "ABOVE_UPPER"
    BELOW_LOWER = "BELOW_LOWER"
    WITHIN = "WITHIN"


class VolumeTrend(Enum):
    INCREASING = "INCREASING"
    DECREASING = "DECREASING"
    STABLE = "STABLE"


class VolumeSignal(Enum):
    HIGH = "HIGH"
    LOW = "LOW"
    NORMAL = "NORMAL"


class Trend(Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class Action(Enum):
    BUY = "BUY"
    SELL = "SELL"
    WAIT = "WAIT"


class BandPolicy(Enum):
    """How a close beyond a Bollinger band feeds the trend bias."""
    VOLUME_CONFIRMED = "volume_confirmed"
    MEAN_REVERSION = "mean_reversion"
    BREAKOUT = "breakout"


class ScoreCategory(Enum):
    GAP = "gap"
    VOLUME = "volume"
    RSI = "rsi"
    MACD = "macd"
    BOLLINGER = "bollinger"
    EMA_TREND = "ema_trend"
    SENTIMENT = "sentiment"
    SECTOR = "sector"


class SwingFactor(Enum):
    TREND = "trend"
    MOMENTUM = "momentum"
    MACD = "macd"
    VOLUME = "volume"
    SUPPORT_RESISTANCE = "support_resistance"
    PATTERNS = "patterns"
    MULTI_TIMEFRAME = "multi_timeframe"


class ScalpSignal(Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class Strategy(Enum):
    """Screening profiles available to `scan`."""
    BPJS = "bpjs"
    SWING = "swing"
    SCALPING = "scalping"


# ═══════════════════════════════════════════════════════════════════════════
# Indicator results
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class IndicatorResult:
    """Scalar reading plus the full aligned sequence it came from."""
    current: float
    values: Tuple[float, ...]
    interpretation: Interpretation = Interpretation.NEUTRAL


@dataclass(frozen=True)
class MACDResult:
    macd: float
    signal: float
    histogram: float
    crossover: Crossover
    macd_line: Tuple[float, ...] = ()
    signal_line: Tuple[float, ...] = ()
    histogram_values: Tuple[float, ...] = ()


@dataclass(frozen=True)
class BollingerBandsResult:
    upper: float
    middle: float
    lower: float
    bandwidth: float
    position: BandPosition
    percent_b: float                 # 0 = lower band, 1 = upper band
    upper_band: Tuple[float, ...] = ()
    middle_band: Tuple[float, ...] = ()
    lower_band: Tuple[float, ...] = ()


@dataclass(frozen=True)
class ATRResult:
    current: float
    values: Tuple[float, ...]


@dataclass(frozen=True)
class VolumeAnalysisResult:
    current: float
    average: float
    ratio: float
    is_spike: bool
    trend: VolumeTrend
    signal: VolumeSignal
    ratios: Tuple[float, ...] = ()


@dataclass(frozen=True)
class StochasticResult:
    k: float
    d: float
    signal: Crossover                # %K crossing %D on the last bar
    k_values: Tuple[float, ...] = ()
    d_values: Tuple[float, ...] = ()


@dataclass(frozen=True)
class ADXResult:
    adx: float
    plus_di: float
    minus_di: float
    values: Tuple[float, ...] = ()


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Every indicator computed over one price series; None = unavailable."""
    last_close: float
    rsi: Optional[IndicatorResult] = None
    macd: Optional[MACDResult] = None
    bollinger: Optional[BollingerBandsResult] = None
    sma20: Optional[IndicatorResult] = None
    ema20: Optional[IndicatorResult] = None
    ema50: Optional[IndicatorResult] = None
    atr: Optional[ATRResult] = None
    volume: Optional[VolumeAnalysisResult] = None
    unavailable: Dict[str, str] = field(default_factory=dict)  # name -> reason


# ═══════════════════════════════════════════════════════════════════════════
# Multi-timeframe results
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class KeyLevels:
    support: float
    resistance: float


@dataclass(frozen=True)
class TimeframeIndicators:
    rsi: Optional[float]
    macd_crossover: Crossover
    ema_alignment: Trend
    volume_signal: VolumeSignal


@dataclass(frozen=True)
class TimeframeAnalysis:
    interval: str
    trend: Trend
    strength: float                  # 0..100, 50 = neutral baseline
    key_levels: KeyLevels
    indicators: Optional[TimeframeIndicators] = None
    bias: float = 0.0                # net weighted bias before clamping
    atr: Optional[float] = None
    last_close: Optional[float] = None
    signals_used: int = 0            # indicators that contributed to the bias


@dataclass(frozen=True)
class Confluence:
    direction: Trend
    strength: float
    agreement: str


@dataclass(frozen=True)
class EntryZone:
    low: float
    high: float


@dataclass(frozen=True)
class TradeRecommendation:
    action: Action
    confidence: float
    entry_zone: EntryZone
    stop_loss: float
    take_profit: Tuple[float, ...]
    reference_price: float = 0.0

    @property
    def risk_per_share(self) -> float:
        return abs(self.reference_price - self.stop_loss)

    @property
    def rr_ratios(self) -> List[float]:
        """Reward multiples of each take-profit level."""
        risk = self.risk_per_share
        if not risk:
            return []
        return [round(abs(tp - self.reference_price) / risk, 2) for tp in self.take_profit]


@dataclass(frozen=True)
class ConfluenceResult:
    timeframes: Tuple[TimeframeAnalysis, ...]
    confluence: Confluence
    recommendation: TradeRecommendation
    symbol: str = ""
    mode: str = ""

    def to_dict(self) -> Dict:
        rec = self.recommendation
        return {
            "symbol": self.symbol,
            "mode": self.mode,
            "timeframes": [
                {
                    "interval": tf.interval,
                    "trend": tf.trend.value,
                    "strength": tf.strength,
                    "key_levels": {
                        "support": tf.key_levels.support,
                        "resistance": tf.key_levels.resistance,
                    },
                }
                for tf in self.timeframes
            ],
            "confluence": {
                "direction": self.confluence.direction.value,
                "strength": self.confluence.strength,
                "agreement": self.confluence.agreement,
            },
            "recommendation": {
                "action": rec.action.value,
                "confidence": rec.confidence,
                "entry_zone": {"min": rec.entry_zone.low, "max": rec.entry_zone.high},
                "stop_loss": rec.stop_loss,
                "take_profit": list(rec.take_profit),
            },
        }


# ═══════════════════════════════════════════════════════════════════════════
# Screening inputs / results
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Quote:
    symbol: str
    price: float
    previous_close: Optional[float] = None
    open: Optional[float] = None
    volume: Optional[float] = None


@dataclass(frozen=True)
class Fundamentals:
    pe: Optional[float] = None
    pb: Optional[float] = None
    market_cap: Optional[float] = None

    def to_dict(self) -> Dict:
        return {"pe": self.pe, "pb": self.pb, "marketCap": self.market_cap}

    def summary(self) -> str:
        """One-line valuation text; absent figures read n/a."""
        pe = f"{self.pe:.1f}" if _present(self.pe) else "n/a"
        pb = f"{self.pb:.2f}" if _present(self.pb) else "n/a"
        return f"P/E {pe}, P/B {pb}, MCap {format_market_cap(self.market_cap)}"


def _present(value: Optional[float]) -> bool:
    return value is not None and value == value   # NaN != NaN


def format_market_cap(value: Optional[float]) -> str:
    """Rupiah market cap with T (trillion) / B (billion) / M (million) suffix."""
    if not _present(value):
        return "n/a"
    for size, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M")):
        if abs(value) >= size:
            return f"Rp{value / size:,.1f}{suffix}"
    return f"Rp{value:,.0f}"


@dataclass(frozen=True)
class Headline:
    title: str
    publisher: str = ""
    link: str = ""


@dataclass(frozen=True)
class ScreeningCandidate:
    """Everything the scoring engine needs for one symbol."""
    symbol: str
    quote: Quote
    snapshot: Optional[IndicatorSnapshot] = None
    fundamentals: Optional[Fundamentals] = None
    sentiment: Optional[float] = None           # 0..5
    sector_change_pct: Optional[float] = None
    name: str = ""
    sector: str = ""


@dataclass(frozen=True)
class BPJSScore:
    symbol: str
    total_score: int
    breakdown: Dict[ScoreCategory, int]
    degraded: Tuple[ScoreCategory, ...] = ()
    name: str = ""
    sector: str = ""
    price: float = 0.0
    gap_percent: Optional[float] = None
    volume_ratio: Optional[float] = None
    fundamentals: Optional[Fundamentals] = None

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "sector": self.sector,
            "totalScore": self.total_score,
            "breakdown": {cat.value: pts for cat, pts in self.breakdown.items()},
            "degraded": [cat.value for cat in self.degraded],
            "price": self.price,
            "gapPercent": self.gap_percent,
            "volumeRatio": self.volume_ratio,
            "fundamentals": (self.fundamentals or Fundamentals()).to_dict(),
        }


@dataclass(frozen=True)
class SwingScore:
    """Multi-factor technical score for a multi-day hold (0-100 normalized)."""
    symbol: str
    total_score: int                     # normalized, used for ranking
    base_score: int                      # raw points before normalization
    breakdown: Dict[SwingFactor, int]
    assessment: str
    confidence: str                      # HIGH / MEDIUM / LOW
    name: str = ""
    sector: str = ""
    price: float = 0.0
    volume_ratio: Optional[float] = None

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "sector": self.sector,
            "totalScore": self.total_score,
            "baseScore": self.base_score,
            "breakdown": {f.value: pts for f, pts in self.breakdown.items()},
            "assessment": self.assessment,
            "confidence": self.confidence,
            "price": self.price,
            "volumeRatio": self.volume_ratio,
        }


@dataclass(frozen=True)
class ScalpingScore:
    """Intraday (5m) setup score; unbounded, negative means avoid."""
    symbol: str
    total_score: int
    signal: ScalpSignal
    reasons: Tuple[str, ...] = ()
    name: str = ""
    sector: str = ""
    price: float = 0.0
    change_percent: float = 0.0
    rsi: Optional[float] = None
    volume_ratio: Optional[float] = None
    stochastic_k: Optional[float] = None
    stochastic_d: Optional[float] = None
    volatility_pct: Optional[float] = None
    adx: Optional[float] = None

    def to_dict(self) -> Dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "sector": self.sector,
            "totalScore": self.total_score,
            "signal": self.signal.value,
            "reasons": list(self.reasons),
            "price": self.price,
            "changePercent": self.change_percent,
            "metrics": {
                "rsi": self.rsi,
                "volumeRatio": self.volume_ratio,
                "stochasticK": self.stochastic_k,
                "stochasticD": self.stochastic_d,
                "volatility": self.volatility_pct,
                "adx": self.adx,
            },
        }
