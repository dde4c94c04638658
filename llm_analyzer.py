"""
LLM Commentary

Turns computed results into prose. Nothing here feeds back into the numbers:
the confluence verdict and BPJS score are final before a prompt is built.

Pieces:
    CommentaryGenerator   capability interface: generate(prompt) -> text
    OllamaCommentary      local Ollama over HTTP (/api/generate)
    RetryingCommentary    caller-side retry with exponential backoff on
                          RateLimited / ServiceUnavailable
    CommentaryAnalyst     prompt builders + quant-only fallback text, so the
                          user always gets output

Deep module, simple interface:
    CommentaryAnalyst(generator).explain_confluence(result) -> str
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import requests

from config import LLM_RETRY, OLLAMA_HOST, OLLAMA_MODEL, OLLAMA_TIMEOUT
from models import Action, BPJSScore, ConfluenceResult, Fundamentals, ScoreCategory

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════

class CommentaryError(Exception):
    """Commentary could not be produced."""


class RateLimited(CommentaryError):
    def __init__(self, message: str = "rate limited", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class ServiceUnavailable(CommentaryError):
    """Backend down, overloaded, unreachable or timed out."""


# ═══════════════════════════════════════════════════════════════════════════
# Generators
# ═══════════════════════════════════════════════════════════════════════════

class CommentaryGenerator(ABC):

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Return generated text or raise a CommentaryError subclass."""


class OllamaCommentary(CommentaryGenerator):

    def __init__(self, model: str = OLLAMA_MODEL, host: str = OLLAMA_HOST,
                 timeout: float = OLLAMA_TIMEOUT, session: Optional[requests.Session] = None):
        self.model = model
        self.base_url = host.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def check_connection(self) -> bool:
        try:
            resp = self.session.get(f"{self.base_url}/api/tags", timeout=5)
            resp.raise_for_status()
            models = [m["name"] for m in resp.json().get("models", [])]
            if not any(self.model in n for n in models):
                logger.warning(f"Model {self.model} not found. Available: {models}")
            return True
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(
                f"Ollama not available at {self.base_url}: {e}. "
                f"Running in quant-only mode."
            )
            return False

    def generate(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": 0.3,
                "top_p": 0.85,
                "num_predict": 512,
            },
        }
        try:
            resp = self.session.post(
                f"{self.base_url}/api/generate",
                json=payload, timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ServiceUnavailable(f"Ollama request timed out after {self.timeout}s") from e
        except requests.exceptions.ConnectionError as e:
            raise ServiceUnavailable(f"Ollama unreachable at {self.base_url}") from e
        except requests.exceptions.RequestException as e:
            raise CommentaryError(f"Ollama request failed: {e}") from e

        if resp.status_code == 429:
            raise RateLimited("Ollama rate limited", _retry_after(resp))
        if resp.status_code >= 500:
            raise ServiceUnavailable(f"Ollama returned HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise CommentaryError(f"Ollama returned HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            text = resp.json().get("response", "")
        except ValueError as e:
            raise CommentaryError("Ollama returned a non-JSON body") from e
        if not text.strip():
            raise CommentaryError("Ollama returned an empty response")
        return text.strip()


def _retry_after(resp) -> Optional[float]:
    value = resp.headers.get("Retry-After")
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class RetryingCommentary(CommentaryGenerator):
    """Retries transient failures; anything else propagates immediately."""

    def __init__(self, inner: CommentaryGenerator,
                 attempts: int = LLM_RETRY["attempts"],
                 backoff: float = LLM_RETRY["backoff"],
                 sleep: Callable[[float], None] = time.sleep):
        self.inner = inner
        self.attempts = max(1, attempts)
        self.backoff = backoff
        self._sleep = sleep

    def generate(self, prompt: str) -> str:
        for attempt in range(1, self.attempts + 1):
            try:
                return self.inner.generate(prompt)
            except (RateLimited, ServiceUnavailable) as e:
                if attempt == self.attempts:
                    logger.error(f"Commentary failed after {attempt} attempts: {e}")
                    raise
                delay = self.backoff * (2 ** (attempt - 1))
                if isinstance(e, RateLimited) and e.retry_after is not None:
                    delay = max(delay, e.retry_after)
                logger.warning(f"Commentary attempt {attempt} failed ({e}); retrying in {delay:.1f}s")
                self._sleep(delay)
        raise CommentaryError("no attempts made")


# ═══════════════════════════════════════════════════════════════════════════
# Prompts + fallback
# ═══════════════════════════════════════════════════════════════════════════

class CommentaryAnalyst:
    """
    Builds prompts from results and asks the generator for commentary.
    When commentary fails the caller still gets a quant-only summary.
    """

    def __init__(self, generator: Optional[CommentaryGenerator] = None):
        self.generator = generator

    # ── Public Interface ────────────────────────────────────────────────

    def explain_confluence(self, result: ConfluenceResult) -> str:
        return self._ask(self.build_confluence_prompt(result), self.quant_confluence_summary(result))

    def explain_bpjs(self, score: BPJSScore) -> str:
        return self._ask(self.build_bpjs_prompt(score), self.quant_bpjs_summary(score))

    # ── Prompt Construction ─────────────────────────────────────────────

    @staticmethod
    def build_confluence_prompt(r: ConfluenceResult) -> str:
        rec = r.recommendation
        tf_lines = []
        for tf in r.timeframes:
            line = (f"- {tf.interval}: {tf.trend.value} (strength {tf.strength:.0f}/100, "
                    f"support {tf.key_levels.support:.2f}, resistance {tf.key_levels.resistance:.2f})")
            if tf.indicators:
                ind = tf.indicators
                rsi = f"{ind.rsi:.1f}" if ind.rsi is not None else "n/a"
                line += (f" RSI {rsi}, MACD {ind.macd_crossover.value}, "
                         f"EMA {ind.ema_alignment.value}, volume {ind.volume_signal.value}")
            tf_lines.append(line)
        tp = ", ".join(f"{p:.2f}" for p in rec.take_profit)

        return f"""You are an Indonesian equity analyst (IDX). Explain the multi-timeframe
analysis below for {r.symbol or 'the stock'} in {r.mode} mode.

The quantitative verdict is FINAL. Do not change the action, levels or confidence;
explain them. Be concise: 4-6 sentences, plain language, mention the main risk.

═══ TIMEFRAMES (shortest first) ═══
{chr(10).join(tf_lines) or '- none'}

═══ CONFLUENCE ═══
Direction: {r.confluence.direction.value}
Strength: {r.confluence.strength:.0f}%
Agreement: {r.confluence.agreement}

═══ PLAN ═══
Action: {rec.action.value} (confidence {rec.confidence:.0f}%)
Entry zone: {rec.entry_zone.low:.2f} - {rec.entry_zone.high:.2f}
Stop loss: {rec.stop_loss:.2f}
Take profit: {tp}
"""

    @staticmethod
    def build_bpjs_prompt(s: BPJSScore) -> str:
        lines = [f"- {cat.value}: {pts}" for cat, pts in s.breakdown.items()]
        gap = f"{s.gap_percent:+.2f}%" if s.gap_percent is not None else "n/a"
        vol = f"{s.volume_ratio:.2f}x" if s.volume_ratio is not None else "n/a"
        degraded = ", ".join(c.value for c in s.degraded) or "none"
        valuation = (s.fundamentals or Fundamentals()).summary()
        return f"""You are an Indonesian intraday trader using the BPJS strategy
(Beli Pagi Jual Sore: buy in the morning, sell in the afternoon).

Assess {s.symbol} ({s.name or 'n/a'}, sector {s.sector or 'n/a'}) from its screening score.
The score is FINAL; explain what drives it and whether the setup suits a same-day trade.
Answer in 3-5 sentences.

Total score: {s.total_score}/100
Price: {s.price:.2f}  Gap: {gap}  Volume ratio: {vol}
Fundamentals: {valuation}
Breakdown:
{chr(10).join(lines)}
Categories without data (scored neutral): {degraded}
"""

    # ── Quant-only fallback ─────────────────────────────────────────────

    @staticmethod
    def quant_confluence_summary(r: ConfluenceResult) -> str:
        rec = r.recommendation
        parts = [
            f"{r.confluence.direction.value} confluence at {r.confluence.strength:.0f}%",
            r.confluence.agreement,
        ]
        if rec.action == Action.WAIT:
            parts.append("no trade: signals not aligned strongly enough")
        else:
            parts.append(
                f"{rec.action.value} {rec.entry_zone.low:.2f}-{rec.entry_zone.high:.2f}, "
                f"stop {rec.stop_loss:.2f}, first target {rec.take_profit[0]:.2f}"
            )
        return ". ".join(parts) + "."

    @staticmethod
    def quant_bpjs_summary(s: BPJSScore) -> str:
        best = sorted(s.breakdown.items(), key=lambda kv: kv[1], reverse=True)[:3]
        strengths = ", ".join(f"{cat.value} {pts}" for cat, pts in best)
        text = f"{s.symbol} scores {s.total_score}/100 (top: {strengths})"
        if s.degraded:
            text += f"; neutral for missing {', '.join(c.value for c in s.degraded)}"
        if s.breakdown.get(ScoreCategory.GAP) == 0:
            text += "; gapped down, not a BPJS setup"
        return text + "."

    # ── Internals ───────────────────────────────────────────────────────

    def _ask(self, prompt: str, fallback: str) -> str:
        if self.generator is None:
            return f"{fallback} [quant-only]"
        try:
            return self.generator.generate(prompt)
        except CommentaryError as e:
            logger.warning(f"Commentary unavailable, using quant-only summary: {e}")
            return f"{fallback} [quant-only: {str(e)[:80]}]"
