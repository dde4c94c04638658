import pytest
import requests

from confluence import ConfluenceAggregator
from llm_analyzer import (
    CommentaryAnalyst, CommentaryError, CommentaryGenerator, OllamaCommentary,
    RateLimited, RetryingCommentary, ServiceUnavailable,
)
from models import BPJSScore, Fundamentals, KeyLevels, ScoreCategory, TimeframeAnalysis, Trend


class ScriptedGenerator(CommentaryGenerator):
    """Raises or returns each scripted item in turn."""

    def __init__(self, *script):
        self.script = list(script)
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json, timeout))
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def sleeps():
    return []


def retrying(inner, sleeps, attempts=3):
    return RetryingCommentary(inner, attempts=attempts, backoff=2.0, sleep=sleeps.append)


# ── Retry wrapper ───────────────────────────────────────────────────────

def test_retries_transient_failures_with_backoff(sleeps):
    inner = ScriptedGenerator(ServiceUnavailable("down"), RateLimited(), "ok")
    assert retrying(inner, sleeps).generate("p") == "ok"
    assert sleeps == [2.0, 4.0]
    assert len(inner.prompts) == 3


def test_honours_retry_after(sleeps):
    inner = ScriptedGenerator(RateLimited(retry_after=30), "ok")
    retrying(inner, sleeps).generate("p")
    assert sleeps == [30]


def test_gives_up_after_attempts(sleeps):
    inner = ScriptedGenerator(*[ServiceUnavailable("down")] * 3)
    with pytest.raises(ServiceUnavailable):
        retrying(inner, sleeps).generate("p")
    assert len(sleeps) == 2


def test_other_errors_are_not_retried(sleeps):
    inner = ScriptedGenerator(CommentaryError("bad request"), "never")
    with pytest.raises(CommentaryError):
        retrying(inner, sleeps).generate("p")
    assert sleeps == []


# ── Ollama ──────────────────────────────────────────────────────────────

def test_ollama_success():
    session = FakeSession(FakeResponse(200, {"response": "  Bullish setup.  "}))
    gen = OllamaCommentary(model="m", host="http://ollama:11434/", session=session)
    assert gen.generate("prompt") == "Bullish setup."
    url, payload, _ = session.calls[0]
    assert url == "http://ollama:11434/api/generate"
    assert payload["model"] == "m"
    assert payload["stream"] is False


@pytest.mark.parametrize("status, error", [
    (429, RateLimited),
    (503, ServiceUnavailable),
    (500, ServiceUnavailable),
    (404, CommentaryError),
])
def test_ollama_status_mapping(status, error):
    gen = OllamaCommentary(session=FakeSession(FakeResponse(status, {}, {"Retry-After": "7"})))
    with pytest.raises(error) as exc:
        gen.generate("p")
    if status == 429:
        assert exc.value.retry_after == 7.0


@pytest.mark.parametrize("exc", [requests.exceptions.Timeout(), requests.exceptions.ConnectionError()])
def test_ollama_transport_errors_are_unavailable(exc):
    gen = OllamaCommentary(session=FakeSession(error=exc))
    with pytest.raises(ServiceUnavailable):
        gen.generate("p")


def test_ollama_empty_response_is_an_error():
    gen = OllamaCommentary(session=FakeSession(FakeResponse(200, {"response": ""})))
    with pytest.raises(CommentaryError):
        gen.generate("p")


# ── Analyst ─────────────────────────────────────────────────────────────

@pytest.fixture
def confluence_result():
    tfs = [
        TimeframeAnalysis(interval=iv, trend=Trend.BULLISH, strength=80.0,
                          key_levels=KeyLevels(support=950.0, resistance=1050.0))
        for iv in ("1h", "4h", "1d", "1w")
    ]
    return ConfluenceAggregator().aggregate(tfs, 1000.0, atr=10.0, symbol="BBCA")


@pytest.fixture
def bpjs_score():
    breakdown = {cat: 5 for cat in ScoreCategory}
    breakdown[ScoreCategory.GAP] = 0
    return BPJSScore(symbol="TLKM", total_score=35, breakdown=breakdown,
                     degraded=(ScoreCategory.SECTOR,), price=3000.0)


def test_prompt_carries_the_verdict(confluence_result):
    prompt = CommentaryAnalyst.build_confluence_prompt(confluence_result)
    assert "BBCA" in prompt
    assert "Action: BUY" in prompt
    assert "4/4 timeframes aligned" in prompt
    assert "- 1w: BULLISH" in prompt


def test_explain_uses_generator(confluence_result):
    gen = ScriptedGenerator("Looks constructive.")
    assert CommentaryAnalyst(gen).explain_confluence(confluence_result) == "Looks constructive."


def test_explain_falls_back_to_quant_summary(confluence_result, bpjs_score):
    analyst = CommentaryAnalyst(ScriptedGenerator(ServiceUnavailable("down"), RateLimited()))
    text = analyst.explain_confluence(confluence_result)
    assert "BULLISH confluence at 100%" in text
    assert "[quant-only" in text

    text = analyst.explain_bpjs(bpjs_score)
    assert text.startswith("TLKM scores 35/100")
    assert "gapped down" in text
    assert "sector" in text


def test_without_generator_is_quant_only(bpjs_score):
    assert CommentaryAnalyst(None).explain_bpjs(bpjs_score).endswith("[quant-only]")


def test_bpjs_prompt_carries_fundamentals(bpjs_score):
    prompt = CommentaryAnalyst.build_bpjs_prompt(bpjs_score)
    assert "Fundamentals: P/E n/a, P/B n/a, MCap n/a" in prompt

    valued = BPJSScore(symbol="BBRI", total_score=70, breakdown=bpjs_score.breakdown,
                       fundamentals=Fundamentals(pe=12.5, pb=2.1, market_cap=5.2e14))
    prompt = CommentaryAnalyst.build_bpjs_prompt(valued)
    assert "Fundamentals: P/E 12.5, P/B 2.10, MCap Rp520.0T" in prompt
