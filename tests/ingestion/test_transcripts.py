from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

import pytest

from ingestion.connectors.base import Attempt, StrategyUnavailable, TranscriptStrategy, TransientError
from ingestion.services.transcripts import build_attempts, fetch_transcript_cascade, first_success
from ingestion.settings import Settings

VIDEO_ID = "dQw4w9WgXcQ"


def _settings(timeout: float = 1.0) -> Settings:
    return Settings(postgres_dsn="sqlite://", transcript_attempt_timeout_seconds=timeout)


class ScriptedStrategy(TranscriptStrategy):
    """Strategy whose attempts follow a script and record every call."""

    def __init__(self, name: str, script: List[tuple[str, Callable[[], object]]]):
        self.name = name
        self._script = script
        self.calls: List[str] = []

    def attempts(self, video_id: str) -> List[Attempt]:
        def make(label: str, behaviour: Callable[[], object]):
            async def call() -> Optional[str]:
                self.calls.append(label)
                result = behaviour()
                if asyncio.iscoroutine(result):
                    result = await result
                if isinstance(result, BaseException):
                    raise result
                return result  # type: ignore[return-value]

            return Attempt(self.name, label, call)

        return [make(label, behaviour) for label, behaviour in self._script]


def _innertube_nothing() -> ScriptedStrategy:
    return ScriptedStrategy("innertube", [(lang, lambda: None) for lang in ("en", "en-US", "en-GB", "en-CA")])


@pytest.mark.asyncio
async def test_second_variant_success_stops_cascade():
    a = _innertube_nothing()
    b = ScriptedStrategy(
        "transcript_api",
        [
            ("default", lambda: TransientError("blocked")),
            ("en", lambda: "  from   the en variant "),
            ("en-US", lambda: "never"),
            ("en-GB", lambda: "never"),
            ("en-CA", lambda: "never"),
        ],
    )
    c = ScriptedStrategy("transcript_api_any", [("any", lambda: "never")])

    text = await fetch_transcript_cascade(VIDEO_ID, strategies=[a, b, c], settings=_settings())

    assert text == "from   the en variant"
    assert a.calls == ["en", "en-US", "en-GB", "en-CA"]
    assert b.calls == ["default", "en"]
    assert c.calls == []


@pytest.mark.asyncio
async def test_exhaustion_returns_none_after_every_attempt_ran_once():
    a = ScriptedStrategy("innertube", [(lang, lambda: RuntimeError("boom")) for lang in ("en", "en-US")])
    b = ScriptedStrategy("transcript_api", [("default", lambda: ""), ("en", lambda: "   ")])
    c = ScriptedStrategy("transcript_api_any", [("any", lambda: ValueError("no tracks"))])

    text = await fetch_transcript_cascade(VIDEO_ID, strategies=[a, b, c], settings=_settings())

    assert text is None
    assert a.calls == ["en", "en-US"]
    assert b.calls == ["default", "en"]
    assert c.calls == ["any"]


@pytest.mark.asyncio
async def test_strategy_unavailable_skips_only_that_strategy():
    a = ScriptedStrategy(
        "innertube",
        [
            ("en", lambda: StrategyUnavailable("INNERTUBE_API_KEY not found.")),
            ("en-US", lambda: "never"),
        ],
    )
    b = ScriptedStrategy("transcript_api", [("default", lambda: "library text")])

    text = await fetch_transcript_cascade(VIDEO_ID, strategies=[a, b], settings=_settings())

    assert text == "library text"
    assert a.calls == ["en"]
    assert b.calls == ["default"]


@pytest.mark.asyncio
async def test_slow_attempt_times_out_and_cascade_continues():
    async def slow() -> str:
        await asyncio.sleep(5)
        return "too late"

    a = ScriptedStrategy("innertube", [("en", slow)])
    b = ScriptedStrategy("transcript_api", [("default", lambda: "fast")])

    text = await fetch_transcript_cascade(VIDEO_ID, strategies=[a, b], settings=_settings(timeout=0.05))

    assert text == "fast"
    assert b.calls == ["default"]


@pytest.mark.asyncio
async def test_first_success_runs_attempts_strictly_in_order():
    order: List[str] = []
    running = 0

    def attempt(label: str, result: Optional[str]) -> Attempt:
        async def call() -> Optional[str]:
            nonlocal running
            running += 1
            assert running == 1
            order.append(label)
            await asyncio.sleep(0)
            running -= 1
            return result

        return Attempt("s", label, call)

    text = await first_success([attempt("1", None), attempt("2", ""), attempt("3", "ok"), attempt("4", "late")])

    assert text == "ok"
    assert order == ["1", "2", "3"]


def test_build_attempts_preserves_strategy_priority():
    a = _innertube_nothing()
    b = ScriptedStrategy("transcript_api", [("default", lambda: None)])

    attempts = build_attempts(VIDEO_ID, [a, b])

    assert [(x.strategy, x.label) for x in attempts] == [
        ("innertube", "en"),
        ("innertube", "en-US"),
        ("innertube", "en-GB"),
        ("innertube", "en-CA"),
        ("transcript_api", "default"),
    ]


@pytest.mark.asyncio
async def test_innertube_success_never_reaches_library_strategies():
    a = ScriptedStrategy("innertube", [("en", lambda: None), ("en-US", lambda: "Hello world")])
    b = ScriptedStrategy("transcript_api", [("default", lambda: "never")])
    c = ScriptedStrategy("transcript_api_any", [("any", lambda: "never")])

    text = await fetch_transcript_cascade(VIDEO_ID, strategies=[a, b, c], settings=_settings())

    assert text == "Hello world"
    assert a.calls == ["en", "en-US"]
    assert b.calls == []
    assert c.calls == []
