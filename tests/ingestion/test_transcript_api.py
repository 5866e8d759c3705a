from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import pytest

from ingestion.connectors.base import join_transcript
from ingestion.connectors.transcript_api import AnyTranscriptStrategy, TranscriptApiStrategy

VIDEO_ID = "dQw4w9WgXcQ"


@dataclass
class Snippet:
    text: str
    start: float = 0.0
    duration: float = 1.0


class FakeTranscript:
    def __init__(self, language_code: str, snippets: List[Snippet]):
        self.language_code = language_code
        self._snippets = snippets

    def fetch(self):
        return list(self._snippets)


class FakeApi:
    """Stands in for YouTubeTranscriptApi: only `en-GB` captions exist."""

    def __init__(self, calls: list):
        self.calls = calls

    def fetch(self, video_id: str, languages: Optional[List[str]] = None):
        self.calls.append(("fetch", video_id, tuple(languages) if languages else None))
        if languages == ["en-GB"]:
            return [Snippet("Buy"), Snippet(" the  dip ")]
        raise LookupError("no transcript in requested languages")

    def list(self, video_id: str):
        self.calls.append(("list", video_id, None))
        return iter([FakeTranscript("de", [Snippet("Hallo"), Snippet("Welt")]), FakeTranscript("en", [Snippet("x")])])


@pytest.mark.asyncio
async def test_variants_run_in_fixed_order_each_independent():
    calls: list = []
    strategy = TranscriptApiStrategy(api_factory=lambda: FakeApi(calls))

    attempts = strategy.attempts(VIDEO_ID)
    assert [a.label for a in attempts] == ["default", "en", "en-US", "en-GB", "en-CA"]

    results = []
    for attempt in attempts[:3]:
        with pytest.raises(LookupError):
            await attempt.call()
    results.append(await attempts[3].call())

    assert results == ["Buy the dip"]
    assert calls == [
        ("fetch", VIDEO_ID, None),
        ("fetch", VIDEO_ID, ("en",)),
        ("fetch", VIDEO_ID, ("en-US",)),
        ("fetch", VIDEO_ID, ("en-GB",)),
    ]


@pytest.mark.asyncio
async def test_any_transcript_takes_first_listed_track():
    calls: list = []
    strategy = AnyTranscriptStrategy(api_factory=lambda: FakeApi(calls))

    (attempt,) = strategy.attempts(VIDEO_ID)
    text = await attempt.call()

    assert attempt.label == "any"
    assert text == "Hallo Welt"
    assert calls == [("list", VIDEO_ID, None)]


@pytest.mark.asyncio
async def test_dict_snippets_are_supported():
    class DictApi:
        def fetch(self, video_id, languages=None):
            return [{"text": "old"}, {"text": "style"}]

    strategy = TranscriptApiStrategy(api_factory=DictApi, variants=[("default", None)])

    (attempt,) = strategy.attempts(VIDEO_ID)

    assert await attempt.call() == "old style"


def test_join_transcript_collapses_whitespace():
    assert join_transcript(["  Hello\n", None, "", "world  "]) == "Hello world"
