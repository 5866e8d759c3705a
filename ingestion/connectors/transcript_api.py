"""Secondary strategies backed by youtube-transcript-api.

The library is synchronous, so every call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, List, Optional, Sequence

import requests
from youtube_transcript_api import YouTubeTranscriptApi

from ingestion.settings import get_settings

from .base import Attempt, TranscriptStrategy, join_transcript

ApiFactory = Callable[[], Any]

# (label, languages) where None means "library default". Since 1.0 the
# library default is languages=("en",), so "default" repeats the "en" lookup.
DEFAULT_VARIANTS: Sequence[tuple[str, Optional[List[str]]]] = (
    ("default", None),
    ("en", ["en"]),
    ("en-US", ["en-US"]),
    ("en-GB", ["en-GB"]),
    ("en-CA", ["en-CA"]),
)


def default_api_factory() -> YouTubeTranscriptApi:
    http_client = requests.Session()
    http_client.headers.update({"User-Agent": get_settings().youtube_user_agent})
    return YouTubeTranscriptApi(http_client=http_client)


def _snippet_texts(items: Iterable[Any]) -> List[str]:
    texts: List[str] = []
    for item in items:
        text = item.get("text") if isinstance(item, dict) else getattr(item, "text", None)
        if text:
            texts.append(text)
    return texts


class TranscriptApiStrategy(TranscriptStrategy):
    """Strategy B: fixed parameter variants, each a fully independent fetch."""

    name = "transcript_api"

    def __init__(
        self,
        *,
        api_factory: Optional[ApiFactory] = None,
        variants: Optional[Sequence[tuple[str, Optional[List[str]]]]] = None,
    ):
        self._api_factory = api_factory or default_api_factory
        self._variants = list(variants if variants is not None else DEFAULT_VARIANTS)

    def _fetch(self, video_id: str, languages: Optional[List[str]]) -> Optional[str]:
        api = self._api_factory()
        if languages is None:
            fetched = api.fetch(video_id)
        else:
            fetched = api.fetch(video_id, languages=languages)
        return join_transcript(_snippet_texts(fetched)) or None

    def attempts(self, video_id: str) -> List[Attempt]:
        return [
            Attempt(
                self.name,
                label,
                lambda langs=langs: asyncio.to_thread(self._fetch, video_id, langs),
            )
            for label, langs in self._variants
        ]


class AnyTranscriptStrategy(TranscriptStrategy):
    """Strategy C: list every track and take the first one, in any language."""

    name = "transcript_api_any"

    def __init__(self, *, api_factory: Optional[ApiFactory] = None):
        self._api_factory = api_factory or default_api_factory

    def _fetch_any(self, video_id: str) -> Optional[str]:
        api = self._api_factory()
        for transcript in api.list(video_id):
            return join_transcript(_snippet_texts(transcript.fetch())) or None
        return None

    def attempts(self, video_id: str) -> List[Attempt]:
        return [Attempt(self.name, "any", lambda: asyncio.to_thread(self._fetch_any, video_id))]
