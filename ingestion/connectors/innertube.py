"""Innertube caption-track strategy (direct player API retrieval).

Steps per video: scrape INNERTUBE_API_KEY from the watch page, POST the player
endpoint with a mobile client identity, pick the caption track for a language,
then fetch and parse its timed-text XML.
"""

from __future__ import annotations

import html
import logging
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional

import httpx

from ingestion.models.domain import CaptionEntry
from ingestion.settings import Settings, get_settings

from .base import Attempt, PermanentError, StrategyUnavailable, TranscriptStrategy, TransientError, join_transcript

logger = logging.getLogger(__name__)

_API_KEY = re.compile(r'"INNERTUBE_API_KEY":"([^"]+)"')
_FMT_SUFFIX = re.compile(r"&fmt=\w+$")


def extract_api_key(page: str) -> Optional[str]:
    m = _API_KEY.search(page)
    return m.group(1) if m else None


def find_caption_track_url(player: Dict[str, Any], language: str) -> Optional[str]:
    """Return the track URL for `language` with any trailing fmt parameter removed."""
    tracks = (
        (player or {})
        .get("captions", {})
        .get("playerCaptionsTracklistRenderer", {})
        .get("captionTracks")
    ) or []
    for track in tracks:
        if track.get("languageCode") == language and track.get("baseUrl"):
            return _FMT_SUFFIX.sub("", track["baseUrl"])
    return None


def parse_timed_text(document: str) -> List[CaptionEntry]:
    """Parse a `<transcript><text start=".." dur="..">..</text></transcript>` document."""
    try:
        root = ET.fromstring(document)
    except ET.ParseError as exc:
        raise TransientError(f"caption XML could not be parsed: {exc}") from exc
    entries: List[CaptionEntry] = []
    for node in root.iter("text"):
        start = float(node.get("start") or 0.0)
        dur = float(node.get("dur") or 0.0)
        entries.append(
            CaptionEntry(
                text=html.unescape("".join(node.itertext())),
                start_seconds=start,
                end_seconds=start + dur,
            )
        )
    return entries


class InnertubeSession:
    """Per-video state shared by the language attempts of one cascade run.

    The API key is resolved once; a successful player payload is memoized.
    """

    def __init__(self, video_id: str, client: httpx.AsyncClient, settings: Settings):
        self.video_id = video_id
        self._client = client
        self._settings = settings
        self._api_key: Optional[str] = None
        self._key_failed = False
        self._player: Optional[Dict[str, Any]] = None

    async def api_key(self) -> str:
        if self._key_failed:
            raise StrategyUnavailable("INNERTUBE_API_KEY not found.")
        if self._api_key is None:
            url = f"{self._settings.youtube_base_url}/watch?v={self.video_id}"
            try:
                resp = await self._client.get(url)
                key = extract_api_key(resp.text)
            except httpx.HTTPError as exc:
                self._key_failed = True
                raise StrategyUnavailable(f"watch page fetch failed: {exc}") from exc
            if not key:
                self._key_failed = True
                raise StrategyUnavailable("INNERTUBE_API_KEY not found.")
            self._api_key = key
        return self._api_key

    async def player(self) -> Dict[str, Any]:
        if self._player is not None:
            return self._player
        key = await self.api_key()
        body = {
            "context": {
                "client": {
                    "clientName": self._settings.youtube_client_name,
                    "clientVersion": self._settings.youtube_client_version,
                }
            },
            "videoId": self.video_id,
        }
        try:
            resp = await self._client.post(
                f"{self._settings.youtube_base_url}/youtubei/v1/player",
                params={"key": key},
                json=body,
            )
        except httpx.HTTPError as exc:
            raise TransientError(f"player request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise TransientError(f"player request returned {resp.status_code}")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise TransientError("player response is not JSON") from exc
        self._player = payload
        return payload

    async def captions(self, language: str) -> List[CaptionEntry]:
        player = await self.player()
        track_url = find_caption_track_url(player, language)
        if not track_url:
            logger.info(
                "innertube.no_track",
                extra={"video_id": self.video_id, "language": language},
            )
            return []
        try:
            resp = await self._client.get(track_url)
        except httpx.HTTPError as exc:
            raise TransientError(f"caption fetch failed: {exc}") from exc
        if resp.status_code >= 400:
            raise TransientError(f"caption fetch returned {resp.status_code}")
        if not resp.text.strip():
            return []
        return parse_timed_text(resp.text)

    async def transcript(self, language: str) -> Optional[str]:
        entries = await self.captions(language)
        text = join_transcript(e.text for e in entries)
        return text or None


class InnertubeCaptionStrategy(TranscriptStrategy):
    """Strategy A: one attempt per caption language, sharing one InnertubeSession."""

    name = "innertube"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        languages: Optional[List[str]] = None,
        settings: Optional[Settings] = None,
    ):
        self._client = client
        self._settings = settings or get_settings()
        self._languages = list(languages or self._settings.youtube_caption_languages)

    def attempts(self, video_id: str) -> List[Attempt]:
        if not video_id:
            raise PermanentError("video id is required")
        session = InnertubeSession(video_id, self._client, self._settings)
        return [
            Attempt(self.name, lang, lambda lang=lang: session.transcript(lang))
            for lang in self._languages
        ]
