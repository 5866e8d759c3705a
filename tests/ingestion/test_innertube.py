from __future__ import annotations

import json

import httpx
import pytest

from ingestion.connectors.base import StrategyUnavailable, TransientError
from ingestion.connectors.innertube import (
    InnertubeCaptionStrategy,
    extract_api_key,
    find_caption_track_url,
    parse_timed_text,
)
from ingestion.services.transcripts import fetch_transcript_cascade
from ingestion.settings import Settings

VIDEO_ID = "dQw4w9WgXcQ"
BASE = "https://www.youtube.com"
WATCH_PAGE = 'var ytcfg = {"INNERTUBE_API_KEY":"KEY123","INNERTUBE_CLIENT_NAME":"WEB"};'
TIMED_TEXT = (
    '<?xml version="1.0" encoding="utf-8" ?><transcript>'
    '<text start="0.0" dur="1.0">Hello</text>'
    '<text start="1.0" dur="1.0">world</text>'
    "</transcript>"
)


def _settings(**overrides) -> Settings:
    values = {"postgres_dsn": "sqlite://", "transcript_attempt_timeout_seconds": 2.0}
    values.update(overrides)
    return Settings(**values)


def _player(*languages: str) -> dict:
    return {
        "captions": {
            "playerCaptionsTracklistRenderer": {
                "captionTracks": [
                    {
                        "languageCode": lang,
                        "baseUrl": f"{BASE}/api/timedtext?v={VIDEO_ID}&lang={lang}&fmt=srv3",
                    }
                    for lang in languages
                ]
            }
        }
    }


def test_extract_api_key():
    assert extract_api_key(WATCH_PAGE) == "KEY123"
    assert extract_api_key("<html>nothing here</html>") is None


def test_find_caption_track_url_strips_fmt_suffix():
    url = find_caption_track_url(_player("en-GB", "en"), "en")

    assert url == f"{BASE}/api/timedtext?v={VIDEO_ID}&lang=en"
    assert find_caption_track_url(_player("de"), "en") is None
    assert find_caption_track_url({}, "en") is None


def test_parse_timed_text_builds_entries_and_unescapes():
    entries = parse_timed_text(
        '<transcript><text start="2.5" dur="1.5">AT&amp;amp;T &amp;#39;up&amp;#39;</text></transcript>'
    )

    assert len(entries) == 1
    assert entries[0].text == "AT&T 'up'"
    assert entries[0].start_seconds == 2.5
    assert entries[0].end_seconds == 4.0


def test_parse_timed_text_rejects_garbage():
    with pytest.raises(TransientError):
        parse_timed_text("<transcript><text>")


@pytest.mark.asyncio
async def test_hello_world_scenario(httpx_mock):
    httpx_mock.add_response(method="GET", url=f"{BASE}/watch?v={VIDEO_ID}", text=WATCH_PAGE)
    httpx_mock.add_response(
        method="POST",
        url=f"{BASE}/youtubei/v1/player?key=KEY123",
        json=_player("en"),
    )
    httpx_mock.add_response(
        method="GET",
        url=f"{BASE}/api/timedtext?v={VIDEO_ID}&lang=en",
        text=TIMED_TEXT,
    )
    settings = _settings()

    async with httpx.AsyncClient() as client:
        text = await fetch_transcript_cascade(
            VIDEO_ID,
            strategies=[InnertubeCaptionStrategy(client, settings=settings)],
            settings=settings,
        )

    assert text == "Hello world"
    player_request = next(r for r in httpx_mock.get_requests() if r.method == "POST")
    body = json.loads(player_request.content)
    assert body == {
        "context": {"client": {"clientName": "ANDROID", "clientVersion": "20.10.38"}},
        "videoId": VIDEO_ID,
    }


@pytest.mark.asyncio
async def test_languages_tried_in_order_with_one_player_call(httpx_mock):
    httpx_mock.add_response(method="GET", url=f"{BASE}/watch?v={VIDEO_ID}", text=WATCH_PAGE)
    httpx_mock.add_response(
        method="POST",
        url=f"{BASE}/youtubei/v1/player?key=KEY123",
        json=_player("en-GB"),
    )
    httpx_mock.add_response(
        method="GET",
        url=f"{BASE}/api/timedtext?v={VIDEO_ID}&lang=en-GB",
        text=TIMED_TEXT,
    )
    settings = _settings()

    async with httpx.AsyncClient() as client:
        text = await fetch_transcript_cascade(
            VIDEO_ID,
            strategies=[InnertubeCaptionStrategy(client, settings=settings)],
            settings=settings,
        )

    assert text == "Hello world"
    methods = [r.method for r in httpx_mock.get_requests()]
    assert methods == ["GET", "POST", "GET"]


@pytest.mark.asyncio
async def test_missing_api_key_skips_remaining_languages(httpx_mock):
    httpx_mock.add_response(method="GET", url=f"{BASE}/watch?v={VIDEO_ID}", text="<html>consent wall</html>")
    settings = _settings()

    async with httpx.AsyncClient() as client:
        strategy = InnertubeCaptionStrategy(client, settings=settings)
        attempts = strategy.attempts(VIDEO_ID)
        with pytest.raises(StrategyUnavailable):
            await attempts[0].call()
        # the key lookup is not repeated for later languages
        with pytest.raises(StrategyUnavailable):
            await attempts[1].call()

    assert len(httpx_mock.get_requests()) == 1


@pytest.mark.asyncio
async def test_no_caption_tracks_yields_none(httpx_mock):
    httpx_mock.add_response(method="GET", url=f"{BASE}/watch?v={VIDEO_ID}", text=WATCH_PAGE)
    httpx_mock.add_response(
        method="POST",
        url=f"{BASE}/youtubei/v1/player?key=KEY123",
        json={"playabilityStatus": {"status": "OK"}},
    )
    settings = _settings(youtube_caption_languages=["en", "en-US"])

    async with httpx.AsyncClient() as client:
        text = await fetch_transcript_cascade(
            VIDEO_ID,
            strategies=[InnertubeCaptionStrategy(client, settings=settings)],
            settings=settings,
        )

    assert text is None
