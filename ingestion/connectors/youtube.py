"""YouTube identifier parsing and best-effort video metadata."""

from __future__ import annotations

import html
import logging
import re
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import parse_qs, urlparse

import httpx

from ingestion.models.domain import VideoMetadata
from ingestion.settings import get_settings

logger = logging.getLogger(__name__)

_BARE_ID = re.compile(r"^[\w-]{11}$")
_PATH_PREFIXES = ("embed", "shorts", "v", "live", "e")
_TITLE_META = re.compile(r'<meta name="title" content="([^"]+)"')
_OWNER_CHANNEL = re.compile(r'"ownerChannelName":"([^"]+)"')
_DATE_TEXT = re.compile(r'"dateText":\{"simpleText":"([^"]+)"\}')
_SUBSCRIBERS = re.compile(r'"subscriberCountText":\{"simpleText":"([^"]+)"\}')
_PUBLISHED_FORMATS = ("%b %d, %Y", "%B %d, %Y", "%d %b %Y", "%Y-%m-%d")


def _valid(candidate: Optional[str]) -> Optional[str]:
    if candidate and _BARE_ID.match(candidate):
        return candidate
    return None


def extract_video_id(value: Optional[str]) -> Optional[str]:
    """Return the 11-character video id from a bare id or a long/short URL."""
    if not value:
        return None
    text = value.strip()
    if _BARE_ID.match(text):
        return text
    if "://" not in text and (text.startswith("youtu") or text.startswith("www.") or text.startswith("m.")):
        text = "https://" + text
    try:
        parsed = urlparse(text)
    except ValueError:
        return None
    host = (parsed.hostname or "").lower()
    segments = [s for s in parsed.path.split("/") if s]
    if host == "youtu.be":
        return _valid(segments[0]) if segments else None
    if host == "youtube.com" or host.endswith(".youtube.com") or host == "youtube-nocookie.com" or host.endswith(".youtube-nocookie.com"):
        v = parse_qs(parsed.query).get("v")
        if v:
            return _valid(v[0])
        if len(segments) >= 2 and segments[0] in _PATH_PREFIXES:
            return _valid(segments[1])
    return None


def watch_url(video_id: str) -> str:
    return f"{get_settings().youtube_base_url}/watch?v={video_id}"


def parse_subscriber_count(text: Optional[str]) -> Optional[int]:
    """'1.2M subscribers' -> 1200000; None when nothing numeric is present."""
    if not text:
        return None
    m = re.search(r"([\d.,]+)\s*([kKmMbB]?)", text)
    if not m:
        return None
    try:
        number = float(m.group(1).replace(",", ""))
    except ValueError:
        return None
    mult = {"k": 1_000, "m": 1_000_000, "b": 1_000_000_000}.get(m.group(2).lower(), 1)
    return int(round(number * mult))


def parse_published_label(text: Optional[str]) -> Optional[datetime]:
    """Parse the watch page's date text ('Mar 3, 2025', 'Premiered Mar 3, 2025')."""
    if not text:
        return None
    cleaned = re.sub(r"^(Premiered|Streamed live on|Published on)\s+", "", text.strip(), flags=re.IGNORECASE)
    for fmt in _PUBLISHED_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


async def fetch_video_metadata(
    video_id: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> VideoMetadata:
    """Collect title/channel/date/subscribers from oEmbed and the watch page.

    Never raises: each source that fails leaves its fields as None.
    """
    cfg = get_settings()
    meta = VideoMetadata(video_id=video_id)
    owns_client = client is None
    http = client or httpx.AsyncClient(
        timeout=float(cfg.transcript_attempt_timeout_seconds),
        headers={"User-Agent": cfg.youtube_user_agent},
        follow_redirects=True,
    )
    try:
        try:
            resp = await http.get(
                f"{cfg.youtube_base_url}/oembed",
                params={"url": watch_url(video_id), "format": "json"},
            )
            if resp.status_code == 200:
                data = resp.json()
                if isinstance(data, dict):
                    meta.title = data.get("title") or None
                    meta.channel_title = data.get("author_name") or None
        except (httpx.HTTPError, ValueError) as exc:
            logger.info("metadata.oembed_failed", extra={"video_id": video_id, "error": str(exc)})

        try:
            resp = await http.get(watch_url(video_id), headers={"Accept-Language": "en"})
            page = resp.text
        except httpx.HTTPError as exc:
            logger.info("metadata.page_failed", extra={"video_id": video_id, "error": str(exc)})
            return meta

        if not meta.title and (m := _TITLE_META.search(page)):
            meta.title = html.unescape(m.group(1))
        if not meta.channel_title and (m := _OWNER_CHANNEL.search(page)):
            meta.channel_title = m.group(1)
        if m := _DATE_TEXT.search(page):
            meta.published_label = m.group(1)
            meta.published_at = parse_published_label(m.group(1))
        if m := _SUBSCRIBERS.search(page):
            meta.channel_subscribers = parse_subscriber_count(m.group(1))
        return meta
    finally:
        if owns_client:
            await http.aclose()
