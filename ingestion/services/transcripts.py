"""Transcript acquisition cascade.

Strategies, in fixed priority order:

1. innertube          one attempt per caption language (en, en-US, en-GB, en-CA)
2. transcript_api     library default, then one attempt per language
3. transcript_api_any first available track in any language

Attempts run one at a time; the first non-empty transcript wins. Every attempt
is isolated: an exception or timeout is logged and the cascade moves on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional, Sequence

import httpx

from ingestion.connectors.base import Attempt, StrategyUnavailable, TranscriptStrategy
from ingestion.connectors.innertube import InnertubeCaptionStrategy
from ingestion.connectors.transcript_api import AnyTranscriptStrategy, TranscriptApiStrategy
from ingestion.settings import Settings, get_settings

logger = logging.getLogger(__name__)


async def first_success(
    attempts: Iterable[Attempt],
    *,
    timeout_seconds: Optional[float] = None,
    context: Optional[dict] = None,
) -> Optional[str]:
    """Run attempts sequentially and return the first non-empty text, else None.

    `StrategyUnavailable` from an attempt skips the rest of that strategy.
    """
    extra = dict(context or {})
    skipped: set[str] = set()
    for attempt in attempts:
        if attempt.strategy in skipped:
            continue
        tags = {**extra, "strategy": attempt.strategy, "label": attempt.label}
        try:
            if timeout_seconds:
                text = await asyncio.wait_for(attempt.call(), timeout=timeout_seconds)
            else:
                text = await attempt.call()
        except StrategyUnavailable as exc:
            skipped.add(attempt.strategy)
            logger.info("cascade.strategy.unavailable", extra={**tags, "error": str(exc)})
            continue
        except asyncio.TimeoutError:
            logger.warning("cascade.attempt.timeout", extra={**tags, "timeout": timeout_seconds})
            continue
        except Exception as exc:  # noqa: BLE001 - every attempt failure is local
            logger.info(
                "cascade.attempt.failed",
                extra={**tags, "error": f"{type(exc).__name__}: {exc}"},
            )
            continue
        if text and text.strip():
            logger.info("cascade.attempt.succeeded", extra={**tags, "chars": len(text)})
            return text.strip()
        logger.info("cascade.attempt.empty", extra=tags)
    return None


def default_strategies(client: httpx.AsyncClient, settings: Settings) -> List[TranscriptStrategy]:
    return [
        InnertubeCaptionStrategy(client, settings=settings),
        TranscriptApiStrategy(),
        AnyTranscriptStrategy(),
    ]


def build_attempts(video_id: str, strategies: Sequence[TranscriptStrategy]) -> List[Attempt]:
    attempts: List[Attempt] = []
    for strategy in strategies:
        attempts.extend(strategy.attempts(video_id))
    return attempts


async def fetch_transcript_cascade(
    video_id: str,
    *,
    strategies: Optional[Sequence[TranscriptStrategy]] = None,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> Optional[str]:
    """Return the transcript text for `video_id`, or None when no strategy yields any."""
    cfg = settings or get_settings()
    owns_client = client is None and strategies is None
    http = client
    if owns_client:
        http = httpx.AsyncClient(
            headers={"User-Agent": cfg.youtube_user_agent, "Accept-Language": "en"},
            follow_redirects=True,
            timeout=float(cfg.transcript_attempt_timeout_seconds),
        )
    try:
        chosen = strategies if strategies is not None else default_strategies(http, cfg)
        text = await first_success(
            build_attempts(video_id, chosen),
            timeout_seconds=float(cfg.transcript_attempt_timeout_seconds),
            context={"video_id": video_id},
        )
    finally:
        if owns_client and http is not None:
            await http.aclose()
    if text is None:
        logger.warning("cascade.exhausted", extra={"video_id": video_id})
    return text
