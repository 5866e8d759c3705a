"""Content processing: pending record -> extraction + derived articles -> complete/error.

State machine per record: pending -> processing -> complete | error. A record
in `processing` always ends in one of the terminal states, and failures after
that point are written to the record before they propagate.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from celery import shared_task

from analysis.models.domain import ARTICLE_KINDS
from ingestion.connectors.base import TranscriptUnavailable
from ingestion.connectors.youtube import extract_video_id
from ingestion.db.models import JobStage
from ingestion.db.session import init_schema, session_scope
from ingestion.models.domain import ContentStatus
from ingestion.repositories.content import JobRunRecorder, get_content, update_content_fields
from ingestion.services.inflight import ClaimStore, build_claim_store, claimed
from ingestion.services.transcripts import fetch_transcript_cascade
from ingestion.settings import get_settings
from ingestion.utils.logging import get_logger
from llm.client.openai_client import OpenAIClient, ProviderFn

TranscriptFetcher = Callable[[str], Awaitable[Optional[str]]]

# Injection points for tests
PROVIDER_FACTORY: Callable[[], Optional[ProviderFn]] | None = None
CLAIM_STORE: ClaimStore | None = None


class InvalidContent(ValueError):
    """The record carries neither a video id nor a parseable URL."""


class ContentAlreadyComplete(RuntimeError):
    """Complete records are read-only; re-ingest the video to get a new record."""

    def __init__(self, content_id: str):
        super().__init__(f"Content {content_id} is already complete")
        self.content_id = content_id


@dataclass(frozen=True)
class ProcessOutcome:
    content_id: str
    status: ContentStatus
    mentions: int
    highlights: int
    malformed: bool = False


def _claim_store() -> ClaimStore:
    global CLAIM_STORE
    if CLAIM_STORE is None:
        settings = get_settings()
        CLAIM_STORE = build_claim_store(
            settings.redis_url,
            ttl_seconds=int(settings.inflight_claim_ttl_seconds),
            logger=get_logger(__name__),
        )
    return CLAIM_STORE


def _default_client() -> OpenAIClient:
    provider = PROVIDER_FACTORY() if PROVIDER_FACTORY else None
    return OpenAIClient.from_env(provider=provider)


async def process_content_core(
    content_id: str,
    *,
    client: Optional[OpenAIClient] = None,
    transcript_fetcher: Optional[TranscriptFetcher] = None,
) -> ProcessOutcome:
    """Run extraction and article generation for one content record.

    Raises ContentNotFound, ContentAlreadyComplete, InvalidContent or
    ProcessingInProgress before the record is touched. After the record
    enters `processing`, any exception (TranscriptUnavailable included)
    marks it `error` and is re-raised.
    """
    init_schema()
    logger = get_logger(__name__)
    trace_id = str(uuid.uuid4())

    with session_scope() as session:
        record = get_content(session, content_id)
        content_id = str(record.id)
        video_id = record.video_id or extract_video_id(record.youtube_url)
        stored_transcript = record.transcript or ""
        status = record.status
    if status == ContentStatus.COMPLETE:
        raise ContentAlreadyComplete(content_id)
    if not video_id:
        raise InvalidContent(f"No videoId/youtubeUrl found in content {content_id}")

    extra = {"trace_id": trace_id, "content_id": content_id, "video_id": video_id}
    settings = get_settings()

    with claimed(_claim_store(), f"content:{content_id}", int(settings.inflight_claim_ttl_seconds)):
        # A run that held the claim may have finished since the first read
        with session_scope() as session:
            if get_content(session, content_id).status == ContentStatus.COMPLETE:
                raise ContentAlreadyComplete(content_id)

        with session_scope() as session, JobRunRecorder(
            session,
            stage=JobStage.PROCESS,
            task_name="process_content",
            content_id=content_id,
            video_id=video_id,
            trace_id=trace_id,
        ):
            update_content_fields(session, content_id, {"status": ContentStatus.PROCESSING, "error": None})
            session.commit()
            logger.info("process.start", extra=extra)
            try:
                transcript = stored_transcript.strip()
                if not transcript:
                    fetched = await (transcript_fetcher or fetch_transcript_cascade)(video_id)
                    transcript = (fetched or "").strip()
                    if not transcript:
                        raise TranscriptUnavailable(video_id)
                    update_content_fields(session, content_id, {"transcript": transcript})
                    session.commit()

                llm = client or _default_client()
                result = await asyncio.to_thread(llm.extract, transcript)
                if result.malformed:
                    logger.warning("process.extraction_malformed", extra=extra)

                articles: Dict[str, str] = {}
                for kind in ARTICLE_KINDS:
                    articles[kind] = await asyncio.to_thread(llm.generate_article, kind, transcript)

                update_content_fields(
                    session,
                    content_id,
                    {
                        "status": ContentStatus.COMPLETE,
                        "error": None,
                        "extracted_mentions": [m.model_dump() for m in result.mentions],
                        "highlights": [h.model_dump() for h in result.highlights],
                        **articles,
                    },
                )
                session.commit()
            except Exception as exc:
                session.rollback()
                update_content_fields(
                    session,
                    content_id,
                    {"status": ContentStatus.ERROR, "error": (str(exc) or type(exc).__name__)[:1024]},
                )
                session.commit()
                logger.warning("process.failed", extra={**extra, "error": f"{type(exc).__name__}: {exc}"})
                raise

    logger.info(
        "process.complete",
        extra={
            **extra,
            "mentions": len(result.mentions),
            "highlights": len(result.highlights),
            "model": result.llm_model,
            "tokens_prompt": result.llm_tokens_prompt,
            "tokens_completion": result.llm_tokens_completion,
            "cost": result.llm_cost,
        },
    )
    return ProcessOutcome(
        content_id=content_id,
        status=ContentStatus.COMPLETE,
        mentions=len(result.mentions),
        highlights=len(result.highlights),
        malformed=result.malformed,
    )


@shared_task(
    name="analysis.tasks.process.process_content_for_record",
    queue="analysis.process",
)
def process_content_for_record(content_id: str) -> dict:  # pragma: no cover - thin wrapper
    outcome = asyncio.run(process_content_core(content_id))
    return {"content_id": outcome.content_id, "status": outcome.status.value, "mentions": outcome.mentions}
