"""Ingestion workflow: URL -> transcript -> metadata -> pending content record."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from celery import shared_task

from ingestion.connectors.base import TranscriptUnavailable
from ingestion.connectors.youtube import extract_video_id, fetch_video_metadata, watch_url
from ingestion.db.models import JobStage
from ingestion.db.session import init_schema, session_scope
from ingestion.models.domain import ContentStatus, VideoMetadata
from ingestion.repositories.content import JobRunRecorder, create_content
from ingestion.services.inflight import SingleFlight
from ingestion.services.transcripts import fetch_transcript_cascade
from ingestion.utils.logging import get_logger

TranscriptFetcher = Callable[[str], Awaitable[Optional[str]]]
MetadataFetcher = Callable[[str], Awaitable[VideoMetadata]]

_CASCADES = SingleFlight()


class InvalidVideoUrl(ValueError):
    """The submitted value is not a recognizable video URL or id."""

    def __init__(self, value: str):
        super().__init__(f"Invalid YouTube URL: {value}")
        self.value = value


@dataclass(frozen=True)
class IngestOutcome:
    content_id: str
    video_id: str
    transcript_length: int
    title: Optional[str]
    channel: Optional[str]

    def as_dict(self) -> dict:
        return {
            "content_id": self.content_id,
            "video_id": self.video_id,
            "transcript_length": self.transcript_length,
            "title": self.title,
            "channel": self.channel,
        }


async def _shared_transcript(video_id: str, fetcher: TranscriptFetcher) -> Optional[str]:
    return await _CASCADES.run(f"transcript:{video_id}", lambda: fetcher(video_id))


async def ingest_video_core(
    youtube_url: str,
    *,
    transcript_fetcher: Optional[TranscriptFetcher] = None,
    metadata_fetcher: Optional[MetadataFetcher] = None,
) -> IngestOutcome:
    """Acquire a transcript and persist a new pending record for `youtube_url`.

    Raises InvalidVideoUrl when no id can be parsed and TranscriptUnavailable
    when the cascade yields nothing. No record is created in either case.
    """
    video_id = extract_video_id(youtube_url)
    if video_id is None:
        raise InvalidVideoUrl(youtube_url)

    logger = get_logger(__name__)
    trace_id = str(uuid.uuid4())
    extra = {"trace_id": trace_id, "video_id": video_id}
    logger.info("ingest.start", extra=extra)

    transcript = await _shared_transcript(video_id, transcript_fetcher or fetch_transcript_cascade)
    if not transcript:
        logger.warning("ingest.no_transcript", extra=extra)
        raise TranscriptUnavailable(video_id)

    meta = await (metadata_fetcher or fetch_video_metadata)(video_id)

    init_schema()
    now = datetime.now(timezone.utc)
    with session_scope() as session, JobRunRecorder(
        session,
        stage=JobStage.INGEST,
        task_name="ingest_video",
        video_id=video_id,
        trace_id=trace_id,
    ):
        record = create_content(
            session,
            video_id=video_id,
            youtube_url=youtube_url,
            source_url=watch_url(video_id),
            platform="YouTube",
            influencer_name=meta.channel_title,
            episode_title=meta.title,
            channel_subscribers=meta.channel_subscribers,
            published_label=meta.published_label,
            published_at=meta.published_at or now,
            transcript=transcript,
            status=ContentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        content_id = str(record.id)

    logger.info(
        "ingest.saved",
        extra={**extra, "content_id": content_id, "chars": len(transcript)},
    )
    return IngestOutcome(
        content_id=content_id,
        video_id=video_id,
        transcript_length=len(transcript),
        title=meta.title,
        channel=meta.channel_title,
    )


@shared_task(name="ingestion.tasks.ingest.ingest_video", queue="ingestion.default")
def ingest_video(youtube_url: str) -> dict:  # pragma: no cover - thin wrapper
    outcome = asyncio.run(ingest_video_core(youtube_url))
    from analysis.tasks.process import process_content_for_record

    process_content_for_record.delay(outcome.content_id)
    return outcome.as_dict()
