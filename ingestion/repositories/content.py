"""Repositories for content records and job runs.

These functions are the persistence collaborator of the pipeline: create with a
generated id, get by id, partial update by id, and ordered listing.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, List, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from ingestion.db.models import ContentRecord, JobRun, JobStage, JobStatus
from ingestion.models.domain import ContentStatus

_ORDERABLE_FIELDS = {"created_at", "updated_at", "published_at"}
_IMMUTABLE_FIELDS = {"id", "video_id", "created_at"}


class ContentNotFound(LookupError):
    """No content record with the given id."""


def _coerce_id(content_id: uuid.UUID | str) -> uuid.UUID:
    if isinstance(content_id, uuid.UUID):
        return content_id
    try:
        return uuid.UUID(str(content_id))
    except ValueError as exc:
        raise ContentNotFound(str(content_id)) from exc


def create_content(session: Session, **fields: Any) -> ContentRecord:
    now = datetime.now(timezone.utc)
    fields.setdefault("status", ContentStatus.PENDING)
    fields.setdefault("created_at", now)
    fields.setdefault("updated_at", now)
    entity = ContentRecord(**fields)
    session.add(entity)
    session.flush()
    return entity


def get_content(session: Session, content_id: uuid.UUID | str) -> ContentRecord:
    entity = session.get(ContentRecord, _coerce_id(content_id))
    if entity is None:
        raise ContentNotFound(str(content_id))
    return entity


def update_content_fields(
    session: Session,
    content_id: uuid.UUID | str,
    fields: Mapping[str, Any],
) -> ContentRecord:
    """Merge `fields` into the record and refresh updated_at."""
    entity = get_content(session, content_id)
    for key, value in fields.items():
        if key in _IMMUTABLE_FIELDS:
            raise ValueError(f"{key} is immutable")
        if not hasattr(ContentRecord, key):
            raise ValueError(f"unknown content field: {key}")
        setattr(entity, key, value)
    entity.updated_at = datetime.now(timezone.utc)
    session.add(entity)
    session.flush()
    return entity


def list_content(
    session: Session,
    *,
    order_by: str = "published_at",
    descending: bool = False,
    since: datetime | None = None,
    until: datetime | None = None,
    status: ContentStatus | None = None,
    limit: int | None = None,
) -> List[ContentRecord]:
    """Return records ordered by `order_by`; `since`/`until` bound the same field (half-open)."""
    if order_by not in _ORDERABLE_FIELDS:
        raise ValueError(f"cannot order content by {order_by}")
    column = getattr(ContentRecord, order_by)
    stmt = select(ContentRecord)
    if since is not None:
        stmt = stmt.where(column >= since)
    if until is not None:
        stmt = stmt.where(column < until)
    if status is not None:
        stmt = stmt.where(ContentRecord.status == status)
    stmt = stmt.order_by(column.desc() if descending else column.asc(), ContentRecord.created_at.asc())
    if limit:
        stmt = stmt.limit(limit)
    return list(session.execute(stmt).scalars().all())


class JobRunRecorder:
    """Context manager to record a job run lifecycle."""

    def __init__(
        self,
        session: Session,
        *,
        stage: JobStage,
        task_name: str,
        content_id: str | None = None,
        video_id: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        self._session = session
        self._job = JobRun(
            stage=stage,
            status=JobStatus.RUNNING,
            content_id=content_id,
            video_id=video_id,
            task_name=task_name,
            trace_id=trace_id,
            started_at=datetime.now(timezone.utc),
        )

    def __enter__(self) -> JobRun:
        self._session.add(self._job)
        # Durable RUNNING row even if the work below fails
        self._session.commit()
        return self._job

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        if exc is None:
            self._job.status = JobStatus.SUCCEEDED
        else:
            self._job.status = JobStatus.FAILED
            self._job.error_message = str(exc)[:512]
        self._job.finished_at = datetime.now(timezone.utc)
        self._session.add(self._job)
        # Commit the final state before the outer transaction may roll back
        try:
            self._session.commit()
        except Exception:  # pragma: no cover - never mask the original error
            self._session.rollback()
