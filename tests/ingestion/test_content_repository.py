from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from ingestion.db.models import JobRun, JobStage, JobStatus
from ingestion.db.session import init_schema, session_scope
from ingestion.models.domain import ContentRecordDTO, ContentStatus
from ingestion.repositories.content import (
    ContentNotFound,
    JobRunRecorder,
    create_content,
    get_content,
    list_content,
    update_content_fields,
)
from ingestion.settings import reset_settings_cache


@pytest.fixture(autouse=True)
def _env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("POSTGRES_DSN", f"sqlite:///{tmp_path / 'content.db'}")
    reset_settings_cache()
    init_schema()
    yield
    reset_settings_cache()


def test_create_get_and_update_fields():
    with session_scope() as session:
        record = create_content(session, video_id="dQw4w9WgXcQ", transcript="Hello world")
        content_id = str(record.id)
        created_at = record.created_at
        updated_at = record.updated_at

    time.sleep(0.01)
    with session_scope() as session:
        updated = update_content_fields(
            session,
            content_id,
            {"status": ContentStatus.COMPLETE, "extracted_mentions": [{"ticker": "NVDA", "sentiment": "bullish"}]},
        )
        assert updated.updated_at > updated_at

    with session_scope() as session:
        dto = ContentRecordDTO.model_validate(get_content(session, content_id))

    assert dto.status == ContentStatus.COMPLETE
    assert dto.transcript == "Hello world"
    assert dto.extracted_mentions == [{"ticker": "NVDA", "sentiment": "bullish"}]
    assert dto.created_at is not None
    assert created_at is not None


def test_immutable_and_unknown_fields_are_rejected():
    with session_scope() as session:
        content_id = str(create_content(session, video_id="dQw4w9WgXcQ").id)

    with session_scope() as session:
        with pytest.raises(ValueError):
            update_content_fields(session, content_id, {"video_id": "xxxxxxxxxxx"})
        with pytest.raises(ValueError):
            update_content_fields(session, content_id, {"not_a_field": 1})


def test_get_content_unknown_or_malformed_id():
    with session_scope() as session:
        with pytest.raises(ContentNotFound):
            get_content(session, "00000000-0000-0000-0000-000000000000")
        with pytest.raises(ContentNotFound):
            get_content(session, "not-a-uuid")


def test_list_content_orders_and_bounds_by_field():
    base = datetime(2025, 6, 1, 12, tzinfo=timezone.utc)
    with session_scope() as session:
        for offset, vid in [(2, "bbbbbbbbbbb"), (0, "aaaaaaaaaaa"), (5, "ccccccccccc")]:
            create_content(session, video_id=vid, published_at=base + timedelta(days=offset))

    with session_scope() as session:
        ascending = [r.video_id for r in list_content(session, order_by="published_at")]
        descending = [r.video_id for r in list_content(session, order_by="published_at", descending=True)]
        window = [
            r.video_id
            for r in list_content(
                session,
                order_by="published_at",
                since=base + timedelta(days=1),
                until=base + timedelta(days=5),
            )
        ]

    assert ascending == ["aaaaaaaaaaa", "bbbbbbbbbbb", "ccccccccccc"]
    assert descending == ["ccccccccccc", "bbbbbbbbbbb", "aaaaaaaaaaa"]
    assert window == ["bbbbbbbbbbb"]

    with session_scope() as session:
        with pytest.raises(ValueError):
            list_content(session, order_by="transcript")


def test_job_run_recorder_marks_failure():
    with session_scope() as session:
        with pytest.raises(RuntimeError):
            with JobRunRecorder(session, stage=JobStage.PROCESS, task_name="process_content", content_id="c1"):
                raise RuntimeError("llm down")

    with session_scope() as session:
        job = session.query(JobRun).one()
        assert job.status == JobStatus.FAILED
        assert job.error_message == "llm down"
        assert job.finished_at is not None
