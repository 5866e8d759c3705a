"""SQLAlchemy models for content records, users and job runs."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    JSON,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import Uuid

from ingestion.models.domain import ContentStatus


class Base(DeclarativeBase):
    """Base class for ORM models."""


class TimestampMixin:
    """Adds created_at/updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class JobStage(str, Enum):
    INGEST = "ingest"
    PROCESS = "process"
    DIGEST = "digest"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ContentRecord(TimestampMixin, Base):
    """One processed video/episode."""

    __tablename__ = "content"
    __table_args__ = (
        Index("ix_content_published_at", "published_at"),
        Index("ix_content_video_id", "video_id"),
        Index("ix_content_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    video_id: Mapped[str] = mapped_column(String(11), nullable=False)
    youtube_url: Mapped[str | None] = mapped_column(String(2048))
    source_url: Mapped[str | None] = mapped_column(String(2048))
    platform: Mapped[str] = mapped_column(String(32), nullable=False, default="YouTube")
    influencer_name: Mapped[str | None] = mapped_column(String(256))
    episode_title: Mapped[str | None] = mapped_column(String(512))
    channel_subscribers: Mapped[int | None] = mapped_column(Integer)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    published_label: Mapped[str | None] = mapped_column(String(64))
    transcript: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[ContentStatus] = mapped_column(
        SAEnum(ContentStatus, name="content_status", native_enum=False, length=16,
               values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ContentStatus.PENDING,
    )
    error: Mapped[str | None] = mapped_column(String(1024))
    extracted_mentions: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    highlights: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    blog_article: Mapped[str | None] = mapped_column(Text)
    tweet_thread: Mapped[str | None] = mapped_column(Text)
    video_script: Mapped[str | None] = mapped_column(Text)
    notable_timestamps: Mapped[str | None] = mapped_column(Text)


class UserAccount(TimestampMixin, Base):
    """Entitlement record for an identity-provider user."""

    __tablename__ = "users"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320))
    is_pro: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pro_since: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    plan_type: Mapped[str | None] = mapped_column(String(16))
    stripe_customer_id: Mapped[str | None] = mapped_column(String(64), index=True)


class JobRun(TimestampMixin, Base):
    """Represents a single pipeline execution."""

    __tablename__ = "job_runs"
    __table_args__ = (
        Index("ix_job_runs_stage_status", "stage", "status"),
        Index("ix_job_runs_trace", "trace_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    stage: Mapped[JobStage] = mapped_column(
        SAEnum(JobStage, name="job_stage", native_enum=False, length=16),
        nullable=False,
    )
    status: Mapped[JobStatus] = mapped_column(
        SAEnum(JobStatus, name="job_status", native_enum=False, length=16),
        nullable=False,
        default=JobStatus.PENDING,
    )
    content_id: Mapped[str | None] = mapped_column(String(36))
    video_id: Mapped[str | None] = mapped_column(String(11))
    task_name: Mapped[str | None] = mapped_column(String(100))
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[str | None] = mapped_column(String(512))
    trace_id: Mapped[str | None] = mapped_column(String(64))
