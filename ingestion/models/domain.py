"""Domain DTOs for the ingestion pipeline."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


class CaptionEntry(BaseModel):
    """One timed caption line."""

    text: str
    start_seconds: float = Field(..., ge=0.0)
    end_seconds: float = Field(..., ge=0.0)


class VideoMetadata(BaseModel):
    """Best-effort metadata scraped for a video; every field may be missing."""

    video_id: str
    title: Optional[str] = None
    channel_title: Optional[str] = None
    published_label: Optional[str] = Field(None, description="Human readable date text from the watch page")
    published_at: Optional[datetime] = None
    channel_subscribers: Optional[int] = Field(None, ge=0)


class ContentRecordDTO(BaseModel):
    """Read model of a processed video, as handed to the aggregator and the API."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    video_id: str = Field(..., min_length=11, max_length=11)
    youtube_url: Optional[str] = None
    source_url: Optional[str] = None
    platform: str = "YouTube"
    influencer_name: Optional[str] = None
    episode_title: Optional[str] = None
    channel_subscribers: Optional[int] = None
    published_at: Optional[datetime] = None
    published_label: Optional[str] = None
    transcript: str = ""
    status: ContentStatus = ContentStatus.PENDING
    error: Optional[str] = None
    extracted_mentions: List[Dict[str, Any]] = Field(default_factory=list)
    highlights: List[Dict[str, Any]] = Field(default_factory=list)
    blog_article: Optional[str] = None
    tweet_thread: Optional[str] = None
    video_script: Optional[str] = None
    notable_timestamps: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("transcript", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Optional[str]) -> str:
        return v or ""

    @field_validator("extracted_mentions", "highlights", mode="before")
    @classmethod
    def _none_to_list(cls, v: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        return list(v or [])
