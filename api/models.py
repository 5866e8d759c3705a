from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from analysis.models.domain import MentionSummary, Sentiment
from ingestion.models.domain import ContentStatus

Timeframe = Literal["7d", "30d", "90d", "all"]
SortBy = Literal["count", "sentiment"]
SentimentFilter = Literal["all", "bullish", "bearish", "neutral"]
PlanType = Literal["monthly", "annual"]


class IngestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    youtube_url: str = Field(..., alias="youtubeUrl", min_length=1)


class IngestResponse(BaseModel):
    success: bool = True
    content_id: str
    video_id: str
    transcript_length: int
    title: str | None = None
    channel: str | None = None


class ProcessRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content_id: str = Field(..., alias="contentId", min_length=1)


class ProcessResponse(BaseModel):
    success: bool = True
    content_id: str
    status: ContentStatus
    mentions: int
    highlights: int


class MentionOut(BaseModel):
    ticker: str
    sentiment: Sentiment = "neutral"
    timestamps: list[int] = Field(default_factory=list)
    context: str | None = None


class HighlightOut(BaseModel):
    start_sec: float = 0.0
    end_sec: float | None = None
    text: str


class ContentSummary(BaseModel):
    id: str
    video_id: str
    source_url: str | None = None
    influencer_name: str | None = None
    episode_title: str | None = None
    published_at: datetime | None = None
    status: ContentStatus
    extracted_mentions: list[MentionOut] = Field(default_factory=list)
    highlights: list[HighlightOut] = Field(default_factory=list)


class ContentDetail(ContentSummary):
    youtube_url: str | None = None
    platform: str = "YouTube"
    channel_subscribers: int | None = None
    published_label: str | None = None
    error: str | None = None
    blog_article: str | None = None
    tweet_thread: str | None = None
    video_script: str | None = None
    notable_timestamps: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TickerAggregateOut(BaseModel):
    ticker: str
    count: int
    avg_sentiment_score: float
    sentiment: Sentiment
    mentions: list[MentionSummary] = Field(default_factory=list)


class TopTicker(BaseModel):
    ticker: str
    sentiment: Sentiment


class DashboardDayOut(BaseModel):
    day_index: int
    date: date
    is_locked: bool
    is_free_day: bool
    ticker_count: int = 0
    bullish_percent: int = 0
    bearish_percent: int = 0
    top_tickers: list[TopTicker] = Field(default_factory=list)


class DashboardOverview(BaseModel):
    today: date
    is_pro: bool
    days: list[DashboardDayOut]


class DayDetail(BaseModel):
    date: date
    is_pro: bool
    content: list[ContentSummary]
    tickers: list[TickerAggregateOut]


class TrendingResponse(BaseModel):
    timeframe: Timeframe
    sort: SortBy
    sentiment: SentimentFilter
    is_pro: bool
    breakdown: dict[str, int]
    tickers: list[TickerAggregateOut]


class TickerDetail(BaseModel):
    ticker: str
    is_pro: bool
    total_records: int
    content: list[ContentSummary]
    upgrade_required: bool = False


class DigestTickerOut(BaseModel):
    ticker: str
    count: int
    score: float


class DigestHighlightOut(BaseModel):
    text: str
    source: str | None = None


class DigestResponse(BaseModel):
    date: date
    top5: list[DigestTickerOut]
    highlights: list[DigestHighlightOut]
    link: str


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., min_length=3)
    user_id: str = Field(..., alias="userId", min_length=1)
    plan_type: PlanType = Field("monthly", alias="planType")


class CheckoutResponse(BaseModel):
    session_id: str | None = None
    url: str | None = None


class PortalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(..., alias="customerId", min_length=1)


class PortalResponse(BaseModel):
    url: str | None = None


class ProStatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_pro: bool = Field(..., alias="isPro")


class ProStatusResponse(BaseModel):
    uid: str
    is_pro: bool
    pro_since: datetime | None = None
    plan_type: str | None = None
