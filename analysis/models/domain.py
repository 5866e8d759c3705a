"""DTOs for the extraction stage and the mention rollups.

Pydantic v2 schemas that normalize what the LLM returns before it is
persisted, and the derived (never persisted) per-ticker aggregates.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

Sentiment = Literal["bullish", "bearish", "neutral"]
ArticleKind = Literal["blog_article", "tweet_thread", "video_script", "notable_timestamps"]

ARTICLE_KINDS: tuple[ArticleKind, ...] = (
    "blog_article",
    "tweet_thread",
    "video_script",
    "notable_timestamps",
)

BULLISH_THRESHOLD = 0.2
BEARISH_THRESHOLD = -0.2


def sentiment_label(score: float) -> Sentiment:
    """Label a continuous score; both thresholds are exclusive, so ±0.2 stays neutral."""
    if score > BULLISH_THRESHOLD:
        return "bullish"
    if score < BEARISH_THRESHOLD:
        return "bearish"
    return "neutral"


class Mention(BaseModel):
    """One ticker reference inside a content record."""

    ticker: str = Field(..., max_length=16)
    sentiment: Sentiment = "neutral"
    timestamps: List[int] = Field(default_factory=list)
    context: Optional[str] = None

    @field_validator("ticker")
    @classmethod
    def _ticker_upper(cls, v: str) -> str:
        s = v.strip().lstrip("$").upper()
        if not s:
            raise ValueError("ticker must not be blank.")
        return s

    @field_validator("sentiment", mode="before")
    @classmethod
    def _coerce_sentiment(cls, v: Any) -> str:
        s = str(v or "").strip().lower()
        return s if s in ("bullish", "bearish", "neutral") else "neutral"

    @field_validator("timestamps", mode="before")
    @classmethod
    def _int_timestamps(cls, v: Any) -> List[int]:
        if not v:
            return []
        if not isinstance(v, (list, tuple)):
            v = [v]
        out: List[int] = []
        for item in v:
            try:
                out.append(max(0, int(float(item))))
            except (TypeError, ValueError):
                continue
        return out


class Highlight(BaseModel):
    start_sec: float = Field(0.0, ge=0.0)
    end_sec: Optional[float] = Field(None, ge=0.0)
    text: str

    @field_validator("text")
    @classmethod
    def _strip(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("highlight text must not be blank.")
        return s


class ExtractionResult(BaseModel):
    """Structured output of the extraction collaborator."""

    mentions: List[Mention] = Field(default_factory=list)
    highlights: List[Highlight] = Field(default_factory=list)
    malformed: bool = Field(False, description="True when the reply did not parse and lists were defaulted")

    # LLM meta
    llm_model: str = ""
    llm_tokens_prompt: int = Field(0, ge=0)
    llm_tokens_completion: int = Field(0, ge=0)
    llm_cost: float = Field(0.0, ge=0.0)

    @classmethod
    def from_payload(cls, data: Any, **meta: Any) -> "ExtractionResult":
        """Build from a decoded JSON reply, dropping entries that fail validation."""
        if not isinstance(data, dict):
            return cls(malformed=True, **meta)
        mentions: List[Mention] = []
        for raw in data.get("mentions") or []:
            if not isinstance(raw, dict):
                continue
            try:
                mentions.append(Mention.model_validate(raw))
            except ValueError:
                continue
        highlights: List[Highlight] = []
        for raw in data.get("highlights") or []:
            if not isinstance(raw, dict):
                continue
            normalized = {
                "start_sec": raw.get("start_sec", raw.get("startSec", 0.0)),
                "end_sec": raw.get("end_sec", raw.get("endSec")),
                "text": raw.get("text") or "",
            }
            try:
                highlights.append(Highlight.model_validate(normalized))
            except ValueError:
                continue
        return cls(mentions=mentions, highlights=highlights, **meta)


class MentionSummary(BaseModel):
    """A contributing mention as shown under a ticker rollup."""

    content_id: Optional[str] = None
    influencer: str = "Unknown"
    episode: str = "Untitled"
    sentiment: Sentiment
    context: Optional[str] = None
    date: Optional[str] = None


class TickerAggregate(BaseModel):
    ticker: str
    count: int = Field(..., ge=0)
    avg_sentiment_score: float = Field(..., ge=-1.0, le=1.0)
    mentions: List[MentionSummary] = Field(default_factory=list)

    @property
    def sentiment(self) -> Sentiment:
        return sentiment_label(self.avg_sentiment_score)


class SentimentBreakdown(BaseModel):
    total: int = 0
    bullish: int = 0
    bearish: int = 0
    neutral: int = 0

    def as_dict(self) -> Dict[str, int]:
        return self.model_dump()
