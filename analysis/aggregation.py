"""Mention aggregation: per-ticker rollups recomputed from content records.

Everything here is pure and synchronous. Inputs may be ORM rows, DTOs or plain
dicts (snake_case or camelCase keys) and are never mutated.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence

from analysis.models.domain import (
    MentionSummary,
    Sentiment,
    SentimentBreakdown,
    TickerAggregate,
    sentiment_label,
)

SortKey = Literal["count", "sentiment"]

_SCORES: Dict[str, int] = {"bullish": 1, "bearish": -1, "neutral": 0}

_FIELD_ALIASES: Dict[str, tuple[str, ...]] = {
    "id": ("id", "content_id", "contentId"),
    "extracted_mentions": ("extracted_mentions", "extractedMentions"),
    "influencer_name": ("influencer_name", "influencerName"),
    "episode_title": ("episode_title", "episodeTitle"),
    "published_at": ("published_at", "publishedAt"),
}

__all__ = [
    "aggregate_mentions",
    "filter_by_sentiment",
    "order_mentions_by_recency",
    "sentiment_breakdown",
    "sentiment_label",
    "sentiment_to_score",
    "sort_aggregates",
]


def sentiment_to_score(sentiment: Optional[str]) -> int:
    """bullish=+1, bearish=-1, anything else 0."""
    return _SCORES.get(str(sentiment or "").lower(), 0)


def _field(record: Any, name: str) -> Any:
    for key in _FIELD_ALIASES.get(name, (name,)):
        if isinstance(record, Mapping):
            if key in record:
                return record[key]
        elif hasattr(record, key):
            return getattr(record, key)
    return None


def _mention_field(mention: Any, name: str) -> Any:
    if isinstance(mention, Mapping):
        return mention.get(name)
    return getattr(mention, name, None)


def _date_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _normalized_sentiment(value: Any) -> Sentiment:
    s = str(value or "").lower()
    return s if s in _SCORES else "neutral"  # type: ignore[return-value]


def aggregate_mentions(
    records: Iterable[Any],
    *,
    sort_by: Optional[SortKey] = "count",
) -> List[TickerAggregate]:
    """Fold every mention of every record into one TickerAggregate per ticker.

    Aggregates are created in first-encountered ticker order and each keeps
    its mentions in encounter order. `sort_by` applies a stable sort on top;
    pass None to keep the encounter order.
    """
    buckets: Dict[str, Dict[str, Any]] = {}
    for record in records:
        content_id = _field(record, "id")
        influencer = _field(record, "influencer_name") or "Unknown"
        episode = _field(record, "episode_title") or "Untitled"
        date = _date_text(_field(record, "published_at"))
        for mention in _field(record, "extracted_mentions") or ():
            # Keyed on the ticker as stored; Mention already normalizes case
            ticker = str(_mention_field(mention, "ticker") or "")
            if not ticker.strip():
                continue
            sentiment = _normalized_sentiment(_mention_field(mention, "sentiment"))
            bucket = buckets.setdefault(ticker, {"sum": 0, "count": 0, "mentions": []})
            bucket["sum"] += sentiment_to_score(sentiment)
            bucket["count"] += 1
            bucket["mentions"].append(
                MentionSummary(
                    content_id=str(content_id) if content_id is not None else None,
                    influencer=str(influencer),
                    episode=str(episode),
                    sentiment=sentiment,
                    context=_mention_field(mention, "context"),
                    date=date,
                )
            )

    aggregates = [
        TickerAggregate(
            ticker=ticker,
            count=b["count"],
            avg_sentiment_score=(b["sum"] / b["count"]) if b["count"] else 0.0,
            mentions=b["mentions"],
        )
        for ticker, b in buckets.items()
    ]
    if sort_by is None:
        return aggregates
    return sort_aggregates(aggregates, by=sort_by)


def sort_aggregates(aggregates: Sequence[TickerAggregate], *, by: SortKey = "count") -> List[TickerAggregate]:
    """Stable sort: `count` desc, or `abs(avg_sentiment_score)` desc."""
    if by == "count":
        return sorted(aggregates, key=lambda a: a.count, reverse=True)
    if by == "sentiment":
        return sorted(aggregates, key=lambda a: abs(a.avg_sentiment_score), reverse=True)
    raise ValueError(f"unknown sort key: {by}")


def filter_by_sentiment(aggregates: Sequence[TickerAggregate], label: str = "all") -> List[TickerAggregate]:
    if label == "all":
        return list(aggregates)
    if label not in _SCORES:
        raise ValueError(f"unknown sentiment filter: {label}")
    return [a for a in aggregates if sentiment_label(a.avg_sentiment_score) == label]


def order_mentions_by_recency(aggregate: TickerAggregate) -> TickerAggregate:
    """Copy of `aggregate` with its mentions newest first; undated mentions last."""
    dated = sorted(
        (m for m in aggregate.mentions if m.date),
        key=lambda m: m.date or "",
        reverse=True,
    )
    undated = [m for m in aggregate.mentions if not m.date]
    return aggregate.model_copy(update={"mentions": dated + undated})


def sentiment_breakdown(aggregates: Sequence[TickerAggregate]) -> SentimentBreakdown:
    """Count mentions, bucketed by the label of the ticker they roll up into."""
    counts = {"bullish": 0, "bearish": 0, "neutral": 0}
    for a in aggregates:
        counts[sentiment_label(a.avg_sentiment_score)] += a.count
    return SentimentBreakdown(total=sum(counts.values()), **counts)
