"""Read paths behind the dashboard routes.

Every function loads the records in scope and recomputes the rollups with the
mention aggregator; nothing derived is stored.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, List

from sqlalchemy.orm import Session

from analysis.aggregation import (
    aggregate_mentions,
    filter_by_sentiment,
    order_mentions_by_recency,
    sentiment_breakdown,
    sort_aggregates,
)
from analysis.models.domain import TickerAggregate, sentiment_label
from ingestion.db.models import ContentRecord
from ingestion.repositories.content import get_content, list_content

from .access import (
    DASHBOARD_DAYS,
    DayLocked,
    dashboard_days,
    day_bounds,
    ensure_day_unlocked,
    local_date,
    record_visible,
    today,
    within_timeframe,
)
from .models import (
    ContentDetail,
    ContentSummary,
    DashboardDayOut,
    DashboardOverview,
    DayDetail,
    TickerAggregateOut,
    TickerDetail,
    TopTicker,
    TrendingResponse,
)

TOP_TICKERS_PER_DAY = 3


def _summary_fields(record: ContentRecord) -> dict:
    return {
        "id": str(record.id),
        "video_id": record.video_id,
        "source_url": record.source_url,
        "influencer_name": record.influencer_name,
        "episode_title": record.episode_title,
        "published_at": record.published_at,
        "status": record.status,
        "extracted_mentions": list(record.extracted_mentions or []),
        "highlights": list(record.highlights or []),
    }


def to_summary(record: ContentRecord) -> ContentSummary:
    return ContentSummary(**_summary_fields(record))


def to_detail(record: ContentRecord) -> ContentDetail:
    return ContentDetail(
        **_summary_fields(record),
        youtube_url=record.youtube_url,
        platform=record.platform,
        channel_subscribers=record.channel_subscribers,
        published_label=record.published_label,
        error=record.error,
        blog_article=record.blog_article,
        tweet_thread=record.tweet_thread,
        video_script=record.video_script,
        notable_timestamps=record.notable_timestamps,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def to_aggregate_out(aggregate: TickerAggregate) -> TickerAggregateOut:
    return TickerAggregateOut(
        ticker=aggregate.ticker,
        count=aggregate.count,
        avg_sentiment_score=aggregate.avg_sentiment_score,
        sentiment=aggregate.sentiment,
        mentions=aggregate.mentions,
    )


def _percent(part: int, total: int) -> int:
    return round(part * 100 / total) if total else 0


def dashboard_overview(session: Session, *, is_pro: bool, now: datetime) -> DashboardOverview:
    current = today(now)
    days = dashboard_days(current, is_pro)
    since, _ = day_bounds(current - timedelta(days=DASHBOARD_DAYS - 1))
    _, until = day_bounds(current)
    by_day: Dict[date, List[ContentRecord]] = defaultdict(list)
    for record in list_content(session, order_by="published_at", since=since, until=until):
        if record.published_at is not None:
            by_day[local_date(record.published_at)].append(record)

    out: List[DashboardDayOut] = []
    for d in days:
        row = DashboardDayOut(
            day_index=d.day_index,
            date=d.day,
            is_locked=d.is_locked,
            is_free_day=d.is_free_day,
        )
        if not d.is_locked:
            aggregates = aggregate_mentions(by_day.get(d.day, []))
            breakdown = sentiment_breakdown(aggregates)
            row.ticker_count = breakdown.total
            row.bullish_percent = _percent(breakdown.bullish, breakdown.total)
            row.bearish_percent = _percent(breakdown.bearish, breakdown.total)
            row.top_tickers = [
                TopTicker(ticker=a.ticker, sentiment=sentiment_label(a.avg_sentiment_score))
                for a in aggregates[:TOP_TICKERS_PER_DAY]
            ]
        out.append(row)
    return DashboardOverview(today=current, is_pro=is_pro, days=out)


def day_detail(session: Session, day: date, *, is_pro: bool, now: datetime) -> DayDetail:
    """Records published on `day` and their rollups; raises DayLocked for free callers outside the window."""
    ensure_day_unlocked(day, today(now), is_pro)
    start, end = day_bounds(day)
    records = list_content(session, order_by="published_at", since=start, until=end)
    return DayDetail(
        date=day,
        is_pro=is_pro,
        content=[to_summary(r) for r in records],
        tickers=[to_aggregate_out(a) for a in aggregate_mentions(records)],
    )


def trending(
    session: Session,
    *,
    timeframe: str,
    sort: str,
    sentiment: str,
    is_pro: bool,
    now: datetime,
) -> TrendingResponse:
    records = [
        r
        for r in list_content(session, order_by="published_at")
        if record_visible(r.published_at, now, is_pro) and within_timeframe(r.published_at, now, timeframe)
    ]
    aggregates = filter_by_sentiment(aggregate_mentions(records, sort_by=sort), sentiment)  # type: ignore[arg-type]
    return TrendingResponse(
        timeframe=timeframe,  # type: ignore[arg-type]
        sort=sort,  # type: ignore[arg-type]
        sentiment=sentiment,  # type: ignore[arg-type]
        is_pro=is_pro,
        breakdown=sentiment_breakdown(aggregates).as_dict(),
        tickers=[to_aggregate_out(order_mentions_by_recency(a)) for a in aggregates],
    )


def _mentions_ticker(record: ContentRecord, ticker: str) -> bool:
    return any(
        str(m.get("ticker") or "").upper() == ticker for m in record.extracted_mentions or [] if isinstance(m, dict)
    )


def ticker_detail(session: Session, ticker: str, *, is_pro: bool, now: datetime) -> TickerDetail:
    """Records mentioning `ticker` in the last 14 days; free callers get only the oldest."""
    symbol = ticker.strip().lstrip("$").upper()
    since, _ = day_bounds(today(now) - timedelta(days=DASHBOARD_DAYS - 1))
    records = [
        r for r in list_content(session, order_by="published_at", since=since) if _mentions_ticker(r, symbol)
    ]
    visible = records if is_pro else records[:1]
    return TickerDetail(
        ticker=symbol,
        is_pro=is_pro,
        total_records=len(records),
        content=[to_summary(r) for r in visible],
        upgrade_required=not is_pro and len(records) > 1,
    )


def content_detail(session: Session, content_id: str, *, is_pro: bool, now: datetime) -> ContentDetail:
    record = get_content(session, content_id)
    if not record_visible(record.published_at, now, is_pro):
        raise DayLocked(local_date(record.published_at) if record.published_at else today(now))
    return to_detail(record)
