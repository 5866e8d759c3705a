"""Daily digest: the top tickers and a couple of highlights for one day."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from analysis.aggregation import aggregate_mentions
from api.access import day_bounds, today
from ingestion.repositories.content import list_content

logger = logging.getLogger(__name__)

FREE_DIGEST_DAYS_AGO = 13
TOP_TICKERS = 5
MAX_HIGHLIGHTS = 2


@dataclass(frozen=True)
class DigestTicker:
    ticker: str
    count: int
    score: float


@dataclass(frozen=True)
class DigestHighlight:
    text: str
    source: Optional[str]


@dataclass(frozen=True)
class DailyDigest:
    day: date
    top5: List[DigestTicker] = field(default_factory=list)
    highlights: List[DigestHighlight] = field(default_factory=list)
    link: str = "/dashboard"

    def as_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "top5": [{"ticker": t.ticker, "count": t.count, "score": t.score} for t in self.top5],
            "highlights": [{"text": h.text, "source": h.source} for h in self.highlights],
            "link": self.link,
        }


def digest_day(*, is_pro: bool, now: datetime) -> date:
    current = today(now)
    return current if is_pro else current - timedelta(days=FREE_DIGEST_DAYS_AGO)


def build_daily_digest(session: Session, *, is_pro: bool, now: datetime) -> DailyDigest:
    day = digest_day(is_pro=is_pro, now=now)
    start, end = day_bounds(day)
    records = list_content(session, order_by="published_at", since=start, until=end)

    top = [
        DigestTicker(ticker=a.ticker, count=a.count, score=a.avg_sentiment_score)
        for a in aggregate_mentions(records)[:TOP_TICKERS]
    ]
    highlights: List[DigestHighlight] = []
    for record in records:
        first = next((h for h in record.highlights or [] if h.get("text")), None)
        if first is not None:
            highlights.append(DigestHighlight(text=first["text"], source=record.source_url))
        if len(highlights) >= MAX_HIGHLIGHTS:
            break

    logger.info(
        "digest.built",
        extra={"day": day.isoformat(), "records": len(records), "tickers": len(top), "is_pro": is_pro},
    )
    return DailyDigest(day=day, top5=top, highlights=highlights)
