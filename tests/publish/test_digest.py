from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from ingestion.db.session import init_schema, session_scope
from ingestion.models.domain import ContentStatus
from ingestion.repositories.content import create_content
from ingestion.settings import reset_settings_cache
from publish.digest import build_daily_digest, digest_day

NOW = datetime(2025, 3, 20, 16, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _db(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("POSTGRES_DSN", f"sqlite:///{tmp_path / 'digest.db'}")
    monkeypatch.setenv("INGESTION_REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setenv("DASHBOARD_TIMEZONE", "America/New_York")
    reset_settings_cache()
    init_schema()
    yield
    reset_settings_cache()


def _seed(published_at: datetime, tickers, highlights=(), source="https://www.youtube.com/watch?v=dQw4w9WgXcQ"):
    with session_scope() as session:
        create_content(
            session,
            video_id="dQw4w9WgXcQ",
            source_url=source,
            published_at=published_at,
            status=ContentStatus.COMPLETE,
            extracted_mentions=[{"ticker": t, "sentiment": s} for t, s in tickers],
            highlights=[{"start_sec": 0, "text": h} for h in highlights],
        )


def test_digest_day_depends_on_plan():
    assert digest_day(is_pro=True, now=NOW) == date(2025, 3, 20)
    assert digest_day(is_pro=False, now=NOW) == date(2025, 3, 7)


def test_pro_digest_covers_today():
    _seed(datetime(2025, 3, 20, 14, 0, tzinfo=timezone.utc), [("NVDA", "bullish"), ("TSLA", "bearish")], ["first", "second"])
    _seed(datetime(2025, 3, 20, 15, 0, tzinfo=timezone.utc), [("NVDA", "bullish")], ["", "third"], source="https://x/2")
    _seed(datetime(2025, 3, 20, 15, 30, tzinfo=timezone.utc), [("AMD", "neutral")], ["fourth"])
    # 01:00 UTC on the 20th is still the 19th in New York
    _seed(datetime(2025, 3, 20, 1, 0, tzinfo=timezone.utc), [("SPY", "neutral")], ["yesterday"])

    with session_scope() as session:
        digest = build_daily_digest(session, is_pro=True, now=NOW).as_dict()

    assert digest["date"] == "2025-03-20"
    assert digest["link"] == "/dashboard"
    assert [t["ticker"] for t in digest["top5"]] == ["NVDA", "TSLA", "AMD"]
    assert digest["top5"][0] == {"ticker": "NVDA", "count": 2, "score": 1.0}
    assert digest["highlights"] == [
        {"text": "first", "source": "https://www.youtube.com/watch?v=dQw4w9WgXcQ"},
        {"text": "third", "source": "https://x/2"},
    ]


def test_free_digest_is_thirteen_days_back():
    _seed(datetime(2025, 3, 20, 14, 0, tzinfo=timezone.utc), [("NVDA", "bullish")], ["today"])
    _seed(datetime(2025, 3, 7, 18, 0, tzinfo=timezone.utc), [("AAPL", "bearish")], ["older"])

    with session_scope() as session:
        digest = build_daily_digest(session, is_pro=False, now=NOW)

    assert digest.day == date(2025, 3, 7)
    assert [t.ticker for t in digest.top5] == ["AAPL"]
    assert [h.text for h in digest.highlights] == ["older"]


def test_empty_day_yields_empty_digest():
    with session_scope() as session:
        digest = build_daily_digest(session, is_pro=True, now=NOW)

    assert digest.top5 == []
    assert digest.highlights == []
