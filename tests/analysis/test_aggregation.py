from __future__ import annotations

import copy
from datetime import datetime, timezone

import pytest

from analysis.aggregation import (
    aggregate_mentions,
    filter_by_sentiment,
    order_mentions_by_recency,
    sentiment_breakdown,
    sentiment_to_score,
    sort_aggregates,
)
from analysis.models.domain import TickerAggregate, sentiment_label


def _record(rid: str, mentions, **extra):
    return {"id": rid, "extracted_mentions": mentions, **extra}


def test_opposite_mentions_cancel_out():
    records = [
        _record("r1", [{"ticker": "NVDA", "sentiment": "bullish"}]),
        _record("r2", [{"ticker": "NVDA", "sentiment": "bearish"}]),
    ]

    (nvda,) = aggregate_mentions(records)

    assert nvda.ticker == "NVDA"
    assert nvda.count == 2
    assert nvda.avg_sentiment_score == 0
    assert nvda.sentiment == "neutral"
    assert [m.content_id for m in nvda.mentions] == ["r1", "r2"]


@pytest.mark.parametrize(
    "score,label",
    [(0.2, "neutral"), (-0.2, "neutral"), (0.21, "bullish"), (-0.21, "bearish"), (0.0, "neutral")],
)
def test_label_thresholds_are_exclusive(score, label):
    assert sentiment_label(score) == label


@pytest.mark.parametrize("value,score", [("bullish", 1), ("BEARISH", -1), ("neutral", 0), ("mixed", 0), (None, 0)])
def test_sentiment_to_score(value, score):
    assert sentiment_to_score(value) == score


def test_count_sort_is_stable_for_ties():
    records = [
        _record("r1", [{"ticker": "B", "sentiment": "neutral"}] * 5),
        _record("r2", [{"ticker": "A", "sentiment": "neutral"}] * 5),
        _record("r3", [{"ticker": "C", "sentiment": "neutral"}] * 3),
    ]

    assert [a.ticker for a in aggregate_mentions(records)] == ["B", "A", "C"]
    assert [a.ticker for a in aggregate_mentions(records, sort_by=None)] == ["B", "A", "C"]


def test_sentiment_sort_uses_magnitude():
    records = [
        _record("r1", [{"ticker": "MSFT", "sentiment": "neutral"}] * 4),
        _record("r2", [{"ticker": "TSLA", "sentiment": "bearish"}]),
        _record("r3", [{"ticker": "AAPL", "sentiment": "bullish"}, {"ticker": "AAPL", "sentiment": "neutral"}]),
    ]

    ordered = aggregate_mentions(records, sort_by="sentiment")

    assert [a.ticker for a in ordered] == ["TSLA", "AAPL", "MSFT"]
    with pytest.raises(ValueError):
        sort_aggregates(ordered, by="volume")  # type: ignore[arg-type]


def test_aggregation_is_pure():
    records = [
        _record("r1", [{"ticker": "AAPL", "sentiment": "bullish", "context": "beat"}], influencer_name="Pod"),
        _record("r2", [{"ticker": "", "sentiment": "bullish"}, {"ticker": "AAPL", "sentiment": "weird"}]),
    ]
    snapshot = copy.deepcopy(records)

    first = aggregate_mentions(records)
    second = aggregate_mentions(records)

    assert first == second
    assert records == snapshot
    (aapl,) = first
    assert aapl.count == 2
    assert aapl.avg_sentiment_score == 0.5
    assert [m.sentiment for m in aapl.mentions] == ["bullish", "neutral"]
    assert aapl.mentions[0].influencer == "Pod"
    assert aapl.mentions[1].influencer == "Unknown"
    assert aapl.mentions[1].episode == "Untitled"


def test_accepts_camel_case_records_and_objects():
    class Row:
        id = "row-1"
        extracted_mentions = [{"ticker": "AMD", "sentiment": "bearish"}]
        influencer_name = "Host"
        episode_title = "Ep 1"
        published_at = datetime(2025, 3, 1, tzinfo=timezone.utc)

    records = [
        {
            "contentId": "c-1",
            "extractedMentions": [{"ticker": "AMD", "sentiment": "bearish"}],
            "influencerName": "Camel",
            "episodeTitle": "Ep 2",
            "publishedAt": "2025-03-02",
        },
        Row(),
    ]

    (amd,) = aggregate_mentions(records)

    assert amd.count == 2
    assert amd.sentiment == "bearish"
    assert [m.content_id for m in amd.mentions] == ["c-1", "row-1"]
    assert amd.mentions[0].influencer == "Camel"
    assert amd.mentions[1].date == "2025-03-01T00:00:00+00:00"


def test_no_records_yield_no_aggregates():
    assert aggregate_mentions([]) == []
    assert aggregate_mentions([_record("r1", None)]) == []


def _agg(ticker: str, count: int, score: float) -> TickerAggregate:
    return TickerAggregate(ticker=ticker, count=count, avg_sentiment_score=score)


def test_filter_by_sentiment():
    aggregates = [_agg("A", 1, 1.0), _agg("B", 2, -0.5), _agg("C", 3, 0.2)]

    assert [a.ticker for a in filter_by_sentiment(aggregates, "all")] == ["A", "B", "C"]
    assert [a.ticker for a in filter_by_sentiment(aggregates, "bullish")] == ["A"]
    assert [a.ticker for a in filter_by_sentiment(aggregates, "bearish")] == ["B"]
    assert [a.ticker for a in filter_by_sentiment(aggregates, "neutral")] == ["C"]
    with pytest.raises(ValueError):
        filter_by_sentiment(aggregates, "mixed")


def test_breakdown_counts_mentions_by_rollup_label():
    breakdown = sentiment_breakdown([_agg("A", 1, 1.0), _agg("B", 2, -0.5), _agg("C", 3, 0.2)])

    assert breakdown.as_dict() == {"total": 6, "bullish": 1, "bearish": 2, "neutral": 3}


def test_order_mentions_by_recency_puts_undated_last():
    records = [
        _record("old", [{"ticker": "SPY"}], published_at="2025-01-01"),
        _record("none", [{"ticker": "SPY"}]),
        _record("new", [{"ticker": "SPY"}], published_at="2025-02-01"),
    ]
    (spy,) = aggregate_mentions(records)

    ordered = order_mentions_by_recency(spy)

    assert [m.content_id for m in ordered.mentions] == ["new", "old", "none"]
    assert [m.content_id for m in spy.mentions] == ["old", "none", "new"]


def test_tickers_are_grouped_as_given():
    records = [_record("r1", [{"ticker": "BRK.B", "sentiment": "bullish"}, {"ticker": "brk.b", "sentiment": "bearish"}])]

    assert [(a.ticker, a.count) for a in aggregate_mentions(records)] == [("BRK.B", 1), ("brk.b", 1)]
