from __future__ import annotations

import pytest

from analysis.models.domain import ARTICLE_KINDS
from analysis.prompts.templates import (
    build_article_messages,
    build_extraction_messages,
    trim_transcript,
)


def test_extraction_messages_ask_for_json():
    msgs = build_extraction_messages("We like NVDA here.", max_chars=1000)

    assert [m["role"] for m in msgs] == ["system", "user"]
    assert "JSON" in msgs[0]["content"]
    assert msgs[1]["content"] == "We like NVDA here."


@pytest.mark.parametrize("kind", ARTICLE_KINDS)
def test_every_article_kind_has_a_prompt(kind):
    msgs = build_article_messages(kind, "transcript", max_chars=100)

    assert msgs[0]["role"] == "system"
    assert msgs[0]["content"]
    assert msgs[1]["content"] == "transcript"


def test_unknown_article_kind_rejected():
    with pytest.raises(ValueError):
        build_article_messages("podcast_notes", "transcript", max_chars=100)  # type: ignore[arg-type]


def test_trim_prefers_word_boundary():
    text = "one two three four five six"

    assert trim_transcript(text, 100) == text
    assert trim_transcript(text, 25) == "one two three four five"
    assert trim_transcript("x" * 50, 10) == "x" * 10
