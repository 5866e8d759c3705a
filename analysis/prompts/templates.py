"""Prompt templates and builders.

The extraction prompt asks for strict JSON (mentions + highlights); the article
prompts ask for plain Markdown/text recaps of the transcript.
"""

from __future__ import annotations

from typing import Dict, List

from analysis.models.domain import ArticleKind

EXTRACTION_SCHEMA_SNIPPET = (
    "{\n"
    '  "mentions": [\n'
    '    { "ticker": string, "sentiment": "bullish"|"bearish"|"neutral", "timestamps": number[], "context": string }\n'
    "  ],\n"
    '  "highlights": [\n'
    '    { "startSec": number, "endSec"?: number, "text": string }\n'
    "  ]\n"
    "}"
)

EXTRACTION_SYSTEM = (
    "You extract ONLY structured data from a finance transcript. Reply with STRICT JSON only, no prose.\n\n"
    f"Schema:\n{EXTRACTION_SCHEMA_SNIPPET}\n\n"
    "Guidelines:\n"
    "- Tickers MUST be real symbols explicitly mentioned. Use uppercase.\n"
    '- sentiment must reflect stated sentiment in the transcript; if unclear, use "neutral".\n'
    "- timestamps: approximate seconds from episode start when the ticker was discussed.\n"
    "- context: one short sentence of what was said about the ticker.\n"
    "- highlights: 5-12 top quotes or moments with startSec (approx) and short text."
)

ARTICLE_SYSTEMS: Dict[ArticleKind, str] = {
    "blog_article": (
        "You are a financial note-taker summarizing a podcast transcript for readers who want to know "
        "exactly what was discussed, without interpretation or generic summaries.\n\n"
        "Output Markdown with these sections:\n"
        "## Episode Summary\n"
        "### Key Discussion Points\n"
        "### Stocks/Sectors Mentioned  ([Ticker] - what was said about it)\n"
        "### Notable Quotes\n"
        "### Sentiment From Hosts  (bullish, bearish, neutral or mixed, only if explicitly stated)\n"
        "### Source\n\n"
        "Only include details explicitly discussed in the episode. Do not add opinions."
    ),
    "tweet_thread": (
        "You are summarizing the literal content of a finance podcast in a 6-10 tweet thread.\n"
        "- Start with the most striking hook from the episode.\n"
        "- Each tweet carries one specific detail, quote, ticker or debated question.\n"
        "- Include 1-2 direct quotes where impactful.\n"
        "- No interpretation or conclusions. Each tweet is 280 characters or less.\n"
        '- The final tweet is: "Full episode: [link]"'
    ),
    "video_script": (
        "You are writing a 90-second short-form video script that recaps a finance podcast exactly as discussed.\n"
        "1. Hook (first 5s): a real quote or bold claim from the podcast.\n"
        "2. 3-5 sections (15-25s each) covering key segments, with names, tickers and quotes.\n"
        "3. After each section add a visual cue such as [Visual: NVDA stock chart].\n"
        "Do not editorialize."
    ),
    "notable_timestamps": (
        "Extract only the most important timestamps from a financial podcast transcript as a chronological list.\n"
        "Format each line as: - **[MM:SS]** - brief factual description\n"
        "Capture bold claims, ticker symbols (e.g. $NVDA), specific numbers and material news or guidance.\n"
        "Exclude filler and do not add interpretation."
    ),
}


def trim_transcript(transcript: str, max_chars: int) -> str:
    """Cut the transcript to `max_chars`, preferring a word boundary."""
    text = transcript.strip()
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    space = cut.rfind(" ")
    if space > max_chars * 0.8:
        cut = cut[:space]
    return cut


def build_extraction_messages(transcript: str, *, max_chars: int) -> List[dict]:
    return [
        {"role": "system", "content": EXTRACTION_SYSTEM},
        {"role": "user", "content": trim_transcript(transcript, max_chars)},
    ]


def build_article_messages(kind: ArticleKind, transcript: str, *, max_chars: int) -> List[dict]:
    try:
        system = ARTICLE_SYSTEMS[kind]
    except KeyError as exc:
        raise ValueError(f"unknown article kind: {kind}") from exc
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": trim_transcript(transcript, max_chars)},
    ]
