"""Transcript strategy abstraction, errors, and text helpers."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional

_WS = re.compile(r"\s+")


class ConnectorError(Exception):
    """Base connector error."""


class TransientError(ConnectorError):
    """One attempt failed; other attempts may still work (network, rate limit)."""


class PermanentError(ConnectorError):
    """Non-retryable error."""


class StrategyUnavailable(PermanentError):
    """The whole strategy cannot work for this video; skip its remaining attempts."""


class TranscriptUnavailable(ConnectorError):
    """Every strategy was exhausted without producing text."""

    def __init__(self, video_id: str):
        super().__init__(f"No transcript available for video {video_id}")
        self.video_id = video_id


def join_transcript(texts: Iterable[Optional[str]]) -> str:
    """Join caption texts with single spaces, collapse whitespace, trim."""
    return _WS.sub(" ", " ".join(t for t in texts if t)).strip()


AttemptCall = Callable[[], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class Attempt:
    """One independently fault-isolated try within the cascade."""

    strategy: str
    label: str
    call: AttemptCall


class TranscriptStrategy(ABC):
    """A distinct mechanism for retrieving a caption track.

    Subclasses expand into an ordered list of attempts for one video; the
    cascade runs them with first-success semantics.
    """

    name: str

    @abstractmethod
    def attempts(self, video_id: str) -> List[Attempt]:
        """Return this strategy's attempts for `video_id`, in priority order."""
