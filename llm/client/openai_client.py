"""OpenAI LLM client wrapper.

- `extract`: JSON-mode call, parsed into an ExtractionResult
- `generate_article`: free-text derived article for one of four kinds
- retries, timeout and a per-request cost ceiling
- provider injection so tests never touch the network
"""

from __future__ import annotations

import json
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from analysis.models.domain import ARTICLE_KINDS, ArticleKind, ExtractionResult
from analysis.prompts.templates import build_article_messages, build_extraction_messages
from llm.settings import AnalysisSettings, get_analysis_settings


class LLMError(Exception):
    """Base error for LLM calls."""


class TransientLLMError(LLMError):
    """Retryable failure."""


class PermanentLLMError(LLMError):
    """Non-retryable failure."""


ProviderFn = Callable[[Dict[str, Any]], Dict[str, Any]]


_PRICE_PER_1K_TOKENS_USD: Dict[str, Dict[str, float]] = {
    "gpt-4o-mini": {"prompt": 0.00015, "completion": 0.0006},
    "gpt-4o": {"prompt": 0.0025, "completion": 0.0100},
    "gpt-4.1": {"prompt": 0.0020, "completion": 0.0080},
}


def _estimate_cost_usd(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    price = _PRICE_PER_1K_TOKENS_USD.get(model, _PRICE_PER_1K_TOKENS_USD["gpt-4o-mini"])
    return (
        (prompt_tokens / 1000.0) * price["prompt"]
        + (completion_tokens / 1000.0) * price["completion"]
    )


def _estimate_tokens_from_messages(messages: List[dict]) -> int:
    """Conservative length-based token estimate."""
    total_chars = 0
    for message in messages:
        content = message.get("content", "") if isinstance(message, dict) else ""
        total_chars += len(str(content))
    return max(1, math.ceil(total_chars / 4))


def _message_content(resp: Dict[str, Any]) -> str:
    choices = resp.get("choices") or [{}]
    return (choices[0].get("message") or {}).get("content") or ""


@dataclass(frozen=True)
class _Completion:
    content: str
    model: str
    prompt_tokens: int
    completion_tokens: int
    cost: float


@dataclass(frozen=True)
class OpenAIClient:
    settings: AnalysisSettings
    provider: Optional[ProviderFn] = None

    @classmethod
    def from_env(cls, provider: Optional[ProviderFn] = None) -> "OpenAIClient":
        return cls(get_analysis_settings(), provider=provider)

    def _get_provider(self) -> ProviderFn:
        if self.provider is not None:
            return self.provider
        from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI, RateLimitError

        client = OpenAI(
            api_key=self.settings.openai_api_key,
            timeout=float(self.settings.analysis_request_timeout_seconds),
            max_retries=0,
        )

        def _call(payload: Dict[str, Any]) -> Dict[str, Any]:  # pragma: no cover - network
            try:
                resp = client.chat.completions.create(**payload)
            except (APIConnectionError, APITimeoutError, RateLimitError) as exc:
                raise TransientLLMError(str(exc)) from exc
            except APIStatusError as exc:
                if exc.status_code >= 500:
                    raise TransientLLMError(str(exc)) from exc
                raise PermanentLLMError(str(exc)) from exc
            return {
                "choices": [{"message": {"content": resp.choices[0].message.content}}],
                "usage": {
                    "prompt_tokens": getattr(resp.usage, "prompt_tokens", 0),
                    "completion_tokens": getattr(resp.usage, "completion_tokens", 0),
                },
                "model": resp.model,
            }

        return _call

    def _complete(self, payload: Dict[str, Any]) -> _Completion:
        """Call the provider with retries on TransientLLMError."""
        max_tokens = int(payload.get("max_tokens") or self.settings.analysis_max_tokens)
        estimated = _estimate_cost_usd(
            payload["model"], _estimate_tokens_from_messages(payload["messages"]), max_tokens
        )
        if estimated > float(self.settings.analysis_cost_limit_usd):
            raise PermanentLLMError("estimated LLM cost exceeds the per-request limit")

        provider = self._get_provider()
        max_attempts = int(self.settings.analysis_retry_max_attempts)
        attempts = 0
        last_exc: Optional[Exception] = None
        start = time.monotonic()
        while attempts <= max_attempts:
            attempts += 1
            try:
                resp = provider(payload)
                model = resp.get("model") or self.settings.analysis_model
                usage = resp.get("usage") or {}
                prompt_tokens = int(usage.get("prompt_tokens", 0))
                completion_tokens = int(usage.get("completion_tokens", 0))
                cost = _estimate_cost_usd(model, prompt_tokens, completion_tokens)
                if cost > float(self.settings.analysis_cost_limit_usd):
                    raise PermanentLLMError("LLM cost exceeds the per-request limit")
                return _Completion(_message_content(resp), model, prompt_tokens, completion_tokens, cost)
            except TransientLLMError as exc:
                last_exc = exc
                continue
            finally:
                elapsed = time.monotonic() - start
                if elapsed > float(self.settings.analysis_request_timeout_seconds):
                    raise TransientLLMError("LLM request timed out")

        assert last_exc is not None
        raise TransientLLMError(f"LLM retry limit exceeded: {last_exc}")

    def extract(self, transcript: str) -> ExtractionResult:
        """Extract ticker mentions and highlights.

        A reply that is not a JSON object yields `malformed=True` with empty
        lists instead of an error; invalid entries are dropped one by one.
        """
        payload = {
            "model": self.settings.analysis_model,
            "messages": build_extraction_messages(
                transcript, max_chars=int(self.settings.transcript_max_chars)
            ),
            "temperature": float(self.settings.analysis_temperature),
            "max_tokens": int(self.settings.extraction_max_tokens),
            "response_format": {"type": "json_object"},
        }
        completion = self._complete(payload)
        meta = {
            "llm_model": completion.model,
            "llm_tokens_prompt": completion.prompt_tokens,
            "llm_tokens_completion": completion.completion_tokens,
            "llm_cost": completion.cost,
        }
        try:
            data = json.loads(completion.content)
        except (json.JSONDecodeError, TypeError):
            return ExtractionResult(malformed=True, **meta)
        return ExtractionResult.from_payload(data, **meta)

    def generate_article(self, kind: ArticleKind, transcript: str) -> str:
        if kind not in ARTICLE_KINDS:
            raise PermanentLLMError(f"unknown article kind: {kind}")
        payload = {
            "model": self.settings.analysis_model,
            "messages": build_article_messages(
                kind, transcript, max_chars=int(self.settings.transcript_max_chars)
            ),
            "temperature": float(self.settings.analysis_temperature),
            "max_tokens": int(self.settings.analysis_max_tokens),
        }
        return self._complete(payload).content.strip()
