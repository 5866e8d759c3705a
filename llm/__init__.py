"""LLM module - OpenAI client and settings."""

from llm.client.openai_client import (
    LLMError,
    OpenAIClient,
    PermanentLLMError,
    ProviderFn,
    TransientLLMError,
)
from llm.settings import AnalysisSettings, get_analysis_settings, reset_analysis_settings_cache

__all__ = [
    "LLMError",
    "OpenAIClient",
    "PermanentLLMError",
    "ProviderFn",
    "TransientLLMError",
    "AnalysisSettings",
    "get_analysis_settings",
    "reset_analysis_settings_cache",
]
