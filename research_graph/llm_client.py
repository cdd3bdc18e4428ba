"""OpenRouter LLM client factory (OpenAI-compatible SDK)."""
from __future__ import annotations

from typing import Any

from research_graph.config import Settings, settings


def get_client(config: Settings | None = None) -> Any:
    """Build an AsyncOpenAI client pointed at OpenRouter.

    SDK-level retries are disabled; callers wrap requests in ``with_retry`` so
    backoff and the retryable/non-retryable split live in one place.
    """
    from openai import AsyncOpenAI

    config = config or settings
    base_url = config.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    return AsyncOpenAI(
        api_key=config.openrouter_api_key or "missing",
        base_url=base_url,
        max_retries=0,
        timeout=config.analysis_timeout_seconds,
    )
