from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

import httpx
import openai
from loguru import logger

from research_graph.config import settings
from research_graph.errors import AppError

T = TypeVar("T")


def _retryable_status(status: int | None) -> bool:
    return status is not None and (status >= 500 or status == 429)


def is_retryable(exc: BaseException) -> bool:
    """Network failures, timeouts, 5xx and 429 are worth another attempt; 4xx is not."""
    if isinstance(exc, AppError):
        return exc.retryable
    if isinstance(exc, (httpx.TransportError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return _retryable_status(exc.response.status_code)
    if isinstance(exc, (openai.APIConnectionError, openai.APITimeoutError)):
        return True
    if isinstance(exc, openai.APIStatusError):
        return _retryable_status(exc.status_code)
    return False


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Full-jitter exponential backoff for the given 1-based attempt."""
    ceiling = min(base_delay * (2 ** (attempt - 1)), max_delay)
    return random.uniform(0, ceiling)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float | None = None,
    max_delay: float | None = None,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    label: str = "operation",
) -> T:
    base = settings.retry_base_delay_seconds if base_delay is None else base_delay
    ceiling = settings.retry_max_delay_seconds if max_delay is None else max_delay
    attempts = max(int(max_attempts), 1)

    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as exc:
            if attempt >= attempts or not should_retry(exc):
                raise
            delay = backoff_delay(attempt, base, ceiling)
            logger.warning(
                f"{label} failed (attempt {attempt}/{attempts}), retrying in {delay:.2f}s: {exc}"
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"{label}: retry loop exited without a result")
