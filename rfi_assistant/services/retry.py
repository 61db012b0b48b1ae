# =============================================================================
# Retry Policy — Bounded Retries for Upstream Calls
# =============================================================================
#
# A small policy object injected into the LLM and embedding clients.
# It owns three decisions:
#   1. max_attempts — total tries including the first one
#   2. backoff(n)   — seconds to wait after the n-th failed attempt
#   3. is_retryable — which exceptions are worth another try
#
# The SDK clients are created with max_retries=0 so this policy is the
# only place retries happen. Defaults: 3 attempts, exponential backoff
# (1s, 2s, 4s, ...) capped at 10 seconds, retry on HTTP 429, HTTP 5xx,
# timeouts and connection errors.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx

from rfi_assistant.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}


def status_code_of(exc: BaseException) -> int | None:
    """
    Best-effort HTTP status code of an SDK exception.

    Both the openai and anthropic SDKs raise APIStatusError subclasses
    carrying `status_code`; httpx raises HTTPStatusError with `.response`.
    """
    code = getattr(exc, "status_code", None)
    if isinstance(code, int):
        return code
    response = getattr(exc, "response", None)
    code = getattr(response, "status_code", None)
    return code if isinstance(code, int) else None


def default_is_retryable(exc: BaseException) -> bool:
    """Retry on rate limits, server errors, timeouts and dropped connections."""
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, ConnectionError):
        return True
    # SDK connection errors (openai.APIConnectionError, anthropic.APIConnectionError)
    if type(exc).__name__ in {"APIConnectionError", "APITimeoutError"}:
        return True
    code = status_code_of(exc)
    return code in _RETRYABLE_STATUS


def exponential_backoff(
    base_delay: float,
    max_delay: float,
) -> Callable[[int], float]:
    """Return backoff(attempt) = min(base * 2^(attempt-1), max_delay)."""

    def _backoff(attempt: int) -> float:
        return min(base_delay * (2 ** max(attempt - 1, 0)), max_delay)

    return _backoff


@dataclass
class RetryPolicy:
    """Bounded retry with pluggable backoff and retryable predicate."""

    max_attempts: int = 3
    backoff: Callable[[int], float] = field(
        default_factory=lambda: exponential_backoff(1.0, 10.0),
    )
    is_retryable: Callable[[BaseException], bool] = default_is_retryable
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "upstream call",
    ) -> T:
        """
        Await `operation()` until it succeeds or the policy gives up.

        The last exception is re-raised unchanged once attempts are
        exhausted, or immediately if it is not retryable.
        """
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as exc:
                if attempt >= self.max_attempts or not self.is_retryable(exc):
                    raise
                delay = self.backoff(attempt)
                logger.warning(
                    "%s failed (attempt %d/%d): %s. Retrying in %.1fs",
                    description, attempt, self.max_attempts, exc, delay,
                )
                await self.sleep(delay)
                attempt += 1


def policy_from_settings() -> RetryPolicy:
    """Build the process-wide default policy from configuration."""
    return RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        backoff=exponential_backoff(
            settings.retry_base_delay, settings.retry_max_delay,
        ),
    )
