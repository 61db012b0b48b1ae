# =============================================================================
# Unit Tests — Retry Policy and Upstream Error Translation
# =============================================================================

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from rfi_assistant.services.llm import (
    LLMRateLimitError,
    LLMUnavailableError,
    translate_upstream_error,
)
from rfi_assistant.services.retry import (
    RetryPolicy,
    default_is_retryable,
    exponential_backoff,
    status_code_of,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class _StatusError(Exception):
    def __init__(self, status_code: int, headers: dict | None = None) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.response = MagicMock(status_code=status_code, headers=headers or {})


class TestExponentialBackoff:
    def test_doubles_and_caps(self):
        backoff = exponential_backoff(1.0, 10.0)
        assert [backoff(n) for n in (1, 2, 3, 4, 5)] == [1.0, 2.0, 4.0, 8.0, 10.0]


class TestIsRetryable:
    @pytest.mark.parametrize("code", [429, 500, 502, 503, 504])
    def test_retryable_status(self, code):
        assert default_is_retryable(_StatusError(code))

    @pytest.mark.parametrize("code", [400, 401, 403, 404, 422])
    def test_client_errors_not_retried(self, code):
        assert not default_is_retryable(_StatusError(code))

    def test_timeouts_and_connection_errors(self):
        assert default_is_retryable(httpx.ReadTimeout("slow"))
        assert default_is_retryable(httpx.ConnectError("refused"))
        assert default_is_retryable(ConnectionResetError())

    def test_plain_errors_not_retried(self):
        assert not default_is_retryable(ValueError("bad"))

    def test_status_code_of_plain_exception(self):
        assert status_code_of(RuntimeError("x")) is None


class TestRetryPolicy:
    def _policy(self, attempts: int = 3) -> tuple[RetryPolicy, AsyncMock]:
        sleep = AsyncMock()
        return RetryPolicy(max_attempts=attempts, sleep=sleep), sleep

    def test_success_first_try(self):
        policy, sleep = self._policy()
        op = AsyncMock(return_value="ok")
        assert _run(policy.run(op)) == "ok"
        assert op.await_count == 1
        sleep.assert_not_awaited()

    def test_retries_then_succeeds(self):
        policy, sleep = self._policy()
        op = AsyncMock(side_effect=[_StatusError(503), _StatusError(429), "ok"])
        assert _run(policy.run(op)) == "ok"
        assert op.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    def test_gives_up_after_max_attempts(self):
        policy, _ = self._policy(attempts=3)
        op = AsyncMock(side_effect=_StatusError(500))
        with pytest.raises(_StatusError):
            _run(policy.run(op))
        assert op.await_count == 3

    def test_non_retryable_raises_immediately(self):
        policy, sleep = self._policy()
        op = AsyncMock(side_effect=_StatusError(401))
        with pytest.raises(_StatusError):
            _run(policy.run(op))
        assert op.await_count == 1
        sleep.assert_not_awaited()

    def test_max_attempts_validated(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestTranslateUpstreamError:
    def test_429_becomes_rate_limit_with_retry_after(self):
        err = translate_upstream_error(_StatusError(429, {"retry-after": "12"}), "mistral")
        assert isinstance(err, LLMRateLimitError)
        assert err.retry_after == 12

    def test_429_without_header_uses_default(self):
        err = translate_upstream_error(_StatusError(429), "mistral")
        assert isinstance(err, LLMRateLimitError)
        assert err.retry_after == 60

    def test_status_error_keeps_code(self):
        err = translate_upstream_error(_StatusError(500), "mistral")
        assert isinstance(err, LLMUnavailableError)
        assert err.status_code == 500

    def test_network_error_has_no_status(self):
        err = translate_upstream_error(httpx.ConnectError("refused"), "mistral")
        assert isinstance(err, LLMUnavailableError)
        assert err.status_code is None
