# =============================================================================
# Unit Tests — Chat Rate Limiter
# =============================================================================
#
# Redis is mocked via _get_rate_limit_redis; no server needed.
# =============================================================================

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from rfi_assistant.services.rate_limiter import RateLimitExceeded, check_rate_limit


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _mock_redis(count: int) -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[count, True])
    redis = MagicMock()
    redis.pipeline.return_value = pipe
    return redis


class TestCheckRateLimit:
    def test_under_limit_passes(self):
        redis = _mock_redis(count=1)
        with patch(
            "rfi_assistant.services.rate_limiter._get_rate_limit_redis",
            return_value=redis,
        ):
            _run(check_rate_limit("10.0.0.1"))

        pipe = redis.pipeline.return_value
        key = pipe.incr.call_args.args[0]
        assert key.startswith("ratelimit:chat:10.0.0.1:")
        pipe.pexpire.assert_called_once()

    def test_at_limit_passes(self):
        with (
            patch("rfi_assistant.services.rate_limiter.settings") as mock_settings,
            patch(
                "rfi_assistant.services.rate_limiter._get_rate_limit_redis",
                return_value=_mock_redis(count=30),
            ),
        ):
            mock_settings.rate_limit_max_requests = 30
            mock_settings.rate_limit_window_ms = 60000
            _run(check_rate_limit("10.0.0.1"))

    def test_over_limit_raises_with_retry_after(self):
        with (
            patch("rfi_assistant.services.rate_limiter.settings") as mock_settings,
            patch(
                "rfi_assistant.services.rate_limiter._get_rate_limit_redis",
                return_value=_mock_redis(count=31),
            ),
        ):
            mock_settings.rate_limit_max_requests = 30
            mock_settings.rate_limit_window_ms = 60000
            with pytest.raises(RateLimitExceeded) as exc_info:
                _run(check_rate_limit("10.0.0.1"))

        assert exc_info.value.limit == 30
        assert 1 <= exc_info.value.retry_after <= 60

    def test_redis_failure_allows_request(self):
        redis = MagicMock()
        redis.pipeline.side_effect = ConnectionError("redis down")
        with patch(
            "rfi_assistant.services.rate_limiter._get_rate_limit_redis",
            return_value=redis,
        ):
            _run(check_rate_limit("10.0.0.1"))

    def test_unknown_client_skipped(self):
        with patch(
            "rfi_assistant.services.rate_limiter._get_rate_limit_redis",
        ) as get_redis:
            _run(check_rate_limit(None))
        get_redis.assert_not_called()
