# =============================================================================
# Unit Tests — Embedding Service
# =============================================================================
#
# The AsyncOpenAI client is replaced by a MagicMock; no network or keys.
# =============================================================================

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from rfi_assistant.services import embedder
from rfi_assistant.services.llm import LLMUnavailableError
from rfi_assistant.services.retry import RetryPolicy


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _reply(vectors: dict[int, list[float]]) -> SimpleNamespace:
    # Items deliberately returned in reverse index order
    return SimpleNamespace(data=[
        SimpleNamespace(index=i, embedding=v) for i, v in sorted(vectors.items(), reverse=True)
    ])


def _client(*replies) -> MagicMock:
    client = MagicMock()
    client.embeddings.create = AsyncMock(side_effect=list(replies))
    return client


class TestEmbedBatch:
    def test_empty_input(self):
        assert _run(embedder.embed_batch([])) == []

    def test_order_follows_input_across_batches(self):
        client = _client(
            _reply({0: [0.0], 1: [1.0]}),
            _reply({0: [2.0]}),
        )
        with (
            patch.object(embedder, "_get_client", return_value=client),
            patch.object(embedder, "_get_retry_policy", return_value=RetryPolicy(max_attempts=1)),
        ):
            result = _run(embedder.embed_batch(["a", "b", "c"], batch_size=2))

        assert result == [[0.0], [1.0], [2.0]]
        assert client.embeddings.create.await_count == 2
        assert client.embeddings.create.call_args_list[0].kwargs["input"] == ["a", "b"]

    def test_upstream_failure_translated(self):
        client = _client(ConnectionError("refused"))
        with (
            patch.object(embedder, "_get_client", return_value=client),
            patch.object(embedder, "_get_retry_policy", return_value=RetryPolicy(max_attempts=1)),
        ):
            with pytest.raises(LLMUnavailableError) as exc_info:
                _run(embedder.embed_query("deadline"))
        assert exc_info.value.status_code is None

    def test_embed_query_returns_single_vector(self):
        client = _client(_reply({0: [0.5, 0.5]}))
        with (
            patch.object(embedder, "_get_client", return_value=client),
            patch.object(embedder, "_get_retry_policy", return_value=RetryPolicy(max_attempts=1)),
        ):
            assert _run(embedder.embed_query("deadline")) == [0.5, 0.5]
