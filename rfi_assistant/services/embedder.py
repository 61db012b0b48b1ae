# =============================================================================
# Embedding Service — Batch Vector Generation (Provider-Agnostic)
# =============================================================================
#
# Generates embeddings through any OpenAI-compatible embeddings endpoint.
# By default that is Mistral's /v1/embeddings with `mistral-embed`.
#
# DESIGN DECISION: AsyncOpenAI + the shared RetryPolicy.
# Embedding runs inside FastAPI handlers (upload and every question), so
# it is async. Rate limits and network errors are retried by the policy;
# once it gives up, errors are translated the same way as chat calls.
#
# TOKEN LIMITS:
# - mistral-embed accepts up to 8k tokens per input
# - We batch embedding_batch_size texts per API call (default 32)
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence

from openai import AsyncOpenAI

from rfi_assistant.config import settings
from rfi_assistant.services.llm import translate_upstream_error
from rfi_assistant.services.retry import RetryPolicy, policy_from_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Embedding Client — Lazy Singleton
# ---------------------------------------------------------------------------
# API key resolution order:
#   1. EMBEDDING_API_KEY
#   2. LLM_API_KEY
#   3. MISTRAL_API_KEY
# ---------------------------------------------------------------------------

_client: AsyncOpenAI | None = None
_retry: RetryPolicy | None = None


def _get_client() -> AsyncOpenAI:
    """Lazily initialize and cache the embedding client."""
    global _client
    if _client is None:
        resolved_key = (
            settings.embedding_api_key
            or settings.llm_api_key
            or settings.mistral_api_key
        )
        if not resolved_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set MISTRAL_API_KEY or EMBEDDING_API_KEY in .env"
            )

        base_url = settings.embedding_base_url or settings.mistral_base_url
        _client = AsyncOpenAI(api_key=resolved_key, base_url=base_url, max_retries=0)

        logger.info(
            "Initialized embedding client (model=%s, base_url=%s)",
            settings.embedding_model,
            base_url,
        )
    return _client


def _get_retry_policy() -> RetryPolicy:
    global _retry
    if _retry is None:
        _retry = policy_from_settings()
    return _retry


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def embed_batch(
    texts: Sequence[str],
    batch_size: int | None = None,
) -> list[list[float]]:
    """
    Generate embeddings for a batch of texts.

    Processes texts in sub-batches and returns embeddings in the SAME
    ORDER as the input texts.

    Raises:
        ValueError: If no embedding API key is configured.
        LLMRateLimitError / LLMUnavailableError: upstream failure after retries.
    """
    if not texts:
        return []

    client = _get_client()
    retry = _get_retry_policy()
    _batch_size = batch_size or settings.embedding_batch_size

    all_embeddings: list[list[float]] = [[] for _ in texts]

    for i in range(0, len(texts), _batch_size):
        batch = list(texts[i : i + _batch_size])
        logger.debug(
            "Embedding batch %d–%d of %d texts (model=%s)",
            i + 1,
            min(i + _batch_size, len(texts)),
            len(texts),
            settings.embedding_model,
        )

        create_kwargs: dict = {
            "model": settings.embedding_model,
            "input": batch,
        }
        if settings.embedding_dimensions:
            create_kwargs["dimensions"] = settings.embedding_dimensions

        try:
            response = await retry.run(
                lambda: client.embeddings.create(**create_kwargs),
                description="embedding batch",
            )
        except Exception as exc:
            raise translate_upstream_error(exc, "embeddings") from exc

        # Order by response index; a mismatch would silently corrupt retrieval
        for item in sorted(response.data, key=lambda x: x.index):
            all_embeddings[i + item.index] = item.embedding

    logger.info(
        "Generated %d embeddings (model=%s)",
        len(texts),
        settings.embedding_model,
    )
    return all_embeddings


async def embed_query(text: str) -> list[float]:
    """Embed a single query string."""
    result = await embed_batch([text], batch_size=1)
    return result[0]
