# =============================================================================
# Multi-Provider LLM Abstraction — Pluggable AI Backend
# =============================================================================
#
# Provides a common interface for chat completions with concrete
# implementations for Mistral (default), any other OpenAI-compatible API,
# and Anthropic (Claude).
#
# DESIGN DECISION: Native SDKs, no LangChain wrappers.
# Mistral exposes an OpenAI-compatible /v1/chat/completions endpoint, so
# the OpenAI SDK with a custom base_url covers it without a separate SDK.
#
# DESIGN DECISION: Retries belong to an injected RetryPolicy.
# SDK clients are built with max_retries=0; every provider wraps its
# request in `self._retry.run(...)`. Once retries are exhausted, SDK
# errors are translated into the two exceptions the API layer maps to
# HTTP statuses:
#   LLMRateLimitError   → 429 (carries retry_after seconds)
#   LLMUnavailableError → 503 if no response, 500 if the provider errored
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── OpenAICompatibleProvider — Mistral / DeepSeek / OpenAI / ...
#   ├── AnthropicProvider        — Claude via native Anthropic SDK
#   └── get_llm_provider()       — Singleton factory, reads from config
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from rfi_assistant.config import settings
from rfi_assistant.services.retry import RetryPolicy, policy_from_settings, status_code_of

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LLMError(Exception):
    """Base class for upstream model-provider failures."""


class LLMRateLimitError(LLMError):
    """The provider kept answering HTTP 429 after local retries."""

    def __init__(self, message: str, retry_after: int = 60) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class LLMUnavailableError(LLMError):
    """
    The provider could not be used.

    status_code is None when no HTTP response was received at all
    (network failure, timeout).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def translate_upstream_error(exc: Exception, provider: str) -> LLMError:
    """Map an SDK / transport exception to LLMRateLimitError or LLMUnavailableError."""
    code = status_code_of(exc)
    if code == 429:
        return LLMRateLimitError(
            f"{provider} rate limit exceeded",
            retry_after=_retry_after_seconds(exc),
        )
    return LLMUnavailableError(f"{provider} request failed: {exc}", status_code=code)


def _retry_after_seconds(exc: Exception, default: int = 60) -> int:
    """Read Retry-After from the provider response, falling back to a default."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return default
    raw = headers.get("retry-after")
    try:
        return max(int(float(raw)), 1)
    except (TypeError, ValueError):
        return default


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class LLMResponse:
    """
    Standardised response from any LLM provider.

    Normalises the different response formats (Anthropic vs OpenAI)
    into a single structure that downstream code can consume.
    """

    content: str           # The generated text
    model: str             # Model identifier (e.g., "mistral-small-latest")
    input_tokens: int      # Tokens consumed by the prompt
    output_tokens: int     # Tokens generated in the response


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """
    Protocol defining the LLM provider interface.

    Any object with a matching `complete()` works, which keeps agent tests
    free of SDKs (an AsyncMock is enough).
    """

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            messages: Conversation messages as dicts with "role" and "content".
                Roles: "user", "assistant" (no "system" — use the system param).
            system: System prompt for the LLM.
            temperature: Override sampling temperature (default from config).
            max_tokens: Override max output tokens (default from config).
            json_mode: Ask the provider for a JSON object reply where supported.

        Returns:
            LLMResponse with generated text and usage metrics.

        Raises:
            LLMRateLimitError: upstream 429 after retries.
            LLMUnavailableError: any other upstream failure.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation 1: OpenAI-Compatible (Mistral, DeepSeek, OpenAI, ...)
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Provider for any API following the OpenAI chat-completions spec.

    With the default settings this talks to Mistral:
        LLM_PROVIDER=mistral
        MISTRAL_API_KEY=your-key
        LLM_MODEL=mistral-small-latest
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        retry_policy: RetryPolicy | None = None,
        name: str = "openai_compatible",
    ) -> None:
        from openai import AsyncOpenAI

        resolved_key = api_key or settings.resolved_llm_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for the LLM provider. "
                "Set MISTRAL_API_KEY (or LLM_API_KEY) in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key, "max_retries": 0}
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._name = name
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens
        self._retry = retry_policy or policy_from_settings()

        logger.info(
            "Initialized %s provider (model=%s, base_url=%s)",
            self._name,
            self._model,
            base_url or "https://api.openai.com/v1",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a completion using an OpenAI-compatible API."""
        # OpenAI: system prompt goes as the first message
        all_messages: list[dict[str, str]] = []
        if system:
            all_messages.append({"role": "system", "content": system})
        all_messages.extend(messages)

        kwargs: dict = {
            "model": self._model,
            "messages": all_messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._retry.run(
                lambda: self._client.chat.completions.create(**kwargs),
                description=f"{self._name} chat completion",
            )
        except Exception as exc:
            raise translate_upstream_error(exc, self._name) from exc

        content = response.choices[0].message.content or ""

        # Token counts: OpenAI uses different field names than Anthropic
        usage = response.usage
        return LLMResponse(
            content=content,
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


# ---------------------------------------------------------------------------
# Implementation 2: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native SDK.

    KEY API DIFFERENCE: Anthropic takes system prompts as a top-level
    `system=` kwarg, NOT as a message with role "system". It has no JSON
    response mode, so json_mode only appends an instruction to the system
    prompt; the reply is validated downstream either way.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(api_key=resolved_key, max_retries=0)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens
        self._retry = retry_policy or policy_from_settings()

        logger.info("Initialized AnthropicProvider (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a completion using Claude."""
        kwargs: dict = {
            "model": self._model,
            "messages": messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
        }

        system_prompt = system or ""
        if json_mode:
            system_prompt += "\n\nRespond with a single JSON object and nothing else."
        if system_prompt:
            kwargs["system"] = system_prompt.strip()

        try:
            response = await self._retry.run(
                lambda: self._client.messages.create(**kwargs),
                description="anthropic message",
            )
        except Exception as exc:
            raise translate_upstream_error(exc, "anthropic") from exc

        content = ""
        for block in response.content:
            if block.type == "text":
                content = block.text
                break

        return LLMResponse(
            content=content,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

# Lazy singleton — avoid re-creating client on every request
_provider: OpenAICompatibleProvider | AnthropicProvider | None = None


def get_llm_provider() -> OpenAICompatibleProvider | AnthropicProvider:
    """
    Return the configured LLM provider (lazy singleton).

    - "mistral"           → OpenAICompatibleProvider against mistral_base_url
    - "openai_compatible" → OpenAICompatibleProvider against llm_base_url
    - "anthropic"         → AnthropicProvider
    """
    global _provider
    if _provider is None:
        if settings.llm_provider == "anthropic":
            _provider = AnthropicProvider()
        elif settings.llm_provider == "openai_compatible":
            _provider = OpenAICompatibleProvider(base_url=settings.llm_base_url)
        else:
            _provider = OpenAICompatibleProvider(
                base_url=settings.llm_base_url or settings.mistral_base_url,
                name="mistral",
            )
    return _provider
