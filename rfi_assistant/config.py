# =============================================================================
# Application Configuration — Pydantic Settings
# =============================================================================
#
# All runtime configuration lives here, loaded by Pydantic V2's
# `BaseSettings` in this priority order (highest first):
#   1. Environment variables (e.g., `MISTRAL_API_KEY=...`)
#   2. Values from the .env file
#   3. Default values defined below
#
# Environment variable names are the upper-case field names, so
# `rate_limit_window_ms` is read from `RATE_LIMIT_WINDOW_MS`.
#
# USAGE:
#   from rfi_assistant.config import settings
#   print(settings.llm_model)
# =============================================================================

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Defaults target local development against the hosted Mistral API.
    Only MISTRAL_API_KEY (or LLM_API_KEY) has to be provided.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "RFI Assistant"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = ["*"]

    # -------------------------------------------------------------------------
    # API Keys — External Services
    # -------------------------------------------------------------------------
    # MISTRAL_API_KEY is required when llm_provider is "mistral" (the
    # default). The app refuses to start without it, see main.lifespan.
    # -------------------------------------------------------------------------
    mistral_api_key: str = ""
    anthropic_api_key: str = ""

    # -------------------------------------------------------------------------
    # LLM Configuration — Multi-Provider
    # -------------------------------------------------------------------------
    # Providers:
    #   - "mistral": Mistral's OpenAI-compatible endpoint (default)
    #   - "openai_compatible": any other OpenAI-compatible API
    #   - "anthropic": Claude via the native Anthropic SDK
    #
    # Example configs:
    #   Mistral:   provider=mistral, model=mistral-small-latest
    #   DeepSeek:  provider=openai_compatible, base_url=https://api.deepseek.com/v1, model=deepseek-chat
    #   Claude:    provider=anthropic, model=claude-sonnet-4-6
    # -------------------------------------------------------------------------
    llm_provider: str = "mistral"  # "mistral", "openai_compatible", "anthropic"
    llm_base_url: str | None = None  # Defaults to mistral_base_url for "mistral"
    llm_api_key: str | None = None   # Overrides provider-specific key if set
    llm_model: str = "mistral-small-latest"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 4096
    mistral_base_url: str = "https://api.mistral.ai/v1"

    # Schema-mismatch retries for JSON replies (extraction and edits).
    # Independent from the transport retry policy below.
    structured_output_retries: int = 2

    # Documents longer than this are truncated before the extraction prompt
    extraction_max_chars: int = 60_000

    # -------------------------------------------------------------------------
    # Retry Policy — upstream LLM / embedding calls
    # -------------------------------------------------------------------------
    # Exponential backoff: base * 2^(attempt-1), capped at retry_max_delay.
    # Retries on HTTP 429, 5xx, timeouts and connection errors only.
    # -------------------------------------------------------------------------
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 10.0

    # -------------------------------------------------------------------------
    # Embedding Configuration
    # -------------------------------------------------------------------------
    # mistral-embed returns 1024-dim vectors and has no `dimensions`
    # parameter, so embedding_dimensions stays unset for Mistral.
    # -------------------------------------------------------------------------
    embedding_model: str = "mistral-embed"
    embedding_base_url: str | None = None  # Defaults to mistral_base_url
    embedding_api_key: str | None = None
    embedding_dimensions: int | None = None
    embedding_batch_size: int = 32

    # -------------------------------------------------------------------------
    # Chunking & Retrieval
    # -------------------------------------------------------------------------
    chunk_size: int = 512
    chunk_overlap: int = 50
    retrieval_top_k: int = 5

    # -------------------------------------------------------------------------
    # Uploads & Baseline Questions
    # -------------------------------------------------------------------------
    upload_dir: str = "data/uploads"
    max_upload_mb: int = 25
    baseline_path: str = "data/baseline.json"

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------
    # Each X-Session-ID gets its own requirements list and vector index.
    # Idle sessions are evicted after session_ttl_seconds.
    # -------------------------------------------------------------------------
    session_ttl_seconds: int = 3600
    max_sessions: int = 100
    default_session_id: str = "default"

    # -------------------------------------------------------------------------
    # Chat Validation & Rate Limiting
    # -------------------------------------------------------------------------
    # Fixed window per client IP, applied to POST /api/chat only.
    # Counters live in Redis db 2; if Redis is unreachable the limiter
    # lets requests through.
    # -------------------------------------------------------------------------
    max_message_length: int = 1000
    rate_limit_window_ms: int = 60_000
    rate_limit_max_requests: int = 30
    rate_limit_redis_url: str = "redis://localhost:6379/2"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def resolved_llm_api_key(self) -> str:
        """API key for the configured chat provider ("" if none)."""
        if self.llm_api_key:
            return self.llm_api_key
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return self.mistral_api_key


@lru_cache
def get_settings() -> Settings:
    """
    Create and cache a Settings instance.

    Tests build Settings(...) directly, or patch attributes of the
    module-level `settings` object where a module reads it:
        patch("rfi_assistant.api.upload.settings.max_upload_mb", 0)
    """
    return Settings()


# Module-level convenience instance:
#   from rfi_assistant.config import settings
settings = get_settings()
