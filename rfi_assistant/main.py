# =============================================================================
# RFI Assistant — FastAPI Application Factory and Entry Point
# =============================================================================
#
# Run as a server:
#   python -m rfi_assistant.main
#   uvicorn rfi_assistant.main:app --reload --port 3000
#
# The lifespan hook refuses to start when the configured LLM provider has
# no API key.
# =============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rfi_assistant.api import baseline, chat, upload
from rfi_assistant.api.errors import register_error_handlers
from rfi_assistant.config import Settings, get_settings
from rfi_assistant.logging_config import setup_logging
from rfi_assistant.models.responses import HealthResponse

logger = logging.getLogger(__name__)


class MissingAPIKeyError(RuntimeError):
    """The configured provider has no API key; the server refuses to start."""


def check_required_keys(settings: Settings) -> None:
    if settings.llm_provider == "mistral" and not settings.mistral_api_key:
        raise MissingAPIKeyError(
            "MISTRAL_API_KEY is not set. Add it to the environment or .env file."
        )
    if not settings.resolved_llm_api_key:
        raise MissingAPIKeyError(
            f"No API key configured for LLM provider '{settings.llm_provider}'."
        )


@asynccontextmanager
async def lifespan(application: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level)
    check_required_keys(settings)
    logger.info(
        "Starting %s v%s (provider=%s, model=%s)",
        settings.app_name, settings.app_version,
        settings.llm_provider, settings.llm_model,
    )
    yield
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Application factory — create and configure the FastAPI instance."""
    settings = get_settings()

    application = FastAPI(
        title=f"{settings.app_name} API",
        description="Upload an RFI, track its submission requirements and ask questions about it",
        version=settings.app_version,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(application)

    application.include_router(upload.router, prefix="/api")
    application.include_router(chat.router, prefix="/api")
    application.include_router(baseline.router, prefix="/api")

    @application.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            version=settings.app_version,
            service=settings.app_name,
        )

    return application


# Module-level instance for `uvicorn rfi_assistant.main:app`
app = create_app()


def serve() -> None:
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(
        "rfi_assistant.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    serve()
