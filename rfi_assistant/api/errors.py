# =============================================================================
# Error Handlers — Domain Exceptions to HTTP Responses
# =============================================================================
#
# Services and agents raise domain exceptions; this module is the only
# place that turns them into status codes.
#
#   RequestValidationError     → 400
#   DocumentParseError         → 422
#   RateLimitExceeded (local)  → 429 + Retry-After
#   LLMRateLimitError          → 429 + Retry-After
#   RequirementsParseError     → 502
#   LLMUnavailableError        → 503 (no response) / 500 (error status)
#   anything else              → 500, logged with traceback
#
# Every error body is {"detail": "..."}; 429s add "retryAfter".
# =============================================================================

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rfi_assistant.models.responses import ErrorResponse
from rfi_assistant.services.llm import LLMRateLimitError, LLMUnavailableError
from rfi_assistant.services.parser import DocumentParseError
from rfi_assistant.services.rate_limiter import RateLimitExceeded
from rfi_assistant.services.requirements import RequirementsParseError

logger = logging.getLogger(__name__)

_ERROR_DESCRIPTIONS = {
    400: "Invalid request",
    409: "No document uploaded in this session",
    413: "Upload too large",
    422: "No extractable text in the PDF",
    429: "Rate limited; see retryAfter",
    502: "The model reply could not be used",
    503: "The language model is unavailable",
}


def error_responses(*status_codes: int) -> dict[int | str, dict]:
    """OpenAPI `responses=` metadata documenting ErrorResponse bodies."""
    return {
        code: {"model": ErrorResponse, "description": _ERROR_DESCRIPTIONS[code]}
        for code in status_codes
    }



def _error(status_code: int, detail: str, retry_after: int | None = None) -> JSONResponse:
    body = ErrorResponse(detail=detail, retry_after=retry_after)
    headers = None
    if retry_after is not None:
        headers = {"Retry-After": str(retry_after)}
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers=headers,
    )


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request")
        detail = f"{location}: {message}" if location else message
    else:
        detail = "Invalid request"
    return _error(400, detail)


async def _document_parse_error(request: Request, exc: DocumentParseError) -> JSONResponse:
    logger.warning("Document parse failed: %s", exc)
    return _error(422, str(exc))


async def _local_rate_limit(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return _error(429, str(exc), retry_after=exc.retry_after)


async def _llm_rate_limit(request: Request, exc: LLMRateLimitError) -> JSONResponse:
    logger.warning("Upstream rate limit: %s (retry after %ds)", exc, exc.retry_after)
    return _error(
        429,
        "The language model is rate limited. Please try again shortly.",
        retry_after=exc.retry_after,
    )


async def _requirements_parse_error(
    request: Request, exc: RequirementsParseError
) -> JSONResponse:
    logger.warning("Unusable model output: %s", exc)
    return _error(502, str(exc))


async def _llm_unavailable(request: Request, exc: LLMUnavailableError) -> JSONResponse:
    logger.error("LLM unavailable: %s (status=%s)", exc, exc.status_code)
    if exc.status_code is None:
        return _error(503, "The language model service is unreachable.")
    return _error(500, "The language model service returned an error.")


async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(DocumentParseError, _document_parse_error)
    app.add_exception_handler(RateLimitExceeded, _local_rate_limit)
    app.add_exception_handler(LLMRateLimitError, _llm_rate_limit)
    app.add_exception_handler(RequirementsParseError, _requirements_parse_error)
    app.add_exception_handler(LLMUnavailableError, _llm_unavailable)
    app.add_exception_handler(Exception, _unhandled)
