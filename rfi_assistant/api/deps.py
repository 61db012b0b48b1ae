# =============================================================================
# API Dependencies — Session Resolution and Rate Limiting
# =============================================================================
#
# 1. get_session()         — resolve the X-Session-ID header to a session
# 2. enforce_rate_limit()  — fixed-window per-IP limit for /api/chat
# 3. get_llm()             — the configured LLM provider
#
# DESIGN DECISION: FastAPI dependencies (not middleware).
# Each endpoint opts in via Depends(...), and tests swap any of them out
# through app.dependency_overrides.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import Depends, Header, Request

from rfi_assistant.config import settings
from rfi_assistant.services.baseline import BaselineStore, get_baseline_store
from rfi_assistant.services.llm import LLMProvider, get_llm_provider
from rfi_assistant.services.rate_limiter import check_rate_limit
from rfi_assistant.services.sessions import SessionContext, SessionStore, get_session_store

logger = logging.getLogger(__name__)


def get_store() -> SessionStore:
    return get_session_store()


def get_session(
    x_session_id: str | None = Header(default=None),
    store: SessionStore = Depends(get_store),
) -> SessionContext:
    """
    Session for this request, created on first use.

    A missing or blank X-Session-ID header selects the default session.
    """
    session_id = (x_session_id or "").strip() or settings.default_session_id
    return store.get_or_create(session_id)


async def enforce_rate_limit(request: Request) -> None:
    """
    Raises:
        RateLimitExceeded: mapped to 429 by the error handlers.
    """
    client_ip = request.client.host if request.client else None
    await check_rate_limit(client_ip)


def get_llm() -> LLMProvider:
    return get_llm_provider()


def get_baseline() -> BaselineStore:
    return get_baseline_store()
