# =============================================================================
# Chat API — Edit Instructions, Questions and the Requirements List
# =============================================================================
#
# ENDPOINTS:
#   POST /api/chat          — route a message to the editor or the answerer
#   GET  /api/requirements  — current requirements list of the session
#   PUT  /api/requirements  — replace the list directly
#
# /api/chat is rate limited per client IP (enforce_rate_limit) and needs a
# document in the session (409 otherwise). The reply is a union on "type":
#   {"type": "edit", "operation": {...}}
#   {"type": "question", "response": "...", "sources": [...]}
# =============================================================================

import logging

from fastapi import APIRouter, Depends, HTTPException

from rfi_assistant.agents.orchestrator import chat
from rfi_assistant.api.deps import enforce_rate_limit, get_llm, get_session
from rfi_assistant.api.errors import error_responses
from rfi_assistant.config import settings
from rfi_assistant.models.requests import ChatRequest, SetRequirementsRequest
from rfi_assistant.models.responses import (
    ChatEditResponse,
    ChatQuestionResponse,
    ChatResponse,
    EditOperation,
    RequirementModel,
    RequirementsResponse,
    SourceModel,
)
from rfi_assistant.services.llm import LLMProvider
from rfi_assistant.services.requirements import RequirementEntry, RequirementsList
from rfi_assistant.services.sessions import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])


def _models(entries: list[RequirementEntry]) -> list[RequirementModel]:
    return [RequirementModel(heading=e.heading, description=e.description) for e in entries]


# ---------------------------------------------------------------------------
# POST /api/chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=ChatResponse,
    summary="Edit the requirements or ask about the RFI",
    responses=error_responses(400, 409, 429, 502, 503),
    dependencies=[Depends(enforce_rate_limit)],
)
async def chat_endpoint(
    request: ChatRequest,
    session: SessionContext = Depends(get_session),
    llm: LLMProvider = Depends(get_llm),
) -> ChatEditResponse | ChatQuestionResponse:
    message = request.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message must not be empty.")
    if len(request.message) > settings.max_message_length:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Message is too long ({len(request.message)} characters, "
                f"maximum {settings.max_message_length})."
            ),
        )

    if not session.has_document:
        raise HTTPException(
            status_code=409,
            detail="No document uploaded for this session. Upload an RFI first.",
        )

    state = await chat(message, session, llm=llm)

    edit_result = state.get("edit_result")
    if edit_result is not None:
        return ChatEditResponse(
            operation=EditOperation(
                type=edit_result.operation_type,
                requirements=_models(edit_result.affected),
                full_requirements=_models(edit_result.full_requirements.entries()),
                changes=edit_result.changes,
            )
        )

    answer_result = state["answer_result"]
    return ChatQuestionResponse(
        response=answer_result.answer,
        sources=[SourceModel(**s) for s in answer_result.sources],
    )


# ---------------------------------------------------------------------------
# GET / PUT /api/requirements
# ---------------------------------------------------------------------------


@router.get(
    "/requirements",
    response_model=RequirementsResponse,
    summary="Current requirements list",
)
async def get_requirements(
    session: SessionContext = Depends(get_session),
) -> RequirementsResponse:
    return RequirementsResponse(requirements=_models(session.requirements.entries()))


@router.put(
    "/requirements",
    response_model=RequirementsResponse,
    summary="Replace the requirements list",
    responses=error_responses(400),
)
async def set_requirements(
    request: SetRequirementsRequest,
    session: SessionContext = Depends(get_session),
) -> RequirementsResponse:
    entries = [
        RequirementEntry(item.heading.strip(), item.description.strip())
        for item in request.requirements
    ]
    if any(not e.heading for e in entries):
        raise HTTPException(status_code=400, detail="Requirement headings must not be empty.")

    async with session.lock:
        session.requirements = RequirementsList(entries)

    logger.info(
        "Session %s requirements replaced directly (%d entries)",
        session.session_id, len(session.requirements),
    )
    return RequirementsResponse(requirements=_models(session.requirements.entries()))
