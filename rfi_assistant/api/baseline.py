# =============================================================================
# Baseline API — Shared Baseline Questions
# =============================================================================
#
#   GET  /api/baseline — {"questions": "..."} ("" before the first save)
#   POST /api/baseline — persist {"questions": "..."}
#
# The baseline is global, not per session.
# =============================================================================

import logging

from fastapi import APIRouter, Depends

from rfi_assistant.api.deps import get_baseline
from rfi_assistant.models.requests import BaselineRequest
from rfi_assistant.models.responses import BaselineResponse
from rfi_assistant.services.baseline import BaselineStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Baseline"])


@router.get("/baseline", response_model=BaselineResponse, summary="Read baseline questions")
async def read_baseline(store: BaselineStore = Depends(get_baseline)) -> BaselineResponse:
    return BaselineResponse(questions=await store.read())


@router.post("/baseline", response_model=BaselineResponse, summary="Save baseline questions")
async def save_baseline(
    request: BaselineRequest,
    store: BaselineStore = Depends(get_baseline),
) -> BaselineResponse:
    await store.write(request.questions)
    return BaselineResponse(questions=request.questions)
