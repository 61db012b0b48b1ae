# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of the JSON bodies coming INTO the API. Length limits on the chat
# message are checked in the route (against settings.max_message_length)
# so the 400 carries a readable message instead of a validation dump.
# =============================================================================

from pydantic import BaseModel, Field

from rfi_assistant.models.responses import RequirementModel


class ChatRequest(BaseModel):
    """
    Request body for POST /api/chat.

    Example:
        {"message": "Add a requirement about cost analysis"}
    """

    message: str = Field(
        ...,
        description="An edit instruction or a question about the RFI",
        examples=["What is the RFI deadline?"],
    )


class SetRequirementsRequest(BaseModel):
    """Request body for PUT /api/requirements — replaces the whole list."""

    requirements: list[RequirementModel]


class BaselineRequest(BaseModel):
    """Request body for POST /api/baseline."""

    questions: str = Field(
        ...,
        description="Free-text baseline questions, one per line",
    )
