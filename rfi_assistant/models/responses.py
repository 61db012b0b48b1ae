# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of the data going OUT of the API; the contract with the frontend.
#
# DESIGN DECISION: camelCase only where the frontend already expects it.
# "fullRequirements" and "retryAfter" are serialised by alias; everything
# else keeps Python naming. Routes return these models with
# response_model_by_alias (FastAPI's default), so aliases win on the wire.
#
# DESIGN DECISION: Chat replies are a discriminated union on "type".
# The client switches on type == "edit" / "question" instead of sniffing
# which keys are present.
# =============================================================================

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Response for GET /health — confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class RequirementModel(BaseModel):
    """One heading → description entry of the requirements list."""

    heading: str = Field(min_length=1)
    description: str = ""


class RequirementsResponse(BaseModel):
    """Response for GET/PUT /api/requirements."""

    requirements: list[RequirementModel]


class UploadResponse(BaseModel):
    """
    Response for POST /api/upload.

    `summary` is the requirements list rendered as markdown bullets;
    `requirements` is the same list in structured form.
    """

    session_id: str
    filename: str
    page_count: int
    chunks: int = Field(description="Number of chunks indexed for retrieval")
    summary: str
    requirements: list[RequirementModel]


class EditOperation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["add", "remove", "update", "mixed", "none"]
    requirements: list[RequirementModel] = Field(
        description="Entries the edit touched (removed ones for a pure removal)",
    )
    full_requirements: list[RequirementModel] = Field(alias="fullRequirements")
    changes: list[str] = Field(default_factory=list)


class SourceModel(BaseModel):
    excerpt: str
    page_numbers: list[int] = Field(default_factory=list)
    chunk_index: int
    score: float


class ChatEditResponse(BaseModel):
    type: Literal["edit"] = "edit"
    operation: EditOperation


class ChatQuestionResponse(BaseModel):
    type: Literal["question"] = "question"
    response: str
    sources: list[SourceModel] = Field(default_factory=list)


ChatResponse = Annotated[
    ChatEditResponse | ChatQuestionResponse,
    Field(discriminator="type"),
]


class BaselineResponse(BaseModel):
    questions: str = ""


class ErrorResponse(BaseModel):
    """Body of every error reply. retryAfter is only set on 429s."""

    model_config = ConfigDict(populate_by_name=True)

    detail: str
    retry_after: int | None = Field(default=None, alias="retryAfter")
