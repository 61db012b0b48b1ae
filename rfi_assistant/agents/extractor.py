# =============================================================================
# Requirements Extractor — Initial Requirements Map on Upload
# =============================================================================
#
# Reads the uploaded RFI text and asks the LLM what a good submission must
# contain, as a JSON object:
#   {"requirements": [{"heading": "...", "description": "..."}]}
#
# DESIGN DECISION: Structured output, validated on receipt.
# The reply is checked against a Pydantic schema. On mismatch the model is
# asked again with the validation error appended to the conversation, up to
# structured_output_retries extra attempts. Only when every structured
# attempt fails is the last reply parsed with the markdown bullet parser
# (models that ignore the JSON instruction usually answer in bullets).
#
# DESIGN DECISION: Truncate long documents.
# The prompt carries at most extraction_max_chars characters of text so a
# very long RFI cannot blow the model's context window.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TypeVar

from pydantic import BaseModel

from rfi_assistant.config import settings
from rfi_assistant.services.llm import LLMProvider
from rfi_assistant.services.requirements import (
    RequirementsList,
    RequirementsParseError,
    RequirementsPayload,
    parse_markdown_requirements,
    parse_structured_reply,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class StructuredReply:
    """Outcome of a schema-checked LLM exchange."""

    payload: BaseModel | None  # None when every attempt failed validation
    raw: str                   # Last raw reply, for the markdown fallback
    attempts: int
    model: str
    input_tokens: int
    output_tokens: int


@dataclass
class ExtractionResult:
    requirements: RequirementsList
    summary: str
    structured: bool  # False when the markdown fallback produced the list
    model: str
    input_tokens: int
    output_tokens: int


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

EXTRACTION_SYSTEM_PROMPT = (
    "You are an expert in government procurement helping a vendor respond "
    "to a Request for Information (RFI).\n\n"
    "Read the RFI document and list the requirements a strong RFI response "
    "must address: requested information, submission format, deadlines, "
    "evaluation criteria, eligibility and any mandatory content.\n\n"
    "Rules:\n"
    "- Base every requirement on the document\n"
    "- Use a short, unique heading for each requirement\n"
    "- Keep each description to one or two sentences\n"
    "- Reply with ONLY a JSON object of the form "
    '{"requirements": [{"heading": "...", "description": "..."}]}'
)


# ---------------------------------------------------------------------------
# Structured Exchange
# ---------------------------------------------------------------------------


async def request_structured(
    llm: LLMProvider,
    system: str,
    prompt: str,
    schema: type[T],
    retries: int | None = None,
) -> StructuredReply:
    """
    Ask for a JSON reply matching `schema`, re-asking on validation errors.

    Makes at most 1 + `retries` calls. Each failed reply and its error are
    appended to the conversation so the model can correct itself. Upstream
    errors (LLMRateLimitError, LLMUnavailableError) propagate unchanged.
    """
    max_retries = settings.structured_output_retries if retries is None else retries
    max_attempts = max_retries + 1
    messages: list[dict[str, str]] = [{"role": "user", "content": prompt}]

    input_tokens = output_tokens = 0
    attempt = 0

    while True:
        attempt += 1
        response = await llm.complete(
            messages=messages,
            system=system,
            json_mode=True,
        )
        input_tokens += response.input_tokens
        output_tokens += response.output_tokens

        try:
            payload = parse_structured_reply(response.content, schema)
        except RequirementsParseError as exc:
            logger.warning(
                "Structured reply rejected (attempt %d/%d): %s",
                attempt, max_attempts, exc,
            )
            if attempt >= max_attempts:
                payload = None
            else:
                messages = messages + [
                    {"role": "assistant", "content": response.content},
                    {
                        "role": "user",
                        "content": (
                            f"That reply was invalid: {exc}\n"
                            "Reply again with ONLY the JSON object."
                        ),
                    },
                ]
                continue

        # payload is None once every attempt has been rejected
        return StructuredReply(
            payload=payload,
            raw=response.content,
            attempts=attempt,
            model=response.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def extract_requirements(
    document_text: str,
    llm: LLMProvider,
    max_chars: int | None = None,
) -> ExtractionResult:
    """
    Derive the initial requirements map from the document text.

    The result may be empty (for example when the model found nothing it
    could phrase as a requirement); that is not an error.
    """
    limit = max_chars or settings.extraction_max_chars
    text = document_text
    if len(text) > limit:
        logger.info(
            "Truncating document from %d to %d chars for extraction",
            len(text), limit,
        )
        text = text[:limit]

    reply = await request_structured(
        llm,
        system=EXTRACTION_SYSTEM_PROMPT,
        prompt=f"RFI document:\n\n{text}",
        schema=RequirementsPayload,
    )

    if reply.payload is not None:
        requirements = reply.payload.to_list()
        structured = True
    else:
        logger.warning(
            "Falling back to markdown parsing after %d structured attempts",
            reply.attempts,
        )
        requirements = RequirementsList(parse_markdown_requirements(reply.raw))
        structured = False

    logger.info(
        "Extracted %d requirements (structured=%s, model=%s)",
        len(requirements), structured, reply.model,
    )

    return ExtractionResult(
        requirements=requirements,
        summary=requirements.to_markdown(),
        structured=structured,
        model=reply.model,
        input_tokens=reply.input_tokens,
        output_tokens=reply.output_tokens,
    )
