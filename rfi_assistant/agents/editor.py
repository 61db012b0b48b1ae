# =============================================================================
# Requirements Editor — Apply a Chat Instruction to the Requirements Map
# =============================================================================
#
# The editor sends the current list plus the user's instruction to the LLM
# and asks for the FULL updated list and a short change summary:
#   {"requirements": [...], "changes": ["..."]}
#
# Fallback chain when no structured attempt validates:
#   1. Split the last reply on its FIRST blank line: the first part is the
#      markdown list, the rest is the change summary.
#   2. No blank line: the whole reply is the list and the change summary
#      comes from diffing against the previous list.
#
# DESIGN DECISION: Edits are all-or-nothing.
# edit_requirements() never mutates the caller's list. It returns a new one
# and the caller swaps it in. A reply that parses to an empty list while
# the current list is non-empty is treated as unusable output
# (RequirementsParseError) rather than "delete everything".
# =============================================================================

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from rfi_assistant.agents.extractor import request_structured
from rfi_assistant.services.llm import LLMProvider
from rfi_assistant.services.requirements import (
    EditPayload,
    RequirementEntry,
    RequirementsList,
    RequirementsParseError,
    diff_requirements,
    parse_markdown_requirements,
)

logger = logging.getLogger(__name__)

_BLANK_LINE_RE = re.compile(r"\n\s*\n")


@dataclass
class EditResult:
    operation_type: str  # add | remove | update | mixed | none
    affected: list[RequirementEntry]
    full_requirements: RequirementsList
    changes: list[str] = field(default_factory=list)
    structured: bool = True
    model: str = ""


EDITOR_SYSTEM_PROMPT = (
    "You maintain the list of requirements for a vendor's response to a "
    "government Request for Information (RFI).\n\n"
    "Apply the user's instruction to the current list.\n\n"
    "Rules:\n"
    "- Return the COMPLETE updated list, including unchanged requirements\n"
    "- Keep the original order; append new requirements at the end\n"
    "- Do not drop requirements the instruction does not mention\n"
    "- Describe each change in one short sentence in \"changes\"\n"
    "- Reply with ONLY a JSON object of the form "
    '{"requirements": [{"heading": "...", "description": "..."}], '
    '"changes": ["..."]}'
)


async def edit_requirements(
    instruction: str,
    current: RequirementsList,
    llm: LLMProvider,
) -> EditResult:
    """
    Produce the updated requirements list for `instruction`.

    Raises:
        RequirementsParseError: the reply could not be turned into a usable
            list. The caller's list is left untouched.
    """
    prompt = (
        "Current requirements:\n"
        f"{current.to_markdown() or '(none)'}\n\n"
        f"Instruction: {instruction}"
    )

    reply = await request_structured(
        llm,
        system=EDITOR_SYSTEM_PROMPT,
        prompt=prompt,
        schema=EditPayload,
    )

    if reply.payload is not None:
        updated = reply.payload.to_list()
        changes = [c.strip() for c in reply.payload.changes if c.strip()]
        structured = True
    else:
        logger.warning(
            "Falling back to markdown edit parsing after %d structured attempts",
            reply.attempts,
        )
        updated, changes = _parse_markdown_edit(reply.raw)
        structured = False

    if not updated and current:
        raise RequirementsParseError(
            "The model returned no requirements for the edit; "
            "the existing list was kept."
        )

    diff = diff_requirements(current, updated)
    if not changes:
        changes = diff.describe()

    logger.info(
        "Edit applied: op=%s, %d -> %d requirements (structured=%s)",
        diff.operation_type, len(current), len(updated), structured,
    )

    return EditResult(
        operation_type=diff.operation_type,
        affected=diff.affected,
        full_requirements=updated,
        changes=changes,
        structured=structured,
        model=reply.model,
    )


def _parse_markdown_edit(raw: str) -> tuple[RequirementsList, list[str]]:
    """Split a two-part markdown reply into (list, change lines)."""
    parts = _BLANK_LINE_RE.split(raw.strip(), maxsplit=1)
    requirements = RequirementsList(parse_markdown_requirements(parts[0]))
    if len(parts) == 1:
        return requirements, []

    changes = [
        line.strip().lstrip("-*").strip()
        for line in parts[1].splitlines()
        if line.strip()
    ]
    return requirements, changes
