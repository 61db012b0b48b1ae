# =============================================================================
# Query Router — EDIT vs QUESTION Classification
# =============================================================================
#
# Decides whether a chat message is an instruction to change the
# requirements list (EDIT) or a question about the document (QUESTION).
#
# One few-shot LLM call at temperature 0. The reply is stripped of
# surrounding whitespace and must equal "EDIT" exactly; anything else,
# including "QUESTION." or a chatty reply, routes to QUESTION. Answering a
# misrouted edit is harmless, while applying a misrouted question as an
# edit would rewrite the user's list.
# =============================================================================

from __future__ import annotations

import logging
from typing import Literal

from rfi_assistant.services.llm import LLMProvider

logger = logging.getLogger(__name__)

Route = Literal["EDIT", "QUESTION"]

EDIT: Route = "EDIT"
QUESTION: Route = "QUESTION"

_ROUTER_SYSTEM = """You route messages for an assistant that helps users \
prepare a response to a government Request for Information (RFI).

The assistant keeps a list of submission requirements derived from the RFI.
Classify the user's message:
- EDIT: the user wants to add, remove, rename, merge, reword or otherwise \
change the requirements list.
- QUESTION: the user asks something about the RFI document or wants \
information, explanation or advice.

Reply with exactly one word: EDIT or QUESTION.

Examples:
Message: Add a requirement about cost analysis
Answer: EDIT
Message: Remove the section on past performance
Answer: EDIT
Message: Change the technical approach description to mention cloud hosting
Answer: EDIT
Message: Merge the staffing and key personnel requirements
Answer: EDIT
Message: What is the RFI deadline?
Answer: QUESTION
Message: Who is the point of contact for this RFI?
Answer: QUESTION
Message: What page limit applies to responses?
Answer: QUESTION
Message: Does the agency require a small business certification?
Answer: QUESTION"""


async def classify_query(query: str, llm: LLMProvider) -> Route:
    """
    Classify `query` as EDIT or QUESTION.

    Raises whatever the provider raises (LLMRateLimitError,
    LLMUnavailableError); there is no fallback route on failure.
    """
    response = await llm.complete(
        messages=[{"role": "user", "content": f"Message: {query}\nAnswer:"}],
        system=_ROUTER_SYSTEM,
        temperature=0.0,
        max_tokens=5,
    )
    label = response.content.strip()
    route = EDIT if label == EDIT else QUESTION

    logger.info("Routed message as %s (raw=%r, query='%s')", route, label, query[:80])
    return route
