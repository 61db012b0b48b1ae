# =============================================================================
# LangGraph Orchestrator — Chat Graph Assembly
# =============================================================================
#
# Wires the router, editor and answerer into a LangGraph StateGraph.
#
# GRAPH TOPOLOGY:
#                      ┌──▶ edit ────┐
#   START ──▶ classify ┤             ├──▶ END
#                      └──▶ answer ──┘
#
# DESIGN DECISION: Conditional edge on the router's label.
# classify writes "EDIT" or "QUESTION" into the state and route_after_classify
# picks the branch. Exactly one of edit/answer runs per message.
#
# DESIGN DECISION: The edit node owns the session swap.
# It holds the session lock across the LLM call and assigns the new list
# only after the editor returned successfully, so a failed edit (parse
# error, upstream error) leaves the stored list exactly as it was and two
# edits on the same session cannot interleave.
#
# DESIGN DECISION: Graph compiled once at module level.
# The compiled graph is stateless and shared across requests; per-request
# data travels in ChatState.
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from rfi_assistant.agents.answerer import AnswerResult, answer_question
from rfi_assistant.agents.editor import EditResult, edit_requirements
from rfi_assistant.agents.router import EDIT, classify_query
from rfi_assistant.services.llm import LLMProvider, get_llm_provider
from rfi_assistant.services.sessions import SessionContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Graph State Schema
# ---------------------------------------------------------------------------


class ChatState(TypedDict, total=False):
    """
    State that flows through the chat graph.

    total=False so nodes only return the keys they update.
    """

    # --- Input (set by caller) ---
    message: str
    session: SessionContext
    # NOTE: Not JSON-serialisable. Safe as long as no checkpointer is
    # configured on the graph.
    llm_override: LLMProvider | None

    # --- Set by classify ---
    route: str

    # --- Set by exactly one of edit / answer ---
    edit_result: EditResult | None
    answer_result: AnswerResult | None


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


def _llm(state: ChatState) -> LLMProvider:
    return state.get("llm_override") or get_llm_provider()


async def classify_node(state: ChatState) -> dict:
    route = await classify_query(state["message"], _llm(state))
    return {"route": route}


def route_after_classify(state: ChatState) -> str:
    return "edit" if state["route"] == EDIT else "answer"


async def edit_node(state: ChatState) -> dict:
    session = state["session"]
    async with session.lock:
        result = await edit_requirements(
            instruction=state["message"],
            current=session.requirements,
            llm=_llm(state),
        )
        session.requirements = result.full_requirements

    logger.info(
        "Session %s requirements updated (%s, %d entries)",
        session.session_id, result.operation_type, len(result.full_requirements),
    )
    return {"edit_result": result}


async def answer_node(state: ChatState) -> dict:
    session = state["session"]
    result = await answer_question(
        question=state["message"],
        store=session.vector_store,
        llm=_llm(state),
    )
    return {"answer_result": result}


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(ChatState)
_builder.add_node("classify", classify_node)
_builder.add_node("edit", edit_node)
_builder.add_node("answer", answer_node)

_builder.add_edge(START, "classify")
_builder.add_conditional_edges(
    "classify",
    route_after_classify,
    {"edit": "edit", "answer": "answer"},
)
_builder.add_edge("edit", END)
_builder.add_edge("answer", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def chat(
    message: str,
    session: SessionContext,
    llm: LLMProvider | None = None,
) -> dict[str, Any]:
    """
    Run one chat message through the graph and return the final state.

    Exactly one of "edit_result" / "answer_result" is set, matching
    "route". Upstream and parse errors raised inside a node propagate to
    the caller.
    """
    initial_state: ChatState = {"message": message, "session": session}
    if llm is not None:
        initial_state["llm_override"] = llm

    logger.info(
        "Invoking chat graph: session=%s, message='%s'",
        session.session_id, message[:80],
    )
    result = await graph.ainvoke(initial_state)
    logger.info("Chat graph complete: route=%s", result.get("route"))
    return result
