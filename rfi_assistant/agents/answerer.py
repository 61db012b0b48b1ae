# =============================================================================
# RAG Answerer — Document-Grounded Question Answering
# =============================================================================
#
# Embeds the question, pulls the top-k chunks from the session's index and
# asks the LLM to answer strictly from them.
#
# Context is presented as numbered blocks with page labels:
#   [1] (pages 3, 4)
#   ...chunk text...
# so the model can cite them and the client can show where an answer came
# from.
#
# When nothing is indexed or nothing comes back from search, the fixed
# refusal is returned and the LLM is never called.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from rfi_assistant.config import settings
from rfi_assistant.services import embedder
from rfi_assistant.services.llm import LLMProvider
from rfi_assistant.services.vectorstore import VectorSearchResult, VectorStore

logger = logging.getLogger(__name__)

REFUSAL = "I couldn't find that information in the uploaded document."

ANSWER_SYSTEM_PROMPT = (
    "You help a vendor understand a government Request for Information "
    "(RFI). Answer the user's question using ONLY the numbered context "
    "excerpts from the RFI document.\n\n"
    "Rules:\n"
    "- Base your answer exclusively on the context\n"
    "- Cite excerpts as [1], [2], etc. and mention page numbers when useful\n"
    "- Keep the answer concise and directly relevant\n"
    f"- If the context does not contain the answer, reply exactly: {REFUSAL}"
)

_EXCERPT_CHARS = 300


@dataclass
class AnswerResult:
    answer: str
    sources: list[dict] = field(default_factory=list)
    model: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0


async def answer_question(
    question: str,
    store: VectorStore,
    llm: LLMProvider,
    top_k: int | None = None,
) -> AnswerResult:
    """Answer `question` from the chunks indexed in `store`."""
    k = top_k or settings.retrieval_top_k

    if await asyncio.to_thread(store.count) == 0:
        logger.info("No chunks indexed, returning refusal")
        return AnswerResult(answer=REFUSAL)

    query_embedding = await embedder.embed_query(question)
    chunks = await store.search(query_embedding, top_k=k)
    if not chunks:
        logger.info("Search returned no chunks, returning refusal")
        return AnswerResult(answer=REFUSAL)

    response = await llm.complete(
        messages=[
            {
                "role": "user",
                "content": (
                    f"Context:\n\n{format_context(chunks)}\n\n"
                    f"Question: {question}"
                ),
            }
        ],
        system=ANSWER_SYSTEM_PROMPT,
    )

    answer = response.content.strip() or REFUSAL
    logger.info(
        "Answered from %d chunks (model=%s, tokens=%d/%d)",
        len(chunks), response.model, response.input_tokens, response.output_tokens,
    )

    return AnswerResult(
        answer=answer,
        sources=[_source(c) for c in chunks],
        model=response.model,
        input_tokens=response.input_tokens,
        output_tokens=response.output_tokens,
    )


def format_context(chunks: list[VectorSearchResult]) -> str:
    blocks = []
    for i, chunk in enumerate(chunks, start=1):
        if chunk.page_numbers:
            label = "page" if len(chunk.page_numbers) == 1 else "pages"
            header = f"[{i}] ({label} {', '.join(str(p) for p in chunk.page_numbers)})"
        else:
            header = f"[{i}]"
        blocks.append(f"{header}\n{chunk.content}")
    return "\n\n".join(blocks)


def _source(chunk: VectorSearchResult) -> dict:
    excerpt = chunk.content
    if len(excerpt) > _EXCERPT_CHARS:
        excerpt = excerpt[:_EXCERPT_CHARS].rstrip() + "..."
    return {
        "excerpt": excerpt,
        "page_numbers": chunk.page_numbers,
        "chunk_index": chunk.chunk_index,
        "score": round(chunk.similarity_score, 4),
    }
