# =============================================================================
# Token-Based Text Chunker — tiktoken
# =============================================================================
#
# Splits a parsed RFI into overlapping, fixed-size token windows for
# embedding. Every chunk records its position (index / total) and the
# ordered set of pages it spans, which the answerer cites back to users.
#
# DESIGN DECISION: Token-based windows (not character-based) so chunk
# sizes line up with embedding-model limits. cl100k_base is not Mistral's
# tokenizer, but it is a close enough proxy for sizing windows.
#
# ALGORITHM:
# 1. Join page texts with "\n\n" separators
# 2. Build a parallel mapping: character position → page number
# 3. Encode the full text with tiktoken
# 4. Slide a window of chunk_size tokens, stepping chunk_size - overlap
# 5. For each window: decode, collect the pages its characters came from
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import tiktoken

from rfi_assistant.services.parser import ParsedDocument

logger = logging.getLogger(__name__)

_PAGE_SEPARATOR = "\n\n"


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class DocumentChunk:
    """A bounded span of document text, the unit of embedding and retrieval."""

    text: str
    index: int  # 0-indexed position within the document
    total_chunks: int
    page_numbers: list[int] = field(default_factory=list)  # sorted, unique
    token_count: int = 0

    @property
    def first_page(self) -> int | None:
        return self.page_numbers[0] if self.page_numbers else None


# ---------------------------------------------------------------------------
# Tiktoken Encoder — Cached Singleton
# ---------------------------------------------------------------------------

_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Lazily initialize and cache the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def chunk_document(
    parsed_doc: ParsedDocument,
    chunk_size: int = 512,
    chunk_overlap: int = 50,
) -> list[DocumentChunk]:
    """
    Split a parsed document into overlapping token windows.

    Args:
        parsed_doc: The parsed document from the parser.
        chunk_size: Maximum tokens per chunk.
        chunk_overlap: Tokens shared by consecutive chunks. Must be smaller
            than chunk_size.

    Returns:
        List of DocumentChunk in document order; total_chunks is set on
        every chunk once the split is complete.
    """
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")

    pages = [p for p in parsed_doc.pages if p.text.strip()]
    if not pages:
        logger.warning("No text to chunk in '%s'", parsed_doc.filename)
        return []

    # --- Step 1: Build annotated text ---
    text_parts: list[str] = []
    char_to_page: list[int] = []

    for i, page in enumerate(pages):
        if i > 0:
            text_parts.append(_PAGE_SEPARATOR)
            char_to_page.extend([pages[i - 1].page_number] * len(_PAGE_SEPARATOR))
        text_parts.append(page.text)
        char_to_page.extend([page.page_number] * len(page.text))

    full_text = "".join(text_parts)

    # --- Step 2: Encode ---
    encoder = _get_encoder()
    all_tokens = encoder.encode(full_text)
    total_tokens = len(all_tokens)
    if total_tokens == 0:
        return []

    logger.info(
        "Chunking '%s': %d tokens total, chunk_size=%d, overlap=%d",
        parsed_doc.filename, total_tokens, chunk_size, chunk_overlap,
    )

    token_char_offsets = _build_token_offsets(encoder, all_tokens)

    # --- Step 3: Sliding window over tokens ---
    chunks: list[DocumentChunk] = []
    step = chunk_size - chunk_overlap

    for start in range(0, total_tokens, step):
        end = min(start + chunk_size, total_tokens)
        token_window = all_tokens[start:end]

        chunk_text = encoder.decode(token_window).strip()
        if chunk_text:
            char_start = token_char_offsets[start]
            char_end = min(token_char_offsets[end], len(char_to_page))
            page_numbers = sorted(set(char_to_page[char_start:char_end]))

            chunks.append(DocumentChunk(
                text=chunk_text,
                index=len(chunks),
                total_chunks=0,
                page_numbers=page_numbers,
                token_count=len(token_window),
            ))

        if end >= total_tokens:
            break

    for chunk in chunks:
        chunk.total_chunks = len(chunks)

    logger.info(
        "Chunked '%s' into %d chunks (avg %d tokens/chunk)",
        parsed_doc.filename,
        len(chunks),
        total_tokens // max(len(chunks), 1),
    )
    return chunks


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _build_token_offsets(
    encoder: tiktoken.Encoding,
    tokens: list[int],
) -> list[int]:
    """
    Map each token index to the character offset where it starts.

    Includes a sentinel entry for "one past the last token". Decoding
    single tokens can split multi-byte characters, so offsets are
    approximate for non-ASCII text; callers clamp them.
    """
    offsets: list[int] = []
    char_pos = 0
    for token in tokens:
        offsets.append(char_pos)
        char_pos += len(encoder.decode([token]))
    offsets.append(char_pos)
    return offsets
