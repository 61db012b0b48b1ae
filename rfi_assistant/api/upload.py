# =============================================================================
# Upload API — PDF Ingestion and Initial Requirements
# =============================================================================
#
# POST /api/upload
#   multipart field "file" (application/pdf)
#   → parse → chunk → (embed ∥ extract requirements) → index → respond
#
# DESIGN DECISION: Synchronous pipeline in the request.
# An RFI is a single document the user is waiting on, and the response
# carries the extracted requirements, so there is nothing to poll for.
# Docling parsing and token chunking run in worker threads to keep the
# event loop free.
#
# DESIGN DECISION: Embedding and extraction run concurrently.
# They are independent network calls; asyncio.gather overlaps them.
#
# DESIGN DECISION: Commit only after everything succeeded.
# The session's index and requirements are replaced at the very end, under
# the session lock. A rejected or failed upload leaves the previous
# document's state untouched. The temporary PDF is always deleted.
# =============================================================================

import asyncio
import logging
import tempfile
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from rfi_assistant.agents.extractor import extract_requirements
from rfi_assistant.api.deps import get_llm, get_session
from rfi_assistant.api.errors import error_responses
from rfi_assistant.config import settings
from rfi_assistant.models.responses import RequirementModel, UploadResponse
from rfi_assistant.services import embedder
from rfi_assistant.services.chunker import chunk_document
from rfi_assistant.services.llm import LLMProvider
from rfi_assistant.services.parser import DocumentParseError, parse_pdf
from rfi_assistant.services.sessions import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Upload"])

PDF_CONTENT_TYPE = "application/pdf"


@router.post(
    "/upload",
    response_model=UploadResponse,
    summary="Upload an RFI PDF",
    responses=error_responses(400, 413, 422, 429, 502, 503),
    description=(
        "Parse the PDF, index it for question answering and derive the "
        "initial requirements list. Replaces any document previously "
        "uploaded in the same session."
    ),
)
async def upload_document(
    file: UploadFile | None = File(default=None, description="The RFI as a PDF"),
    session: SessionContext = Depends(get_session),
    llm: LLMProvider = Depends(get_llm),
) -> UploadResponse:
    # --- Validate the upload ---
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded.")

    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type != PDF_CONTENT_TYPE:
        raise HTTPException(
            status_code=400,
            detail="Only PDF files are accepted (content type application/pdf).",
        )

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    max_bytes = settings.max_upload_mb * 1024 * 1024
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds the {settings.max_upload_mb} MB upload limit.",
        )

    filename = file.filename or "document.pdf"

    # --- Persist to a temp file for the parser ---
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        dir=upload_dir, suffix=".pdf", delete=False
    ) as tmp:
        tmp.write(content)
        tmp_path = Path(tmp.name)

    try:
        parsed = await asyncio.to_thread(parse_pdf, str(tmp_path), filename)
        if parsed.is_empty:
            raise DocumentParseError(f"No extractable text found in '{filename}'.")

        chunks = await asyncio.to_thread(
            chunk_document,
            parsed,
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
        )

        async with session.lock:
            embeddings, extraction = await asyncio.gather(
                embedder.embed_batch([c.text for c in chunks]),
                extract_requirements(parsed.text, llm),
            )

            # --- Commit: replace the session's document state ---
            await asyncio.to_thread(
                session.vector_store.replace_chunks, chunks, embeddings
            )
            session.filename = filename
            session.text = parsed.text
            session.page_count = parsed.page_count
            session.chunk_count = len(chunks)
            session.requirements = extraction.requirements
    finally:
        tmp_path.unlink(missing_ok=True)

    logger.info(
        "Upload complete: session=%s, file='%s', pages=%d, chunks=%d, requirements=%d",
        session.session_id, filename, parsed.page_count, len(chunks),
        len(extraction.requirements),
    )

    return UploadResponse(
        session_id=session.session_id,
        filename=filename,
        page_count=parsed.page_count,
        chunks=len(chunks),
        summary=extraction.summary,
        requirements=[
            RequirementModel(**entry) for entry in extraction.requirements.as_dicts()
        ],
    )
