# =============================================================================
# PDF Parser — Docling Document Conversion
# =============================================================================
#
# Converts an uploaded RFI PDF into plain text grouped by page, so the
# chunker can record which pages every chunk spans.
#
# DESIGN DECISION: Iterate Docling items (not export_to_markdown()) because
# the markdown export drops page numbers. Each item's provenance gives the
# page it came from; items are appended to that page's text in reading order.
#
# DESIGN DECISION: Own dataclasses (ParsedPage, ParsedDocument) rather than
# Docling types downstream. Only this module knows about Docling.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from docling.datamodel.base_models import InputFormat
from docling.datamodel.pipeline_options import PdfPipelineOptions
from docling.document_converter import DocumentConverter, PdfFormatOption
from docling_core.types.doc.labels import DocItemLabel

logger = logging.getLogger(__name__)

_TEXT_LABELS = {
    DocItemLabel.TITLE,
    DocItemLabel.SECTION_HEADER,
    DocItemLabel.TEXT,
    DocItemLabel.LIST_ITEM,
    DocItemLabel.CAPTION,
    DocItemLabel.FOOTNOTE,
}


class DocumentParseError(Exception):
    """The PDF could not be converted or contains no extractable text."""


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class ParsedPage:
    """Text of one PDF page (1-indexed)."""

    page_number: int
    text: str


@dataclass
class ParsedDocument:
    """
    The complete result of parsing a PDF document.

    `pages` holds the per-page boundaries in page order; `text` joins them
    with blank lines and is what the extraction prompt sees.
    """

    pages: list[ParsedPage] = field(default_factory=list)
    page_count: int = 0
    filename: str = ""

    @property
    def text(self) -> str:
        return "\n\n".join(p.text for p in self.pages if p.text.strip())

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


# ---------------------------------------------------------------------------
# Docling Converter — Lazy Singleton
# ---------------------------------------------------------------------------
# Initialization loads layout models into memory (a few seconds on first
# use), so one converter is reused for every upload.
# ---------------------------------------------------------------------------

_converter: DocumentConverter | None = None


def _get_converter() -> DocumentConverter:
    """Lazily initialize and cache the Docling DocumentConverter."""
    global _converter
    if _converter is None:
        logger.info(
            "Initializing Docling DocumentConverter "
            "(first use, may take a few seconds)..."
        )
        pipeline_options = PdfPipelineOptions()
        pipeline_options.do_table_structure = True
        # RFIs are born-digital; OCR only slows conversion down
        pipeline_options.do_ocr = False

        _converter = DocumentConverter(
            format_options={
                InputFormat.PDF: PdfFormatOption(
                    pipeline_options=pipeline_options,
                ),
            }
        )
        logger.info("Docling DocumentConverter initialized")
    return _converter


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_pdf(file_path: str, filename: str | None = None) -> ParsedDocument:
    """
    Parse a PDF file into per-page text.

    Args:
        file_path: Path to the PDF file on disk.
        filename: Original upload name, used for logging and metadata.

    Returns:
        ParsedDocument with one ParsedPage per page that yielded text.

    Raises:
        FileNotFoundError: If the file does not exist.
        DocumentParseError: If Docling fails to convert the document.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"PDF not found: {file_path}")

    display_name = filename or path.name
    logger.info("Parsing PDF: %s", display_name)
    converter = _get_converter()

    try:
        result = converter.convert(str(path))
    except Exception as exc:
        raise DocumentParseError(
            f"Could not read '{display_name}' as a PDF: {exc}"
        ) from exc

    page_parts: dict[int, list[str]] = {}

    for item, _level in result.document.iterate_items():
        # item.prov[0] is the primary location; items without provenance
        # are attached to page 1.
        page_no = 1
        if getattr(item, "prov", None):
            page_no = item.prov[0].page_no or 1

        label = getattr(item, "label", None)
        if label == DocItemLabel.TABLE:
            text = _table_to_markdown(item)
        elif label in _TEXT_LABELS:
            text = getattr(item, "text", "").strip()
        else:
            continue

        if text:
            page_parts.setdefault(page_no, []).append(text)

    pages = [
        ParsedPage(page_number=page_no, text="\n".join(parts))
        for page_no, parts in sorted(page_parts.items())
    ]
    page_count = len(result.document.pages) or (pages[-1].page_number if pages else 0)

    logger.info(
        "Parsed '%s': %d pages with text (%d total), %d characters",
        display_name,
        len(pages),
        page_count,
        sum(len(p.text) for p in pages),
    )

    return ParsedDocument(pages=pages, page_count=page_count, filename=display_name)


def _table_to_markdown(table_item: object) -> str:
    """
    Convert a Docling TableItem to a markdown table.

    Falls back to the item's plain text if the DataFrame export fails.
    """
    try:
        if hasattr(table_item, "export_to_dataframe"):
            df = table_item.export_to_dataframe()
            return df.to_markdown(index=False)
    except Exception as exc:
        logger.warning("Table export to DataFrame failed: %s", exc)

    text = getattr(table_item, "text", "")
    return text.strip() if text else ""
