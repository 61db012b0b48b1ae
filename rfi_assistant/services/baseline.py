# =============================================================================
# Baseline Questions Store — Shared JSON File
# =============================================================================
#
# The baseline is a free-text block of questions the user wants every RFI
# checked against. It is stored as a flat JSON file, {"questions": "..."},
# shared by all sessions.
#
# DESIGN DECISION: Atomic writes under one lock.
# Writes go to a temp file that replaces the target, under an asyncio lock,
# so concurrent POSTs cannot interleave or leave a half-written file.
# =============================================================================

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

from rfi_assistant.config import settings

logger = logging.getLogger(__name__)


class BaselineStore:
    """
    Read and atomically replace the shared baseline questions file.

    A missing or unreadable file reads as an empty baseline.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def read(self) -> str:
        """Return the stored questions, or "" if nothing was saved yet."""
        return await asyncio.to_thread(self._read_sync)

    async def write(self, questions: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write_sync, questions)
        logger.info("Saved baseline questions (%d chars) to %s", len(questions), self._path)

    def _read_sync(self) -> str:
        if not self._path.exists():
            return ""
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Baseline file %s is not valid JSON, ignoring it", self._path)
            return ""
        questions = data.get("questions", "") if isinstance(data, dict) else ""
        return questions if isinstance(questions, str) else ""

    def _write_sync(self, questions: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump({"questions": questions}, fh, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


_store: BaselineStore | None = None


def get_baseline_store() -> BaselineStore:
    global _store
    if _store is None:
        _store = BaselineStore(settings.baseline_path)
    return _store
