# =============================================================================
# Requirements Store — Ordered Heading → Description Map
# =============================================================================
#
# The requirements list is what a good RFI submission must contain, as
# derived by the LLM. This module owns everything about it that does not
# need a model call:
#   - RequirementsList: ordered mapping, last write wins on duplicate headings
#   - JSON reply schemas (validated with Pydantic on receipt)
#   - the markdown bullet parser used as the last-resort fallback
#   - formatting for prompts / upload summaries
#   - diffing two lists to describe an edit
#
# Markdown bullet format (legacy replies):
#   - **Heading**: Description
# =============================================================================

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class RequirementsParseError(Exception):
    """An LLM reply could not be turned into a requirements list."""


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RequirementEntry:
    heading: str
    description: str

    def as_dict(self) -> dict[str, str]:
        return {"heading": self.heading, "description": self.description}


class RequirementsList:
    """
    Ordered heading → description mapping.

    Headings are assumed unique; on collision the later description wins
    and the heading keeps its first position.
    """

    def __init__(self, entries: Iterable[RequirementEntry] = ()) -> None:
        self._items: dict[str, str] = {}
        for entry in entries:
            self._items[entry.heading] = entry.description

    @classmethod
    def from_dicts(cls, items: Iterable[dict]) -> RequirementsList:
        return cls(
            RequirementEntry(heading=i["heading"], description=i["description"])
            for i in items
        )

    def entries(self) -> list[RequirementEntry]:
        return [RequirementEntry(h, d) for h, d in self._items.items()]

    def as_dicts(self) -> list[dict[str, str]]:
        return [e.as_dict() for e in self.entries()]

    def get(self, heading: str) -> str | None:
        return self._items.get(heading)

    def __contains__(self, heading: object) -> bool:
        return heading in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequirementsList):
            return NotImplemented
        return list(self._items.items()) == list(other._items.items())

    def __repr__(self) -> str:
        return f"RequirementsList({len(self)} entries)"

    def to_markdown(self) -> str:
        """Render as `- **Heading**: Description` lines."""
        return "\n".join(f"- **{h}**: {d}" for h, d in self._items.items())


# ---------------------------------------------------------------------------
# Structured Reply Schemas
# ---------------------------------------------------------------------------


class RequirementItem(BaseModel):
    heading: str = Field(min_length=1)
    description: str = ""

    @field_validator("heading", "description", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        if isinstance(value, str):
            return _strip_bold(value).strip()
        return value


class RequirementsPayload(BaseModel):
    """Reply schema for extraction: {"requirements": [...]}"""

    requirements: list[RequirementItem]

    @field_validator("requirements", mode="before")
    @classmethod
    def _drop_blank_items(cls, value: object) -> object:
        # Entries without a usable heading are dropped one by one so a
        # single bad item does not discard the rest of the list.
        if not isinstance(value, list):
            return value
        kept = [
            item
            for item in value
            if isinstance(item, dict)
            and isinstance(item.get("heading"), str)
            and _strip_bold(item["heading"]).strip()
        ]
        if len(kept) != len(value):
            logger.warning(
                "Dropped %d requirement(s) without a heading", len(value) - len(kept)
            )
        return kept

    def to_list(self) -> RequirementsList:
        return RequirementsList(
            RequirementEntry(i.heading, i.description) for i in self.requirements
        )


class EditPayload(RequirementsPayload):
    """Reply schema for edits: full updated list plus a change summary."""

    changes: list[str] = Field(default_factory=list)


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_structured_reply(raw: str, schema: type[T]) -> T:
    """
    Decode a JSON reply and validate it against `schema`.

    Markdown code fences around the JSON are tolerated.

    Raises:
        RequirementsParseError: invalid JSON or schema mismatch; the
            message is suitable for feeding back to the model.
    """
    text = _FENCE_RE.sub("", raw.strip())
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RequirementsParseError(f"Reply is not valid JSON: {exc}") from exc
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise RequirementsParseError(
            f"Reply does not match the expected schema: {exc}"
        ) from exc


# ---------------------------------------------------------------------------
# Markdown Fallback Parser
# ---------------------------------------------------------------------------


def parse_markdown_requirements(text: str) -> list[RequirementEntry]:
    """
    Parse `- **Heading**: Description` bullets.

    Lines not starting with "-" (including continuation lines of
    multi-line descriptions) are ignored. Each bullet is split once on its
    first ":"; bullets without a ":" or with an empty heading are dropped.
    """
    entries: list[RequirementEntry] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped.startswith("-"):
            continue
        body = stripped.lstrip("-").strip()
        heading, sep, description = body.partition(":")
        if not sep:
            continue
        heading = _strip_bold(heading).strip()
        # "**Heading:** text" leaves the closing bold marker on the description
        description = _strip_bold(description).strip()
        if heading:
            entries.append(RequirementEntry(heading, description))
    return entries


def _strip_bold(value: str) -> str:
    return value.replace("**", "")


# ---------------------------------------------------------------------------
# Diffing
# ---------------------------------------------------------------------------


@dataclass
class RequirementsDiff:
    added: list[RequirementEntry] = field(default_factory=list)
    removed: list[RequirementEntry] = field(default_factory=list)
    updated: list[RequirementEntry] = field(default_factory=list)

    @property
    def operation_type(self) -> str:
        """One of: add, remove, update, mixed, none."""
        kinds = [
            name
            for name, items in (
                ("add", self.added),
                ("remove", self.removed),
                ("update", self.updated),
            )
            if items
        ]
        if not kinds:
            return "none"
        return kinds[0] if len(kinds) == 1 else "mixed"

    @property
    def affected(self) -> list[RequirementEntry]:
        """Entries the edit touched; removed ones only for a pure removal."""
        if self.operation_type == "remove":
            return list(self.removed)
        return self.added + self.updated

    def describe(self) -> list[str]:
        lines = [f"Added: {e.heading}" for e in self.added]
        lines += [f"Removed: {e.heading}" for e in self.removed]
        lines += [f"Updated: {e.heading}" for e in self.updated]
        return lines


def diff_requirements(old: RequirementsList, new: RequirementsList) -> RequirementsDiff:
    diff = RequirementsDiff()
    for entry in new.entries():
        previous = old.get(entry.heading)
        if previous is None:
            diff.added.append(entry)
        elif previous != entry.description:
            diff.updated.append(entry)
    for entry in old.entries():
        if entry.heading not in new:
            diff.removed.append(entry)
    return diff
