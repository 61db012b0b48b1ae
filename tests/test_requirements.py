# =============================================================================
# Unit Tests — Requirements Store, Reply Parsing and Diffing
# =============================================================================

import json

import pytest

from rfi_assistant.services.requirements import (
    EditPayload,
    RequirementEntry,
    RequirementsList,
    RequirementsParseError,
    RequirementsPayload,
    diff_requirements,
    parse_markdown_requirements,
    parse_structured_reply,
)


def _reqs(*pairs: tuple[str, str]) -> RequirementsList:
    return RequirementsList(RequirementEntry(h, d) for h, d in pairs)


class TestRequirementsList:
    def test_preserves_insertion_order(self):
        reqs = _reqs(("B", "second"), ("A", "first"))
        assert [e.heading for e in reqs.entries()] == ["B", "A"]

    def test_last_write_wins_on_duplicate_heading(self):
        reqs = _reqs(("Deadline", "old"), ("Scope", "s"), ("Deadline", "new"))
        assert len(reqs) == 2
        assert reqs.get("Deadline") == "new"
        assert [e.heading for e in reqs.entries()] == ["Deadline", "Scope"]

    def test_to_markdown(self):
        reqs = _reqs(("Deadline", "May 1"), ("Format", "PDF only"))
        assert reqs.to_markdown() == "- **Deadline**: May 1\n- **Format**: PDF only"

    def test_empty_list_is_falsy(self):
        assert not RequirementsList()
        assert RequirementsList().to_markdown() == ""

    def test_from_dicts_round_trip(self):
        items = [{"heading": "A", "description": "x"}]
        assert RequirementsList.from_dicts(items).as_dicts() == items

    def test_equality_is_order_sensitive(self):
        assert _reqs(("A", "1"), ("B", "2")) == _reqs(("A", "1"), ("B", "2"))
        assert _reqs(("A", "1"), ("B", "2")) != _reqs(("B", "2"), ("A", "1"))


class TestParseMarkdownRequirements:
    def test_parses_bold_bullets(self):
        text = "- **Deadline**: Responses due May 1\n- **Format**: PDF, 10 pages max"
        entries = parse_markdown_requirements(text)
        assert entries == [
            RequirementEntry("Deadline", "Responses due May 1"),
            RequirementEntry("Format", "PDF, 10 pages max"),
        ]

    def test_splits_on_first_colon_only(self):
        entries = parse_markdown_requirements("- **Time**: Due at 5:00 PM ET")
        assert entries == [RequirementEntry("Time", "Due at 5:00 PM ET")]

    def test_ignores_non_bullet_lines(self):
        text = (
            "Here are the requirements:\n"
            "- **Scope**: Describe the approach\n"
            "  continued on a second line\n"
            "Thanks!"
        )
        assert parse_markdown_requirements(text) == [
            RequirementEntry("Scope", "Describe the approach"),
        ]

    def test_drops_bullets_without_colon_or_heading(self):
        text = "- just a note\n- : orphan description\n- **Valid**: yes"
        assert parse_markdown_requirements(text) == [RequirementEntry("Valid", "yes")]

    def test_bold_colon_inside_marker(self):
        entries = parse_markdown_requirements("- **Eligibility:** Small businesses only")
        assert entries == [RequirementEntry("Eligibility", "Small businesses only")]

    def test_empty_text(self):
        assert parse_markdown_requirements("") == []


class TestParseStructuredReply:
    def test_valid_payload(self):
        raw = '{"requirements": [{"heading": "Deadline", "description": "May 1"}]}'
        payload = parse_structured_reply(raw, RequirementsPayload)
        assert payload.to_list() == _reqs(("Deadline", "May 1"))

    def test_code_fences_tolerated(self):
        raw = '```json\n{"requirements": []}\n```'
        assert parse_structured_reply(raw, RequirementsPayload).requirements == []

    def test_bold_markers_and_whitespace_stripped(self):
        raw = '{"requirements": [{"heading": " **Scope** ", "description": " text "}]}'
        payload = parse_structured_reply(raw, RequirementsPayload)
        assert payload.requirements[0].heading == "Scope"
        assert payload.requirements[0].description == "text"

    def test_invalid_json_raises(self):
        with pytest.raises(RequirementsParseError):
            parse_structured_reply("not json at all", RequirementsPayload)

    def test_schema_mismatch_raises(self):
        with pytest.raises(RequirementsParseError):
            parse_structured_reply('{"items": []}', RequirementsPayload)

    def test_blank_heading_items_dropped(self):
        raw = json.dumps({"requirements": [
            {"heading": "Deadline", "description": "May 1"},
            {"heading": "  ", "description": "x"},
            {"heading": "****"},
            {"description": "no heading"},
            "stray string",
            {"heading": "Format", "description": "PDF"},
        ]})
        payload = parse_structured_reply(raw, RequirementsPayload)
        assert payload.to_list() == _reqs(("Deadline", "May 1"), ("Format", "PDF"))

    def test_only_blank_items_gives_empty_list(self):
        raw = '{"requirements": [{"heading": "  ", "description": "x"}]}'
        assert parse_structured_reply(raw, RequirementsPayload).requirements == []

    def test_edit_payload_drops_blank_items(self):
        raw = '{"requirements": [{"heading": "A", "description": "1"}, {"heading": ""}], "changes": ["x"]}'
        payload = parse_structured_reply(raw, EditPayload)
        assert payload.to_list() == _reqs(("A", "1"))
        assert payload.changes == ["x"]

    def test_edit_payload_changes_default_empty(self):
        payload = parse_structured_reply('{"requirements": []}', EditPayload)
        assert payload.changes == []


class TestDiffRequirements:
    def test_add(self):
        diff = diff_requirements(_reqs(("A", "1")), _reqs(("A", "1"), ("B", "2")))
        assert diff.operation_type == "add"
        assert diff.affected == [RequirementEntry("B", "2")]
        assert diff.describe() == ["Added: B"]

    def test_remove_reports_removed_entries(self):
        diff = diff_requirements(_reqs(("A", "1"), ("B", "2")), _reqs(("A", "1")))
        assert diff.operation_type == "remove"
        assert diff.affected == [RequirementEntry("B", "2")]

    def test_update(self):
        diff = diff_requirements(_reqs(("A", "1")), _reqs(("A", "changed")))
        assert diff.operation_type == "update"
        assert diff.affected == [RequirementEntry("A", "changed")]

    def test_mixed(self):
        diff = diff_requirements(
            _reqs(("A", "1"), ("B", "2")),
            _reqs(("A", "changed"), ("C", "3")),
        )
        assert diff.operation_type == "mixed"
        assert diff.describe() == ["Added: C", "Removed: B", "Updated: A"]

    def test_none(self):
        assert diff_requirements(_reqs(("A", "1")), _reqs(("A", "1"))).operation_type == "none"
