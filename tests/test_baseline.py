# =============================================================================
# Unit Tests — Baseline Questions Store
# =============================================================================

import asyncio
import json

from rfi_assistant.services.baseline import BaselineStore


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class TestBaselineStore:
    def test_missing_file_reads_empty(self, tmp_path):
        store = BaselineStore(tmp_path / "baseline.json")
        assert _run(store.read()) == ""

    def test_write_then_read(self, tmp_path):
        path = tmp_path / "nested" / "baseline.json"
        store = BaselineStore(path)
        _run(store.write("What is the deadline?\nWho is the contact?"))
        assert _run(store.read()) == "What is the deadline?\nWho is the contact?"
        assert json.loads(path.read_text()) == {
            "questions": "What is the deadline?\nWho is the contact?",
        }

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        store = BaselineStore(tmp_path / "baseline.json")
        _run(store.write("first"))
        _run(store.write("second"))
        assert _run(store.read()) == "second"
        assert [p.name for p in tmp_path.iterdir()] == ["baseline.json"]

    def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "baseline.json"
        path.write_text("{not json")
        assert _run(BaselineStore(path).read()) == ""

    def test_concurrent_writes_end_with_one_value(self, tmp_path):
        store = BaselineStore(tmp_path / "baseline.json")

        async def _write_all():
            await asyncio.gather(*(store.write(f"v{i}") for i in range(5)))

        _run(_write_all())
        assert _run(store.read()) in {f"v{i}" for i in range(5)}
