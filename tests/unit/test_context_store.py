"""
Unit tests for ContextStore.

Tests the start-context handoff file: round trips, removal, and recovery
from missing or corrupt files.
"""

import json
from pathlib import Path

import pytest

from subagent_trace.context_store import DEFAULT_CONTEXT_PATH, AgentStartContext, ContextStore


@pytest.fixture
def store(tmp_path: Path) -> ContextStore:
    return ContextStore(tmp_path / "state" / "active-subagents.json")


def make_context(agent_id: str = "42", **overrides) -> AgentStartContext:
    values = {
        "agent_id": agent_id,
        "agent_type": "Explore",
        "session_id": "S1",
        "prompt": "find configs",
        "tool_use_id": "tool-9",
    }
    values.update(overrides)
    return AgentStartContext(**values)


class TestContextStoreRoundTrip:
    """Tests for save/load/remove."""

    def test_save_then_load(self, store):
        context = make_context()
        store.save("42", context)

        assert store.load("42") == context

    def test_load_absent_key(self, store):
        store.save("42", make_context())

        assert store.load("7") is None

    def test_load_without_file(self, store):
        assert not store.path.exists()
        assert store.load("42") is None
        assert store.list_active() == {}

    def test_last_write_wins(self, store):
        store.save("42", make_context(prompt="first"))
        store.save("42", make_context(prompt="second"))

        assert store.load("42").prompt == "second"
        assert list(store.list_active()) == ["42"]

    def test_remove(self, store):
        store.save("42", make_context())
        store.save("7", make_context("7"))

        assert store.remove("42") is True
        assert store.load("42") is None
        assert store.load("7") is not None

    def test_remove_absent_is_noop(self, store):
        store.save("7", make_context("7"))

        assert store.remove("42") is False
        assert list(store.list_active()) == ["7"]

    def test_remove_without_file(self, store):
        assert store.remove("42") is False
        assert not store.path.exists()


class TestContextStoreFormat:
    """Tests for the on-disk JSON format."""

    def test_camel_case_keys(self, store):
        store.save("42", make_context())

        data = json.loads(store.path.read_text())

        assert set(data["42"]) == {"agentId", "agentType", "sessionId", "timestamp", "prompt", "toolUseId"}
        assert data["42"]["toolUseId"] == "tool-9"

    def test_no_temp_files_left(self, store):
        store.save("42", make_context())
        store.remove("42")

        assert [p.name for p in store.path.parent.iterdir()] == ["active-subagents.json"]

    def test_entry_without_agent_id_uses_key(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"42": {"agentType": "Plan"}}))

        loaded = store.load("42")

        assert loaded.agent_id == "42"
        assert loaded.agent_type == "Plan"
        assert loaded.tool_use_id == ""

    def test_for_project(self, tmp_path):
        assert ContextStore.for_project(tmp_path).path == tmp_path / DEFAULT_CONTEXT_PATH
        assert ContextStore.for_project(tmp_path, "x.json").path == tmp_path / "x.json"

    def test_timestamp_defaults_to_now(self):
        context = AgentStartContext(agent_id="1")
        assert context.timestamp.endswith("+00:00")


class TestContextStoreRecovery:
    """A damaged store reads as empty and is replaced on the next save."""

    @pytest.mark.parametrize("content", [b"{not json", b"[1, 2]", b"", b"\xff\xfe{}"])
    def test_corrupt_file_reads_empty(self, store, content):
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes(content)

        assert store.load("42") is None
        assert store.list_active() == {}

    def test_save_over_corrupt_file(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")

        store.save("42", make_context())

        assert store.load("42").prompt == "find configs"

    def test_malformed_entries_skipped(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"1": "nope", "2": {"agentType": ["bad"]}, "3": {"agentType": "Plan"}}))

        assert list(store.list_active()) == ["3"]
