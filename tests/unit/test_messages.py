"""Tests for transcript record and chunk models."""

from datetime import datetime, timezone

import pytest

from subagent_trace.messages import (
    AssistantRecord,
    SnapshotRecord,
    SummaryRecord,
    SystemRecord,
    TextChunk,
    ToolResultChunk,
    ToolUseChunk,
    UnknownChunk,
    UserRecord,
    is_message,
    parse_chunk,
    parse_chunks,
    parse_timestamp,
)

BASE = {
    "uuid": "u1",
    "parentUuid": None,
    "timestamp": "2025-01-01T12:00:00.000Z",
    "sessionId": "S1",
    "cwd": "/proj",
    "isSidechain": False,
    "version": "2.0.0",
}


class TestParseChunk:
    """Tests for content chunk conversion."""

    def test_text_chunk(self):
        chunk = parse_chunk({"type": "text", "text": "hello"})
        assert chunk == TextChunk(text="hello")

    def test_tool_use_chunk(self):
        chunk = parse_chunk({"type": "tool_use", "id": "t1", "name": "Write", "input": {"file_path": "/a"}})
        assert isinstance(chunk, ToolUseChunk)
        assert chunk.id == "t1"
        assert chunk.input == {"file_path": "/a"}

    def test_tool_result_chunk_keeps_opaque_content(self):
        chunk = parse_chunk({"type": "tool_result", "tool_use_id": "t1", "content": [{"type": "text", "text": "x"}]})
        assert isinstance(chunk, ToolResultChunk)
        assert chunk.content == [{"type": "text", "text": "x"}]

    def test_unrecognized_chunk_preserved(self):
        raw = {"type": "thinking", "thinking": "hmm", "signature": "abc"}
        chunk = parse_chunk(raw)
        assert isinstance(chunk, UnknownChunk)
        assert chunk.type == "thinking"
        assert chunk.raw == raw

    def test_malformed_known_chunk_degrades_to_unknown(self):
        chunk = parse_chunk({"type": "tool_use", "name": "Write"})  # no id
        assert isinstance(chunk, UnknownChunk)
        assert chunk.type == "tool_use"

    def test_plain_string_is_text(self):
        assert parse_chunk("hi") == TextChunk(text="hi")

    def test_parse_chunks_non_list(self):
        assert parse_chunks("nope") == []
        assert parse_chunks(None) == []


class TestRecords:
    """Tests for record validation."""

    def test_user_text_record(self):
        record = UserRecord.model_validate({**BASE, "type": "user", "message": {"role": "user", "content": "hi"}})
        assert record.kind == "user"
        assert record.content == "hi"
        assert record.session_id == "S1"
        assert record.tool_results == []

    def test_user_tool_result_record(self):
        record = UserRecord.model_validate({
            **BASE,
            "type": "user",
            "message": {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "t9", "content": "ok"}]},
            "toolUseResult": {"agentId": "42"},
        })
        assert [c.tool_use_id for c in record.tool_results] == ["t9"]
        assert record.tool_use_result == {"agentId": "42"}

    def test_string_tool_use_result_dropped(self):
        record = UserRecord.model_validate({
            **BASE,
            "type": "user",
            "message": {"role": "user", "content": "x"},
            "toolUseResult": "Error: command failed",
        })
        assert record.tool_use_result is None

    def test_assistant_record_lifts_message(self):
        record = AssistantRecord.model_validate({
            **BASE,
            "type": "assistant",
            "requestId": "r1",
            "message": {
                "id": "m1",
                "model": "claude-sonnet",
                "content": [
                    {"type": "text", "text": "Let me look"},
                    {"type": "tool_use", "id": "t1", "name": "Read", "input": {}},
                    {"type": "thinking", "thinking": "..."},
                ],
            },
        })
        assert record.model == "claude-sonnet"
        assert record.message_id == "m1"
        assert record.request_id == "r1"
        assert [c.id for c in record.tool_uses] == ["t1"]
        assert record.text == "Let me look"
        assert isinstance(record.content[2], UnknownChunk)

    def test_records_are_immutable(self):
        record = SystemRecord.model_validate({**BASE, "type": "system", "content": "note"})
        with pytest.raises(Exception):
            record.content = "changed"

    def test_null_cwd_tolerated(self):
        record = SystemRecord.model_validate({**BASE, "type": "system", "cwd": None, "content": None})
        assert record.cwd == ""
        assert record.content == ""

    def test_summary_uses_leaf_uuid(self):
        record = SummaryRecord.model_validate({"type": "summary", "summary": "Fix auth", "leafUuid": "leaf-1"})
        assert record.uuid == "leaf-1"
        assert record.session_id == ""
        assert not is_message(record)

    def test_snapshot_uses_message_id(self):
        record = SnapshotRecord.model_validate({"type": "file-history-snapshot", "messageId": "m7", "snapshot": {}})
        assert record.uuid == "m7"
        assert record.kind == "file-history-snapshot"


class TestParseTimestamp:
    """Tests for transcript timestamp parsing."""

    def test_zulu_suffix(self):
        assert parse_timestamp("2025-01-01T12:00:00.500Z") == datetime(2025, 1, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)

    def test_naive_taken_as_utc(self):
        parsed = parse_timestamp("2025-01-01T12:00:00")
        assert parsed.tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_invalid_returns_none(self, value):
        assert parse_timestamp(value) is None
