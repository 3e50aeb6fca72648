"""
Shared fixtures for subagent-trace tests.

Provides a builder for Claude Code style JSONL transcripts.
"""

import json
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def iso(offset_seconds: float = 0.0) -> str:
    """Transcript-style timestamp BASE_TIME + offset, millisecond precision."""
    moment = BASE_TIME + timedelta(seconds=offset_seconds)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


class TranscriptBuilder:
    """Builds transcript lines one record at a time."""

    def __init__(self, session_id: str = "S1", cwd: str = "/proj", is_sidechain: bool = False):
        self.session_id = session_id
        self.cwd = cwd
        self.is_sidechain = is_sidechain
        self.lines: list[str] = []
        self._clock = 0.0
        self._last_uuid: str | None = None

    def _base(self, kind: str, at: float | None) -> dict[str, Any]:
        if at is None:
            at = self._clock
            self._clock += 1.0
        record_uuid = str(uuid.uuid4())
        base = {
            "type": kind,
            "uuid": record_uuid,
            "parentUuid": self._last_uuid,
            "timestamp": iso(at),
            "sessionId": self.session_id,
            "cwd": self.cwd,
            "isSidechain": self.is_sidechain,
            "version": "2.0.0",
        }
        self._last_uuid = record_uuid
        return base

    def add(self, record: dict[str, Any]) -> "TranscriptBuilder":
        self.lines.append(json.dumps(record))
        return self

    def raw(self, line: str) -> "TranscriptBuilder":
        self.lines.append(line)
        return self

    def user(self, text: str, at: float | None = None) -> "TranscriptBuilder":
        record = self._base("user", at)
        record["userType"] = "external"
        record["message"] = {"role": "user", "content": text}
        return self.add(record)

    def assistant_text(self, text: str, at: float | None = None) -> "TranscriptBuilder":
        record = self._base("assistant", at)
        record["requestId"] = "req_1"
        record["message"] = {
            "id": "msg_1",
            "type": "message",
            "role": "assistant",
            "model": "claude-sonnet",
            "content": [{"type": "text", "text": text}],
            "stop_reason": None,
            "stop_sequence": None,
            "usage": {"input_tokens": 1, "output_tokens": 1},
        }
        return self.add(record)

    def tool_use(
        self,
        name: str,
        tool_input: dict[str, Any],
        tool_use_id: str | None = None,
        at: float | None = None,
    ) -> str:
        tool_use_id = tool_use_id or f"toolu_{uuid.uuid4().hex[:12]}"
        record = self._base("assistant", at)
        record["requestId"] = "req_1"
        record["message"] = {
            "id": "msg_1",
            "type": "message",
            "role": "assistant",
            "model": "claude-sonnet",
            "content": [{"type": "tool_use", "id": tool_use_id, "name": name, "input": tool_input}],
            "stop_reason": "tool_use",
            "stop_sequence": None,
            "usage": {"input_tokens": 1, "output_tokens": 1},
        }
        self.add(record)
        return tool_use_id

    def task(
        self,
        subagent_type: str,
        prompt: str,
        tool_use_id: str | None = None,
        at: float | None = None,
        description: str = "",
    ) -> str:
        return self.tool_use(
            "Task",
            {"subagent_type": subagent_type, "prompt": prompt, "description": description or prompt[:20]},
            tool_use_id=tool_use_id,
            at=at,
        )

    def tool_result(
        self,
        tool_use_id: str,
        content: Any = "ok",
        tool_use_result: Any = None,
        at: float | None = None,
    ) -> "TranscriptBuilder":
        record = self._base("user", at)
        record["userType"] = "external"
        record["message"] = {
            "role": "user",
            "content": [{"type": "tool_result", "tool_use_id": tool_use_id, "content": content}],
        }
        if tool_use_result is not None:
            record["toolUseResult"] = tool_use_result
        return self.add(record)

    def agent_result(self, tool_use_id: str, agent_id: str, status: str = "completed") -> "TranscriptBuilder":
        return self.tool_result(
            tool_use_id,
            content=[{"type": "text", "text": "done"}],
            tool_use_result={
                "status": status,
                "agentId": agent_id,
                "prompt": "",
                "content": [{"type": "text", "text": "done"}],
                "totalDurationMs": 1200,
                "totalTokens": 300,
                "totalToolUseCount": 2,
                "usage": {"input_tokens": 1, "output_tokens": 1},
            },
        )

    def write(self, path: str, at: float | None = None) -> str:
        return self.tool_use("Write", {"file_path": path, "content": "x"}, at=at)

    def edit(self, path: str, at: float | None = None) -> str:
        return self.tool_use("Edit", {"file_path": path, "old_string": "a", "new_string": "b"}, at=at)

    def bash(self, command: str, at: float | None = None) -> str:
        return self.tool_use("Bash", {"command": command}, at=at)

    def text(self) -> str:
        return "\n".join(self.lines) + ("\n" if self.lines else "")

    def save(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.text(), encoding="utf-8")
        return path


@pytest.fixture
def transcript_builder():
    """Factory for TranscriptBuilder instances."""
    return TranscriptBuilder


@pytest.fixture
def projects_dir(tmp_path: Path) -> Path:
    """Directory standing in for ~/.claude/projects/<project>."""
    directory = tmp_path / "projects" / "-proj"
    directory.mkdir(parents=True)
    return directory


@pytest.fixture
def iso_at():
    """Timestamp helper: iso_at(seconds) -> ISO string relative to a fixed base."""
    return iso
