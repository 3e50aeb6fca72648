"""
Record and content-chunk models for Claude Code transcript lines.

Each JSONL line in a transcript is one of five record kinds, discriminated
by its ``type`` field:

- "user": user text or tool results (optionally with a ``toolUseResult``)
- "assistant": model output with text and tool_use chunks
- "system": internal notifications
- "summary": session title marker
- "file-history-snapshot": file backup bookkeeping

Content chunks form a closed union. Chunk kinds this version does not
understand are kept as ``UnknownChunk`` with their raw payload, so new log
formats never break parsing.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Literal, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)


class _FrozenModel(BaseModel):
    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "ignore",
    }


# -----------------------------------------------------------------------------
# Content chunks
# -----------------------------------------------------------------------------


class TextChunk(_FrozenModel):
    """Free text content."""

    type: Literal["text"] = "text"
    text: str = ""


class ToolUseChunk(_FrozenModel):
    """A tool invocation emitted by the assistant."""

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultChunk(_FrozenModel):
    """The result of a tool invocation, written back as user content."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: Any = None


class UnknownChunk(_FrozenModel):
    """A chunk kind we do not interpret. ``raw`` is the original payload."""

    type: str = ""
    raw: dict[str, Any] = Field(default_factory=dict)


ContentChunk = Union[TextChunk, ToolUseChunk, ToolResultChunk, UnknownChunk]

_CHUNK_MODELS: dict[str, type[_FrozenModel]] = {
    "text": TextChunk,
    "tool_use": ToolUseChunk,
    "tool_result": ToolResultChunk,
}


def parse_chunk(raw: Any) -> ContentChunk:
    """Convert one raw content block into a chunk model. Never raises."""
    if isinstance(raw, (TextChunk, ToolUseChunk, ToolResultChunk, UnknownChunk)):
        return raw
    if isinstance(raw, str):
        return TextChunk(text=raw)
    if not isinstance(raw, dict):
        return UnknownChunk(type=type(raw).__name__, raw={"value": raw})

    chunk_type = raw.get("type")
    model = _CHUNK_MODELS.get(chunk_type) if isinstance(chunk_type, str) else None
    if model is not None:
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            logger.debug(f"Malformed {chunk_type} chunk kept as unknown: {e.error_count()} error(s)")

    return UnknownChunk(type=str(chunk_type or ""), raw=raw)


def parse_chunks(raw: Any) -> list[ContentChunk]:
    """Convert a raw content list into chunk models."""
    if not isinstance(raw, list):
        return []
    return [parse_chunk(block) for block in raw]


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------


class BaseRecord(_FrozenModel):
    """Fields shared by every record kind."""

    uuid: str = ""
    parent_uuid: str | None = Field(default=None, alias="parentUuid")
    timestamp: str = ""
    session_id: str = Field(default="", alias="sessionId")
    cwd: str = ""
    is_sidechain: bool = Field(default=False, alias="isSidechain")
    version: str = ""
    git_branch: str | None = Field(default=None, alias="gitBranch")
    slug: str | None = None
    agent_id: str | None = Field(default=None, alias="agentId")

    @model_validator(mode="before")
    @classmethod
    def _drop_null_defaults(cls, data: Any) -> Any:
        # Older log versions write null for fields that now always have a value
        if not isinstance(data, dict):
            return data
        nullable = ("cwd", "version", "isSidechain")
        return {k: v for k, v in data.items() if not (k in nullable and v is None)}


class MessageRecord(BaseRecord):
    """A conversational record. Identity fields are required."""

    uuid: str
    timestamp: str
    session_id: str = Field(alias="sessionId")


class UserRecord(MessageRecord):
    """User input or tool results."""

    kind: Literal["user"] = Field(default="user", alias="type")
    content: Union[str, list[ContentChunk]] = ""
    tool_use_result: dict[str, Any] | None = Field(default=None, alias="toolUseResult")

    @model_validator(mode="before")
    @classmethod
    def _lift_message(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "message" not in data:
            return data
        message = data.get("message")
        content = message.get("content", "") if isinstance(message, dict) else ""
        lifted = {**data, "content": content}
        # Failed tool calls write a plain error string here
        if not isinstance(lifted.get("toolUseResult"), dict):
            lifted.pop("toolUseResult", None)
        return lifted

    @field_validator("content", mode="before")
    @classmethod
    def _parse_content(cls, value: Any) -> Any:
        if value is None:
            return ""
        return parse_chunks(value) if isinstance(value, list) else value

    @property
    def tool_results(self) -> list[ToolResultChunk]:
        if isinstance(self.content, str):
            return []
        return [c for c in self.content if isinstance(c, ToolResultChunk)]


class AssistantRecord(MessageRecord):
    """Model output: text and tool invocations."""

    kind: Literal["assistant"] = Field(default="assistant", alias="type")
    content: list[ContentChunk] = Field(default_factory=list)
    model: str | None = None
    message_id: str | None = None
    request_id: str | None = Field(default=None, alias="requestId")
    usage: dict[str, Any] | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_message(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "message" not in data:
            return data
        message = data.get("message")
        if not isinstance(message, dict):
            message = {}
        usage = message.get("usage")
        return {
            **data,
            "content": message.get("content"),
            "model": message.get("model"),
            "message_id": message.get("id"),
            "usage": usage if isinstance(usage, dict) else None,
        }

    @field_validator("content", mode="before")
    @classmethod
    def _parse_content(cls, value: Any) -> Any:
        return parse_chunks(value)

    @property
    def tool_uses(self) -> list[ToolUseChunk]:
        return [c for c in self.content if isinstance(c, ToolUseChunk)]

    @property
    def text(self) -> str:
        return "\n".join(c.text for c in self.content if isinstance(c, TextChunk))


class SystemRecord(MessageRecord):
    """Internal notification."""

    kind: Literal["system"] = Field(default="system", alias="type")
    subtype: str = ""
    content: str = ""
    level: str = "info"
    is_meta: bool = Field(default=False, alias="isMeta")

    @field_validator("content", mode="before")
    @classmethod
    def _stringify_content(cls, value: Any) -> Any:
        return "" if value is None else value


class SummaryRecord(BaseRecord):
    """Session title marker. Carries no session or timestamp."""

    kind: Literal["summary"] = Field(default="summary", alias="type")
    summary: str
    leaf_uuid: str | None = Field(default=None, alias="leafUuid")

    @model_validator(mode="before")
    @classmethod
    def _default_uuid(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("uuid") and isinstance(data.get("leafUuid"), str):
            return {**data, "uuid": data["leafUuid"]}
        return data


class SnapshotRecord(BaseRecord):
    """File history snapshot bookkeeping."""

    kind: Literal["file-history-snapshot"] = Field(default="file-history-snapshot", alias="type")
    message_id: str = Field(alias="messageId")
    snapshot: dict[str, Any] = Field(default_factory=dict)
    is_snapshot_update: bool = Field(default=False, alias="isSnapshotUpdate")

    @model_validator(mode="before")
    @classmethod
    def _default_uuid(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("uuid") and isinstance(data.get("messageId"), str):
            return {**data, "uuid": data["messageId"]}
        return data


Record = Union[UserRecord, AssistantRecord, SystemRecord, SummaryRecord, SnapshotRecord]
Message = Union[UserRecord, AssistantRecord, SystemRecord]

RECORD_MODELS: dict[str, type[BaseRecord]] = {
    "user": UserRecord,
    "assistant": AssistantRecord,
    "system": SystemRecord,
    "summary": SummaryRecord,
    "file-history-snapshot": SnapshotRecord,
}

MESSAGE_KINDS = frozenset({"user", "assistant", "system"})


def is_message(record: BaseRecord) -> bool:
    """True for user/assistant/system records."""
    return getattr(record, "kind", None) in MESSAGE_KINDS


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 timestamp as written in transcripts.

    Naive values are taken as UTC so they compare with aware ones.

    Returns:
        Aware datetime, or None when the value is missing or malformed
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


__all__ = [
    "TextChunk",
    "ToolUseChunk",
    "ToolResultChunk",
    "UnknownChunk",
    "ContentChunk",
    "parse_chunk",
    "parse_chunks",
    "BaseRecord",
    "MessageRecord",
    "UserRecord",
    "AssistantRecord",
    "SystemRecord",
    "SummaryRecord",
    "SnapshotRecord",
    "Record",
    "Message",
    "RECORD_MODELS",
    "MESSAGE_KINDS",
    "is_message",
    "parse_timestamp",
]
