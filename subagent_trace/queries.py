"""
Query functions over parsed transcripts.

Everything here is a pure function of an already-parsed ``Transcript``;
nothing reads the filesystem.

File lifecycle is derived from tool calls:
- Write creates or overwrites a file, Edit modifies one
- the first Write to a path counts as a new file
- ``rm`` commands run through Bash count as deletions (static parsing only,
  no globbing or variable expansion)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .messages import AssistantRecord, Message, ToolUseChunk, UserRecord, parse_timestamp
from .parser import Transcript

WRITE_TOOL = "Write"
EDIT_TOOL = "Edit"
BASH_TOOL = "Bash"
TASK_TOOL = "Task"
SKILL_TOOL = "Skill"

FILE_MUTATION_TOOLS = (WRITE_TOOL, EDIT_TOOL)

UNKNOWN_SUBAGENT_TYPE = "unknown"

_COMMAND_SEPARATOR = re.compile(r"\s*(?:&&|;)\s*")
_RM_COMMAND = re.compile(r"^\s*rm\s+(?:-[A-Za-z]+\s+)*(.+)$")
# A token is a run of unquoted text and quoted segments with no unquoted space
_SHELL_TOKEN = re.compile(r"""(?:[^\s"']+|"[^"]*"|'[^']*')+""")
_QUOTED_SEGMENT = re.compile(r""""([^"]*)"|'([^']*)'""")
# Unquoted redirection: "2>/dev/null", ">>log", "&>out", "<in", "2>&1"
_REDIRECTION = re.compile(r"^(?:\d*|&)(?:>>?|<)")


@dataclass
class ToolUse:
    """A tool invocation paired with its owning record."""

    id: str
    name: str
    input: dict[str, Any]
    message_uuid: str
    timestamp: str
    agent_id: str | None = None


@dataclass
class TaskCall:
    """A Task tool invocation, the call that spawns an agent."""

    tool_use_id: str
    subagent_type: str
    prompt: str
    timestamp: str
    description: str = ""
    model: str | None = None


@dataclass
class AgentCall:
    """A Task call joined with the result written back for it, if any."""

    tool_use_id: str
    agent_id: str
    subagent_type: str
    description: str
    prompt: str
    timestamp: str
    status: str = "active"  # active, completed, failed, cancelled
    model: str | None = None
    result: dict[str, Any] = field(default_factory=dict)

    @property
    def total_duration_ms(self) -> int:
        return int(self.result.get("totalDurationMs") or 0)

    @property
    def total_tokens(self) -> int:
        return int(self.result.get("totalTokens") or 0)


@dataclass
class SkillLoad:
    """A Skill tool invocation."""

    tool_use_id: str
    skill_name: str
    timestamp: str
    agent_id: str | None = None


# -----------------------------------------------------------------------------
# Record queries
# -----------------------------------------------------------------------------


def get_messages_by_kind(transcript: Transcript, kind: str) -> list[Message]:
    return [r for r in transcript.messages if r.kind == kind]


def get_user_messages(transcript: Transcript) -> list[UserRecord]:
    return [r for r in transcript.records if isinstance(r, UserRecord)]


def get_assistant_messages(transcript: Transcript) -> list[AssistantRecord]:
    return [r for r in transcript.records if isinstance(r, AssistantRecord)]


# -----------------------------------------------------------------------------
# Tool use queries
# -----------------------------------------------------------------------------


def _iter_tool_uses(transcript: Transcript):
    for record in get_assistant_messages(transcript):
        for chunk in record.tool_uses:
            yield record, chunk


def get_tool_uses(transcript: Transcript) -> list[ToolUse]:
    """
    All tool invocations in file order.

    Returns:
        ToolUse entries stamped with their record's uuid and timestamp
    """
    return [
        ToolUse(
            id=chunk.id,
            name=chunk.name,
            input=chunk.input,
            message_uuid=record.uuid,
            timestamp=record.timestamp,
            agent_id=transcript.agent_id,
        )
        for record, chunk in _iter_tool_uses(transcript)
    ]


def filter_by_tool_name(transcript: Transcript, tool_name: str) -> list[ToolUse]:
    return [tu for tu in get_tool_uses(transcript) if tu.name == tool_name]


def get_completed_tool_use_ids(transcript: Transcript) -> set[str]:
    """Tool use ids that have a tool_result written back."""
    completed: set[str] = set()
    for record in get_user_messages(transcript):
        for chunk in record.tool_results:
            completed.add(chunk.tool_use_id)
    return completed


# -----------------------------------------------------------------------------
# File lifecycle queries
# -----------------------------------------------------------------------------


def _file_path(chunk: ToolUseChunk) -> str | None:
    path = chunk.input.get("file_path")
    return path if isinstance(path, str) else None


def get_edited_files(transcript: Transcript) -> list[str]:
    """
    Unique paths touched by Write or Edit (new files included).
    """
    files: dict[str, None] = {}
    for _, chunk in _iter_tool_uses(transcript):
        if chunk.name in FILE_MUTATION_TOOLS:
            path = _file_path(chunk)
            if path is not None:
                files[path] = None
    return list(files)


def get_new_files(transcript: Transcript) -> list[str]:
    """
    Paths created by Write, first write per path only, in order.

    A later Write to the same path is an overwrite, not a new file.
    """
    new_files: list[str] = []
    seen: set[str] = set()
    for _, chunk in _iter_tool_uses(transcript):
        if chunk.name != WRITE_TOOL:
            continue
        path = _file_path(chunk)
        if path is not None and path not in seen:
            seen.add(path)
            new_files.append(path)
    return new_files


def _unquote(token: str) -> str:
    return _QUOTED_SEGMENT.sub(lambda m: m.group(1) if m.group(1) is not None else m.group(2), token)


def parse_deleted_paths(command: str) -> set[str]:
    """
    Paths removed by ``rm`` in a shell command string.

    The command is split on ``&&`` and ``;``. Each ``rm`` sub-command has its
    leading flag groups skipped; remaining tokens honor single and double
    quotes. Tokens that look like a flag are dropped, as are redirections
    and their targets.

    Examples:
        'rm -rf "dir one" && echo done' -> {"dir one"}
        'rm a.txt b.txt' -> {"a.txt", "b.txt"}
        'rm --version' -> set()
        'rm foo 2>/dev/null' -> {"foo"}
    """
    deleted: set[str] = set()
    for sub_command in _COMMAND_SEPARATOR.split(command):
        match = _RM_COMMAND.match(sub_command)
        if not match:
            continue
        redirect_target = False
        for token in _SHELL_TOKEN.findall(match.group(1).strip()):
            if redirect_target:
                redirect_target = False
                continue
            if _REDIRECTION.match(token):
                # "2>" or ">" on its own: the next token is the target
                redirect_target = token.endswith((">", "<"))
                continue
            if token.startswith("-"):
                continue
            path = _unquote(token)
            if path:
                deleted.add(path)
    return deleted


def get_deleted_files(transcript: Transcript) -> list[str]:
    """Unique paths removed via Bash ``rm`` commands."""
    deleted: dict[str, None] = {}
    for _, chunk in _iter_tool_uses(transcript):
        if chunk.name != BASH_TOOL:
            continue
        command = chunk.input.get("command")
        if not isinstance(command, str):
            continue
        for path in sorted(parse_deleted_paths(command)):
            deleted[path] = None
    return list(deleted)


# -----------------------------------------------------------------------------
# Agent queries
# -----------------------------------------------------------------------------


def _task_call(record: AssistantRecord, chunk: ToolUseChunk) -> TaskCall:
    tool_input = chunk.input
    model = tool_input.get("model")
    return TaskCall(
        tool_use_id=chunk.id,
        subagent_type=str(tool_input.get("subagent_type") or UNKNOWN_SUBAGENT_TYPE),
        prompt=str(tool_input.get("prompt") or ""),
        timestamp=record.timestamp,
        description=str(tool_input.get("description") or ""),
        model=model if isinstance(model, str) else None,
    )


def get_task_calls(transcript: Transcript) -> dict[str, TaskCall]:
    """Task calls keyed by tool use id, in file order."""
    calls: dict[str, TaskCall] = {}
    for record, chunk in _iter_tool_uses(transcript):
        if chunk.name == TASK_TOOL:
            calls[chunk.id] = _task_call(record, chunk)
    return calls


def _written_back_results(transcript: Transcript) -> dict[str, dict[str, Any]]:
    """tool_use_id -> toolUseResult for user records that carry one."""
    results: dict[str, dict[str, Any]] = {}
    for record in get_user_messages(transcript):
        if record.tool_use_result is None:
            continue
        for chunk in record.tool_results:
            results.setdefault(chunk.tool_use_id, record.tool_use_result)
    return results


def get_agent_calls(transcript: Transcript) -> list[AgentCall]:
    """
    Task calls with their outcome.

    A call with no written-back result is still "active".
    """
    results = _written_back_results(transcript)
    agent_calls = []
    for call in get_task_calls(transcript).values():
        result = results.get(call.tool_use_id, {})
        agent_calls.append(AgentCall(
            tool_use_id=call.tool_use_id,
            agent_id=str(result.get("agentId") or ""),
            subagent_type=call.subagent_type,
            description=call.description,
            prompt=call.prompt,
            timestamp=call.timestamp,
            status=str(result.get("status") or "completed") if result else "active",
            model=call.model,
            result=result,
        ))
    return agent_calls


def build_agent_type_map(transcript: Transcript) -> dict[str, str]:
    """agent_id -> subagent type, for agents whose result has been written back."""
    types: dict[str, str] = {}
    for call in get_agent_calls(transcript):
        if call.agent_id and call.subagent_type != UNKNOWN_SUBAGENT_TYPE:
            types[call.agent_id] = call.subagent_type
    return types


def get_skill_loads(transcript: Transcript) -> list[SkillLoad]:
    loads = []
    for record, chunk in _iter_tool_uses(transcript):
        if chunk.name == SKILL_TOOL:
            loads.append(SkillLoad(
                tool_use_id=chunk.id,
                skill_name=str(chunk.input.get("skill") or ""),
                timestamp=record.timestamp,
                agent_id=transcript.agent_id,
            ))
    return loads


def find_pending_task_call(transcript: Transcript, agent_type: str) -> TaskCall | None:
    """
    Most recent Task call of ``agent_type`` that has no tool_result yet.

    Used when an agent starts: its spawning call is still open in the
    parent transcript.
    """
    completed = get_completed_tool_use_ids(transcript)
    pending = [
        call
        for call in get_task_calls(transcript).values()
        if call.tool_use_id not in completed and call.subagent_type == agent_type
    ]
    if not pending:
        return None

    # Latest first; unparseable timestamps sort last
    def sort_key(call: TaskCall) -> float:
        parsed = parse_timestamp(call.timestamp)
        return parsed.timestamp() if parsed else float("-inf")

    return max(pending, key=sort_key)


__all__ = [
    "WRITE_TOOL",
    "EDIT_TOOL",
    "BASH_TOOL",
    "TASK_TOOL",
    "SKILL_TOOL",
    "FILE_MUTATION_TOOLS",
    "UNKNOWN_SUBAGENT_TYPE",
    "ToolUse",
    "TaskCall",
    "AgentCall",
    "SkillLoad",
    "get_messages_by_kind",
    "get_user_messages",
    "get_assistant_messages",
    "get_tool_uses",
    "filter_by_tool_name",
    "get_completed_tool_use_ids",
    "get_edited_files",
    "get_new_files",
    "parse_deleted_paths",
    "get_deleted_files",
    "get_task_calls",
    "get_agent_calls",
    "build_agent_type_map",
    "get_skill_loads",
    "find_pending_task_call",
]
