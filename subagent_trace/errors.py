"""Error hierarchy for subagent-trace.

Only identity failures are fatal to a correlation run; every weaker signal
degrades to an empty or absent value instead of raising.
"""

from __future__ import annotations

from pathlib import Path


class SubagentTraceError(Exception):
    """Base class for all subagent-trace errors."""


class TranscriptParseError(SubagentTraceError):
    """A transcript line could not be parsed in strict mode."""

    def __init__(self, path: str | Path, line_number: int, line: str):
        self.path = str(path)
        self.line_number = line_number
        self.line = line
        super().__init__(f"Failed to parse line {line_number} of {path}: {line[:100]}")


class AgentIdentityError(SubagentTraceError):
    """The agent/parent transcript pair needed for correlation is unusable."""

    reason = "Agent identity could not be resolved"

    def __init__(self, path: str | Path, reason: str | None = None):
        self.path = str(path)
        super().__init__(f"{reason or self.reason}: {path}")


class NotAnAgentTranscriptError(AgentIdentityError):
    reason = "Path must be an agent transcript (agent-<id>.jsonl)"


class AgentTranscriptNotFoundError(AgentIdentityError):
    reason = "Agent transcript not found"


class EmptyTranscriptError(AgentIdentityError):
    reason = "Agent transcript is empty"


class ParentTranscriptNotFoundError(AgentIdentityError):
    reason = "Parent session transcript not found"


__all__ = [
    "SubagentTraceError",
    "TranscriptParseError",
    "AgentIdentityError",
    "NotAnAgentTranscriptError",
    "AgentTranscriptNotFoundError",
    "EmptyTranscriptError",
    "ParentTranscriptNotFoundError",
]
