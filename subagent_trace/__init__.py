"""subagent-trace: link Claude Code agent transcripts to their Task calls.

Parses the JSONL transcripts Claude Code writes for a session and for each
agent it spawns, works out which Task call started each agent, and reports
the files the agent created, edited and deleted.
"""

__version__ = "0.1.0"

# Transcripts
from .messages import (
    AssistantRecord,
    ContentChunk,
    Record,
    SnapshotRecord,
    SummaryRecord,
    SystemRecord,
    TextChunk,
    ToolResultChunk,
    ToolUseChunk,
    UnknownChunk,
    UserRecord,
)
from .parser import Session, Transcript, parse_line, parse_session, parse_transcript, transcript_info
from .queries import (
    find_pending_task_call,
    get_completed_tool_use_ids,
    get_deleted_files,
    get_edited_files,
    get_new_files,
    get_task_calls,
    get_tool_uses,
)

# Correlation
from .context_store import AgentStartContext, ContextStore
from .resolver import ResolverHints, Resolution, resolve_task_call
from .agent_edits import AgentEditsResult, get_agent_edits, record_agent_start

# Config & errors
from .config import TraceConfig, default_config
from .errors import (
    AgentIdentityError,
    AgentTranscriptNotFoundError,
    EmptyTranscriptError,
    NotAnAgentTranscriptError,
    ParentTranscriptNotFoundError,
    SubagentTraceError,
)

__all__ = [
    # Transcripts
    "AssistantRecord",
    "ContentChunk",
    "Record",
    "SnapshotRecord",
    "SummaryRecord",
    "SystemRecord",
    "TextChunk",
    "ToolResultChunk",
    "ToolUseChunk",
    "UnknownChunk",
    "UserRecord",
    "Session",
    "Transcript",
    "parse_line",
    "parse_session",
    "parse_transcript",
    "transcript_info",
    "find_pending_task_call",
    "get_completed_tool_use_ids",
    "get_deleted_files",
    "get_edited_files",
    "get_new_files",
    "get_task_calls",
    "get_tool_uses",
    # Correlation
    "AgentStartContext",
    "ContextStore",
    "ResolverHints",
    "Resolution",
    "resolve_task_call",
    "AgentEditsResult",
    "get_agent_edits",
    "record_agent_start",
    # Config & errors
    "TraceConfig",
    "default_config",
    "AgentIdentityError",
    "AgentTranscriptNotFoundError",
    "EmptyTranscriptError",
    "NotAnAgentTranscriptError",
    "ParentTranscriptNotFoundError",
    "SubagentTraceError",
]
