"""
Agent edit aggregation.

Both halves of the SubagentStart -> SubagentStop handoff live here:

- ``record_agent_start`` runs when an agent starts. It finds the still-open
  Task call in the parent transcript and saves it in the context store.
- ``get_agent_edits`` runs when the agent stops. It correlates the agent
  with its Task call, reports which files the agent created, edited and
  deleted, and retires the saved context.

Only an unusable transcript pair raises (``AgentIdentityError``). Every
other missing signal degrades to an empty or "unknown" value.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, Field

from .config import TraceConfig, default_config
from .context_store import AgentStartContext, ContextStore
from .definitions import find_agent_file, load_agent_skills, skill_files
from .errors import (
    AgentTranscriptNotFoundError,
    EmptyTranscriptError,
    NotAnAgentTranscriptError,
    ParentTranscriptNotFoundError,
)
from .parser import parent_transcript_path, parse_transcript, transcript_info
from .queries import (
    UNKNOWN_SUBAGENT_TYPE,
    find_pending_task_call,
    get_deleted_files,
    get_edited_files,
    get_new_files,
)
from .resolver import ResolverHints, resolve_task_call

logger = logging.getLogger(__name__)


class AgentEditsResult(BaseModel):
    """What an agent was asked to do and which files it changed."""

    session_id: str = Field(alias="sessionId")
    agent_session_id: str = Field(alias="agentSessionId")
    parent_session_transcript: str = Field(alias="parentSessionTranscript")
    agent_session_transcript: str = Field(alias="agentSessionTranscript")
    subagent_type: str = Field(alias="subagentType")
    agent_prompt: str = Field(default="", alias="agentPrompt")
    agent_file: str | None = Field(default=None, alias="agentFile")
    agent_preloaded_skills_files: list[str] = Field(default_factory=list, alias="agentPreloadedSkillsFiles")
    agent_new_files: list[str] = Field(default_factory=list, alias="agentNewFiles")
    agent_deleted_files: list[str] = Field(default_factory=list, alias="agentDeletedFiles")
    agent_edited_files: list[str] = Field(default_factory=list, alias="agentEditedFiles")
    # Which resolver strategy found the Task call; None when nothing matched
    matched_by: str | None = Field(default=None, alias="matchedBy")

    model_config = {
        "populate_by_name": True,
    }


def _store_for(cwd: str, store: ContextStore | None, config: TraceConfig) -> ContextStore | None:
    if store is not None:
        return store
    if not cwd:
        return None
    return ContextStore(config.context_store_file(cwd))


def record_agent_start(
    agent_id: str,
    agent_type: str,
    session_id: str,
    transcript_path: str | Path,
    store: ContextStore,
) -> AgentStartContext:
    """
    Save what is known about a starting agent for the stop half.

    The spawning Task call is the most recent one of ``agent_type`` that has
    no result yet. If the parent transcript cannot be read the context is
    still saved, with an empty prompt and tool use id.

    Args:
        agent_id: Id of the starting agent
        agent_type: Its subagent type
        session_id: Owning session
        transcript_path: Parent (main session) transcript
        store: Context store to write to

    Returns:
        The saved context
    """
    pending = None
    try:
        pending = find_pending_task_call(parse_transcript(transcript_path), agent_type)
    except OSError as e:
        logger.warning(f"Could not read parent transcript {transcript_path}: {e}")

    if pending is None:
        logger.debug(f"No pending {agent_type} Task call for agent {agent_id}")

    context = AgentStartContext(
        agent_id=agent_id,
        agent_type=agent_type,
        session_id=session_id,
        prompt=pending.prompt if pending else "",
        tool_use_id=pending.tool_use_id if pending else "",
    )
    return store.save(agent_id, context)


def get_agent_edits(
    agent_transcript_path: str | Path,
    subagent_type: str | None = None,
    store: ContextStore | None = None,
    config: TraceConfig | None = None,
) -> AgentEditsResult:
    """
    Analyze a finished agent transcript.

    Args:
        agent_transcript_path: Path to agent-<id>.jsonl
        subagent_type: Fallback type when nothing else resolves one
        store: Context store (default: the project's, from config)
        config: Paths and match window (default: built-in defaults)

    Returns:
        AgentEditsResult for the agent

    Raises:
        NotAnAgentTranscriptError: If the filename carries no agent id
        AgentTranscriptNotFoundError: If the agent transcript does not exist
        EmptyTranscriptError: If the transcript has no records
        ParentTranscriptNotFoundError: If {session_id}.jsonl is missing
    """
    config = config or default_config
    agent_path = Path(agent_transcript_path)

    info = transcript_info(agent_path)
    if not info.agent_id:
        raise NotAnAgentTranscriptError(agent_path)

    try:
        agent_transcript = parse_transcript(agent_path)
    except FileNotFoundError:
        raise AgentTranscriptNotFoundError(agent_path) from None

    first = agent_transcript.first_message
    if first is None:
        raise EmptyTranscriptError(agent_path)

    agent_id = info.agent_id
    session_id = agent_transcript.session_id
    cwd = first.cwd

    parent_path = parent_transcript_path(agent_path, session_id)
    if not parent_path.is_file():
        raise ParentTranscriptNotFoundError(parent_path)

    store = _store_for(cwd, store, config)
    saved = store.load(agent_id) if store is not None else None
    if saved is None:
        logger.debug(f"No saved start context for agent {agent_id}")

    hints = ResolverHints(
        tool_use_id=saved.tool_use_id if saved and saved.tool_use_id else None,
        subagent_type=(saved.agent_type if saved and saved.agent_type else None) or subagent_type,
        agent_start_timestamp=first.timestamp,
        window=timedelta(seconds=config.match_window_seconds),
    )
    resolution = resolve_task_call(parse_transcript(parent_path), agent_id, hints)

    resolved_type = (
        (resolution.subagent_type if resolution else None)
        or (saved.agent_type if saved else None)
        or subagent_type
        or UNKNOWN_SUBAGENT_TYPE
    )
    prompt = (resolution.prompt if resolution else "") or (saved.prompt if saved else "")
    if resolution is None:
        logger.info(f"Could not correlate agent {agent_id} with a Task call; type {resolved_type}")

    agent_file = find_agent_file(cwd, resolved_type, config) if cwd else None
    skills = load_agent_skills(agent_file) if agent_file else []

    result = AgentEditsResult(
        session_id=session_id,
        agent_session_id=agent_id,
        parent_session_transcript=str(parent_path),
        agent_session_transcript=str(agent_path),
        subagent_type=resolved_type,
        agent_prompt=prompt,
        agent_file=str(agent_file) if agent_file else None,
        agent_preloaded_skills_files=skill_files(cwd, skills, config) if cwd else [],
        agent_new_files=get_new_files(agent_transcript),
        agent_deleted_files=get_deleted_files(agent_transcript),
        agent_edited_files=get_edited_files(agent_transcript),
        matched_by=resolution.strategy if resolution else None,
    )

    if store is not None:
        store.remove(agent_id)

    return result


__all__ = [
    "AgentEditsResult",
    "record_agent_start",
    "get_agent_edits",
]
