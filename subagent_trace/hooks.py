"""
SubagentStart / SubagentStop hook handlers.

Claude Code sends each hook a JSON record on stdin and reads a JSON record
back. Handlers never raise: a failed analysis must not block the agent, so
errors are logged and an empty output is returned.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from .agent_edits import AgentEditsResult, get_agent_edits, record_agent_start
from .config import TraceConfig, default_config
from .context_store import ContextStore
from .errors import SubagentTraceError

logger = logging.getLogger(__name__)


class HookInput(BaseModel):
    """Fields Claude Code sends to every hook."""

    session_id: str
    transcript_path: str = ""
    cwd: str = ""
    hook_event_name: str = ""

    model_config = {
        "extra": "allow",
    }


class SubagentStartInput(HookInput):
    agent_id: str
    agent_type: str = ""


class SubagentStopInput(HookInput):
    agent_id: str = ""
    agent_transcript_path: str
    agent_type: str | None = None
    stop_hook_active: bool = False


def handle_subagent_start(
    data: dict[str, Any],
    config: TraceConfig | None = None,
    store: ContextStore | None = None,
) -> dict[str, Any]:
    """
    Save the starting agent's context for the stop hook.

    Returns:
        Hook output record ({} on failure)
    """
    config = config or default_config
    try:
        hook = SubagentStartInput.model_validate(data)
    except ValidationError as e:
        logger.error(f"Invalid SubagentStart input: {e}")
        return {}

    logger.debug(f"SubagentStart: agent={hook.agent_id} type={hook.agent_type} session={hook.session_id}")

    store = store or ContextStore(config.context_store_file(hook.cwd or Path.cwd()))
    try:
        context = record_agent_start(
            agent_id=hook.agent_id,
            agent_type=hook.agent_type,
            session_id=hook.session_id,
            transcript_path=hook.transcript_path,
            store=store,
        )
    except (SubagentTraceError, OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to save agent context: {e}")
        return {}

    logger.debug(f"Agent context saved: tool_use_id={context.tool_use_id or '-'}")
    return {"hookSpecificOutput": {"hookEventName": "SubagentStart"}}


def analyze_subagent_stop(
    data: dict[str, Any],
    config: TraceConfig | None = None,
    store: ContextStore | None = None,
) -> AgentEditsResult | None:
    """
    Run edit analysis for a SubagentStop record.

    Returns:
        AgentEditsResult, or None if the input or transcripts are unusable
    """
    try:
        hook = SubagentStopInput.model_validate(data)
    except ValidationError as e:
        logger.error(f"Invalid SubagentStop input: {e}")
        return None

    logger.debug(f"SubagentStop: agent={hook.agent_id} transcript={hook.agent_transcript_path}")

    try:
        edits = get_agent_edits(
            hook.agent_transcript_path,
            subagent_type=hook.agent_type,
            store=store,
            config=config,
        )
    except (SubagentTraceError, OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to analyze agent edits: {e}")
        return None

    logger.info(
        f"Agent {edits.agent_session_id} ({edits.subagent_type}): "
        f"{len(edits.agent_new_files)} new, {len(edits.agent_edited_files)} edited, "
        f"{len(edits.agent_deleted_files)} deleted"
    )
    for label, paths in (
        ("New files created", edits.agent_new_files),
        ("Files edited", edits.agent_edited_files),
        ("Files deleted", edits.agent_deleted_files),
    ):
        if paths:
            logger.debug(f"{label}: {paths}")

    return edits


def handle_subagent_stop(
    data: dict[str, Any],
    config: TraceConfig | None = None,
    store: ContextStore | None = None,
) -> dict[str, Any]:
    """Analyze the stopping agent. Never blocks the agent."""
    analyze_subagent_stop(data, config=config, store=store)
    return {}


HANDLERS = {
    "SubagentStart": handle_subagent_start,
    "SubagentStop": handle_subagent_stop,
}


__all__ = [
    "HookInput",
    "SubagentStartInput",
    "SubagentStopInput",
    "handle_subagent_start",
    "analyze_subagent_stop",
    "handle_subagent_stop",
    "HANDLERS",
]
