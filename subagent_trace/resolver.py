"""
Correlate an agent with the Task call that spawned it.

The agent's own transcript does not say which Task call created it, so we
search the parent transcript with an ordered list of strategies. Each is a
pure function; the first that returns a call wins.

1. by_tool_use_id: exact lookup of a tool use id saved when the agent
   started. Authoritative.
2. by_result_agent_id: the Task result written back to the parent names
   the agent id. Only exists once the agent has finished, so this is the
   path for historical transcripts.
3. by_time_window: the latest Task call of the agent's type issued at most
   ``window`` before the agent started. Last resort for a running agent
   with no saved context.

A miss is not an error: callers treat it as "type unknown".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Sequence

from .messages import parse_timestamp
from .parser import Transcript
from .queries import TaskCall, get_task_calls, get_user_messages

logger = logging.getLogger(__name__)

DEFAULT_MATCH_WINDOW = timedelta(seconds=10)


@dataclass
class ResolverHints:
    """Optional facts that narrow the search."""

    tool_use_id: str | None = None
    subagent_type: str | None = None
    agent_start_timestamp: str | None = None
    window: timedelta = DEFAULT_MATCH_WINDOW


@dataclass
class Resolution:
    """A matched Task call and the strategy that found it."""

    call: TaskCall
    strategy: str

    @property
    def tool_use_id(self) -> str:
        return self.call.tool_use_id

    @property
    def subagent_type(self) -> str:
        return self.call.subagent_type

    @property
    def prompt(self) -> str:
        return self.call.prompt


Strategy = Callable[[Transcript, dict[str, TaskCall], str, ResolverHints], "TaskCall | None"]


def by_tool_use_id(
    transcript: Transcript,
    task_calls: dict[str, TaskCall],
    target_agent_id: str,
    hints: ResolverHints,
) -> TaskCall | None:
    if not hints.tool_use_id:
        return None
    return task_calls.get(hints.tool_use_id)


def by_result_agent_id(
    transcript: Transcript,
    task_calls: dict[str, TaskCall],
    target_agent_id: str,
    hints: ResolverHints,
) -> TaskCall | None:
    for record in get_user_messages(transcript):
        result = record.tool_use_result
        if not result or result.get("agentId") != target_agent_id:
            continue
        for chunk in record.tool_results:
            call = task_calls.get(chunk.tool_use_id)
            if call is not None:
                return call
    return None


def by_time_window(
    transcript: Transcript,
    task_calls: dict[str, TaskCall],
    target_agent_id: str,
    hints: ResolverHints,
) -> TaskCall | None:
    if not hints.subagent_type or not hints.agent_start_timestamp:
        return None

    started = parse_timestamp(hints.agent_start_timestamp)
    if started is None:
        return None

    best: TaskCall | None = None
    best_time = None
    for call in task_calls.values():
        if call.subagent_type != hints.subagent_type:
            continue
        issued = parse_timestamp(call.timestamp)
        if issued is None:
            continue
        if not timedelta(0) <= started - issued <= hints.window:
            continue
        if best_time is None or issued > best_time:
            best, best_time = call, issued
    return best


STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("tool_use_id", by_tool_use_id),
    ("result_agent_id", by_result_agent_id),
    ("time_window", by_time_window),
)


def resolve_task_call(
    transcript: Transcript,
    target_agent_id: str,
    hints: ResolverHints | None = None,
    strategies: Sequence[tuple[str, Strategy]] = STRATEGIES,
) -> Resolution | None:
    """
    Find the Task call in ``transcript`` that spawned ``target_agent_id``.

    Args:
        transcript: Parent (main session) transcript
        target_agent_id: Agent id from the agent transcript's filename
        hints: Saved tool use id, known subagent type, agent start time
        strategies: Ordered (name, strategy) pairs to try

    Returns:
        Resolution for the first strategy that matches, or None
    """
    hints = hints or ResolverHints()
    task_calls = get_task_calls(transcript)
    if not task_calls:
        logger.debug(f"No Task calls in {transcript.source_path}")
        return None

    for name, strategy in strategies:
        call = strategy(transcript, task_calls, target_agent_id, hints)
        if call is not None:
            logger.debug(f"Agent {target_agent_id} matched Task call {call.tool_use_id} by {name}")
            return Resolution(call=call, strategy=name)

    logger.debug(f"Agent {target_agent_id} matched no Task call in {transcript.source_path}")
    return None


__all__ = [
    "DEFAULT_MATCH_WINDOW",
    "ResolverHints",
    "Resolution",
    "Strategy",
    "by_tool_use_id",
    "by_result_agent_id",
    "by_time_window",
    "STRATEGIES",
    "resolve_task_call",
]
