"""
Claude Code transcript parser.

Reads the JSONL transcript files that Claude Code maintains at:
~/.claude/projects/{sanitized_cwd}/{session_id}.jsonl
~/.claude/projects/{sanitized_cwd}/agent-{agent_id}.jsonl

Parsing is lenient: lines that are not JSON, or that lack the minimum
fields for their record kind, are dropped. Files may be appended to while
we read them, and newer Claude Code versions add record kinds we do not
know about.

Agent identity comes from the filename, never from the content, so it is
available even for an empty transcript.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Collection

from pydantic import ValidationError

from .errors import TranscriptParseError
from .messages import (
    MESSAGE_KINDS,
    RECORD_MODELS,
    Message,
    Record,
    is_message,
)

logger = logging.getLogger(__name__)

AGENT_FILE_PREFIX = "agent-"
TRANSCRIPT_SUFFIX = ".jsonl"

# Message kinds must carry these to be trusted
_REQUIRED_MESSAGE_FIELDS = ("uuid", "timestamp", "sessionId")


@dataclass
class TranscriptInfo:
    """Identity derived from a transcript's filename alone."""

    source_path: str
    agent_id: str | None = None
    is_sidechain: bool = False


@dataclass
class Transcript:
    """One parsed transcript file."""

    source_path: str
    session_id: str = ""
    agent_id: str | None = None
    is_sidechain: bool = False
    subagent_type: str | None = None
    records: list[Record] = field(default_factory=list)

    @property
    def messages(self) -> list[Message]:
        """User, assistant and system records, in file order."""
        return [r for r in self.records if is_message(r)]

    @property
    def first_message(self) -> Message | None:
        for record in self.records:
            if is_message(record):
                return record
        return None

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class Session:
    """A main transcript plus the agent transcripts that share its session."""

    session_id: str
    main_transcript: Transcript
    subagent_transcripts: list[Transcript] = field(default_factory=list)
    slug: str | None = None

    def get_subagent(self, agent_id: str) -> Transcript | None:
        for transcript in self.subagent_transcripts:
            if transcript.agent_id == agent_id:
                return transcript
        return None


# -----------------------------------------------------------------------------
# Low-level parsing
# -----------------------------------------------------------------------------


def parse_line(line: str) -> Record | None:
    """
    Parse a single JSONL line.

    Args:
        line: Raw line text

    Returns:
        Typed record, or None when the line is not a usable record
    """
    try:
        data = json.loads(line)
    except (json.JSONDecodeError, TypeError):
        return None

    if not isinstance(data, dict):
        return None

    kind = data.get("type")
    model = RECORD_MODELS.get(kind) if isinstance(kind, str) else None
    if model is None:
        return None

    if kind in MESSAGE_KINDS and not all(isinstance(data.get(k), str) for k in _REQUIRED_MESSAGE_FIELDS):
        return None

    try:
        return model.model_validate(data)
    except ValidationError:
        return None


def transcript_info(path: str | Path) -> TranscriptInfo:
    """
    Derive agent identity from a transcript path without reading it.

    ``agent-<id>.jsonl`` is an agent (sidechain) transcript; anything else is
    a main session transcript named by session id.
    """
    name = Path(path).name
    if not name.startswith(AGENT_FILE_PREFIX):
        return TranscriptInfo(source_path=str(path))

    agent_id = name[len(AGENT_FILE_PREFIX):]
    if agent_id.endswith(TRANSCRIPT_SUFFIX):
        agent_id = agent_id[: -len(TRANSCRIPT_SUFFIX)]
    return TranscriptInfo(source_path=str(path), agent_id=agent_id or None, is_sidechain=True)


# -----------------------------------------------------------------------------
# Transcript parsing
# -----------------------------------------------------------------------------


def parse_transcript(
    path: str | Path,
    kinds: Collection[str] | None = None,
    lenient: bool = True,
) -> Transcript:
    """
    Parse a full transcript file.

    Args:
        path: Path to the .jsonl file
        kinds: Only keep records of these kinds (default: all)
        lenient: Drop invalid lines instead of raising

    Returns:
        Transcript with records in file order

    Raises:
        FileNotFoundError: If the file does not exist
        TranscriptParseError: On an invalid line when lenient is False
    """
    path = Path(path)
    info = transcript_info(path)

    with open(path, "rb") as f:
        content = f.read()

    transcript = Transcript(
        source_path=str(path),
        agent_id=info.agent_id,
        is_sidechain=info.is_sidechain,
    )

    dropped = 0
    for line_number, raw_line in enumerate(content.split(b"\n"), start=1):
        if not raw_line.strip():
            continue

        # Decoded per line so one bad byte only costs its own line
        try:
            line = raw_line.decode("utf-8")
        except UnicodeDecodeError:
            line = raw_line.decode("utf-8", errors="replace")
            record = None
        else:
            record = parse_line(line)

        if record is None:
            if not lenient:
                raise TranscriptParseError(path, line_number, line)
            dropped += 1
            continue

        if not transcript.session_id and record.session_id:
            transcript.session_id = record.session_id

        if kinds is not None and record.kind not in kinds:
            continue

        transcript.records.append(record)

    if dropped:
        logger.debug(f"Dropped {dropped} unparseable line(s) from {path.name}")

    return transcript


def parent_transcript_path(agent_transcript_path: str | Path, session_id: str) -> Path:
    """Main session transcript that sits next to an agent transcript."""
    return Path(agent_transcript_path).parent / f"{session_id}{TRANSCRIPT_SUFFIX}"


def is_agent_transcript(path: str | Path) -> bool:
    name = Path(path).name
    return name.startswith(AGENT_FILE_PREFIX) and name.endswith(TRANSCRIPT_SUFFIX)


def parse_session(main_transcript_path: str | Path) -> Session:
    """
    Parse a main transcript with every agent transcript of the same session.

    Agent transcripts are discovered by listing the main transcript's
    directory. Each agent's subagent type is filled in from the results the
    main transcript has written back for its Task calls.

    Args:
        main_transcript_path: Path to {session_id}.jsonl

    Returns:
        Session with main and agent transcripts
    """
    from .queries import build_agent_type_map

    main_path = Path(main_transcript_path)
    main = parse_transcript(main_path)
    agent_types = build_agent_type_map(main)

    subagents: list[Transcript] = []
    for candidate in sorted(main_path.parent.iterdir()):
        if not candidate.is_file() or not is_agent_transcript(candidate):
            continue
        transcript = parse_transcript(candidate)
        if transcript.session_id != main.session_id:
            continue
        if transcript.agent_id:
            transcript.subagent_type = agent_types.get(transcript.agent_id)
        subagents.append(transcript)

    first = main.first_message
    return Session(
        session_id=main.session_id,
        main_transcript=main,
        subagent_transcripts=subagents,
        slug=first.slug if first else None,
    )


def resolve_subagent_type(agent_transcript_path: str | Path) -> str | None:
    """
    Look up an agent's subagent type from its parent's written-back results.

    Only works after the agent has finished. For running agents use
    ``resolve_task_call`` with hints instead.

    Returns:
        Subagent type or None if it cannot be determined
    """
    from .queries import build_agent_type_map

    info = transcript_info(agent_transcript_path)
    if not info.agent_id:
        return None

    agent = parse_transcript(agent_transcript_path)
    if not agent.session_id:
        return None

    parent_path = parent_transcript_path(agent_transcript_path, agent.session_id)
    if not parent_path.exists():
        return None

    return build_agent_type_map(parse_transcript(parent_path)).get(info.agent_id)


def project_transcript_dir(cwd: str | None = None) -> Path:
    """
    Directory holding a project's transcripts.

    Claude Code uses the working directory with "/" and " " replaced by "-".
    ``CLAUDE_TRANSCRIPT_DIR`` overrides the lookup.
    """
    override = os.environ.get("CLAUDE_TRANSCRIPT_DIR")
    if override:
        return Path(override)

    cwd = cwd or os.environ.get("CLAUDE_CWD", os.getcwd())
    sanitized = cwd.replace("/", "-").replace(" ", "-")
    return Path.home() / ".claude" / "projects" / sanitized


__all__ = [
    "AGENT_FILE_PREFIX",
    "TRANSCRIPT_SUFFIX",
    "TranscriptInfo",
    "Transcript",
    "Session",
    "parse_line",
    "transcript_info",
    "parse_transcript",
    "parent_transcript_path",
    "is_agent_transcript",
    "parse_session",
    "resolve_subagent_type",
    "project_transcript_dir",
]
