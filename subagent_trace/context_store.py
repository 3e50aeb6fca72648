"""
Agent start-context store.

Hands facts observed when an agent starts (SubagentStart) to the separate
process that runs when it stops (SubagentStop). The transport is one JSON
file mapping agent_id -> AgentStartContext:

    {
      "<agent_id>": {
        "agentId": "...", "agentType": "...", "sessionId": "...",
        "timestamp": "...", "prompt": "...", "toolUseId": "..."
      }
    }

Contract:
- key: agent id; at most one live entry per key, last write wins
- the start process writes, the stop process reads then removes
- a missing or corrupt file reads as an empty store

Writes are atomic (temp file + rename) and re-read the file just before
writing, but there is no lock. Two agents starting at the same instant can
still race and one entry may be lost; the stop side then falls back to the
other correlation strategies.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_PATH = Path(".claude") / "state" / "active-subagents.json"


class AgentStartContext(BaseModel):
    """What the start half knew about an agent's spawning Task call."""

    agent_id: str = Field(alias="agentId")
    agent_type: str = Field(default="", alias="agentType")
    session_id: str = Field(default="", alias="sessionId")
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    prompt: str = ""
    tool_use_id: str = Field(default="", alias="toolUseId")

    model_config = {
        "populate_by_name": True,
    }

    def to_json_dict(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class ContextStore:
    """
    Keyed AgentStartContext records persisted as a single JSON file.

    Inject one instance per project; ``for_project`` builds the default
    location under the project's ``.claude/state`` directory.
    """

    def __init__(self, path: Path | str):
        """
        Initialize the store.

        Args:
            path: JSON file backing the store (created on first save)
        """
        self.path = Path(path)

    @classmethod
    def for_project(cls, cwd: Path | str, relative_path: Path | str | None = None) -> "ContextStore":
        return cls(Path(cwd) / (relative_path or DEFAULT_CONTEXT_PATH))

    def _read(self) -> dict[str, AgentStartContext]:
        """Read every entry. Missing, corrupt or malformed data reads as empty."""
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable context store {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring context store with non-object root: {self.path}")
            return {}

        contexts: dict[str, AgentStartContext] = {}
        for agent_id, raw in data.items():
            if not isinstance(raw, dict):
                continue
            try:
                contexts[agent_id] = AgentStartContext.model_validate({"agentId": agent_id, **raw})
            except ValidationError:
                logger.debug(f"Skipping malformed context entry for agent {agent_id}")
        return contexts

    def _write(self, contexts: dict[str, AgentStartContext]) -> None:
        """
        Atomically write the whole map.

        Uses write-to-temp-then-rename so readers never see a partial file.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {agent_id: ctx.to_json_dict() for agent_id, ctx in contexts.items()}

        fd, temp_path = tempfile.mkstemp(
            suffix=".tmp",
            prefix="active-subagents_",
            dir=self.path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(temp_path, self.path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def save(self, agent_id: str, context: AgentStartContext) -> AgentStartContext:
        """
        Insert or overwrite the context for an agent.

        Args:
            agent_id: Key for the entry
            context: Context to store

        Returns:
            The stored context
        """
        contexts = self._read()
        contexts[agent_id] = context
        self._write(contexts)
        logger.debug(f"Saved start context for agent {agent_id} ({len(contexts)} active)")
        return context

    def load(self, agent_id: str) -> AgentStartContext | None:
        """
        Load the context for an agent.

        Returns:
            The context, or None if none was saved
        """
        return self._read().get(agent_id)

    def remove(self, agent_id: str) -> bool:
        """
        Delete the context for an agent. Removing an absent key is a no-op.

        Returns:
            True if an entry was removed
        """
        contexts = self._read()
        if agent_id not in contexts:
            return False
        del contexts[agent_id]
        self._write(contexts)
        logger.debug(f"Removed start context for agent {agent_id}")
        return True

    def list_active(self) -> dict[str, AgentStartContext]:
        """All live entries, keyed by agent id."""
        return self._read()


__all__ = [
    "DEFAULT_CONTEXT_PATH",
    "AgentStartContext",
    "ContextStore",
]
