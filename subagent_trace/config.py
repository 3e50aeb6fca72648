"""
Configuration management for subagent-trace.

Settings live in ~/.claude/subagent-trace-config.json. Project-relative
paths are resolved against the cwd of the session being analyzed.
"""

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

CONFIG_PATH = Path.home() / ".claude" / "subagent-trace-config.json"

DEFAULT_TRACE_CONFIG = {
    "context_store_path": ".claude/state/active-subagents.json",
    "agents_dir": ".claude/agents",
    "skills_dir": ".claude/skills",
    "skill_file_name": "SKILL.md",
    "match_window_seconds": 10.0,
    "debug": False,
    "log_dir": ".claude/logs/hooks",
}


def _filter_dataclass_fields(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter dict to only include fields that exist in the dataclass."""
    valid_fields = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_fields}


def _env_flag(name: str) -> bool | None:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class TraceConfig:
    """
    subagent-trace user configuration.

    Locations of the start-context store, agent definitions, skills and
    debug logs, plus the time window used to match a running agent to its
    Task call when no exact link exists yet.
    """

    context_store_path: str = ".claude/state/active-subagents.json"
    agents_dir: str = ".claude/agents"
    skills_dir: str = ".claude/skills"
    skill_file_name: str = "SKILL.md"
    match_window_seconds: float = 10.0
    debug: bool = False
    log_dir: str = ".claude/logs/hooks"

    @classmethod
    def load(cls, path: Path | None = None) -> "TraceConfig":
        """
        Load config from file with defaults.

        Priority order:
        1. SUBAGENT_TRACE_DEBUG environment variable (debug only)
        2. Config file (SUBAGENT_TRACE_CONFIG, else ~/.claude/subagent-trace-config.json)
        3. Defaults

        Args:
            path: Optional config file path

        Returns:
            TraceConfig with user settings merged over defaults
        """
        if path is None:
            env_path = os.getenv("SUBAGENT_TRACE_CONFIG")
            path = Path(env_path) if env_path else CONFIG_PATH

        config = DEFAULT_TRACE_CONFIG.copy()

        if path.exists():
            try:
                user_config = json.loads(path.read_text())
                if isinstance(user_config, dict):
                    config.update(user_config)
            except (json.JSONDecodeError, UnicodeDecodeError, IOError):
                # Use defaults on error
                pass

        debug = _env_flag("SUBAGENT_TRACE_DEBUG")
        if debug is not None:
            config["debug"] = debug

        return cls(**_filter_dataclass_fields(config, cls))

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = CONFIG_PATH

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)

    def context_store_file(self, cwd: Path | str) -> Path:
        return Path(cwd) / self.context_store_path

    def agent_file(self, cwd: Path | str, subagent_type: str) -> Path:
        return Path(cwd) / self.agents_dir / f"{subagent_type}.md"

    def skill_file(self, cwd: Path | str, skill: str) -> Path:
        return Path(cwd) / self.skills_dir / skill / self.skill_file_name

    def log_directory(self, cwd: Path | str) -> Path:
        return Path(cwd) / self.log_dir


# Default configuration instance
default_config = TraceConfig()
