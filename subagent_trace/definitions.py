"""Agent definition files and the skills they preload.

An agent type ``T`` may be described by ``<cwd>/.claude/agents/T.md``: YAML
frontmatter followed by prose. Only the frontmatter is read here; its
``skills`` field lists skill names, each resolved to
``<cwd>/.claude/skills/<name>/SKILL.md``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from .config import TraceConfig, default_config

logger = logging.getLogger(__name__)

_FRONTMATTER = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)


def parse_frontmatter(text: str) -> dict[str, Any]:
    """Leading YAML block of a markdown document, or {} if absent or invalid."""
    match = _FRONTMATTER.match(text.lstrip("\ufeff"))
    if not match:
        return {}
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Invalid frontmatter: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def _to_string_list(value: Any) -> list[str]:
    # "skills: a, b" and "skills: [a, b]" are both accepted
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if isinstance(item, (str, int)) and str(item).strip()]
    return []


def find_agent_file(cwd: Path | str, subagent_type: str, config: TraceConfig | None = None) -> Path | None:
    """Definition file for an agent type, if the project has one."""
    config = config or default_config
    if not subagent_type:
        return None
    path = config.agent_file(cwd, subagent_type)
    return path if path.is_file() else None


def load_agent_skills(agent_file: Path | str) -> list[str]:
    """Skill names declared in an agent definition's frontmatter."""
    try:
        text = Path(agent_file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read agent definition {agent_file}: {e}")
        return []
    return _to_string_list(parse_frontmatter(text).get("skills"))


def skill_files(cwd: Path | str, skills: list[str], config: TraceConfig | None = None) -> list[str]:
    """Expected SKILL.md path for each skill. Existence is not checked."""
    config = config or default_config
    return [str(config.skill_file(cwd, skill)) for skill in skills]


__all__ = [
    "parse_frontmatter",
    "find_agent_file",
    "load_agent_skills",
    "skill_files",
]
