"""
Command line entry point.

Usage:
    # As Claude Code hooks (hook JSON on stdin, output JSON on stdout)
    subagent-trace start
    subagent-trace stop

    # Inspect transcripts directly
    subagent-trace edits ~/.claude/projects/-my-proj/agent-42.jsonl
    subagent-trace session ~/.claude/projects/-my-proj/S1.jsonl
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from .agent_edits import get_agent_edits
from .config import TraceConfig
from .context_store import ContextStore
from .errors import SubagentTraceError
from .hooks import HANDLERS
from .parser import parse_session

logger = logging.getLogger("subagent_trace")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(debug: bool, log_file: Path | None = None) -> None:
    """
    Send package logs to stderr, plus a file when debugging.

    stdout is reserved for the JSON output record.
    """
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    logger.handlers.clear()
    logger.propagate = False

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(stderr_handler)

    if debug and log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not open debug log {log_file}: {e}")
        else:
            file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
            logger.addHandler(file_handler)


def debug_log_path(config: TraceConfig, cwd: str | Path, event: str) -> Path:
    """Per-invocation log file: <cwd>/<log_dir>/<timestamp>-<event>.log"""
    stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
    return config.log_directory(cwd) / f"{stamp}-{event}.log"


def read_hook_input() -> dict[str, Any]:
    """Read hook input from stdin. Anything but a JSON object reads as {}."""
    try:
        data = sys.stdin.read()
        if data.strip():
            parsed = json.loads(data)
            if isinstance(parsed, dict):
                return parsed
    except json.JSONDecodeError:
        pass
    return {}


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def _run_hook(event: str, args: argparse.Namespace, config: TraceConfig) -> int:
    hook_input = read_hook_input()
    debug = config.debug or bool(hook_input.get("debug"))
    cwd = hook_input.get("cwd") or Path.cwd()
    configure_logging(debug, debug_log_path(config, cwd, event))

    if not hook_input:
        logger.error(f"{event}: no hook input on stdin")
        _emit({})
        return 0

    _emit(HANDLERS[event](hook_input, config=config))
    return 0


def cmd_start(args: argparse.Namespace, config: TraceConfig) -> int:
    return _run_hook("SubagentStart", args, config)


def cmd_stop(args: argparse.Namespace, config: TraceConfig) -> int:
    return _run_hook("SubagentStop", args, config)


def cmd_edits(args: argparse.Namespace, config: TraceConfig) -> int:
    configure_logging(config.debug)
    store = ContextStore(args.context_path) if args.context_path else None
    try:
        edits = get_agent_edits(
            args.transcript,
            subagent_type=args.subagent_type,
            store=store,
            config=config,
        )
    except SubagentTraceError as e:
        _emit({"error": str(e), "path": getattr(e, "path", str(args.transcript))})
        return 1

    _emit(edits.model_dump(by_alias=True))
    return 0


def cmd_session(args: argparse.Namespace, config: TraceConfig) -> int:
    configure_logging(config.debug)
    try:
        session = parse_session(args.transcript)
    except FileNotFoundError as e:
        _emit({"error": str(e), "path": str(args.transcript)})
        return 1

    _emit({
        "sessionId": session.session_id,
        "slug": session.slug,
        "records": len(session.main_transcript),
        "agents": [
            {
                "agentId": t.agent_id,
                "subagentType": t.subagent_type,
                "records": len(t),
                "path": t.source_path,
            }
            for t in session.subagent_transcripts
        ],
    })
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="subagent-trace",
        description="Correlate Claude Code agent transcripts with the Task calls that spawned them",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging (and a log file for hooks)")
    parser.add_argument("--config", type=Path, help="Config file (default: ~/.claude/subagent-trace-config.json)")

    sub = parser.add_subparsers(dest="command", required=True)

    start = sub.add_parser("start", help="SubagentStart hook: save agent context")
    start.set_defaults(func=cmd_start)

    stop = sub.add_parser("stop", help="SubagentStop hook: analyze agent edits")
    stop.set_defaults(func=cmd_stop)

    edits = sub.add_parser("edits", help="Print edit analysis for an agent transcript")
    edits.add_argument("transcript", type=Path, help="Path to agent-<id>.jsonl")
    edits.add_argument("--subagent-type", help="Fallback subagent type")
    edits.add_argument("--context-path", type=Path, help="Context store file")
    edits.set_defaults(func=cmd_edits)

    session = sub.add_parser("session", help="Summarize a session and its agents")
    session.add_argument("transcript", type=Path, help="Path to <session_id>.jsonl")
    session.set_defaults(func=cmd_session)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = TraceConfig.load(args.config)
    if args.debug:
        config.debug = True
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
