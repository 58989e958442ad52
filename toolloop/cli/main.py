"""
Entry point for the toolloop CLI.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..core.config import (
    Settings,
    load_env_files,
    load_settings,
    parse_duration,
    validate_settings,
)
from ..core.logging_utils import setup_logging
from ..cli import commands


def build_parser() -> argparse.ArgumentParser:
    shared = argparse.ArgumentParser(add_help=False)
    shared.add_argument("--config", type=Path, help="Path to settings TOML (default config/settings.toml)")
    shared.add_argument("--log-enabled", dest="log_enabled", action="store_true", default=None, help="Enable logging")
    shared.add_argument("--no-log-enabled", dest="log_enabled", action="store_false", help="Disable logging")
    shared.add_argument("--log-level", help="error, warn, info or debug")
    shared.add_argument("--log-sink", help="stderr, stdout or json-file")
    shared.add_argument("--log-file", help="Log file path (required for json-file sink)")
    shared.add_argument("--turn-timeout", help="Per-prompt timeout, e.g. 90s or 2m")
    shared.add_argument("--tool-timeout", help="Per-tool timeout, e.g. 30s")
    shared.add_argument("--max-turns", type=int, help="Maximum model turns per prompt (0 = unlimited)")
    shared.add_argument("--max-tool-calls", type=int, help="Maximum tool calls per prompt (0 = unlimited)")

    parser = argparse.ArgumentParser(prog="toolloop", description="Tool-calling agent runtime")
    subparsers = parser.add_subparsers(dest="command")
    commands.register(subparsers, [shared])
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """CLI flags win over file and environment values."""
    if args.log_enabled is not None:
        settings.log_enabled = args.log_enabled
    if args.log_level is not None:
        settings.log_level = args.log_level.strip().lower()
    if args.log_sink is not None:
        settings.log_sink = args.log_sink.strip().lower()
    if args.log_file is not None:
        settings.log_file = args.log_file.strip()
    if args.turn_timeout is not None:
        settings.turn_timeout = parse_duration(args.turn_timeout, -1.0)
    if args.tool_timeout is not None:
        settings.tool_timeout = parse_duration(args.tool_timeout, -1.0)
    if args.max_turns is not None:
        settings.max_turns = args.max_turns
    if args.max_tool_calls is not None:
        settings.max_tool_calls = args.max_tool_calls
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 1

    load_env_files()
    try:
        settings = apply_overrides(load_settings(args.config), args)
        validate_settings(settings)
    except (ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    setup_logging(settings)
    logging.getLogger(__name__).debug("Starting command %s", args.command)
    return commands.dispatch(args, settings)


if __name__ == "__main__":
    sys.exit(main())
