from __future__ import annotations

import logging
import sys

from ...core.runner import RunnerError
from ...core.runtime import AgentRuntime
from ...core.session import normalize_session_id


def add_ask(subparsers, parents=()):
    parser = subparsers.add_parser("ask", help="One-shot prompt", parents=list(parents))
    parser.add_argument("prompt")
    parser.add_argument("--session", default="", help="Session id to load and save history under")
    parser.set_defaults(func=run_ask)


def run_ask(args, settings, runtime=None) -> int:
    logger = logging.getLogger(__name__)
    try:
        session_id = normalize_session_id(args.session)
        runtime = runtime or AgentRuntime(settings)
        history = runtime.load_history(session_id)
    except (ValueError, RuntimeError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    try:
        answer = runtime.run_session_prompt(session_id, history, args.prompt)
    except RunnerError as exc:
        logger.error("Prompt failed: %s", exc)
        if exc.partial_text:
            print(exc.partial_text)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        logger.error("Prompt failed: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(answer)
    return 0
