from __future__ import annotations

import logging
import sys
import time

from ...core.runner import RunnerError
from ...core.runtime import AgentRuntime
from ...core.session import default_session_id, normalize_session_id


EXIT_COMMANDS = {":exit", ":quit", "exit", "quit"}


def add_chat(subparsers, parents=()):
    parser = subparsers.add_parser("chat", help="Interactive chat", parents=list(parents))
    parser.add_argument("--session", default="", help="Session id (default: timestamp of this run)")
    parser.set_defaults(func=run_chat)


def run_chat(args, settings, runtime=None, read_input=input) -> int:
    logger = logging.getLogger(__name__)
    try:
        session_id = normalize_session_id(args.session) or default_session_id()
        runtime = runtime or AgentRuntime(settings)
        history = runtime.load_history(session_id)
    except (ValueError, RuntimeError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(f"session: {session_id}", file=sys.stderr)
    print("Interactive chat. Type ':exit' or ':quit' (or Ctrl-D) to leave.")
    while True:
        try:
            user_input = read_input("you> ").strip()
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("\nBye.")
            break

        if not user_input:
            continue
        if user_input.lower() in EXIT_COMMANDS:
            break

        start = time.perf_counter()
        try:
            answer = runtime.run_session_prompt(session_id, history, user_input)
        except KeyboardInterrupt:
            print("\nRequest cancelled. Ready for next prompt.")
            continue
        except RunnerError as exc:
            logger.error("Prompt failed: %s", exc)
            if exc.partial_text:
                print(f"assistant> {exc.partial_text}")
            print(f"error: {exc}", file=sys.stderr)
            continue
        except Exception as exc:
            logger.error("Chat failed: %s", exc)
            print(f"error: {exc}", file=sys.stderr)
            continue

        print(f"assistant> {answer}")
        logger.debug("Prompt completed in %.2fs", time.perf_counter() - start)
    return 0
