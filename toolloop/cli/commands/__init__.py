from __future__ import annotations

from .ask import add_ask
from .chat import add_chat


def register(subparsers, parents=()):
    add_chat(subparsers, parents)
    add_ask(subparsers, parents)


def dispatch(args, settings) -> int:
    if not hasattr(args, "func"):
        raise SystemExit("No command provided")
    return args.func(args, settings)
