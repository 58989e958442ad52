"""
Runtime wiring: settings -> tool registry, provider client, runner and
session store. The CLI drives everything through AgentRuntime.
"""
from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime
from typing import Any, List, Optional

from ..tools.base import ToolContext
from ..tools.registry import ToolRegistry, default_registry, dispatch_tool_call
from .cancel import CancelToken
from .config import Settings
from .conversation import Message, ToolCall, system_message
from .llm_client import LLMClient
from .runner import Policy, Runner
from .session import JSONFileStore


def build_system_prompt(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    current_date = f"{now:%B} {now.day}, {now.year}"
    return (
        "You are a helpful personal assistant. "
        f"Today's date is {current_date}. "
        "Be concise, accurate, and practical. "
        "Use available tools when needed and clearly explain your reasoning and limits."
    )


def new_correlation_id() -> str:
    return f"corr-{time.time_ns()}-{secrets.token_hex(6)}"


class AgentRuntime:
    def __init__(
        self,
        settings: Settings,
        client: Any = None,
        registry: Optional[ToolRegistry] = None,
        store: Optional[JSONFileStore] = None,
    ):
        self.settings = settings
        self.logger = logging.getLogger(__name__)
        self.registry = registry if registry is not None else default_registry(settings)
        self.client = client if client is not None else LLMClient(settings)
        self.store = store if store is not None else JSONFileStore(settings.sessions_dir)
        self.workspace = str(settings.workspace)
        self.runner = Runner(
            client=self.client,
            model=settings.model,
            tool_definitions=self.registry.definitions(),
            execute_tool=self.execute_tool,
            logger=logging.getLogger("toolloop.core.runner"),
            policy=Policy(max_turns=settings.max_turns, max_tool_calls=settings.max_tool_calls),
        )

    def execute_tool(self, cancel: CancelToken, correlation_id: str, tool_call: ToolCall) -> str:
        context = ToolContext(
            cwd=self.workspace,
            allowed_root=self.workspace,
            timeout=self.settings.tool_timeout,
            cancel=cancel.child(self.settings.tool_timeout),
            correlation_id=correlation_id,
            logger=self.logger,
        )
        return dispatch_tool_call(self.registry, context, tool_call, self.logger)

    def load_history(self, session_id: str) -> List[Message]:
        history = self.store.load(session_id)
        if not history:
            history.append(system_message(build_system_prompt()))
        return history

    def run_turn(self, history: List[Message], prompt: str, cancel: Optional[CancelToken] = None) -> str:
        """Run one prompt under the turn timeout; history is updated in place."""
        correlation_id = new_correlation_id()
        token = (cancel or CancelToken()).child(self.settings.turn_timeout)
        self.logger.debug("Running prompt correlation_id=%s", correlation_id)
        return self.runner.run_prompt(history, prompt, correlation_id, cancel=token)

    def run_session_prompt(self, session_id: str, history: List[Message], prompt: str) -> str:
        """run_turn, then persist history whether or not the prompt succeeded."""
        try:
            return self.run_turn(history, prompt)
        finally:
            self.store.save(session_id, history)
