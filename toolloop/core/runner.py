"""
Turn runner: drives model turns and tool dispatch for one prompt until the
model stops, a budget is exceeded, or the prompt is cancelled.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from ..tools.json_args import normalize_json_arguments
from .cancel import CancelToken, DeadlineExceeded, PromptCancelledError
from .conversation import ASSISTANT_ROLE, Message, ToolCall, ToolDefinition, tool_result_message, user_message
from .llm_client import ProtocolError
from .logging_utils import format_event


ExecuteTool = Callable[[CancelToken, str, ToolCall], str]


class RunnerError(Exception):
    """Base for runner failures; partial_text is the last assistant text seen."""

    def __init__(self, message: str, partial_text: str = ""):
        super().__init__(message)
        self.partial_text = partial_text


class BudgetExceeded(RunnerError):
    pass


class MaxTurnsExceeded(BudgetExceeded):
    pass


class ToolCallBudgetExceeded(BudgetExceeded):
    pass


class PromptCancelled(RunnerError):
    pass


class PromptDeadlineExceeded(PromptCancelled):
    pass


@dataclass(frozen=True)
class Policy:
    max_turns: int = 0
    max_tool_calls: int = 0


class Runner:
    def __init__(
        self,
        client: Any,
        model: str,
        tool_definitions: List[ToolDefinition],
        execute_tool: Optional[ExecuteTool],
        logger: Optional[logging.Logger] = None,
        policy: Optional[Policy] = None,
    ):
        self.client = client
        self.model = model
        self.tool_definitions = list(tool_definitions)
        self.execute_tool = execute_tool
        self.logger = logger or logging.getLogger(__name__)
        self.policy = policy or Policy()

    def run_prompt(
        self, history: List[Message], prompt: str, correlation_id: str, cancel: Optional[CancelToken] = None
    ) -> str:
        """Append prompt to history, run turns in place, and return the final assistant text."""
        if self.client is None:
            raise ValueError("agent runner missing llm client")
        if self.execute_tool is None:
            raise ValueError("agent runner missing tool executor")
        cancel = cancel or CancelToken()

        history.append(user_message(prompt))

        turn = 1
        tool_calls_used = 0
        last_text = ""

        while True:
            self._check_cancel(cancel, last_text)
            if self.policy.max_turns > 0 and turn > self.policy.max_turns:
                raise MaxTurnsExceeded(f"max turns exceeded: limit={self.policy.max_turns}", last_text)

            self._event("turn_start", correlation_id=correlation_id, turn=turn, messages=len(history))
            self.logger.debug("starting agent turn %d with %d message(s)", turn, len(history))
            try:
                response = self.client.complete(self.model, history, self.tool_definitions, cancel=cancel)
            except (PromptCancelledError, DeadlineExceeded) as exc:
                self._check_cancel(cancel, last_text)
                raise PromptCancelled(str(exc) or "prompt cancelled", last_text) from exc
            except Exception:
                self._check_cancel(cancel, last_text)
                raise
            if not response.choices:
                raise ProtocolError("no choices in response")

            choice = response.choices[0]
            message = choice.message
            assistant = Message(role=ASSISTANT_ROLE, content=message.content)
            for call in message.tool_calls:
                arguments, valid = normalize_json_arguments(call.arguments)
                if not valid:
                    arguments = "{}"
                    self.logger.warning(
                        "tool call id=%s name=%s arguments were unrecoverable; replaced with empty object",
                        call.id,
                        call.name,
                    )
                elif arguments != call.arguments:
                    self.logger.warning(
                        "tool call id=%s name=%s had malformed arguments; sanitized before history append",
                        call.id,
                        call.name,
                    )
                if not call.id.strip() or not call.name.strip():
                    continue
                assistant.tool_calls.append(ToolCall(id=call.id, name=call.name, arguments=arguments))

            # Appended before any tool is dispatched.
            history.append(assistant)
            if assistant.content.strip():
                last_text = assistant.content

            tool_call_count = len(assistant.tool_calls)
            self._event(
                "turn_end",
                correlation_id=correlation_id,
                turn=turn,
                finish_reason=choice.finish_reason,
                tool_calls=tool_call_count,
            )
            self.logger.info("turn %d finished with reason=%s tool_calls=%d", turn, choice.finish_reason, tool_call_count)
            if choice.finish_reason == "stop" or tool_call_count == 0:
                self.logger.debug("agent loop stopping on turn %d", turn)
                break

            if self.policy.max_tool_calls > 0 and tool_calls_used + tool_call_count > self.policy.max_tool_calls:
                raise ToolCallBudgetExceeded(
                    f"tool call budget exceeded: limit={self.policy.max_tool_calls} "
                    f"used={tool_calls_used} requested={tool_call_count}",
                    last_text,
                )

            for call in assistant.tool_calls:
                self._check_cancel(cancel, last_text)
                self._event("tool_start", correlation_id=correlation_id, turn=turn, tool_call_id=call.id, tool=call.name)
                self.logger.info("executing tool call id=%s name=%s", call.id, call.name)
                output = self.execute_tool(cancel, correlation_id, call)
                self._event(
                    "tool_end",
                    correlation_id=correlation_id,
                    turn=turn,
                    tool_call_id=call.id,
                    tool=call.name,
                    response_bytes=len(output.encode("utf-8")),
                )
                history.append(tool_result_message(call.id, output))

            tool_calls_used += tool_call_count
            turn += 1

        self.logger.debug("assistant completed and produced final response")
        return last_text

    def _check_cancel(self, cancel: CancelToken, last_text: str):
        if cancel.cancelled:
            raise PromptCancelled("prompt cancelled", last_text)
        if cancel.expired:
            raise PromptDeadlineExceeded("prompt deadline exceeded", last_text)

    def _event(self, event: str, **fields: Any):
        self.logger.info(format_event(event, fields))
