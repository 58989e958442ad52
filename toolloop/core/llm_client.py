"""
OpenAI-compatible chat completion client.
Converts between the runtime's message model and OpenAI request/response shapes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

try:
    from openai import OpenAI
except ModuleNotFoundError:  # pragma: no cover - handled at runtime
    OpenAI = None

from .cancel import CancelToken
from .config import Settings, require_api_key
from .conversation import (
    ASSISTANT_ROLE,
    SYSTEM_ROLE,
    TOOL_ROLE,
    USER_ROLE,
    Message,
    ToolCall,
    ToolDefinition,
)


class ProtocolError(Exception):
    """The provider exchange is malformed; the turn loop cannot continue."""


@dataclass
class Choice:
    finish_reason: str
    message: Message


@dataclass
class CompletionResponse:
    choices: List[Choice] = field(default_factory=list)


class LLMClient:
    def __init__(self, settings: Settings, client: Any = None):
        self.settings = settings
        self.logger = logging.getLogger(__name__)
        if client is None:
            if OpenAI is None:
                raise RuntimeError("Dependency missing: install the 'openai' package to use LLM features.")
            client = OpenAI(base_url=settings.base_url, api_key=require_api_key(settings))
        self.client = client
        self.logger.info("LLMClient initialized with base_url=%s model=%s", settings.base_url, settings.model)

    def complete(
        self,
        model: str,
        messages: List[Message],
        tools: List[ToolDefinition],
        cancel: Optional[CancelToken] = None,
    ) -> CompletionResponse:
        """Send a non-streaming chat completion request."""
        params: Dict[str, Any] = {
            "model": model or self.settings.model,
            "messages": to_openai_messages(messages),
        }
        if tools:
            params["tools"] = to_openai_tools(tools)
        if cancel is not None:
            cancel.raise_if_done()
            remaining = cancel.remaining()
            if remaining is not None:
                params["timeout"] = remaining

        self.logger.debug("Sending chat with %d messages and %d tools", len(messages), len(tools))
        response = self.client.chat.completions.create(**params)
        return from_openai_response(response)


def to_openai_tools(definitions: List[ToolDefinition]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": definition.name,
                "description": definition.description,
                "parameters": dict(definition.parameters),
            },
        }
        for definition in definitions
    ]


def to_openai_messages(messages: List[Message]) -> List[Dict[str, Any]]:
    result = []
    for message in messages:
        if message.role in (SYSTEM_ROLE, USER_ROLE):
            result.append({"role": message.role, "content": message.content})
        elif message.role == ASSISTANT_ROLE:
            param: Dict[str, Any] = {"role": ASSISTANT_ROLE}
            if message.content.strip() or not message.tool_calls:
                param["content"] = message.content
            if message.tool_calls:
                param["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments},
                    }
                    for call in message.tool_calls
                ]
            result.append(param)
        elif message.role == TOOL_ROLE:
            result.append({"role": TOOL_ROLE, "tool_call_id": message.tool_call_id, "content": message.content})
        else:
            raise ProtocolError(f"unsupported message role {message.role!r}")
    return result


def from_openai_response(response: Any) -> CompletionResponse:
    if response is None:
        return CompletionResponse()
    return CompletionResponse(
        choices=[
            Choice(finish_reason=choice.finish_reason or "", message=from_openai_message(choice.message))
            for choice in response.choices or []
        ]
    )


def from_openai_message(message: Any) -> Message:
    content = (message.content or "").strip()
    if not content:
        content = (getattr(message, "refusal", None) or "").strip()

    tool_calls = []
    for call in getattr(message, "tool_calls", None) or []:
        function = getattr(call, "function", None)
        if function is None:
            continue
        tool_calls.append(ToolCall(id=call.id or "", name=function.name or "", arguments=function.arguments or ""))

    return Message(role=ASSISTANT_ROLE, content=content, tool_calls=tool_calls)
