"""
Conversation data model: roles, messages, tool calls and tool definitions.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


SYSTEM_ROLE = "system"
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
TOOL_ROLE = "tool"

ROLES = (SYSTEM_ROLE, USER_ROLE, ASSISTANT_ROLE, TOOL_ROLE)


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            arguments=str(data.get("arguments") or ""),
        )


@dataclass
class ToolDefinition:
    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Message:
    role: str
    content: str = ""
    tool_call_id: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"role": self.role}
        if self.content:
            data["content"] = self.content
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            data["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            role=str(data.get("role") or ""),
            content=str(data.get("content") or ""),
            tool_call_id=str(data.get("tool_call_id") or ""),
            tool_calls=[ToolCall.from_dict(item) for item in data.get("tool_calls") or []],
        )


def system_message(content: str) -> Message:
    return Message(role=SYSTEM_ROLE, content=content)


def user_message(content: str) -> Message:
    return Message(role=USER_ROLE, content=content)


def tool_result_message(tool_call_id: str, content: str) -> Message:
    return Message(role=TOOL_ROLE, content=content, tool_call_id=tool_call_id)
