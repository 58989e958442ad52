"""
Shared tool plumbing: execution context, capability base class and the
JSON response envelope every tool result is wrapped in.
"""
from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.cancel import CancelToken
from ..core.conversation import ToolDefinition


FALLBACK_ENVELOPE = '{"ok":false,"error":{"message":"failed to encode tool response envelope"}}'


class ToolError(Exception):
    """Tool-level failure; reported to the model inside an error envelope."""


class ToolTimeout(ToolError):
    pass


class ToolCancelled(ToolError):
    pass


@dataclass
class ToolContext:
    cwd: str = ""
    allowed_root: str = ""
    timeout: float = 0.0
    cancel: Optional[CancelToken] = None
    correlation_id: str = ""
    logger: Optional[logging.Logger] = None

    def effective_timeout(self, fallback: float) -> float:
        return self.timeout if self.timeout > 0 else fallback

    def token(self) -> CancelToken:
        return self.cancel if self.cancel is not None else CancelToken()

    @property
    def log(self) -> logging.Logger:
        return self.logger or logging.getLogger("toolloop.tools")


class Tool:
    """A capability the model can call: a name, a JSON schema and an execute()."""

    name = ""
    description = ""
    parameters: Dict[str, Any] = {"type": "object", "properties": {}}

    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, parameters=copy.deepcopy(self.parameters))

    def execute(self, context: ToolContext, arguments: str) -> Any:
        raise NotImplementedError


def parse_arguments(arguments: str) -> Dict[str, Any]:
    try:
        payload = json.loads(arguments or "{}")
    except json.JSONDecodeError as exc:
        raise ToolError(f"error parsing arguments: {exc}") from exc
    if not isinstance(payload, dict):
        raise ToolError("error parsing arguments: expected a JSON object")
    return payload


def string_arg(args: Dict[str, Any], key: str, required: bool = False) -> str:
    value = args.get(key)
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ToolError(f"error parsing arguments: {key} must be a string")
    if required and not value.strip():
        raise ToolError(f"{key} must be a non-empty string")
    return value


def success_envelope(data: Any, meta: Optional[Dict[str, Any]] = None) -> str:
    return encode_envelope({"ok": True, "data": data, "meta": meta or {}})


def error_envelope(message: str, meta: Optional[Dict[str, Any]] = None) -> str:
    return encode_envelope({"ok": False, "error": {"message": message}, "meta": meta or {}})


def encode_envelope(envelope: Dict[str, Any]) -> str:
    try:
        return json.dumps(envelope, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return FALLBACK_ENVELOPE
