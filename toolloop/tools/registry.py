"""
Tool registry and envelope boundary.
Every tool outcome leaves here as a JSON envelope string; tool exceptions never escape.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.conversation import ToolCall, ToolDefinition
from ..core.logging_utils import format_event
from ..core.network_policy import NetworkPolicy
from .base import Tool, ToolContext, error_envelope, success_envelope
from .file_ops import EditPatchTool, ListDirTool, ReadTool, WriteTool
from .json_args import normalize_json_arguments
from .shell import BashTool
from .web_search import FetchWebPageTool, WebSearchOllamaTool


class ToolRegistry:
    def __init__(self, tools: Iterable[Tool] = ()):
        self.tools: Dict[str, Tool] = {tool.name: tool for tool in tools}
        self.logger = logging.getLogger(__name__)

    def names(self) -> List[str]:
        return sorted(self.tools)

    def definitions(self) -> List[ToolDefinition]:
        return [self.tools[name].definition() for name in self.names()]

    def execute(self, tool_call: ToolCall, context: ToolContext) -> Tuple[str, bool]:
        tool = self.tools.get(tool_call.name)
        if tool is None:
            return "", False

        meta = build_meta(tool.name, context)

        if not context.cwd.strip() or not context.allowed_root.strip():
            return error_envelope("invalid tool context: cwd and allowed_root are required", meta), True

        if context.cancel is not None:
            if context.cancel.cancelled:
                return error_envelope("tool execution cancelled", meta), True
            if context.cancel.expired:
                return error_envelope("tool execution context error: deadline exceeded", meta), True

        arguments, valid = normalize_json_arguments(tool_call.arguments)
        if not valid:
            return error_envelope(f"{tool.name}: invalid JSON arguments", meta), True

        self.logger.debug("Executing tool %s", tool.name)
        try:
            result = tool.execute(context, arguments)
        except Exception as exc:
            self.logger.debug("Tool %s failed: %s", tool.name, exc)
            return error_envelope(f"{tool.name}: {exc}", meta), True

        return success_envelope(result, meta), True


def build_meta(tool_name: str, context: ToolContext) -> Dict[str, Any]:
    meta: Dict[str, Any] = {"tool": tool_name}
    if context.cwd.strip():
        meta["cwd"] = context.cwd
    if context.correlation_id.strip():
        meta["correlation_id"] = context.correlation_id
    if context.allowed_root.strip():
        meta["allowed_root"] = context.allowed_root
    if context.timeout > 0:
        meta["timeout_ms"] = int(context.timeout * 1000)
    return meta


def default_registry(settings, network_policy: Optional[NetworkPolicy] = None) -> ToolRegistry:
    """All seven tools, configured from Settings."""
    policy = network_policy or NetworkPolicy(allow_private=settings.allow_private_egress)
    return ToolRegistry(
        [
            BashTool(allowlist=settings.bash_allowlist, denylist=settings.bash_denylist),
            EditPatchTool(),
            FetchWebPageTool(network_policy=policy),
            WebSearchOllamaTool(
                search_url=settings.web_search_url,
                api_key=settings.web_search_api_key,
                network_policy=policy,
            ),
            ReadTool(),
            WriteTool(),
            ListDirTool(),
        ]
    )


def dispatch_tool_call(
    registry: Optional[ToolRegistry], context: ToolContext, tool_call: ToolCall, logger: logging.Logger
) -> str:
    fields = {"correlation_id": context.correlation_id, "tool": tool_call.name}
    logger.debug(format_event("tool_dispatch", fields))
    if registry is not None:
        output, matched = registry.execute(tool_call, context)
        if matched:
            logger.debug(format_event("tool_dispatch_complete", fields))
            return output

    logger.warning(format_event("tool_unknown", fields))
    return error_envelope(f"unknown tool '{tool_call.name}'", {"tool": tool_call.name})
