"""Tests for the tool registry and envelope boundary."""

import json
import logging

import pytest

from toolloop.core.cancel import CancelToken
from toolloop.core.config import Settings
from toolloop.core.conversation import ToolCall
from toolloop.tools.base import (
    FALLBACK_ENVELOPE,
    Tool,
    ToolContext,
    encode_envelope,
    error_envelope,
    success_envelope,
)
from toolloop.tools.file_ops import ReadTool
from toolloop.tools.registry import ToolRegistry, default_registry, dispatch_tool_call


class EchoTool(Tool):
    name = "Echo"
    description = "Echo arguments"

    def __init__(self):
        self.calls = []

    def execute(self, context, arguments):
        self.calls.append(arguments)
        return json.loads(arguments)


class FailingTool(Tool):
    name = "Fail"

    def execute(self, context, arguments):
        raise RuntimeError("kaboom")


class UnencodableTool(Tool):
    name = "Unencodable"

    def execute(self, context, arguments):
        return {"value": float("nan")}


def call(name, arguments="{}"):
    return ToolCall(id="call_1", name=name, arguments=arguments)


class TestEnvelopes:
    def test_success_envelope_is_compact(self):
        assert success_envelope({"a": 1}, {"tool": "X"}) == '{"ok":true,"data":{"a":1},"meta":{"tool":"X"}}'

    def test_error_envelope(self):
        assert json.loads(error_envelope("bad")) == {"ok": False, "error": {"message": "bad"}, "meta": {}}

    def test_unencodable_payload_uses_fallback(self):
        assert encode_envelope({"ok": True, "data": object()}) == FALLBACK_ENVELOPE
        assert json.loads(FALLBACK_ENVELOPE)["ok"] is False


class TestToolRegistry:
    def test_unknown_tool_is_not_matched(self, context):
        assert ToolRegistry([EchoTool()]).execute(call("Nope"), context) == ("", False)

    def test_success_carries_meta(self, context):
        output, matched = ToolRegistry([EchoTool()]).execute(call("Echo", '{"x": 1}'), context)
        assert matched
        envelope = json.loads(output)
        assert envelope["ok"] is True
        assert envelope["data"] == {"x": 1}
        assert envelope["meta"] == {
            "tool": "Echo",
            "cwd": context.cwd,
            "allowed_root": context.allowed_root,
            "correlation_id": "corr-test",
            "timeout_ms": 5000,
        }

    @pytest.mark.parametrize("cwd, root", [("", "ROOT"), ("ROOT", ""), ("  ", "  ")])
    def test_blank_cwd_or_root_is_rejected(self, workspace, cwd, root):
        tool = EchoTool()
        ctx = ToolContext(
            cwd=cwd.replace("ROOT", str(workspace)),
            allowed_root=root.replace("ROOT", str(workspace)),
        )
        output, matched = ToolRegistry([tool]).execute(call("Echo"), ctx)
        assert matched
        envelope = json.loads(output)
        assert envelope["ok"] is False
        assert envelope["error"]["message"] == "invalid tool context: cwd and allowed_root are required"
        assert tool.calls == []

    def test_cancelled_context(self, workspace):
        token = CancelToken()
        token.cancel()
        ctx = ToolContext(cwd=str(workspace), allowed_root=str(workspace), cancel=token)
        tool = EchoTool()
        output, _ = ToolRegistry([tool]).execute(call("Echo"), ctx)
        assert json.loads(output)["error"]["message"] == "tool execution cancelled"
        assert tool.calls == []

    def test_expired_context(self, workspace):
        token = CancelToken(timeout=0.001)
        token.deadline = 0.0
        ctx = ToolContext(cwd=str(workspace), allowed_root=str(workspace), cancel=token)
        output, _ = ToolRegistry([EchoTool()]).execute(call("Echo"), ctx)
        assert json.loads(output)["error"]["message"] == "tool execution context error: deadline exceeded"

    def test_invalid_arguments(self, context):
        tool = EchoTool()
        output, _ = ToolRegistry([tool]).execute(call("Echo", '{"x": '), context)
        assert json.loads(output)["error"]["message"] == "Echo: invalid JSON arguments"
        assert tool.calls == []

    def test_arguments_are_repaired_before_execution(self, context):
        tool = EchoTool()
        output, _ = ToolRegistry([tool]).execute(call("Echo", 'args: {"x": 2} done'), context)
        assert json.loads(output)["data"] == {"x": 2}
        assert tool.calls == ['{"x": 2}']

    def test_tool_exception_becomes_error_envelope(self, context):
        output, matched = ToolRegistry([FailingTool()]).execute(call("Fail"), context)
        assert matched
        envelope = json.loads(output)
        assert envelope == {"ok": False, "error": {"message": "Fail: kaboom"}, "meta": envelope["meta"]}
        assert envelope["meta"]["tool"] == "Fail"

    def test_unencodable_result_returns_fallback(self, context):
        output, matched = ToolRegistry([UnencodableTool()]).execute(call("Unencodable"), context)
        assert matched
        assert output == FALLBACK_ENVELOPE

    def test_path_violation_surfaces_in_envelope(self, context):
        output, _ = ToolRegistry([ReadTool()]).execute(call("Read", '{"file_path": "../../etc/passwd"}'), context)
        envelope = json.loads(output)
        assert envelope["ok"] is False
        assert envelope["error"]["message"].startswith("Read: path policy violation")

    def test_definitions_are_sorted(self):
        registry = ToolRegistry([FailingTool(), EchoTool()])
        assert [d.name for d in registry.definitions()] == ["Echo", "Fail"]

    def test_definitions_do_not_share_schemas(self):
        registry = ToolRegistry([ReadTool(), EchoTool()])
        read = next(d for d in registry.definitions() if d.name == "Read")
        read.parameters["properties"]["file_path"]["description"] = "changed"
        echo = next(d for d in registry.definitions() if d.name == "Echo")
        echo.parameters["properties"]["injected"] = {"type": "string"}

        assert ReadTool.parameters["properties"]["file_path"]["description"] == "The path to the file to read"
        assert Tool.parameters == {"type": "object", "properties": {}}
        assert EchoTool().definition().parameters == {"type": "object", "properties": {}}


class TestDefaultRegistry:
    def test_has_all_seven_tools(self):
        registry = default_registry(Settings())
        assert registry.names() == sorted(
            ["Bash", "EditPatch", "FetchWebPage", "ListDir", "Read", "WebSearchOllama", "Write"]
        )

    def test_invalid_bash_pattern_fails_fast(self):
        with pytest.raises(ValueError):
            default_registry(Settings(bash_denylist=["("]))


class TestDispatchToolCall:
    def test_unknown_tool_envelope(self, context, caplog):
        logger = logging.getLogger("test.dispatch")
        with caplog.at_level(logging.WARNING, logger="test.dispatch"):
            output = dispatch_tool_call(ToolRegistry([EchoTool()]), context, call("Missing"), logger)
        assert json.loads(output) == {"ok": False, "error": {"message": "unknown tool 'Missing'"}, "meta": {"tool": "Missing"}}
        assert "event=tool_unknown" in caplog.text

    def test_missing_registry(self, context):
        output = dispatch_tool_call(None, context, call("Echo"), logging.getLogger("test.dispatch"))
        assert json.loads(output)["error"]["message"] == "unknown tool 'Echo'"

    def test_known_tool(self, context):
        output = dispatch_tool_call(ToolRegistry([EchoTool()]), context, call("Echo", '{"y": 1}'), logging.getLogger("t"))
        assert json.loads(output)["data"] == {"y": 1}
