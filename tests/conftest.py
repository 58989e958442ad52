from types import SimpleNamespace

import pytest

from toolloop.tools.base import ToolContext


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def context(workspace):
    return ToolContext(cwd=str(workspace), allowed_root=str(workspace), timeout=5.0, correlation_id="corr-test")


def public_resolver(hostname):
    return ["93.184.216.34"]


def fake_choice(content="", tool_calls=None, finish_reason="stop"):
    calls = [
        SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))
        for call_id, name, arguments in tool_calls or []
    ]
    message = SimpleNamespace(content=content, refusal=None, tool_calls=calls or None)
    return SimpleNamespace(finish_reason=finish_reason, message=message)


class FakeOpenAI:
    """Stands in for openai.OpenAI; replays canned chat completions in order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **params):
        self.requests.append(params)
        if not self.responses:
            raise AssertionError("unexpected chat completion request")
        return self.responses.pop(0)


def completion(*choices):
    return SimpleNamespace(choices=list(choices))
