from __future__ import annotations

import os
import signal
import subprocess
from typing import Any, Iterable, Optional

from ..core.cancel import CancelToken
from ..core.safety import CommandPolicy
from .base import Tool, ToolCancelled, ToolContext, ToolError, ToolTimeout, parse_arguments, string_arg


DEFAULT_TIMEOUT = 30.0
POLL_INTERVAL = 0.05


class BashTool(Tool):
    name = "Bash"
    description = "Execute a shell command"
    parameters = {
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "The shell command to execute"},
        },
        "required": ["command"],
    }

    def __init__(self, allowlist: Iterable[str] = (), denylist: Iterable[str] = ()):
        # Raises ValueError on a malformed pattern.
        self.policy = CommandPolicy(allowlist=allowlist, denylist=denylist)

    def execute(self, context: ToolContext, arguments: str) -> Any:
        args = parse_arguments(arguments)
        command = string_arg(args, "command", required=True).strip()
        self.policy.check_command(command)

        timeout = context.effective_timeout(DEFAULT_TIMEOUT)
        token = context.token().child(timeout)
        context.log.debug("Bash executing command in cwd=%s", context.cwd.strip())

        try:
            proc = subprocess.Popen(
                ["bash", "-c", command],
                cwd=context.cwd.strip() or None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                start_new_session=True,
            )
        except OSError as exc:
            raise ToolError(f"error executing bash command: {exc}") from exc

        try:
            output = _wait(proc, token)
        except BaseException:
            # The child runs in its own session, so terminal SIGINT never reaches it.
            _kill(proc)
            proc.communicate()
            raise
        if output is None:
            if token.cancelled:
                raise ToolCancelled("bash command cancelled")
            raise ToolTimeout(f"bash command timed out after {timeout:g}s")

        if proc.returncode != 0:
            detail = output.strip()
            message = f"error executing bash command: exit status {proc.returncode}"
            raise ToolError(f"{message}: {detail}" if detail else message)

        return {"command": command, "output": output}


def _wait(proc: subprocess.Popen, token: CancelToken) -> Optional[str]:
    """Combined output, or None once the token is done (the process is then killed)."""
    while True:
        try:
            output, _ = proc.communicate(timeout=POLL_INTERVAL)
            return output
        except subprocess.TimeoutExpired:
            if not token.done:
                continue
            _kill(proc)
            proc.communicate()
            return None


def _kill(proc: subprocess.Popen):
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()
