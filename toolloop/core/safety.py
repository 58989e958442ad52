"""
Safety checks for tool execution: path confinement and shell command policy.
"""
from __future__ import annotations

import os
import re
from typing import Iterable, List, Pattern


BLOCKED_COMMAND_PATTERNS = [
    re.compile(r"\brm\s+-rf\s+/", re.IGNORECASE),
    re.compile(r"\bshutdown\b", re.IGNORECASE),
    re.compile(r"\breboot\b", re.IGNORECASE),
    re.compile(r"\bpoweroff\b", re.IGNORECASE),
    re.compile(r"\bmkfs(\.|\s)", re.IGNORECASE),
    re.compile(r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:"),
]


class PathPolicyViolation(PermissionError):
    pass


class CommandPolicyViolation(PermissionError):
    pass


def resolve_path(cwd: str | None, path_value: str | None) -> str:
    """Join a relative path onto cwd; absolute paths pass through unchanged."""
    trimmed = (path_value or "").strip() or "."
    if os.path.isabs(trimmed):
        return trimmed
    base = (cwd or "").strip() or "."
    return os.path.normpath(os.path.join(base, trimmed))


def ensure_path_allowed(allowed_root: str | None, candidate: str):
    """Raise PathPolicyViolation unless the real candidate path stays under the real root."""
    root = (allowed_root or "").strip()
    if not root:
        raise PathPolicyViolation("invalid tool context: allowed_root is required")

    try:
        real_root = os.path.realpath(os.path.abspath(root), strict=True)
    except OSError as exc:
        raise PathPolicyViolation(f"failed to evaluate allowed_root symlinks: {exc}") from exc

    try:
        real_path = _resolve_real_path(os.path.abspath(candidate))
    except OSError as exc:
        raise PathPolicyViolation(f"failed to evaluate path symlinks: {exc}") from exc

    rel_path = os.path.relpath(real_path, real_root)
    if rel_path == os.pardir or rel_path.startswith(os.pardir + os.sep):
        raise PathPolicyViolation("path is outside allowed_root")


def _resolve_real_path(abs_path: str) -> str:
    try:
        return os.path.realpath(abs_path, strict=True)
    except FileNotFoundError:
        pass

    # Not-yet-existing target: resolve the deepest existing ancestor and rejoin the rest.
    existing = _find_existing_parent(abs_path)
    real_parent = os.path.realpath(existing, strict=True)
    remainder = os.path.relpath(abs_path, existing)
    return os.path.normpath(os.path.join(real_parent, remainder))


def _find_existing_parent(path: str) -> str:
    current = os.path.normpath(path)
    while True:
        try:
            os.lstat(current)
            return current
        except FileNotFoundError:
            pass
        parent = os.path.dirname(current)
        if parent == current:
            raise FileNotFoundError(f"no existing parent found for path {path}")
        current = parent


def compile_policy_patterns(patterns: Iterable[str], label: str) -> List[Pattern]:
    compiled = []
    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern:
            continue
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            raise ValueError(f"invalid {label} regex {pattern!r}: {exc}") from exc
    return compiled


class CommandPolicy:
    """Fixed destructive-command blocklist plus optional deny/allow regex lists."""

    def __init__(self, allowlist: Iterable[str] = (), denylist: Iterable[str] = ()):
        self.denylist = compile_policy_patterns(denylist, "bash denylist")
        self.allowlist = compile_policy_patterns(allowlist, "bash allowlist")

    def check_command(self, command: str):
        for pattern in BLOCKED_COMMAND_PATTERNS:
            if pattern.search(command):
                raise CommandPolicyViolation("command blocked by policy")

        for pattern in self.denylist:
            if pattern.search(command):
                raise CommandPolicyViolation("command blocked by denylist policy")

        if self.allowlist and not any(pattern.search(command) for pattern in self.allowlist):
            raise CommandPolicyViolation("command blocked by allowlist policy")
