"""
File tools confined to the context's allowed root: Read, Write, EditPatch, ListDir.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

from ..core.safety import PathPolicyViolation, ensure_path_allowed, resolve_path
from .base import Tool, ToolContext, ToolError, parse_arguments, string_arg


def confined_path(context: ToolContext, path_value: str) -> Path:
    resolved = resolve_path(context.cwd, path_value)
    try:
        ensure_path_allowed(context.allowed_root, resolved)
    except PathPolicyViolation as exc:
        raise ToolError(f"path policy violation: {exc}") from exc
    return Path(resolved)


def _read_text(path: Path, errors: str = "replace") -> str:
    with path.open("r", encoding="utf-8", errors=errors, newline="") as f:
        return f.read()


def _write_text(path: Path, content: str, errors: str = "strict"):
    with path.open("w", encoding="utf-8", errors=errors, newline="") as f:
        f.write(content)


class ReadTool(Tool):
    name = "Read"
    description = "Read and return the contents of a file"
    parameters = {
        "type": "object",
        "properties": {
            "file_path": {"type": "string", "description": "The path to the file to read"},
        },
        "required": ["file_path"],
    }

    def execute(self, context: ToolContext, arguments: str) -> Any:
        args = parse_arguments(arguments)
        file_path = string_arg(args, "file_path", required=True).strip()
        target = confined_path(context, file_path)
        try:
            return _read_text(target)
        except OSError as exc:
            raise ToolError(f"error reading file: {exc}") from exc


class WriteTool(Tool):
    name = "Write"
    description = "Write content to a file"
    parameters = {
        "type": "object",
        "properties": {
            "file_path": {"type": "string", "description": "The path to the file to write to"},
            "content": {"type": "string", "description": "The content to write to the file"},
        },
        "required": ["file_path", "content"],
    }

    def execute(self, context: ToolContext, arguments: str) -> Any:
        args = parse_arguments(arguments)
        file_path = string_arg(args, "file_path", required=True).strip()
        content = string_arg(args, "content")
        target = confined_path(context, file_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            _write_text(target, content)
        except OSError as exc:
            raise ToolError(f"error writing file: {exc}") from exc
        context.log.debug("Write wrote %d chars to %s", len(content), target)
        return {"file_path": file_path, "content": content}


class EditPatchTool(Tool):
    name = "EditPatch"
    description = "Edit a file by replacing a target string with a new string"
    parameters = {
        "type": "object",
        "properties": {
            "file_path": {"type": "string", "description": "Path to the file to edit"},
            "old_string": {"type": "string", "description": "Exact string to replace"},
            "new_string": {"type": "string", "description": "Replacement string"},
            "replace_all": {
                "type": "boolean",
                "description": "When true, replace all matches. Defaults to false.",
            },
        },
        "required": ["file_path", "old_string", "new_string"],
    }

    def execute(self, context: ToolContext, arguments: str) -> Any:
        args = parse_arguments(arguments)
        file_path = string_arg(args, "file_path", required=True).strip()
        old_string = string_arg(args, "old_string")
        new_string = string_arg(args, "new_string")
        replace_all = args.get("replace_all", False)
        if replace_all is None:
            replace_all = False
        if not isinstance(replace_all, bool):
            raise ToolError("error parsing arguments: replace_all must be a boolean")
        if old_string == "":
            raise ToolError("old_string must be a non-empty string")

        target = confined_path(context, file_path)
        try:
            # Undecodable bytes round-trip unchanged.
            content = _read_text(target, errors="surrogateescape")
        except OSError as exc:
            raise ToolError(f"error reading file: {exc}") from exc

        occurrences = content.count(old_string)
        if occurrences == 0:
            raise ToolError("old_string not found in file")

        if replace_all:
            new_content = content.replace(old_string, new_string)
            replacements = occurrences
        else:
            new_content = content.replace(old_string, new_string, 1)
            replacements = 1

        try:
            _write_text(target, new_content, errors="surrogateescape")
        except OSError as exc:
            raise ToolError(f"error writing file: {exc}") from exc

        return {
            "file_path": file_path,
            "replacements": replacements,
            "replace_all": replace_all,
            "total_matches": occurrences,
        }


class ListDirTool(Tool):
    name = "ListDir"
    description = "List entries in a directory"
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Directory path to list. Defaults to current directory when omitted.",
            },
        },
    }

    def execute(self, context: ToolContext, arguments: str) -> Any:
        args = parse_arguments(arguments)
        path_value = string_arg(args, "path").strip() or "."
        target = confined_path(context, path_value)
        try:
            with os.scandir(target) as it:
                items = sorted(it, key=lambda entry: entry.name)
        except OSError as exc:
            raise ToolError(f"error reading directory {path_value!r}: {exc}") from exc

        entries: list[Dict[str, str]] = []
        for item in items:
            kind = "dir" if item.is_dir(follow_symlinks=False) else "file"
            entries.append({"name": item.name, "type": kind})
        return {"path": path_value, "entries": entries}
