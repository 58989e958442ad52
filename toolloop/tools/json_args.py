"""
Repair of model-supplied tool-call arguments.
Models sometimes wrap JSON in prose or truncate it; only strict JSON leaves here.
"""
from __future__ import annotations

import json
from typing import Tuple


def _is_valid_json(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def normalize_json_arguments(raw: str | None) -> Tuple[str, bool]:
    """Return (normalized JSON text, valid)."""
    trimmed = (raw or "").strip()
    if not trimmed:
        return "{}", True

    if _is_valid_json(trimmed):
        return trimmed, True

    for open_char, close_char in (("{", "}"), ("[", "]")):
        extracted = extract_balanced_json(trimmed, open_char, close_char)
        if extracted is not None and _is_valid_json(extracted):
            return extracted, True

    return "", False


def extract_balanced_json(text: str, open_char: str, close_char: str) -> str | None:
    start = -1
    depth = 0
    in_string = False
    escaped = False

    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == open_char:
            if start == -1:
                start = index
            depth += 1
        elif char == close_char and depth > 0:
            depth -= 1
            if depth == 0:
                return text[start : index + 1].strip()

    return None
