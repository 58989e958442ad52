"""
Session persistence: ordered message history stored as JSON per session id.
A blank session id means "no persistence" for both load and save.
"""
from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import List

from .conversation import Message


DEFAULT_SESSIONS_DIR = Path(".toolloop/sessions")
VALID_SESSION_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,127}$")


def default_session_id(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("%Y%m%d-%H%M%S")


def normalize_session_id(session_id: str | None) -> str:
    trimmed = (session_id or "").strip()
    if trimmed and not VALID_SESSION_ID.match(trimmed):
        raise ValueError("invalid session id: use 1-128 chars [A-Za-z0-9_-], starting with alphanumeric")
    return trimmed


class JSONFileStore:
    def __init__(self, sessions_dir: Path | str | None = None):
        trimmed = str(sessions_dir or "").strip()
        self.sessions_dir = Path(trimmed) if trimmed else DEFAULT_SESSIONS_DIR
        self.logger = logging.getLogger(__name__)

    def session_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{normalize_session_id(session_id)}.json"

    def load(self, session_id: str | None) -> List[Message]:
        normalized = normalize_session_id(session_id)
        if not normalized:
            return []
        path = self.session_path(normalized)
        if not path.exists():
            return []
        data = json.loads(path.read_text(encoding="utf-8"))
        messages = [Message.from_dict(item) for item in data.get("messages") or []]
        self.logger.debug("Loaded session %s with %d messages", normalized, len(messages))
        return messages

    def save(self, session_id: str | None, messages: List[Message]):
        normalized = normalize_session_id(session_id)
        if not normalized:
            return
        payload = {"session_id": normalized, "messages": [m.to_dict() for m in messages]}
        path = self.session_path(normalized)
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(json.dumps(payload, indent=2, ensure_ascii=False))
        self.logger.debug("Saved session %s with %d messages", normalized, len(messages))
