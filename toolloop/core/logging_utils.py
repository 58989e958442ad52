"""
Logging setup for the agent.
Text output to stderr/stdout, or JSON lines to a file. Messages of the form
`event=<name> key=value ...` are structured events; the JSON sink parses them
into `event` and `fields`.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .config import Settings


EVENT_SCHEMA_VERSION = "v1"
TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def format_event(event: str, fields: Dict[str, Any]) -> str:
    parts = [f"event={event}"]
    for key in sorted(fields):
        parts.append(f"{key}={_format_field_value(fields[key])}")
    return " ".join(parts)


def _format_field_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value.replace(" ", "_")
    return str(value)


def parse_event_message(message: str) -> Optional[Tuple[str, Dict[str, Any]]]:
    tokens = message.strip().split()
    if not tokens or not tokens[0].startswith("event="):
        return None
    event = tokens[0].split("=", 1)[1].strip()
    if not event:
        return None

    fields: Dict[str, Any] = {}
    for token in tokens[1:]:
        key, sep, raw = token.partition("=")
        if not sep or not key.strip():
            continue
        fields[key.strip()] = _coerce_field_value(raw)
    return event, fields


def _coerce_field_value(raw: str) -> Any:
    try:
        return int(raw)
    except ValueError:
        pass
    lowered = raw.lower()
    if lowered in {"true", "t", "1"}:
        return True
    if lowered in {"false", "f", "0"}:
        return False
    return raw


class JsonEventFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        payload: Dict[str, Any] = {
            "schema_version": EVENT_SCHEMA_VERSION,
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
        }
        if message:
            payload["message"] = message
        parsed = parse_event_message(message)
        if parsed:
            payload["event"], fields = parsed
            if fields:
                payload["fields"] = fields
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def build_handler(settings: Settings) -> logging.Handler:
    sink = (settings.log_sink or "stderr").strip().lower()
    if sink == "stdout":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
    elif sink == "json-file":
        log_file = Path(settings.log_file)
        if str(log_file.parent) not in ("", "."):
            log_file.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        os.chmod(log_file, 0o600)
        handler.setFormatter(JsonEventFormatter())
        return handler
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    return handler


def setup_logging(settings: Settings):
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)

    if not settings.log_enabled:
        root.addHandler(logging.NullHandler())
        root.setLevel(logging.CRITICAL + 1)
        return

    level_name = settings.log_level.strip().upper()
    if level_name == "WARN":
        level_name = "WARNING"
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.addHandler(build_handler(settings))
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger(__name__).debug("Logging initialized sink=%s level=%s", settings.log_sink, level_name)
