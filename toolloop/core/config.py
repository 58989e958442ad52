"""
Configuration loader for the agent runtime.
Loads settings from config/settings.toml, .env files, environment overrides, and defaults.
"""
from __future__ import annotations

import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

from dotenv import load_dotenv


DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "anthropic/claude-haiku-4.5"
DEFAULT_CONFIG_PATH = Path("config/settings.toml")
DEFAULT_ENV_FILES = (".env", "config/.env")

LOG_LEVELS = {"error", "warn", "warning", "info", "debug"}
LOG_SINKS = {"stderr", "stdout", "json-file"}

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$", re.IGNORECASE)
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


@dataclass
class Settings:
    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    model: str = DEFAULT_MODEL
    workspace: Path = field(default_factory=Path.cwd)
    data_dir: Path = Path(".toolloop")
    sessions_dir: Path = Path(".toolloop/sessions")
    log_enabled: bool = False
    log_level: str = "info"
    log_sink: str = "stderr"
    log_file: str = ""
    turn_timeout: float = 90.0
    tool_timeout: float = 30.0
    max_turns: int = 0
    max_tool_calls: int = 0
    bash_allowlist: List[str] = field(default_factory=list)
    bash_denylist: List[str] = field(default_factory=list)
    allow_private_egress: bool = False
    web_search_url: str = ""
    web_search_api_key: str = ""


def parse_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value if value is not None else "").strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return fallback


def parse_duration(value: Any, fallback: float) -> float:
    """Seconds from 90, 90s, 1500ms, 2m or 1h; invalid or non-positive gives fallback."""
    if isinstance(value, bool) or value is None:
        return fallback
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else fallback
    match = _DURATION_RE.match(str(value))
    if not match:
        return fallback
    seconds = float(match.group(1)) * _DURATION_UNITS[(match.group(2) or "s").lower()]
    return seconds if seconds > 0 else fallback


def parse_int(value: Any, fallback: int) -> int:
    if isinstance(value, bool) or value is None:
        return fallback
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return fallback
    return parsed if parsed >= 0 else fallback


def split_policy_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        parts: Iterable[Any] = value
    else:
        parts = re.split(r"[,;\n]", str(value))
    return [str(part).strip() for part in parts if str(part).strip()]


def load_env_files(paths: Iterable[str] = DEFAULT_ENV_FILES) -> List[str]:
    """Load .env files that exist, without overriding variables already set."""
    logger = logging.getLogger(__name__)
    loaded = []
    for path in paths:
        if not Path(path).is_file():
            continue
        if load_dotenv(path, override=False):
            loaded.append(path)
            logger.debug("Loaded env file %s", path)
    return loaded


def load_settings(config_path: Path | None = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    config_file = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    data: dict = {}
    if config_file.exists():
        with config_file.open("rb") as f:
            data = tomllib.load(f)

    def pick(env_key: str, data_key: str, default: Any = None) -> Any:
        value = env.get(env_key)
        if value is not None and value.strip():
            return value
        return data.get(data_key, default)

    defaults = Settings()
    api_key = pick("TOOLLOOP_API_KEY", "api_key") or env.get("OPENROUTER_API_KEY", "")
    data_dir = Path(pick("TOOLLOOP_DATA_DIR", "data_dir", defaults.data_dir))

    return Settings(
        base_url=str(pick("TOOLLOOP_BASE_URL", "base_url", env.get("OPENROUTER_BASE_URL") or DEFAULT_BASE_URL)).strip(),
        api_key=str(api_key).strip(),
        model=str(pick("TOOLLOOP_MODEL", "model", env.get("AI_MODEL") or DEFAULT_MODEL)).strip(),
        workspace=Path(pick("TOOLLOOP_WORKSPACE", "workspace", Path.cwd())),
        data_dir=data_dir,
        sessions_dir=Path(pick("TOOLLOOP_SESSIONS_DIR", "sessions_dir", data_dir / "sessions")),
        log_enabled=parse_bool(pick("TOOLLOOP_LOG_ENABLED", "log_enabled"), defaults.log_enabled),
        log_level=str(pick("TOOLLOOP_LOG_LEVEL", "log_level", defaults.log_level)).strip().lower(),
        log_sink=str(pick("TOOLLOOP_LOG_SINK", "log_sink", defaults.log_sink)).strip().lower(),
        log_file=str(pick("TOOLLOOP_LOG_FILE", "log_file", "")).strip(),
        turn_timeout=parse_duration(pick("TOOLLOOP_TURN_TIMEOUT", "turn_timeout"), defaults.turn_timeout),
        tool_timeout=parse_duration(pick("TOOLLOOP_TOOL_TIMEOUT", "tool_timeout"), defaults.tool_timeout),
        max_turns=parse_int(pick("TOOLLOOP_MAX_TURNS", "max_turns"), defaults.max_turns),
        max_tool_calls=parse_int(pick("TOOLLOOP_MAX_TOOL_CALLS", "max_tool_calls"), defaults.max_tool_calls),
        bash_allowlist=split_policy_list(pick("TOOLLOOP_BASH_ALLOWLIST", "bash_allowlist")),
        bash_denylist=split_policy_list(pick("TOOLLOOP_BASH_DENYLIST", "bash_denylist")),
        allow_private_egress=parse_bool(pick("TOOLLOOP_ALLOW_PRIVATE_EGRESS", "allow_private_egress"), False),
        web_search_url=str(pick("OLLAMA_WEB_SEARCH_URL", "web_search_url", "")).strip(),
        web_search_api_key=str(pick("OLLAMA_WEB_SEARCH_API_KEY", "web_search_api_key", "")).strip(),
    )


def validate_settings(settings: Settings):
    level = settings.log_level.strip().lower()
    if level and level not in LOG_LEVELS:
        raise ValueError(f"invalid value for --log-level: {settings.log_level!r} (use: error, warn, info, debug)")

    sink = settings.log_sink.strip().lower()
    if sink and sink not in LOG_SINKS:
        raise ValueError(f"invalid value for --log-sink: {settings.log_sink!r} (use: stderr, stdout, json-file)")
    if sink == "json-file" and not settings.log_file.strip():
        raise ValueError("invalid value for --log-file: required when --log-sink=json-file")

    if settings.turn_timeout <= 0:
        raise ValueError("invalid value for --turn-timeout: must be > 0")
    if settings.tool_timeout <= 0:
        raise ValueError("invalid value for --tool-timeout: must be > 0")
    if settings.max_turns < 0:
        raise ValueError("invalid value for --max-turns: must be >= 0")
    if settings.max_tool_calls < 0:
        raise ValueError("invalid value for --max-tool-calls: must be >= 0")


def require_api_key(settings: Settings) -> str:
    if not settings.api_key:
        raise ValueError("missing API key: set TOOLLOOP_API_KEY or OPENROUTER_API_KEY")
    return settings.api_key
