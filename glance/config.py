"""Glance configuration — loads settings from .env file or environment.

Each key is looked up in (priority order):
  1. Environment variables
  2. .env in the current directory
  3. .glance/.env
  4. The default passed by the caller
The .env files are read once and merged key by key; os.environ is left untouched.

Keys:
  GLANCE_LLM_API_KEY / OPENAI_API_KEY   generative text + chat
  GLANCE_LLM_BASE_URL                   any OpenAI-compatible endpoint
  GLANCE_LLM_MODEL                      structured content model
  GLANCE_CHAT_MODEL                     assistant model (defaults to LLM model)
  GLANCE_STT_API_KEY / _BASE_URL / _MODEL   audio transcription
  GLANCE_BACKEND_URL                    remote resolver (unset = in-process)
  GLANCE_RELAY_URL                      indirect metadata route for offline mode
  GLANCE_CAPTION_LANGUAGES              preferred caption languages, comma list
  GLANCE_SLOW_NOTICE_SECONDS            delay before the "may take a while" notice
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_LLM_MODEL = "gpt-4o-mini"
DEFAULT_STT_MODEL = "whisper-1"
DEFAULT_RELAY_URL = "https://api.allorigins.win/raw?url="
DEFAULT_CAPTION_LANGUAGES = "en,zh-Hans,zh-CN"
DEFAULT_SLOW_NOTICE_SECONDS = 2.0

KNOWN_KEYS = frozenset({
    "OPENAI_API_KEY",
    "GLANCE_LLM_API_KEY", "GLANCE_LLM_BASE_URL", "GLANCE_LLM_MODEL", "GLANCE_CHAT_MODEL",
    "GLANCE_STT_API_KEY", "GLANCE_STT_BASE_URL", "GLANCE_STT_MODEL",
    "GLANCE_BACKEND_URL", "GLANCE_RELAY_URL",
    "GLANCE_CAPTION_LANGUAGES", "GLANCE_SLOW_NOTICE_SECONDS",
})

# Values read from .env files; None until the first lookup.
_file_values: Optional[dict[str, str]] = None


def _parse_line(line: str) -> Optional[tuple[str, str]]:
    """One ``[export] KEY=VALUE`` line, or None for blanks and comments."""
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, _, value = line.partition("=")
    key = key.removeprefix("export ").strip()
    value = value.strip()
    if value[:1] in ("'", '"') and value.endswith(value[0]) and len(value) > 1:
        value = value[1:-1]
    elif " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    return key, value


def _read_env_files() -> dict[str, str]:
    """Merge the .env candidates; a key in ./.env beats the same key in ./.glance/.env."""
    values: dict[str, str] = {}
    for env_path in (Path.cwd() / ".env", Path.cwd() / ".glance" / ".env"):
        if not env_path.is_file():
            continue
        logger.debug("Loading config from %s", env_path)
        for raw in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_line(raw)
            if parsed is None:
                continue
            key, value = parsed
            if key.startswith("GLANCE_") and key not in KNOWN_KEYS:
                logger.warning("Unknown setting %s in %s", key, env_path)
            values.setdefault(key, value)
    return values


def reset() -> None:
    """Forget the .env values so the next lookup re-reads them."""
    global _file_values
    _file_values = None


def get(key: str, default: str = "") -> str:
    """Environment first, then .env files, then ``default``. Empty values count as unset."""
    global _file_values
    if _file_values is None:
        _file_values = _read_env_files()
    return os.environ.get(key) or _file_values.get(key) or default


def get_float(key: str, default: float) -> float:
    raw = get(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", key, raw, default)
        return default


def get_list(key: str, default: str) -> list[str]:
    return [item.strip() for item in get(key, default).split(",") if item.strip()]
