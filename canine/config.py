"""Runtime configuration, read from environment variables at import.

Environment variables:
    OPENAI_API_KEY: Required for /chat completions.
    OPENAI_MODEL: Override the completion model (default: gpt-4o-mini).
    ALLOWED_ORIGIN: The single browser origin allowed to call the API.
    ALLOWED_PATH: Referer path the /chat caller must be embedded under.
    SOURCE_MAP_PATH: JSON file with topic buckets, fallbacks and tilt hints.
    HOUSE_NOTES_DIR: Directory of markdown house notes (optional).
    RATE_LIMIT_MAX_CHAT: /chat requests per IP per window.
    MAX_MESSAGE_CHARS: Longest accepted user message.
    REDIS_URL: Optional shared store for rate limits.
    ROUTE_DEBUG: Set to 1 to enable the routing diagnostics endpoint.
"""

from __future__ import annotations

import os
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_ALLOWED_ORIGIN = "https://standardpoodlesofforestlakes.com"
DEFAULT_ALLOWED_PATH = "/all-breed/"


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def openai_api_key() -> str | None:
    return os.environ.get("OPENAI_API_KEY") or None


def openai_model() -> str:
    return os.environ.get("OPENAI_MODEL", DEFAULT_MODEL)


def source_map_path() -> Path:
    """Resolve the source map JSON path (env override, else data/ in the repo)."""
    env_path = os.environ.get("SOURCE_MAP_PATH")
    if env_path:
        return Path(env_path)
    return _PROJECT_ROOT / "data" / "source_map.json"


def house_notes_dir() -> Path:
    env_path = os.environ.get("HOUSE_NOTES_DIR")
    if env_path:
        return Path(env_path)
    return _PROJECT_ROOT / "house_notes"


ALLOWED_ORIGIN = os.environ.get("ALLOWED_ORIGIN", DEFAULT_ALLOWED_ORIGIN)
ALLOWED_PATH = os.environ.get("ALLOWED_PATH", DEFAULT_ALLOWED_PATH)

RATE_LIMIT_WINDOW = 60  # seconds
RATE_LIMIT_MAX_CHAT = _int_env("RATE_LIMIT_MAX_CHAT", 30)
MAX_MESSAGE_CHARS = _int_env("MAX_MESSAGE_CHARS", 4000)

# Enables GET /debug/route; keep off in production
ROUTE_DEBUG = os.environ.get("ROUTE_DEBUG", "").lower() in ("1", "true", "yes")
