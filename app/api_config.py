"""Environment-driven settings for the document view API client."""

from __future__ import annotations

import logging
import os
from pathlib import Path


DEFAULT_BASE_URL = "http://localhost:5000/api/v1"
DEFAULT_TIMEOUT = 10.0

_ENV_FILE = Path(__file__).resolve().parent / ".env"

logger = logging.getLogger("docview.config")


def load_env_file(path: Path = _ENV_FILE) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


load_env_file()


def api_base_url() -> str:
    return (os.getenv("DOCVIEW_API_BASE_URL") or DEFAULT_BASE_URL).strip().rstrip("/")


def api_timeout() -> float:
    raw = (os.getenv("DOCVIEW_API_TIMEOUT") or "").strip()
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        logger.warning("invalid_timeout value=%s default=%s", raw, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT
    return value if value > 0 else DEFAULT_TIMEOUT
