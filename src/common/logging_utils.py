"""Logging helpers shared across prebuilt components.

Structured fields are attached to records with
``logger.info("msg", extra=extra_context(event=..., component=...))`` and
rendered either as ``key=value`` pairs (text) or as JSON objects.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from constants import Constants

_MANAGED_ATTR = "_prebuilt_managed"


def extra_context(**kwargs: Any) -> Dict[str, Any]:
    """Build the ``extra`` mapping for a structured log call, dropping None values."""
    return {"extra_fields": {k: v for k, v in kwargs.items() if v is not None}}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by ``logger``."""
    return logger.isEnabledFor(logging.DEBUG)


def safe_url(url: str) -> str:
    """Strip credentials and query string from a URL before logging it."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<invalid url>"
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, "", ""))


class Timer:
    """Context manager measuring elapsed wall time."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.monotonic()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._end = time.monotonic()

    def duration_ms(self) -> int:
        end = self._end if self._end is not None else time.monotonic()
        return int((end - self._start) * 1000)


class TextFormatter(logging.Formatter):
    """Formatter appending structured fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        fields = getattr(record, "extra_fields", None)
        if isinstance(fields, dict) and fields:
            pairs = " ".join(f"{k}={_format_value(v)}" for k, v in fields.items())
            base = f"{base} {pairs}"
        return base


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        fields = getattr(record, "extra_fields", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _format_value(value: Any) -> str:
    text = str(value)
    if not text or any(c.isspace() for c in text) or '"' in text:
        return json.dumps(text)
    return text


def user_state_dir() -> Path:
    """Return ``$XDG_STATE_HOME`` or ``~/.local/state``."""
    xdg_state_home = os.environ.get("XDG_STATE_HOME", "")
    if xdg_state_home:
        return Path(xdg_state_home)
    return Path.home() / ".local" / "state"


def default_log_path() -> Path:
    return user_state_dir() / Constants.LOG_FILE_NAME


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_file: Optional[str] = None,
) -> Optional[Path]:
    """Configure the root logger for a CLI run.

    Records go to ``log_file`` when given, otherwise to the default state-dir
    log file; when that cannot be opened they go to stderr.

    Args:
        level: Log level name.
        fmt: "text" or "json".
        log_file: Optional explicit log file path ("-" means stderr).

    Returns:
        The path of the log file in use, or None when logging to stderr.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for existing in list(root.handlers):
        if getattr(existing, _MANAGED_ATTR, False):
            root.removeHandler(existing)
            existing.close()

    handler: logging.Handler
    path: Optional[Path] = None
    if log_file == "-":
        handler = logging.StreamHandler(sys.stderr)
    else:
        path = Path(log_file) if log_file else default_log_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        except OSError:
            path = None
            handler = logging.StreamHandler(sys.stderr)

    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter("%(asctime)s " + Constants.LOG_FORMAT))
    setattr(handler, _MANAGED_ATTR, True)
    root.addHandler(handler)

    # urllib3 is chatty at DEBUG; keep its records unless explicitly debugging
    if root.level > logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
    return path
