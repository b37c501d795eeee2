"""Structured, secret-free logging for the installer.

Modules log through the standard library (``logging.getLogger(__name__)``) and
attach structured context with ``extra={"meta": {...}}``.  The
``JsonLineFormatter`` renders each record as a single JSON line::

    {"timestamp": "...", "level": "info", "area": "install.recovery",
     "message": "resume", "meta": {...}}

``area`` is the logger name without the ``packsmith.`` prefix.  Meta values
under secret-looking keys are always redacted before they are rendered, and
callers pass URLs through ``redact_url`` so query tokens never reach a log.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit, urlunsplit

ROOT_LOGGER_NAME = "packsmith"

_SECRET_KEY_RE = re.compile(
    r"^(authorization|cookie|set-cookie|token|access[_-]?token|refresh[_-]?token"
    r"|password|pass|secret|api[_-]?key|client[_-]?secret)$",
    re.IGNORECASE,
)

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}

REDACTED = "[REDACTED]"


def redact_secrets(value: Any) -> Any:
    """Return a copy of ``value`` with secret-looking dict keys redacted.

    Only dicts, lists, and tuples are walked; other values are returned as-is.
    """
    if isinstance(value, dict):
        return {
            k: (REDACTED if isinstance(k, str) and _SECRET_KEY_RE.match(k) else redact_secrets(v))
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_secrets(v) for v in value]
    return value


def redact_url(url: str) -> str:
    """Strip credentials, query string and fragment from a URL before logging it.

    Signed download URLs carry their tokens in the query, so only scheme, host
    and path are kept.
    """
    parts = urlsplit(url)
    netloc = parts.netloc.rpartition("@")[2]
    return urlunsplit((parts.scheme, netloc, parts.path, "", ""))


def area_for(logger_name: str) -> str:
    """Map a logger name to its log area (``packsmith.install.x`` -> ``install.x``)."""
    prefix = ROOT_LOGGER_NAME + "."
    return logger_name[len(prefix):] if logger_name.startswith(prefix) else logger_name


def build_entry(record: logging.LogRecord) -> dict[str, Any]:
    """Build the structured entry dict for a log record."""
    entry: dict[str, Any] = {
        "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        "level": _LEVEL_NAMES.get(record.levelno, record.levelname.lower()),
        "area": area_for(record.name),
        "message": record.getMessage(),
    }
    meta = getattr(record, "meta", None)
    if meta:
        entry["meta"] = redact_secrets(meta)
    return entry


class JsonLineFormatter(logging.Formatter):
    """Render records as single JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(build_entry(record), default=str, sort_keys=False)


class TextFormatter(logging.Formatter):
    """Human-readable rendering that still shows redacted meta."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        meta = getattr(record, "meta", None)
        if meta:
            line = f"{line} {json.dumps(redact_secrets(meta), default=str)}"
        return line


def configure_logging(level: str | int = "INFO", fmt: str = "json") -> logging.Logger:
    """Attach one stderr handler to the ``packsmith`` logger.

    Calling it again replaces the handler instead of stacking duplicates.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level if isinstance(level, int) else level.upper())

    for handler in list(logger.handlers):
        if getattr(handler, "_packsmith_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonLineFormatter() if fmt == "json" else TextFormatter())
    setattr(handler, "_packsmith_handler", True)
    logger.addHandler(handler)
    return logger
