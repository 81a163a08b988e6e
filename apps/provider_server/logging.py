"""Structured logging for provider processes.

Standard output carries the handshake line and nothing else, so every SDK log
record is written to stderr as one JSON object per line. Hosting binaries call
:func:`configure_logging` once before serving.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

__all__ = ["LOGGER_NAME", "JsonLineFormatter", "configure_logging", "get_logger", "log_event", "resolve_level"]

LOGGER_NAME = "hemmer.provider"
LEVEL_ENV_VAR = "HEMMER_LOG"

_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def get_logger(suffix: str | None = None) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{suffix}" if suffix else LOGGER_NAME)


class JsonLineFormatter(logging.Formatter):
    """Render a record and its ``extra`` fields as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key == "fields" or key.startswith("_"):
                continue
            payload[key] = value
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True, default=str)


def resolve_level(level: str | int | None = None) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.getenv(LEVEL_ENV_VAR, "") or "INFO").strip().upper()
    if name == "WARN":
        name = "WARNING"
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: str | int | None = None, stream: TextIO | None = None) -> logging.Logger:
    """Install the SDK handler on the ``hemmer.provider`` logger.

    Calling again replaces the previously installed handler.
    """

    logger = get_logger()
    for handler in list(logger.handlers):
        if getattr(handler, "_hemmer_sdk", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonLineFormatter())
    handler._hemmer_sdk = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(resolve_level(level))
    logger.propagate = False
    return logger


def log_event(event: str, *, level: int = logging.INFO, logger: logging.Logger | None = None, **fields: Any) -> None:
    """Emit ``event`` with the non-``None`` ``fields`` attached."""

    payload = {key: value for key, value in fields.items() if value is not None}
    (logger or get_logger()).log(level, event, extra={"fields": payload})
