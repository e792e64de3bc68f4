"""Structured JSON logging for the ipreport pipeline and CLI.

One JSON object per line on stderr (stdout is reserved for rendered reports):

    {"ts":"2026-01-01T12:00:00.000Z","level":"debug","logger":"ipreport",
     "msg":"stage","event":"stage","fields":{"address":"8.8.8.8","stage":"probing"}}

Configuration is idempotent and thread-safe; calling ``configure_logging`` again
updates the level of the existing handler instead of stacking a new one.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Mapping

LOGGER_NAME = "ipreport"

_lock = RLock()


def _coerce_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    lvl = logging.getLevelName(str(level).upper())
    return lvl if isinstance(lvl, int) else logging.WARNING


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ts = (
            datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )
        msg = record.getMessage()
        base: dict[str, Any] = {
            "ts": ts,
            "level": record.levelname.lower(),
            "logger": record.name,
            "tid": record.thread,
            "msg": msg,
        }
        event = getattr(record, "event", None)
        if event and event != msg:
            base["event"] = event
        fields = getattr(record, "fields", None)
        if isinstance(fields, Mapping) and fields:
            base["fields"] = dict(fields)
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, separators=(",", ":"), default=str)


def configure_logging(
    level: int | str = "WARNING",
    *,
    stream: Any | None = None,
    force: bool = False,
) -> logging.Logger:
    """Configure (or reconfigure) the package logger and return it."""
    numeric_level = _coerce_level(level)
    with _lock:
        logger = logging.getLogger(LOGGER_NAME)
        logger.propagate = False
        logger.setLevel(numeric_level)

        existing = [h for h in logger.handlers if getattr(h, "_ipreport_json", False)]
        if existing and not force:
            for h in existing:
                h.setLevel(numeric_level)
            return logger
        for h in existing:
            logger.removeHandler(h)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setLevel(numeric_level)
        handler.setFormatter(JsonFormatter())
        handler._ipreport_json = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
        return logger


def get_logger(suffix: str | None = None) -> logging.Logger:
    # child loggers inherit the package handler through propagation to "ipreport"
    return logging.getLogger(f"{LOGGER_NAME}.{suffix}" if suffix else LOGGER_NAME)


def log_event(logger: logging.Logger, level: int, event: str, message: str, **fields: Any) -> None:
    logger.log(level, message, extra={"event": event, "fields": fields})
