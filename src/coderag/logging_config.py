"""JSON logging for indexing and query events, plus the index audit trail."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, FrozenSet

AUDIT_LOGGER_NAME = "coderag.index.audit"

# Attributes every LogRecord carries; anything else was passed through ``extra``.
_STANDARD_ATTRS: FrozenSet[str] = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}
_ENVELOPE_KEYS = ("ts", "level", "logger")


class MinimalJSONFormatter(logging.Formatter):
    """One JSON object per line.

    Telemetry calls log a dict (``step``, ``session_id``, ``duration_ms`` ...)
    which is merged into the envelope; plain messages land under ``message``.
    Fields given through ``extra=`` are appended, but never replace the
    ``ts``/``level``/``logger`` envelope.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {}
        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            message = record.getMessage()
            if message:
                payload["message"] = message

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            payload.setdefault(key, value)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        for key in _ENVELOPE_KEYS:
            payload.pop(key, None)
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        envelope: dict[str, Any] = {
            "ts": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
        }
        envelope.update(payload)
        return json.dumps(envelope, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", *, log_dir: str | Path = "logs") -> None:
    """Send JSON records to stderr and ``coderag.index.audit`` records to ``index_audit.log``."""

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": MinimalJSONFormatter}},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
                "index_audit": {
                    "class": "logging.FileHandler",
                    "filename": str(log_path / "index_audit.log"),
                    "mode": "a",
                    "encoding": "utf-8",
                    "formatter": "json",
                },
            },
            "root": {
                "level": level.upper(),
                "handlers": ["default"],
            },
            "loggers": {
                AUDIT_LOGGER_NAME: {
                    "level": "INFO",
                    "handlers": ["index_audit"],
                    "propagate": False,
                }
            },
        }
    )


__all__ = ["AUDIT_LOGGER_NAME", "MinimalJSONFormatter", "configure_logging"]
