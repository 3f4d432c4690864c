"""Logging setup for the StudyOwl service.

Everything goes to stderr as one JSON object per line. Two audit trails are
written to files under ``LOG_DIR``: uploads land in ``ingest_audit.log`` and
answered questions in ``chat_audit.log``.
"""

from __future__ import annotations

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_LOGGER_NAME = "studyowl.ingest.audit"
CHAT_AUDIT_LOGGER_NAME = "studyowl.chat.audit"

AUDIT_FILES = {
    AUDIT_LOGGER_NAME: "ingest_audit.log",
    CHAT_AUDIT_LOGGER_NAME: "chat_audit.log",
}

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


def _utc_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class MinimalJSONFormatter(logging.Formatter):
    """Render a record as compact JSON.

    Dict messages (telemetry events, audit entries) are merged into the top
    level; plain messages go under ``message``. ``extra=`` fields are copied
    as-is and values that are not JSON types are stringified.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        payload: dict[str, Any] = {
            "ts": _utc_timestamp(record.created),
            "level": record.levelname,
            "module": record.name,
        }

        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            message = record.getMessage()
            if message:
                payload["message"] = message

        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def build_logging_config(log_dir: Path, level: str = "INFO") -> dict[str, Any]:
    """Return the ``dictConfig`` mapping for a given log directory and root level."""

    handlers: dict[str, Any] = {
        "console": {"class": "logging.StreamHandler", "formatter": "json"},
    }
    loggers: dict[str, Any] = {}
    for logger_name, file_name in AUDIT_FILES.items():
        handler_name = logger_name.replace(".", "_")
        handlers[handler_name] = {
            "class": "logging.FileHandler",
            "filename": str(log_dir / file_name),
            "mode": "a",
            "encoding": "utf-8",
            "formatter": "json",
        }
        loggers[logger_name] = {"level": "INFO", "handlers": [handler_name], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": MinimalJSONFormatter}},
        "handlers": handlers,
        "root": {"level": level, "handlers": ["console"]},
        "loggers": loggers,
    }


def configure_logging(log_dir: str | Path | None = None) -> None:
    """Install JSON logging and the ingest/chat audit trails."""

    directory = Path(log_dir or os.getenv("LOG_DIR", "logs"))
    directory.mkdir(parents=True, exist_ok=True)
    level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    logging.config.dictConfig(build_logging_config(directory, level))


__all__ = [
    "AUDIT_FILES",
    "AUDIT_LOGGER_NAME",
    "CHAT_AUDIT_LOGGER_NAME",
    "MinimalJSONFormatter",
    "build_logging_config",
    "configure_logging",
]
