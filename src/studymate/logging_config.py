"""Centralized logging configuration for StudyMate.

AI request failures are logged with a structured ``context`` mapping attached
through ``extra={"context": {...}}`` (endpoint, method, purpose, status).
Both formatters below render it; nothing else in the package configures
handlers.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    context = getattr(record, "context", None)
    return context if isinstance(context, dict) else {}


class ContextFormatter(logging.Formatter):
    """Plain-text formatter that appends ``key=value`` pairs from the context."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if context:
            pairs = " ".join(f"{k}={v}" for k, v in context.items() if v is not None)
            line = f"{line} | {pairs}"
        return line


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _record_context(record)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_format: bool = False,
) -> None:
    """Configure root logging with console + rotating file handler."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    # Avoid duplicate handlers on reloads
    if root.handlers:
        return

    formatter: logging.Formatter
    if json_format:
        formatter = JsonFormatter()
    else:
        formatter = ContextFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")

    console = logging.StreamHandler()
    console.setLevel(numeric_level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=2 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
