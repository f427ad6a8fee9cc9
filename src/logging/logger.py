# src/logging/logger.py - v1
"""Logging setup for the orchestrator and its CLI.

Every record emitted under the ``assessflow`` logger is stamped with the
current run, assessment and phase by ``RunContextFilter``, so concurrent
cohort phases stay distinguishable in a single log stream.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from assessflow.logging.context import get_context

ROOT_LOGGER_NAME = "assessflow"

# Third-party loggers too chatty at INFO for a run log.
NOISY_LOGGERS = ("httpx", "httpcore")

_CONTEXT_FIELDS = ("run_id", "assessment_key", "phase")


class RunContextFilter(logging.Filter):
    """Copy the current run/assessment/phase onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_context()
        for field in _CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, getattr(ctx, field))
        return True


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    if not hasattr(record, "run_id"):
        RunContextFilter().filter(record)
    return {
        field: getattr(record, field)
        for field in _CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _record_context(record)
        if context:
            entry["context"] = context

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            entry["exception"] = self.formatException(record.exc_info)
            # RemoteCallError carries the failing phase and HTTP status.
            remote = {
                name: getattr(exc, name)
                for name in ("phase", "status_code", "cancelled")
                if getattr(exc, name, None) is not None
            }
            if remote:
                entry["remote"] = remote

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Console format: ``12:00:01 WARNING  [run][phase] logger: message``."""

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record)
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S")
        tags = ""
        if "run_id" in context:
            tags += f"[{context['run_id']}]"
        if "phase" in context:
            tags += f"[{context['phase']}]"

        line = f"{stamp} {record.levelname:8s} "
        if tags:
            line += f"{tags} "
        line += f"{record.name}: {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package root. Configured by setup_logging()."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | Path | None = None,
    rotation: str = "10MB",
    retention: int = 30,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """Configure the package root logger and return it.

    Calling it again replaces the previous handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: Output format ("json" or "text").
        log_file: Path to log file (None = stderr only).
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
        quiet: Third-party loggers capped at WARNING.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    context_filter = RunContextFilter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        from assessflow.logging.handlers import create_rotating_handler

        handlers.append(
            create_rotating_handler(log_file, rotation=rotation, retention=retention)
        )

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
