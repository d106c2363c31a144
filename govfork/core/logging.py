"""Structured JSON logging configuration.

Provides:
  - JSON-formatted log output for staging/production runs (CI pipelines)
  - Human-readable colored output for development
  - Fork ID correlation through ``ForkLogFilter``
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_entry["module"] = record.module
            log_entry["function"] = record.funcName
            log_entry["line"] = record.lineno

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else "Unknown",
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        for key in ("fork_id", "proposal_id", "rpc_method"):
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


class DevFormatter(logging.Formatter):
    """Colored human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now(timezone.utc).strftime("%H:%M:%S")
        prefix = f"{color}{ts} [{record.levelname:>8s}]{self.RESET}"
        msg = record.getMessage()

        fork_id = getattr(record, "fork_id", None)
        if fork_id:
            msg = f"[{fork_id[:8]}] {msg}"

        base = f"{prefix} {record.name}: {msg}"
        if record.exc_info and record.exc_info[1]:
            base += "\n" + self.formatException(record.exc_info)
        return base


def setup_logging(env: str = "development", log_level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        env: Application environment (development/staging/production)
        log_level: Minimum log level
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    root.handlers.clear()

    # stdout carries the interface commands, logs go to stderr
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if env in ("staging", "production"):
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevFormatter())

    root.addHandler(handler)

    for noisy in ("httpcore", "httpx", "asyncio", "solcx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class ForkLogFilter(logging.Filter):
    """Filter that adds the active fork ID to log records."""

    def __init__(self, fork_id: str = "") -> None:
        super().__init__()
        self.fork_id = fork_id

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "fork_id", None):
            record.fork_id = self.fork_id  # type: ignore[attr-defined]
        return True


def bind_fork_id(fork_id: str) -> None:
    """Tag every record emitted through the root handlers with ``fork_id``."""
    for handler in logging.getLogger().handlers:
        for existing in list(handler.filters):
            if isinstance(existing, ForkLogFilter):
                handler.removeFilter(existing)
        handler.addFilter(ForkLogFilter(fork_id))
