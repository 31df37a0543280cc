"""
Logging utilities for Chat Printer.

- WorkerFilter attaches the name of the worker thread emitting a record
- JsonFormatter for structured logs when CHATPRINTER_JSON_LOGS=true
- configure_logging() initializes root logging with journald or console
"""

from __future__ import annotations

import logging
import os
import threading


class WorkerFilter(logging.Filter):
    """
    Attach the worker name (the owning thread's name) to log records.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        name = getattr(record, "threadName", None) or threading.current_thread().name
        record.worker = "main" if name == "MainThread" else name
        return True


class JsonFormatter(logging.Formatter):
    """
    Minimal JSON formatter that includes timestamp, level, logger, worker and message.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        from json import dumps

        base = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "worker": getattr(record, "worker", "-"),
            "msg": record.getMessage(),
        }
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return dumps(base, ensure_ascii=False)


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure root logging for the application.

    Behavior:
    - Sets the root logger level (INFO by default)
    - Clears any existing handlers to avoid duplicates on repeated calls
    - Chooses JSON or plain formatter based on CHATPRINTER_JSON_LOGS
    - Prefer systemd's JournalHandler, fallback to StreamHandler
    - Adds WorkerFilter so formatters can reference %(worker)s
    - Quiets chatty HTTP client loggers

    Returns the configured root logger.
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = []

    json_logs = os.environ.get("CHATPRINTER_JSON_LOGS", "false").lower() in ("1", "true", "yes")
    formatter: logging.Formatter
    if json_logs:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s %(worker)s %(name)s: %(message)s")

    try:
        from systemd.journal import JournalHandler  # type: ignore

        handler: logging.Handler = JournalHandler()
        handler.setFormatter(formatter)
    except Exception:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

    handler.addFilter(WorkerFilter())
    root.addHandler(handler)

    for noisy in ("httpx", "httpcore", "werkzeug"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root


__all__ = ["JsonFormatter", "WorkerFilter", "configure_logging"]
