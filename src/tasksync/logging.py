"""Structured logging for tasksync (plain text or one JSON object per line).

Every sync-level event carries an ``operation`` field so JSON output can be
filtered per stage: ``parse_complete``, ``issue_create``, ``task_insert``,
``findings``, ``alert``, ``sync`` and so on.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

# attributes every LogRecord has; anything else arrived through ``extra=``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(message)s"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_") or key in entry:
                continue
            entry[key] = value
        return json.dumps(entry, ensure_ascii=False, default=str)


class StructuredLogger:
    """Thin wrapper over the ``tasksync`` stdlib logger.

    Keyword arguments to every method become structured fields (JSON keys,
    or record attributes in text mode).
    """

    def __init__(
        self, name: str = "tasksync", json_logging: bool = False, level: str = "INFO"
    ) -> None:
        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        for h in list(self._logger.handlers):
            self._logger.removeHandler(h)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter() if json_logging else logging.Formatter(_TEXT_FORMAT))
        self._logger.addHandler(handler)
        self._logger.propagate = False

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _emit(self, level: int, message: str, extra: dict[str, Any]) -> None:
        self._logger.log(level, message, extra=extra)

    # ---- sync events ----------------------------------------------------
    def log_operation(self, operation: str, **kw: Any) -> None:
        self._emit(logging.INFO, f"Operation: {operation}", {"operation": operation, **kw})

    def log_issue_action(
        self,
        action: str,
        issue_number: int | None = None,
        dry_run: bool = False,
        **kw: Any,
    ) -> None:
        """Tracker write (or skipped write, in dry-run) for one issue."""
        extra: dict[str, Any] = {"operation": f"issue_{action}", "dry_run": dry_run, **kw}
        target = ""
        if issue_number:
            extra["issue_number"] = issue_number
            target = f" #{issue_number}"
        self._emit(logging.INFO, f"issue {action}{target}{' [DRY]' if dry_run else ''}", extra)

    def log_task_edit(self, action: str, line: int, feature: str, title: str, **kw: Any) -> None:
        """Document write for one task; ``line`` is 0-based, the message shows it 1-based."""
        extra = {"operation": f"task_{action}", "line": line, "feature": feature, "title": title, **kw}
        self._emit(logging.INFO, f"task {action} {feature} '{title}' (line {line + 1})", extra)

    def log_findings(self, issue_number: int, messages: list[str]) -> None:
        self._emit(
            logging.WARNING,
            f"Syncing issue #{issue_number} to tasks had {len(messages)} finding(s)",
            {"operation": "findings", "issue_number": issue_number, "findings": messages},
        )

    def log_alert(self, message: str, **kw: Any) -> None:
        self._emit(logging.WARNING, message, {"operation": "alert", **kw})

    def log_performance(self, operation: str, duration_ms: float, **kw: Any) -> None:
        extra = {"operation": operation, "duration_ms": round(duration_ms, 2), **kw}
        self._emit(logging.INFO, f"Performance: {operation} completed in {duration_ms:.2f}ms", extra)

    def log_error(self, message: str, error: str | None = None, **kw: Any) -> None:
        extra = dict(kw)
        if error:
            extra["error"] = error
        self._emit(logging.ERROR, message, extra)

    # ---- plain levels ---------------------------------------------------
    def debug(self, message: str, **kw: Any) -> None:
        self._emit(logging.DEBUG, message, kw)

    def info(self, message: str, **kw: Any) -> None:
        self._emit(logging.INFO, message, kw)

    def warning(self, message: str, **kw: Any) -> None:
        self._emit(logging.WARNING, message, kw)

    def error(self, message: str, **kw: Any) -> None:  # noqa: D401
        self._emit(logging.ERROR, message, kw)

    @contextmanager
    def timed_operation(self, operation: str, **kw: Any) -> Iterator[dict[str, Any]]:
        """Log start and duration of a block.

        The yielded dict may be filled inside the block; its entries are
        added to the closing performance record.
        """
        start = time.perf_counter()
        fields: dict[str, Any] = {}
        self.log_operation(f"{operation}_start", **kw)
        try:
            yield fields
        except Exception as exc:
            self.log_error(f"operation {operation} failed", error=str(exc), **kw)
            raise
        self.log_performance(operation, (time.perf_counter() - start) * 1000, **kw, **fields)


_GLOBAL: StructuredLogger | None = None


def get_logger() -> StructuredLogger:
    global _GLOBAL  # noqa: PLW0603
    if _GLOBAL is None:
        _GLOBAL = StructuredLogger()
    return _GLOBAL


def configure_logging(json_logging: bool = False, level: str = "INFO") -> StructuredLogger:
    global _GLOBAL  # noqa: PLW0603
    _GLOBAL = StructuredLogger(json_logging=json_logging, level=level)
    return _GLOBAL


__all__ = ["JSONFormatter", "StructuredLogger", "configure_logging", "get_logger"]
