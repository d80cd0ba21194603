"""Task status codes and the status table.

A task's checkbox carries a single character. Blank means unassigned, the
terminal codes mean done/cancelled/external, and every other character is
looked up in the configured status table which maps it to a tracker login.
By convention a lower-case letter is "assigned to" and the upper-case
letter is "in progress by" the same login.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

UNASSIGNED_SYMBOL = " "
DONE_SYMBOL = "x"
CANCELLED_SYMBOL = "-"
EXTERNAL_SYMBOL = ">"


class StatusKind(Enum):
    TODO = "todo"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"
    EXTERNAL = "external"


TERMINAL_KINDS = frozenset({StatusKind.DONE, StatusKind.CANCELLED, StatusKind.EXTERNAL})
ACTIVE_KINDS = frozenset({StatusKind.ASSIGNED, StatusKind.IN_PROGRESS})

# Obsidian Tasks plugin status types
_PLUGIN_KIND_MAP = {
    "TODO": StatusKind.ASSIGNED,
    "IN_PROGRESS": StatusKind.IN_PROGRESS,
    "DONE": StatusKind.DONE,
    "CANCELLED": StatusKind.CANCELLED,
    "NON_TASK": StatusKind.EXTERNAL,
}


@dataclass(frozen=True)
class StatusEntry:
    symbol: str
    login: str | None
    kind: StatusKind


@dataclass(frozen=True)
class Status:
    kind: StatusKind
    login: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS

    @property
    def is_active(self) -> bool:
        return self.kind in ACTIVE_KINDS


BUILTIN_ENTRIES: tuple[StatusEntry, ...] = (
    StatusEntry(UNASSIGNED_SYMBOL, None, StatusKind.TODO),
    StatusEntry(DONE_SYMBOL, None, StatusKind.DONE),
    StatusEntry("X", None, StatusKind.DONE),
    StatusEntry(CANCELLED_SYMBOL, None, StatusKind.CANCELLED),
    StatusEntry(EXTERNAL_SYMBOL, None, StatusKind.EXTERNAL),
)


def parse_kind(value: Any) -> StatusKind:
    text = str(value or "").strip().lower().replace("-", "_")
    for kind in StatusKind:
        if kind.value == text:
            return kind
    raise ValueError(f"Unknown status kind: {value!r}")


class StatusTable:
    """Ordered symbol <-> login mapping used by both reconcilers."""

    def __init__(self, entries: Iterable[StatusEntry] = ()) -> None:
        self._entries: list[StatusEntry] = list(BUILTIN_ENTRIES)
        builtin = {e.symbol for e in BUILTIN_ENTRIES}
        for entry in entries:
            if entry.symbol in builtin:
                logger.debug("status symbol %r is reserved; ignoring entry", entry.symbol)
                continue
            self._entries.append(entry)

    @property
    def entries(self) -> Sequence[StatusEntry]:
        return tuple(self._entries)

    def lookup(self, symbol: str) -> StatusEntry | None:
        for entry in self._entries:
            if entry.symbol == symbol:
                return entry
        return None

    def status_of(self, code: str) -> Status:
        """Decode a checkbox character; unknown letters map to an unresolved login."""
        if code in ("", UNASSIGNED_SYMBOL):
            return Status(StatusKind.TODO)
        entry = self.lookup(code)
        if entry is not None:
            return Status(entry.kind, entry.login)
        if code.isalpha() and code.isupper():
            # upper case is "in progress by" the login of the lower-case entry
            lower = self.lookup(code.lower())
            if lower is not None and lower.kind is StatusKind.ASSIGNED:
                return Status(StatusKind.IN_PROGRESS, lower.login)
            return Status(StatusKind.IN_PROGRESS)
        return Status(StatusKind.ASSIGNED)

    def login_for(self, code: str) -> str | None:
        status = self.status_of(code)
        return status.login if status.is_active else None

    def symbol_for_assignees(self, assignees: Sequence[str]) -> str:
        if not assignees:
            return UNASSIGNED_SYMBOL
        if len(assignees) > 1:
            return EXTERNAL_SYMBOL
        matches = [
            e for e in self._entries if e.kind is StatusKind.ASSIGNED and e.login == assignees[0]
        ]
        if len(matches) == 1:
            return matches[0].symbol
        return EXTERNAL_SYMBOL


def entries_from_config(raw: Iterable[Any]) -> list[StatusEntry]:
    out: list[StatusEntry] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        symbol = str(item.get("symbol", ""))
        if len(symbol) != 1:
            raise ValueError(f"Status symbol must be a single character: {symbol!r}")
        login = item.get("login")
        out.append(StatusEntry(symbol, str(login) if login else None, parse_kind(item.get("kind"))))
    return out


def entries_from_tasks_plugin(path: Path) -> list[StatusEntry]:
    """Read ``statusSettings.customStatuses`` from an Obsidian Tasks ``data.json``.

    Each custom status contributes ``symbol``, ``name`` (the tracker login) and
    ``type``. Missing or unreadable files yield an empty list.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("Tasks plugin settings not found at %s", path)
        return []
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Cannot read Tasks plugin settings %s: %s", path, exc)
        return []
    settings = data.get("statusSettings") if isinstance(data, dict) else None
    customs = settings.get("customStatuses") if isinstance(settings, dict) else None
    out: list[StatusEntry] = []
    for item in customs or []:
        if not isinstance(item, dict):
            continue
        symbol = item.get("symbol")
        if not isinstance(symbol, str) or len(symbol) != 1:
            continue
        kind = _PLUGIN_KIND_MAP.get(str(item.get("type", "")).upper())
        if kind is None:
            continue
        name = item.get("name")
        login = str(name).strip() if name and kind in ACTIVE_KINDS else None
        out.append(StatusEntry(symbol, login or None, kind))
    return out


__all__ = [
    "CANCELLED_SYMBOL",
    "DONE_SYMBOL",
    "EXTERNAL_SYMBOL",
    "UNASSIGNED_SYMBOL",
    "Status",
    "StatusEntry",
    "StatusKind",
    "StatusTable",
    "entries_from_config",
    "entries_from_tasks_plugin",
    "parse_kind",
]
