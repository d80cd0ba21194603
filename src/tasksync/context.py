"""Per-pass state shared by the reconcilers.

A :class:`SyncContext` is created once per sync pass after the consistency
gate and handed to both reconcilers. It owns the id/title registries, the
index of open issue ids, the document cursor and the alerts raised while
reconciling. Nothing here outlives the pass.
"""

from __future__ import annotations

import random
import string
from collections import Counter
from dataclasses import dataclass, field

from .config import DocumentSettings
from .document import DocumentCursor
from .logging import StructuredLogger, get_logger
from .models import Feature, Task
from .parser import task_sort_key
from .render import render_task
from .status import StatusTable
from .tokens import TASK_ID_MARKER, Scope

TASK_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class SyncContext:
    scope: Scope
    status_table: StatusTable
    settings: DocumentSettings
    cursor: DocumentCursor
    set_ids: set[str] = field(default_factory=set)
    set_titles: set[str] = field(default_factory=set)
    open_issue_ids: set[str] = field(default_factory=set)
    alerts: list[str] = field(default_factory=list)
    counts: Counter[str] = field(default_factory=Counter)
    task_id_length: int = 6
    rng: random.Random = field(default_factory=random.Random)
    log: StructuredLogger = field(default_factory=get_logger)

    def alert(self, message: str, **kw: object) -> None:
        self.alerts.append(message)
        self.log.log_alert(message, **kw)

    def new_task_id(self) -> str:
        """Draw random codes until one is not registered yet."""
        while True:
            code = "".join(self.rng.choice(TASK_ID_ALPHABET) for _ in range(self.task_id_length))
            token = f"{TASK_ID_MARKER} {code}"
            if token not in self.set_ids:
                return token

    def rewrite_task(self, feature: Feature, task: Task) -> None:
        """Re-render ``task`` in place; raises ``ConcurrentEditError`` if its line moved."""
        new_line = render_task(task, self.settings, feature.tag)
        self.cursor.replace_line_verified(task.start_line, task.line, new_line)
        task.line = new_line
        task.sort_key = task_sort_key(feature.tag, task.title, task.tokens)


__all__ = ["SyncContext", "TASK_ID_ALPHABET"]
