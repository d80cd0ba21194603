"""Task rendering and per-feature compaction.

``compact_tree`` rewrites each visible feature's task block in sort order.
Each feature is replaced with one edit through the document cursor, so the
positions of every later feature and task are shifted before that feature
is processed.
"""

from __future__ import annotations

from .config import DocumentSettings
from .document import DocumentCursor
from .models import Feature, Task


def render_task(task: Task, settings: DocumentSettings, feature_tag: str | None = None) -> str:
    """Render the task line: status, marker, title, then tokens in fixed order."""
    cts = task.tokens
    extra_features = [t for t in cts.feature if t != feature_tag]
    header = f"{task.indent}- [{task.status_code}] {settings.task_token}"
    parts = [header]
    if task.title:
        parts.append(task.title)
    parts.extend(extra_features)
    parts.extend(cts.product)
    parts.extend(cts.foreign)
    parts.extend(cts.issue_id)
    parts.extend(cts.task_id)
    parts.extend(cts.priority)
    parts.extend(cts.other)
    return " ".join(parts)


def description_lines(description: str) -> list[str]:
    """Split a description into lines, dropping trailing blank lines."""
    if not description:
        return []
    lines = description.split("\n")
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


def _ends_with_blank(task: Task) -> bool:
    return task.end_line - task.start_line - 1 > len(description_lines(task.description))


def compact_feature(feature: Feature, cursor: DocumentCursor, settings: DocumentSettings) -> int:
    """Sort, trim and rewrite one feature's tasks; returns the line shift."""
    if feature.hidden or not feature.tasks:
        return 0
    r_start = min(t.start_line for t in feature.tasks)
    r_end = feature.end_line
    last = max(feature.tasks, key=lambda t: t.start_line)
    keep_gap = _ends_with_blank(last)

    feature.tasks.sort(key=lambda t: t.sort_key)
    lines: list[str] = []
    spans: list[tuple[Task, int, int]] = []
    for task in feature.tasks:
        desc = description_lines(task.description)
        start = r_start + len(lines)
        task.line = render_task(task, settings, feature.tag)
        task.description = "\n".join(desc)
        lines.append(task.line)
        lines.extend(desc)
        spans.append((task, start, r_start + len(lines)))
    if keep_gap:
        lines.append("")

    delta = cursor.replace(r_start, r_end, lines)
    for task, start, end in spans:
        task.start_line = start
        task.end_line = end
    feature.end_line = r_start + len(lines)
    return delta


def compact_tree(tree: list[Feature], cursor: DocumentCursor, settings: DocumentSettings) -> int:
    """Compact all visible features top to bottom; returns the total line shift."""
    line_shift = 0
    for feature in tree:
        line_shift += compact_feature(feature, cursor, settings)
    return line_shift


__all__ = [
    "compact_feature",
    "compact_tree",
    "description_lines",
    "render_task",
]
