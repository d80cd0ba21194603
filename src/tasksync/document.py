"""Line-addressable document buffer and the cursor that edits it.

All mutations during a sync pass go through :class:`DocumentCursor`. The
cursor owns the line arithmetic: after every edit it shifts the positions of
the features and tasks it tracks so that cached ``start_line``/``end_line``
values stay valid for the next edit. Positions are half-open ranges; an edit
replacing ``[start, end)`` with ``n`` lines moves every tracked
``start_line >= end`` and every tracked ``end_line > end`` by
``n - (end - start)``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from .models import Feature, Task

logger = logging.getLogger(__name__)


def _split_lines(text: str) -> list[str]:
    """Split on line feeds only; a trailing newline does not add an empty line.

    Form feeds and Unicode line separators stay inside their line so the
    buffer holds exactly the lines the cursor counted.
    """
    if not text:
        return []
    if text.endswith("\n"):
        text = text[:-1]
    return [line.removesuffix("\r") for line in text.split("\n")]


class ConcurrentEditError(RuntimeError):
    """Raised when a verified edit finds unexpected text at its target line."""

    def __init__(self, line_no: int, expected: str, actual: str | None):
        super().__init__(
            f"line {line_no} changed underneath the sync: expected {expected!r}, found {actual!r}"
        )
        self.line_no = line_no
        self.expected = expected
        self.actual = actual


class DocumentBuffer(Protocol):
    def line_count(self) -> int: ...  # pragma: no cover - structural only

    def get_line(self, index: int) -> str: ...  # pragma: no cover

    def replace_range(self, start: int, end: int, text: str) -> None: ...  # pragma: no cover

    def set_cursor(self, line: int) -> None: ...  # pragma: no cover


class TextDocument:
    """In-memory line buffer, optionally backed by a file.

    ``replace_range`` works on whole lines: ``text`` is split into lines
    (a trailing newline does not add an empty line) and replaces lines
    ``[start, end)``.
    """

    def __init__(self, lines: Iterable[str] = (), path: Path | None = None) -> None:
        self._lines: list[str] = list(lines)
        self.path = path
        self.cursor_line = 0
        self._trailing_newline = True

    @classmethod
    def from_text(cls, text: str) -> TextDocument:
        doc = cls(_split_lines(text))
        doc._trailing_newline = text.endswith("\n") or not text
        return doc

    @classmethod
    def from_path(cls, path: str | Path) -> TextDocument:
        p = Path(path)
        doc = cls.from_text(p.read_text(encoding="utf-8"))
        doc.path = p
        return doc

    def line_count(self) -> int:
        return len(self._lines)

    def get_line(self, index: int) -> str:
        return self._lines[index]

    def replace_range(self, start: int, end: int, text: str) -> None:
        if start < 0 or end < start or end > len(self._lines):
            raise IndexError(f"invalid range [{start}, {end}) for {len(self._lines)} lines")
        self._lines[start:end] = _split_lines(text)

    def set_cursor(self, line: int) -> None:
        self.cursor_line = max(0, min(line, len(self._lines)))

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def text(self) -> str:
        body = "\n".join(self._lines)
        return body + "\n" if self._trailing_newline and self._lines else body

    def save(self, path: Path | None = None) -> Path:
        target = path or self.path
        if target is None:
            raise ValueError("TextDocument has no path to save to")
        tmp = target.with_suffix(target.suffix + ".tmp")
        tmp.write_text(self.text(), encoding="utf-8")
        tmp.replace(target)
        return target


Span = Feature | Task


class DocumentCursor:
    """Single mutation path for a document during one sync pass."""

    def __init__(self, buffer: DocumentBuffer) -> None:
        self.buffer = buffer
        self._tracked: list[Span] = []
        self.edits = 0

    # --- tracking ---------------------------------------------------------
    def track(self, span: Span) -> None:
        self._tracked.append(span)

    def track_tree(self, tree: Iterable[Feature]) -> None:
        for feature in tree:
            self.track(feature)
            for task in feature.tasks:
                self.track(task)

    def _rebase(self, at: int, delta: int) -> None:
        if delta == 0:
            return
        for span in self._tracked:
            if span.start_line >= at:
                span.start_line += delta
            if span.end_line > at:
                span.end_line += delta

    # --- edits ------------------------------------------------------------
    def replace(self, start: int, end: int, lines: list[str]) -> int:
        """Replace lines ``[start, end)``; returns the line shift applied."""
        text = "".join(line + "\n" for line in lines)
        self.buffer.replace_range(start, end, text)
        self.edits += 1
        delta = len(lines) - (end - start)
        self._rebase(end, delta)
        logger.debug("replaced [%d, %d) with %d line(s), shift %+d", start, end, len(lines), delta)
        return delta

    def insert_lines(self, at: int, lines: list[str]) -> int:
        self.buffer.set_cursor(at)
        return self.replace(at, at, lines)

    def read_line(self, index: int) -> str | None:
        if index < 0 or index >= self.buffer.line_count():
            return None
        return self.buffer.get_line(index)

    def replace_line_verified(self, index: int, expected: str, new: str) -> None:
        """Rewrite one line after checking it still holds ``expected``."""
        actual = self.read_line(index)
        if actual != expected:
            raise ConcurrentEditError(index, expected, actual)
        self.replace(index, index + 1, [new])


__all__ = [
    "ConcurrentEditError",
    "DocumentBuffer",
    "DocumentCursor",
    "TextDocument",
]
