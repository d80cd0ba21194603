from __future__ import annotations

import logging
import re
from enum import Enum

from .config import DocumentSettings
from .document import DocumentBuffer
from .models import Feature, Task
from .tokens import RESERVED_SET, ClassifiedSet, Scope, classify

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^(#{1,6})(?:\s+(.*))?$")


class _State(Enum):
    IDLE = "idle"
    IN_FEATURE = "in_feature"
    IN_TASK = "in_task"


def _task_line_re(task_token: str) -> re.Pattern[str]:
    return re.compile(r"^([ \t]*)- \[(.)\] " + re.escape(task_token) + r"(?:\s+(.*))?$")


def task_sort_key(feature_tag: str, title: str, tokens: ClassifiedSet[str]) -> str:
    parts = [feature_tag, title, *tokens.product, *tokens.foreign, *tokens.task_id]
    return ",".join(parts)


def split_task_words(text: str) -> tuple[str, list[str]]:
    """Split the text after the task marker into ``(title, tokens)``.

    ``#`` words before the first reserved symbol are tokens, other words form
    the title. From the first reserved symbol on, each symbol opens a compound
    token which collects the following words.
    """
    title_acc: list[str] = []
    tokens: list[str] = []
    group: list[str] = []
    for word in text.split():
        if word in RESERVED_SET:
            if group:
                tokens.append(" ".join(group))
            group = [word]
        elif group:
            group.append(word)
        elif word.startswith("#"):
            tokens.append(word)
        else:
            title_acc.append(word)
    if group:
        tokens.append(" ".join(group))
    return " ".join(title_acc), tokens


def parse_task_line(
    line: str,
    line_no: int,
    feature_tag: str,
    settings: DocumentSettings,
    scope: Scope,
) -> Task | None:
    m = _task_line_re(settings.task_token).match(line)
    if not m:
        return None
    title, words = split_task_words(m.group(3) or "")
    tokens = classify([feature_tag, *words], scope)
    return Task(
        start_line=line_no,
        end_line=line_no + 1,
        title=title,
        tokens=tokens,
        sort_key=task_sort_key(feature_tag, title, tokens),
        status_code=m.group(2),
        line=line,
        indent=m.group(1),
    )


class _TreeBuilder:
    def __init__(self, settings: DocumentSettings, scope: Scope) -> None:
        self.settings = settings
        self.scope = scope
        self.features: list[Feature] = []
        self.state = _State.IDLE
        self._desc: list[str] = []
        self._tags: set[str] = set()

    @property
    def feature(self) -> Feature:
        return self.features[-1]

    def open_feature(self, line_no: int, line: str) -> None:
        words = line.split()
        tag = words[1] if len(words) > 1 else ""
        hidden = self.settings.hidden_token in words
        if tag in self._tags:
            logger.warning("feature %s appears more than once (line %d)", tag, line_no)
        self._tags.add(tag)
        self.features.append(Feature(start_line=line_no, end_line=line_no + 1, tag=tag, hidden=hidden))
        self.state = _State.IN_FEATURE

    def close_task(self, line_no: int) -> None:
        if self.state is not _State.IN_TASK:
            return
        task = self.feature.tasks[-1]
        task.end_line = line_no
        task.description = "\n".join(self._desc)
        self._desc = []
        self.state = _State.IN_FEATURE

    def close_feature(self, line_no: int) -> None:
        if self.state is _State.IDLE:
            return
        self.close_task(line_no)
        self.feature.end_line = line_no
        self.state = _State.IDLE

    def open_task(self, task: Task) -> None:
        self.feature.tasks.append(task)
        self.state = _State.IN_TASK

    def append_description(self, line: str) -> None:
        if self.state is _State.IN_TASK:
            self._desc.append(line)

    def is_feature_heading(self, level: int, text: str) -> bool:
        return level == self.settings.feature_level and text.startswith("#")

    def feed(self, line_no: int, line: str) -> None:
        heading = _HEADING_RE.match(line)
        if heading:
            level = len(heading.group(1))
            text = heading.group(2) or ""
            if self.is_feature_heading(level, text):
                self.close_feature(line_no)
                self.open_feature(line_no, line)
            elif level > self.settings.feature_level:
                self.append_description(line)
            elif self.state is not _State.IDLE:
                self.close_feature(line_no)
            return
        if self.state is _State.IDLE:
            if line.lstrip().startswith("- [") and self.settings.task_token in line:
                logger.debug("task line %d outside any feature ignored", line_no)
            return
        task = parse_task_line(line, line_no, self.feature.tag, self.settings, self.scope)
        if task is not None:
            self.close_task(line_no)
            self.open_task(task)
        else:
            self.append_description(line)


def parse_document(buffer: DocumentBuffer, settings: DocumentSettings, scope: Scope) -> list[Feature]:
    """Build the feature/task tree from the current document snapshot."""
    builder = _TreeBuilder(settings, scope)
    count = buffer.line_count()
    for i in range(count):
        builder.feed(i, buffer.get_line(i))
    builder.close_feature(count)
    logger.debug(
        "parsed %d feature(s), %d task(s)",
        len(builder.features),
        sum(len(f.tasks) for f in builder.features),
    )
    return builder.features


__all__ = ["parse_document", "parse_task_line", "split_task_words", "task_sort_key"]
