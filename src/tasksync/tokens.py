"""Token and label classification.

Tasks in the document and issues on the tracker both carry flat lists of
tags. Everything downstream (sorting, rendering, checking, reconciling)
works on the classified view produced here, where every tag lands in exactly
one bucket:

* ``feature``  - ``#Name`` marker naming the owning feature
* ``product``  - tags listed in the in-scope product configuration
* ``foreign``  - tags listed in the other-repository configuration
* ``priority`` - at most one entry from the five-level scale
* ``other``    - dates, recurrence and free tags
* ``issue_id`` - ``#123`` tracker number
* ``task_id``  - ``🆔 code`` document-side link

Classification never raises; unknown input falls into ``other``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Generic, TypeVar

T = TypeVar("T")

TASK_ID_MARKER = "🆔"

# Every symbol that closes the title part of a task line.
RESERVED_SYMBOLS = "⏬🔽🔼⏫🔺➕⏳📅🛫✅❌🔁⛔🆔"
RESERVED_SET = frozenset(RESERVED_SYMBOLS)
RESERVED_SPLIT_RE = re.compile(f"[{RESERVED_SYMBOLS}]")

_ISSUE_ID_RE = re.compile(r"^#\d+$")
_TASK_ID_IN_TEXT_RE = re.compile(TASK_ID_MARKER + r"\s*([A-Za-z0-9]+)")


class Priority(IntEnum):
    BACKLOG = 0
    LOW = 1
    HIGH = 2
    HIGHEST = 3
    CRITICAL = 4


PRIORITY_SYMBOLS: dict[Priority, str] = {
    Priority.BACKLOG: "⏬",
    Priority.LOW: "🔽",
    Priority.HIGH: "🔼",
    Priority.HIGHEST: "⏫",
    Priority.CRITICAL: "🔺",
}

PRIORITY_LABELS: dict[Priority, str] = {
    Priority.BACKLOG: "p_backlog",
    Priority.LOW: "p_low",
    Priority.HIGH: "p_high",
    Priority.HIGHEST: "p_highest",
    Priority.CRITICAL: "p_critical",
}

_PRIORITY_BY_SYMBOL = {v: k for k, v in PRIORITY_SYMBOLS.items()}
_PRIORITY_BY_LABEL = {v: k for k, v in PRIORITY_LABELS.items()}


def priority_from_symbol(symbol: str) -> Priority | None:
    return _PRIORITY_BY_SYMBOL.get(symbol)


def priority_from_label(name: str) -> Priority | None:
    return _PRIORITY_BY_LABEL.get(name)


@dataclass(frozen=True)
class Label:
    """Atomic tag; ``color`` is cosmetic and only carried for display."""

    name: str
    color: str | None = None


class Bucket(Enum):
    FEATURE = "feature"
    PRODUCT = "product"
    FOREIGN = "foreign"
    PRIORITY = "priority"
    OTHER = "other"
    ISSUE_ID = "issue_id"
    TASK_ID = "task_id"


@dataclass
class Scope:
    """Product tags owned by the synced repository vs. other repositories."""

    products: list[str] = field(default_factory=list)
    foreign: list[str] = field(default_factory=list)


@dataclass
class ClassifiedSet(Generic[T]):
    feature: list[T] = field(default_factory=list)
    product: list[T] = field(default_factory=list)
    foreign: list[T] = field(default_factory=list)
    priority: list[T] = field(default_factory=list)
    other: list[T] = field(default_factory=list)
    issue_id: list[T] = field(default_factory=list)
    task_id: list[T] = field(default_factory=list)

    def bucket(self, kind: Bucket) -> list[T]:
        return getattr(self, kind.value)  # type: ignore[no-any-return]

    def all_items(self) -> list[T]:
        out: list[T] = []
        for kind in Bucket:
            out.extend(self.bucket(kind))
        return out


def _bucket_for(
    name: str, scope: Scope, priority_of: Callable[[str], Priority | None]
) -> Bucket:
    if name in scope.products:
        return Bucket.PRODUCT
    if name in scope.foreign:
        return Bucket.FOREIGN
    if name.startswith(TASK_ID_MARKER):
        return Bucket.TASK_ID
    if priority_of(name) is not None:
        return Bucket.PRIORITY
    if _ISSUE_ID_RE.match(name):
        return Bucket.ISSUE_ID
    if name.startswith("#"):
        return Bucket.FEATURE
    return Bucket.OTHER


def _keep_highest(items: list[T], rank: Callable[[T], Priority | None]) -> list[T]:
    if len(items) < 2:
        return items
    best = max(items, key=lambda item: rank(item) or Priority.BACKLOG)
    return [best]


def classify(tokens: Iterable[str], scope: Scope) -> ClassifiedSet[str]:
    """Partition task tokens into buckets (sorted input, stable tie-break)."""
    result: ClassifiedSet[str] = ClassifiedSet()
    for token in sorted(t for t in tokens if t):
        result.bucket(_bucket_for(token, scope, priority_from_symbol)).append(token)
    result.priority = _keep_highest(result.priority, priority_from_symbol)
    return result


def task_id_from_text(text: str | None) -> str | None:
    """Return the ``🆔 code`` token referenced in free text, if any."""
    if not text:
        return None
    m = _TASK_ID_IN_TEXT_RE.search(text)
    if not m:
        return None
    return f"{TASK_ID_MARKER} {m.group(1)}"


def classify_labels(
    labels: Iterable[Label],
    scope: Scope,
    *,
    number: int | None = None,
    description: str = "",
) -> ClassifiedSet[Label]:
    """Classify tracker labels; the issue number and description link are injected.

    Unlike :func:`classify`, every priority label is kept (highest first).
    """
    result: ClassifiedSet[Label] = ClassifiedSet()
    for label in sorted((lbl for lbl in labels if lbl.name), key=lambda lbl: lbl.name):
        result.bucket(_bucket_for(label.name, scope, priority_from_label)).append(label)
    # all priority labels are kept, highest first, so conflicting labels stay visible
    result.priority.sort(
        key=lambda lbl: priority_from_label(lbl.name) or Priority.BACKLOG, reverse=True
    )
    if number is not None:
        result.issue_id.append(Label(name=f"#{number}"))
    tid = task_id_from_text(description)
    if tid:
        result.task_id.append(Label(name=tid))
    return result


def names(labels: Iterable[Label]) -> list[str]:
    return [lbl.name for lbl in labels]


def priority_symbol_for_label(name: str) -> str | None:
    prio = priority_from_label(name)
    return PRIORITY_SYMBOLS[prio] if prio is not None else None


def priority_label_for_symbol(symbol: str) -> str | None:
    prio = priority_from_symbol(symbol)
    return PRIORITY_LABELS[prio] if prio is not None else None


__all__ = [
    "Bucket",
    "ClassifiedSet",
    "Label",
    "PRIORITY_LABELS",
    "PRIORITY_SYMBOLS",
    "Priority",
    "RESERVED_SET",
    "RESERVED_SPLIT_RE",
    "RESERVED_SYMBOLS",
    "Scope",
    "TASK_ID_MARKER",
    "classify",
    "classify_labels",
    "names",
    "priority_from_label",
    "priority_from_symbol",
    "priority_label_for_symbol",
    "priority_symbol_for_label",
    "task_id_from_text",
]
