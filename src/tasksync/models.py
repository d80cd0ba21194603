from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .tokens import ClassifiedSet, Label


@dataclass(frozen=True)
class Finding:
    """User-facing discrepancy recorded while reconciling one issue.

    ``proposed`` carries a suggested replacement for ``field`` on the
    tracker side; a sync pass never writes it (see :mod:`tasksync.apply`).
    """

    message: str
    field: str | None = None
    proposed: Any = None

    def __str__(self) -> str:
        return self.message


@dataclass
class Issue:
    """Open tracker issue mirrored for the duration of one sync pass."""

    number: int
    title: str
    description: str
    author: str
    created_at: str
    assignees: list[str]
    labels: ClassifiedSet[Label]
    is_pull_request: bool = False
    state: str = "open"
    findings: list[Finding] = field(default_factory=list)

    @property
    def id_token(self) -> str:
        return f"#{self.number}"


@dataclass
class IssueDetails:
    number: int
    title: str
    body: str
    state: str
    labels: list[Label]
    assignees: list[str]
    updated_at: str | None = None
    comments: int = 0
    is_pull_request: bool = False

    @property
    def is_closed(self) -> bool:
        return self.state.lower() == "closed"


@dataclass
class Task:
    start_line: int
    end_line: int  # exclusive
    title: str
    tokens: ClassifiedSet[str]
    sort_key: str
    status_code: str
    line: str = ""  # current text of the task line, used to verify edits
    indent: str = ""
    description: str = ""

    @property
    def issue_ids(self) -> list[str]:
        return self.tokens.issue_id

    @property
    def task_ids(self) -> list[str]:
        return self.tokens.task_id


@dataclass
class Feature:
    start_line: int
    end_line: int  # exclusive
    tag: str
    hidden: bool = False
    tasks: list[Task] = field(default_factory=list)


class IssueSortOrder(Enum):
    FEATURE = "feature"
    TITLE = "title"
    ID_ASC = "id-asc"
    ID_DESC = "id-desc"


def long_id(token: str) -> str:
    """Zero-pad an issue id token so ids sort numerically as strings."""
    try:
        number = int(token.lstrip("#"))
    except ValueError:
        return token
    return f"#{number:06d}"


def issue_sort_key(issue: Issue, order: IssueSortOrder) -> str:
    cls = issue.labels
    parts: list[str] = []
    if order is IssueSortOrder.FEATURE:
        parts.extend(lbl.name for lbl in cls.feature[:1])
        parts.append(issue.title)
        parts.extend(lbl.name for lbl in cls.product)
        parts.extend(lbl.name for lbl in cls.issue_id)
    elif order is IssueSortOrder.TITLE:
        parts.append(issue.title)
        parts.extend(lbl.name for lbl in cls.feature)
        parts.extend(lbl.name for lbl in cls.product)
        parts.extend(lbl.name for lbl in cls.issue_id)
    else:
        parts.extend(long_id(lbl.name) for lbl in cls.issue_id)
    return ",".join(parts)


def sort_issues(issues: list[Issue], order: IssueSortOrder) -> list[Issue]:
    return sorted(
        issues,
        key=lambda issue: issue_sort_key(issue, order),
        reverse=order is IssueSortOrder.ID_DESC,
    )


__all__ = [
    "Feature",
    "Finding",
    "Issue",
    "IssueDetails",
    "IssueSortOrder",
    "Label",
    "Task",
    "issue_sort_key",
    "long_id",
    "sort_issues",
]
