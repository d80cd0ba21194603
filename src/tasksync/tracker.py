"""Issue tracker collaborators.

Reconcilers talk to the tracker only through :class:`TrackerClient`. Two
implementations exist:

* :class:`GitHubTracker` wraps :class:`~tasksync.github_rest.GitHubRestClient`
  and honours ``dry_run`` (reads still hit the API, writes are logged only).
* :class:`MemoryTracker` keeps issues in GitHub's JSON shape in memory. It
  backs mock mode (``TASKSYNC_MOCK=1``) and the test-suite.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from .github_rest import DEFAULT_API_URL, GitHubAPIError, GitHubRestClient
from .logging import get_logger
from .models import Issue, IssueDetails
from .tokens import Label, Scope, classify_labels

TOKEN_ENV_VARS = ("TASKSYNC_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN", "GIT_PAT")


class TrackerClient(Protocol):
    dry_run: bool

    def fetch_open_issues(self, scope: Scope) -> list[Issue]: ...  # pragma: no cover

    def fetch_issue(self, number: int) -> IssueDetails | None: ...  # pragma: no cover

    def create_issue(
        self, title: str, description: str, labels: Sequence[str], assignees: Sequence[str]
    ) -> IssueDetails | None: ...  # pragma: no cover

    def set_labels(self, number: int, labels: Sequence[str]) -> None: ...  # pragma: no cover

    def add_assignees(self, number: int, assignees: Sequence[str]) -> None: ...  # pragma: no cover

    def remove_assignees(self, number: int, assignees: Sequence[str]) -> None: ...  # pragma: no cover

    def update_state(self, number: int, state: str) -> None: ...  # pragma: no cover

    def edit_issue(
        self, number: int, *, title: str | None = None, body: str | None = None
    ) -> None: ...  # pragma: no cover

    def add_comment(self, number: int, body: str) -> None: ...  # pragma: no cover

    def list_labels(self) -> list[Label]: ...  # pragma: no cover

    def create_label(self, name: str, color: str | None = None) -> None: ...  # pragma: no cover


# ---- payload parsing -------------------------------------------------------
def _label_list(raw: Any) -> list[Label]:
    out: list[Label] = []
    for entry in raw or []:
        if isinstance(entry, dict) and entry.get("name"):
            out.append(Label(name=str(entry["name"]), color=entry.get("color")))
        elif isinstance(entry, str) and entry:
            out.append(Label(name=entry))
    return out


def _logins(raw: Any) -> list[str]:
    out: list[str] = []
    for entry in raw or []:
        if isinstance(entry, dict) and entry.get("login"):
            out.append(str(entry["login"]))
    return out


def issue_from_payload(data: dict[str, Any], scope: Scope) -> Issue:
    number = int(data["number"])
    body = data.get("body") or ""
    user = data.get("user") if isinstance(data.get("user"), dict) else {}
    return Issue(
        number=number,
        title=str(data.get("title") or ""),
        description=body,
        author=str((user or {}).get("login") or ""),
        created_at=str(data.get("created_at") or ""),
        assignees=_logins(data.get("assignees")),
        labels=classify_labels(_label_list(data.get("labels")), scope, number=number, description=body),
        is_pull_request="pull_request" in data,
        state=str(data.get("state") or "open"),
    )


def details_from_payload(data: dict[str, Any]) -> IssueDetails:
    return IssueDetails(
        number=int(data["number"]),
        title=str(data.get("title") or ""),
        body=data.get("body") or "",
        state=str(data.get("state") or "open"),
        labels=_label_list(data.get("labels")),
        assignees=_logins(data.get("assignees")),
        updated_at=data.get("updated_at"),
        comments=int(data.get("comments") or 0),
        is_pull_request="pull_request" in data,
    )


# ---- GitHub ----------------------------------------------------------------
def select_token() -> str | None:
    for name in TOKEN_ENV_VARS:
        raw = os.environ.get(name)
        if raw is None:
            continue
        token = raw.strip()
        if token:
            return token
    return None


class GitHubTracker:
    """REST-backed tracker; in ``dry_run`` mode writes are logged and skipped."""

    def __init__(self, client: GitHubRestClient, *, dry_run: bool = False) -> None:
        self.client = client
        self.dry_run = dry_run
        self._log = get_logger()

    @classmethod
    def from_env(
        cls, repo: str, *, api_url: str = DEFAULT_API_URL, dry_run: bool = False
    ) -> GitHubTracker:
        token = select_token()
        if not token:
            raise GitHubAPIError(
                "No GitHub token found; set one of " + ", ".join(TOKEN_ENV_VARS), status=401
            )
        return cls(GitHubRestClient(token=token, repo=repo, base_url=api_url), dry_run=dry_run)

    def _skip(self, action: str, number: int | None = None, **kw: Any) -> bool:
        if self.dry_run:
            self._log.log_issue_action(action, issue_number=number, dry_run=True, **kw)
        return self.dry_run

    def fetch_open_issues(self, scope: Scope) -> list[Issue]:
        return [issue_from_payload(entry, scope) for entry in self.client.list_issues(state="open")]

    def fetch_issue(self, number: int) -> IssueDetails | None:
        data = self.client.get_issue(number)
        return details_from_payload(data) if data else None

    def create_issue(
        self, title: str, description: str, labels: Sequence[str], assignees: Sequence[str]
    ) -> IssueDetails | None:
        if self._skip("create", title=title):
            return None
        data = self.client.create_issue(
            title=title, body=description, labels=labels, assignees=assignees
        )
        return details_from_payload(data) if data else None

    def set_labels(self, number: int, labels: Sequence[str]) -> None:
        if not self._skip("set_labels", number, labels=list(labels)):
            self.client.set_labels(number=number, labels=labels)

    def add_assignees(self, number: int, assignees: Sequence[str]) -> None:
        if not self._skip("assign", number, assignees=list(assignees)):
            self.client.add_assignees(number=number, assignees=assignees)

    def remove_assignees(self, number: int, assignees: Sequence[str]) -> None:
        if not self._skip("unassign", number, assignees=list(assignees)):
            self.client.remove_assignees(number=number, assignees=assignees)

    def update_state(self, number: int, state: str) -> None:
        if not self._skip("state", number, state=state):
            self.client.update_issue(number=number, state=state)

    def edit_issue(
        self, number: int, *, title: str | None = None, body: str | None = None
    ) -> None:
        if not self._skip("edit", number, title=title):
            self.client.update_issue(number=number, title=title, body=body)

    def add_comment(self, number: int, body: str) -> None:
        if not self._skip("comment", number):
            self.client.add_comment(number=number, body=body)

    def list_labels(self) -> list[Label]:
        return _label_list(self.client.list_labels())

    def create_label(self, name: str, color: str | None = None) -> None:
        if not self._skip("create_label", label=name):
            self.client.create_label(name=name, color=color or "ededed")


# ---- in-memory -------------------------------------------------------------
@dataclass
class MemoryTracker:
    """Tracker double holding GitHub-shaped issue payloads."""

    issues: dict[int, dict[str, Any]] = field(default_factory=dict)
    labels: dict[str, str | None] = field(default_factory=dict)
    comments: dict[int, list[str]] = field(default_factory=dict)
    calls: list[tuple[str, Any]] = field(default_factory=list)
    next_number: int = 1001
    dry_run: bool = False

    def add_issue(
        self,
        title: str,
        *,
        labels: Iterable[str] = (),
        assignees: Iterable[str] = (),
        body: str = "",
        state: str = "open",
        number: int | None = None,
        author: str = "mock",
        pull_request: bool = False,
    ) -> int:
        if number is None:
            number = self.next_number
        self.next_number = max(self.next_number, number + 1)
        payload: dict[str, Any] = {
            "number": number,
            "title": title,
            "body": body,
            "state": state,
            "labels": [{"name": name} for name in labels],
            "assignees": [{"login": login} for login in assignees],
            "user": {"login": author},
            "created_at": "2024-01-01T00:00:00Z",
            "comments": 0,
        }
        if pull_request:
            payload["pull_request"] = {}
        self.issues[number] = payload
        for name in labels:
            self.labels.setdefault(name, None)
        return number

    def _write(self, action: str, arg: Any) -> bool:
        """Record a write; returns False when it must not be applied (dry run)."""
        self.calls.append((action, arg))
        return not self.dry_run

    def _get(self, number: int) -> dict[str, Any]:
        try:
            return self.issues[number]
        except KeyError:
            raise GitHubAPIError(f"issue #{number} not found", status=404) from None

    def fetch_open_issues(self, scope: Scope) -> list[Issue]:
        self.calls.append(("fetch_open_issues", None))
        return [
            issue_from_payload(data, scope)
            for _, data in sorted(self.issues.items())
            if data["state"] == "open"
        ]

    def fetch_issue(self, number: int) -> IssueDetails | None:
        self.calls.append(("fetch_issue", number))
        data = self.issues.get(number)
        return details_from_payload(data) if data else None

    def create_issue(
        self, title: str, description: str, labels: Sequence[str], assignees: Sequence[str]
    ) -> IssueDetails | None:
        if not self._write("create_issue", title):
            return None
        number = self.add_issue(title, labels=labels, assignees=assignees, body=description)
        return details_from_payload(self.issues[number])

    def set_labels(self, number: int, labels: Sequence[str]) -> None:
        if self._write("set_labels", number):
            self._get(number)["labels"] = [{"name": name} for name in labels]

    def add_assignees(self, number: int, assignees: Sequence[str]) -> None:
        if not self._write("add_assignees", number):
            return
        data = self._get(number)
        current = _logins(data["assignees"])
        data["assignees"] = [{"login": login} for login in dict.fromkeys([*current, *assignees]) if login]

    def remove_assignees(self, number: int, assignees: Sequence[str]) -> None:
        if not self._write("remove_assignees", number):
            return
        data = self._get(number)
        data["assignees"] = [a for a in data["assignees"] if a["login"] not in assignees]

    def update_state(self, number: int, state: str) -> None:
        if self._write("update_state", number):
            self._get(number)["state"] = state

    def edit_issue(
        self, number: int, *, title: str | None = None, body: str | None = None
    ) -> None:
        if not self._write("edit_issue", number):
            return
        data = self._get(number)
        if title is not None:
            data["title"] = title
        if body is not None:
            data["body"] = body

    def add_comment(self, number: int, body: str) -> None:
        if not self._write("add_comment", number):
            return
        self._get(number)
        self.comments.setdefault(number, []).append(body)

    def list_labels(self) -> list[Label]:
        return [Label(name=name, color=color) for name, color in sorted(self.labels.items())]

    def create_label(self, name: str, color: str | None = None) -> None:
        if self._write("create_label", name):
            self.labels[name] = color


__all__ = [
    "GitHubTracker",
    "MemoryTracker",
    "TOKEN_ENV_VARS",
    "TrackerClient",
    "details_from_payload",
    "issue_from_payload",
    "select_token",
]
