from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import requests

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "tasksync-rest/0.2.0"
HTTP_ERROR_STATUS = 400
REQUEST_TIMEOUT = 30


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


@dataclass
class GitHubRestClient:
    """Lightweight REST client for the issue operations a sync pass needs."""

    token: str
    repo: str
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        if self.token:
            self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )
        response = self._session.request(
            method,
            url,
            params=params,
            json=json_body,
            headers=self._session.headers,
            timeout=REQUEST_TIMEOUT,
        )
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            try:
                return response.json()
            except ValueError:  # pragma: no cover - non-JSON body
                return response.text
        return None

    def _paginate(
        self, path: str, *, params: dict[str, Any] | None = None
    ) -> list[Any]:
        params = dict(params or {})
        per_page = params.setdefault("per_page", 100)
        params.setdefault("page", 1)
        results: list[Any] = []
        while True:
            data = self._request("GET", path, params=params)
            if not isinstance(data, list):
                break
            results.extend(data)
            if len(data) < per_page:
                break
            params["page"] = params.get("page", 1) + 1
        return results

    # ---- Issue operations --------------------------------------------
    def list_issues(self, *, state: str = "open") -> list[dict[str, Any]]:
        params = {"state": state, "per_page": 100, "page": 1}
        data = self._paginate(f"/repos/{self.repo}/issues", params=params)
        return [entry for entry in data if isinstance(entry, dict)]

    def get_issue(self, number: int) -> dict[str, Any] | None:
        try:
            data = self._request("GET", f"/repos/{self.repo}/issues/{number}")
        except GitHubAPIError as exc:
            if exc.status == 404:
                return None
            raise
        return data if isinstance(data, dict) else None

    def create_issue(
        self,
        *,
        title: str,
        body: str,
        labels: Iterable[str] | None = None,
        assignees: Iterable[str] | None = None,
    ) -> dict[str, Any] | None:
        payload: dict[str, Any] = {"title": title, "body": body}
        if labels:
            payload["labels"] = list(labels)
        if assignees:
            payload["assignees"] = list(assignees)
        data = self._request("POST", f"/repos/{self.repo}/issues", json_body=payload)
        return data if isinstance(data, dict) else None

    def update_issue(
        self,
        *,
        number: int,
        title: str | None = None,
        body: str | None = None,
        state: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {}
        if title is not None:
            payload["title"] = title
        if body is not None:
            payload["body"] = body
        if state is not None:
            payload["state"] = state
        if payload:
            self._request(
                "PATCH", f"/repos/{self.repo}/issues/{number}", json_body=payload
            )

    def set_labels(self, *, number: int, labels: Iterable[str]) -> None:
        self._request(
            "PUT",
            f"/repos/{self.repo}/issues/{number}/labels",
            json_body={"labels": list(labels)},
        )

    def add_assignees(self, *, number: int, assignees: Iterable[str]) -> None:
        self._request(
            "POST",
            f"/repos/{self.repo}/issues/{number}/assignees",
            json_body={"assignees": list(assignees)},
        )

    def remove_assignees(self, *, number: int, assignees: Iterable[str]) -> None:
        self._request(
            "DELETE",
            f"/repos/{self.repo}/issues/{number}/assignees",
            json_body={"assignees": list(assignees)},
        )

    def add_comment(self, *, number: int, body: str) -> None:
        self._request(
            "POST",
            f"/repos/{self.repo}/issues/{number}/comments",
            json_body={"body": body},
        )

    # ---- Labels -------------------------------------------------------
    def list_labels(self) -> list[dict[str, Any]]:
        data = self._paginate(f"/repos/{self.repo}/labels")
        return [entry for entry in data if isinstance(entry, dict)]

    def create_label(self, *, name: str, color: str = "ededed", description: str = "") -> None:
        payload: dict[str, Any] = {"name": name, "color": color}
        if description:
            payload["description"] = description
        self._request("POST", f"/repos/{self.repo}/labels", json_body=payload)


__all__ = ["DEFAULT_API_URL", "GitHubAPIError", "GitHubRestClient"]
