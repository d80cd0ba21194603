"""Error taxonomy & redaction.

Reconcilers never let tracker or document failures escape a pass; they turn
them into alerts. This module gives those alerts a category and strips
credentials before anything reaches the log or the report.

Public API:
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import requests

from .config import ConfigError
from .document import ConcurrentEditError
from .github_rest import GitHubAPIError

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gh[osu]_[A-Za-z0-9]{20,40}"),  # OAuth / server / user tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"(?i)(authorization:\s*bearer\s+)\S+"),
]

_REDACTION_PLACEHOLDER = "<redacted>"

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace credential-looking substrings with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        if pat.groups:
            redacted = pat.sub(lambda m: m.group(1) + _REDACTION_PLACEHOLDER, redacted)
        else:
            redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def _classify_api_error(exc: GitHubAPIError, msg: str) -> ErrorInfo:
    low = f"{msg} {exc.response_text or ''}".lower()
    name = exc.__class__.__name__
    details = {"status": exc.status}
    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", redact(msg), name, transient=True, details=details)
    if exc.status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
        return ErrorInfo("github.auth", redact(msg), name, details=details)
    if exc.status == HTTP_NOT_FOUND:
        return ErrorInfo("github.not_found", redact(msg), name, details=details)
    return ErrorInfo("generic", redact(msg), name, details=details)


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    - GitHub API errors -> "github.rate_limit", "github.auth" or "github.not_found"
    - Network-y failures -> "network", transient True
    - Verified document edits that found other text -> "document"
    - YAML / config errors -> "parse"
    - Fallback -> "generic"
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__

    if isinstance(exc, GitHubAPIError):
        return _classify_api_error(exc, msg)
    if isinstance(exc, ConcurrentEditError):
        return ErrorInfo("document", redact(msg), name, details={"line": exc.line_no})
    if isinstance(exc, ConfigError):
        return ErrorInfo("parse", redact(msg), name)
    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", redact(msg), name, transient=True)
    if isinstance(
        exc, (ConnectionError, TimeoutError, requests.ConnectionError, requests.Timeout)
    ) or any(
        k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")
    ):
        return ErrorInfo("network", redact(msg), name, transient=True)
    if any(k in low for k in ("yaml", "scannererror", "parsererror")):
        return ErrorInfo("parse", redact(msg), name)
    return ErrorInfo("generic", redact(msg), name)


__all__ = ["ErrorInfo", "classify_error", "redact"]
