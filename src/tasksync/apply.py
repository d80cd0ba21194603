"""Applying reconciler proposals to the tracker.

Findings carry a suggested tracker-side value in ``proposed`` but the sync
pass never writes it. ``apply_findings`` does, one issue at a time, when a
user asks for it; ``comment_findings`` instead posts the findings on the
issue so a human can decide.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, cast

from .logging import get_logger
from .models import Finding, Issue
from .tracker import TrackerClient


def _apply_assignees(tracker: TrackerClient, issue: Issue, proposed: Sequence[str]) -> str:
    stale = [login for login in issue.assignees if login not in proposed]
    missing = [login for login in proposed if login not in issue.assignees]
    if stale:
        tracker.remove_assignees(issue.number, stale)
    if missing:
        tracker.add_assignees(issue.number, missing)
    return f"assignees -> {', '.join(proposed) or '(none)'}"


def _apply_one(tracker: TrackerClient, issue: Issue, finding: Finding) -> str | None:
    value: Any = finding.proposed
    if finding.field == "labels":
        tracker.set_labels(issue.number, cast(list[str], value))
        return f"labels -> {', '.join(value)}"
    if finding.field == "assignees":
        return _apply_assignees(tracker, issue, cast(list[str], value))
    if finding.field == "state":
        tracker.update_state(issue.number, str(value))
        return f"state -> {value}"
    if finding.field == "title":
        tracker.edit_issue(issue.number, title=str(value))
        return f"title -> {value!r}"
    if finding.field == "description":
        tracker.edit_issue(issue.number, body=str(value))
        return "description updated"
    return None


def apply_findings(tracker: TrackerClient, issue: Issue) -> tuple[list[str], list[Finding]]:
    """Write every proposal of ``issue``; returns (applied actions, findings left as-is)."""
    applied: list[str] = []
    skipped: list[Finding] = []
    for finding in issue.findings:
        action = None if finding.proposed is None else _apply_one(tracker, issue, finding)
        if action is None:
            skipped.append(finding)
            continue
        applied.append(action)
        get_logger().log_issue_action(
            "apply", issue_number=issue.number, dry_run=tracker.dry_run, field=finding.field
        )
    return applied, skipped


def findings_comment(issue: Issue) -> str:
    lines = [f"Task sync found {len(issue.findings)} discrepancy(ies) for #{issue.number}:", ""]
    for finding in issue.findings:
        line = f"- {finding.message}"
        if finding.proposed is not None:
            line += f" Proposed {finding.field}: `{finding.proposed}`"
        lines.append(line)
    return "\n".join(lines) + "\n"


def comment_findings(tracker: TrackerClient, issue: Issue) -> str:
    body = findings_comment(issue)
    tracker.add_comment(issue.number, body)
    return body


__all__ = ["apply_findings", "comment_findings", "findings_comment"]
