from __future__ import annotations

import json

from tasksync.engine import SyncReport
from tasksync.models import Finding, Issue
from tasksync.report import format_report, write_summary
from tasksync.tokens import ClassifiedSet


def _issue(number: int, findings: list[Finding]) -> Issue:
    return Issue(
        number=number,
        title=f"Issue {number}",
        description="",
        author="bob",
        created_at="",
        assignees=[],
        labels=ClassifiedSet(),
        findings=findings,
    )


def test_report_lines_for_pass():
    report = SyncReport(
        issues=[
            _issue(1, []),
            _issue(2, [Finding("Task title does not match the issue title.", field="title", proposed="X")]),
        ],
        alerts=["#Core 'Y' issue #5 was not found on the tracker"],
        counts={"inserted": 2, "created": 1},
        features=3,
        tasks=7,
    )
    lines = format_report(report.to_dict())
    assert lines == [
        "[sync] features=3 tasks=7 issues=2",
        "  2 tasks inserted, 1 issues created",
        "  #2 Issue 2",
        "    - Task title does not match the issue title. (proposed title: 'X')",
        "  ! #Core 'Y' issue #5 was not found on the tracker",
    ]


def test_report_for_aborted_pass():
    report = SyncReport(aborted=True, consistency=["#Docs 'Fix bug' duplicates a task title above"])
    assert format_report(report.to_dict()) == [
        "[sync] Aborted: 1 consistency finding(s), nothing written",
        "  #Docs 'Fix bug' duplicates a task title above",
    ]


def test_in_sync_dry_run():
    lines = format_report(SyncReport(dry_run=True).to_dict())
    assert lines[0].startswith("[sync] (dry-run) ")
    assert lines[-1] == "[sync] Document and tracker are in sync"


def test_write_summary(tmp_path):
    report = SyncReport(issues=[_issue(4, [Finding("Feature #X is not present in the document.")])])
    path = write_summary(tmp_path / "out" / "summary.json", report.to_dict())
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["summary"]["issues_with_findings"] == 1
    assert data["findings"][0]["findings"][0] == {
        "message": "Feature #X is not present in the document.",
        "field": None,
        "proposed": None,
    }
    assert data["in_sync"] is False
