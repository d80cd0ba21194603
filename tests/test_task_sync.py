from __future__ import annotations

import re

import pytest

from tasksync.checker import check_consistency
from tasksync.config import DocumentSettings
from tasksync.document import TextDocument
from tasksync.github_rest import GitHubAPIError
from tasksync.parser import parse_document
from tasksync.status import StatusEntry, StatusKind, StatusTable
from tasksync.task_sync import issue_labels, sync_tasks
from tasksync.tracker import MemoryTracker

TASK_ID = re.compile(r"🆔 [a-z0-9]{6}")


class _FailingTracker(MemoryTracker):
    def create_issue(self, title, description, labels, assignees):
        raise GitHubAPIError(
            "Bad credentials for ghp_ABCDEFGHIJKLMNOPQRSTUVWX", status=401
        )


@pytest.fixture
def run(scope, make_context):
    def _run(text: str, tracker: MemoryTracker, *, open_ids=()):
        doc = TextDocument.from_text(text)
        tree = parse_document(doc, DocumentSettings(), scope)
        gate = check_consistency(tree)
        ctx = make_context(
            doc, tree, set_ids=gate.set_ids, set_titles=gate.set_titles, open_ids=open_ids
        )
        sync_tasks(tree, ctx, tracker)
        return doc, tree, ctx

    return _run


def test_assigned_task_gets_issue(run):
    tracker = MemoryTracker()
    doc, tree, ctx = run("### #Core\n- [a] #task Write docs #App\n- [ ] #task Later #App\n", tracker)

    line = doc.get_line(1)
    assert line.startswith("- [a] #task Write docs #App #1001 🆔 ")
    tid = TASK_ID.search(line).group(0)
    created = tracker.issues[1001]
    assert created["title"] == "Write docs"
    assert created["body"] == f"synced to task {tid}"
    assert [a["login"] for a in created["assignees"]] == ["alice"]
    assert [lbl["name"] for lbl in created["labels"]] == ["#Core", "#App"]
    assert {tid, "#1001"} <= ctx.set_ids
    assert "#1001" in ctx.open_issue_ids
    assert tree[0].tasks[0].line == line
    # unassigned tasks are left alone
    assert doc.get_line(2) == "- [ ] #task Later #App"
    assert ctx.counts["created"] == 1
    assert ctx.alerts == []


def test_existing_task_id_is_kept(run):
    tracker = MemoryTracker()
    doc, _, ctx = run("### #Core\n- [B] #task Hot #Server 🆔 abc123 🔺\n", tracker)
    assert doc.get_line(1) == "- [B] #task Hot #Server #1001 🆔 abc123 🔺"
    assert [lbl["name"] for lbl in tracker.issues[1001]["labels"]] == ["#Core", "p_critical", "#Server"]
    assert "task_ids" not in ctx.counts


def test_issue_labels_for_task(scope):
    doc = TextDocument.from_text("### #Core\n- [ ] #task X #Extra #App #Server ⏬\n")
    task = parse_document(doc, DocumentSettings(), scope)[0].tasks[0]
    assert issue_labels(task) == ["#Core", "#Extra", "p_backlog", "#App", "#Server"]


def test_closed_issue_closes_task(run):
    tracker = MemoryTracker()
    tracker.add_issue("Fix crash", labels=["#Core", "#App"], number=12, state="closed")
    doc, _, ctx = run("### #Core\n- [a] #task Fix crash #App #12\n", tracker)
    assert doc.get_line(1) == "- [x] #task Fix crash #App #12"
    assert ctx.counts["closed"] == 1


def test_fetched_open_issue_is_not_refetched(run):
    tracker = MemoryTracker()
    tracker.add_issue("Fix crash", labels=["#Core", "#App"], number=12)
    text = "### #Core\n- [a] #task Fix crash #App #12\n"
    doc, _, ctx = run(text, tracker, open_ids={"#12"})
    assert tracker.calls == []
    assert doc.text() == text


def test_done_task_is_not_checked(run):
    tracker = MemoryTracker()
    run("### #Core\n- [x] #task Fix crash #App #12\n", tracker)
    assert tracker.calls == []


@pytest.mark.parametrize(
    "text, expected",
    [
        ("- [z] #task Thing #App\n", "has no login in the status table"),
        ("- [a] #task Thing #App #1 #2\n", "carries several issue ids: #1 #2"),
        ("- [a] #task Thing #App #12\n", "was not found on the tracker"),
    ],
)
def test_alerts(run, text, expected):
    tracker = MemoryTracker()
    doc, _, ctx = run("### #Core\n" + text, tracker)
    assert len(ctx.alerts) == 1
    assert expected in ctx.alerts[0]
    assert doc.get_line(1) == text.rstrip("\n")


def test_open_issue_missing_from_fetch_is_alerted(run):
    tracker = MemoryTracker()
    tracker.add_issue("Thing", labels=["#Core", "#App"], number=12)
    _, _, ctx = run("### #Core\n- [a] #task Thing #App #12\n", tracker)
    assert ctx.alerts == ["#Core 'Thing' issue #12 is open but was not among the fetched issues"]


def test_tracker_failure_becomes_redacted_alert(run):
    tracker = _FailingTracker()
    doc, _, ctx = run("### #Core\n- [a] #task Write docs #App\n", tracker)
    assert len(ctx.alerts) == 1
    assert "(github.auth)" in ctx.alerts[0]
    assert "ghp_" not in ctx.alerts[0]
    assert "<redacted>" in ctx.alerts[0]
    # the task id is assigned before the tracker call and stays
    assert TASK_ID.search(doc.get_line(1))
    assert "#" not in doc.get_line(1).split("#App", 1)[1]


def test_foreign_tasks_are_ignored(run):
    tracker = MemoryTracker()
    text = "### #Core\n- [a] #task Web thing #Web\n"
    doc, _, ctx = run(text, tracker)
    assert tracker.calls == []
    assert doc.text() == text


def test_dry_run_creates_nothing_and_stays_quiet(run):
    tracker = MemoryTracker(dry_run=True)
    doc, _, ctx = run("### #Core\n- [a] #task Write docs #App\n", tracker)
    assert tracker.issues == {}
    assert ctx.alerts == []
    assert "#1001" not in doc.get_line(1)


def test_hidden_features_are_skipped(run):
    tracker = MemoryTracker()
    text = "### #Core #hidden\n- [a] #task Write docs #App\n"
    doc, _, _ = run(text, tracker)
    assert tracker.calls == []
    assert doc.text() == text


class TestLowerCaseOnlyStatusTable:
    @pytest.fixture
    def status_table(self):
        return StatusTable([StatusEntry("a", "alice", StatusKind.ASSIGNED)])

    def test_in_progress_task_is_assigned_to_lower_case_login(self, run):
        tracker = MemoryTracker()
        doc, _, ctx = run("### #Core\n- [A] #task Ship it #App\n", tracker)

        assert ctx.alerts == []
        assert doc.get_line(1).startswith("- [A] #task Ship it #App #1001 🆔 ")
        assert [a["login"] for a in tracker.issues[1001]["assignees"]] == ["alice"]
