"""Issue -> task reconciliation.

Each open issue is matched against the document tree by issue id, then by
task id, then by title. Discrepancies become :class:`~tasksync.models.Finding`
entries on the issue, with the suggested tracker-side value in ``proposed``.
Only two document writes happen here: back-filling an issue id on a task
linked by task id, and inserting a task for an issue that matches nothing.
"""

from __future__ import annotations

from .checker import title_key
from .context import SyncContext
from .document import ConcurrentEditError
from .models import Feature, Finding, Issue, Task
from .parser import task_sort_key
from .render import render_task
from .status import StatusKind
from .tokens import classify, names, priority_symbol_for_label, task_id_from_text


def find_feature(tree: list[Feature], tag: str) -> Feature | None:
    for feature in tree:
        if feature.tag == tag:
            return feature
    return None


def _find_task(feature: Feature, token: str) -> Task | None:
    for task in feature.tasks:
        if token in task.issue_ids or token in task.task_ids:
            return task
    return None


# ---- comparisons -----------------------------------------------------------
def _compare_backlink(issue: Issue, task: Task, findings: list[Finding]) -> None:
    if not task.task_ids:
        return
    tid = task.task_ids[0]
    linked = task_id_from_text(issue.description)
    if linked == tid:
        return
    if linked is not None:
        findings.append(
            Finding(
                f"Task ID {tid} does not match link {linked} in issue description.",
                field="description",
                proposed=issue.description.replace(linked, tid),
            )
        )
    else:
        findings.append(
            Finding(
                "Task ID link missing in issue description.",
                field="description",
                proposed=f"synced to task {tid}\n{issue.description}",
            )
        )


def _compare_title(issue: Issue, task: Task, findings: list[Finding]) -> None:
    if task.title != issue.title:
        findings.append(
            Finding("Task title does not match the issue title.", field="title", proposed=task.title)
        )


def _compare_assignees(issue: Issue, task: Task, ctx: SyncContext, findings: list[Finding]) -> None:
    status = ctx.status_table.status_of(task.status_code)
    code = task.status_code
    if status.is_terminal:
        findings.append(
            Finding(
                f"Task status code [{code}] is {status.kind.value} but the issue is still open.",
                field="state",
                proposed="closed",
            )
        )
    elif status.kind is StatusKind.TODO:
        if issue.assignees:
            findings.append(
                Finding(
                    f"Task status code [{code}] is unassigned but the issue is assigned to "
                    f"{', '.join(issue.assignees)}.",
                    field="assignees",
                    proposed=[],
                )
            )
    elif status.login is None:
        findings.append(Finding(f"Task status code [{code}] has no login in the status table."))
    elif issue.assignees != [status.login]:
        findings.append(
            Finding(
                f"Task status code [{code}] does not match issue assignee(s) "
                f"{', '.join(issue.assignees) or '(none)'}.",
                field="assignees",
                proposed=[status.login],
            )
        )


def _compare_products(issue: Issue, task: Task, findings: list[Finding]) -> None:
    labels = issue.labels
    product_labels = sorted(names(labels.product))
    if sorted(task.tokens.product) == product_labels:
        return
    keep = names(labels.feature + labels.priority + labels.foreign + labels.other)
    findings.append(
        Finding(
            "Task product tags don't match issue product labels.",
            field="labels",
            proposed=keep + sorted(task.tokens.product),
        )
    )


def _compare(issue: Issue, task: Task, ctx: SyncContext, findings: list[Finding]) -> None:
    _compare_assignees(issue, task, ctx, findings)
    _compare_products(issue, task, findings)


# ---- edits -----------------------------------------------------------------
def _link_issue_id(feature: Feature, task: Task, iid: str, ctx: SyncContext) -> None:
    task.tokens.issue_id.append(iid)
    try:
        ctx.rewrite_task(feature, task)
    except ConcurrentEditError:
        task.tokens.issue_id.remove(iid)
        raise
    ctx.set_ids.add(iid)
    ctx.counts["linked"] += 1
    ctx.log.log_task_edit("link", task.start_line, feature.tag, task.title, issue_id=iid)


def insert_task_for_issue(issue: Issue, feature: Feature, ctx: SyncContext) -> Task:
    """Insert a rendered task for ``issue`` at the end of ``feature``."""
    cls = issue.labels
    words = [feature.tag, *names(cls.product), *names(cls.issue_id), *names(cls.task_id)]
    if cls.priority:
        symbol = priority_symbol_for_label(cls.priority[0].name)
        if symbol:
            words.append(symbol)
    tokens = classify(words, ctx.scope)
    at = feature.end_line
    task = Task(
        start_line=at,
        end_line=at + 1,
        title=issue.title,
        tokens=tokens,
        sort_key=task_sort_key(feature.tag, issue.title, tokens),
        status_code=ctx.status_table.symbol_for_assignees(issue.assignees),
    )
    task.line = render_task(task, ctx.settings, feature.tag)
    ctx.cursor.insert_lines(at, [task.line])
    # the insertion point is the feature's own end, which the cursor leaves alone
    feature.end_line += 1
    feature.tasks.append(task)
    ctx.cursor.track(task)

    ctx.set_ids.update(tokens.issue_id)
    ctx.set_ids.update(tokens.task_id)
    ctx.set_titles.update(title_key(task.title, p) for p in tokens.product)
    ctx.counts["inserted"] += 1
    ctx.log.log_task_edit("insert", at, feature.tag, task.title, issue_number=issue.number)
    return task


# ---- driver ----------------------------------------------------------------
def _visible_feature(
    tree: list[Feature], tag: str, findings: list[Finding]
) -> Feature | None:
    feature = find_feature(tree, tag)
    if feature is None:
        findings.append(Finding(f"Feature {tag} is not present in the document."))
        return None
    if feature.hidden:
        findings.append(Finding(f"Feature {tag} is hidden in the document."))
        return None
    return feature


def _reconcile(issue: Issue, tree: list[Feature], ctx: SyncContext, findings: list[Finding]) -> None:
    cls = issue.labels
    if len(cls.priority) > 1:
        findings.append(Finding("Issue cannot have more than one priority label.", field="labels"))
        return
    if not cls.product:
        findings.append(
            Finding("Issue must have one or more product labels which are managed in this repo.")
        )
    if len(cls.feature) > 1:
        findings.append(Finding("Issue cannot have more than one feature label.", field="labels"))
        return
    if not cls.feature:
        findings.append(Finding("Issue will not be synced to tasks without a feature label."))
        return
    if len(cls.issue_id) != 1:
        findings.append(
            Finding(f"Issue carries conflicting id labels: {', '.join(names(cls.issue_id))}.")
        )
        return

    tag = cls.feature[0].name
    iid = cls.issue_id[0].name
    tid = cls.task_id[0].name if cls.task_id else None

    if iid in ctx.set_ids:
        feature = _visible_feature(tree, tag, findings)
        if feature is None:
            return
        task = _find_task(feature, iid)
        if task is None:
            findings.append(Finding("Task feature does not match issue feature.", field="labels"))
            return
        _compare_backlink(issue, task, findings)
        _compare_title(issue, task, findings)
        _compare(issue, task, ctx, findings)
        return

    if tid is not None and tid in ctx.set_ids:
        feature = _visible_feature(tree, tag, findings)
        if feature is None:
            return
        task = _find_task(feature, tid)
        if task is None:
            findings.append(Finding("Task feature does not match issue feature.", field="labels"))
            return
        if task.issue_ids:
            findings.append(
                Finding(
                    f"Task {tid} is already linked to {' '.join(task.issue_ids)}; "
                    "cannot link automatically."
                )
            )
            return
        if task.title != issue.title:
            findings.append(
                Finding(
                    f"Task {tid} title does not match the issue title; not linked.",
                    field="title",
                    proposed=task.title,
                )
            )
            return
        try:
            _link_issue_id(feature, task, iid, ctx)
        except ConcurrentEditError as exc:
            findings.append(Finding(f"Task {tid} was not linked: {exc}"))
            return
        _compare(issue, task, ctx, findings)
        return

    if any(title_key(issue.title, p.name) in ctx.set_titles for p in cls.product):
        findings.append(
            Finding("A task with the same title and product exists; cannot link automatically.")
        )
        return

    if not cls.product:
        return
    feature = _visible_feature(tree, tag, findings)
    if feature is None:
        return
    insert_task_for_issue(issue, feature, ctx)


def sync_issue(issue: Issue, tree: list[Feature], ctx: SyncContext) -> list[Finding]:
    """Reconcile one issue into the tree; findings are stored on the issue."""
    if issue.is_pull_request:
        return []
    findings: list[Finding] = []
    _reconcile(issue, tree, ctx, findings)
    issue.findings = findings
    if findings:
        ctx.log.log_findings(issue.number, [f.message for f in findings])
    return findings


def sync_issues(issues: list[Issue], tree: list[Feature], ctx: SyncContext) -> int:
    """Reconcile all issues in order; returns the number of issues with findings."""
    flagged = 0
    for issue in issues:
        if sync_issue(issue, tree, ctx):
            flagged += 1
    return flagged


__all__ = ["find_feature", "insert_task_for_issue", "sync_issue", "sync_issues"]
