"""Task -> issue reconciliation.

Walks the (compacted) tree top to bottom. Tasks that carry a product token
and exactly one issue id are checked against the tracker; a task whose
issue was closed is marked done. Active tasks without an issue id get a
task id (if missing) and a new issue. Every failure becomes an alert on the
context; nothing here raises.
"""

from __future__ import annotations

from .context import SyncContext
from .document import ConcurrentEditError
from .errors import classify_error
from .github_rest import GitHubAPIError
from .models import Feature, Task
from .status import DONE_SYMBOL
from .tokens import PRIORITY_LABELS, priority_from_symbol
from .tracker import TrackerClient


def _label(feature: Feature, task: Task) -> str:
    return f"{feature.tag} '{task.title}'"


def issue_labels(task: Task) -> list[str]:
    """Tracker labels for a new issue: feature, priority label, products."""
    labels = list(task.tokens.feature)
    for symbol in task.tokens.priority:
        prio = priority_from_symbol(symbol)
        if prio is not None:
            labels.append(PRIORITY_LABELS[prio])
    labels.extend(task.tokens.product)
    return labels


def _tracker_alert(ctx: SyncContext, what: str, exc: GitHubAPIError) -> None:
    info = classify_error(exc)
    ctx.alert(f"{what} failed ({info.category}): {info.message}", category=info.category)


def _close_task(feature: Feature, task: Task, ctx: SyncContext) -> None:
    previous = task.status_code
    task.status_code = DONE_SYMBOL
    try:
        ctx.rewrite_task(feature, task)
    except ConcurrentEditError as exc:
        task.status_code = previous
        ctx.alert(f"{_label(feature, task)} was not closed: {exc}")
        return
    ctx.counts["closed"] += 1
    ctx.log.log_task_edit("close", task.start_line, feature.tag, task.title)


def _check_linked(feature: Feature, task: Task, iid: str, ctx: SyncContext, tracker: TrackerClient) -> None:
    if iid in ctx.open_issue_ids:
        return
    if ctx.status_table.status_of(task.status_code).is_terminal:
        return
    label = _label(feature, task)
    try:
        details = tracker.fetch_issue(int(iid[1:]))
    except GitHubAPIError as exc:
        _tracker_alert(ctx, f"{label} fetching issue {iid}", exc)
        return
    if details is None:
        ctx.alert(f"{label} issue {iid} was not found on the tracker")
    elif details.is_closed:
        _close_task(feature, task, ctx)
    else:
        ctx.alert(f"{label} issue {iid} is open but was not among the fetched issues")


def _ensure_task_id(feature: Feature, task: Task, ctx: SyncContext) -> str | None:
    if task.task_ids:
        return task.task_ids[0]
    tid = ctx.new_task_id()
    task.tokens.task_id.append(tid)
    try:
        ctx.rewrite_task(feature, task)
    except ConcurrentEditError as exc:
        task.tokens.task_id.remove(tid)
        ctx.alert(f"{_label(feature, task)} task id not assigned: {exc}")
        return None
    ctx.set_ids.add(tid)
    ctx.counts["task_ids"] += 1
    ctx.log.log_task_edit("task_id", task.start_line, feature.tag, task.title, task_id=tid)
    return tid


def _create_issue(feature: Feature, task: Task, ctx: SyncContext, tracker: TrackerClient) -> None:
    label = _label(feature, task)
    status = ctx.status_table.status_of(task.status_code)
    if status.login is None:
        ctx.alert(f"{label} status code [{task.status_code}] has no login in the status table")
        return
    tid = _ensure_task_id(feature, task, ctx)
    if tid is None:
        return
    try:
        created = tracker.create_issue(
            task.title, f"synced to task {tid}", issue_labels(task), [status.login]
        )
    except GitHubAPIError as exc:
        _tracker_alert(ctx, f"{label} creating issue", exc)
        return
    if created is None:
        if not tracker.dry_run:
            ctx.alert(f"{label} tracker returned no issue")
        return
    iid = f"#{created.number}"
    task.tokens.issue_id.append(iid)
    try:
        ctx.rewrite_task(feature, task)
    except ConcurrentEditError as exc:
        task.tokens.issue_id.remove(iid)
        ctx.alert(f"{label} created issue {iid} but could not link it: {exc}")
        return
    ctx.set_ids.add(iid)
    ctx.open_issue_ids.add(iid)
    ctx.counts["created"] += 1
    ctx.log.log_issue_action("create", issue_number=created.number, feature=feature.tag, title=task.title)


def sync_task(feature: Feature, task: Task, ctx: SyncContext, tracker: TrackerClient) -> None:
    if not task.tokens.product:
        return
    ids = task.issue_ids
    if len(ids) == 1:
        _check_linked(feature, task, ids[0], ctx, tracker)
    elif len(ids) > 1:
        ctx.alert(f"{_label(feature, task)} carries several issue ids: {' '.join(ids)}")
    elif ctx.status_table.status_of(task.status_code).is_active:
        _create_issue(feature, task, ctx, tracker)


def sync_tasks(tree: list[Feature], ctx: SyncContext, tracker: TrackerClient) -> None:
    for feature in tree:
        if feature.hidden:
            continue
        for task in feature.tasks:
            sync_task(feature, task, ctx, tracker)


__all__ = ["issue_labels", "sync_task", "sync_tasks"]
