"""Consistency checks run before any document or tracker mutation.

The checker also builds the two registries the reconcilers rely on:
``set_ids`` (issue and task id tokens already used in the document) and
``set_titles`` (``title + product`` keys).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .models import Feature, Task
from .tokens import RESERVED_SPLIT_RE


def title_key(title: str, product: str) -> str:
    return f"{title}{product}"


@dataclass
class ConsistencyReport:
    findings: list[str] = field(default_factory=list)
    set_ids: set[str] = field(default_factory=set)
    set_titles: set[str] = field(default_factory=set)

    @property
    def ok(self) -> bool:
        return not self.findings


def _check_task(feature: Feature, task: Task, report: ConsistencyReport) -> None:
    label = f"{feature.tag} '{task.title}'"
    tokens = task.tokens
    if len(RESERVED_SPLIT_RE.split(task.title)) > 1:
        report.findings.append(f"{label} contains task token(s), add spacing")
    if tokens.product and tokens.foreign:
        report.findings.append(f"{label} spans multiple repos")
    for product in tokens.product:
        key = title_key(task.title, product)
        if key in report.set_titles:
            report.findings.append(f"{label} duplicates a task title above")
        else:
            report.set_titles.add(key)
    # issue ids are only meaningful for tasks owned by this repository
    ids = list(tokens.task_id)
    if tokens.product:
        ids = list(tokens.issue_id) + ids
    for token in ids:
        if token in report.set_ids:
            report.findings.append(f"{label} conflicts with same id above")
        else:
            report.set_ids.add(token)


def check_consistency(tree: list[Feature]) -> ConsistencyReport:
    """Single pass over visible features; hidden features are skipped."""
    report = ConsistencyReport()
    for feature in tree:
        if feature.hidden:
            continue
        for task in feature.tasks:
            _check_task(feature, task, report)
    return report


__all__ = ["ConsistencyReport", "check_consistency", "title_key"]
