"""One synchronization pass.

``SyncEngine.run`` drives the pipeline over an open document buffer::

    parse -> consistency gate -> fetch issues -> (default product labels,
    feature labels) -> issue->task -> compact -> task->issue

The gate runs before anything is written to the document or the tracker;
a failing gate returns an aborted :class:`SyncReport` carrying only the
consistency findings.
"""

from __future__ import annotations

import os
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .checker import ConsistencyReport, check_consistency
from .config import ConfigError, SyncConfig, load_config
from .context import SyncContext
from .document import DocumentBuffer, DocumentCursor, TextDocument
from .errors import classify_error
from .github_rest import GitHubAPIError
from .issue_sync import sync_issues
from .logging import configure_logging
from .models import Feature, Issue
from .parser import parse_document
from .render import compact_tree
from .task_sync import sync_tasks
from .tokens import Label, classify_labels, names
from .tracker import GitHubTracker, MemoryTracker, TrackerClient

MOCK_ENV_VAR = "TASKSYNC_MOCK"


def mock_mode() -> bool:
    return os.environ.get(MOCK_ENV_VAR) == "1"


@dataclass
class SyncReport:
    aborted: bool = False
    dry_run: bool = False
    consistency: list[str] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    alerts: list[str] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    features: int = 0
    tasks: int = 0

    @property
    def issues_with_findings(self) -> list[Issue]:
        return [issue for issue in self.issues if issue.findings]

    @property
    def in_sync(self) -> bool:
        return not (self.aborted or self.alerts or self.issues_with_findings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "features": self.features,
                "tasks": self.tasks,
                "issues": len(self.issues),
                "issues_with_findings": len(self.issues_with_findings),
                "alerts": len(self.alerts),
                **{k: self.counts.get(k, 0) for k in ("inserted", "linked", "closed", "created", "task_ids")},
            },
            "aborted": self.aborted,
            "dry_run": self.dry_run,
            "consistency": list(self.consistency),
            "findings": [
                {
                    "number": issue.number,
                    "title": issue.title,
                    "findings": [
                        {"message": f.message, "field": f.field, "proposed": f.proposed}
                        for f in issue.findings
                    ],
                }
                for issue in self.issues_with_findings
            ],
            "alerts": list(self.alerts),
            "in_sync": self.in_sync,
        }


class SyncEngine:
    def __init__(
        self,
        cfg: SyncConfig,
        tracker: TrackerClient,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.cfg = cfg
        self.tracker = tracker
        self.rng = rng or random.Random()
        self._logger = configure_logging(
            json_logging=cfg.logging_json_enabled, level=cfg.logging_level
        )
        self._status_table = cfg.status_table()
        self._last_error: dict[str, Any] | None = None

    @classmethod
    def from_config_path(
        cls, path: str | Path, *, dry_run: bool = False, repo: str | None = None
    ) -> SyncEngine:
        cfg = load_config(path)
        if repo:
            cfg.github_repo = repo
        return cls(cfg, build_tracker(cfg, dry_run=dry_run))

    # --- stages -------------------------------------------------------------
    def parse(self, buffer: DocumentBuffer) -> list[Feature]:
        tree = parse_document(buffer, self.cfg.document, self.cfg.scope)
        self._logger.log_operation(
            "parse_complete",
            features=len(tree),
            tasks=sum(len(f.tasks) for f in tree),
        )
        return tree

    def check(self, tree: list[Feature]) -> ConsistencyReport:
        report = check_consistency(tree)
        for finding in report.findings:
            self._logger.warning(finding, operation="consistency")
        return report

    def _apply_default_product(self, issues: list[Issue], ctx: SyncContext) -> None:
        products = self.cfg.scope.products
        if len(products) != 1:
            return
        product = products[0]
        for issue in issues:
            cls = issue.labels
            if issue.is_pull_request or cls.product or cls.foreign:
                continue
            updated = [*cls.feature, *cls.priority, *cls.other, Label(name=product)]
            try:
                self.tracker.set_labels(issue.number, names(updated))
            except GitHubAPIError as exc:
                info = classify_error(exc)
                ctx.alert(f"#{issue.number} default product label not set ({info.category}): {info.message}")
                continue
            issue.labels = classify_labels(
                updated,
                self.cfg.scope,
                number=issue.number,
                description=issue.description,
            )
            ctx.counts["default_product"] += 1
            self._logger.log_issue_action("default_product", issue_number=issue.number, label=product)

    def _ensure_feature_labels(self, tree: list[Feature], ctx: SyncContext) -> None:
        try:
            existing = set(names(self.tracker.list_labels()))
        except GitHubAPIError as exc:
            info = classify_error(exc)
            ctx.alert(f"listing labels failed ({info.category}): {info.message}")
            return
        for feature in tree:
            if feature.hidden or not feature.tag or feature.tag in existing:
                continue
            try:
                self.tracker.create_label(feature.tag)
            except GitHubAPIError as exc:
                info = classify_error(exc)
                ctx.alert(f"creating label {feature.tag} failed ({info.category}): {info.message}")
                continue
            existing.add(feature.tag)
            ctx.counts["labels_created"] += 1

    # --- pass ---------------------------------------------------------------
    def run(self, buffer: DocumentBuffer) -> SyncReport:
        report = SyncReport(dry_run=self.tracker.dry_run)
        try:
            with self._logger.timed_operation("sync", dry_run=self.tracker.dry_run) as stats:
                tree = self.parse(buffer)
                report.features = len(tree)
                report.tasks = sum(len(f.tasks) for f in tree)
                gate = self.check(tree)
                if not gate.ok:
                    report.aborted = True
                    report.consistency = gate.findings
                    stats["aborted"] = True
                    self._logger.log_error(
                        "sync aborted by consistency check", findings=len(gate.findings)
                    )
                    return report

                issues = self.tracker.fetch_open_issues(self.cfg.scope)
                report.issues = [i for i in issues if not i.is_pull_request]
                cursor = DocumentCursor(buffer)
                cursor.track_tree(tree)
                ctx = SyncContext(
                    scope=self.cfg.scope,
                    status_table=self._status_table,
                    settings=self.cfg.document,
                    cursor=cursor,
                    set_ids=gate.set_ids,
                    set_titles=gate.set_titles,
                    open_issue_ids={i.id_token for i in issues if not i.is_pull_request},
                    task_id_length=self.cfg.task_id_length,
                    rng=self.rng,
                    log=self._logger,
                )
                if self.cfg.assume_single_product:
                    self._apply_default_product(issues, ctx)
                if self.cfg.ensure_feature_labels:
                    self._ensure_feature_labels(tree, ctx)

                sync_issues(issues, tree, ctx)
                compact_tree(tree, cursor, self.cfg.document)
                sync_tasks(tree, ctx, self.tracker)

                report.alerts = ctx.alerts
                report.counts = dict(ctx.counts)
                report.tasks = sum(len(f.tasks) for f in tree)
                stats.update(
                    issues=len(issues), edits=cursor.edits, alerts=len(ctx.alerts), **report.counts
                )
                return report
        except Exception as exc:  # broad catch to enrich logging then re-raise
            info = classify_error(exc)
            self._logger.log_error(
                "sync_failed",
                category=info.category,
                transient=info.transient,
                original_type=info.original_type,
                error=info.message,
            )
            self._last_error = {
                "category": info.category,
                "transient": info.transient,
                "original_type": info.original_type,
                "message": info.message,
            }
            raise

    def sync_file(self, path: Path | None = None, *, save: bool = True) -> SyncReport:
        """Run one pass over the configured document and write it back."""
        doc = TextDocument.from_path(path or self.cfg.document_file)
        before = doc.text()
        report = self.run(doc)
        if save and not report.aborted and not self.tracker.dry_run and doc.text() != before:
            doc.save()
            self._logger.log_operation("document_saved", path=str(doc.path))
        return report


def build_tracker(cfg: SyncConfig, *, dry_run: bool = False) -> TrackerClient:
    if mock_mode():
        return MemoryTracker(dry_run=dry_run)
    if not cfg.github_repo:
        raise ConfigError("github.repo is not configured (use --repo or the config file)")
    return GitHubTracker.from_env(cfg.github_repo, api_url=cfg.github_api_url, dry_run=dry_run)


__all__ = ["MOCK_ENV_VAR", "SyncEngine", "SyncReport", "build_tracker", "mock_mode"]
