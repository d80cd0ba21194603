"""tasksync CLI.

Subcommands:
  sync    -> run one sync pass between the task document and GitHub issues
  check   -> parse the document and run the consistency checks only
  tree    -> export the parsed feature/task tree as JSON
  issues  -> list open issues in a chosen sort order
  apply   -> re-run a pass and write (or comment) the proposals for one issue
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from tasksync.apply import apply_findings, comment_findings
from tasksync.checker import check_consistency
from tasksync.config import ConfigError, SyncConfig, load_config
from tasksync.document import TextDocument
from tasksync.engine import SyncEngine, build_tracker
from tasksync.errors import classify_error
from tasksync.github_rest import GitHubAPIError
from tasksync.logging import configure_logging
from tasksync.models import Feature, IssueSortOrder, sort_issues
from tasksync.parser import parse_document
from tasksync.report import format_report, write_summary
from tasksync.tokens import names

CONFIG_DEFAULT = "tasksync.config.yaml"
REPO_HELP = "Override target repository (owner/repo)"
QUIET_ENV_VAR = "TASKSYNC_QUIET"

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="tasksync", description="Keep a markdown task list and GitHub issues in sync"
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help=f"Only log warnings and errors (env: {QUIET_ENV_VAR}=1)",
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    ps = sub.add_parser("sync", help="Run one sync pass (document <-> issues)")
    ps.add_argument("--config", default=CONFIG_DEFAULT)
    ps.add_argument("--repo", help=REPO_HELP)
    ps.add_argument(
        "--dry-run",
        action="store_true",
        help="Read from GitHub but write neither issues nor the document",
    )
    ps.add_argument("--summary-json", help="Write the sync report as JSON to this path")

    pc = sub.add_parser("check", help="Run the consistency checks on the document")
    pc.add_argument("--config", default=CONFIG_DEFAULT)

    pt = sub.add_parser("tree", help="Export the parsed feature/task tree as JSON")
    pt.add_argument("--config", default=CONFIG_DEFAULT)
    pt.add_argument("--output", help="Write to this file instead of stdout")

    pi = sub.add_parser("issues", help="List open issues")
    pi.add_argument("--config", default=CONFIG_DEFAULT)
    pi.add_argument("--repo", help=REPO_HELP)
    pi.add_argument(
        "--sort",
        choices=[order.value for order in IssueSortOrder],
        default=IssueSortOrder.FEATURE.value,
    )

    pa = sub.add_parser("apply", help="Re-run a pass and apply the proposals for one issue")
    pa.add_argument("--config", default=CONFIG_DEFAULT)
    pa.add_argument("--repo", help=REPO_HELP)
    pa.add_argument("--issue", type=int, required=True, help="Issue number")
    pa.add_argument(
        "--comment",
        action="store_true",
        help="Post the findings as an issue comment instead of applying them",
    )
    pa.add_argument("--dry-run", action="store_true", help="Log the writes without making them")
    return p


def prepare_config(args: argparse.Namespace) -> SyncConfig:
    cfg = load_config(args.config)
    repo_override = getattr(args, "repo", None)
    if repo_override:
        cfg.github_repo = repo_override
    if args.quiet:
        cfg.logging_level = "WARNING"
    return cfg


def _print_lines(lines: Iterable[str]) -> None:
    for line in lines:
        print(line)


def _load_tree(cfg: SyncConfig) -> list[Feature]:
    doc = TextDocument.from_path(cfg.document_file)
    return parse_document(doc, cfg.document, cfg.scope)


def _cmd_sync(cfg: SyncConfig, args: argparse.Namespace) -> int:
    engine = SyncEngine(cfg, build_tracker(cfg, dry_run=args.dry_run))
    report = engine.sync_file().to_dict()
    summary_path = args.summary_json or cfg.summary_json
    if summary_path:
        written = write_summary(summary_path, report)
        print(f"[sync] summary -> {written}")
    _print_lines(format_report(report))
    return 1 if report["aborted"] else 0


def _cmd_check(cfg: SyncConfig, args: argparse.Namespace) -> int:
    configure_logging(json_logging=cfg.logging_json_enabled, level=cfg.logging_level)
    tree = _load_tree(cfg)
    report = check_consistency(tree)
    if report.ok:
        tasks = sum(len(f.tasks) for f in tree if not f.hidden)
        print(f"[check] OK ({len(tree)} features, {tasks} visible tasks)")
        return 0
    print(f"[check] {len(report.findings)} finding(s)")
    _print_lines(f"  {finding}" for finding in report.findings)
    return 1


def _tree_to_json(tree: list[Feature]) -> list[dict[str, Any]]:
    return [
        {
            "tag": feature.tag,
            "hidden": feature.hidden,
            "start_line": feature.start_line,
            "end_line": feature.end_line,
            "tasks": [
                {
                    "title": task.title,
                    "status": task.status_code,
                    "indent": task.indent,
                    "start_line": task.start_line,
                    "end_line": task.end_line,
                    "sort_key": task.sort_key,
                    "tokens": {
                        "feature": task.tokens.feature,
                        "product": task.tokens.product,
                        "foreign": task.tokens.foreign,
                        "priority": task.tokens.priority,
                        "other": task.tokens.other,
                        "issue_id": task.tokens.issue_id,
                        "task_id": task.tokens.task_id,
                    },
                    "description": task.description,
                }
                for task in feature.tasks
            ],
        }
        for feature in tree
    ]


def _cmd_tree(cfg: SyncConfig, args: argparse.Namespace) -> int:
    configure_logging(json_logging=cfg.logging_json_enabled, level=cfg.logging_level)
    data = _tree_to_json(_load_tree(cfg))
    text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"[tree] {len(data)} features -> {args.output}")
    else:
        sys.stdout.write(text)
    return 0


def _cmd_issues(cfg: SyncConfig, args: argparse.Namespace) -> int:
    configure_logging(json_logging=cfg.logging_json_enabled, level=cfg.logging_level)
    tracker = build_tracker(cfg)
    issues = [i for i in tracker.fetch_open_issues(cfg.scope) if not i.is_pull_request]
    ordered = sort_issues(issues, IssueSortOrder(args.sort))
    print(f"Total: {len(ordered)}")
    for issue in ordered:
        cls = issue.labels
        tags = " ".join(names(cls.feature + cls.product + cls.foreign + cls.priority))
        assignees = ",".join(issue.assignees) or "-"
        print(f"  #{issue.number} {issue.title[:70]} [{tags}] ({assignees})")
    return 0


def _cmd_apply(cfg: SyncConfig, args: argparse.Namespace) -> int:
    tracker = build_tracker(cfg, dry_run=args.dry_run)
    report = SyncEngine(cfg, tracker).sync_file()
    if report.aborted:
        _print_lines(format_report(report.to_dict()))
        return 1
    issue = next((i for i in report.issues_with_findings if i.number == args.issue), None)
    if issue is None:
        print(f"[apply] #{args.issue} has no findings")
        return 0
    prefix = "[apply] [DRY] " if tracker.dry_run else "[apply] "
    if args.comment:
        comment_findings(tracker, issue)
        print(f"{prefix}#{issue.number} commented {len(issue.findings)} finding(s)")
        return 0
    applied, skipped = apply_findings(tracker, issue)
    _print_lines(f"{prefix}#{issue.number} {action}" for action in applied)
    _print_lines(f"[apply] #{issue.number} needs a manual fix: {f}" for f in skipped)
    return 0


def _build_handlers(args: argparse.Namespace, cfg: SyncConfig) -> dict[str, Callable[[], int]]:
    return {
        "sync": lambda: _cmd_sync(cfg, args),
        "check": lambda: _cmd_check(cfg, args),
        "tree": lambda: _cmd_tree(cfg, args),
        "issues": lambda: _cmd_issues(cfg, args),
        "apply": lambda: _cmd_apply(cfg, args),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.quiet and os.environ.get(QUIET_ENV_VAR) == "1":
        args.quiet = True
    try:
        cfg = prepare_config(args)
        handler = _build_handlers(args, cfg).get(args.cmd)
        if handler is None:  # pragma: no cover - argparse enforces valid choices
            parser.print_help()
            return 1
        return handler()
    except (ConfigError, FileNotFoundError) as exc:
        print(f"[{args.cmd}] {exc}", file=sys.stderr)
        return 2
    except GitHubAPIError as exc:
        info = classify_error(exc)
        print(f"[{args.cmd}] GitHub error ({info.category}): {info.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
