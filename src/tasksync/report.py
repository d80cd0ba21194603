"""Human-readable rendering of sync reports.

``format_report`` takes the dictionary produced by
:meth:`tasksync.engine.SyncReport.to_dict` so that the CLI and anything
reading ``--summary-json`` output share one shape::

    {
        "summary": {"features": int, "tasks": int, "issues": int, ...},
        "aborted": bool,
        "consistency": [str],
        "findings": [{"number": int, "title": str, "findings": [...]}],
        "alerts": [str],
        "in_sync": bool
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

_COUNT_LABELS = (
    ("inserted", "tasks inserted"),
    ("linked", "tasks linked"),
    ("closed", "tasks closed"),
    ("task_ids", "task ids assigned"),
    ("created", "issues created"),
)


def format_report(report: dict[str, Any]) -> list[str]:  # return list of human lines
    summary = report.get('summary', {})
    lines: list[str] = []
    if report.get('aborted'):
        consistency = report.get('consistency', [])
        lines.append(f"[sync] Aborted: {len(consistency)} consistency finding(s), nothing written")
        lines.extend(f"  {entry}" for entry in consistency)
        return lines
    prefix = "[sync] (dry-run) " if report.get('dry_run') else "[sync] "
    lines.append(
        f"{prefix}features={summary.get('features', 0)} tasks={summary.get('tasks', 0)} "
        f"issues={summary.get('issues', 0)}"
    )
    changes = [f"{summary.get(key, 0)} {label}" for key, label in _COUNT_LABELS if summary.get(key)]
    if changes:
        lines.append("  " + ", ".join(changes))
    for entry in report.get('findings', []):
        lines.append(f"  #{entry.get('number')} {entry.get('title')}")
        for finding in entry.get('findings', []):
            line = f"    - {finding.get('message')}"
            if finding.get('proposed') is not None:
                line += f" (proposed {finding.get('field')}: {finding.get('proposed')!r})"
            lines.append(line)
    for alert in report.get('alerts', []):
        lines.append(f"  ! {alert}")
    if report.get('in_sync'):
        lines.append("[sync] Document and tracker are in sync")
    return lines


def write_summary(path: str | Path, report: dict[str, Any]) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(report, indent=2, ensure_ascii=False) + "\n", encoding='utf-8')
    return target


__all__ = ['format_report', 'write_summary']
