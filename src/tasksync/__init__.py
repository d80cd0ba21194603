"""tasksync - keep a markdown task list and GitHub issues in sync.

High-level public API:

from tasksync import SyncEngine, TextDocument

engine = SyncEngine.from_config_path('tasksync.config.yaml', dry_run=True)
report = engine.sync_file()
print(report.to_dict()['summary'])

The CLI (``tasksync`` / ``python -m tasksync``) delegates to this library.
"""

from __future__ import annotations

from typing import Any

__version__ = "0.2.0"

_LAZY = {
    "load_config": ("tasksync.config", "load_config"),
    "SyncConfig": ("tasksync.config", "SyncConfig"),
    "SyncEngine": ("tasksync.engine", "SyncEngine"),
    "SyncReport": ("tasksync.engine", "SyncReport"),
    "TextDocument": ("tasksync.document", "TextDocument"),
    "DocumentCursor": ("tasksync.document", "DocumentCursor"),
    "parse_document": ("tasksync.parser", "parse_document"),
    "check_consistency": ("tasksync.checker", "check_consistency"),
    "MemoryTracker": ("tasksync.tracker", "MemoryTracker"),
    "GitHubTracker": ("tasksync.tracker", "GitHubTracker"),
    "apply_findings": ("tasksync.apply", "apply_findings"),
}


def __getattr__(name: str) -> Any:
    """Lazy loading of the public API to keep ``import tasksync`` cheap."""
    target = _LAZY.get(name)
    if target is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    from importlib import import_module  # noqa: PLC0415

    module_name, attr = target
    return getattr(import_module(module_name), attr)


__all__ = [*_LAZY, "__version__"]
