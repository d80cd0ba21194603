"""Pytest configuration for tasksync tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`).
"""

from __future__ import annotations

import logging
import os
import random
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Force mock mode for the entire test session so nothing talks to GitHub
os.environ.setdefault("TASKSYNC_MOCK", "1")

from tasksync.config import DocumentSettings  # noqa: E402
from tasksync.context import SyncContext  # noqa: E402
from tasksync.document import DocumentCursor, TextDocument  # noqa: E402
from tasksync.status import StatusEntry, StatusKind, StatusTable  # noqa: E402
from tasksync.tokens import Scope  # noqa: E402


@pytest.fixture
def scope() -> Scope:
    return Scope(products=["#App", "#Server"], foreign=["#Web"])


@pytest.fixture
def settings() -> DocumentSettings:
    return DocumentSettings()


@pytest.fixture
def status_table() -> StatusTable:
    return StatusTable(
        [
            StatusEntry("a", "alice", StatusKind.ASSIGNED),
            StatusEntry("A", "alice", StatusKind.IN_PROGRESS),
            StatusEntry("b", "bob", StatusKind.ASSIGNED),
            StatusEntry("B", "bob", StatusKind.IN_PROGRESS),
        ]
    )


@pytest.fixture
def make_context(scope, settings, status_table):
    def _make(doc: TextDocument, tree, *, set_ids=(), set_titles=(), open_ids=()) -> SyncContext:
        cursor = DocumentCursor(doc)
        cursor.track_tree(tree)
        return SyncContext(
            scope=scope,
            status_table=status_table,
            settings=settings,
            cursor=cursor,
            set_ids=set(set_ids),
            set_titles=set(set_titles),
            open_issue_ids=set(open_ids),
            rng=random.Random(7),
        )

    return _make


@pytest.fixture(autouse=True)
def _propagate_package_logs():
    # configure_logging() detaches the package logger; caplog listens on root
    logging.getLogger("tasksync").propagate = True
    yield
