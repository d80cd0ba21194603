from __future__ import annotations

import json

import pytest

from tasksync.status import (
    EXTERNAL_SYMBOL,
    UNASSIGNED_SYMBOL,
    StatusEntry,
    StatusKind,
    StatusTable,
    entries_from_config,
    entries_from_tasks_plugin,
)


def test_builtin_codes(status_table):
    assert status_table.status_of(" ").kind is StatusKind.TODO
    assert status_table.status_of("x").is_terminal
    assert status_table.status_of("X").kind is StatusKind.DONE
    assert status_table.status_of("-").kind is StatusKind.CANCELLED
    assert status_table.status_of(">").kind is StatusKind.EXTERNAL


def test_configured_logins(status_table):
    assigned = status_table.status_of("a")
    assert assigned.kind is StatusKind.ASSIGNED
    assert assigned.login == "alice"
    assert status_table.status_of("B").kind is StatusKind.IN_PROGRESS
    assert status_table.login_for("B") == "bob"
    assert status_table.login_for("x") is None


def test_unknown_letters_have_no_login(status_table):
    assert status_table.status_of("z").kind is StatusKind.ASSIGNED
    assert status_table.status_of("Z").kind is StatusKind.IN_PROGRESS
    assert status_table.login_for("z") is None


def test_upper_case_code_falls_back_to_lower_case_login():
    table = StatusTable([StatusEntry("a", "alice", StatusKind.ASSIGNED)])
    status = table.status_of("A")
    assert status.kind is StatusKind.IN_PROGRESS
    assert status.login == "alice"
    assert table.login_for("A") == "alice"


def test_symbol_for_assignees(status_table):
    assert status_table.symbol_for_assignees([]) == UNASSIGNED_SYMBOL
    assert status_table.symbol_for_assignees(["alice"]) == "a"
    assert status_table.symbol_for_assignees(["carol"]) == EXTERNAL_SYMBOL
    assert status_table.symbol_for_assignees(["alice", "bob"]) == EXTERNAL_SYMBOL


def test_symbol_for_assignees_ambiguous_entries():
    table = StatusTable(
        [
            StatusEntry("a", "alice", StatusKind.ASSIGNED),
            StatusEntry("l", "alice", StatusKind.ASSIGNED),
        ]
    )
    assert table.symbol_for_assignees(["alice"]) == EXTERNAL_SYMBOL


def test_builtin_symbols_cannot_be_overridden():
    table = StatusTable([StatusEntry("x", "mallory", StatusKind.ASSIGNED)])
    assert table.status_of("x").kind is StatusKind.DONE


def test_entries_from_config():
    entries = entries_from_config(
        [
            {"symbol": "c", "login": "carol", "kind": "assigned"},
            {"symbol": "C", "login": "carol", "kind": "in-progress"},
        ]
    )
    assert entries[1] == StatusEntry("C", "carol", StatusKind.IN_PROGRESS)
    with pytest.raises(ValueError):
        entries_from_config([{"symbol": "cc", "kind": "assigned"}])
    with pytest.raises(ValueError):
        entries_from_config([{"symbol": "c", "kind": "sleeping"}])


def test_entries_from_tasks_plugin(tmp_path):
    data = {
        "statusSettings": {
            "customStatuses": [
                {"symbol": "a", "name": "alice", "type": "TODO"},
                {"symbol": "A", "name": "alice", "type": "IN_PROGRESS"},
                {"symbol": "d", "name": "Done later", "type": "DONE"},
                {"symbol": "?", "name": "Question", "type": "SOMETHING"},
            ]
        }
    }
    path = tmp_path / "data.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    entries = entries_from_tasks_plugin(path)
    assert entries == [
        StatusEntry("a", "alice", StatusKind.ASSIGNED),
        StatusEntry("A", "alice", StatusKind.IN_PROGRESS),
        StatusEntry("d", None, StatusKind.DONE),
    ]


def test_entries_from_missing_plugin_file(tmp_path):
    assert entries_from_tasks_plugin(tmp_path / "missing.json") == []
