from __future__ import annotations

import logging

from tasksync.config import DocumentSettings
from tasksync.document import TextDocument
from tasksync.parser import parse_document, parse_task_line, split_task_words
from tasksync.render import render_task

DOC = """# Release notes

Intro text is ignored.

### #Core

Feature prose is not part of any task.

- [ ] #task Add login #App 🆔 abc123 ⏫
- [a] #task Fix crash #App #12
  details on the crash
  #### Repro
  more details

### #Docs #hidden
- [ ] #task Internal note #App

## Appendix
- [ ] #task Not in a feature #App
"""


def _parse(text: str, scope, settings=None):
    return parse_document(TextDocument.from_text(text), settings or DocumentSettings(), scope)


def test_split_task_words_groups_reserved_symbols():
    title, tokens = split_task_words("Ship it #App 📅 2025-02-07 ⏫ 🆔 k3x9zq")
    assert title == "Ship it"
    assert tokens == ["#App", "📅 2025-02-07", "⏫", "🆔 k3x9zq"]


def test_parse_task_line_injects_feature_and_sort_key(scope, settings):
    task = parse_task_line("- [A] #task Fix crash #App #12 🆔 zz9", 3, "#Core", settings, scope)
    assert task is not None
    assert task.status_code == "A"
    assert task.title == "Fix crash"
    assert task.tokens.feature == ["#Core"]
    assert task.tokens.issue_id == ["#12"]
    assert task.tokens.task_id == ["🆔 zz9"]
    assert task.sort_key == "#Core,Fix crash,#App,🆔 zz9"
    assert (task.start_line, task.end_line) == (3, 4)


def test_parse_task_line_requires_task_token(scope, settings):
    assert parse_task_line("- [ ] plain checkbox", 0, "#Core", settings, scope) is None


def test_parse_document_tree(scope):
    tree = _parse(DOC, scope)
    assert [f.tag for f in tree] == ["#Core", "#Docs"]
    core, docs = tree
    assert (core.start_line, core.end_line) == (4, 14)
    assert [t.title for t in core.tasks] == ["Add login", "Fix crash"]
    first, second = core.tasks
    assert (first.start_line, first.end_line) == (8, 9)
    assert (second.start_line, second.end_line) == (9, 14)
    assert second.description == "  details on the crash\n  #### Repro\n  more details\n"
    assert docs.hidden is True
    assert (docs.start_line, docs.end_line) == (14, 17)


def test_parse_ignores_task_outside_feature(scope, caplog):
    with caplog.at_level(logging.DEBUG, logger="tasksync.parser"):
        tree = _parse(DOC, scope)
    assert all("Not in a feature" not in t.title for f in tree for t in f.tasks)
    assert "outside any feature" in caplog.text


def test_duplicate_feature_tag_is_logged(scope, caplog):
    text = "### #Core\n- [ ] #task One #App\n### #Core\n- [ ] #task Two #App\n"
    with caplog.at_level(logging.WARNING, logger="tasksync.parser"):
        tree = _parse(text, scope)
    assert len(tree) == 2
    assert "appears more than once" in caplog.text


def test_custom_feature_level_and_task_token(scope):
    settings = DocumentSettings(task_token="#todo", feature_level=2)
    text = "## #Core\n- [ ] #todo One #App\n### Sub heading\n- [ ] #todo Two #App\n# Top\n"
    tree = _parse(text, scope, settings)
    assert [t.title for t in tree[0].tasks] == ["One", "Two"]
    assert tree[0].tasks[0].description == "### Sub heading"
    assert tree[0].end_line == 4


def test_parse_render_round_trip(scope, settings):
    lines = [
        "### #Core",
        "- [ ] #task Add login #Extra #App #Web #12 🆔 abc123 ⏫ 📅 2025-02-07",
        "- [x] #task Write docs #Server",
        "- [b] #task Polish UI #App 🔽",
    ]
    tree = _parse("\n".join(lines) + "\n", scope)
    rendered = [render_task(t, settings, "#Core") for t in tree[0].tasks]
    assert rendered == lines[1:]


def test_indented_task_lines_keep_their_indent(scope, settings):
    text = "### #Core\n- [ ] #task Parent #App\n  - [a] #task Child #App #7\n"
    tree = _parse(text, scope)
    parent, child = tree[0].tasks
    assert parent.description == ""
    assert (child.start_line, child.indent, child.title) == (2, "  ", "Child")
    assert child.tokens.issue_id == ["#7"]
    assert render_task(child, settings, "#Core") == "  - [a] #task Child #App #7"
