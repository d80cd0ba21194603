from __future__ import annotations

from tasksync.config import DocumentSettings
from tasksync.document import DocumentCursor, TextDocument
from tasksync.parser import parse_document
from tasksync.render import compact_feature, compact_tree, description_lines, render_task

DOC = """### #Core
- [ ] #task Zeta #App
  zeta note

- [ ] #task Alpha #App

### #Docs
- [ ] #task Beta #App
- [ ] #task Aardvark #App
"""


def _load(text: str, scope):
    doc = TextDocument.from_text(text)
    tree = parse_document(doc, DocumentSettings(), scope)
    cursor = DocumentCursor(doc)
    cursor.track_tree(tree)
    return doc, tree, cursor


def test_render_task_orders_tokens(scope, settings):
    doc, tree, _ = _load("### #Core\n- [A] #task Ship #12 #Web #App 📅 2025-01-01 🆔 k3x9zq\n", scope)
    task = tree[0].tasks[0]
    assert render_task(task, settings, "#Core") == (
        "- [A] #task Ship #App #Web #12 🆔 k3x9zq 📅 2025-01-01"
    )
    # without the owning tag the feature token is rendered too
    assert render_task(task, settings).startswith("- [A] #task Ship #Core #App")


def test_description_lines_drops_trailing_blanks():
    assert description_lines("") == []
    assert description_lines("\n") == []
    assert description_lines("  a\n  b\n\n") == ["  a", "  b"]


def test_compact_tree_sorts_and_rebases(scope, settings):
    doc, tree, cursor = _load(DOC, scope)

    delta = compact_tree(tree, cursor, settings)

    assert delta == -1
    assert doc.lines == [
        "### #Core",
        "- [ ] #task Alpha #App",
        "- [ ] #task Zeta #App",
        "  zeta note",
        "",
        "### #Docs",
        "- [ ] #task Aardvark #App",
        "- [ ] #task Beta #App",
    ]
    core, docs = tree
    assert [(t.title, t.start_line, t.end_line) for t in core.tasks] == [
        ("Alpha", 1, 2),
        ("Zeta", 2, 4),
    ]
    assert (core.start_line, core.end_line) == (0, 5)
    assert (docs.start_line, docs.end_line) == (5, 8)
    assert [(t.title, t.start_line) for t in docs.tasks] == [("Aardvark", 6), ("Beta", 7)]


def test_compacted_lines_match_document(scope, settings):
    doc, tree, cursor = _load(DOC, scope)
    compact_tree(tree, cursor, settings)
    for feature in tree:
        for task in feature.tasks:
            assert doc.get_line(task.start_line) == task.line


def test_compaction_is_idempotent(scope, settings):
    doc, tree, cursor = _load(DOC, scope)
    compact_tree(tree, cursor, settings)
    once = doc.text()
    doc2, tree2, cursor2 = _load(once, scope)
    assert compact_tree(tree2, cursor2, settings) == 0
    assert doc2.text() == once


def test_inner_blank_lines_are_trimmed(scope, settings):
    text = "### #Core\n- [ ] #task B #App\n\n\n- [ ] #task A #App\n"
    doc, tree, cursor = _load(text, scope)
    assert compact_feature(tree[0], cursor, settings) == -2
    assert doc.lines == ["### #Core", "- [ ] #task A #App", "- [ ] #task B #App"]


def test_hidden_feature_is_left_alone(scope, settings):
    text = "### #Core #hidden\n- [ ] #task B #App\n- [ ] #task A #App\n"
    doc, tree, cursor = _load(text, scope)
    assert compact_tree(tree, cursor, settings) == 0
    assert doc.text() == text
    assert cursor.edits == 0
