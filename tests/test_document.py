from __future__ import annotations

import pytest

from tasksync.document import ConcurrentEditError, DocumentCursor, TextDocument
from tasksync.models import Feature, Task
from tasksync.tokens import ClassifiedSet


def _task(start: int, end: int) -> Task:
    return Task(start_line=start, end_line=end, title="t", tokens=ClassifiedSet(), sort_key="", status_code=" ")


def test_text_document_round_trip():
    doc = TextDocument.from_text("a\nb\nc\n")
    assert doc.line_count() == 3
    doc.replace_range(1, 2, "x\ny\n")
    assert doc.lines == ["a", "x", "y", "c"]
    assert doc.text() == "a\nx\ny\nc\n"


def test_only_line_feeds_split_lines():
    doc = TextDocument.from_text("a\u2028b\x0c\nc\r\n")
    assert doc.lines == ["a\u2028b\x0c", "c"]
    doc.replace_range(1, 2, "x\u2029y\n")
    assert doc.lines == ["a\u2028b\x0c", "x\u2029y"]
    assert doc.line_count() == 2


def test_text_document_rejects_bad_range():
    doc = TextDocument.from_text("a\n")
    with pytest.raises(IndexError):
        doc.replace_range(0, 5, "")


def test_text_document_save(tmp_path):
    path = tmp_path / "Tasks.md"
    path.write_text("one\n", encoding="utf-8")
    doc = TextDocument.from_path(path)
    doc.replace_range(1, 1, "two\n")
    doc.save()
    assert path.read_text(encoding="utf-8") == "one\ntwo\n"


def test_insert_rebases_only_positions_at_or_after_insertion():
    doc = TextDocument.from_text("\n".join(str(i) for i in range(10)) + "\n")
    first = Feature(start_line=0, end_line=4, tag="#A", tasks=[_task(1, 2), _task(2, 4)])
    second = Feature(start_line=4, end_line=10, tag="#B", tasks=[_task(5, 7), _task(7, 10)])
    cursor = DocumentCursor(doc)
    cursor.track_tree([first, second])

    delta = cursor.insert_lines(4, ["new a", "new b"])

    assert delta == 2
    assert (first.start_line, first.end_line) == (0, 4)
    assert [(t.start_line, t.end_line) for t in first.tasks] == [(1, 2), (2, 4)]
    assert (second.start_line, second.end_line) == (6, 12)
    assert [(t.start_line, t.end_line) for t in second.tasks] == [(7, 9), (9, 12)]
    assert doc.get_line(4) == "new a"
    assert doc.cursor_line == 4


def test_replace_shrinking_range_shifts_later_spans_back():
    doc = TextDocument.from_text("a\nb\nc\nd\ne\n")
    later = _task(4, 5)
    cursor = DocumentCursor(doc)
    cursor.track(later)

    delta = cursor.replace(1, 4, ["bc"])

    assert delta == -2
    assert (later.start_line, later.end_line) == (2, 3)
    assert doc.get_line(later.start_line) == "e"


def test_verified_replace_detects_concurrent_edit():
    doc = TextDocument.from_text("- [ ] #task one\n")
    cursor = DocumentCursor(doc)
    cursor.replace_line_verified(0, "- [ ] #task one", "- [x] #task one")
    assert doc.get_line(0) == "- [x] #task one"

    with pytest.raises(ConcurrentEditError) as excinfo:
        cursor.replace_line_verified(0, "- [ ] #task one", "- [a] #task one")
    assert excinfo.value.actual == "- [x] #task one"
    assert cursor.read_line(3) is None
