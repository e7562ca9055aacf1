"""Tests for source/sink annotations."""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from catalog.annotations import SourceSinkAnnotation, collect_annotations, parse_annotations
from catalog.exemplars import ALL_EXEMPLARS


class TestSourceSinkAnnotation:
    """Construction-time validation of annotation pairs."""

    def test_valid_pair(self):
        a = SourceSinkAnnotation("x.py", 3, 7)
        assert a.source_line == 3
        assert a.sink_line == 7
        assert a.ordinal is None

    def test_same_line_allowed(self):
        """Source and sink may coincide."""
        a = SourceSinkAnnotation("x.py", 5, 5, ordinal=1)
        assert a.source_line == a.sink_line

    def test_sink_before_source_rejected(self):
        with pytest.raises(ValueError):
            SourceSinkAnnotation("x.py", 10, 4)

    @pytest.mark.parametrize("line", [0, -1])
    def test_non_positive_lines_rejected(self, line):
        with pytest.raises(ValueError):
            SourceSinkAnnotation("x.py", line, 5)

    def test_frozen(self):
        a = SourceSinkAnnotation("x.py", 1, 2)
        with pytest.raises(AttributeError):
            a.source_line = 2

    def test_to_dict(self):
        a = SourceSinkAnnotation("x.py", 1, 2, ordinal=3)
        assert a.to_dict() == {"file": "x.py", "source_line": 1, "sink_line": 2, "ordinal": 3}


class TestParseAnnotations:
    """Marker parsing from module source."""

    def test_single_unnumbered_pair(self):
        content = "a = 1\nb = input()  # [source]\nc = 2\nrun(b)  # [sink]\n"
        (a,) = parse_annotations(content, "m.py")
        assert (a.source_line, a.sink_line, a.ordinal) == (2, 4, None)

    def test_numbered_pairs_ordered(self):
        content = "\n".join([
            "x  # [source 2]",
            "y  # [sink 2]",
            "z  # [source 1]",
            "w  # [sink 1]",
        ])
        pairs = parse_annotations(content, "m.py")
        assert [p.ordinal for p in pairs] == [1, 2]
        assert (pairs[0].source_line, pairs[0].sink_line) == (3, 4)

    def test_both_markers_on_one_line(self):
        (a,) = parse_annotations("f(x)  # [source] [sink]", "m.py")
        assert a.source_line == a.sink_line == 1

    def test_missing_sink(self):
        with pytest.raises(ValueError, match="sink"):
            parse_annotations("x  # [source]\n", "m.py")

    def test_duplicate_marker(self):
        with pytest.raises(ValueError, match="duplicate"):
            parse_annotations("x  # [source]\ny  # [source]\nz  # [sink]\n", "m.py")

    def test_sink_above_source_rejected(self):
        with pytest.raises(ValueError):
            parse_annotations("x  # [sink]\ny  # [source]\n", "m.py")

    def test_markers_outside_comments_ignored(self):
        assert parse_annotations('s = "[source]"\n', "m.py") == ()


class TestExemplarAnnotations:
    """Every exemplar module carries resolvable annotations."""

    @pytest.mark.parametrize("constructor", ALL_EXEMPLARS, ids=lambda c: c.__name__)
    def test_exemplar_has_annotations(self, constructor):
        annotations = constructor().annotations()
        assert len(annotations) >= 1
        for a in annotations:
            assert a.file.startswith("catalog/exemplars/")
            assert a.resolve().is_file()
            lines = a.resolve().read_text().split("\n")
            assert "[source" in lines[a.source_line - 1]
            assert "[sink" in lines[a.sink_line - 1]

    def test_annotations_idempotent(self):
        exemplar = ALL_EXEMPLARS[0]()
        assert exemplar.annotations() == exemplar.annotations()
        assert exemplar.annotations() is exemplar.annotations()

    def test_snippet_marks_lines(self):
        a = ALL_EXEMPLARS[0]().annotations()[0]
        snippet = a.snippet(context=1)
        assert "SRC" in snippet or "S/K" in snippet
        assert f"{a.sink_line:4d} |" in snippet

    def test_collect_annotations_cached(self):
        path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                            "catalog", "exemplars", "overflow.py")
        assert collect_annotations(path) is collect_annotations(path)
        assert [a.ordinal for a in collect_annotations(path)] == [1, 2]
