"""
Tests for member projection over rows, highlights and lists.
"""

from textsheets.models import Highlight
from textsheets.projection import get_field, has_field, project


def make_highlight(span, data=None):
    return Highlight(document_id="doc", sheet_config_id="s", span=span, data=data or {})


def test_project_single_row():
    assert project({"qty": 2, "unit": "cups"}, "unit") == "cups"
    assert project({"qty": 2}, "missing") is None


def test_project_distributes_over_rows():
    """Field access on a list of rows reads the field from every row"""
    rows = [{"qty": 2}, {"qty": None}, {"qty": 1}]
    assert project(rows, "qty") == [2, 1]


def test_project_list_length():
    assert project([{"qty": 2}, {"qty": 1}], "length") == 2
    assert project([], "length") == 0
    assert project([], "qty") is None


def test_project_rows_with_length_field():
    rows = [{"length": 5}, {"length": 7}]
    assert project(rows, "length") == [5, 7]


def test_project_highlight_attributes():
    highlight = make_highlight((2, 6), {"unit": "cups"})

    assert project(highlight, "start") == 2
    assert project(highlight, "end") == 6
    assert project(highlight, "span") == [2, 6]
    assert project(highlight, "unit") == "cups"
    assert project(highlight, "other") is None
    assert project(highlight, "data") == {"unit": "cups"}


def test_project_list_of_highlights():
    highlights = [make_highlight((0, 1)), make_highlight((13, 14))]
    assert project(highlights, "start") == [0, 13]
    assert project(highlights, "span") == [[0, 1], [13, 14]]


def test_project_scalars():
    assert project("salt", "length") == 4
    assert project("salt", "upper") is None
    assert project(5, "anything") is None


def test_has_field_and_get_field():
    highlight = make_highlight((0, 1), {"qty": 2})

    assert has_field(highlight, "qty")
    assert has_field(highlight, "span")
    assert not has_field(highlight, "unit")
    assert has_field({"a": None}, "a")
    assert not has_field("text", "length")

    assert get_field({"a": 1}, "a") == 1
    assert get_field(3, "a") is None
