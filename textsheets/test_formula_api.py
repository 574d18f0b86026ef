"""
Tests for the built-in formula functions.
"""

import math

import pytest

from textsheets.document import TextDocument
from textsheets.errors import FormulaRuntimeError, RegexProgressError
from textsheets.formula_api import FormulaAPI, curry, is_truthy
from textsheets.models import CellError, Highlight, SheetConfig

RECIPE = "2 cups flour\n1 tsp salt\n"

WORD = SheetConfig(id="w", name="word")
NUMBER = SheetConfig(id="n", name="number")


def word(span):
    return Highlight(document_id="recipe", sheet_config_id="w", span=span)


CUPS, FLOUR, TSP, SALT = word((2, 6)), word((7, 12)), word((15, 18)), word((19, 23))


@pytest.fixture
def document():
    return TextDocument("recipe", RECIPE)


@pytest.fixture
def api(document):
    """API as seen by a sheet evaluated after the word sheet"""
    sheet = SheetConfig(id="i", name="ingredient")
    return FormulaAPI(document, sheet, [CUPS, FLOUR, TSP, SALT], sheet_configs=[WORD, NUMBER, sheet])


def spans(highlights):
    return [h.span for h in highlights]


def test_truthiness():
    """Empty lists are truthy; empty scalars and errors are not"""
    assert is_truthy([])
    assert is_truthy({})
    assert is_truthy("0")
    assert not is_truthy("")
    assert not is_truthy(0)
    assert not is_truthy(math.nan)
    assert not is_truthy(None)
    assert not is_truthy(CellError(message="boom"))


def test_curry():
    add = curry(lambda a, b: a + b, 2)
    assert add(1, 2) == 3
    assert add(1)(2) == 3
    assert add(1, 2, 99) == 3


def test_each_line(document):
    api = FormulaAPI(document, WORD, [])
    lines = api.EACH_LINE()

    assert spans(lines) == [(0, 12), (13, 23)]
    assert all(h.sheet_config_id == "w" and h.data == {} for h in lines)


def test_each_line_empty_document():
    api = FormulaAPI(TextDocument("empty", ""), WORD, [])
    assert spans(api.EACH_LINE()) == [(0, 0)]


def test_each_line_search_range(document):
    sheet = SheetConfig(id="w", name="word", highlight_search_range=(13, 23))
    api = FormulaAPI(document, sheet, [])
    assert spans(api.EACH_LINE()) == [(13, 23)]


def test_highlights_of_regex(document):
    api = FormulaAPI(document, WORD, [])

    assert spans(api.HIGHLIGHTS_OF_REGEX("[a-z]+")) == [(2, 6), (7, 12), (15, 18), (19, 23)]
    assert spans(api.HIGHLIGHTS_OF_REGEX(r"\d")) == [(0, 1), (13, 14)]
    assert spans(api.HIGHLIGHTS_OF_REGEX("CUPS", "i")) == [(2, 6)]
    assert spans(api.HIGHLIGHTS_OF_REGEX("^\\w", "m")) == [(0, 1), (13, 14)]


def test_highlights_of_regex_search_range(document):
    sheet = SheetConfig(id="w", name="word", highlight_search_range=(13, 24))
    api = FormulaAPI(document, sheet, [])
    assert spans(api.HIGHLIGHTS_OF_REGEX("[a-z]+")) == [(15, 18), (19, 23)]


def test_highlights_of_regex_zero_length_match(document):
    api = FormulaAPI(document, WORD, [])
    with pytest.raises(RegexProgressError):
        api.HIGHLIGHTS_OF_REGEX("x*")


def test_highlights_of_regex_invalid(document):
    api = FormulaAPI(document, WORD, [])
    with pytest.raises(FormulaRuntimeError):
        api.HIGHLIGHTS_OF_REGEX("(")
    with pytest.raises(FormulaRuntimeError):
        api.HIGHLIGHTS_OF_REGEX("a", "z")
    with pytest.raises(FormulaRuntimeError):
        api.HIGHLIGHTS_OF_REGEX(5)


def test_highlights_of(document):
    api = FormulaAPI(document, WORD, [])

    assert spans(api.HIGHLIGHTS_OF(["CUPS", "salt"], True)) == [(2, 6), (19, 23)]
    assert spans(api.HIGHLIGHTS_OF(["CUPS", "salt"])) == [(19, 23)]
    assert spans(api.HIGHLIGHTS_OF("tsp")) == [(15, 18)]
    # Literal text, not a pattern
    assert api.HIGHLIGHTS_OF(["c.ps"]) == []
    assert api.HIGHLIGHTS_OF([None, 3]) == []


def test_values_of_type(api):
    assert api.VALUES_OF_TYPE("word") == [CUPS, FLOUR, TSP, SALT]
    assert api.VALUES_OF_TYPE("number") == []
    assert api.VALUES_OF_TYPE("nothing") == []


def test_next(api):
    assert api.NEXT(CUPS, True) == FLOUR
    assert api.NEXT(SALT, True) is None
    assert api.NEXT(CUPS, lambda h: h.span[0] > 10) == TSP
    assert api.namespace()["NEXT"](CUPS)(True) == FLOUR


def test_prev(api):
    assert api.PREV(TSP, True) == FLOUR
    assert api.PREV(CUPS, True) is None
    with pytest.raises(FormulaRuntimeError):
        api.PREV("cups", True)


def test_has_type(api):
    has_type = api.namespace()["HAS_TYPE"]

    assert has_type("word", CUPS)
    assert not has_type("number", CUPS)
    assert not has_type("nothing", CUPS)
    assert not has_type("word", "cups")
    assert has_type("word")(FLOUR)


def test_has_text_on_left_and_right(api):
    assert api.HAS_TEXT_ON_LEFT("cups", FLOUR)
    assert not api.HAS_TEXT_ON_LEFT("tsp", FLOUR)
    assert api.HAS_TEXT_ON_RIGHT("flour", CUPS)
    assert not api.HAS_TEXT_ON_RIGHT("salt", CUPS)


def test_is_on_same_line_as(api):
    assert api.IS_ON_SAME_LINE_AS(CUPS, FLOUR)
    assert not api.IS_ON_SAME_LINE_AS(CUPS, TSP)
    # A span crossing a newline is on no single line
    assert not api.IS_ON_SAME_LINE_AS(word((7, 18)), TSP)


def test_filter(api):
    namespace = api.namespace()
    after_one = namespace["FILTER"](namespace["HIGHLIGHTS"], namespace["HAS_TEXT_ON_LEFT"]("1"))
    assert after_one == [TSP]

    with pytest.raises(FormulaRuntimeError):
        api.FILTER("cups", True)


def test_first_and_second(api):
    assert api.FIRST([CUPS, FLOUR]) == CUPS
    assert api.SECOND([CUPS, FLOUR]) == FLOUR
    assert api.FIRST([]) is None
    assert api.SECOND([CUPS]) is None
    with pytest.raises(FormulaRuntimeError):
        api.FIRST(5)


def test_data_from_doc_without_registry(api):
    assert api.DATA_FROM_DOC("pantry", "item", "name") == []


def test_namespace_exposes_highlights(api):
    namespace = api.namespace()
    assert namespace["HIGHLIGHTS"] == [CUPS, FLOUR, TSP, SALT]
    assert callable(namespace["EACH_LINE"])
