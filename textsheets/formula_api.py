"""
TextSheets Built-in Formula API - the functions visible inside every formula.

All functions read the current pass's accumulated highlight list and the
document under evaluation; none of them mutate either.
"""

import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .constants import HIGHLIGHTS_IDENTIFIER, MAX_DOCUMENT_LOOKUP_DEPTH, REGEX_FLAGS
from .document import TextDocument
from .errors import CircularLookupError, FormulaRuntimeError, RegexProgressError
from .highlights import do_spans_overlap
from .models import CellError, Highlight, SheetConfig

logger = logging.getLogger(__name__)


def is_truthy(value: Any) -> bool:
    """Truthiness of the formula language: only empty/zero scalars are false"""
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    if isinstance(value, CellError):
        return False
    return True


def curry(fn: Callable, arity: int) -> Callable:
    """
    Allow `fn` to be called with fewer than `arity` arguments, returning a
    function that waits for the rest: HAS_TYPE("word")(highlight).
    """
    def curried(*args):
        if len(args) >= arity:
            return fn(*args[:arity])
        return lambda *more: curried(*(args + more))

    curried.__name__ = getattr(fn, "__name__", "curried")
    return curried


def matches_condition(condition: Any, item: Any) -> bool:
    if callable(condition):
        return is_truthy(condition(item))
    return is_truthy(condition)


class FormulaAPI:
    """
    Built-in functions bound to one (document, sheet) evaluation.

    Args:
        document: The document being evaluated
        sheet_config: The sheet whose formulas are being evaluated
        highlights: Highlights derived from the sheets evaluated so far
        sheet_configs: Every sheet of the document, used to resolve sheet names
        documents: Open-document registry used by DATA_FROM_DOC, optional
        lookup_stack: Documents whose evaluation is in progress, outermost first
    """

    def __init__(
        self,
        document: TextDocument,
        sheet_config: SheetConfig,
        highlights: Sequence[Highlight],
        sheet_configs: Sequence[SheetConfig] = (),
        documents=None,
        lookup_stack: Tuple[TextDocument, ...] = (),
    ):
        self.document = document
        self.sheet_config = sheet_config
        self.highlights = list(highlights)
        self.sheet_configs = list(sheet_configs)
        self.documents = documents
        self.lookup_stack = lookup_stack or (document,)

    def namespace(self) -> Dict[str, Any]:
        """Names visible to formulas, outermost scope layer"""
        return {
            "EACH_LINE": self.EACH_LINE,
            "HIGHLIGHTS_OF_REGEX": self.HIGHLIGHTS_OF_REGEX,
            "HIGHLIGHTS_OF": self.HIGHLIGHTS_OF,
            "VALUES_OF_TYPE": self.VALUES_OF_TYPE,
            "NEXT": curry(self.NEXT, 2),
            "PREV": curry(self.PREV, 2),
            "HAS_TYPE": curry(self.HAS_TYPE, 2),
            "HAS_TEXT_ON_LEFT": curry(self.HAS_TEXT_ON_LEFT, 2),
            "HAS_TEXT_ON_RIGHT": curry(self.HAS_TEXT_ON_RIGHT, 2),
            "IS_ON_SAME_LINE_AS": curry(self.IS_ON_SAME_LINE_AS, 2),
            "FILTER": curry(self.FILTER, 2),
            "FIRST": self.FIRST,
            "SECOND": self.SECOND,
            "DATA_FROM_DOC": self.DATA_FROM_DOC,
            HIGHLIGHTS_IDENTIFIER: list(self.highlights),
        }

    def _make_highlight(self, from_: int, to: int) -> Highlight:
        return Highlight(
            document_id=self.document.id,
            sheet_config_id=self.sheet_config.id,
            span=(from_, to),
            data={},
        )

    def _search_range(self) -> Tuple[int, int]:
        length = self.document.length
        search_range = self.sheet_config.highlight_search_range
        if search_range is None:
            return 0, length
        return min(search_range[0], length), min(search_range[1], length)

    def _find_sheet_config(self, name: str) -> Optional[SheetConfig]:
        for sheet_config in self.sheet_configs:
            if sheet_config.name == name:
                return sheet_config
        return None

    @staticmethod
    def _require_highlight(value: Any, function_name: str) -> Highlight:
        if not isinstance(value, Highlight):
            raise FormulaRuntimeError(
                f"{function_name} expects a highlight, got {type(value).__name__}"
            )
        return value

    # =========================================================================
    # TEXT SEARCH
    # =========================================================================

    def EACH_LINE(self) -> List[Highlight]:
        text = self.document.full_text()
        lines = text.split("\n")
        # A trailing newline ends the last line; it does not start a new one
        if len(lines) > 1 and lines[-1] == "":
            lines.pop()

        search_range = self._search_range()
        limited = self.sheet_config.highlight_search_range is not None

        highlights = []
        index = 0
        for line in lines:
            span = (index, index + len(line))
            if not limited or do_spans_overlap(span, search_range):
                highlights.append(self._make_highlight(*span))
            index += len(line) + 1

        return highlights

    def HIGHLIGHTS_OF_REGEX(self, regex_string: str, flags: Optional[str] = None) -> List[Highlight]:
        """
        One highlight per match of `regex_string` over the document.

        Raises:
            RegexProgressError: If a match is zero-length
        """
        if not isinstance(regex_string, str):
            raise FormulaRuntimeError("HIGHLIGHTS_OF_REGEX expects a string pattern")

        regex = self._compile(regex_string, flags)
        pos, endpos = self._search_range()

        highlights = []
        for match in regex.finditer(self.document.full_text(), pos, endpos):
            from_, to = match.span()
            if from_ == to:
                raise RegexProgressError(regex_string, from_)
            highlights.append(self._make_highlight(from_, to))

        return highlights

    @staticmethod
    def _compile(regex_string: str, flags: Optional[str]):
        re_flags = 0
        for flag in flags or "":
            if flag not in REGEX_FLAGS:
                raise FormulaRuntimeError(f"Invalid regular expression flag '{flag}'")
            if flag == "i":
                re_flags |= re.IGNORECASE
            elif flag == "m":
                re_flags |= re.MULTILINE
            elif flag == "s":
                re_flags |= re.DOTALL
        try:
            return re.compile(regex_string, re_flags)
        except re.error as e:
            raise FormulaRuntimeError(f"Invalid regular expression /{regex_string}/: {e}")

    def HIGHLIGHTS_OF(self, values: Any, case_insensitive: bool = False) -> List[Highlight]:
        if not isinstance(values, list):
            values = [values]

        flags = "i" if is_truthy(case_insensitive) else ""

        highlights = []
        for value in values:
            if isinstance(value, str):
                highlights.extend(self.HIGHLIGHTS_OF_REGEX(re.escape(value), flags))

        return highlights

    # =========================================================================
    # NAVIGATION AND TYPE FILTERS
    # =========================================================================

    def VALUES_OF_TYPE(self, type_name: str) -> List[Highlight]:
        sheet_config = self._find_sheet_config(type_name)
        if sheet_config is None:
            logger.debug("VALUES_OF_TYPE: no sheet named %r", type_name)
            return []

        return [h for h in self.highlights if h.sheet_config_id == sheet_config.id]

    def NEXT(self, highlight: Any, condition: Any) -> Optional[Highlight]:
        highlight = self._require_highlight(highlight, "NEXT")
        for other in self.highlights:
            if other.span[1] <= highlight.span[1]:
                continue
            if matches_condition(condition, other):
                return other
        return None

    def PREV(self, highlight: Any, condition: Any) -> Optional[Highlight]:
        highlight = self._require_highlight(highlight, "PREV")
        for other in reversed(self.highlights):
            if other.span[1] > highlight.span[0]:
                continue
            if matches_condition(condition, other):
                return other
        return None

    def HAS_TYPE(self, type_name: str, highlight: Any) -> bool:
        if not isinstance(highlight, Highlight):
            return False
        sheet_config = self._find_sheet_config(type_name)
        if sheet_config is None:
            return False
        return sheet_config.id == highlight.sheet_config_id

    def HAS_TEXT_ON_LEFT(self, text: str, highlight: Any) -> bool:
        highlight = self._require_highlight(highlight, "HAS_TEXT_ON_LEFT")
        previous_text = self.document.substring(0, highlight.span[0]).strip()
        return previous_text.endswith(text)

    def HAS_TEXT_ON_RIGHT(self, text: str, highlight: Any) -> bool:
        highlight = self._require_highlight(highlight, "HAS_TEXT_ON_RIGHT")
        following_text = self.document.substring(highlight.span[1]).strip()
        return following_text.startswith(text)

    def IS_ON_SAME_LINE_AS(self, a: Any, b: Any) -> bool:
        a = self._require_highlight(a, "IS_ON_SAME_LINE_AS")
        b = self._require_highlight(b, "IS_ON_SAME_LINE_AS")
        line_start_a = self.document.line_at(a.span[0]).number
        line_end_a = self.document.line_at(a.span[1]).number
        line_start_b = self.document.line_at(b.span[0]).number
        line_end_b = self.document.line_at(b.span[1]).number

        return (
            line_start_a == line_end_a
            and line_start_b == line_end_b
            and line_start_a == line_start_b
        )

    # =========================================================================
    # LIST UTILITIES
    # =========================================================================

    def FILTER(self, items: Any, condition: Any) -> List[Any]:
        if not isinstance(items, list):
            raise FormulaRuntimeError("FILTER expects a list")
        return [item for item in items if matches_condition(condition, item)]

    def FIRST(self, items: Any) -> Any:
        return self._nth(items, 0, "FIRST")

    def SECOND(self, items: Any) -> Any:
        return self._nth(items, 1, "SECOND")

    @staticmethod
    def _nth(items, index, function_name):
        if not isinstance(items, (list, str)):
            raise FormulaRuntimeError(f"{function_name} expects a list")
        return items[index] if len(items) > index else None

    # =========================================================================
    # CROSS-DOCUMENT LOOKUP
    # =========================================================================

    def DATA_FROM_DOC(self, doc_name: str, sheet_name: str, column_name: str) -> List[Any]:
        """
        Evaluate another open document and return the text of one column.

        Unknown documents or sheets yield an empty list. Re-entering a
        document whose evaluation is already in progress raises
        CircularLookupError.
        """
        if self.documents is None:
            logger.debug("DATA_FROM_DOC(%r): no document registry", doc_name)
            return []

        document = self.documents.find_document_by_name(doc_name)
        if document is None:
            logger.debug("DATA_FROM_DOC: no document named %r", doc_name)
            return []

        sheet_configs = self.documents.get_sheet_configs(document.id)
        sheet_config = next((sc for sc in sheet_configs if sc.name == sheet_name), None)
        if sheet_config is None:
            logger.debug("DATA_FROM_DOC: document %r has no sheet %r", doc_name, sheet_name)
            return []

        stack = self.lookup_stack + (document,)
        if (
            any(d.id == document.id for d in self.lookup_stack)
            or len(stack) > MAX_DOCUMENT_LOOKUP_DEPTH
        ):
            raise CircularLookupError([d.name for d in stack])

        # Imported here: the pipeline itself builds FormulaAPI instances
        from .sheet_pipeline import evaluate_sheets

        result = evaluate_sheets(
            document, sheet_configs, documents=self.documents, lookup_stack=self.lookup_stack
        )

        values = []
        for row in result.rows_by_sheet_id.get(sheet_config.id, []):
            value = row.get(column_name)
            if isinstance(value, Highlight):
                values.append(document.substring(value.span[0], value.span[1]))
            elif value is not None and not isinstance(value, CellError):
                values.append(value)
        return values
