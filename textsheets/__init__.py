"""
TextSheets - tables computed from free-form text by small formulas.

The two host-facing entry points are `evaluate_sheets` (full pipeline run)
and `remap_highlights` (move highlights across an edit between runs).
"""

from .constants import APP_VERSION as __version__
from .document import ChangeSet, Line, SpanRangeError, TextDocument
from .document_manager import DocumentManager
from .errors import CircularLookupError, FormulaRuntimeError, FormulaSyntaxError, RegexProgressError
from .highlights import do_spans_overlap, get_text_for_highlight, hover_highlights, remap_highlights
from .models import CellError, Highlight, PropertyDefinition, PropertyVisibility, SheetConfig
from .sheet_pipeline import EvaluationResult, evaluate_sheets

__all__ = [
    "CellError",
    "ChangeSet",
    "CircularLookupError",
    "DocumentManager",
    "EvaluationResult",
    "FormulaRuntimeError",
    "FormulaSyntaxError",
    "Highlight",
    "Line",
    "PropertyDefinition",
    "PropertyVisibility",
    "RegexProgressError",
    "SheetConfig",
    "SpanRangeError",
    "TextDocument",
    "do_spans_overlap",
    "evaluate_sheets",
    "get_text_for_highlight",
    "hover_highlights",
    "remap_highlights",
]
