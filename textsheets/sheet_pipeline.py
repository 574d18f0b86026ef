"""
TextSheets Sheet Pipeline - evaluates a document's sheets in declared order
and derives the highlights used to decorate the document.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .document import TextDocument
from .formula_engine import FormulaEngine, Scope
from .highlights import is_degenerate, sort_highlights, span_union
from .models import Highlight, SheetConfig

logger = logging.getLogger(__name__)


@dataclass
class EvaluationResult:
    """Result from evaluate_sheets()."""

    highlights: List[Highlight]
    sheets_scope: Scope  # sheet name -> rows
    rows_by_sheet_id: Dict[str, List[Scope]] = field(default_factory=dict)

    def rows_for(self, sheet_config: SheetConfig) -> List[Scope]:
        return self.rows_by_sheet_id.get(sheet_config.id, [])

    def highlights_for(self, sheet_config: SheetConfig) -> List[Highlight]:
        return [h for h in self.highlights if h.sheet_config_id == sheet_config.id]


def derive_row_highlight(document: TextDocument, sheet_config: SheetConfig, row: Scope) -> Optional[Highlight]:
    """
    Anchor a row to the smallest span covering its span-anchored fields.
    Rows without such a field, or whose union is empty, get no highlight.
    """
    span = span_union(value.span for value in row.values() if isinstance(value, Highlight))
    if span is None or is_degenerate(span):
        return None
    return Highlight(
        document_id=document.id,
        sheet_config_id=sheet_config.id,
        span=span,
        data=dict(row),
    )


def evaluate_sheets(
    document: TextDocument,
    sheet_configs: Sequence[SheetConfig],
    documents=None,
    lookup_stack: Tuple[TextDocument, ...] = (),
) -> EvaluationResult:
    """
    Run the full pipeline for one document.

    Args:
        document: Read-only accessor for the document text
        sheet_configs: The document's sheets in declaration order
        documents: Open-document registry for DATA_FROM_DOC lookups, optional
        lookup_stack: Documents already being evaluated by enclosing lookups

    Returns:
        EvaluationResult: Highlights sorted by span start, and every sheet's rows
    """
    engine = FormulaEngine(
        document,
        sheet_configs,
        documents=documents,
        lookup_stack=lookup_stack + (document,),
    )

    highlights: List[Highlight] = []
    sheets_scope: Scope = {}
    rows_by_sheet_id: Dict[str, List[Scope]] = {}

    for sheet_config in sheet_configs:
        rows = engine.evaluate_columns(sheet_config, sort_highlights(highlights), sheets_scope)

        sheets_scope[sheet_config.name] = rows
        rows_by_sheet_id[sheet_config.id] = rows

        for row in rows:
            highlight = derive_row_highlight(document, sheet_config, row)
            if highlight is not None:
                highlights.append(highlight)

        logger.debug("Sheet %r of %r produced %d rows", sheet_config.name, document.name, len(rows))

    return EvaluationResult(
        highlights=sort_highlights(highlights),
        sheets_scope=sheets_scope,
        rows_by_sheet_id=rows_by_sheet_id,
    )
