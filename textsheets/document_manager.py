"""
TextSheets Document Manager - registry of open documents and their sheets.
Handles document lifecycle, sheet configuration lists, and change notifications.
"""

import logging
from typing import Dict, List, Optional

from .document import ChangeSet, TextDocument
from .highlights import remap_highlights
from .models import Highlight, SheetConfig
from .sheet_pipeline import EvaluationResult, evaluate_sheets

logger = logging.getLogger(__name__)


class DocumentManager:
    """
    Manages open documents, their ordered sheet configurations, and the last
    evaluation of each document.

    Evaluation is explicit: the host reports an edit with `document_changed`
    (or `apply_changes` followed by `document_changed`) and gets a fresh
    result back. Nothing is recomputed implicitly.
    """

    def __init__(self):
        self.documents: Dict[str, TextDocument] = {}
        self.sheet_configs: Dict[str, List[SheetConfig]] = {}
        self.results: Dict[str, EvaluationResult] = {}
        self.interim_highlights: Dict[str, List[Highlight]] = {}
        self.next_document_id = 1

    def create_document(self, name: str = None, text: str = "") -> str:
        """
        Open a new document.

        Args:
            name (str): Name of the document, used by DATA_FROM_DOC lookups
            text (str): Initial text

        Returns:
            str: ID of the created document
        """
        document_id = f"doc-{self.next_document_id}"
        self.next_document_id += 1

        if name is None:
            name = f"Document {document_id[4:]}"

        self.documents[document_id] = TextDocument(document_id, text, name=name)
        self.sheet_configs[document_id] = []
        return document_id

    def delete_document(self, document_id: str) -> bool:
        if document_id in self.documents:
            del self.documents[document_id]
            self.sheet_configs.pop(document_id, None)
            self.results.pop(document_id, None)
            self.interim_highlights.pop(document_id, None)
            return True
        return False

    def rename_document(self, document_id: str, new_name: str) -> bool:
        document = self.documents.get(document_id)
        if document is None:
            return False
        self.documents[document_id] = TextDocument(document_id, document.full_text(), name=new_name)
        return True

    def get_document(self, document_id: str) -> Optional[TextDocument]:
        return self.documents.get(document_id)

    def find_document_by_name(self, name: str) -> Optional[TextDocument]:
        """
        Find an open document by exact name.

        Args:
            name (str): Name to search for

        Returns:
            TextDocument: The first document with that name, or None
        """
        for document in self.documents.values():
            if document.name == name:
                return document
        return None

    # =========================================================================
    # SHEET CONFIGURATIONS
    # =========================================================================

    def get_sheet_configs(self, document_id: str) -> List[SheetConfig]:
        """Sheets of a document in evaluation order"""
        return list(self.sheet_configs.get(document_id, []))

    def set_sheet_configs(self, document_id: str, sheet_configs: List[SheetConfig]) -> bool:
        if document_id not in self.documents:
            return False
        self.sheet_configs[document_id] = list(sheet_configs)
        return True

    def add_sheet_config(self, document_id: str, sheet_config: SheetConfig) -> bool:
        """Append a sheet, or replace the sheet with the same id in place"""
        if document_id not in self.documents:
            return False
        configs = self.sheet_configs[document_id]
        for i, existing in enumerate(configs):
            if existing.id == sheet_config.id:
                configs[i] = sheet_config
                return True
        configs.append(sheet_config)
        return True

    def remove_sheet_config(self, document_id: str, sheet_config_id: str) -> bool:
        configs = self.sheet_configs.get(document_id, [])
        remaining = [sc for sc in configs if sc.id != sheet_config_id]
        if len(remaining) == len(configs):
            return False
        self.sheet_configs[document_id] = remaining
        return True

    # =========================================================================
    # EVALUATION AND CHANGE NOTIFICATIONS
    # =========================================================================

    def evaluate(self, document_id: str) -> EvaluationResult:
        """
        Run the sheet pipeline for a document and cache the result.

        Raises:
            KeyError: If the document is not open
        """
        document = self.documents[document_id]
        result = evaluate_sheets(document, self.get_sheet_configs(document_id), documents=self)
        self.results[document_id] = result
        self.interim_highlights.pop(document_id, None)
        logger.debug(
            "Evaluated %r: %d highlights across %d sheets",
            document.name, len(result.highlights), len(result.sheets_scope),
        )
        return result

    def document_changed(self, document_id: str, text: Optional[str] = None) -> EvaluationResult:
        """
        Notify the manager that a document changed and re-evaluate it once.

        Args:
            document_id (str): ID of the changed document
            text (str): The new full text, if the caller has not applied changes already

        Returns:
            EvaluationResult: The fresh result, superseding any previous one
        """
        if text is not None:
            document = self.documents[document_id]
            self.documents[document_id] = TextDocument(document_id, text, name=document.name)
        return self.evaluate(document_id)

    def apply_changes(self, document_id: str, changes: ChangeSet) -> List[Highlight]:
        """
        Apply an edit to a document's text without re-evaluating it.

        The last full result no longer matches the text and is discarded.
        The previous highlights are remapped across the edit and kept apart
        as interim highlights until the next evaluation.

        Returns:
            list: The remapped highlights, empty if the document was never evaluated
        """
        document = self.documents[document_id]
        new_text = changes.apply(document.full_text())
        previous = self.get_highlights(document_id)

        self.documents[document_id] = TextDocument(document_id, new_text, name=document.name)
        self.results.pop(document_id, None)

        remapped = remap_highlights(previous, changes)
        self.interim_highlights[document_id] = remapped
        return remapped

    def get_highlights(self, document_id: str) -> List[Highlight]:
        """Interim highlights after an edit, else those of the last full result"""
        if document_id in self.interim_highlights:
            return list(self.interim_highlights[document_id])
        result = self.results.get(document_id)
        return list(result.highlights) if result is not None else []

    def get_last_result(self, document_id: str) -> Optional[EvaluationResult]:
        """The last full evaluation, or None if the text changed since"""
        return self.results.get(document_id)
