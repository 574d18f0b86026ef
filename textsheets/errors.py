"""
TextSheets error taxonomy.

Every error raised while evaluating one formula cell derives from
FormulaRuntimeError so the engine can turn it into a CellError value.
"""

from typing import Optional, Sequence


class FormulaRuntimeError(Exception):
    """Raised by the formula language or a built-in function during evaluation"""
    pass


class FormulaSyntaxError(FormulaRuntimeError):
    """Raised when a formula source cannot be tokenized or parsed"""

    def __init__(self, message: str, position: Optional[int] = None):
        self.position = position
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)


class RegexProgressError(FormulaRuntimeError):
    """Raised when a regex match is zero-length and would not advance the search"""

    def __init__(self, pattern: str, position: int):
        self.pattern = pattern
        self.position = position
        super().__init__(
            f"regex /{pattern}/ causes an infinite loop because it matches "
            f"the empty string at position {position}"
        )


class CircularLookupError(FormulaRuntimeError):
    """Raised when DATA_FROM_DOC lookups re-enter a document or nest too deeply"""

    def __init__(self, document_names: Sequence[str]):
        self.document_names = list(document_names)
        super().__init__(
            "Circular or too deeply nested DATA_FROM_DOC lookup: "
            + " -> ".join(self.document_names)
        )
