"""
TextSheets data model: sheet configurations, highlights and cell values.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

Span = Tuple[int, int]


class PropertyVisibility(str, Enum):
    SHOW = "SHOW"
    HIDDEN = "HIDDEN"


class PropertyDefinition(BaseModel):
    """One column of a sheet: a name and the formula computing it."""
    name: str
    formula: str = ""
    visibility: PropertyVisibility = PropertyVisibility.SHOW


class SheetConfig(BaseModel):
    """
    A named table definition.

    Columns are evaluated in the order of `properties`. When
    `highlight_search_range` is set, line and regex searches made by this
    sheet's formulas are limited to that span of the document.
    """
    id: str
    name: str
    properties: List[PropertyDefinition] = Field(default_factory=list)
    highlight_search_range: Optional[Span] = None

    @field_validator("highlight_search_range")
    @classmethod
    def check_search_range(cls, value):
        if value is not None and value[0] > value[1]:
            raise ValueError(f"Invalid search range: {value[0]}-{value[1]}")
        return value


class Highlight(BaseModel):
    """
    A span-anchored value. Regex matches carry an empty `data` mapping;
    highlights derived from sheet rows carry the row as `data`.
    """
    document_id: str
    sheet_config_id: str
    span: Span
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("span")
    @classmethod
    def check_span(cls, value):
        if value[0] > value[1]:
            raise ValueError(f"Invalid span: {value[0]}-{value[1]}")
        return value

    @property
    def start(self) -> int:
        return self.span[0]

    @property
    def end(self) -> int:
        return self.span[1]


class CellError(BaseModel):
    """Error-tagged value stored in a cell whose formula failed."""
    message: str
    error_type: str = "FormulaRuntimeError"

    def __str__(self):
        return f"#Err: {self.message}"
