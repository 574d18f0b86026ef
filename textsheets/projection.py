"""
Scope projection: field access that distributes over collections of rows.

A formula written against one row (`order.total`) keeps working when the
left-hand side is every row of a sheet, because member access on a list of
rows projects the field from each row. Nothing is stored; projection happens
at read time for every member-access node the evaluator visits.
"""

from typing import Any

from .models import Highlight

# Highlight attributes reachable from formulas; any other field is read from `data`
HIGHLIGHT_ATTRIBUTES = {
    "span": lambda h: list(h.span),
    "data": lambda h: h.data,
    "document_id": lambda h: h.document_id,
    "sheet_config_id": lambda h: h.sheet_config_id,
    "start": lambda h: h.span[0],
    "end": lambda h: h.span[1],
}


def is_row_like(value: Any) -> bool:
    return isinstance(value, (dict, Highlight))


def has_field(value: Any, field: str) -> bool:
    if isinstance(value, dict):
        return field in value
    if isinstance(value, Highlight):
        return field in HIGHLIGHT_ATTRIBUTES or field in value.data
    return False


def get_field(value: Any, field: str) -> Any:
    if isinstance(value, dict):
        return value.get(field)
    if isinstance(value, Highlight):
        if field in HIGHLIGHT_ATTRIBUTES:
            return HIGHLIGHT_ATTRIBUTES[field](value)
        return value.data.get(field)
    return None


def project(target: Any, field: str) -> Any:
    """
    Read `field` from a row, a highlight, or a list of either.

    Args:
        target: The value on the left of the member access
        field (str): The property name being read

    Returns:
        The projected value, a list of projected values, or None
    """
    if isinstance(target, list):
        if target and has_field(target[0], field):
            projected = (get_field(item, field) for item in target)
            return [value for value in projected if value is not None]
        if field == "length":
            return len(target)
        return None

    if is_row_like(target):
        return get_field(target, field)

    if isinstance(target, str) and field == "length":
        return len(target)

    return None
