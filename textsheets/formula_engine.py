"""
TextSheets Formula Engine - evaluates column formulas against a document.
Handles identifier resolution through scope layers, member projection,
operators, and the row fan-out of a sheet's first column.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .document import TextDocument
from .errors import FormulaRuntimeError
from .formula_api import FormulaAPI, is_truthy
from .formula_parser import (
    Arrow, ArrayLiteral, Binary, Call, Conditional, Identifier, Index,
    Literal, Logical, Member, Unary, parse_formula,
)
from .models import CellError, Highlight, SheetConfig
from .projection import get_field, is_row_like, project

logger = logging.getLogger(__name__)

Scope = Dict[str, Any]


class Evaluator:
    """
    Walks a formula AST. Identifiers are resolved by probing `layers`
    innermost-first: arrow parameters, current row, sheets, built-ins.
    """

    def __init__(self, document: TextDocument):
        self.document = document

    def evaluate(self, node, layers: Tuple[Scope, ...]) -> Any:
        if isinstance(node, Literal):
            return node.value

        if isinstance(node, Identifier):
            for layer in layers:
                if node.name in layer:
                    return layer[node.name]
            raise FormulaRuntimeError(f"{node.name} is not defined")

        if isinstance(node, Member):
            target = self.evaluate(node.object, layers)
            if target is None:
                raise FormulaRuntimeError(f"Cannot read property '{node.name}' of undefined")
            return project(target, node.name)

        if isinstance(node, Index):
            target = self.evaluate(node.object, layers)
            if target is None:
                raise FormulaRuntimeError("Cannot index undefined")
            return self._index(target, self.evaluate(node.index, layers))

        if isinstance(node, Call):
            callee = self.evaluate(node.callee, layers)
            if not callable(callee):
                raise FormulaRuntimeError(f"{self._describe(node.callee)} is not a function")
            args = [self.evaluate(arg, layers) for arg in node.args]
            return callee(*args)

        if isinstance(node, ArrayLiteral):
            return [self.evaluate(item, layers) for item in node.items]

        if isinstance(node, Unary):
            operand = self.evaluate(node.operand, layers)
            if node.op == "!":
                return not is_truthy(operand)
            if node.op == "-":
                return -self.to_number(operand)
            return self.to_number(operand)

        if isinstance(node, Logical):
            left = self.evaluate(node.left, layers)
            if node.op == "&&":
                return self.evaluate(node.right, layers) if is_truthy(left) else left
            return left if is_truthy(left) else self.evaluate(node.right, layers)

        if isinstance(node, Binary):
            return self._binary(node.op, self.evaluate(node.left, layers), self.evaluate(node.right, layers))

        if isinstance(node, Conditional):
            if is_truthy(self.evaluate(node.test, layers)):
                return self.evaluate(node.consequent, layers)
            return self.evaluate(node.alternate, layers)

        if isinstance(node, Arrow):
            return self._make_function(node, layers)

        raise FormulaRuntimeError(f"Unsupported expression: {type(node).__name__}")

    def _make_function(self, node: Arrow, layers):
        def formula_function(*args):
            bound = {name: (args[i] if i < len(args) else None) for i, name in enumerate(node.params)}
            return self.evaluate(node.body, (bound,) + layers)

        return formula_function

    @staticmethod
    def _describe(node) -> str:
        if isinstance(node, Identifier):
            return node.name
        if isinstance(node, Member):
            return node.name
        return "expression"

    @staticmethod
    def _index(target, index):
        if isinstance(target, (list, str)):
            if isinstance(index, float) and index.is_integer():
                index = int(index)
            if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(target):
                return target[index]
            if index == "length":
                return len(target)
            return None
        if is_row_like(target) and isinstance(index, str):
            return get_field(target, index)
        return None

    # =========================================================================
    # VALUE CONVERSIONS
    # =========================================================================

    def to_string(self, value) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, Highlight):
            if value.document_id != self.document.id:
                raise FormulaRuntimeError("Cannot read the text of a highlight from another document")
            return self.document.substring(value.span[0], value.span[1])
        if isinstance(value, list):
            return ",".join(self.to_string(item) for item in value)
        return str(value)

    def to_number(self, value):
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float)):
            return value
        if value is None:
            return 0
        if isinstance(value, (str, Highlight)):
            text = self.to_string(value).strip()
            try:
                number = float(text) if text else 0
            except ValueError:
                return math.nan
            return int(number) if isinstance(number, float) and number.is_integer() and "." not in text else number
        raise FormulaRuntimeError(f"Cannot convert {type(value).__name__} to a number")

    def _binary(self, op, left, right):
        if op == "+":
            if isinstance(left, (str, Highlight, list)) or isinstance(right, (str, Highlight, list)):
                return self.to_string(left) + self.to_string(right)
            return self.to_number(left) + self.to_number(right)
        if op in ("-", "*", "/", "%"):
            a, b = self.to_number(left), self.to_number(right)
            if op == "-":
                return a - b
            if op == "*":
                return a * b
            if b == 0:
                raise FormulaRuntimeError("Division by zero")
            if op == "/":
                result = a / b
                return int(result) if result.is_integer() else result
            remainder = math.fmod(a, b)
            return int(remainder) if isinstance(a, int) and isinstance(b, int) else remainder
        if op in ("==", "==="):
            return left == right
        if op in ("!=", "!=="):
            return left != right
        try:
            if op == "<":
                return left < right
            if op == "<=":
                return left <= right
            if op == ">":
                return left > right
            if op == ">=":
                return left >= right
        except TypeError:
            return self._binary(op, self.to_number(left), self.to_number(right))
        raise FormulaRuntimeError(f"Unsupported operator '{op}'")


def contains_function(value) -> bool:
    """True if a value is, or holds at any list depth, an uncalled function"""
    if callable(value):
        return True
    if isinstance(value, list):
        return any(contains_function(item) for item in value)
    return False


class FormulaEngine:
    """
    Core formula evaluation for one document.
    Evaluates a sheet's columns in declared order and captures every
    cell failure as a CellError value.
    """

    def __init__(
        self,
        document: TextDocument,
        sheet_configs: Sequence[SheetConfig] = (),
        documents=None,
        lookup_stack: Tuple[TextDocument, ...] = (),
    ):
        self.document = document
        self.sheet_configs = list(sheet_configs)
        self.documents = documents
        self.lookup_stack = lookup_stack or (document,)
        self.evaluator = Evaluator(document)

    def make_api(self, sheet_config: SheetConfig, highlights: Sequence[Highlight]) -> FormulaAPI:
        return FormulaAPI(
            self.document,
            sheet_config,
            highlights,
            sheet_configs=self.sheet_configs,
            documents=self.documents,
            lookup_stack=self.lookup_stack,
        )

    def evaluate_formula(
        self,
        source: str,
        api_namespace: Scope,
        sheets_scope: Scope,
        scope: Optional[Scope] = None,
    ) -> Any:
        """
        Core formula evaluation method.

        Args:
            source (str): The formula source
            api_namespace (dict): Built-in functions for this sheet
            sheets_scope (dict): Rows of every sheet evaluated so far, by name
            scope (dict): The current row's computed fields

        Returns:
            The formula's value, or a CellError if evaluation raised
        """
        try:
            node = parse_formula(source.strip())
            if node is None:
                return None

            result = self.evaluator.evaluate(node, (scope or {}, sheets_scope, api_namespace))
            if contains_function(result):
                raise FormulaRuntimeError("Formula evaluates to a function; pass it the missing arguments")
            return result

        except Exception as e:
            logger.debug("Formula %r failed: %s", source, e)
            return CellError(message=str(e), error_type=type(e).__name__)

    def evaluate_columns(
        self,
        sheet_config: SheetConfig,
        highlights: Sequence[Highlight],
        sheets_scope: Scope,
    ) -> List[Scope]:
        """
        Evaluate every column of a sheet and return its rows.

        The first column is evaluated once; a list result fans out into one
        row per element. Each later column is evaluated once per row with
        that row's fields in scope and never changes the row count.
        """
        api_namespace = self.make_api(sheet_config, highlights).namespace()
        rows: List[Scope] = []

        for index, column in enumerate(sheet_config.properties):
            if index == 0:
                result = self.evaluate_formula(column.formula, api_namespace, sheets_scope, {})
                if isinstance(result, list):
                    rows = [{column.name: item} for item in result]
                else:
                    rows = [{column.name: result}]
            else:
                rows = [
                    {**row, column.name: self.evaluate_formula(column.formula, api_namespace, sheets_scope, dict(row))}
                    for row in rows
                ]

        return rows
