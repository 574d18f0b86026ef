"""
TextSheets Syntax Highlighter - highlighting data for formula inputs.
Produces CSS class ranges for the host's formula editor.
"""

from typing import Any, Dict, Iterable, List

from .constants import COLORS, FUNCTION_NAMES, HIGHLIGHTS_IDENTIFIER, SHEET_COLORS
from .errors import FormulaSyntaxError
from .formula_parser import tokenize

BRACKETS = {"(": ")", "[": "]"}
PUNCTUATION = {"(", ")", "[", "]", ",", "."}


class SyntaxHighlighter:
    """
    Syntax highlighter that generates CSS class information for formula sources.
    """

    def __init__(self):
        # Color palette for sheet references
        self.sheet_colors = SHEET_COLORS

        # Store persistent sheet colors
        self.persistent_sheet_colors = {}

        # Function names for highlighting
        self.function_names = FUNCTION_NAMES

        # CSS class mappings
        self.css_classes = {
            'number': 'syntax-number',
            'string': 'syntax-string',
            'keyword': 'syntax-keyword',
            'operator': 'syntax-operator',
            'function': 'syntax-function',
            'paren': 'syntax-paren',
            'unmatched': 'syntax-unmatched',
            'sheet_reference': 'syntax-sheet-ref',
            'error': 'syntax-error'
        }

    def get_sheet_color(self, sheet_name: str) -> str:
        """Get or assign a color for a sheet reference"""
        if sheet_name not in self.persistent_sheet_colors:
            color_idx = len(self.persistent_sheet_colors) % len(self.sheet_colors)
            self.persistent_sheet_colors[sheet_name] = self.sheet_colors[color_idx]
        return self.persistent_sheet_colors[sheet_name]

    def highlight_formula(self, source: str, sheet_names: Iterable[str] = ()) -> List[Dict[str, Any]]:
        """
        Generate syntax highlighting data for a formula.

        Args:
            source (str): Formula source to highlight
            sheet_names: Names of sheets the formula may reference

        Returns:
            list: Highlight ranges with CSS classes and colors, sorted by start
        """
        highlights = []

        if not source.strip():
            return highlights

        sheet_names = set(sheet_names)
        error_start = None
        try:
            tokens = tokenize(source)
        except FormulaSyntaxError as e:
            error_start = e.position if e.position is not None else 0
            tokens = tokenize(source[:error_start])

        for index, token in enumerate(tokens):
            if token.kind == "eof":
                continue
            previous = tokens[index - 1] if index > 0 else None
            following = tokens[index + 1] if index + 1 < len(tokens) else None
            kind = self._classify(token, previous, following, sheet_names)
            if kind is None:
                continue
            entry = self._entry(token.start, token.end - token.start, kind)
            if kind == 'sheet_reference':
                entry["color"] = self.get_sheet_color(token.value)
                entry["sheet_name"] = token.value
            highlights.append(entry)

        highlights.extend(self._highlight_brackets(tokens))

        if error_start is not None:
            highlights.append(self._entry(error_start, len(source) - error_start, 'error'))

        # Sort highlights by start position to ensure proper ordering
        highlights.sort(key=lambda x: x['start'])

        return highlights

    def _classify(self, token, previous, following, sheet_names):
        if token.kind == "number":
            return 'number'
        if token.kind == "string":
            return 'string'
        if token.kind == "keyword":
            return 'keyword'
        if token.kind == "ident":
            # Field names after '.' are never sheet references
            if previous is not None and previous.kind == "op" and previous.value == ".":
                return None
            is_call = following is not None and following.kind == "op" and following.value == "("
            if token.value in self.function_names and is_call:
                return 'function'
            if token.value in sheet_names:
                return 'sheet_reference'
            if token.value == HIGHLIGHTS_IDENTIFIER:
                return 'keyword'
            return None
        if token.kind == "op" and token.value not in PUNCTUATION:
            return 'operator'
        return None

    def _entry(self, start: int, length: int, kind: str) -> Dict[str, Any]:
        return {
            "start": start,
            "length": length,
            "class": self.css_classes[kind],
            "color": COLORS.get(kind),
        }

    def _highlight_brackets(self, tokens) -> List[Dict[str, Any]]:
        """Highlight brackets and mark unmatched ones"""
        stack = []
        matched = []
        unmatched = []

        for token in tokens:
            if token.kind != "op":
                continue
            if token.value in BRACKETS:
                stack.append(token)
            elif token.value in BRACKETS.values():
                if stack and BRACKETS[stack[-1].value] == token.value:
                    matched.extend((stack.pop().start, token.start))
                else:
                    unmatched.append(token.start)

        # Openers still on the stack were never closed
        unmatched.extend(token.start for token in stack)

        return (
            [self._entry(pos, 1, 'paren') for pos in matched]
            + [self._entry(pos, 1, 'unmatched') for pos in unmatched]
        )

    def get_css_styles(self) -> str:
        """
        Generate CSS styles for syntax highlighting.

        Returns:
            str: CSS stylesheet for syntax highlighting
        """
        rules = ["/* TextSheets Formula Syntax Highlighting Styles */"]
        for kind, css_class in self.css_classes.items():
            declarations = []
            if kind in COLORS:
                declarations.append(f"color: {COLORS[kind]};")
            if kind in ('unmatched', 'error'):
                declarations.append("background-color: rgba(248, 81, 73, 0.2);")
            if kind == 'sheet_reference':
                # Colour comes per sheet name with each range
                declarations.append("font-weight: bold;")
            body = "\n".join(f"    {d}" for d in declarations)
            rules.append(f".{css_class} {{\n{body}\n}}")
        return "\n\n".join(rules) + "\n"

    def reset_sheet_colors(self):
        """Reset sheet color assignments"""
        self.persistent_sheet_colors.clear()

    def get_sheet_color_map(self) -> Dict[str, str]:
        """Get current sheet name to color mapping"""
        return self.persistent_sheet_colors.copy()
