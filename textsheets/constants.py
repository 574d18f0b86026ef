"""
TextSheets Constants Module
Contains global constants, the formula reference catalog and configuration data.
"""


# =============================================================================
# FORMULA REFERENCE
# =============================================================================

# Built-in functions available inside every formula, with their argument
# names and return type. Served to the host for autocompletion.
FORMULA_REFERENCE = [
    {"name": "EACH_LINE", "args": [], "return": "Highlight[]"},
    {"name": "HIGHLIGHTS_OF_REGEX", "args": ["regex: string", "flags?: string"], "return": "Highlight[]"},
    {"name": "HIGHLIGHTS_OF", "args": ["values: string | string[]", "caseInsensitive?: boolean"], "return": "Highlight[]"},
    {"name": "VALUES_OF_TYPE", "args": ["type: string"], "return": "Highlight[]"},
    {"name": "NEXT", "args": ["highlight: Highlight", "condition: any"], "return": "Highlight"},
    {"name": "PREV", "args": ["highlight: Highlight", "condition: any"], "return": "Highlight"},
    {"name": "HAS_TYPE", "args": ["type: string", "highlight: Highlight"], "return": "boolean"},
    {"name": "HAS_TEXT_ON_LEFT", "args": ["text: string", "highlight: Highlight"], "return": "boolean"},
    {"name": "HAS_TEXT_ON_RIGHT", "args": ["text: string", "highlight: Highlight"], "return": "boolean"},
    {"name": "IS_ON_SAME_LINE_AS", "args": ["a: Highlight", "b: Highlight"], "return": "boolean"},
    {"name": "FILTER", "args": ["list: any[]", "condition: any"], "return": "any[]"},
    {"name": "FIRST", "args": ["list: any[]"], "return": "any"},
    {"name": "SECOND", "args": ["list: any[]"], "return": "any"},
    {"name": "DATA_FROM_DOC", "args": ["docName: string", "sheetName: string", "columnName: string"], "return": "string[]"},
]

# Function names for autocompletion and highlighting
FUNCTION_NAMES = {entry["name"] for entry in FORMULA_REFERENCE}

# Identifier bound to the highlight list accumulated so far in a pass
HIGHLIGHTS_IDENTIFIER = "HIGHLIGHTS"

# Regex flags accepted by HIGHLIGHTS_OF_REGEX ('g' is always implied)
REGEX_FLAGS = {"g", "i", "m", "s", "u", "y"}


# =============================================================================
# EVALUATION LIMITS
# =============================================================================

# Nested DATA_FROM_DOC lookups allowed before the lookup is refused
MAX_DOCUMENT_LOOKUP_DEPTH = 8


# =============================================================================
# UI CONSTANTS
# =============================================================================

# Formula syntax colors
COLORS = {
    'string': '#CE9178',
    'number': '#ffffff',
    'operator': '#4DA6FF',
    'function': '#4DA6FF',
    'keyword': '#BB8FCE',
    'paren': '#6FCF97',
    'unmatched': '#FF5C5C',
    'error': '#FF5C5C',
}

# Sheet reference colors for syntax highlighting
SHEET_COLORS = [
    "#FF9999", "#99FF99", "#9999FF", "#FFFF99", "#FF99FF", "#99FFFF",
    "#FFB366", "#B3FF66", "#66FFB3", "#B366FF", "#FF66B3", "#FF6666",
    "#66FF66", "#6666FF", "#FFFF66", "#FF66FF", "#66FFFF"
]


# =============================================================================
# CONFIGURATION
# =============================================================================

# API server
API_HOST = "127.0.0.1"
API_PORT = 8000

# Application metadata
APP_NAME = "TextSheets"
APP_VERSION = "0.1.0"
