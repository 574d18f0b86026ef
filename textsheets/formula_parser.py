"""
TextSheets Formula Parser - tokenizer and recursive-descent parser.

Grammar (lowest to highest precedence):

    expression  := arrow | conditional
    arrow       := IDENT '=>' expression | '(' [IDENT (',' IDENT)*] ')' '=>' expression
    conditional := or ['?' expression ':' expression]
    or          := and ('||' and)*
    and         := equality ('&&' equality)*
    equality    := comparison (('==' | '!=' | '===' | '!==') comparison)*
    comparison  := additive (('<' | '<=' | '>' | '>=') additive)*
    additive    := term (('+' | '-') term)*
    term        := unary (('*' | '/' | '%') unary)*
    unary       := ('!' | '-' | '+') unary | postfix
    postfix     := primary ('.' IDENT | '(' args ')' | '[' expression ']')*
    primary     := NUMBER | STRING | true | false | null | undefined
                 | IDENT | '(' expression ')' | '[' [expression (',' expression)*] ']'
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, List, Optional, Tuple

from .errors import FormulaSyntaxError


# =============================================================================
# TOKENS
# =============================================================================

@dataclass(frozen=True)
class Token:
    kind: str  # number, string, ident, keyword, op, eof
    value: Any
    start: int
    end: int


KEYWORDS = {"true": True, "false": False, "null": None, "undefined": None}

# Longest operators first so '===' wins over '==' and '='
OPERATORS = [
    "===", "!==", "=>", "==", "!=", "<=", ">=", "&&", "||",
    "+", "-", "*", "/", "%", "<", ">", "!", "?", ":",
    "(", ")", "[", "]", ",", ".",
]

ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}


def _is_ident_start(ch):
    return ch.isalpha() or ch in "_$"


def _is_ident_part(ch):
    return ch.isalnum() or ch in "_$"


def tokenize(source: str) -> List[Token]:
    """
    Split a formula source into tokens.

    Raises:
        FormulaSyntaxError: On an unterminated string or an unexpected character
    """
    tokens = []
    pos = 0
    length = len(source)

    while pos < length:
        ch = source[pos]

        if ch.isspace() or ch == ";":
            pos += 1
            continue

        start = pos

        if ch.isdigit() or (ch == "." and pos + 1 < length and source[pos + 1].isdigit()):
            while pos < length and (source[pos].isdigit() or source[pos] == "."):
                pos += 1
            if pos < length and source[pos] in "eE":
                pos += 1
                if pos < length and source[pos] in "+-":
                    pos += 1
                while pos < length and source[pos].isdigit():
                    pos += 1
            text = source[start:pos]
            try:
                value = float(text)
            except ValueError:
                raise FormulaSyntaxError(f"Invalid number '{text}'", start)
            if value.is_integer() and "." not in text and "e" not in text.lower():
                value = int(text)
            tokens.append(Token("number", value, start, pos))
            continue

        if ch in "\"'":
            value, pos = _read_string(source, pos)
            tokens.append(Token("string", value, start, pos))
            continue

        if _is_ident_start(ch):
            while pos < length and _is_ident_part(source[pos]):
                pos += 1
            name = source[start:pos]
            if name in KEYWORDS:
                tokens.append(Token("keyword", name, start, pos))
            else:
                tokens.append(Token("ident", name, start, pos))
            continue

        for op in OPERATORS:
            if source.startswith(op, pos):
                pos += len(op)
                tokens.append(Token("op", op, start, pos))
                break
        else:
            raise FormulaSyntaxError(f"Unexpected character '{ch}'", start)

    tokens.append(Token("eof", None, length, length))
    return tokens


def _read_string(source, pos):
    quote = source[pos]
    start = pos
    pos += 1
    chars = []
    while pos < len(source):
        ch = source[pos]
        if ch == quote:
            return "".join(chars), pos + 1
        if ch == "\\" and pos + 1 < len(source):
            nxt = source[pos + 1]
            if nxt in ESCAPES:
                chars.append(ESCAPES[nxt])
            elif nxt in ("\\", "'", '"', "\n"):
                if nxt != "\n":
                    chars.append(nxt)
            elif nxt == "u" and pos + 6 <= len(source):
                try:
                    chars.append(chr(int(source[pos + 2:pos + 6], 16)))
                    pos += 6
                    continue
                except ValueError:
                    raise FormulaSyntaxError("Invalid unicode escape", start)
            else:
                # Unknown escapes keep their backslash so regex sources like "\d" survive
                chars.append("\\" + nxt)
            pos += 2
            continue
        chars.append(ch)
        pos += 1
    raise FormulaSyntaxError("Unterminated string literal", start)


# =============================================================================
# AST
# =============================================================================

@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Identifier:
    name: str


@dataclass(frozen=True)
class Member:
    object: Any
    name: str


@dataclass(frozen=True)
class Index:
    object: Any
    index: Any


@dataclass(frozen=True)
class Call:
    callee: Any
    args: Tuple[Any, ...]


@dataclass(frozen=True)
class ArrayLiteral:
    items: Tuple[Any, ...]


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Any


@dataclass(frozen=True)
class Binary:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Logical:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Conditional:
    test: Any
    consequent: Any
    alternate: Any


@dataclass(frozen=True)
class Arrow:
    params: Tuple[str, ...]
    body: Any


# =============================================================================
# PARSER
# =============================================================================

class Parser:
    def __init__(self, source: str):
        self.source = source
        self.tokens = tokenize(source)
        self.pos = 0

    def parse(self):
        if self.peek().kind == "eof":
            return None
        node = self.expression()
        token = self.peek()
        if token.kind != "eof":
            raise FormulaSyntaxError(f"Unexpected token '{self.source[token.start:token.end]}'", token.start)
        return node

    # Token helpers

    def peek(self, offset: int = 0) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != "eof":
            self.pos += 1
        return token

    def match(self, *ops) -> Optional[Token]:
        token = self.peek()
        if token.kind == "op" and token.value in ops:
            return self.advance()
        return None

    def expect(self, op: str) -> Token:
        token = self.peek()
        if token.kind == "op" and token.value == op:
            return self.advance()
        found = "end of formula" if token.kind == "eof" else f"'{self.source[token.start:token.end]}'"
        raise FormulaSyntaxError(f"Expected '{op}' but found {found}", token.start)

    # Grammar rules

    def expression(self):
        params = self._arrow_params()
        if params is not None:
            return Arrow(params, self.expression())
        return self.conditional()

    def _arrow_params(self) -> Optional[Tuple[str, ...]]:
        token = self.peek()
        if token.kind == "ident" and self._is_op(self.peek(1), "=>"):
            self.pos += 2
            return (token.value,)
        if not self._is_op(token, "("):
            return None
        # Scan ahead for "(a, b) =>" without consuming anything else
        offset = 1
        params = []
        while True:
            current = self.peek(offset)
            if self._is_op(current, ")"):
                break
            if current.kind != "ident":
                return None
            params.append(current.value)
            offset += 1
            if self._is_op(self.peek(offset), ","):
                offset += 1
            elif not self._is_op(self.peek(offset), ")"):
                return None
        if not self._is_op(self.peek(offset + 1), "=>"):
            return None
        self.pos += offset + 2
        return tuple(params)

    @staticmethod
    def _is_op(token, op):
        return token.kind == "op" and token.value == op

    def conditional(self):
        test = self.logical_or()
        if self.match("?"):
            consequent = self.expression()
            self.expect(":")
            alternate = self.expression()
            return Conditional(test, consequent, alternate)
        return test

    def logical_or(self):
        node = self.logical_and()
        while self.match("||"):
            node = Logical("||", node, self.logical_and())
        return node

    def logical_and(self):
        node = self.equality()
        while self.match("&&"):
            node = Logical("&&", node, self.equality())
        return node

    def equality(self):
        node = self.comparison()
        while True:
            token = self.match("==", "!=", "===", "!==")
            if token is None:
                return node
            node = Binary(token.value, node, self.comparison())

    def comparison(self):
        node = self.additive()
        while True:
            token = self.match("<", "<=", ">", ">=")
            if token is None:
                return node
            node = Binary(token.value, node, self.additive())

    def additive(self):
        node = self.term()
        while True:
            token = self.match("+", "-")
            if token is None:
                return node
            node = Binary(token.value, node, self.term())

    def term(self):
        node = self.unary()
        while True:
            token = self.match("*", "/", "%")
            if token is None:
                return node
            node = Binary(token.value, node, self.unary())

    def unary(self):
        token = self.match("!", "-", "+")
        if token is not None:
            return Unary(token.value, self.unary())
        return self.postfix()

    def postfix(self):
        node = self.primary()
        while True:
            if self.match("."):
                token = self.peek()
                if token.kind not in ("ident", "keyword"):
                    raise FormulaSyntaxError("Expected property name after '.'", token.start)
                self.advance()
                node = Member(node, token.value)
            elif self.match("("):
                node = Call(node, self._sequence(")"))
            elif self.match("["):
                index = self.expression()
                self.expect("]")
                node = Index(node, index)
            else:
                return node

    def _sequence(self, closing: str) -> Tuple[Any, ...]:
        items = []
        if self.match(closing):
            return ()
        while True:
            items.append(self.expression())
            if self.match(closing):
                return tuple(items)
            self.expect(",")
            # Allow a trailing comma
            if self.match(closing):
                return tuple(items)

    def primary(self):
        token = self.peek()
        if token.kind in ("number", "string"):
            self.advance()
            return Literal(token.value)
        if token.kind == "keyword":
            self.advance()
            return Literal(KEYWORDS[token.value])
        if token.kind == "ident":
            self.advance()
            return Identifier(token.value)
        if self.match("("):
            node = self.expression()
            self.expect(")")
            return node
        if self.match("["):
            return ArrayLiteral(self._sequence("]"))
        if token.kind == "eof":
            raise FormulaSyntaxError("Unexpected end of formula", token.start)
        raise FormulaSyntaxError(f"Unexpected token '{self.source[token.start:token.end]}'", token.start)


@lru_cache(maxsize=512)
def parse_formula(source: str):
    """
    Parse a formula source into an AST.

    Returns None for an empty formula. Results are cached by source text;
    AST nodes are immutable so sharing them between passes is safe.
    """
    return Parser(source).parse()
