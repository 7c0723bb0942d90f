"""
Parser for library search and tagging expressions.

Both languages share one syntax, parsed into nested lists:

- literal ``'x'`` or ``"x"``: ``[None, 'x']``
- identifier ``t``: ``'t'``
- binary ``a && b``: ``['&&', a, b]``
- unary ``!a``: ``['!', a]``
- group ``(a)``: ``['()', a]``
- call ``f(a, b)``: ``['()', 'f', [',', a, b]]`` (``None`` arguments when empty)
- member ``a.b``: ``['.', a, 'b']``

Binary operators, lowest precedence first: ``;`` ``,`` ``||`` ``&&`` ``-``
``^`` ``==``/``!=``. Then unary ``!``, then calls and members. All binary
operators are left-associative.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from colored_logger import get_colored_logger
from errors import MalformedExpressionError

logger = get_colored_logger(__name__)

BINARY_PRECEDENCE = {
    ";": 1,
    ",": 2,
    "||": 3,
    "&&": 4,
    "-": 5,
    "^": 6,
    "==": 7,
    "!=": 7,
}
ARGUMENTS_PRECEDENCE = BINARY_PRECEDENCE[","]

# Longest first, so that two-character operators win
OPERATORS = ("==", "!=", "&&", "||", "!", "^", "-", ",", ";", "(", ")", ".")

QUOTES = ("'", '"')
ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}


@dataclass
class Token:
    kind: str  # "op", "str", "id" or "end"
    value: str
    position: int


def tokenize(text: str) -> List[Token]:
    """
    Split expression text into tokens.

    Raises:
        MalformedExpressionError: For an unterminated string or an unknown character.
    """
    tokens: List[Token] = []
    i = 0
    while i < len(text):
        char = text[i]

        if char.isspace():
            i += 1
            continue

        if char in QUOTES:
            start = i
            chars = []
            i += 1
            while i < len(text) and text[i] != char:
                if text[i] == "\\" and i + 1 < len(text):
                    i += 1
                    chars.append(ESCAPES.get(text[i], text[i]))
                else:
                    chars.append(text[i])
                i += 1
            if i >= len(text):
                raise MalformedExpressionError("unterminated string", start)
            tokens.append(Token("str", "".join(chars), start))
            i += 1
            continue

        if char.isalpha() or char == "_":
            start = i
            while i < len(text) and (text[i].isalnum() or text[i] == "_"):
                i += 1
            tokens.append(Token("id", text[start:i], start))
            continue

        for op in OPERATORS:
            if text.startswith(op, i):
                tokens.append(Token("op", op, i))
                i += len(op)
                break
        else:
            raise MalformedExpressionError(f"unexpected character {char!r}", i)

    tokens.append(Token("end", "", len(text)))
    return tokens


class ExpressionParser:
    """Precedence-climbing parser over the tokens of one expression."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _expect(self, value: str) -> Token:
        token = self.current
        if token.kind != "op" or token.value != value:
            found = token.value or "end of expression"
            raise MalformedExpressionError(f"expected {value!r}, found {found!r}", token.position)
        return self._advance()

    def parse(self) -> Any:
        if self.current.kind == "end":
            raise MalformedExpressionError("empty expression", 0)

        ast = self._parse_binary(1)
        if self.current.kind != "end":
            raise MalformedExpressionError(f"unexpected {self.current.value!r}", self.current.position)
        return ast

    def _parse_binary(self, min_precedence: int) -> Any:
        left = self._parse_unary()

        while True:
            token = self.current
            precedence = BINARY_PRECEDENCE.get(token.value) if token.kind == "op" else None
            if precedence is None or precedence < min_precedence:
                return left

            self._advance()
            if token.value == ";" and self.current.kind == "end":
                # trailing statement delimiter
                return left

            right = self._parse_binary(precedence + 1)
            left = [token.value, left, right]

    def _parse_unary(self) -> Any:
        token = self.current
        if token.kind == "op" and token.value == "!":
            self._advance()
            return ["!", self._parse_unary()]
        return self._parse_postfix(self._parse_primary())

    def _parse_primary(self) -> Any:
        token = self.current

        if token.kind == "str":
            self._advance()
            return [None, token.value]

        if token.kind == "id":
            self._advance()
            return token.value

        if token.kind == "op" and token.value == "(":
            self._advance()
            inner = self._parse_binary(ARGUMENTS_PRECEDENCE)
            self._expect(")")
            return ["()", inner]

        found = token.value or "end of expression"
        raise MalformedExpressionError(f"expected an operand, found {found!r}", token.position)

    def _parse_postfix(self, operand: Any) -> Any:
        while self.current.kind == "op":
            token = self.current

            if token.value == "(" and _is_callable(operand):
                self._advance()
                arguments: Optional[Any] = None
                if not (self.current.kind == "op" and self.current.value == ")"):
                    arguments = self._parse_binary(ARGUMENTS_PRECEDENCE)
                self._expect(")")
                operand = ["()", operand, arguments]

            elif token.value == ".":
                self._advance()
                member = self.current
                if member.kind != "id":
                    raise MalformedExpressionError("expected a member name after '.'", member.position)
                self._advance()
                operand = [".", operand, member.value]

            else:
                break

        return operand


def _is_callable(operand: Any) -> bool:
    """Identifiers, members and call results can be called; literals and groups cannot."""
    if isinstance(operand, str):
        return True
    return isinstance(operand, list) and len(operand) == 3 and operand[0] in (".", "()")


def parse_expression(text: str) -> Any:
    """
    Parse search or tagging expression text into its nested list form.

    Args:
        text: Expression source

    Returns:
        Nested list tree (or a bare identifier string).

    Raises:
        MalformedExpressionError: If the text does not parse.
    """
    ast = ExpressionParser(text).parse()
    logger.debug("parsed expression %r to %r", text, ast)
    return ast


def call_arguments(arguments: Any) -> List[Any]:
    """Flatten the ``','`` tree of call arguments into a list."""
    if arguments is None:
        return []
    if isinstance(arguments, list) and len(arguments) == 3 and arguments[0] == ",":
        return call_arguments(arguments[1]) + call_arguments(arguments[2])
    return [arguments]


def unwrap_group(ast: Any) -> Any:
    """Remove redundant parentheses: ``['()', ['()', a]]`` becomes ``a``."""
    while isinstance(ast, list) and len(ast) == 2 and ast[0] == "()":
        ast = ast[1]
    return ast
