"""
Tokenizer for arithmetic expressions.

This module turns source text into a lazy stream of tokens. It handles
numbers (decimal, scientific and hexadecimal), identifiers, parentheses,
commas and operators. Operators are not hard-coded: the tokenizer is given
the registered operator symbols and always takes the longest one that
matches.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, Iterator, List, Optional

from ..core.errors import LexError


class TokenType(Enum):
    """Token types for arithmetic expressions."""

    NUMBER = auto()
    IDENTIFIER = auto()
    OPERATOR = auto()
    LPAREN = auto()  # (
    RPAREN = auto()  # )
    COMMA = auto()
    EOF = auto()


@dataclass(frozen=True)
class Token:
    """
    Represents a single token in the expression.

    Attributes:
        type: The token type
        value: The source text of the token
        pos: Position in the source string (for error reporting)
    """

    type: TokenType
    value: str
    pos: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, '{self.value}', pos={self.pos})"


DELIMITERS = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    ",": TokenType.COMMA,
}


class Tokenizer:
    """
    Lazily tokenizes an expression.

    Iterating a Tokenizer yields tokens up to and including a final EOF
    token. Every iteration starts over from the beginning of the source.

    The tokenizer handles:
    - Numbers: 42, 3.14, .5, 1e-10, 0xCAFE
    - Identifiers: letter or first-variable character, then letters,
      digits or variable characters
    - Operators: longest registered symbol, e.g. ``<=`` before ``<``
    - Parentheses and commas
    """

    # Regex patterns for number literals
    NUMBER = re.compile(r"(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
    HEX_NUMBER = re.compile(r"0[xX][0-9a-fA-F]+")

    DIGITS = "0123456789"

    def __init__(
        self,
        expression: str,
        operator_symbols: Iterable[str] = (),
        first_variable_chars: str = "_",
        variable_chars: str = "_",
    ):
        """
        Initialize tokenizer.

        Args:
            expression: The expression to tokenize
            operator_symbols: Currently registered operator symbols
            first_variable_chars: Non-letters allowed to start an identifier
            variable_chars: Non-alphanumerics allowed inside an identifier
        """
        self.expression = expression
        self.first_variable_chars = first_variable_chars
        self.variable_chars = variable_chars
        # Longest first so the first prefix hit is the longest match
        self.operator_symbols = sorted(set(operator_symbols), key=len, reverse=True)
        self._operator_chars = frozenset("".join(self.operator_symbols))

    def __iter__(self) -> Iterator[Token]:
        expression = self.expression
        length = len(expression)
        pos = 0

        while pos < length:
            ch = expression[pos]

            if ch.isspace():
                pos += 1
                continue

            if ch in self.DIGITS or (
                ch == "." and pos + 1 < length and expression[pos + 1] in self.DIGITS
            ):
                match = self.HEX_NUMBER.match(expression, pos) or self.NUMBER.match(
                    expression, pos
                )
                yield Token(TokenType.NUMBER, match.group(), pos)
                pos = match.end()
                continue

            if ch.isalpha() or ch in self.first_variable_chars:
                end = pos + 1
                while end < length and self._is_variable_char(expression[end]):
                    end += 1
                yield Token(TokenType.IDENTIFIER, expression[pos:end], pos)
                pos = end
                continue

            if ch in DELIMITERS:
                yield Token(DELIMITERS[ch], ch, pos)
                pos += 1
                continue

            if ch in self._operator_chars:
                symbol = self._match_operator(expression, pos)
                yield Token(TokenType.OPERATOR, symbol, pos)
                pos += len(symbol)
                continue

            raise LexError(ch, pos)

        yield Token(TokenType.EOF, "", length)

    def tokenize(self) -> List[Token]:
        """Tokenize the whole expression into a list (EOF included)."""
        return list(self)

    def _is_variable_char(self, ch: str) -> bool:
        return ch.isalpha() or ch in self.DIGITS or ch in self.variable_chars

    def _match_operator(self, expression: str, pos: int) -> str:
        """
        Match an operator starting at pos.

        Collects the run of characters that occur in any registered symbol and
        returns its longest registered prefix. A run without one is returned
        whole so the parser can report it as an unknown operator.
        """
        end = pos
        while end < len(expression) and expression[end] in self._operator_chars:
            end += 1
        run = expression[pos:end]

        match: Optional[str] = next(
            (symbol for symbol in self.operator_symbols if run.startswith(symbol)), None
        )
        return match if match is not None else run
