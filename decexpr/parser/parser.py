"""
Operator-precedence parser for arithmetic expressions.

This parser uses precedence climbing (Pratt parsing) to build an expression
tree from a token stream. It handles:
- Binary and unary operators with precedence and associativity
- Function calls with arity checking
- Parenthesis grouping
- Implicit multiplication before an opening parenthesis: 2(x+1), (a)(b)

Operators and functions come from a Registry; nothing is hard-coded here.
A parse either returns a complete tree or raises, no partial tree escapes.
"""

from collections import deque
from typing import Deque, Iterator, List, Optional

from ..context import Associativity, OperatorDef, Registry
from ..core.errors import ArityError, ParseError, UnknownFunctionError, UnknownOperatorError
from .ast import ASTNode, BinaryOp, FunctionCall, Number, UnaryOp, Variable
from .tokenizer import Token, TokenType, Tokenizer

# Tokens that cannot begin an operand
_OPERAND_TERMINATORS = (TokenType.EOF, TokenType.RPAREN, TokenType.COMMA)


class Parser:
    """
    Precedence-climbing parser.

    The parser builds a tree from a token stream, respecting:
    - Operator precedence (defined in the registry)
    - Operator associativity (left/right)
    - Function arity (fixed arity is checked here, variadic at evaluation)
    """

    def __init__(
        self,
        registry: Registry,
        first_variable_chars: str = "_",
        variable_chars: str = "_",
        implicit_multiplication: bool = True,
    ):
        """
        Initialize parser.

        Args:
            registry: Operators and functions visible to the expression
            first_variable_chars: Non-letters allowed to start an identifier
            variable_chars: Non-alphanumerics allowed inside an identifier
            implicit_multiplication: Treat ``2(x)`` as ``2*(x)``
        """
        self.registry = registry
        self.first_variable_chars = first_variable_chars
        self.variable_chars = variable_chars
        self.implicit_multiplication = implicit_multiplication
        self._tokens: Iterator[Token] = iter(())
        self._buffer: Deque[Token] = deque()

    def tokenizer(self, expression: str) -> Tokenizer:
        return Tokenizer(
            expression,
            self.registry.operator_symbols(),
            self.first_variable_chars,
            self.variable_chars,
        )

    def parse(self, expression: str) -> ASTNode:
        """
        Parse an expression string to a tree.

        Args:
            expression: The arithmetic expression

        Returns:
            Root node

        Raises:
            LexError: If the expression contains an invalid character
            ParseError: If the token sequence is malformed or nested too deeply
        """
        self._tokens = iter(self.tokenizer(expression))
        self._buffer = deque()

        if self.current().type == TokenType.EOF:
            raise ParseError("Empty expression", self.current())

        try:
            tree = self.parse_expression(0)
        except RecursionError:
            raise ParseError("Expression nested too deeply") from None

        token = self.current()
        if token.type == TokenType.COMMA:
            raise ParseError("Unexpected comma", token)
        if token.type == TokenType.RPAREN:
            raise ParseError("Mismatched parentheses", token)
        if token.type != TokenType.EOF:
            raise ParseError("Too many numbers or variables", token)

        return tree

    def current(self) -> Token:
        """Get current token without consuming it."""
        return self.peek(0)

    def peek(self, offset: int = 1) -> Token:
        """Look ahead at token at offset from current position."""
        while len(self._buffer) <= offset:
            token = next(self._tokens, None)
            if token is None:
                return self._buffer[-1]  # EOF
            self._buffer.append(token)
        return self._buffer[offset]

    def advance(self) -> Token:
        """Consume and return current token."""
        token = self.current()
        if token.type != TokenType.EOF:
            self._buffer.popleft()
        return token

    def expect(self, token_type: TokenType, message: Optional[str] = None) -> Token:
        """
        Consume a token of the expected type.

        Raises:
            ParseError: If current token doesn't match expected type
        """
        token = self.current()
        if token.type != token_type:
            raise ParseError(
                message or f"Expected {token_type.name}, got {token.type.name}", token
            )
        return self.advance()

    def parse_expression(self, min_precedence: int = 0) -> ASTNode:
        """
        Parse an expression using operator precedence climbing.

        Args:
            min_precedence: Minimum precedence to consider

        Returns:
            Tree node
        """
        left = self.parse_prefix()

        while True:
            token = self.current()
            operator = self._infix_operator(token)
            if operator is None or operator.precedence < min_precedence:
                break

            if token.type == TokenType.OPERATOR:
                self.advance()
            self._require_operand(operator.symbol, token)

            if operator.associativity == Associativity.RIGHT:
                next_min = operator.precedence
            else:
                next_min = operator.precedence + 1

            right = self.parse_expression(next_min)
            left = BinaryOp(left, operator, right)

        return left

    def _infix_operator(self, token: Token) -> Optional[OperatorDef]:
        """Binary operator at token, or None if the operand ends here."""
        if token.type == TokenType.OPERATOR:
            operator = self.registry.get_operator(token.value)
            if operator is None:
                raise UnknownOperatorError(token.value, token)
            return operator

        if token.type == TokenType.LPAREN and self.implicit_multiplication:
            return self.registry.get_operator("*")

        return None

    def _require_operand(self, symbol: str, token: Token) -> None:
        if self.current().type in _OPERAND_TERMINATORS:
            raise ParseError(f"Missing parameter(s) for operator {symbol}", token)

    def parse_prefix(self) -> ASTNode:
        """
        Parse a prefix expression (unary operators, atoms).

        Returns:
            Tree node
        """
        token = self.current()

        if token.type == TokenType.OPERATOR:
            operator = self.registry.get_operator(token.value, unary=True)
            if operator is None:
                raise UnknownOperatorError(token.value, token, unary=True)
            self.advance()
            self._require_operand(operator.symbol, token)
            operand = self.parse_expression(operator.precedence)
            return UnaryOp(operator, operand)

        return self.parse_atom()

    def parse_atom(self) -> ASTNode:
        """
        Parse an atomic expression (number, variable, call, parentheses).

        Returns:
            Tree node
        """
        token = self.current()

        if token.type == TokenType.NUMBER:
            self.advance()
            return Number.from_literal(token.value)

        if token.type == TokenType.IDENTIFIER:
            if self.peek().type == TokenType.LPAREN:
                return self.parse_function_call()
            self.advance()
            return Variable(token.value)

        if token.type == TokenType.LPAREN:
            return self.parse_parenthesized()

        if token.type == TokenType.RPAREN:
            raise ParseError("Mismatched parentheses", token)

        if token.type == TokenType.COMMA:
            raise ParseError("Unexpected comma", token)

        raise ParseError("Unexpected end of expression", token)

    def parse_function_call(self) -> FunctionCall:
        """
        Parse a function call: func(arg1, arg2, ...).

        Returns:
            FunctionCall node

        Raises:
            UnknownFunctionError: If the function is not registered
            ArityError: If a fixed-arity function gets the wrong argument count
        """
        name_token = self.advance()
        function = self.registry.get_function(name_token.value)
        if function is None:
            raise UnknownFunctionError(name_token.value, name_token)

        self.expect(TokenType.LPAREN)

        args: List[ASTNode] = []

        if self.current().type != TokenType.RPAREN:
            args.append(self._parse_argument(name_token))

            while self.current().type == TokenType.COMMA:
                self.advance()
                args.append(self._parse_argument(name_token))

        self.expect(TokenType.RPAREN, "Mismatched parentheses")

        if not function.is_variadic and len(args) != function.arity:
            raise ArityError(name_token.value, function.arity, len(args), name_token)

        return FunctionCall(name_token.value, function, args)

    def _parse_argument(self, name_token: Token) -> ASTNode:
        token = self.current()
        if token.type in _OPERAND_TERMINATORS:
            raise ParseError(f"Missing argument for function {name_token.value}", token)
        return self.parse_expression(0)

    def parse_parenthesized(self) -> ASTNode:
        """
        Parse parenthesized expression: (expr).

        Returns:
            The inner node
        """
        self.expect(TokenType.LPAREN)

        if self.current().type == TokenType.RPAREN:
            raise ParseError("Empty parentheses", self.current())

        inner = self.parse_expression(0)

        if self.current().type == TokenType.COMMA:
            raise ParseError("Unexpected comma", self.current())

        self.expect(TokenType.RPAREN, "Mismatched parentheses")
        return inner
