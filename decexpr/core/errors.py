"""
Expression exceptions.

Every failure of tokenizing, parsing or evaluating an expression is reported
as a subclass of ExpressionError. Each error carries a human readable message
and a ``details`` dict with the machine readable parts (positions, names).
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from ..parser.tokenizer import Token


class ExpressionError(Exception):
    """Base exception for expression errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class LexError(ExpressionError, ValueError):
    """Raised when the source contains a character that starts no token"""

    def __init__(self, character: str, position: int):
        super().__init__(
            message=f"Invalid character at position {position}: '{character}'",
            details={"character": character, "position": position},
        )
        self.character = character
        self.position = position


class ParseError(ExpressionError):
    """Raised for a malformed token sequence"""

    def __init__(self, message: str, token: Optional["Token"] = None):
        self.token = token
        details: Dict[str, Any] = {}
        if token is not None:
            details = {"token": token.value, "position": token.pos}
            message = f"{message} at position {token.pos}: '{token.value}'"
        # Explicit base call: subclasses also mix in UnknownSymbolError
        ExpressionError.__init__(self, message, details)


class ArityError(ParseError):
    """Raised when a fixed-arity function is called with the wrong argument count"""

    def __init__(self, name: str, expected: int, got: int, token: Optional["Token"] = None):
        super().__init__(
            f"Function {name} expected {expected} parameters, got {got}", token
        )
        self.details.update({"function": name, "expected": expected, "got": got})
        self.expected = expected
        self.got = got


class UnknownSymbolError(ExpressionError, LookupError):
    """Raised when a variable, function or operator name cannot be resolved"""

    def __init__(self, message: str, name: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, {"name": name, **(details or {})})
        self.name = name


class UnknownOperatorError(ParseError, UnknownSymbolError):
    """Raised at parse time for an operator symbol that is not registered"""

    def __init__(self, symbol: str, token: "Token", unary: bool = False):
        kind = "unary operator" if unary else "operator"
        ParseError.__init__(self, f"Unknown {kind} '{symbol}'", token)
        self.name = symbol
        self.details["name"] = symbol
        self.unary = unary


class UnknownFunctionError(ParseError, UnknownSymbolError):
    """Raised at parse time for a call to a function that is not registered"""

    def __init__(self, name: str, token: "Token"):
        ParseError.__init__(self, f"Unknown function '{name}'", token)
        self.name = name
        self.details["name"] = name


class UnknownVariableError(UnknownSymbolError):
    """Raised at evaluation time for a variable with no binding"""

    def __init__(self, name: str):
        super().__init__(f"Unknown variable '{name}'", name)


class CyclicReferenceError(ExpressionError):
    """Raised when variable resolution loops back onto itself"""

    def __init__(self, chain: List[str]):
        self.chain = list(chain)
        super().__init__(
            f"Cyclic variable reference: {' -> '.join(self.chain)}",
            details={"chain": self.chain},
        )


class ExpressionArithmeticError(ExpressionError, ArithmeticError):
    """Raised for arithmetic failures (division by zero, domain errors, bad precision)"""


class ArgumentError(ExpressionError, ValueError):
    """Raised when a function rejects the supplied arguments"""

    def __init__(self, message: str, function: Optional[str] = None):
        details = {"function": function} if function else {}
        super().__init__(message, details)


class EvaluationError(ExpressionError):
    """Raised when a function or operator produces a non-numeric result"""


class ResolutionDepthError(ExpressionError):
    """Raised when nested variable resolution exceeds the configured depth"""

    def __init__(self, name: str, depth: int):
        super().__init__(
            f"Variable resolution deeper than {depth} levels at '{name}'",
            details={"name": name, "depth": depth},
        )
        self.name = name
        self.depth = depth
