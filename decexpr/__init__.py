"""
decexpr - arbitrary-precision decimal expression evaluator.

Parses infix formulas with variables, functions and user-defined operators,
and evaluates them with ``decimal.Decimal`` at a configurable precision.
"""

from .builtins import DEFAULT_CONSTANTS, default_registry
from .context import (
    VARIADIC,
    Associativity,
    DefinitionKind,
    Evaluable,
    FunctionDef,
    OperatorDef,
    Registry,
)
from .core.errors import (
    ArgumentError,
    ArityError,
    CyclicReferenceError,
    EvaluationError,
    ExpressionArithmeticError,
    ExpressionError,
    LexError,
    ParseError,
    ResolutionDepthError,
    UnknownFunctionError,
    UnknownOperatorError,
    UnknownSymbolError,
    UnknownVariableError,
)
from .core.logging import setup_logging
from .expression import Expression, ExpressionState
from .precision import PrecisionConfig
from .symbols import SymbolTable

__version__ = "0.1.0"

__all__ = [
    "Expression",
    "ExpressionState",
    "SymbolTable",
    "Registry",
    "FunctionDef",
    "OperatorDef",
    "Evaluable",
    "Associativity",
    "DefinitionKind",
    "VARIADIC",
    "PrecisionConfig",
    "DEFAULT_CONSTANTS",
    "default_registry",
    "setup_logging",
    "ExpressionError",
    "LexError",
    "ParseError",
    "ArityError",
    "UnknownSymbolError",
    "UnknownOperatorError",
    "UnknownFunctionError",
    "UnknownVariableError",
    "CyclicReferenceError",
    "ResolutionDepthError",
    "ExpressionArithmeticError",
    "ArgumentError",
    "EvaluationError",
]
