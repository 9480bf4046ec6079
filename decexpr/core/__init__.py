"""
Core infrastructure: settings, error types and logging.
"""

from .config import Settings, get_settings
from .errors import (
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
from .logging import get_context_logger, setup_logging

__all__ = [
    "Settings",
    "get_settings",
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
    "setup_logging",
    "get_context_logger",
]
