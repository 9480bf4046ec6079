"""
Expression facade.

An Expression owns its source text, a symbol table, a registry of operators
and functions, and the precision context. It parses lazily on first use and
caches the tree, so repeated evaluation only re-resolves variables.

Example:
    >>> Expression("a + b").where("a", 1).where("B", "2 * a").eval()
    Decimal('3')
"""

from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Union

from .builtins import DEFAULT_CONSTANTS, default_registry
from .context import VARIADIC, FunctionDef, OperatorDef, Registry
from .core.config import get_settings
from .core.errors import ArgumentError, CyclicReferenceError, ExpressionError
from .core.logging import get_context_logger
from .parser.ast import ASTNode, Variable, walk
from .parser.parser import Parser
from .parser.visitors import BooleanVisitor, EvalVisitor, RPNVisitor
from .precision import PrecisionConfig, strip_zeros
from .symbols import SymbolTable, canonical_name

_CONSTANT_KEYS = frozenset(canonical_name(name) for name in DEFAULT_CONSTANTS)

Binding = Union[int, float, Decimal, str, Sequence[Any], Callable[[], Any]]


class ExpressionState(Enum):
    """Parse state of an Expression."""

    UNPARSED = "unparsed"
    PARSED = "parsed"
    PARSE_FAILED = "parse_failed"


class Expression:
    """
    An arithmetic expression evaluated with decimal precision.

    Mutators return the Expression so calls can be chained. An Expression is
    not safe for concurrent mutation and evaluation from several threads.

    Args:
        expression: Source text
        precision: Significant digits (default from settings)
        rounding: Rounding mode name or decimal constant (default from settings)
        symbols: Symbol table to share; a fresh one holding the constants if omitted
        registry: Registry to share; a copy of the built-ins if omitted
    """

    def __init__(
        self,
        expression: str,
        precision: Optional[int] = None,
        rounding: Any = None,
        *,
        symbols: Optional[SymbolTable] = None,
        registry: Optional[Registry] = None,
    ):
        if not isinstance(expression, str):
            raise ArgumentError(f"Expression source must be a string, got {type(expression).__name__}")

        settings = get_settings()
        self.expression = expression
        self.precision = PrecisionConfig.build(
            settings.DEFAULT_PRECISION if precision is None else precision,
            settings.DEFAULT_ROUNDING if rounding is None else rounding,
        )
        self.symbols = symbols if symbols is not None else SymbolTable(DEFAULT_CONSTANTS)
        self.registry = registry if registry is not None else default_registry()
        self.max_depth = settings.MAX_RESOLUTION_DEPTH
        self.first_variable_chars = "_"
        self.variable_chars = "_"

        self._tree: Optional[ASTNode] = None
        self._parse_error: Optional[ExpressionError] = None
        self.logger = get_context_logger(__name__, expression=expression)

    # Configuration

    def set_precision(self, precision: int) -> "Expression":
        """
        Set the number of significant digits.

        Raises:
            ExpressionArithmeticError: If precision is below 1
        """
        self.precision = self.precision.with_precision(precision)
        return self

    def set_rounding_mode(self, rounding: Any) -> "Expression":
        """
        Set the rounding mode (``"HALF_EVEN"``, ``decimal.ROUND_DOWN``, ...).

        Raises:
            ExpressionArithmeticError: If the mode is unknown
        """
        self.precision = self.precision.with_rounding(rounding)
        return self

    def set_first_variable_characters(self, chars: str) -> "Expression":
        self.first_variable_chars = chars
        self._discard_tree()
        return self

    def set_variable_characters(self, chars: str) -> "Expression":
        self.variable_chars = chars
        self._discard_tree()
        return self

    # Bindings and extensions

    def set_variable(self, name: str, value: Binding) -> "Expression":
        """
        Bind a variable.

        Sub-expression text is parsed and evaluated each time the variable is
        read, so it sees the bindings current at that evaluation. A callable
        taking no arguments is likewise called on every read. A list of
        numbers can be passed whole to a variadic function: ``SUM(X)``.
        """
        self.symbols.set(name, value)
        return self

    def where(self, name: str, value: Binding) -> "Expression":
        """Alias of set_variable."""
        return self.set_variable(name, value)

    def load_variables(self, path: Union[str, Path]) -> "Expression":
        """
        Bind the variables of a YAML file.

        Optional top-level ``precision`` and ``rounding`` keys configure this
        Expression as well. The file is applied as a whole: if any value is
        invalid, the Expression is left unchanged.
        """
        data = SymbolTable.read_yaml(path)
        precision = self.precision
        if data.get("precision") is not None:
            precision = precision.with_precision(data["precision"])
        if data.get("rounding") is not None:
            precision = precision.with_rounding(data["rounding"])

        self.symbols.update(data["variables"])
        self.precision = precision
        self.logger.debug(
            "Loaded variables",
            extra_data={"path": str(path), "count": len(data["variables"])},
        )
        return self

    def add_function(self, definition: FunctionDef) -> "Expression":
        """Register a function; it shadows any function of the same name."""
        self.registry.add_function(definition)
        self._discard_tree()
        return self

    def add_operator(self, definition: OperatorDef) -> "Expression":
        """Register an operator; it shadows the operator with the same symbol and form."""
        self.registry.add_operator(definition)
        self._discard_tree()
        return self

    def function(
        self, name: str, arity: int = VARIADIC, *, lazy: bool = False, boolean: bool = False
    ) -> Callable:
        """
        Decorator registering a function on this Expression.

        Example:
            >>> expr = Expression("double(21)")
            >>> @expr.function("double", 1)
            ... def double(args):
            ...     return args[0] * 2
        """

        def decorator(rule: Callable) -> Callable:
            self.add_function(FunctionDef(name, arity, rule, lazy=lazy, boolean=boolean))
            return rule

        return decorator

    def _discard_tree(self) -> None:
        # A failed parse stays failed; only a good tree is rebuilt
        if self._parse_error is None:
            self._tree = None

    # Parsing and evaluation

    @property
    def state(self) -> ExpressionState:
        if self._parse_error is not None:
            return ExpressionState.PARSE_FAILED
        if self._tree is not None:
            return ExpressionState.PARSED
        return ExpressionState.UNPARSED

    def _parser(self) -> Parser:
        return Parser(self.registry, self.first_variable_chars, self.variable_chars)

    def _parse_subexpression(self, text: str) -> ASTNode:
        return self._parser().parse(text)

    def parse(self) -> ASTNode:
        """
        Parse the source, once.

        Raises:
            LexError, ParseError: On the first call that fails, and on every
                call after that
        """
        if self._parse_error is not None:
            raise self._parse_error
        if self._tree is None:
            try:
                self._tree = self._parser().parse(self.expression)
            except ExpressionError as e:
                self._parse_error = e
                self.logger.warning("Parse failed", extra_data={"error": e.message})
                raise
            self.logger.debug("Parsed expression")
        return self._tree

    def eval(self, strip_trailing_zeros: bool = True) -> Decimal:
        """
        Evaluate the expression.

        Args:
            strip_trailing_zeros: Normalize ``2.500`` to ``2.5``

        Returns:
            The result, rounded to the configured precision

        Raises:
            ExpressionError: Any parse or evaluation failure; bindings are
                left untouched so a corrected evaluation may follow
        """
        tree = self.parse()
        visitor = EvalVisitor(
            self.symbols, self._parse_subexpression, self.precision, self.max_depth
        )
        try:
            result = visitor.evaluate(tree)
        except CyclicReferenceError as e:
            self.logger.warning("Cyclic variable reference", extra_data={"chain": e.chain})
            raise
        except ExpressionError as e:
            self.logger.debug("Evaluation failed", extra_data={"error": e.message})
            raise

        self.logger.debug("Evaluated expression", extra_data={"result": str(result)})
        if strip_trailing_zeros:
            return strip_zeros(result)
        return result

    # Introspection

    def to_rpn(self) -> str:
        """Reverse Polish rendering, with sub-expression variables expanded."""
        visitor = RPNVisitor(self.symbols, self._parse_subexpression, self.max_depth)
        return visitor.render(self.parse())

    def used_variables(self) -> List[str]:
        """
        Variables referenced by the source, in order of first appearance.

        Built-in constants (PI, e, ...) are not reported.
        """
        names: List[str] = []
        seen = set()
        for node in walk(self.parse()):
            if not isinstance(node, Variable):
                continue
            if node.key in seen or node.key in _CONSTANT_KEYS:
                continue
            seen.add(node.key)
            names.append(node.name)
        return names

    def declared_variables(self) -> List[str]:
        return self.symbols.names()

    def declared_functions(self) -> List[str]:
        return [function.name for function in self.registry.functions()]

    def declared_operators(self) -> List[str]:
        return sorted(self.registry.operator_symbols())

    def is_boolean(self) -> bool:
        """True when the outermost operation yields a truth value."""
        return self.parse().accept(BooleanVisitor())

    def __str__(self) -> str:
        return self.expression

    def __repr__(self) -> str:
        return f"Expression({self.expression!r}, state={self.state.value})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Expression):
            return NotImplemented
        return self.expression == other.expression

    def __hash__(self) -> int:
        return hash(self.expression)

