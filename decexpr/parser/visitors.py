"""
Visitor implementations for expression trees.

Visitors traverse and operate on tree nodes:
- EvalVisitor: Evaluate a tree to a Decimal under a precision context
- RPNVisitor: Render a tree in reverse Polish notation
- BooleanVisitor: Decide whether a tree produces a truth value

Variables bound to sub-expression text are parsed on every read and
evaluated by the same visitor, so nested resolution shares one cycle guard.
"""

import decimal
from decimal import Decimal
from typing import Any, Callable, List, Optional, Tuple

from ..context import FunctionDef, OperatorDef
from ..core.errors import (
    ArgumentError,
    CyclicReferenceError,
    EvaluationError,
    ExpressionArithmeticError,
    ExpressionError,
    ResolutionDepthError,
    UnknownVariableError,
)
from ..precision import PrecisionConfig
from ..symbols import SymbolEntry, SymbolTable, canonical_name
from .ast import ASTNode, BinaryOp, FunctionCall, Number, UnaryOp, Variable

SubexpressionParser = Callable[[str], ASTNode]

DEFAULT_MAX_DEPTH = 64


class _ResolutionStack:
    """Names currently being resolved, innermost last."""

    def __init__(self, max_depth: int):
        self.max_depth = max_depth
        self._frames: List[Tuple[str, str]] = []

    def push(self, entry: SymbolEntry) -> None:
        key = canonical_name(entry.name)
        keys = [frame_key for frame_key, _ in self._frames]
        if key in keys:
            start = keys.index(key)
            chain = [name for _, name in self._frames[start:]] + [entry.name]
            raise CyclicReferenceError(chain)
        if len(self._frames) >= self.max_depth:
            raise ResolutionDepthError(entry.name, self.max_depth)
        self._frames.append((key, entry.name))

    def pop(self) -> None:
        self._frames.pop()


class EvalVisitor:
    """
    Evaluate a tree to a Decimal.

    Every evaluation runs inside ``decimal.localcontext`` built from the
    precision config, so the caller's thread context is never modified.
    Literals and numeric variables are rounded to the active precision
    when read; results of operators and functions are used as returned.

    Args:
        symbols: Variable bindings
        parse: Parses a sub-expression bound to a variable
        precision: Precision and rounding for this evaluation
        max_depth: Bound on nested sub-expression resolution
    """

    def __init__(
        self,
        symbols: SymbolTable,
        parse: SubexpressionParser,
        precision: PrecisionConfig,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.symbols = symbols
        self.parse = parse
        self.precision = precision
        self._stack = _ResolutionStack(max_depth)

    def evaluate(self, node: ASTNode) -> Decimal:
        """
        Evaluate a tree.

        Raises:
            ExpressionArithmeticError: For any arithmetic failure
            ExpressionError: For unresolved names, cycles and bad arguments
        """
        try:
            with decimal.localcontext(self.precision.to_decimal_context()):
                return node.accept(self)
        except ExpressionError:
            raise
        except ZeroDivisionError as exc:
            raise ExpressionArithmeticError("Division by zero") from exc
        except decimal.DecimalException as exc:
            raise ExpressionArithmeticError(
                f"Arithmetic error: {type(exc).__name__}",
                details={"condition": type(exc).__name__},
            ) from exc
        except OverflowError as exc:
            raise ExpressionArithmeticError(f"Numeric overflow: {exc}") from exc
        except RecursionError as exc:
            raise EvaluationError("Expression nested too deeply") from exc

    def visit_number(self, node: Number) -> Decimal:
        return decimal.getcontext().plus(node.value)

    def visit_variable(self, node: Variable) -> Decimal:
        entry = self.symbols.get(node.name)
        if entry is None:
            raise UnknownVariableError(node.name)
        if entry.is_list:
            raise ArgumentError(
                f"List variable '{entry.name}' can only be the sole argument of a variadic function"
            )
        if entry.is_expression:
            return self._resolve(entry)
        if entry.is_lazy:
            return self._resolve_lazy(entry)
        return decimal.getcontext().plus(entry.value)

    def _resolve(self, entry: SymbolEntry) -> Decimal:
        self._stack.push(entry)
        try:
            return self.parse(entry.value).accept(self)
        finally:
            self._stack.pop()

    def _resolve_lazy(self, entry: SymbolEntry) -> Decimal:
        self._stack.push(entry)
        try:
            value = as_result(entry.name, entry.value())
        finally:
            self._stack.pop()
        return decimal.getcontext().plus(value)

    def visit_binary_op(self, node: BinaryOp) -> Decimal:
        left = node.left.accept(self)
        right = node.right.accept(self)
        return self._apply(node.operator, [left, right])

    def visit_unary_op(self, node: UnaryOp) -> Decimal:
        operand = node.operand.accept(self)
        return self._apply(node.operator, [operand])

    def visit_function_call(self, node: FunctionCall) -> Decimal:
        function = node.function
        values = self._list_argument(node)
        if values is not None:
            rounded = [decimal.getcontext().plus(value) for value in values]
            if function.lazy:
                args: List[Any] = [_constant(value) for value in rounded]
            else:
                args = rounded
        elif function.lazy:
            args = [self._thunk(arg) for arg in node.args]
        else:
            args = [arg.accept(self) for arg in node.args]
        return self._apply(function, args)

    def _list_argument(self, node: FunctionCall) -> Optional[Tuple[Decimal, ...]]:
        """Values of a list variable passed alone to a variadic function."""
        if not node.function.is_variadic or len(node.args) != 1:
            return None
        arg = node.args[0]
        if not isinstance(arg, Variable):
            return None
        entry = self.symbols.get(arg.name)
        if entry is None or not entry.is_list:
            return None
        return entry.value

    def _thunk(self, node: ASTNode) -> Callable[[], Decimal]:
        return lambda: node.accept(self)

    def _apply(self, definition: Any, args: List[Any]) -> Decimal:
        return as_result(definition, definition.evaluate(args))


def as_result(definition: Any, value: Any) -> Decimal:
    """
    Coerce the return value of a rule (or a lazy binding) to a Decimal.

    Raises:
        EvaluationError: If the rule returned something that is not a number
        ExpressionArithmeticError: If the result is NaN or infinite
    """
    if isinstance(value, bool):
        return Decimal(1) if value else Decimal(0)
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        value = decimal.getcontext().create_decimal_from_float(value)
    name = definition_name(definition)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ExpressionArithmeticError(
                f"'{name}' produced a non-finite result: {value}",
                details={"name": name, "result": str(value)},
            )
        return value
    raise EvaluationError(
        f"'{name}' returned {type(value).__name__}, expected a number",
        details={"name": name, "type": type(value).__name__},
    )


class RPNVisitor:
    """
    Render a tree in reverse Polish notation.

    Unary operators carry a ``u`` suffix (``-u``); function arguments are
    preceded by a ``(`` marker. Variables bound to sub-expressions are
    expanded into the RPN of their expression.

    Examples:
    - 3 + 4 * 2 → "3 4 2 * +"
    - max(a, -b) → "( a b -u MAX"
    """

    def __init__(self, symbols: SymbolTable, parse: SubexpressionParser,
                 max_depth: int = DEFAULT_MAX_DEPTH):
        self.symbols = symbols
        self.parse = parse
        self._stack = _ResolutionStack(max_depth)

    def render(self, node: ASTNode) -> str:
        return " ".join(node.accept(self))

    def visit_number(self, node: Number) -> List[str]:
        return [node.text]

    def visit_variable(self, node: Variable) -> List[str]:
        entry = self.symbols.get(node.name)
        if entry is None or not entry.is_expression:
            return [node.name]
        self._stack.push(entry)
        try:
            return self.parse(entry.value).accept(self)
        finally:
            self._stack.pop()

    def visit_binary_op(self, node: BinaryOp) -> List[str]:
        return node.left.accept(self) + node.right.accept(self) + [node.op]

    def visit_unary_op(self, node: UnaryOp) -> List[str]:
        return node.operand.accept(self) + [f"{node.op}u"]

    def visit_function_call(self, node: FunctionCall) -> List[str]:
        tokens = ["("]
        for arg in node.args:
            tokens.extend(arg.accept(self))
        tokens.append(node.key)
        return tokens


class BooleanVisitor:
    """
    Decide whether a tree yields a truth value.

    A tree is boolean when its outermost operator or function is declared
    boolean. ``IF`` is boolean exactly when its else-branch is.
    """

    def visit_number(self, node: Number) -> bool:
        return False

    def visit_variable(self, node: Variable) -> bool:
        return False

    def visit_binary_op(self, node: BinaryOp) -> bool:
        return node.operator.boolean

    def visit_unary_op(self, node: UnaryOp) -> bool:
        return node.operator.boolean

    def visit_function_call(self, node: FunctionCall) -> bool:
        if node.key == "IF" and node.args:
            return node.args[-1].accept(self)
        return node.function.boolean


def _constant(value: Decimal) -> Callable[[], Decimal]:
    return lambda: value


def definition_name(definition: Any) -> str:
    if isinstance(definition, str):
        return definition
    if isinstance(definition, FunctionDef):
        return definition.name
    if isinstance(definition, OperatorDef):
        return definition.symbol
    return repr(definition)
