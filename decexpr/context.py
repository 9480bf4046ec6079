"""
Extension registry for operators and functions.

The registry is the table the parser consults to recognize operator symbols
and function names, and the evaluator consults to run them. It defines:
- Operator precedence and associativity
- Unary and binary operator forms of the same symbol
- Function arity (fixed or variadic)
- The evaluation rule attached to every definition

Names are case-insensitive: ``testSum`` and ``TESTSUM`` are the same function.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Union

from .core.errors import ArgumentError
from .symbols import canonical_name

# Arity sentinel: the function accepts any number (including zero) of arguments
VARIADIC = -1

# Characters that can never be part of an operator symbol
_RESERVED_OPERATOR_CHARS = frozenset("(),")


class Associativity(Enum):
    """Operator associativity."""

    LEFT = "left"
    RIGHT = "right"
    NONE = "none"


class DefinitionKind(Enum):
    """Where a definition came from."""

    BUILTIN_FUNCTION = "builtin_function"
    USER_FUNCTION = "user_function"
    BUILTIN_OPERATOR = "builtin_operator"
    USER_OPERATOR = "user_operator"


class Evaluable(Protocol):
    """Anything that maps an ordered argument list to a number."""

    def evaluate(self, args: List[Decimal]) -> Decimal:
        ...


Rule = Union[Callable[[List[Any]], Any], Evaluable]


def _as_callable(rule: Rule) -> Callable[[List[Any]], Any]:
    if callable(rule):
        return rule
    evaluate = getattr(rule, "evaluate", None)
    if callable(evaluate):
        return evaluate
    raise ArgumentError(f"Evaluation rule {rule!r} is neither callable nor has evaluate()")


@dataclass(frozen=True)
class FunctionDef:
    """
    Definition of a function.

    Attributes:
        name: Function name (lookup is case-insensitive)
        arity: Exact argument count, or VARIADIC
        rule: Callable (or object with ``evaluate``) taking the argument list
        lazy: Rule receives zero-argument callables instead of values
        boolean: Result is a truth value (1 or 0)
        kind: BUILTIN_FUNCTION or USER_FUNCTION
    """

    name: str
    arity: int
    rule: Rule
    lazy: bool = False
    boolean: bool = False
    kind: DefinitionKind = DefinitionKind.USER_FUNCTION
    _call: Callable[[List[Any]], Any] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise ArgumentError("Function name must be a non-empty string")
        if any(ch.isspace() or ch in _RESERVED_OPERATOR_CHARS for ch in self.name):
            raise ArgumentError(f"Invalid function name '{self.name}'", self.name)
        if not isinstance(self.arity, int) or self.arity < VARIADIC:
            raise ArgumentError(
                f"Arity of '{self.name}' must be a non-negative integer or VARIADIC",
                self.name,
            )
        object.__setattr__(self, "_call", _as_callable(self.rule))

    @property
    def key(self) -> str:
        return canonical_name(self.name)

    @property
    def is_variadic(self) -> bool:
        return self.arity == VARIADIC

    def evaluate(self, args: List[Any]) -> Any:
        return self._call(args)


@dataclass(frozen=True)
class OperatorDef:
    """
    Definition of an operator.

    Attributes:
        symbol: Operator symbol, e.g. ``+`` or ``<=``
        precedence: Binding strength (higher = binds tighter)
        associativity: LEFT or RIGHT (NONE parses like LEFT)
        rule: Callable (or object with ``evaluate``) taking [left, right] or [operand]
        unary: Prefix operator taking one operand
        boolean: Result is a truth value (1 or 0)
        kind: BUILTIN_OPERATOR or USER_OPERATOR
    """

    symbol: str
    precedence: int
    associativity: Associativity
    rule: Rule
    unary: bool = False
    boolean: bool = False
    kind: DefinitionKind = DefinitionKind.USER_OPERATOR
    _call: Callable[[List[Any]], Any] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not isinstance(self.symbol, str) or not self.symbol:
            raise ArgumentError("Operator symbol must be a non-empty string")
        for ch in self.symbol:
            if ch.isalnum() or ch.isspace() or ch == "_" or ch in _RESERVED_OPERATOR_CHARS:
                raise ArgumentError(
                    f"Invalid character '{ch}' in operator symbol '{self.symbol}'",
                    self.symbol,
                )
        if not isinstance(self.associativity, Associativity):
            object.__setattr__(self, "associativity", Associativity(self.associativity))
        object.__setattr__(self, "_call", _as_callable(self.rule))

    @property
    def arity(self) -> int:
        return 1 if self.unary else 2

    @property
    def key(self) -> str:
        return canonical_name(self.symbol)

    def evaluate(self, args: List[Any]) -> Any:
        return self._call(args)


class Registry:
    """
    Case-insensitive table of function and operator definitions.

    Registering a name that already exists replaces the old definition, so
    user definitions shadow built-ins. Parsed trees hold on to the definition
    objects they were built with; re-registering only affects later parses.
    """

    def __init__(self):
        self._functions: Dict[str, FunctionDef] = {}
        self._binary: Dict[str, OperatorDef] = {}
        self._unary: Dict[str, OperatorDef] = {}

    def add_function(self, definition: FunctionDef) -> Optional[FunctionDef]:
        """
        Register a function, replacing any function of the same name.

        Returns:
            The replaced definition, or None
        """
        if not isinstance(definition, FunctionDef):
            raise ArgumentError(f"Expected a FunctionDef, got {type(definition).__name__}")
        previous = self._functions.get(definition.key)
        self._functions[definition.key] = definition
        return previous

    def add_operator(self, definition: OperatorDef) -> Optional[OperatorDef]:
        """
        Register an operator, replacing the operator with the same symbol and form.

        Returns:
            The replaced definition, or None
        """
        if not isinstance(definition, OperatorDef):
            raise ArgumentError(f"Expected an OperatorDef, got {type(definition).__name__}")
        table = self._unary if definition.unary else self._binary
        previous = table.get(definition.key)
        table[definition.key] = definition
        return previous

    def get_function(self, name: str) -> Optional[FunctionDef]:
        return self._functions.get(canonical_name(name))

    def get_operator(self, symbol: str, unary: bool = False) -> Optional[OperatorDef]:
        table = self._unary if unary else self._binary
        return table.get(canonical_name(symbol))

    def has_function(self, name: str) -> bool:
        return canonical_name(name) in self._functions

    def get_operator_precedence(self, op: str, is_unary: bool = False) -> int:
        """
        Get the precedence of an operator.

        Returns:
            Precedence value (higher = binds tighter), 0 for unknown operators
        """
        definition = self.get_operator(op, unary=is_unary)
        return definition.precedence if definition else 0

    def get_operator_associativity(self, op: str, is_unary: bool = False) -> Associativity:
        definition = self.get_operator(op, unary=is_unary)
        return definition.associativity if definition else Associativity.LEFT

    def operator_symbols(self) -> frozenset:
        """All registered symbols, unary and binary."""
        return frozenset(op.symbol for op in self.operators())

    def functions(self) -> List[FunctionDef]:
        return list(self._functions.values())

    def operators(self) -> List[OperatorDef]:
        return list(self._binary.values()) + list(self._unary.values())

    def function_names(self) -> List[str]:
        return sorted(self._functions)

    def update(self, definitions: Iterable[Union[FunctionDef, OperatorDef]]) -> None:
        for definition in definitions:
            if isinstance(definition, OperatorDef):
                self.add_operator(definition)
            else:
                self.add_function(definition)

    def copy(self) -> "Registry":
        """Create a copy; definitions are immutable and shared."""
        new_registry = Registry()
        new_registry._functions = dict(self._functions)
        new_registry._binary = dict(self._binary)
        new_registry._unary = dict(self._unary)
        return new_registry

    def __contains__(self, name: str) -> bool:
        key = canonical_name(name)
        return key in self._functions or key in self._binary or key in self._unary

    def __repr__(self) -> str:
        return (
            f"Registry(functions={len(self._functions)}, "
            f"operators={len(self._binary) + len(self._unary)})"
        )
