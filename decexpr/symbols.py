"""
Case-insensitive symbol table for variables.

A variable is bound to a number, to the source text of a sub-expression,
to a list of numbers, or to a zero-argument callable. Sub-expressions are
parsed and evaluated every time the variable is read, so they always see
the current bindings. Callables are likewise invoked on every read.

A list variable can only be read as the sole argument of a variadic
function, where it stands for the whole argument list: ``SUM(X)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple, Union

import yaml

from .core.errors import ArgumentError

Value = Union[Decimal, str, Tuple[Decimal, ...], Callable[[], Any]]


def canonical_name(name: str) -> str:
    """Fold a name to the single case used for lookups."""
    return name.upper()


def to_decimal(value: Any) -> Decimal:
    """
    Convert a host number to a finite Decimal.

    Floats go through their shortest repr so ``0.1`` becomes ``Decimal("0.1")``.

    Raises:
        ArgumentError: For non-numbers, booleans, NaN and infinities
    """
    if isinstance(value, bool):
        raise ArgumentError(f"Booleans are not numbers: {value!r}")
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        number = Decimal(repr(value))
    else:
        raise ArgumentError(f"Unsupported numeric value: {value!r}")
    if not number.is_finite():
        raise ArgumentError(f"Numeric value must be finite, got {value!r}")
    return number


def to_decimal_list(values: Any) -> Tuple[Decimal, ...]:
    """Convert a list or tuple of host numbers."""
    return tuple(to_decimal(value) for value in values)


@dataclass(frozen=True)
class SymbolEntry:
    """
    One binding in the symbol table.

    Attributes:
        name: Name as given by the caller (for display)
        value: A Decimal, sub-expression source text, a tuple of Decimals,
            or a zero-argument callable
    """

    name: str
    value: Value

    @property
    def is_expression(self) -> bool:
        return isinstance(self.value, str)

    @property
    def is_list(self) -> bool:
        return isinstance(self.value, tuple)

    @property
    def is_lazy(self) -> bool:
        return callable(self.value)


class SymbolTable:
    """Mapping from case-folded variable name to its binding."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._entries: Dict[str, SymbolEntry] = {}
        if values:
            self.update(values)

    def set(self, name: str, value: Any) -> None:
        """
        Bind a variable, replacing any existing binding of the same name.

        Args:
            name: Variable name (any letter case)
            value: Number (int, float, Decimal), sub-expression string,
                list or tuple of numbers, or a callable taking no arguments

        Raises:
            ArgumentError: For an empty name or an unsupported value
        """
        entry = self.entry(name, value)
        self._entries[canonical_name(name)] = entry

    @staticmethod
    def entry(name: str, value: Any) -> SymbolEntry:
        """Validate a binding without storing it."""
        if not isinstance(name, str) or not name.strip():
            raise ArgumentError("Variable name must be a non-empty string")
        if isinstance(value, str):
            text = value.strip()
            if not text:
                raise ArgumentError(f"Empty expression bound to variable '{name}'")
            return SymbolEntry(name, text)
        if isinstance(value, (list, tuple)):
            return SymbolEntry(name, to_decimal_list(value))
        if callable(value):
            return SymbolEntry(name, value)
        return SymbolEntry(name, to_decimal(value))

    def get(self, name: str) -> Optional[SymbolEntry]:
        """Get the binding for a name, or None if it is not bound."""
        return self._entries.get(canonical_name(name))

    def remove(self, name: str) -> None:
        self._entries.pop(canonical_name(name), None)

    def update(self, values: Mapping[str, Any]) -> None:
        """Bind several variables; nothing is bound if any value is invalid."""
        entries = [self.entry(name, value) for name, value in values.items()]
        for entry in entries:
            self._entries[canonical_name(entry.name)] = entry

    def names(self) -> list:
        """Variable names as originally given."""
        return [entry.name for entry in self._entries.values()]

    def copy(self) -> "SymbolTable":
        new_table = SymbolTable()
        new_table._entries = dict(self._entries)
        return new_table

    def __contains__(self, name: str) -> bool:
        return canonical_name(name) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SymbolEntry]:
        return iter(list(self._entries.values()))

    def __repr__(self) -> str:
        return f"SymbolTable({self.names()})"

    @staticmethod
    def read_yaml(path: Union[str, Path]) -> Dict[str, Any]:
        """
        Load a variables document.

        Expected layout::

            precision: 10        # optional
            rounding: HALF_EVEN  # optional
            variables:
              rate: 0.05
              total: "price * (1 + rate)"
              samples: [1, 2, 3.5]

        Returns:
            The parsed document with ``variables`` normalized to a dict
        """
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ArgumentError(f"Variables file {path} must contain a mapping")

        variables = data.get("variables") or {}
        if not isinstance(variables, dict):
            raise ArgumentError(f"'variables' in {path} must be a mapping")

        data["variables"] = {str(name): _yaml_value(name, value) for name, value in variables.items()}
        return data

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SymbolTable":
        """Create a table holding the variables of a YAML file."""
        return cls(cls.read_yaml(path)["variables"])


def _yaml_value(name: Any, value: Any) -> Value:
    if isinstance(value, bool) or value is None:
        raise ArgumentError(f"Variable '{name}' must be a number or an expression string")
    if isinstance(value, list):
        items = [_yaml_value(name, item) for item in value]
        if not all(isinstance(item, Decimal) for item in items):
            raise ArgumentError(f"List variable '{name}' must hold numbers only")
        return tuple(items)
    if isinstance(value, (int, float)):
        return to_decimal(value)
    text = str(value)
    try:
        # Quoted numbers stay exact ("0.1" should not pass through float)
        number = Decimal(text)
    except InvalidOperation:
        return text
    return number if number.is_finite() else text
