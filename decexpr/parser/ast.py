"""
Expression tree node definitions.

Every node is a literal, a variable reference, or a call of an operator or
function. Call nodes keep the definition they were parsed against, so a
tree keeps its meaning even if the registry changes afterwards. Operations
on trees (evaluation, RPN rendering) are visitors.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Iterator, List, Protocol

from ..symbols import canonical_name

if TYPE_CHECKING:
    from ..context import FunctionDef, OperatorDef


class ASTVisitor(Protocol):
    """Visitor protocol for traversing expression trees."""

    def visit_number(self, node: "Number") -> Any:
        ...

    def visit_variable(self, node: "Variable") -> Any:
        ...

    def visit_binary_op(self, node: "BinaryOp") -> Any:
        ...

    def visit_unary_op(self, node: "UnaryOp") -> Any:
        ...

    def visit_function_call(self, node: "FunctionCall") -> Any:
        ...


class ASTNode(ABC):
    """Base class for all tree nodes."""

    @abstractmethod
    def accept(self, visitor: ASTVisitor) -> Any:
        """Accept a visitor for traversal."""
        pass

    @property
    def children(self) -> List["ASTNode"]:
        return []

    @abstractmethod
    def __repr__(self) -> str:
        pass


# Leaf Nodes


class Number(ASTNode):
    """
    Numeric literal, kept exact.

    Examples: 42, 3.14, .5, 1e-10, 0xCAFE
    """

    def __init__(self, value: Decimal, text: str):
        self.value = value
        self.text = text

    @classmethod
    def from_literal(cls, text: str) -> "Number":
        if text[:2] in ("0x", "0X"):
            return cls(Decimal(int(text[2:], 16)), text)
        return cls(Decimal(text), text)

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_number(self)

    def __repr__(self) -> str:
        return f"Number({self.text})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Number) and self.value == other.value


class Variable(ASTNode):
    """Variable reference, resolved through the symbol table at evaluation."""

    def __init__(self, name: str):
        self.name = name

    @property
    def key(self) -> str:
        return canonical_name(self.name)

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_variable(self)

    def __repr__(self) -> str:
        return f"Variable('{self.name}')"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Variable) and self.key == other.key


# Call Nodes


class BinaryOp(ASTNode):
    """
    Binary operator applied to two operands.

    Examples: 2 + 3, x * y, a ^ b
    """

    def __init__(self, left: ASTNode, operator: "OperatorDef", right: ASTNode):
        self.left = left
        self.operator = operator
        self.right = right

    @property
    def op(self) -> str:
        return self.operator.symbol

    @property
    def children(self) -> List[ASTNode]:
        return [self.left, self.right]

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_binary_op(self)

    def __repr__(self) -> str:
        return f"BinaryOp({self.left!r}, '{self.op}', {self.right!r})"

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, BinaryOp)
            and self.left == other.left
            and self.op == other.op
            and self.right == other.right
        )


class UnaryOp(ASTNode):
    """
    Prefix operator applied to one operand.

    Examples: -x, +5
    """

    def __init__(self, operator: "OperatorDef", operand: ASTNode):
        self.operator = operator
        self.operand = operand

    @property
    def op(self) -> str:
        return self.operator.symbol

    @property
    def children(self) -> List[ASTNode]:
        return [self.operand]

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_unary_op(self)

    def __repr__(self) -> str:
        return f"UnaryOp('{self.op}', {self.operand!r})"

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, UnaryOp)
            and self.op == other.op
            and self.operand == other.operand
        )


class FunctionCall(ASTNode):
    """
    Function call.

    Examples: sqrt(2), round(x, 2), max(a, b, c)
    """

    def __init__(self, name: str, function: "FunctionDef", args: List[ASTNode]):
        self.name = name
        self.function = function
        self.args = args

    @property
    def key(self) -> str:
        return canonical_name(self.name)

    @property
    def children(self) -> List[ASTNode]:
        return list(self.args)

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_function_call(self)

    def __repr__(self) -> str:
        args_repr = ", ".join(repr(arg) for arg in self.args)
        return f"FunctionCall('{self.name}', [{args_repr}])"

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, FunctionCall)
            and self.key == other.key
            and self.args == other.args
        )


def walk(node: ASTNode) -> Iterator[ASTNode]:
    """Yield node and its descendants, depth-first in source order."""
    yield node
    for child in node.children:
        yield from walk(child)
