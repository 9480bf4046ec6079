"""
Expression parser package.

Tokenizer, tree nodes, the precedence-climbing parser and the visitors that
evaluate and render trees.
"""

from .ast import ASTNode, ASTVisitor, BinaryOp, FunctionCall, Number, UnaryOp, Variable, walk
from .parser import Parser
from .tokenizer import Token, TokenType, Tokenizer
from .visitors import BooleanVisitor, EvalVisitor, RPNVisitor

__all__ = [
    "Token",
    "TokenType",
    "Tokenizer",
    "ASTNode",
    "ASTVisitor",
    "Number",
    "Variable",
    "BinaryOp",
    "UnaryOp",
    "FunctionCall",
    "walk",
    "Parser",
    "EvalVisitor",
    "RPNVisitor",
    "BooleanVisitor",
]
