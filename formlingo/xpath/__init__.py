"""XPath 1.0 parsing: text to structural expression and back."""

from formlingo.xpath.lexer import XPathSyntaxError
from formlingo.xpath.nodes import (
    BinaryExpr,
    Expr,
    FilterExpr,
    FunctionCall,
    InitialContext,
    NodeTest,
    NumberLiteral,
    PathExpr,
    Step,
    StringLiteral,
    UnaryExpr,
    VariableRef,
)
from formlingo.xpath.parser import parse

__all__ = [
    "parse",
    "XPathSyntaxError",
    "Expr",
    "BinaryExpr",
    "UnaryExpr",
    "FilterExpr",
    "FunctionCall",
    "PathExpr",
    "Step",
    "NodeTest",
    "InitialContext",
    "StringLiteral",
    "NumberLiteral",
    "VariableRef",
]
