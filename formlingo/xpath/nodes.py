"""
Structural expression nodes produced by the XPath parser.

Every node knows how to:
- list its direct sub-expressions in declaration order (``children()``)
- serialize itself back to canonical XPath text (``to_xpath()``)

Design:
- Nodes are plain mutable objects. Path substitution replaces the fields of
  an existing ``PathExpr`` so that anything holding that node sees the
  new path without being re-linked.
- Serialization inserts the minimum parentheses required by operator
  precedence, so ``parse(e.to_xpath())`` is structurally equal to ``e``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class InitialContext(str, Enum):
    """Where a path expression starts evaluating."""
    ROOT = "root"          # /a/b
    RELATIVE = "relative"  # a/b, ./a, ../a
    EXPR = "expr"          # instance('x')/a


# Binding strength, lowest first
PRECEDENCE = {
    "or": 1,
    "and": 2,
    "=": 3, "!=": 3,
    "<": 4, "<=": 4, ">": 4, ">=": 4,
    "+": 5, "-": 5,
    "*": 6, "div": 6, "mod": 6,
}
UNARY_PRECEDENCE = 7
UNION_PRECEDENCE = 8
PRIMARY_PRECEDENCE = 9


class Expr:
    """Base class for all expression nodes."""

    precedence = PRIMARY_PRECEDENCE

    def children(self) -> list[Expr]:
        return []

    def to_xpath(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.to_xpath()


def _wrap(expr: Expr, min_precedence: int) -> str:
    text = expr.to_xpath()
    if expr.precedence < min_precedence:
        return f"({text})"
    return text


@dataclass(eq=False)
class BinaryExpr(Expr):
    op: str
    left: Expr
    right: Expr

    @property
    def precedence(self) -> int:
        if self.op == "|":
            return UNION_PRECEDENCE
        return PRECEDENCE[self.op]

    def children(self) -> list[Expr]:
        return [self.left, self.right]

    def to_xpath(self) -> str:
        prec = self.precedence
        # left-associative: an equal-precedence right operand needs parens
        left = _wrap(self.left, prec)
        right = _wrap(self.right, prec + 1)
        if self.op == "|":
            return f"{left} | {right}"
        return f"{left} {self.op} {right}"


@dataclass(eq=False)
class UnaryExpr(Expr):
    operand: Expr
    precedence = UNARY_PRECEDENCE

    def children(self) -> list[Expr]:
        return [self.operand]

    def to_xpath(self) -> str:
        return "-" + _wrap(self.operand, UNARY_PRECEDENCE)


@dataclass(eq=False)
class StringLiteral(Expr):
    value: str
    quote: str = '"'

    def to_xpath(self) -> str:
        quote = self.quote
        if quote in self.value:
            quote = "'" if quote == '"' else '"'
        return f"{quote}{self.value}{quote}"


@dataclass(eq=False)
class NumberLiteral(Expr):
    text: str

    @property
    def value(self) -> float:
        return float(self.text)

    def to_xpath(self) -> str:
        return self.text


@dataclass(eq=False)
class VariableRef(Expr):
    name: str

    def to_xpath(self) -> str:
        return f"${self.name}"


@dataclass(eq=False)
class FunctionCall(Expr):
    name: str
    args: list[Expr] = field(default_factory=list)

    def children(self) -> list[Expr]:
        return list(self.args)

    def to_xpath(self) -> str:
        return f"{self.name}({', '.join(a.to_xpath() for a in self.args)})"


@dataclass(eq=False)
class FilterExpr(Expr):
    """A primary expression followed by zero or more predicates."""
    expr: Expr
    predicates: list[Expr] = field(default_factory=list)

    def children(self) -> list[Expr]:
        return [self.expr] + list(self.predicates)

    def to_xpath(self) -> str:
        if isinstance(self.expr, PathExpr):
            # (/a)[1] and /a[1] select different nodes
            base = f"({self.expr.to_xpath()})"
        else:
            base = _wrap(self.expr, PRIMARY_PRECEDENCE)
        return base + "".join(f"[{p.to_xpath()}]" for p in self.predicates)


NODE_TYPES = ("node", "text", "comment", "processing-instruction")


@dataclass(eq=False)
class NodeTest:
    """Either a name test (``a``, ``jr:a``, ``*``, ``jr:*``) or a node type test."""
    name: Optional[str] = None
    node_type: Optional[str] = None
    literal: Optional[StringLiteral] = None

    def to_xpath(self) -> str:
        if self.node_type:
            arg = self.literal.to_xpath() if self.literal else ""
            return f"{self.node_type}({arg})"
        return self.name or "*"

    @property
    def is_any_node(self) -> bool:
        return self.node_type == "node"


@dataclass(eq=False)
class Step:
    axis: str
    test: NodeTest
    predicates: list[Expr] = field(default_factory=list)

    def children(self) -> list[Expr]:
        return list(self.predicates)

    def to_xpath(self, with_predicates: bool = True) -> str:
        if self.axis == "self" and self.test.is_any_node and not self.predicates:
            base = "."
        elif self.axis == "parent" and self.test.is_any_node and not self.predicates:
            base = ".."
        elif self.axis == "descendant-or-self" and self.test.is_any_node and not self.predicates:
            # serialized as the empty step between the two slashes of //
            base = ""
        elif self.axis == "child":
            base = self.test.to_xpath()
        elif self.axis == "attribute":
            base = "@" + self.test.to_xpath()
        else:
            base = f"{self.axis}::{self.test.to_xpath()}"
        if with_predicates:
            base += "".join(f"[{p.to_xpath()}]" for p in self.predicates)
        return base


@dataclass(eq=False)
class PathExpr(Expr):
    initial_context: InitialContext
    steps: list[Step] = field(default_factory=list)
    filter: Optional[FilterExpr] = None

    def children(self) -> list[Expr]:
        kids: list[Expr] = []
        if self.filter is not None:
            kids.append(self.filter)
        for step in self.steps:
            kids.extend(step.children())
        return kids

    def _render(self, with_predicates: bool) -> str:
        parts = "/".join(s.to_xpath(with_predicates) for s in self.steps)
        if self.initial_context == InitialContext.ROOT:
            return "/" + parts
        if self.initial_context == InitialContext.EXPR:
            base = self.filter.to_xpath() if self.filter is not None else ""
            return f"{base}/{parts}" if self.steps else base
        return parts

    def to_xpath(self) -> str:
        return self._render(with_predicates=True)

    def path_without_predicates(self) -> str:
        return self._render(with_predicates=False)
