"""
Recursive-descent parser turning XPath text into expression nodes.

Grammar (XPath 1.0, lowest precedence first):

    Expr        := OrExpr
    OrExpr      := AndExpr ('or' AndExpr)*
    AndExpr     := EqualityExpr ('and' EqualityExpr)*
    EqualityExpr:= RelationalExpr (('=' | '!=') RelationalExpr)*
    Relational  := AdditiveExpr (('<' | '<=' | '>' | '>=') AdditiveExpr)*
    Additive    := MultiplicativeExpr (('+' | '-') MultiplicativeExpr)*
    Multiplic.  := UnaryExpr (('*' | 'div' | 'mod') UnaryExpr)*
    UnaryExpr   := '-' UnaryExpr | UnionExpr
    UnionExpr   := PathExpr ('|' PathExpr)*
    PathExpr    := LocationPath | FilterExpr (('/' | '//') RelativePath)?
"""

from __future__ import annotations

from formlingo.xpath.lexer import (
    AXIS,
    EOF,
    FUNCTION,
    LITERAL,
    NAME,
    NODE_TYPE,
    NUMBER,
    OPERATOR,
    PUNCT,
    STAR,
    VARIABLE,
    Token,
    XPathSyntaxError,
    tokenize,
)
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


def _descendant_or_self() -> Step:
    return Step("descendant-or-self", NodeTest(node_type="node"))


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    # ------------------------------------------------------------------
    # token helpers
    # ------------------------------------------------------------------

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def at(self, kind: str, *values: str) -> bool:
        token = self.current
        if token.kind != kind:
            return False
        return not values or token.value in values

    def expect(self, kind: str, value: str | None = None) -> Token:
        if not self.at(kind, *((value,) if value is not None else ())):
            self.fail(f"Expected {value or kind}")
        return self.advance()

    def fail(self, message: str) -> None:
        token = self.current
        found = token.value or "end of expression"
        raise XPathSyntaxError(f"{message}, found {found!r}", self.text, token.position)

    # ------------------------------------------------------------------
    # grammar
    # ------------------------------------------------------------------

    def parse(self) -> Expr:
        if self.at(EOF):
            self.fail("Empty expression")
        expr = self.parse_or()
        if not self.at(EOF):
            self.fail("Unexpected trailing input")
        return expr

    def _binary(self, operand, operators: tuple[str, ...]) -> Expr:
        left = operand()
        while self.at(OPERATOR, *operators):
            op = self.advance().value
            right = operand()
            left = BinaryExpr(op, left, right)
        return left

    def parse_or(self) -> Expr:
        return self._binary(self.parse_and, ("or",))

    def parse_and(self) -> Expr:
        return self._binary(self.parse_equality, ("and",))

    def parse_equality(self) -> Expr:
        return self._binary(self.parse_relational, ("=", "!="))

    def parse_relational(self) -> Expr:
        return self._binary(self.parse_additive, ("<", "<=", ">", ">="))

    def parse_additive(self) -> Expr:
        return self._binary(self.parse_multiplicative, ("+", "-"))

    def parse_multiplicative(self) -> Expr:
        return self._binary(self.parse_unary, ("*", "div", "mod"))

    def parse_unary(self) -> Expr:
        if self.at(OPERATOR, "-"):
            self.advance()
            return UnaryExpr(self.parse_unary())
        return self.parse_union()

    def parse_union(self) -> Expr:
        return self._binary(self.parse_path, ("|",))

    def parse_path(self) -> Expr:
        if self.at(OPERATOR, "/", "//"):
            return self.parse_absolute_path()
        if self._starts_primary():
            primary = self.parse_primary()
            predicates = self.parse_predicates()
            if self.at(OPERATOR, "/", "//"):
                filt = FilterExpr(primary, predicates)
                steps = self.parse_path_tail()
                return PathExpr(InitialContext.EXPR, steps, filt)
            if predicates:
                return FilterExpr(primary, predicates)
            return primary
        return PathExpr(InitialContext.RELATIVE, self.parse_relative_path())

    def _starts_primary(self) -> bool:
        return (
            self.at(VARIABLE)
            or self.at(LITERAL)
            or self.at(NUMBER)
            or self.at(FUNCTION)
            or self.at(PUNCT, "(")
        )

    def parse_absolute_path(self) -> PathExpr:
        if self.advance().value == "//":
            steps = [_descendant_or_self()] + self.parse_relative_path()
            return PathExpr(InitialContext.ROOT, steps)
        # a lone "/" selects the root node
        if self._starts_step():
            return PathExpr(InitialContext.ROOT, self.parse_relative_path())
        return PathExpr(InitialContext.ROOT, [])

    def parse_path_tail(self) -> list[Step]:
        steps: list[Step] = []
        while self.at(OPERATOR, "/", "//"):
            if self.advance().value == "//":
                steps.append(_descendant_or_self())
            steps.append(self.parse_step())
        return steps

    def parse_relative_path(self) -> list[Step]:
        steps = [self.parse_step()]
        steps.extend(self.parse_path_tail())
        return steps

    def _starts_step(self) -> bool:
        return (
            self.at(NAME)
            or self.at(STAR)
            or self.at(AXIS)
            or self.at(NODE_TYPE)
            or self.at(PUNCT, ".", "..", "@")
        )

    def parse_step(self) -> Step:
        if self.at(PUNCT, "."):
            self.advance()
            return Step("self", NodeTest(node_type="node"))
        if self.at(PUNCT, ".."):
            self.advance()
            return Step("parent", NodeTest(node_type="node"))
        axis = "child"
        if self.at(PUNCT, "@"):
            self.advance()
            axis = "attribute"
        elif self.at(AXIS):
            axis = self.advance().value
            self.expect(PUNCT, "::")
        test = self.parse_node_test()
        return Step(axis, test, self.parse_predicates())

    def parse_node_test(self) -> NodeTest:
        if self.at(NAME):
            return NodeTest(name=self.advance().value)
        if self.at(STAR):
            self.advance()
            return NodeTest(name="*")
        if self.at(NODE_TYPE):
            node_type = self.advance().value
            self.expect(PUNCT, "(")
            literal = None
            if node_type == "processing-instruction" and self.at(LITERAL):
                literal = self._literal(self.advance())
            self.expect(PUNCT, ")")
            return NodeTest(node_type=node_type, literal=literal)
        self.fail("Expected a node test")

    def parse_predicates(self) -> list[Expr]:
        predicates: list[Expr] = []
        while self.at(PUNCT, "["):
            self.advance()
            predicates.append(self.parse_or())
            self.expect(PUNCT, "]")
        return predicates

    def parse_primary(self) -> Expr:
        token = self.advance()
        if token.kind == VARIABLE:
            return VariableRef(token.value)
        if token.kind == LITERAL:
            return self._literal(token)
        if token.kind == NUMBER:
            return NumberLiteral(token.value)
        if token.kind == FUNCTION:
            self.expect(PUNCT, "(")
            args: list[Expr] = []
            if not self.at(PUNCT, ")"):
                args.append(self.parse_or())
                while self.at(PUNCT, ","):
                    self.advance()
                    args.append(self.parse_or())
            self.expect(PUNCT, ")")
            return FunctionCall(token.value, args)
        # "(" Expr ")"
        expr = self.parse_or()
        self.expect(PUNCT, ")")
        return expr

    @staticmethod
    def _literal(token: Token) -> StringLiteral:
        return StringLiteral(token.value[1:-1], quote=token.value[0])


def parse(text: str) -> Expr:
    """Parse an XPath expression.

    Args:
        text: Expression source, e.g. ``"/data/age > 5"``

    Returns:
        Root expression node

    Raises:
        XPathSyntaxError: if the text is not a valid expression
    """
    return _Parser(text).parse()
