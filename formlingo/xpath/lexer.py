"""
Tokenizer for XPath 1.0 expressions.

Implements the lexical disambiguation rules from the XPath 1.0
recommendation (section 3.7):
- ``*`` is a name test, and ``and``/``or``/``div``/``mod`` are names, unless
  the previous token can end an operand
- a name followed by ``(`` is a function name or node type
- a name followed by ``::`` is an axis name
"""

from __future__ import annotations

import re
from dataclasses import dataclass


class XPathSyntaxError(ValueError):
    """Raised when text is not a valid XPath expression."""

    def __init__(self, message: str, text: str = "", position: int = -1):
        self.text = text
        self.position = position
        if position >= 0:
            message = f"{message} at position {position} in {text!r}"
        super().__init__(message)


# Token kinds
NUMBER = "number"
LITERAL = "literal"
NAME = "name"            # QName or prefix:* name test
STAR = "star"            # * used as a name test
OPERATOR = "operator"    # and or div mod * / // | + - = != < <= > >=
FUNCTION = "function"
NODE_TYPE = "nodetype"
AXIS = "axis"
VARIABLE = "variable"
PUNCT = "punct"          # ( ) [ ] . .. @ , ::
EOF = "eof"

NODE_TYPE_NAMES = {"comment", "text", "processing-instruction", "node"}
OPERATOR_NAMES = {"and", "or", "div", "mod"}
AXIS_NAMES = {
    "ancestor", "ancestor-or-self", "attribute", "child", "descendant",
    "descendant-or-self", "following", "following-sibling", "namespace",
    "parent", "preceding", "preceding-sibling", "self",
}

NCNAME = r"[^\W\d][\w.\-]*"
QNAME_RE = re.compile(rf"{NCNAME}(?::(?:{NCNAME}|\*))?")
NUMBER_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")
WHITESPACE_RE = re.compile(r"\s+")

# longest first so that // wins over / and != over =
SYMBOLS = ["//", "::", "..", "!=", "<=", ">=", "/", "|", "+", "-", "=", "<", ">",
           "(", ")", "[", "]", ".", "@", ",", "*"]
SYMBOL_OPERATORS = {"//", "/", "|", "+", "-", "=", "!=", "<", "<=", ">", ">="}


@dataclass
class Token:
    kind: str
    value: str
    position: int

    def is_(self, kind: str, value: str | None = None) -> bool:
        return self.kind == kind and (value is None or self.value == value)


def _operand_may_end(prev: Token | None) -> bool:
    """Whether the previous token allows an operator to follow."""
    if prev is None:
        return False
    if prev.kind == OPERATOR:
        return False
    if prev.kind in (AXIS, FUNCTION, NODE_TYPE):
        return False
    if prev.kind == PUNCT and prev.value in ("@", "::", "(", "[", ","):
        return False
    return True


def _next_non_space(text: str, pos: int) -> int:
    m = WHITESPACE_RE.match(text, pos)
    return m.end() if m else pos


def tokenize(text: str) -> list[Token]:
    """Split an expression into tokens, ending with an EOF token.

    Raises:
        XPathSyntaxError: on an unterminated literal or unknown character
    """
    tokens: list[Token] = []
    pos = 0
    length = len(text)

    def prev() -> Token | None:
        return tokens[-1] if tokens else None

    while pos < length:
        m = WHITESPACE_RE.match(text, pos)
        if m:
            pos = m.end()
            continue
        ch = text[pos]

        if ch in "\"'":
            end = text.find(ch, pos + 1)
            if end == -1:
                raise XPathSyntaxError("Unterminated string literal", text, pos)
            tokens.append(Token(LITERAL, text[pos:end + 1], pos))
            pos = end + 1
            continue

        m = NUMBER_RE.match(text, pos)
        if m:
            tokens.append(Token(NUMBER, m.group(0), pos))
            pos = m.end()
            continue

        if ch == "$":
            m = QNAME_RE.match(text, pos + 1)
            if not m or m.group(0).endswith("*"):
                raise XPathSyntaxError("Invalid variable reference", text, pos)
            tokens.append(Token(VARIABLE, m.group(0), pos))
            pos = m.end()
            continue

        m = QNAME_RE.match(text, pos)
        if m:
            name = m.group(0)
            if _operand_may_end(prev()):
                if name in OPERATOR_NAMES:
                    tokens.append(Token(OPERATOR, name, pos))
                    pos = m.end()
                    continue
            after = _next_non_space(text, m.end())
            if text.startswith("::", after) and name in AXIS_NAMES:
                tokens.append(Token(AXIS, name, pos))
            elif text.startswith("(", after) and not name.endswith("*"):
                kind = NODE_TYPE if name in NODE_TYPE_NAMES else FUNCTION
                tokens.append(Token(kind, name, pos))
            else:
                tokens.append(Token(NAME, name, pos))
            pos = m.end()
            continue

        for sym in SYMBOLS:
            if text.startswith(sym, pos):
                if sym == "*":
                    kind = OPERATOR if _operand_may_end(prev()) else STAR
                elif sym in SYMBOL_OPERATORS:
                    kind = OPERATOR
                else:
                    kind = PUNCT
                tokens.append(Token(kind, sym, pos))
                pos += len(sym)
                break
        else:
            raise XPathSyntaxError(f"Unexpected character {ch!r}", text, pos)

    tokens.append(Token(EOF, "", length))
    return tokens
