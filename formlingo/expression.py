"""
Expression wrapper: one property value, parsed once.

A ``LogicExpression`` is built fresh from the current text of a node
property. It never retries a failed parse: invalid text is kept verbatim and
reported back unchanged by ``get_text()``.

Path substitution mutates the parsed structure in place. The path node
object stays the same; only its ``initial_context``, ``steps`` and ``filter``
fields are swapped for those of the freshly parsed target path.
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Any, Optional

from formlingo.xpath import Expr, PathExpr, XPathSyntaxError, parse


class ExpressionState(Enum):
    EMPTY = "empty"
    INVALID = "invalid"
    VALID = "valid"


class LogicExpression:
    """Lazily parsed view of a single XPath property value."""

    def __init__(self, text: Any):
        # project files may store numbers, e.g. a literal repeat count
        self._text = "" if text is None else str(text)
        self.parsed: Optional[Expr] = None
        if not self._text:
            self.state = ExpressionState.EMPTY
            return
        try:
            self.parsed = parse(self._text)
            self.state = ExpressionState.VALID
        except XPathSyntaxError:
            self.state = ExpressionState.INVALID

    @property
    def valid(self) -> bool:
        return self.state is ExpressionState.VALID

    def get_paths(self) -> list[PathExpr]:
        """Return every path expression, breadth first from the root."""
        paths: list[PathExpr] = []
        if self.parsed is None:
            return paths
        queue = deque([self.parsed])
        while queue:
            node = queue.popleft()
            if isinstance(node, PathExpr):
                paths.append(node)
            queue.extend(node.children())
        return paths

    def update_path(self, from_path: str, to_path: str) -> None:
        """Point every path whose text is exactly ``from_path`` at ``to_path``."""
        for path in self.get_paths():
            if path.to_xpath() != from_path:
                continue
            try:
                replacement = parse(to_path)
            except XPathSyntaxError:
                continue
            if not isinstance(replacement, PathExpr):
                continue
            path.initial_context = replacement.initial_context
            path.steps = replacement.steps
            path.filter = replacement.filter

    def get_text(self) -> str:
        if self.parsed is not None:
            return self.parsed.to_xpath()
        return self._text

    def __repr__(self) -> str:
        return f"LogicExpression({self._text!r}, state={self.state.value})"
