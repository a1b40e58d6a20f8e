"""Recoverable problems found while editing a form.

Unknown path references, ignored languages and similar conditions are not
exceptions: document processing continues and the hosting UI shows the
collected messages. Each diagnostic has a key so that a later recompute can
replace or clear it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional

PARSE_WARNING = "parse-warning"
FORM_WARNING = "form-warning"
ERROR = "error"


@dataclass
class Diagnostic:
    """A keyed problem report with severity and human-readable detail."""

    key: str
    level: str  # parse-warning | form-warning | error
    messages: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return " ".join(self.messages)


class DiagnosticLog:
    """Ordered collection of diagnostics, at most one per key."""

    def __init__(self) -> None:
        self._items: dict[str, Diagnostic] = {}
        self._counter = 0

    def update(self, diagnostic: Diagnostic) -> None:
        self._items[diagnostic.key] = diagnostic

    def add(self, level: str, message: str, key: Optional[str] = None) -> Diagnostic:
        """Record an unkeyed (or explicitly keyed) one-off message."""
        if key is None:
            self._counter += 1
            key = f"{level}-{self._counter}"
        diagnostic = Diagnostic(key, level, [message])
        self.update(diagnostic)
        return diagnostic

    def clear(self, key: str) -> None:
        self._items.pop(key, None)

    def reset(self) -> None:
        self._items.clear()

    def get(self, key: str) -> Optional[Diagnostic]:
        return self._items.get(key)

    def by_level(self, level: str) -> list[Diagnostic]:
        return [d for d in self._items.values() if d.level == level]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: str) -> bool:
        return key in self._items
