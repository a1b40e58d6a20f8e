"""
Reference graph: which node properties mention which nodes.

Every absolute path found in a reference-bearing property becomes one
``Reference`` record. The records for a (node, property) pair are always
replaced together: ``update_references`` clears them and re-adds them from
the current text in one call.

When nodes get new paths (rename, move, duplicate) ``update_paths`` finds
the properties that reference them and rewrites their text. Writing the text
goes back through ``FormTree.set_property``, whose listener recomputes the
records of that one property.

Limitations:
- Relative paths are not tracked
- Lookup is a linear scan, fine for forms of a few hundred questions
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional, TYPE_CHECKING

from formlingo.diagnostics import PARSE_WARNING, Diagnostic, DiagnosticLog
from formlingo.expression import LogicExpression
from formlingo.kinds import property_label
from formlingo.xpath import InitialContext

if TYPE_CHECKING:
    from formlingo.models import FormNode, FormTree, PathMap

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Reference:
    """One occurrence of an absolute path inside a property value.

    Attributes:
        node: ufid of the node whose property holds the path
        property: Property name, e.g. ``relevant``
        ref: ufid of the referenced node, "" if it did not resolve
        path: Path text as written (with predicates)
        source_path: Absolute path of ``node`` when the record was made
    """
    node: str
    property: str
    ref: str
    path: str
    source_path: str


def in_subtree(path: str, subtree: Optional[str]) -> bool:
    """True if ``path`` is ``subtree`` or one of its descendants."""
    if not subtree:
        return True
    return path == subtree or path.startswith(subtree + "/")


class LogicManager:
    """Flat registry of ``Reference`` records for one form."""

    def __init__(
        self,
        tree: FormTree,
        diagnostics: Optional[DiagnosticLog] = None,
        allowed_data_node_references: Iterable[str] = (),
    ):
        self.tree = tree
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.allowed_data_node_references = list(allowed_data_node_references)
        self.all: list[Reference] = []

    # ------------------------------------------------------------------
    # Per-property maintenance
    # ------------------------------------------------------------------

    def clear_references(self, node: FormNode, property: str) -> None:
        self.all = [
            r for r in self.all
            if r.node != node.ufid or r.property != property
        ]

    def add_references(self, node: FormNode, property: str) -> None:
        """Parse the property's text and append a record per absolute path."""
        expr = LogicExpression(node.get_property(property))
        paths = [
            p for p in expr.get_paths()
            if p.initial_context == InitialContext.ROOT
        ]
        key = f"{node.ufid}-{property}-badpath"
        messages: list[str] = []
        source_path = self.tree.get_absolute_path(node) or ""

        for path in paths:
            path_text = path.path_without_predicates()
            ref_node = self.tree.get_by_path(path_text)
            if ref_node is None and not self._is_allowed_external(path_text):
                messages.append(
                    f"The question '{node.node_id}' references an unknown question "
                    f"{path.to_xpath()} in its {property_label(property)}."
                )
            self.all.append(Reference(
                node=node.ufid,
                property=property,
                ref=ref_node.ufid if ref_node is not None else "",
                path=path.to_xpath(),
                source_path=source_path,
            ))

        if messages:
            logger.debug("Unknown references in %s.%s: %d", node.node_id, property, len(messages))
            self.diagnostics.update(Diagnostic(key, PARSE_WARNING, messages))
        else:
            self.diagnostics.clear(key)

    def _is_allowed_external(self, path_text: str) -> bool:
        # strip "/<root>/" and compare with the configured external paths
        second_slash = path_text.find("/", 1)
        without_root = path_text[second_slash + 1:] if second_slash != -1 else ""
        return without_root in self.allowed_data_node_references

    def update_references(self, node: FormNode, property: str) -> None:
        self.clear_references(node, property)
        self.add_references(node, property)

    def update_all_references(self, node: FormNode) -> None:
        """Recompute every reference-bearing property of ``node``'s kind."""
        for property in node.kind_info.references:
            self.update_references(node, property)

    def refresh_source_paths(self, path_map: PathMap) -> None:
        """Record the new source path of nodes that were renamed or moved."""
        new_paths = {ufid: paths[1] for ufid, paths in path_map.items()}
        self.all = [
            replace(r, source_path=new_paths[r.node]) if r.node in new_paths else r
            for r in self.all
        ]

    def clear_all_references(self, node: FormNode) -> None:
        """Forget every record whose source is ``node``."""
        self.all = [r for r in self.all if r.node != node.ufid]
        for property in node.kind_info.references:
            self.diagnostics.clear(f"{node.ufid}-{property}-badpath")

    # ------------------------------------------------------------------
    # Path rewriting
    # ------------------------------------------------------------------

    def update_path(self, node_ufid: str, from_path: str, to_path: str,
                    subtree: Optional[str] = None) -> None:
        """Rewrite references to one node that moved from ``from_path`` to ``to_path``.

        Args:
            node_ufid: ufid of the node whose path changed
            from_path: Old absolute path
            to_path: New absolute path
            subtree: Only rewrite properties of nodes at or below this path
        """
        if from_path == to_path:
            return
        self.update_paths({node_ufid: [from_path, to_path]}, subtree)

    def update_paths(self, path_map: PathMap, subtree: Optional[str] = None) -> int:
        """Rewrite references to several nodes whose paths changed together.

        Each (node, property) pair is rewritten at most once per call, with
        every substitution of ``path_map`` applied to the same expression.

        Args:
            path_map: ``{ufid: [old_path, new_path]}``
            subtree: Only rewrite properties of nodes at or below this path

        Returns:
            Number of property values written back
        """
        found = [
            r for r in self.all
            if r.ref in path_map and in_subtree(r.source_path, subtree)
        ]
        seen: set[tuple[str, str]] = set()
        written = 0
        for record in found:
            pkey = (record.node, record.property)
            if pkey in seen:
                continue
            seen.add(pkey)
            node = self.tree.get_by_ufid(record.node)
            if node is None:
                continue
            expr = LogicExpression(node.get_property(record.property))
            original = expr.get_text()
            for old_path, new_path in path_map.values():
                expr.update_path(old_path, new_path)
            text = expr.get_text()
            if text != original:
                logger.debug("Rewriting %s.%s: %r -> %r", node.node_id, record.property, original, text)
                self.tree.set_property(node, record.property, text)
                written += 1
        return written

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def references_from(self, node: FormNode, property: Optional[str] = None) -> list[Reference]:
        return [
            r for r in self.all
            if r.node == node.ufid and (property is None or r.property == property)
        ]

    def references_to(self, node: FormNode) -> list[Reference]:
        return [r for r in self.all if r.ref == node.ufid]

    def reset(self) -> None:
        self.all = []
