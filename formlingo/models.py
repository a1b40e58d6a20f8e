"""
In-memory form document tree.

The reference engine never owns nodes: it identifies them by ``ufid`` and
resolves paths through the tree. This module is the concrete tree the
engine runs against. It offers path lookup, property access, and structural
edits (rename, move, duplicate, remove) that fire notifications carrying
the ``{ufid: [old_path, new_path]}`` map of every node whose absolute path
changed.

Design Philosophy:
- Identity matters, content does not: nodes compare by identity
- Absolute paths are derived on demand from node ids, never stored
- Structural edits finish mutating the tree before notifying anyone
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from formlingo.events import Eventful
from formlingo.kinds import NodeKind, get_kind


def _new_ufid() -> str:
    return uuid.uuid4().hex[:8]


@dataclass(eq=False)
class FormNode:
    """A single question, group or choice in the form.

    Attributes:
        kind: Node kind name (see ``formlingo.kinds.KINDS``)
        node_id: Element name, unique among siblings
        properties: Plain property values (conditions, calculations, labels)
        itext: Translation slot -> item (``label_itext``, ``hint_itext``, ...)
        ufid: Stable opaque identity
    """
    kind: str
    node_id: str
    properties: dict[str, Any] = field(default_factory=dict)
    itext: dict[str, Any] = field(default_factory=dict)
    ufid: str = field(default_factory=_new_ufid)
    parent: Optional[FormNode] = field(default=None, repr=False)
    children: list[FormNode] = field(default_factory=list, repr=False)

    @property
    def kind_info(self) -> NodeKind:
        return get_kind(self.kind)

    def get_property(self, name: str) -> Any:
        if name == "node_id":
            return self.node_id
        return self.properties.get(name)

    def iter_subtree(self) -> Iterator[FormNode]:
        """Yield this node and all descendants in document order."""
        yield self
        for child in self.children:
            yield from child.iter_subtree()


PathMap = dict[str, list[str]]


class FormTree(Eventful):
    """Ordered tree of form nodes under a single data root.

    Usage:
        tree = FormTree()
        age = tree.add_node("Int", "age")
        tree.get_absolute_path(age)   # "/data/age"
        tree.rename(age, "years")     # fires node-renamed
    """

    def __init__(self, root_name: str = "data"):
        self.root_name = root_name
        self.children: list[FormNode] = []
        self._by_ufid: dict[str, FormNode] = {}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def base_path(self) -> str:
        return "/" + self.root_name

    def walk(self) -> Iterator[FormNode]:
        """Depth-first traversal in document order."""
        for child in self.children:
            yield from child.iter_subtree()

    def __iter__(self) -> Iterator[FormNode]:
        return self.walk()

    def __len__(self) -> int:
        return len(self._by_ufid)

    def get_by_ufid(self, ufid: str) -> Optional[FormNode]:
        return self._by_ufid.get(ufid)

    def get_absolute_path(self, node: FormNode, exclude_root: bool = False) -> Optional[str]:
        """Return ``/<root>/a/b`` for a data node, None for control-only nodes.

        With ``exclude_root`` the root element is left out: ``/a/b``.
        """
        if node.kind_info.is_control_only:
            return None
        parts = []
        current: Optional[FormNode] = node
        while current is not None:
            parts.append(current.node_id)
            current = current.parent
        base = "" if exclude_root else self.base_path
        return base + "/" + "/".join(reversed(parts))

    def get_by_path(self, path: str) -> Optional[FormNode]:
        """Resolve an absolute, predicate-free path to a node."""
        prefix = self.base_path + "/"
        if not path or not path.startswith(prefix):
            return None
        siblings = self.children
        node = None
        for name in path[len(prefix):].split("/"):
            node = next(
                (n for n in siblings if n.node_id == name and not n.kind_info.is_control_only),
                None,
            )
            if node is None:
                return None
            siblings = node.children
        return node

    def _siblings(self, parent: Optional[FormNode]) -> list[FormNode]:
        return parent.children if parent is not None else self.children

    def _path_map(self, node: FormNode) -> dict[str, str]:
        paths = {}
        for n in node.iter_subtree():
            path = self.get_absolute_path(n)
            if path is not None:
                paths[n.ufid] = path
        return paths

    @staticmethod
    def _diff_paths(before: dict[str, str], after: dict[str, str]) -> PathMap:
        return {
            ufid: [old, after[ufid]]
            for ufid, old in before.items()
            if ufid in after and after[ufid] != old
        }

    def _check_placement(self, kind: NodeKind, parent: Optional[FormNode]) -> None:
        if parent is None:
            if kind.name == "Item":
                raise ValueError("Choice items must be added to a select question")
        elif not parent.kind_info.allows_child(kind):
            raise ValueError(f"{parent.kind} '{parent.node_id}' cannot contain {kind.name} nodes")

    def _check_unique(self, node_id: str, parent: Optional[FormNode],
                      ignore: Optional[FormNode] = None) -> None:
        for sibling in self._siblings(parent):
            if sibling is not ignore and sibling.node_id == node_id:
                raise ValueError(f"Duplicate node id '{node_id}' under {self._describe(parent)}")

    def _describe(self, parent: Optional[FormNode]) -> str:
        return self.get_absolute_path(parent) or parent.node_id if parent else self.base_path

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_node(
        self,
        kind: str,
        node_id: str,
        parent: Optional[FormNode] = None,
        position: Optional[int] = None,
        **properties: Any,
    ) -> FormNode:
        """Create a node under ``parent`` (top level if None) and fire ``node-added``."""
        info = get_kind(kind)
        self._check_placement(info, parent)
        self._check_unique(node_id, parent)
        node = FormNode(kind=kind, node_id=node_id, properties=dict(properties), parent=parent)
        siblings = self._siblings(parent)
        siblings.insert(len(siblings) if position is None else position, node)
        self._by_ufid[node.ufid] = node
        self.fire("node-added", node=node)
        return node

    def set_property(self, node: FormNode, name: str, value: Any) -> None:
        """Set a property value; ``node_id`` is routed through ``rename``."""
        if name == "node_id":
            self.rename(node, value)
            return
        previous = node.properties.get(name)
        if previous == value:
            return
        node.properties[name] = value
        self.fire("property-changed", node=node, property=name, value=value, previous=previous)

    def rename(self, node: FormNode, new_id: str) -> None:
        old_id = node.node_id
        if new_id == old_id:
            return
        if not new_id:
            raise ValueError("Node id cannot be empty")
        self._check_unique(new_id, node.parent, ignore=node)
        before = self._path_map(node)
        node.node_id = new_id
        after = self._path_map(node)
        self.fire(
            "node-renamed",
            node=node,
            old_id=old_id,
            new_id=new_id,
            old_path=before.get(node.ufid),
            new_path=after.get(node.ufid),
            path_map=self._diff_paths(before, after),
        )

    def move(self, node: FormNode, parent: Optional[FormNode], position: Optional[int] = None) -> None:
        """Move ``node`` (with its subtree) under ``parent`` at ``position``."""
        if parent is not None and any(n is parent for n in node.iter_subtree()):
            raise ValueError("Cannot move a node into its own subtree")
        self._check_placement(node.kind_info, parent)
        self._check_unique(node.node_id, parent, ignore=node)
        before = self._path_map(node)
        self._siblings(node.parent).remove(node)
        siblings = self._siblings(parent)
        siblings.insert(len(siblings) if position is None else position, node)
        node.parent = parent
        after = self._path_map(node)
        self.fire(
            "node-moved",
            node=node,
            old_path=before.get(node.ufid),
            new_path=after.get(node.ufid),
            path_map=self._diff_paths(before, after),
        )

    def duplicate(self, node: FormNode) -> FormNode:
        """Copy ``node`` and its subtree right after it; fire ``node-duplicated``.

        The copy gets fresh ufids and a ``copy-N-of-<id>`` node id. Property
        values are copied verbatim, so the copies still reference the
        originals until listeners rewrite them.
        """
        pairs: list[tuple[FormNode, FormNode]] = []

        def clone(source: FormNode, parent: Optional[FormNode]) -> FormNode:
            dup = FormNode(
                kind=source.kind,
                node_id=source.node_id,
                properties=copy.deepcopy(source.properties),
                itext=dict(source.itext),
                parent=parent,
            )
            pairs.append((source, dup))
            self._by_ufid[dup.ufid] = dup
            dup.children = [clone(child, dup) for child in source.children]
            return dup

        copy_node = clone(node, node.parent)
        siblings = self._siblings(node.parent)
        taken = {s.node_id for s in siblings}
        count = 1
        while f"copy-{count}-of-{node.node_id}" in taken:
            count += 1
        copy_node.node_id = f"copy-{count}-of-{node.node_id}"
        siblings.insert(siblings.index(node) + 1, copy_node)

        path_map: PathMap = {}
        for source, dup in pairs:
            old, new = self.get_absolute_path(source), self.get_absolute_path(dup)
            if old is not None and new is not None:
                path_map[source.ufid] = [old, new]
        self.fire(
            "node-duplicated",
            node=node,
            copy=copy_node,
            pairs=pairs,
            path_map=path_map,
            subtree=self.get_absolute_path(copy_node),
        )
        return copy_node

    def remove(self, node: FormNode) -> None:
        old_path = self.get_absolute_path(node)
        removed = list(node.iter_subtree())
        self._siblings(node.parent).remove(node)
        for n in removed:
            self._by_ufid.pop(n.ufid, None)
        self.fire("node-removed", node=node, removed=removed, old_path=old_path)
