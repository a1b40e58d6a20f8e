"""
Collection pass: the canonical, deduplicated list of translation items.

Run right before serialization or bulk export; never maintained
incrementally. Walking the tree in document order, each node's label, hint,
help and validation-message items are visited once. The pass assigns the
final serialization id to each surviving item.

NOTE: ids are mutated in place. Anything holding an item sees its new id
as soon as the pass returns (save, copy, translation export all run it).
"""

from __future__ import annotations

import logging
from typing import Optional, TYPE_CHECKING

from formlingo.config import ITEXT_SLOTS

if TYPE_CHECKING:
    from formlingo.itext import ItextItem
    from formlingo.models import FormNode, FormTree

logger = logging.getLogger(__name__)


def default_itext_root(tree: FormTree, node: FormNode) -> str:
    """Stem used for generated ids: the node's path below the data root.

    Choice items have no path of their own and use ``<select root>-<id>``.
    """
    if node.kind == "Item" and node.parent is not None:
        return default_itext_root(tree, node.parent) + "-" + node.node_id
    path: Optional[str] = tree.get_absolute_path(node, exclude_root=True)
    if not path:
        if node.parent is not None:
            parent_path = tree.get_absolute_path(node.parent, exclude_root=True) or ""
            path = parent_path + "/" + node.node_id
        else:
            path = "/" + node.node_id
    return path[1:]


def default_itext_id(tree: FormTree, node: FormNode, slot: str) -> str:
    """Generated id for ``slot`` (``label``, ``hint``, ``help``, ``constraintMsg``)."""
    return f"{default_itext_root(tree, node)}-{slot}"


def get_itext_items_from_tree(tree: FormTree, empty: bool = False) -> list[ItextItem]:
    """Walk the tree, resolve item ids and return the items to serialize.

    Items with ``auto_id`` set (or a blank id) are renamed to their generated
    id. Collisions are resolved by suffixing ``2``, ``3``, ... except that an
    empty item never forces a renumber: it is dropped instead.

    Args:
        tree: The form document
        empty: Also return items without any text

    Returns:
        Items in document order, each exactly once
    """
    result: list[ItextItem] = []
    seen: set[str] = set()
    by_id: dict[str, ItextItem] = {}

    for node in tree.walk():
        for attr, slot in ITEXT_SLOTS.items():
            item = node.itext.get(attr)
            if item is None:
                continue
            if not item.key:
                logger.warning("Ignoring translation item without a key: %s", item.id)
                continue
            if item.key in seen:
                continue
            seen.add(item.key)

            item_is_empty = item.is_empty()
            if item_is_empty and not empty:
                continue

            if item.auto_id or not item.id:
                candidate = default_itext_id(tree, node, slot)
            else:
                candidate = item.id
            if item_is_empty and candidate in by_id:
                continue

            item_id = candidate
            count = 2
            while item_id in by_id:
                item_id = f"{candidate}{count}"
                count += 1
            if item_id != item.id:
                logger.debug("Translation item %s id %r -> %r", item.key, item.id, item_id)
            item.id = item_id
            by_id[item_id] = item
            result.append(item)
    return result
