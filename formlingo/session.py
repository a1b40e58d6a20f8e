"""
One open form: tree, translations, reference graph and diagnostics.

``FormSession`` is the only object that knows about all four. It subscribes
to the tree's notifications and keeps the other three consistent:

    Tree event          Effect
    ----------          ------
    property-changed    recompute references of that property
    node-renamed        rewrite expressions and output tags, label follows id
    node-moved          rewrite expressions and output tags
    node-duplicated     clone the copies' text, rewrite within the copy only
    node-removed        drop the removed nodes' references, re-check dependents

The session itself fires ``label-text-changed`` (node, text) whenever a
rewrite changes the default text of a node's label.

Project files are JSON::

    {
      "config": {...},
      "languages": ["en", "es"],
      "default_language": "en",
      "translations": {"age-label": {"default": {"en": "Age"}}},
      "nodes": [{"kind": "Int", "id": "age", "properties": {}, "itext": {"label": "age-label"}}]
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from formlingo.bulk import generate_itext_tsv, parse_itext_tsv
from formlingo.collect import default_itext_id, get_itext_items_from_tree
from formlingo.config import IDS_LANGUAGE, ITEXT_SLOTS, SessionConfig
from formlingo.diagnostics import DiagnosticLog
from formlingo.events import Event, Eventful
from formlingo.itext import ItextItem, ItextModel
from formlingo.itext_xml import parse_itext, write_itext
from formlingo.models import FormNode, FormTree
from formlingo.outputs import rewrite_output_refs
from formlingo.references import LogicManager
from formlingo.validation import validate_node

logger = logging.getLogger(__name__)

# slot name used in ids and project files -> node attribute
SLOT_ATTRIBUTES = {name: attr for attr, name in ITEXT_SLOTS.items()}


class FormSession(Eventful):
    """Editing context for a single form document.

    Usage:
        session = FormSession(SessionConfig(languages=["en"]))
        age = session.add_node("Int", "age")
        q = session.add_node("Text", "q", relevant="/data/age > 5")
        session.rename(age, "years")
        q.properties["relevant"]   # "/data/years > 5"
    """

    def __init__(self, config: Optional[SessionConfig] = None):
        self.config = config or SessionConfig()
        self.tree = FormTree(self.config.data_root)
        self.itext = ItextModel()
        for lang in self.config.languages:
            self.itext.add_language(lang)
        if self.config.languages:
            self.itext.set_default_language(self.config.default_language)
        self.diagnostics = DiagnosticLog()
        self.logic = LogicManager(
            self.tree,
            self.diagnostics,
            self.config.allowed_data_node_references,
        )

        self.tree.on("property-changed", self._on_property_changed, self)
        self.tree.on("node-renamed", self._on_node_renamed, self)
        self.tree.on("node-moved", self._on_node_moved, self)
        self.tree.on("node-duplicated", self._on_node_duplicated, self)
        self.tree.on("node-removed", self._on_node_removed, self)

    # ==========================================================================
    # Editing
    # ==========================================================================

    def add_node(
        self,
        kind: str,
        node_id: str,
        parent: Optional[FormNode] = None,
        position: Optional[int] = None,
        **properties: Any,
    ) -> FormNode:
        """Add a node with fresh translation items and computed references."""
        node = self.tree.add_node(kind, node_id, parent, position, **properties)
        self.itext.update_for_new_node(node)
        self.logic.update_all_references(node)
        return node

    def set_property(self, node: FormNode, name: str, value: Any) -> None:
        self.tree.set_property(node, name, value)

    def rename(self, node: FormNode, new_id: str) -> None:
        self.tree.rename(node, new_id)

    def move(self, node: FormNode, parent: Optional[FormNode], position: Optional[int] = None) -> None:
        self.tree.move(node, parent, position)

    def duplicate(self, node: FormNode) -> FormNode:
        return self.tree.duplicate(node)

    def remove(self, node: FormNode) -> None:
        self.tree.remove(node)

    def get_node(self, path_or_id: str) -> Optional[FormNode]:
        """Find a node by absolute path, or else by the first matching node id."""
        if path_or_id.startswith("/"):
            return self.tree.get_by_path(path_or_id)
        return next((n for n in self.tree.walk() if n.node_id == path_or_id), None)

    def set_itext_id(self, node: FormNode, slot: str, item_id: str,
                     unlink: bool = False, auto_id: bool = False) -> ItextItem:
        """Give the item in ``slot`` a new id.

        With ``unlink`` the node gets its own copy of the item first, so other
        nodes sharing it keep the old id and text.
        """
        attr = SLOT_ATTRIBUTES.get(slot, slot)
        item = node.itext.get(attr)
        if item is None:
            raise KeyError(f"{node.kind} '{node.node_id}' has no {slot} text")
        if unlink:
            item = item.clone()
            node.itext[attr] = item
        item.id = item_id
        item.auto_id = auto_id
        return item

    # ==========================================================================
    # Tree notifications
    # ==========================================================================

    def _on_property_changed(self, event: Event) -> None:
        if event.property in event.node.kind_info.references:
            self.logic.update_references(event.node, event.property)

    def _on_node_renamed(self, event: Event) -> None:
        self._paths_changed(event)
        item = event.node.itext.get("label_itext")
        if item is not None and item.default_value() == event.old_id:
            item.set_default_value(event.new_id)
            self._fire_label_changes([item])

    def _on_node_moved(self, event: Event) -> None:
        self._paths_changed(event)

    def _paths_changed(self, event: Event) -> None:
        self.logic.refresh_source_paths(event.path_map)
        written = self.logic.update_paths(event.path_map)
        logger.debug("%s: rewrote %d expressions", event.type, written)
        if event.old_path and event.new_path:
            self._rewrite_outputs(
                self.itext.get_items(),
                event.old_path,
                event.new_path,
                event.node.kind_info.is_special_group,
            )

    def _on_node_duplicated(self, event: Event) -> None:
        cloned: list[ItextItem] = []
        for _, dup in event.pairs:
            for attr, item in list(dup.itext.items()):
                if item is not None:
                    dup.itext[attr] = item.clone()
                    cloned.append(dup.itext[attr])
            self.logic.update_all_references(dup)
        if event.subtree:
            self.logic.update_paths(event.path_map, event.subtree)
        for source, _ in event.pairs:
            if source.ufid in event.path_map:
                old_path, new_path = event.path_map[source.ufid]
                self._rewrite_outputs(cloned, old_path, new_path, source.kind_info.is_special_group)

    def _on_node_removed(self, event: Event) -> None:
        removed = {n.ufid for n in event.removed}
        for node in event.removed:
            self.logic.clear_all_references(node)
        dependents = {
            (r.node, r.property) for r in self.logic.all if r.ref in removed
        }
        for ufid, property in dependents:
            node = self.tree.get_by_ufid(ufid)
            if node is not None:
                self.logic.update_references(node, property)

    def _rewrite_outputs(self, items: list[ItextItem], old_path: str, new_path: str,
                         is_group: bool) -> None:
        changed = rewrite_output_refs(items, self.itext, old_path, new_path, is_group)
        if changed:
            self._fire_label_changes(changed)

    def _fire_label_changes(self, items: list[ItextItem]) -> None:
        keys = {item.key for item in items}
        for node in self.tree.walk():
            item = node.itext.get("label_itext")
            if item is not None and item.key in keys:
                self.fire("label-text-changed", node=node, text=self.display_name(node))

    # ==========================================================================
    # Display and translation output
    # ==========================================================================

    @property
    def display_language(self) -> str:
        return self.config.display_language or self.itext.default_language

    def display_name(self, node: FormNode, lang: Optional[str] = None) -> str:
        """Label text shown in the question tree, falling back to the node id."""
        lang = lang or self.display_language
        if lang == IDS_LANGUAGE:
            return node.node_id
        item = node.itext.get("label_itext")
        text = item.get_value("default", lang) if item is not None else None
        return text or node.node_id

    def collect_items(self, empty: bool = False) -> list[ItextItem]:
        return get_itext_items_from_tree(self.tree, empty)

    def itext_xml(self) -> str:
        return write_itext(self.itext, self.collect_items())

    def load_itext_xml(self, xml_text: str) -> None:
        parse_itext(
            xml_text,
            self.itext,
            langs=self.config.languages or None,
            warnings=self.diagnostics,
        )

    def export_translations(self) -> str:
        return generate_itext_tsv(self.tree, self.itext)

    def import_translations(self, text: str) -> int:
        return parse_itext_tsv(self.tree, self.itext, text)

    def validate(self) -> dict[str, list[str]]:
        """Map the path (or id) of each node with problems to its messages."""
        problems = {}
        for node in self.tree.walk():
            messages = validate_node(self.tree, node)
            if messages:
                problems[self.tree.get_absolute_path(node) or node.node_id] = messages
        return problems

    # ==========================================================================
    # Persistence
    # ==========================================================================

    def to_dict(self) -> dict:
        items = self.collect_items()
        kept = {item.key for item in items}

        def node_to_dict(node: FormNode) -> dict:
            d: dict[str, Any] = {
                "kind": node.kind,
                "id": node.node_id,
                "properties": dict(node.properties),
            }
            slots = {
                name: node.itext[attr].id
                for attr, name in ITEXT_SLOTS.items()
                if node.itext.get(attr) is not None and node.itext[attr].key in kept
            }
            if slots:
                d["itext"] = slots
            if node.children:
                d["children"] = [node_to_dict(child) for child in node.children]
            return d

        return {
            "config": self.config.to_dict(),
            "languages": list(self.itext.get_languages()),
            "default_language": self.itext.default_language,
            "translations": {
                item.id: {form.name: dict(form.data) for form in item.get_forms()}
                for item in items
            },
            "nodes": [node_to_dict(node) for node in self.tree.children],
        }

    @classmethod
    def from_dict(cls, d: dict) -> FormSession:
        session = cls(SessionConfig.from_dict(d.get("config", {})))
        model = session.itext
        if not session.config.languages:
            for lang in d.get("languages", []):
                model.add_language(lang)
            if d.get("default_language") in model.languages:
                model.set_default_language(d["default_language"])

        for item_id, forms in d.get("translations", {}).items():
            item = model.get_or_create_item(item_id)
            for form_name, values in forms.items():
                form = item.get_or_create_form(form_name)
                for lang, text in values.items():
                    form.set_value(lang, text)

        for node_data in d.get("nodes", []):
            session._load_node(node_data, None)
        # after every node exists, so forward references resolve
        for node in session.tree.walk():
            session.logic.update_all_references(node)
        return session

    def _load_node(self, data: dict, parent: Optional[FormNode]) -> FormNode:
        node = self.tree.add_node(data["kind"], data["id"], parent, **data.get("properties", {}))
        for name, item_id in data.get("itext", {}).items():
            attr = SLOT_ATTRIBUTES.get(name)
            if attr is None or not node.kind_info.allows_slot(attr):
                logger.warning("Ignoring %s text on %s '%s'", name, node.kind, node.node_id)
                continue
            node.itext[attr] = self._item_for_slot(node, name, item_id)
        self.itext.update_for_existing_node(node)
        for child in data.get("children", []):
            self._load_node(child, node)
        return node

    def _item_for_slot(self, node: FormNode, slot: str, item_id: str) -> ItextItem:
        auto_id = not item_id or item_id == default_itext_id(self.tree, node, slot)
        item = self.itext.get_item(item_id) if item_id else None
        if item is None:
            return self.itext.create_item(item_id, auto_id)
        if not auto_id:
            item.auto_id = False
        return item

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)
        logger.info("Saved form to %s", path)
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> FormSession:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)
