"""
Multilingual translation store.

Terminology:
- Item: one unit of display text (a label, hint, help or validation
  message), identified by a stable ``key`` and a mutable serialization ``id``
- Form: a named variant of an item (default, short, long, audio, image,
  video) holding one string per language
- Model: the set of languages plus every item of one form document

Design:
- ``key`` is assigned once, from a counter, when the item is registered.
  It is never reused and never changes.
- ``id`` is what gets written to XML. It may collide between items until the
  collection pass (``formlingo.collect``) resolves duplicates.
- Items and forms keep a plain reference to their model for default-language
  lookups only; the model owns them, not the other way round.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional, TYPE_CHECKING

from formlingo.config import HUMAN_READABLE_FORMS
from formlingo.events import Eventful
from formlingo.outputs import extract_output_refs

if TYPE_CHECKING:
    from formlingo.models import FormNode

logger = logging.getLogger(__name__)


class DuplicateItemKeyError(RuntimeError):
    """An item already registered under one key was added again as another.

    This is an internal invariant violation, never a user input problem.
    """


class ItextForm:
    """One named text variant of an item, keyed by language."""

    def __init__(self, model: ItextModel, name: str = "default",
                 data: Optional[dict[str, str]] = None):
        self.model = model
        self.name = name or "default"
        self.data: dict[str, str] = dict(data) if data else {}
        self._output_expressions: Optional[dict[str, list[str]]] = None

    def clone(self) -> ItextForm:
        return ItextForm(self.model, self.name, self.data)

    def get_value(self, lang: str) -> Optional[str]:
        return self.data.get(lang)

    def set_value(self, lang: str, value: str) -> None:
        self.data[lang] = value
        self._output_expressions = None

    def get_value_or_default(self, lang: str) -> str:
        """Text for ``lang``, falling back to the default language, then anything."""
        if self.data.get(lang):
            return self.data[lang]
        default_lang = self.model.default_language
        if lang != default_lang and self.data.get(default_lang):
            return self.data[default_lang]
        for value in self.data.values():
            if value:
                return value
        return ""

    def is_empty(self) -> bool:
        return not any(self.data.values())

    def get_output_ref_expressions(self) -> dict[str, list[str]]:
        """Map each non-empty language to the paths of its ``<output/>`` tags.

        Cached until the next ``set_value``.
        """
        if self._output_expressions is None:
            self._output_expressions = {
                lang: extract_output_refs(text)
                for lang, text in self.data.items()
                if text
            }
        return self._output_expressions

    def __repr__(self) -> str:
        return f"ItextForm({self.name!r}, {self.data!r})"


class ItextItem:
    """A translatable string with one or more forms."""

    def __init__(
        self,
        model: ItextModel,
        id: str = "",
        auto_id: bool = True,
        forms: Optional[list[ItextForm]] = None,
    ):
        self.model = model
        self.id = id or ""
        self.auto_id = auto_id
        self.forms: list[ItextForm] = forms if forms is not None else []
        self.key: Optional[str] = None

    def clone(self) -> ItextItem:
        """Deep-copy the text into a new, separately registered item."""
        item = ItextItem(
            self.model,
            id=self.id,
            auto_id=self.auto_id,
            forms=[f.clone() for f in self.forms],
        )
        self.model.add_item(item)
        return item

    def get_forms(self) -> list[ItextForm]:
        return self.forms

    def get_form_names(self) -> list[str]:
        return [f.name for f in self.forms]

    def has_form(self, name: str) -> bool:
        return name in self.get_form_names()

    def get_form(self, name: str) -> ItextForm:
        for form in self.forms:
            if form.name == name:
                return form
        raise KeyError(f"form name = {name}")

    def get_or_create_form(self, name: str) -> ItextForm:
        if self.has_form(name):
            return self.get_form(name)
        return self.add_form(name)

    def add_form(self, name: str) -> ItextForm:
        if self.has_form(name):
            return self.get_form(name)
        form = ItextForm(self.model, name)
        self.forms.append(form)
        return form

    def remove_form(self, name: str) -> None:
        self.forms = [f for f in self.forms if f.name != name]

    def get(self, lang: str, form: str = "default") -> Optional[str]:
        return self.get_value(form, lang)

    def get_value(self, form: str, lang: str) -> Optional[str]:
        if self.has_form(form):
            return self.get_form(form).get_value(lang)
        return None

    def default_value(self) -> Optional[str]:
        return self.get_value("default", self.model.default_language)

    def set_default_value(self, value: str) -> None:
        self.get_or_create_form("default").set_value(self.model.default_language, value)

    def is_empty(self) -> bool:
        return all(f.is_empty() for f in self.forms)

    def has_human_readable_itext(self) -> bool:
        return any(self.has_form(name) for name in HUMAN_READABLE_FORMS)

    def __repr__(self) -> str:
        return f"ItextItem(key={self.key!r}, id={self.id!r}, auto_id={self.auto_id})"


class ItextModel(Eventful):
    """Languages plus all translation items of one form document.

    Fires ``change`` after bulk updates.
    """

    def __init__(self) -> None:
        self.languages: list[str] = []
        self._default_language = ""
        self.items: dict[str, ItextItem] = {}
        self._next_key = 1

    # ------------------------------------------------------------------
    # Languages
    # ------------------------------------------------------------------

    def get_languages(self) -> list[str]:
        return self.languages

    def has_language(self, lang: str) -> bool:
        return lang in self.languages

    def add_language(self, lang: str) -> None:
        if not self.has_language(lang):
            self.languages.append(lang)

    def remove_language(self, lang: str) -> None:
        if self.has_language(lang):
            self.languages.remove(lang)
        if self._default_language == lang:
            self._default_language = self.languages[0] if self.languages else ""

    @property
    def default_language(self) -> str:
        if self._default_language:
            return self._default_language
        return self.languages[0] if self.languages else ""

    def set_default_language(self, lang: str) -> None:
        if lang and not self.has_language(lang):
            raise ValueError(f"Cannot make {lang!r} the default: not one of {self.languages}")
        self._default_language = lang

    def get_default_language(self) -> str:
        return self.default_language

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def get_items(self) -> list[ItextItem]:
        return list(self.items.values())

    def __iter__(self) -> Iterator[ItextItem]:
        return iter(self.get_items())

    def __len__(self) -> int:
        return len(self.items)

    def has_item(self, item: ItextItem) -> bool:
        return bool(item.key) and self.items.get(item.key) is item

    def add_item(self, item: ItextItem) -> None:
        """Register ``item``, assigning the next key. No-op if already registered.

        Raises:
            DuplicateItemKeyError: if the item carries a key this model did
                not give it
        """
        if item.key:
            if self.items.get(item.key) is not item:
                raise DuplicateItemKeyError(
                    f"cannot add new item with existing key {item.key!r}"
                )
            return
        key = str(self._next_key)
        self._next_key += 1
        item.key = key
        self.items[key] = item

    def create_item(self, id: str = "", auto_id: bool = True) -> ItextItem:
        """Create and register a blank item with an empty default form."""
        item = ItextItem(self, id=id, auto_id=auto_id, forms=[ItextForm(self, "default")])
        self.add_item(item)
        return item

    def get_item(self, id: str) -> Optional[ItextItem]:
        """First item whose serialization id is ``id``."""
        for item in self.items.values():
            if item.id == id:
                return item
        return None

    def get_or_create_item(self, id: str) -> ItextItem:
        item = self.get_item(id)
        if item is None:
            item = self.create_item(id)
        return item

    def remove_item(self, item: ItextItem) -> None:
        if self.has_item(item):
            del self.items[item.key]

    def get_all_item_ids(self) -> list[str]:
        return [item.id for item in self.items.values()]

    # ------------------------------------------------------------------
    # Node integration
    # ------------------------------------------------------------------

    def remove_node_itext(self, node: FormNode) -> None:
        """Drop every item attached to ``node``.

        Not called on ordinary deletes: items may be shared between nodes,
        so empties are pruned at serialization time instead.
        """
        for item in node.itext.values():
            if item is not None:
                self.remove_item(item)

    def update_for_new_node(self, node: FormNode) -> None:
        """Create missing items for a node just added by the author."""
        self._update_for_node(node, node.node_id)

    def update_for_existing_node(self, node: FormNode) -> None:
        """Create missing items for a node loaded from a document."""
        self._update_for_node(node, node.properties.get("label") or node.node_id)

    def _update_for_node(self, node: FormNode, default_label: str) -> None:
        info = node.kind_info
        for slot in info.slots:
            if node.itext.get(slot) is not None:
                continue
            item = self.create_item()
            if slot == "label_itext":
                item.set_default_value(default_label)
            node.itext[slot] = item
            logger.debug("Created %s item %s for %s", slot, item.key, node.node_id)
