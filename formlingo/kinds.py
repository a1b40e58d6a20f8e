"""
Node-kind schema and property registry.

Both registries are plain dicts assembled once at import time. Code that
needs per-kind or per-property behaviour looks it up here instead of asking
the node object what it supports.
"""

from __future__ import annotations

from dataclasses import dataclass

QUESTION_SLOTS = ("label_itext", "hint_itext", "help_itext", "constraint_msg_itext")
QUESTION_REFERENCES = ("relevant", "constraint", "constraint_msg")


@dataclass(frozen=True)
class NodeKind:
    """Static description of a node type.

    Attributes:
        name: Kind name, e.g. ``"Text"``
        is_control_only: Has no data node, so no absolute path
        is_special_group: Group-like; renaming it shifts every descendant path
        can_output_value: May be referenced from an ``<output/>`` tag
        slots: Translation slots the kind may carry
        references: Properties that may hold path expressions
        child_kinds: Kinds allowed as children (empty: leaf)
    """
    name: str
    is_control_only: bool = False
    is_special_group: bool = False
    can_output_value: bool = True
    slots: tuple[str, ...] = QUESTION_SLOTS
    references: tuple[str, ...] = QUESTION_REFERENCES
    child_kinds: tuple[str, ...] = ()

    def allows_slot(self, slot: str) -> bool:
        return slot in self.slots

    def allows_child(self, kind: NodeKind) -> bool:
        return kind.name in self.child_kinds


_CONTAINER_CHILDREN = (
    "Text", "Int", "Decimal", "Date", "Select", "MSelect",
    "Group", "Repeat", "Trigger", "DataBindOnly",
)

KINDS: dict[str, NodeKind] = {
    kind.name: kind
    for kind in (
        NodeKind("Text"),
        NodeKind("Int"),
        NodeKind("Decimal"),
        NodeKind("Date"),
        NodeKind("Select", child_kinds=("Item",)),
        NodeKind("MSelect", child_kinds=("Item",)),
        NodeKind(
            "Item",
            is_control_only=True,
            can_output_value=False,
            slots=("label_itext",),
            references=(),
        ),
        NodeKind(
            "Group",
            is_special_group=True,
            can_output_value=False,
            slots=("label_itext",),
            references=("relevant",),
            child_kinds=_CONTAINER_CHILDREN,
        ),
        NodeKind(
            "Repeat",
            is_special_group=True,
            can_output_value=False,
            slots=("label_itext",),
            references=("relevant", "repeat_count"),
            child_kinds=_CONTAINER_CHILDREN,
        ),
        NodeKind(
            "Trigger",
            slots=("label_itext", "hint_itext", "help_itext"),
            references=("relevant",),
        ),
        NodeKind(
            "DataBindOnly",
            slots=(),
            references=("relevant", "calculate", "constraint"),
        ),
    )
}


def get_kind(name: str) -> NodeKind:
    try:
        return KINDS[name]
    except KeyError:
        raise ValueError(
            f"Unknown node kind: {name}. Available: {', '.join(KINDS)}"
        ) from None


@dataclass(frozen=True)
class PropertyDef:
    """Display metadata for a node property."""
    name: str
    label: str


PROPERTIES: dict[str, PropertyDef] = {
    p.name: p
    for p in (
        PropertyDef("relevant", "Display Condition"),
        PropertyDef("calculate", "Calculate Condition"),
        PropertyDef("constraint", "Validation Condition"),
        PropertyDef("constraint_msg", "Validation Message"),
        PropertyDef("repeat_count", "Repeat Count"),
        PropertyDef("label", "Default Label"),
        PropertyDef("hint", "Hint"),
        PropertyDef("label_itext", "Label"),
        PropertyDef("hint_itext", "Hint"),
        PropertyDef("help_itext", "Help Message"),
        PropertyDef("constraint_msg_itext", "Validation Message"),
    )
}


def property_label(name: str) -> str:
    definition = PROPERTIES.get(name)
    return definition.label if definition else name
