"""
Translation checks run before a form is saved.

Each slot property (``label_itext``, ``hint_itext``, ...) has a validator in
``SLOT_VALIDATORS``. A validator takes the tree and the node and returns a
list of human-readable problems; an empty list means the slot is fine.
"""

from __future__ import annotations

import re
from typing import Callable, Optional, TYPE_CHECKING

from formlingo.kinds import property_label

if TYPE_CHECKING:
    from formlingo.itext import ItextItem
    from formlingo.models import FormNode, FormTree

# Characters that cannot appear unescaped in an XML attribute value
_ATTRIBUTE_VALUE = re.compile(r"^[^<&'\">]*$")


def is_valid_attribute_value(value: str) -> bool:
    return bool(_ATTRIBUTE_VALUE.match(value))


def validate_itext_item(item: Optional[ItextItem], name: str) -> list[str]:
    """Check that id and default-language text are set together."""
    if item is None:
        return []
    messages = []
    text = item.default_value()
    if item.id and not is_valid_attribute_value(item.id):
        messages.append(f"{item.id!r} is not a valid {name} ID.")
    if item.id and not text and not item.auto_id:
        messages.append(f"Question has a {name} ID but no {name} text.")
    # auto ids are filled in by the collection pass
    if text and not item.id and not item.auto_id:
        messages.append(f"Question has {name} text but no {name} ID.")
    return messages


def _check_outputs(tree: FormTree, node: FormNode, item: Optional[ItextItem]) -> list[str]:
    if item is None:
        return []
    messages = []
    for form in item.forms:
        for refs in form.get_output_ref_expressions().values():
            for ref in refs:
                target = tree.get_by_path(ref)
                if target is not None and not target.kind_info.can_output_value:
                    message = (
                        f"{target.kind} '{target.node_id}' cannot be shown "
                        f"in the text of '{node.node_id}'."
                    )
                    if message not in messages:
                        messages.append(message)
    return messages


def _slot_validator(slot: str) -> Callable[[FormTree, FormNode], list[str]]:
    def validate(tree: FormTree, node: FormNode) -> list[str]:
        item = node.itext.get(slot)
        return (
            validate_itext_item(item, property_label(slot).lower())
            + _check_outputs(tree, node, item)
        )
    return validate


def _validate_constraint_msg(tree: FormTree, node: FormNode) -> list[str]:
    messages = _slot_validator("constraint_msg_itext")(tree, node)
    item = node.itext.get("constraint_msg_itext")
    has_message = item is not None and not item.is_empty()
    if has_message and not node.properties.get("constraint"):
        messages.append(
            f"Cannot have a {property_label('constraint_msg').lower()} "
            f"without a {property_label('constraint').lower()}."
        )
    return messages


SLOT_VALIDATORS: dict[str, Callable[[FormTree, FormNode], list[str]]] = {
    "label_itext": _slot_validator("label_itext"),
    "hint_itext": _slot_validator("hint_itext"),
    "help_itext": _slot_validator("help_itext"),
    "constraint_msg_itext": _validate_constraint_msg,
}


def validate_node(tree: FormTree, node: FormNode) -> list[str]:
    """Run the validator of every slot the node's kind allows."""
    messages: list[str] = []
    for slot in node.kind_info.slots:
        validator = SLOT_VALIDATORS.get(slot)
        if validator is not None:
            messages.extend(validator(tree, node))
    return messages
