"""
Output references embedded in translated text.

Labels can show the value of another question with markup such as
``<output value="/data/name" />``. These references live inside opaque
strings rather than parsed expressions, so they are found with a permissive
regular expression and rewritten textually when the target is renamed.

Known limitation: the scanner is not a markup parser. Nested or malformed
``<output>`` tags may be mis-extracted.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from formlingo.itext import ItextItem, ItextModel

# <output value="..."/> or <output ref="..."></output>
OUTPUT_REF_PATTERN = re.compile(
    r'(?:<output (?:value|ref)=")(.*?)(?:"\s*(?:/|></output)>)',
    re.IGNORECASE | re.MULTILINE,
)


# any complete output tag, used to keep markup intact when writing XML
OUTPUT_TAG_PATTERN = re.compile(
    r'<output\s+(?:value|ref)="[^"]*"\s*(?:/>|></output>)',
    re.IGNORECASE,
)


def extract_output_refs(text: str) -> list[str]:
    """Return the enclosed path of every output tag, in order of appearance."""
    if not text:
        return []
    return [m.group(1) for m in OUTPUT_REF_PATTERN.finditer(text)]


def make_output_ref(path: str, date_format: Optional[str] = None) -> str:
    """Build the markup inserted when a question is dropped into a label."""
    if date_format:
        return f"<output value=\"format-date(date({path}), '{date_format}')\"/>"
    return f'<output value="{path}" />'


def output_tag_pattern(expression: str) -> re.Pattern:
    """Pattern matching one specific output tag, either attribute, either closing."""
    return re.compile(
        r'<output\s*(ref|value)="' + re.escape(expression) + r'"\s*(/|></output)>',
        re.MULTILINE,
    )


def path_pattern(old_path: str, is_group: bool = False) -> tuple[re.Pattern, str]:
    """Pattern for ``old_path`` and the suffix to append to the replacement.

    A plain path must not be followed by a word character, slash or hyphen,
    so ``/data/b`` never matches inside ``/data/bx``. A group rename moves
    every descendant, so it must be followed by a slash.
    """
    escaped = re.escape(old_path)
    if is_group:
        return re.compile(escaped + "/", re.MULTILINE), "/"
    return re.compile(escaped + r"(?![\w/-])", re.MULTILINE), ""


def rewrite_output_refs(
    items: Iterable[ItextItem],
    model: ItextModel,
    old_path: str,
    new_path: str,
    is_group: bool = False,
) -> list[ItextItem]:
    """Rewrite output references to ``old_path`` in every form of every item.

    Returns:
        Items whose default-language default-form text changed
    """
    pattern, suffix = path_pattern(old_path, is_group)
    replacement = new_path + suffix
    default_lang = model.default_language
    changed: list[ItextItem] = []

    for item in items:
        before = item.get_value("default", default_lang)
        for form in item.forms:
            for lang, refs in form.get_output_ref_expressions().items():
                for ref in refs:
                    if not pattern.search(ref):
                        continue
                    new_ref = pattern.sub(lambda _m: replacement, ref)
                    text = form.get_value(lang)
                    text = output_tag_pattern(ref).sub(
                        lambda _m: make_output_ref(new_ref), text
                    )
                    form.set_value(lang, text)
        if item.get_value("default", default_lang) != before:
            changed.append(item)
    return changed
