"""
Reading and writing the ``<itext>`` block of an XForms document.

Layout::

    <itext>
      <translation lang="en" default="">
        <text id="question1-label">
          <value>How old are you?</value>
          <value form="audio">jr://file/commcare/audio/age.mp3</value>
        </text>
      </translation>
    </itext>

Values may embed ``<output value="..."/>`` tags. They are written as
markup and read back as text, so the item keeps the literal tag.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Iterable, Optional, TYPE_CHECKING
from xml.sax.saxutils import escape

from formlingo.diagnostics import PARSE_WARNING, DiagnosticLog
from formlingo.outputs import OUTPUT_TAG_PATTERN

if TYPE_CHECKING:
    from formlingo.itext import ItextItem, ItextModel

logger = logging.getLogger(__name__)

_INDENT = "  "


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _markup(text: str) -> str:
    """Escape ``text`` for XML except for embedded output tags."""
    parts = []
    last = 0
    for match in OUTPUT_TAG_PATTERN.finditer(text):
        parts.append(escape(text[last:match.start()]))
        parts.append(match.group(0))
        last = match.end()
    parts.append(escape(text[last:]))
    return "".join(parts)


def _value_element(text: str, form: str) -> ET.Element:
    try:
        value = ET.fromstring(f"<value>{_markup(text)}</value>")
    except ET.ParseError:
        logger.warning("Malformed output tag, writing value as plain text: %r", text)
        value = ET.Element("value")
        value.text = text
    if form != "default":
        value.set("form", form)
    return value


def _indent(element: ET.Element, level: int = 0) -> None:
    # value content is text and must not gain whitespace
    if _local(element.tag) == "value" or not len(element):
        return
    element.text = "\n" + _INDENT * (level + 1)
    for child in element:
        _indent(child, level + 1)
        child.tail = "\n" + _INDENT * (level + 1)
    element[-1].tail = "\n" + _INDENT * level


def write_itext(model: ItextModel, items: Iterable[ItextItem]) -> str:
    """Serialize ``items`` (normally the collection pass result) as ``<itext>``.

    Returns "" when the model has no languages.
    """
    languages = model.get_languages()
    if not languages:
        return ""
    items = list(items)
    default_lang = model.default_language
    itext = ET.Element("itext")
    for lang in languages:
        translation = ET.SubElement(itext, "translation", lang=lang)
        if lang == default_lang:
            translation.set("default", "")
        for item in items:
            text_el = ET.SubElement(translation, "text", id=item.id)
            for form in item.get_forms():
                value = form.get_value_or_default(lang)
                if value:
                    text_el.append(_value_element(value, form.name))
    _indent(itext)
    return ET.tostring(itext, encoding="unicode")


def _strip_namespaces(element: ET.Element) -> ET.Element:
    element = _copy(element)
    for el in element.iter():
        el.tag = _local(el.tag)
    return element


def _copy(element: ET.Element) -> ET.Element:
    clone = ET.Element(element.tag, dict(element.attrib))
    clone.text = element.text
    clone.tail = element.tail
    clone.extend(_copy(child) for child in element)
    return clone


def humanize(value: ET.Element) -> str:
    """Inner markup of a ``<value>`` element as plain text."""
    parts = [value.text or ""]
    for child in value:
        tag = _strip_namespaces(child)
        tag.tail = None
        parts.append(ET.tostring(tag, encoding="unicode"))
        parts.append(child.tail or "")
    return "".join(parts)


def _find_itext(root: ET.Element) -> Optional[ET.Element]:
    for element in root.iter():
        if _local(element.tag) == "itext":
            return element
    return None


def parse_itext(
    xml_text: str,
    model: ItextModel,
    langs: Optional[list[str]] = None,
    warnings: Optional[DiagnosticLog] = None,
) -> ItextModel:
    """Load translations from an ``<itext>`` block into ``model``.

    Args:
        xml_text: A bare ``<itext>`` element or a whole form document
        model: Model to fill; existing items with matching ids are reused
        langs: Configured languages. When given they are added first, the
            first one becomes the default and other languages are skipped.
        warnings: Receives a parse warning per skipped language

    Raises:
        xml.etree.ElementTree.ParseError: if ``xml_text`` is not well-formed
    """
    root = ET.fromstring(xml_text)
    if langs:
        for lang in langs:
            model.add_language(lang)
        model.set_default_language(langs[0])

    itext = _find_itext(root)
    if itext is None:
        logger.info("No itext block found")
        return model

    for translation in itext:
        if _local(translation.tag) != "translation":
            continue
        lang = translation.get("lang", "")
        if langs and lang not in langs:
            message = f"You have languages in your form that are not specified in the languages list: {lang}."
            if warnings is not None:
                warnings.add(PARSE_WARNING, message, key=f"itext-lang-{lang}")
            logger.warning(message)
            continue
        model.add_language(lang)
        if translation.get("default") is not None and not langs:
            model.set_default_language(lang)

        for text_el in translation:
            if _local(text_el.tag) != "text":
                continue
            item = model.get_or_create_item(text_el.get("id", ""))
            for value in text_el:
                if _local(value.tag) != "value":
                    continue
                form = item.get_or_create_form(value.get("form") or "default")
                form.set_value(lang, humanize(value))
    return model
