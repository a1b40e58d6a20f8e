"""
Bulk translation exchange as tab-separated text.

The export has one header row, ``label`` followed by one column per
``<form>-<language>`` pair (forms in ``EXPORT_FORMS`` order, languages in
model order), and one row per collected item. It pastes straight into a
spreadsheet; cells containing tabs, newlines or quotes are quoted.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Iterable, Optional, TYPE_CHECKING

from formlingo.collect import get_itext_items_from_tree
from formlingo.config import EXPORT_FORMS

if TYPE_CHECKING:
    from formlingo.itext import ItextModel
    from formlingo.models import FormTree

logger = logging.getLogger(__name__)


def tab_delimit(rows: Iterable[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter="\t", lineterminator="\n")
    writer.writerows(rows)
    text = buffer.getvalue()
    return text[:-1] if text.endswith("\n") else text


def parse_tsv(text: str) -> list[list[str]]:
    """Split tab-separated text into rows, skipping blank lines."""
    reader = csv.reader(io.StringIO(text), delimiter="\t")
    return [row for row in reader if row]


def generate_itext_tsv(tree: FormTree, model: ItextModel) -> str:
    """Export every non-empty item of ``tree`` as tab-separated text."""
    languages = model.get_languages()
    if not languages:
        return ""

    rows = [["label"] + [f"{form}-{lang}" for form in EXPORT_FORMS for lang in languages]]
    for item in get_itext_items_from_tree(tree):
        row = [item.id]
        for form in EXPORT_FORMS:
            for lang in languages:
                row.append(item.get(lang, form) or "" if item.has_form(form) else "")
        rows.append(row)
    return tab_delimit(rows)


def _parse_header(cell: str, languages: list[str]) -> Optional[tuple[str, str]]:
    form, sep, lang = cell.partition("-")
    if sep and form in EXPORT_FORMS and lang in languages:
        return form, lang
    return None


def parse_itext_tsv(tree: FormTree, model: ItextModel, text: str) -> int:
    """Apply translations exported by ``generate_itext_tsv`` and edited elsewhere.

    Rows are matched to items by id. Unknown ids are skipped. An existing
    form is overwritten even with blank text; a missing form is only
    created for non-blank text.

    Returns:
        Number of rows applied
    """
    rows = parse_tsv(text)
    if not rows:
        return 0
    languages = model.get_languages()
    columns = [_parse_header(cell, languages) for cell in rows[0]]
    items = {item.id: item for item in get_itext_items_from_tree(tree, empty=True)}

    applied = 0
    for cells in rows[1:]:
        item = items.get(cells[0])
        if item is None:
            logger.debug("No translation item with id %r", cells[0])
            continue
        for index, value in enumerate(cells[1:], start=1):
            head = columns[index] if index < len(columns) else None
            if head is None:
                continue
            form, lang = head
            if item.has_form(form):
                item.get_form(form).set_value(lang, value)
            elif value.strip():
                item.get_or_create_form(form).set_value(lang, value)
        applied += 1

    model.fire("change")
    logger.info("Applied %d translation rows", applied)
    return applied
