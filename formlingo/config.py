"""
Project-wide constants and per-session configuration.

Module Contents:
    APP_NAME: Application name for display purposes
    HUMAN_READABLE_FORMS: Forms that carry readable text rather than media
    EXPORT_FORMS: Form order used by the bulk translation exchange
    ITEXT_SLOTS: Node translation slots, in collection order
    SessionConfig: Settings for one open form

Example:
    >>> from formlingo.config import SessionConfig
    >>> config = SessionConfig(languages=["en", "es"])
    >>> config.default_language
    'en'
"""

from __future__ import annotations

from dataclasses import dataclass, field

APP_NAME = "formlingo"

# Translation form variants holding text a person reads
HUMAN_READABLE_FORMS = ("default", "long", "short")

# Column order of the tab-delimited translation export
EXPORT_FORMS = ("default", "audio", "image", "video")

# Node attribute holding the item -> slot name used in generated ids
ITEXT_SLOTS = {
    "label_itext": "label",
    "hint_itext": "hint",
    "help_itext": "help",
    "constraint_msg_itext": "constraintMsg",
}

# Pseudo-language used to display node ids instead of labels
IDS_LANGUAGE = "_ids"


@dataclass
class SessionConfig:
    """Configuration for one editing session.

    Attributes:
        data_root: Name of the data root element (paths start ``/<data_root>``)
        languages: Languages offered to the author; the first is the default.
            When empty, languages come from the loaded translations.
        display_language: Language used for tree labels (default language if empty)
        allowed_data_node_references: Paths, relative to the data root,
            that are known to exist outside the form (e.g. ``meta/deviceID``)
    """
    data_root: str = "data"
    languages: list[str] = field(default_factory=list)
    display_language: str = ""
    allowed_data_node_references: list[str] = field(default_factory=list)

    @property
    def default_language(self) -> str:
        return self.languages[0] if self.languages else ""

    def to_dict(self) -> dict:
        return {
            "data_root": self.data_root,
            "languages": list(self.languages),
            "display_language": self.display_language,
            "allowed_data_node_references": list(self.allowed_data_node_references),
        }

    @classmethod
    def from_dict(cls, d: dict) -> SessionConfig:
        return cls(
            data_root=d.get("data_root", "data"),
            languages=list(d.get("languages", [])),
            display_language=d.get("display_language", ""),
            allowed_data_node_references=list(d.get("allowed_data_node_references", [])),
        )
