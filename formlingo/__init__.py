"""
formlingo: reference tracking and translations for XForms-style form documents.

Keeps question logic and translated text consistent while a form is edited:
- Path references inside display conditions, calculations and validation
  rules follow renamed, moved and duplicated questions
- Translated labels, hints and help texts live in one multilingual store
  with stable identities and ids generated at save time
- Output tags embedded in translated text are rewritten on rename
"""

__version__ = "0.1.0"

from formlingo.config import SessionConfig
from formlingo.itext import ItextForm, ItextItem, ItextModel
from formlingo.models import FormNode, FormTree
from formlingo.references import LogicManager
from formlingo.session import FormSession

__all__ = [
    "FormNode",
    "FormSession",
    "FormTree",
    "ItextForm",
    "ItextItem",
    "ItextModel",
    "LogicManager",
    "SessionConfig",
]
