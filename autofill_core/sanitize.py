"""
Text normalization shared by the page and orchestration sides.
"""

from typing import Any


def clean_text(text: Any) -> str:
    """
    Normalize all whitespace to single spaces and trim.

    Accepts ``None`` and non-string values (they are stringified), so DOM
    attributes can be passed through without pre-checks.
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)
    return ' '.join(text.split())


def lowered(text: Any) -> str:
    """``clean_text`` followed by ``lower()``."""
    return clean_text(text).lower()
