"""
Text utilities for handling Spanish text with accents.

Used for product code and warehouse name comparison.
"""

import re
import unicodedata
from typing import Optional

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^0-9A-Z]")


def strip_accents(text: str) -> str:
    """
    Remove accent marks, keeping the base characters.

    "Almacén" → "Almacen", "Ñandú" → "Nandu"
    """
    # NFD decomposition separates base chars from accents (category 'Mn')
    normalized = unicodedata.normalize('NFD', text)
    return ''.join(
        c for c in normalized
        if unicodedata.category(c) != 'Mn'
    )


def fold_label(value: Optional[str]) -> str:
    """
    Fold a code or name for similarity scoring.

    Strips accents, uppercases, trims and collapses internal whitespace.
    Punctuation is preserved so "ABC-01" and "ABC01" still differ.

    - "  inc-256egg " → "INC-256EGG"
    - "Almacén  central" → "ALMACEN CENTRAL"

    Returns:
        Folded string ("" for None/blank input)
    """
    if not value:
        return ""
    folded = strip_accents(str(value)).upper()
    return _WHITESPACE.sub(" ", folded).strip()


def normalize_code(value: Optional[str]) -> str:
    """
    Normalize a code or name for normalized-equality matching.

    Folds like fold_label, then drops every character that is not a
    letter or digit:

    - "ABC-01 " → "ABC01"
    - "abc 01" → "ABC01"
    - "Almacén Central" → "ALMACENCENTRAL"

    Returns:
        Normalized key ("" for None/blank input)
    """
    return _NON_ALNUM.sub("", fold_label(value))


def clean_cell(value: Optional[str], max_length: int = 255) -> Optional[str]:
    """
    Clean a free-text cell for storage and display.

    Strips whitespace, truncates to max_length and returns None for
    empty strings. Accents are preserved.
    """
    if value is None:
        return None

    text = str(value).strip()

    if not text:
        return None

    if len(text) > max_length:
        text = text[:max_length]

    return text
