"""
Text normalization for DOM matching (whitespace collapse, case and accent folding).
"""

from __future__ import annotations

import re
import unicodedata


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace: collapse multiples, trim."""
    text = re.sub(r"\s+", " ", text)
    text = text.strip()
    return text


def normalize_for_match(text: str | None) -> str:
    """
    Fold text for case-insensitive substring matching.

    Lowercases, strips diacritics ("Véhicule" -> "vehicule", "Anhänger" ->
    "anhanger") and collapses whitespace. Applied to both sides of a match.
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return normalize_whitespace(stripped.casefold())
