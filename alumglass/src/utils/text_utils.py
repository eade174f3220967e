"""
AlumGlass - Text Utilities
===========================
Stateless helpers for cleaning user text before it is embedded and for
turning scraped HTML fragments into plain text.

The prompt itself always receives the user's query *verbatim*; only the
embedding call sees the normalised form produced here.
"""

from __future__ import annotations

import html
import re
import unicodedata

# ── Non-printable character pattern ────────────────────────────────────
# Control characters (C0/C1) except \n, \r, \t, plus BOM, zero-width
# characters and soft hyphens.  ZWNJ (U+200C) is intentionally absent:
# it is part of correct Persian spelling (e.g. the "mi-" verb prefix).
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200d\u200e\u200f\u00ad\u2060\ufffe]")
_WHITESPACE_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"<[^>]+>")


def normalise_query(text: str) -> str:
    """
    Normalise a user query for embedding.

    Steps:
        1. Unicode NFC normalisation.
        2. Strip non-printable / zero-width characters.
        3. Collapse all whitespace runs (including newlines) to one space.
        4. Strip leading / trailing whitespace.

    Examples::

        "  ضخامت   شیشه\\n سکوریت "  → "ضخامت شیشه سکوریت"
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_html(fragment: str) -> str:
    """Drop tags, decode HTML entities and trim an HTML fragment."""
    return html.unescape(_TAG_RE.sub("", fragment)).strip()
