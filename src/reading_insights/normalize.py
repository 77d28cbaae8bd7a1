from __future__ import annotations

import re
from typing import Any

# Distributor watermarks that leak into file-derived titles.
_WATERMARKS = ("z-library", "zlibrary", "1lib.sk", "z-lib.sk")
_WATERMARK_RE = re.compile("|".join(re.escape(mark) for mark in _WATERMARKS))
_PAREN_RE = re.compile(r"\([^)]*\)")
_BRACKET_RE = re.compile(r"\[[^\]]*\]")
_APOSTROPHE_RE = re.compile("[\u2018\u2019']")
# Any run of characters that are not a Unicode letter or digit.
_SEPARATOR_RE = re.compile(r"[\W_]+")


def normalize_title(value: Any) -> str:
    """Trimmed, lowercased title used for the fast exact-title index."""
    if value is None:
        return ""
    return str(value).strip().lower()


def _loose_pass(text: str) -> str:
    text = text.lower()
    text = _WATERMARK_RE.sub(" ", text)
    text = _PAREN_RE.sub(" ", text)
    text = _BRACKET_RE.sub(" ", text)
    text = _APOSTROPHE_RE.sub("", text)
    text = _SEPARATOR_RE.sub(" ", text)
    return text.strip()


def normalize_loose_title(value: Any) -> str:
    """Canonical comparison key for titles and authors alike.

    Watermarks, bracketed asides and apostrophes are dropped and punctuation
    runs collapse to single spaces. Passes repeat until the key is stable so
    that removing an apostrophe can never expose a new watermark.
    """
    if value is None:
        return ""
    result = _loose_pass(str(value))
    while True:
        again = _loose_pass(result)
        if again == result:
            return result
        result = again


def title_author_key(title: Any, authors: Any) -> str:
    return f"{normalize_loose_title(title)}::{normalize_loose_title(authors)}"


__all__ = ["normalize_title", "normalize_loose_title", "title_author_key"]
