from __future__ import annotations

import pytest

from reading_insights.normalize import normalize_loose_title, normalize_title, title_author_key


def test_normalize_title_trims_and_lowercases() -> None:
    assert normalize_title("  The Hobbit ") == "the hobbit"
    assert normalize_title(None) == ""


def test_loose_title_strips_watermarks_and_asides() -> None:
    raw = "Dune (Dune Chronicles, Book 1) [EPUB] - Z-Library"
    assert normalize_loose_title(raw) == "dune"


def test_loose_title_drops_apostrophes_and_collapses_punctuation() -> None:
    assert normalize_loose_title("Ender’s  Game: A Novel!") == "enders game a novel"
    assert normalize_loose_title("Ender's_Game") == "enders game"


def test_loose_title_keeps_unicode_letters() -> None:
    assert normalize_loose_title("Cien años de soledad") == "cien años de soledad"
    assert normalize_loose_title("Преступление и наказание") == "преступление и наказание"


@pytest.mark.parametrize(
    "value",
    [
        "",
        None,
        "Dune (1965)",
        "z-li'brary",
        "1lib.s'k Dune",
        "((nested) parens)",
        "  --- ",
        "O'Reilly's [draft] Guide",
    ],
)
def test_loose_title_is_idempotent(value) -> None:
    once = normalize_loose_title(value)
    assert normalize_loose_title(once) == once


def test_title_author_key_uses_same_normalizer_for_both_fields() -> None:
    assert title_author_key("Dune", "Frank Herbert") == "dune::frank herbert"
    assert title_author_key(None, None) == "::"
