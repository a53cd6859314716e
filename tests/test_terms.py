"""Tests for search term normalisation."""

from __future__ import annotations

import pytest

from rom_finder.core.terms import TermNormalizer, normalize_term, unique_terms


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Ms. Pac-Man", "ms pac man"),
        ("  Street   Fighter II: The World Warrior ", "street fighter ii the world warrior"),
        ("1942", "1942"),
        ("missing_game_xyz", "missing_game_xyz"),
        ("Pokémon", "pok mon"),
        ("!!!", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_term(raw, expected) -> None:
    assert normalize_term(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["Pac-Man\nGalaga", "  Ms. Pac-Man  ", "100% Pure\r\nFun!!", "\n\n", "already normal"],
)
def test_normalisation_is_idempotent(raw: str) -> None:
    normalizer = TermNormalizer()
    once = normalizer.normalize(raw)
    assert normalizer.normalize("\n".join(once)) == once
    assert all(normalize_term(term) == term for term in once)


def test_case_and_punctuation_variants_collapse_to_one_term() -> None:
    normalizer = TermNormalizer()

    assert normalizer.normalize("Pac-Man\nPAC MAN\npac   man!") == ("pac man",)


def test_distinct_terms_keep_first_seen_order() -> None:
    normalizer = TermNormalizer()

    assert normalizer.normalize("Pac-Man\nGalaga\npac man") == ("pac man", "galaga")


def test_joined_and_split_spellings_stay_distinct() -> None:
    # Whitespace is collapsed, never removed, so these remain two terms.
    assert TermNormalizer().normalize("Pac-Man\npacman") == ("pac man", "pacman")


def test_blank_lines_are_dropped() -> None:
    assert TermNormalizer().normalize("\n  \nGalaga\n--\n") == ("galaga",)
    assert TermNormalizer().normalize("") == ()


def test_results_are_memoised_on_raw_text() -> None:
    normalizer = TermNormalizer(cache_size=2)

    first = normalizer.normalize("Galaga")
    assert normalizer.normalize("Galaga") is first
    assert normalizer.cache.keys() == ["Galaga"]


def test_memo_evicts_oldest_input() -> None:
    normalizer = TermNormalizer(cache_size=2)

    normalizer.normalize("one")
    normalizer.normalize("two")
    normalizer.normalize("three")

    assert normalizer.cache.keys() == ["two", "three"]


def test_unique_terms_skips_empty_values() -> None:
    assert unique_terms(["Galaga", "", None, "GALAGA", "Dig Dug"]) == ("galaga", "dig dug")
