import pytest

from preplist.data import print_note_alias_for_text, resolve_recipe, scale_recipe


@pytest.mark.parametrize(
    "text,factor,expected",
    (
        ("2 kg bones", 1.5, "3 kg bones"),
        ("1.5 l water", 2, "3 l water"),
        ("1 cup rice, 3 cups water", 2, "2 cup rice, 6 cups water"),
        ("1 tbsp salt", 0.333, "0.33 tbsp salt"),
        ("Simmer 4 hours", 3, "Simmer 4 hours"),
        ("10g sugar", 0.5, "5g sugar"),
        ("2 large onions", 2, "2 large onions"),
        ("", 2, ""),
    ),
)
def test_scale_recipe(text: str, factor: float, expected: str) -> None:
    assert scale_recipe(text, factor) == expected


def test_scale_recipe_leaves_words_starting_with_units_alone() -> None:
    assert scale_recipe("2 garlic cloves", 2) == "2 garlic cloves"


def test_resolve_recipe_priority() -> None:
    builtin = {"Stock": "built-in"}
    assert resolve_recipe("backend", "Stock", {"Stock": "device"}, builtin) == "backend"
    assert resolve_recipe(None, "Stock", {"Stock": "device"}, builtin) == "device"
    assert resolve_recipe("", "Stock", {}, builtin) == "built-in"
    assert resolve_recipe(None, "Unknown", {}, builtin) == ""


@pytest.mark.parametrize(
    "note,expected",
    (
        ("no onions", "x onions"),
        ("more more salt", "++ salt"),
        ("Less spicy", "- spicy"),
        ("add egg", "^ egg"),
        ("Thin slices", "thin slices"),
        ("   ", ""),
    ),
)
def test_print_note_alias(note: str, expected: str) -> None:
    assert print_note_alias_for_text(note) == expected
