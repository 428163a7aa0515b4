"""Recipe text helpers."""

from __future__ import annotations

import math
import re
from typing import Mapping

from preplist.constant import BUILTIN_RECIPES, NOTE_PRINT_PREFIX_TO_SYMBOL_BY_TEXT, RECIPE_UNITS

_QUANTITY_RE = re.compile(
    r"(\d+(?:\.\d+)?)(?=\s*(?:" + "|".join(RECIPE_UNITS) + r")\b)",
    re.IGNORECASE,
)


def resolve_recipe(
    item_recipe: str | None,
    name: str,
    user_recipes: Mapping[str, str],
    builtin: Mapping[str, str] = BUILTIN_RECIPES,
) -> str:
    """Pick the recipe text for an item: backend, then this device, then built-in."""
    return item_recipe or user_recipes.get(name) or builtin.get(name) or ""


def _format_quantity(value: float) -> str:
    rounded = math.floor(value * 100 + 0.5) / 100
    if rounded.is_integer():
        return str(int(rounded))
    return str(rounded)


def scale_recipe(text: str, factor: float) -> str:
    """Scale every quantity that is directly followed by a unit."""
    if not text:
        return text
    return _QUANTITY_RE.sub(lambda match: _format_quantity(float(match.group(1)) * factor), text)


def print_note_alias_for_text(note_text: str) -> str:
    """Return compact print alias for free-form note text (case-insensitive)."""
    raw = note_text.strip()
    if not raw:
        return ""

    tokens = [token for token in re.split(r"[^a-z0-9]+", raw.lower()) if token]
    if not tokens:
        return raw

    first = tokens[0]
    if first in NOTE_PRINT_PREFIX_TO_SYMBOL_BY_TEXT:
        run_count = 1
        for token in tokens[1:]:
            if token != first:
                break
            run_count += 1

        if first in {"more", "less"}:
            symbol = NOTE_PRINT_PREFIX_TO_SYMBOL_BY_TEXT[first] * max(1, run_count)
        else:
            symbol = NOTE_PRINT_PREFIX_TO_SYMBOL_BY_TEXT[first]

        item_text = " ".join(tokens[run_count:]).strip()
        if not item_text:
            item_text = " ".join(tokens).strip()
        return f"{symbol} {item_text}"

    return raw.lower()
