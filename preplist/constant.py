"""Editable static recipe and print configuration."""

from __future__ import annotations

# Built-in recipes by item name. Lowest priority: item recipes stored on the
# backend win, then recipes typed in on this device.
BUILTIN_RECIPES: dict[str, str] = {
    "Stock": "2 kg chicken bones\n4 l water\n200 g onion\n100 g carrot\n100 g celery\nSimmer 4 hours, skim, strain.",
    "Rice": "1 kg short grain rice\n1.1 l water\n20 ml rice vinegar\nRinse until clear, rest 30 min, cook.",
    "Pickled Onion": "500 g red onion\n250 ml vinegar\n250 ml water\n50 g sugar\n10 g salt",
    "Garlic Confit": "300 g garlic cloves\n400 ml neutral oil\nLow oven until soft.",
    "Vinaigrette": "150 ml olive oil\n50 ml sherry vinegar\n10 g dijon\n2 g salt",
}

# Units recognised by the recipe scaler; a number directly followed by one
# of these is scaled.
RECIPE_UNITS: tuple[str, ...] = (
    "g",
    "kg",
    "ml",
    "l",
    "oz",
    "cups?",
    "cup",
    "tbsp",
    "tsp",
    "quart",
    "pint",
    "lb",
    "lbs",
)

NOTE_PRINT_PREFIX_TO_SYMBOL_BY_TEXT: dict[str, str] = {
    "no": "x",
    "less": "-",
    "more": "+",
    "add": "^",
}

ON_HAND_LABEL = "ON"
PREP_LABEL = "PREP"
EMPTY_CELL_LABEL = "—"
