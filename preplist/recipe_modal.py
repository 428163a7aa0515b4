"""Recipe viewer modal screen with batch scaling."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static

from preplist.data import scale_recipe

EDIT = "edit"


class RecipeModal(ModalScreen[str | None]):
    """Show an item's recipe scaled by a typed factor.

    Dismisses with ``"edit"`` when the user asks to edit the recipe.
    """

    CSS = """
    RecipeModal {
        align: center middle;
        background: $background 60%;
    }

    #recipe-dialog {
        width: 72;
        height: auto;
        max-height: 90%;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #recipe-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #recipe-scale {
        border: heavy $secondary;
        padding: 0 1;
        color: white;
        margin-bottom: 1;
    }

    #recipe-body {
        color: white;
        margin-bottom: 1;
    }

    #recipe-error {
        color: #ffb3b3;
    }

    #recipe-help {
        color: #dddddd;
    }
    """

    def __init__(self, item_name: str, recipe: str) -> None:
        super().__init__()
        self.item_name = item_name
        self.recipe = recipe
        self.value = "1"
        self.error = ""

    def compose(self) -> ComposeResult:
        with Container(id="recipe-dialog"):
            yield Static(f"Recipe: {self.item_name}", id="recipe-title")
            yield Static(id="recipe-scale")
            yield Static(id="recipe-body")
            yield Static(id="recipe-error")
            yield Static("Digits/. set scale. E edit. Backspace delete. Esc/q/Ctrl+C close.", id="recipe-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.key in {"escape", "q", "ctrl+c"}:
            self.dismiss(None)
            event.stop()
            return

        if event.key == "e":
            self.dismiss(EDIT)
            event.stop()
            return

        if event.key == "backspace":
            if self.value:
                self.value = self.value[:-1]
            self._refresh_content()
            event.stop()
            return

        if event.is_printable and event.character and (event.character.isdigit() or event.character == "."):
            if len(self.value) < 6:
                self.value += event.character
            self._refresh_content()
            event.stop()

    def scale_factor(self) -> float | None:
        try:
            factor = float(self.value)
        except ValueError:
            return None
        return factor if factor > 0 else None

    def _refresh_content(self) -> None:
        factor = self.scale_factor()
        self.error = "" if factor is not None else "Scale must be a positive number."
        self.query_one("#recipe-scale", Static).update(f"Scale x {self.value}")
        body = self.recipe or "(no recipe yet: press E to add one)"
        if factor is not None and self.recipe:
            body = scale_recipe(self.recipe, factor)
        self.query_one("#recipe-body", Static).update(body)
        self.query_one("#recipe-error", Static).update(self.error)
