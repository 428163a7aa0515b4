"""Daily list picker modal screen."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.widgets import Static


class DailyPickerModal(ModalScreen[set[str] | None]):
    """Pick which rows go on today's list.

    ``rows`` are ``(row key, dish name, item name)`` in checklist order.
    Dismisses with the picked keys, or ``None`` when cancelled.
    """

    BINDINGS = [
        ("escape", "cancel", "Cancel"),
        ("q", "cancel", "Cancel"),
        ("ctrl+c", "cancel", "Cancel"),
        ("j", "move_cursor(1)", "Next"),
        ("k", "move_cursor(-1)", "Previous"),
        ("up", "move_cursor(-1)", "Previous"),
        ("down", "move_cursor(1)", "Next"),
        ("space", "toggle_current", "Toggle"),
        ("enter", "toggle_current", "Toggle"),
        ("a", "toggle_all", "All/none"),
        ("s", "save", "Save"),
    ]

    CSS = """
    DailyPickerModal {
        align: center middle;
        background: $background 60%;
    }

    #daily-dialog {
        width: 72;
        height: 80%;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #daily-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #daily-body {
        height: 1fr;
        color: white;
    }

    #daily-help {
        margin-top: 1;
        color: #dddddd;
    }
    """

    cursor_index = reactive(0)

    def __init__(self, rows: list[tuple[str, str, str]], selected: set[str]) -> None:
        super().__init__()
        self.rows = rows
        self.selected = {key for key in selected if key in {row[0] for row in rows}}

    def compose(self) -> ComposeResult:
        with Container(id="daily-dialog"):
            yield Static("Daily List", id="daily-title")
            yield Static(id="daily-body")
            yield Static("J/K/↑/↓ move, Space toggle, A all/none, S save, Esc cancel", id="daily-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def action_save(self) -> None:
        self.dismiss(set(self.selected))

    def action_move_cursor(self, delta: int) -> None:
        if not self.rows:
            return
        self.cursor_index = (self.cursor_index + delta) % len(self.rows)
        self._refresh_content()

    def action_toggle_current(self) -> None:
        if not self.rows:
            return
        key = self.rows[self.cursor_index][0]
        if key in self.selected:
            self.selected.remove(key)
        else:
            self.selected.add(key)
        self._refresh_content()

    def action_toggle_all(self) -> None:
        if len(self.selected) == len(self.rows):
            self.selected.clear()
        else:
            self.selected = {row[0] for row in self.rows}
        self._refresh_content()

    def _window_bounds(self, total: int, rows: int) -> tuple[int, int]:
        if total <= rows:
            return (0, total)
        start = max(0, min(self.cursor_index - rows // 2, total - rows))
        return (start, start + rows)

    def _refresh_content(self) -> None:
        body = self.query_one("#daily-body", Static)
        if not self.rows:
            body.update("(no items yet)")
            return

        start, end = self._window_bounds(len(self.rows), max(1, body.size.height or 16))
        content = Text(style="white")
        previous_dish = None
        for idx in range(start, end):
            key, dish_name, item_name = self.rows[idx]
            if dish_name != previous_dish:
                if idx > start:
                    content.append("\n")
                content.append(dish_name, style="bold #f2d16b")
                previous_dish = dish_name
            pointer = "➤ " if idx == self.cursor_index else "  "
            checked = "[x]" if key in self.selected else "[ ]"
            style = "bold white" if key in self.selected else "white"
            content.append(f"\n{pointer}{checked} {item_name}", style=style)
        body.update(content)
