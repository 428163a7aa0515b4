"""Free-text prompt modal screen."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static


class TextPromptModal(ModalScreen[str | None]):
    """Prompt for one line (or, with ``multiline``, a block) of text.

    Dismisses with the entered text, or ``None`` when cancelled.
    """

    BINDINGS = [
        Binding("ctrl+s", "confirm", "Confirm", priority=True),
    ]

    CSS = """
    TextPromptModal {
        align: center middle;
        background: $background 60%;
    }

    #prompt-dialog {
        width: 72;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #prompt-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #prompt-value {
        border: heavy $secondary;
        padding: 0 1;
        color: white;
        margin-bottom: 1;
    }

    #prompt-help {
        color: #dddddd;
    }
    """

    def __init__(self, title: str, initial: str = "", *, multiline: bool = False, hint: str = "") -> None:
        super().__init__()
        self.title_text = title
        self.value = initial
        self.multiline = multiline
        self.hint = hint

    def compose(self) -> ComposeResult:
        with Container(id="prompt-dialog"):
            yield Static(self.title_text, id="prompt-title")
            yield Static(id="prompt-value")
            yield Static(id="prompt-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.key in {"escape", "ctrl+c"}:
            self.dismiss(None)
            event.stop()
            return

        if event.key == "enter":
            if self.multiline:
                self.value += "\n"
                self._refresh_content()
            else:
                self.action_confirm()
            event.stop()
            return

        if event.key == "backspace":
            if self.value:
                self.value = self.value[:-1]
            self._refresh_content()
            event.stop()
            return

        if event.is_printable and event.character:
            self.value += event.character
            self._refresh_content()
            event.stop()
            return

        # Ignore all non-text keys while typing.
        event.stop()

    def action_confirm(self) -> None:
        self.dismiss(self.value)

    def _refresh_content(self) -> None:
        value_widget = self.query_one("#prompt-value", Static)
        help_widget = self.query_one("#prompt-help", Static)
        value_widget.update(Text(f"{self.value}|", style="bold white"))
        confirm = "Ctrl+S confirm, Enter new line" if self.multiline else "Enter confirm"
        help_text = f"{confirm}. Backspace delete. Esc/Ctrl+C cancel."
        if self.hint:
            help_text = f"{self.hint}\n{help_text}"
        help_widget.update(help_text)
