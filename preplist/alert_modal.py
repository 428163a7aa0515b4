"""Blocking alert and confirmation modal screen."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static


class AlertModal(ModalScreen[bool]):
    """Show a message until acknowledged. With ``confirm`` it asks y/n."""

    CSS = """
    AlertModal {
        align: center middle;
        background: $background 60%;
    }

    #alert-dialog {
        width: 56;
        height: auto;
        border: round $error;
        background: $panel;
        padding: 1 2;
    }

    #alert-title {
        text-style: bold;
        margin-bottom: 1;
        color: #ffb3b3;
    }

    #alert-message {
        color: white;
        margin-bottom: 1;
    }

    #alert-help {
        color: #dddddd;
    }
    """

    def __init__(self, message: str, *, title: str = "Error", confirm: bool = False) -> None:
        super().__init__()
        self.message = message
        self.title_text = title
        self.confirm = confirm

    def compose(self) -> ComposeResult:
        help_text = "Y confirm, N/Esc cancel." if self.confirm else "Enter/Esc to close."
        with Container(id="alert-dialog"):
            yield Static(self.title_text, id="alert-title")
            yield Static(self.message, id="alert-message")
            yield Static(help_text, id="alert-help")

    def on_key(self, event: Key) -> None:
        event.stop()
        if self.confirm:
            if event.key == "y":
                self.dismiss(True)
            elif event.key in {"n", "escape", "q", "ctrl+c"}:
                self.dismiss(False)
            return
        if event.key in {"enter", "escape", "q", "ctrl+c"}:
            self.dismiss(True)
