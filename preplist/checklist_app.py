"""Main Textual app class."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.reactive import reactive
from textual.widgets import Header, Static

from preplist import keys
from preplist.alert_modal import AlertModal
from preplist.config import NOTIFICATION_TIMEOUT_S, debug_log_path
from preplist.daily_modal import DailyPickerModal
from preplist.engine import ChecklistEngine
from preplist.errors import MalformedPersistedState, RemoteCallError
from preplist.models import Container, FilterKind, Member, Notification, ViewMode
from preplist.persistence import read_export, write_export
from preplist.printer import check_printer_dependencies, print_checklist
from preplist.prompt_modal import TextPromptModal
from preplist.recipe_modal import EDIT, RecipeModal
from preplist.rendering import format_dish_header, format_item_row, format_status

_FILTER_CYCLE = (FilterKind.ALL, FilterKind.DISH, FilterKind.HIGHLIGHTED)


def parse_dish_edit(dish: Container, text: str) -> tuple[str, list[tuple[str | None, str]]]:
    """Read "Dish name: item, item" back into a name and ``(item id or None, name)`` pairs.

    Names that match an existing item keep its id, first unused match wins;
    anything else is a new item.
    """
    name, _, listed = text.partition(":")
    unused = list(dish.members)
    edited: list[tuple[str | None, str]] = []
    for item_name in (part.strip() for part in listed.split(",")):
        if not item_name:
            continue
        match = next((member for member in unused if member.name == item_name), None)
        if match is not None:
            unused.remove(match)
        edited.append((match.id if match else None, item_name))
    return name.strip(), edited


@dataclass(frozen=True)
class ChecklistLine:
    """One selectable line of the checklist pane."""

    kind: str
    dish: Container
    member: Member | None = None

    @property
    def key(self) -> str | None:
        if self.member is None:
            return None
        return keys.encode(self.dish.id, self.member.id)


class ChecklistApp(App):
    """A Textual app for the shared kitchen prep checklist."""

    TITLE = "Prep List"
    SUB_TITLE = "Shared kitchen prep"
    ENABLE_COMMAND_PALETTE = False

    CSS = """
    Screen {
        layout: vertical;
    }

    #status-bar {
        border: heavy $secondary;
        padding: 0 1;
        height: 3;
    }

    #main-layout {
        height: 1fr;
    }

    #checklist-pane {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #side-pane {
        width: 1fr;
        border: round $secondary;
        padding: 1;
    }

    #checklist {
        height: 1fr;
        padding: 0 1;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    cursor_index = reactive(0)

    BINDINGS = [
        ("j", "move_cursor(1)", "Next row"),
        ("k", "move_cursor(-1)", "Previous row"),
        ("down", "move_cursor(1)", "Next row"),
        ("up", "move_cursor(-1)", "Previous row"),
        ("o", "toggle_on_hand", "On hand"),
        ("p", "toggle_prep", "Prep"),
        ("h", "toggle_highlight", "Highlight"),
        ("n", "edit_note", "Note"),
        ("r", "open_recipe", "Recipe"),
        ("f", "cycle_filter", "Filter"),
        ("[", "step_dish(-1)", "Prev dish"),
        ("]", "step_dish(1)", "Next dish"),
        ("d", "daily_list", "Daily list"),
        ("D", "clear_daily", "Clear daily"),
        ("a", "add_dish", "Add dish"),
        ("i", "add_item", "Add item"),
        ("e", "rename", "Rename"),
        ("E", "edit_dish", "Edit dish"),
        ("x", "delete", "Delete"),
        ("J", "move_item(1)", "Move down"),
        ("K", "move_item(-1)", "Move up"),
        ("c", "toggle_compact", "Compact"),
        Binding("ctrl+p", "print_checklist", "Print", priority=True),
        Binding("ctrl+e", "export_state", "Save iteration", priority=True),
        Binding("ctrl+o", "import_state", "Load iteration", priority=True),
        Binding("ctrl+r", "reload", "Reload", priority=True),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, engine: ChecklistEngine, debug_log: str | None = None) -> None:
        super().__init__()
        self.engine = engine
        self.engine.reconciler.notify = self._on_remote_change
        self.lines: list[ChecklistLine] = []
        self.system_status = "Loading..."
        self._debug_log_path = Path(debug_log or debug_log_path())
        self._log_debug("app_init")

    def _log_debug(self, message: str) -> None:
        try:
            ts = datetime.now(timezone.utc).isoformat()
            self._debug_log_path.parent.mkdir(parents=True, exist_ok=True)
            with self._debug_log_path.open("a", encoding="utf-8") as fh:
                fh.write(f"{ts} {message}\n")
        except OSError:
            # Logging must never interfere with app flow.
            return

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static(id="status-bar")
        with Horizontal(id="main-layout"):
            with Vertical(id="checklist-pane"):
                yield Static(id="checklist")
            with Vertical(id="side-pane"):
                yield Static("Legend", classes="pane-title")
                yield Static(self._legend(), id="legend")

    def on_mount(self) -> None:
        self.engine.add_listener(self._refresh_all)
        self.engine.restore_local_state()
        _, msg = check_printer_dependencies()
        self._log_debug(f"on_mount printer_status={msg!r}")
        self._refresh_all()
        self.run_worker(self._start_engine(), exclusive=True)

    def on_unmount(self) -> None:
        self.engine.stop()

    async def _start_engine(self) -> None:
        try:
            await self.engine.start()
        except RemoteCallError as exc:
            self._log_debug(f"start_failed error={exc!r}")
            self.system_status = "Offline: showing cached list (Ctrl+R to retry)"
            self._refresh_all()
            self._alert(f"Failed to load from the shared list.\n{exc}")
            return
        self.system_status = "Live"
        self._refresh_all()

    def _on_remote_change(self, note: Notification) -> None:
        self._log_debug(f"remote_change kind={note.kind} message={note.message!r}")
        self.notify(f"🔄 {note.message}", timeout=NOTIFICATION_TIMEOUT_S)

    def _alert(self, message: str) -> None:
        self.push_screen(AlertModal(message))

    def _run_remote(self, label: str, call: Awaitable[object]) -> None:
        """Run a remote write; failures leave state untouched and raise a blocking alert."""

        async def runner() -> None:
            try:
                await call
            except RemoteCallError as exc:
                self._log_debug(f"{label}_failed error={exc!r}")
                self._alert(f"Failed to save changes to the shared list.\n{exc}")
            except ValueError as exc:
                self._alert(str(exc))

        self.run_worker(runner())

    # -- selection ------------------------------------------------------

    def _selected_line(self) -> ChecklistLine | None:
        if not (0 <= self.cursor_index < len(self.lines)):
            return None
        return self.lines[self.cursor_index]

    def _selected_item(self) -> ChecklistLine | None:
        line = self._selected_line()
        if line is None or line.member is None:
            return None
        return line

    def action_move_cursor(self, delta: int) -> None:
        if not self.lines:
            return
        self.cursor_index = (self.cursor_index + delta) % len(self.lines)
        self._refresh_checklist()

    # -- row state ------------------------------------------------------

    def action_toggle_on_hand(self) -> None:
        line = self._selected_item()
        if line is not None and line.key is not None:
            self.engine.toggle_on_hand(line.key)

    def action_toggle_prep(self) -> None:
        line = self._selected_item()
        if line is not None and line.key is not None:
            self.engine.toggle_prep(line.key)

    def action_toggle_highlight(self) -> None:
        line = self._selected_item()
        if line is not None and line.key is not None:
            self.engine.toggle_highlight(line.key)

    def action_edit_note(self) -> None:
        line = self._selected_item()
        if line is None or line.key is None or line.member is None:
            return
        key = line.key

        def done(value: str | None) -> None:
            if value is not None:
                self.engine.set_note(key, value.strip())

        current = self.engine.row(key).note
        self.push_screen(TextPromptModal(f"Note: {line.member.name}", current), done)

    def action_open_recipe(self) -> None:
        line = self._selected_item()
        if line is None or line.key is None or line.member is None:
            return
        key, name = line.key, line.member.name
        recipe = self.engine.recipe_for(key, name)

        def edit_done(value: str | None) -> None:
            if value is not None:
                self._run_remote("save_recipe", self.engine.save_recipe(key, value))

        def done(result: str | None) -> None:
            if result == EDIT:
                self.push_screen(TextPromptModal(f"Edit recipe: {name}", recipe, multiline=True), edit_done)

        self.push_screen(RecipeModal(name, recipe), done)

    # -- view -----------------------------------------------------------

    def action_cycle_filter(self) -> None:
        current = _FILTER_CYCLE.index(self.engine.view.filter)
        self.engine.set_filter(_FILTER_CYCLE[(current + 1) % len(_FILTER_CYCLE)])
        self.cursor_index = 0

    def action_step_dish(self, delta: int) -> None:
        if self.engine.view.filter is not FilterKind.DISH:
            return
        self.engine.step_dish(delta)
        self.cursor_index = 0

    def action_daily_list(self) -> None:
        if self.engine.view.mode is ViewMode.DAILY:
            self.engine.set_view_mode(ViewMode.FULL)
            return

        rows = [
            (keys.encode(dish.id, member.id), dish.name, member.name)
            for dish in self.engine.mirror.containers()
            for member in dish.members
        ]

        def done(picked: set[str] | None) -> None:
            if picked is not None:
                self.engine.build_daily(picked)
                self.cursor_index = 0

        self.push_screen(DailyPickerModal(rows, set(self.engine.selection.current.member_keys)), done)

    def action_clear_daily(self) -> None:
        self.engine.clear_daily()
        self.cursor_index = 0

    def action_toggle_compact(self) -> None:
        self.engine.toggle_compact()

    # -- dish editing ---------------------------------------------------

    def action_add_dish(self) -> None:
        def done(value: str | None) -> None:
            if value is None:
                return
            name, _, items = value.partition(":")
            self._run_remote("add_dish", self.engine.add_dish(name, items.split(",")))

        self.push_screen(
            TextPromptModal("Add dish", hint="Format: Dish name: item, item, item"),
            done,
        )

    def action_add_item(self) -> None:
        line = self._selected_line()
        if line is None:
            return
        dish_id = line.dish.id

        def done(value: str | None) -> None:
            if value:
                self._run_remote("add_item", self.engine.add_item(dish_id, value))

        self.push_screen(TextPromptModal(f"Add item to {line.dish.name}"), done)

    def action_edit_dish(self) -> None:
        line = self._selected_line()
        if line is None:
            return
        dish_id = line.dish.id
        current = ", ".join(member.name for member in line.dish.members)

        def done(value: str | None) -> None:
            dish = self.engine.mirror.container(dish_id)
            if value is None or dish is None:
                return
            name, items = parse_dish_edit(dish, value)
            if not name or not items:
                self._alert("Dish name and at least one item required.")
                return
            self._run_remote("save_dish", self.engine.save_dish(dish_id, name, items))

        self.push_screen(
            TextPromptModal("Edit dish", f"{line.dish.name}: {current}", hint="Format: Dish name: item, item, item"),
            done,
        )

    def action_rename(self) -> None:
        line = self._selected_line()
        if line is None:
            return

        if line.member is None:
            dish_id = line.dish.id

            def dish_done(value: str | None) -> None:
                if value:
                    self._run_remote("rename_dish", self.engine.rename_dish(dish_id, value))

            self.push_screen(TextPromptModal("Rename dish", line.dish.name), dish_done)
            return

        key = line.key

        def item_done(value: str | None) -> None:
            if value and key is not None:
                self._run_remote("rename_item", self.engine.rename_item(key, value))

        self.push_screen(TextPromptModal("Rename item", line.member.name), item_done)

    def action_delete(self) -> None:
        line = self._selected_line()
        if line is None:
            return

        if line.member is None:
            dish_id = line.dish.id
            message = f'Delete dish "{line.dish.name}"? This cannot be undone.'

            def dish_done(confirmed: bool | None) -> None:
                if confirmed:
                    self._run_remote("delete_dish", self.engine.delete_dish(dish_id))

            self.push_screen(AlertModal(message, title="Delete dish", confirm=True), dish_done)
            return

        key = line.key

        def item_done(confirmed: bool | None) -> None:
            if confirmed and key is not None:
                self._run_remote("delete_item", self.engine.delete_item(key))

        message = f'Delete item "{line.member.name}"?'
        self.push_screen(AlertModal(message, title="Delete item", confirm=True), item_done)

    def action_move_item(self, delta: int) -> None:
        line = self._selected_item()
        if line is None or line.key is None:
            return
        self._run_remote("move_item", self.engine.move_item(line.key, delta))
        self.cursor_index = max(0, min(len(self.lines) - 1, self.cursor_index + delta))

    # -- print / files --------------------------------------------------

    def action_print_checklist(self) -> None:
        views = self.engine.views()
        try:
            printed = print_checklist(
                views,
                lambda dish_id, item_id: self.engine.row(keys.encode(dish_id, item_id)),
                self.engine.shared_names(),
            )
        except (RuntimeError, OSError) as exc:
            self.system_status = f"Print failed: {exc}"
            self._log_debug(f"print_failed error={exc!r}")
            self._refresh_status()
            return
        self.system_status = f"Printed {printed} lines"
        self._refresh_status()

    def action_export_state(self) -> None:
        def done(value: str | None) -> None:
            if not value:
                return
            try:
                target = write_export(value.strip(), self.engine.export_document())
            except OSError as exc:
                self._alert(f"Error saving file.\n{exc}")
                return
            self.system_status = f"Saved {target}"
            self._refresh_status()

        self.push_screen(TextPromptModal("Save iteration to file", "prep.json"), done)

    def action_import_state(self) -> None:
        def done(value: str | None) -> None:
            if not value:
                return
            try:
                document = read_export(value.strip())
            except (OSError, MalformedPersistedState) as exc:
                self._alert(f"Error loading file.\n{exc}")
                return
            self.engine.apply_document(document)
            self.cursor_index = 0
            self.system_status = f"Loaded {value.strip()}"
            self._refresh_status()

        self.push_screen(TextPromptModal("Load iteration from file", "prep.json"), done)

    def action_reload(self) -> None:
        self.system_status = "Reloading..."
        self._refresh_status()
        self.run_worker(self._start_engine(), exclusive=True)

    # -- rendering ------------------------------------------------------

    def _legend(self) -> Text:
        text = Text()
        text.append(" ON ", style="bold #0b1f0f on #5fbf72")
        text.append(" on hand\n")
        text.append(" PREP ", style="bold #ffffff on #2f6db5")
        text.append(" needs prep\n")
        text.append("Shared item", style="#c9a0ff")
        text.append(" in 2+ dishes\n")
        text.append("Highlighted ★", style="bold black on #f2d16b")
        text.append("\n(no recipe)", style="italic #ffb3b3")
        text.append(" missing recipe")
        return text

    def _build_lines(self) -> list[ChecklistLine]:
        lines: list[ChecklistLine] = []
        for view in self.engine.views():
            lines.append(ChecklistLine("dish", view.dish))
            for member in view.members:
                lines.append(ChecklistLine("item", view.dish, member))
        return lines

    def _refresh_all(self) -> None:
        self.lines = self._build_lines()
        self._refresh_status()
        self._refresh_checklist()

    def _refresh_status(self) -> None:
        try:
            bar = self.query_one("#status-bar", Static)
        except NoMatches:
            return
        dish = self.engine.mirror.container(self.engine.view.dish_id) if self.engine.view.dish_id else None
        text = format_status(self.engine.view, self.engine.selection.current, dish.name if dish else None)
        text.append(f"\n{self.system_status}", style="dim")
        bar.update(text)

    def _visible_rows(self, widget: Static) -> int:
        height = widget.size.height
        if height <= 0:
            return 12
        return max(1, height)

    def _window_bounds(self, total: int, rows: int, selected: int | None) -> tuple[int, int]:
        if total <= 0:
            return (0, 0)

        rows = max(1, rows)
        if total <= rows:
            return (0, total)

        if selected is None:
            start = 0
        else:
            half = rows // 2
            start = selected - half
            start = max(0, start)
            start = min(start, total - rows)

        return (start, start + rows)

    def _refresh_checklist(self) -> None:
        try:
            widget = self.query_one("#checklist", Static)
        except NoMatches:
            return
        if not self.lines:
            self.cursor_index = 0
            widget.update("(no dishes to show)" if self.engine.loaded else "(loading...)")
            return
        if self.cursor_index >= len(self.lines):
            self.cursor_index = len(self.lines) - 1

        shared = self.engine.shared_names()
        visible_counts = {view.dish.id: len(view.members) for view in self.engine.views()}
        start, end = self._window_bounds(len(self.lines), self._visible_rows(widget), self.cursor_index)

        text = Text()
        if start > 0:
            text.append("⋮\n", style="dim")
        for idx in range(start, end):
            line = self.lines[idx]
            if idx > start:
                text.append("\n")
            text.append("➤ " if idx == self.cursor_index else "  ")
            if line.member is None or line.key is None:
                text.append_text(format_dish_header(line.dish, visible_counts.get(line.dish.id, 0)))
                if visible_counts.get(line.dish.id, 0) == 0:
                    text.append("\n    No items yet", style="italic dim")
                continue
            text.append_text(
                format_item_row(
                    line.member,
                    self.engine.row(line.key),
                    shared=line.member.name in shared,
                    missing_recipe=not self.engine.has_recipe(line.key, line.member.name),
                    compact=self.engine.compact,
                )
            )
        if end < len(self.lines):
            text.append("\n⋮", style="dim")
        widget.update(text)
