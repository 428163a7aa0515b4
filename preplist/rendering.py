"""Rendering helpers for checklist rows."""

from __future__ import annotations

from rich.text import Text

from preplist.constant import EMPTY_CELL_LABEL, ON_HAND_LABEL, PREP_LABEL
from preplist.models import Container, FilterKind, Member, RowState, Selection, ViewMode, ViewState


def badge_style(kind: str) -> str:
    """Return a consistent badge style for row cells."""
    if kind == "on":
        return "bold #0b1f0f on #5fbf72"
    if kind == "prep":
        return "bold #ffffff on #2f6db5"
    return "dim"


def format_cell(kind: str, active: bool) -> Text:
    label = ON_HAND_LABEL if kind == "on" else PREP_LABEL
    if not active:
        return Text(f" {EMPTY_CELL_LABEL:^{len(label)}} ", style=badge_style(""))
    return Text(f" {label} ", style=badge_style(kind))


def format_dish_header(dish: Container, visible: int) -> Text:
    text = Text()
    text.append(f" {dish.name} ", style="bold #ffffff on #444444")
    if visible != len(dish.members):
        text.append(f"  {visible}/{len(dish.members)}", style="dim")
    return text


def format_item_row(
    member: Member,
    state: RowState,
    *,
    shared: bool,
    missing_recipe: bool,
    compact: bool = False,
) -> Text:
    """Render one checklist row: cells, name, markers and note."""
    text = Text()
    text.append_text(format_cell("on", state.on_hand))
    text.append(" ")
    text.append_text(format_cell("prep", state.prep))
    text.append(" ")

    name_style = ""
    if state.highlighted:
        name_style = "bold black on #f2d16b"
    elif shared:
        name_style = "#c9a0ff"
    text.append(member.name, style=name_style)
    if state.highlighted:
        text.append(" ★", style="#f2d16b")
    if missing_recipe:
        text.append(" (no recipe)", style="italic #ffb3b3")

    if state.note and not compact:
        text.append("\n        ")
        text.append(f"[{state.note}]", style="white")
    return text


def format_status(view: ViewState, selection: Selection, dish_name: str | None = None) -> Text:
    text = Text()
    mode_label = "DAILY" if view.mode is ViewMode.DAILY else "FULL"
    text.append(f" {mode_label} ", style=badge_style("prep" if view.mode is ViewMode.DAILY else "on"))
    if view.filter is FilterKind.DISH:
        text.append(f"  Show: {dish_name or '(no dish)'}")
    elif view.filter is FilterKind.HIGHLIGHTED:
        text.append("  Show: highlighted only")
    else:
        text.append("  Show: all dishes")
    if view.mode is ViewMode.DAILY and not selection.enabled:
        text.append("  (no daily list picked: showing everything)", style="dim")
    return text
