"""Thermal printer output of the current checklist view."""

from __future__ import annotations

import os
from pathlib import Path
from time import sleep
from typing import Callable, Sequence

from preplist.config import (
    PRINTER_FONT_PATH,
    PRINTER_FONT_SIZE,
    PRINTER_LEFT_INDENT_PX,
    PRINTER_TAIL_SPACER_PX,
    PRINTER_USB_PRODUCT_ID,
    PRINTER_USB_VENDOR_ID,
    PRINTER_WIDTH_PX,
)
from preplist.data import print_note_alias_for_text
from preplist.models import DishView, RowState

# Separator tuning values.
_SECTION_SEPARATOR_HEIGHT_PX = 14
_SECTION_SEPARATOR_THICKNESS_PX = 4
_SECTION_SEPARATOR_STRIPE_HEIGHT_PX = 2
_SECTION_SEPARATOR_PAUSE_SECONDS = 0.1
# Extra vertical headroom for full-size lines to avoid descender clipping on thermal output.
_MAIN_LINE_EXTRA_PX = 16
_FONT_OVERRIDE_ENV = "PREPLIST_PRINTER_FONT_PATH"
_LINUX_FONT_FALLBACKS = (
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/noto/NotoSans-Regular.ttf",
    "/usr/share/fonts/liberation/LiberationSans-Regular.ttf",
)


def checklist_lines(
    views: Sequence[DishView],
    row_for: Callable[[str, str], RowState],
    shared: frozenset[str] = frozenset(),
) -> list[tuple[str, str]]:
    """Flatten a projected view into ``(kind, text)`` print lines.

    ``row_for(dish_id, item_id)`` returns the row state of an item. Kinds are
    ``dish``, ``item``, ``note`` and ``empty``.
    """
    lines: list[tuple[str, str]] = []
    for view in views:
        lines.append(("dish", view.dish.name))
        if not view.members:
            lines.append(("empty", "  (no items)"))
            continue
        for member in view.members:
            state = row_for(view.dish.id, member.id)
            mark = "ON" if state.on_hand else ("PREP" if state.prep else "[ ]")
            suffix = " *" if member.name in shared else ""
            lines.append(("item", f"{mark} {member.name}{suffix}"))
            alias = print_note_alias_for_text(state.note)
            if alias:
                lines.append(("note", f"    {alias}"))
    return lines


def resolve_printer_font_path() -> str:
    """
    Resolve a printer font path with macOS default behavior preserved.

    Resolution order:
    1. PREPLIST_PRINTER_FONT_PATH (if set)
    2. PRINTER_FONT_PATH
    3. Known Linux fallbacks
    """
    env_override = os.environ.get(_FONT_OVERRIDE_ENV, "").strip()
    candidates: list[str] = []
    if env_override:
        candidates.append(env_override)
    candidates.append(PRINTER_FONT_PATH)
    candidates.extend(_LINUX_FONT_FALLBACKS)

    seen: set[str] = set()
    for candidate in candidates:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        if Path(candidate).is_file():
            return candidate

    raise RuntimeError(
        f"No usable printer font found. Set {_FONT_OVERRIDE_ENV} to a valid .ttf/.otf file. "
        f"Tried: {', '.join(seen)}"
    )


def check_printer_dependencies() -> tuple[bool, str]:
    """Check whether printer dependencies are importable."""
    try:
        from escpos.printer import Usb  # noqa: F401
        from PIL import ImageFont

        font_path = resolve_printer_font_path()
        ImageFont.truetype(font_path, max(10, PRINTER_FONT_SIZE // 2))
    except (ImportError, OSError, RuntimeError) as exc:
        return (False, f"Printer deps unavailable: {exc}")
    return (True, "Printer ready")


def _fit_text_to_px(text: str, font: object, max_width_px: int) -> str:
    from PIL import Image, ImageDraw

    sample = Image.new("1", (1, 1), color=1)
    draw = ImageDraw.Draw(sample)
    if draw.textbbox((0, 0), text, font=font)[2] <= max_width_px:
        return text
    ellipsis = "..."
    trimmed = text
    while trimmed:
        candidate = f"{trimmed}{ellipsis}"
        if draw.textbbox((0, 0), candidate, font=font)[2] <= max_width_px:
            return candidate
        trimmed = trimmed[:-1]
    return ellipsis


def _render_line(text: str, font: object) -> object:
    from PIL import Image, ImageDraw

    canvas_height = PRINTER_FONT_SIZE + _MAIN_LINE_EXTRA_PX
    img = Image.new("1", (PRINTER_WIDTH_PX, canvas_height), color=1)
    draw = ImageDraw.Draw(img)

    text = _fit_text_to_px(text, font, PRINTER_WIDTH_PX - PRINTER_LEFT_INDENT_PX * 2)
    bbox = draw.textbbox((0, 0), text, font=font)
    text_height = bbox[3] - bbox[1]

    x = PRINTER_LEFT_INDENT_PX
    # Offset by bbox top so descenders (g, y, p, etc.) are not clipped.
    y = (canvas_height - text_height) // 2 - bbox[1]
    draw.text((x, y), text, font=font, fill=0)
    return img


def _render_spacer(height_px: int) -> object:
    from PIL import Image

    return Image.new("1", (PRINTER_WIDTH_PX, max(1, height_px)), color=1)


def _render_section_separator() -> object:
    from PIL import Image, ImageDraw

    img = Image.new("1", (PRINTER_WIDTH_PX, _SECTION_SEPARATOR_HEIGHT_PX), color=1)
    draw = ImageDraw.Draw(img)
    top = max(0, (_SECTION_SEPARATOR_HEIGHT_PX - _SECTION_SEPARATOR_THICKNESS_PX) // 2)
    bottom = min(_SECTION_SEPARATOR_HEIGHT_PX - 1, top + _SECTION_SEPARATOR_THICKNESS_PX - 1)
    draw.rectangle((0, top, PRINTER_WIDTH_PX - 1, bottom), fill=0)
    return img


def _print_section_separator(printer: object) -> None:
    """Print the dish separator a few dot rows at a time so the head cools between stripes."""
    separator = _render_section_separator()
    for top in range(0, separator.height, _SECTION_SEPARATOR_STRIPE_HEIGHT_PX):
        bottom = min(separator.height, top + _SECTION_SEPARATOR_STRIPE_HEIGHT_PX)
        stripe = separator.crop((0, top, PRINTER_WIDTH_PX, bottom))
        printer.image(stripe)
        if bottom < separator.height:
            sleep(_SECTION_SEPARATOR_PAUSE_SECONDS)


def print_checklist(
    views: Sequence[DishView],
    row_for: Callable[[str, str], RowState],
    shared: frozenset[str] = frozenset(),
) -> int:
    """Print the projected checklist and cut. Returns the number of lines printed."""
    lines = checklist_lines(views, row_for, shared)
    if not lines:
        return 0

    try:
        from escpos.printer import Usb
        from PIL import ImageFont
    except ImportError as exc:
        raise RuntimeError(f"Printer dependencies unavailable: {exc}") from exc

    printer = Usb(PRINTER_USB_VENDOR_ID, PRINTER_USB_PRODUCT_ID)
    font_path = resolve_printer_font_path()
    font = ImageFont.truetype(font_path, PRINTER_FONT_SIZE)
    header_font = ImageFont.truetype(font_path, PRINTER_FONT_SIZE + 8)
    note_font = ImageFont.truetype(font_path, max(14, PRINTER_FONT_SIZE - 12))

    for idx, (kind, text) in enumerate(lines):
        if kind == "dish":
            if idx > 0:
                _print_section_separator(printer)
            printer.image(_render_line(text, header_font))
        elif kind == "note":
            printer.image(_render_line(text, note_font))
        else:
            printer.image(_render_line(text, font))

    printer.image(_render_spacer(PRINTER_TAIL_SPACER_PX))
    printer.cut()
    return len(lines)
