"""Composite row keys: ``<dish id>|<item id>`` with percent-escaping."""

from __future__ import annotations

from preplist.errors import UnparseableKey

SEPARATOR = "|"

_ESCAPES = (("%", "%25"), (SEPARATOR, "%7C"))


def _escape(part: str) -> str:
    for raw, escaped in _ESCAPES:
        part = part.replace(raw, escaped)
    return part


def _unescape(part: str, key: str) -> str:
    out: list[str] = []
    idx = 0
    while idx < len(part):
        char = part[idx]
        if char != "%":
            out.append(char)
            idx += 1
            continue
        token = part[idx : idx + 3]
        if token == "%25":
            out.append("%")
        elif token == "%7C":
            out.append(SEPARATOR)
        else:
            raise UnparseableKey(key)
        idx += 3
    return "".join(out)


def encode(container_id: str, member_id: str) -> str:
    """Build the row key for an item of a dish."""
    if not container_id or not member_id:
        raise ValueError("container_id and member_id must be non-empty")
    return f"{_escape(container_id)}{SEPARATOR}{_escape(member_id)}"


def decode(key: str) -> tuple[str, str]:
    """Split a row key back into ``(container_id, member_id)``."""
    parts = key.split(SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise UnparseableKey(key)
    return (_unescape(parts[0], key), _unescape(parts[1], key))


def container_of(key: str) -> str:
    return decode(key)[0]
