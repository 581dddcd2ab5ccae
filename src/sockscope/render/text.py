"""Width-aware text primitives and the modal overlay compositor.

All widths are terminal display columns: escape sequences count as zero and
wide characters (CJK, most emoji) count as two, as measured by rich.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from rich.cells import cell_len, get_character_cell_size

ELLIPSIS = "…"

BOX_TOP_LEFT = "╭"
BOX_TOP_RIGHT = "╮"
BOX_BOTTOM_LEFT = "╰"
BOX_BOTTOM_RIGHT = "╯"
BOX_HORIZONTAL = "─"
BOX_VERTICAL = "│"

# Modal content is padded by this many columns in total inside the border.
MODAL_PADDING = 4
# The modal never starts above this row (title and filter bar stay visible).
MODAL_MIN_TOP = 2

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(s: str) -> str:
    return _ANSI_RE.sub("", s)


def display_width(s: str) -> int:
    """Visible width of ``s`` ignoring SGR escape sequences."""
    return cell_len(strip_ansi(s))


def _take_cells(s: str, width: int) -> str:
    """Longest prefix of plain ``s`` that fits in ``width`` columns."""
    used = 0
    out: list[str] = []
    for ch in s:
        w = get_character_cell_size(ch)
        if used + w > width:
            break
        out.append(ch)
        used += w
    return "".join(out)


def truncate(s: str, width: int) -> str:
    """Fit plain ``s`` into ``width`` columns, ending in an ellipsis if cut."""
    if width <= 0:
        return ""
    if cell_len(s) <= width:
        return s
    if width <= 2:
        return _take_cells(s, width)
    return _take_cells(s, width - 1) + ELLIPSIS


def pad(s: str, width: int) -> str:
    """Right-pad ``s`` with spaces to ``width`` display columns."""
    gap = width - display_width(s)
    return s + " " * gap if gap > 0 else s


def fit(s: str, width: int) -> str:
    """Truncate then pad, giving exactly ``width`` columns."""
    return pad(truncate(s, width), width)


def visible_slice(s: str, start: int, end: int) -> str:
    """Columns ``[start, end)`` of a styled line.

    Every escape sequence in the line is kept, including those in the
    dropped ranges, so text after a cut keeps its styling and a closing
    reset past ``end`` still closes it. A wide character straddling either
    edge is dropped.
    """
    if start >= end:
        return ""

    out: list[str] = []
    pos = 0
    in_escape = False

    for ch in s:
        if ch == "\x1b":
            in_escape = True
            out.append(ch)
            continue
        if in_escape:
            out.append(ch)
            if ch.isascii() and ch.isalpha():
                in_escape = False
            continue

        w = get_character_cell_size(ch)
        if pos >= start and pos + w <= end:
            out.append(ch)
        pos += w

    return "".join(out)


def overlay(
    background: str,
    modal: str,
    width: int,
    height: int,
    border: Callable[[str], str] = lambda s: s,
) -> str:
    """Draw ``modal`` in a rounded box centred over ``background``.

    ``border`` styles the box-drawing characters. Background lines keep
    their styling on both sides of the box. The background is extended
    with blank lines when the box would fall below it.
    """
    bg_lines = background.split("\n")
    modal_lines = modal.split("\n")

    inner_width = max((display_width(line) for line in modal_lines), default=0)
    inner_width += MODAL_PADDING
    modal_height = len(modal_lines)
    box_width = inner_width + 2

    start_row = max(MODAL_MIN_TOP, (height - modal_height) // 2)
    start_col = max(0, (width - box_width) // 2)

    result = list(bg_lines)
    while len(result) < start_row + modal_height + 1:
        result.append(" " * width)

    def splice(bg_line: str, content: str) -> str:
        end_col = start_col + display_width(content)
        left = visible_slice(bg_line, 0, start_col)
        right = visible_slice(bg_line, end_col, max(width, end_col))
        if "\x1b" in right:
            right += "\x1b[0m"
        left = pad(left, start_col)
        if "\x1b" in left:
            left += "\x1b[0m"
        return left + content + right

    top = start_row - 1
    if 0 <= top < len(result):
        edge = BOX_TOP_LEFT + BOX_HORIZONTAL * inner_width + BOX_TOP_RIGHT
        result[top] = splice(result[top], border(edge))

    for i, line in enumerate(modal_lines):
        row = start_row + i
        boxed = border(BOX_VERTICAL) + pad(line, inner_width) + border(BOX_VERTICAL)
        result[row] = splice(result[row], boxed)

    bottom = start_row + modal_height
    edge = BOX_BOTTOM_LEFT + BOX_HORIZONTAL * inner_width + BOX_BOTTOM_RIGHT
    result[bottom] = splice(result[bottom], border(edge))

    return "\n".join(result)
