"""Column allocation and scrolling for the live connection table."""

from __future__ import annotations

from dataclasses import dataclass

# Terminals narrower than this are laid out as if they were this wide.
MIN_WIDTH = 80
# Indicator, separators and margins around the six columns.
_CHROME = 16


@dataclass(frozen=True)
class Columns:
    process: int = 16
    port: int = 6
    proto: int = 5
    state: int = 11
    local: int = 15
    remote: int = 20

    @property
    def total(self) -> int:
        return self.process + self.port + self.proto + self.state + self.local + self.remote


def safe_width(width: int) -> int:
    return max(width, MIN_WIDTH)


def column_widths(width: int) -> Columns:
    """Start from fixed minimums and hand any surplus to the variable columns.

    One third of the surplus widens the process column, the rest widens the
    remote endpoint column.
    """
    base = Columns()
    extra = safe_width(width) - _CHROME - base.total
    if extra <= 0:
        return base
    return Columns(
        process=base.process + extra // 3,
        remote=base.remote + extra - extra // 3,
    )


def scroll_offset(cursor: int, page_size: int, total: int) -> int:
    """First visible row, keeping the cursor roughly centred."""
    if total <= page_size:
        return 0
    offset = cursor - page_size // 2
    return max(0, min(offset, total - page_size))
