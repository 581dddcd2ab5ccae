"""Sort engine: stable ordering of connection lists."""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sockscope.collector.models import Connection


class SortError(ValueError):
    """Unknown sort field or direction."""


class SortField(enum.Enum):
    """Columns a connection list can be ordered by."""

    LPORT = "lport"
    PROCESS = "process"
    PID = "pid"
    STATE = "state"
    PROTO = "proto"

    @property
    def label(self) -> str:
        return _LABELS[self]

    def next(self) -> SortField:
        """The following field in the live view's sort cycle."""
        members = list(SortField)
        return members[(members.index(self) + 1) % len(members)]


_LABELS = {
    SortField.LPORT: "port",
    SortField.PROCESS: "proc",
    SortField.PID: "pid",
    SortField.STATE: "state",
    SortField.PROTO: "proto",
}

_ALIASES = {
    "port": SortField.LPORT,
    "lport": SortField.LPORT,
    "process": SortField.PROCESS,
    "proc": SortField.PROCESS,
    "pid": SortField.PID,
    "state": SortField.STATE,
    "proto": SortField.PROTO,
}

_KEYS: dict[SortField, Callable[[Connection], Any]] = {
    SortField.LPORT: lambda c: c.lport,
    SortField.PROCESS: lambda c: c.process.lower(),
    SortField.PID: lambda c: c.pid,
    SortField.STATE: lambda c: c.state,
    SortField.PROTO: lambda c: c.proto,
}


@dataclass(frozen=True)
class SortSpec:
    field: SortField = SortField.LPORT
    descending: bool = False


def parse_sort(text: str) -> SortSpec:
    """Parse ``field`` or ``field:asc|desc``."""
    name, _, direction = text.strip().lower().partition(":")
    try:
        field = _ALIASES[name]
    except KeyError:
        raise SortError(
            f"unknown sort field: {name} (available: {', '.join(sorted(_ALIASES))})"
        ) from None
    if direction not in ("", "asc", "desc"):
        raise SortError(f"unknown sort direction: {direction} (use asc or desc)")
    return SortSpec(field=field, descending=direction == "desc")


def sort_connections(
    connections: list[Connection], spec: SortSpec | None = None
) -> list[Connection]:
    """Return a new, stably sorted list.

    ``sorted(..., reverse=True)`` keeps equal keys in their original order,
    so flipping direction never reorders ties.
    """
    spec = spec or SortSpec()
    return sorted(connections, key=_KEYS[spec.field], reverse=spec.descending)
