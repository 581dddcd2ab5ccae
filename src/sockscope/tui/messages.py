"""Messages fed to the reducer and tasks it asks the host to run.

Every producer (keyboard, timers, worker threads) talks to the session only
by posting a message onto one queue. Tasks are plain data; ``TuiApp``
executes them with its injected collaborators and posts the result back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from sockscope.collector.models import Connection
from sockscope.tui.state import DetailInfo

# --- messages ---


@dataclass(frozen=True)
class KeyPress:
    key: str


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True)
class DataLoaded:
    connections: tuple[Connection, ...]
    at: float = 0.0


@dataclass(frozen=True)
class FetchFailed:
    error: str


@dataclass(frozen=True)
class KillResult:
    pid: int
    process: str
    success: bool
    error: str = ""


@dataclass(frozen=True)
class DetailEnriched:
    connection: Connection
    info: DetailInfo


@dataclass(frozen=True)
class ClearStatus:
    pass


Message = Union[
    KeyPress, Tick, Resize, DataLoaded, FetchFailed, KillResult, DetailEnriched, ClearStatus
]

# --- tasks ---


@dataclass(frozen=True)
class FetchTask:
    pass


@dataclass(frozen=True)
class TickTask:
    delay: float


@dataclass(frozen=True)
class KillTask:
    pid: int
    process: str


@dataclass(frozen=True)
class EnrichTask:
    connection: Connection


@dataclass(frozen=True)
class ClearStatusTask:
    delay: float


Task = Union[FetchTask, TickTask, KillTask, EnrichTask, ClearStatusTask]
