"""Immutable session state for the live view.

State is only ever replaced by the reducer in ``tui.update``; nothing here
mutates in place.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

from sockscope.collector.models import Connection
from sockscope.enrich.geoip import IpInfo
from sockscope.query.sort import SortSpec, sort_connections


class ViewMode(enum.Enum):
    """Which input mode / modal the session is in."""

    NORMAL = "normal"
    SEARCH = "search"
    DETAIL = "detail"
    HELP = "help"
    KILL_CONFIRM = "kill_confirm"


@dataclass(frozen=True)
class DetailInfo:
    """Enrichment fetched for an open detail modal."""

    hostname: str = ""
    geo: IpInfo = field(default_factory=IpInfo)


@dataclass(frozen=True)
class SessionOptions:
    """Start-up options, usually from CLI shortcut flags."""

    interval: float = 1.0
    tcp: bool = False
    udp: bool = False
    listening: bool = False
    established: bool = False
    other: bool = False
    filter_set: bool = False


@dataclass(frozen=True)
class SessionState:
    connections: tuple[Connection, ...] = ()
    cursor: int = 0
    width: int = 80
    height: int = 24

    show_tcp: bool = True
    show_udp: bool = True
    show_listening: bool = True
    show_established: bool = True
    show_other: bool = True

    search_query: str = ""
    sort: SortSpec = field(default_factory=SortSpec)
    watched: frozenset[int] = frozenset()

    mode: ViewMode = ViewMode.NORMAL
    selected: Connection | None = None
    detail: DetailInfo | None = None
    kill_target: Connection | None = None

    status_message: str = ""
    status_expiry: float = 0.0
    interval: float = 1.0
    last_refresh: float = 0.0
    error: str = ""
    running: bool = True

    @classmethod
    def initial(cls, options: SessionOptions | None = None) -> SessionState:
        """Default state: show everything, sorted by local port."""
        opts = options or SessionOptions()
        state = cls(interval=opts.interval if opts.interval > 0 else 1.0)
        if not opts.filter_set:
            return state

        any_proto = opts.tcp or opts.udp
        any_state = opts.listening or opts.established or opts.other
        return replace(
            state,
            show_tcp=opts.tcp if any_proto else True,
            show_udp=opts.udp if any_proto else True,
            show_listening=opts.listening if any_state else True,
            show_established=opts.established if any_state else True,
            show_other=opts.other if any_state else True,
        )

    # --- derived views ---

    @property
    def search_active(self) -> bool:
        return self.mode is ViewMode.SEARCH

    def is_watched(self, pid: int) -> bool:
        return pid > 0 and pid in self.watched

    def matches_show_flags(self, c: Connection) -> bool:
        proto = c.proto.lower()
        if proto in ("tcp", "tcp6") and not self.show_tcp:
            return False
        if proto in ("udp", "udp6") and not self.show_udp:
            return False

        if c.state == "LISTEN":
            return self.show_listening
        if c.state == "ESTABLISHED":
            return self.show_established
        return self.show_other

    def matches_search(self, c: Connection) -> bool:
        query = self.search_query.lower()
        if not query:
            return True
        return any(
            query in value.lower()
            for value in (c.process, c.laddr, c.raddr, c.user, c.proto, c.state)
        )

    def visible(self) -> list[Connection]:
        """Connections on screen: filtered, searched, watched pids first."""
        watched: list[Connection] = []
        rest: list[Connection] = []
        for c in self.connections:
            if not self.matches_show_flags(c) or not self.matches_search(c):
                continue
            (watched if self.is_watched(c.pid) else rest).append(c)
        return watched + rest

    def current(self) -> Connection | None:
        rows = self.visible()
        if 0 <= self.cursor < len(rows):
            return rows[self.cursor]
        return None

    @property
    def page_size(self) -> int:
        size = self.height - 8
        return size if size >= 1 else 10

    # --- copy helpers used by the reducer ---

    def clamped(self) -> SessionState:
        """Same state with the cursor pulled into the visible range."""
        total = len(self.visible())
        cursor = 0 if total == 0 else max(0, min(self.cursor, total - 1))
        return self if cursor == self.cursor else replace(self, cursor=cursor)

    def resorted(self) -> SessionState:
        return replace(
            self, connections=tuple(sort_connections(list(self.connections), self.sort))
        )
