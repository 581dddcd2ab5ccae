"""Trace: turn successive snapshots into opened/closed events."""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sockscope.collector.base import ConnectionSource, SourceError
from sockscope.collector.models import (
    Connection,
    ConnectionIdentity,
    format_timestamp,
)
from sockscope.query.filters import FilterSpec, filter_connections

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now().astimezone()


class EventKind(enum.Enum):
    OPENED = "opened"
    CLOSED = "closed"


@dataclass(frozen=True)
class TraceEvent:
    """A connection appearing in or disappearing from the socket table."""

    kind: EventKind
    connection: Connection
    ts: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ts": format_timestamp(self.ts),
            "event": self.kind.value,
            "connection": self.connection.to_dict(),
        }


def index_by_identity(
    connections: list[Connection],
) -> dict[ConnectionIdentity, Connection]:
    """Key a snapshot by identity; later duplicates replace earlier ones."""
    return {c.identity: c for c in connections}


def diff_snapshots(
    baseline: dict[ConnectionIdentity, Connection],
    current: dict[ConnectionIdentity, Connection],
    now: datetime | None = None,
) -> list[TraceEvent]:
    """Opened events (current-snapshot order), then closed events."""
    ts = now or _now()
    events = [
        TraceEvent(EventKind.OPENED, conn, ts)
        for key, conn in current.items()
        if key not in baseline
    ]
    events.extend(
        TraceEvent(EventKind.CLOSED, conn, ts)
        for key, conn in baseline.items()
        if key not in current
    )
    return events


class DiffTracker:
    """Two-state tracker: uninitialized until the first successful fetch.

    The baseline is only replaced after a successful fetch, so a failed
    poll leaves it exactly as it was.
    """

    def __init__(
        self,
        source: ConnectionSource,
        spec: FilterSpec | None = None,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._source = source
        self._spec = spec or FilterSpec()
        self._clock = clock
        self._baseline: dict[ConnectionIdentity, Connection] | None = None

    @property
    def tracking(self) -> bool:
        return self._baseline is not None

    @property
    def baseline(self) -> dict[ConnectionIdentity, Connection]:
        return dict(self._baseline or {})

    def poll(self) -> list[TraceEvent]:
        """Fetch once and return the resulting events.

        Raises SourceError if the fetch fails.
        """
        now = self._clock()
        snapshot = filter_connections(self._source.fetch(), self._spec, now)
        current = index_by_identity(snapshot)

        if self._baseline is None:
            self._baseline = current
            logger.debug("Trace baseline established with %d connections", len(current))
            return []

        events = diff_snapshots(self._baseline, current, now)
        self._baseline = current
        return events


def run_trace(
    tracker: DiffTracker,
    interval: float,
    stop_event: threading.Event,
    on_event: Callable[[TraceEvent], None],
    count: int = 0,
    on_error: Callable[[SourceError], None] | None = None,
) -> int:
    """Poll until ``stop_event`` is set or ``count`` events were emitted.

    The first poll happens immediately to establish the baseline; every
    later poll waits ``interval`` seconds on ``stop_event``, so setting it
    aborts the wait at once. Returns the number of events emitted.
    """
    emitted = 0
    first = True

    while not stop_event.is_set():
        if not first and stop_event.wait(timeout=interval):
            break
        first = False

        try:
            events = tracker.poll()
        except SourceError as exc:
            logger.warning("Error getting connections: %s", exc)
            if on_error is not None:
                on_error(exc)
            continue

        for event in events:
            on_event(event)
            emitted += 1
            if count and emitted >= count:
                return emitted

    return emitted
