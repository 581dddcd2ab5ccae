"""Aggregate counters over a connection snapshot."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sockscope.collector.models import Connection, format_timestamp


@dataclass(frozen=True)
class ProcessCount:
    pid: int
    process: str
    count: int


@dataclass(frozen=True)
class InterfaceCount:
    interface: str
    count: int


@dataclass(frozen=True)
class Stats:
    ts: datetime
    total: int
    by_proto: dict[str, int] = field(default_factory=dict)
    by_state: dict[str, int] = field(default_factory=dict)
    by_proc: tuple[ProcessCount, ...] = ()
    by_if: tuple[InterfaceCount, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "ts": format_timestamp(self.ts),
            "total": self.total,
            "by_proto": dict(self.by_proto),
            "by_state": dict(self.by_state),
            "by_proc": [
                {"pid": p.pid, "process": p.process, "count": p.count}
                for p in self.by_proc
            ],
            "by_if": [{"if": i.interface, "count": i.count} for i in self.by_if],
        }


def compute_stats(
    connections: list[Connection], now: datetime | None = None
) -> Stats:
    """Count connections by protocol, state, process and interface.

    Process and interface breakdowns are sorted by count, highest first;
    ties keep first-seen order. Connections without a process name or
    interface are left out of those breakdowns.
    """
    by_proto: Counter[str] = Counter()
    by_state: Counter[str] = Counter()
    by_proc: Counter[tuple[int, str]] = Counter()
    by_if: Counter[str] = Counter()

    for conn in connections:
        by_proto[conn.proto] += 1
        by_state[conn.state] += 1
        if conn.process:
            by_proc[(conn.pid, conn.process)] += 1
        if conn.interface:
            by_if[conn.interface] += 1

    procs = sorted(by_proc.items(), key=lambda item: item[1], reverse=True)
    ifaces = sorted(by_if.items(), key=lambda item: item[1], reverse=True)

    return Stats(
        ts=now or datetime.now().astimezone(),
        total=len(connections),
        by_proto=dict(by_proto),
        by_state=dict(by_state),
        by_proc=tuple(ProcessCount(pid, name, n) for (pid, name), n in procs),
        by_if=tuple(InterfaceCount(name, n) for name, n in ifaces),
    )
