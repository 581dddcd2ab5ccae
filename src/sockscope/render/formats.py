"""One-shot renderers: styled table, plain table, CSV, JSON, trace, stats."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Sequence

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from sockscope.collector.models import Connection, format_timestamp
from sockscope.enrich.enricher import Enricher
from sockscope.enrich.geoip import country_flag
from sockscope.render.text import truncate
from sockscope.stats import Stats
from sockscope.trace.tracker import EventKind, TraceEvent

DEFAULT_CSV_FIELDS = (
    "pid", "process", "user", "uid", "proto", "state", "laddr", "lport", "raddr", "rport",
)
DEFAULT_PLAIN_FIELDS = (
    "pid", "process", "user", "proto", "state", "laddr", "lport", "raddr", "rport",
)
DEFAULT_STYLED_FIELDS = (
    "process", "pid", "proto", "state", "laddr", "lport", "raddr", "rport",
)
GEO_FIELDS = ("country", "org")

# Styled table cells are capped at this many columns.
_MAX_CELL = 25

_STATE_STYLES = {
    "LISTEN": "green",
    "ESTABLISHED": "blue",
    "TIME_WAIT": "yellow",
    "CLOSE_WAIT": "yellow",
}


def field_map(
    conn: Connection, enricher: Enricher, geo: bool = False
) -> dict[str, str]:
    """Display strings for every selectable field, after enrichment."""
    remote_port = enricher.port(conn.rport, conn.proto) if conn.rport else str(conn.rport)
    values = {
        "pid": str(conn.pid),
        "process": conn.process,
        "user": conn.user,
        "uid": str(conn.uid),
        "proto": conn.proto,
        "ipversion": conn.ipversion,
        "state": conn.state,
        "laddr": enricher.addr(conn.laddr),
        "lport": enricher.port(conn.lport, conn.proto),
        "raddr": enricher.addr(conn.raddr) if conn.has_remote else conn.raddr,
        "rport": remote_port,
        "if": conn.interface,
        "rx_bytes": str(conn.rx_bytes),
        "tx_bytes": str(conn.tx_bytes),
        "rtt_ms": f"{conn.rtt_ms:.1f}",
        "mark": conn.mark,
        "namespace": conn.namespace,
        "inode": str(conn.inode),
        "ts": format_timestamp(conn.ts),
    }
    if geo:
        info = enricher.geo(conn)
        flag = country_flag(info.country_code).strip()
        values["country"] = f"{flag} {info.country_code}".strip()
        values["org"] = info.org
    return values


def _needs_geo(fields: Sequence[str]) -> bool:
    return any(f in GEO_FIELDS for f in fields)


def connections_json(connections: Sequence[Connection]) -> str:
    return json.dumps([c.to_dict() for c in connections], indent=2)


def print_json(
    console: Console, connections: Sequence[Connection], color: bool = True
) -> None:
    text = connections_json(connections)
    if color:
        console.print_json(text)
    else:
        console.print(text, markup=False, highlight=False, soft_wrap=True)


def render_csv(
    connections: Sequence[Connection],
    enricher: Enricher,
    fields: Sequence[str] = (),
    headers: bool = True,
    timestamp: bool = False,
) -> str:
    fields = _default_fields(fields, DEFAULT_CSV_FIELDS, timestamp)
    geo = _needs_geo(fields)
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    if headers:
        writer.writerow([f.upper() for f in fields])
    for conn in connections:
        values = field_map(conn, enricher, geo)
        writer.writerow([values.get(f, "") for f in fields])
    return buf.getvalue()


def render_plain(
    connections: Sequence[Connection],
    enricher: Enricher,
    fields: Sequence[str] = (),
    headers: bool = True,
    timestamp: bool = False,
) -> str:
    """Space-aligned columns, no styling; safe to pipe into awk/cut."""
    fields = _default_fields(fields, DEFAULT_PLAIN_FIELDS, timestamp)
    geo = _needs_geo(fields)
    rows = [[field_map(c, enricher, geo).get(f, "") for f in fields] for c in connections]
    if headers:
        rows.insert(0, [f.upper() for f in fields])
    if not rows:
        return ""
    widths = [max(len(row[i]) for row in rows) for i in range(len(fields))]
    lines = []
    for row in rows:
        cells = [cell.ljust(widths[i]) for i, cell in enumerate(row)]
        lines.append("   ".join(cells).rstrip())
    return "\n".join(lines) + "\n"


def styled_table(
    connections: Sequence[Connection],
    enricher: Enricher,
    fields: Sequence[str] = (),
    headers: bool = True,
) -> Table:
    fields = list(fields) or list(DEFAULT_STYLED_FIELDS)
    geo = _needs_geo(fields)
    table = Table(
        box=box.ROUNDED,
        show_header=headers,
        header_style="bold",
        border_style="grey50",
        caption=f"{len(connections)} connections",
        caption_justify="left",
        caption_style="dim",
    )
    for f in fields:
        table.add_column(f.upper(), no_wrap=True, max_width=_MAX_CELL)

    for conn in connections:
        values = field_map(conn, enricher, geo)
        cells: list[Text] = []
        for f in fields:
            value = truncate(values.get(f, ""), _MAX_CELL)
            style = ""
            if f == "proto":
                style = "magenta" if "udp" in conn.proto else "cyan"
            elif f == "state":
                style = _STATE_STYLES.get(conn.state.upper(), "bright_black")
            elif f == "process":
                style = "bold"
            cells.append(Text(value, style=style))
        table.add_row(*cells)
    return table


def trace_json(event: TraceEvent) -> str:
    return json.dumps(event.to_dict())


def trace_human(event: TraceEvent, enricher: Enricher, timestamp: bool = False) -> str:
    """``+ TCP ESTABLISHED 10.0.0.2:51000->1.2.3.4:https (curl[42])``"""
    conn = event.connection
    prefix = event.ts.strftime("%H:%M:%S.%f")[:-3] + " " if timestamp else ""
    icon = "+" if event.kind is EventKind.OPENED else "-"

    local = f"{enricher.addr(conn.laddr)}:{enricher.port(conn.lport, conn.proto)}"
    if conn.has_remote:
        remote = f"{enricher.addr(conn.raddr)}:{enricher.port(conn.rport, conn.proto)}"
        endpoints = f"{local}->{remote}"
    else:
        endpoints = local

    process = f" ({conn.process}[{conn.pid}])" if conn.process else ""
    state = conn.state or "UNKNOWN"
    return f"{prefix}{icon} {conn.proto.upper()} {state} {endpoints}{process}"


def stats_json(stats: Stats) -> str:
    return json.dumps(stats.to_dict(), indent=2)


def render_stats_csv(stats: Stats, headers: bool = True) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    ts = format_timestamp(stats.ts)
    if headers:
        writer.writerow(["timestamp", "metric", "key", "value"])
    writer.writerow([ts, "total", "", stats.total])
    for proto, n in stats.by_proto.items():
        writer.writerow([ts, "proto", proto, n])
    for state, n in stats.by_state.items():
        writer.writerow([ts, "state", state, n])
    for proc in stats.by_proc:
        writer.writerow([ts, "process", proc.process, proc.count])
    for iface in stats.by_if:
        writer.writerow([ts, "interface", iface.interface, iface.count])
    return buf.getvalue()


def render_stats_table(stats: Stats, headers: bool = True, top: int = 10) -> str:
    lines: list[str] = []
    if headers:
        lines.append(f"TIMESTAMP           {format_timestamp(stats.ts)}")
        lines.append(f"TOTAL CONNECTIONS   {stats.total}")
        lines.append("")

    def section(title: str, head: str, rows: list[str]) -> None:
        if not rows:
            return
        if headers:
            lines.append(title)
            lines.append(head)
        lines.extend(rows)
        lines.append("")

    section(
        "BY PROTOCOL:",
        f"{'PROTO':<8}COUNT",
        [f"{p.upper():<8}{stats.by_proto[p]}" for p in sorted(stats.by_proto)],
    )
    section(
        "BY STATE:",
        f"{'STATE':<14}COUNT",
        [f"{(s or '-'):<14}{stats.by_state[s]}" for s in sorted(stats.by_state)],
    )
    section(
        f"BY PROCESS (TOP {top}):",
        f"{'PID':<8}{'PROCESS':<20}COUNT",
        [f"{p.pid:<8}{truncate(p.process, 19):<20}{p.count}" for p in stats.by_proc[:top]],
    )
    section(
        "BY INTERFACE:",
        f"{'IF':<12}COUNT",
        [f"{i.interface:<12}{i.count}" for i in stats.by_if],
    )
    return "\n".join(lines).rstrip("\n") + "\n"


def _default_fields(
    fields: Sequence[str], default: Sequence[str], timestamp: bool
) -> list[str]:
    if fields:
        return list(fields)
    chosen = list(default)
    if timestamp:
        chosen.insert(0, "ts")
    return chosen
