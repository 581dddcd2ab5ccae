"""Filter engine: declarative ``key=value`` predicates over connections.

Every populated field of a FilterSpec is one predicate; a connection matches
when all of them hold. Specs are built fail-fast: a malformed argument raises
FilterError and nothing is partially applied.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields, replace
from datetime import datetime, timedelta

from sockscope.collector.models import Connection, parse_timestamp

_STATE_ALIASES = {
    "LISTENING": "LISTEN",
    "ESTAB": "ESTABLISHED",
}

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}

FILTER_KEYS = (
    "proto, state, pid, proc, lport, rport, user, laddr, raddr, contains, "
    "if, mark, namespace, inode, since"
)


class FilterError(ValueError):
    """Malformed filter argument, unknown key, or unparsable value."""


@dataclass(frozen=True)
class FilterSpec:
    """Conjunction of connection predicates. Unset fields are None."""

    proto: str | None = None
    state: str | None = None
    pid: int | None = None
    proc: str | None = None
    lport: int | None = None
    rport: int | None = None
    uid: int | None = None
    user: str | None = None
    laddr: str | None = None
    raddr: str | None = None
    contains: str | None = None
    interface: str | None = None
    mark: str | None = None
    namespace: str | None = None
    inode: int | None = None
    since: datetime | None = None
    since_rel: timedelta | None = None
    ipv4: bool = False
    ipv6: bool = False

    @property
    def is_empty(self) -> bool:
        return self == FilterSpec()

    @property
    def ip_family(self) -> str | None:
        """``IPv4``, ``IPv6``, or None when both or neither flag is set."""
        if self.ipv4 == self.ipv6:
            return None
        return "IPv4" if self.ipv4 else "IPv6"

    def merge(self, other: FilterSpec) -> FilterSpec:
        """Combine two specs into one equivalent conjunction.

        Raises FilterError when both set the same key to different values.
        """
        mine_family, their_family = self.ip_family, other.ip_family
        if mine_family and their_family and mine_family != their_family:
            raise FilterError(
                f"conflicting values for ip family: {mine_family} and {their_family}"
            )
        family = mine_family or their_family
        changes: dict[str, object] = {
            "ipv4": family == "IPv4",
            "ipv6": family == "IPv6",
        }
        for f in fields(self):
            if f.name in ("ipv4", "ipv6"):
                continue
            mine = getattr(self, f.name)
            theirs = getattr(other, f.name)
            if theirs is None:
                continue
            if mine is not None and mine != theirs:
                raise FilterError(
                    f"conflicting values for {f.name}: {mine!r} and {theirs!r}"
                )
            changes[f.name] = theirs
        return replace(self, **changes)


def parse_filter_args(args: list[str] | tuple[str, ...]) -> FilterSpec:
    """Parse ``key=value`` arguments into a FilterSpec."""
    values: dict[str, object] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep:
            raise FilterError(f"invalid filter format: {arg} (expected key=value)")
        values.update(_parse_one(key.strip().lower(), value))
    return FilterSpec(**values)  # type: ignore[arg-type]


def _parse_one(key: str, value: str) -> dict[str, object]:
    if key == "proto":
        return {"proto": value}
    if key == "state":
        return {"state": value}
    if key in ("pid", "lport", "rport", "inode"):
        return {key: _parse_int(key, value)}
    if key == "proc":
        return {"proc": value}
    if key == "user":
        try:
            return {"uid": int(value)}
        except ValueError:
            return {"user": value}
    if key in ("laddr", "raddr", "contains", "mark", "namespace"):
        return {key: value}
    if key in ("if", "interface"):
        return {"interface": value}
    if key == "since":
        since, since_rel = parse_time_filter(value)
        return {"since": since, "since_rel": since_rel}
    raise FilterError(f"unknown filter key: {key} (available: {FILTER_KEYS})")


def _parse_int(key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise FilterError(f"invalid {key} value: {value}") from None


def parse_duration(text: str) -> timedelta:
    """Parse ``1h30m``, ``90s``, ``500ms``, ``2d`` style durations."""
    text = text.strip()
    pos = 0
    total = timedelta()
    for m in _DURATION_RE.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if not text or pos != len(text):
        raise FilterError(f"invalid duration: {text}")
    return total


def parse_time_filter(value: str) -> tuple[datetime | None, timedelta | None]:
    """Return (absolute bound, relative bound); exactly one is set."""
    try:
        return parse_timestamp(value), None
    except ValueError:
        pass
    try:
        return None, parse_duration(value)
    except FilterError:
        raise FilterError(f"invalid since value: {value}") from None


def normalize_proto(proto: str) -> str:
    return proto.strip().lower()


def normalize_state(state: str) -> str:
    upper = state.strip().upper()
    return _STATE_ALIASES.get(upper, upper)


def _proto_matches(conn_proto: str, wanted: str) -> bool:
    conn_proto = normalize_proto(conn_proto)
    wanted = normalize_proto(wanted)
    if conn_proto == wanted:
        return True
    # "tcp" covers tcp6, "udp" covers udp6
    return not wanted.endswith("6") and conn_proto == wanted + "6"


def _contains(haystack: str, needle: str) -> bool:
    return needle.lower() in haystack.lower()


def _display_fields(c: Connection) -> tuple[str, ...]:
    return (
        c.process,
        c.user,
        c.proto,
        c.state,
        c.laddr,
        str(c.lport),
        c.raddr,
        str(c.rport),
        c.interface,
        str(c.pid),
    )


def matches(
    conn: Connection, spec: FilterSpec, now: datetime | None = None
) -> bool:
    """Return True when ``conn`` satisfies every predicate of ``spec``."""
    if spec.proto and not _proto_matches(conn.proto, spec.proto):
        return False
    if spec.state and normalize_state(conn.state) != normalize_state(spec.state):
        return False
    if spec.pid is not None and conn.pid != spec.pid:
        return False
    if spec.proc and not _contains(conn.process, spec.proc):
        return False
    if spec.lport is not None and conn.lport != spec.lport:
        return False
    if spec.rport is not None and conn.rport != spec.rport:
        return False
    if spec.uid is not None and conn.uid != spec.uid:
        return False
    if spec.user and not _contains(conn.user, spec.user):
        return False
    if spec.laddr and spec.laddr not in conn.laddr:
        return False
    if spec.raddr and spec.raddr not in conn.raddr:
        return False
    if spec.contains and not any(
        _contains(v, spec.contains) for v in _display_fields(conn)
    ):
        return False
    if spec.interface and conn.interface != spec.interface:
        return False
    if spec.mark and conn.mark != spec.mark:
        return False
    if spec.namespace and conn.namespace != spec.namespace:
        return False
    if spec.inode is not None and conn.inode != spec.inode:
        return False
    if spec.ip_family and conn.ipversion != spec.ip_family:
        return False

    if spec.since is not None and conn.ts < spec.since:
        return False
    if spec.since_rel is not None:
        if now is None:
            now = datetime.now().astimezone()
        if conn.ts < now - spec.since_rel:
            return False
    return True


def filter_connections(
    connections: list[Connection],
    spec: FilterSpec,
    now: datetime | None = None,
) -> list[Connection]:
    """Return the connections matching ``spec``, in their original order."""
    if spec.is_empty:
        return list(connections)
    if now is None and spec.since_rel is not None:
        now = datetime.now().astimezone()
    return [c for c in connections if matches(c, spec, now)]
