"""Connection data model: immutable records shared by every component."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, NamedTuple

# Stable field order of the structured (JSON) representation.
FIELD_NAMES: tuple[str, ...] = (
    "pid",
    "process",
    "user",
    "uid",
    "proto",
    "ipversion",
    "state",
    "laddr",
    "lport",
    "raddr",
    "rport",
    "if",
    "rx_bytes",
    "tx_bytes",
    "rtt_ms",
    "mark",
    "namespace",
    "inode",
    "ts",
)


def _now() -> datetime:
    return datetime.now(timezone.utc).astimezone()


def format_timestamp(ts: datetime) -> str:
    """ISO-8601 with millisecond precision and UTC offset."""
    if ts.tzinfo is None:
        ts = ts.astimezone()
    return ts.isoformat(timespec="milliseconds")


def parse_timestamp(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.astimezone()
    return ts


class ConnectionIdentity(NamedTuple):
    """Key used to recognise the same logical connection across snapshots."""

    proto: str
    laddr: str
    lport: int
    raddr: str
    rport: int
    pid: int


@dataclass(frozen=True)
class Connection:
    """One socket observed at a point in time."""

    pid: int = 0
    process: str = ""
    user: str = ""
    uid: int = -1
    proto: str = "tcp"
    ipversion: str = ""
    state: str = ""
    laddr: str = ""
    lport: int = 0
    raddr: str = ""
    rport: int = 0
    interface: str = ""
    rx_bytes: int = 0
    tx_bytes: int = 0
    rtt_ms: float = 0.0
    mark: str = ""
    namespace: str = ""
    inode: int = 0
    ts: datetime = field(default_factory=_now)

    @property
    def identity(self) -> ConnectionIdentity:
        return ConnectionIdentity(
            self.proto, self.laddr, self.lport, self.raddr, self.rport, self.pid
        )

    @property
    def has_remote(self) -> bool:
        return self.raddr not in ("", "*") and self.rport != 0

    def to_dict(self) -> dict[str, Any]:
        """Structured form with the stable field names, in order."""
        return {
            "pid": self.pid,
            "process": self.process,
            "user": self.user,
            "uid": self.uid,
            "proto": self.proto,
            "ipversion": self.ipversion,
            "state": self.state,
            "laddr": self.laddr,
            "lport": self.lport,
            "raddr": self.raddr,
            "rport": self.rport,
            "if": self.interface,
            "rx_bytes": self.rx_bytes,
            "tx_bytes": self.tx_bytes,
            "rtt_ms": self.rtt_ms,
            "mark": self.mark,
            "namespace": self.namespace,
            "inode": self.inode,
            "ts": format_timestamp(self.ts),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Connection:
        """Build a Connection from its structured form.

        Missing keys fall back to the dataclass defaults, so hand-written
        fixtures only need the fields they care about.
        """
        kwargs: dict[str, Any] = {}
        for name in FIELD_NAMES:
            if name not in data or data[name] is None:
                continue
            value = data[name]
            if name == "if":
                kwargs["interface"] = str(value)
            elif name == "ts":
                kwargs["ts"] = (
                    value if isinstance(value, datetime) else parse_timestamp(value)
                )
            elif name in ("pid", "uid", "lport", "rport", "rx_bytes", "tx_bytes", "inode"):
                kwargs[name] = int(value)
            elif name == "rtt_ms":
                kwargs[name] = float(value)
            else:
                kwargs[name] = str(value)
        return cls(**kwargs)
