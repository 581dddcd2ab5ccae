"""Live snapshot source using psutil to read the system socket table."""

from __future__ import annotations

import logging
import socket
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

import psutil

from sockscope.collector.base import SourceError
from sockscope.collector.models import Connection

logger = logging.getLogger(__name__)

# (socket type, address family) → protocol token
_PROTO_MAP = {
    (socket.SOCK_STREAM, socket.AF_INET): "tcp",
    (socket.SOCK_STREAM, socket.AF_INET6): "tcp6",
    (socket.SOCK_DGRAM, socket.AF_INET): "udp",
    (socket.SOCK_DGRAM, socket.AF_INET6): "udp6",
}


@dataclass(frozen=True)
class _ProcInfo:
    name: str = ""
    user: str = ""
    uid: int = -1


@dataclass
class PsutilSource:
    """Reads every inet socket via ``psutil.net_connections()``.

    Process metadata is looked up once per pid per fetch; processes that
    vanish or deny access mid-fetch keep empty metadata instead of failing
    the whole snapshot.
    """

    kind: str = "inet"
    _clock: Callable[[], datetime] = field(
        default=lambda: datetime.now().astimezone()
    )

    def fetch(self) -> list[Connection]:
        try:
            raw = psutil.net_connections(kind=self.kind)
        except psutil.AccessDenied as exc:
            raise SourceError(
                "access denied reading the socket table (try running as root)"
            ) from exc
        except OSError as exc:
            raise SourceError(f"failed to read socket table: {exc}") from exc

        ts = self._clock()
        procs: dict[int, _ProcInfo] = {}
        connections: list[Connection] = []

        for conn in raw:
            proto = _PROTO_MAP.get((conn.type, conn.family))
            if proto is None:
                continue

            pid = conn.pid or 0
            if pid and pid not in procs:
                procs[pid] = _process_info(pid)
            info = procs.get(pid, _ProcInfo())

            local_ip, local_port = _split_addr(conn.laddr)
            remote_ip, remote_port = _split_addr(conn.raddr)
            status = conn.status if conn.status != psutil.CONN_NONE else ""

            connections.append(
                Connection(
                    pid=pid,
                    process=info.name,
                    user=info.user,
                    uid=info.uid,
                    proto=proto,
                    ipversion="IPv6" if conn.family == socket.AF_INET6 else "IPv4",
                    state=status,
                    laddr=local_ip,
                    lport=local_port,
                    raddr=remote_ip,
                    rport=remote_port,
                    ts=ts,
                )
            )

        logger.debug("Fetched %d connections (%d processes)", len(connections), len(procs))
        return connections


def _split_addr(addr: object) -> tuple[str, int]:
    if not addr:
        return "", 0
    ip, port = addr[0], addr[1]  # type: ignore[index]
    return str(ip), int(port)


def _process_info(pid: int) -> _ProcInfo:
    try:
        proc = psutil.Process(pid)
        with proc.oneshot():
            name = proc.name()
            try:
                user = proc.username()
            except (psutil.AccessDenied, KeyError):
                user = ""
            try:
                uid = proc.uids().real
            except (psutil.AccessDenied, AttributeError):
                uid = -1
        return _ProcInfo(name=name, user=user, uid=uid)
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return _ProcInfo()
