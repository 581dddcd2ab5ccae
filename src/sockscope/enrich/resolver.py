"""Reverse name and service resolution for rendering.

Resolution is best effort: the caller always gets a printable string back,
either the resolved label or the raw value.

Caching rules:
  - a definitive answer (a hostname, or "no PTR record") is cached;
  - a timeout or transient resolver error is not, so a later call retries.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

from sockscope.enrich.cache import LabelCache

logger = logging.getLogger(__name__)

# Default upper bound on how long a caller waits for a reverse lookup.
_DNS_TIMEOUT = 0.5

_WILDCARDS = frozenset({"", "*"})


class NameResolver:
    """Maps addresses to hostnames and ports to service names."""

    def __init__(self, timeout: float = _DNS_TIMEOUT, max_workers: int = 8) -> None:
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="sockscope-dns"
        )
        # Empty string is the "looked up, nothing better" sentinel.
        self._hosts: LabelCache[str] = LabelCache()
        self._services: LabelCache[str] = LabelCache()

    def resolve_addr(self, addr: str) -> str:
        """Return the PTR hostname for ``addr``, or ``addr`` itself."""
        if addr in _WILDCARDS or _is_unspecified(addr):
            return addr

        found, label = self._hosts.get(addr)
        if found:
            return label or addr

        future = self._executor.submit(socket.gethostbyaddr, addr)
        try:
            hostname = future.result(timeout=self._timeout)[0]
        except FutureTimeout:
            logger.debug("Reverse lookup for %s timed out", addr)
            return addr
        except socket.herror as exc:
            logger.debug("No PTR record for %s: %s", addr, exc)
            self._hosts.put(addr, "")
            return addr
        except OSError as exc:
            logger.debug("Reverse lookup for %s failed: %s", addr, exc)
            return addr

        self._hosts.put(addr, hostname)
        return hostname

    def resolve_port(self, port: int, proto: str = "tcp") -> str:
        """Return the well-known service name for ``port``, or the number."""
        raw = str(port)
        if port <= 0:
            return raw

        transport = "udp" if proto.startswith("udp") else "tcp"
        key = f"{port}/{transport}"
        found, label = self._services.get(key)
        if found:
            return label or raw

        try:
            name = socket.getservbyport(port, transport)
        except OSError:
            self._services.put(key, "")
            return raw
        except OverflowError:
            return raw

        self._services.put(key, name)
        return name

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


def _is_unspecified(addr: str) -> bool:
    try:
        return ipaddress.ip_address(addr).is_unspecified
    except ValueError:
        return False
