"""Geo-IP enrichment: country code and organisation for public addresses.

Private and local addresses are never sent anywhere. Public addresses go
through a swappable LookupService and every answer, empty ones included, is
memoized for the lifetime of the resolver.
"""

from __future__ import annotations

import ipaddress
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Protocol

from sockscope.collector.models import Connection
from sockscope.enrich.cache import LabelCache

logger = logging.getLogger(__name__)

_CGNAT = ipaddress.IPv4Network("100.64.0.0/10")

# Regional indicator symbol letter A
_FLAG_BASE = 0x1F1E6


@dataclass(frozen=True)
class IpInfo:
    """Resolved geography of an IP address."""

    country_code: str = ""
    org: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.country_code and not self.org


class LookupService(Protocol):
    """Geo-IP backend. Implementations must never raise."""

    def lookup(self, ip: str) -> IpInfo:
        ...


class IpApiService:
    """ip-api.com JSON endpoint (free tier, no key, 45 requests/minute)."""

    URL = "http://ip-api.com/json/{ip}?fields=status,countryCode,org"

    def __init__(self, timeout: float = 2.0) -> None:
        self._timeout = timeout

    def lookup(self, ip: str) -> IpInfo:
        url = self.URL.format(ip=ip)
        try:
            with urllib.request.urlopen(url, timeout=self._timeout) as response:
                if response.status != 200:
                    return IpInfo()
                data = json.loads(response.read().decode("utf-8"))
        except (urllib.error.URLError, OSError, ValueError) as exc:
            logger.debug("Geo-IP lookup for %s failed: %s", ip, exc)
            return IpInfo()

        if not isinstance(data, dict) or data.get("status") != "success":
            return IpInfo()
        return IpInfo(
            country_code=str(data.get("countryCode", "")),
            org=str(data.get("org", "")),
        )


def is_local_or_private(ip: str) -> bool:
    """True for loopback, link-local, unspecified, private and CGNAT ranges.

    Unparsable input counts as local so that it is never looked up.
    """
    try:
        addr = ipaddress.ip_address(ip.split("%", 1)[0])
    except ValueError:
        return True

    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        addr = addr.ipv4_mapped

    if addr.is_loopback or addr.is_link_local or addr.is_unspecified:
        return True
    if addr.is_private:
        return True
    return isinstance(addr, ipaddress.IPv4Address) and addr in _CGNAT


def country_flag(country_code: str) -> str:
    """Convert ``"DE"`` into its regional-indicator flag; two spaces otherwise."""
    if len(country_code) != 2 or not country_code.isascii() or not country_code.isalpha():
        return "  "
    code = country_code.upper()
    return "".join(chr(_FLAG_BASE + ord(ch) - ord("A")) for ch in code)


def representative_address(conn: Connection) -> str:
    """The address that best locates ``conn``: remote first, then local."""
    for addr in (conn.raddr, conn.laddr):
        if addr and addr != "*" and not is_local_or_private(addr):
            return addr
    return ""


class GeoIpResolver:
    """Memoizing front end for a LookupService."""

    def __init__(self, service: LookupService | None = None) -> None:
        self._service: LookupService = service or IpApiService()
        self._cache: LabelCache[IpInfo] = LabelCache()

    def lookup(self, ip: str) -> IpInfo:
        if not ip or ip == "*" or is_local_or_private(ip):
            return IpInfo()

        found, info = self._cache.get(ip)
        if found and info is not None:
            return info

        info = self._service.lookup(ip)
        self._cache.put(ip, info)
        return info

    def for_connection(self, conn: Connection) -> IpInfo:
        addr = representative_address(conn)
        if not addr:
            return IpInfo()
        return self.lookup(addr)

    def flag(self, ip: str) -> str:
        return country_flag(self.lookup(ip).country_code)
