"""Single enrichment handle passed to renderers."""

from __future__ import annotations

from sockscope.collector.models import Connection
from sockscope.enrich.geoip import GeoIpResolver, IpInfo
from sockscope.enrich.resolver import NameResolver


class Enricher:
    """Bundles name and geo-IP resolution behind one object.

    With ``numeric=True`` every label is the raw value and no lookup is
    made. Geo-IP lookups are only made when a ``geoip`` resolver is given.
    """

    def __init__(
        self,
        names: NameResolver | None = None,
        geoip: GeoIpResolver | None = None,
        numeric: bool = False,
    ) -> None:
        self.numeric = numeric
        self._names = names if names is not None or numeric else NameResolver()
        self._geoip = geoip

    def addr(self, addr: str) -> str:
        if self.numeric or self._names is None or addr in ("", "*"):
            return addr
        return self._names.resolve_addr(addr)

    def port(self, port: int, proto: str) -> str:
        if self.numeric or self._names is None or port == 0:
            return str(port)
        return self._names.resolve_port(port, proto)

    def geo(self, conn: Connection) -> IpInfo:
        if self._geoip is None:
            return IpInfo()
        return self._geoip.for_connection(conn)

    def close(self) -> None:
        if self._names is not None:
            self._names.shutdown()
