"""Tests for geo-IP enrichment."""

from __future__ import annotations

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from sockscope.collector.models import Connection
from sockscope.enrich.geoip import (
    GeoIpResolver,
    IpApiService,
    IpInfo,
    country_flag,
    is_local_or_private,
    representative_address,
)


class CountingService:
    """LookupService double that records every call."""

    def __init__(self, info: IpInfo | None = None) -> None:
        self.calls: list[str] = []
        self._info = info or IpInfo("DE", "Hetzner Online GmbH")

    def lookup(self, ip: str) -> IpInfo:
        self.calls.append(ip)
        return self._info


@pytest.mark.parametrize(
    "ip",
    [
        "127.0.0.1",
        "::1",
        "10.1.2.3",
        "172.16.0.1",
        "192.168.1.1",
        "169.254.10.10",
        "fe80::1",
        "fc00::1",
        "100.64.0.1",
        "0.0.0.0",
        "::",
        "::ffff:192.168.0.1",
        "not-an-ip",
    ],
)
def test_local_or_private(ip):
    assert is_local_or_private(ip)


@pytest.mark.parametrize("ip", ["8.8.8.8", "93.184.216.34", "2606:4700::1111"])
def test_public(ip):
    assert not is_local_or_private(ip)


def test_private_addresses_never_reach_the_service():
    service = CountingService()
    resolver = GeoIpResolver(service)
    for ip in ("10.0.0.1", "192.168.0.10", "127.0.0.1", "fe80::1", "*", ""):
        assert resolver.lookup(ip) == IpInfo()
    assert service.calls == []


def test_public_lookup_is_memoized():
    service = CountingService()
    resolver = GeoIpResolver(service)
    assert resolver.lookup("8.8.8.8").country_code == "DE"
    assert resolver.lookup("8.8.8.8").org == "Hetzner Online GmbH"
    assert service.calls == ["8.8.8.8"]


def test_empty_answers_are_memoized_too():
    service = CountingService(IpInfo())
    resolver = GeoIpResolver(service)
    resolver.lookup("1.1.1.1")
    resolver.lookup("1.1.1.1")
    assert service.calls == ["1.1.1.1"]


def test_for_connection_prefers_remote():
    service = CountingService()
    resolver = GeoIpResolver(service)
    conn = Connection(laddr="10.0.0.5", lport=5000, raddr="93.184.216.34", rport=443)
    resolver.for_connection(conn)
    assert service.calls == ["93.184.216.34"]


def test_representative_address_falls_back_to_local():
    conn = Connection(laddr="203.0.113.4", lport=80, raddr="*")
    assert representative_address(conn) == "203.0.113.4"
    assert representative_address(Connection(laddr="127.0.0.1", raddr="*")) == ""


def test_country_flag():
    assert country_flag("DE") == "\U0001F1E9\U0001F1EA"
    assert country_flag("us") == "\U0001F1FA\U0001F1F8"
    assert country_flag("") == "  "
    assert country_flag("USA") == "  "


def _response(payload: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status = status
    resp.read.return_value = json.dumps(payload).encode()
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    return resp


def test_ip_api_success():
    payload = {"status": "success", "countryCode": "US", "org": "Google LLC"}
    with patch(
        "sockscope.enrich.geoip.urllib.request.urlopen", return_value=_response(payload)
    ) as mock_open:
        info = IpApiService().lookup("8.8.8.8")
    assert info == IpInfo("US", "Google LLC")
    assert "8.8.8.8" in mock_open.call_args[0][0]


def test_ip_api_failure_status():
    with patch(
        "sockscope.enrich.geoip.urllib.request.urlopen",
        return_value=_response({"status": "fail", "message": "reserved range"}),
    ):
        assert IpApiService().lookup("8.8.8.8") == IpInfo()


def test_ip_api_network_error_never_raises():
    with patch(
        "sockscope.enrich.geoip.urllib.request.urlopen",
        side_effect=urllib.error.URLError("timed out"),
    ):
        assert IpApiService().lookup("8.8.8.8") == IpInfo()


def test_ip_api_bad_json_never_raises():
    resp = _response({})
    resp.read.return_value = io.BytesIO(b"<html>").read()
    with patch("sockscope.enrich.geoip.urllib.request.urlopen", return_value=resp):
        assert IpApiService().lookup("8.8.8.8") == IpInfo()
