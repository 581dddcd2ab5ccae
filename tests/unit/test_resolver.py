"""Tests for reverse name and service resolution."""

from __future__ import annotations

import socket
import threading
from unittest.mock import patch

import pytest

from sockscope.enrich.enricher import Enricher
from sockscope.enrich.resolver import NameResolver


@pytest.fixture
def resolver():
    r = NameResolver(timeout=0.5)
    yield r
    r.shutdown()


def test_resolve_addr_success_is_cached(resolver):
    with patch(
        "sockscope.enrich.resolver.socket.gethostbyaddr",
        return_value=("one.one.one.one", [], ["1.1.1.1"]),
    ) as mock_lookup:
        assert resolver.resolve_addr("1.1.1.1") == "one.one.one.one"
        assert resolver.resolve_addr("1.1.1.1") == "one.one.one.one"
    assert mock_lookup.call_count == 1


def test_resolve_addr_no_ptr_cached_as_raw(resolver):
    with patch(
        "sockscope.enrich.resolver.socket.gethostbyaddr",
        side_effect=socket.herror(1, "Unknown host"),
    ) as mock_lookup:
        assert resolver.resolve_addr("203.0.113.9") == "203.0.113.9"
        assert resolver.resolve_addr("203.0.113.9") == "203.0.113.9"
    assert mock_lookup.call_count == 1


def test_resolve_addr_timeout_not_cached():
    resolver = NameResolver(timeout=0.05)
    release = threading.Event()

    def slow(addr):
        release.wait(timeout=2)
        return ("late.example", [], [addr])

    try:
        with patch("sockscope.enrich.resolver.socket.gethostbyaddr", side_effect=slow):
            assert resolver.resolve_addr("198.51.100.1") == "198.51.100.1"
            release.set()
        with patch(
            "sockscope.enrich.resolver.socket.gethostbyaddr",
            return_value=("host.example", [], ["198.51.100.1"]),
        ) as mock_lookup:
            assert resolver.resolve_addr("198.51.100.1") == "host.example"
        assert mock_lookup.call_count == 1
    finally:
        release.set()
        resolver.shutdown()


def test_transient_error_not_cached(resolver):
    with patch(
        "sockscope.enrich.resolver.socket.gethostbyaddr",
        side_effect=[OSError("network unreachable"), ("ok.example", [], [])],
    ) as mock_lookup:
        assert resolver.resolve_addr("192.0.2.7") == "192.0.2.7"
        assert resolver.resolve_addr("192.0.2.7") == "ok.example"
    assert mock_lookup.call_count == 2


@pytest.mark.parametrize("addr", ["", "*", "0.0.0.0", "::"])
def test_wildcards_never_looked_up(resolver, addr):
    with patch("sockscope.enrich.resolver.socket.gethostbyaddr") as mock_lookup:
        assert resolver.resolve_addr(addr) == addr
    mock_lookup.assert_not_called()


def test_resolve_port(resolver):
    with patch(
        "sockscope.enrich.resolver.socket.getservbyport", return_value="https"
    ) as mock_serv:
        assert resolver.resolve_port(443, "tcp6") == "https"
        assert resolver.resolve_port(443, "tcp") == "https"
    mock_serv.assert_called_once_with(443, "tcp")


def test_resolve_port_unknown_returns_number(resolver):
    with patch(
        "sockscope.enrich.resolver.socket.getservbyport", side_effect=OSError("not found")
    ):
        assert resolver.resolve_port(49152, "udp") == "49152"


def test_numeric_enricher_never_resolves():
    enricher = Enricher(numeric=True)
    with patch("sockscope.enrich.resolver.socket.gethostbyaddr") as mock_lookup:
        assert enricher.addr("1.1.1.1") == "1.1.1.1"
        assert enricher.port(443, "tcp") == "443"
    mock_lookup.assert_not_called()
    enricher.close()
