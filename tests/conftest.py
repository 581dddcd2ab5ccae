"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from sockscope.collector.fixture import FixtureSource
from sockscope.collector.models import Connection

TS = datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)


def make_conn(**kwargs) -> Connection:
    """Connection with a fixed timestamp; override any field by keyword."""
    kwargs.setdefault("ts", TS)
    return Connection(**kwargs)


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def connections_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "connections.json"


@pytest.fixture
def nginx() -> Connection:
    return make_conn(
        pid=1234,
        process="nginx",
        user="www-data",
        uid=33,
        proto="tcp",
        ipversion="IPv4",
        state="LISTEN",
        laddr="0.0.0.0",
        lport=80,
        raddr="*",
        interface="eth0",
    )


@pytest.fixture
def sample_connections(nginx: Connection) -> list[Connection]:
    return [
        nginx,
        make_conn(
            pid=2001,
            process="curl",
            user="alice",
            uid=1000,
            proto="tcp",
            ipversion="IPv4",
            state="ESTABLISHED",
            laddr="10.0.0.5",
            lport=51000,
            raddr="93.184.216.34",
            rport=443,
            interface="eth0",
        ),
        make_conn(
            pid=2002,
            process="dnsmasq",
            user="nobody",
            uid=65534,
            proto="udp",
            ipversion="IPv4",
            laddr="127.0.0.1",
            lport=53,
            raddr="*",
            interface="lo",
        ),
        make_conn(
            pid=3003,
            process="sshd",
            user="root",
            uid=0,
            proto="tcp6",
            ipversion="IPv6",
            state="LISTEN",
            laddr="::",
            lport=22,
            raddr="*",
        ),
        make_conn(
            pid=2001,
            process="curl",
            user="alice",
            uid=1000,
            proto="tcp",
            ipversion="IPv4",
            state="TIME_WAIT",
            laddr="10.0.0.5",
            lport=51001,
            raddr="93.184.216.34",
            rport=80,
            interface="eth0",
        ),
    ]


@pytest.fixture
def fixture_source(sample_connections: list[Connection]) -> FixtureSource:
    return FixtureSource(sample_connections)
