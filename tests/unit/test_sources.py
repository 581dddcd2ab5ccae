"""Tests for the psutil and fixture snapshot sources."""

from __future__ import annotations

import socket
from collections import namedtuple
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import psutil
import pytest

from sockscope.collector.base import ConnectionSource, SourceError
from sockscope.collector.fixture import FixtureSource
from sockscope.collector.psutil_ import PsutilSource

TS = datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)

# Mock psutil connection objects
MockAddr = namedtuple("MockAddr", ["ip", "port"])
MockConn = namedtuple(
    "MockConn", ["fd", "family", "type", "laddr", "raddr", "status", "pid"]
)


def _make_conn(
    pid: int | None = 1234,
    family: int = socket.AF_INET,
    type_: int = socket.SOCK_STREAM,
    local: tuple = ("0.0.0.0", 80),
    remote: tuple = (),
    status: str = "LISTEN",
) -> MockConn:
    return MockConn(
        fd=-1,
        family=family,
        type=type_,
        laddr=MockAddr(*local) if local else (),
        raddr=MockAddr(*remote) if remote else (),
        status=status,
        pid=pid,
    )


def _mock_process(name: str = "nginx", user: str = "www-data", uid: int = 33) -> MagicMock:
    proc = MagicMock()
    proc.name.return_value = name
    proc.username.return_value = user
    proc.uids.return_value = MagicMock(real=uid)
    return proc


@patch("sockscope.collector.psutil_.psutil.Process")
@patch("sockscope.collector.psutil_.psutil.net_connections")
def test_psutil_fetch_maps_fields(mock_net: MagicMock, mock_process_cls: MagicMock):
    mock_net.return_value = [
        _make_conn(),
        _make_conn(
            pid=1234,
            local=("10.0.0.5", 51000),
            remote=("93.184.216.34", 443),
            status="ESTABLISHED",
        ),
    ]
    mock_process_cls.return_value = _mock_process()

    conns = PsutilSource(_clock=lambda: TS).fetch()

    assert len(conns) == 2
    listen, est = conns
    assert listen.process == "nginx"
    assert listen.user == "www-data"
    assert listen.uid == 33
    assert listen.proto == "tcp"
    assert listen.ipversion == "IPv4"
    assert (listen.laddr, listen.lport) == ("0.0.0.0", 80)
    assert (listen.raddr, listen.rport) == ("", 0)
    assert est.raddr == "93.184.216.34" and est.rport == 443
    assert est.ts == TS
    # process metadata is looked up once per pid
    mock_process_cls.assert_called_once_with(1234)


@patch("sockscope.collector.psutil_.psutil.Process")
@patch("sockscope.collector.psutil_.psutil.net_connections")
def test_psutil_protocols_and_none_status(mock_net: MagicMock, mock_process_cls: MagicMock):
    mock_net.return_value = [
        _make_conn(family=socket.AF_INET6, local=("::", 22)),
        _make_conn(type_=socket.SOCK_DGRAM, local=("0.0.0.0", 53), status=psutil.CONN_NONE),
        _make_conn(family=socket.AF_INET6, type_=socket.SOCK_DGRAM, local=("::", 5353)),
    ]
    mock_process_cls.return_value = _mock_process()

    conns = PsutilSource().fetch()
    assert [c.proto for c in conns] == ["tcp6", "udp", "udp6"]
    assert conns[0].ipversion == "IPv6"
    assert conns[1].state == ""


@patch("sockscope.collector.psutil_.psutil.Process")
@patch("sockscope.collector.psutil_.psutil.net_connections")
def test_psutil_vanished_process_keeps_socket(mock_net: MagicMock, mock_process_cls: MagicMock):
    mock_net.return_value = [_make_conn(pid=999)]
    mock_process_cls.side_effect = psutil.NoSuchProcess(999)

    conns = PsutilSource().fetch()
    assert len(conns) == 1
    assert conns[0].pid == 999
    assert conns[0].process == ""
    assert conns[0].uid == -1


@patch("sockscope.collector.psutil_.psutil.Process")
@patch("sockscope.collector.psutil_.psutil.net_connections")
def test_psutil_socket_without_pid(mock_net: MagicMock, mock_process_cls: MagicMock):
    mock_net.return_value = [_make_conn(pid=None)]
    conns = PsutilSource().fetch()
    assert conns[0].pid == 0
    mock_process_cls.assert_not_called()


@patch("sockscope.collector.psutil_.psutil.net_connections")
def test_psutil_access_denied_raises_source_error(mock_net: MagicMock):
    mock_net.side_effect = psutil.AccessDenied()
    with pytest.raises(SourceError, match="access denied"):
        PsutilSource().fetch()


def test_sources_satisfy_protocol():
    assert isinstance(PsutilSource(), ConnectionSource)
    assert isinstance(FixtureSource(), ConnectionSource)


# --- fixture source ---


def test_fixture_from_file(connections_path: Path):
    source = FixtureSource.from_file(connections_path)
    conns = source.fetch()
    assert [c.process for c in conns] == ["nginx", "curl", "firefox"]
    assert conns[0].interface == "eth0"
    assert conns[0].ts == TS


def test_fixture_fetch_returns_copy(connections_path: Path):
    source = FixtureSource.from_file(connections_path)
    source.fetch().clear()
    assert len(source.fetch()) == 3


def test_fixture_save_and_reload(tmp_path: Path, sample_connections):
    path = tmp_path / "snap.json"
    FixtureSource(sample_connections).save_to_file(path)
    assert FixtureSource.from_file(path).fetch() == sample_connections


def test_fixture_set_connections(sample_connections):
    source = FixtureSource()
    assert source.fetch() == []
    source.set_connections(sample_connections[:1])
    assert source.fetch() == sample_connections[:1]


def test_fixture_missing_file(tmp_path: Path):
    with pytest.raises(SourceError, match="cannot load fixture"):
        FixtureSource.from_file(tmp_path / "missing.json")


def test_fixture_not_an_array(tmp_path: Path):
    path = tmp_path / "bad.json"
    path.write_text('{"pid": 1}')
    with pytest.raises(SourceError, match="JSON array"):
        FixtureSource.from_file(path)


def test_fixture_bad_record(tmp_path: Path):
    path = tmp_path / "bad.json"
    path.write_text('[{"pid": "abc"}]')
    with pytest.raises(SourceError, match="invalid connection"):
        FixtureSource.from_file(path)
