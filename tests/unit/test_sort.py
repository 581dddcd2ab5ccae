"""Tests for the sort engine."""

from __future__ import annotations

import pytest

from sockscope.collector.models import Connection
from sockscope.query.sort import (
    SortError,
    SortField,
    SortSpec,
    parse_sort,
    sort_connections,
)


def _conn(pid: int, process: str, lport: int, state: str = "LISTEN") -> Connection:
    return Connection(pid=pid, process=process, lport=lport, state=state)


@pytest.fixture
def conns() -> list[Connection]:
    return [
        _conn(3, "sshd", 22),
        _conn(1, "nginx", 80),
        _conn(2, "Apache", 80),
        _conn(4, "redis", 6379, "ESTABLISHED"),
    ]


def test_default_sort_is_lport_ascending(conns):
    result = sort_connections(conns)
    assert [c.lport for c in result] == [22, 80, 80, 6379]


def test_sort_is_idempotent(conns):
    spec = SortSpec(SortField.PROCESS)
    once = sort_connections(conns, spec)
    assert sort_connections(once, spec) == once


def test_sort_does_not_mutate_input(conns):
    before = list(conns)
    sort_connections(conns, SortSpec(SortField.PID, descending=True))
    assert conns == before


def test_ties_keep_input_order_both_directions(conns):
    asc = sort_connections(conns, SortSpec(SortField.LPORT))
    desc = sort_connections(conns, SortSpec(SortField.LPORT, descending=True))
    assert [c.pid for c in asc if c.lport == 80] == [1, 2]
    assert [c.pid for c in desc if c.lport == 80] == [1, 2]
    assert [c.lport for c in desc] == [6379, 80, 80, 22]


def test_process_sort_is_case_insensitive(conns):
    result = sort_connections(conns, SortSpec(SortField.PROCESS))
    assert [c.process for c in result] == ["Apache", "nginx", "redis", "sshd"]


@pytest.mark.parametrize(
    "text, field, descending",
    [
        ("port", SortField.LPORT, False),
        ("proc:desc", SortField.PROCESS, True),
        ("PID:asc", SortField.PID, False),
        ("state", SortField.STATE, False),
    ],
)
def test_parse_sort(text, field, descending):
    assert parse_sort(text) == SortSpec(field, descending)


def test_parse_sort_unknown_field():
    with pytest.raises(SortError, match="unknown sort field"):
        parse_sort("bytes")


def test_parse_sort_bad_direction():
    with pytest.raises(SortError, match="direction"):
        parse_sort("pid:up")


def test_field_cycle_wraps():
    assert SortField.LPORT.next() is SortField.PROCESS
    assert SortField.PROTO.next() is SortField.LPORT
    assert SortField.LPORT.label == "port"
