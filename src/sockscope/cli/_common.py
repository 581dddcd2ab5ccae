"""Options and wiring shared by every command."""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any

import click
from rich.console import Console

from sockscope.collector.base import ConnectionSource, SourceError
from sockscope.collector.fixture import FixtureSource
from sockscope.collector.models import FIELD_NAMES, Connection
from sockscope.collector.psutil_ import PsutilSource
from sockscope.config import SockscopeConfig
from sockscope.query.filters import (
    FilterError,
    FilterSpec,
    filter_connections,
    parse_filter_args,
)
from sockscope.query.sort import SortError, SortSpec, parse_sort, sort_connections
from sockscope.render.formats import GEO_FIELDS

COLOR_CHOICES = click.Choice(["auto", "always", "never"])


def filter_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """``key=value`` filter arguments plus the -t/-u/-l/-e/-4/-6 shortcuts."""

    @click.argument("filters", nargs=-1)
    @click.option("--tcp", "-t", is_flag=True, help="Show only TCP connections.")
    @click.option("--udp", "-u", is_flag=True, help="Show only UDP connections.")
    @click.option("--listen", "-l", is_flag=True, help="Show only listening sockets.")
    @click.option(
        "--established", "-e", is_flag=True, help="Show only established connections."
    )
    @click.option("--ipv4", "-4", is_flag=True, help="Show only IPv4 connections.")
    @click.option("--ipv6", "-6", is_flag=True, help="Show only IPv6 connections.")
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return func(*args, **kwargs)

    return wrapper


def build_filter(
    filters: tuple[str, ...],
    tcp: bool = False,
    udp: bool = False,
    listen: bool = False,
    established: bool = False,
    ipv4: bool = False,
    ipv6: bool = False,
    config: SockscopeConfig | None = None,
) -> FilterSpec:
    """Merge positional filters with shortcut flags. Raises click.UsageError."""
    shortcuts: dict[str, Any] = {
        "ipv4": ipv4 or bool(config and config.ipv4),
        "ipv6": ipv6 or bool(config and config.ipv6),
    }
    # Both flags of a pair cancel out to "no restriction".
    if tcp != udp:
        shortcuts["proto"] = "tcp" if tcp else "udp"
    if listen != established:
        shortcuts["state"] = "LISTEN" if listen else "ESTABLISHED"

    try:
        return parse_filter_args(filters).merge(FilterSpec(**shortcuts))
    except FilterError as e:
        raise click.UsageError(str(e)) from e


def build_sort(text: str | None) -> SortSpec:
    if not text:
        return SortSpec()
    try:
        return parse_sort(text)
    except SortError as e:
        raise click.UsageError(str(e)) from e


def get_config(ctx: click.Context) -> SockscopeConfig:
    obj = ctx.ensure_object(dict)
    config = obj.get("config")
    if config is None:
        config = SockscopeConfig.load()
        obj["config"] = config
    return config


def make_source(ctx: click.Context) -> ConnectionSource:
    """Fixture source when ``--fixture`` is given, live psutil otherwise."""
    config = get_config(ctx)
    fixture = ctx.ensure_object(dict).get("fixture") or config.fixture
    if fixture:
        try:
            return FixtureSource.from_file(fixture)
        except SourceError as e:
            raise click.ClickException(str(e)) from e
    return PsutilSource()


def fetch_once(
    source: ConnectionSource, spec: FilterSpec, sort: SortSpec | None = None
) -> list[Connection]:
    """One filtered, sorted snapshot; a source failure ends the command."""
    try:
        connections = source.fetch()
    except SourceError as e:
        raise click.ClickException(str(e)) from e
    result = filter_connections(connections, spec)
    if sort is not None:
        result = sort_connections(result, sort)
    return result


def make_console(color: str, stderr: bool = False) -> Console:
    if color == "always":
        return Console(stderr=stderr, force_terminal=True)
    if color == "never":
        return Console(stderr=stderr, color_system=None, highlight=False)
    return Console(stderr=stderr)


def split_fields(text: str | None, config: SockscopeConfig) -> list[str]:
    """Comma separated field names, falling back to the configured list."""
    if text:
        chosen = [f.strip().lower() for f in text.split(",") if f.strip()]
    else:
        chosen = list(config.fields)
    unknown = [f for f in chosen if f not in FIELD_NAMES and f not in GEO_FIELDS]
    if unknown:
        raise click.UsageError(
            f"unknown field(s): {', '.join(unknown)} "
            f"(available: {', '.join(FIELD_NAMES + GEO_FIELDS)})"
        )
    return chosen
