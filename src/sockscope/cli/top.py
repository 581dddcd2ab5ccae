"""CLI command: sockscope top, the interactive live view."""

from __future__ import annotations

import sys

import click

from sockscope.cli._common import build_filter, filter_options, get_config, make_source
from sockscope.collector.base import ConnectionSource
from sockscope.collector.models import Connection
from sockscope.enrich.enricher import Enricher
from sockscope.enrich.geoip import GeoIpResolver
from sockscope.query.filters import FilterSpec, filter_connections
from sockscope.render.theme import get_theme
from sockscope.tui.app import TuiApp
from sockscope.tui.state import SessionOptions, SessionState


class FilteredSource:
    """Applies ``key=value`` filters before the session sees a snapshot."""

    def __init__(self, source: ConnectionSource, spec: FilterSpec) -> None:
        self._source = source
        self._spec = spec

    def fetch(self) -> list[Connection]:
        return filter_connections(self._source.fetch(), self._spec)


@click.command()
@filter_options
@click.option(
    "--interval",
    "-i",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Refresh interval in seconds (default: 1).",
)
@click.option("--theme", default=None, help="Colour theme: auto, dark, light or mono.")
@click.option("--numeric", "-n", is_flag=True, help="Do not resolve names in details.")
@click.option("--no-geoip", is_flag=True, help="Skip geo-IP lookups in details.")
@click.pass_context
def top(
    ctx: click.Context,
    filters: tuple[str, ...],
    tcp: bool,
    udp: bool,
    listen: bool,
    established: bool,
    ipv4: bool,
    ipv6: bool,
    interval: float | None,
    theme: str | None,
    numeric: bool,
    no_geoip: bool,
) -> None:
    """Interactive, auto-refreshing connection view (default command)."""
    config = get_config(ctx)
    # Proto/state shortcuts become toggles inside the view, not hard filters.
    spec = build_filter(filters, ipv4=ipv4, ipv6=ipv6, config=config)

    if not sys.stdin.isatty():
        raise click.ClickException("top needs an interactive terminal; try 'sockscope ls'")

    options = SessionOptions(
        interval=interval or config.interval,
        tcp=tcp,
        udp=udp,
        listening=listen,
        established=established,
        filter_set=tcp or udp or listen or established,
    )
    source: ConnectionSource = make_source(ctx)
    if not spec.is_empty:
        source = FilteredSource(source, spec)

    numeric = numeric or config.numeric
    enricher = Enricher(
        numeric=numeric,
        geoip=None if no_geoip else GeoIpResolver(),
    )
    app = TuiApp(
        SessionState.initial(options),
        source,
        enricher=enricher,
        theme=get_theme(theme or config.theme),
    )
    try:
        app.run()
    finally:
        enricher.close()
