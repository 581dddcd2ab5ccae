"""CLI command: sockscope stats, aggregate counts of a snapshot."""

from __future__ import annotations

import logging
import signal
import threading

import click

from sockscope.cli._common import build_filter, filter_options, get_config, make_source
from sockscope.collector.base import ConnectionSource, SourceError
from sockscope.query.filters import FilterSpec, filter_connections
from sockscope.render.formats import render_stats_csv, render_stats_table, stats_json
from sockscope.stats import Stats, compute_stats

logger = logging.getLogger(__name__)


def _format(stats: Stats, fmt: str, headers: bool) -> str:
    if fmt == "json":
        return stats_json(stats) + "\n"
    if fmt == "csv":
        return render_stats_csv(stats, headers)
    return render_stats_table(stats, headers)


def _snapshot(source: ConnectionSource, spec: FilterSpec) -> Stats:
    return compute_stats(filter_connections(source.fetch(), spec))


@click.command()
@filter_options
@click.option(
    "--output",
    "-o",
    type=click.Choice(["table", "csv", "json"]),
    default="table",
    help="Output format.",
)
@click.option(
    "--interval",
    "-i",
    type=click.FloatRange(min=0),
    default=0,
    help="Repeat every N seconds (0 = print once).",
)
@click.option(
    "--count",
    "-c",
    type=click.IntRange(min=0),
    default=0,
    help="Number of reports when repeating (0 = unlimited).",
)
@click.option("--no-headers", "-H", is_flag=True, help="Omit headers.")
@click.pass_context
def stats(
    ctx: click.Context,
    filters: tuple[str, ...],
    tcp: bool,
    udp: bool,
    listen: bool,
    established: bool,
    ipv4: bool,
    ipv6: bool,
    output: str,
    interval: float,
    count: int,
    no_headers: bool,
) -> None:
    """Show connection counts by protocol, state, process and interface."""
    config = get_config(ctx)
    spec = build_filter(filters, tcp, udp, listen, established, ipv4, ipv6, config)
    source = make_source(ctx)
    headers = not (no_headers or config.no_headers)

    if interval <= 0:
        try:
            result = _snapshot(source, spec)
        except SourceError as e:
            raise click.ClickException(str(e)) from e
        click.echo(_format(result, output, headers), nl=False)
        return

    stop_event = threading.Event()
    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _signal_handler(signum: int, frame: object) -> None:
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    printed = 0
    try:
        while not stop_event.is_set():
            try:
                result = _snapshot(source, spec)
            except SourceError as e:
                logger.warning("Error getting connections: %s", e)
            else:
                # CSV headers only once so the stream stays one table.
                show_headers = headers and (output != "csv" or printed == 0)
                click.echo(_format(result, output, show_headers), nl=False)
                if output == "table":
                    click.echo()
                printed += 1
                if count and printed >= count:
                    break
            if stop_event.wait(timeout=interval):
                break
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)
