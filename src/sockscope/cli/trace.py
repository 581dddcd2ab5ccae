"""CLI command: sockscope trace, stream connection open/close events."""

from __future__ import annotations

import signal
import threading

import click
from rich.console import Console

from sockscope.cli._common import (
    build_filter,
    filter_options,
    get_config,
    make_source,
)
from sockscope.enrich.enricher import Enricher
from sockscope.render.formats import trace_human, trace_json
from sockscope.trace.tracker import DiffTracker, TraceEvent, run_trace

console = Console(stderr=True)


@click.command()
@filter_options
@click.option(
    "--interval",
    "-i",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds between snapshots (default: 1).",
)
@click.option(
    "--count",
    "-c",
    type=click.IntRange(min=0),
    default=0,
    help="Stop after this many events (0 = unlimited).",
)
@click.option("--json", "-j", "as_json", is_flag=True, help="Emit JSON lines.")
@click.option("--timestamp", "--ts", is_flag=True, help="Prefix events with the time.")
@click.option("--numeric", "-n", is_flag=True, help="Do not resolve names or services.")
@click.pass_context
def trace(
    ctx: click.Context,
    filters: tuple[str, ...],
    tcp: bool,
    udp: bool,
    listen: bool,
    established: bool,
    ipv4: bool,
    ipv6: bool,
    interval: float | None,
    count: int,
    as_json: bool,
    timestamp: bool,
    numeric: bool,
) -> None:
    """Print connections as they open and close. Press Ctrl+C to stop."""
    config = get_config(ctx)
    spec = build_filter(filters, tcp, udp, listen, established, ipv4, ipv6, config)
    source = make_source(ctx)
    tracker = DiffTracker(source, spec)
    enricher = Enricher(numeric=numeric or config.numeric)

    stop_event = threading.Event()
    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _signal_handler(signum: int, frame: object) -> None:
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    def on_event(event: TraceEvent) -> None:
        if as_json:
            click.echo(trace_json(event))
        else:
            click.echo(trace_human(event, enricher, timestamp))

    if not as_json:
        console.print("[dim]Tracing connections, press Ctrl+C to stop.[/dim]")

    try:
        run_trace(
            tracker,
            interval or config.interval,
            stop_event,
            on_event,
            count=count,
        )
    finally:
        enricher.close()
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)
