"""CLI commands: sockscope ls / sockscope json, one-shot snapshots."""

from __future__ import annotations

import click

from sockscope.cli._common import (
    COLOR_CHOICES,
    build_filter,
    build_sort,
    fetch_once,
    filter_options,
    get_config,
    make_console,
    make_source,
    split_fields,
)
from sockscope.enrich.enricher import Enricher
from sockscope.enrich.geoip import GeoIpResolver
from sockscope.render.formats import (
    GEO_FIELDS,
    print_json,
    render_csv,
    render_plain,
    styled_table,
)

# Page the styled table when it would not fit on screen.
_PAGER_MARGIN = 6


def make_enricher(numeric: bool, fields: list[str]) -> Enricher:
    if numeric:
        return Enricher(numeric=True)
    geoip = GeoIpResolver() if any(f in GEO_FIELDS for f in fields) else None
    return Enricher(geoip=geoip)


@click.command()
@filter_options
@click.option(
    "--output",
    "-o",
    type=click.Choice(["table", "plain", "csv", "json"]),
    default=None,
    help="Output format (default: table).",
)
@click.option("--plain", "-p", is_flag=True, help="Shortcut for --output plain.")
@click.option("--fields", "-f", default=None, help="Comma separated list of fields.")
@click.option("--sort", "-s", "sort_by", default=None, help="Sort by field[:asc|desc].")
@click.option("--no-headers", "-H", is_flag=True, help="Omit column headers.")
@click.option("--numeric", "-n", is_flag=True, help="Do not resolve names or services.")
@click.option("--timestamp", "--ts", is_flag=True, help="Include the snapshot timestamp.")
@click.option("--color", type=COLOR_CHOICES, default=None, help="Colour output.")
@click.pass_context
def ls(
    ctx: click.Context,
    filters: tuple[str, ...],
    tcp: bool,
    udp: bool,
    listen: bool,
    established: bool,
    ipv4: bool,
    ipv6: bool,
    output: str | None,
    plain: bool,
    fields: str | None,
    sort_by: str | None,
    no_headers: bool,
    numeric: bool,
    timestamp: bool,
    color: str | None,
) -> None:
    """List connections once and exit."""
    config = get_config(ctx)
    spec = build_filter(filters, tcp, udp, listen, established, ipv4, ipv6, config)
    sort = build_sort(sort_by or config.sort_by)
    chosen_fields = split_fields(fields, config)
    fmt = "plain" if plain else output or config.output_format
    headers = not (no_headers or config.no_headers)
    console = make_console(color or config.color)

    connections = fetch_once(make_source(ctx), spec, sort)

    if fmt == "json":
        print_json(console, connections, color=console.is_terminal)
        return

    enricher = make_enricher(numeric or config.numeric, chosen_fields)
    try:
        if fmt == "csv":
            click.echo(
                render_csv(connections, enricher, chosen_fields, headers, timestamp),
                nl=False,
            )
        elif fmt == "plain":
            click.echo(
                render_plain(connections, enricher, chosen_fields, headers, timestamp),
                nl=False,
            )
        else:
            table = styled_table(connections, enricher, chosen_fields, headers)
            if console.is_terminal and len(connections) > console.height - _PAGER_MARGIN:
                with console.pager(styles=True):
                    console.print(table)
            else:
                console.print(table)
    finally:
        enricher.close()


@click.command("json")
@filter_options
@click.option("--sort", "-s", "sort_by", default=None, help="Sort by field[:asc|desc].")
@click.option("--color", type=COLOR_CHOICES, default=None, help="Colour output.")
@click.pass_context
def json_cmd(
    ctx: click.Context,
    filters: tuple[str, ...],
    tcp: bool,
    udp: bool,
    listen: bool,
    established: bool,
    ipv4: bool,
    ipv6: bool,
    sort_by: str | None,
    color: str | None,
) -> None:
    """Print connections as a JSON array."""
    config = get_config(ctx)
    spec = build_filter(filters, tcp, udp, listen, established, ipv4, ipv6, config)
    sort = build_sort(sort_by or config.sort_by)
    console = make_console(color or config.color)

    connections = fetch_once(make_source(ctx), spec, sort)
    print_json(console, connections, color=console.is_terminal)
