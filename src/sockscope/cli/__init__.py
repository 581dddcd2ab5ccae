"""CLI entry point: Click group with global options."""

from __future__ import annotations

import logging

import click

from sockscope import __version__
from sockscope.config import SockscopeConfig


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="sockscope")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Path to a YAML config file.",
)
@click.option(
    "--fixture",
    type=click.Path(exists=True, dir_okay=False),
    help="Read connections from a saved JSON snapshot instead of the host.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(
    ctx: click.Context, config_path: str | None, fixture: str | None, verbose: bool
) -> None:
    """sockscope: inspect live sockets and the processes that own them.

    Runs the interactive view when no command is given.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = SockscopeConfig.load(config_path)
    ctx.obj["fixture"] = fixture

    if ctx.invoked_subcommand is None:
        from sockscope.cli.top import top

        ctx.invoke(top)


def _register_commands() -> None:
    from sockscope.cli.ls import json_cmd, ls  # noqa: F811
    from sockscope.cli.stats import stats  # noqa: F811
    from sockscope.cli.top import top  # noqa: F811
    from sockscope.cli.trace import trace  # noqa: F811

    main.add_command(top)
    main.add_command(ls)
    main.add_command(json_cmd)
    main.add_command(trace)
    main.add_command(stats)


_register_commands()
