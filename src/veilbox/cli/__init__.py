"""CLI entry point: Click group with global options."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from veilbox import __version__
from veilbox.config import VeilBoxConfig


@click.group()
@click.version_option(version=__version__, prog_name="veilbox")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for the engine config and cache files.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, data_dir: Path | None, verbose: bool) -> None:
    """VeilBox: sing-box configuration and engine supervisor."""
    config = VeilBoxConfig.load()
    if data_dir is not None:
        config.data_dir = data_dir
    config.verbose = verbose

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _register_commands() -> None:
    from veilbox.cli.paths import paths  # noqa: F811
    from veilbox.cli.render import render  # noqa: F811
    from veilbox.cli.run import run  # noqa: F811

    main.add_command(render)
    main.add_command(run)
    main.add_command(paths)


_register_commands()
