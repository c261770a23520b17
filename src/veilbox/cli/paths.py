"""CLI command: veilbox paths: show where config, cache, and engine live."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from veilbox.config import VeilBoxConfig
from veilbox.supervisor.cache import FALLBACK_GLOB

console = Console()


@click.command()
@click.pass_context
def paths(ctx: click.Context) -> None:
    """Show the data directory, config file, cache files, and engine path."""
    config: VeilBoxConfig = ctx.obj["config"]

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()

    engine = config.engine_path
    engine_status = "[green]found[/green]" if engine.is_file() else "[red]missing[/red]"

    table.add_row("Data dir", str(config.data_dir))
    table.add_row("Config", str(config.config_path))
    table.add_row("Cache", str(config.cache_path))
    if config.data_dir.is_dir():
        fallbacks = sorted(p.name for p in config.data_dir.glob(FALLBACK_GLOB))
        table.add_row("Fallback caches", ", ".join(fallbacks) or "none")
    table.add_row("Engine", f"{engine} ({engine_status})")
    console.print(table)
