"""CLI command: veilbox render <settings>: print the synthesized engine config."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from veilbox.errors import ConfigurationError
from veilbox.policy.loader import load_settings
from veilbox.synth import render_document, synthesize

console = Console(stderr=True)


@click.command()
@click.argument("settings", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--mode", "-m", default=None, help="Override the mode (proxy or tun).")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write to this file instead of stdout.",
)
def render(settings: Path, mode: str | None, output: Path | None) -> None:
    """Synthesize the engine config from a SETTINGS file.

    The cache file path is left as a placeholder; it is only filled in when
    the engine is actually started.
    """
    try:
        request = load_settings(settings)
        document = synthesize(
            request.profile,
            mode if mode is not None else request.mode,
            request.settings,
        )
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    text = render_document(document)
    if output is None:
        click.echo(text, nl=False)
        return

    try:
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Error:[/red] cannot write {output}: {e}")
        raise SystemExit(1)
    rules = len(document["route"]["rules"])
    console.print(f"Wrote [cyan]{output}[/cyan] ({rules} route rules)")
