"""CLI command: veilbox run <settings>: launch the engine and stream its output."""

from __future__ import annotations

import signal
import sys
import threading
import time
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from veilbox.config import VeilBoxConfig
from veilbox.errors import ConfigurationError, EngineStartError
from veilbox.policy.loader import load_settings
from veilbox.policy.models import Mode
from veilbox.supervisor import EngineRun, EngineSupervisor
from veilbox.synth import synthesize, traffic_endpoint

console = Console(stderr=True)

_POLL_INTERVAL = 0.5


@click.command()
@click.argument("settings", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--mode", "-m", default=None, help="Override the mode (proxy or tun).")
@click.option(
    "--grace",
    type=float,
    default=None,
    help="Seconds to wait for a clean engine exit before killing it.",
)
@click.pass_context
def run(ctx: click.Context, settings: Path, mode: str | None, grace: float | None) -> None:
    """Start the engine with the config built from SETTINGS."""
    config: VeilBoxConfig = ctx.obj["config"]
    if grace is not None:
        config.grace_timeout = grace

    try:
        request = load_settings(settings)
        effective_mode = Mode.parse(mode) if mode is not None else request.mode
        document = synthesize(request.profile, effective_mode, request.settings)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    line_count = 0

    def on_log(line: str) -> None:
        nonlocal line_count
        line_count += 1
        console.print(f"  [dim]engine[/dim] {escape(line)}")

    supervisor = EngineSupervisor(config=config, on_log=on_log)

    console.print(
        f"[bold]VeilBox[/bold] connecting to [cyan]{request.profile.host}:"
        f"{request.profile.port}[/cyan] ({request.profile.transport}, "
        f"mode [cyan]{effective_mode.value}[/cyan])"
    )
    try:
        engine_run = supervisor.start(document)
    except EngineStartError as e:
        console.print(f"[red]Start failed:[/red] {e}")
        raise SystemExit(1)

    endpoint = traffic_endpoint(request.settings.metrics)
    if endpoint is not None:
        console.print(f"  Traffic feed: [cyan]{endpoint[0]}[/cyan]")
    console.print("  Press Ctrl+C to stop.\n")

    stop_requested = threading.Event()

    def _signal_handler(signum: int, frame: object) -> None:
        console.print("\n[dim]Stopping...[/dim]")
        stop_requested.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    while supervisor.is_running and not stop_requested.wait(_POLL_INTERVAL):
        pass

    exited_on_its_own = not stop_requested.is_set()
    supervisor.stop()

    _print_summary(engine_run, line_count)
    if exited_on_its_own:
        console.print("\n[yellow]Engine exited on its own[/yellow]")
        sys.exit(1)


def _print_summary(engine_run: EngineRun, line_count: int) -> None:
    console.print("\n[bold]Engine Summary[/bold]")
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()

    table.add_row("PID", str(engine_run.pid))
    table.add_row("Config", str(engine_run.config_path))
    cache = engine_run.cache_path.name
    if engine_run.cache_fallback:
        cache += " (fallback)"
    table.add_row("Cache", cache)
    table.add_row("Uptime", f"{time.time() - engine_run.start_time:.1f}s")
    table.add_row("Log lines", str(line_count))
    console.print(table)
