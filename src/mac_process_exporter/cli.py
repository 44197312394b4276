"""CLI commands for mac-process-exporter."""

import click


@click.group()
@click.version_option(package_name="mac-process-exporter")
def main() -> None:
    """Export per-group process CPU and memory usage for Prometheus."""
    pass


@main.command()
@click.option("--port", "-p", type=click.IntRange(1, 65535), help="Override listening port")
@click.option("--host", "-H", help="Override listening address")
@click.option("--verbose", "-v", is_flag=True, help="Echo structured debug logs to stderr")
def serve(port: int | None, host: str | None, verbose: bool) -> None:
    """Run the metrics HTTP server."""
    import asyncio

    from mac_process_exporter.config import Config
    from mac_process_exporter.daemon import run_exporter

    try:
        config = Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if port is not None:
        config.server.port = port
    if host is not None:
        config.server.host = host

    asyncio.run(run_exporter(config, verbose=verbose))


@main.command()
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["table", "prometheus"]),
    default="table",
    help="Output format",
)
@click.option("--limit", "-n", default=25, help="Groups to show in table output (0 = all)")
def snapshot(fmt: str, limit: int) -> None:
    """Run one collection cycle and print the result."""
    from mac_process_exporter import logging as mlog
    from mac_process_exporter.config import Config
    from mac_process_exporter.daemon import build_collector
    from mac_process_exporter.exposition import render
    from mac_process_exporter.processes import EnumerationError

    try:
        config = Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    # Structured events go to the log file only; stdout carries the snapshot
    mlog.configure(config)

    try:
        snap = build_collector(config).collect()
    except EnumerationError as e:
        mlog.scrape_failed(str(e))
        raise SystemExit(1) from e

    if fmt == "prometheus":
        click.echo(render(snap).decode("utf-8"), nl=False)
        return

    from rich.console import Console
    from rich.table import Table

    groups = sorted(snap.groups, key=lambda g: g.cpu_seconds, reverse=True)
    if limit > 0:
        groups = groups[:limit]

    table = Table(
        title=f"{len(snap)} groups from {snap.stats.processes} processes "
        f"({snap.elapsed_ms}ms)",
    )
    table.add_column("Name", style="cyan")
    table.add_column("Parent")
    table.add_column("CPU (s)", justify="right")
    table.add_column("Mem %", justify="right")
    for group in groups:
        table.add_row(
            group.name,
            group.parent,
            f"{group.cpu_seconds:.2f}",
            f"{group.mem_percent:.2f}",
        )
    Console().print(table)

    if snap.stats.skipped:
        click.echo(f"Skipped {snap.stats.skipped} processes (exited or access denied)")


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from mac_process_exporter.config import Config

    try:
        cfg = Config.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[server]")
    click.echo(f"  host = {cfg.server.host}")
    click.echo(f"  port = {cfg.server.port}")
    click.echo(f"  port_env = {cfg.server.port_env}")
    click.echo()
    click.echo("[collection]")
    click.echo(f"  timeout_seconds = {cfg.collection.timeout_seconds}")
    click.echo(f"  max_workers = {cfg.collection.max_workers}")
    click.echo(f"  batch_size = {cfg.collection.batch_size}")
    click.echo(f"  supervisor_name = {cfg.collection.supervisor_name}")
    click.echo(f"  log_groups = {cfg.collection.log_groups}")
    click.echo()
    click.echo("[system]")
    click.echo(f"  heartbeat_seconds = {cfg.system.heartbeat_seconds}")
    click.echo(f"  log_max_bytes = {cfg.system.log_max_bytes}")
    click.echo(f"  log_backup_count = {cfg.system.log_backup_count}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from mac_process_exporter.config import Config

    cfg = Config()

    # Create config if it doesn't exist
    if not cfg.config_path.exists():
        cfg.save()
        click.echo(f"Created default config at {cfg.config_path}")

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from mac_process_exporter.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")
