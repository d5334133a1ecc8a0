"""
Command-Line Interface for sACN Monitor.

Provides commands for running the monitor and inspecting which
interfaces will carry multicast traffic.
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Optional

import click
import structlog

from sacn_monitor import __version__
from sacn_monitor.core.config import Settings
from sacn_monitor.core.exceptions import ConfigError, SacnMonitorError

logger = structlog.get_logger()


def _load_settings(config_path: Optional[Path]) -> Settings:
    if config_path:
        return Settings.from_yaml(config_path)
    return Settings()


def _format_summary_line(monitor, universe_id: int) -> Optional[str]:
    info = monitor.universe(universe_id)
    summary = monitor.universe_summary(universe_id)
    if summary is None:
        return None
    source = info.source_name if info and info.source_name else "-"
    return (
        f"Universe {universe_id:5d} | "
        f"Source: {source[:24]:24s} | "
        f"Rate: {summary.packet_rate:6.1f} pps | "
        f"Loss: {summary.loss_percentage:5.1f}% | "
        f"Recent: {summary.recent_loss_percentage:5.1f}% | "
        f"Active: {summary.active_channels}/512"
    )


@click.group()
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, config: Optional[str]) -> None:
    """
    sACN Monitor - E1.31 streaming lighting-control traffic observer

    Listens for sACN data on all interfaces and reports which universes
    are live, who is sending them and whether packets are being lost.
    """
    ctx.ensure_object(dict)

    # Configure logging
    log_level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )

    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config) if config else None


@cli.command()
@click.option("--stale-timeout", type=float, default=None, help="Seconds before a universe is hidden")
@click.option("--interval", type=float, default=None, help="Refresh interval in seconds")
@click.pass_context
def run(ctx: click.Context, stale_timeout: Optional[float], interval: Optional[float]) -> None:
    """Receive sACN traffic and print a summary per active universe."""
    from sacn_monitor.monitor import SacnMonitor

    try:
        settings = _load_settings(ctx.obj["config_path"])
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    settings.debug = ctx.obj["debug"]
    timeout = stale_timeout if stale_timeout is not None else settings.monitor.stale_timeout_s
    tick = interval if interval is not None else settings.monitor.refresh_interval_s

    click.echo(f"sACN Monitor v{__version__}")
    click.echo("=" * 50)
    click.echo(f"Port: {settings.receiver.port}")
    click.echo(
        f"Multicast universes: {settings.receiver.universe_start}-{settings.receiver.universe_end}"
    )
    click.echo()

    monitor = SacnMonitor(settings)
    try:
        monitor.start()
    except SacnMonitorError as e:
        click.echo(f"Error starting receiver: {e}", err=True)
        sys.exit(1)

    click.echo("Listening. Press Ctrl+C to stop.")
    click.echo()

    try:
        while True:
            active = monitor.active_universes(timeout)
            if not active:
                click.echo("\rWaiting for sACN data...", nl=False)
            else:
                lines = [
                    line
                    for line in (_format_summary_line(monitor, u.id) for u in active)
                    if line is not None
                ]
                click.echo("\n".join(lines))
                click.echo("-" * 50)
            time.sleep(tick)

    except KeyboardInterrupt:
        click.echo("\nShutting down...")
    finally:
        monitor.stop()


@cli.command()
@click.pass_context
def interfaces(ctx: click.Context) -> None:
    """List IPv4 interfaces used for multicast group membership."""
    from sacn_monitor.sacn.receiver import multicast_interfaces

    addresses = multicast_interfaces()

    click.echo("Multicast-capable interfaces:")
    click.echo("-" * 60)

    for address in addresses:
        click.echo(f"  {address}")

    if not addresses:
        click.echo("  (no multicast-capable interfaces found)")


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
