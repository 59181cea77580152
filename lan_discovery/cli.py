#!/usr/bin/env python3
"""
LAN Discovery CLI

Command-line interface for advertising and finding servers on the local
network.

Usage:
    lan-discovery advertise          # Start a server and advertise it
    lan-discovery search             # Search for servers
    lan-discovery serve              # Run the REST API
    lan-discovery config             # Show effective configuration
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.logging import RichHandler

from .config import ConfigError, load_config
from .discovery import DiscoveredPeer, DiscoveryManager
from .host import LocalHost

console = Console()


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    if verbose:
        level = 'DEBUG'
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              help='JSON config file')
@click.option('--secret', help='Shared discovery secret')
@click.option('--port', type=int, help='Discovery UDP port')
@click.option('--interval', type=float, help='Seconds between probes')
@click.option('--timeout', type=float, help='Seconds a receive may block')
@click.option('--broadcast', help='Broadcast address for probes')
@click.pass_context
def cli(ctx, verbose, config_path, secret, port, interval, timeout, broadcast):
    """LAN Discovery - find servers of the same app on the local network."""
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        raise click.BadParameter(str(e))

    # Command line wins over file and environment
    if secret is not None:
        config.secret = secret
    if port is not None:
        config.discovery_port = port
    if interval is not None:
        config.discovery_interval = interval
    if timeout is not None:
        config.discovery_timeout = timeout
    if broadcast is not None:
        config.broadcast_address = broadcast

    try:
        config.validate()
    except ConfigError as e:
        raise click.BadParameter(str(e))

    setup_logging(verbose, config.log_level)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.option('--host-port', type=int, help="Server's own transport port")
@click.pass_context
def advertise(ctx, host_port):
    """Start a server and advertise it until Ctrl+C."""
    config = ctx.obj['config']
    if host_port is not None:
        config.host_port = host_port

    async def run():
        host = LocalHost(config.host_port)
        manager = DiscoveryManager(config, host)

        try:
            host.start_server()
            if not manager.start_advertising():
                console.print("[red]Advertising could not be started[/red]")
                return

            console.print(Panel.fit(
                f"[bold green]Advertising Server[/bold green]\n\n"
                f"Server Port: [yellow]{config.host_port}[/yellow]\n"
                f"Discovery Port: [yellow]{config.discovery_port}[/yellow]\n"
                f"Secret: [cyan]{config.secret}[/cyan]",
                title="Discovery"
            ))
            console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

            while manager.is_advertising:
                await asyncio.sleep(1)

        finally:
            manager.close()
            host.stop_server()
            await manager.wait_closed()
            console.print("[green]Advertising stopped[/green]")

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")


@cli.command()
@click.option('--duration', '-d', default=10.0, show_default=True,
              help='Seconds to search for')
@click.option('--first', is_flag=True, help='Stop at the first server found')
@click.pass_context
def search(ctx, duration, first):
    """Search for servers and list the ones found."""
    config = ctx.obj['config']
    if first:
        config.search_mode = 'single'

    found: List[DiscoveredPeer] = []

    async def run():
        host = LocalHost(config.host_port)
        manager = DiscoveryManager(config, host)

        def on_found(peer: DiscoveredPeer):
            found.append(peer)
            console.print(f"[green]Found server at {peer.address}[/green]")

        manager.on_server_found(on_found)

        try:
            if not manager.start_searching():
                console.print("[red]Search could not be started[/red]")
                return

            console.print(f"[dim]Searching for {duration:g}s on port {config.discovery_port}...[/dim]")

            loop = asyncio.get_running_loop()
            deadline = loop.time() + duration
            while manager.is_searching and loop.time() < deadline:
                await asyncio.sleep(0.2)

        finally:
            manager.close()
            await manager.wait_closed()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Search interrupted[/yellow]")

    if not found:
        console.print("[yellow]No servers found[/yellow]")
        return

    table = Table(title="Discovered Servers")
    table.add_column("Address", style="cyan")
    table.add_column("Port", justify="right", style="yellow")
    table.add_column("Found At")

    for peer in found:
        table.add_row(
            peer.address,
            str(peer.port),
            datetime.fromtimestamp(peer.discovered_at).strftime('%H:%M:%S'),
        )

    console.print(table)


@cli.command()
@click.option('--api-port', type=int, help='REST API port')
@click.option('--bind', default='0.0.0.0', show_default=True, help='API bind address')
@click.pass_context
def serve(ctx, api_port, bind):
    """Run the REST API with automatic discovery."""
    config = ctx.obj['config']
    if api_port is not None:
        config.api_port = api_port

    async def run():
        host = LocalHost(config.host_port)
        manager = DiscoveryManager(config, host)

        if config.automatic:
            manager.enable_automatic()

        console.print(f"\n[dim]REST API available at http://localhost:{config.api_port}[/dim]")
        console.print(f"[dim]API docs at http://localhost:{config.api_port}/docs[/dim]\n")

        from .api import run_api_server
        try:
            await run_api_server(manager, host, bind=bind, port=config.api_port)
        finally:
            manager.close()
            await manager.wait_closed()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")


@cli.command('config')
@click.pass_context
def show_config(ctx):
    """Show the effective configuration."""
    config = ctx.obj['config']
    click.echo(json.dumps(config.to_dict(), indent=2))


def main():
    cli()


if __name__ == '__main__':
    main()
