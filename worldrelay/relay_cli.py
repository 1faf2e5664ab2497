"""Console entrypoint for the world relay (independent process)."""

from __future__ import annotations

import asyncio
import sys

import typer
import websockets
from loguru import logger
from rich.console import Console
from rich.table import Table

from worldrelay.relay_client import RelayClient
from worldrelay.relay_server import RelayServer, RelayServerConfig

app = typer.Typer(name="world-relay", help="Multiplayer session relay for the virtual world")
console = Console()


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


@app.command("run")
def run(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind host"),
    port: int = typer.Option(8081, "--port", help="Bind port"),
    ping_interval: float = typer.Option(20.0, "--ping-interval", help="Keepalive ping interval (seconds, 0 disables)"),
    ping_timeout: float = typer.Option(20.0, "--ping-timeout", help="Keepalive timeout (seconds)"),
    max_message_bytes: int = typer.Option(65536, "--max-message-bytes", help="Largest accepted inbound frame"),
    max_queued: int = typer.Option(1024, "--max-queued-messages", help="Outbound frames buffered per client before it is dropped"),
    log_level: str = typer.Option("INFO", "--log-level", help="Log level (DEBUG logs every message)"),
):
    """Run the relay server until interrupted."""
    _configure_logging(log_level)
    server = RelayServer(
        cfg=RelayServerConfig(
            host=host,
            port=port,
            ping_interval_s=ping_interval or None,
            ping_timeout_s=ping_timeout or None,
            max_message_bytes=max_message_bytes,
            max_queued_messages=max_queued,
        )
    )

    async def _main():
        try:
            await server.start()
        except OSError as e:
            console.print(f"[red]✗[/red] Could not bind ws://{host}:{port}: {e}")
            raise typer.Exit(1)
        try:
            await asyncio.Future()
        finally:
            await server.stop()

    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        console.print("\nStopping relay...")


@app.command("connections")
def connections(
    url: str = typer.Option("ws://localhost:8081", "--url", help="Relay WebSocket URL"),
):
    """Connect as a client and list the relay's tracked players."""
    async def _run():
        async with RelayClient(url) as client:
            return await client.list_connections()

    try:
        info = asyncio.run(_run())
    except (OSError, RuntimeError, asyncio.TimeoutError, websockets.WebSocketException) as e:
        console.print(f"[red]✗[/red] Could not query relay at {url}: {e}")
        raise typer.Exit(1)

    # This query connection is counted too.
    console.print(f"Connections: {info.get('totalConnections', 0)}  Players: {info.get('playerCount', 0)}")
    table = Table(title="Players")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Position")
    for p in info.get("players", []):
        pos = f"({p.get('x', 0):.2f}, {p.get('y', 0):.2f}, {p.get('z', 0):.2f})"
        table.add_row(p.get("id", ""), p.get("name", ""), pos)
    console.print(table)


if __name__ == "__main__":
    app()
