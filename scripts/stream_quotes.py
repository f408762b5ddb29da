"""Live quote CLI driven by the Yahoo Finance streaming endpoint."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer

from yfclient import AsyncStreamBridge, StreamingClient, load_settings
from yfclient.errors import StreamConnectError

app = typer.Typer(help="Live streaming utilities")


@app.command()
def run(
    symbols: List[str] = typer.Argument(..., help="Symbols to subscribe to."),
    limit: Optional[int] = typer.Option(None, min=1, help="Stop after this many price updates."),
    config: Optional[Path] = typer.Option(None, help="Optional TOML settings file."),
    auto_reconnect: bool = typer.Option(True, "--reconnect/--no-reconnect", help="Reconnect after unexpected closures."),
) -> None:
    """Print live price updates for SYMBOLS until interrupted."""

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(_run(symbols, limit=limit, config=config, auto_reconnect=auto_reconnect))
    except KeyboardInterrupt:  # pragma: no cover - interactive stop
        typer.echo("Interrupted.")


async def _run(symbols: List[str], *, limit: Optional[int], config: Optional[Path], auto_reconnect: bool) -> None:
    settings = load_settings(config)
    stream_settings = settings.stream.model_copy(update={"auto_reconnect": auto_reconnect})
    bridge = AsyncStreamBridge(StreamingClient(stream_settings))
    logger = logging.getLogger("yfclient.stream_quotes")

    try:
        await bridge.connect()
    except StreamConnectError as exc:
        typer.echo(f"Unable to connect: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    received = 0
    try:
        await bridge.subscribe([symbol.upper() for symbol in symbols])
        async for message in bridge.messages():
            if message.type == "price":
                update = message.data
                typer.echo(
                    f"{update.timestamp:%H:%M:%S} {update.id:<10} {update.price:>12.4f} "
                    f"{update.change:+.4f} ({update.change_percent:+.2f}%)"
                )
                received += 1
                if limit is not None and received >= limit:
                    break
            elif message.type == "error":
                logger.warning("stream error: %s", message.error)
            elif message.type == "disconnect":
                logger.info("stream disconnected: %s", message.data)
    finally:
        await bridge.disconnect()


if __name__ == "__main__":  # pragma: no cover
    app()
