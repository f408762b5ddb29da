"""CLI entrypoint for fetching raw Yahoo Finance JSON through the resilient transport."""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger

from yfclient import YahooFinanceClient, load_settings
from yfclient.client import DEFAULT_SUMMARY_MODULES
from yfclient.errors import DecodeError, TransportError

app = typer.Typer(help="Quote and search lookups")


@app.command()
def summary(
    symbol: str = typer.Argument(..., help="Ticker symbol, e.g. AAPL."),
    modules: Optional[List[str]] = typer.Option(None, "--module", "-m", help="quoteSummary module (repeatable)."),
    config: Optional[Path] = typer.Option(None, help="Optional TOML settings file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Print the quoteSummary payload for SYMBOL."""

    _configure_logging(verbose)
    payload = asyncio.run(_summary(symbol, modules or list(DEFAULT_SUMMARY_MODULES), config))
    typer.echo(json.dumps(payload, indent=2, default=str))


@app.command()
def search(
    query: str = typer.Argument(..., help="Free-text search query."),
    quotes_count: int = typer.Option(10, min=1, help="Maximum number of quotes returned."),
    config: Optional[Path] = typer.Option(None, help="Optional TOML settings file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Print search matches for QUERY."""

    _configure_logging(verbose)
    payload = asyncio.run(_search(query, quotes_count, config))
    for item in payload.get("quotes", []):
        typer.echo(f"{item.get('symbol', '?'):<12} {item.get('quoteType', ''):<10} {item.get('shortname', '')}")


async def _summary(symbol: str, modules: List[str], config: Optional[Path]) -> dict:
    async with YahooFinanceClient(load_settings(config)) as client:
        try:
            return await client.quote_summary(symbol, modules)
        except (TransportError, DecodeError) as exc:
            typer.echo(f"Request failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc


async def _search(query: str, quotes_count: int, config: Optional[Path]) -> dict:
    async with YahooFinanceClient(load_settings(config)) as client:
        try:
            return await client.search(query, quotes_count=quotes_count)
        except (TransportError, DecodeError) as exc:
            typer.echo(f"Search failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc


def _configure_logging(verbose: bool) -> None:
    level = "DEBUG" if verbose else "INFO"
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # transport diagnostics go through loguru
    logger.remove()
    logger.add(sys.stderr, level=level)


if __name__ == "__main__":  # pragma: no cover
    app()
