"""Click CLI commands for stockwatch."""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stockwatch.api import CatalogClient, parse_product_url
from stockwatch.config import load_dotenv, load_settings
from stockwatch.errors import StockwatchError, Unauthorized
from stockwatch.session import SessionStore, summarize_sensor

console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _settings(config_file: str | None):
    load_dotenv()
    try:
        return load_settings(config_file)
    except StockwatchError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """stockwatch: restock alerts and cart reservation for watched sizes."""
    _setup_logging(verbose)


@main.command()
@click.option("--config", "config_file", type=click.Path(exists=True), help="YAML config file.")
@click.option("--port", type=int, default=None, help="Port to serve on.")
@click.option("--host", default=None, help="Host to bind to.")
def serve(config_file: str | None, port: int | None, host: str | None) -> None:
    """Run the monitoring service and its configuration API."""
    import uvicorn

    from stockwatch.web.app import create_app

    settings = _settings(config_file)
    host = host or settings.host
    port = port or settings.port

    app = create_app(settings=settings)
    console.print(f"[bold green]stockwatch[/bold green] -> http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


@main.command()
@click.argument("url")
@click.option("--config", "config_file", type=click.Path(exists=True), help="YAML config file.")
def lookup(url: str, config_file: str | None) -> None:
    """Show a product's sizes and live stock from its shop URL."""
    parsed = parse_product_url(url)
    if not parsed:
        console.print("[red]Not a product URL (expected .../campaigns/<id>/articles/<id>)[/red]")
        sys.exit(1)
    campaign_id, article_id = parsed
    settings = _settings(config_file)

    store = SessionStore(
        access_token=settings.access_token.get_secret_value() if settings.access_token else None,
    )

    async def _lookup() -> None:
        async with CatalogClient(
            store,
            identity=settings.identity,
            base_url=settings.api_base_url,
            timeout=settings.request_timeout_seconds,
        ) as client:
            details = await client.fetch_product_details(campaign_id, article_id)
            info = details.product_info
            stock = await client.check_stock(info.config_sku, details.variant_skus, campaign_id)

        table = Table(box=None, padding=(0, 2))
        table.add_column("SKU", style="dim")
        table.add_column("Size", style="bold")
        table.add_column("Stock")
        table.add_column("Qty", justify="right")
        for sku, size in details.size_mapping.items():
            entry = stock.get(sku)
            in_stock = entry is not None and entry.in_stock
            table.add_row(
                sku,
                size.size,
                "[green]in stock[/green]" if in_stock else "[red]out[/red]",
                str(entry.quantity if entry else 0),
            )

        title = f"{info.brand} - {info.title} ({info.price}, {info.discount})"
        console.print(Panel(table, title=title))

    try:
        asyncio.run(_lookup())
    except Unauthorized as e:
        console.print(f"[red]{e}[/red] Set STOCKWATCH_ACCESS_TOKEN or access_token in the config.")
        sys.exit(1)
    except StockwatchError as e:
        console.print(f"[red]Lookup failed: {e}[/red]")
        sys.exit(1)


@main.command()
@click.argument("blob")
def sensor(blob: str) -> None:
    """Print the delimiter structure of a captured sensor blob."""
    summary = summarize_sensor(blob)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Version", summary.version or "?")
    table.add_row("Type", summary.type or "?")
    table.add_row("Payload length", str(summary.payload_length))
    table.add_row("Counters", ", ".join(str(c) for c in summary.counters) or "-")
    table.add_row("Suffix length", str(summary.suffix_length))
    table.add_row("Total length", str(summary.total_length))

    console.print(Panel(table, title="Sensor blob"))
