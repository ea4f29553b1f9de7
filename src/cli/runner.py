# src/cli/runner.py

"""Headless CLI runners: search, bridge health check and cache sync."""

import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from src.models.product import EnrichedProduct
from src.models.search_mode import SearchMode
from src.services.exceptions import CacheError
from src.services.mode_detector import ModeDetector
from src.services.remote_search_client import RemoteSearchClient
from src.services.search_orchestrator import SearchOrchestrator
from src.storage.product_cache_db import ProductCacheDB

logger = logging.getLogger("pharma_search.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)

EXIT_OK = 0
EXIT_NO_RESULTS = 1
EXIT_UNAVAILABLE = 2


def _format_price(amount: float) -> str:
    return f"Rs {amount:,.2f}"


def _print_table(products: list[EnrichedProduct]) -> None:
    """Render a Rich table of enriched products to stdout."""
    table = Table(
        title="Search Results",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Name", max_width=50)
    table.add_column("SKU", style="dim")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Stock", justify="right")
    table.add_column("Category", style="magenta")

    for idx, p in enumerate(products, 1):
        table.add_row(
            str(idx),
            p.name[:50],
            p.sku or "—",
            _format_price(p.latest_retail_price),
            f"{p.total_quantity:g}",
            p.category or "—",
        )

    Console().print(table)


async def cli_search(
    query: str,
    output_format: str,
    orchestrator: SearchOrchestrator | None = None,
) -> int:
    """Run one headless search and return an exit code.

    0 = products found, 1 = no match, 2 = search unavailable.
    """
    store: ProductCacheDB | None = None
    if orchestrator is None:
        try:
            store = ProductCacheDB()
        except CacheError as exc:
            logger.error("Offline cache unavailable: %s", exc)
            _err.print(f"[red]Offline cache unavailable: {exc}[/red]")
            return EXIT_UNAVAILABLE
        orchestrator = SearchOrchestrator(RemoteSearchClient(), store)

    try:
        _err.print(f"[bold]Searching:[/bold] {query}")
        result = await orchestrator.search(query)
    finally:
        if store is not None:
            store.close()

    mode = result.mode.value if result.mode else "unknown"
    detail = " (fallback)" if result.fell_back else ""
    _err.print(f"[dim]mode={mode} source={result.source}{detail}[/dim]")

    for error_msg in result.errors:
        _err.print(f"[red]Error: {error_msg}[/red]")

    if result.unavailable:
        _err.print("[red]Search unavailable: both paths failed.[/red]")
        return EXIT_UNAVAILABLE

    if not result.products:
        hint = (
            "Try syncing data when online"
            if result.mode is SearchMode.OFFLINE
            else "Check spelling or try different keywords"
        )
        _err.print(f"[yellow]No products found. {hint}.[/yellow]")
        return EXIT_NO_RESULTS

    _err.print(f"[green]✓ {len(result.products)} products[/green]")

    if output_format == "table":
        _print_table(result.products)
    else:
        json.dump(
            [p.to_dict() for p in result.products],
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")

    return EXIT_OK


async def run_health_check(
    client: RemoteSearchClient | None = None,
) -> int:
    """Probe the search bridge and report the resulting mode."""
    _err.print("[bold]Probing remote search bridge...[/bold]")
    detector = ModeDetector(client or RemoteSearchClient())
    mode = await detector.probe()
    probe = detector.last_probe

    table = Table(
        title="Search Bridge Health",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Mode", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    if mode is SearchMode.ONLINE:
        status = "[green]ONLINE[/green]"
    else:
        status = "[yellow]OFFLINE[/yellow]"
    latency = (
        f"{probe.latency_ms:.0f}ms"
        if probe is not None and probe.latency_ms > 0
        else "—"
    )
    table.add_row(status, latency, probe.message if probe else "")

    Console().print(table)
    return EXIT_OK if mode is SearchMode.ONLINE else EXIT_NO_RESULTS


def run_sync(
    filepath: str,
    store: ProductCacheDB | None = None,
) -> int:
    """Replace the offline cache with a JSON product export."""
    path = Path(filepath)
    _err.print(f"[bold]Syncing offline cache from {path}...[/bold]")
    owns_store = store is None
    try:
        if store is None:
            store = ProductCacheDB()
        count = store.import_json_file(path)
    except CacheError as exc:
        logger.error("Cache sync failed: %s", exc)
        _err.print(f"[red]Sync failed: {exc}[/red]")
        return EXIT_NO_RESULTS
    finally:
        if owns_store and store is not None:
            store.close()

    _err.print(f"[green]✓ Cached {count:,} products[/green]")
    return EXIT_OK
