# src/cli/runner.py

"""Headless CLI commands wrapping the sync job and its store."""

import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from src.clients.nota_parana_client import NotaParanaClient
from src.config.categories import category_label
from src.config.settings import Settings
from src.errors import StoreError, SyncAlreadyRunningError
from src.models.run_report import RunReport
from src.services.match_inspector import InspectionResult, MatchInspector
from src.services.sync_orchestrator import PriceSyncOrchestrator
from src.storage.catalog_db import CatalogDB

logger = logging.getLogger("price_sync.cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ALREADY_RUNNING = 2

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _print_report_table(report: RunReport) -> None:
    """Render the per-market breakdown of a run to stdout."""
    table = Table(
        title="Price Sync",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Market", style="bold")
    table.add_column("Products", justify="right")
    table.add_column("Prices", justify="right", style="green")
    for detail in report.details:
        table.add_row(
            detail.market, str(detail.products), str(detail.prices),
        )
    Console().print(table)


def _print_report_summary(report: RunReport) -> None:
    status = "[green]✓ success[/green]" if report.success else "[red]✗ failed[/red]"
    _err.print(
        f"{status}  markets={report.markets_processed}  "
        f"products={report.products_processed}  "
        f"prices={report.prices_recorded}  "
        f"not found={report.products_not_found}  "
        f"[dim]{report.elapsed_seconds:.1f}s[/dim]"
    )
    for error_msg in report.errors:
        _err.print(f"[red]Error: {error_msg}[/red]")
    if report.issues.total:
        _err.print(
            f"[dim]{report.issues.category_errors} category search "
            f"error(s), {report.issues.offer_errors} offer error(s) "
            f"skipped (see log)[/dim]"
        )


async def run_sync(output_format: str = "json") -> int:
    """Run one sync pass and print its report.

    Exit codes: 0 on success, 1 on a fatal failure, 2 when another
    run is already active.
    """
    try:
        store = CatalogDB()
    except StoreError as exc:
        report = RunReport()
        report.fail(str(exc))
        json.dump(report.to_dict(), sys.stdout, ensure_ascii=False, indent=2)
        sys.stdout.write("\n")
        return EXIT_FAILED

    client = NotaParanaClient()
    orchestrator = PriceSyncOrchestrator(store=store, client=client)
    _err.print(
        f"[bold]Syncing prices[/bold] [dim]local={Settings.LOCALE} "
        f"raio={Settings.RADIUS} data={Settings.PERIOD_DAYS} "
        f"categories={len(Settings.SEARCH_CATEGORIES)}[/dim]"
    )
    try:
        report = await orchestrator.run()
    except SyncAlreadyRunningError as exc:
        _err.print(f"[yellow]{exc}[/yellow]")
        return EXIT_ALREADY_RUNNING
    finally:
        client.close()
        store.close()

    _print_report_summary(report)
    if output_format == "table":
        _print_report_table(report)
    else:
        json.dump(report.to_dict(), sys.stdout, ensure_ascii=False, indent=2)
        sys.stdout.write("\n")
    return EXIT_OK if report.success else EXIT_FAILED


def _print_inspection(result: InspectionResult) -> None:
    if result.category is None:
        _err.print(
            f"[yellow]No offers for {result.barcode} in "
            f"{len(result.searched_categories)} categories.[/yellow]"
        )
        return
    _err.print(
        f"[bold]{result.barcode}[/bold]: {result.offers_found} offer(s) "
        f"in categoria {result.category} "
        f"({category_label(result.category)}), "
        f"{result.total_markets} candidate market(s)"
    )
    table = Table(
        title="Match Inspection",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Market", style="bold")
    table.add_column("Legal name")
    table.add_column("Establishment")
    table.add_column("Address (API)", overflow="fold")
    table.add_column("Name", justify="center")
    table.add_column("Address", justify="center")
    table.add_column("Match", justify="center")
    table.add_column("Price", justify="right", style="green")

    picked = {id(row) for row in result.matches}
    for row in result.rows:
        ev = row.evaluation
        if id(row) in picked:
            outcome = "[green]yes[/green]"
        elif ev.would_match:
            outcome = "[yellow]passes, not first[/yellow]"
        else:
            outcome = "[red]no[/red]"
        address = (
            f"{ev.address_matches}/3" if ev.has_location else "—"
        )
        table.add_row(
            ev.market.name,
            ev.market.legal_name or "",
            ev.establishment_name,
            row.offer.establishment.address,
            f"{ev.name_matches} ({', '.join(ev.matched_words)})",
            address,
            outcome,
            f"R$ {row.offer.price:,.2f}",
        )
    Console().print(table)


def _open_store() -> CatalogDB | None:
    """Open the default store, reporting a failure on stderr."""
    try:
        return CatalogDB()
    except StoreError as exc:
        logger.error("Cannot open store: %s", exc)
        _err.print(f"[red]{exc}[/red]")
        return None


def run_test_matching(barcode: str, term: str | None = None) -> int:
    """Show how the offers for *barcode* would be matched.

    *term* (a product name) picks the food or non-food category order.
    """
    store = _open_store()
    if store is None:
        return EXIT_FAILED
    client = NotaParanaClient()
    try:
        result = MatchInspector(store, client).inspect(barcode, term)
    except (ValueError, StoreError) as exc:
        _err.print(f"[red]{exc}[/red]")
        return EXIT_FAILED
    finally:
        client.close()
        store.close()

    _print_inspection(result)
    return EXIT_OK


def run_history(limit: int = 20) -> int:
    """List recent sync runs."""
    store = _open_store()
    if store is None:
        return EXIT_FAILED
    try:
        runs = store.list_runs(limit)
    except StoreError as exc:
        _err.print(f"[red]{exc}[/red]")
        return EXIT_FAILED
    finally:
        store.close()

    if not runs:
        _err.print("[yellow]No sync runs recorded yet.[/yellow]")
        return EXIT_OK

    table = Table(
        title="Sync History",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Finished")
    table.add_column("Prices", justify="right", style="green")
    styles = {
        "completed": "green",
        "running": "cyan",
        "failed": "red",
        "abandoned": "yellow",
    }
    for run in runs:
        style = styles.get(run.status, "white")
        table.add_row(
            str(run.id),
            f"[{style}]{run.status}[/{style}]",
            run.started_at,
            run.finished_at or "—",
            str(run.prices_recorded),
        )
    Console().print(table)
    return EXIT_OK


def run_import_catalog(path: str) -> int:
    """Load markets and products from a JSON file into the store."""
    store = _open_store()
    if store is None:
        return EXIT_FAILED
    try:
        markets, products = store.import_catalog(Path(path))
    except StoreError as exc:
        _err.print(f"[red]{exc}[/red]")
        return EXIT_FAILED
    finally:
        store.close()
    _err.print(
        f"[green]✓ Imported {markets} market(s) and "
        f"{products} product(s)[/green]"
    )
    return EXIT_OK


def run_list_categories() -> int:
    """Print the configured category search order."""
    table = Table(
        title=f"Search categories ({Settings.CATEGORY_SET})",
        title_style="bold cyan",
    )
    table.add_column("Order", style="dim", justify="right")
    table.add_column("Id", justify="right")
    table.add_column("Label")
    for idx, category in enumerate(Settings.SEARCH_CATEGORIES, 1):
        table.add_row(str(idx), str(category), category_label(category))
    Console().print(table)
    return EXIT_OK
