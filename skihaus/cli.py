"""Debug command line for running providers locally.

    skihaus scrape          full run, persisted to the configured store
    skihaus test            run everything and print a summary table
    skihaus test vt         one region (nj, vt, ny, pa, ne, ca)
    skihaus test stowe      providers whose name contains the fragment
    skihaus names           registered name variants
"""
from __future__ import annotations

import asyncio
import json
from typing import List, Optional, Sequence

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from skihaus.config import app_config
from skihaus.http_client import build_client
from skihaus.logging import setup_logging
from skihaus.models import Snapshot
from skihaus.pipeline import collect, run_pipeline
from skihaus.scrapers import build_default_providers, build_resolver
from skihaus.scrapers.base import Provider, ProviderOutcome
from skihaus.services.conditions import trigger_scrape
from skihaus.storage import build_store

REGIONS = ("nj", "vt", "ny", "pa", "ne", "ca")

app = typer.Typer(
    name="skihaus",
    help="Ski area conditions aggregator.",
    add_completion=False,
)

console = Console()


def _fmt(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def select_providers(providers: Sequence[Provider], needle: str) -> List[Provider]:
    """Providers in a region, or whose label contains ``needle``."""
    needle = needle.strip().lower()
    if needle in REGIONS:
        return [provider for provider in providers if (provider.region or "").lower() == needle]
    return [provider for provider in providers if needle in provider.label.lower()]


def _summary_table(snapshot: Snapshot) -> Table:
    table = Table(title=f"Scraped {snapshot.scraped_at:%Y-%m-%d %H:%M} UTC")
    table.add_column("", width=1)
    table.add_column("Mountain", style="cyan")
    table.add_column("Base", justify="right")
    table.add_column("New 24h", justify="right")
    table.add_column("Trails", justify="right")
    table.add_column("Surface")
    for record in snapshot.mountains:
        table.add_row(
            "[green]✓[/green]" if record.ok else "[red]✗[/red]",
            record.name,
            _fmt(record.base),
            _fmt(record.new_snow_24),
            f"{_fmt(record.trails_open)}/{_fmt(record.trails_total)}",
            record.surface or "-",
        )
    return table


@app.command("scrape")
def scrape() -> None:
    """Run every provider and persist the snapshot."""
    setup_logging(app_config.logging)
    resolver = build_resolver()
    providers = build_default_providers(resolver=resolver)
    store = build_store(app_config.storage)

    with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console, transient=True) as progress:
        progress.add_task(f"Scraping {len(providers)} mountains...", total=None)
        result = asyncio.run(
            trigger_scrape(providers, resolver, store, method="cli", timeout=app_config.http.timeout)
        )

    snapshot = result.snapshot
    console.print(f"Saved: {result.saved}")
    console.print(f"Success rate: {snapshot.success_count}/{snapshot.total_count} mountains")

    failed = [record for record in snapshot.mountains if not record.ok]
    if failed:
        console.print(f"\n[yellow]{len(failed)} providers need selector tuning:[/yellow]")
        for record in failed:
            console.print(f"  - {record.name} -> {record.source}")


async def _run_selected(providers: Sequence[Provider]) -> List[ProviderOutcome]:
    async with build_client(timeout=app_config.http.timeout) as client:
        return await collect(providers, client)


@app.command("test")
def test_providers(
    needle: Optional[str] = typer.Argument(None, help="Region code or mountain name fragment"),
) -> None:
    """Run providers without persisting anything."""
    setup_logging(app_config.logging)
    resolver = build_resolver()
    providers = build_default_providers(resolver=resolver)

    if not needle:
        snapshot = asyncio.run(run_pipeline(providers, resolver, timeout=app_config.http.timeout))
        console.print(_summary_table(snapshot))
        console.print(f"\n{snapshot.success_count}/{snapshot.total_count} providers returned base depth")
        return

    selected = select_providers(providers, needle)
    if not selected:
        console.print(f'[red]No providers found matching "{needle}"[/red]')
        console.print(f"Valid regions: {', '.join(REGIONS)}")
        console.print("Or use a mountain name fragment: killington, stowe, etc.")
        raise typer.Exit(code=1)

    console.print(f'Running {len(selected)} provider(s) matching "{needle}"...')
    for outcome in asyncio.run(_run_selected(selected)):
        console.print(f"\n[bold]{outcome.provider}[/bold] ({outcome.classification.value})")
        if outcome.error:
            console.print(f"[red]{outcome.error}[/red]")
        console.print_json(json.dumps(outcome.record.to_dict()))


@app.command("names")
def names() -> None:
    """List the name variants the resolver knows."""
    resolver = build_resolver()
    table = Table(title=f"{len(resolver.canonical_names)} canonical names")
    table.add_column("Canonical", style="cyan")
    table.add_column("Variant", style="green")
    for raw, canonical in resolver.variants():
        table.add_row(canonical, raw)
    console.print(table)


if __name__ == "__main__":
    app()
