"""
Command-line interface for the pharma industry feed service.

Usage:
    python -m pharma_feeds refresh                  # Run one refresh cycle
    python -m pharma_feeds feeds -c regulatory      # Show one category
    python -m pharma_feeds search "phase 3"         # Search cached items
    python -m pharma_feeds trending -t 7d           # Trending keywords
    python -m pharma_feeds company Pfizer           # News mentioning a company
    python -m pharma_feeds status                   # Per-source feed status
    python -m pharma_feeds sources                  # List configured feeds
    python -m pharma_feeds config                   # Show current configuration
    python -m pharma_feeds schedule                 # Refresh periodically
"""

import asyncio
import json
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import get_settings
from .logging_conf import get_logger, setup_logging
from .models import FeedItem
from .query import TIMEFRAMES, parse_timeframe
from .scheduler import run_scheduler
from .service import FeedService
from .sources.base import FeedCategory

console = Console()
logger = get_logger(__name__)

CATEGORY_CHOICES = [category.value for category in FeedCategory]

RELEVANCE_STYLES = {"high": "bold red", "medium": "yellow", "low": "dim"}


def _items_table(title: str, items: list[FeedItem]) -> Table:
    table = Table(title=title)
    table.add_column("Relevance")
    table.add_column("Source", style="cyan")
    table.add_column("Title")
    table.add_column("Published", style="green")

    for item in items:
        style = RELEVANCE_STYLES.get(item.relevance.value, "")
        published = item.published_at.strftime("%Y-%m-%d %H:%M") if item.published_at else item.published_raw
        table.add_row(
            f"[{style}]{item.relevance.value}[/{style}]",
            item.source,
            item.title,
            published or "-",
        )
    return table


async def _refresh_once(service: FeedService):
    """Run a single refresh cycle with the fetcher client open."""
    async with service.fetcher:
        return await service.refresh_all()


async def _with_refresh(service: FeedService, operation):
    """Refresh every feed, then run an operation against the warm cache."""
    async with service.fetcher:
        await service.refresh_all()
        return await operation()


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug: bool):
    """Pharma industry news feed CLI."""
    settings = get_settings()
    level = "DEBUG" if debug else settings.log_level
    setup_logging(level=level, json_output=settings.log_json)


@cli.command()
@click.option("--json-output", "-j", is_flag=True, help="Output the cycle summary as JSON")
def refresh(json_output: bool):
    """
    Run one full refresh cycle over every configured feed.

    Examples:
      python -m pharma_feeds refresh
      python -m pharma_feeds refresh --json-output
    """
    console.print(Panel("[bold green]Refreshing Feeds[/bold green]"))

    try:
        service = FeedService()
        result = asyncio.run(_refresh_once(service))
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()

    if json_output:
        console.print(json.dumps(result.to_dict(), indent=2))
        return

    table = Table(title="Refresh Results")
    table.add_column("Source", style="cyan")
    table.add_column("Outcome")

    outcome_styles = {"success": "green", "fallback": "yellow", "empty": "red"}
    for name, outcome in result.outcomes.items():
        style = outcome_styles[outcome.value]
        table.add_row(name, f"[{style}]{outcome.value}[/{style}]")

    console.print(table)
    console.print(
        f"\nSucceeded: {result.succeeded} | Fallback: {result.fallback} | Empty: {result.empty}"
    )


@cli.command()
@click.option("--category", "-c", type=click.Choice(CATEGORY_CHOICES), help="Only this category")
@click.option("--limit", "-n", type=int, default=5, help="Items shown per feed")
def feeds(category: Optional[str], limit: int):
    """Show the latest items per feed."""
    service = FeedService()

    async def load():
        async with service.fetcher:
            if category:
                parsed = FeedCategory.parse(category)
                return {parsed: await service.get_feeds_by_category(parsed, limit=limit)}
            return await service.get_all_feeds(limit=limit)

    try:
        views = asyncio.run(load())
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()

    for feed_category, snapshots in views.items():
        console.print(Panel(f"[bold blue]{feed_category.value}[/bold blue]"))
        for snapshot in snapshots:
            if snapshot.is_degraded:
                console.print(f"[red]{snapshot.source}: {snapshot.error}[/red]")
                continue
            console.print(_items_table(snapshot.source, list(snapshot.items)))


@cli.command()
@click.argument("query")
@click.option("--category", "-c", type=click.Choice(CATEGORY_CHOICES), help="Only this category")
@click.option("--limit", "-n", type=int, help="Maximum results")
def search(query: str, category: Optional[str], limit: Optional[int]):
    """
    Search titles and descriptions across all feeds.

    Examples:
      python -m pharma_feeds search "warning letter"
      python -m pharma_feeds search biosimilar -c patents
    """
    service = FeedService()

    try:
        results = asyncio.run(_with_refresh(
            service,
            lambda: service.search(query, category=category, limit=limit),
        ))
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()

    if not results:
        console.print(f"[yellow]No results for '{query}'[/yellow]")
        return

    console.print(_items_table(f"Results for '{query}'", results))


@cli.command()
@click.option(
    "--timeframe", "-t",
    type=click.Choice(list(TIMEFRAMES)),
    default="24h",
    help="Window to count keywords in",
)
@click.option("--hours", type=int, help="Window in hours (overrides --timeframe)")
@click.option("--limit", "-n", type=int, help="Number of topics")
def trending(timeframe: str, hours: Optional[int], limit: Optional[int]):
    """Show the most frequent keywords in recent items."""
    service = FeedService()
    window_hours = parse_timeframe(timeframe) if hours is None else hours
    label = timeframe if hours is None else f"{hours}h"

    try:
        topics = asyncio.run(_with_refresh(
            service,
            lambda: service.trending(window_hours=window_hours, limit=limit),
        ))
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()

    table = Table(title=f"Trending ({label})")
    table.add_column("Keyword", style="cyan")
    table.add_column("Count", style="green")
    table.add_column("Relevance")

    for topic in topics:
        table.add_row(topic.keyword, str(topic.count), topic.relevance.value)

    console.print(table)


@cli.command()
@click.argument("name")
@click.option("--limit", "-n", type=int, default=20, help="Maximum results")
def company(name: str, limit: int):
    """Show news mentioning a company."""
    service = FeedService()

    try:
        results = asyncio.run(_with_refresh(
            service,
            lambda: service.company_news(name, limit=limit),
        ))
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()

    if not results:
        console.print(f"[yellow]No news found for {name}[/yellow]")
        return

    console.print(_items_table(f"News for {name}", results))


@cli.command()
def status():
    """Refresh once and show every feed's status."""
    service = FeedService()

    try:
        asyncio.run(_refresh_once(service))
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()

    table = Table(title="Feed Status")
    table.add_column("Category", style="blue")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    table.add_column("Items", style="green")
    table.add_column("Error", style="red")

    for feed_category, entries in service.get_feed_status().items():
        for entry in entries:
            state = "[green]active[/green]" if entry.status == "active" else "[red]inactive[/red]"
            table.add_row(
                feed_category.value,
                entry.name,
                state,
                str(entry.item_count),
                entry.error or "",
            )

    console.print(table)

    if not service.has_working_feeds():
        console.print("\n[bold red]No feeds are currently serving items[/bold red]")


@cli.command()
@click.option("--category", "-c", type=click.Choice(CATEGORY_CHOICES), help="Only this category")
def sources(category: Optional[str]):
    """List configured feed sources."""
    from .sources import get_source_registry

    registry = get_source_registry()

    table = Table(title="Feed Sources")
    table.add_column("Name", style="cyan")
    table.add_column("Category", style="yellow")
    table.add_column("URL")
    table.add_column("Description")

    for source in registry.list_sources(category):
        table.add_row(source.name, source.category.value, source.url, source.description)

    console.print(table)

    stats = registry.get_stats()
    console.print(f"\nTotal: {stats['total_sources']}")
    console.print(f"By category: {stats['by_category']}")


@cli.command()
def config():
    """Show current configuration."""
    settings = get_settings()

    console.print(Panel("[bold blue]Current Configuration[/bold blue]"))

    console.print("\n[cyan]Fetching:[/cyan]")
    console.print(f"  fetch_timeout:          {settings.fetch_timeout}")
    console.print(f"  max_redirects:          {settings.max_redirects}")
    console.print(f"  max_concurrent_fetches: {settings.max_concurrent_fetches}")
    console.print(f"  user_agent:             {settings.user_agent}")

    console.print("\n[cyan]Cache / Refresh:[/cyan]")
    console.print(f"  cache_ttl_minutes:        {settings.cache_ttl_minutes}")
    console.print(f"  refresh_interval_minutes: {settings.refresh_interval_minutes}")
    console.print(f"  max_items_per_source:     {settings.max_items_per_source}")

    console.print("\n[cyan]Queries:[/cyan]")
    console.print(f"  max_search_results:    {settings.max_search_results}")
    console.print(f"  trending_window_hours: {settings.trending_window_hours}")
    console.print(f"  trending_limit:        {settings.trending_limit}")

    console.print("\n[cyan]Logging:[/cyan]")
    console.print(f"  log_level: {settings.log_level}")
    console.print(f"  log_json:  {settings.log_json}")


@cli.command()
def schedule():
    """Refresh all feeds at startup and then every refresh interval."""
    settings = get_settings()
    console.print(Panel(
        f"[bold blue]Starting Scheduler[/bold blue]\n"
        f"Interval: every {settings.refresh_interval_minutes} minutes"
    ))

    try:
        asyncio.run(run_scheduler(FeedService(settings=settings)))
    except KeyboardInterrupt:
        console.print("[yellow]Scheduler stopped[/yellow]")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
