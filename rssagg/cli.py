"""
RSSAgg CLI - Command line interface for running the feed scraper.

Usage:
    rssagg --help              Show all commands
    rssagg scrape              Run the scrape schedule in the foreground
    rssagg tick                Process a single batch of stale feeds
    rssagg fetch URL           Fetch and parse one feed (no database)
    rssagg serve               Start the API server (scheduler included)
    rssagg init-db             Create tables directly from the models
"""

import asyncio
import contextlib

import typer

app = typer.Typer(
    name="rssagg",
    help="RSSAgg CLI - feed scraper and API runner",
    no_args_is_help=True,
)


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_warning(message: str) -> None:
    """Print a warning message."""
    typer.echo(f"  ⚠️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


def _scraper_config(interval: float | None, batch_size: int | None):
    """Copy of the configured scraper settings with CLI overrides applied."""
    from rssagg.config import get_config

    try:
        return get_config().scraper.with_overrides(
            fetch_interval=interval, batch_size=batch_size
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


@app.command()
def scrape(
    interval: float | None = typer.Option(
        None, "--interval", "-i", min=1, help="Seconds between ticks (overrides config.yml)"
    ),
    batch_size: int | None = typer.Option(
        None, "--batch-size", "-b", min=1, help="Feeds per tick (overrides config.yml)"
    ),
):
    """Run the scrape schedule until interrupted."""
    from rssagg.core.logging import setup_logging
    from rssagg.core.scheduler import create_scheduler

    setup_logging()
    scheduler = create_scheduler(_scraper_config(interval, batch_size))

    typer.echo(
        f"Collecting feeds every {scheduler.config.fetch_interval}s "
        f"in batches of {scheduler.config.batch_size}..."
    )
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(scheduler.run())


@app.command()
def tick(
    batch_size: int | None = typer.Option(
        None, "--batch-size", "-b", min=1, help="Feeds to process (overrides config.yml)"
    ),
):
    """Process a single batch of the least recently fetched feeds."""
    from rssagg.core.logging import setup_logging
    from rssagg.core.scheduler import create_scheduler
    from rssagg.ingest.base import FeedOutcome

    setup_logging()
    scheduler = create_scheduler(_scraper_config(None, batch_size))
    batch = asyncio.run(scheduler.tick())

    if batch.selection_failed:
        _print_error(f"Feed selection failed: {batch.error}")
        raise typer.Exit(1)

    typer.echo(f"\n{batch.selected} feeds selected")
    for result in batch.results:
        if result.outcome == FeedOutcome.SUCCESS:
            _print_success(
                f"{result.feed_name}: {result.posts_created} new, "
                f"{result.duplicates} known ({result.items_found} items)"
            )
        else:
            _print_warning(f"{result.feed_name}: {result.outcome.value} - {result.error}")
    typer.echo("")


@app.command()
def fetch(
    url: str = typer.Argument(..., help="Feed URL"),
    timeout: float = typer.Option(
        10.0, "--timeout", "-t", min=0.1, help="Request timeout in seconds"
    ),
    limit: int = typer.Option(10, "--limit", "-l", help="Max items to print"),
):
    """Fetch and parse a single feed without touching the database."""
    from rssagg.ingest.errors import FetchError, ParseError
    from rssagg.ingest.normalizer import parse_pub_date
    from rssagg.ingest.rss import fetch_feed

    try:
        document = asyncio.run(fetch_feed(url, timeout=timeout))
    except (FetchError, ParseError) as e:
        _print_error(f"{e.__class__.__name__}: {e}")
        raise typer.Exit(1)

    typer.echo(f"\n{document.title or url} ({len(document.items)} items)")
    if document.description:
        typer.echo(f"  {document.description}")
    for item in document.items[:limit]:
        published = parse_pub_date(item.pub_date)
        typer.echo(f"\n- {item.title or '(untitled)'}")
        typer.echo(f"  {item.link or '(no link)'}")
        typer.echo(f"  published: {published.isoformat() if published else '-'}")
    typer.echo("")


@app.command()
def init_db():
    """Create all tables from the models (dev and SQLite setups)."""
    from rssagg.core.database import init_models
    from rssagg.core.logging import setup_logging

    setup_logging()
    asyncio.run(init_models())
    _print_success("Tables created")


@app.command()
def migrate():
    """Run database migrations (alembic upgrade head)."""
    import subprocess

    result = subprocess.run(["alembic", "upgrade", "head"], check=False)
    raise typer.Exit(result.returncode)


@app.command()
def serve(
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable hot reload"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
):
    """Start the API server."""
    import subprocess

    cmd = ["uvicorn", "rssagg.main:app", "--host", "0.0.0.0", "--port", str(port)]
    if reload:
        cmd.append("--reload")

    subprocess.run(cmd, check=False)


if __name__ == "__main__":
    app()
