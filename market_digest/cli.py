"""
Command-line interface for Market Digest.

Uses Typer to provide the trigger surface: an on-demand batch run, the
daily schedule, a news preview for a set of symbols and a welcome email.
Supports loading .env files for API key configuration.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
import typer

from .aggregator import NewsAggregator
from .config import AppConfig, load_config
from .core.types import Article, BatchResult
from .errors import ConfigError, DigestError
from .fetch.client import NewsClient
from .llm.tracing import flush
from .runner import build_app, run_once
from .scheduler import DailyScheduler
from .utils.logging import setup_logging

app = typer.Typer(add_completion=False, help="Personalized market news digests.")
console = Console()


def _load(config: Path | None, log_level: str | None) -> AppConfig:
    load_dotenv()
    cfg = load_config(str(config) if config else None)
    if log_level:
        cfg.logging.level = log_level
    setup_logging(cfg.logging)
    return cfg


@app.command()
def run(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    recipients: Path | None = typer.Option(None, "--recipients", "-r", help="Recipient store YAML."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print digests instead of sending them."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Run one digest batch now for every eligible recipient."""
    cfg = _load(config, log_level)
    if recipients is not None:
        cfg.recipients.path = str(recipients)
    try:
        result = asyncio.run(run_once(cfg, dry_run=dry_run, console=console))
    except (DigestError, ValueError) as exc:
        console.print(f"[bold red]Batch not started[/bold red]: {exc}")
        raise typer.Exit(code=1)
    finally:
        flush()
    _render_batch_result(result)


@app.command()
def schedule(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    at: str | None = typer.Option(None, "--at", help="Daily run time HH:MM (UTC)."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print digests instead of sending them."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Run a digest batch every day at a fixed time."""
    cfg = _load(config, log_level)
    run_at = at or cfg.schedule.time

    async def _job() -> None:
        try:
            result = await run_once(cfg, dry_run=dry_run, console=console)
            _render_batch_result(result)
        finally:
            flush()

    try:
        scheduler = DailyScheduler(_job, run_at)
    except ValueError as exc:
        console.print(f"[bold red]Invalid schedule[/bold red]: {exc}")
        raise typer.Exit(code=1)
    console.print(f"Daily digest scheduled at {scheduler.at:%H:%M} UTC")
    try:
        asyncio.run(scheduler.serve())
    except KeyboardInterrupt:
        console.print("Scheduler stopped")


@app.command()
def news(
    symbols: list[str] = typer.Argument(None, help="Topic symbols; none selects the general feed."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    window_days: int | None = typer.Option(None, "--window-days", help="Topic news window in days."),
    max_articles: int | None = typer.Option(None, "--max-articles", help="Batch size cap."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Preview the article batch aggregated for a set of symbols."""
    cfg = _load(config, log_level)

    async def _aggregate() -> list[Article]:
        async with NewsClient.from_config(cfg.market_data) as client:
            aggregator = NewsAggregator.from_config(client, cfg.news, cfg.market_data)
            return await aggregator.aggregate(symbols or [], window_days, max_articles)

    try:
        articles = asyncio.run(_aggregate())
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error[/bold red]: {exc}")
        raise typer.Exit(code=1)
    except DigestError as exc:
        console.print(f"[bold red]News fetch failed[/bold red]: {exc}")
        raise typer.Exit(code=1)
    _render_articles(articles)


@app.command()
def welcome(
    email: str = typer.Argument(..., help="Email of a recipient in the store."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the email instead of sending it."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Send a personalized welcome email to one recipient."""
    cfg = _load(config, log_level)

    async def _send() -> bool:
        digest_app = build_app(cfg, dry_run=dry_run, console=console)
        try:
            recipient = await digest_app.source.find_by_email(email)
            if recipient is None:
                console.print(f"[bold red]No recipient with email {email}[/bold red]")
                return False
            profile = await digest_app.source.profile_for(recipient.id)
            return await digest_app.runner.send_welcome(recipient, profile)
        finally:
            await digest_app.aclose()

    try:
        ok = asyncio.run(_send())
    except (DigestError, ValueError) as exc:
        console.print(f"[bold red]Welcome not sent[/bold red]: {exc}")
        raise typer.Exit(code=1)
    finally:
        flush()
    if not ok:
        raise typer.Exit(code=1)
    console.print(f"Welcome email sent to {email}")


def _render_batch_result(result: BatchResult) -> None:
    console.print(
        "[bold]Digest batch[/bold]: "
        f"attempted={result.attempted}, summarized={result.summarized}, sent={result.sent}"
        + (" [yellow](cancelled)[/yellow]" if result.cancelled else "")
    )
    for recipient_id, reason in sorted(result.failures.items()):
        console.print(f"  [dim]{recipient_id}[/dim]: {reason}")


def _render_articles(articles: list[Article]) -> None:
    table = Table(title=f"{len(articles)} articles")
    table.add_column("Published", no_wrap=True)
    table.add_column("Symbol")
    table.add_column("Source")
    table.add_column("Headline")
    for article in articles:
        published = _format_epoch(article.published_at)
        table.add_row(published, article.origin_symbol or "-", article.source, article.headline)
    console.print(table)


def _format_epoch(seconds: int) -> str:
    from datetime import datetime, timezone

    if seconds <= 0:
        return "unknown"
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


if __name__ == "__main__":
    app()
