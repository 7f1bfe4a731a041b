"""Tests for the Typer command-line interface."""

from __future__ import annotations

import httpx
from typer.testing import CliRunner

from market_digest import cli
from market_digest.core.types import Article, BatchResult
from market_digest.errors import RecipientSourceError
from market_digest.fetch.client import NewsClient


runner = CliRunner()


def test_run_prints_batch_result(monkeypatch):
    captured = {}

    async def fake_run_once(cfg, dry_run=False, console=None):
        captured["dry_run"] = dry_run
        captured["recipients"] = cfg.recipients.path
        return BatchResult(attempted=3, summarized=2, sent=2, failures={"b": "summarizing: InferenceError: x"})

    monkeypatch.setattr(cli, "run_once", fake_run_once)

    result = runner.invoke(cli.app, ["run", "--dry-run", "--recipients", "people.yaml"])

    assert result.exit_code == 0
    assert "attempted=3, summarized=2, sent=2" in result.output
    assert captured == {"dry_run": True, "recipients": "people.yaml"}


def test_run_exits_nonzero_when_recipients_unavailable(monkeypatch):
    async def fake_run_once(cfg, dry_run=False, console=None):
        raise RecipientSourceError("Recipient list unavailable", BatchResult())

    monkeypatch.setattr(cli, "run_once", fake_run_once)

    result = runner.invoke(cli.app, ["run"])

    assert result.exit_code == 1
    assert "Batch not started" in result.output


def test_news_exits_nonzero_without_market_data_key(monkeypatch):
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)
    monkeypatch.delenv("FINNHUB_API_KEY", raising=False)

    result = runner.invoke(cli.app, ["news", "AAPL"])

    assert result.exit_code == 1
    assert "Configuration error" in result.output


def test_render_articles_lists_headlines(monkeypatch):
    from rich.console import Console

    console = Console(record=True, width=160)
    monkeypatch.setattr(cli, "console", console)
    article = Article(
        id="1",
        headline="Apple beats estimates",
        summary="",
        source="Reuters",
        url="https://example.com/apple",
        published_at=0,
        category="company",
        origin_symbol="AAPL",
    )

    cli._render_articles([article])

    text = console.export_text()
    assert "Apple beats estimates" in text
    assert "unknown" in text


def test_news_reports_provider_failure_without_traceback(monkeypatch):
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)
    monkeypatch.setenv("FINNHUB_API_KEY", "fh-test")
    build = NewsClient.from_config.__func__

    def from_config(cls, cfg, http_client=None):
        failing = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
        return build(cls, cfg, http_client=failing)

    monkeypatch.setattr(NewsClient, "from_config", classmethod(from_config))

    result = runner.invoke(cli.app, ["news"])

    assert result.exit_code == 1
    assert "News fetch failed" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)
