"""
Round-robin, quota-bounded news aggregation.

Turns a set of topic symbols into a deduplicated, freshness-ordered batch:

1. Normalize symbols; with none left, take the general feed path
2. Run up to `max_rounds` rounds, each taking at most one new article per symbol
3. Fall back to the general feed when the symbol path yields nothing
4. Sort the batch newest first

Interleaving one article per symbol per round keeps a symbol with abundant
news from starving the others out of the quota.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import replace
from datetime import date
import logging

from .config import MarketDataConfig, NewsConfig
from .core.articles import article_key, date_window, ensure_valid_article, format_article
from .core.dedup import dedupe_articles
from .core.types import Article, RawArticle
from .errors import ValidationError
from .fetch.client import NewsClient
from .utils.logging import log_event


logger = logging.getLogger(__name__)


def normalize_symbols(symbols: Iterable[str] | None) -> list[str]:
    """Trim, uppercase and drop empty symbols.

    Sequences keep their first-seen order; unordered collections are sorted
    so the round-robin order is stable between runs.
    """
    if not symbols:
        return []
    if isinstance(symbols, (set, frozenset)):
        symbols = sorted(symbols)
    normalized: list[str] = []
    for symbol in symbols:
        if not isinstance(symbol, str):
            continue
        cleaned = symbol.strip().upper()
        if cleaned and cleaned not in normalized:
            normalized.append(cleaned)
    return normalized


def sort_batch(articles: Iterable[Article]) -> list[Article]:
    """Newest first; ties keep their selection order."""
    return sorted(articles, key=lambda a: a.published_at, reverse=True)


class NewsAggregator:
    """Builds bounded article batches from the news client.

    One aggregator may serve concurrent `aggregate` calls: the selection
    state of a call lives in that call's local variables only.

    Attributes:
        client: News client used for every upstream call
        cfg: Aggregation settings
        general_category: Category requested from the general feed
        general_ttl_seconds: Reuse window of the general feed
        call_timeout_seconds: Deadline applied to each upstream call
    """

    def __init__(
        self,
        client: NewsClient,
        cfg: NewsConfig | None = None,
        general_category: str = "general",
        general_ttl_seconds: float = 300,
        call_timeout_seconds: float | None = 10.0,
    ):
        self.client = client
        self.cfg = cfg or NewsConfig()
        self.general_category = general_category
        self.general_ttl_seconds = general_ttl_seconds
        self.call_timeout_seconds = call_timeout_seconds

    @classmethod
    def from_config(cls, client: NewsClient, news_cfg: NewsConfig, market_cfg: MarketDataConfig) -> NewsAggregator:
        return cls(
            client,
            news_cfg,
            general_category=market_cfg.general_category,
            general_ttl_seconds=market_cfg.general_cache_ttl_seconds,
            # Leave headroom over the client deadline so the client reports the timeout
            call_timeout_seconds=market_cfg.timeout_seconds * 1.5,
        )

    async def aggregate(
        self,
        symbols: Iterable[str] | None,
        window_days: int | None = None,
        max_articles: int | None = None,
        today: date | None = None,
    ) -> list[Article]:
        """Aggregate a batch of at most `max_articles` articles.

        Args:
            symbols: Topic symbols; empty or None selects the general feed
            window_days: Topic news window ending today
            max_articles: Batch size cap
            today: Window end date, for tests

        Returns:
            Articles sorted newest first, free of duplicate keys

        Raises:
            UpstreamError: Only when the general feed is the primary path and fails
        """
        window = self.cfg.window_days if window_days is None else window_days
        limit = self.cfg.max_articles if max_articles is None else max_articles
        if limit <= 0:
            return []

        normalized = normalize_symbols(symbols)
        if not normalized:
            return sort_batch(await self.general_feed(limit))

        date_from, date_to = date_window(window, today)
        batch = await self._round_robin(normalized, date_from, date_to, limit)

        if not batch and self.cfg.fallback_to_general:
            log_event(
                logger,
                "No topic news found, falling back to general feed",
                event="general_fallback",
                symbols=normalized,
            )
            try:
                batch = await self.general_feed(limit)
            except Exception as exc:  # noqa: BLE001
                log_event(
                    logger,
                    "General feed fallback failed",
                    level=logging.WARNING,
                    event="general_fallback_failed",
                    error=str(exc),
                )
                batch = []

        return sort_batch(batch)

    async def general_feed(self, limit: int | None = None) -> list[Article]:
        """Validated, deduplicated and truncated general market news."""
        cap = self.cfg.max_articles if limit is None else limit
        records = await self._with_deadline(
            self.client.general_news(self.general_category, self.general_ttl_seconds)
        )
        formatted = (
            format_article(raw, False, summary_chars=self.cfg.general_summary_chars)
            for raw in _valid_records(records, "general")
        )
        unique = dedupe_articles(formatted)[:cap]
        return [replace(article, ordinal=idx) for idx, article in enumerate(unique)]

    async def _round_robin(self, symbols: list[str], date_from: str, date_to: str, limit: int) -> list[Article]:
        batch: list[Article] = []
        selected: set[str] = set()
        active = list(symbols)
        budget = _CallBudget(self.cfg.max_rounds * len(symbols))

        for round_no in range(1, self.cfg.max_rounds + 1):
            if len(batch) >= limit or not active:
                break
            exhausted: set[str] = set()
            pending = list(active)

            # Each symbol adds at most one article, so a wave never fetches
            # more symbols than there are free slots in the batch.
            while pending and len(batch) < limit:
                wave = pending[: limit - len(batch)]
                pending = pending[len(wave):]
                results = await asyncio.gather(
                    *(self._fetch_symbol(symbol, date_from, date_to, round_no, budget) for symbol in wave)
                )
                for symbol, records in zip(wave, results):
                    if records is None:
                        continue
                    raw = _first_unselected(records, selected, symbol)
                    if raw is None:
                        exhausted.add(symbol)
                        continue
                    selected.add(article_key(raw))
                    batch.append(
                        format_article(
                            raw,
                            True,
                            symbol=symbol,
                            ordinal=len(batch),
                            summary_chars=self.cfg.topic_summary_chars,
                        )
                    )

            active = [symbol for symbol in active if symbol not in exhausted]

        return batch

    async def _fetch_symbol(
        self, symbol: str, date_from: str, date_to: str, round_no: int, budget: _CallBudget
    ) -> list[RawArticle] | None:
        """One topic fetch with retries; None when every attempt failed.

        Retries draw from the same call budget as first attempts, so the
        whole round-robin never exceeds max_rounds x symbols provider calls.
        """
        attempts = max(self.cfg.symbol_retries, 0) + 1
        for attempt in range(1, attempts + 1):
            if not budget.take():
                log_event(
                    logger,
                    "Call budget exhausted",
                    level=logging.DEBUG,
                    event="symbol_budget_exhausted",
                    symbol=symbol,
                    round=round_no,
                )
                return None
            try:
                return await self._with_deadline(self.client.company_news(symbol, date_from, date_to))
            except Exception as exc:  # noqa: BLE001
                log_event(
                    logger,
                    f"Error fetching news for symbol {symbol}",
                    level=logging.WARNING,
                    event="symbol_fetch_failed",
                    symbol=symbol,
                    round=round_no,
                    attempt=attempt,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
        return None

    async def _with_deadline(self, coro):
        if self.call_timeout_seconds is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=self.call_timeout_seconds)


class _CallBudget:
    """Provider calls left for one aggregation."""

    def __init__(self, calls: int):
        self.remaining = max(calls, 0)

    def take(self) -> bool:
        if self.remaining <= 0:
            return False
        self.remaining -= 1
        return True


def _first_unselected(records: list[RawArticle], selected: set[str], source: str) -> RawArticle | None:
    for raw in _valid_records(records, source):
        if article_key(raw) not in selected:
            return raw
    return None


def _valid_records(records: Iterable[RawArticle], source: str) -> Iterable[RawArticle]:
    for raw in records:
        try:
            yield ensure_valid_article(raw)
        except ValidationError as exc:
            log_event(
                logger,
                "Dropping malformed article",
                level=logging.DEBUG,
                event="article_invalid",
                source=source,
                field=exc.context.get("field"),
            )
