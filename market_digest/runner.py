"""
Batch digest orchestration.

This module runs one digest batch over a set of recipients in three
isolated phases:
1. Fetch: resolve topic symbols and aggregate an article batch
2. Summarize: turn each article batch into digest content via the LLM provider
3. Dispatch: deliver each digest through the configured channel

Every phase is a bounded fan-out over recipients. A failure or missed
deadline moves only that recipient's job to Skipped; the batch always
completes with a best-effort `BatchResult`. Nothing is persisted between
runs, so a crashed batch can simply be re-run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import date
import logging
from typing import Any, TypeVar

from rich.console import Console

from .aggregator import NewsAggregator
from .config import AppConfig, BatchConfig
from .core.types import Article, BatchResult, DigestJob, JobState, Recipient
from .delivery.base import Dispatcher
from .delivery.console import ConsoleDispatcher
from .delivery.factory import create_dispatcher
from .delivery.message import digest_subject
from .errors import DigestError, PhaseTimeoutError, RecipientSourceError
from .fetch.client import NewsClient
from .llm.providers.base import SummaryProvider
from .llm.providers.factory import create_provider
from .llm.tracing import set_span_output, setup_langfuse, start_span
from .recipients.base import RecipientSource
from .recipients.yaml_store import YamlRecipientStore
from .utils.logging import log_event, setup_llm_logger


logger = logging.getLogger(__name__)

T = TypeVar("T")
TopicResolver = Callable[[str], Awaitable[set[str]]]

WELCOME_SUBJECT = "Welcome to your Market Digest"
FALLBACK_WELCOME_INTRO = (
    "<p>Thanks for joining. You now have the tools to track markets "
    "and make smarter investments.</p>"
)


class DigestRunner:
    """Runs digest batches over recipients.

    Attributes:
        aggregator: Builds each recipient's article batch
        summarizer: Summarization port
        dispatcher: Dispatch port
        topics: Optional topic resolver; without it the symbols on the
            recipient record are used
        cfg: Worker pool, deadline and retry settings
        subject_prefix: Digest subject prefix
        last_result: Result of the most recent batch, also set when the
            batch was cancelled
    """

    def __init__(
        self,
        aggregator: NewsAggregator,
        summarizer: SummaryProvider,
        dispatcher: Dispatcher,
        topics: TopicResolver | None = None,
        cfg: BatchConfig | None = None,
        subject_prefix: str = "Market News Summary Today",
    ):
        self.aggregator = aggregator
        self.summarizer = summarizer
        self.dispatcher = dispatcher
        self.topics = topics
        self.cfg = cfg or BatchConfig()
        self.subject_prefix = subject_prefix
        self.last_result: BatchResult | None = None

    async def run_batch(self, source: RecipientSource, today: date | None = None) -> BatchResult:
        """List eligible recipients from the source, then run the batch.

        Raises:
            RecipientSourceError: The recipient list is unobtainable. The
                error carries a zero-attempt result.
        """
        try:
            recipients = await source.list_digest_recipients()
        except Exception as exc:  # noqa: BLE001
            result = self.last_result = BatchResult()
            log_event(
                logger,
                "Recipient list unavailable, batch not started",
                level=logging.ERROR,
                event="recipient_source_failed",
                error=str(exc),
            )
            if isinstance(exc, RecipientSourceError):
                exc.result = result
                raise
            raise RecipientSourceError(f"Recipient list unavailable: {exc}", result) from exc

        if not recipients:
            log_event(logger, "No recipients found for news digest", event="batch_empty")
            self.last_result = BatchResult()
            return self.last_result
        return await self.run_digest_batch(recipients, today=today)

    async def run_digest_batch(self, recipients: Sequence[Recipient], today: date | None = None) -> BatchResult:
        """Run fetch, summarize and dispatch over recipients.

        Cancelling the task running this coroutine stops the batch: the
        partial result of the jobs completed so far is stored on
        `last_result` with `cancelled=True`, then the cancellation
        propagates to the caller.

        Args:
            recipients: Recipients to process
            today: Date used in digest subjects, for tests

        Returns:
            BatchResult with attempted == len(recipients)
        """
        jobs = [DigestJob(recipient) for recipient in recipients]
        result = BatchResult(attempted=len(jobs))
        self.last_result = result
        subject = digest_subject(self.subject_prefix, today)
        log_event(logger, "Digest batch start", event="batch_start", attempted=result.attempted)

        with start_span(
            "market_digest.batch",
            kind="chain",
            input_value={"recipients": len(jobs)},
        ) as span:
            try:
                await self._run_phase(JobState.FETCHING, jobs, self._fetch_job)
                await self._run_phase(JobState.SUMMARIZING, jobs, self._summarize_job)
                await self._run_phase(
                    JobState.DISPATCHING, jobs, lambda job: self._dispatch_job(job, subject)
                )
            except asyncio.CancelledError:
                result.cancelled = True
                log_event(
                    logger,
                    "Digest batch cancelled, partial result recorded",
                    level=logging.WARNING,
                    event="batch_cancelled",
                )
                raise
            finally:
                _tally(jobs, result)
                set_span_output(span, result.as_dict())

        log_event(
            logger,
            "Digest batch complete",
            event="batch_complete",
            attempted=result.attempted,
            summarized=result.summarized,
            sent=result.sent,
            cancelled=result.cancelled,
        )
        return result

    async def send_welcome(self, recipient: Recipient, profile: dict[str, Any]) -> bool:
        """Generate a personalized welcome intro and deliver it.

        Inference failures fall back to a fixed intro; only delivery can
        fail the welcome.
        """
        job = DigestJob(recipient, state=JobState.SUMMARIZING)
        try:
            intro = await self._attempt(job, lambda: self.summarizer.welcome_intro(profile), retries=0)
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                "Welcome intro generation failed, using fallback",
                level=logging.WARNING,
                event="welcome_intro_failed",
                recipient_id=recipient.id,
                error=str(exc),
            )
            intro = FALLBACK_WELCOME_INTRO

        job.state = JobState.DISPATCHING
        try:
            await self._attempt(
                job,
                lambda: self.dispatcher.send(recipient, intro, subject=WELCOME_SUBJECT),
                retries=self.cfg.dispatch_retries,
            )
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                f"Error sending welcome email to {recipient.email}",
                level=logging.ERROR,
                event="welcome_dispatch_failed",
                recipient_id=recipient.id,
                error=str(exc),
            )
            return False
        log_event(logger, "Welcome email sent", event="welcome_sent", recipient_id=recipient.id)
        return True

    async def _run_phase(
        self,
        phase: JobState,
        jobs: list[DigestJob],
        worker: Callable[[DigestJob], Awaitable[None]],
    ) -> None:
        pending = [job for job in jobs if job.state == phase]
        if not pending:
            return
        semaphore = asyncio.Semaphore(max(self.cfg.concurrency, 1))

        async def _guarded(job: DigestJob) -> None:
            async with semaphore:
                await worker(job)

        await asyncio.gather(*(_guarded(job) for job in pending))

    async def _fetch_job(self, job: DigestJob) -> None:
        recipient = job.recipient
        try:
            articles = await self._attempt(job, lambda: self._fetch_news(recipient), self.cfg.fetch_retries)
        except Exception as exc:  # noqa: BLE001
            self._skip(job, exc, "Error fetching news for recipient", "fetch_failed")
            return
        job.articles = articles
        job.state = JobState.SUMMARIZING

    async def _summarize_job(self, job: DigestJob) -> None:
        recipient = job.recipient
        if not job.articles:
            job.skip("no articles to summarize")
            log_event(
                logger,
                f"No news available for recipient {recipient.id}",
                event="summary_skipped",
                recipient_id=recipient.id,
            )
            return
        try:
            summary = await self._attempt(
                job,
                lambda: self.summarizer.summarize(job.articles, recipient.display_name or None),
                self.cfg.summarize_retries,
            )
        except Exception as exc:  # noqa: BLE001
            self._skip(job, exc, "Error summarizing news for recipient", "summarize_failed")
            return
        if not summary or not summary.strip():
            job.skip("empty summary")
            log_event(logger, "Empty summary", event="summary_skipped", recipient_id=recipient.id)
            return
        job.summary = summary
        job.state = JobState.DISPATCHING

    async def _dispatch_job(self, job: DigestJob, subject: str) -> None:
        recipient = job.recipient
        try:
            await self._attempt(
                job,
                lambda: self.dispatcher.send(recipient, job.summary or "", subject=subject),
                self.cfg.dispatch_retries,
            )
        except Exception as exc:  # noqa: BLE001
            self._skip(job, exc, "Error sending digest to recipient", "dispatch_failed")
            return
        job.sent = True
        job.state = JobState.DONE
        log_event(logger, "Digest sent", event="digest_sent", recipient_id=recipient.id)

    async def _fetch_news(self, recipient: Recipient) -> list[Article]:
        topics = await self._resolve_topics(recipient)
        return await self.aggregator.aggregate(topics)

    async def _resolve_topics(self, recipient: Recipient) -> set[str]:
        if self.topics is None:
            return set(recipient.topic_symbols)
        try:
            return set(await self.topics(recipient.id))
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                "Topic lookup failed, using recipient record",
                level=logging.WARNING,
                event="topics_failed",
                recipient_id=recipient.id,
                error=str(exc),
            )
            return set(recipient.topic_symbols)

    async def _attempt(self, job: DigestJob, call: Callable[[], Awaitable[T]], retries: int) -> T:
        """Run one phase call under the phase deadline, retrying on failure."""
        phase = job.state.value
        attempts = max(retries, 0) + 1
        last_exc: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(call(), timeout=self.cfg.phase_timeout_seconds)
            except DigestError as exc:
                last_exc = exc
            except asyncio.TimeoutError:
                last_exc = PhaseTimeoutError(phase, job.recipient.id, self.cfg.phase_timeout_seconds)
            except Exception as exc:  # noqa: BLE001
                last_exc = exc
            if attempt < attempts:
                log_event(
                    logger,
                    f"{phase} attempt {attempt} failed, retrying",
                    level=logging.DEBUG,
                    event="phase_retry",
                    recipient_id=job.recipient.id,
                    error=str(last_exc),
                )
                await asyncio.sleep(self.cfg.retry_backoff_seconds * attempt)
        assert last_exc is not None
        raise last_exc

    def _skip(self, job: DigestJob, exc: Exception, message: str, event: str) -> None:
        phase = job.state.value
        job.skip(f"{phase}: {type(exc).__name__}: {exc}")
        log_event(
            logger,
            f"{message} {job.recipient.id}",
            level=logging.WARNING,
            event=event,
            recipient_id=job.recipient.id,
            error_type=type(exc).__name__,
            error=str(exc),
        )


def _tally(jobs: list[DigestJob], result: BatchResult) -> None:
    result.summarized = sum(1 for job in jobs if job.summary)
    result.sent = sum(1 for job in jobs if job.sent)
    result.failures = {job.recipient.id: job.error for job in jobs if job.error}


@dataclass
class DigestApp:
    """A runner wired from configuration, with the resources it owns."""

    runner: DigestRunner
    source: YamlRecipientStore
    client: NewsClient

    async def aclose(self) -> None:
        await self.client.aclose()


def build_app(cfg: AppConfig, dry_run: bool = False, console: Console | None = None) -> DigestApp:
    """Wire client, aggregator, provider, dispatcher and recipient store from config."""
    setup_langfuse(cfg.langfuse)
    client = NewsClient.from_config(cfg.market_data)
    aggregator = NewsAggregator.from_config(client, cfg.news, cfg.market_data)
    provider = create_provider(cfg.provider, cfg.logging, setup_llm_logger(cfg.logging))
    if dry_run:
        dispatcher: Dispatcher = ConsoleDispatcher(console, subject_prefix=cfg.delivery.subject_prefix)
    else:
        dispatcher = create_dispatcher(cfg.delivery, console)
    source = YamlRecipientStore(cfg.recipients.path)
    runner = DigestRunner(
        aggregator,
        provider,
        dispatcher,
        topics=source.topics_for,
        cfg=cfg.batch,
        subject_prefix=cfg.delivery.subject_prefix,
    )
    return DigestApp(runner=runner, source=source, client=client)


async def run_once(cfg: AppConfig, dry_run: bool = False, console: Console | None = None) -> BatchResult:
    """On-demand trigger: one full batch over every eligible recipient."""
    app = build_app(cfg, dry_run=dry_run, console=console)
    try:
        return await app.runner.run_batch(app.source)
    finally:
        await app.aclose()
