"""
Core data types for the market digest pipeline.

This module defines the fundamental data structures used throughout the pipeline:
- RawArticle: Provider-native news record, fields of uncertain presence
- Article: Canonical, validated article produced by the formatter
- Recipient: Read-only subscriber record owned by the recipient store
- DigestJob: Per-recipient state machine instance for one batch run
- BatchResult: Best-effort outcome report of a batch run
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


RawArticle = dict[str, Any]


@dataclass(frozen=True)
class Article:
    """A canonical market news article.

    Produced only by `format_article` from a record that passed
    `validate_article`, so headline and url are always non-empty.

    Attributes:
        id: Provider identifier of the article
        headline: Article headline
        summary: Short provider summary (may be empty)
        source: Publisher name
        url: Link to the original article
        published_at: Publication time as epoch seconds (0 when unknown)
        category: Provider category ("company" for topic news)
        related_symbols: Topic symbols the article relates to
        origin_symbol: Symbol whose topic fetch produced the article, if any
        image: Optional image URL
        ordinal: Position of the article in the batch when it was selected
    """
    id: str
    headline: str
    summary: str
    source: str
    url: str
    published_at: int
    category: str
    related_symbols: frozenset[str] = frozenset()
    origin_symbol: str | None = None
    image: str = ""
    ordinal: int = 0

    def to_prompt_dict(self) -> dict[str, Any]:
        """Return the fields sent to the summarization provider."""
        return {
            "headline": self.headline,
            "summary": self.summary,
            "source": self.source,
            "url": self.url,
            "category": self.category,
            "related": ",".join(sorted(self.related_symbols)),
        }


ArticleBatch = list[Article]


@dataclass(frozen=True)
class Recipient:
    """A digest recipient.

    Attributes:
        id: Stable recipient identifier
        email: Delivery address
        display_name: Name used in greetings
        topic_symbols: Topic symbols listed with the recipient record
    """
    id: str
    email: str
    display_name: str = ""
    topic_symbols: frozenset[str] = frozenset()


class JobState(str, Enum):
    FETCHING = "fetching"
    SUMMARIZING = "summarizing"
    DISPATCHING = "dispatching"
    DONE = "done"
    SKIPPED = "skipped"


@dataclass
class DigestJob:
    """Ephemeral per-recipient state for one batch run.

    A job moves Fetching -> Summarizing -> Dispatching -> Done, or into
    Skipped from any phase. Jobs are never persisted; a retried batch
    rebuilds them from scratch.

    Attributes:
        recipient: The recipient this job serves
        state: Current state of the job
        articles: Article batch produced by the fetch phase
        summary: Rendered summary produced by the summarize phase
        sent: Whether the dispatch phase delivered the digest
        skipped_at: Phase in which the job was skipped, if any
        error: Error description for the failed phase, if any
    """
    recipient: Recipient
    state: JobState = JobState.FETCHING
    articles: ArticleBatch = field(default_factory=list)
    summary: str | None = None
    sent: bool = False
    skipped_at: JobState | None = None
    error: str | None = None

    def skip(self, error: str | None = None) -> None:
        self.skipped_at = self.state
        self.state = JobState.SKIPPED
        self.error = error


@dataclass
class BatchResult:
    """Outcome of one batch run.

    Invariant: sent <= summarized <= attempted, and attempted always equals
    the number of recipients handed to the run.

    Attributes:
        attempted: Number of recipients the run was started for
        summarized: Recipients that produced a non-empty summary
        sent: Recipients whose digest was delivered
        failures: Recipient id -> "phase: error" for every failed job
        cancelled: Whether the run was cancelled before completing
    """
    attempted: int = 0
    summarized: int = 0
    sent: int = 0
    failures: dict[str, str] = field(default_factory=dict)
    cancelled: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "attempted": self.attempted,
            "summarized": self.summarized,
            "sent": self.sent,
            "failures": dict(self.failures),
            "cancelled": self.cancelled,
        }
