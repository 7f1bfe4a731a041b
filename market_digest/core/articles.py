"""
Validation and formatting of provider news records.

`validate_article` is the single gate between untrusted provider payloads
and the canonical `Article` type: nothing downstream may assume any field
of a raw record is present.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
import math
import time
from typing import Any

from ..errors import ValidationError
from .types import Article, RawArticle


TOPIC_SUMMARY_CHARS = 200
GENERAL_SUMMARY_CHARS = 150


def ensure_valid_article(raw: RawArticle | Any) -> RawArticle:
    """Return the record unchanged if it carries a headline, url and id.

    Raises:
        ValidationError: Naming the first missing or empty field. Callers
            filter the record out; the error never leaves the aggregator.
    """
    if not isinstance(raw, dict):
        raise ValidationError(f"Expected a mapping, got {type(raw).__name__}", context={"field": None})
    for key in ("headline", "url"):
        value = raw.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Article is missing '{key}'", context={"field": key})
    ident = raw.get("id")
    if ident is None or isinstance(ident, bool) or not str(ident).strip():
        raise ValidationError("Article is missing 'id'", context={"field": "id"})
    return raw


def validate_article(raw: RawArticle | Any) -> bool:
    """Return True when a raw record carries a headline, url and id.

    Non-dict records and records with empty/whitespace values fail.
    """
    try:
        ensure_valid_article(raw)
    except ValidationError:
        return False
    return True


def article_key(article: Article | RawArticle) -> str:
    """Composite deduplication key: id-url-headline."""
    if isinstance(article, Article):
        return f"{article.id}-{article.url}-{article.headline}"
    return f"{_text(article.get('id'))}-{_text(article.get('url'))}-{_text(article.get('headline'))}"


def format_article(
    raw: RawArticle,
    is_topic_news: bool,
    symbol: str | None = None,
    ordinal: int = 0,
    summary_chars: int | None = None,
    now: float | None = None,
) -> Article:
    """Map a validated raw record to a canonical Article.

    Topic news is stamped with its origin symbol, which is also folded into
    the related symbols. A malformed timestamp becomes epoch 0 instead of
    failing; a timestamp in the future is clamped to `now`.

    Args:
        raw: Provider record that passed `validate_article`
        is_topic_news: Whether the record came from a per-symbol fetch
        symbol: The topic symbol that produced the record
        ordinal: Batch position at selection time
        summary_chars: Summary length cap; defaults depend on is_topic_news
        now: Current epoch seconds, for tests

    Returns:
        The formatted Article
    """
    if summary_chars is None:
        summary_chars = TOPIC_SUMMARY_CHARS if is_topic_news else GENERAL_SUMMARY_CHARS

    related = _parse_related(raw.get("related"))
    origin = None
    if is_topic_news and symbol:
        origin = symbol.strip().upper()
        related.add(origin)

    if is_topic_news:
        category = "company"
        default_source = "Company News"
    else:
        category = _text(raw.get("category")) or "general"
        default_source = "Market News"

    return Article(
        id=_text(raw.get("id")),
        headline=_text(raw.get("headline")),
        summary=_truncate(_text(raw.get("summary")), summary_chars),
        source=_text(raw.get("source")) or default_source,
        url=_text(raw.get("url")),
        published_at=coerce_timestamp(raw.get("datetime"), now=now),
        category=category,
        related_symbols=frozenset(related),
        origin_symbol=origin,
        image=_text(raw.get("image")),
        ordinal=ordinal,
    )


def coerce_timestamp(value: Any, now: float | None = None) -> int:
    """Coerce a provider timestamp to epoch seconds.

    Accepts epoch seconds, epoch milliseconds, numeric strings and ISO 8601
    strings. Anything else, including negative values, yields 0.
    """
    current = int(now if now is not None else time.time())
    seconds: float | None = None
    if isinstance(value, bool):
        seconds = None
    elif isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            seconds = float(text)
        except ValueError:
            seconds = _parse_iso(text)

    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        return 0
    # Millisecond epochs are 13 digits for any date after 2001
    if seconds > 1e12:
        seconds = seconds / 1000
    return min(int(seconds), current)


def date_window(days: int, today: date | None = None) -> tuple[str, str]:
    """Return (from, to) as YYYY-MM-DD for a window of `days` ending today."""
    end = today or datetime.now(timezone.utc).date()
    start = end - timedelta(days=max(days, 0))
    return start.isoformat(), end.isoformat()


def _parse_iso(text: str) -> float | None:
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _parse_related(value: Any) -> set[str]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = [str(v) for v in value]
    else:
        return set()
    return {item.strip().upper() for item in items if item and item.strip()}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _truncate(text: str, max_chars: int) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + "..."
