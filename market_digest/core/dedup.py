"""
Article deduplication using the composite id-url-headline key.

Unlike fuzzy title matching, the composite key only collapses records the
provider itself reports more than once, so the filter is idempotent.
"""

from __future__ import annotations

from collections.abc import Iterable

from .articles import article_key
from .types import Article


def dedupe_articles(articles: Iterable[Article]) -> list[Article]:
    """Remove duplicate articles from a sequence.

    Order-preserving: the first occurrence of each key is kept.

    Args:
        articles: Articles to deduplicate

    Returns:
        Deduplicated list of articles, preserving original order
    """
    seen: set[str] = set()
    kept: list[Article] = []
    for article in articles:
        key = article_key(article)
        if key in seen:
            continue
        seen.add(key)
        kept.append(article)
    return kept
