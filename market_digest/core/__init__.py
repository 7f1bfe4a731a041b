"""
Core domain models and business logic.

This package contains data types and pure functions that are
independent of any upstream provider or delivery channel.
"""

from .types import Article, ArticleBatch, BatchResult, DigestJob, JobState, RawArticle, Recipient
from .articles import article_key, date_window, ensure_valid_article, format_article, validate_article
from .dedup import dedupe_articles

__all__ = [
    "Article",
    "ArticleBatch",
    "BatchResult",
    "DigestJob",
    "JobState",
    "RawArticle",
    "Recipient",
    "article_key",
    "date_window",
    "format_article",
    "ensure_valid_article",
    "validate_article",
    "dedupe_articles",
]
