"""Market-data fetching with explicit cache policies."""

from .cache import FRESH, CachePolicy, ResponseCache
from .client import NewsClient

__all__ = ["CachePolicy", "FRESH", "ResponseCache", "NewsClient"]
