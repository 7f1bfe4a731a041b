"""
Market Digest - personalized market news digests.

This package aggregates market news for a population of recipients and
produces a personalized, AI-summarized digest for each of them:

1. Round-robin, quota-bounded aggregation of topic news per recipient
2. Summarization through a pluggable LLM provider
3. Dispatch through a pluggable delivery channel (SMTP by default)

Main entry point is the CLI via `market-digest run` command.

Example:
    $ market-digest run -c config.yaml
"""

__all__ = ["__version__", "NewsAggregator", "DigestRunner", "BatchResult", "Article", "Recipient"]
__version__ = "0.1.0"

from .aggregator import NewsAggregator
from .core.types import Article, BatchResult, Recipient
from .runner import DigestRunner
