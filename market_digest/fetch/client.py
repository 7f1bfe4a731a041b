"""
HTTP client for the market-data news provider.

The client issues one request per call and never retries: retry and skip
decisions belong to the aggregator and the batch runner. Any non-success
response surfaces as `UpstreamError`, a missed deadline as
`FetchTimeoutError`.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import MarketDataConfig, get_market_data_key
from ..core.types import RawArticle
from ..errors import ConfigError, FetchTimeoutError, UpstreamError
from ..utils.logging import log_event, redact_secrets
from .cache import FRESH, CachePolicy, ResponseCache


COMPANY_NEWS_ENDPOINT = "company-news"
GENERAL_NEWS_ENDPOINT = "news"

logger = logging.getLogger(__name__)


class NewsClient:
    """Async client for the topic-news and general-news endpoints.

    Base URL and credential are constructor parameters so tests can point
    the client at a mock transport.

    Attributes:
        base_url: Provider API base URL
        timeout_seconds: Deadline applied to every request
        max_items: Responses are truncated to this many records
        cache: Response cache consulted for cacheable policies
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        max_items: int = 100,
        trust_env: bool = True,
        cache: ResponseCache | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not api_key:
            raise ConfigError("Missing market-data API key")
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_items = max_items
        self.trust_env = trust_env
        self.cache = cache if cache is not None else ResponseCache()
        self._api_key = api_key
        self._client = http_client
        self._owns_client = http_client is None

    @classmethod
    def from_config(cls, cfg: MarketDataConfig, http_client: httpx.AsyncClient | None = None) -> NewsClient:
        return cls(
            base_url=cfg.base_url,
            api_key=get_market_data_key(cfg) or "",
            timeout_seconds=cfg.timeout_seconds,
            max_items=cfg.max_response_items,
            trust_env=cfg.trust_env,
            http_client=http_client,
        )

    async def __aenter__(self) -> NewsClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds, trust_env=self.trust_env)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def fetch(
        self,
        endpoint: str,
        params: dict[str, Any],
        policy: CachePolicy = FRESH,
    ) -> list[RawArticle]:
        """Fetch a list of raw records from a provider endpoint.

        Args:
            endpoint: Endpoint path relative to the base URL
            params: Query parameters, without the credential
            policy: Whether a cached response may be reused

        Returns:
            Raw records, at most `max_items` of them

        Raises:
            UpstreamError: Non-success status, transport failure or non-list payload
            FetchTimeoutError: The request exceeded `timeout_seconds`
        """
        key = ResponseCache.make_key(endpoint, params)
        cached = self.cache.get(key, policy)
        if cached is not None:
            log_event(logger, "Provider cache hit", level=logging.DEBUG, event="cache_hit", endpoint=endpoint)
            return list(cached)

        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        query = dict(params)
        query["token"] = self._api_key

        try:
            resp = await self._get_client().get(url, params=query, timeout=self.timeout_seconds)
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(endpoint, self.timeout_seconds) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(None, endpoint, detail=redact_secrets(f"{type(exc).__name__}: {exc}")) from exc

        if not resp.is_success:
            raise UpstreamError(resp.status_code, endpoint)

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError(resp.status_code, endpoint, detail="invalid JSON body") from exc

        if not isinstance(data, list):
            raise UpstreamError(resp.status_code, endpoint, detail="expected a JSON array")

        records = data[: self.max_items]
        self.cache.put(key, records, policy)
        return list(records)

    async def company_news(self, symbol: str, date_from: str, date_to: str) -> list[RawArticle]:
        """Topic news for one symbol. Always fresh: topic news is time-sensitive."""
        params = {"symbol": symbol, "from": date_from, "to": date_to}
        return await self.fetch(COMPANY_NEWS_ENDPOINT, params, FRESH)

    async def general_news(self, category: str = "general", ttl_seconds: float = 300) -> list[RawArticle]:
        """General market feed. Not recipient-specific, so it may be cached."""
        policy = CachePolicy.cacheable(ttl_seconds) if ttl_seconds > 0 else FRESH
        return await self.fetch(GENERAL_NEWS_ENDPOINT, {"category": category}, policy)
