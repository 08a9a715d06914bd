"""HTTP utilities for fetching archive pages."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Mapping, Sequence
from urllib.parse import urlsplit

import httpx

from .config import CrawlConfig, RetryConfig, USER_AGENT_POOL
from .rate_limit import RateLimiter, SleepFunc

LOGGER = logging.getLogger(__name__)

_ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"


class HttpFetchError(RuntimeError):
    """Raised when an HTTP request fails irrecoverably."""


class HeaderPolicy:
    """Selects the request identity (headers) for each call."""

    def __init__(self, headers: Mapping[str, str]) -> None:
        self._headers = dict(headers)

    def headers_for(self, url: str) -> dict[str, str]:
        return dict(self._headers)


class RotatingHeaderPolicy(HeaderPolicy):
    """Rotate user agents per request and send browser-like companion headers."""

    def __init__(
        self,
        user_agents: Sequence[str] = USER_AGENT_POOL,
        *,
        accept_language: str = "ko-KR,ko;q=0.9",
        rng: random.Random | None = None,
    ) -> None:
        if not user_agents:
            raise ValueError("User agent pool must not be empty")
        super().__init__({})
        self._user_agents = tuple(user_agents)
        self._accept_language = accept_language
        self._rng = rng or random.Random()

    def headers_for(self, url: str) -> dict[str, str]:
        parts = urlsplit(url)
        return {
            "User-Agent": self._rng.choice(self._user_agents),
            "Accept": _ACCEPT_HTML,
            "Accept-Language": self._accept_language,
            "Referer": f"{parts.scheme}://{parts.hostname}/",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
            "DNT": "1",
        }


class HttpFetcher:
    """Async HTTP client that retries every failure before giving up."""

    def __init__(
        self,
        retry: RetryConfig,
        *,
        headers: HeaderPolicy | None = None,
        rate_limiter: RateLimiter | None = None,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self._retry = retry
        self._headers = headers or HeaderPolicy({})
        self._rate_limiter = rate_limiter or RateLimiter.disabled()
        self._timeout = timeout
        self._transport = transport
        self._client = client or self._build_client()
        self._owns_client = client is None
        self._sleep = sleep or asyncio.sleep
        self.request_count = 0

    @classmethod
    def for_crawl(cls, config: CrawlConfig, **kwargs) -> "HttpFetcher":
        """Fetcher for the primary crawl: fixed identity, constant backoff."""

        kwargs.setdefault(
            "rate_limiter",
            RateLimiter(config.rate_limit.delay, config.rate_limit.jitter),
        )
        return cls(
            config.retry,
            headers=HeaderPolicy({"User-Agent": config.user_agent}),
            timeout=config.timeout.request_timeout,
            **kwargs,
        )

    @classmethod
    def for_enrichment(cls, config: CrawlConfig, **kwargs) -> "HttpFetcher":
        """Fetcher for the enrichment pass: rotating identity, linear backoff."""

        return cls(
            config.enrichment.retry,
            headers=RotatingHeaderPolicy(accept_language=config.enrichment.accept_language),
            timeout=config.timeout.request_timeout,
            **kwargs,
        )

    def _build_client(self) -> httpx.AsyncClient:
        kwargs: dict[str, object] = {
            "timeout": self._timeout,
            "follow_redirects": True,
        }
        if self._transport:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    async def _get_once(self, url: str) -> tuple[str, httpx.Response]:
        await self._rate_limiter.wait()
        self.request_count += 1
        try:
            response = await self._client.get(url, headers=self._headers.headers_for(url))
        except httpx.HTTPError as exc:
            raise HttpFetchError(f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise HttpFetchError(f"Unexpected status {response.status_code} for {url}")

        content_type = response.headers.get("content-type", "")
        if "html" not in content_type:
            raise HttpFetchError(f"Unsupported content type '{content_type}' for {url}")
        return response.text, response

    async def fetch_html(self, url: str) -> tuple[str, httpx.Response]:
        attempts = max(1, self._retry.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return await self._get_once(url)
            except HttpFetchError as exc:
                if attempt >= attempts:
                    raise HttpFetchError(
                        f"Exhausted {attempts} attempts for {url}: {exc}"
                    ) from exc
                delay = self._retry.delay_for(attempt)
                LOGGER.warning(
                    "Attempt %d/%d failed for %s: %s; retrying in %.1fs",
                    attempt,
                    attempts,
                    url,
                    exc,
                    delay,
                )
                await self._sleep(delay)

        raise HttpFetchError(f"Exhausted retries while fetching {url}")  # pragma: no cover

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, *_exc_info) -> None:
        await self.aclose()
