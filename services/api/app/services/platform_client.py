"""Base HTTP client for commerce platform APIs.

Shared behaviour:
- One lazily created httpx.AsyncClient with an explicit timeout
- 429 responses retried after Retry-After (bounded, exponential fallback)
- Soft throttle once the platform's call bucket is nearly full
- 401 surfaces as TokenExpiredError so OAuth clients can refresh
- `iter_all(kind)` walks every page up to a page cap

Platform specifics (URLs, pagination tokens, rate-limit headers, envelopes)
live in the subclasses.
"""

import asyncio
import logging
import math
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from app.services.errors import PlatformRequestError, RateLimitedError, TokenExpiredError
from app.services.records import EntityKind

logger = logging.getLogger("uvicorn.error")

# Start slowing down once this share of the call bucket is used
SLOWDOWN_THRESHOLD = 0.8
SLOWDOWN_DELAY_SECONDS = 1.0
MAX_RETRY_AFTER_SECONDS = 60.0


@dataclass
class Page:
    """One page of raw platform entities."""

    items: list[dict[str, Any]] = field(default_factory=list)
    next_token: str | None = None


@dataclass
class RateLimitStatus:
    """Leaky-bucket usage reported by the platform (e.g. "32/40")."""

    used: float
    limit: float

    @property
    def ratio(self) -> float:
        if self.limit <= 0:
            return 0.0
        return self.used / self.limit

    @classmethod
    def parse(cls, value: str | None) -> "RateLimitStatus | None":
        if not value or "/" not in value:
            return None
        used, _, limit = value.partition("/")
        try:
            return cls(used=float(used), limit=float(limit))
        except ValueError:
            return None


def _retry_after_seconds(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    if math.isnan(seconds):
        return None
    return min(max(seconds, 0.0), MAX_RETRY_AFTER_SECONDS)


class wait_retry_after(wait_base):
    """Wait what the platform asked for in Retry-After, else defer to `fallback`."""

    def __init__(self, fallback: wait_base):
        self.fallback = fallback

    def __call__(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
            return exc.retry_after
        return self.fallback(retry_state)


class PlatformClient:
    """Common transport for platform clients."""

    name = "platform"
    rate_limit_header = ""
    supports_oauth = False

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        page_size: int = 250,
        max_pages: int = 200,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.page_size = page_size
        self.max_pages = max_pages
        self.rate_limit: RateLimitStatus | None = None
        self._transport = transport
        self._sleep = sleep
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=self._default_headers(),
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _default_headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    # =========================================================================
    # Transport
    # =========================================================================

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request, retrying 429s and mapping failures to PlatformRequestError."""
        client = await self._get_client()
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_retry_after(fallback=wait_exponential(max=MAX_RETRY_AFTER_SECONDS)),
            retry=retry_if_exception_type(RateLimitedError),
            before_sleep=self._log_rate_limited,
            sleep=self._sleep,
        )
        response = await retrying(
            self._attempt, client, method, url, params=params, json=json, data=data, headers=headers
        )
        await self._throttle()
        return response

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise PlatformRequestError(f"{self.name} {method} {url} failed: {e}") from e

        self._observe_rate_limit(response)

        if response.status_code == 429:
            raise RateLimitedError(
                f"{self.name} {method} {url} rate limited",
                retry_after=_retry_after_seconds(response),
            )
        if response.status_code == 401:
            raise TokenExpiredError(f"{self.name} rejected credentials for {method} {url}", status_code=401)
        if response.status_code >= 400:
            raise PlatformRequestError(
                f"{self.name} {method} {url} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    def _log_rate_limited(self, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"{retry_state.outcome.exception()}, retry {retry_state.attempt_number}/{self.max_retries} in {delay:.1f}s"
        )

    def _observe_rate_limit(self, response: httpx.Response) -> None:
        if self.rate_limit_header:
            status = RateLimitStatus.parse(response.headers.get(self.rate_limit_header))
            if status is not None:
                self.rate_limit = status

    async def _throttle(self) -> None:
        if self.rate_limit and self.rate_limit.ratio >= SLOWDOWN_THRESHOLD:
            logger.info(
                f"{self.name} call bucket at {self.rate_limit.used:g}/{self.rate_limit.limit:g}, slowing down"
            )
            await self._sleep(SLOWDOWN_DELAY_SECONDS)

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise PlatformRequestError(f"Invalid JSON from platform: {e}", status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise PlatformRequestError("Unexpected response envelope", status_code=response.status_code)
        return data

    # =========================================================================
    # Entity operations (implemented per platform)
    # =========================================================================

    async def fetch_page(self, kind: EntityKind, token: str | None = None) -> Page:
        raise NotImplementedError

    async def get_by_id(self, kind: EntityKind, external_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    async def create(self, kind: EntityKind, fields: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    async def update(self, kind: EntityKind, external_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    async def list_webhooks(self) -> list[dict[str, Any]]:
        raise NotImplementedError

    async def register_webhooks(self, address: str, topics: list[str]) -> list[dict[str, Any]]:
        raise NotImplementedError

    async def delete_webhook(self, webhook_id: str) -> None:
        raise NotImplementedError

    async def test_connection(self) -> dict[str, Any]:
        raise NotImplementedError

    async def iter_all(self, kind: EntityKind) -> AsyncIterator[dict[str, Any]]:
        """Yield every entity of `kind`, fetching pages lazily.

        Raises:
            PlatformRequestError: a page could not be fetched.
        """
        token: str | None = None
        for page_number in range(1, self.max_pages + 1):
            page = await self.fetch_page(kind, token)
            logger.info(f"{self.name} {kind.value} page {page_number}: {len(page.items)} items")
            for item in page.items:
                yield item
            if not page.next_token or not page.items:
                return
            token = page.next_token
        logger.warning(f"{self.name} {kind.value}: stopped after {self.max_pages} pages (page cap)")
