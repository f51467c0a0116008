"""OAuth token persistence and refresh policy.

Access tokens for OAuth platforms are short-lived. Before each call the token
is refreshed if it expires within `REFRESH_BUFFER_SECONDS`; if the platform
still rejects it, the token is refreshed once more and the call retried once.
A second rejection is a plain PlatformRequestError.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from typing import Any, Protocol, TypeVar

from app.services.errors import PlatformRequestError, TokenExpiredError
from app.stores.redis import get_oauth_tokens, set_oauth_tokens

logger = logging.getLogger("uvicorn.error")

REFRESH_BUFFER_SECONDS = 300

T = TypeVar("T")


@dataclass
class OAuthTokens:
    access_token: str
    refresh_token: str
    expires_at: float  # unix seconds
    account_id: str | None = None

    def expires_soon(self, now: float, buffer: float = REFRESH_BUFFER_SECONDS) -> bool:
        return now >= self.expires_at - buffer

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OAuthTokens":
        return cls(
            access_token=str(data.get("access_token") or ""),
            refresh_token=str(data.get("refresh_token") or ""),
            expires_at=float(data.get("expires_at") or 0),
            account_id=str(data["account_id"]) if data.get("account_id") else None,
        )


class TokenStore(Protocol):
    async def load(self) -> OAuthTokens | None: ...

    async def save(self, tokens: OAuthTokens) -> None: ...


class MemoryTokenStore:
    """Process-local token store (tests, single-shot scripts)."""

    def __init__(self, tokens: OAuthTokens | None = None):
        self.tokens = tokens

    async def load(self) -> OAuthTokens | None:
        return self.tokens

    async def save(self, tokens: OAuthTokens) -> None:
        self.tokens = tokens


class RedisTokenStore:
    """Tokens persisted in Redis so they survive restarts."""

    def __init__(self, provider: str):
        self.provider = provider
        self._cached: OAuthTokens | None = None

    async def load(self) -> OAuthTokens | None:
        if self._cached is not None:
            return self._cached
        try:
            payload = await get_oauth_tokens(self.provider)
        except Exception as e:
            logger.warning(f"Redis token read failed for {self.provider}: {e}")
            return None
        if payload:
            self._cached = OAuthTokens.from_dict(payload)
        return self._cached

    async def save(self, tokens: OAuthTokens) -> None:
        self._cached = tokens
        try:
            await set_oauth_tokens(self.provider, tokens.to_dict())
        except Exception as e:
            logger.warning(f"Redis token write failed for {self.provider}, keeping tokens in memory: {e}")
            return
        logger.info(f"OAuth tokens saved for {self.provider} (account={tokens.account_id})")


async def call_with_token_refresh(
    call: Callable[[OAuthTokens], Awaitable[T]],
    store: TokenStore,
    refresh: Callable[[OAuthTokens], Awaitable[OAuthTokens]],
    clock: Callable[[], float] = time.time,
) -> T:
    """Run `call` with a valid access token.

    Raises:
        PlatformRequestError: not authenticated, refresh failed, or the token
            was rejected again after one refresh.
    """
    tokens = await store.load()
    if tokens is None or not tokens.access_token:
        raise PlatformRequestError("Not authenticated. Complete the OAuth flow first.", status_code=401)

    if tokens.expires_soon(clock()):
        logger.info("Access token expiring soon, refreshing")
        tokens = await refresh(tokens)
        await store.save(tokens)

    try:
        return await call(tokens)
    except TokenExpiredError:
        logger.warning("Access token rejected, refreshing and retrying once")

    tokens = await refresh(tokens)
    await store.save(tokens)
    try:
        return await call(tokens)
    except TokenExpiredError as e:
        raise PlatformRequestError(f"Access token rejected after refresh: {e}", status_code=401) from e
