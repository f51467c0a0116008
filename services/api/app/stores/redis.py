"""Redis store for webhook dedup markers and OAuth tokens.

Handles:
- Caching with TTL policies
- SET NX markers (skip duplicate webhook deliveries)
- Token persistence for OAuth platforms

TTL policies:
- Webhook delivery markers: 24 hours (configurable)
- OAuth tokens: no TTL (refresh token outlives the access token)
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

from app.settings import get_settings

# TTL constants (in seconds)
TTL_WEBHOOK_DELIVERY = 86400  # 24 hours

# Key prefixes
PREFIX_WEBHOOK_DELIVERY = "webhook:delivery:"
PREFIX_OAUTH_TOKENS = "oauth:tokens:"

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    _redis = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    # Validate connectivity early (especially for `rediss://` in production).
    await _redis.ping()
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def _get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


# ============================================================
# Generic cache operations
# ============================================================


async def cache_get(key: str) -> str | None:
    """Get value from cache.

    Args:
        key: Cache key.

    Returns:
        Cached value or None if not found.
    """
    return await _get_redis().get(key)


async def cache_set(key: str, value: str, ttl: int | None = None) -> None:
    """Set value in cache, with TTL when given.

    Args:
        key: Cache key.
        value: Value to cache.
        ttl: Time-to-live in seconds, or None to keep forever.
    """
    if ttl is None:
        await _get_redis().set(key, value)
    else:
        await _get_redis().setex(key, ttl, value)


async def cache_get_json(key: str) -> dict[str, Any] | None:
    """Get JSON value from cache.

    Args:
        key: Cache key.

    Returns:
        Parsed JSON dict or None if not found.
    """
    value = await cache_get(key)
    if value:
        return json.loads(value)
    return None


async def cache_set_json(key: str, value: dict[str, Any], ttl: int | None = None) -> None:
    """Set JSON value in cache.

    Args:
        key: Cache key.
        value: Dict to cache as JSON.
        ttl: Time-to-live in seconds, or None to keep forever.
    """
    await cache_set(key, json.dumps(value), ttl)


# ============================================================
# Webhook delivery dedup
# ============================================================


async def mark_webhook_delivery(delivery_id: str, ttl: int = TTL_WEBHOOK_DELIVERY) -> bool:
    """Record a webhook delivery id.

    Args:
        delivery_id: Platform-assigned delivery id (e.g. X-Shopify-Webhook-Id).
        ttl: How long to remember the delivery, in seconds.

    Returns:
        True if this is the first time we see the delivery, False if it was
        already recorded.
    """
    key = f"{PREFIX_WEBHOOK_DELIVERY}{delivery_id}"
    # SET NX (only if not exists) with TTL
    result = await _get_redis().set(key, "1", nx=True, ex=ttl)
    return result is not None


# ============================================================
# OAuth tokens
# ============================================================


async def get_oauth_tokens(provider: str) -> dict[str, Any] | None:
    """Get persisted OAuth token payload for a provider."""
    return await cache_get_json(f"{PREFIX_OAUTH_TOKENS}{provider}")


async def set_oauth_tokens(provider: str, payload: dict[str, Any]) -> None:
    """Persist OAuth token payload for a provider (no TTL)."""
    await cache_set_json(f"{PREFIX_OAUTH_TOKENS}{provider}", payload)
