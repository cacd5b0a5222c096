"""
Cache Client.

Lazy redis.asyncio client shared by the CRM services, plus the
FastAPI dependency that hands it to request handlers.

Key conventions:
    client:{client_id}                       - cached client payloads
    contacts:{client_id}                     - cached contact lists
    tags:{organization_id}:*                 - tag listings and statistics
    statistics:{organization_id}:{op}:{...}  - statistics results
"""

import json
from collections.abc import Iterable
from typing import Annotated, Any

import redis.asyncio as redis
from fastapi import Depends

from crm.backend.core.logging import get_logger

logger = get_logger(__name__)

_client: redis.Redis | None = None


def get_cache_client() -> redis.Redis:
    """Get the Redis client, creating it on first use."""
    global _client
    if _client is None:
        from crm.backend.core.config import get_redis_url

        _client = redis.from_url(get_redis_url(), decode_responses=True)
        logger.debug("Redis client created")
    return _client


async def close_cache_client() -> None:
    """Close the Redis client on shutdown, if one was created."""
    global _client
    if _client is not None:
        await _client.aclose()
        logger.info("Redis client closed")
    _client = None


async def get_redis() -> redis.Redis:
    """Dependency that provides the shared Redis client."""
    return get_cache_client()


Cache = Annotated[redis.Redis, Depends(get_redis)]


def client_cache_key(client_id: str) -> str:
    return f"client:{client_id}"


def contacts_cache_key(client_id: str) -> str:
    return f"contacts:{client_id}"


def tags_cache_pattern(organization_id: str) -> str:
    return f"tags:{organization_id}:*"


def statistics_cache_key(
    prefix: str,
    organization_id: str,
    operation: str,
    params: dict[str, Any] | None = None,
) -> str:
    """
    Build a deterministic statistics key.

    Parameters are sorted by name and None values dropped, so the same
    logical query always maps to the same key.
    """
    parts = [
        f"{key}:{value}"
        for key, value in sorted((params or {}).items())
        if value is not None
    ]
    suffix = ":".join(parts)
    key = f"{prefix}:{organization_id}:{operation}"
    return f"{key}:{suffix}" if suffix else key


async def get_json(cache: redis.Redis, key: str) -> Any | None:
    """Read a JSON value from the cache, None on miss."""
    raw = await cache.get(key)
    if raw is None:
        return None
    return json.loads(raw)


async def set_json(cache: redis.Redis, key: str, value: Any, ttl_seconds: int) -> None:
    """Store a JSON-serializable value with a TTL."""
    await cache.set(key, json.dumps(value, default=str), ex=ttl_seconds)


async def delete_keys(cache: redis.Redis, keys: Iterable[str]) -> int:
    """Delete the given keys. Returns number of keys removed."""
    keys = list(keys)
    if not keys:
        return 0
    return await cache.delete(*keys)


async def delete_pattern(cache: redis.Redis, pattern: str) -> int:
    """Delete every key matching a glob pattern. Returns number of keys removed."""
    keys = await cache.keys(pattern)
    if not keys:
        return 0
    return await cache.delete(*keys)
