"""
EdgeGate Backend — Cache Client (KV Store)
==========================================

What:  Thin async wrapper around Redis plus a read-through caching helper.
Why:   The rate limiter and the user/post read paths share one key-value
       store. Both must keep working (degraded) when the store is down.
How:   CacheClient wraps a `redis.asyncio.Redis` connection. Every call logs
       and swallows backend errors: `get` answers None, `set`/`delete` become
       no-ops. `get_cache_client()` answers None when REDIS_URL is unset, and
       callers treat None as "no cache".
Who:   Used by the rate limiter, UserService and PostService.
When:  The client is created lazily on first use and closed on shutdown.

Key Layout:
    users:all                        user list                 USER_LIST
    user:{id}                        single user               USER_SINGLE
    user:email:{email}               user by email             USER_SINGLE
    posts:all                        unfiltered post list      POSTS_LIST
    posts:page:{page}:{limit}        one page of posts         POSTS_LIST
    posts:user:{id}                  a user's posts            POSTS_LIST
    post:{id}                        single post               POST_SINGLE
    rate-limit:{preset}:{identifier} fixed-window counter      window length

Values are JSON text. Redis is opened with decode_responses=True so `get`
returns str.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.config import settings

logger = logging.getLogger(__name__)


class CacheTTL:
    """Cache lifetimes in seconds."""
    SHORT = 30
    MEDIUM = 60
    LONG = 300
    EXTENDED = 3600

    USER_LIST = 60
    USER_SINGLE = 300
    POSTS_LIST = 120
    POST_SINGLE = 300


# Post list pages that get cached. Invalidation drops exactly this set.
CACHED_POST_PAGES = range(1, 6)
CACHED_POST_LIMITS = (10, 20)


class CacheKeys:
    """Key builders. Keep every key format in one place."""

    USERS_ALL = "users:all"
    POSTS_ALL = "posts:all"

    @staticmethod
    def user(user_id: int) -> str:
        return f"user:{user_id}"

    @staticmethod
    def user_by_email(email: str) -> str:
        return f"user:email:{email}"

    @staticmethod
    def posts_page(page: int, limit: int) -> str:
        return f"posts:page:{page}:{limit}"

    @staticmethod
    def posts_by_user(user_id: int) -> str:
        return f"posts:user:{user_id}"

    @staticmethod
    def post(post_id: int) -> str:
        return f"post:{post_id}"


class CacheClient:
    """
    Fail-soft facade over a Redis connection.

    The wrapped object only needs `get`, `set(key, value, ex=...)`, `delete`
    and `aclose`, so tests can pass any object with that surface.
    """

    def __init__(self, redis: Any):
        self._redis = redis

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._redis.get(key)
        except (RedisError, OSError) as e:
            logger.error("Cache GET failed for %s: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            if ttl:
                await self._redis.set(key, value, ex=ttl)
            else:
                await self._redis.set(key, value)
        except (RedisError, OSError) as e:
            logger.error("Cache SET failed for %s: %s", key, e)

    # Alias kept for callers that think in put/get pairs
    put = set

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self._redis.delete(*keys)
        except (RedisError, OSError) as e:
            logger.error("Cache DELETE failed for %s: %s", ", ".join(keys), e)

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except (RedisError, OSError) as e:
            logger.warning("Cache PING failed: %s", e)
            return False

    async def close(self) -> None:
        await self._redis.aclose()


# ══════════════════════════════════════════════════════════════════════════
# Process-wide client
# ══════════════════════════════════════════════════════════════════════════

_cache_client: Optional[CacheClient] = None


def get_cache_client() -> Optional[CacheClient]:
    """
    Return the shared cache client, creating it on first call.

    Returns None when REDIS_URL is not configured. Creating the client does
    not open a connection; redis-py connects on the first command.
    """
    global _cache_client
    if _cache_client is None and settings.redis_url:
        _cache_client = CacheClient(
            aioredis.from_url(settings.redis_url, decode_responses=True)
        )
        logger.info("Cache client created for %s", settings.redis_url.split("@")[-1])
    return _cache_client


def set_cache_client(client: Optional[CacheClient]) -> None:
    """Replace the shared client (tests install a fake one here)."""
    global _cache_client
    _cache_client = client


async def close_cache_client() -> None:
    global _cache_client
    if _cache_client is not None:
        await _cache_client.close()
        _cache_client = None


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

async def with_cache(
    key: str,
    fn: Callable[[], Awaitable[Any]],
    ttl: int = CacheTTL.MEDIUM,
) -> Any:
    """
    Read-through cache for JSON-serialisable values.

    1. Cache hit with valid JSON → return it
    2. Corrupt entry → delete it, fall through
    3. Miss (or no cache) → await fn(), store the result, return it

    `fn` must return something json.dumps accepts; callers convert ORM rows
    with `model_dump(mode="json")` first.
    """
    cache = get_cache_client()
    if cache is None:
        return await fn()

    cached = await cache.get(key)
    if cached is not None:
        try:
            return json.loads(cached)
        except ValueError:
            logger.warning("Discarding corrupt cache entry %s", key)
            await cache.delete(key)

    data = await fn()
    await cache.set(key, json.dumps(data), ttl)
    return data


async def invalidate_cache_keys(keys: Iterable[str]) -> None:
    cache = get_cache_client()
    if cache is None:
        return
    await cache.delete(*list(keys))


async def invalidate_user_cache(user_id: Optional[int] = None, email: Optional[str] = None) -> None:
    keys = [CacheKeys.USERS_ALL]
    if user_id is not None:
        keys.append(CacheKeys.user(user_id))
    if email:
        keys.append(CacheKeys.user_by_email(email))
    await invalidate_cache_keys(keys)


async def invalidate_post_cache(post_id: Optional[int] = None, user_id: Optional[int] = None) -> None:
    """
    Drop cached post lists (and the single post when given).

    List pages are only cached for CACHED_POST_PAGES x CACHED_POST_LIMITS,
    so those are the list keys dropped.
    """
    keys = [CacheKeys.POSTS_ALL]
    if post_id is not None:
        keys.append(CacheKeys.post(post_id))
    if user_id is not None:
        keys.append(CacheKeys.posts_by_user(user_id))
    for page in CACHED_POST_PAGES:
        for limit in CACHED_POST_LIMITS:
            keys.append(CacheKeys.posts_page(page, limit))
    await invalidate_cache_keys(keys)
