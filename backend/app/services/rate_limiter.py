"""
EdgeGate Backend — Rate Limiter
===============================

What:  Fixed-window request counters stored in the shared cache.
Why:   Throttles abuse-prone endpoints (sign-in, registration, password
       reset, uploads) across every worker, not just one process.
How:   Each identifier gets a JSON record `{count, firstRequestTime}` at
       `{key_prefix}:{identifier}`, written with TTL = window length.
Who:   Called by route handlers, never by the admission pipeline.
When:  Once per rate-limited request, before the handler does real work.

Algorithm: Fixed Window Counter
    1. Read the record. Missing or unparsable → fresh window starting now.
    2. If `now - firstRequestTime >= window` → fresh window starting now.
    3. If count < max_requests → increment, persist with TTL, allow.
    4. Otherwise reject WITHOUT writing (the TTL keeps counting down).

    Fixed windows allow a burst of up to 2× the limit across a boundary.
    That is acceptable for these presets.

Concurrency:
    Read-modify-write is not atomic. Two concurrent requests from the same
    identifier can both read count=N and both be allowed. The overshoot is
    bounded by the concurrency of a single client, so it is tolerated.

Failure Mode: fail-open
    No cache configured, or the cache errors → the request is allowed and
    the failure is logged. Availability wins over strict enforcement.

Presets:
    register        5 / 3600s   by IP
    login           5 / 900s    by IP
    password-reset  3 / 3600s   by email (lowercased)
    upload          5 / 60s     by user id
    download        30 / 60s    by IP
    api             300 / 60s   by IP
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.requests import Request

from app.config import settings
from app.exceptions import RateLimitExceededError
from app.services.cache import CacheClient, get_cache_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int
    window_seconds: int
    key_prefix: str


@dataclass(frozen=True)
class RateLimitResult:
    """
    Outcome of one check.

    reset_at is a Unix timestamp in seconds: start of window + window length.
    """
    allowed: bool
    current: int
    limit: int
    remaining: int
    reset_at: int


# ── Presets ───────────────────────────────────────────────────────────────
REGISTER_LIMIT = RateLimitConfig(5, 3600, "rate-limit:register")
LOGIN_LIMIT = RateLimitConfig(5, 900, "rate-limit:login")
PASSWORD_RESET_LIMIT = RateLimitConfig(3, 3600, "rate-limit:password-reset")
UPLOAD_LIMIT = RateLimitConfig(5, 60, "rate-limit:upload")
DOWNLOAD_LIMIT = RateLimitConfig(30, 60, "rate-limit:download")
API_LIMIT = RateLimitConfig(300, 60, "rate-limit:api")


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """
    Fixed-window limiter over a CacheClient.

    Args:
        cache_provider: Returns the cache to use, or None for "no cache".
                        Resolved per call so a cache configured after
                        startup (or swapped in tests) is picked up.
        clock:          Milliseconds since the epoch. Tests pass a fake.
    """

    def __init__(
        self,
        cache_provider: Callable[[], Optional[CacheClient]] = get_cache_client,
        clock: Callable[[], int] = _now_ms,
    ):
        self._cache_provider = cache_provider
        self._clock = clock

    def _fail_open(self, config: RateLimitConfig, now_ms: int) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            current=0,
            limit=config.max_requests,
            remaining=config.max_requests,
            reset_at=now_ms // 1000 + config.window_seconds,
        )

    async def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        now = self._clock()
        cache = self._cache_provider()
        if cache is None:
            logger.debug("No cache configured; allowing %s:%s", config.key_prefix, identifier)
            return self._fail_open(config, now)

        key = f"{config.key_prefix}:{identifier}"
        window_ms = config.window_seconds * 1000

        try:
            count = 0
            first_request_time = now

            raw = await cache.get(key)
            if raw is not None:
                try:
                    record = json.loads(raw)
                    count = int(record.get("count") or 0)
                    first_request_time = int(record.get("firstRequestTime") or now)
                except (ValueError, TypeError, AttributeError):
                    logger.warning("Resetting unparsable rate-limit record %s", key)
                    count = 0
                    first_request_time = now

            if now - first_request_time >= window_ms:
                count = 0
                first_request_time = now

            allowed = count < config.max_requests
            if allowed:
                count += 1
                await cache.set(
                    key,
                    json.dumps({"count": count, "firstRequestTime": first_request_time}),
                    config.window_seconds,
                )
            else:
                logger.info(
                    "Rate limit hit for %s (%d/%d)", key, count, config.max_requests
                )

            return RateLimitResult(
                allowed=allowed,
                current=count,
                limit=config.max_requests,
                remaining=max(0, config.max_requests - count),
                reset_at=first_request_time // 1000 + config.window_seconds,
            )
        except Exception as e:
            logger.error("Rate limit check failed for %s, allowing: %s", key, e)
            return self._fail_open(config, now)


# Singleton instance
rate_limiter = RateLimiter()


async def check_rate_limit(identifier: str, config: RateLimitConfig) -> RateLimitResult:
    return await rate_limiter.check(identifier, config)


async def check_registration_rate_limit(ip_address: str) -> RateLimitResult:
    return await check_rate_limit(ip_address, REGISTER_LIMIT)


async def check_login_rate_limit(ip_address: str) -> RateLimitResult:
    return await check_rate_limit(ip_address, LOGIN_LIMIT)


async def check_password_reset_rate_limit(email: str) -> RateLimitResult:
    return await check_rate_limit(email.lower(), PASSWORD_RESET_LIMIT)


async def check_upload_rate_limit(user_id: str) -> RateLimitResult:
    return await check_rate_limit(str(user_id), UPLOAD_LIMIT)


async def check_download_rate_limit(ip_address: str) -> RateLimitResult:
    return await check_rate_limit(ip_address, DOWNLOAD_LIMIT)


async def check_api_rate_limit(ip_address: str) -> RateLimitResult:
    return await check_rate_limit(ip_address, API_LIMIT)


# ══════════════════════════════════════════════════════════════════════════
# Route helpers
# ══════════════════════════════════════════════════════════════════════════

def client_ip(request: Request) -> str:
    """
    Client address used as the rate-limit identifier.

    With TRUST_PROXY_HEADERS on: CF-Connecting-IP, then the first
    X-Forwarded-For hop, then the socket peer. With it off (the default)
    only the socket peer counts, since the headers are caller-controlled.
    """
    if not settings.trust_proxy_headers:
        return request.client.host if request.client else "unknown"

    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


def rate_limit_headers(result: RateLimitResult) -> dict:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }


def raise_if_limited(result: RateLimitResult) -> RateLimitResult:
    """Raise RateLimitExceededError (→ 429) for a rejected result."""
    if not result.allowed:
        retry_after = max(1, result.reset_at - int(time.time()))
        raise RateLimitExceededError(
            retry_after=retry_after,
            limit=result.limit,
            reset_at=result.reset_at,
        )
    return result


async def enforce_rate_limit(identifier: str, config: RateLimitConfig) -> RateLimitResult:
    """Check and raise in one step. Returns the allowed result."""
    return raise_if_limited(await check_rate_limit(identifier, config))
