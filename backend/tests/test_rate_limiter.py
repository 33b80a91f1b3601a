"""
EdgeGate Backend — Rate Limiter Tests
=====================================

What we test:
    ✅ Up to max_requests calls allowed, remaining strictly decreasing
    ✅ The next call is rejected with remaining 0 and nothing written
    ✅ The window resets once window_seconds have elapsed
    ✅ Fail-open when no cache is configured or the cache errors
    ✅ Corrupt records start a fresh window
    ✅ Record layout, TTL and reset_at
    ✅ Preset values, identifier handling and client IP resolution
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.requests import Request

from app.exceptions import RateLimitExceededError
from app.services import rate_limiter as rl
from app.services.cache import CacheClient
from app.services.rate_limiter import RateLimitConfig, RateLimiter, client_ip, raise_if_limited

CONFIG = RateLimitConfig(max_requests=3, window_seconds=60, key_prefix="rate-limit:test")
START_MS = 1_700_000_000_000


class FakeClock:

    def __init__(self, now_ms: int = START_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


class TestFixedWindow:

    @pytest.fixture(autouse=True)
    def _limiter(self, fake_redis):
        self.redis = fake_redis
        self.cache = CacheClient(fake_redis)
        self.clock = FakeClock()
        self.limiter = RateLimiter(cache_provider=lambda: self.cache, clock=self.clock)

    @pytest.mark.asyncio
    async def test_allows_up_to_limit_then_rejects(self):
        results = [await self.limiter.check("1.2.3.4", CONFIG) for _ in range(3)]

        assert [r.allowed for r in results] == [True, True, True]
        assert [r.current for r in results] == [1, 2, 3]
        assert [r.remaining for r in results] == [2, 1, 0]

        rejected = await self.limiter.check("1.2.3.4", CONFIG)
        assert rejected.allowed is False
        assert rejected.remaining == 0
        assert rejected.current == 3
        assert rejected.limit == 3

    @pytest.mark.asyncio
    async def test_rejection_does_not_write(self):
        for _ in range(3):
            await self.limiter.check("1.2.3.4", CONFIG)
        stored = self.redis.store["rate-limit:test:1.2.3.4"]

        self.clock.advance(10)
        await self.limiter.check("1.2.3.4", CONFIG)

        assert self.redis.store["rate-limit:test:1.2.3.4"] == stored

    @pytest.mark.asyncio
    async def test_window_resets_after_window_seconds(self):
        for _ in range(4):
            await self.limiter.check("1.2.3.4", CONFIG)

        self.clock.advance(CONFIG.window_seconds)
        result = await self.limiter.check("1.2.3.4", CONFIG)

        assert result.allowed is True
        assert result.current == 1
        assert result.remaining == 2

    @pytest.mark.asyncio
    async def test_still_limited_just_before_window_end(self):
        for _ in range(3):
            await self.limiter.check("1.2.3.4", CONFIG)

        self.clock.advance(CONFIG.window_seconds - 1)
        assert (await self.limiter.check("1.2.3.4", CONFIG)).allowed is False

    @pytest.mark.asyncio
    async def test_record_layout_and_ttl(self):
        result = await self.limiter.check("1.2.3.4", CONFIG)

        key = "rate-limit:test:1.2.3.4"
        assert json.loads(self.redis.store[key]) == {"count": 1, "firstRequestTime": START_MS}
        assert self.redis.ttls[key] == 60
        assert result.reset_at == START_MS // 1000 + 60

    @pytest.mark.asyncio
    async def test_window_start_is_kept_while_counting(self):
        await self.limiter.check("1.2.3.4", CONFIG)
        self.clock.advance(20)
        result = await self.limiter.check("1.2.3.4", CONFIG)

        record = json.loads(self.redis.store["rate-limit:test:1.2.3.4"])
        assert record["firstRequestTime"] == START_MS
        assert result.reset_at == START_MS // 1000 + 60

    @pytest.mark.asyncio
    async def test_identifiers_are_independent(self):
        for _ in range(3):
            await self.limiter.check("1.2.3.4", CONFIG)
        assert (await self.limiter.check("5.6.7.8", CONFIG)).allowed is True

    @pytest.mark.asyncio
    async def test_corrupt_record_starts_fresh_window(self):
        self.redis.store["rate-limit:test:1.2.3.4"] = "not json"
        result = await self.limiter.check("1.2.3.4", CONFIG)
        assert result.allowed is True
        assert result.current == 1


class TestFailOpen:

    @pytest.mark.asyncio
    async def test_no_cache_always_allows(self):
        limiter = RateLimiter(cache_provider=lambda: None, clock=FakeClock())
        for _ in range(CONFIG.max_requests + 5):
            result = await limiter.check("1.2.3.4", CONFIG)
            assert result.allowed is True
            assert result.current == 0
            assert result.remaining == CONFIG.max_requests

    @pytest.mark.asyncio
    async def test_cache_error_allows(self):
        broken = MagicMock()
        broken.get = AsyncMock(side_effect=RuntimeError("connection reset"))
        limiter = RateLimiter(cache_provider=lambda: broken, clock=FakeClock())

        result = await limiter.check("1.2.3.4", CONFIG)

        assert result.allowed is True
        assert result.reset_at == START_MS // 1000 + CONFIG.window_seconds

    @pytest.mark.asyncio
    async def test_default_limiter_fails_open_without_redis_url(self):
        # The autouse fixture leaves no cache client installed
        for _ in range(10):
            assert (await rl.check_login_rate_limit("9.9.9.9")).allowed is True


class TestPresets:

    def test_preset_values(self):
        assert rl.REGISTER_LIMIT == RateLimitConfig(5, 3600, "rate-limit:register")
        assert rl.LOGIN_LIMIT == RateLimitConfig(5, 900, "rate-limit:login")
        assert rl.PASSWORD_RESET_LIMIT == RateLimitConfig(3, 3600, "rate-limit:password-reset")
        assert rl.UPLOAD_LIMIT == RateLimitConfig(5, 60, "rate-limit:upload")
        assert rl.DOWNLOAD_LIMIT == RateLimitConfig(30, 60, "rate-limit:download")
        assert rl.API_LIMIT == RateLimitConfig(300, 60, "rate-limit:api")

    @pytest.mark.asyncio
    async def test_password_reset_keys_on_lowercased_email(self, cache, fake_redis):
        await rl.check_password_reset_rate_limit("Alice@Example.COM")
        assert "rate-limit:password-reset:alice@example.com" in fake_redis.store

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "check, key",
        [
            (rl.check_registration_rate_limit, "rate-limit:register:id-1"),
            (rl.check_upload_rate_limit, "rate-limit:upload:id-1"),
            (rl.check_download_rate_limit, "rate-limit:download:id-1"),
            (rl.check_api_rate_limit, "rate-limit:api:id-1"),
        ],
    )
    async def test_preset_functions_use_their_prefix(self, cache, fake_redis, check, key):
        result = await check("id-1")
        assert result.allowed is True
        assert key in fake_redis.store

    @pytest.mark.asyncio
    async def test_login_preset_limits_after_five(self, cache):
        results = [await rl.check_login_rate_limit("10.0.0.1") for _ in range(6)]
        assert [r.allowed for r in results] == [True] * 5 + [False]

    def test_raise_if_limited(self):
        allowed = rl.RateLimitResult(True, 1, 5, 4, 0)
        assert raise_if_limited(allowed) is allowed

        rejected = rl.RateLimitResult(False, 5, 5, 0, 4_000_000_000)
        with pytest.raises(RateLimitExceededError) as exc_info:
            raise_if_limited(rejected)
        assert exc_info.value.retry_after >= 1
        assert exc_info.value.limit == 5
        assert exc_info.value.reset_at == 4_000_000_000


def make_request(headers=None, client=("203.0.113.9", 5555)) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    })


class TestClientIpBehindProxy:

    @pytest.fixture(autouse=True)
    def _trust_proxy(self, monkeypatch):
        monkeypatch.setattr(rl.settings, "trust_proxy_headers", True)

    def test_prefers_cf_connecting_ip(self):
        request = make_request({"CF-Connecting-IP": "198.51.100.1", "X-Forwarded-For": "192.0.2.1"})
        assert client_ip(request) == "198.51.100.1"

    def test_uses_first_forwarded_hop(self):
        request = make_request({"X-Forwarded-For": "192.0.2.1, 10.0.0.1"})
        assert client_ip(request) == "192.0.2.1"

    def test_falls_back_to_peer(self):
        assert client_ip(make_request()) == "203.0.113.9"

    def test_unknown_without_peer(self):
        assert client_ip(make_request(client=None)) == "unknown"


class TestClientIpDirect:

    def test_forwarding_headers_ignored_by_default(self):
        request = make_request({"CF-Connecting-IP": "198.51.100.1", "X-Forwarded-For": "192.0.2.1"})
        assert client_ip(request) == "203.0.113.9"

    def test_unknown_without_peer(self):
        assert client_ip(make_request(client=None)) == "unknown"
