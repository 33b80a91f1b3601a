"""
EdgeGate Backend — Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Each test that touches the database gets a fresh SQLite file (via
       aiosqlite) with all tables created. Route tests talk to the real app
       through httpx's ASGITransport with get_db_session overridden and the
       admission pipeline's session lookup pointed at the same database.

Fixture Hierarchy:
    test_engine → test_session_factory → db_session
                                       → client (+ CSRF cookie/header preset)
                                       → auth_client (client + session cookie)
    fake_redis → cache (installed as the process-wide cache client)

The cache is disabled by default (no REDIS_URL), so rate limits fail open
unless a test installs the `cache` fixture.
"""

import os
import tempfile

# Settings are read at import time; set the environment BEFORE any app import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.mkdtemp(prefix="edgegate_test_"), "app.db"
)
os.environ["REDIS_URL"] = ""
os.environ["APP_ENV"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["CORS_ORIGINS"] = "http://localhost:3000"
os.environ["LOCALES"] = "en,fr,de,es,ja,zh"
os.environ["DEFAULT_LOCALE"] = "en"
os.environ["EXPOSE_ERROR_STACK"] = "false"
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"

import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings
from app.database import Base, engine, get_db_session
from app.main import app
from app.models.post import Post
from app.models.user import Account, Session, User
from app.services.cache import CacheClient, set_cache_client
from app.services.passwords import hash_password
from app.services.session_service import session_service

CSRF_TOKEN = "test-csrf-token"


# ══════════════════════════════════════════════════════════════════════════
# Fakes
# ══════════════════════════════════════════════════════════════════════════

class FakeRedis:
    """In-memory stand-in for the slice of redis.asyncio.Redis we use."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def ping(self):
        return True

    async def aclose(self):
        pass


# ══════════════════════════════════════════════════════════════════════════
# Cache Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def no_shared_cache():
    """No test leaks a cache client into the next one."""
    set_cache_client(None)
    yield
    set_cache_client(None)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    """Installs a CacheClient over FakeRedis as the process-wide cache."""
    client = CacheClient(fake_redis)
    set_cache_client(client)
    return client


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(test_session_factory):
    async with test_session_factory() as session:
        yield session


async def create_user(
    db: AsyncSession,
    email: str = "alice@example.com",
    password: str = "correct-horse-battery",
    name: Optional[str] = "Alice",
) -> User:
    """Insert a user with a credential account and commit."""
    user = User(email=email, name=name)
    db.add(user)
    await db.flush()
    db.add(
        Account(
            user_id=user.id,
            type="credential",
            provider="credential",
            provider_account_id=email,
            password=hash_password(password),
        )
    )
    await db.commit()
    return user


async def create_session(
    db: AsyncSession,
    user: User,
    expires_in: timedelta = timedelta(days=30),
) -> str:
    """Insert a session row for `user` and return its token."""
    token = secrets.token_urlsafe(32)
    db.add(
        Session(
            session_token=token,
            user_id=user.id,
            expires=datetime.now(timezone.utc) + expires_in,
        )
    )
    await db.commit()
    return token


async def create_post(
    db: AsyncSession, user: User, title: str = "Hello", published: bool = False
) -> Post:
    post = Post(user_id=user.id, title=title, content="Body", published=published)
    db.add(post)
    await db.commit()
    return post


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def client(test_session_factory, monkeypatch):
    """
    AsyncClient against the real app, bound to the per-test database.

    The CSRF cookie and matching header are preset, so unsafe requests pass
    the admission pipeline unless a test removes them.
    """
    async def override_get_db_session():
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    monkeypatch.setattr(session_service, "session_factory", test_session_factory)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={settings.csrf_cookie_name: CSRF_TOKEN},
        headers={settings.csrf_header_name: CSRF_TOKEN},
    ) as c:
        yield c

    app.dependency_overrides.clear()
    # /api/health uses the module engine; drop its connections with this loop
    await engine.dispose()


@pytest_asyncio.fixture
async def user(db_session):
    return await create_user(db_session)


@pytest_asyncio.fixture
async def auth_client(client, db_session, user):
    """`client` signed in as `user`."""
    token = await create_session(db_session, user)
    client.cookies.set(settings.session_cookie_name, token)
    return client
