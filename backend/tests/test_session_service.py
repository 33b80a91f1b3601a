"""
EdgeGate Backend — Session Service Tests
========================================

What we test:
    ✅ No cookie / unknown token / expired token → SessionNotFound
    ✅ Live token → SessionFound with the user id
    ✅ Store failure → SessionLookupFailed (never raises)
    ✅ create_session / revoke_session round trip
    ✅ Password hashing helpers
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from app.config import settings
from app.services.passwords import hash_password, verify_password
from app.services.session_service import (
    SessionFound,
    SessionLookupFailed,
    SessionNotFound,
    SessionService,
)

from conftest import create_session, create_user


class TestGetSession:

    @pytest.fixture(autouse=True)
    def _service(self, test_session_factory):
        self.service = SessionService(session_factory=test_session_factory)

    @pytest.mark.asyncio
    async def test_no_cookie(self):
        assert isinstance(await self.service.get_session({}), SessionNotFound)

    @pytest.mark.asyncio
    async def test_unknown_token(self):
        result = await self.service.get_session({settings.session_cookie_name: "nope"})
        assert isinstance(result, SessionNotFound)

    @pytest.mark.asyncio
    async def test_live_session(self, db_session):
        user = await create_user(db_session)
        token = await create_session(db_session, user)

        result = await self.service.get_session({settings.session_cookie_name: token})

        assert isinstance(result, SessionFound)
        assert result.session.user_id == user.id
        assert result.session.token == token
        assert result.session.expires.tzinfo is not None

    @pytest.mark.asyncio
    async def test_expired_session(self, db_session):
        user = await create_user(db_session)
        token = await create_session(db_session, user, expires_in=timedelta(seconds=-5))

        result = await self.service.get_session({settings.session_cookie_name: token})

        assert isinstance(result, SessionNotFound)


@pytest.mark.asyncio
async def test_store_failure_is_reported_not_raised():
    factory = MagicMock(side_effect=ConnectionError("database unreachable"))
    service = SessionService(session_factory=factory)

    result = await service.get_session({settings.session_cookie_name: "token"})

    assert isinstance(result, SessionLookupFailed)
    assert isinstance(result.error, ConnectionError)


@pytest.mark.asyncio
async def test_create_and_revoke(db_session, test_session_factory):
    service = SessionService(session_factory=test_session_factory)
    user = await create_user(db_session)

    session = await service.create_session(db_session, user, "127.0.0.1", "pytest")
    await db_session.commit()
    cookies = {settings.session_cookie_name: session.session_token}
    assert isinstance(await service.get_session(cookies), SessionFound)

    assert await service.revoke_session(db_session, session.session_token) is True
    await db_session.commit()
    assert isinstance(await service.get_session(cookies), SessionNotFound)
    assert await service.revoke_session(db_session, session.session_token) is False


class TestPasswords:

    def test_hash_and_verify(self):
        stored = hash_password("s3cret-password")
        assert verify_password("s3cret-password", stored)
        assert not verify_password("wrong-password", stored)

    def test_hashes_are_salted(self):
        assert hash_password("same") != hash_password("same")

    @pytest.mark.parametrize("stored", ["", "no-colon", "zz:zz"])
    def test_malformed_hash_never_verifies(self, stored):
        assert verify_password("anything", stored) is False
