"""
EdgeGate Backend — Session Service
==================================

What:  Creates, looks up and revokes browser sessions.
Why:   The admission pipeline needs a yes/no (plus user id) answer for every
       page request; sign-in and sign-out need to write the same table.
How:   Sessions are rows in `sessions` keyed by an opaque random token that
       travels in an HttpOnly cookie. Lookups filter out expired rows in SQL.
Who:   `get_session` is called by AdmissionMiddleware and the auth
       dependency; `create_session`/`revoke_session` by AuthService.

Lookup result:
    SessionFound(session)      valid, unexpired session
    SessionNotFound()          no cookie, unknown token, or expired
    SessionLookupFailed(error) the store raised; callers treat it like
                               NotFound but can log it separately

`get_session` never raises. It runs inside the admission middleware, outside
FastAPI dependency injection, so it opens its own AsyncSession from
`session_factory`.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional, Union

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.database import async_session_factory
from app.models.user import Session, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionInfo:
    token: str
    user_id: int
    expires: datetime


@dataclass(frozen=True)
class SessionFound:
    session: SessionInfo


@dataclass(frozen=True)
class SessionNotFound:
    pass


@dataclass(frozen=True)
class SessionLookupFailed:
    error: Exception


SessionResult = Union[SessionFound, SessionNotFound, SessionLookupFailed]


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class SessionService:
    """Session persistence. Stateless apart from the session factory."""

    def __init__(self, session_factory: async_sessionmaker = async_session_factory):
        self.session_factory = session_factory

    async def get_session(self, cookies: Mapping[str, str]) -> SessionResult:
        """
        Resolve the session cookie to a SessionResult.

        Args:
            cookies: Request cookies (request.cookies)
        """
        token = cookies.get(settings.session_cookie_name)
        if not token:
            return SessionNotFound()

        try:
            async with self.session_factory() as db:
                row = await self.find_active(db, token)
        except Exception as e:
            logger.warning("Session lookup failed: %s", e)
            return SessionLookupFailed(error=e)

        if row is None:
            return SessionNotFound()
        return SessionFound(
            session=SessionInfo(
                token=row.session_token,
                user_id=row.user_id,
                expires=_as_aware(row.expires),
            )
        )

    async def find_active(self, db: AsyncSession, token: str) -> Optional[Session]:
        now = datetime.now(timezone.utc)
        result = await db.execute(
            select(Session).where(
                Session.session_token == token,
                Session.expires > now,
            )
        )
        return result.scalar_one_or_none()

    async def create_session(
        self,
        db: AsyncSession,
        user: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Session:
        """
        Insert a new session for `user`, valid for SESSION_MAX_AGE seconds.

        The token is 32 random bytes, URL-safe encoded. Flushes but does not
        commit; the request's get_db_session dependency commits.
        """
        session = Session(
            session_token=secrets.token_urlsafe(32),
            user_id=user.id,
            expires=datetime.now(timezone.utc) + timedelta(seconds=settings.session_max_age),
            ip_address=ip_address,
            user_agent=(user_agent or "")[:512] or None,
        )
        db.add(session)
        await db.flush()
        logger.info("Session created for user %d", user.id)
        return session

    async def revoke_session(self, db: AsyncSession, token: str) -> bool:
        """Delete the session row. Returns True when a row was removed."""
        result = await db.execute(delete(Session).where(Session.session_token == token))
        removed = (result.rowcount or 0) > 0
        if removed:
            logger.info("Session revoked")
        return removed


# Singleton instance
session_service = SessionService()
