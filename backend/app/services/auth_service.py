"""
EdgeGate Backend — Auth Service
===============================

What:  Email/password registration, sign-in, sign-out and password reset
       requests.
Why:   Keeps credential handling (hashing, account rows, session creation)
       out of the route handlers.
How:   Registration writes a `users` row plus a 'credential' `accounts` row
       holding the password hash. Sign-in verifies that hash and creates a
       `sessions` row through SessionService.
Who:   Called by the /api/register and /api/auth/* routes.

Error Strategy:
    - Email already registered → ConflictError (409)
    - Unknown email or wrong password → AuthenticationError (401) with the
      same message either way, so sign-in does not reveal which emails exist
    - Database failures → DatabaseError (500), details logged only
"""

import logging
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import AuthenticationError, ConflictError, DatabaseError
from app.models.user import Account, Session, User
from app.services.cache import invalidate_user_cache
from app.services.passwords import hash_password, verify_password
from app.services.session_service import session_service

logger = logging.getLogger(__name__)

CREDENTIAL_PROVIDER = "credential"
INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """Credential and session workflows."""

    async def register(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        name: Optional[str] = None,
    ) -> User:
        """
        Create a user with a credential account.

        `email` must already be normalised (trimmed, lowercased). When no
        name is given, the local part of the email is used.

        Raises:
            ConflictError: The email is already registered
            DatabaseError: Insert failed for another reason
        """
        existing = await db.execute(select(User.id).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("User with this email")

        password_hash = hash_password(password)
        user = User(email=email, name=name or email.split("@")[0])

        try:
            db.add(user)
            await db.flush()
            db.add(
                Account(
                    user_id=user.id,
                    type=CREDENTIAL_PROVIDER,
                    provider=CREDENTIAL_PROVIDER,
                    provider_account_id=email,
                    password=password_hash,
                )
            )
            await db.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent registration of the same email
            logger.info("Registration conflict for %s: %s", email, e.orig)
            raise ConflictError("User with this email")
        except SQLAlchemyError as e:
            logger.error("Failed to register %s: %s", email, e)
            raise DatabaseError(context={"operation": "register"})

        await invalidate_user_cache()
        logger.info("User %d registered", user.id)
        return user

    async def sign_in(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[User, Session]:
        """
        Verify the credential and open a session.

        Raises:
            AuthenticationError: Unknown email or wrong password
        """
        result = await db.execute(
            select(Account, User)
            .join(User, Account.user_id == User.id)
            .where(
                Account.provider == CREDENTIAL_PROVIDER,
                Account.provider_account_id == email,
            )
        )
        row = result.first()
        if row is None:
            raise AuthenticationError(INVALID_CREDENTIALS)

        account, user = row
        if not account.password or not verify_password(password, account.password):
            logger.info("Failed sign-in for user %d", user.id)
            raise AuthenticationError(INVALID_CREDENTIALS)

        session = await session_service.create_session(
            db, user, ip_address=ip_address, user_agent=user_agent
        )
        return user, session

    async def sign_out(self, db: AsyncSession, token: Optional[str]) -> None:
        if token:
            await session_service.revoke_session(db, token)

    async def current_user(self, db: AsyncSession, token: Optional[str]) -> Optional[Tuple[User, Session]]:
        """Return (user, session) for a live session token, else None."""
        if not token:
            return None
        session = await session_service.find_active(db, token)
        if session is None:
            return None
        user = await db.get(User, session.user_id)
        if user is None:
            return None
        return user, session

    async def request_password_reset(self, db: AsyncSession, email: str) -> None:
        """
        Record a password reset request.

        Mail delivery is outside this service; the request is logged when
        the email belongs to a credential account and silently ignored
        otherwise, so the caller's response never reveals account existence.
        """
        result = await db.execute(
            select(Account.user_id).where(
                Account.provider == CREDENTIAL_PROVIDER,
                Account.provider_account_id == email,
            )
        )
        user_id = result.scalar_one_or_none()
        if user_id is not None:
            logger.info("Password reset requested for user %d", user_id)


# Singleton instance
auth_service = AuthService()
