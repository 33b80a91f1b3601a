"""
EdgeGate Backend — User Service
===============================

What:  Read and update user profiles, with read-through caching.
Who:   Called by the /api/users routes.

Caching:
    users:all   list of every user (USER_LIST ttl)
    user:{id}   a single user (USER_SINGLE ttl)
    Updates drop users:all, user:{id} and the old/new user:email:{email} keys.

Cached values are the JSON form of UserResponse, so cache hits and misses
return identical shapes.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, ForbiddenError, NotFoundError
from app.models.user import Account, User
from app.schemas.user import UserResponse, UserUpdateRequest
from app.services.auth_service import CREDENTIAL_PROVIDER
from app.services.cache import CacheKeys, CacheTTL, invalidate_user_cache, with_cache

logger = logging.getLogger(__name__)


class UserService:

    async def list_users(self, db: AsyncSession) -> List[Dict[str, Any]]:
        async def load() -> List[Dict[str, Any]]:
            result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
            return [
                UserResponse.model_validate(u).model_dump(mode="json")
                for u in result.scalars().all()
            ]

        return await with_cache(CacheKeys.USERS_ALL, load, CacheTTL.USER_LIST)

    async def get_user(self, db: AsyncSession, user_id: int) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: No user with this id
        """
        async def load() -> Dict[str, Any]:
            user = await db.get(User, user_id)
            if user is None:
                raise NotFoundError("User", str(user_id))
            return UserResponse.model_validate(user).model_dump(mode="json")

        return await with_cache(CacheKeys.user(user_id), load, CacheTTL.USER_SINGLE)

    async def update_user(
        self,
        db: AsyncSession,
        actor_id: int,
        user_id: int,
        data: UserUpdateRequest,
    ) -> User:
        """
        Update the caller's own profile.

        A changed email is also written to the credential account so the
        user keeps signing in with the address they see.

        Raises:
            ForbiddenError: actor_id != user_id
            NotFoundError:  No such user
            ConflictError:  The new email belongs to someone else
        """
        if actor_id != user_id:
            raise ForbiddenError("You can only update your own profile")

        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))

        old_email = user.email
        if data.email is not None and data.email != user.email:
            taken = await db.execute(select(User.id).where(User.email == data.email))
            if taken.scalar_one_or_none() is not None:
                raise ConflictError("User with this email")
            user.email = data.email
            accounts = await db.execute(
                select(Account).where(
                    Account.user_id == user.id,
                    Account.provider == CREDENTIAL_PROVIDER,
                )
            )
            for account in accounts.scalars():
                account.provider_account_id = data.email

        if data.name is not None:
            user.name = data.name

        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError("User with this email")
        await db.refresh(user)

        await invalidate_user_cache(user.id, old_email)
        if user.email != old_email:
            await invalidate_user_cache(email=user.email)
        logger.info("User %d updated", user.id)
        return user


# Singleton instance
user_service = UserService()
