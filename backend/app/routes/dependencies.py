"""
EdgeGate Backend — Route Dependencies
=====================================

Shared FastAPI dependencies for routes that need the signed-in user.

API routes are not gated by the admission pipeline (only pages are), so any
/api route that needs a user declares `Depends(get_current_user)`.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db_session
from app.exceptions import AuthenticationError
from app.models.user import User
from app.services.auth_service import auth_service


def session_token(request: Request) -> Optional[str]:
    return request.cookies.get(settings.session_cookie_name)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Resolve the session cookie to a User.

    Raises:
        AuthenticationError: No cookie, unknown or expired session (→ 401)
    """
    found = await auth_service.current_user(db, session_token(request))
    if found is None:
        raise AuthenticationError()
    user, _ = found
    request.state.user_id = user.id
    return user
