"""
EdgeGate Backend — Auth Route Handlers
======================================

What:  Registration, email/password sign-in, sign-out, session read and
       password reset requests.
Who:   Called by the browser client's login and register pages.

Routes:
    POST /api/register                201  (rate limit: register preset, by IP)
    POST /api/auth/sign-in/email      200  (rate limit: login preset, by IP)
    POST /api/auth/sign-out           200
    GET  /api/auth/get-session        200  (null when signed out)
    POST /api/auth/password-reset     202  (rate limit: password-reset preset, by email)

All of these sit under API_PUBLIC prefixes, so they work without a session.
Unsafe methods still need the CSRF header (checked by the admission
pipeline before the handler runs).

Session cookie:
    HttpOnly, SameSite=Lax, Path=/, Max-Age=SESSION_MAX_AGE,
    Secure when APP_ENV=production.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db_session
from app.routes.dependencies import session_token
from app.schemas.common import ErrorResponse
from app.schemas.user import (
    MessageResponse,
    PasswordResetRequest,
    RegisterRequest,
    RegisterResponse,
    SessionInfoResponse,
    SessionResponse,
    SignInRequest,
    UserResponse,
)
from app.services.auth_service import auth_service
from app.services.rate_limiter import (
    LOGIN_LIMIT,
    PASSWORD_RESET_LIMIT,
    REGISTER_LIMIT,
    client_ip,
    enforce_rate_limit,
    rate_limit_headers,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])

PASSWORD_RESET_MESSAGE = (
    "If an account exists for this email, password reset instructions have been sent."
)


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_max_age,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"description": "Email already registered", "model": ErrorResponse},
        429: {"description": "Too many registrations", "model": ErrorResponse},
    },
    summary="Register with email and password",
)
async def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> RegisterResponse:
    limit = await enforce_rate_limit(client_ip(request), REGISTER_LIMIT)
    response.headers.update(rate_limit_headers(limit))

    user = await auth_service.register(db, body.email, body.password, body.name)
    return RegisterResponse(user=UserResponse.model_validate(user))


@router.post(
    "/auth/sign-in/email",
    response_model=SessionResponse,
    responses={
        401: {"description": "Invalid email or password", "model": ErrorResponse},
        429: {"description": "Too many attempts", "model": ErrorResponse},
    },
    summary="Sign in with email and password",
)
async def sign_in(
    body: SignInRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> SessionResponse:
    limit = await enforce_rate_limit(client_ip(request), LOGIN_LIMIT)
    response.headers.update(rate_limit_headers(limit))

    user, session = await auth_service.sign_in(
        db,
        body.email,
        body.password,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    _set_session_cookie(response, session.session_token)
    return SessionResponse(
        session=SessionInfoResponse(user_id=user.id, expires_at=session.expires),
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/auth/sign-out",
    response_model=MessageResponse,
    summary="Sign out and revoke the current session",
)
async def sign_out(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.sign_out(db, session_token(request))
    response.delete_cookie(
        settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return MessageResponse(message="Signed out")


@router.get(
    "/auth/get-session",
    response_model=Optional[SessionResponse],
    summary="Current session, or null when signed out",
)
async def get_session(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Optional[SessionResponse]:
    found = await auth_service.current_user(db, session_token(request))
    if found is None:
        return None
    user, session = found
    return SessionResponse(
        session=SessionInfoResponse(user_id=user.id, expires_at=session.expires),
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/auth/password-reset",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={429: {"description": "Too many reset requests", "model": ErrorResponse}},
    summary="Request a password reset email",
    description="Always answers 202 with the same message, whether or not the email is registered.",
)
async def request_password_reset(
    body: PasswordResetRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await enforce_rate_limit(body.email, PASSWORD_RESET_LIMIT)
    await auth_service.request_password_reset(db, body.email)
    return MessageResponse(message=PASSWORD_RESET_MESSAGE)
