"""
EdgeGate Backend — User Route Handlers
======================================

Routes (all require a session):
    GET   /api/users          every user, newest first (cached users:all)
    GET   /api/users/me       the signed-in user
    GET   /api/users/{id}     one user (cached user:{id})
    PATCH /api/users/{id}     update own profile; 403 for anyone else
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.models.user import User
from app.routes.dependencies import get_current_user
from app.schemas.common import ErrorResponse
from app.schemas.user import UserListResponse, UserResponse, UserUpdateRequest
from app.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("", response_model=UserListResponse, summary="List users")
async def list_users(
    db: AsyncSession = Depends(get_db_session),
    _user: User = Depends(get_current_user),
) -> Dict[str, List[Any]]:
    return {"users": await user_service.list_users(db)}


@router.get("/me", response_model=UserResponse, summary="The signed-in user")
async def get_me(user: User = Depends(get_current_user)) -> User:
    return user


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Get a user",
)
async def get_user(
    user_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
    _user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return await user_service.get_user(db, user_id)


@router.patch(
    "/{user_id}",
    response_model=UserResponse,
    responses={
        403: {"description": "Not your profile", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Update your own profile",
)
async def update_user(
    body: UserUpdateRequest,
    user_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
) -> User:
    return await user_service.update_user(db, user.id, user_id, body)
