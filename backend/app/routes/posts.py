"""
EdgeGate Backend — Post Route Handlers
======================================

What:  CRUD plus publish/unpublish for posts.
How:   Thin handlers; ownership checks and cache invalidation are in
       PostService.

Routes (all require a session):
    GET    /api/posts                    ?page&limit&published&userId
    GET    /api/posts/{id}
    POST   /api/posts                    201, api preset rate limit by user id
    PATCH  /api/posts/{id}               owner only
    DELETE /api/posts/{id}               204, owner only
    POST   /api/posts/{id}/publish       owner only
    POST   /api/posts/{id}/unpublish     owner only
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.models.post import Post
from app.models.user import User
from app.routes.dependencies import get_current_user
from app.schemas.common import ErrorResponse
from app.schemas.post import (
    PostCreateRequest,
    PostListResponse,
    PostResponse,
    PostUpdateRequest,
)
from app.services.post_service import post_service
from app.services.rate_limiter import API_LIMIT, enforce_rate_limit, rate_limit_headers

router = APIRouter(prefix="/api/posts", tags=["Posts"])

_OWNER_ERRORS = {
    403: {"description": "Not the author", "model": ErrorResponse},
    404: {"description": "Post not found", "model": ErrorResponse},
}


@router.get("", response_model=PostListResponse, summary="List posts")
async def list_posts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    published: Optional[bool] = Query(default=None),
    user_id: Optional[int] = Query(default=None, alias="userId", ge=1),
    db: AsyncSession = Depends(get_db_session),
    _user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return await post_service.list_posts(
        db, page=page, limit=limit, published=published, user_id=user_id
    )


@router.get(
    "/{post_id}",
    response_model=PostResponse,
    responses={404: {"description": "Post not found", "model": ErrorResponse}},
    summary="Get a post",
)
async def get_post(
    post_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
    _user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return await post_service.get_post(db, post_id)


@router.post(
    "",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
    responses={429: {"description": "Too many posts", "model": ErrorResponse}},
    summary="Create a post",
)
async def create_post(
    body: PostCreateRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
) -> Post:
    limit = await enforce_rate_limit(str(user.id), API_LIMIT)
    response.headers.update(rate_limit_headers(limit))
    return await post_service.create_post(db, user.id, body)


@router.patch("/{post_id}", response_model=PostResponse, responses=_OWNER_ERRORS, summary="Update a post")
async def update_post(
    body: PostUpdateRequest,
    post_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
) -> Post:
    return await post_service.update_post(db, user.id, post_id, body)


@router.delete(
    "/{post_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_OWNER_ERRORS,
    summary="Delete a post",
)
async def delete_post(
    post_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
) -> Response:
    await post_service.delete_post(db, user.id, post_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/publish", response_model=PostResponse, responses=_OWNER_ERRORS, summary="Publish a post")
async def publish_post(
    post_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
) -> Post:
    return await post_service.set_published(db, user.id, post_id, True)


@router.post("/{post_id}/unpublish", response_model=PostResponse, responses=_OWNER_ERRORS, summary="Unpublish a post")
async def unpublish_post(
    post_id: int = Path(ge=1),
    db: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
) -> Post:
    return await post_service.set_published(db, user.id, post_id, False)
