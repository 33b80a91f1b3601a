"""
EdgeGate Backend — Post Service
===============================

What:  CRUD and publish/unpublish for posts.
Why:   Owner checks, pagination and cache invalidation live here so the
       route handlers stay thin.
How:   Plain SQLAlchemy 2.0 selects. The author relationship is lazy="raise",
       so every query that returns posts to a client loads it explicitly
       with selectinload.
Who:   Called by the /api/posts routes.

Pagination:
    Offset based: page (>= 1) and limit (1..100). Newest first
    (created_at DESC, id DESC as tie-breaker).

Caching:
    Only unfiltered listings on pages 1-5 with limit 10 or 20 are cached, at
    posts:page:{page}:{limit}. That is the set invalidate_post_cache drops,
    so other page sizes and filtered listings always hit the database.
    Every write calls invalidate_post_cache.
"""

import logging
import math
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import ForbiddenError, NotFoundError
from app.models.post import Post
from app.schemas.post import PostCreateRequest, PostResponse, PostUpdateRequest
from app.services.cache import (
    CACHED_POST_LIMITS,
    CACHED_POST_PAGES,
    CacheKeys,
    CacheTTL,
    invalidate_post_cache,
    with_cache,
)

logger = logging.getLogger(__name__)


class PostService:
    """
    Business logic for posts.

    Ownership:
        Only the author may update, delete, publish or unpublish a post.
        Anyone signed in may read.
    """

    async def list_posts(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        published: Optional[bool] = None,
        user_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        async def load() -> Dict[str, Any]:
            conditions = []
            if published is not None:
                conditions.append(Post.published == published)
            if user_id is not None:
                conditions.append(Post.user_id == user_id)

            total = (
                await db.execute(select(func.count(Post.id)).where(*conditions))
            ).scalar_one()

            result = await db.execute(
                select(Post)
                .options(selectinload(Post.author))
                .where(*conditions)
                .order_by(Post.created_at.desc(), Post.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            posts = result.scalars().all()
            return {
                "posts": [
                    PostResponse.model_validate(p).model_dump(mode="json") for p in posts
                ],
                "pagination": {
                    "page": page,
                    "limit": limit,
                    "total": total,
                    "total_pages": math.ceil(total / limit) if total else 0,
                },
            }

        cacheable = (
            published is None
            and user_id is None
            and page in CACHED_POST_PAGES
            and limit in CACHED_POST_LIMITS
        )
        if cacheable:
            return await with_cache(CacheKeys.posts_page(page, limit), load, CacheTTL.POSTS_LIST)
        return await load()

    async def _load(self, db: AsyncSession, post_id: int, reload: bool = False) -> Post:
        stmt = select(Post).options(selectinload(Post.author)).where(Post.id == post_id)
        if reload:
            # Overwrite identity-map state (onupdate columns, unloaded author)
            stmt = stmt.execution_options(populate_existing=True)
        result = await db.execute(stmt)
        post = result.scalar_one_or_none()
        if post is None:
            raise NotFoundError("Post", str(post_id))
        return post

    async def _load_owned(self, db: AsyncSession, post_id: int, actor_id: int) -> Post:
        post = await self._load(db, post_id)
        if post.user_id != actor_id:
            raise ForbiddenError("You can only modify your own posts")
        return post

    async def get_post(self, db: AsyncSession, post_id: int) -> Dict[str, Any]:
        async def load() -> Dict[str, Any]:
            post = await self._load(db, post_id)
            return PostResponse.model_validate(post).model_dump(mode="json")

        return await with_cache(CacheKeys.post(post_id), load, CacheTTL.POST_SINGLE)

    async def create_post(self, db: AsyncSession, actor_id: int, data: PostCreateRequest) -> Post:
        post = Post(
            user_id=actor_id,
            title=data.title,
            content=data.content,
            published=data.published,
        )
        db.add(post)
        await db.flush()
        await invalidate_post_cache(user_id=actor_id)
        logger.info("Post %d created by user %d", post.id, actor_id)
        return await self._load(db, post.id, reload=True)

    async def update_post(
        self, db: AsyncSession, actor_id: int, post_id: int, data: PostUpdateRequest
    ) -> Post:
        post = await self._load_owned(db, post_id, actor_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            # title and published are NOT NULL; an explicit null leaves them as is
            if field in ("title", "published") and value is None:
                continue
            setattr(post, field, value)
        await db.flush()
        await invalidate_post_cache(post.id, post.user_id)
        return await self._load(db, post.id, reload=True)

    async def delete_post(self, db: AsyncSession, actor_id: int, post_id: int) -> None:
        post = await self._load_owned(db, post_id, actor_id)
        await db.delete(post)
        await db.flush()
        await invalidate_post_cache(post_id, actor_id)
        logger.info("Post %d deleted by user %d", post_id, actor_id)

    async def set_published(
        self, db: AsyncSession, actor_id: int, post_id: int, published: bool
    ) -> Post:
        """Publish (True) or unpublish (False) an owned post."""
        post = await self._load_owned(db, post_id, actor_id)
        post.published = published
        await db.flush()
        await invalidate_post_cache(post.id, post.user_id)
        return await self._load(db, post.id, reload=True)


# Singleton instance
post_service = PostService()
