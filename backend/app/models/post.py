"""
EdgeGate Backend — Post Model
=============================

What:  ORM model representing the `posts` table.
Who:   Used by PostService for CRUD operations and by Alembic.

Query Patterns:
    - Paginated feed: WHERE published = :flag ORDER BY created_at DESC
      → idx_posts_published_created_at
    - A user's posts: WHERE user_id = :id ORDER BY created_at DESC
      → idx_posts_user_id_created_at
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.user import User, utcnow


class Post(Base):
    """A post written by a user. Drafts have published=False."""

    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    # Author is loaded explicitly (selectinload) only where a route needs it
    author: Mapped[User] = relationship(lazy="raise")

    __table_args__ = (
        Index("idx_posts_user_id_created_at", "user_id", "created_at"),
        Index("idx_posts_published_created_at", "published", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Post(id={self.id}, user_id={self.user_id}, published={self.published})>"
