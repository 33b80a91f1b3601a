"""
EdgeGate Backend — Post Schemas
===============================

What:  Request/response models for the /api/posts routes.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.common import PaginationMeta


class PostAuthor(BaseModel):
    id: int
    email: str
    name: Optional[str] = None

    model_config = {"from_attributes": True}


class PostResponse(BaseModel):
    id: int
    user_id: int
    title: str
    content: Optional[str] = None
    published: bool
    created_at: datetime
    updated_at: datetime
    author: Optional[PostAuthor] = None

    model_config = {"from_attributes": True}


class PostListResponse(BaseModel):
    posts: List[PostResponse]
    pagination: PaginationMeta


class PostCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, max_length=50_000)
    published: bool = False

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        title = v.strip()
        if not title:
            raise ValueError("Title cannot be empty")
        return title


class PostUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, max_length=50_000)
    published: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        title = v.strip()
        if not title:
            raise ValueError("Title cannot be empty")
        return title

    @model_validator(mode="after")
    def require_one_field(self) -> "PostUpdateRequest":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self
