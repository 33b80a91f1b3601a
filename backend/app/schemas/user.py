"""
EdgeGate Backend — User & Auth Schemas
======================================

What:  Request/response models for registration, sign-in, sessions and
       user management.
How:   Input models normalise as they validate (emails trimmed and
       lowercased, names trimmed) so services receive canonical values.

Password rule: 8 to 128 characters.
"""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.common import PaginationMeta

# RFC 5322 style address pattern (same acceptance as the browser client)
EMAIL_REGEX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


def normalize_email(value: str) -> str:
    """Trim, lowercase and validate an email address."""
    email = value.strip().lower()
    if not email:
        raise ValueError("Email is required")
    if len(email) > 254 or not EMAIL_REGEX.match(email):
        raise ValueError("Please provide a valid email address")
    return email


def _clean_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    name = value.strip()
    if len(name) > 100:
        raise ValueError("Name is too long")
    return name or None


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class RegisterRequest(BaseModel):
    """Body of POST /api/register."""
    email: str
    password: str = Field(min_length=8, max_length=128)
    name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: Optional[str]) -> Optional[str]:
        return _clean_name(v)


class SignInRequest(BaseModel):
    """Body of POST /api/auth/sign-in/email."""
    email: str
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)


class PasswordResetRequest(BaseModel):
    """Body of POST /api/auth/password-reset."""
    email: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)


class UserUpdateRequest(BaseModel):
    """Body of PATCH /api/users/{id}. At least one field is required."""
    email: Optional[str] = None
    name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        return normalize_email(v) if v is not None else None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: Optional[str]) -> Optional[str]:
        return _clean_name(v)

    @model_validator(mode="after")
    def require_one_field(self) -> "UserUpdateRequest":
        if self.email is None and self.name is None:
            raise ValueError("At least one field must be provided for update")
        return self


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    """Public view of a user. Never includes password material."""
    id: int
    email: str
    name: Optional[str] = None
    email_verified: bool = False
    image: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    users: List[UserResponse]
    pagination: Optional[PaginationMeta] = None


class RegisterResponse(BaseModel):
    message: str = Field(default="Registration successful")
    user: UserResponse


class SessionInfoResponse(BaseModel):
    """The signed-in session as exposed to the browser (token omitted)."""
    user_id: int
    expires_at: datetime


class SessionResponse(BaseModel):
    """Body of GET /api/auth/get-session and POST /api/auth/sign-in/email."""
    session: SessionInfoResponse
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
