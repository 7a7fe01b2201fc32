"""
Pydantic schemas for the /users endpoints.

Response models never declare a password field, so the stored hash can't
leak out through any route even when a full store record is passed in.
"""

from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


DEFAULT_PROFILE_PIC = (
    "https://cdn1.iconfinder.com/data/icons/ios-edge-line-12/25/User-Square-512.png"
)


def _normalize_username(v: str) -> str:
    v = v.strip().lower()
    if not v:
        raise ValueError("username must not be blank.")
    return v


# ── Request models ────────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    """Request body for POST /users/login."""

    username: str = Field(..., examples=["djshmarl"])
    password: str = Field(..., examples=["yahoo"])


class CreateUserRequest(BaseModel):
    """Request body for POST /users."""

    username: str = Field(..., min_length=1, max_length=64, examples=["djshmarl"])
    email: EmailStr = Field(..., examples=["djshmarl@example.com"])
    password: str = Field(..., min_length=1, max_length=72)
    profile_pic: Optional[str] = Field(
        None,
        description="Profile picture URL (a default icon is used if omitted).",
    )

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return _normalize_username(v)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class UpdateUserRequest(BaseModel):
    """Request body for PUT /users/{user_id}.  Every field is optional."""

    username: Optional[str] = Field(None, min_length=1, max_length=64)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=1, max_length=72)
    profile_pic: Optional[str] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _normalize_username(v)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else v.lower()


# ── Response models ───────────────────────────────────────────────────────────

class UserResponse(BaseModel):
    """A sanitized user: everything except the password hash."""

    id: str
    username: str
    email: str
    profile_pic: str = DEFAULT_PROFILE_PIC
    created_at: Optional[str] = None


class FollowSummary(BaseModel):
    id: str
    username: str
    profile_pic: str = DEFAULT_PROFILE_PIC


class UserProfileResponse(UserResponse):
    """Returned by GET /users/{user_id}: the user plus relationship sets."""

    user_songs: list[dict[str, Any]] = []
    followers: list[FollowSummary] = []
    following: list[FollowSummary] = []


class TokenStatusResponse(BaseModel):
    message: str = "token valid"
