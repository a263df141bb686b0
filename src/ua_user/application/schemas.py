"""Pydantic request/response schemas for the user API, plus the cache entry shape.

All responses are wrapped in ApiResponse at the router layer.

Serialization shapes:
  UserResponse    — outward API shape. Never contains the password hash.
  UserCacheEntry  — what is stored under "user:<id>". Same public fields as
                    UserResponse; the hash is never cached. Timestamps are
                    ISO-8601 strings, null only if the store never set them.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from src.ua_user.domain.models import PagedUsers, User

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Used by both POST /auth/register and POST /users."""

    name: str = Field(..., min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UpdateUserRequest(BaseModel):
    """Partial update: omitted (None) fields keep their stored value."""

    name: str | None = Field(None, min_length=2, max_length=120)
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=6, max_length=128)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id or 0,
            name=user.name,
            email=user.email,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthResponse(BaseModel):
    token: str
    token_type: str = "Bearer"
    expires_in: int  # seconds


class PagedUsersResponse(BaseModel):
    items: list[UserResponse]
    total: int
    page: int
    limit: int

    @classmethod
    def from_page(cls, paged: PagedUsers) -> "PagedUsersResponse":
        return cls(
            items=[UserResponse.from_user(u) for u in paged.items],
            total=paged.total,
            page=paged.page,
            limit=paged.limit,
        )


# ---------------------------------------------------------------------------
# Cache entry
# ---------------------------------------------------------------------------


class UserCacheEntry(UserResponse):
    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str) -> "UserCacheEntry":
        """Raises pydantic.ValidationError on malformed or foreign payloads."""
        return cls.model_validate_json(raw)

    def to_user(self) -> User:
        return User(
            id=self.id,
            name=self.name,
            email=self.email,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
