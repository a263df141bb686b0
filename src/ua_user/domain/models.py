"""Domain models for ua_user — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    name: str
    email: str
    password_hash: str | None = field(default=None, repr=False)  # never serialized outward
    id: int | None = None  # assigned by the store on insert
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class PagedUsers:
    items: list[User]
    total: int
    page: int
    limit: int
