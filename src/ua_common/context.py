"""Request-scoped context keys.

CURRENT_USER_ID is set by the bearer-token dependency once a token has been
verified and carries the authenticated user id for the rest of that request
(log records pick it up via ContextFilter). It is a typed key, never a
mutable global: each request runs in its own context copy.
"""

from contextvars import ContextVar
from typing import Final

APP_VERSION: Final = "1.0.0"

CURRENT_USER_ID: Final[ContextVar[int | None]] = ContextVar("current_user_id", default=None)
