"""FastAPI dependency: get_current_user_id.

Usage in any protected router:
    from src.ua_gateway.auth.dependencies import get_current_user_id

    @router.get("/protected")
    async def protected(user_id: int = Depends(get_current_user_id)):
        ...
"""

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import settings
from src.ua_common.context import CURRENT_USER_ID
from src.ua_common.errors import InvalidTokenError
from src.ua_common.redis_log import log_meta
from src.ua_gateway.auth.jwt_handler import verify_token

logger = logging.getLogger(__name__)

# auto_error=False so a missing header gets the same 401 body as a bad token
bearer_scheme = HTTPBearer(auto_error=False)

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> int:
    """Verify the Bearer token and return the authenticated user id.

    Raises HTTP 401 if the token is missing, invalid, expired, or its subject
    could not be normalized to a user id.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _CREDENTIALS_EXCEPTION

    try:
        claims = verify_token(credentials.credentials, settings.JWT_SECRET)
    except InvalidTokenError:
        raise _CREDENTIALS_EXCEPTION from None

    if claims.subject is None:
        logger.warning("token without usable subject", extra=log_meta(email=claims.email))
        raise _CREDENTIALS_EXCEPTION

    CURRENT_USER_ID.set(claims.subject)
    return claims.subject
