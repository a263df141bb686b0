"""JWT token issuing and verification.

HS256 (symmetric HMAC) with a shared secret. Tokens are stateless: validity is
signature + expiry only, nothing is persisted and there is no revocation.

Claims:
    sub  user id as a decimal string
    iat  issued-at (unix seconds)
    exp  expiration (unix seconds)
    eml  email
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from jose.exceptions import JOSEError

from config.settings import settings
from src.ua_common.errors import InvalidTokenError, TokenSigningError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"


@dataclass(frozen=True)
class TokenClaims:
    subject: int | None
    email: str | None
    issued_at: datetime | None
    expires_at: datetime


def issue_token(user_id: int, email: str, secret: str, ttl: timedelta) -> str:
    """Sign a token for `user_id` that expires `ttl` from now."""
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + ttl,
        "eml": email,
    }
    try:
        return str(jwt.encode(payload, secret, algorithm=_ALGORITHM))
    except JOSEError as exc:  # jws wraps key errors in JWSError, not JWTError
        raise TokenSigningError() from exc


def verify_token(token: str, secret: str) -> TokenClaims:
    """Decode and validate a token.

    Raises:
        InvalidTokenError: bad signature, expired, no `exp`, or malformed claims.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            secret,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
            # sub is normalized below; other issuers may send it as a number
            options={"verify_sub": False, "require_exp": True},
        )
    except JWTError:
        raise InvalidTokenError() from None

    if not isinstance(payload, dict):
        raise InvalidTokenError()

    try:
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
        iat = payload.get("iat")
        issued_at = datetime.fromtimestamp(int(iat), tz=UTC) if iat is not None else None
    except (KeyError, TypeError, ValueError, OverflowError):
        raise InvalidTokenError() from None

    email = payload.get("eml")
    return TokenClaims(
        subject=normalize_subject(payload.get("sub")),
        email=email if isinstance(email, str) else None,
        issued_at=issued_at,
        expires_at=expires_at,
    )


def normalize_subject(sub: object) -> int | None:
    """Coerce a numeric or decimal-string subject to a user id; None if neither."""
    if isinstance(sub, bool):
        return None
    if isinstance(sub, int):
        return sub if sub >= 0 else None
    if isinstance(sub, float):
        return int(sub) if sub.is_integer() and sub >= 0 else None
    if isinstance(sub, str) and sub.isdecimal():
        return int(sub)
    return None
