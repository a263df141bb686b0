"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    """Raised for unknown email AND wrong password — never distinguish the two."""

    def __init__(self) -> None:
        super().__init__(1003, "Invalid email or password", 401)


class InvalidTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Token is invalid or expired", 401)


class UserNotFoundError(AppError):
    def __init__(self, user_id: int) -> None:
        super().__init__(1006, f"User not found: {user_id}", 404)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class HashingError(AppError):
    def __init__(self) -> None:
        super().__init__(9003, "Password hashing failed", 500)


class TokenSigningError(AppError):
    def __init__(self) -> None:
        super().__init__(9004, "Token signing failed", 500)


class PersistenceError(AppError):
    """Wraps an underlying store failure; the original is chained as __cause__."""

    def __init__(self, detail: str) -> None:
        super().__init__(9005, f"Persistence failure: {detail}", 500)
