"""FastAPI dependency: get_user_service.

The service is built once in the app lifespan (shared session factory +
Redis pool) and parked on app.state. Tests override this dependency.
"""

from fastapi import Request

from src.ua_common.errors import InternalError
from src.ua_user.application.service import UserService


def get_user_service(request: Request) -> UserService:
    service: UserService | None = getattr(request.app.state, "user_service", None)
    if service is None:
        raise InternalError("User service is not initialized")
    return service
