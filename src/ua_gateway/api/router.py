"""Auth API router: register, login (public) and /me (bearer).

All endpoints return ApiResponse. request_id is read from request.state
(injected by RequestLogMiddleware).
"""

from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from config.settings import settings
from src.ua_common.response import ApiResponse, success_response
from src.ua_gateway.auth.dependencies import get_current_user_id
from src.ua_user.api.dependencies import get_user_service
from src.ua_user.application.schemas import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    UserResponse,
)
from src.ua_user.application.service import UserService

router = APIRouter(tags=["auth"])


@router.post(
    "/auth/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse,
    summary="User registration",
)
async def register(
    request: Request,
    body: RegisterRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse:
    user = await service.register(body.name, body.email, body.password)
    data = UserResponse.from_user(user)
    return success_response(
        data.model_dump(mode="json"), "User registered successfully", request
    )


@router.post(
    "/auth/login",
    status_code=status.HTTP_200_OK,
    response_model=ApiResponse,
    summary="User login",
)
async def login(
    request: Request,
    body: LoginRequest,
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse:
    ttl = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    token = await service.login(body.email, body.password, settings.JWT_SECRET, ttl)

    data = AuthResponse(token=token, expires_in=int(ttl.total_seconds()))
    return success_response(data.model_dump(), "Login successful", request)


@router.get(
    "/me",
    response_model=ApiResponse,
    summary="Current user",
)
async def me(
    request: Request,
    user_id: Annotated[int, Depends(get_current_user_id)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> ApiResponse:
    user = await service.get_by_id(user_id)
    return success_response(UserResponse.from_user(user).model_dump(mode="json"), request=request)
