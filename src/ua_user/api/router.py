"""Users REST API — admin-style CRUD, all endpoints require a bearer token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request, status

from src.ua_common.response import ApiResponse, success_response
from src.ua_gateway.auth.dependencies import get_current_user_id
from src.ua_user.api.dependencies import get_user_service
from src.ua_user.application.schemas import (
    PagedUsersResponse,
    RegisterRequest,
    UpdateUserRequest,
    UserResponse,
)
from src.ua_user.application.service import UserService

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(get_current_user_id)],
)

UserId = Annotated[int, Path(ge=0, description="User id")]
Service = Annotated[UserService, Depends(get_user_service)]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ApiResponse)
async def create_user(request: Request, body: RegisterRequest, service: Service) -> ApiResponse:
    user = await service.create_user(body.name, body.email, body.password)
    data = UserResponse.from_user(user)
    return success_response(data.model_dump(mode="json"), "User created", request)


@router.get("", response_model=ApiResponse)
async def list_users(
    request: Request,
    service: Service,
    # Out-of-range values are clamped by the service, not rejected here
    page: int = Query(1, description="Page number (1-based)"),
    limit: int = Query(10, description="Items per page (1-100)"),
) -> ApiResponse:
    paged = await service.list_users(page, limit)
    data = PagedUsersResponse.from_page(paged)
    return success_response(data.model_dump(mode="json"), request=request)


@router.get("/{user_id}", response_model=ApiResponse)
async def get_user(request: Request, user_id: UserId, service: Service) -> ApiResponse:
    user = await service.get_user(user_id)
    return success_response(UserResponse.from_user(user).model_dump(mode="json"), request=request)


@router.put("/{user_id}", response_model=ApiResponse)
async def update_user(
    request: Request,
    user_id: UserId,
    body: UpdateUserRequest,
    service: Service,
) -> ApiResponse:
    user = await service.update_user(
        user_id,
        name=body.name,
        email=body.email,
        password=body.password,
    )
    data = UserResponse.from_user(user)
    return success_response(data.model_dump(mode="json"), "User updated", request)


@router.delete("/{user_id}", response_model=ApiResponse)
async def delete_user(request: Request, user_id: UserId, service: Service) -> ApiResponse:
    await service.delete_user(user_id)
    return success_response(None, "User deleted", request)
