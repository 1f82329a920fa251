"""
Admin routes - user directory, account management and dashboard stats.

Every route requires a bearer token with the admin role. Mutations go
through AuthService, which refuses to demote, deactivate or delete the
root administrator.
"""

from fastapi import APIRouter, Depends, Query, status

from station_auth.api.dependencies import get_admin_directory, get_auth_service, require_admin
from station_auth.api.models import (
    AdminCreateUserRequest,
    AdminUpdateUserRequest,
    Envelope,
    ErrorResponse,
    ProfileResponse,
    StatsResponse,
    UserDetailResponse,
    UserPageResponse,
    UserResponse,
)
from station_auth.domain.auth import AuthService
from station_auth.domain.directory import DEFAULT_LIMIT, AdminDirectory
from station_auth.domain.exceptions import NotFoundError

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
    responses={
        401: {"model": ErrorResponse, "description": "Missing or invalid token"},
        403: {"model": ErrorResponse, "description": "Admin role required"},
    },
)


@router.get("/users", response_model=UserPageResponse, summary="List and search users")
def list_users(
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT),
    search: str | None = Query(None, description="Substring of email or display name"),
    directory: AdminDirectory = Depends(get_admin_directory),
) -> UserPageResponse:
    result = directory.list_users(page=page, limit=limit, search=search)
    return UserPageResponse(
        data=[UserResponse.from_user(user) for user in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.get(
    "/users/{user_id}",
    response_model=Envelope[UserDetailResponse],
    responses={404: {"model": ErrorResponse}},
    summary="Get a user with profile",
)
def get_user(
    user_id: int,
    directory: AdminDirectory = Depends(get_admin_directory),
) -> Envelope[UserDetailResponse]:
    user, profile = directory.get_user(user_id)
    return Envelope(
        data=UserDetailResponse(
            user=UserResponse.from_user(user),
            profile=ProfileResponse.from_profile(profile) if profile is not None else None,
        )
    )


@router.post(
    "/users",
    response_model=Envelope[UserResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
    summary="Create a user with a given role",
)
def create_user(
    request_data: AdminCreateUserRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[UserResponse]:
    user = service.create_user(
        request_data.email,
        request_data.password,
        request_data.display_name,
        request_data.role,
    )
    return Envelope(message="User created", data=UserResponse.from_user(user))


@router.patch(
    "/users/{user_id}",
    response_model=Envelope[UserResponse],
    responses={
        400: {"model": ErrorResponse, "description": "Validation error or protected account"},
        404: {"model": ErrorResponse},
    },
    summary="Update a user's profile fields, role or activation",
)
def update_user(
    user_id: int,
    request_data: AdminUpdateUserRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[UserResponse]:
    """
    Guarded changes (role, activation) are applied before profile fields,
    so a refused change on the root administrator writes nothing.
    Unchanged role or activation values are skipped.
    """
    user = service.get_user_by_id(user_id)
    if user is None:
        raise NotFoundError("user not found")

    if request_data.role is not None and request_data.role != user.role:
        user = service.update_user_role(user_id, request_data.role)

    if request_data.is_active is not None and request_data.is_active != user.is_active:
        user = service.set_active(user_id, request_data.is_active)

    fields = request_data.model_dump(exclude_unset=True, include={"display_name", "bio", "avatar"})
    if fields:
        user = service.update_user(user_id, fields)

    return Envelope(message="User updated", data=UserResponse.from_user(user))


@router.delete(
    "/users/{user_id}",
    response_model=Envelope[None],
    responses={
        400: {"model": ErrorResponse, "description": "Protected account"},
        404: {"model": ErrorResponse},
    },
    summary="Delete a user",
)
def delete_user(
    user_id: int,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[None]:
    service.delete_user(user_id)
    return Envelope(message="User deleted")


@router.get("/stats", response_model=Envelope[StatsResponse], summary="Dashboard counts")
def stats(directory: AdminDirectory = Depends(get_admin_directory)) -> Envelope[StatsResponse]:
    return Envelope(data=StatsResponse.from_stats(directory.get_stats()))
