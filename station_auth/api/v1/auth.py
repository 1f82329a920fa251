"""
Auth routes - account registration, login and self-service profile.

Handlers are plain ``def`` functions so FastAPI runs them, and the bcrypt
work inside them, on its worker thread pool rather than the event loop.
"""

from fastapi import APIRouter, Depends, status

from station_auth.api.dependencies import get_auth_service, get_current_claims
from station_auth.api.models import (
    Envelope,
    ErrorResponse,
    IdentityResponse,
    LoginRequest,
    PasswordResetRequest,
    ProfileResponse,
    RegisterRequest,
    UpdateContactRequest,
    UpdateProfileRequest,
    UserDetailResponse,
    UserResponse,
)
from station_auth.domain.auth import AuthService
from station_auth.domain.exceptions import NotFoundError
from station_auth.domain.ports import Claims, UserProfile

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=Envelope[IdentityResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Validation error"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
    summary="Register a new listener account",
)
def register(
    request_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[IdentityResponse]:
    """
    Create an account and return it with a signed token.

    - **email**: Valid email address (case-insensitive, stored lowercase)
    - **password**: 6-72 characters
    - **displayName**: Public display name
    """
    identity = service.register(request_data.email, request_data.password, request_data.display_name)
    return Envelope(message="User registered", data=IdentityResponse.from_identity(identity))


@router.post(
    "/login",
    response_model=Envelope[IdentityResponse],
    responses={
        400: {"model": ErrorResponse, "description": "Validation error"},
        401: {"model": ErrorResponse, "description": "Invalid email or password"},
    },
    summary="Log in with email and password",
)
def login(
    request_data: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[IdentityResponse]:
    """Unknown email, deactivated account and wrong password all return the same 401."""
    identity = service.login(request_data.email, request_data.password)
    return Envelope(message="Logged in", data=IdentityResponse.from_identity(identity))


@router.post(
    "/logout",
    response_model=Envelope[None],
    responses={401: {"model": ErrorResponse}},
    summary="Log out",
)
def logout(claims: Claims = Depends(get_current_claims)) -> Envelope[None]:
    # Tokens are stateless; the client discards its copy.
    return Envelope(message="Logged out")


@router.get(
    "/me",
    response_model=Envelope[UserResponse],
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get the authenticated user",
)
def me(
    claims: Claims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> Envelope[UserResponse]:
    user = service.get_user_by_id(claims.id)
    if user is None:
        raise NotFoundError("user not found")
    return Envelope(data=UserResponse.from_user(user))


@router.patch(
    "/me",
    response_model=Envelope[UserResponse],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Update the authenticated user's profile fields",
)
def update_me(
    request_data: UpdateProfileRequest,
    claims: Claims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> Envelope[UserResponse]:
    """Only the fields present in the body are written."""
    user = service.update_user(claims.id, request_data.model_dump(exclude_unset=True))
    return Envelope(message="Profile updated", data=UserResponse.from_user(user))


@router.get(
    "/me/profile",
    response_model=Envelope[UserDetailResponse],
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get the authenticated user with contact details",
)
def my_profile(
    claims: Claims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> Envelope[UserDetailResponse]:
    return Envelope(data=_user_detail(service, claims.id, service.get_profile(claims.id)))


@router.patch(
    "/me/profile",
    response_model=Envelope[UserDetailResponse],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Update the authenticated user's contact details",
)
def update_my_profile(
    request_data: UpdateContactRequest,
    claims: Claims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> Envelope[UserDetailResponse]:
    """Only the fields present in the body are written; null clears a field."""
    profile = service.update_profile(claims.id, request_data.model_dump(exclude_unset=True))
    return Envelope(message="Profile updated", data=_user_detail(service, claims.id, profile))


@router.post(
    "/password-reset",
    response_model=Envelope[None],
    status_code=status.HTTP_202_ACCEPTED,
    responses={400: {"model": ErrorResponse}},
    summary="Request password-reset instructions",
)
def password_reset(
    request_data: PasswordResetRequest,
    service: AuthService = Depends(get_auth_service),
) -> Envelope[None]:
    """Always 202, whether or not the account exists."""
    service.request_password_reset(request_data.email)
    return Envelope(message="If the account exists, instructions have been sent")


def _user_detail(service: AuthService, user_id: int, profile: UserProfile) -> UserDetailResponse:
    user = service.get_user_by_id(user_id)
    if user is None:
        raise NotFoundError("user not found")
    return UserDetailResponse(
        user=UserResponse.from_user(user),
        profile=ProfileResponse.from_profile(profile),
    )
