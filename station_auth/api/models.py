"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Field names are camelCase on the wire (``displayName``, ``isActive``) and
snake_case in Python; requests accept either form.
"""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from station_auth.domain.ports import DirectoryStats, Event, Identity, Role, User, UserProfile

T = TypeVar("T")


class ApiModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Requests


class RegisterRequest(ApiModel):
    """Request model for account registration."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72, description="Password (6-72 characters)")
    display_name: str = Field(..., min_length=1, max_length=255)


class LoginRequest(ApiModel):
    """Request model for login. Email format is not validated here."""

    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class PasswordResetRequest(ApiModel):
    email: EmailStr


class UpdateProfileRequest(ApiModel):
    """Partial update of the caller's own profile fields."""

    display_name: str | None = Field(None, min_length=1, max_length=255)
    bio: str | None = None
    avatar: str | None = None

    @field_validator("display_name")
    @classmethod
    def display_name_not_null(cls, value: str | None) -> str:
        # Omit the field to leave it unchanged; it cannot be cleared.
        if value is None or not value.strip():
            raise ValueError("display name must not be blank")
        return value


class UpdateContactRequest(ApiModel):
    """Partial update of contact details; null clears a field."""

    first_name: str | None = Field(None, max_length=255)
    last_name: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=64)
    address: str | None = None
    city: str | None = Field(None, max_length=255)
    country: str | None = Field(None, max_length=255)
    postal_code: str | None = Field(None, max_length=32)


class AdminCreateUserRequest(RegisterRequest):
    role: Role = Role.LISTENER


class AdminUpdateUserRequest(UpdateProfileRequest):
    role: Role | None = None
    is_active: bool | None = None


class CreateEventRequest(ApiModel):
    title: str = Field(..., min_length=1, max_length=255)
    capacity: int | None = Field(None, ge=0, description="Maximum registrations; omit for unlimited")
    published: bool = False


# Responses


class UserResponse(ApiModel):
    """Public projection of a user; never carries the password hash."""

    id: int
    email: str
    display_name: str
    role: Role
    bio: str | None = None
    avatar: str | None = None
    is_active: bool
    is_protected: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            role=user.role,
            bio=user.bio,
            avatar=user.avatar,
            is_active=user.is_active,
            is_protected=user.is_protected,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class IdentityResponse(UserResponse):
    token: str

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(**UserResponse.from_user(identity.user).model_dump(), token=identity.token)


class ProfileResponse(ApiModel):
    user_id: int
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    country: str | None = None
    postal_code: str | None = None

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "ProfileResponse":
        return cls(
            user_id=profile.user_id,
            first_name=profile.first_name,
            last_name=profile.last_name,
            phone=profile.phone,
            address=profile.address,
            city=profile.city,
            country=profile.country,
            postal_code=profile.postal_code,
        )


class UserDetailResponse(ApiModel):
    user: UserResponse
    profile: ProfileResponse | None = None


class EventResponse(ApiModel):
    id: int
    title: str
    capacity: int | None = None
    registered_count: int
    published: bool
    created_at: datetime

    @classmethod
    def from_event(cls, event: Event) -> "EventResponse":
        return cls(
            id=event.id,
            title=event.title,
            capacity=event.capacity,
            registered_count=event.registered_count,
            published=event.published,
            created_at=event.created_at,
        )


class RegistrationCountResponse(ApiModel):
    event_id: int
    total: int


class StatsResponse(ApiModel):
    total_users: int
    active_users: int
    users_by_role: dict[str, int]
    total_events: int
    published_events: int
    total_registrations: int

    @classmethod
    def from_stats(cls, stats: DirectoryStats) -> "StatsResponse":
        return cls(
            total_users=stats.total_users,
            active_users=stats.active_users,
            users_by_role=stats.users_by_role,
            total_events=stats.total_events,
            published_events=stats.published_events,
            total_registrations=stats.total_registrations,
        )


class Envelope(ApiModel, Generic[T]):
    """Standard success envelope: ``{success: true, data, message}``."""

    success: bool = True
    message: str | None = None
    data: T | None = None


class UserPageResponse(ApiModel):
    """Paginated user listing: ``{success, data, total, page, limit}``."""

    success: bool = True
    data: list[UserResponse]
    total: int
    page: int
    limit: int


class ErrorResponse(ApiModel):
    """Standard error response model."""

    success: bool = False
    error: str
