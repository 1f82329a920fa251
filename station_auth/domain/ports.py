"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the entities the domain hands across its boundary and
the interfaces (ports) it requires from the Credential Store and the mail
trigger. Adapters implement these protocols through structural subtyping.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol


class Role(str, Enum):
    """
    Flat role model.

    Roles are ordered by rank; a role satisfies any requirement of equal or
    lower rank. New roles slot in by adding a member and a rank.
    """

    LISTENER = "listener"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def satisfies(self, required: "Role") -> bool:
        """True if this role equals or outranks ``required``."""
        return self.rank >= required.rank


_ROLE_RANK = {
    Role.LISTENER: 0,
    Role.ADMIN: 100,
}


class RegistrationResult(Enum):
    """
    Outcome of an atomic registration write.

    Returned by add_registration() / remove_registration() so that the
    repository can report which check failed inside its locked section.
    """

    REGISTERED = "registered"
    UNREGISTERED = "unregistered"
    EVENT_NOT_FOUND = "event_not_found"
    USER_NOT_FOUND = "user_not_found"
    ALREADY_REGISTERED = "already_registered"
    NOT_REGISTERED = "not_registered"
    FULL = "full"


@dataclass(frozen=True)
class User:
    """Stored account. ``password_hash`` never leaves the API layer."""

    id: int
    email: str
    password_hash: str
    display_name: str
    role: Role
    is_active: bool
    is_protected: bool
    created_at: datetime
    updated_at: datetime
    bio: str | None = None
    avatar: str | None = None


@dataclass(frozen=True)
class UserProfile:
    """Contact details attached one-to-one to a user."""

    user_id: int
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    country: str | None = None
    postal_code: str | None = None


@dataclass(frozen=True)
class Claims:
    """Decoded payload of a verified token."""

    id: int
    email: str
    role: Role
    exp: int


@dataclass(frozen=True)
class Identity:
    """A user together with a freshly issued token."""

    user: User
    token: str


@dataclass(frozen=True)
class Event:
    """Event with an optional capacity; ``capacity`` None means unlimited."""

    id: int
    title: str
    capacity: int | None
    registered_count: int
    published: bool
    created_at: datetime


@dataclass(frozen=True)
class UserPage:
    """One page of the admin user listing."""

    items: list[User]
    total: int
    page: int
    limit: int


@dataclass(frozen=True)
class DirectoryStats:
    """Aggregate counts for the admin dashboard."""

    total_users: int
    active_users: int
    users_by_role: dict[str, int] = field(default_factory=dict)
    total_events: int = 0
    published_events: int = 0
    total_registrations: int = 0


class UserRepository(Protocol):
    """Port interface for user persistence."""

    def create_user(
        self,
        email: str,
        password_hash: str,
        display_name: str,
        role: Role,
        is_protected: bool = False,
    ) -> User | None:
        """
        Atomically insert a user and its empty profile.

        Args:
            email: Normalized email address
            password_hash: bcrypt hashed password
            display_name: Public display name
            role: Initial role
            is_protected: Marks the root administrator

        Returns:
            The created user, or None if the email is already taken
        """
        ...

    def get_by_id(self, user_id: int) -> User | None:
        ...

    def get_active_by_email(self, email: str) -> User | None:
        """Look up by normalized email AND is_active in a single query."""
        ...

    def get_protected_user(self) -> User | None:
        ...

    def list_users(self, limit: int, offset: int) -> list[User]:
        ...

    def update_fields(self, user_id: int, fields: dict[str, str | None]) -> User | None:
        """
        Update profile columns (display_name, bio, avatar) and bump updated_at.

        Returns:
            The updated user, or None if the id does not exist
        """
        ...

    def update_role(self, user_id: int, role: Role) -> User | None:
        ...

    def set_active(self, user_id: int, is_active: bool) -> User | None:
        ...

    def delete_user(self, user_id: int) -> bool:
        """Delete a non-protected user. Returns False if nothing was deleted."""
        ...

    def get_profile(self, user_id: int) -> UserProfile | None:
        ...

    def update_profile(self, user_id: int, fields: dict[str, str | None]) -> UserProfile | None:
        """
        Update contact columns (first_name ... postal_code).

        Returns:
            The updated profile, or None if the user has no profile row
        """
        ...


class EventRepository(Protocol):
    """Port interface for events and their registrations."""

    def create_event(self, title: str, capacity: int | None, published: bool) -> Event:
        ...

    def get_event(self, event_id: int) -> Event | None:
        ...

    def add_registration(self, event_id: int, user_id: int) -> RegistrationResult:
        """
        Register a user for an event as one atomic unit.

        Checks run in order inside a single locked section:
        1. Event exists (EVENT_NOT_FOUND)
        2. Pair not yet registered (ALREADY_REGISTERED)
        3. registered_count < capacity when capacity is set (FULL)

        On success the registration row is inserted and registered_count is
        incremented before any other transaction can observe either write.

        Returns:
            REGISTERED on success, otherwise the failing check
            (USER_NOT_FOUND if the user row no longer exists)
        """
        ...

    def remove_registration(self, event_id: int, user_id: int) -> RegistrationResult:
        """
        Delete the registration row and decrement registered_count atomically.

        The counter never drops below zero.

        Returns:
            UNREGISTERED, EVENT_NOT_FOUND or NOT_REGISTERED
        """
        ...

    def is_registered(self, event_id: int, user_id: int) -> bool:
        ...


class DirectoryRepository(Protocol):
    """Port interface for admin read projections and raw aggregate counts."""

    def search_users(self, search: str | None, limit: int, offset: int) -> tuple[list[User], int]:
        """
        Case-insensitive substring search on email or display name.

        Returns:
            (page of users ordered newest first, total matching count)
        """
        ...

    def count_stats(self) -> DirectoryStats:
        ...


class PasswordResetNotifier(Protocol):
    """Port interface for the external password-reset mail trigger."""

    def send_password_reset(self, email: str) -> None:
        """
        Trigger delivery of password-reset instructions.

        Args:
            email: Normalized address of an existing active account
        """
        ...
