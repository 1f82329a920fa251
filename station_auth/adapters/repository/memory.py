"""
In-memory repository adapter - Implements all Credential Store ports.

A process-local store used by the test suite and by the ``memory`` storage
backend for local runs. A single re-entrant lock guards every read-modify-
write, giving the same atomicity the PostgreSQL adapter gets from
transactions and row locks.
"""

import threading
from dataclasses import replace
from datetime import datetime, timezone

from station_auth.domain.ports import (
    DirectoryStats,
    Event,
    RegistrationResult,
    Role,
    User,
    UserProfile,
)

_UPDATABLE_COLUMNS = frozenset({"display_name", "bio", "avatar"})
_PROFILE_COLUMNS = frozenset(
    {"first_name", "last_name", "phone", "address", "city", "country", "postal_code"}
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStore:
    """
    Implements UserRepository, EventRepository and DirectoryRepository.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: dict[int, User] = {}
        self._profiles: dict[int, UserProfile] = {}
        self._events: dict[int, Event] = {}
        self._registrations: set[tuple[int, int]] = set()
        self._next_user_id = 1
        self._next_event_id = 1

    # -- users -------------------------------------------------------------

    def create_user(
        self,
        email: str,
        password_hash: str,
        display_name: str,
        role: Role,
        is_protected: bool = False,
    ) -> User | None:
        with self._lock:
            if any(user.email == email for user in self._users.values()):
                return None

            now = _now()
            user = User(
                id=self._next_user_id,
                email=email,
                password_hash=password_hash,
                display_name=display_name,
                role=role,
                is_active=True,
                is_protected=is_protected,
                created_at=now,
                updated_at=now,
            )
            self._next_user_id += 1
            self._users[user.id] = user
            self._profiles[user.id] = UserProfile(user_id=user.id)
            return user

    def get_by_id(self, user_id: int) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def get_active_by_email(self, email: str) -> User | None:
        with self._lock:
            for user in self._users.values():
                if user.email == email and user.is_active:
                    return user
            return None

    def get_protected_user(self) -> User | None:
        with self._lock:
            return next((user for user in self._users.values() if user.is_protected), None)

    def list_users(self, limit: int, offset: int) -> list[User]:
        with self._lock:
            ordered = sorted(self._users.values(), key=lambda user: user.id)
            return ordered[offset : offset + limit]

    def update_fields(self, user_id: int, fields: dict[str, str | None]) -> User | None:
        updates = {name: value for name, value in fields.items() if name in _UPDATABLE_COLUMNS}
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            if not updates:
                return user
            return self._store_user(replace(user, updated_at=_now(), **updates))

    def update_role(self, user_id: int, role: Role) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None or user.is_protected:
                return None
            return self._store_user(replace(user, role=role, updated_at=_now()))

    def set_active(self, user_id: int, is_active: bool) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None or user.is_protected:
                return None
            return self._store_user(replace(user, is_active=is_active, updated_at=_now()))

    def delete_user(self, user_id: int) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if user is None or user.is_protected:
                return False

            for event_id, registered_user_id in list(self._registrations):
                if registered_user_id == user_id:
                    self._release_slot(event_id, user_id)

            del self._users[user_id]
            self._profiles.pop(user_id, None)
            return True

    def get_profile(self, user_id: int) -> UserProfile | None:
        with self._lock:
            return self._profiles.get(user_id)

    def update_profile(self, user_id: int, fields: dict[str, str | None]) -> UserProfile | None:
        updates = {name: value for name, value in fields.items() if name in _PROFILE_COLUMNS}
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                return None
            if updates:
                profile = replace(profile, **updates)
                self._profiles[user_id] = profile
            return profile

    def _store_user(self, user: User) -> User:
        self._users[user.id] = user
        return user

    # -- events ------------------------------------------------------------

    def create_event(self, title: str, capacity: int | None, published: bool) -> Event:
        with self._lock:
            event = Event(
                id=self._next_event_id,
                title=title,
                capacity=capacity,
                registered_count=0,
                published=published,
                created_at=_now(),
            )
            self._next_event_id += 1
            self._events[event.id] = event
            return event

    def get_event(self, event_id: int) -> Event | None:
        with self._lock:
            return self._events.get(event_id)

    def add_registration(self, event_id: int, user_id: int) -> RegistrationResult:
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                return RegistrationResult.EVENT_NOT_FOUND
            if (event_id, user_id) in self._registrations:
                return RegistrationResult.ALREADY_REGISTERED
            if event.capacity is not None and event.registered_count >= event.capacity:
                return RegistrationResult.FULL
            if user_id not in self._users:
                return RegistrationResult.USER_NOT_FOUND

            self._registrations.add((event_id, user_id))
            self._events[event_id] = replace(event, registered_count=event.registered_count + 1)
            return RegistrationResult.REGISTERED

    def remove_registration(self, event_id: int, user_id: int) -> RegistrationResult:
        with self._lock:
            if event_id not in self._events:
                return RegistrationResult.EVENT_NOT_FOUND
            if (event_id, user_id) not in self._registrations:
                return RegistrationResult.NOT_REGISTERED

            self._release_slot(event_id, user_id)
            return RegistrationResult.UNREGISTERED

    def is_registered(self, event_id: int, user_id: int) -> bool:
        with self._lock:
            return (event_id, user_id) in self._registrations

    def _release_slot(self, event_id: int, user_id: int) -> None:
        self._registrations.discard((event_id, user_id))
        event = self._events[event_id]
        self._events[event_id] = replace(event, registered_count=max(event.registered_count - 1, 0))

    # -- directory ---------------------------------------------------------

    def search_users(self, search: str | None, limit: int, offset: int) -> tuple[list[User], int]:
        with self._lock:
            users = list(self._users.values())

        if search:
            term = search.lower()
            users = [
                user
                for user in users
                if term in user.email.lower() or term in user.display_name.lower()
            ]

        users.sort(key=lambda user: (user.created_at, user.id), reverse=True)
        return users[offset : offset + limit], len(users)

    def count_stats(self) -> DirectoryStats:
        with self._lock:
            users = list(self._users.values())
            events = list(self._events.values())
            total_registrations = len(self._registrations)

        by_role = {role.value: 0 for role in Role}
        for user in users:
            by_role[user.role.value] += 1

        return DirectoryStats(
            total_users=len(users),
            active_users=sum(1 for user in users if user.is_active),
            users_by_role=by_role,
            total_events=len(events),
            published_events=sum(1 for event in events if event.published),
            total_registrations=total_registrations,
        )
