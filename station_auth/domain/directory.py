"""
Admin directory - read projection over users and aggregate counts.

Consumed by the administrative UI. Mutations go through AuthService so that
the root administrator guard is applied in exactly one place.
"""

from dataclasses import dataclass

from .exceptions import NotFoundError
from .ports import DirectoryRepository, DirectoryStats, User, UserPage, UserProfile, UserRepository

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass
class AdminDirectory:
    """Paginated, searchable user listing plus dashboard statistics."""

    directory: DirectoryRepository
    users: UserRepository
    max_limit: int = MAX_LIMIT

    def list_users(self, page: int = 1, limit: int = DEFAULT_LIMIT, search: str | None = None) -> UserPage:
        """
        List users newest first.

        ``limit`` is clamped to [1, max_limit] and ``page`` floored at 1.
        ``search`` matches email or display name as a case-insensitive
        substring; blank search terms are ignored.
        """
        page = max(1, page)
        limit = min(max(1, limit), self.max_limit)
        term = search.strip() if search else None

        items, total = self.directory.search_users(term or None, limit, (page - 1) * limit)
        return UserPage(items=items, total=total, page=page, limit=limit)

    def get_user(self, user_id: int) -> tuple[User, UserProfile | None]:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user, self.users.get_profile(user_id)

    def get_stats(self) -> DirectoryStats:
        return self.directory.count_stats()
