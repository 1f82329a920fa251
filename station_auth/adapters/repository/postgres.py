"""
PostgreSQL repository adapters - Implement the Credential Store ports.

This module provides the PostgreSQL implementations of the domain's
repository ports using psycopg3 with raw SQL.

Concurrency Design - Capacity-Bounded Registration:
---------------------------------------------------
add_registration() must never let two concurrent requests take the last
slot of an event. It runs the whole check-then-act sequence in one
transaction that starts with:

    SELECT capacity, registered_count FROM events WHERE id = %s FOR UPDATE

The row lock serializes every registration write against the same event.
A waiting transaction re-reads the locked row once the holder commits, so
it sees the incremented registered_count and returns FULL. The insert of
the registration row and the counter increment commit together; no other
transaction can observe one without the other.

remove_registration() takes the same lock before touching registered_count.
delete_user() locks the events the user is registered for in id order,
then the user row, and decrements only for the registration rows its own
DELETE removes.
"""

import logging
from pathlib import Path

from psycopg import errors, sql
from psycopg_pool import ConnectionPool

from station_auth.domain.ports import (
    DirectoryStats,
    Event,
    RegistrationResult,
    Role,
    User,
    UserProfile,
)

logger = logging.getLogger(__name__)

USER_COLUMNS = """
    id, email, password_hash, display_name, role, is_active, is_protected,
    created_at, updated_at, bio, avatar
"""

EVENT_COLUMNS = "id, title, capacity, registered_count, published, created_at"

PROFILE_COLUMNS = """
    user_id, first_name, last_name, phone, address, city, country, postal_code
"""

_UPDATABLE_COLUMNS = frozenset({"display_name", "bio", "avatar"})
_PROFILE_COLUMNS = frozenset(
    {"first_name", "last_name", "phone", "address", "city", "country", "postal_code"}
)


def _row_to_user(row: tuple) -> User:
    return User(
        id=row[0],
        email=row[1],
        password_hash=row[2],
        display_name=row[3],
        role=Role(row[4]),
        is_active=row[5],
        is_protected=row[6],
        created_at=row[7],
        updated_at=row[8],
        bio=row[9],
        avatar=row[10],
    )


def _row_to_event(row: tuple) -> Event:
    return Event(
        id=row[0],
        title=row[1],
        capacity=row[2],
        registered_count=row[3],
        published=row[4],
        created_at=row[5],
    )


def _row_to_profile(row: tuple) -> UserProfile:
    return UserProfile(
        user_id=row[0],
        first_name=row[1],
        last_name=row[2],
        phone=row[3],
        address=row[4],
        city=row[5],
        country=row[6],
        postal_code=row[7],
    )


def _like_pattern(term: str) -> str:
    """Wrap a search term for ILIKE, escaping its wildcards."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class PostgresUserRepository:
    """
    Implements UserRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def create_user(
        self,
        email: str,
        password_hash: str,
        display_name: str,
        role: Role,
        is_protected: bool = False,
    ) -> User | None:
        """
        Insert a user and its empty profile in one transaction.

        Uses INSERT ... ON CONFLICT (email) DO NOTHING so that the UNIQUE
        constraint, not a prior SELECT, decides which of two concurrent
        registrations for the same email wins.

        Returns:
            The created user, or None if the email already exists
        """
        insert_user_sql = f"""
            INSERT INTO users (email, password_hash, display_name, role, is_protected)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (email) DO NOTHING
            RETURNING {USER_COLUMNS}
        """
        insert_profile_sql = "INSERT INTO user_profiles (user_id) VALUES (%s)"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                insert_user_sql,
                (email, password_hash, display_name, role.value, is_protected),
            )
            row = cursor.fetchone()
            if row is None:
                conn.commit()
                return None

            cursor.execute(insert_profile_sql, (row[0],))
            conn.commit()
            return _row_to_user(row)

    def get_by_id(self, user_id: int) -> User | None:
        return self._fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", (user_id,))

    def get_active_by_email(self, email: str) -> User | None:
        return self._fetch_one(
            f"SELECT {USER_COLUMNS} FROM users WHERE email = %s AND is_active",
            (email,),
        )

    def get_protected_user(self) -> User | None:
        return self._fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE is_protected", ())

    def list_users(self, limit: int, offset: int) -> list[User]:
        query = f"SELECT {USER_COLUMNS} FROM users ORDER BY id LIMIT %s OFFSET %s"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(query, (limit, offset))
            return [_row_to_user(row) for row in cursor.fetchall()]

    def update_fields(self, user_id: int, fields: dict[str, str | None]) -> User | None:
        """
        Update whitelisted profile columns and bump updated_at.

        Column names are taken from a fixed whitelist and composed with
        psycopg.sql.Identifier; values are always bound parameters.
        """
        columns = [name for name in fields if name in _UPDATABLE_COLUMNS]
        if not columns:
            return self.get_by_id(user_id)

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(name)) for name in columns
        )
        query = sql.SQL(
            "UPDATE users SET {}, updated_at = NOW() WHERE id = %s RETURNING {}"
        ).format(assignments, sql.SQL(USER_COLUMNS))

        return self._fetch_one(query, (*[fields[name] for name in columns], user_id), commit=True)

    def update_role(self, user_id: int, role: Role) -> User | None:
        """Change role; the protected row is excluded at the SQL level as well."""
        query = f"""
            UPDATE users SET role = %s, updated_at = NOW()
            WHERE id = %s AND NOT is_protected
            RETURNING {USER_COLUMNS}
        """
        return self._fetch_one(query, (role.value, user_id), commit=True)

    def set_active(self, user_id: int, is_active: bool) -> User | None:
        query = f"""
            UPDATE users SET is_active = %s, updated_at = NOW()
            WHERE id = %s AND NOT is_protected
            RETURNING {USER_COLUMNS}
        """
        return self._fetch_one(query, (is_active, user_id), commit=True)

    def delete_user(self, user_id: int) -> bool:
        """
        Delete a non-protected user and release its event slots.

        Lock order matches add_registration(): the events the user is
        registered for first, by id, then the user row. The user lock waits
        out any registration insert still in flight.
        The counter decrement is driven by the registration rows the DELETE
        actually removes, so a concurrent unregister that committed first
        is not counted twice. The user DELETE then cascades to the profile.
        """
        lock_user_sql = "SELECT 1 FROM users WHERE id = %s AND NOT is_protected FOR UPDATE"
        lock_events_sql = """
            SELECT id FROM events
            WHERE id IN (SELECT event_id FROM event_registrations WHERE user_id = %s)
            ORDER BY id
            FOR UPDATE
        """
        release_slots_sql = """
            WITH gone AS (
                DELETE FROM event_registrations
                WHERE user_id = %s
                RETURNING event_id
            )
            UPDATE events
            SET registered_count = GREATEST(registered_count - 1, 0)
            WHERE id IN (SELECT event_id FROM gone)
        """
        delete_sql = "DELETE FROM users WHERE id = %s AND NOT is_protected"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(lock_events_sql, (user_id,))
            cursor.execute(lock_user_sql, (user_id,))
            if cursor.fetchone() is None:
                conn.commit()
                return False

            cursor.execute(release_slots_sql, (user_id,))
            cursor.execute(delete_sql, (user_id,))
            conn.commit()
            return cursor.rowcount == 1

    def get_profile(self, user_id: int) -> UserProfile | None:
        query = f"SELECT {PROFILE_COLUMNS} FROM user_profiles WHERE user_id = %s"

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(query, (user_id,))
            row = cursor.fetchone()
        return _row_to_profile(row) if row is not None else None

    def update_profile(self, user_id: int, fields: dict[str, str | None]) -> UserProfile | None:
        """
        Update whitelisted contact columns and bump updated_at.

        Composed like update_fields(): identifiers from a fixed whitelist,
        values as bound parameters.
        """
        columns = [name for name in fields if name in _PROFILE_COLUMNS]
        if not columns:
            return self.get_profile(user_id)

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(name)) for name in columns
        )
        query = sql.SQL(
            "UPDATE user_profiles SET {}, updated_at = NOW() WHERE user_id = %s RETURNING {}"
        ).format(assignments, sql.SQL(PROFILE_COLUMNS))

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(query, (*[fields[name] for name in columns], user_id))
            row = cursor.fetchone()
            conn.commit()
        return _row_to_profile(row) if row is not None else None

    def _fetch_one(self, query, params: tuple, commit: bool = False) -> User | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(query, params)
            row = cursor.fetchone()
            if commit:
                conn.commit()
        return _row_to_user(row) if row is not None else None


class PostgresEventRepository:
    """
    Implements EventRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def create_event(self, title: str, capacity: int | None, published: bool) -> Event:
        query = f"""
            INSERT INTO events (title, capacity, published)
            VALUES (%s, %s, %s)
            RETURNING {EVENT_COLUMNS}
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(query, (title, capacity, published))
            row = cursor.fetchone()
            conn.commit()
        return _row_to_event(row)

    def get_event(self, event_id: int) -> Event | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(f"SELECT {EVENT_COLUMNS} FROM events WHERE id = %s", (event_id,))
            row = cursor.fetchone()
        return _row_to_event(row) if row is not None else None

    def add_registration(self, event_id: int, user_id: int) -> RegistrationResult:
        """
        Register a user for an event under a row lock on the event.

        Check order: event exists, pair not registered, capacity not
        reached. All three checks and both writes happen while holding
        the event row lock.

        Returns:
            REGISTERED, EVENT_NOT_FOUND, ALREADY_REGISTERED, FULL or
            USER_NOT_FOUND (user row vanished since the token was issued)
        """
        lock_sql = """
            SELECT capacity, registered_count
            FROM events
            WHERE id = %s
            FOR UPDATE
        """
        exists_sql = """
            SELECT 1 FROM event_registrations
            WHERE event_id = %s AND user_id = %s
        """
        insert_sql = """
            INSERT INTO event_registrations (event_id, user_id)
            VALUES (%s, %s)
        """
        increment_sql = """
            UPDATE events
            SET registered_count = registered_count + 1
            WHERE id = %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(lock_sql, (event_id,))
            row = cursor.fetchone()
            if row is None:
                conn.commit()
                return RegistrationResult.EVENT_NOT_FOUND

            cursor.execute(exists_sql, (event_id, user_id))
            if cursor.fetchone() is not None:
                conn.commit()
                return RegistrationResult.ALREADY_REGISTERED

            capacity, registered_count = row
            if capacity is not None and registered_count >= capacity:
                conn.commit()
                return RegistrationResult.FULL

            try:
                cursor.execute(insert_sql, (event_id, user_id))
            except errors.ForeignKeyViolation:
                conn.rollback()
                return RegistrationResult.USER_NOT_FOUND

            cursor.execute(increment_sql, (event_id,))
            conn.commit()
            return RegistrationResult.REGISTERED

    def remove_registration(self, event_id: int, user_id: int) -> RegistrationResult:
        """
        Delete a registration and decrement the counter in one transaction.

        Returns:
            UNREGISTERED, EVENT_NOT_FOUND or NOT_REGISTERED
        """
        lock_sql = "SELECT 1 FROM events WHERE id = %s FOR UPDATE"
        delete_sql = """
            DELETE FROM event_registrations
            WHERE event_id = %s AND user_id = %s
        """
        decrement_sql = """
            UPDATE events
            SET registered_count = GREATEST(registered_count - 1, 0)
            WHERE id = %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(lock_sql, (event_id,))
            if cursor.fetchone() is None:
                conn.commit()
                return RegistrationResult.EVENT_NOT_FOUND

            cursor.execute(delete_sql, (event_id, user_id))
            if cursor.rowcount == 0:
                conn.commit()
                return RegistrationResult.NOT_REGISTERED

            cursor.execute(decrement_sql, (event_id,))
            conn.commit()
            return RegistrationResult.UNREGISTERED

    def is_registered(self, event_id: int, user_id: int) -> bool:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "SELECT 1 FROM event_registrations WHERE event_id = %s AND user_id = %s",
                (event_id, user_id),
            )
            return cursor.fetchone() is not None


class PostgresDirectoryRepository:
    """
    Implements DirectoryRepository protocol via psycopg3.

    Read-only projections and aggregate counts for the admin dashboard.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def search_users(self, search: str | None, limit: int, offset: int) -> tuple[list[User], int]:
        where = sql.SQL("")
        params: tuple = ()
        if search:
            pattern = _like_pattern(search)
            where = sql.SQL("WHERE email ILIKE %s OR display_name ILIKE %s")
            params = (pattern, pattern)

        page_sql = sql.SQL(
            "SELECT {} FROM users {} ORDER BY created_at DESC, id DESC LIMIT %s OFFSET %s"
        ).format(sql.SQL(USER_COLUMNS), where)
        count_sql = sql.SQL("SELECT COUNT(*) FROM users {}").format(where)

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(page_sql, (*params, limit, offset))
            users = [_row_to_user(row) for row in cursor.fetchall()]
            cursor.execute(count_sql, params)
            total = cursor.fetchone()[0]

        return users, total

    def count_stats(self) -> DirectoryStats:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT COUNT(*), COUNT(*) FILTER (WHERE is_active) FROM users")
            total_users, active_users = cursor.fetchone()

            cursor.execute("SELECT role, COUNT(*) FROM users GROUP BY role")
            by_role = {role.value: 0 for role in Role}
            by_role.update({role: count for role, count in cursor.fetchall()})

            cursor.execute("SELECT COUNT(*), COUNT(*) FILTER (WHERE published) FROM events")
            total_events, published_events = cursor.fetchone()

            cursor.execute("SELECT COUNT(*) FROM event_registrations")
            total_registrations = cursor.fetchone()[0]

        return DirectoryStats(
            total_users=total_users,
            active_users=active_users,
            users_by_role=by_role,
            total_events=total_events,
            published_events=published_events,
            total_registrations=total_registrations,
        )


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: station_auth/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
