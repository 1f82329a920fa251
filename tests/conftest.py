"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- An in-memory Credential Store
- Token codec and domain services wired to it
- A provisioned root administrator
- A migrated PostgreSQL connection pool (skipped when unreachable)
"""

from collections.abc import Generator

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from station_auth.adapters.repository.memory import InMemoryStore
from station_auth.adapters.repository.postgres import run_migrations
from station_auth.config.settings import get_settings
from station_auth.domain.auth import AuthService
from station_auth.domain.directory import AdminDirectory
from station_auth.domain.events import EventRegistrationService
from station_auth.domain.ports import User
from station_auth.domain.tokens import TokenCodec

TEST_SECRET = "test-secret-key-that-is-at-least-32-bytes"
ROOT_EMAIL = "admin@root"
ROOT_PASSWORD = "root-password"

# Lowest cost bcrypt accepts; keeps the suite fast
FAST_BCRYPT_COST = 4


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def tokens() -> TokenCodec:
    return TokenCodec(secret=TEST_SECRET)


@pytest.fixture
def auth_service(store: InMemoryStore, tokens: TokenCodec) -> AuthService:
    return AuthService(repository=store, tokens=tokens, bcrypt_cost=FAST_BCRYPT_COST)


@pytest.fixture
def event_service(store: InMemoryStore) -> EventRegistrationService:
    return EventRegistrationService(repository=store)


@pytest.fixture
def directory(store: InMemoryStore) -> AdminDirectory:
    return AdminDirectory(directory=store, users=store)


@pytest.fixture
def root_admin(auth_service: AuthService) -> User:
    """The protected root administrator, provisioned as at bootstrap."""
    return auth_service.provision_root_admin(ROOT_EMAIL, ROOT_PASSWORD, "Root")


@pytest.fixture(scope="session")
def pool() -> Generator[ConnectionPool, None, None]:
    """
    Connection pool for the PostgreSQL suites, migrated once per session.

    Skips the requesting tests when the configured database is unreachable.
    """
    settings = get_settings()
    try:
        psycopg.connect(settings.database_url, connect_timeout=2).close()
    except psycopg.OperationalError as exc:
        pytest.skip(f"PostgreSQL not available: {exc}")

    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=20, open=True)
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Empty every table before a PostgreSQL test."""
    with pool.connection() as conn:
        conn.execute("TRUNCATE event_registrations, events, user_profiles, users RESTART IDENTITY CASCADE")
        conn.commit()
    yield
