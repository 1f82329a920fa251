"""
Fixtures for PostgreSQL integration tests.

Requires PostgreSQL to be running (via docker-compose); every test here is
skipped otherwise.
"""

import pytest
from psycopg_pool import ConnectionPool

from station_auth.adapters.repository.postgres import (
    PostgresDirectoryRepository,
    PostgresEventRepository,
    PostgresUserRepository,
)


@pytest.fixture(autouse=True)
def _clean(clean_database: None) -> None:
    pass


@pytest.fixture
def users(pool: ConnectionPool) -> PostgresUserRepository:
    return PostgresUserRepository(pool)


@pytest.fixture
def events(pool: ConnectionPool) -> PostgresEventRepository:
    return PostgresEventRepository(pool)


@pytest.fixture
def directory_repo(pool: ConnectionPool) -> PostgresDirectoryRepository:
    return PostgresDirectoryRepository(pool)
