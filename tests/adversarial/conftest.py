"""
Shared fixtures for adversarial tests.

Provides common test infrastructure for race condition and abuse tests
against PostgreSQL.
"""

import pytest
from psycopg_pool import ConnectionPool

from station_auth.adapters.repository.postgres import PostgresEventRepository, PostgresUserRepository
from station_auth.domain.ports import Role

HASH = "$2b$04$abcdefghijklmnopqrstuuQ3/0lqZ3b1D1WdkGsbWvAmtAhxG9IPy"


@pytest.fixture(autouse=True)
def _clean(clean_database: None) -> None:
    pass


def create_listeners(pool: ConnectionPool, count: int) -> list[int]:
    """Helper to create ``count`` listener accounts and return their ids."""
    users = PostgresUserRepository(pool)
    return [users.create_user(f"attacker{i}@example.com", HASH, f"Attacker {i}", Role.LISTENER).id for i in range(count)]


def create_event(pool: ConnectionPool, capacity: int | None) -> int:
    return PostgresEventRepository(pool).create_event("Last seat", capacity, True).id
