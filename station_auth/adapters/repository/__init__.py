"""Repository adapters - Credential Store implementations."""

from .memory import InMemoryStore
from .postgres import (
    PostgresDirectoryRepository,
    PostgresEventRepository,
    PostgresUserRepository,
    run_migrations,
)

__all__ = [
    "InMemoryStore",
    "PostgresDirectoryRepository",
    "PostgresEventRepository",
    "PostgresUserRepository",
    "run_migrations",
]
