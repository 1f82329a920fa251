"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting domain services,
repository adapters and the authorization gate into routes. The Credential
Store is chosen from app state: a psycopg ConnectionPool in
``app.state.pool`` selects the PostgreSQL adapters, otherwise the
InMemoryStore in ``app.state.store`` is used.
"""

from datetime import timedelta

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from station_auth.adapters.repository.memory import InMemoryStore
from station_auth.adapters.repository.postgres import (
    PostgresDirectoryRepository,
    PostgresEventRepository,
    PostgresUserRepository,
)
from station_auth.adapters.smtp.console import ConsolePasswordResetNotifier
from station_auth.config.settings import Settings, get_settings
from station_auth.domain.auth import AuthService
from station_auth.domain.directory import AdminDirectory
from station_auth.domain.events import EventRegistrationService
from station_auth.domain.gate import AuthorizationGate
from station_auth.domain.ports import (
    Claims,
    DirectoryRepository,
    EventRepository,
    Role,
    UserRepository,
)
from station_auth.domain.tokens import TokenCodec

# Module-level singleton - ConsolePasswordResetNotifier is stateless
_reset_notifier = ConsolePasswordResetNotifier()

# auto_error=False so a missing header reaches the gate and becomes our 401
bearer_scheme = HTTPBearer(auto_error=False)


def _memory_store(request: Request) -> InMemoryStore:
    return request.app.state.store


def _pool(request: Request):
    return getattr(request.app.state, "pool", None)


def get_user_repository(request: Request) -> UserRepository:
    """Create user repository for the configured storage backend."""
    pool = _pool(request)
    if pool is not None:
        return PostgresUserRepository(pool)
    return _memory_store(request)


def get_event_repository(request: Request) -> EventRepository:
    pool = _pool(request)
    if pool is not None:
        return PostgresEventRepository(pool)
    return _memory_store(request)


def get_directory_repository(request: Request) -> DirectoryRepository:
    pool = _pool(request)
    if pool is not None:
        return PostgresDirectoryRepository(pool)
    return _memory_store(request)


def get_token_codec(settings: Settings = Depends(get_settings)) -> TokenCodec:
    return TokenCodec(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl=timedelta(days=settings.token_ttl_days),
    )


def get_auth_service(
    repository: UserRepository = Depends(get_user_repository),
    tokens: TokenCodec = Depends(get_token_codec),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    """
    Create auth service with injected dependencies.

    Wires together the user repository, token codec and reset notifier.
    """
    return AuthService(
        repository=repository,
        tokens=tokens,
        reset_notifier=_reset_notifier,
        bcrypt_cost=settings.bcrypt_cost,
    )


def get_event_service(
    repository: EventRepository = Depends(get_event_repository),
) -> EventRegistrationService:
    return EventRegistrationService(repository=repository)


def get_admin_directory(
    directory: DirectoryRepository = Depends(get_directory_repository),
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings),
) -> AdminDirectory:
    return AdminDirectory(directory=directory, users=users, max_limit=settings.max_page_size)


def get_gate(tokens: TokenCodec = Depends(get_token_codec)) -> AuthorizationGate:
    return AuthorizationGate(tokens=tokens)


def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    gate: AuthorizationGate = Depends(get_gate),
) -> Claims:
    """
    Authenticate the request from its ``Authorization: Bearer`` header.

    Raises AuthenticationError (401) when the header is missing, uses
    another scheme, or carries an invalid or expired token.
    """
    token = credentials.credentials if credentials is not None else None
    return gate.authenticate(token)


def require_admin(
    claims: Claims = Depends(get_current_claims),
    gate: AuthorizationGate = Depends(get_gate),
) -> Claims:
    """Authenticate, then require the admin role (403 otherwise)."""
    return gate.authorize(claims, Role.ADMIN)
