"""
Domain layer - Pure business logic with zero framework imports.

This package contains the core business logic for account authentication,
authorization and capacity-bounded event registration. It defines its own
port interfaces for infrastructure abstraction, keeping the Credential Store
and the web framework outside the domain.
"""

from .auth import AuthService, normalize_email
from .directory import AdminDirectory
from .events import EventRegistrationService
from .exceptions import (
    AlreadyRegistered,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    EmailAlreadyRegistered,
    EventFull,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from .gate import AuthorizationGate
from .ports import (
    Claims,
    DirectoryRepository,
    DirectoryStats,
    Event,
    EventRepository,
    Identity,
    PasswordResetNotifier,
    RegistrationResult,
    Role,
    User,
    UserPage,
    UserProfile,
    UserRepository,
)
from .tokens import TokenCodec

__all__ = [
    "AdminDirectory",
    "AlreadyRegistered",
    "AuthService",
    "AuthenticationError",
    "AuthorizationError",
    "AuthorizationGate",
    "Claims",
    "ConflictError",
    "DirectoryRepository",
    "DirectoryStats",
    "DomainError",
    "EmailAlreadyRegistered",
    "Event",
    "EventFull",
    "EventRegistrationService",
    "EventRepository",
    "Identity",
    "InvariantViolationError",
    "NotFoundError",
    "PasswordResetNotifier",
    "RegistrationResult",
    "Role",
    "TokenCodec",
    "User",
    "UserPage",
    "UserProfile",
    "UserRepository",
    "ValidationError",
    "normalize_email",
]
