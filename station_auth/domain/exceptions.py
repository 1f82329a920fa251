"""
Domain exceptions - Semantic error types for authentication and registration.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
The API layer maps each class to an HTTP status; the message is
surfaced to the caller verbatim.
"""


class DomainError(Exception):
    """Base class for all station_auth domain errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Malformed or missing input fields."""

    pass


class AuthenticationError(DomainError):
    """Missing, malformed, expired or unverifiable token, or bad credentials."""

    pass


class AuthorizationError(DomainError):
    """Valid identity, insufficient role."""

    pass


class NotFoundError(DomainError):
    """Referenced entity does not exist."""

    pass


class ConflictError(DomainError):
    """Operation collides with existing state."""

    pass


class EmailAlreadyRegistered(ConflictError):
    """A user with this normalized email already exists."""

    def __init__(self, message: str = "email already registered") -> None:
        super().__init__(message)


class AlreadyRegistered(ConflictError):
    """The (event, user) pair is already registered."""

    def __init__(self, message: str = "already registered") -> None:
        super().__init__(message)


class EventFull(ConflictError):
    """The event has reached its capacity."""

    def __init__(self, message: str = "event is full") -> None:
        super().__init__(message)


class InvariantViolationError(DomainError):
    """Attempt to delete, demote or deactivate the protected root administrator."""

    pass
