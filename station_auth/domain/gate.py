"""
Authorization gate - token to identity, identity to allow/deny.

Two independent checks are applied in order to every protected route:

1. authenticate(): a missing or unverifiable token is an
   AuthenticationError (401).
2. authorize(): a verified identity whose role does not satisfy the
   required role is an AuthorizationError (403).

A request with no token is never reported as 403, and a valid but
under-privileged token is never reported as 401.
"""

from dataclasses import dataclass

from .exceptions import AuthenticationError, AuthorizationError
from .ports import Claims, Role
from .tokens import TokenCodec


@dataclass
class AuthorizationGate:
    """Per-request authentication and role check."""

    tokens: TokenCodec

    def authenticate(self, token: str | None) -> Claims:
        if not token:
            raise AuthenticationError("authentication token required")

        claims = self.tokens.verify(token)
        if claims is None:
            raise AuthenticationError("invalid or expired token")
        return claims

    def authorize(self, claims: Claims, required_role: Role) -> Claims:
        if not claims.role.satisfies(required_role):
            raise AuthorizationError(f"{required_role.value} role required")
        return claims

    def require(self, token: str | None, required_role: Role = Role.LISTENER) -> Claims:
        """authenticate() then authorize(), in that order."""
        return self.authorize(self.authenticate(token), required_role)
