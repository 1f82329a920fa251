"""
Stateless token codec.

Tokens are HS256-signed JWTs carrying ``{id, email, role, exp}``. They are
never persisted and are not re-checked against the store on verification,
so role changes take effect only once previously issued tokens expire.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta

import jwt

from .ports import Claims, Role, User

DEFAULT_TOKEN_TTL = timedelta(days=7)


@dataclass
class TokenCodec:
    """Issues and verifies signed, time-boxed claim sets."""

    secret: str
    algorithm: str = "HS256"
    ttl: timedelta = DEFAULT_TOKEN_TTL
    clock: Callable[[], float] = field(default=time.time, repr=False)

    def issue(self, user: User) -> str:
        """Sign a claim set derived from the user's current state."""
        exp = int(self.clock() + self.ttl.total_seconds())
        payload = {
            "id": user.id,
            "email": user.email,
            "role": user.role.value,
            "exp": exp,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Claims | None:
        """
        Decode and validate a token.

        Returns None on any failure: empty or malformed input, bad
        signature, expiry, or a payload missing the expected claims.
        Never raises.
        """
        if not token or not isinstance(token, str):
            return None

        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp"]},
            )
        except jwt.InvalidTokenError:
            return None

        try:
            return Claims(
                id=int(payload["id"]),
                email=str(payload["email"]),
                role=Role(payload["role"]),
                exp=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError):
            return None
