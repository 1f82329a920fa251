"""
Authentication domain service - accounts, credentials, tokens and roles.

Root Administrator Protection
=============================

Exactly one account carries ``is_protected = True``. It is created once by
provision_root_admin() at bootstrap and from then on:

    update_user_role(root)  -> InvariantViolationError
    set_active(root, ...)   -> InvariantViolationError
    delete_user(root)       -> InvariantViolationError

The guard runs after the target is resolved and before any write, whatever
the caller's role. Profile fields (display_name, bio, avatar) remain
editable.

Uniform Login Failure
=====================

login() looks the user up by normalized email and is_active in one query.
Unknown email, deactivated account and wrong password all raise the same
AuthenticationError, and bcrypt runs on every path (against a dummy hash
when no user matched) so response time does not reveal which one occurred.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache

import bcrypt

from .exceptions import (
    AuthenticationError,
    EmailAlreadyRegistered,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from .ports import Claims, Identity, PasswordResetNotifier, Role, User, UserProfile, UserRepository
from .tokens import TokenCodec

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "invalid email or password"
UPDATABLE_FIELDS = ("display_name", "bio", "avatar")
PROFILE_FIELDS = ("first_name", "last_name", "phone", "address", "city", "country", "postal_code")
DEFAULT_PAGE_SIZE = 50
MAX_PASSWORD_BYTES = 72


@lru_cache
def _dummy_hash(cost: int) -> bytes:
    """Hash checked when no user matched, at the same cost as real hashes."""
    return bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(rounds=cost))


@dataclass
class AuthService:
    """
    Domain service for account lifecycle and credential verification.

    All persistence goes through the injected repository; tokens are
    delegated to the codec.
    """

    repository: UserRepository
    tokens: TokenCodec
    reset_notifier: PasswordResetNotifier | None = None
    bcrypt_cost: int = 10

    def register(self, email: str, password: str, display_name: str) -> Identity:
        """
        Create a listener account and issue its first token.

        Args:
            email: User's email address (will be normalized)
            password: Plaintext password (will be hashed, never stored)
            display_name: Public display name

        Returns:
            Identity with the new user and a signed token

        Raises:
            ValidationError: If a required field is blank
            EmailAlreadyRegistered: If the normalized email is taken
        """
        user = self._create_account(email, password, display_name, Role.LISTENER)
        logger.info("Registered user id=%s email=%s", user.id, user.email)
        return Identity(user=user, token=self.tokens.issue(user))

    def create_user(self, email: str, password: str, display_name: str, role: Role = Role.LISTENER) -> User:
        """
        Create an account with the given role in a single write (admin use).

        No token is issued. Same validation and errors as register().
        """
        user = self._create_account(email, password, display_name, role)
        logger.info("Created user id=%s email=%s role=%s", user.id, user.email, role.value)
        return user
    def login(self, email: str, password: str) -> Identity:
        """
        Verify credentials and issue a token.

        Raises:
            AuthenticationError: Same message for unknown email, inactive
                account and wrong password
        """
        normalized_email = normalize_email(email)
        user = self.repository.get_active_by_email(normalized_email)

        stored_hash = user.password_hash.encode() if user is not None else _dummy_hash(self.bcrypt_cost)
        try:
            password_valid = bcrypt.checkpw(password.encode(), stored_hash)
        except ValueError:
            # bcrypt rejects inputs over 72 bytes
            password_valid = False

        if user is None or not password_valid:
            logger.warning("Failed login for email=%s", normalized_email)
            raise AuthenticationError(INVALID_CREDENTIALS)

        return Identity(user=user, token=self.tokens.issue(user))

    def verify_token(self, token: str) -> Claims | None:
        """Decode a token; None on any failure."""
        return self.tokens.verify(token)

    def get_user_by_id(self, user_id: int) -> User | None:
        return self.repository.get_by_id(user_id)

    def get_all_users(self, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> list[User]:
        return self.repository.list_users(max(1, limit), max(0, offset))

    def update_user(self, user_id: int, fields: dict[str, str | None]) -> User:
        """
        Apply the recognized profile fields present in ``fields``.

        Unrecognized keys are ignored. When no recognized field is present
        the current record is returned and nothing is written.

        Raises:
            ValidationError: If display_name is present but null or blank
            NotFoundError: If the user does not exist
        """
        updates = {key: fields[key] for key in UPDATABLE_FIELDS if key in fields}

        if "display_name" in updates:
            display_name = updates["display_name"]
            if display_name is None or not display_name.strip():
                raise ValidationError("display name must not be blank")
            updates["display_name"] = display_name.strip()

        if not updates:
            return self._require_user(user_id)

        user = self.repository.update_fields(user_id, updates)
        if user is None:
            raise NotFoundError("user not found")
        return user

    def get_profile(self, user_id: int) -> UserProfile:
        """
        Contact details of an existing user.

        Raises:
            NotFoundError: If the user or its profile row does not exist
        """
        self._require_user(user_id)
        profile = self.repository.get_profile(user_id)
        if profile is None:
            raise NotFoundError("profile not found")
        return profile

    def update_profile(self, user_id: int, fields: dict[str, str | None]) -> UserProfile:
        """
        Apply the contact fields present in ``fields``; null clears a field.

        Unrecognized keys are ignored. When no contact field is present the
        current profile is returned and nothing is written.

        Raises:
            NotFoundError: If the user does not exist
        """
        updates = {key: fields[key] for key in PROFILE_FIELDS if key in fields}

        if not updates:
            return self.get_profile(user_id)

        self._require_user(user_id)
        profile = self.repository.update_profile(user_id, updates)
        if profile is None:
            raise NotFoundError("profile not found")
        return profile

    def update_user_role(self, user_id: int, role: Role) -> User:
        """
        Change a user's role.

        Raises:
            NotFoundError: If the user does not exist
            InvariantViolationError: If the user is the root administrator
        """
        target = self._require_user(user_id)
        self._guard_protected(target, "cannot change the role of the root administrator")

        user = self.repository.update_role(user_id, role)
        if user is None:
            raise NotFoundError("user not found")
        logger.info("Changed role of user id=%s from %s to %s", user_id, target.role.value, role.value)
        return user

    def set_active(self, user_id: int, is_active: bool) -> User:
        """Deactivate or reactivate an account; same guard as update_user_role()."""
        target = self._require_user(user_id)
        self._guard_protected(target, "cannot deactivate the root administrator")

        user = self.repository.set_active(user_id, is_active)
        if user is None:
            raise NotFoundError("user not found")
        logger.info("Set is_active=%s for user id=%s", is_active, user_id)
        return user

    def delete_user(self, user_id: int) -> None:
        """
        Hard-delete a user.

        Raises:
            NotFoundError: If the user does not exist
            InvariantViolationError: If the user is the root administrator
        """
        target = self._require_user(user_id)
        self._guard_protected(target, "cannot delete the root administrator")

        if not self.repository.delete_user(user_id):
            raise NotFoundError("user not found")
        logger.info("Deleted user id=%s", user_id)

    def provision_root_admin(self, email: str, password: str, display_name: str) -> User:
        """
        Create the protected root administrator if it does not exist yet.

        Idempotent: an existing protected account is returned untouched.
        """
        existing = self.repository.get_protected_user()
        if existing is not None:
            return existing

        user = self.repository.create_user(
            normalize_email(email),
            self._hash_password(password),
            display_name,
            Role.ADMIN,
            is_protected=True,
        )
        if user is None:
            raise EmailAlreadyRegistered()

        logger.info("Provisioned root administrator id=%s email=%s", user.id, user.email)
        return user

    def request_password_reset(self, email: str) -> None:
        """
        Hand an existing active account to the reset mail trigger.

        Returns silently whether or not the account exists.
        """
        user = self.repository.get_active_by_email(normalize_email(email))
        if user is None or self.reset_notifier is None:
            return
        self.reset_notifier.send_password_reset(user.email)

    def _create_account(self, email: str, password: str, display_name: str, role: Role) -> User:
        normalized_email = normalize_email(email)
        if not normalized_email or not password or not display_name.strip():
            raise ValidationError("email, password and display name are required")
        if len(password.encode()) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")

        user = self.repository.create_user(
            normalized_email,
            self._hash_password(password),
            display_name.strip(),
            role,
        )
        if user is None:
            raise EmailAlreadyRegistered()
        return user

    def _require_user(self, user_id: int) -> User:
        user = self.repository.get_by_id(user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user

    def _guard_protected(self, user: User, message: str) -> None:
        if user.is_protected:
            logger.warning("Refused mutation of protected user id=%s: %s", user.id, message)
            raise InvariantViolationError(message)

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt with the configured cost factor."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()
