"""
Unit tests for AuthService domain logic.

Tests domain logic against the in-memory store and mocked ports to verify:
- Email normalization and case-insensitive uniqueness
- Password hashing
- Uniform login failures
- Partial updates that skip writes when nothing changes
- Root administrator protection
"""

import re
from unittest.mock import Mock

import bcrypt
import pytest

from station_auth.adapters.repository.memory import InMemoryStore
from station_auth.domain.auth import AuthService, normalize_email
from station_auth.domain.exceptions import (
    AuthenticationError,
    ConflictError,
    EmailAlreadyRegistered,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from station_auth.domain.ports import Role, User
from station_auth.domain.tokens import TokenCodec

from ..conftest import ROOT_EMAIL, ROOT_PASSWORD, TEST_SECRET


class TestEmailNormalization:
    """Tests for email normalization."""

    def test_normalize_email_strips_and_lowercases(self) -> None:
        assert normalize_email("  User@Example.COM  ") == "user@example.com"

    def test_register_stores_normalized_email(self, auth_service: AuthService) -> None:
        identity = auth_service.register("  DJ@Radio.Example ", "password123", "DJ")
        assert identity.user.email == "dj@radio.example"

    def test_login_accepts_any_case(self, auth_service: AuthService) -> None:
        auth_service.register("host@radio.example", "password123", "Host")
        identity = auth_service.login("HOST@Radio.Example", "password123")
        assert identity.user.email == "host@radio.example"


class TestPasswordHashing:
    """Tests for password hashing."""

    def test_password_is_bcrypt_hashed(self, auth_service: AuthService) -> None:
        user = auth_service.register("user@example.com", "password123", "User").user

        assert user.password_hash != "password123"
        assert re.match(r"^\$2[aby]\$", user.password_hash)
        assert bcrypt.checkpw(b"password123", user.password_hash.encode())

    def test_default_cost_factor_is_10(self, store: InMemoryStore, tokens: TokenCodec) -> None:
        service = AuthService(repository=store, tokens=tokens)
        user = service.register("user@example.com", "password123", "User").user

        # bcrypt format: $2b$XX$... where XX is cost factor
        assert int(user.password_hash.split("$")[2]) == 10

    def test_plaintext_never_reaches_repository(self, tokens: TokenCodec) -> None:
        repo = Mock()
        repo.create_user.return_value = Mock(spec=User, id=1, email="u@example.com", role=Role.LISTENER)
        service = AuthService(repository=repo, tokens=tokens, bcrypt_cost=4)

        service.register("u@example.com", "plaintext-secret", "U")

        assert "plaintext-secret" not in repr(repo.create_user.call_args)


class TestRegister:
    """Tests for account registration."""

    def test_register_creates_active_listener(self, auth_service: AuthService) -> None:
        user = auth_service.register("new@example.com", "password123", "New").user

        assert user.role == Role.LISTENER
        assert user.is_active is True
        assert user.is_protected is False

    def test_register_creates_empty_profile(self, auth_service: AuthService, store: InMemoryStore) -> None:
        user = auth_service.register("new@example.com", "password123", "New").user

        profile = store.get_profile(user.id)
        assert profile is not None
        assert profile.first_name is None

    def test_register_issues_verifiable_token(self, auth_service: AuthService) -> None:
        identity = auth_service.register("new@example.com", "password123", "New")

        claims = auth_service.verify_token(identity.token)
        assert claims is not None
        assert claims.id == identity.user.id
        assert claims.email == "new@example.com"
        assert claims.role == Role.LISTENER

    def test_exact_duplicate_raises_conflict(self, auth_service: AuthService) -> None:
        auth_service.register("dup@example.com", "password123", "One")

        with pytest.raises(EmailAlreadyRegistered) as exc_info:
            auth_service.register("dup@example.com", "password456", "Two")

        assert exc_info.value.message == "email already registered"

    def test_case_variant_duplicate_raises_same_conflict(self, auth_service: AuthService) -> None:
        auth_service.register("dup@example.com", "password123", "One")

        with pytest.raises(EmailAlreadyRegistered) as exact:
            auth_service.register("dup@example.com", "password123", "Two")
        with pytest.raises(EmailAlreadyRegistered) as variant:
            auth_service.register("DUP@Example.com", "password123", "Three")

        assert type(exact.value) is type(variant.value)
        assert exact.value.message == variant.value.message
        assert isinstance(variant.value, ConflictError)

    def test_blank_fields_raise_validation_error(self, auth_service: AuthService) -> None:
        with pytest.raises(ValidationError):
            auth_service.register("   ", "password123", "Name")
        with pytest.raises(ValidationError):
            auth_service.register("a@example.com", "", "Name")
        with pytest.raises(ValidationError):
            auth_service.register("a@example.com", "password123", "   ")

    def test_password_over_72_bytes_rejected(self, auth_service: AuthService) -> None:
        with pytest.raises(ValidationError):
            auth_service.register("a@example.com", "x" * 73, "Name")


class TestLogin:
    """Tests for credential verification."""

    def test_login_success_issues_token(self, auth_service: AuthService) -> None:
        registered = auth_service.register("fan@example.com", "password123", "Fan").user

        identity = auth_service.login("fan@example.com", "password123")

        assert identity.user.id == registered.id
        assert auth_service.verify_token(identity.token) is not None

    def test_wrong_password_and_unknown_email_are_identical(self, auth_service: AuthService) -> None:
        auth_service.register("fan@example.com", "password123", "Fan")

        with pytest.raises(AuthenticationError) as wrong_password:
            auth_service.login("fan@example.com", "not-the-password")
        with pytest.raises(AuthenticationError) as unknown_email:
            auth_service.login("nobody@example.com", "password123")

        assert type(wrong_password.value) is type(unknown_email.value)
        assert wrong_password.value.message == unknown_email.value.message == "invalid email or password"

    def test_deactivated_account_gets_uniform_error(self, auth_service: AuthService) -> None:
        user = auth_service.register("gone@example.com", "password123", "Gone").user
        auth_service.set_active(user.id, False)

        with pytest.raises(AuthenticationError) as exc_info:
            auth_service.login("gone@example.com", "password123")

        assert exc_info.value.message == "invalid email or password"

    def test_unknown_email_still_runs_bcrypt(self, tokens: TokenCodec, monkeypatch: pytest.MonkeyPatch) -> None:
        repo = Mock()
        repo.get_active_by_email.return_value = None
        service = AuthService(repository=repo, tokens=tokens)
        checkpw = Mock(return_value=False)
        monkeypatch.setattr("station_auth.domain.auth.bcrypt.checkpw", checkpw)

        with pytest.raises(AuthenticationError):
            service.login("nobody@example.com", "password123")

        checkpw.assert_called_once()

    def test_overlong_password_is_plain_auth_failure(self, auth_service: AuthService) -> None:
        auth_service.register("fan@example.com", "password123", "Fan")

        with pytest.raises(AuthenticationError):
            auth_service.login("fan@example.com", "x" * 100)


class TestReads:
    """Tests for plain user reads."""

    def test_get_user_by_id_missing_returns_none(self, auth_service: AuthService) -> None:
        assert auth_service.get_user_by_id(999) is None

    def test_get_all_users_defaults_to_bounded_page(self, tokens: TokenCodec) -> None:
        repo = Mock()
        repo.list_users.return_value = []
        service = AuthService(repository=repo, tokens=tokens)

        service.get_all_users()

        repo.list_users.assert_called_once_with(50, 0)

    def test_get_all_users_pages(self, auth_service: AuthService) -> None:
        for i in range(5):
            auth_service.register(f"user{i}@example.com", "password123", f"User {i}")

        page = auth_service.get_all_users(limit=2, offset=2)

        assert [user.email for user in page] == ["user2@example.com", "user3@example.com"]


class TestUpdateUser:
    """Tests for partial profile updates."""

    def test_update_applies_present_fields_only(self, auth_service: AuthService) -> None:
        user = auth_service.register("dj@example.com", "password123", "DJ").user

        updated = auth_service.update_user(user.id, {"bio": "Sunday nights"})

        assert updated.bio == "Sunday nights"
        assert updated.display_name == "DJ"

    def test_unrecognized_fields_are_ignored(self, auth_service: AuthService) -> None:
        user = auth_service.register("dj@example.com", "password123", "DJ").user

        updated = auth_service.update_user(user.id, {"role": "admin", "email": "x@example.com"})

        assert updated.role == Role.LISTENER
        assert updated.email == "dj@example.com"

    def test_empty_update_keeps_updated_at(self, auth_service: AuthService, store: InMemoryStore) -> None:
        user = auth_service.register("dj@example.com", "password123", "DJ").user

        result = auth_service.update_user(user.id, {})

        assert result.updated_at == user.updated_at
        assert store.get_by_id(user.id).updated_at == user.updated_at

    def test_empty_update_performs_no_write(self, tokens: TokenCodec) -> None:
        repo = Mock()
        repo.get_by_id.return_value = Mock(spec=User)
        service = AuthService(repository=repo, tokens=tokens)

        service.update_user(1, {})

        repo.update_fields.assert_not_called()

    def test_update_missing_user_raises_not_found(self, auth_service: AuthService) -> None:
        with pytest.raises(NotFoundError):
            auth_service.update_user(999, {"bio": "x"})
        with pytest.raises(NotFoundError):
            auth_service.update_user(999, {})


class TestRoleAndDeletion:
    """Tests for role changes and deletion of ordinary users."""

    def test_update_user_role(self, auth_service: AuthService) -> None:
        user = auth_service.register("dj@example.com", "password123", "DJ").user

        updated = auth_service.update_user_role(user.id, Role.ADMIN)

        assert updated.role == Role.ADMIN

    def test_delete_user(self, auth_service: AuthService) -> None:
        user = auth_service.register("dj@example.com", "password123", "DJ").user

        auth_service.delete_user(user.id)

        assert auth_service.get_user_by_id(user.id) is None

    def test_missing_target_raises_not_found(self, auth_service: AuthService) -> None:
        with pytest.raises(NotFoundError):
            auth_service.update_user_role(999, Role.ADMIN)
        with pytest.raises(NotFoundError):
            auth_service.delete_user(999)
        with pytest.raises(NotFoundError):
            auth_service.set_active(999, False)


class TestRootAdminProtection:
    """Tests for the protected root administrator."""

    def test_delete_root_admin_fails(self, auth_service: AuthService, root_admin: User) -> None:
        with pytest.raises(InvariantViolationError):
            auth_service.delete_user(root_admin.id)

        assert auth_service.get_user_by_id(root_admin.id) is not None

    def test_demote_root_admin_fails(self, auth_service: AuthService, root_admin: User) -> None:
        with pytest.raises(InvariantViolationError):
            auth_service.update_user_role(root_admin.id, Role.LISTENER)

        assert auth_service.get_user_by_id(root_admin.id).role == Role.ADMIN

    def test_deactivate_root_admin_fails(self, auth_service: AuthService, root_admin: User) -> None:
        with pytest.raises(InvariantViolationError):
            auth_service.set_active(root_admin.id, False)

        assert auth_service.get_user_by_id(root_admin.id).is_active is True

    def test_guard_runs_before_any_write(self, tokens: TokenCodec) -> None:
        protected = Mock(spec=User, id=1, is_protected=True)
        repo = Mock()
        repo.get_by_id.return_value = protected
        service = AuthService(repository=repo, tokens=tokens)

        with pytest.raises(InvariantViolationError):
            service.update_user_role(1, Role.LISTENER)
        with pytest.raises(InvariantViolationError):
            service.delete_user(1)

        repo.update_role.assert_not_called()
        repo.delete_user.assert_not_called()

    def test_protection_is_a_flag_not_an_email(self, auth_service: AuthService, root_admin: User) -> None:
        """A second admin with a look-alike email is not protected."""
        other = auth_service.register("ADMIN@root.example", "password123", "Other").user
        auth_service.update_user_role(other.id, Role.ADMIN)

        auth_service.delete_user(other.id)

        assert auth_service.get_user_by_id(other.id) is None

    def test_root_admin_profile_fields_remain_editable(self, auth_service: AuthService, root_admin: User) -> None:
        updated = auth_service.update_user(root_admin.id, {"display_name": "Station Manager"})
        assert updated.display_name == "Station Manager"

    def test_bootstrap_scenario(self, auth_service: AuthService) -> None:
        admin = auth_service.provision_root_admin(ROOT_EMAIL, ROOT_PASSWORD, "Root")

        with pytest.raises(InvariantViolationError):
            auth_service.delete_user(admin.id)
        with pytest.raises(InvariantViolationError):
            auth_service.update_user_role(admin.id, Role.LISTENER)

        identity = auth_service.login(ROOT_EMAIL, ROOT_PASSWORD)
        assert identity.user.role == Role.ADMIN


class TestProvisionRootAdmin:
    """Tests for bootstrap provisioning."""

    def test_creates_protected_admin(self, root_admin: User) -> None:
        assert root_admin.is_protected is True
        assert root_admin.role == Role.ADMIN
        assert root_admin.email == ROOT_EMAIL

    def test_is_idempotent(self, auth_service: AuthService, root_admin: User, store: InMemoryStore) -> None:
        again = auth_service.provision_root_admin("someone-else@example.com", "x" * 8, "Other")

        assert again.id == root_admin.id
        assert store.count_stats().total_users == 1


class TestPasswordReset:
    """Tests for the password-reset mail trigger stub."""

    def test_notifies_existing_active_account(self, store: InMemoryStore) -> None:
        notifier = Mock()
        service = AuthService(
            repository=store,
            tokens=TokenCodec(secret=TEST_SECRET),
            reset_notifier=notifier,
            bcrypt_cost=4,
        )
        service.register("fan@example.com", "password123", "Fan")

        service.request_password_reset("  FAN@example.com ")

        notifier.send_password_reset.assert_called_once_with("fan@example.com")

    def test_unknown_account_is_silent(self, store: InMemoryStore) -> None:
        notifier = Mock()
        service = AuthService(repository=store, tokens=TokenCodec(secret=TEST_SECRET), reset_notifier=notifier)

        service.request_password_reset("nobody@example.com")

        notifier.send_password_reset.assert_not_called()


class TestDisplayNameGuard:
    """display_name can be changed but never cleared."""

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_null_or_blank_rejected(self, auth_service: AuthService, store: InMemoryStore, value: str | None) -> None:
        user = auth_service.register("fan@example.com", "password123", "Fan").user

        with pytest.raises(ValidationError):
            auth_service.update_user(user.id, {"display_name": value, "bio": "ignored"})

        stored = store.get_by_id(user.id)
        assert stored.display_name == "Fan"
        assert stored.bio is None

    def test_rejected_before_any_write(self, tokens: TokenCodec) -> None:
        repo = Mock()
        service = AuthService(repository=repo, tokens=tokens)

        with pytest.raises(ValidationError):
            service.update_user(1, {"display_name": None})

        repo.update_fields.assert_not_called()

    def test_display_name_is_trimmed(self, auth_service: AuthService) -> None:
        user = auth_service.register("fan@example.com", "password123", "Fan").user

        assert auth_service.update_user(user.id, {"display_name": "  DJ Fan "}).display_name == "DJ Fan"

    def test_search_still_works_after_rejected_update(self, auth_service: AuthService, directory) -> None:
        user = auth_service.register("fan@example.com", "password123", "Fan").user
        with pytest.raises(ValidationError):
            auth_service.update_user(user.id, {"display_name": None})

        assert directory.list_users(search="fan").total == 1


class TestContactProfile:
    """Tests for reading and updating contact details."""

    def test_new_user_has_empty_profile(self, auth_service: AuthService) -> None:
        user = auth_service.register("fan@example.com", "password123", "Fan").user

        profile = auth_service.get_profile(user.id)

        assert profile.user_id == user.id
        assert profile.city is None

    def test_partial_update(self, auth_service: AuthService) -> None:
        user = auth_service.register("fan@example.com", "password123", "Fan").user
        auth_service.update_profile(user.id, {"first_name": "Ada", "city": "Lyon"})

        profile = auth_service.update_profile(user.id, {"phone": "+33 1 23 45 67 89"})

        assert profile.first_name == "Ada"
        assert profile.city == "Lyon"
        assert profile.phone == "+33 1 23 45 67 89"
        assert auth_service.get_profile(user.id) == profile

    def test_null_clears_field(self, auth_service: AuthService) -> None:
        user = auth_service.register("fan@example.com", "password123", "Fan").user
        auth_service.update_profile(user.id, {"city": "Lyon"})

        assert auth_service.update_profile(user.id, {"city": None}).city is None

    def test_unknown_keys_ignored_without_write(self, tokens: TokenCodec) -> None:
        repo = Mock()
        service = AuthService(repository=repo, tokens=tokens)

        service.update_profile(1, {"email": "x@example.com", "user_id": 7})

        repo.update_profile.assert_not_called()
        repo.get_profile.assert_called_once_with(1)

    def test_unknown_user_raises_not_found(self, auth_service: AuthService) -> None:
        with pytest.raises(NotFoundError):
            auth_service.update_profile(999, {"city": "Lyon"})
        with pytest.raises(NotFoundError):
            auth_service.get_profile(999)

    def test_root_admin_profile_is_editable(self, auth_service: AuthService, root_admin: User) -> None:
        assert auth_service.update_profile(root_admin.id, {"country": "FR"}).country == "FR"


class TestCreateUser:
    """Admin account creation."""

    def test_role_is_set_in_one_write(self) -> None:
        repo = Mock()
        repo.create_user.return_value = Mock(id=5, email="ops@example.com", role=Role.ADMIN)
        tokens = Mock()
        service = AuthService(repository=repo, tokens=tokens, bcrypt_cost=4)

        user = service.create_user("Ops@Example.com", "password123", "Ops", Role.ADMIN)

        assert user.id == 5
        args = repo.create_user.call_args.args
        assert args[0] == "ops@example.com"
        assert args[3] is Role.ADMIN
        repo.create_user.assert_called_once()
        repo.update_role.assert_not_called()
        tokens.issue.assert_not_called()

    def test_created_admin_can_log_in_as_admin(self, auth_service: AuthService) -> None:
        auth_service.create_user("ops@example.com", "password123", "Ops", Role.ADMIN)

        identity = auth_service.login("ops@example.com", "password123")

        assert identity.user.role is Role.ADMIN
        assert identity.user.is_protected is False

    def test_duplicate_email(self, auth_service: AuthService) -> None:
        auth_service.register("ops@example.com", "password123", "Ops")

        with pytest.raises(EmailAlreadyRegistered):
            auth_service.create_user("OPS@example.com", "password123", "Ops", Role.ADMIN)


class TestLoginTimingCost:
    """The hash checked for an unknown email uses the configured cost."""

    @pytest.mark.parametrize("cost", [4, 5, 10])
    def test_dummy_hash_matches_configured_cost(self, cost: int, monkeypatch: pytest.MonkeyPatch) -> None:
        repo = Mock()
        repo.get_active_by_email.return_value = None
        service = AuthService(repository=repo, tokens=TokenCodec(secret=TEST_SECRET), bcrypt_cost=cost)
        checkpw = Mock(return_value=False)
        monkeypatch.setattr("station_auth.domain.auth.bcrypt.checkpw", checkpw)

        with pytest.raises(AuthenticationError):
            service.login("nobody@example.com", "password123")

        checked_hash = checkpw.call_args.args[1]
        assert int(checked_hash.split(b"$")[2]) == cost

    def test_real_and_dummy_hash_share_cost(self, auth_service: AuthService, monkeypatch: pytest.MonkeyPatch) -> None:
        stored = auth_service.register("fan@example.com", "password123", "Fan").user.password_hash
        checkpw = Mock(return_value=False)
        monkeypatch.setattr("station_auth.domain.auth.bcrypt.checkpw", checkpw)

        with pytest.raises(AuthenticationError):
            auth_service.login("nobody@example.com", "password123")

        assert checkpw.call_args.args[1].split(b"$")[2] == stored.encode().split(b"$")[2]
