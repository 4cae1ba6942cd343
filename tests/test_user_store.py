"""Tests for UserStore."""

import pytest

from storefront.errors import DuplicateUserError, NotAuthenticatedError, ValidationError
from storefront.models import Role
from storefront.user_store import UserStore, hash_password, verify_password


class TestUserStore:
    def test_add_user_normalizes_email(self, user_store):
        user = user_store.add_user("  Carol ", "Carol@Example.COM ")

        assert user.name == "Carol"
        assert user.email == "carol@example.com"
        assert user.role == Role.USER
        assert len(user.token) > 20

    def test_duplicate_email(self, user_store):
        user_store.add_user("Carol", "carol@example.com")

        with pytest.raises(DuplicateUserError):
            user_store.add_user("Other Carol", "CAROL@example.com")

    def test_blank_name(self, user_store):
        with pytest.raises(ValidationError):
            user_store.add_user(" ", "carol@example.com")

    def test_authenticate(self, user_store, customer, admin):
        assert user_store.authenticate(customer.token).id == customer.id
        assert user_store.authenticate(admin.token).is_admin

    @pytest.mark.parametrize("token", [None, "", "not-a-token"])
    def test_authenticate_rejects(self, user_store, customer, token):
        with pytest.raises(NotAuthenticatedError):
            user_store.authenticate(token)

    def test_persisted(self, temp_dir, customer):
        users = UserStore(temp_dir).list_users()
        assert [u.email for u in users] == ["alice@example.com"]
        assert (temp_dir / "users.json").exists()


class TestPasswords:
    def test_password_stored_hashed(self, temp_dir, user_store):
        user_store.add_user("Dana", "dana@example.com", password="hunter22")

        raw = (temp_dir / "users.json").read_text()
        assert "hunter22" not in raw
        assert user_store.list_users()[0].password_hash.startswith("scrypt$")

    def test_same_password_different_salt(self):
        assert hash_password("hunter22") != hash_password("hunter22")

    def test_verify_password(self):
        stored = hash_password("hunter22")
        assert verify_password("hunter22", stored)
        assert not verify_password("hunter23", stored)
        assert not verify_password("hunter22", "")
        assert not verify_password("hunter22", "md5$zz$00")

    def test_short_password_rejected(self, user_store):
        with pytest.raises(ValidationError) as exc_info:
            user_store.add_user("Dana", "dana@example.com", password="abc")
        assert exc_info.value.errors[0]["field"] == "password"

    def test_login_rotates_token(self, user_store):
        user = user_store.add_user("Dana", "dana@example.com", password="hunter22")

        logged_in = user_store.login("DANA@example.com", "hunter22")

        assert logged_in.id == user.id
        assert logged_in.token != user.token
        assert user_store.authenticate(logged_in.token).id == user.id
        with pytest.raises(NotAuthenticatedError):
            user_store.authenticate(user.token)

    def test_login_wrong_password(self, user_store):
        user = user_store.add_user("Dana", "dana@example.com", password="hunter22")

        with pytest.raises(NotAuthenticatedError):
            user_store.login("dana@example.com", "hunter23")
        assert user_store.authenticate(user.token).id == user.id

    def test_login_without_password_set(self, user_store, customer):
        with pytest.raises(NotAuthenticatedError):
            user_store.login(customer.email, "anything")
