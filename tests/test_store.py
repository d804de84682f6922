"""Unit tests for auth/store.py -- user repository and refresh-token column.

Covers:
- username/email normalization on write and lookup
- find_by_username_or_email() with either identifier, both, or neither
- refresh-token writes touch only refresh_token (profile and hash survive)
- swap_refresh_token() succeeds only against the currently stored value
- clear_refresh_token() is idempotent
- update_user() whitelist: session fields can never be written through it
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.store import UserStore


def test_create_user_normalizes_identifiers(store: UserStore, alice):
    assert alice.username == "alice"
    assert alice.email == "alice@example.com"
    assert alice.refresh_token is None
    assert alice.created_at


def test_duplicate_username_rejected(store: UserStore, alice, register_user):
    with pytest.raises(IntegrityError):
        register_user(username="ALICE", email="other@example.com")


def test_duplicate_email_rejected(store: UserStore, alice, register_user):
    with pytest.raises(IntegrityError):
        register_user(username="other", email="alice@EXAMPLE.com")


class TestLookup:
    def test_by_username_case_insensitive(self, store: UserStore, alice):
        assert store.find_by_username_or_email(username="ALICE").id == alice.id

    def test_by_email_only(self, store: UserStore, alice):
        assert store.find_by_username_or_email(email="alice@example.com").id == alice.id

    def test_neither_identifier_returns_none(self, store: UserStore, alice):
        assert store.find_by_username_or_email() is None

    def test_unknown_returns_none(self, store: UserStore, alice):
        assert store.find_by_username_or_email(username="nobody", email="nobody@example.com") is None

    def test_both_identifiers_prefer_lowest_id(self, store: UserStore, alice, register_user):
        bob = register_user(username="bob", email="bob@example.com")
        found = store.find_by_username_or_email(username="bob", email="alice@example.com")
        assert found.id == alice.id
        assert found.id < bob.id

    def test_get_by_username_and_email(self, store: UserStore, alice):
        assert store.get_by_username("Alice").id == alice.id
        assert store.get_by_email("ALICE@example.com").id == alice.id


class TestRefreshTokenColumn:
    def test_set_and_get(self, store: UserStore, alice):
        assert store.set_refresh_token(alice.id, "token-1") is True
        assert store.get_refresh_token(alice.id) == "token-1"

    def test_set_leaves_profile_untouched(self, store: UserStore, alice):
        store.set_refresh_token(alice.id, "token-1")
        after = store.get_by_id(alice.id)
        assert after.hashed_password == alice.hashed_password
        assert after.full_name == alice.full_name
        assert after.avatar == alice.avatar
        assert after.cover_image == alice.cover_image

    def test_set_unknown_user_returns_false(self, store: UserStore):
        assert store.set_refresh_token(9999, "token-1") is False
        assert store.get_refresh_token(9999) is None

    def test_swap_requires_current_value(self, store: UserStore, alice):
        store.set_refresh_token(alice.id, "token-1")
        assert store.swap_refresh_token(alice.id, "stale", "token-2") is False
        assert store.get_refresh_token(alice.id) == "token-1"
        assert store.swap_refresh_token(alice.id, "token-1", "token-2") is True
        assert store.get_refresh_token(alice.id) == "token-2"

    def test_swap_is_single_use(self, store: UserStore, alice):
        store.set_refresh_token(alice.id, "token-1")
        assert store.swap_refresh_token(alice.id, "token-1", "token-2") is True
        assert store.swap_refresh_token(alice.id, "token-1", "token-3") is False
        assert store.get_refresh_token(alice.id) == "token-2"

    def test_swap_fails_when_cleared(self, store: UserStore, alice):
        store.set_refresh_token(alice.id, "token-1")
        store.clear_refresh_token(alice.id)
        assert store.swap_refresh_token(alice.id, "token-1", "token-2") is False
        assert store.get_refresh_token(alice.id) is None

    def test_clear_is_idempotent(self, store: UserStore, alice):
        store.set_refresh_token(alice.id, "token-1")
        assert store.clear_refresh_token(alice.id) is True
        assert store.clear_refresh_token(alice.id) is True
        assert store.get_refresh_token(alice.id) is None

    def test_clear_unknown_user_returns_false(self, store: UserStore):
        assert store.clear_refresh_token(9999) is False


class TestUpdateUser:
    def test_profile_update_keeps_session_and_hash(self, store: UserStore, alice):
        store.set_refresh_token(alice.id, "token-1")
        updated = store.update_user(alice.id, full_name="Alice Pleasance", email="ALICE@wonder.land")
        assert updated.full_name == "Alice Pleasance"
        assert updated.email == "alice@wonder.land"
        assert updated.refresh_token == "token-1"
        assert updated.hashed_password == alice.hashed_password
        assert updated.avatar == alice.avatar

    @pytest.mark.parametrize("field", ["refresh_token", "hashed_password", "username", "id"])
    def test_non_profile_fields_rejected(self, store: UserStore, alice, field):
        with pytest.raises(ValueError, match="not updatable"):
            store.update_user(alice.id, **{field: "x"})

    def test_unknown_user_returns_none(self, store: UserStore):
        assert store.update_user(9999, full_name="Nobody") is None

    def test_no_fields_returns_current(self, store: UserStore, alice):
        assert store.update_user(alice.id).id == alice.id


def test_ping(store: UserStore):
    assert store.ping() is True
